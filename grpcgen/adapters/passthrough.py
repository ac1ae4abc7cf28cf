"""Passthrough adapters — hand configured options straight to protoc."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from grpcgen.adapters.base import ProtocInvoker, format_option_string
from grpcgen.models import InvocationContext

logger = logging.getLogger(__name__)


class PassthroughAdapter:
    """Serialize the options mapping as-is and invoke protoc once."""

    name: str = "passthrough"

    def __init__(
        self,
        context: InvocationContext,
        invoker: Optional[ProtocInvoker] = None,
    ) -> None:
        self.context = context
        self.protoc = invoker if invoker is not None else ProtocInvoker(context)
        self.options: dict[str, Any] = {}

    def parse_options(self, options: Mapping[str, Any]) -> None:
        self.options = dict(options)

    async def run(self) -> None:
        await self.protoc.invoke(
            format_option_string(self.options, self.context.output_path)
        )


class FallbackAdapter(PassthroughAdapter):
    """Used for output kinds with no registered adapter."""

    name = "fallback"

    def __init__(
        self,
        context: InvocationContext,
        invoker: Optional[ProtocInvoker] = None,
    ) -> None:
        super().__init__(context, invoker)
        # Outputs marked custom know there is no dedicated adapter.
        if not context.custom:
            logger.warning("Using fallback output adapter for '%s'", context.output_name)
