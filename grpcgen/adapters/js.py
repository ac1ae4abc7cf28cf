"""JavaScript adapters: protoc's built-in ``js`` output and node gRPC stubs."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from grpcgen.adapters.base import ProtocInvoker, format_option_string
from grpcgen.errors import ConfigError
from grpcgen.models import InvocationContext

IMPORT_STYLES = ("closure", "commonjs")

# Plugin binary installed by the ``grpc-tools`` npm package.
NODE_GRPC_PLUGIN = "grpc_tools_node_protoc_plugin"


class JsAdapter:
    """``--js_out=import_style=...,binary,library=...:<dir>``."""

    name: str = "js"

    def __init__(
        self,
        context: InvocationContext,
        invoker: Optional[ProtocInvoker] = None,
    ) -> None:
        self.context = context
        self.protoc = invoker if invoker is not None else ProtocInvoker(context)
        self.import_style = ""
        self.binary = False
        self.library = ""

    def parse_options(self, options: Mapping[str, Any]) -> None:
        self.import_style = str(options.get("import_style") or "")
        self.binary = _as_bool(options.get("binary", False))
        self.library = str(options.get("library") or "")

        if self.import_style and self.import_style not in IMPORT_STYLES:
            raise ConfigError(
                f"[js] unknown import_style '{self.import_style}' may be one of the "
                f"following: {', '.join(IMPORT_STYLES)}"
            )

    def option_string(self) -> str:
        opts: dict[str, Any] = {}
        if self.import_style:
            opts["import_style"] = self.import_style
        if self.binary:
            opts["binary"] = True
        if self.library:
            opts["library"] = self.library
        return format_option_string(opts, self.context.output_path)

    async def run(self) -> None:
        await self.protoc.invoke(self.option_string())


class GrpcNodeAdapter:
    """Node.js service stubs, plus the message classes they import.

    With ``messages`` on (the default) a ``js`` directive is added to the
    same invocation so ``*_pb.js`` and ``*_grpc_pb.js`` come out together.
    """

    name: str = "grpc"

    def __init__(
        self,
        context: InvocationContext,
        invoker: Optional[ProtocInvoker] = None,
    ) -> None:
        if context.plugin_name == "protoc-gen-grpc" and context.plugin_path is None:
            context.plugin_name = NODE_GRPC_PLUGIN
        self.context = context
        self.protoc = invoker if invoker is not None else ProtocInvoker(context)
        self.messages = True
        self.options: dict[str, Any] = {}

    def parse_options(self, options: Mapping[str, Any]) -> None:
        opts = dict(options)
        self.messages = _as_bool(opts.pop("messages", True))
        self.options = opts

    async def run(self) -> None:
        if self.messages:
            self.protoc.add("js", f"import_style=commonjs,binary:{self.context.output_path}")
        await self.protoc.invoke(
            format_option_string(self.options, self.context.output_path)
        )


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)
