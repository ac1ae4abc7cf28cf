"""grpc-web adapter — one protoc run per source via protoc-gen-grpc-web.

The grpc-web plugin writes a single file named by its ``out`` option, so
sources cannot be batched: each ``foo/bar.proto`` is compiled on its own to
``foo/bar.grpc.pb.js`` (or the configured ``out``).
"""

from __future__ import annotations

import asyncio
import posixpath
from typing import Any, Mapping, Optional

from grpcgen.adapters.base import ProtocInvoker, format_option_string
from grpcgen.errors import ConfigError
from grpcgen.models import InvocationContext

MODES = ("grpcweb", "grpcwebtext")
IMPORT_STYLES = ("closure", "commonjs", "commonjs+dts", "typescript")
DEFAULT_MODE = "grpcweb"


def derived_output_name(src: str) -> str:
    """``sub/greeter.proto`` -> ``sub/greeter.grpc.pb.js``."""
    src = src.replace("\\", "/")
    stem = posixpath.basename(src)
    if stem.endswith(".proto"):
        stem = stem[: -len(".proto")]
    return posixpath.join(posixpath.dirname(src), stem + ".grpc.pb.js")


class GrpcWebAdapter:
    name: str = "grpc-web"

    def __init__(
        self,
        context: InvocationContext,
        invoker: Optional[ProtocInvoker] = None,
    ) -> None:
        self.context = context
        self.protoc = invoker if invoker is not None else ProtocInvoker(context)
        self.out: Optional[str] = None
        self.mode = DEFAULT_MODE
        self.extra: dict[str, Any] = {}

    def parse_options(self, options: Mapping[str, Any]) -> None:
        opts = dict(options)
        self.out = opts.pop("out", None) or None
        self.mode = str(opts.pop("mode", DEFAULT_MODE))
        if self.mode not in MODES:
            raise ConfigError(
                f"[grpc-web] unknown mode '{self.mode}' may be one of the "
                f"following: {', '.join(MODES)}"
            )
        import_style = opts.get("import_style")
        if import_style is not None and import_style not in IMPORT_STYLES:
            raise ConfigError(
                f"[grpc-web] unknown import_style '{import_style}' may be one of "
                f"the following: {', '.join(IMPORT_STYLES)}"
            )
        self.extra = opts

    def option_string(self, src: str) -> str:
        out = self.out or derived_output_name(src)
        options: dict[str, Any] = {"out": out, "mode": self.mode}
        options.update(self.extra)
        return format_option_string(options, self.context.output_path)

    async def run(self) -> None:
        results = await asyncio.gather(
            *(self.protoc.invoke(self.option_string(src), [src]) for src in self.context.srcs),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
