"""Output adapters: one per output kind, resolved through the registry."""

from grpcgen.adapters.base import BUILT_IN_OUTPUTS, OutputAdapter, ProtocInvoker, format_option_string
from grpcgen.adapters.dummy import DummyAdapter
from grpcgen.adapters.grpc_web import GrpcWebAdapter
from grpcgen.adapters.js import GrpcNodeAdapter, JsAdapter
from grpcgen.adapters.passthrough import FallbackAdapter, PassthroughAdapter
from grpcgen.adapters.registry import (
    list_adapters,
    load_entry_point_adapters,
    register_adapter,
    resolve_adapter,
)

__all__ = [
    "BUILT_IN_OUTPUTS",
    "DummyAdapter",
    "FallbackAdapter",
    "GrpcNodeAdapter",
    "GrpcWebAdapter",
    "JsAdapter",
    "OutputAdapter",
    "PassthroughAdapter",
    "ProtocInvoker",
    "format_option_string",
    "list_adapters",
    "load_entry_point_adapters",
    "register_adapter",
    "resolve_adapter",
]
