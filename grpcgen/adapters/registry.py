"""Adapter registry — registration, entry-point loading, and resolution."""

from __future__ import annotations

import logging
from importlib.metadata import entry_points
from typing import Any, Mapping, Optional

from grpcgen.adapters.base import AdapterFactory, OutputAdapter, ProtocInvoker
from grpcgen.adapters.grpc_web import GrpcWebAdapter
from grpcgen.adapters.js import GrpcNodeAdapter, JsAdapter
from grpcgen.adapters.passthrough import FallbackAdapter
from grpcgen.models import InvocationContext
from grpcgen.process import Runner

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "grpcgen.adapters"

_REGISTRY: dict[str, AdapterFactory] = {
    "grpc-web": GrpcWebAdapter,
    "js": JsAdapter,
    "grpc": GrpcNodeAdapter,
}


def register_adapter(
    name: str,
    factory: AdapterFactory,
    registry: Optional[dict[str, AdapterFactory]] = None,
) -> None:
    """Register *factory* as the adapter for output kind *name*."""
    target = _REGISTRY if registry is None else registry
    target[name] = factory


def list_adapters(registry: Optional[Mapping[str, AdapterFactory]] = None) -> dict[str, AdapterFactory]:
    """Return a copy of the registered specialized adapters."""
    return dict(_REGISTRY if registry is None else registry)


def load_entry_point_adapters(
    registry: Optional[dict[str, AdapterFactory]] = None,
) -> list[str]:
    """Register adapters published under the ``grpcgen.adapters`` group.

    The entry-point name is the output kind. Returns the names loaded.
    """
    eps = entry_points(group=ENTRY_POINT_GROUP)

    loaded: list[str] = []
    for ep in eps:
        try:
            factory = ep.load()
        except Exception as exc:
            logger.warning("Skipping broken adapter entry point '%s': %s", ep.name, exc)
            continue
        register_adapter(ep.name, factory, registry)
        loaded.append(ep.name)
    return loaded


def resolve_adapter(
    output_name: str,
    context: InvocationContext,
    raw_options: Optional[Mapping[str, Any]] = None,
    *,
    registry: Optional[Mapping[str, AdapterFactory]] = None,
    runner: Optional[Runner] = None,
) -> OutputAdapter:
    """Build the adapter for *output_name* and parse its options.

    Kinds with no registered adapter get a ``FallbackAdapter``. Errors
    raised while constructing a registered adapter, or by its
    ``parse_options`` (``ConfigError``), propagate.
    """
    table = _REGISTRY if registry is None else registry
    context.output_name = output_name
    invoker = ProtocInvoker(context, runner=runner)

    factory = table.get(output_name)
    if factory is None:
        adapter: OutputAdapter = FallbackAdapter(context, invoker)
    else:
        adapter = factory(context, invoker)

    adapter.parse_options(raw_options or {})
    return adapter
