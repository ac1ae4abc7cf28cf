"""Output adapter protocol and the shared protoc invoker.

An output adapter turns one configured output kind into one or more
``protoc`` invocations. Adapters do not inherit invocation behaviour; each
holds a :class:`ProtocInvoker` that builds the argument list and spawns the
compiler.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Mapping, Optional, Protocol, Sequence, runtime_checkable

from grpcgen.models import Addition, InvocationContext
from grpcgen.process import Runner, run_process
from grpcgen.which import resolve_tool

logger = logging.getLogger(__name__)

# Output kinds protoc generates without an external plugin.
BUILT_IN_OUTPUTS = frozenset(
    {
        "cpp",
        "csharp",
        "java",
        "javanano",
        "objc",
        "php",
        "python",
        "ruby",
        "js",
    }
)


@runtime_checkable
class OutputAdapter(Protocol):
    """Pluggable output adapter contract."""

    name: str
    context: InvocationContext

    def parse_options(self, options: Mapping[str, Any]) -> None:
        """Validate and store kind-specific options.

        Raises ``ConfigError`` for an invalid or missing option.
        """
        ...

    async def run(self) -> None:
        """Invoke the compiler. Called exactly once per instance."""
        ...


AdapterFactory = Callable[..., OutputAdapter]


class ProtocInvoker:
    """Builds protoc argument lists for one output and runs them."""

    def __init__(
        self,
        context: InvocationContext,
        runner: Optional[Runner] = None,
        resolver: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.context = context
        self.additions: list[Addition] = []
        self.invocations = 0
        self._runner = runner if runner is not None else run_process
        self._resolver = resolver if resolver is not None else resolve_tool
        self._plugin_lookup: Optional[asyncio.Future[str]] = None

    def add(self, name: str, value: str) -> None:
        """Queue an extra ``--<name>_out=<value>`` directive."""
        self.additions.append(Addition(name, value))

    async def plugin_path(self) -> str:
        """Path of the plugin for this output, resolved once."""
        if self.context.plugin_path is None:
            # Concurrent invocations share one lookup.
            if self._plugin_lookup is None:
                self._plugin_lookup = asyncio.ensure_future(
                    self._resolver(self.context.plugin_name)
                )
            self.context.plugin_path = await self._plugin_lookup
        return self.context.plugin_path

    async def build_args(
        self,
        option_string: str,
        srcs: Optional[Sequence[str]] = None,
    ) -> list[str]:
        ctx = self.context
        args = [f"--{ctx.output_name}_out={option_string}"]

        if ctx.output_name not in BUILT_IN_OUTPUTS:
            # protoc would find protoc-gen-<kind> itself, but resolving it
            # here gives a clearer error than protoc's.
            path = await self.plugin_path()
            args.append(f"--plugin=protoc-gen-{ctx.output_name}={path}")
        elif ctx.plugin_name != f"protoc-gen-{ctx.output_name}":
            logger.warning(
                "ignoring plugin value '%s' for built in output '%s'",
                ctx.plugin_name,
                ctx.output_name,
            )

        for addition in self.additions:
            args.append(f"--{addition.name}_out={addition.value}")

        args.extend(ctx.srcs if srcs is None else srcs)
        return args

    async def invoke(
        self,
        option_string: str,
        srcs: Optional[Sequence[str]] = None,
    ) -> str:
        """Run protoc in ``context.srcs_dir`` and return its stdout."""
        args = await self.build_args(option_string, srcs)
        self.invocations += 1
        return await self._runner(
            self.context.protoc_path,
            args,
            cwd=self.context.srcs_dir,
            verbose=self.context.verbose,
        )


def format_option_string(options: Mapping[str, Any], output_path: str) -> str:
    """Serialize *options* into protoc's ``k=v,flag:<dir>`` grammar.

    ``True`` (or ``None``) renders as a bare flag, ``False`` is dropped.
    """
    parts: list[str] = []
    for key, value in options.items():
        if value is False:
            continue
        if value is True or value is None:
            parts.append(str(key))
        else:
            parts.append(f"{key}={value}")
    if not parts:
        return output_path
    return ",".join(parts) + ":" + output_path
