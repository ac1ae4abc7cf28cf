"""Generation pipeline — stage, pre-check, generate, clean up.

One pass moves through ``LOADING -> STAGING -> PRECHECK -> GENERATING ->
CLEANUP`` and ends ``SUCCESS`` or ``FAILED``. Sources are copied into a
scratch directory first, so protoc never runs against (or writes into)
the configured source tree. The pre-check fully completes before any
output adapter starts; the adapters then run concurrently and every
failure is collected rather than cancelling its siblings.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from typing import Any, Callable, Mapping, Optional

from grpcgen import precheck
from grpcgen.adapters.base import BUILT_IN_OUTPUTS, AdapterFactory, OutputAdapter
from grpcgen.adapters.dummy import DUMMY_OUTPUT
from grpcgen.adapters.registry import resolve_adapter
from grpcgen.compiler import ProtocLocator, include_dir
from grpcgen.config import default_config_candidates, load_config
from grpcgen.errors import ConfigError, FileSystemError, GrpcGenError
from grpcgen.models import (
    GenerationConfig,
    InvocationContext,
    OutputSpec,
    RunOptions,
    RunResult,
    Stage,
)
from grpcgen.process import Runner, run_process
from grpcgen.watch import WatchController

logger = logging.getLogger(__name__)

SCRATCH_PREFIX = "grpc-gen-"
_DUMMY_DIR = ".grpc-gen-dummy"


class PipelineRunner:
    """Owns the current config and drives generation passes.

    Args:
        options: Command-line options.
        locator: Finds the protoc binary; defaults to :class:`ProtocLocator`.
        runner: Process runner used for every protoc invocation.
        registry: Adapter registry; defaults to the global one.
        on_result: Called with each pass's result (watch mode reporting).
    """

    def __init__(
        self,
        options: Optional[RunOptions] = None,
        *,
        locator: Optional[ProtocLocator] = None,
        runner: Optional[Runner] = None,
        registry: Optional[Mapping[str, AdapterFactory]] = None,
        on_result: Optional[Callable[[RunResult], None]] = None,
    ) -> None:
        self.options = options or RunOptions()
        self.config: Optional[GenerationConfig] = None
        self._runner = runner if runner is not None else run_process
        self._locator = locator if locator is not None else ProtocLocator(self._runner)
        self._registry = registry
        self._on_result = on_result
        self._watch: Optional[WatchController] = None

    # ── config ──────────────────────────────────────────────────

    def load_config(self) -> GenerationConfig:
        """(Re)load the config. The previous config is kept on failure."""
        self.config = load_config(self.options.config_path)
        return self.config

    def watch_paths(self) -> set[str]:
        """Files whose change should trigger a new pass."""
        if self.config is None:
            if self.options.config_path:
                return {os.path.abspath(self.options.config_path)}
            return set(default_config_candidates())
        paths = {os.path.join(self.config.srcs_dir, src) for src in self.config.srcs}
        if self.config.config_path:
            paths.add(self.config.config_path)
        return paths

    # ── single pass ─────────────────────────────────────────────

    async def run_once(self) -> RunResult:
        result = RunResult()

        async def counted(executable: str, args: list[str], **kwargs: Any) -> str:
            result.invocations += 1
            return await self._runner(executable, args, **kwargs)

        scratch: Optional[str] = None
        try:
            config = self.load_config()
            result.config_path = config.config_path
            protoc = await self._locator.locate(config.protoc_version, config.protoc_path)

            result.stage = Stage.STAGING
            scratch = os.path.realpath(tempfile.mkdtemp(prefix=SCRATCH_PREFIX))
            await asyncio.to_thread(stage_sources, config, scratch, include_dir(protoc))

            result.stage = Stage.PRECHECK
            dummy = InvocationContext(
                protoc_path=protoc,
                protoc_version=config.protoc_version,
                output_name=DUMMY_OUTPUT,
                output_dir=os.path.join(scratch, _DUMMY_DIR),
                srcs=list(config.srcs),
                srcs_dir=scratch,
                verbose=self.options.verbose,
            )
            await precheck.check(
                dummy,
                srcs_dir=config.srcs_dir,
                config_dir=config.config_dir,
                runner=counted,
            )

            result.stage = Stage.GENERATING
            await self._generate(config, protoc, scratch, counted, result)
        except GrpcGenError as exc:
            result.errors.append(exc)
        except OSError as exc:
            result.errors.append(FileSystemError.from_os_error(exc))
        finally:
            if result.errors:
                result.failed_at = result.stage
            if scratch is not None:
                result.stage = Stage.CLEANUP
                cleanup(scratch)

        result.stage = Stage.FAILED if result.errors else Stage.SUCCESS

        if self._on_result is not None:
            self._on_result(result)
        return result

    async def _generate(
        self,
        config: GenerationConfig,
        protoc: str,
        scratch: str,
        runner: Runner,
        result: RunResult,
    ) -> None:
        adapters: list[tuple[OutputSpec, OutputAdapter]] = []
        config_errors: list[GrpcGenError] = []
        for spec in config.outputs:
            context = self._context_for(spec, config, protoc, scratch)
            try:
                adapter = resolve_adapter(
                    spec.name,
                    context,
                    spec.options,
                    registry=self._registry,
                    runner=runner,
                )
            except ConfigError as exc:
                config_errors.append(exc)
                continue
            adapters.append((spec, adapter))

        # Bad options fail the pass before anything is written.
        if config_errors:
            result.errors.extend(config_errors)
            return

        for spec, _ in adapters:
            await asyncio.to_thread(prepare_output_dir, spec, config.srcs)

        outcomes = await asyncio.gather(
            *(adapter.run() for _, adapter in adapters),
            return_exceptions=True,
        )
        for (spec, _), outcome in zip(adapters, outcomes):
            if isinstance(outcome, GrpcGenError):
                logger.debug("Output '%s' failed: %s", spec.name, outcome)
                result.errors.append(outcome)
            elif isinstance(outcome, Exception):
                logger.debug("Output '%s' crashed", spec.name, exc_info=outcome)
                result.errors.append(_unexpected(spec.name, outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.outputs.append(spec.name)

    def _context_for(
        self,
        spec: OutputSpec,
        config: GenerationConfig,
        protoc: str,
        scratch: str,
    ) -> InvocationContext:
        # Built-in kinds ignore plugins; the invoker warns when one is set.
        plugin_path = None
        if os.path.isabs(spec.plugin) and spec.name not in BUILT_IN_OUTPUTS:
            plugin_path = spec.plugin
        return InvocationContext(
            protoc_path=protoc,
            protoc_version=config.protoc_version,
            output_name=spec.name,
            output_dir=spec.dir,
            srcs=list(config.srcs),
            srcs_dir=scratch,
            plugin_name=spec.plugin if plugin_path is None else f"protoc-gen-{spec.name}",
            plugin_path=plugin_path,
            custom=spec.custom,
            verbose=self.options.verbose,
        )

    # ── watch mode ──────────────────────────────────────────────

    async def start_watch(self) -> None:
        """Run, then keep re-running on changes until :meth:`stop`."""
        interval = self.options.poll_interval_ms
        self._watch = WatchController(self._run_and_resubscribe, poll_interval_ms=interval)
        try:
            await self._watch.start(self.watch_paths())
        finally:
            self._watch = None

    async def _run_and_resubscribe(self) -> RunResult:
        result = await self.run_once()
        if self._watch is not None:
            self._watch.subscribe(self.watch_paths())
        return result

    def stop(self) -> None:
        if self._watch is not None:
            self._watch.stop()


# ---------------------------------------------------------------------------
# Filesystem steps
# ---------------------------------------------------------------------------


def stage_sources(
    config: GenerationConfig,
    scratch: str,
    well_known: Optional[str] = None,
) -> None:
    """Copy include trees, then sources, into *scratch*.

    Nothing is written outside *scratch*: a source whose destination would
    land elsewhere is a ``ConfigError``.
    """
    include_roots = ([well_known] if well_known else []) + list(config.includes)
    for root in include_roots:
        if not os.path.isdir(root):
            raise ConfigError(f"Include directory '{root}' does not exist")
        logger.debug("Staging include directory %s", root)
        try:
            shutil.copytree(root, scratch, dirs_exist_ok=True)
        except OSError as exc:
            raise FileSystemError.from_os_error(exc, root) from exc

    scratch_root = os.path.realpath(scratch)
    for src in config.srcs:
        origin = os.path.join(config.srcs_dir, src)
        if not os.path.isfile(origin):
            raise ConfigError(f"Source '{src}' not found in '{config.srcs_dir}'")
        dest = os.path.realpath(os.path.join(scratch_root, src))
        if os.path.commonpath([scratch_root, dest]) != scratch_root:
            raise ConfigError(f"Source '{src}' would be staged outside the scratch directory")
        try:
            os.makedirs(os.path.dirname(dest), exist_ok=True)
            shutil.copy2(origin, dest)
        except OSError as exc:
            raise FileSystemError.from_os_error(exc, origin) from exc


def prepare_output_dir(spec: OutputSpec, srcs: tuple[str, ...] | list[str]) -> None:
    """Create the output directory and the per-source subdirectories."""
    try:
        if spec.clean and os.path.isdir(spec.dir):
            shutil.rmtree(spec.dir)
        os.makedirs(spec.dir, exist_ok=True)
        for src in srcs:
            subdir = os.path.dirname(src)
            if subdir:
                os.makedirs(os.path.join(spec.dir, subdir), exist_ok=True)
    except OSError as exc:
        raise FileSystemError.from_os_error(exc, spec.dir) from exc


def cleanup(scratch: str) -> None:
    """Remove the scratch directory; failures are only logged."""
    try:
        shutil.rmtree(scratch)
    except OSError as exc:
        logger.warning("Unable to remove scratch directory '%s': %s", scratch, exc)


def _unexpected(output_name: str, exc: Exception) -> GrpcGenError:
    if isinstance(exc, OSError):
        return FileSystemError.from_os_error(exc)
    return GrpcGenError(f"Output '{output_name}' failed: {type(exc).__name__}: {exc}")
