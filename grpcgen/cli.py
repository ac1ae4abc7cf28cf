"""CLI — click-based command-line interface."""

from __future__ import annotations

import asyncio
import sys

import click

from grpcgen.adapters.registry import list_adapters, load_entry_point_adapters
from grpcgen.log import setup_logging
from grpcgen.models import DEFAULT_POLL_INTERVAL_MS, RunOptions, RunResult
from grpcgen.pipeline import PipelineRunner
from grpcgen.report import render_text


@click.group()
def main() -> None:
    """grpc-gen — generate protoc outputs from a declarative config."""


# ───────────────────────────────────────────────────────────────────
# generate
# ───────────────────────────────────────────────────────────────────

@main.command()
@click.option("--watch", "-w", "watch", is_flag=True, default=False,
              help="Watch the config and sources; regenerate on change.")
@click.option("--poll", "poll_ms", type=int, default=None, is_flag=False,
              flag_value=DEFAULT_POLL_INTERVAL_MS,
              help="Watch by polling every MS milliseconds "
                   f"(default {DEFAULT_POLL_INTERVAL_MS}).")
@click.option("--config", "config_path", default=None, type=click.Path(),
              help="Explicit config file; skips the default lookup.")
@click.option("--verbose", "-v", "verbose", is_flag=True, default=False,
              help="Verbose logging. Useful for debugging.")
def generate(
    watch: bool,
    poll_ms: int | None,
    config_path: str | None,
    verbose: bool,
) -> None:
    """Run protoc for every configured output."""
    setup_logging(verbose)
    load_entry_point_adapters()

    options = RunOptions(
        watch=watch or poll_ms is not None,
        poll_interval_ms=poll_ms,
        config_path=config_path,
        verbose=verbose,
    )

    if not options.watch:
        runner = PipelineRunner(options)
        result = asyncio.run(runner.run_once())
        _echo_result(result)
        sys.exit(0 if result.ok else 1)

    runner = PipelineRunner(options, on_result=_echo_result)
    try:
        asyncio.run(runner.start_watch())
    except KeyboardInterrupt:
        click.echo("Stopped watching.", err=True)


def _echo_result(result: RunResult) -> None:
    click.echo(render_text(result), err=not result.ok)


# ───────────────────────────────────────────────────────────────────
# adapters
# ───────────────────────────────────────────────────────────────────

@main.group()
def adapters() -> None:
    """Inspect output adapters."""


@adapters.command("list")
def adapters_list() -> None:
    """List output kinds with a dedicated adapter."""
    load_entry_point_adapters()
    registered = list_adapters()
    click.echo(f"{'Output':<20} {'Adapter'}")
    click.echo("-" * 42)
    for name in sorted(registered):
        factory = registered[name]
        click.echo(f"{name:<20} {factory.__module__}.{factory.__qualname__}")
    click.echo("Other output kinds use the fallback adapter.")
