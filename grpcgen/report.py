"""Report rendering — text summary of a generation pass."""

from __future__ import annotations

import click

from grpcgen.errors import GrpcGenError, ProcessError, SyntaxErrorReport
from grpcgen.models import RunResult

_KIND_COLORS = {
    "syntax": "red",
    "process": "red",
    "config": "yellow",
    "not_found": "yellow",
    "filesystem": "red",
}


def _kind_label(err: GrpcGenError, color: bool = True) -> str:
    label = f"[{err.kind}]"
    if color:
        return click.style(label, fg=_KIND_COLORS.get(err.kind, "red"))
    return label


def render_error(err: GrpcGenError, color: bool = True) -> list[str]:
    lines = [f"{_kind_label(err, color)} {err.message.splitlines()[0] if err.message else ''}"]
    if isinstance(err, SyntaxErrorReport):
        lines.extend(f"    {line}" for line in err.lines)
    elif isinstance(err, ProcessError):
        lines.extend(f"    {line}" for line in err.stderr.strip().splitlines()[1:])
    else:
        lines.extend(f"    {line}" for line in err.message.splitlines()[1:])
    return lines


def render_text(result: RunResult, color: bool = True) -> str:
    """Produce human-friendly text output."""
    lines: list[str] = []

    if result.config_path:
        lines.append(f"Config:   {result.config_path}")

    if result.ok:
        status = "Generation succeeded"
        lines.append(click.style(status, fg="green") if color else status)
    else:
        where = f" during {result.failed_at}" if result.failed_at else ""
        status = f"Generation failed{where}"
        lines.append(click.style(status, fg="red") if color else status)

    if result.outputs:
        lines.append(f"Outputs:  {', '.join(result.outputs)}")
    lines.append(f"protoc invocations: {result.invocations}")

    for err in result.errors:
        lines.extend(render_error(err, color))

    return "\n".join(lines)
