"""Syntax pre-check — surface .proto errors before any real generation.

The dummy adapter is run over every source. When protoc fails, each stderr
line of the form ``<file>:<line>:<column>: <message>`` is attributed to the
configured source it belongs to and rewritten relative to the config
directory; identical lines are reported once. Anything else is kept
verbatim.
"""

from __future__ import annotations

import os
import re
from typing import Optional, Sequence

from grpcgen.adapters.base import ProtocInvoker
from grpcgen.adapters.dummy import DummyAdapter
from grpcgen.errors import ProcessError, SyntaxErrorReport
from grpcgen.models import Diagnostic, InvocationContext, relative_posix
from grpcgen.process import Runner

_DIAGNOSTIC_RE = re.compile(r"^(?P<file>.+?):(?P<line>\d+):(?P<column>\d+):\s*(?P<message>.*)$")


async def check(
    context: InvocationContext,
    *,
    srcs_dir: str,
    config_dir: str,
    runner: Optional[Runner] = None,
) -> None:
    """Run the dummy pass; raise ``SyntaxErrorReport`` if protoc rejects a source.

    *srcs_dir* is the configured (unstaged) source directory, used to
    express offending files relative to *config_dir*.
    """
    adapter = DummyAdapter(context, ProtocInvoker(context, runner=runner))
    adapter.parse_options({})
    try:
        await adapter.run()
    except ProcessError as exc:
        raise build_report(
            exc.stderr,
            context.srcs,
            srcs_dir=srcs_dir,
            config_dir=config_dir,
            returncode=exc.returncode,
            command=exc.command,
        ) from exc


def parse_line(line: str) -> Optional[Diagnostic]:
    """Parse one ``file:line:column: message`` line, or return None."""
    match = _DIAGNOSTIC_RE.match(line.strip())
    if match is None:
        return None
    return Diagnostic(
        file=match.group("file").replace("\\", "/"),
        line=int(match.group("line")),
        column=int(match.group("column")),
        message=match.group("message").strip(),
        raw=line.strip(),
    )


def attribute(file: str, srcs: Sequence[str]) -> Optional[str]:
    """Return the configured source *file* belongs to, matching by prefix."""
    for src in srcs:
        if file == src or file.startswith(src):
            return src
    return None


def build_report(
    stderr: str,
    srcs: Sequence[str],
    *,
    srcs_dir: str,
    config_dir: str,
    returncode: Optional[int] = None,
    command: Sequence[str] = (),
) -> SyntaxErrorReport:
    """Turn raw protoc stderr into a ``SyntaxErrorReport``."""
    seen: set[str] = set()
    lines: list[str] = []
    diagnostics: list[Diagnostic] = []
    files: list[str] = []

    for raw_line in stderr.splitlines():
        text = raw_line.strip()
        if not text or text in seen:
            continue
        seen.add(text)

        diag = parse_line(text)
        if diag is None:
            lines.append(text)
            continue

        src = attribute(diag.file, srcs)
        if src is not None:
            shown = relative_posix(os.path.join(srcs_dir, diag.file), config_dir)
            if shown not in files:
                files.append(shown)
            diag = Diagnostic(shown, diag.line, diag.column, diag.message, diag.raw)
        diagnostics.append(diag)
        lines.append(str(diag))

    return SyntaxErrorReport(
        stderr,
        diagnostics=diagnostics,
        files=files,
        lines=lines,
        returncode=returncode,
        command=command,
    )
