"""Process runner — spawn an executable and capture its output."""

from __future__ import annotations

import asyncio
import codecs
import logging
import sys
from typing import IO, Awaitable, Callable, Optional, Sequence

from grpcgen.errors import NotFoundError, ProcessError

logger = logging.getLogger(__name__)

Runner = Callable[..., Awaitable[str]]


async def run_process(
    executable: str,
    args: Sequence[str],
    *,
    cwd: Optional[str] = None,
    verbose: bool = False,
) -> str:
    """Run *executable* with *args* and return its stdout.

    Both streams are captured; with *verbose* they are also forwarded live
    to this process's stdout/stderr. Raises ``ProcessError`` carrying the
    captured stderr when the exit code is not 0.
    """
    command = [executable, *args]
    logger.debug("[SPAWN] %s", " ".join(command))

    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (FileNotFoundError, PermissionError) as exc:
        raise NotFoundError(executable, f"Could not execute '{executable}': {exc}") from exc

    stdout_chunks: list[str] = []
    stderr_chunks: list[str] = []
    await asyncio.gather(
        _pump(proc.stdout, stdout_chunks, sys.stdout if verbose else None),
        _pump(proc.stderr, stderr_chunks, sys.stderr if verbose else None),
    )
    returncode = await proc.wait()

    stdout = "".join(stdout_chunks)
    stderr = "".join(stderr_chunks)
    if returncode != 0:
        raise ProcessError(stderr, returncode, command)
    return stdout


async def _pump(
    stream: Optional[asyncio.StreamReader],
    chunks: list[str],
    echo: Optional[IO[str]],
) -> None:
    if stream is None:
        return
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        data = await stream.read(4096)
        text = decoder.decode(data, final=not data)
        if not text and not data:
            break
        chunks.append(text)
        if echo is not None:
            echo.write(text)
            echo.flush()
