"""Tool resolver — locate an executable by logical name.

Search order (first match wins):

1. ``shutil.which(name)`` — the system PATH.
2. ``<dir>/node_modules/.bin`` for the working directory and each of its
   ancestors up to the filesystem root. Most protoc plugins (grpc-web, ts,
   grpc-tools) ship as npm packages and land there.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import sys
from pathlib import Path

from grpcgen.errors import NotFoundError

LOCAL_BIN_DIR = os.path.join("node_modules", ".bin")

if sys.platform == "win32":
    BIN_EXTS: tuple[str, ...] = (".exe", ".cmd")
else:
    BIN_EXTS = ("", ".sh")


def which(
    name: str,
    *,
    start_dir: str | None = None,
    bin_dir: str = LOCAL_BIN_DIR,
) -> str:
    """Return the absolute path of *name* or raise ``NotFoundError``."""
    found = shutil.which(name)
    if found:
        return str(Path(found).resolve())

    local = find_local(name, start_dir=start_dir, bin_dir=bin_dir)
    if local is not None:
        return local

    raise NotFoundError(
        name,
        f"Could not find '{name}' in your PATH or in any {bin_dir} directory",
    )


def find_local(
    name: str,
    *,
    start_dir: str | None = None,
    bin_dir: str = LOCAL_BIN_DIR,
) -> str | None:
    """Walk up from *start_dir* looking for *name* in local bin directories."""
    current = Path(start_dir or os.getcwd()).resolve()
    for directory in (current, *current.parents):
        candidate_dir = directory / bin_dir
        if not candidate_dir.is_dir():
            continue
        matches = [
            entry.name
            for entry in candidate_dir.iterdir()
            if _matches(entry.name, name) and entry.is_file()
        ]
        if matches:
            # shortest name wins: "protoc" over "protoc.sh"
            matches.sort(key=lambda m: (len(m), m))
            return str(candidate_dir / matches[0])
    return None


def _matches(filename: str, name: str) -> bool:
    stem, ext = os.path.splitext(filename)
    if filename == name and "" in BIN_EXTS:
        return True
    return ext.lower() in BIN_EXTS and ext != "" and stem == name


async def resolve_tool(
    name: str,
    *,
    start_dir: str | None = None,
    bin_dir: str = LOCAL_BIN_DIR,
) -> str:
    """Awaitable :func:`which`; the directory walk runs in a worker thread."""
    return await asyncio.to_thread(which, name, start_dir=start_dir, bin_dir=bin_dir)
