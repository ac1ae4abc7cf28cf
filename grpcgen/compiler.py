"""Compiler locator — find the ``protoc`` binary a run should use."""

from __future__ import annotations

import logging
import os
import re

from grpcgen.errors import NotFoundError, ProcessError
from grpcgen.process import Runner, run_process
from grpcgen.which import resolve_tool

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"(\d+(?:\.\d+)+)")


class ProtocLocator:
    """Resolve a working ``protoc`` for a requested version.

    Release downloads are not handled here: the binary must already be
    installed on PATH, under a local ``node_modules/.bin``, or given
    explicitly through ``protoc.path`` in the config.
    """

    def __init__(self, runner: Runner | None = None) -> None:
        self._runner = runner if runner is not None else run_process
        self._checked: dict[str, str] = {}

    async def locate(self, version: str, explicit_path: str | None = None) -> str:
        if explicit_path:
            if not os.path.isfile(explicit_path):
                raise NotFoundError("protoc", f"protoc not found at '{explicit_path}'")
            path = explicit_path
        else:
            path = await resolve_tool("protoc")

        if path not in self._checked:
            self._checked[path] = await self.version_of(path)
        found = self._checked[path]
        if found and not _same_version(found, version):
            logger.warning(
                "protoc %s requested but %s is version %s", version, path, found
            )
        return path

    async def version_of(self, path: str) -> str:
        """Return the version ``protoc --version`` reports, or ``""``."""
        try:
            out = await self._runner(path, ["--version"])
        except ProcessError as exc:
            logger.debug("'%s --version' failed: %s", path, exc)
            return ""
        match = _VERSION_RE.search(out)
        return match.group(1) if match else ""


def include_dir(protoc_path: str) -> str | None:
    """Return the well-known types ``include/`` of a protoc release layout.

    Releases unpack as ``bin/protoc`` next to ``include/google/protobuf``.
    """
    root = os.path.dirname(os.path.dirname(os.path.realpath(protoc_path)))
    candidate = os.path.join(root, "include")
    if os.path.isdir(os.path.join(candidate, "google", "protobuf")):
        return candidate
    return None


def _same_version(found: str, requested: str) -> bool:
    # "3.20" matches "3.20.3"; protoc >= 21 reports "21.12" for "3.21.12"
    found_parts = found.split(".")
    requested_parts = requested.lstrip("v").split(".")
    if found_parts[: len(requested_parts)] == requested_parts:
        return True
    return requested_parts[:1] == ["3"] and found_parts == requested_parts[1:]
