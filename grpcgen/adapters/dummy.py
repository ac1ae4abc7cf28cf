"""Dummy adapter — a protoc pass that produces nothing.

Running protoc with a no-op plugin forces its parse and link phase over
every source, which is all the syntax pre-check needs.
"""

from __future__ import annotations

import os
import shutil
import stat
import sys
from pathlib import Path
from typing import Any, Mapping, Optional

from grpcgen.adapters.base import ProtocInvoker
from grpcgen.models import InvocationContext

DUMMY_OUTPUT = "dummy"
DUMMY_PLUGIN = "protoc-gen-dummy"

_BIN_DIR = Path(__file__).resolve().parent.parent / "bin"


def packaged_plugin() -> Path:
    """The no-op plugin script shipped with the package."""
    ext = ".cmd" if sys.platform == "win32" else ".sh"
    return _BIN_DIR / (DUMMY_PLUGIN + ext)


def stage_plugin(dest_dir: str) -> str:
    """Copy the no-op plugin into *dest_dir* and make it executable.

    Wheels do not keep file modes, so the packaged copy cannot be trusted
    to be executable in place.
    """
    src = packaged_plugin()
    os.makedirs(dest_dir, exist_ok=True)
    dest = os.path.join(dest_dir, src.name)
    shutil.copyfile(src, dest)
    mode = os.stat(dest).st_mode
    os.chmod(dest, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return dest.replace("\\", "/")


class DummyAdapter:
    name: str = DUMMY_OUTPUT

    def __init__(
        self,
        context: InvocationContext,
        invoker: Optional[ProtocInvoker] = None,
    ) -> None:
        context.output_name = DUMMY_OUTPUT
        context.plugin_name = DUMMY_PLUGIN
        self.context = context
        self.protoc = invoker if invoker is not None else ProtocInvoker(context)

    def parse_options(self, options: Mapping[str, Any]) -> None:
        # Nothing is generated, so output options are irrelevant.
        pass

    async def run(self) -> None:
        if self.context.plugin_path is None:
            self.context.plugin_path = stage_plugin(self.context.output_dir)
        await self.protoc.invoke(self.context.output_path)
