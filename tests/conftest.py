"""Shared fixtures: a fake protoc runner and a small proto project."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

import pytest

from grpcgen.errors import ProcessError


@dataclass
class Call:
    executable: str
    args: list[str]
    cwd: Optional[str] = None
    started: float = 0.0
    finished: float = 0.0


@dataclass
class FakeRunner:
    """Stands in for ``run_process``; records every invocation."""

    fail: Callable[[list[str]], Optional[str]] = lambda args: None
    delay: float = 0.0
    calls: list[Call] = field(default_factory=list)

    async def __call__(self, executable, args, *, cwd=None, verbose=False):
        loop = asyncio.get_running_loop()
        call = Call(executable, list(args), cwd, started=loop.time())
        self.calls.append(call)
        if self.delay:
            await asyncio.sleep(self.delay)
        call.finished = loop.time()
        stderr = self.fail(list(args))
        if stderr is not None:
            raise ProcessError(stderr, 1, [executable, *args])
        return ""

    def outputs(self) -> list[str]:
        """The ``--<kind>_out=`` argument of each call."""
        return [c.args[0] for c in self.calls]


class FakeLocator:
    def __init__(self, path: str = "/opt/protoc/bin/protoc") -> None:
        self.path = path
        self.requested: list[str] = []

    async def locate(self, version, explicit_path=None):
        self.requested.append(version)
        return explicit_path or self.path


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def make_runner():
    """Build a ``FakeRunner`` with custom failure or delay behaviour."""
    return FakeRunner


@pytest.fixture
def fake_locator():
    return FakeLocator()


@pytest.fixture
def fake_plugins(monkeypatch):
    """Resolve every plugin name to ``/plugins/<name>``."""

    async def _resolve(name, **kwargs):
        return f"/plugins/{name}"

    monkeypatch.setattr("grpcgen.adapters.base.resolve_tool", _resolve)
    return _resolve


@pytest.fixture
def proto_project(tmp_path):
    """A project with two protos and a config writing two outputs."""
    protos = tmp_path / "protos"
    (protos / "admin").mkdir(parents=True)
    (protos / "greeter.proto").write_text(
        'syntax = "proto3";\nmessage Hello { string name = 1; }\n'
    )
    (protos / "admin" / "users.proto").write_text(
        'syntax = "proto3";\nmessage User { string id = 1; }\n'
    )

    def _write(body: Optional[str] = None) -> Path:
        config = tmp_path / ".grpc-gen.yml"
        config.write_text(body or """\
srcs:
  - greeter.proto
  - admin/users.proto
srcsDir: protos
output:
  js:
    dir: gen/js
    options:
      import_style: commonjs
      binary: true
  grpc-web: gen/web
""")
        return config

    return _write
