"""Tests for tool resolution (PATH, then node_modules/.bin walk-up)."""

import asyncio
import os
import sys

import pytest

from grpcgen.errors import NotFoundError
from grpcgen.which import LOCAL_BIN_DIR, find_local, resolve_tool, which

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="POSIX executable names")


def _make_exe(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(0o755)
    return path


@pytest.fixture
def empty_path(monkeypatch, tmp_path):
    """A PATH containing only an empty directory."""
    empty = tmp_path / "empty-path"
    empty.mkdir()
    monkeypatch.setenv("PATH", str(empty))
    return empty


@posix_only
class TestLocalLookup:
    def test_finds_tool_in_ancestor_bin_dir(self, tmp_path, empty_path):
        tool = _make_exe(tmp_path / LOCAL_BIN_DIR / "protoc-gen-grpc-web")
        nested = tmp_path / "a" / "b" / "c"
        nested.mkdir(parents=True)
        assert which("protoc-gen-grpc-web", start_dir=str(nested)) == str(tool.resolve())

    def test_nearest_bin_dir_wins(self, tmp_path, empty_path):
        _make_exe(tmp_path / LOCAL_BIN_DIR / "protoc-gen-ts")
        inner = _make_exe(tmp_path / "pkg" / LOCAL_BIN_DIR / "protoc-gen-ts")
        found = find_local("protoc-gen-ts", start_dir=str(tmp_path / "pkg"))
        assert found == str(inner.resolve())

    def test_shortest_name_breaks_ties(self, tmp_path, empty_path):
        _make_exe(tmp_path / LOCAL_BIN_DIR / "protoc-gen-ts.sh")
        plain = _make_exe(tmp_path / LOCAL_BIN_DIR / "protoc-gen-ts")
        assert find_local("protoc-gen-ts", start_dir=str(tmp_path)) == str(plain.resolve())

    def test_sh_extension_is_stripped(self, tmp_path, empty_path):
        script = _make_exe(tmp_path / LOCAL_BIN_DIR / "protoc-gen-dummy.sh")
        assert find_local("protoc-gen-dummy", start_dir=str(tmp_path)) == str(script.resolve())

    def test_other_extensions_ignored(self, tmp_path, empty_path):
        _make_exe(tmp_path / LOCAL_BIN_DIR / "protoc-gen-ts.js")
        assert find_local("protoc-gen-ts", start_dir=str(tmp_path)) is None


@posix_only
class TestPrecedence:
    def test_path_wins_over_local(self, tmp_path, monkeypatch):
        on_path = _make_exe(tmp_path / "sysbin" / "protoc")
        _make_exe(tmp_path / "proj" / LOCAL_BIN_DIR / "protoc")
        monkeypatch.setenv("PATH", str(on_path.parent))
        assert which("protoc", start_dir=str(tmp_path / "proj")) == str(on_path.resolve())

    def test_not_found_raises(self, tmp_path, empty_path):
        with pytest.raises(NotFoundError) as excinfo:
            which("protoc-gen-nothing-here", start_dir=str(tmp_path))
        assert excinfo.value.tool == "protoc-gen-nothing-here"
        assert excinfo.value.kind == "not_found"

    def test_resolve_tool_is_awaitable(self, tmp_path, empty_path):
        tool = _make_exe(tmp_path / LOCAL_BIN_DIR / "protoc")
        found = asyncio.run(resolve_tool("protoc", start_dir=str(tmp_path)))
        assert os.path.samefile(found, tool)
