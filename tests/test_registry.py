"""Tests for adapter registration and resolution."""

import pytest

from grpcgen.adapters import (
    FallbackAdapter,
    GrpcWebAdapter,
    JsAdapter,
    PassthroughAdapter,
    list_adapters,
    register_adapter,
    resolve_adapter,
)
from grpcgen.adapters.registry import load_entry_point_adapters
from grpcgen.errors import ConfigError
from grpcgen.models import InvocationContext


def _ctx(kind="placeholder"):
    return InvocationContext(
        protoc_path="protoc",
        output_name=kind,
        output_dir="/work/gen",
        srcs=["a.proto"],
        srcs_dir="/work",
    )


class Recording(PassthroughAdapter):
    name = "recording"

    def __init__(self, context, invoker=None):
        super().__init__(context, invoker)
        self.parsed = None

    def parse_options(self, options):
        self.parsed = dict(options)


class TestBuiltInRegistry:
    def test_specialized_adapters_registered(self):
        registered = list_adapters()
        assert registered["grpc-web"] is GrpcWebAdapter
        assert registered["js"] is JsAdapter
        assert "grpc" in registered

    def test_list_returns_a_copy(self):
        list_adapters()["bogus"] = Recording
        assert "bogus" not in list_adapters()


class TestResolveAdapter:
    def test_registered_kind(self):
        adapter = resolve_adapter("js", _ctx(), {"import_style": "commonjs"})
        assert isinstance(adapter, JsAdapter)
        assert adapter.import_style == "commonjs"

    def test_unknown_kind_gets_fallback(self):
        adapter = resolve_adapter("python", _ctx())
        assert isinstance(adapter, FallbackAdapter)

    def test_sets_output_name_on_context(self):
        ctx = _ctx()
        adapter = resolve_adapter("ruby", ctx)
        assert adapter.context is ctx
        assert ctx.output_name == "ruby"

    def test_private_registry(self):
        registry = {}
        register_adapter("rec", Recording, registry)
        adapter = resolve_adapter("rec", _ctx(), {"x": 1}, registry=registry)
        assert isinstance(adapter, Recording)
        assert adapter.parsed == {"x": 1}
        assert "rec" not in list_adapters()

    def test_missing_options_parse_as_empty(self):
        registry = {"rec": Recording}
        adapter = resolve_adapter("rec", _ctx(), None, registry=registry)
        assert adapter.parsed == {}

    def test_invalid_options_raise(self):
        with pytest.raises(ConfigError):
            resolve_adapter("grpc-web", _ctx(), {"mode": "nope"})

    def test_construction_errors_propagate(self):
        def broken(context, invoker=None):
            raise RuntimeError("cannot build")

        with pytest.raises(RuntimeError, match="cannot build"):
            resolve_adapter("broken", _ctx(), registry={"broken": broken})

    def test_runner_is_threaded_through(self, fake_runner):
        adapter = resolve_adapter("python", _ctx(), runner=fake_runner)
        assert adapter.protoc._runner is fake_runner


class _FakeEntryPoint:
    def __init__(self, name, target):
        self.name = name
        self._target = target

    def load(self):
        if isinstance(self._target, Exception):
            raise self._target
        return self._target


class TestEntryPoints:
    def test_loads_and_skips_broken(self, monkeypatch, caplog):
        eps = [
            _FakeEntryPoint("rec", Recording),
            _FakeEntryPoint("bad", ImportError("no module named nope")),
        ]
        monkeypatch.setattr(
            "grpcgen.adapters.registry.entry_points", lambda group: eps
        )
        registry = {}
        loaded = load_entry_point_adapters(registry)
        assert loaded == ["rec"]
        assert registry == {"rec": Recording}
        assert "Skipping broken adapter entry point 'bad'" in caplog.text
