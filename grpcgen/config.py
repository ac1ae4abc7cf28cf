"""Configuration loader for grpc-gen.

The config file is looked up in the working directory and its ancestors
(stopping at the repository root) under one of the names in
``CONFIG_FILENAMES``, unless an explicit path is given. YAML and JSON are
both accepted::

    # .grpc-gen.yml
    srcs:
      - greeter.proto
      - admin/users.proto
    srcsDir: protos
    includes:
      - third_party/googleapis
    output:
      js: gen/js
      grpc-web:
        dir: gen/web
        options:
          mode: grpcwebtext
    protoc: 3.20.3

``output`` may also be a sequence, either of ``{name: js, dir: gen/js}``
items or of single-key ``{js: gen/js}`` items. ``protoc`` may be a version
string or ``{version: ..., path: ...}``.

All relative paths are resolved against the directory holding the config
file.
"""

from __future__ import annotations

import ntpath
import os
import posixpath
from pathlib import Path
from typing import Any

import yaml

from grpcgen.errors import ConfigError
from grpcgen.models import DEFAULT_PROTOC_VERSION, GenerationConfig, OutputSpec

CONFIG_FILENAMES = (".grpc-gen.yml", ".grpc-gen.yaml", ".grpc-gen.json", ".grpc-gen")

_OUTPUT_KEYS = {"name", "dir", "plugin", "custom", "options", "clean"}


# ---------------------------------------------------------------------------
# Public loaders
# ---------------------------------------------------------------------------


def find_config(start_dir: str | None = None) -> Path | None:
    """Search for a config file in *start_dir* and its ancestors."""
    p = Path(start_dir or os.getcwd()).resolve()
    for directory in (p, *p.parents):
        for name in CONFIG_FILENAMES:
            candidate = directory / name
            if candidate.is_file():
                return candidate
        if (directory / ".git").exists():
            break
    return None


def default_config_candidates(start_dir: str | None = None) -> list[str]:
    """Paths a config file would be picked up from in *start_dir*."""
    base = Path(start_dir or os.getcwd()).resolve()
    return [str(base / name) for name in CONFIG_FILENAMES]


def load_config(config_path: str | Path | None = None) -> GenerationConfig:
    """Load and validate the generation config.

    Parameters
    ----------
    config_path:
        Explicit config file. When *None*, :func:`find_config` is used.
    """
    if config_path is not None:
        path = Path(config_path).expanduser().resolve()
        if not path.is_file():
            raise ConfigError(f"Config file '{config_path}' does not exist")
    else:
        found = find_config()
        if found is None:
            raise ConfigError(
                "No config file found (looked for "
                + ", ".join(CONFIG_FILENAMES)
                + ")"
            )
        path = found

    raw = _load_yaml(path)
    return parse_config(raw, config_path=str(path))


def parse_config(raw: Any, config_path: str | None = None) -> GenerationConfig:
    """Validate a raw mapping and turn it into a ``GenerationConfig``."""
    where = f" in '{config_path}'" if config_path else ""
    if not isinstance(raw, dict):
        raise ConfigError(f"Expected a mapping at the top level{where}")

    base_dir = os.path.dirname(config_path) if config_path else os.getcwd()

    srcs = raw.get("srcs")
    if not srcs:
        raise ConfigError(f"Missing 'srcs'{where}")
    if not isinstance(srcs, list) or not all(isinstance(s, str) and s for s in srcs):
        raise ConfigError(f"Expected a list of file paths for 'srcs'{where}. Got: {srcs!r}")

    for src in srcs:
        if _escapes(src):
            raise ConfigError(
                f"'srcs' entries must be relative to 'srcsDir'{where}. Got: {src!r}"
            )

    srcs_dir = raw.get("srcsDir")
    if not srcs_dir or not isinstance(srcs_dir, str):
        raise ConfigError(f"Missing 'srcsDir'{where}")

    includes = raw.get("includes", [])
    if includes is None:
        includes = []
    if isinstance(includes, str):
        includes = [includes]
    if not isinstance(includes, list):
        raise ConfigError(f"Expected a list for 'includes'{where}. Got: {includes!r}")

    outputs = _parse_outputs(raw.get("output"), base_dir, where)
    version, protoc_path = _parse_protoc(raw.get("protoc"), base_dir, where)

    return GenerationConfig(
        srcs=tuple(_normalize_src(s) for s in srcs),
        srcs_dir=_resolve(base_dir, srcs_dir),
        outputs=tuple(outputs),
        includes=tuple(_resolve(base_dir, str(i)) for i in includes),
        protoc_version=version,
        protoc_path=protoc_path,
        config_path=config_path,
    )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Unable to read '{path}': {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Unable to parse '{path}': {exc}") from exc


def _resolve(base_dir: str, path: str) -> str:
    return os.path.normpath(os.path.join(base_dir, os.path.expanduser(path)))


def _normalize_src(src: str) -> str:
    return posixpath.normpath(src.replace("\\", "/"))


def _escapes(src: str) -> bool:
    """True for absolute sources and ones that climb out of srcsDir."""
    posix = src.replace("\\", "/")
    if posixpath.isabs(posix) or ntpath.splitdrive(src)[0]:
        return True
    norm = posixpath.normpath(posix)
    return norm == ".." or norm.startswith("../")


def _parse_outputs(raw: Any, base_dir: str, where: str) -> list[OutputSpec]:
    if not raw:
        raise ConfigError(f"Missing 'output'{where}")

    entries: list[tuple[str, Any]] = []
    if isinstance(raw, dict):
        entries = list(raw.items())
    elif isinstance(raw, list):
        for item in raw:
            if isinstance(item, dict) and "name" in item:
                entries.append((item["name"], item))
            elif isinstance(item, dict) and len(item) == 1:
                entries.extend(item.items())
            else:
                raise ConfigError(f"Malformed 'output' entry {item!r}{where}")
    else:
        raise ConfigError(f"Expected a mapping or list for 'output'{where}. Got: {raw!r}")

    outputs: list[OutputSpec] = []
    seen: set[str] = set()
    for name, value in entries:
        if not isinstance(name, str) or not name:
            raise ConfigError(f"Output names must be non-empty strings{where}. Got: {name!r}")
        if name in seen:
            raise ConfigError(f"Duplicate output '{name}'{where}")
        seen.add(name)
        outputs.append(_parse_output(name, value, base_dir, where))
    return outputs


def _parse_output(name: str, value: Any, base_dir: str, where: str) -> OutputSpec:
    if isinstance(value, str):
        return OutputSpec(name=name, dir=_resolve(base_dir, value))
    if not isinstance(value, dict):
        raise ConfigError(f"Expected a directory or mapping for output '{name}'{where}")

    unknown = set(value) - _OUTPUT_KEYS
    if unknown:
        raise ConfigError(
            f"Unknown key(s) {', '.join(sorted(unknown))} for output '{name}'{where}"
        )

    out_dir = value.get("dir")
    if not out_dir or not isinstance(out_dir, str):
        raise ConfigError(f"Missing 'dir' for output '{name}'{where}")

    options = value.get("options") or {}
    if not isinstance(options, dict):
        raise ConfigError(f"Expected a mapping for 'options' of output '{name}'{where}")

    plugin = value.get("plugin") or ""
    if not isinstance(plugin, str):
        raise ConfigError(f"Expected a string for 'plugin' of output '{name}'{where}")
    # A plugin given as a path is relative to the config file.
    if "/" in plugin or "\\" in plugin:
        plugin = _resolve(base_dir, plugin)

    return OutputSpec(
        name=name,
        dir=_resolve(base_dir, out_dir),
        plugin=plugin,
        custom=bool(value.get("custom", False)),
        options={str(k): v for k, v in options.items()},
        clean=bool(value.get("clean", False)),
    )


def _parse_protoc(raw: Any, base_dir: str, where: str) -> tuple[str, str | None]:
    if raw is None:
        return DEFAULT_PROTOC_VERSION, None
    if isinstance(raw, (str, int, float)):
        return str(raw), None
    if isinstance(raw, dict):
        version = raw.get("version", DEFAULT_PROTOC_VERSION)
        path = raw.get("path")
        if path is not None and not isinstance(path, str):
            raise ConfigError(f"Expected a string for 'protoc.path'{where}")
        return str(version), _resolve(base_dir, path) if path else None
    raise ConfigError(f"Expected a version string or mapping for 'protoc'{where}")
