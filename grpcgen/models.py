"""Data models used throughout grpc-gen."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from grpcgen.errors import GrpcGenError

DEFAULT_PROTOC_VERSION = "3.20.3"
DEFAULT_POLL_INTERVAL_MS = 600

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class OutputSpec:
    """One normalized ``output`` entry."""

    name: str
    dir: str
    plugin: str = ""
    custom: bool = False
    options: dict[str, Any] = field(default_factory=dict)
    clean: bool = False

    def __post_init__(self) -> None:
        if not self.plugin:
            self.plugin = f"protoc-gen-{self.name}"


@dataclass(frozen=True)
class GenerationConfig:
    """A parsed config file. Paths are absolute."""

    srcs: tuple[str, ...]
    srcs_dir: str
    outputs: tuple[OutputSpec, ...]
    includes: tuple[str, ...] = ()
    protoc_version: str = DEFAULT_PROTOC_VERSION
    protoc_path: str | None = None
    config_path: str | None = None

    @property
    def config_dir(self) -> str:
        if self.config_path:
            return os.path.dirname(self.config_path)
        return self.srcs_dir


# ---------------------------------------------------------------------------
# Adapter invocation
# ---------------------------------------------------------------------------


@dataclass
class InvocationContext:
    """Shared context every output adapter is constructed with.

    ``output_path`` is ``output_dir`` relative to ``srcs_dir`` (the working
    directory of each compiler invocation), always with forward slashes.
    """

    protoc_path: str
    output_name: str
    output_dir: str
    srcs: list[str]
    srcs_dir: str
    protoc_version: str = DEFAULT_PROTOC_VERSION
    output_path: str = ""
    plugin_name: str = ""
    plugin_path: str | None = None
    custom: bool = False
    verbose: bool = False

    def __post_init__(self) -> None:
        if not self.plugin_name:
            self.plugin_name = f"protoc-gen-{self.output_name}"
        if not self.output_path:
            self.output_path = relative_posix(self.output_dir, self.srcs_dir)


@dataclass(frozen=True)
class Addition:
    """An extra ``--<name>_out=<value>`` directive."""

    name: str
    value: str


@dataclass(frozen=True)
class Diagnostic:
    """One ``file:line:column: message`` line from compiler stderr."""

    file: str
    line: int
    column: int
    message: str
    raw: str = ""

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}: {self.message}"


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------


@dataclass
class RunOptions:
    """Options supplied by the command line."""

    watch: bool = False
    poll_interval_ms: int | None = None
    config_path: str | None = None
    verbose: bool = False


class Stage(enum.Enum):
    """Pipeline states, in the order a pass moves through them."""

    LOADING = "loading"
    STAGING = "staging"
    PRECHECK = "precheck"
    GENERATING = "generating"
    CLEANUP = "cleanup"
    SUCCESS = "success"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


@dataclass
class RunResult:
    """Outcome of one pipeline pass."""

    stage: Stage = Stage.LOADING
    failed_at: Stage | None = None
    config_path: str | None = None
    outputs: list[str] = field(default_factory=list)
    errors: list[GrpcGenError] = field(default_factory=list)
    invocations: int = 0

    @property
    def ok(self) -> bool:
        return self.stage is Stage.SUCCESS and not self.errors


@dataclass
class WatchState:
    """Mutable watch-mode state, owned by the watch controller."""

    watched_paths: set[str] = field(default_factory=set)
    in_flight: bool = False
    rerun_requested: bool = False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def relative_posix(path: str, start: str) -> str:
    """Express *path* relative to *start* with forward slashes.

    Falls back to the absolute path when no relative path exists
    (different drives on Windows).
    """
    try:
        rel = os.path.relpath(path, start)
    except ValueError:
        rel = os.path.abspath(path)
    return rel.replace("\\", "/")
