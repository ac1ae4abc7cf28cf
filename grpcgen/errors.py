"""Error taxonomy.

Every failure the tool reports is a ``GrpcGenError`` carrying a ``kind``
discriminant, so callers can aggregate and render errors without
string matching.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from grpcgen.models import Diagnostic


class GrpcGenError(Exception):
    """Base class for all grpc-gen errors.

    Attributes:
        message: Human-readable description.
    """

    kind: str = "error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigError(GrpcGenError):
    """Missing or malformed configuration, or an invalid adapter option."""

    kind = "config"


class NotFoundError(GrpcGenError):
    """A tool or plugin executable could not be located.

    Attributes:
        tool: The logical tool name that was searched for.
    """

    kind = "not_found"

    def __init__(self, tool: str, message: str | None = None) -> None:
        self.tool = tool
        super().__init__(message or f"Could not find '{tool}'")


class FileSystemError(GrpcGenError):
    """Staging or output-directory I/O failed.

    Attributes:
        path: The file or directory the operation was working on.
    """

    kind = "filesystem"

    def __init__(self, path: str, message: str | None = None) -> None:
        self.path = path
        super().__init__(message or f"Filesystem error at '{path}'")

    @classmethod
    def from_os_error(cls, exc: OSError, path: str | None = None) -> FileSystemError:
        where = path or exc.filename or ""
        reason = exc.strerror or str(exc)
        return cls(str(where), f"{reason}: '{where}'")


class ProcessError(GrpcGenError):
    """A subprocess exited with a non-zero code.

    Attributes:
        stderr: Raw captured standard error.
        returncode: The exit code.
        command: The full argument vector that was run.
    """

    kind = "process"

    def __init__(
        self,
        stderr: str,
        returncode: int | None = None,
        command: Sequence[str] = (),
    ) -> None:
        self.stderr = stderr
        self.returncode = returncode
        self.command = list(command)
        super().__init__(stderr.strip() or f"process exited with code {returncode}")


class SyntaxErrorReport(ProcessError):
    """Compiler syntax errors, attributed back to configured source files.

    Attributes:
        diagnostics: Parsed ``file:line:column: message`` entries.
        files: Offending source files, relative to the config directory.
        lines: The deduplicated report lines (rewritten or verbatim).
    """

    kind = "syntax"

    def __init__(
        self,
        stderr: str,
        diagnostics: list[Diagnostic],
        files: list[str],
        lines: list[str],
        returncode: int | None = None,
        command: Sequence[str] = (),
    ) -> None:
        self.diagnostics = diagnostics
        self.files = files
        self.lines = lines
        super().__init__(stderr, returncode, command)
        self.message = self._format_message()
        self.args = (self.message,)

    def _format_message(self) -> str:
        head = "Syntax errors"
        if self.files:
            head += f" in {', '.join(self.files)}"
        return "\n".join([head + ":"] + [f"  {line}" for line in self.lines])
