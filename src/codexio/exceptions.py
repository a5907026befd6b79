from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class CodexioError(Exception):
    """Base exception for errors in the codexio package."""

    def __str__(self) -> str:
        return getattr(self, "message", "") or self.__class__.__name__


@dataclass(frozen=True)
class ConfigError(CodexioError):
    """Raised when the run configuration is invalid, before any traversal."""


@dataclass(frozen=True)
class InvalidRootError(ConfigError):
    """Raised when the root to ingest is not a directory."""

    root: Path

    @property
    def message(self) -> str:
        return f"Invalid directory: {self.root}"


@dataclass(frozen=True)
class PatternError(ConfigError):
    """Raised when an include/exclude glob cannot be compiled."""

    pattern: str
    reason: str = ""

    @property
    def message(self) -> str:
        return f"Invalid pattern {self.pattern!r}: {self.reason}".rstrip(": ")


@dataclass(frozen=True)
class InvalidEncodingError(ConfigError):
    """Raised when the requested tokenizer encoding is unknown."""

    encoding: str
    supported: tuple[str, ...] = ()

    @property
    def message(self) -> str:
        return f"Unknown encoding {self.encoding!r} (supported: {', '.join(self.supported)})"


@dataclass(frozen=True)
class TemplateNotFoundError(ConfigError):
    """Raised when a custom template file does not exist or cannot be read."""

    template: Path

    @property
    def message(self) -> str:
        return f"Template file not found: {self.template}"


@dataclass(frozen=True)
class TemplateError(CodexioError):
    """Raised when a template fails to compile or render."""

    message: str
    template: str = ""


@dataclass(frozen=True)
class GitError(CodexioError):
    """Base class for failures of the git context stage."""


@dataclass(frozen=True)
class NotAGitRepositoryError(GitError):
    """Raised when the specified directory is not a Git repository."""

    folder: Path
    message: str = "The specified directory is not a Git repository."


@dataclass(frozen=True)
class GitRefNotFoundError(GitError):
    """Raised when a ref does not resolve to a commit in the repository."""

    ref: str
    repo: Path

    @property
    def message(self) -> str:
        return f"Git ref {self.ref!r} not found in {self.repo}"


@dataclass(frozen=True)
class GitCommandError(GitError):
    """Raised when a git command fails."""

    command: str
    returncode: int
    stdout: str
    stderr: str

    @property
    def message(self) -> str:
        return f"`{self.command}` exited with {self.returncode}: {self.stderr.strip()}"
