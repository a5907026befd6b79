from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, computed_field

BINARY_PLACEHOLDER = "[binary content omitted]"
UNREADABLE_PLACEHOLDER = "[unreadable file: {reason}]"

IGNORE_FILE_NAMES = (".gitignore", ".ignore")
VCS_DIRECTORIES = frozenset({".git", ".hg", ".svn"})

DEFAULT_ENCODING = "cl100k"

ENCODING_ALIASES: dict[str, str] = {
    "cl100k": "cl100k_base",
    "o200k": "o200k_base",
    "p50k": "p50k_base",
    "p50k_edit": "p50k_edit",
    "r50k": "r50k_base",
    "gpt2": "gpt2",
}

ENCODING_MODEL_INFO: dict[str, str] = {
    "cl100k_base": "ChatGPT models, text-embedding-ada-002",
    "o200k_base": "GPT-4o and o-series models",
    "p50k_base": "Code models, text-davinci-002, text-davinci-003",
    "p50k_edit": "Edit models like text-davinci-edit-001, code-davinci-edit-001",
    "r50k_base": "GPT-3 models like davinci",
    "gpt2": "GPT-3 models like davinci",
}


class NodeKind(StrEnum):
    """Kind of a node in the rendered source tree."""

    DIRECTORY = auto()
    FILE = auto()


class PatternSet(BaseModel):
    """Include/exclude globs plus the tie-break flag between them."""

    model_config = ConfigDict(frozen=True)

    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    include_priority: bool = False


class RenderOptions(BaseModel):
    """How file contents are decorated before they reach the template."""

    model_config = ConfigDict(frozen=True)

    line_numbers: bool = False
    codeblock: bool = True
    absolute_paths: bool = False


class FileEntry(BaseModel):
    """A file accepted by the walker.

    Attributes:
        absolute_path: Absolute path to the file on disk.
        relative_path: Path relative to the walked root, with POSIX separators.
        byte_size: File size in bytes at discovery time.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    absolute_path: Path = Field(..., description="Absolute file path")
    relative_path: str = Field(..., description="File path relative to the root")
    byte_size: int = Field(..., ge=0, description="File size in bytes")

    @computed_field
    @property
    def extension(self) -> str:
        """Extension without the leading dot, empty when the file has none."""
        return self.absolute_path.suffix.removeprefix(".")


class TreeNode(BaseModel):
    """A directory or file in the display tree; children are sorted by name."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: NodeKind
    children: tuple[TreeNode, ...] = ()


class RenderedFile(BaseModel):
    """A file as handed to templates: display path, extension and decorated code."""

    model_config = ConfigDict(frozen=True)

    path: str
    extension: str
    code: str
    placeholder: bool = False


class GitContext(BaseModel):
    """Optional git sections of the prompt; empty strings when not requested."""

    model_config = ConfigDict(frozen=True)

    diff: str = ""
    diff_branch: str = ""
    log_branch: str = ""


class IoWarning(BaseModel):
    """A per-entry problem that was logged and skipped or placeholdered."""

    model_config = ConfigDict(frozen=True)

    path: str
    message: str


class PromptModel(BaseModel):
    """Everything a template may bind against."""

    model_config = ConfigDict(frozen=True)

    root_path: str
    source_tree: TreeNode
    files: tuple[RenderedFile, ...] = ()
    git: GitContext | None = None
    variables: dict[str, str] = Field(default_factory=dict)


class TokenReport(BaseModel):
    """Token count of a text under one encoding."""

    model_config = ConfigDict(frozen=True)

    encoding_name: str
    token_count: int = Field(..., ge=0)
    model_info: str = ""


class PromptResult(BaseModel):
    """Outcome of one pipeline run."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    model: PromptModel
    token_report: TokenReport | None = None
    warnings: tuple[IoWarning, ...] = ()
    git_errors: tuple[str, ...] = ()
