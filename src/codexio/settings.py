from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

ENV_FILE = find_dotenv(usecwd=True)
ENV_PREFIX = "CODEXIO_"


def split_csv(value: str) -> list[str]:
    """Split a comma separated option value, dropping blanks."""
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings(BaseModel):
    """Configuration settings for a codexio run."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    root: Path = Field(default_factory=Path.cwd, description="Codebase directory.")
    include: list[str] = Field(default_factory=list, description="Include globs.")
    exclude: list[str] = Field(default_factory=list, description="Exclude globs.")
    include_priority: bool = Field(
        default=False,
        description="Include wins when a path matches both include and exclude globs.",
    )
    hidden: bool = Field(default=False, description="Walk hidden files and directories.")
    use_ignore_files: bool = Field(default=True, description="Honour .gitignore and .ignore files.")

    line_numbers: bool = Field(default=False, description="Prefix code lines with line numbers.")
    no_codeblock: bool = Field(default=False, description="Do not wrap code in markdown fences.")
    absolute_paths: bool = Field(default=False, description="Render absolute file paths.")

    template: Path | None = Field(default=None, description="Custom Jinja2 template.")
    variables: dict[str, str] = Field(default_factory=dict, description="User template variables.")

    tokens: bool = Field(default=False, description="Report the token count.")
    encoding: str = Field(default="cl100k", description="Tokenizer encoding name.")

    diff: bool = Field(default=False, description="Include the working tree diff against HEAD.")
    git_diff_branch: tuple[str, str] | None = Field(default=None, description="Refs to diff.")
    git_log_branch: tuple[str, str] | None = Field(default=None, description="Refs to log.")
    require_git: bool = Field(default=False, description="Fail the run when git context fails.")

    output: Path | None = Field(default=None, description="Output file.")
    json_output: bool = Field(default=False, description="Print a JSON report.")
    workers: int = Field(default=min(32, (os.cpu_count() or 1) + 4), ge=1, description="Reader threads.")
    log_file: str = Field(default="", description="Log file path.")

    @field_validator("include", "exclude", mode="before")
    @classmethod
    def _parse_patterns(cls, value: Any) -> Any:  # noqa: ANN401
        if value is None:
            return []
        if isinstance(value, str):
            return split_csv(value)
        return value

    @field_validator("git_diff_branch", "git_log_branch", mode="before")
    @classmethod
    def _parse_branches(cls, value: Any) -> Any:  # noqa: ANN401
        if isinstance(value, str):
            value = split_csv(value)
        if value is not None and len(value) != 2:  # noqa: PLR2004
            msg = "Please provide exactly two branches separated by a comma."
            raise ValueError(msg)
        return value

    @field_validator("variables", mode="before")
    @classmethod
    def _parse_variables(cls, value: Any) -> Any:  # noqa: ANN401
        if value is None:
            return {}
        if isinstance(value, str):
            value = split_csv(value)
        if isinstance(value, list):
            out: dict[str, str] = {}
            for item in value:
                name, sep, val = item.partition("=")
                if not sep or not name.strip():
                    msg = f"Template variables must be NAME=VALUE, got: {item}"
                    raise ValueError(msg)
                out[name.strip()] = val
            return out
        return value

    @classmethod
    def from_env(cls, **overrides: Any) -> Settings:  # noqa: ANN401
        """Build settings from ``CODEXIO_*`` variables, then apply explicit overrides.

        Values are looked up in the ``.env`` file found from the current directory,
        then in the process environment (which wins), then in ``overrides``.

        Args:
            **overrides: explicit values, typically parsed CLI options. ``None``
                values are ignored so that unset CLI options keep env defaults.

        Returns:
            Settings: the merged configuration.
        """
        raw: dict[str, Any] = {}
        sources = [dotenv_values(ENV_FILE) if ENV_FILE else {}, os.environ]
        for source in sources:
            for key, value in source.items():
                if not key.startswith(ENV_PREFIX) or value is None:
                    continue
                name = key.removeprefix(ENV_PREFIX).lower()
                if name in cls.model_fields:
                    raw[name] = value
        raw.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**raw)
