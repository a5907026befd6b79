from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import jinja2
from jinja2 import meta

from codexio.config import GitContext
from codexio.exceptions import TemplateError, TemplateNotFoundError
from codexio.tree import render_tree

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from codexio.config import PromptModel, PromptResult

BUILTIN_VARIABLES = frozenset(
    {
        "absolute_code_path",
        "source_tree",
        "files",
        "git_diff",
        "git_diff_branch",
        "git_log_branch",
    },
)

DEFAULT_TEMPLATE = """\
Project Path: {{ absolute_code_path }}

Source Tree:

```
{{ source_tree }}
```

{% for file in files %}
{% if file.code %}
`{{ file.path }}`:

{{ file.code }}

{% endif %}
{% endfor %}
{% if git_diff %}
Git diff:
```diff
{{ git_diff }}
```

{% endif %}
{% if git_diff_branch %}
Git diff between branches:
```diff
{{ git_diff_branch }}
```

{% endif %}
{% if git_log_branch %}
Git log between branches:
```
{{ git_log_branch }}
```
{% endif %}
"""


def template_context(model: PromptModel) -> dict[str, Any]:
    """Flatten a prompt model into the variables templates bind against.

    User variables are added first so that built-in names always win.

    Args:
        model (PromptModel): the prompt model to expose

    Returns:
        dict[str, Any]: the template context
    """
    git = model.git or GitContext()
    return {
        **model.variables,
        "absolute_code_path": model.root_path,
        "source_tree": render_tree(model.source_tree),
        "files": [f.model_dump(include={"path", "extension", "code"}) for f in model.files],
        "git_diff": git.diff.rstrip("\n"),
        "git_diff_branch": git.diff_branch.rstrip("\n"),
        "git_log_branch": git.log_branch.rstrip("\n"),
    }


class TemplateRenderer:
    """Render prompt models through one Jinja2 template.

    The template is compiled when the renderer is built, so syntax errors show
    up before any file is read.
    """

    def __init__(self, source: str = DEFAULT_TEMPLATE, name: str = "default") -> None:
        self.name = name
        self._env = jinja2.Environment(  # noqa: S701
            undefined=jinja2.StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        try:
            parsed = self._env.parse(source)
            self._template = self._env.from_string(source)
        except jinja2.TemplateSyntaxError as e:
            msg = f"Failed to compile template {name} (line {e.lineno}): {e.message}"
            raise TemplateError(message=msg, template=name) from e
        self.variables = frozenset(meta.find_undeclared_variables(parsed) - set(self._env.globals))

    @classmethod
    def from_path(cls, path: Path | None) -> TemplateRenderer:
        """Build a renderer from a template file, or the built-in template when ``path`` is None.

        Raises:
            TemplateNotFoundError: if the file cannot be read.
        """
        if path is None:
            return cls()
        try:
            source = path.read_text(encoding="utf-8")
        except OSError as e:
            raise TemplateNotFoundError(template=path) from e
        return cls(source, name=str(path))

    def missing_variables(self, provided: Iterable[str] = ()) -> list[str]:
        """List variables the template uses that neither codexio nor the user provide."""
        return sorted(self.variables - BUILTIN_VARIABLES - set(provided))

    def check_variables(self, provided: Iterable[str] = ()) -> None:
        missing = self.missing_variables(provided)
        if missing:
            msg = f"Undefined template variables: {', '.join(missing)} (set them with --var NAME=VALUE)"
            raise TemplateError(message=msg, template=self.name)

    def render(self, model: PromptModel) -> str:
        """Render the template for ``model``.

        Args:
            model (PromptModel): the data to bind

        Raises:
            TemplateError: if a variable is missing or rendering fails.

        Returns:
            str: the rendered prompt, stripped of surrounding whitespace
        """
        self.check_variables(model.variables)
        try:
            rendered = self._template.render(template_context(model))
        except (jinja2.TemplateError, TypeError, ValueError) as e:
            msg = f"Failed to render template {self.name}: {e}"
            raise TemplateError(message=msg, template=self.name) from e
        return rendered.strip()


def build_json_report(result: PromptResult) -> str:
    """Serialize a run as the machine readable JSON record.

    Args:
        result (PromptResult): the pipeline result

    Returns:
        str: pretty printed JSON with the prompt, token info, file paths and warnings
    """
    report = result.token_report
    payload = {
        "prompt": result.prompt,
        "directory_name": result.model.root_path,
        "token_count": report.token_count if report else 0,
        "model_info": report.model_info if report else "",
        "files": [f.path for f in result.model.files],
        "warnings": [w.model_dump() for w in result.warnings],
        "git_errors": list(result.git_errors),
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)
