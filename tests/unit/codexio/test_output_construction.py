from __future__ import annotations

import json
from pathlib import Path

import pytest

from codexio.config import (
    GitContext,
    IoWarning,
    PromptModel,
    PromptResult,
    RenderedFile,
    TokenReport,
)
from codexio.exceptions import ConfigError, TemplateError, TemplateNotFoundError
from codexio.output_construction import (
    TemplateRenderer,
    build_json_report,
    template_context,
)
from codexio.tree import build_tree


def make_model(*, git: GitContext | None = None, variables: dict[str, str] | None = None) -> PromptModel:
    files = (
        RenderedFile(path="README.md", extension="md", code="```md\n# Demo\n```"),
        RenderedFile(path="src/main.py", extension="py", code="```py\nprint('hi')\n```"),
    )
    return PromptModel(
        root_path="demo",
        source_tree=build_tree("demo", [f.path for f in files]),
        files=files,
        git=git,
        variables=variables or {},
    )


@pytest.mark.unit
def test_default_template_renders_tree_and_files() -> None:
    prompt = TemplateRenderer().render(make_model())

    assert prompt.startswith("Project Path: demo\n\nSource Tree:\n\n```\ndemo\n├── README.md\n└── src/\n")
    assert "`README.md`:\n\n```md\n# Demo\n```\n\n`src/main.py`:\n\n```py\nprint('hi')\n```" in prompt
    assert prompt.index("`README.md`") < prompt.index("`src/main.py`")
    assert "Git diff" not in prompt
    assert prompt == prompt.strip()


@pytest.mark.unit
def test_default_template_git_sections() -> None:
    git = GitContext(diff="+added\n", diff_branch="-removed\n", log_branch="abc123 second change\n")

    prompt = TemplateRenderer().render(make_model(git=git))

    assert "Git diff:\n```diff\n+added\n```" in prompt
    assert "Git diff between branches:\n```diff\n-removed\n```" in prompt
    assert prompt.endswith("Git log between branches:\n```\nabc123 second change\n```")


@pytest.mark.unit
def test_empty_git_sections_are_omitted() -> None:
    prompt = TemplateRenderer().render(make_model(git=GitContext(log_branch="abc123 change")))

    assert "Git diff" not in prompt
    assert "Git log between branches:" in prompt


@pytest.mark.unit
def test_custom_template_with_user_variables(tmp_path: Path) -> None:
    template = tmp_path / "review.j2"
    template.write_text(
        "Review {{ absolute_code_path }} for {{ focus }}.\n{% for f in files %}- {{ f.path }}\n{% endfor %}",
        encoding="utf-8",
    )
    renderer = TemplateRenderer.from_path(template)

    assert renderer.missing_variables() == ["focus"]
    assert renderer.missing_variables(["focus"]) == []

    prompt = renderer.render(make_model(variables={"focus": "security"}))

    assert prompt == "Review demo for security.\n- README.md\n- src/main.py"


@pytest.mark.unit
def test_builtin_variables_win_over_user_variables() -> None:
    context = template_context(make_model(variables={"absolute_code_path": "hijacked", "extra": "1"}))

    assert context["absolute_code_path"] == "demo"
    assert context["extra"] == "1"


@pytest.mark.unit
def test_undefined_variable_fails_before_rendering() -> None:
    renderer = TemplateRenderer("{{ ticket }} {{ source_tree }}", name="inline")

    with pytest.raises(TemplateError) as exc_info:
        renderer.check_variables()

    assert "ticket" in str(exc_info.value)
    assert "--var" in str(exc_info.value)
    assert exc_info.value.template == "inline"


@pytest.mark.unit
def test_syntax_error_is_a_template_error() -> None:
    with pytest.raises(TemplateError) as exc_info:
        TemplateRenderer("{% for f in files %}{{ f.path }}", name="broken")

    assert "broken" in str(exc_info.value)


@pytest.mark.unit
def test_render_time_error_is_a_template_error() -> None:
    renderer = TemplateRenderer("{{ files[10].path }}")

    with pytest.raises(TemplateError):
        renderer.render(make_model())


@pytest.mark.unit
def test_missing_template_file(tmp_path: Path) -> None:
    missing = tmp_path / "nope.j2"

    with pytest.raises(TemplateNotFoundError) as exc_info:
        TemplateRenderer.from_path(missing)

    assert isinstance(exc_info.value, ConfigError)
    assert str(missing) in str(exc_info.value)


@pytest.mark.unit
def test_from_path_none_uses_default_template() -> None:
    assert TemplateRenderer.from_path(None).name == "default"


@pytest.mark.unit
def test_build_json_report() -> None:
    model = make_model()
    result = PromptResult(
        prompt="the prompt",
        model=model,
        token_report=TokenReport(encoding_name="cl100k_base", token_count=42, model_info="ChatGPT models"),
        warnings=(IoWarning(path="secret.txt", message="Permission denied"),),
        git_errors=("git_diff_branch: Git ref 'x' not found",),
    )

    payload = json.loads(build_json_report(result))

    assert payload == {
        "prompt": "the prompt",
        "directory_name": "demo",
        "token_count": 42,
        "model_info": "ChatGPT models",
        "files": ["README.md", "src/main.py"],
        "warnings": [{"path": "secret.txt", "message": "Permission denied"}],
        "git_errors": ["git_diff_branch: Git ref 'x' not found"],
    }
