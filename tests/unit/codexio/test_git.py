from __future__ import annotations

import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from codexio import git as git_module
from codexio.exceptions import GitCommandError, GitError, GitRefNotFoundError, NotAGitRepositoryError
from codexio.git import GitContextProvider

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


def completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=["git"], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.mark.unit
def test_diff_between_tags(git_repo: Path) -> None:
    diff = GitContextProvider(git_repo).diff("v1", "v2")

    assert "diff --git a/app.py b/app.py" in diff
    assert "-print('v1')" in diff
    assert "+print('v2')" in diff


@pytest.mark.unit
def test_log_between_tags(git_repo: Path) -> None:
    log = GitContextProvider(git_repo).log("v1", "v2")

    assert "second change" in log
    assert "first commit" not in log
    assert len(log.strip().splitlines()) == 1


@pytest.mark.unit
def test_missing_ref_is_reported(git_repo: Path) -> None:
    with pytest.raises(GitRefNotFoundError) as exc_info:
        GitContextProvider(git_repo).diff("v1", "no-such-branch")

    assert exc_info.value.ref == "no-such-branch"
    assert isinstance(exc_info.value, GitError)
    assert "no-such-branch" in str(exc_info.value)


@pytest.mark.unit
def test_working_tree_diff(git_repo: Path) -> None:
    provider = GitContextProvider(git_repo)
    assert provider.working_tree_diff() == ""

    (git_repo / "app.py").write_text("print('v3')\n", encoding="utf-8")

    assert "+print('v3')" in provider.working_tree_diff()


@pytest.mark.unit
def test_directory_outside_repository(tmp_path: Path, mocker: MockerFixture) -> None:
    mocker.patch.object(git_module.shutil, "which", return_value="/usr/bin/git")
    mocker.patch.object(
        git_module.subprocess,
        "run",
        return_value=completed(128, stderr="fatal: not a git repository"),
    )

    with pytest.raises(NotAGitRepositoryError) as exc_info:
        GitContextProvider(tmp_path).working_tree_diff()

    assert exc_info.value.folder == tmp_path


@pytest.mark.unit
def test_missing_git_binary(tmp_path: Path, mocker: MockerFixture) -> None:
    mocker.patch.object(git_module.shutil, "which", return_value=None)

    with pytest.raises(NotAGitRepositoryError) as exc_info:
        GitContextProvider(tmp_path).ensure_repository()

    assert "executable not found" in str(exc_info.value)


@pytest.mark.unit
def test_failing_command_raises_with_stderr(tmp_path: Path, mocker: MockerFixture) -> None:
    mocker.patch.object(git_module.shutil, "which", return_value="/usr/bin/git")
    run = mocker.patch.object(
        git_module.subprocess,
        "run",
        side_effect=[
            completed(stdout="true\n"),
            completed(stdout="abc123\n"),
            completed(1, stderr="fatal: bad object\n"),
        ],
    )

    with pytest.raises(GitCommandError) as exc_info:
        GitContextProvider(tmp_path).working_tree_diff()

    assert exc_info.value.returncode == 1
    assert str(exc_info.value) == "`git diff --no-color abc123` exited with 1: fatal: bad object"
    assert run.call_args.kwargs["cwd"] == str(tmp_path)
