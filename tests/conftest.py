from __future__ import annotations

import re
import shutil
import subprocess
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path

_TOKEN_RE = re.compile(r"\w+|[^\w\s]")


class FakeEncoding:
    """Stand-in for a tiktoken encoding so tests never download BPE tables."""

    def __init__(self, name: str) -> None:
        self.name = name

    def encode(self, text: str, **_: object) -> list[str]:
        return _TOKEN_RE.findall(text)


@pytest.fixture(autouse=True)
def fake_tiktoken(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    loaded: list[str] = []

    def get_encoding(name: str) -> FakeEncoding:
        loaded.append(name)
        return FakeEncoding(name)

    monkeypatch.setattr("codexio.tokens.tiktoken.get_encoding", get_encoding)
    return loaded


def write(root: Path, rel: str, content: str | bytes = "") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    return path


def git(repo: Path, *args: str) -> str:
    out = subprocess.run(
        [
            "git",
            "-c",
            "user.name=codexio",
            "-c",
            "user.email=codexio@example.com",
            "-c",
            "commit.gpgsign=false",
            *args,
        ],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
    )
    return out.stdout


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    repo = tmp_path / "repo"
    repo.mkdir()
    git(repo, "init", "-q")
    write(repo, "app.py", "print('v1')\n")
    git(repo, "add", ".")
    git(repo, "commit", "-q", "-m", "first commit")
    git(repo, "tag", "v1")
    write(repo, "app.py", "print('v2')\n")
    git(repo, "commit", "-q", "-am", "second change")
    git(repo, "tag", "v2")
    return repo


@pytest.fixture
def write_file():  # noqa: ANN201
    return write
