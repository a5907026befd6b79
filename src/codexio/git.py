from __future__ import annotations

import shutil
import subprocess  # noqa: S404
from typing import TYPE_CHECKING

from codexio.exceptions import GitCommandError, GitRefNotFoundError, NotAGitRepositoryError
from codexio.logging import logger

if TYPE_CHECKING:
    from pathlib import Path


class GitContextProvider:
    """Fetch diff and log text from the repository that contains ``repo``.

    Every method runs the ``git`` binary; nothing is cached, callers fetch each
    section at most once per run.
    """

    def __init__(self, repo: Path, git_bin: str = "git") -> None:
        self.repo = repo
        self.git_bin = git_bin

    def _run(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        if shutil.which(self.git_bin) is None:
            raise NotAGitRepositoryError(folder=self.repo, message=f"{self.git_bin} executable not found")
        cmd = [self.git_bin, *args]
        logger.debug("git_command", command=" ".join(cmd), cwd=str(self.repo))
        out = subprocess.run(  # noqa: S603
            cmd,
            cwd=str(self.repo),
            text=True,
            encoding="utf-8",
            errors="replace",
            capture_output=True,
            check=False,
        )
        if check and out.returncode != 0:
            raise GitCommandError(
                command=" ".join(cmd),
                returncode=out.returncode,
                stdout=out.stdout,
                stderr=out.stderr,
            )
        return out

    def ensure_repository(self) -> None:
        """Check that ``repo`` lives inside a git work tree.

        Raises:
            NotAGitRepositoryError: if git does not recognise the directory.
        """
        out = self._run("rev-parse", "--is-inside-work-tree", check=False)
        if out.returncode != 0 or out.stdout.strip() != "true":
            raise NotAGitRepositoryError(folder=self.repo)

    def resolve_ref(self, ref: str) -> str:
        """Resolve a ref to a commit id.

        Args:
            ref (str): branch, tag or any revision expression

        Raises:
            GitRefNotFoundError: if the ref does not name a commit.

        Returns:
            str: the full commit id
        """
        self.ensure_repository()
        out = self._run("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}", check=False)
        if out.returncode != 0 or not out.stdout.strip():
            raise GitRefNotFoundError(ref=ref, repo=self.repo)
        return out.stdout.strip()

    def diff(self, ref_a: str, ref_b: str) -> str:
        """Return the diff between two refs (``git diff ref_a ref_b``)."""
        commit_a = self.resolve_ref(ref_a)
        commit_b = self.resolve_ref(ref_b)
        return self._run("diff", "--no-color", commit_a, commit_b).stdout

    def log(self, ref_a: str, ref_b: str) -> str:
        """Return one line per commit reachable from ``ref_b`` but not from ``ref_a``."""
        commit_a = self.resolve_ref(ref_a)
        commit_b = self.resolve_ref(ref_b)
        return self._run("log", "--no-color", "--format=%h %s", f"{commit_a}..{commit_b}").stdout

    def working_tree_diff(self) -> str:
        """Return staged and unstaged changes against ``HEAD``."""
        head = self.resolve_ref("HEAD")
        return self._run("diff", "--no-color", head).stdout
