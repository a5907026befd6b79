"""Include/exclude glob and ignore-file decisions over relative paths."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pathspec

from codexio.config import IGNORE_FILE_NAMES, VCS_DIRECTORIES, PatternSet
from codexio.exceptions import PatternError
from codexio.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence
    from pathlib import Path


def normalize_globs(globs: Sequence[str], *, windows: bool = os.name == "nt") -> list[str]:
    """Normalize a sequence of path glob patterns.

    Strip whitespace and drop blanks. On Windows backslashes are path
    separators and become forward slashes; elsewhere they stay glob escapes.

    Args:
        globs (Sequence[str]): the glob patterns to normalize
        windows (bool): treat backslashes as path separators

    Returns:
        list[str]: the normalized glob patterns
    """
    out: list[str] = []
    for g in globs:
        g2 = (g or "").strip()
        if not g2:
            continue
        out.append(g2.replace("\\", "/") if windows else g2)
    return out


def _check_glob(pattern: str) -> None:
    if pattern.startswith("!"):
        raise PatternError(pattern=pattern, reason="negation is only supported in ignore files")
    depth = 0
    escaped = False
    for ch in pattern:
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == "[":
            depth += 1
        elif ch == "]" and depth:
            depth -= 1
    if depth:
        raise PatternError(pattern=pattern, reason="unterminated character class")


def compile_globs(globs: Sequence[str]) -> pathspec.PathSpec:
    """Compile user globs into a single path spec.

    A leading ``/`` anchors the pattern at the root; any other pattern matches at
    any depth.

    Args:
        globs (Sequence[str]): raw include or exclude patterns

    Raises:
        PatternError: if a pattern is not a valid glob.

    Returns:
        pathspec.PathSpec: the compiled spec (empty when no globs are given)
    """
    lines: list[str] = []
    for g in normalize_globs(globs):
        _check_glob(g)
        lines.append(g if g.startswith(("/", "**/")) else f"**/{g}")
    try:
        return pathspec.PathSpec.from_lines("gitwildmatch", lines)
    except ValueError as e:
        raise PatternError(pattern=", ".join(globs), reason=str(e)) from e


def ancestors(rel_path: str) -> Iterator[str]:
    """Yield ``""`` then every proper parent directory of ``rel_path``, shallowest first."""
    yield ""
    parts = rel_path.split("/")[:-1]
    for i in range(1, len(parts) + 1):
        yield "/".join(parts[:i])


def last_match(spec: pathspec.PathSpec, path: str) -> bool | None:
    """Return the verdict of the last pattern of ``spec`` matching ``path``.

    Returns:
        bool | None: True for an ignore pattern, False for a ``!`` negation,
            None when no pattern matches
    """
    result: bool | None = None
    for pattern in spec.patterns:
        if pattern.include is not None and pattern.regex.match(path):
            result = pattern.include
    return result


class IgnoreRules:
    """Version-control style ignore rules collected while walking.

    Each ``.gitignore``/``.ignore`` file applies to paths below the directory that
    holds it. Rules from deeper files override shallower ones, and inside one
    directory ``.ignore`` overrides ``.gitignore``.

    ``.gitignore`` files only count inside a git repository (unless
    ``require_git`` is False); ``.ignore`` files always count. Directories above
    the walked root contribute their rules up to the repository root, or up to
    the filesystem root outside a repository.
    """

    def __init__(self, *, hidden: bool = False, use_ignore_files: bool = True, require_git: bool = True) -> None:
        self.hidden = hidden
        self.use_ignore_files = use_ignore_files
        self.require_git = require_git
        self.git_root: Path | None = None
        self._specs: dict[str, list[pathspec.PathSpec]] = {}
        # (root relative to the parent, specs), outermost parent first
        self._parent_specs: list[tuple[str, list[pathspec.PathSpec]]] = []

    def _file_names(self) -> tuple[str, ...]:
        if self.require_git and self.git_root is None:
            return tuple(n for n in IGNORE_FILE_NAMES if n != ".gitignore")
        return IGNORE_FILE_NAMES

    def _load(self, directory: Path) -> list[pathspec.PathSpec]:
        specs: list[pathspec.PathSpec] = []
        for name in self._file_names():
            ignore_file = directory / name
            if not ignore_file.is_file():
                continue
            try:
                lines = ignore_file.read_text(encoding="utf-8", errors="replace").splitlines()
                specs.append(pathspec.PathSpec.from_lines("gitwildmatch", lines))
            except (OSError, ValueError) as e:
                logger.warning("ignore_file_skipped", path=str(ignore_file), error=str(e))
        return specs

    def add_root(self, root: Path) -> None:
        """Load the ignore files of the walked root and of its parent directories.

        Args:
            root (Path): the directory the walk starts from
        """
        root = root.absolute()
        chain = [root, *root.parents]
        self.git_root = next((d for d in chain if (d / ".git").exists()), None)
        if not self.use_ignore_files:
            return
        top = chain.index(self.git_root) if self.git_root is not None else len(chain) - 1
        self.add_directory(root, "")
        parents: list[tuple[str, list[pathspec.PathSpec]]] = []
        for parent in chain[1 : top + 1]:
            specs = self._load(parent)
            if specs:
                parents.append((root.relative_to(parent).as_posix(), specs))
        self._parent_specs = parents[::-1]

    def add_directory(self, directory: Path, rel_dir: str) -> None:
        """Load the ignore files found directly in ``directory``."""
        if not self.use_ignore_files:
            return
        specs = self._load(directory)
        if specs:
            self._specs[rel_dir] = specs

    def is_ignored(self, rel_path: str, *, is_dir: bool = False) -> bool:
        if not self.hidden and any(part.startswith(".") for part in rel_path.split("/")):
            return True
        suffix = "/" if is_dir else ""
        ignored: bool | None = None
        for prefix, specs in self._parent_specs:
            for spec in specs:
                result = last_match(spec, f"{prefix}/{rel_path}{suffix}")
                if result is not None:
                    ignored = result
        for base in ancestors(rel_path):
            for spec in self._specs.get(base, ()):
                sub = rel_path[len(base) + 1 :] if base else rel_path
                result = last_match(spec, sub + suffix)
                if result is not None:
                    ignored = result
        return bool(ignored)


class PathMatcher:
    """Decision function over relative paths for one run.

    Built once from the run's :class:`PatternSet` and shared read-only by the
    walker; only the ignore rules grow as new directories are entered.
    """

    def __init__(self, patterns: PatternSet, ignore: IgnoreRules | None = None) -> None:
        self.patterns = patterns
        self.ignore = ignore or IgnoreRules()
        self._include = compile_globs(patterns.include)
        self._exclude = compile_globs(patterns.exclude)
        self._has_includes = len(self._include) > 0

    def matches_include(self, rel_path: str) -> bool:
        return self._has_includes and self._include.match_file(rel_path)

    def matches_exclude(self, rel_path: str) -> bool:
        return self._exclude.match_file(rel_path)

    def decide(self, rel_path: str, *, is_dir: bool = False) -> bool:
        """Decide whether a file path is accepted.

        Order of precedence:
        1) with includes present, a path must match one of them;
        2) ignore rules reject, unless an include matched explicitly;
        3) excludes reject, unless ``include_priority`` is set and an include matched.

        Args:
            rel_path (str): path relative to the root, POSIX separators
            is_dir (bool): whether the path is a directory

        Returns:
            bool: True if the path is included
        """
        candidate = f"{rel_path}/" if is_dir else rel_path
        included = self.matches_include(candidate)
        if self._has_includes and not included:
            return False
        if not included and self.ignore.is_ignored(rel_path, is_dir=is_dir):
            return False
        if self.matches_exclude(candidate):
            return included and self.patterns.include_priority
        return True

    def should_descend(self, rel_dir: str) -> bool:
        """Decide whether the walker enters a directory.

        Excluded directories are pruned unless include priority could rescue a
        file below them; ignored directories are pruned unless includes exist.

        Args:
            rel_dir (str): directory path relative to the root

        Returns:
            bool: True if the directory must be walked
        """
        if rel_dir.rsplit("/", 1)[-1] in VCS_DIRECTORIES:
            return False
        if self.matches_exclude(f"{rel_dir}/") and not (self.patterns.include_priority and self._has_includes):
            return False
        return self._has_includes or not self.ignore.is_ignored(rel_dir, is_dir=True)
