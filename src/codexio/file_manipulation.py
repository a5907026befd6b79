from __future__ import annotations

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING

from codexio.config import (
    BINARY_PLACEHOLDER,
    UNREADABLE_PLACEHOLDER,
    FileEntry,
    IoWarning,
    RenderedFile,
    RenderOptions,
)
from codexio.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from codexio.patterns import PathMatcher

SNIFF_BYTES = 8192


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def read_bytes(path: Path) -> bytes:
    return path.read_bytes()


def decode_text(data: bytes) -> str | None:
    """Decode file content as UTF-8 text.

    Args:
        data (bytes): raw file content

    Returns:
        str | None: the text, or None when the content looks binary (NUL bytes
            in the first 8 KiB) or is not valid UTF-8
    """
    if b"\0" in data[:SNIFF_BYTES]:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


def add_line_numbers(code: str) -> str:
    if not code:
        return ""
    # only "\n" ends a line; form feeds and other separators stay in the text
    lines = code.removesuffix("\n").split("\n")
    return "\n".join(f"{n:4} | {line}" for n, line in enumerate(lines, start=1))


def wrap_code_block(code: str, extension: str, *, line_numbers: bool, codeblock: bool) -> str:
    """Decorate file content with optional line numbers and a markdown fence.

    Args:
        code (str): the file content
        extension (str): language hint for the fence (the file extension)
        line_numbers (bool): prefix each line with its 1-based number
        codeblock (bool): wrap the result in a fenced code block

    Returns:
        str: the decorated code
    """
    body = add_line_numbers(code) if line_numbers else code.removesuffix("\n")
    if not codeblock:
        return body
    return f"```{extension}\n{body}\n```"


class TreeWalker:
    """Walk a root directory and yield accepted files in a deterministic order.

    Entries of each directory are visited sorted by name, depth first, so the
    resulting sequence is ordered component-wise by relative path whatever
    order the filesystem lists them in. Symbolic links are never followed.
    Problems with single entries become :class:`IoWarning` records.
    """

    def __init__(self, root: Path, matcher: PathMatcher) -> None:
        self.root = root
        self.matcher = matcher
        self.warnings: list[IoWarning] = []

    def _warn(self, rel: str, error: OSError | str) -> None:
        message = error if isinstance(error, str) else (error.strerror or str(error))
        logger.warning("entry_skipped", path=rel, error=message)
        self.warnings.append(IoWarning(path=rel, message=message))

    def _list_dir(self, directory: Path, rel_dir: str) -> list[os.DirEntry[str]]:
        try:
            with os.scandir(directory) as it:
                return sorted(it, key=lambda e: e.name)
        except OSError as e:
            self._warn(rel_dir or ".", e)
            return []

    def walk(self) -> Iterator[FileEntry]:
        """Lazily yield the accepted files below the root.

        Yields:
            FileEntry: one entry per accepted regular file
        """
        self.matcher.ignore.add_root(self.root)
        stack: list[tuple[str, Iterator[os.DirEntry[str]]]] = [("", iter(self._list_dir(self.root, "")))]
        while stack:
            rel_dir, entries = stack[-1]
            entry = next(entries, None)
            if entry is None:
                stack.pop()
                continue
            rel = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
            try:
                if entry.is_symlink():
                    logger.debug("symlink_skipped", path=rel)
                    continue
                if entry.is_dir(follow_symlinks=False):
                    if self.matcher.should_descend(rel):
                        directory = Path(entry.path)
                        self.matcher.ignore.add_directory(directory, rel)
                        stack.append((rel, iter(self._list_dir(directory, rel))))
                    continue
                if not entry.is_file(follow_symlinks=False) or not self.matcher.decide(rel):
                    continue
                size = entry.stat(follow_symlinks=False).st_size
            except OSError as e:
                self._warn(rel, e)
                continue
            yield FileEntry(absolute_path=Path(entry.path).absolute(), relative_path=rel, byte_size=size)


class ContentAggregator:
    """Read accepted files and turn them into :class:`RenderedFile` records.

    Reads may run on a bounded thread pool; the output order always follows the
    input order. Unreadable or binary files are placeholdered, never fatal.
    """

    def __init__(self, options: RenderOptions | None = None, *, workers: int = 1) -> None:
        self.options = options or RenderOptions()
        self.workers = max(1, workers)
        self.warnings: list[IoWarning] = []
        self._lock = threading.Lock()

    def _display_path(self, entry: FileEntry) -> str:
        return str(entry.absolute_path) if self.options.absolute_paths else entry.relative_path

    def aggregate(self, entry: FileEntry) -> RenderedFile:
        path = self._display_path(entry)
        try:
            data = read_bytes(entry.absolute_path)
        except OSError as e:
            reason = e.strerror or str(e)
            logger.warning("file_unreadable", path=entry.relative_path, error=reason)
            with self._lock:
                self.warnings.append(IoWarning(path=entry.relative_path, message=reason))
            return RenderedFile(
                path=path,
                extension=entry.extension,
                code=UNREADABLE_PLACEHOLDER.format(reason=reason),
                placeholder=True,
            )

        text = decode_text(data)
        if text is None:
            logger.debug("binary_placeholder", path=entry.relative_path)
            return RenderedFile(path=path, extension=entry.extension, code=BINARY_PLACEHOLDER, placeholder=True)

        code = wrap_code_block(
            text,
            entry.extension,
            line_numbers=self.options.line_numbers,
            codeblock=self.options.codeblock,
        )
        return RenderedFile(path=path, extension=entry.extension, code=code)

    def aggregate_all(self, entries: Iterable[FileEntry]) -> list[RenderedFile]:
        """Aggregate many entries, in input order.

        Args:
            entries (Iterable[FileEntry]): the accepted entries, already sorted

        Returns:
            list[RenderedFile]: one rendered file per entry, same order
        """
        entries = list(entries)
        if self.workers == 1 or len(entries) < 2:  # noqa: PLR2004
            return [self.aggregate(e) for e in entries]

        pool = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="codexio-read")
        try:
            rendered = list(pool.map(self.aggregate, entries))
        except BaseException:
            pool.shutdown(wait=False, cancel_futures=True)
            raise
        pool.shutdown()
        return rendered
