from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import tiktoken

from codexio.config import DEFAULT_ENCODING, ENCODING_ALIASES, ENCODING_MODEL_INFO, TokenReport
from codexio.exceptions import InvalidEncodingError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from codexio.config import RenderedFile


def supported_encodings() -> tuple[str, ...]:
    return tuple(ENCODING_ALIASES) + tuple(sorted(set(ENCODING_ALIASES.values()) - set(ENCODING_ALIASES)))


def resolve_encoding(name: str | None) -> str:
    """Map a user supplied encoding name to a tiktoken encoding name.

    Args:
        name (str | None): short alias (``cl100k``) or full name (``cl100k_base``);
            None selects the default

    Raises:
        InvalidEncodingError: if the name is unknown.

    Returns:
        str: the tiktoken encoding name
    """
    key = (name or DEFAULT_ENCODING).strip().lower()
    if key in ENCODING_ALIASES:
        return ENCODING_ALIASES[key]
    if key in ENCODING_MODEL_INFO:
        return key
    raise InvalidEncodingError(encoding=name or "", supported=supported_encodings())


class TokenCounter:
    """Count tokens of text under one encoding.

    The encoding name is validated when the counter is built; the BPE tables
    are loaded on first use and reused afterwards.
    """

    def __init__(self, encoding: str | None = None) -> None:
        self.encoding_name = resolve_encoding(encoding)
        self._encoding: tiktoken.Encoding | None = None
        self._lock = threading.Lock()

    @property
    def model_info(self) -> str:
        return ENCODING_MODEL_INFO[self.encoding_name]

    def _get_encoding(self) -> tiktoken.Encoding:
        with self._lock:
            if self._encoding is None:
                self._encoding = tiktoken.get_encoding(self.encoding_name)
            return self._encoding

    def count(self, text: str) -> int:
        # special tokens such as <|endoftext|> count as one token each
        return len(self._get_encoding().encode(text, allowed_special="all"))

    def report(self, text: str) -> TokenReport:
        return TokenReport(encoding_name=self.encoding_name, token_count=self.count(text), model_info=self.model_info)

    def count_files(self, files: Iterable[RenderedFile]) -> dict[str, int]:
        return {f.path: self.count(f.code) for f in files}
