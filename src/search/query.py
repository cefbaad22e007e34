"""The `SearchQuery` value object."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from src.search.normalize import normalize_text, tokenize

_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")


class QueryValidationError(ValueError):
    """Raised when raw input cannot form a valid `SearchQuery`."""

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind


@dataclass(frozen=True)
class SearchQuery:
    """A user's search text: verbatim for display, normalized for matching."""

    raw_input: str
    normalized_input: str
    tokens: tuple[str, ...]

    @classmethod
    def create(cls, raw_input: str) -> SearchQuery:
        """Build a query from raw user input.

        Raises:
            QueryValidationError: With `kind="empty-query"` if nothing is left after normalization.
        """

        normalized = normalize_text(raw_input)
        if not normalized:
            raise QueryValidationError("empty-query", "search query cannot be empty")
        return cls(raw_input=raw_input, normalized_input=normalized, tokens=tokenize(normalized))

    def contains_any(self, keywords: Iterable[str]) -> bool:
        return any(keyword.lower() in self.normalized_input for keyword in keywords)

    def extract_numbers(self) -> list[float]:
        return [float(m) for m in _NUMBER_RE.findall(self.normalized_input)]

    def __str__(self) -> str:
        return self.raw_input
