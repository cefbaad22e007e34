"""Text normalization for deterministic smart-search parsing."""

from __future__ import annotations

import re

_MULTISPACE_RE = re.compile(r"\s+")
_QUOTE_TRANSLATION = str.maketrans(
    {
        "“": '"',
        "”": '"',
        "„": '"',
        "‘": '"',
        "’": '"',
        "'": '"',
        "`": '"',
    }
)
_TOKEN_RE = re.compile(r'"([^"]+)"|(\S+)')


def normalize_text(text: str) -> str:
    """Normalize user text for rules-based parsing.

    Normalization is intentionally conservative:
        - Lowercase.
        - Map typographic quotes and backticks to `"`.
        - Collapse whitespace.

    Punctuation is kept: comparison operators (`>=`), `pl/sql` and `i/o` are meaningful to rules.
    """

    value = (text or "").strip().lower()
    value = value.translate(_QUOTE_TRANSLATION)
    value = _MULTISPACE_RE.sub(" ", value).strip()
    return value


def tokenize(normalized: str) -> tuple[str, ...]:
    """Split normalized text on whitespace, keeping a double-quoted phrase as one token."""

    tokens: list[str] = []
    for match in _TOKEN_RE.finditer(normalized):
        token = match.group(1) or match.group(2)
        if token:
            tokens.append(token)
    return tuple(tokens)
