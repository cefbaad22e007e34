"""Korean/English vocabularies for smart-search rules.

These mappings are used by the rules in `src.search.rules` and should remain small and
deterministic. Every entry is lower-case, because rules match against normalized text.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum

from src.search.schema import SortBy, SortOrder, TimeRange

# Korean native number words as used before the counter "개".
COUNT_WORDS: dict[int, tuple[str, ...]] = {
    1: ("한", "하나"),
    2: ("두", "둘"),
    3: ("세", "셋"),
    4: ("네", "넷"),
    5: ("다섯",),
    6: ("여섯",),
    7: ("일곱",),
    8: ("여덟",),
    9: ("아홉",),
    10: ("열",),
    20: ("스무", "스물"),
}

SUPERLATIVE_ADJECTIVES: tuple[str, ...] = ("느린", "빠른", "많은", "큰", "작은", "높은", "낮은")

DURATION_UNIT_HOURS: dict[str, float] = {
    "분": 1 / 60,
    "minute": 1 / 60,
    "minutes": 1 / 60,
    "min": 1 / 60,
    "mins": 1 / 60,
    "시간": 1,
    "h": 1,
    "hour": 1,
    "hours": 1,
    "hr": 1,
    "hrs": 1,
    "일": 24,
    "d": 24,
    "day": 24,
    "days": 24,
    "주": 24 * 7,
    "주일": 24 * 7,
    "week": 24 * 7,
    "weeks": 24 * 7,
    "개월": 24 * 30,
    "달": 24 * 30,
    "month": 24 * 30,
    "months": 24 * 30,
}

# Rolling windows ordered by size; a duration maps to the smallest window that covers it.
ROLLING_WINDOW_HOURS: tuple[tuple[float, TimeRange], ...] = (
    (1, TimeRange.last_1h),
    (6, TimeRange.last_6h),
    (12, TimeRange.last_12h),
    (24, TimeRange.last_24h),
    (24 * 7, TimeRange.last_7d),
    (24 * 30, TimeRange.last_30d),
    (24 * 90, TimeRange.last_90d),
)

TIME_RANGE_LABELS: dict[TimeRange, str] = {
    TimeRange.last_1h: "최근 1시간",
    TimeRange.last_6h: "최근 6시간",
    TimeRange.last_12h: "최근 12시간",
    TimeRange.last_24h: "최근 24시간",
    TimeRange.today: "오늘",
    TimeRange.yesterday: "어제",
    TimeRange.this_week: "이번 주",
    TimeRange.last_7d: "최근 7일",
    TimeRange.last_30d: "최근 30일",
    TimeRange.last_90d: "최근 90일",
    TimeRange.all: "전체 기간",
}

SORT_LABELS: dict[tuple[SortBy, SortOrder], str] = {
    (SortBy.elapsed_time, SortOrder.desc): "실행 시간이 긴 쿼리",
    (SortBy.elapsed_time, SortOrder.asc): "실행 시간이 짧은 쿼리",
    (SortBy.cpu_time, SortOrder.desc): "CPU 사용량이 높은 쿼리",
    (SortBy.buffer_gets, SortOrder.desc): "버퍼 사용량이 높은 쿼리",
    (SortBy.executions, SortOrder.desc): "자주 실행되는 쿼리",
}


class ThresholdMetric(StrEnum):
    """Metrics a numeric comparison can be bound to."""

    elapsed_time = "elapsed_time"
    buffer_gets = "buffer_gets"
    executions = "executions"
    cpu_time = "cpu_time"


THRESHOLD_METRIC_SYNONYMS: dict[ThresholdMetric, tuple[str, ...]] = {
    ThresholdMetric.elapsed_time: (
        "실행 시간",
        "수행 시간",
        "응답 시간",
        "경과 시간",
        "elapsed time",
        "elapsed",
    ),
    ThresholdMetric.buffer_gets: (
        "버퍼 읽기",
        "논리적 읽기",
        "버퍼",
        "buffer gets",
        "buffer get",
        "buffer",
    ),
    ThresholdMetric.executions: (
        "실행 횟수",
        "execution count",
        "executions",
        "execution",
    ),
    ThresholdMetric.cpu_time: ("cpu 시간", "cpu time", "cpu"),
}

THRESHOLD_METRIC_LABELS: dict[ThresholdMetric, str] = {
    ThresholdMetric.elapsed_time: "실행 시간",
    ThresholdMetric.buffer_gets: "버퍼 읽기",
    ThresholdMetric.executions: "실행 횟수",
    ThresholdMetric.cpu_time: "CPU 시간",
}


class Bound(StrEnum):
    """Which side of a range a comparison constrains."""

    lower = "lower"
    upper = "upper"


# (metric, bound) -> SearchFilters field. Anything missing here cannot be expressed as a filter.
THRESHOLD_FIELDS: dict[tuple[ThresholdMetric, Bound], str] = {
    (ThresholdMetric.elapsed_time, Bound.lower): "min_elapsed_time",
    (ThresholdMetric.elapsed_time, Bound.upper): "max_elapsed_time",
    (ThresholdMetric.buffer_gets, Bound.lower): "min_buffer_gets",
    (ThresholdMetric.buffer_gets, Bound.upper): "max_buffer_gets",
    (ThresholdMetric.executions, Bound.lower): "min_executions",
}

# Unit -> multiplier to milliseconds.
TIME_UNIT_MS: dict[str, float] = {
    "ms": 1,
    "밀리초": 1,
    "msec": 1,
    "초": 1000,
    "s": 1000,
    "sec": 1000,
    "secs": 1000,
    "second": 1000,
    "seconds": 1000,
    "분": 60_000,
    "min": 60_000,
    "mins": 60_000,
    "minute": 60_000,
    "minutes": 60_000,
}

COUNT_UNITS: tuple[str, ...] = ("번", "회", "건", "times")


@dataclass(frozen=True)
class ComparatorMatch:
    """A concrete comparison phrase matched to the range side it constrains."""

    bound: Bound
    symbol: str
    phrase: str


_COMPARATOR_PHRASES: dict[tuple[Bound, str], tuple[str, ...]] = {
    (Bound.lower, ">="): ("이상", "넘는", "넘게", "보다 큰", "보다 긴", "보다 많은"),
    (Bound.lower, ">"): ("초과",),
    (Bound.upper, "<="): ("이하", "보다 작은", "보다 짧은", "보다 적은"),
    (Bound.upper, "<"): ("미만",),
}

COMPARATOR_MATCHES: list[ComparatorMatch] = sorted(
    (
        ComparatorMatch(bound=bound, symbol=symbol, phrase=phrase)
        for (bound, symbol), phrases in _COMPARATOR_PHRASES.items()
        for phrase in phrases
    ),
    key=lambda m: (-len(m.phrase), m.phrase),
)

SYMBOLIC_OPERATORS: dict[str, Bound] = {
    ">=": Bound.lower,
    "=>": Bound.lower,
    "≥": Bound.lower,
    ">": Bound.lower,
    "<=": Bound.upper,
    "=<": Bound.upper,
    "≤": Bound.upper,
    "<": Bound.upper,
}

# Words that look like identifiers but are never a schema name in a search phrase.
SCHEMA_STOPWORDS: frozenset[str] = frozenset(
    {
        "all",
        "and",
        "buffer",
        "cpu",
        "delete",
        "fast",
        "for",
        "from",
        "id",
        "in",
        "index",
        "indexes",
        "info",
        "insert",
        "join",
        "list",
        "merge",
        "ms",
        "name",
        "of",
        "or",
        "queries",
        "query",
        "sec",
        "select",
        "session",
        "sessions",
        "slow",
        "sql",
        "stats",
        "table",
        "tables",
        "the",
        "time",
        "today",
        "top",
        "update",
        "view",
        "views",
        "where",
        "with",
    }
)


def build_regex_alternation(phrases: Iterable[str]) -> str:
    """Build a regex alternation preferring longer phrases; inner spaces match any whitespace."""

    parts = sorted(set(phrases), key=lambda p: (-len(p), p))
    return "|".join(r"\s*".join(re.escape(word) for word in p.split(" ")) for p in parts)


def find_comparator(phrase: str) -> ComparatorMatch | None:
    """Resolve a matched comparison phrase (whitespace-insensitive) to its comparator."""

    compact = phrase.replace(" ", "")
    for match in COMPARATOR_MATCHES:
        if match.phrase.replace(" ", "") == compact:
            return match
    return None


def find_threshold_metric(term: str) -> ThresholdMetric | None:
    """Resolve a matched metric term (whitespace-insensitive) to its metric."""

    compact = re.sub(r"\s+", "", term)
    for metric, synonyms in THRESHOLD_METRIC_SYNONYMS.items():
        if any(s.replace(" ", "") == compact for s in synonyms):
            return metric
    return None


def window_for_hours(hours: float) -> TimeRange:
    """Return the smallest rolling window covering `hours` (or `all` beyond the largest)."""

    for limit_hours, window in ROLLING_WINDOW_HOURS:
        if hours <= limit_hours:
            return window
    return TimeRange.all
