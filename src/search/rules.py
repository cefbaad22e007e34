"""Rules-based smart-search parsing rules.

Every rule is a pure, prioritized pattern matcher over `SearchQuery.normalized_input`:
    - rules never depend on each other or on external state,
    - `matches` and `apply` are both derived from a single `extract`, so a rule that matches always
      contributes at least one filter,
    - values that would break `SearchFilters` bounds are treated as a non-match.
"""

from __future__ import annotations

import logging
import math
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, ClassVar

from src.search.dictionaries import (
    COMPARATOR_MATCHES,
    COUNT_UNITS,
    COUNT_WORDS,
    DURATION_UNIT_HOURS,
    SCHEMA_STOPWORDS,
    SORT_LABELS,
    SUPERLATIVE_ADJECTIVES,
    SYMBOLIC_OPERATORS,
    THRESHOLD_FIELDS,
    THRESHOLD_METRIC_LABELS,
    THRESHOLD_METRIC_SYNONYMS,
    TIME_RANGE_LABELS,
    TIME_UNIT_MS,
    ThresholdMetric,
    build_regex_alternation,
    find_comparator,
    find_threshold_metric,
    window_for_hours,
)
from src.search.query import SearchQuery
from src.search.schema import (
    MAX_LIMIT,
    MIN_LIMIT,
    SortBy,
    SortOrder,
    TimeRange,
    format_number,
    inverts_range,
)

logger = logging.getLogger(__name__)


class RuleApplicationError(RuntimeError):
    """Raised when a rule cannot produce a usable patch for a query."""

    def __init__(self, rule_name: str, message: str) -> None:
        super().__init__(f"{rule_name}: {message}")
        self.rule_name = rule_name


@dataclass(frozen=True)
class RulePatch:
    """The part of an intent contributed by one rule."""

    filters: Mapping[str, Any]
    interpretation: str
    matched_keywords: tuple[str, ...] = ()
    confidence: float = 0.0


def _ascii_word(alternation: str) -> str:
    """Match an alternation only as a whole ASCII word (Korean particles may follow)."""

    return rf"(?<![a-z0-9_])(?:{alternation})(?![a-z0-9_])"


def _unique(items: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(item.strip() for item in items if item and item.strip()))


class ParsingRule(ABC):
    """A named, prioritized unit of extraction logic (higher priority runs first)."""

    name: ClassVar[str]
    priority: ClassVar[int]

    @abstractmethod
    def extract(self, query: SearchQuery) -> RulePatch | None:
        """Return this rule's contribution, or `None` if the query says nothing it understands."""

    def matches(self, query: SearchQuery) -> bool:
        return self.extract(query) is not None

    def apply(self, query: SearchQuery) -> RulePatch:
        """Return the non-empty patch for a matching query.

        Raises:
            RuleApplicationError: If the rule has nothing to contribute for this query.
        """

        patch = self.extract(query)
        if patch is None or not patch.filters:
            raise RuleApplicationError(self.name, "rule does not match the query")
        return patch

    def __repr__(self) -> str:
        return f"{type(self).__name__}(priority={self.priority})"


# --- LimitRule -------------------------------------------------------------------------------


@dataclass(frozen=True)
class _LimitPattern:
    regex: re.Pattern[str]
    value: Callable[[re.Match[str]], int]
    confidence: float


def _const(value: int) -> Callable[[re.Match[str]], int]:
    return lambda _match: value


def _group_int(match: re.Match[str]) -> int:
    return int(match.group("n"))


_EXPLICIT_CONFIDENCE = 0.95
_INFERRED_CONFIDENCE = 0.7

_LIMIT_PATTERNS: tuple[_LimitPattern, ...] = (
    # "5개", "10개만" (but not "3개월").
    _LimitPattern(
        re.compile(r"(?<![\d.])(?P<n>\d{1,7})(?!\d)\s*개(?!월)(?:만|까지)?"),
        _group_int,
        _EXPLICIT_CONFIDENCE,
    ),
    # "상위 10", "톱5", "top 20".
    _LimitPattern(
        re.compile(r"(?:상위|톱|(?<![a-z])top)[\s-]*(?P<n>\d{1,7})(?!\d)"),
        _group_int,
        _EXPLICIT_CONFIDENCE,
    ),
    *(
        _LimitPattern(
            re.compile(rf"(?<![가-힣])(?:{'|'.join(words)})\s*개(?!월)(?:만)?"),
            _const(value),
            _EXPLICIT_CONFIDENCE,
        )
        for value, words in COUNT_WORDS.items()
    ),
    # "하나만", "단 하나".
    _LimitPattern(
        re.compile(r"(?<![가-힣])(?:단\s*)?하나(?:만|뿐)?(?![가-힣])"),
        _const(1),
        _EXPLICIT_CONFIDENCE,
    ),
    # A bare superlative ("가장 느린 쿼리") implies the single top result.
    _LimitPattern(
        re.compile(rf"(?:가장|제일)\s*(?:{'|'.join(SUPERLATIVE_ADJECTIVES)})"),
        _const(1),
        _INFERRED_CONFIDENCE,
    ),
)


class LimitRule(ParsingRule):
    """Extract the number of results the user asked for."""

    name = "LimitRule"
    priority = 90

    def extract(self, query: SearchQuery) -> RulePatch | None:
        text = query.normalized_input
        for pattern in _LIMIT_PATTERNS:
            for match in pattern.regex.finditer(text):
                limit = pattern.value(match)
                if not MIN_LIMIT <= limit <= MAX_LIMIT:
                    logger.debug("limit out of range value=%d", limit)
                    continue
                return RulePatch(
                    filters={"limit": limit},
                    interpretation=f"결과 {limit}개",
                    matched_keywords=_unique([match.group(0)]),
                    confidence=pattern.confidence,
                )
        return None


# --- TimeRangeRule ---------------------------------------------------------------------------

_DURATION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"(?:최근|지난)\s*(?P<n>\d{1,7})(?!\d)\s*"
        r"(?P<unit>분(?!기)|시간|주일|주|일|개월|달)"
    ),
    re.compile(
        r"(?<![\d.])(?P<n>\d{1,7})(?!\d)\s*"
        r"(?P<unit>분(?!기)|시간|개월)\s*(?:이내|동안|내|간)"
    ),
    re.compile(
        r"(?<![a-z])(?:last|past)\s+(?P<n>\d{1,7})(?!\d)\s*"
        r"(?P<unit>minutes|minute|mins|min|hours|hour|hrs|hr|days|day|weeks|week|months|month)"
        r"(?![a-z])"
    ),
    re.compile(r"(?<![a-z0-9.])(?P<n>\d{1,7})(?!\d)\s*(?P<unit>h|d)(?![a-z0-9])"),
)

_NAMED_WINDOWS: tuple[tuple[re.Pattern[str], TimeRange], ...] = (
    (re.compile(r"한\s*시간"), TimeRange.last_1h),
    (re.compile(r"반나절"), TimeRange.last_12h),
    (re.compile(r"하루|스물\s*네\s*시간"), TimeRange.last_24h),
    (re.compile(r"오늘|금일|" + _ascii_word("today")), TimeRange.today),
    (re.compile(r"어제|" + _ascii_word("yesterday")), TimeRange.yesterday),
    (re.compile(r"이번\s*주|금주|" + _ascii_word(r"this\s+week")), TimeRange.this_week),
    (re.compile(r"일주일|한\s*주|지난\s*주|" + _ascii_word(r"last\s+week")), TimeRange.last_7d),
    (re.compile(r"한\s*달|지난\s*달|" + _ascii_word(r"last\s+month")), TimeRange.last_30d),
    (re.compile(r"석\s*달|세\s*달|분기"), TimeRange.last_90d),
    (
        re.compile(r"전체(?!\s*(?:테이블\s*)?스캔)|모든\s*기간|" + _ascii_word(r"all(?:\s+time)?")),
        TimeRange.all,
    ),
)


class TimeRangeRule(ParsingRule):
    """Map relative/calendar time expressions to a symbolic window."""

    name = "TimeRangeRule"
    priority = 80

    def extract(self, query: SearchQuery) -> RulePatch | None:
        text = query.normalized_input

        for regex in _DURATION_PATTERNS:
            for match in regex.finditer(text):
                hours = int(match.group("n")) * DURATION_UNIT_HOURS[match.group("unit")]
                if hours <= 0:
                    continue
                return self._patch(window_for_hours(hours), match.group(0))

        for regex, window in _NAMED_WINDOWS:
            match = regex.search(text)
            if match:
                return self._patch(window, match.group(0))

        return None

    @staticmethod
    def _patch(window: TimeRange, keyword: str) -> RulePatch:
        return RulePatch(
            filters={"time_range": window},
            interpretation=TIME_RANGE_LABELS[window],
            matched_keywords=_unique([keyword]),
            confidence=0.9,
        )


# --- PerformanceMetricRule -------------------------------------------------------------------

_METRIC_PATTERNS: tuple[tuple[re.Pattern[str], SortBy, SortOrder], ...] = (
    (
        re.compile(
            r"느린|느려|오래\s*걸리|오래\s*걸린|시간\s*(?:이|가)\s*(?:오래|긴|길)|"
            + _ascii_word(r"slow|slowest|long[\s-]*running")
        ),
        SortBy.elapsed_time,
        SortOrder.desc,
    ),
    (
        re.compile(r"빠른|짧은|시간\s*(?:이|가)\s*짧|" + _ascii_word("fast|fastest|quick")),
        SortBy.elapsed_time,
        SortOrder.asc,
    ),
    (
        re.compile(r"(?<![a-z])cpu\s*(?:를|을)?\s*(?:많이|높|과다|사용|소모|intensive|time|시간)"),
        SortBy.cpu_time,
        SortOrder.desc,
    ),
    (
        re.compile(r"버퍼|메모리|논리적\s*읽기|" + _ascii_word(r"buffer|buffers|memory|logical\s*reads?")),
        SortBy.buffer_gets,
        SortOrder.desc,
    ),
    (
        re.compile(
            r"자주|많이\s*실행|실행\s*(?:이|횟수\s*가)?\s*많|빈번|실행\s*횟수|"
            + _ascii_word("frequent|frequently|executions?")
        ),
        SortBy.executions,
        SortOrder.desc,
    ),
)

_SUPERLATIVE_RE = re.compile(r"가장|제일|최고|" + _ascii_word("top|best|worst|most"))


class PerformanceMetricRule(ParsingRule):
    """Choose the sort metric and direction from performance vocabulary."""

    name = "PerformanceMetricRule"
    priority = 70

    def extract(self, query: SearchQuery) -> RulePatch | None:
        text = query.normalized_input
        for regex, sort_by, sort_order in _METRIC_PATTERNS:
            match = regex.search(text)
            if not match:
                continue

            keywords = [match.group(0)]
            interpretation = SORT_LABELS[(sort_by, sort_order)]
            superlative = _SUPERLATIVE_RE.search(text)
            if superlative:
                keywords.append(superlative.group(0))
                interpretation = f"가장 {interpretation}"

            return RulePatch(
                filters={"sort_by": sort_by, "sort_order": sort_order},
                interpretation=interpretation,
                matched_keywords=_unique(keywords),
                confidence=0.95 if superlative else 0.85,
            )
        return None


# --- SQLTypeRule -----------------------------------------------------------------------------

_SQL_TYPE_PATTERNS: tuple[tuple[re.Pattern[str], str, str], ...] = (
    (re.compile(_ascii_word("select") + r"|조회|읽기\s*쿼리|검색\s*쿼리"), "SELECT", "SELECT 쿼리"),
    (re.compile(_ascii_word("insert") + r"|삽입|입력\s*쿼리|추가\s*쿼리"), "INSERT", "INSERT 쿼리"),
    (re.compile(_ascii_word("update") + r"|수정|갱신|업데이트"), "UPDATE", "UPDATE 쿼리"),
    (re.compile(_ascii_word("delete") + r"|삭제|제거"), "DELETE", "DELETE 쿼리"),
    (re.compile(_ascii_word("merge") + r"|병합"), "MERGE", "MERGE 쿼리"),
    (re.compile(_ascii_word(r"pl/?sql|procedure|package") + r"|프로시저|패키지"), "BEGIN", "PL/SQL 블록"),
    (re.compile(_ascii_word("join") + r"|조인"), "JOIN", "JOIN이 포함된 쿼리"),
)


class SQLTypeRule(ParsingRule):
    """Turn a mention of a SQL statement type into a SQL text keyword filter."""

    name = "SQLTypeRule"
    priority = 60

    def extract(self, query: SearchQuery) -> RulePatch | None:
        text = query.normalized_input
        for regex, keyword, interpretation in _SQL_TYPE_PATTERNS:
            match = regex.search(text)
            if match:
                return RulePatch(
                    filters={"sql_pattern": keyword},
                    interpretation=interpretation,
                    matched_keywords=_unique([match.group(0)]),
                    confidence=0.85,
                )
        return None


# --- SchemaRule ------------------------------------------------------------------------------

_IDENT = r"(?P<ident>[a-z][a-z0-9_$#]*)(?![a-z0-9_$#])"

_SCHEMA_PATTERNS: tuple[re.Pattern[str], ...] = (
    # "sys 스키마", '"hr" schema'
    re.compile(rf'(?<![a-z0-9_$#])"?{_IDENT}"?\s*(?:스키마|schema(?![a-z]))'),
    # "스키마 hr", "schema: hr", "schema=hr"
    re.compile(rf'(?:스키마|(?<![a-z])schema)\s*[:=]?\s*"?{_IDENT}'),
    re.compile(rf'(?:소유자|(?<![a-z])owner)\s*[:=]?\s*"?{_IDENT}'),
    re.compile(rf'(?:사용자|(?<![a-z])user)\s*[:=]?\s*"?{_IDENT}'),
)
_SCHEMA_ANCHORS: tuple[str, ...] = ("스키마", "schema", "소유자", "owner", "사용자", "user")


class SchemaRule(ParsingRule):
    """Extract an explicit schema (owner) name."""

    name = "SchemaRule"
    priority = 50

    def extract(self, query: SearchQuery) -> RulePatch | None:
        if not query.contains_any(_SCHEMA_ANCHORS):
            return None

        text = query.normalized_input
        for regex in _SCHEMA_PATTERNS:
            for match in regex.finditer(text):
                ident = match.group("ident")
                if ident in SCHEMA_STOPWORDS or not 2 <= len(ident) <= 128:
                    continue
                schema_name = ident.upper()
                return RulePatch(
                    filters={"schema_name": schema_name},
                    interpretation=f"스키마: {schema_name}",
                    matched_keywords=_unique([match.group(0)]),
                    confidence=0.8,
                )
        return None


# --- ThresholdRule ---------------------------------------------------------------------------

_METRIC_ALT = build_regex_alternation(
    term for terms in THRESHOLD_METRIC_SYNONYMS.values() for term in terms
)
_COMPARATOR_ALT = build_regex_alternation(m.phrase for m in COMPARATOR_MATCHES)
_SYMBOL_ALT = "|".join(re.escape(op) for op in sorted(SYMBOLIC_OPERATORS, key=lambda s: -len(s)))
_VALUE = r"(?P<value>\d[\d,]*(?:\.\d+)?)"
_UNIT = (
    r"(?P<unit>(?:msec|ms|seconds|second|secs|sec|s|minutes|minute|mins|min|times)(?![a-z0-9_])"
    r"|밀리초|초(?!과)|분(?!기)|번|회|건)"
)
_PARTICLE = r"(?:이|가|은|는)?"

_THRESHOLD_PATTERNS: tuple[re.Pattern[str], ...] = (
    # "실행시간 100ms 이상", "버퍼 10000 이하"
    re.compile(
        rf"(?P<metric>{_METRIC_ALT})\s*{_PARTICLE}\s*{_VALUE}\s*{_UNIT}?\s*"
        rf"(?P<comp>{_COMPARATOR_ALT})"
    ),
    # "elapsed >= 2", "buffer gets > 10000"
    re.compile(rf"(?P<metric>{_METRIC_ALT})\s*(?P<op>{_SYMBOL_ALT})\s*{_VALUE}\s*{_UNIT}?"),
    # "10000 버퍼 이상"
    re.compile(
        rf"(?<![\d.,]){_VALUE}\s*{_UNIT}?\s*(?P<metric>{_METRIC_ALT})\s*{_PARTICLE}\s*"
        rf"(?P<comp>{_COMPARATOR_ALT})"
    ),
    # "100ms 이상", "10번 이상 실행"
    re.compile(rf"(?<![\d.,]){_VALUE}\s*{_UNIT}\s*(?P<comp>{_COMPARATOR_ALT})"),
)

_CANONICAL_SYMBOLS: dict[str, str] = {"=>": ">=", "≥": ">=", "=<": "<=", "≤": "<="}
_EXECUTION_UNITS = {"번", "회", "times"}


@dataclass(frozen=True)
class _Threshold:
    field: str
    metric: ThresholdMetric
    symbol: str
    value: float | int


def _unit_metric(unit: str | None) -> ThresholdMetric | None:
    if unit in TIME_UNIT_MS:
        return ThresholdMetric.elapsed_time
    if unit in _EXECUTION_UNITS:
        return ThresholdMetric.executions
    return None


def _resolve_threshold(match: re.Match[str]) -> _Threshold | None:
    groups = match.groupdict()
    unit = groups.get("unit")

    metric_term = groups.get("metric")
    metric = find_threshold_metric(metric_term) if metric_term else _unit_metric(unit)
    if metric is None:
        return None

    if groups.get("comp"):
        comparator = find_comparator(groups["comp"])
        if comparator is None:
            return None
        bound, symbol = comparator.bound, comparator.symbol
    else:
        op = groups["op"]
        bound, symbol = SYMBOLIC_OPERATORS[op], _CANONICAL_SYMBOLS.get(op, op)

    field = THRESHOLD_FIELDS.get((metric, bound))
    if field is None:
        return None

    raw_value = float(groups["value"].replace(",", ""))
    if not math.isfinite(raw_value) or raw_value <= 0:
        return None

    if metric == ThresholdMetric.elapsed_time:
        # Without a unit an elapsed-time figure is read as seconds.
        multiplier = TIME_UNIT_MS.get(unit or "초")
        if multiplier is None:
            return None
        value_ms = raw_value * multiplier
        if not math.isfinite(value_ms):
            return None
        return _Threshold(field=field, metric=metric, symbol=symbol, value=value_ms)

    if unit is not None and unit not in COUNT_UNITS:
        return None
    if not raw_value.is_integer():
        return None
    return _Threshold(field=field, metric=metric, symbol=symbol, value=int(raw_value))


class ThresholdRule(ParsingRule):
    """Extract numeric comparisons bound to a known metric into min/max filters."""

    name = "ThresholdRule"
    priority = 40

    def extract(self, query: SearchQuery) -> RulePatch | None:
        if not query.extract_numbers():
            return None

        text = query.normalized_input
        found: list[tuple[int, int, re.Match[str]]] = []
        for order, regex in enumerate(_THRESHOLD_PATTERNS):
            found.extend((m.start(), order, m) for m in regex.finditer(text))
        found.sort(key=lambda item: (item[0], item[1]))

        filters: dict[str, Any] = {}
        keywords: list[str] = []
        interpretations: list[str] = []
        consumed_until = 0
        for start, _, match in found:
            # Overlapping spans describe the same comparison; the earliest one owns it.
            if start < consumed_until:
                continue
            consumed_until = match.end()

            threshold = _resolve_threshold(match)
            if threshold is None:
                logger.debug("threshold discarded span=%r", match.group(0))
                continue
            if threshold.field in filters:
                continue
            if inverts_range(filters, threshold.field, threshold.value):
                logger.debug("threshold dropped field=%s reason=inverted_range", threshold.field)
                continue

            filters[threshold.field] = threshold.value
            keywords.append(match.group(0))
            unit_suffix = "ms" if threshold.metric == ThresholdMetric.elapsed_time else ""
            interpretations.append(
                f"{THRESHOLD_METRIC_LABELS[threshold.metric]} {threshold.symbol} "
                f"{format_number(threshold.value)}{unit_suffix}"
            )

        if not filters:
            return None

        return RulePatch(
            filters=filters,
            interpretation=", ".join(interpretations),
            matched_keywords=_unique(keywords),
            confidence=0.75,
        )


def builtin_rules() -> list[ParsingRule]:
    """Fresh instances of the six built-in rules."""

    return [
        LimitRule(),
        TimeRangeRule(),
        PerformanceMetricRule(),
        SQLTypeRule(),
        SchemaRule(),
        ThresholdRule(),
    ]
