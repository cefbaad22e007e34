"""Smart-search schema (Pydantic models).

These models are the contract between the rules-based parser and whatever consumes its output (the
SQL statistics query layer, the dashboard). Field names are snake_case in Python and camelCase on
the wire.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

MIN_LIMIT = 1
MAX_LIMIT = 1000

DEFAULT_SUGGESTIONS: tuple[str, ...] = (
    '예시: "최근 1시간 느린 쿼리"',
    '예시: "버퍼 많이 쓰는 SELECT"',
    '예시: "오늘 실행된 쿼리 중 가장 느린 것"',
)


class TimeRange(StrEnum):
    """Symbolic time windows understood by the statistics layer."""

    last_1h = "1h"
    last_6h = "6h"
    last_12h = "12h"
    last_24h = "24h"
    today = "today"
    yesterday = "yesterday"
    this_week = "this_week"
    last_7d = "7d"
    last_30d = "30d"
    last_90d = "90d"
    all = "all"


class SortBy(StrEnum):
    """Performance metrics a result set can be ordered by."""

    elapsed_time = "elapsed_time"
    cpu_time = "cpu_time"
    buffer_gets = "buffer_gets"
    executions = "executions"


class SortOrder(StrEnum):
    asc = "asc"
    desc = "desc"


class Confidence(StrEnum):
    """Coarse trust level of a parsed intent."""

    low = "low"
    medium = "medium"
    high = "high"


class IntentType(StrEnum):
    """What the user is broadly looking for, derived from the filters."""

    find_slow_queries = "find_slow_queries"
    find_resource_heavy = "find_resource_heavy"
    find_frequent = "find_frequent"
    find_by_pattern = "find_by_pattern"
    find_by_schema = "find_by_schema"
    find_recent = "find_recent"
    general_search = "general_search"


BOUND_PAIRS: tuple[tuple[str, str], ...] = (
    ("min_elapsed_time", "max_elapsed_time"),
    ("min_buffer_gets", "max_buffer_gets"),
)


def inverts_range(filters: Mapping[str, Any], field: str, value: Any) -> bool:
    """Whether setting `field` to `value` would put a min bound above its max (or vice versa)."""

    for low_field, high_field in BOUND_PAIRS:
        if field == low_field:
            high = filters.get(high_field)
            return high is not None and value > high
        if field == high_field:
            low = filters.get(low_field)
            return low is not None and low > value
    return False


def format_number(value: float | int) -> str:
    """Render a filter number without a trailing `.0` for integral floats."""

    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class SearchFilters(BaseModel):
    """Filters for querying SQL performance statistics, combined using logical AND."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        allow_inf_nan=False,
        str_strip_whitespace=True,
    )

    sql_pattern: str | None = Field(default=None, min_length=1)
    time_range: TimeRange | None = None
    sort_by: SortBy | None = None
    sort_order: SortOrder | None = None
    limit: int | None = Field(default=None, ge=MIN_LIMIT, le=MAX_LIMIT)
    min_elapsed_time: float | None = Field(default=None, ge=0)
    max_elapsed_time: float | None = Field(default=None, ge=0)
    min_buffer_gets: int | None = Field(default=None, ge=0)
    max_buffer_gets: int | None = Field(default=None, ge=0)
    min_executions: int | None = Field(default=None, ge=0)
    schema_name: str | None = Field(
        default=None,
        alias="schema",
        min_length=2,
        max_length=128,
        pattern=r"^[A-Z][A-Z0-9_$#]*$",
    )

    @model_validator(mode="after")
    def validate_bounds(self) -> SearchFilters:
        """Validate that sort fields come in pairs and that no min/max range is inverted."""

        if (self.sort_by is None) != (self.sort_order is None):
            raise ValueError("sort_by and sort_order must be set together")

        for low_field, high_field in BOUND_PAIRS:
            low = getattr(self, low_field)
            high = getattr(self, high_field)
            if low is not None and high is not None and low > high:
                raise ValueError(f"{low_field} must be <= {high_field}")
        return self

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)

    def to_dict(self) -> dict[str, Any]:
        """Dump as a JSON-ready dict with camelCase keys, omitting absent fields."""

        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class MatchedRule(BaseModel):
    """Provenance of one rule that contributed to an intent."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    rule_name: str
    matched_keywords: tuple[str, ...] = ()
    confidence: float = Field(ge=0.0, le=1.0)


class ParsedIntent(BaseModel):
    """The structured interpretation of a search query."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    filters: SearchFilters = Field(default_factory=SearchFilters)
    interpretation: str
    suggestions: tuple[str, ...] = ()
    confidence: Confidence = Confidence.low
    matched_rules: tuple[MatchedRule, ...] = ()

    @model_validator(mode="after")
    def validate_consistency(self) -> ParsedIntent:
        """Enforce that rules, confidence and filters agree on whether anything was understood."""

        no_rules = not self.matched_rules
        is_low = self.confidence == Confidence.low
        no_filters = self.filters.is_empty()
        if not no_rules == is_low == no_filters:
            raise ValueError(
                "matched_rules must be empty exactly when confidence is low and filters are empty"
            )
        if self.suggestions and not is_low:
            raise ValueError("suggestions are only offered for low-confidence intents")
        return self

    @classmethod
    def create_default(cls, raw_input: str, *, interpretation: str | None = None) -> ParsedIntent:
        """Fallback intent for input that no rule understood."""

        return cls(
            filters=SearchFilters(),
            interpretation=interpretation if interpretation is not None else f'검색어: "{raw_input}"',
            suggestions=DEFAULT_SUGGESTIONS,
            confidence=Confidence.low,
            matched_rules=(),
        )

    def is_high_confidence(self) -> bool:
        return self.confidence == Confidence.high

    def has_filters(self) -> bool:
        return not self.filters.is_empty()

    @property
    def rule_count(self) -> int:
        return len(self.matched_rules)

    @property
    def intent_type(self) -> IntentType:
        filters = self.filters
        if filters.sort_by == SortBy.elapsed_time and filters.sort_order == SortOrder.desc:
            return IntentType.find_slow_queries
        if filters.sort_by in {SortBy.buffer_gets, SortBy.cpu_time}:
            return IntentType.find_resource_heavy
        if filters.sort_by == SortBy.executions:
            return IntentType.find_frequent
        if filters.sql_pattern:
            return IntentType.find_by_pattern
        if filters.schema_name:
            return IntentType.find_by_schema
        if filters.time_range:
            return IntentType.find_recent
        return IntentType.general_search


class SmartSearchRequest(BaseModel):
    """Input of the smart-search use case."""

    model_config = ConfigDict(extra="ignore")

    query: str | None = None


class SmartSearchResponse(BaseModel):
    """Output of the smart-search use case."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    original_query: str
    interpretation: str
    filters: SearchFilters
    suggestions: tuple[str, ...]
    confidence: Confidence
    matched_rules: tuple[MatchedRule, ...]
    processing_time_ms: int = Field(ge=0)

    @classmethod
    def from_intent(
            cls,
            original_query: str,
            intent: ParsedIntent,
            *,
            processing_time_ms: int,
    ) -> SmartSearchResponse:
        return cls(
            original_query=original_query,
            interpretation=intent.interpretation,
            filters=intent.filters,
            suggestions=intent.suggestions,
            confidence=intent.confidence,
            matched_rules=intent.matched_rules,
            processing_time_ms=processing_time_ms,
        )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
