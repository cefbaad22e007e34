"""Tests for the six built-in smart-search parsing rules."""

from __future__ import annotations

import pytest

from src.search.query import SearchQuery
from src.search.rules import (
    LimitRule,
    ParsingRule,
    PerformanceMetricRule,
    RuleApplicationError,
    SchemaRule,
    SQLTypeRule,
    ThresholdRule,
    TimeRangeRule,
    builtin_rules,
)
from src.search.schema import SortBy, SortOrder, TimeRange


def _q(text: str) -> SearchQuery:
    return SearchQuery.create(text)


# --- LimitRule ---


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("느린 쿼리 5개", 5),
        ("10개만 보여줘", 10),
        ("상위 10 쿼리", 10),
        ("톱5", 5),
        ("top 20 slow queries", 20),
        ("세 개만 보여줘", 3),
        ("하나만", 1),
        ("1500개 중 상위 5", 5),
    ],
)
def test_limit_rule_extracts_count(text: str, expected: int) -> None:
    patch = LimitRule().apply(_q(text))
    assert patch.filters == {"limit": expected}
    assert patch.interpretation == f"결과 {expected}개"
    assert patch.confidence == 0.95


def test_limit_rule_superlative_implies_single_result() -> None:
    patch = LimitRule().apply(_q("가장 느린 쿼리"))
    assert patch.filters == {"limit": 1}
    assert patch.matched_keywords == ("가장 느린",)
    assert patch.confidence == 0.7


def test_limit_rule_prefers_explicit_count_over_superlative() -> None:
    patch = LimitRule().apply(_q("가장 느린 쿼리 3개"))
    assert patch.filters == {"limit": 3}


@pytest.mark.parametrize("text", ["최근 3개월 쿼리", "5000개", "느린 쿼리"])
def test_limit_rule_does_not_match(text: str) -> None:
    rule = LimitRule()
    assert not rule.matches(_q(text))
    with pytest.raises(RuleApplicationError) as exc_info:
        rule.apply(_q(text))
    assert exc_info.value.rule_name == "LimitRule"


@pytest.mark.parametrize("text", ["1" * 5000 + "개", "상위 " + "9" * 5000])
def test_limit_rule_ignores_oversized_digit_runs(text: str) -> None:
    assert not LimitRule().matches(_q(text))


# --- TimeRangeRule ---


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("최근 1시간 느린 쿼리", TimeRange.last_1h),
        ("최근 30분", TimeRange.last_1h),
        ("지난 6시간", TimeRange.last_6h),
        ("지난 3일", TimeRange.last_7d),
        ("최근 2주", TimeRange.last_30d),
        ("최근 3개월", TimeRange.last_90d),
        ("10분 이내 실행된 쿼리", TimeRange.last_1h),
        ("last 24 hours", TimeRange.last_24h),
        ("12h", TimeRange.last_12h),
        ("오늘 실행된 쿼리", TimeRange.today),
        ("어제 느린 쿼리", TimeRange.yesterday),
        ("이번 주 쿼리", TimeRange.this_week),
        ("일주일 동안", TimeRange.last_7d),
        ("지난 달", TimeRange.last_30d),
        ("전체 기간", TimeRange.all),
    ],
)
def test_time_range_rule(text: str, expected: TimeRange) -> None:
    patch = TimeRangeRule().apply(_q(text))
    assert patch.filters == {"time_range": expected}
    assert patch.confidence == 0.9


def test_time_range_rule_interpretation() -> None:
    patch = TimeRangeRule().apply(_q("최근 1시간"))
    assert patch.interpretation == "최근 1시간"
    assert patch.matched_keywords == ("최근 1시간",)


@pytest.mark.parametrize("text", ["전체 스캔 쿼리", "최근 0시간", "느린 쿼리"])
def test_time_range_rule_does_not_match(text: str) -> None:
    assert not TimeRangeRule().matches(_q(text))


@pytest.mark.parametrize("text", ["최근 " + "1" * 5000 + "시간", "2" * 5000 + "h"])
def test_time_range_rule_ignores_oversized_digit_runs(text: str) -> None:
    assert not TimeRangeRule().matches(_q(text))


# --- PerformanceMetricRule ---


@pytest.mark.parametrize(
    ("text", "sort_by", "sort_order"),
    [
        ("느린 쿼리", SortBy.elapsed_time, SortOrder.desc),
        ("오래 걸리는 쿼리", SortBy.elapsed_time, SortOrder.desc),
        ("빠른 쿼리", SortBy.elapsed_time, SortOrder.asc),
        ("cpu 많이 쓰는 쿼리", SortBy.cpu_time, SortOrder.desc),
        ("버퍼 많이 쓰는 select", SortBy.buffer_gets, SortOrder.desc),
        ("자주 실행되는 쿼리", SortBy.executions, SortOrder.desc),
    ],
)
def test_performance_metric_rule(text: str, sort_by: SortBy, sort_order: SortOrder) -> None:
    patch = PerformanceMetricRule().apply(_q(text))
    assert patch.filters == {"sort_by": sort_by, "sort_order": sort_order}
    assert patch.confidence == 0.85


def test_performance_metric_rule_superlative() -> None:
    patch = PerformanceMetricRule().apply(_q("가장 느린 쿼리"))
    assert patch.filters == {"sort_by": SortBy.elapsed_time, "sort_order": SortOrder.desc}
    assert patch.interpretation == "가장 실행 시간이 긴 쿼리"
    assert patch.matched_keywords == ("느린", "가장")
    assert patch.confidence == 0.95


def test_performance_metric_rule_does_not_match() -> None:
    assert not PerformanceMetricRule().matches(_q("쿼리 목록"))


# --- SQLTypeRule ---


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("SELECT 문", "SELECT"),
        ("insert 쿼리", "INSERT"),
        ("업데이트 쿼리", "UPDATE"),
        ("delete 쿼리", "DELETE"),
        ("merge 문", "MERGE"),
        ("pl/sql 블록", "BEGIN"),
        ("조인 쿼리", "JOIN"),
    ],
)
def test_sql_type_rule(text: str, expected: str) -> None:
    patch = SQLTypeRule().apply(_q(text))
    assert patch.filters == {"sql_pattern": expected}
    assert patch.confidence == 0.85


def test_sql_type_rule_requires_whole_word() -> None:
    assert not SQLTypeRule().matches(_q("selected rows"))


# --- SchemaRule ---


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("sys 스키마에서", "SYS"),
        ('"hr" 스키마', "HR"),
        ("schema hr", "HR"),
        ("스키마: app_owner", "APP_OWNER"),
        ("owner: scott", "SCOTT"),
        ("사용자 batch$user", "BATCH$USER"),
    ],
)
def test_schema_rule(text: str, expected: str) -> None:
    patch = SchemaRule().apply(_q(text))
    assert patch.filters == {"schema_name": expected}
    assert patch.interpretation == f"스키마: {expected}"
    assert patch.confidence == 0.8


@pytest.mark.parametrize("text", ["select 스키마", "a 스키마", "스키마 목록"])
def test_schema_rule_does_not_match(text: str) -> None:
    assert not SchemaRule().matches(_q(text))


@pytest.mark.parametrize("text", ["user table 조회", "owner index 목록", "스키마 name", "user sessions"])
def test_schema_rule_skips_object_words(text: str) -> None:
    assert not SchemaRule().matches(_q(text))


def test_schema_rule_needs_schema_keyword() -> None:
    assert not SchemaRule().matches(_q("hr 조회"))


# --- ThresholdRule ---


def test_threshold_rule_elapsed_ms() -> None:
    patch = ThresholdRule().apply(_q("실행시간 100ms 이상인 쿼리"))
    assert patch.filters == {"min_elapsed_time": 100.0}
    assert patch.interpretation == "실행 시간 >= 100ms"
    assert patch.confidence == 0.75


def test_threshold_rule_converts_seconds() -> None:
    patch = ThresholdRule().apply(_q("실행시간 2초 이상"))
    assert patch.filters == {"min_elapsed_time": 2000.0}


def test_threshold_rule_unitless_elapsed_is_seconds() -> None:
    patch = ThresholdRule().apply(_q("elapsed >= 2"))
    assert patch.filters == {"min_elapsed_time": 2000.0}


def test_threshold_rule_range() -> None:
    patch = ThresholdRule().apply(_q("실행시간 1초 이상 5초 이하"))
    assert patch.filters == {"min_elapsed_time": 1000.0, "max_elapsed_time": 5000.0}
    assert patch.interpretation == "실행 시간 >= 1000ms, 실행 시간 <= 5000ms"


def test_threshold_rule_drops_inverted_bound() -> None:
    patch = ThresholdRule().apply(_q("실행시간 100ms 이상 50ms 이하"))
    assert patch.filters == {"min_elapsed_time": 100.0}


def test_threshold_rule_buffer_gets() -> None:
    patch = ThresholdRule().apply(_q("버퍼 10,000 이상"))
    assert patch.filters == {"min_buffer_gets": 10000}
    assert patch.interpretation == "버퍼 읽기 >= 10000"


def test_threshold_rule_symbolic_operator() -> None:
    patch = ThresholdRule().apply(_q("buffer gets > 10000"))
    assert patch.filters == {"min_buffer_gets": 10000}
    assert patch.interpretation == "버퍼 읽기 > 10000"


def test_threshold_rule_executions_from_count_unit() -> None:
    patch = ThresholdRule().apply(_q("10번 이상 실행된 쿼리"))
    assert patch.filters == {"min_executions": 10}


@pytest.mark.parametrize(
    "text",
    [
        "cpu 100ms 이상",
        "버퍼 0 이상",
        "실행 횟수 1.5번 이상",
        "느린 쿼리",
    ],
)
def test_threshold_rule_discards_unsupported_comparisons(text: str) -> None:
    assert not ThresholdRule().matches(_q(text))


def test_threshold_rule_needs_a_number() -> None:
    assert not ThresholdRule().matches(_q("실행시간 이상"))


def test_threshold_rule_overflowing_value_keeps_other_bounds() -> None:
    patch = ThresholdRule().apply(_q("실행시간 " + "9" * 400 + "ms 이상 버퍼 100 이상"))
    assert patch.filters == {"min_buffer_gets": 100}


# --- contract ---


def test_builtin_rules_priorities() -> None:
    rules = builtin_rules()
    assert [(r.name, r.priority) for r in rules] == [
        ("LimitRule", 90),
        ("TimeRangeRule", 80),
        ("PerformanceMetricRule", 70),
        ("SQLTypeRule", 60),
        ("SchemaRule", 50),
        ("ThresholdRule", 40),
    ]
    assert all(isinstance(r, ParsingRule) for r in rules)


@pytest.mark.parametrize(
    "text",
    [
        "최근 1시간 느린 쿼리 5개",
        "가장 느린 쿼리",
        "sys 스키마에서 실행시간 100ms 이상인 쿼리",
        "버퍼 많이 쓰는 select",
        "오늘 실행된 쿼리 중 가장 느린 것",
        "top 10 cpu intensive queries last 7 days",
        "asdkjfh",
        "5000개",
    ],
)
def test_match_implies_non_empty_patch(text: str) -> None:
    query = _q(text)
    for rule in builtin_rules():
        if rule.matches(query):
            assert rule.apply(query).filters
