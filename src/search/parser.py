"""Query parser service: run the matching rules and merge their patches into one intent.

Merge policy:
    - rules are applied in priority order and the first rule to set a field keeps it,
    - `sort_by` and `sort_order` are merged as a pair,
    - a bound that would invert an existing min/max pair is dropped,
    - confidence is capped by both the number of applied rules and the weakest rule's confidence.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from src.search.query import SearchQuery
from src.search.registry import RuleRegistry, get_default_registry
from src.search.rules import ParsingRule, RuleApplicationError, RulePatch
from src.search.schema import (
    Confidence,
    MatchedRule,
    ParsedIntent,
    SearchFilters,
    inverts_range,
)

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE_THRESHOLD = 0.85
MEDIUM_CONFIDENCE_THRESHOLD = 0.6

_SORT_FIELDS = ("sort_by", "sort_order")
_CONFIDENCE_RANK: dict[Confidence, int] = {
    Confidence.low: 0,
    Confidence.medium: 1,
    Confidence.high: 2,
}


def confidence_level(value: float) -> Confidence:
    """Bucket a numeric rule confidence."""

    if value >= HIGH_CONFIDENCE_THRESHOLD:
        return Confidence.high
    if value >= MEDIUM_CONFIDENCE_THRESHOLD:
        return Confidence.medium
    return Confidence.low


def combine_confidence(rule_confidences: list[float]) -> Confidence:
    """Overall confidence for a set of applied rules.

    One rule caps the result at medium, two or more allow high; the weakest rule caps it too. Any
    applied rule lifts the result to at least medium.
    """

    if not rule_confidences:
        return Confidence.low

    band = Confidence.high if len(rule_confidences) >= 2 else Confidence.medium
    level = confidence_level(min(rule_confidences))
    combined = min(band, level, key=_CONFIDENCE_RANK.__getitem__)
    if combined == Confidence.low:
        return Confidence.medium
    return combined


def _merge_patch(merged: dict[str, Any], patch_filters: dict[str, Any]) -> bool:
    """Merge one validated patch into `merged`; return whether any field was taken."""

    taken = False
    if "sort_by" in patch_filters and all(merged.get(f) is None for f in _SORT_FIELDS):
        for field in _SORT_FIELDS:
            merged[field] = patch_filters[field]
        taken = True

    for field, value in patch_filters.items():
        if field in _SORT_FIELDS or merged.get(field) is not None:
            continue
        if inverts_range(merged, field, value):
            logger.debug("patch field dropped field=%s reason=inverted_range", field)
            continue
        merged[field] = value
        taken = True
    return taken


class QueryParserService:
    """Turn a `SearchQuery` into a `ParsedIntent` using the registered rules."""

    def __init__(self, registry: RuleRegistry | None = None) -> None:
        self._registry = registry if registry is not None else get_default_registry()

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    @property
    def rule_count(self) -> int:
        return len(self._registry)

    def add_rule(self, rule: ParsingRule) -> None:
        self._registry.register(rule)

    def can_handle(self, query: SearchQuery) -> bool:
        return any(rule.matches(query) for rule in self._registry.get_rules())

    def parse(self, query: SearchQuery) -> ParsedIntent:
        matching = self._registry.get_matching_rules(query)
        if not matching:
            logger.debug("no matching rules query=%r", query.raw_input)
            return ParsedIntent.create_default(query.raw_input)

        merged: dict[str, Any] = {}
        fragments: list[str] = []
        matched_rules: list[MatchedRule] = []
        for rule in matching:
            try:
                patch, patch_filters = self._apply(rule, query)
            except RuleApplicationError:
                logger.warning("rule skipped rule=%s", rule.name, exc_info=True)
                continue

            if not _merge_patch(merged, patch_filters):
                logger.debug("rule contributed nothing new rule=%s", rule.name)
                continue

            if patch.interpretation and patch.interpretation not in fragments:
                fragments.append(patch.interpretation)
            matched_rules.append(
                MatchedRule(
                    rule_name=rule.name,
                    matched_keywords=patch.matched_keywords,
                    confidence=patch.confidence,
                )
            )

        if not matched_rules:
            return ParsedIntent.create_default(query.raw_input)

        confidence = combine_confidence([r.confidence for r in matched_rules])
        intent = ParsedIntent(
            filters=SearchFilters.model_validate(merged),
            interpretation=f"{', '.join(fragments)} 검색",
            suggestions=(),
            confidence=confidence,
            matched_rules=tuple(matched_rules),
        )
        logger.debug(
            "query parsed rules=%s confidence=%s",
            ",".join(r.rule_name for r in matched_rules),
            confidence,
        )
        return intent

    @staticmethod
    def _apply(rule: ParsingRule, query: SearchQuery) -> tuple[RulePatch, dict[str, Any]]:
        """Apply one rule and validate its filters against `SearchFilters`.

        Returns:
            The patch and its validated filters (field names, absent fields omitted).

        Raises:
            RuleApplicationError: If the rule fails or yields filters outside the allowed bounds.
        """

        try:
            patch = rule.apply(query)
            filters = SearchFilters.model_validate(dict(patch.filters))
        except RuleApplicationError:
            raise
        except (ValidationError, ValueError, TypeError, KeyError) as exc:
            raise RuleApplicationError(rule.name, str(exc)) from exc
        return patch, filters.model_dump(exclude_none=True)
