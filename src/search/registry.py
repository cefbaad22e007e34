"""Rule registry: holds parsing rules ordered by priority."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from src.search.query import SearchQuery
from src.search.rules import ParsingRule, builtin_rules

logger = logging.getLogger(__name__)


class RuleRegistry:
    """An ordered collection of parsing rules, highest priority first.

    Rules are identified by `name`; registering a second rule with the same name is a no-op. Rules
    with equal priority keep their registration order.
    """

    def __init__(self, rules: Iterable[ParsingRule] = ()) -> None:
        self._rules: list[ParsingRule] = []
        self.register_all(rules)

    def register(self, rule: ParsingRule) -> None:
        if any(existing.name == rule.name for existing in self._rules):
            logger.debug("rule already registered name=%s", rule.name)
            return
        self._rules.append(rule)
        self._rules.sort(key=lambda r: r.priority, reverse=True)

    def register_all(self, rules: Iterable[ParsingRule]) -> None:
        for rule in rules:
            self.register(rule)

    def get_rules(self) -> list[ParsingRule]:
        return list(self._rules)

    def get_matching_rules(self, query: SearchQuery) -> list[ParsingRule]:
        return [rule for rule in self._rules if rule.matches(query)]

    def clear(self) -> None:
        self._rules.clear()

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"RuleRegistry({', '.join(rule.name for rule in self._rules)})"


_default_registry: RuleRegistry | None = None


def get_default_registry() -> RuleRegistry:
    """Return the process-wide registry, creating it with the built-in rules on first use."""

    global _default_registry
    if _default_registry is None:
        _default_registry = RuleRegistry(builtin_rules())
        logger.debug("default rule registry created rules=%d", len(_default_registry))
    return _default_registry


def reset_default_registry() -> None:
    """Forget the process-wide registry (tests only)."""

    global _default_registry
    _default_registry = None
