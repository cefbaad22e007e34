"""Application composition root.

This module wires together configuration, the rule registry, the parser and the smart-search use
case.
"""

from __future__ import annotations

from dataclasses import dataclass

from src.config.settings import Settings
from src.search.parser import QueryParserService
from src.search.registry import RuleRegistry, get_default_registry
from src.search.smart_search import SmartSearchUseCase


@dataclass(frozen=True)
class App:
    """Shared application dependencies for entrypoints."""

    settings: Settings
    use_case: SmartSearchUseCase


def create_app(settings: Settings, *, registry: RuleRegistry | None = None) -> App:
    """Create the application container.

    Note:
        Without an explicit `registry` the process-wide default registry (built-in rules) is used.
    """

    parser = QueryParserService(registry if registry is not None else get_default_registry())
    use_case = SmartSearchUseCase(parser, max_query_length=settings.max_query_length)
    return App(settings=settings, use_case=use_case)
