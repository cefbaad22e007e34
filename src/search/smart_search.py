"""Smart-search use case: free text in, structured filters out.

The use case boundary never raises. Empty input, input no rule understands, and unexpected
failures all degrade to a low-confidence default intent with example suggestions.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

from pydantic import ValidationError

from src.search.parser import QueryParserService
from src.search.query import QueryValidationError, SearchQuery
from src.search.schema import (
    ParsedIntent,
    SearchFilters,
    SmartSearchRequest,
    SmartSearchResponse,
    format_number,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_QUERY_LENGTH = 500
UNINTERPRETABLE_MESSAGE = "검색어를 해석할 수 없습니다."

# (filter field, URL parameter) in the order the SQL list page reads them.
URL_PARAM_KEYS: tuple[tuple[str, str], ...] = (
    ("sql_pattern", "pattern"),
    ("time_range", "time_range"),
    ("sort_by", "order_by"),
    ("sort_order", "order"),
    ("limit", "limit"),
    ("min_elapsed_time", "min_elapsed_time"),
    ("max_elapsed_time", "max_elapsed_time"),
    ("min_buffer_gets", "min_buffer_gets"),
    ("max_buffer_gets", "max_buffer_gets"),
    ("min_executions", "min_executions"),
    ("schema_name", "schema"),
)


class SmartSearchUseCase:
    """Parse a smart-search request into a response DTO."""

    def __init__(
            self,
            parser: QueryParserService,
            *,
            max_query_length: int = DEFAULT_MAX_QUERY_LENGTH,
    ) -> None:
        if max_query_length < 1:
            raise ValueError("max_query_length must be >= 1")
        self._parser = parser
        self._max_query_length = max_query_length

    def execute(self, request: SmartSearchRequest | Mapping[str, Any]) -> SmartSearchResponse:
        started = time.monotonic()

        if not isinstance(request, SmartSearchRequest):
            try:
                request = SmartSearchRequest.model_validate(dict(request))
            except ValidationError:
                logger.info("smart search request invalid; treating query as empty")
                request = SmartSearchRequest()
        raw_query = request.query or ""

        intent = self._interpret(raw_query)

        elapsed_ms = max(0, int((time.monotonic() - started) * 1000))
        logger.info(
            "smart search parsed rules=%d confidence=%s latency_ms=%d",
            intent.rule_count,
            intent.confidence,
            elapsed_ms,
        )
        return SmartSearchResponse.from_intent(raw_query, intent, processing_time_ms=elapsed_ms)

    def search(self, text: str) -> SmartSearchResponse:
        return self.execute(SmartSearchRequest(query=text))

    def _interpret(self, raw_query: str) -> ParsedIntent:
        text = raw_query
        if len(text) > self._max_query_length:
            logger.info(
                "smart search query truncated length=%d max=%d",
                len(text),
                self._max_query_length,
            )
            text = text[: self._max_query_length]

        try:
            query = SearchQuery.create(text)
        except QueryValidationError as exc:
            logger.debug("smart search rejected kind=%s", exc.kind)
            return ParsedIntent.create_default(raw_query, interpretation=UNINTERPRETABLE_MESSAGE)

        # `parse` returns the default intent itself when no rule matches.
        try:
            intent = self._parser.parse(query)
        except Exception:
            logger.exception("smart search parse failed")
            return ParsedIntent.create_default(raw_query, interpretation=UNINTERPRETABLE_MESSAGE)

        if not intent.matched_rules:
            return ParsedIntent.create_default(raw_query)
        return intent


def filters_to_url_params(filters: SearchFilters) -> list[tuple[str, str]]:
    """Map filters to the SQL list page's query parameters.

    Only present fields produce a parameter; `ai_search=true` is always appended last.
    """

    params: list[tuple[str, str]] = []
    for field, key in URL_PARAM_KEYS:
        value = getattr(filters, field)
        if value is None:
            continue
        rendered = format_number(value) if isinstance(value, (int, float)) else str(value)
        params.append((key, rendered))
    params.append(("ai_search", "true"))
    return params


def filters_to_query_string(filters: SearchFilters) -> str:
    return urlencode(filters_to_url_params(filters))
