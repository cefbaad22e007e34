"""Parse a smart-search query from the command line.

Prints the response DTO as JSON (camelCase keys), or the SQL list page query string with
`--url-params`.
"""

from __future__ import annotations

import argparse
import json
from collections.abc import Sequence

from dotenv import load_dotenv

from src.app import create_app
from src.config.logging import configure_logging
from src.config.settings import load_settings
from src.search.smart_search import filters_to_query_string


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Interpret a smart-search query.")
    parser.add_argument("query", help='Free-text search, e.g. "최근 1시간 느린 쿼리 5개".')
    parser.add_argument(
        "--url-params",
        action="store_true",
        help="Print the SQL list page query string instead of the JSON response.",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point; returns the process exit code."""

    args = _build_parser().parse_args(argv)

    load_dotenv(".env")
    try:
        settings = load_settings()
    except RuntimeError as exc:
        print(exc)
        return 2

    configure_logging(args.log_level or settings.log_level)

    app = create_app(settings)
    response = app.use_case.search(args.query)

    if args.url_params:
        print(filters_to_query_string(response.filters))
    else:
        print(json.dumps(response.to_dict(), ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
