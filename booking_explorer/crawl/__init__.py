"""
Browser-layer helpers shared by the crawler, the flow explorer, and the package scraper.

This package holds the Playwright driver, URL and text utilities, the declarative
rule evaluators, and the action retry policy.

Public API: re-exports the symbols the rest of the explorer uses so that
`from booking_explorer.crawl import ...` stays valid.
"""

from __future__ import annotations

from booking_explorer.crawl.constants import (
    BOOKING_PATH_PATTERNS,
    NON_BOOKING_PRIORITY_PENALTY,
    URL_SKIP_RULES,
    USER_AGENT,
    VIEWPORT,
)
from booking_explorer.crawl.dom import (
    any_visible,
    element_text,
    find_by_text,
    first_text,
    first_visible,
    parse_int,
    visible_elements,
)
from booking_explorer.crawl.retry import ActionResult, RetryPolicy, run_with_retry
from booking_explorer.crawl.rules import Rule, RuleScore, compile_table, evaluate, first_match
from booking_explorer.crawl.text import (
    build_screenshot_path,
    clean_text,
    detect_currency,
    extract_price,
    format_duration,
    generate_id,
    normalize_package_name,
    slugify,
    utc_timestamp,
)
from booking_explorer.crawl.urls import (
    destination_key,
    get_site_host,
    is_booking_related_url,
    is_internal_url,
    normalize_url,
    should_skip_url,
    skip_reason,
)

__all__ = [
    # constants
    "BOOKING_PATH_PATTERNS",
    "NON_BOOKING_PRIORITY_PENALTY",
    "URL_SKIP_RULES",
    "USER_AGENT",
    "VIEWPORT",
    # dom
    "any_visible",
    "element_text",
    "find_by_text",
    "first_text",
    "first_visible",
    "parse_int",
    "visible_elements",
    # retry
    "ActionResult",
    "RetryPolicy",
    "run_with_retry",
    # rules
    "Rule",
    "RuleScore",
    "compile_table",
    "evaluate",
    "first_match",
    # text
    "build_screenshot_path",
    "clean_text",
    "detect_currency",
    "extract_price",
    "format_duration",
    "generate_id",
    "normalize_package_name",
    "slugify",
    "utc_timestamp",
    # urls
    "destination_key",
    "get_site_host",
    "is_booking_related_url",
    "is_internal_url",
    "normalize_url",
    "should_skip_url",
    "skip_reason",
]
