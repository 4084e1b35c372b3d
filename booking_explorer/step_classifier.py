"""
Step-type classification from DOM shape.

STEP_RULES is an ordered table: the first rule whose probes all match names
the step. A Probe matches when any of its selectors is visible, or its text
pattern appears in the page body, or its URL pattern matches the page URL.
Probe results are cached per classification so each selector is queried once.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from booking_explorer.capabilities import BrowserPage
from booking_explorer.constants import (
    ADDON_SELECTORS,
    CALENDAR_SELECTORS,
    CONFIRMATION_TEXT,
    CONFIRMATION_URL,
    DETAILS_FORM_SELECTORS,
    ENQUIRY_SELECTORS,
    ENQUIRY_TEXT,
    GROUP_SIZE_SELECTORS,
    PAYMENT_SELECTORS,
    PAYMENT_TEXT,
    PAYMENT_URL,
    PRODUCT_SELECTORS,
    REVIEW_SELECTORS,
    REVIEW_TEXT,
    STEP_DESCRIPTIONS,
    STEP_HEADING_SELECTORS,
    TIME_SLOT_SELECTORS,
)
from booking_explorer.crawl.dom import any_visible, first_text
from booking_explorer.models import StepType


@dataclass(frozen=True)
class Probe:
    name: str
    selectors: tuple[str, ...] = ()
    text: Optional[re.Pattern[str]] = None
    url: Optional[re.Pattern[str]] = None


@dataclass(frozen=True)
class StepRule:
    step_type: StepType
    all_of: tuple[Probe, ...]
    none_of: tuple[Probe, ...] = ()


PAYMENT = Probe("payment", PAYMENT_SELECTORS, PAYMENT_TEXT, PAYMENT_URL)
CONFIRMATION = Probe("confirmation", text=CONFIRMATION_TEXT, url=CONFIRMATION_URL)
ENQUIRY = Probe("enquiry", ENQUIRY_SELECTORS, ENQUIRY_TEXT)
CALENDAR = Probe("calendar", CALENDAR_SELECTORS)
TIME_SLOTS = Probe("time_slots", TIME_SLOT_SELECTORS)
GROUP_SIZE = Probe("group_size", GROUP_SIZE_SELECTORS)
ADD_ONS = Probe("add_ons", ADDON_SELECTORS)
DETAILS_FORM = Probe("details_form", DETAILS_FORM_SELECTORS)
REVIEW = Probe("review", REVIEW_SELECTORS, REVIEW_TEXT)
PRODUCTS = Probe("products", PRODUCT_SELECTORS)

STEP_RULES: tuple[StepRule, ...] = (
    StepRule("payment", (PAYMENT,)),
    StepRule("confirmation", (CONFIRMATION,)),
    # An enquiry wording next to a calendar is still a booking step.
    StepRule("enquiry_form", (ENQUIRY, DETAILS_FORM), none_of=(CALENDAR, TIME_SLOTS)),
    StepRule("datetime_selection", (CALENDAR, TIME_SLOTS)),
    StepRule("date_selection", (CALENDAR,)),
    StepRule("time_selection", (TIME_SLOTS,)),
    StepRule("group_size_selection", (GROUP_SIZE,)),
    StepRule("addon_selection", (ADD_ONS,)),
    StepRule("details_form", (DETAILS_FORM,)),
    StepRule("review_summary", (REVIEW,)),
    StepRule("product_selection", (PRODUCTS,)),
)


class _ProbeCache:
    def __init__(self, page: BrowserPage) -> None:
        self._page = page
        self._results: dict[str, bool] = {}
        self._body: Optional[str] = None

    async def _body_text(self) -> str:
        if self._body is None:
            self._body = await self._page.body_text()
        return self._body

    async def matches(self, probe: Probe) -> bool:
        if probe.name not in self._results:
            self._results[probe.name] = await self._evaluate(probe)
        return self._results[probe.name]

    async def _evaluate(self, probe: Probe) -> bool:
        if probe.selectors and await any_visible(self._page, probe.selectors):
            return True
        if probe.text is not None and probe.text.search(await self._body_text()):
            return True
        return bool(probe.url is not None and probe.url.search(self._page.url))


async def classify_step(page: BrowserPage, rules: tuple[StepRule, ...] = STEP_RULES) -> StepType:
    cache = _ProbeCache(page)
    for rule in rules:
        if not all([await cache.matches(p) for p in rule.all_of]):
            continue
        if any([await cache.matches(p) for p in rule.none_of]):
            continue
        return rule.step_type
    return "unknown"


async def describe_step(page: BrowserPage, step_type: StepType) -> str:
    """Human-readable step description, with the page heading when there is one."""
    base = STEP_DESCRIPTIONS.get(step_type, STEP_DESCRIPTIONS["unknown"])
    heading = await first_text(page, STEP_HEADING_SELECTORS, min_len=2, max_len=120)
    return f"{base}: {heading}" if heading else base
