"""
Booking trigger detection and page probes.

Triggers are scored by a weighted rule set (TRIGGER_RULES) over signals read
once per element (ElementSignals). Probes answer yes/no questions about the
current page: is it a booking widget, a payment page, a confirmation page,
does it offer a large-group path.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from booking_explorer.capabilities import BrowserPage, ElementHandle
from booking_explorer.constants import (
    BOOKING_KEYWORDS,
    BOOKING_PAGE_PHRASES,
    CLICKABLE_ROLES,
    CLICKABLE_TAGS,
    CONFIRMATION_TEXT,
    CONFIRMATION_URL,
    DATA_ATTRIBUTE_PATTERNS,
    LARGE_GROUP_ELEMENT_INDICATORS,
    LARGE_GROUP_TEXT_INDICATORS,
    MAX_TRIGGER_TEXT_LENGTH,
    PAYMENT_SELECTORS,
    PAYMENT_TEXT,
    PAYMENT_URL,
    STATE_CLASS_PATTERN,
    TRIGGER_CONFIDENCE_FLOOR,
    TRIGGER_SELECTORS,
    TRIGGER_URL_PATTERNS,
    TRIGGER_WEIGHTS,
    WIDGET_CONTAINER_SELECTOR,
    WIDGET_INDICATOR_SELECTORS,
)
from booking_explorer.crawl.dom import any_visible, find_by_text
from booking_explorer.crawl.rules import Rule, any_pattern, evaluate
from booking_explorer.crawl.text import clean_text, generate_id
from booking_explorer.models import BookingTrigger, LargeGroupIndicator, TriggerType
from shared.logging import get_logger

logger = get_logger(__name__)

_CSS_IDENT = re.compile(r"^[A-Za-z_][\w-]*$")
_TEST_ID_ATTRIBUTES = ("data-testid", "data-test", "data-cy")


@dataclass
class ElementSignals:
    """Everything the trigger rules look at, read once per element."""

    text: str
    tag_name: str
    attributes: dict[str, str] = field(default_factory=dict)
    bounding_box: Optional[dict[str, float]] = None
    in_widget_container: bool = False

    @property
    def lower_text(self) -> str:
        return self.text.lower()

    @property
    def href(self) -> Optional[str]:
        return self.attributes.get("href") or None

    @property
    def data_attributes(self) -> dict[str, str]:
        return {k: v for k, v in self.attributes.items() if k.startswith("data-")}


def _has_exact_keyword(s: ElementSignals) -> bool:
    return s.lower_text in BOOKING_KEYWORDS


def _has_partial_keyword(s: ElementSignals) -> bool:
    return any(kw in s.lower_text for kw in BOOKING_KEYWORDS)


def _has_booking_data_attribute(s: ElementSignals) -> bool:
    pairs = [f"{k}={v}" for k, v in s.data_attributes.items()]
    return any(any_pattern(DATA_ATTRIBUTE_PATTERNS, pair) for pair in pairs)


def _has_booking_href(s: ElementSignals) -> bool:
    return any_pattern(TRIGGER_URL_PATTERNS, s.href)


def _is_clickable_tag(s: ElementSignals) -> bool:
    return s.tag_name in CLICKABLE_TAGS or s.attributes.get("role") in CLICKABLE_ROLES


def _is_prominent(s: ElementSignals) -> bool:
    box = s.bounding_box
    if not box:
        return False
    is_large = box.get("width", 0) > 100 and box.get("height", 0) > 30
    is_centered = 200 < box.get("x", 0) < 1000
    return is_large and is_centered


TRIGGER_RULES: tuple[Rule[ElementSignals], ...] = (
    Rule("exact_keyword", TRIGGER_WEIGHTS["exact_keyword"], _has_exact_keyword),
    Rule("partial_keyword", TRIGGER_WEIGHTS["partial_keyword"], _has_partial_keyword),
    Rule("data_attribute", TRIGGER_WEIGHTS["data_attribute"], _has_booking_data_attribute),
    Rule("url_pattern", TRIGGER_WEIGHTS["url_pattern"], _has_booking_href),
    Rule("suitable_tag", TRIGGER_WEIGHTS["suitable_tag"], _is_clickable_tag),
    Rule("widget_container", TRIGGER_WEIGHTS["widget_container"], lambda s: s.in_widget_container),
    Rule("prominent_placement", TRIGGER_WEIGHTS["prominent_placement"], _is_prominent),
)


def score_signals(signals: ElementSignals) -> float:
    return evaluate(TRIGGER_RULES, signals).score


def _css_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def build_selector(tag_name: str, attributes: dict[str, str], text: str) -> str:
    """
    Most specific selector for an element, from its attributes.

    Preference: #id > [data-testid] > tag[data-*] > tag.classes:has-text("...") > tag.classes.
    """
    element_id = attributes.get("id", "").strip()
    if element_id:
        if _CSS_IDENT.match(element_id):
            return f"#{element_id}"
        return f'[id="{_css_string(element_id)}"]'

    for name in _TEST_ID_ATTRIBUTES:
        value = attributes.get(name, "").strip()
        if value:
            return f'[{name}="{_css_string(value)}"]'

    tag = tag_name or "*"
    for name, value in attributes.items():
        if name.startswith("data-") and any_pattern(DATA_ATTRIBUTE_PATTERNS, name):
            return f'{tag}[{name}="{_css_string(value)}"]' if value else f"{tag}[{name}]"

    classes = [
        c for c in attributes.get("class", "").split()
        if _CSS_IDENT.match(c) and not STATE_CLASS_PATTERN.match(c)
    ][:3]
    base = tag + "".join(f".{c}" for c in classes)
    if tag in ("a", "button") and text:
        return f'{base}:has-text("{_css_string(text[:30])}")'
    return base


def selector_specificity(selector: str) -> int:
    if selector.startswith("#") or selector.startswith("[id="):
        return 3
    if any(selector.startswith(f"[{name}=") for name in _TEST_ID_ATTRIBUTES):
        return 2
    if "[data-" in selector:
        return 1
    return 0


def trigger_type_for(tag_name: str, attributes: dict[str, str]) -> TriggerType:
    if tag_name == "a":
        return "link"
    if tag_name in ("button", "input") or attributes.get("role") == "button":
        return "button"
    if tag_name == "form":
        return "form"
    if any(k.startswith("data-") for k in attributes):
        return "widget"
    return "unknown"


async def read_signals(element: ElementHandle) -> Optional[ElementSignals]:
    """Signals for a visible element; None when hidden."""
    if not await element.is_visible():
        return None
    attributes = await element.attributes()
    tag_name = (await element.tag_name()).lower()
    text = clean_text(await element.text())
    if not text and tag_name == "input":
        text = clean_text(attributes.get("value") or "")
    return ElementSignals(
        text=text,
        tag_name=tag_name,
        attributes=attributes,
        bounding_box=await element.bounding_box(),
        in_widget_container=await element.has_ancestor(WIDGET_CONTAINER_SELECTOR),
    )


async def analyze_element(element: ElementHandle, source_url: str) -> Optional[BookingTrigger]:
    """Score one element; a BookingTrigger when it clears the confidence floor."""
    signals = await read_signals(element)
    if signals is None:
        return None
    if not signals.text or len(signals.text) > MAX_TRIGGER_TEXT_LENGTH:
        return None

    confidence = score_signals(signals)
    if confidence < TRIGGER_CONFIDENCE_FLOOR:
        return None

    return BookingTrigger(
        id=generate_id(),
        text=signals.text,
        selector=build_selector(signals.tag_name, signals.attributes, signals.text),
        tag_name=signals.tag_name,
        source_url=source_url,
        href=signals.href,
        confidence=confidence,
        data_attributes=signals.data_attributes,
        trigger_type=trigger_type_for(signals.tag_name, signals.attributes),
    )


def _identity(trigger: BookingTrigger) -> tuple[str, str, str]:
    return (trigger.tag_name, trigger.text.lower(), trigger.href or "")


def resolve_overlaps(triggers: list[BookingTrigger]) -> list[BookingTrigger]:
    """
    One trigger per element identity (tag, text, href).

    Keeps the highest confidence; on ties, the most specific selector.
    Result is sorted by confidence, highest first.
    """
    best: dict[tuple[str, str, str], BookingTrigger] = {}
    for trigger in triggers:
        key = _identity(trigger)
        current = best.get(key)
        if current is None:
            best[key] = trigger
            continue
        rank = (trigger.confidence, selector_specificity(trigger.selector))
        current_rank = (current.confidence, selector_specificity(current.selector))
        if rank > current_rank:
            best[key] = trigger
    return sorted(best.values(), key=lambda t: t.confidence, reverse=True)


async def detect_booking_triggers(page: BrowserPage, source_url: str) -> list[BookingTrigger]:
    """All booking triggers on the loaded page, most confident first."""
    found: list[BookingTrigger] = []
    for selector in TRIGGER_SELECTORS:
        for element in await page.query_all(selector):
            trigger = await analyze_element(element, source_url)
            if trigger is not None:
                found.append(trigger)
    triggers = resolve_overlaps(found)
    logger.debug("detect.triggers", source_url=source_url, candidates=len(found), triggers=len(triggers))
    return triggers


# --- Page probes ---


async def detect_booking_widget(page: BrowserPage) -> bool:
    if await any_visible(page, WIDGET_INDICATOR_SELECTORS):
        return True
    return any_pattern(BOOKING_PAGE_PHRASES, await page.body_text())


async def is_booking_landing_page(page: BrowserPage) -> bool:
    if any_pattern(TRIGGER_URL_PATTERNS, page.url):
        return True
    return await detect_booking_widget(page)


async def detect_large_group_indicators(page: BrowserPage) -> LargeGroupIndicator:
    body = await page.body_text()
    for pattern, label in LARGE_GROUP_TEXT_INDICATORS:
        if pattern.search(body):
            return LargeGroupIndicator(has_large_group_option=True, indicator=label)
    for selector, pattern, label in LARGE_GROUP_ELEMENT_INDICATORS:
        if await find_by_text(page, (selector,), pattern):
            return LargeGroupIndicator(has_large_group_option=True, indicator=label)
    return LargeGroupIndicator(has_large_group_option=False)


async def is_payment_page(page: BrowserPage) -> bool:
    if await any_visible(page, PAYMENT_SELECTORS):
        return True
    if PAYMENT_TEXT.search(await page.body_text()):
        return True
    return bool(PAYMENT_URL.search(page.url))


async def is_confirmation_page(page: BrowserPage) -> bool:
    if CONFIRMATION_TEXT.search(await page.body_text()):
        return True
    return bool(CONFIRMATION_URL.search(page.url))
