"""
Unit tests for trigger scoring, selector building, overlap resolution, and page probes.
"""

from __future__ import annotations

import pytest

from booking_explorer.detectors import (
    ElementSignals,
    analyze_element,
    build_selector,
    detect_booking_triggers,
    detect_booking_widget,
    detect_large_group_indicators,
    is_booking_landing_page,
    is_confirmation_page,
    is_payment_page,
    resolve_overlaps,
    score_signals,
    selector_specificity,
    trigger_type_for,
)
from booking_explorer.models import BookingTrigger
from booking_explorer.tests.fakes import FakeDocument, FakeElement, FakePage, FakeSite

SOURCE = "https://example.com/"
PROMINENT = {"x": 400, "y": 200, "width": 180, "height": 48}


def _page(document: FakeDocument, url: str = SOURCE) -> FakePage:
    return FakePage(FakeSite({url: document}), url=url)


# --- Scoring ---


def test_exact_keyword_link_scores_all_text_and_href_signals():
    """'Book Now' link to /book: exact + partial + url + tag."""
    signals = ElementSignals(text="Book Now", tag_name="a", attributes={"href": "/book"})
    assert score_signals(signals) == pytest.approx(0.8)


def test_every_signal_together_is_clamped():
    signals = ElementSignals(
        text="Book now",
        tag_name="button",
        attributes={"data-booking": "open"},
        bounding_box=PROMINENT,
        in_widget_container=True,
    )
    assert score_signals(signals) == 1.0


def test_plain_nav_link_is_below_floor():
    signals = ElementSignals(text="About us", tag_name="a", attributes={"href": "/about"})
    assert score_signals(signals) < 0.3


def test_partial_keyword_in_button_text():
    """'Book your party' is partial only: 0.2 + tag 0.05 + prominence 0.05."""
    signals = ElementSignals(text="Book your party", tag_name="button", bounding_box=PROMINENT)
    assert score_signals(signals) == pytest.approx(0.3)


# --- Selectors ---


def test_build_selector_prefers_id_then_test_id():
    assert build_selector("a", {"id": "book-now", "class": "btn"}, "Book") == "#book-now"
    assert build_selector("a", {"id": "2fast"}, "Book") == '[id="2fast"]'
    assert build_selector("button", {"data-testid": "cta"}, "Book") == '[data-testid="cta"]'


def test_build_selector_uses_booking_data_attribute():
    assert build_selector("div", {"data-booking": "party"}, "Book") == 'div[data-booking="party"]'


def test_build_selector_text_fallback_drops_state_classes():
    selector = build_selector("a", {"class": "btn active btn-primary"}, "Book Now")
    assert selector == 'a.btn.btn-primary:has-text("Book Now")'


def test_selector_specificity_order():
    assert selector_specificity("#x") > selector_specificity('[data-testid="x"]')
    assert selector_specificity('[data-testid="x"]') > selector_specificity('div[data-book="1"]')
    assert selector_specificity('div[data-book="1"]') > selector_specificity("a.btn")


def test_trigger_type_for():
    assert trigger_type_for("a", {}) == "link"
    assert trigger_type_for("div", {"role": "button"}) == "button"
    assert trigger_type_for("form", {}) == "form"
    assert trigger_type_for("div", {"data-booking": "1"}) == "widget"
    assert trigger_type_for("span", {}) == "unknown"


# --- Element analysis ---


@pytest.mark.asyncio
async def test_analyze_element_builds_trigger():
    element = FakeElement("a", " Book Now ", {"href": "/book", "id": "hero-book", "data-book": "lane"})
    trigger = await analyze_element(element, SOURCE)
    assert trigger is not None
    assert trigger.text == "Book Now"
    assert trigger.selector == "#hero-book"
    assert trigger.href == "/book"
    assert trigger.data_attributes == {"data-book": "lane"}
    assert trigger.trigger_type == "link"
    assert 0.3 <= trigger.confidence <= 1.0


@pytest.mark.asyncio
async def test_analyze_element_rejects_hidden_and_long_text():
    hidden = FakeElement("a", "Book Now", {"href": "/book"}, visible=False)
    long_text = FakeElement("a", "Book " + "x" * 120, {"href": "/book"})
    assert await analyze_element(hidden, SOURCE) is None
    assert await analyze_element(long_text, SOURCE) is None


@pytest.mark.asyncio
async def test_analyze_element_reads_submit_input_value():
    element = FakeElement("input", "", {"type": "submit", "value": "Reserve"})
    trigger = await analyze_element(element, SOURCE)
    assert trigger is not None
    assert trigger.text == "Reserve"
    assert trigger.trigger_type == "button"


def _trigger(selector: str, confidence: float, text: str = "Book Now") -> BookingTrigger:
    return BookingTrigger(
        id=selector, text=text, selector=selector, tag_name="a",
        source_url=SOURCE, href="/book", confidence=confidence,
    )


def test_resolve_overlaps_keeps_most_specific_on_tie():
    """Same element matched twice: equal confidence keeps the #id selector."""
    generic = _trigger('a.btn:has-text("Book Now")', 0.8)
    specific = _trigger("#book", 0.8)
    other = _trigger("#tickets", 0.6, text="Tickets")
    resolved = resolve_overlaps([generic, other, specific])
    assert [t.selector for t in resolved] == ["#book", "#tickets"]


def test_resolve_overlaps_prefers_higher_confidence():
    low = _trigger("#book", 0.5)
    high = _trigger("a.cta", 0.9)
    assert resolve_overlaps([low, high]) == [high]


@pytest.mark.asyncio
async def test_detect_booking_triggers_collapses_element_found_by_two_selectors():
    document = FakeDocument()
    button = FakeElement("button", "Book now", {"class": "book-btn"}, box=PROMINENT)
    document.add(button, "button", ".book-btn")
    document.add(FakeElement("button", "Menu"), "button")
    triggers = await detect_booking_triggers(_page(document), SOURCE)
    assert len(triggers) == 1
    assert triggers[0].text == "Book now"
    assert triggers[0].source_url == SOURCE


# --- Page probes ---


@pytest.mark.asyncio
async def test_booking_widget_and_landing_page():
    widget = FakeDocument()
    widget.add(FakeElement("div"), ".calendar")
    assert await detect_booking_widget(_page(widget))

    phrases = FakeDocument(body="Choose your date and party package")
    assert await detect_booking_widget(_page(phrases))

    plain = FakeDocument(body="Welcome to our venue")
    assert not await detect_booking_widget(_page(plain))
    assert await is_booking_landing_page(_page(plain, "https://example.com/book"))
    assert not await is_booking_landing_page(_page(plain, "https://example.com/about"))


@pytest.mark.asyncio
async def test_large_group_indicators():
    text = FakeDocument(body="Groups of 16+ please enquire")
    assert (await detect_large_group_indicators(_page(text))).indicator == "16+"

    option = FakeDocument(body="Party size")
    option.add(FakeElement("option", "16+"), "option")
    found = await detect_large_group_indicators(_page(option))
    assert found.has_large_group_option
    assert found.indicator == "16+ dropdown"

    none = await detect_large_group_indicators(_page(FakeDocument(body="Lanes for up to 6")))
    assert not none.has_large_group_option


@pytest.mark.asyncio
async def test_payment_and_confirmation_probes():
    card = FakeDocument()
    card.add(FakeElement("input", attrs={"name": "cardnumber"}), 'input[name*="card"]')
    assert await is_payment_page(_page(card))
    assert await is_payment_page(_page(FakeDocument(body="Enter your card number")))
    assert await is_payment_page(_page(FakeDocument(), "https://example.com/checkout"))
    assert not await is_payment_page(_page(FakeDocument(body="Pick a time")))

    assert await is_confirmation_page(_page(FakeDocument(body="Thank you! Booking confirmed.")))
    assert await is_confirmation_page(_page(FakeDocument(), "https://example.com/booking/confirmation"))
    assert not await is_confirmation_page(_page(FakeDocument(body="Pick a time")))
