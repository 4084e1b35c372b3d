"""
Unit tests for package text parsing: pricing, inclusions, guests, duration,
restrictions, and platform detection.
"""

from __future__ import annotations

import pytest

from booking_explorer.models import DayPricing
from booking_explorer.package_parsing import (
    categorize_inclusion,
    detect_platform,
    parse_duration,
    parse_guest_config,
    parse_inclusions,
    parse_package_pricing,
    parse_restrictions,
)

# --- Pricing ---


def test_day_bands_replace_base_price():
    pricing = parse_package_pricing("Mon–Thu $30 per lane. Fri–Sun $45 per lane.")
    assert pricing.day_pricing == [DayPricing("Mon–Thu", "$30"), DayPricing("Fri–Sun", "$45")]
    assert pricing.base_price is None
    assert pricing.currency == "$"
    assert pricing.has_prices()


def test_comma_separated_prices_stay_clean():
    """A comma after a price is punctuation, not part of the amount."""
    pricing = parse_package_pricing("Mon–Thu $30, Fri–Sun $45")
    assert [(d.days, d.price) for d in pricing.day_pricing] == [("Mon–Thu", "$30"), ("Fri–Sun", "$45")]

    pricing = parse_package_pricing("Exclusive hire from £1,250, deposit of £250.")
    assert pricing.base_price == "£1,250"
    assert pricing.deposit_required == "£250"


def test_weekday_weekend_bands():
    pricing = parse_package_pricing("Weekdays: £20 | Weekends: £30")
    assert [(d.days, d.price) for d in pricing.day_pricing] == [("Weekdays", "£20"), ("Weekends", "£30")]
    assert pricing.currency == "£"


def test_claimed_prices_and_unclassified_notes():
    """Per-person, minimum spend and deposit claim their prices; leftovers become base or notes."""
    text = (
        "From £120 for 10 guests. £12 per person. Minimum spend £200. "
        "£50 deposit required. Upgrade to VIP for £40."
    )
    pricing = parse_package_pricing(text)
    assert pricing.base_price == "£120"
    assert pricing.per_person_price == "£12"
    assert pricing.minimum_spend == "£200"
    assert pricing.deposit_required == "£50"
    assert pricing.notes == ["Upgrade to VIP for £40"]


def test_deposit_after_keyword():
    pricing = parse_package_pricing("Deposit of $25 secures your date")
    assert pricing.deposit_required == "$25"
    assert pricing.base_price is None


def test_text_without_prices():
    pricing = parse_package_pricing("Call us for a quote", default_currency="€")
    assert not pricing.has_prices()
    assert pricing.currency == "€"


# --- Inclusions ---


def test_inclusion_phrases_with_quantities():
    text = "2 hours of bowling, 2 pizzas and 1 pitcher of soda. Shoe rental included."
    found = [(i.item, i.quantity, i.category) for i in parse_inclusions(text)]
    assert found == [
        ("2 hours of bowling", "2", "activity"),
        ("2 pizzas", "2", "food"),
        ("1 pitcher", "1", "drink"),
        ("Shoe rental", None, "equipment"),
    ]


def test_bullets_fill_in_without_duplicating_phrases():
    inclusions = parse_inclusions("• Private lane\n• Balloon arch")
    assert [(i.item, i.category) for i in inclusions] == [("Private lane", "service"), ("Balloon arch", "other")]


@pytest.mark.parametrize(
    "text,category",
    [("Laser tag game", "activity"), ("Nacho platter", "food"), ("Beer bucket", "drink"), ("100 prize tickets", "tickets")],
)
def test_categorize_inclusion(text, category):
    assert categorize_inclusion(text) == category


# --- Guests ---


def test_guest_configuration():
    text = (
        "Includes 10 guests. Minimum 6 guests, maximum 20 people. "
        "Additional guests £12 each. Adults (13+) £15, Children (3-12) £10"
    )
    config = parse_guest_config(text)
    assert config.included_guests == 10
    assert config.minimum_guests == 6
    assert config.maximum_guests == 20
    assert config.additional_guest_price == "£12"

    adults, children = config.guest_categories
    assert (adults.name, adults.age_range, adults.min, adults.max, adults.price) == ("Adults", "13+", 13, None, "£15")
    assert (children.name, children.min, children.max, children.price) == ("Children", 3, 12, "£10")


def test_additional_guest_price_gets_currency():
    config = parse_guest_config("Extra guests at 8.50", default_currency="£")
    assert config.additional_guest_price == "£8.50"


def test_guest_config_empty():
    assert parse_guest_config("Lots of fun for everyone").is_empty()


# --- Duration, restrictions ---


@pytest.mark.parametrize(
    "text,expected",
    [
        ("2hrs of bowling", "2 hours"),
        ("90 min session", "90 minutes"),
        ("Lasts 1 hour", "1 hour"),
        ("1.5 hours of play", "1.5 hours"),
        ("All day fun", None),
    ],
)
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


def test_parse_restrictions():
    text = "Ages 8 and up. Must be accompanied by an adult. Booking required."
    assert parse_restrictions(text) == ["Ages 8 and up", "Must be accompanied by an adult", "Booking required"]


# --- Platform ---


def test_detect_platform():
    assert detect_platform("https://fareharbor.com/embeds/book/bowl/", "") == "FareHarbor"
    assert detect_platform("https://bowl.roller.app/checkout", "") == "ROLLER"
    assert detect_platform("https://example.com/book", '<script src="/rex-booking.js"></script>') == "Rex"
    assert detect_platform("https://example.com/book", "<footer>Powered by Bookwhen</footer>") == "Bookwhen"
    assert detect_platform("https://example.com/book", "<p>Hello</p>") is None
