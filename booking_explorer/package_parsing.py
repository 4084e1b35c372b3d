"""
Pure text parsers for package cards and detail views.

Pricing (base, per-person, day-of-week bands, minimum spend, deposit),
inclusions, guest limits, duration, restrictions, and booking-platform
detection. No browser access; the package scraper feeds these with element
and page text.
"""

from __future__ import annotations

import re
from typing import Optional

from booking_explorer.constants import INCLUSION_CATEGORY_TABLE
from booking_explorer.crawl.rules import compile_table, first_match
from booking_explorer.crawl.text import AMOUNT, clean_text, detect_currency
from booking_explorer.models import (
    DayPricing,
    GuestCategory,
    GuestConfiguration,
    InclusionCategory,
    PackageInclusion,
    PackagePricing,
)

PRICE = rf"[$£€]\s?{AMOUNT}"
_PRICE_RE = re.compile(PRICE)
_DAY = (
    r"(?:Monday|Tuesday|Wednesday|Thursday|Friday|Saturday|Sunday|"
    r"Mon|Tues?|Wed|Thu(?:rs?)?|Fri|Sat|Sun)"
)
# "Mon–Thu $30", "Friday to Sunday: £45", "Sat £50"
DAY_BAND_RE = re.compile(
    rf"\b({_DAY})\b(?:\s*(?:-|–|—|to)\s*({_DAY})\b)?\s*[:\s]?\s*[-–—]?\s*({PRICE})",
    re.I,
)
WEEKPART_RE = re.compile(rf"\b(week\s*days?|week\s*ends?)\b\s*[:\s]?\s*[-–—]?\s*({PRICE})", re.I)
PER_PERSON_RE = re.compile(
    rf"({PRICE})\s*(?:(?:per|/|a)\s*(?:person|guest|player|head|pax)|pp\b|p/p\b)",
    re.I,
)
MIN_SPEND_RE = re.compile(rf"(?:minimum|min\.?)\s*spend\s*(?:of\s*)?[:\s]*({PRICE})", re.I)
DEPOSIT_RE = re.compile(
    rf"(?:({PRICE})\s*(?:non-refundable\s*)?deposit|deposit\s*(?:of|required|:)?\s*(?:of\s*)?({PRICE}))",
    re.I,
)
_SEGMENT_SPLIT = re.compile(r"(?<=[.;|•])\s+|\n+")

_INCLUSION_CATEGORIES = compile_table(INCLUSION_CATEGORY_TABLE)

INCLUSION_PATTERNS: tuple[tuple[re.Pattern[str], InclusionCategory], ...] = tuple(
    (re.compile(p, re.I), c)
    for p, c in (
        (r"(\d+)\s*(?:hr|hour)s?\s*(?:of\s*)?(bowling|bowl)", "activity"),
        (r"(bowling|bowl)\s*(?:for)?\s*(\d+)\s*(?:hr|hour)", "activity"),
        (r"(\d+)\s*(?:hr|hour|min|minute)s?\s*(?:of\s*)?(VR|virtual reality|arcade|gaming|axe|ax)\b", "activity"),
        (r"(unlimited|free)\s*(VR|arcade|gaming|play)\b", "activity"),
        (r"\b(VR|XD|arcade)\s*(card|time|session)", "activity"),
        (r"(\d+)\s*(pizza|pie)s?\b", "food"),
        (r"(pizza|food)\s*(platter|party|package)", "food"),
        (r"(\d+)\s*(platter|tray)s?\b", "food"),
        (r"(\d+)\s*(pitcher|jug)s?\b", "drink"),
        (r"(unlimited|free)\s*(soft drinks|soda|drinks)", "drink"),
        (r"(bowling\s*)?shoes?\s*(included|rental)?", "equipment"),
        (r"(grip\s*)?socks?\s*(included|required)?", "equipment"),
        (r"(\d+[,\d]*)\s*(ticket|token)s?\b", "tickets"),
        (r"(\d+)\s*(hr|hour|min|minute)s?\s*(of\s*)?(play|fun|time|session)", "time"),
        (r"(party\s*)?\b(host|coordinator|attendant)\b", "service"),
        (r"(dedicated|private)\s*(room|lane|area|space)", "service"),
    )
)
_BULLET_RE = re.compile(r"(?:^|\n)\s*[-*•]\s*([^\n•]+)|•\s*([^\n•]+)")

_INCLUDED_GUESTS_RE = re.compile(r"(?:includes?|for|up to)\s*(\d+)\s*(?:guests?|people|players?|persons?)", re.I)
_MIN_GUESTS_RE = re.compile(r"(?:minimum|min\.?|at least)\s*(?:of\s*)?(\d+)\s*(?:guests?|people|players?)", re.I)
_MAX_GUESTS_RE = re.compile(r"(?:maximum|max\.?|up to)\s*(?:of\s*)?(\d+)\s*(?:guests?|people|players?)", re.I)
_ADDITIONAL_GUEST_RE = re.compile(
    rf"(?:additional|extra)\s*(?:guests?|persons?|people|players?)\s*(?:[:@]|at)?\s*([$£€]?\s?{AMOUNT})",
    re.I,
)
_GUEST_CATEGORY_RE = re.compile(
    rf"\b(adults?|children|child|kids?|juniors?|seniors?|infants?|students?)\b"
    rf"\s*\(?\s*(?:ages?\s*)?(\d+\s*(?:-|–|to)\s*\d+|\d+\s*\+)?\s*\)?\s*[:\-–]?\s*({PRICE})?",
    re.I,
)
_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(hours?|hrs?|minutes?|mins?)\b", re.I)
RESTRICTION_PATTERNS = tuple(
    re.compile(p, re.I)
    for p in (
        r"(?:ages?)\s*(\d+)\s*(?:and\s*(?:up|over|older)|plus|\+)",
        r"(?:minimum|min)\s*age\s*(?:of\s*)?(\d+)",
        r"(?:must|required)\s*(?:be|have)\s*([^.]+)",
        r"(?:not\s*(?:available|allowed))\s*([^.]+)",
        r"(?:reservation|booking)\s*(?:required|needed)",
    )
)

# (url fragment, platform); checked against the page URL first
PLATFORM_URL_TABLE = (
    ("fareharbor", "FareHarbor"),
    ("checkfront", "Checkfront"),
    ("rezdy", "Rezdy"),
    ("bookeo", "Bookeo"),
    ("roller.app", "ROLLER"),
    ("resova", "Resova"),
)
PLATFORM_CONTENT_TABLE = (
    ("runs on rex", "Rex"),
    ("rex-booking", "Rex"),
    ("fareharbor", "FareHarbor"),
    ("checkfront", "Checkfront"),
)
_POWERED_BY_RE = re.compile(r"powered by\s*([A-Za-z][A-Za-z0-9]+)", re.I)


# --- Pricing ---


def _normalize_price(price: str) -> str:
    return re.sub(r"\s+", "", price)


def _segment_around(text: str, start: int, end: int) -> str:
    """Sentence-like segment of text containing [start, end)."""
    left = max(text.rfind(sep, 0, start) for sep in (".", ";", "|", "\n", "•"))
    rights = [i for i in (text.find(sep, end) for sep in (";", "|", "\n", "•")) if i != -1]
    dot = re.search(r"\.(?!\d)", text[end:])
    if dot:
        rights.append(end + dot.start())
    right = min(rights) if rights else len(text)
    return clean_text(text[left + 1 : right])


def parse_package_pricing(text: str, default_currency: str = "$") -> PackagePricing:
    """
    Structured pricing from free text.

    Day bands, per-person, minimum spend, and deposit claim their prices first.
    The first unclaimed price becomes the base price unless day bands were
    found; any further unclaimed price is kept verbatim (its segment) in notes.
    """
    pricing = PackagePricing(currency=detect_currency(text, default_currency))
    claimed: list[tuple[int, int]] = []

    def _claim(match: re.Match[str], group: int) -> str:
        claimed.append(match.span(group))
        return _normalize_price(match.group(group))

    for match in DAY_BAND_RE.finditer(text):
        days = match.group(1) if not match.group(2) else f"{match.group(1)}–{match.group(2)}"
        pricing.day_pricing.append(DayPricing(days=days, price=_claim(match, 3)))
    for match in WEEKPART_RE.finditer(text):
        pricing.day_pricing.append(DayPricing(days=clean_text(match.group(1)), price=_claim(match, 2)))

    match = PER_PERSON_RE.search(text)
    if match:
        pricing.per_person_price = _claim(match, 1)
    match = MIN_SPEND_RE.search(text)
    if match:
        pricing.minimum_spend = _claim(match, 1)
    match = DEPOSIT_RE.search(text)
    if match:
        group = 1 if match.group(1) else 2
        pricing.deposit_required = _claim(match, group)

    def _is_claimed(span: tuple[int, int]) -> bool:
        return any(start <= span[0] < end for start, end in claimed)

    for match in _PRICE_RE.finditer(text):
        if _is_claimed(match.span()):
            continue
        if pricing.base_price is None and not pricing.day_pricing:
            pricing.base_price = _normalize_price(match.group(0))
            continue
        note = _segment_around(text, *match.span())
        if note and note not in pricing.notes:
            pricing.notes.append(note)
    return pricing


# --- Inclusions ---


def categorize_inclusion(text: str) -> InclusionCategory:
    return first_match(_INCLUSION_CATEGORIES, text.lower(), "other")


def parse_inclusions(text: str) -> list[PackageInclusion]:
    """Known inclusion phrases first, then bulleted list items not already covered."""
    inclusions: list[PackageInclusion] = []
    for pattern, category in INCLUSION_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        item = clean_text(match.group(0))
        if not item:
            continue
        quantity = match.group(1) if match.group(1) and match.group(1)[0].isdigit() else None
        inclusions.append(PackageInclusion(item=item, quantity=quantity, category=category))

    for match in _BULLET_RE.finditer(text):
        item = clean_text(match.group(1) or match.group(2))
        if not (3 < len(item) < 100):
            continue
        prefix = item.lower()[:20]
        if any(prefix in inc.item.lower() or inc.item.lower() in item.lower() for inc in inclusions):
            continue
        inclusions.append(PackageInclusion(item=item, category=categorize_inclusion(item)))
    return inclusions


# --- Guests, duration, restrictions ---


def parse_guest_config(text: str, default_currency: str = "$") -> GuestConfiguration:
    config = GuestConfiguration()
    match = _INCLUDED_GUESTS_RE.search(text)
    if match:
        config.included_guests = int(match.group(1))
    match = _MIN_GUESTS_RE.search(text)
    if match:
        config.minimum_guests = int(match.group(1))
    match = _MAX_GUESTS_RE.search(text)
    if match:
        config.maximum_guests = int(match.group(1))
    match = _ADDITIONAL_GUEST_RE.search(text)
    if match:
        price = _normalize_price(match.group(1))
        if price[0] not in "$£€":
            price = f"{detect_currency(text, default_currency)}{price}"
        config.additional_guest_price = price

    for match in _GUEST_CATEGORY_RE.finditer(text):
        age_range, price = match.group(2), match.group(3)
        if not age_range and not price:
            continue
        name = match.group(1).capitalize()
        if any(c.name == name for c in config.guest_categories):
            continue
        low = high = None
        if age_range:
            numbers = [int(n) for n in re.findall(r"\d+", age_range)]
            low = numbers[0]
            high = numbers[1] if len(numbers) > 1 else None
        config.guest_categories.append(
            GuestCategory(
                name=name,
                age_range=clean_text(age_range) if age_range else None,
                min=low,
                max=high,
                price=_normalize_price(price) if price else None,
            )
        )
    return config


def parse_duration(text: str) -> Optional[str]:
    """ "2hrs of bowling" -> "2 hours"; "90 min" -> "90 minutes". """
    match = _DURATION_RE.search(text)
    if not match:
        return None
    amount = match.group(1)
    unit = "hour" if match.group(2).lower().startswith("h") else "minute"
    plural = "s" if float(amount) != 1 else ""
    return f"{amount} {unit}{plural}"


def parse_restrictions(text: str) -> list[str]:
    restrictions: list[str] = []
    for pattern in RESTRICTION_PATTERNS:
        match = pattern.search(text)
        if match:
            item = clean_text(match.group(0))
            if item and item not in restrictions:
                restrictions.append(item)
    return restrictions


# --- Platform ---


def detect_platform(url: str, content: str) -> Optional[str]:
    """Booking platform named by the URL or the page HTML, if recognizable."""
    lowered_url = url.lower()
    for fragment, platform in PLATFORM_URL_TABLE:
        if fragment in lowered_url:
            return platform
    lowered = content.lower()
    for fragment, platform in PLATFORM_CONTENT_TABLE:
        if fragment in lowered:
            return platform
    match = _POWERED_BY_RE.search(content)
    if match:
        return match.group(1)
    return None
