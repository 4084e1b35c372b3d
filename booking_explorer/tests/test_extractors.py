"""
Unit tests for step extraction: group size, dates, times, add-ons, form fields,
pricing, products, and step classification.

Extraction is best-effort: absent widgets give None / empty lists.
"""

from __future__ import annotations

import pytest

from booking_explorer.extractors import (
    categorize_add_on,
    extract_add_ons,
    extract_available_dates,
    extract_available_times,
    extract_form_fields,
    extract_group_size_config,
    extract_pricing,
    extract_products,
    extract_step_options,
    parse_group_size_value,
)
from booking_explorer.step_classifier import classify_step, describe_step
from booking_explorer.tests.fakes import FakeDocument, FakeElement, FakePage, FakeSite

URL = "https://example.com/book"


def _page(document: FakeDocument, url: str = URL) -> FakePage:
    return FakePage(FakeSite({url: document}), url=url)


def _option(value: str, text: str = "") -> FakeElement:
    return FakeElement("option", text or value, {"value": value})


def guest_select(*labels: str) -> FakeElement:
    select = FakeElement("select", attrs={"name": "guests"})
    for label in labels:
        select.add(_option(label), "option")
    return select


# --- Group size ---


@pytest.mark.parametrize(
    "raw,expected",
    [("16+", "16+"), ("16 +", "16+"), ("4 guests", 4), ("Private hire", "Private hire"), ("Choose", None)],
)
def test_parse_group_size_value(raw, expected):
    assert parse_group_size_value(raw) == expected


@pytest.mark.asyncio
async def test_group_size_select_with_divergence_option():
    """An 'N+' option marks separate paths and the divergence point."""
    document = FakeDocument()
    document.add(guest_select(*[str(n) for n in range(1, 16)], "16+"), 'select[name*="guest"]')
    config = await extract_group_size_config(_page(document))

    assert config is not None
    assert config.minimum == 1
    assert config.maximum == "16+"
    assert config.divergence_point == 16
    assert config.has_separate_paths is True
    assert config.available_options[-1] == "16+"
    assert len(config.available_options) == 16


@pytest.mark.asyncio
async def test_group_size_number_inputs_with_categories():
    document = FakeDocument()
    adults = FakeElement("input", attrs={"type": "number", "name": "adults", "id": "adults", "min": "1", "max": "10"})
    children = FakeElement("input", attrs={"type": "number", "name": "children", "min": "0", "max": "8"})
    document.add(adults, 'input[type="number"][name*="adult"]')
    document.add(children, 'input[type="number"][name*="child"]')
    document.add(FakeElement("label", "Adults (13+)"), 'label[for="adults"]')

    config = await extract_group_size_config(_page(document))
    assert config is not None
    assert config.minimum == 0
    assert [c.name for c in config.categories] == ["Adults (13+)", "Children"]
    assert config.categories[0].max == 10


@pytest.mark.asyncio
async def test_group_size_stepper_reads_displayed_value():
    document = FakeDocument()
    stepper = FakeElement("div", "- 2 +")
    stepper.add(FakeElement("input", value="2"), "input")
    document.add(stepper, ".stepper")
    config = await extract_group_size_config(_page(document))
    assert config is not None
    assert config.available_options == [2]
    assert config.minimum == 2
    assert config.divergence_point is None


@pytest.mark.asyncio
async def test_group_size_absent_returns_none():
    assert await extract_group_size_config(_page(FakeDocument(body="Hello"))) is None


# --- Dates, times ---


@pytest.mark.asyncio
async def test_dates_from_calendar_cells_and_times_from_slots():
    document = FakeDocument()
    document.add(FakeElement("td", "14", {"data-date": "2026-11-14"}), ".calendar .available")
    document.add(FakeElement("td", "15"), ".calendar .available")
    document.add(FakeElement("button", "18:30"), ".time-slot:not(.unavailable)")
    document.add(FakeElement("button", "Sold out"), ".time-slot:not(.unavailable)")
    document.add(FakeElement("button", "", {"data-time": "19:00"}), ".time-slot:not(.unavailable)")
    page = _page(document)

    assert await extract_available_dates(page) == ["2026-11-14", "15"]
    assert await extract_available_times(page) == ["18:30", "19:00"]


# --- Add-ons ---


@pytest.mark.parametrize(
    "name,category",
    [
        ("Pizza platter", "food_drink"),
        ("Pitcher of soda", "food_drink"),
        ("Balloon bundle", "decorations"),
        ("Extra time (30 mins)", "extra_time"),
        ("VIP lane upgrade", "upgrade"),
        ("Shoe hire", "equipment"),
        ("Party host", "service"),
        ("Glow sticks", "other"),
    ],
)
def test_categorize_add_on(name, category):
    assert categorize_add_on(name) == category


@pytest.mark.asyncio
async def test_extract_add_ons_from_container_and_checkboxes():
    document = FakeDocument()
    container = FakeElement("div")
    item = FakeElement("div", "Pizza Party Platter £25.00", {"data-addon": "pizza"})
    item.add(FakeElement("h4", "Pizza Party Platter"), "h4")
    item.add(FakeElement("input", attrs={"type": "checkbox"}, checked=True), 'input[type="checkbox"]')
    container.add(item, ".addon, .extra, .option, .item, [data-addon], label, .card")
    document.add(container, ".extras")

    checkbox = FakeElement("input", attrs={"type": "checkbox", "name": "extra_socks", "id": "socks"})
    document.add(checkbox, 'input[type="checkbox"][name*="extra"]')
    document.add(FakeElement("label", "Grip socks £2.50"), 'label[for="socks"]')

    add_ons = await extract_add_ons(_page(document))
    assert [a.name for a in add_ons] == ["Pizza Party Platter", "Grip socks"]
    pizza, socks = add_ons
    assert pizza.price == "£25.00"
    assert pizza.pre_selected is True
    assert pizza.category == "food_drink"
    assert pizza.selector == '[data-addon="pizza"], [data-id="pizza"]'
    assert socks.price == "£2.50"
    assert socks.category == "equipment"
    assert socks.selector == "#socks"


# --- Form fields ---


@pytest.mark.asyncio
async def test_extract_form_fields_labels_types_and_dedupe():
    document = FakeDocument()
    selector = 'input:not([type="hidden"]):not([type="submit"]):not([type="button"])'
    email = FakeElement("input", attrs={"type": "email", "id": "email", "required": ""})
    document.add(email, selector)
    document.add(email, selector)
    document.add(FakeElement("input", attrs={"type": "tel", "name": "phone", "placeholder": "Phone"}), selector)
    occasion = FakeElement("select", attrs={"name": "occasion"})
    occasion.add(_option("birthday", "Birthday"), "option")
    occasion.add(_option("work", "Work party"), "option")
    document.add(occasion, "select")
    document.add(FakeElement("label", "Email address"), 'label[for="email"]')

    fields = await extract_form_fields(_page(document))
    assert [(f.name, f.type, f.required) for f in fields] == [
        ("Email address", "email", True),
        ("phone", "phone", False),
        ("occasion", "select", False),
    ]
    assert fields[2].options == ["Birthday", "Work party"]
    assert fields[1].selector == '[name="phone"]'


# --- Pricing, products ---


@pytest.mark.asyncio
async def test_extract_pricing_and_products():
    document = FakeDocument()
    document.add(FakeElement("span", "Total: £120.00"), ".total")
    document.add(FakeElement("span", "£20 per person"), ".per-person")
    product = FakeElement("div", "Strike Party £20 per person Two games and pizza")
    product.add(FakeElement("h3", "Strike Party"), "h3")
    product.add(FakeElement("p", "Two games and pizza"), "p")
    document.add(product, ".package")
    page = _page(document)

    pricing = await extract_pricing(page)
    assert pricing is not None
    assert pricing.total == "£120.00"
    assert pricing.price_per_person == "£20"
    assert pricing.currency == "£"

    products = await extract_products(page)
    assert len(products) == 1
    assert products[0].name == "Strike Party"
    assert products[0].description == "Two games and pizza"
    assert products[0].price == "£20"


@pytest.mark.asyncio
async def test_extract_step_options_empty_page():
    options = await extract_step_options(_page(FakeDocument()))
    assert options.is_empty()
    assert await extract_pricing(_page(FakeDocument())) is None


# --- Step classification ---


def _with(selector: str, body: str = "", url: str = URL) -> FakePage:
    document = FakeDocument(body=body)
    document.add(FakeElement("div"), selector)
    return _page(document, url)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "selector,body,expected",
    [
        (".party-size", "", "group_size_selection"),
        (".calendar", "", "date_selection"),
        (".time-slot", "", "time_selection"),
        (".extras", "", "addon_selection"),
        ('input[type="email"]', "Your details", "details_form"),
        ('input[type="email"]', "Make an enquiry for groups", "enquiry_form"),
        (".booking-summary", "", "review_summary"),
        (".package", "", "product_selection"),
        ('input[name*="card"]', "", "payment"),
        (".nothing", "Welcome", "unknown"),
    ],
)
async def test_classify_step(selector, body, expected):
    assert await classify_step(_with(selector, body)) == expected


@pytest.mark.asyncio
async def test_classify_datetime_and_enquiry_next_to_calendar():
    """Calendar + slots is datetime; enquiry wording beside a calendar stays a booking step."""
    document = FakeDocument(body="Enquire about large groups")
    document.add(FakeElement("div"), ".calendar")
    document.add(FakeElement("div"), ".time-slot")
    document.add(FakeElement("input"), 'input[type="email"]')
    assert await classify_step(_page(document)) == "datetime_selection"


@pytest.mark.asyncio
async def test_classify_confirmation_by_text():
    assert await classify_step(_page(FakeDocument(body="Booking confirmed, thank you"))) == "confirmation"


@pytest.mark.asyncio
async def test_describe_step_appends_heading():
    document = FakeDocument()
    document.add(FakeElement("h1", "Choose your lane"), "h1")
    assert await describe_step(_page(document), "date_selection") == "Select date: Choose your lane"
    assert await describe_step(_page(FakeDocument()), "unknown") == "Unknown step"
