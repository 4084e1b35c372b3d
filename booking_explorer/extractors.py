"""
Per-step extraction: group-size controls, dates, times, add-ons, form fields,
pricing, and products.

Every extractor is best-effort. Absence is reported as None or an empty list,
never as an exception; callers treat "not found" as data.
"""

from __future__ import annotations

import re
from typing import Optional

from booking_explorer.capabilities import BrowserPage, ElementHandle
from booking_explorer.constants import (
    ADD_ON_CATEGORY_TABLE,
    GROUP_SIZE_NUMBER_SELECTORS,
    GROUP_SIZE_RADIO_SELECTORS,
    GROUP_SIZE_SELECT_SELECTORS,
    PRODUCT_SELECTORS,
    STEPPER_SELECTORS,
    STEPPER_VALUE_SELECTORS,
)
from booking_explorer.crawl.dom import element_text, first_visible, parse_int, visible_elements
from booking_explorer.crawl.rules import compile_table, first_match
from booking_explorer.crawl.text import clean_text, detect_currency, extract_price
from booking_explorer.models import (
    AddOn,
    AddOnCategory,
    FormField,
    FormFieldType,
    GroupSizeCategory,
    GroupSizeConfig,
    GroupSizeValue,
    PricingInfo,
    ProductOption,
    StepOptions,
)

_ADD_ON_CATEGORIES = compile_table(ADD_ON_CATEGORY_TABLE)
_DIVERGENCE = re.compile(r"(\d+)\s*\+")
_LARGE_GROUP_LABEL = re.compile(r"private|corporate|exclusive|large", re.I)
_SEPARATE_PATH_LABEL = re.compile(r"\d+\s*\+|large|corporate|private", re.I)
_TIME_TEXT = re.compile(r"\d{1,2}[:.]\d{2}")

DATE_SELECTORS = (
    ".calendar .available", ".calendar .selectable",
    ".datepicker .day:not(.disabled)", ".datepicker td:not(.disabled)",
    "[data-date]:not([disabled])", ".date-slot:not(.unavailable)",
    ".react-datepicker__day:not(.react-datepicker__day--disabled)",
    ".flatpickr-day:not(.flatpickr-disabled)",
)
TIME_SELECTORS = (
    ".time-slot:not(.unavailable)", ".time-option:not(.disabled)",
    "[data-time]:not([disabled])", ".slot:not(.booked)",
    ".time-picker option", 'select[name*="time"] option',
    'input[type="time"]', ".available-time",
)
ADD_ON_CONTAINER_SELECTORS = (
    ".add-ons", ".addons", ".extras", ".upgrades", ".options",
    "[data-addons]", "[data-extras]", ".upsell", ".upsells",
    ".additional-options", ".optional-extras",
)
ADD_ON_ITEM_SELECTOR = ".addon, .extra, .option, .item, [data-addon], label, .card"
ADD_ON_CHECKBOX_SELECTORS = (
    'input[type="checkbox"][name*="addon"]',
    'input[type="checkbox"][name*="extra"]',
    'input[type="checkbox"][name*="option"]',
    'input[type="checkbox"][name*="upgrade"]',
    '.addon input[type="checkbox"]',
)
FORM_INPUT_SELECTORS = (
    'input:not([type="hidden"]):not([type="submit"]):not([type="button"])',
    "textarea",
    "select",
)
PRICE_SELECTORS = (
    ".price", ".total", ".cost", "[data-price]",
    ".booking-total", ".order-total", ".summary-total",
    ".price-per-person", ".per-person", ".pp",
)
PRODUCT_NAME_SELECTORS = ("h3", "h4", ".name", ".title", "strong")
MAX_DATES = 30
MAX_TIMES = 20
MAX_PRODUCTS = 20

INPUT_TYPE_MAP: dict[str, FormFieldType] = {
    "email": "email",
    "tel": "phone",
    "number": "number",
    "checkbox": "checkbox",
    "radio": "radio",
    "date": "date",
    "time": "time",
    "hidden": "hidden",
    "text": "text",
    "search": "text",
    "url": "text",
}


def _dedupe(values: list) -> list:
    seen = set()
    out = []
    for v in values:
        if v not in seen:
            seen.add(v)
            out.append(v)
    return out


# --- Group size ---


def parse_group_size_value(value: str) -> Optional[GroupSizeValue]:
    """
    "16+" -> "16+" (divergence label), "4 guests" -> 4,
    "Private hire" -> "Private hire", anything else -> None.
    """
    trimmed = clean_text(value)
    if re.fullmatch(r"\d+\s*\+", trimmed):
        return trimmed.replace(" ", "")
    number = parse_int(trimmed)
    if number is not None:
        return number
    if _LARGE_GROUP_LABEL.search(trimmed):
        return trimmed
    return None


async def _label_for(page: BrowserPage, element: ElementHandle) -> Optional[str]:
    element_id = await element.get_attribute("id")
    if element_id:
        for label in await page.query_all(f'label[for="{element_id}"]'):
            text = await element_text(label)
            if text:
                return text
    parent = clean_text(await element.parent_text())
    if parent and len(parent) < 60:
        return parent
    name = await element.get_attribute("name")
    if name:
        return re.sub(r"[_-]+", " ", name).strip().capitalize()
    return None


async def extract_group_size_config(page: BrowserPage) -> Optional[GroupSizeConfig]:
    """Group-size bounds, options, and divergence; None when the page has no such control."""
    config = GroupSizeConfig()
    found_controls = False

    for selector in GROUP_SIZE_NUMBER_SELECTORS:
        for element in await visible_elements(page, selector, limit=1):
            found_controls = True
            low = parse_int(await element.get_attribute("min"))
            high = parse_int(await element.get_attribute("max"))
            default = parse_int(await element.get_attribute("value"))
            if low is not None:
                config.minimum = low if config.minimum is None else min(config.minimum, low)
            if high is not None:
                config.maximum = high
            category = await _label_for(page, element)
            if category:
                config.categories.append(GroupSizeCategory(name=category, min=low, max=high, default=default))

    for selector in STEPPER_SELECTORS:
        stepper = await first_visible(page, (selector,))
        if stepper is None:
            continue
        found_controls = True
        display = await first_visible(stepper, STEPPER_VALUE_SELECTORS)
        if display is not None:
            raw = await display.input_value() or await display.text()
            number = parse_int(raw)
            if number is not None:
                config.available_options.append(number)

    for selector in GROUP_SIZE_SELECT_SELECTORS:
        select = await first_visible(page, (selector,))
        if select is None:
            continue
        found_controls = True
        for option in await select.query_all("option"):
            value = await option.get_attribute("value")
            text = clean_text(await option.text())
            parsed = parse_group_size_value(text if _DIVERGENCE.search(text) else (value or text))
            if parsed is None:
                continue
            config.available_options.append(parsed)
            match = _DIVERGENCE.search(text)
            if match:
                config.has_separate_paths = True
                config.divergence_point = int(match.group(1))
                config.maximum = text
        break

    for selector in GROUP_SIZE_RADIO_SELECTORS:
        radios = await page.query_all(selector)
        if not radios:
            continue
        found_controls = True
        for radio in radios:
            value = await radio.get_attribute("value") or ""
            label = clean_text(await radio.parent_text())
            parsed = parse_group_size_value(value or label)
            if parsed is not None:
                config.available_options.append(parsed)
            marker = value or label
            if _SEPARATE_PATH_LABEL.search(marker):
                config.has_separate_paths = True
                match = _DIVERGENCE.search(marker)
                if match and config.divergence_point is None:
                    config.divergence_point = int(match.group(1))
        break

    if not found_controls:
        return None

    config.available_options = _dedupe(config.available_options)
    numeric = [v for v in config.available_options if isinstance(v, int)]
    if numeric:
        if config.minimum is None:
            config.minimum = min(numeric)
        if config.maximum is None or isinstance(config.maximum, int):
            config.maximum = max(numeric + ([config.maximum] if isinstance(config.maximum, int) else []))
    return config


# --- Dates and times ---


async def extract_available_dates(page: BrowserPage) -> list[str]:
    dates: list[str] = []
    for selector in DATE_SELECTORS:
        for element in (await page.query_all(selector))[:MAX_DATES]:
            attr = (
                await element.get_attribute("data-date")
                or await element.get_attribute("data-day")
                or await element.get_attribute("aria-label")
            )
            if attr:
                dates.append(attr)
                continue
            text = await element_text(element)
            if re.fullmatch(r"\d{1,2}", text):
                dates.append(text)
        if dates:
            break

    date_input = await first_visible(page, ('input[type="date"]',))
    if date_input is not None:
        value = await date_input.input_value()
        if value:
            dates.append(value)
    return _dedupe(dates)


async def extract_available_times(page: BrowserPage) -> list[str]:
    times: list[str] = []
    for selector in TIME_SELECTORS:
        for element in (await page.query_all(selector))[:MAX_TIMES]:
            attr = await element.get_attribute("data-time") or await element.get_attribute("value")
            if attr:
                times.append(attr)
                continue
            text = await element_text(element)
            if _TIME_TEXT.search(text):
                times.append(text)
        if times:
            break
    return _dedupe(times)


# --- Add-ons ---


def categorize_add_on(name: str, description: str = "") -> AddOnCategory:
    return first_match(_ADD_ON_CATEGORIES, f"{name} {description}".lower(), "other")


async def _selector_for_add_on(element: ElementHandle) -> Optional[str]:
    element_id = await element.get_attribute("id")
    if element_id:
        return f"#{element_id}"
    data = await element.get_attribute("data-addon") or await element.get_attribute("data-id")
    if data:
        return f'[data-addon="{data}"], [data-id="{data}"]'
    return None


async def _add_on_from_item(item: ElementHandle) -> Optional[AddOn]:
    full_text = await element_text(item)
    if len(full_text) < 3:
        return None
    name_el = await first_visible(item, ("h3", "h4", ".name", ".title", "strong"))
    name = await element_text(name_el) if name_el else ""
    if not name:
        name = re.split(r"[£$€\d]", full_text)[0].strip()[:50]
    if not name:
        return None
    desc_el = await first_visible(item, (".description", ".desc", "p", ".details"))
    description = (await element_text(desc_el) or None) if desc_el else None

    checkboxes = await item.query_all('input[type="checkbox"]')
    toggles = await item.query_all('[role="switch"], .toggle')
    pre_selected = bool(checkboxes) and await checkboxes[0].is_checked()
    return AddOn(
        name=name,
        description=description,
        price=extract_price(full_text),
        optional=bool(checkboxes or toggles),
        pre_selected=pre_selected,
        category=categorize_add_on(name, description or ""),
        selector=await _selector_for_add_on(item),
    )


async def _add_on_from_checkbox(page: BrowserPage, checkbox: ElementHandle) -> Optional[AddOn]:
    checkbox_id = await checkbox.get_attribute("id")
    label_text = ""
    if checkbox_id:
        for label in await page.query_all(f'label[for="{checkbox_id}"]'):
            label_text = await element_text(label)
            break
    if not label_text:
        label_text = clean_text(await checkbox.parent_text())
    if len(label_text) < 3:
        return None
    name = re.sub(r"[£$€][\d.,]+", "", label_text).strip()[:50]
    return AddOn(
        name=name,
        price=extract_price(label_text),
        optional=True,
        pre_selected=await checkbox.is_checked(),
        category=categorize_add_on(name),
        selector=f"#{checkbox_id}" if checkbox_id else None,
    )


async def extract_add_ons(page: BrowserPage) -> list[AddOn]:
    add_ons: list[AddOn] = []
    for selector in ADD_ON_CONTAINER_SELECTORS:
        container = await first_visible(page, (selector,))
        if container is None:
            continue
        for item in await container.query_all(ADD_ON_ITEM_SELECTOR):
            add_on = await _add_on_from_item(item)
            if add_on and all(a.name != add_on.name for a in add_ons):
                add_ons.append(add_on)

    for selector in ADD_ON_CHECKBOX_SELECTORS:
        for checkbox in await page.query_all(selector):
            add_on = await _add_on_from_checkbox(page, checkbox)
            if add_on and all(a.name != add_on.name for a in add_ons):
                add_ons.append(add_on)
    return add_ons


# --- Form fields ---


async def _form_field(page: BrowserPage, element: ElementHandle) -> Optional[FormField]:
    tag = await element.tag_name()
    input_type = (await element.get_attribute("type") or "text").lower()
    name = await element.get_attribute("name") or ""
    element_id = await element.get_attribute("id") or ""
    placeholder = await element.get_attribute("placeholder")
    required = (
        await element.get_attribute("required") is not None
        or await element.get_attribute("aria-required") == "true"
    )

    label_text = ""
    if element_id:
        for label in await page.query_all(f'label[for="{element_id}"]'):
            label_text = await element_text(label)
            break

    if tag == "select":
        field_type: FormFieldType = "select"
    elif tag == "textarea":
        field_type = "textarea"
    else:
        field_type = INPUT_TYPE_MAP.get(input_type, "unknown")

    options: list[str] = []
    if tag == "select":
        for option in await element.query_all("option"):
            text = await element_text(option)
            if text:
                options.append(text)

    if element_id:
        selector = f"#{element_id}"
    elif name:
        selector = f'[name="{name}"]'
    else:
        selector = f'{tag}[type="{input_type}"]'

    return FormField(
        name=label_text or name or placeholder or "Unknown",
        type=field_type,
        required=required,
        placeholder=placeholder,
        options=options,
        selector=selector,
    )


async def extract_form_fields(page: BrowserPage) -> list[FormField]:
    fields: list[FormField] = []
    seen: set[str] = set()
    for selector in FORM_INPUT_SELECTORS:
        for element in await visible_elements(page, selector):
            form_field = await _form_field(page, element)
            if form_field and form_field.selector not in seen:
                seen.add(form_field.selector)
                fields.append(form_field)
    return fields


# --- Pricing and products ---


async def extract_pricing(page: BrowserPage) -> Optional[PricingInfo]:
    pricing = PricingInfo()
    found = False
    for selector in PRICE_SELECTORS:
        element = await first_visible(page, (selector,))
        if element is None:
            continue
        text = await element_text(element)
        price = extract_price(text)
        if not price:
            continue
        found = True
        lower = text.lower()
        if "total" in selector or "total" in lower:
            pricing.total = price
        elif "per-person" in selector or "per person" in lower or selector == ".pp":
            pricing.price_per_person = price
        elif pricing.base_price is None:
            pricing.base_price = price
        pricing.currency = detect_currency(price, pricing.currency)
    return pricing if found else None


async def extract_products(page: BrowserPage) -> list[ProductOption]:
    products: list[ProductOption] = []
    for selector in PRODUCT_SELECTORS:
        for element in await visible_elements(page, selector, limit=MAX_PRODUCTS):
            full_text = await element_text(element)
            name_el = await first_visible(element, PRODUCT_NAME_SELECTORS)
            name = (await element_text(name_el)) if name_el else full_text[:60]
            if not name or any(p.name == name for p in products):
                continue
            desc_el = await first_visible(element, ("p", ".description"))
            classes = (await element.get_attribute("class") or "").split()
            products.append(
                ProductOption(
                    name=name,
                    description=(await element_text(desc_el) or None) if desc_el else None,
                    price=extract_price(full_text),
                    selected="selected" in classes or "active" in classes,
                )
            )
        if products:
            break
    return products


async def extract_step_options(page: BrowserPage) -> StepOptions:
    """Aggregate of everything selectable on the current step."""
    group = await extract_group_size_config(page)
    return StepOptions(
        dates=await extract_available_dates(page),
        times=await extract_available_times(page),
        products=await extract_products(page),
        group_sizes=list(group.available_options) if group else [],
        pricing=await extract_pricing(page),
    )
