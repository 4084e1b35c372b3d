"""
Package scraper for booking widgets.

Given a page already showing a booking system, enumerates category tabs,
scrapes every visible package card per category, opens detail views while
the detail budget lasts, and optionally re-scrapes after picking a target
date to find date-gated packages.

Usage:
    scraper = PackageScraper(page, config)
    discovery = await scraper.scrape_booking_system()
"""

from __future__ import annotations

import re
import time
from datetime import date
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from booking_explorer.capabilities import BrowserPage, ElementHandle
from booking_explorer.constants import MODAL_CLOSE_SELECTORS, MODAL_SELECTORS, RISKY_PAYMENT_CTA
from booking_explorer.crawl.constants import POST_CLICK_IDLE_TIMEOUT, POST_CLICK_SETTLE_MS
from booking_explorer.crawl.dom import element_text, find_by_text, first_text, first_visible, visible_elements
from booking_explorer.crawl.text import (
    build_screenshot_path,
    clean_text,
    extract_price,
    generate_id,
    normalize_package_name,
    utc_timestamp,
)
from booking_explorer.extractors import extract_add_ons, extract_available_dates
from booking_explorer.models import AddOn, BookablePackage, BookingSystemDiscovery, PackageAddOn, VenueInfo
from booking_explorer.package_parsing import (
    detect_platform,
    parse_duration,
    parse_guest_config,
    parse_inclusions,
    parse_package_pricing,
    parse_restrictions,
)
from shared.config import ExplorerConfig
from shared.logging import get_logger

logger = get_logger(__name__)

CARD_SELECTORS = (
    ".package-card", ".package-item", ".product-card", ".booking-card",
    "[data-package]", "[data-product]", ".experience-card", ".event-card",
    ".activity-card", ".offering-card", "article", ".card", ".item",
)
CARD_NAME_SELECTORS = (
    "h1", "h2", "h3", "h4", ".name", ".title", ".package-name", ".product-name",
    '[class*="title"]', '[class*="name"]', "strong", "b",
)
CARD_DESCRIPTION_SELECTORS = ("p", ".description", ".desc", ".summary", '[class*="description"]')
HEADING_SELECTORS = ("h2", "h3", "h4")
DETAIL_BUTTON_SELECTORS = ("button", "a", '[role="button"]')
DETAIL_BUTTON_TEXT = re.compile(r"\b(view|details?|select|book|more)\b", re.I)

CATEGORY_SELECTORS = (
    ".category-tab", ".category-button", ".filter-button", '[role="tab"]',
    ".tab", ".pill", "button[data-category]", "a[data-category]",
)
DATE_SELECT_SELECTOR = 'select[name*="date"]'
DATE_CONTROL_SELECTORS = (
    '[role="combobox"]', ".date-picker", ".datepicker", "[data-date]", "[data-calendar]",
    ".date-select", ".date-selector",
)
NEXT_MONTH_SELECTORS = (
    'button[aria-label*="next" i]', ".next-month", ".react-datepicker__navigation--next",
    ".flatpickr-next-month", ".datepicker .next",
)
MONTH_NAVIGATION_ATTEMPTS = 24
MAX_AVAILABLE_DATES = 30

VENUE_NAME_SELECTORS = (".venue-name", ".business-name", ".company-name", "h1")
ADDRESS_SELECTORS = ("address", '[itemprop="address"]', ".address", ".location")
HOURS_SELECTORS = (".hours", ".opening-hours", '[itemprop="openingHours"]')
_EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")
_PER_PERSON_TEXT = re.compile(r"per\s*(?:person|guest|head)|\bpp\b|/\s*person", re.I)
_PHONE_RE = re.compile(r"(?:\+\d{1,3}\s?)?\(?\d{2,5}\)?[\s.-]?\d{3,4}[\s.-]?\d{3,4}")

MAX_DESCRIPTION_LENGTH = 500
MAX_RAW_CONTENT = 2000


def _date_variants(target: date) -> list[str]:
    """Ways a calendar may label one day, most specific first."""
    month = target.strftime("%B")
    weekday = target.strftime("%A")
    day = target.day
    return [
        f"{weekday}, {month} {day}, {target.year}",
        f"{month} {day}, {target.year}",
        f"{day} {month} {target.year}",
        f"{weekday}, {month} {day}",
        f"{weekday} {day} {month}",
        f"{month} {day}",
        f"{day} {month}",
    ]


def with_date_param(url: str, target: date) -> str:
    """url with its `date` query parameter set (replaced or appended) to target."""
    parsed = urlparse(url)
    params = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k != "date"]
    params.append(("date", target.isoformat()))
    return urlunparse(parsed._replace(query=urlencode(params)))


def to_package_add_on(add_on: AddOn) -> PackageAddOn:
    return PackageAddOn(
        name=add_on.name,
        description=add_on.description,
        price=add_on.price,
        per_person=bool(add_on.description and _PER_PERSON_TEXT.search(add_on.description)),
        category=add_on.category,
        pre_selected=add_on.pre_selected,
    )


def merge_package(existing: BookablePackage, other: BookablePackage) -> BookablePackage:
    """
    Fold a second sighting of a package into the first.

    Category labels are joined ("Parties, Corporate"); missing fields are filled
    from the other sighting. Lists are extended without duplicates.
    """
    labels = [c.strip() for c in existing.category.split(",") if c.strip()]
    if other.category not in labels:
        labels.append(other.category)
        existing.category = ", ".join(labels)

    if not existing.description or (other.description and len(other.description) > len(existing.description)):
        existing.description = other.description or existing.description
    if not existing.pricing.has_prices() and other.pricing.has_prices():
        existing.pricing = other.pricing
    if existing.guest_config.is_empty() and not other.guest_config.is_empty():
        existing.guest_config = other.guest_config
    existing.duration = existing.duration or other.duration
    existing.image_url = existing.image_url or other.image_url
    existing.booking_url = existing.booking_url or other.booking_url

    known_items = {i.item.lower() for i in existing.inclusions}
    existing.inclusions.extend(i for i in other.inclusions if i.item.lower() not in known_items)
    existing.restrictions.extend(r for r in other.restrictions if r not in existing.restrictions)
    known_add_ons = {a.name for a in existing.available_add_ons}
    existing.available_add_ons.extend(a for a in other.available_add_ons if a.name not in known_add_ons)
    existing.available_on_dates.extend(d for d in other.available_on_dates if d not in existing.available_on_dates)
    return existing


def build_package(name: str, raw_text: str, category: str, source_url: str) -> BookablePackage:
    """Package from a card's name and text, run through every text parser."""
    text = clean_text(raw_text)
    return BookablePackage(
        id=generate_id(),
        name=name,
        category=category,
        source_url=source_url,
        inclusions=parse_inclusions(raw_text),
        pricing=parse_package_pricing(text),
        guest_config=parse_guest_config(text),
        duration=parse_duration(text),
        restrictions=parse_restrictions(text),
        raw_content=text[:MAX_RAW_CONTENT],
    )


class PackageScraper:
    def __init__(self, page: BrowserPage, config: ExplorerConfig) -> None:
        self.page = page
        self.config = config
        self.errors: list[str] = []
        self._details_opened = 0

    @property
    def detail_budget_left(self) -> bool:
        return self._details_opened < self.config.max_package_details

    async def _settle(self) -> None:
        await self.page.wait_for_idle(POST_CLICK_IDLE_TIMEOUT)
        await self.page.sleep(POST_CLICK_SETTLE_MS)

    async def scrape_booking_system(self, url: Optional[str] = None) -> BookingSystemDiscovery:
        """
        Full discovery for the booking system on the current page (or at url).

        Never raises for site problems; failures land in discovery.errors.
        """
        started = time.monotonic()
        if url and url != self.page.url:
            outcome = await self.page.navigate(url, timeout_ms=self.config.page_timeout_ms)
            if not outcome.ok:
                error = outcome.error or f"HTTP {outcome.status}"
                logger.warning("packages.navigation_failed", url=url, error=error)
                return BookingSystemDiscovery(
                    url=url, venue_name="", discovered_at=utc_timestamp(), errors=[error]
                )
            await self.page.wait_for_idle(self.config.network_idle_timeout_ms)

        discovery = BookingSystemDiscovery(url=self.page.url, venue_name="", discovered_at=utc_timestamp())
        logger.info("packages.scrape_started", url=discovery.url)

        try:
            discovery.platform = detect_platform(self.page.url, await self.page.content())
            discovery.venue_info = await self.extract_venue_info()
            discovery.venue_name = discovery.venue_info.name
            discovery.categories = await self.extract_categories()
            discovery.available_dates = await self.extract_available_dates()

            if self.config.take_screenshots:
                path = build_screenshot_path(self.config.screenshot_dir, "booking-system", discovery.venue_name)
                discovery.main_screenshot_path = await self.page.screenshot(path)

            discovery.packages = await self.scrape_all_packages(discovery.categories)
            if self.config.target_date is not None:
                discovery.packages = await self.scrape_packages_for_date(
                    self.config.target_date, discovery.packages, discovery.categories
                )
        except Exception as e:
            self.errors.append(f"package scrape failed: {e}")
            logger.warning(
                "packages.scrape_failed",
                url=discovery.url,
                error=str(e),
                error_type=type(e).__name__,
            )

        discovery.errors.extend(self.errors)
        discovery.scrape_duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "packages.scrape_completed",
            url=discovery.url,
            platform=discovery.platform,
            categories=len(discovery.categories),
            packages=len(discovery.packages),
            details_opened=self._details_opened,
            duration_ms=discovery.scrape_duration_ms,
        )
        return discovery

    # --- Packages ---

    async def scrape_all_packages(self, categories: Optional[list[str]] = None) -> list[BookablePackage]:
        """
        Packages across every category tab, one entry per normalized name.

        A package seen under several categories keeps a single entry whose
        category lists each label.
        """
        packages: dict[str, BookablePackage] = {}

        def _merge(found: list[BookablePackage]) -> None:
            for package in found:
                key = normalize_package_name(package.name)
                if key in packages:
                    merge_package(packages[key], package)
                else:
                    packages[key] = package

        if not categories:
            _merge(await self.scrape_visible_packages("All"))
            return list(packages.values())

        for category in categories:
            if not await self.select_category(category):
                self.errors.append(f"could not open category {category!r}")
                continue
            _merge(await self.scrape_visible_packages(category))
        return list(packages.values())

    async def select_category(self, category: str) -> bool:
        pattern = re.compile(rf"^\s*{re.escape(category)}\s*$", re.I)
        tab = await find_by_text(self.page, CATEGORY_SELECTORS, pattern)
        if tab is None or not await tab.click(timeout_ms=self.config.action_timeout_ms):
            return False
        await self._settle()
        return True

    async def scrape_visible_packages(self, category: str) -> list[BookablePackage]:
        """Packages currently shown, deduplicated by normalized name within this category."""
        found: list[BookablePackage] = []
        seen: set[str] = set()

        cards = await self.find_package_cards()
        if cards:
            for card in cards:
                package = await self.parse_card(card, category)
                if package is None:
                    continue
                key = normalize_package_name(package.name)
                if key in seen:
                    continue
                seen.add(key)
                if self.detail_budget_left:
                    await self.open_detail(card, package)
                found.append(package)
        else:
            for package in await self.scrape_structured_packages(category):
                key = normalize_package_name(package.name)
                if key not in seen:
                    seen.add(key)
                    found.append(package)

        logger.info("packages.category_scraped", category=category, packages=len(found))
        return found

    async def find_package_cards(self) -> list[ElementHandle]:
        """Cards for the first selector whose leading card looks like a priced package."""
        for selector in CARD_SELECTORS:
            cards = await visible_elements(self.page, selector)
            if not cards:
                continue
            text = await element_text(cards[0])
            if extract_price(text) and len(text) > 10:
                return cards
        return []

    async def parse_card(self, card: ElementHandle, category: str) -> Optional[BookablePackage]:
        name = await first_text(card, CARD_NAME_SELECTORS, min_len=3, max_len=99)
        if not name:
            return None
        package = build_package(name, await card.text(), category, self.page.url)

        description = await first_text(card, CARD_DESCRIPTION_SELECTORS, min_len=21)
        if description:
            package.description = description[:MAX_DESCRIPTION_LENGTH]
        images = await card.query_all("img")
        if images:
            package.image_url = await images[0].get_attribute("src")
        links = await card.query_all("a[href]")
        if links:
            package.booking_url = await links[0].get_attribute("href")
        return package

    async def scrape_structured_packages(self, category: str) -> list[BookablePackage]:
        """Fallback for pages without cards: headings whose surrounding text carries a price."""
        packages: list[BookablePackage] = []
        for selector in HEADING_SELECTORS:
            for heading in await visible_elements(self.page, selector):
                name = await element_text(heading)
                if not (3 <= len(name) < 100):
                    continue
                context = await heading.parent_text()
                if not extract_price(context):
                    continue
                packages.append(build_package(name, context, category, self.page.url))
        return packages

    async def open_detail(self, card: ElementHandle, package: BookablePackage) -> bool:
        """
        Open a package's detail view (modal or page), enrich the package, close it.

        Counts against the detail budget whenever a button is clicked.
        """
        button = await find_by_text(card, DETAIL_BUTTON_SELECTORS, DETAIL_BUTTON_TEXT, require_enabled=True)
        if button is None or RISKY_PAYMENT_CTA.search(await element_text(button)):
            return False

        before_url = self.page.url
        if not await button.click(timeout_ms=self.config.action_timeout_ms):
            return False
        self._details_opened += 1
        await self._settle()

        modal = await first_visible(self.page, MODAL_SELECTORS)
        if modal is not None:
            raw = await modal.text()
        elif self.page.url != before_url:
            raw = await self.page.body_text()
        else:
            return False

        detail = build_package(package.name, raw, package.category, self.page.url)
        detail.available_add_ons = [to_package_add_on(a) for a in await extract_add_ons(self.page)]
        if self.config.take_screenshots:
            path = build_screenshot_path(self.config.screenshot_dir, "package", package.name)
            package.screenshot_path = await self.page.screenshot(path)

        # Detail text is more complete than the card: prefer its parse.
        if detail.pricing.has_prices():
            package.pricing = detail.pricing
        if not detail.guest_config.is_empty():
            package.guest_config = detail.guest_config
        description = clean_text(raw)
        if len(description) > len(package.description or ""):
            package.description = description[:MAX_DESCRIPTION_LENGTH]
        merge_package(package, detail)
        package.raw_content = clean_text(raw)[:MAX_RAW_CONTENT]

        await self.close_detail(modal is not None)
        logger.debug("packages.detail_scraped", package=package.name)
        return True

    async def close_detail(self, is_modal: bool) -> None:
        if is_modal:
            close = await first_visible(self.page, MODAL_CLOSE_SELECTORS)
            if close is not None and await close.click(timeout_ms=self.config.action_timeout_ms):
                await self.page.sleep(POST_CLICK_SETTLE_MS)
                return
        if await self.page.go_back():
            await self._settle()

    # --- Date-gated packages ---

    async def select_target_date(self, target: date) -> bool:
        """
        Put the widget on target's day.

        Tries a date input, a date select, the calendar (paging forward by
        month), and finally the `date` URL parameter.
        """
        iso = target.isoformat()

        date_input = await first_visible(self.page, ('input[type="date"]',))
        if date_input is not None and await date_input.fill(iso):
            await self._settle()
            return True

        date_select = await first_visible(self.page, (DATE_SELECT_SELECTOR,))
        if date_select is not None:
            variants = [iso, *_date_variants(target)]
            for option in await date_select.query_all("option"):
                value = await option.get_attribute("value") or ""
                label = await element_text(option)
                if any(v.lower() in value.lower() or v.lower() in label.lower() for v in variants):
                    if await date_select.select_option(value or label):
                        await self._settle()
                        return True

        control = await first_visible(self.page, DATE_CONTROL_SELECTORS)
        if control is not None:
            await control.click(timeout_ms=self.config.action_timeout_ms)
            await self.page.sleep(POST_CLICK_SETTLE_MS)
        day_selectors = (f'[data-date="{iso}"]',) + tuple(
            f'[aria-label*="{variant}" i]' for variant in _date_variants(target)
        )
        for _ in range(MONTH_NAVIGATION_ATTEMPTS):
            cell = await first_visible(self.page, day_selectors)
            if cell is not None and await cell.click(timeout_ms=self.config.action_timeout_ms):
                await self._settle()
                return True
            next_month = await first_visible(self.page, NEXT_MONTH_SELECTORS)
            if next_month is None or not await next_month.click(timeout_ms=self.config.action_timeout_ms):
                break
            await self.page.sleep(POST_CLICK_SETTLE_MS)

        outcome = await self.page.navigate(with_date_param(self.page.url, target), timeout_ms=self.config.page_timeout_ms)
        if outcome.ok:
            await self.page.wait_for_idle(self.config.network_idle_timeout_ms)
            return True
        return False

    async def scrape_packages_for_date(
        self,
        target: date,
        packages: list[BookablePackage],
        categories: Optional[list[str]] = None,
    ) -> list[BookablePackage]:
        """
        Re-scrape on target's day.

        Packages offered that day get the ISO date in available_on_dates;
        packages only offered that day are added.
        """
        iso = target.isoformat()
        if not await self.select_target_date(target):
            self.errors.append(f"could not select date {iso}")
            logger.warning("packages.date_select_failed", date=iso)
            return packages

        by_key = {normalize_package_name(p.name): p for p in packages}
        dated = await self.scrape_all_packages(categories)
        added = 0
        for package in dated:
            key = normalize_package_name(package.name)
            existing = by_key.get(key)
            if existing is None:
                package.available_on_dates = [iso]
                by_key[key] = package
                added += 1
            elif iso not in existing.available_on_dates:
                existing.available_on_dates.append(iso)

        logger.info("packages.date_scraped", date=iso, packages=len(dated), date_only=added)
        return list(by_key.values())

    # --- Page-level facts ---

    async def extract_venue_info(self) -> VenueInfo:
        name = await first_text(self.page, VENUE_NAME_SELECTORS, min_len=2, max_len=120)
        if not name:
            title = clean_text(await self.page.title())
            name = clean_text(re.split(r"\s[|\-–]\s", title)[0]) if title else ""
        venue = VenueInfo(name=name or "")
        venue.address = await first_text(self.page, ADDRESS_SELECTORS, min_len=5, max_len=200)
        venue.hours = await first_text(self.page, HOURS_SELECTORS, min_len=3, max_len=200)

        for link in await self.page.query_all('a[href^="tel:"]'):
            href = await link.get_attribute("href")
            if href:
                venue.phone = href[4:].strip()
                break
        for link in await self.page.query_all('a[href^="mailto:"]'):
            href = await link.get_attribute("href")
            if href:
                venue.email = href[7:].split("?")[0].strip()
                break

        if venue.phone is None or venue.email is None:
            body = await self.page.body_text()
            if venue.email is None:
                match = _EMAIL_RE.search(body)
                venue.email = match.group(0) if match else None
            if venue.phone is None:
                match = _PHONE_RE.search(body)
                venue.phone = match.group(0).strip() if match else None
        return venue

    async def extract_categories(self) -> list[str]:
        """Category tab labels, excluding "All"; empty when there is at most one tab."""
        for selector in CATEGORY_SELECTORS:
            tabs = await visible_elements(self.page, selector)
            if len(tabs) <= 1:
                continue
            names: list[str] = []
            for tab in tabs:
                label = await element_text(tab)
                if 0 < len(label) <= 40 and label.lower() != "all" and label not in names:
                    names.append(label)
            if names:
                return names
        return []

    async def extract_available_dates(self) -> list[str]:
        dates: list[str] = []
        for select in await self.page.query_all(DATE_SELECT_SELECTOR):
            for option in await select.query_all("option"):
                label = await element_text(option)
                if label and "select" not in label.lower() and label not in dates:
                    dates.append(label)
                if len(dates) >= MAX_AVAILABLE_DATES:
                    return dates
        if dates:
            return dates
        return await extract_available_dates(self.page)
