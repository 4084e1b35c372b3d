"""
Priority-queue site crawler.

Starts at the configured base URL and visits internal pages one at a time,
booking-looking links first. All crawl state (queue, visited set, results,
triggers) belongs to one Crawler instance; two crawlers never share it.

Usage:
    crawler = Crawler(page, config)
    outcome = await crawler.crawl()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from booking_explorer.capabilities import BrowserPage
from booking_explorer.crawl.constants import (
    ANCHOR_SELECTOR,
    DATA_LINK_ATTRIBUTES,
    DATA_LINK_SELECTOR,
    NON_BOOKING_PRIORITY_PENALTY,
)
from booking_explorer.crawl.text import clean_text, utc_timestamp
from booking_explorer.crawl.urls import (
    is_booking_related_url,
    is_internal_url,
    normalize_url,
    skip_reason,
)
from booking_explorer.detectors import detect_booking_triggers
from booking_explorer.models import BookingTrigger, CrawlQueueItem, CrawlResult
from shared.config import ExplorerConfig
from shared.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CrawlOutcome:
    results: list[CrawlResult] = field(default_factory=list)
    triggers: list[BookingTrigger] = field(default_factory=list)


@dataclass
class CrawlStatsSnapshot:
    pages_visited: int
    queue_remaining: int
    triggers_found: int
    failed_pages: int


def deduplicate_triggers(triggers: list[BookingTrigger]) -> list[BookingTrigger]:
    """Exact dedupe on (source_url, text, selector); first occurrence wins, order kept."""
    seen: set[tuple[str, str, str]] = set()
    unique: list[BookingTrigger] = []
    for trigger in triggers:
        key = (trigger.source_url, trigger.text, trigger.selector)
        if key in seen:
            continue
        seen.add(key)
        unique.append(trigger)
    return unique


class Crawler:
    def __init__(self, page: BrowserPage, config: ExplorerConfig) -> None:
        self.page = page
        self.config = config
        self.visited: set[str] = set()
        self.queue: list[CrawlQueueItem] = []
        self.results: list[CrawlResult] = []
        self.all_triggers: list[BookingTrigger] = []
        self._failed_pages = 0

    def _page_limit_reached(self) -> bool:
        return self.config.max_pages is not None and len(self.visited) >= self.config.max_pages

    def _too_deep(self, depth: int) -> bool:
        return self.config.max_depth is not None and depth > self.config.max_depth

    async def crawl(self) -> CrawlOutcome:
        """Crawl from the base URL until the queue drains or the page ceiling is hit."""
        logger.info(
            "crawl.started",
            base_url=self.config.base_url,
            max_pages=self.config.max_pages if self.config.max_pages is not None else "unlimited",
            max_depth=self.config.max_depth if self.config.max_depth is not None else "unlimited",
        )

        self.enqueue(CrawlQueueItem(url=self.config.base_url, depth=0, source_url=None, priority=0))

        while self.queue and not self._page_limit_reached():
            # Stable sort: equal priorities keep discovery order.
            self.queue.sort(key=lambda item: item.priority)
            item = self.queue.pop(0)

            if item.url in self.visited or self._too_deep(item.depth):
                continue

            result, link_texts = await self.visit_page(item)
            self.results.append(result)

            for link in result.internal_links:
                booking = is_booking_related_url(link, link_texts.get(link, ""))
                self.enqueue(
                    CrawlQueueItem(
                        url=link,
                        depth=item.depth + 1,
                        source_url=item.url,
                        priority=item.depth if booking else item.depth + NON_BOOKING_PRIORITY_PENALTY,
                    )
                )

            if result.booking_triggers:
                self.all_triggers.extend(result.booking_triggers)
                logger.info("crawl.triggers_found", url=item.url, count=len(result.booking_triggers))

            await self.page.sleep(self.config.action_delay_ms)

        triggers = deduplicate_triggers(self.all_triggers)
        logger.info(
            "crawl.completed",
            pages_visited=len(self.visited),
            triggers_found=len(triggers),
            failed_pages=self._failed_pages,
        )
        return CrawlOutcome(results=list(self.results), triggers=triggers)

    def enqueue(self, item: CrawlQueueItem) -> bool:
        """
        Queue a URL if it is internal, unvisited, allowed, and within depth.

        A URL already queued keeps one entry; a later sighting can only lower
        its priority.
        """
        url = normalize_url(item.url, self.config.base_url)
        if not is_internal_url(url, self.config.base_url):
            return False
        if url in self.visited or self._too_deep(item.depth):
            return False
        reason = skip_reason(url)
        if reason is not None:
            logger.debug("crawl.url_skipped", url=url, reason=reason)
            return False

        for queued in self.queue:
            if queued.url == url:
                if item.priority < queued.priority:
                    queued.priority = item.priority
                    queued.depth = min(queued.depth, item.depth)
                return False

        self.queue.append(CrawlQueueItem(url=url, depth=item.depth, source_url=item.source_url, priority=item.priority))
        return True

    async def visit_page(self, item: CrawlQueueItem) -> tuple[CrawlResult, dict[str, str]]:
        """
        Load one page and collect its title, links, and triggers.

        The URL is marked visited before navigating so a failing page is never retried.
        """
        url = item.url
        self.visited.add(url)
        logger.info(
            "crawl.page_visit",
            url=url,
            depth=item.depth,
            visited=len(self.visited),
            max_pages=self.config.max_pages if self.config.max_pages is not None else "unlimited",
        )

        errors: list[str] = []
        title = ""
        links: list[str] = []
        link_texts: dict[str, str] = {}
        triggers: list[BookingTrigger] = []

        outcome = await self.page.navigate(url, timeout_ms=self.config.page_timeout_ms)
        if not outcome.ok:
            errors.append(outcome.error or f"HTTP {outcome.status if outcome.status is not None else 'unknown'}")
            self._failed_pages += 1
            logger.warning("crawl.page_failed", url=url, status=outcome.status, error=errors[-1])
        else:
            await self.page.wait_for_idle(self.config.network_idle_timeout_ms)
            title = clean_text(await self.page.title())
            link_texts = await self.extract_links()
            links = list(link_texts)
            try:
                triggers = await detect_booking_triggers(self.page, url)
            except Exception as e:
                errors.append(f"trigger detection failed: {e}")
                logger.warning(
                    "crawl.detect_failed",
                    url=url,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        result = CrawlResult(
            url=url,
            title=title,
            internal_links=tuple(links),
            booking_triggers=tuple(triggers),
            visited_at=utc_timestamp(),
            depth=item.depth,
            errors=tuple(errors),
        )
        return result, link_texts

    async def extract_links(self) -> dict[str, str]:
        """Internal links on the page, normalized, mapped to their link text (DOM order)."""
        links: dict[str, str] = {}

        def _add(raw: Optional[str], text: str) -> None:
            if not raw:
                return
            url = normalize_url(raw, self.config.base_url)
            if not is_internal_url(url, self.config.base_url):
                return
            if url not in links or (text and not links[url]):
                links[url] = text

        for anchor in await self.page.query_all(ANCHOR_SELECTOR):
            _add(await anchor.get_attribute("href"), clean_text(await anchor.text()))

        for element in await self.page.query_all(DATA_LINK_SELECTOR):
            for attribute in DATA_LINK_ATTRIBUTES:
                value = await element.get_attribute(attribute)
                if value:
                    _add(value, clean_text(await element.text()))
                    break

        return links

    def get_stats(self) -> CrawlStatsSnapshot:
        return CrawlStatsSnapshot(
            pages_visited=len(self.visited),
            queue_remaining=len(self.queue),
            triggers_found=len(self.all_triggers),
            failed_pages=self._failed_pages,
        )
