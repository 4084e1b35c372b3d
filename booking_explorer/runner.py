"""
One full exploration run: crawl, explore flows, collect package discoveries.

The browser session comes from a factory so tests can supply in-memory fakes;
by default a headless (or headed) Chromium is launched via Playwright.
"""

from __future__ import annotations

import time
from typing import AsyncContextManager, Callable, Optional

from booking_explorer.capabilities import BrowserSession
from booking_explorer.crawl.driver import launch_session
from booking_explorer.crawl.text import format_duration, generate_id, utc_timestamp
from booking_explorer.crawler import Crawler
from booking_explorer.flow_explorer import FlowExplorer
from booking_explorer.models import BookingFlow, CrawlStats, ExplorationReport
from shared.config import ExplorerConfig, site_folder_name
from shared.logging import bind_run_context, get_logger

logger = get_logger(__name__)

SessionFactory = Callable[[ExplorerConfig], AsyncContextManager[BrowserSession]]


def playwright_session(config: ExplorerConfig) -> AsyncContextManager[BrowserSession]:
    return launch_session(headless=config.headless, action_timeout_ms=config.action_timeout_ms)


def count_add_ons(bookings: list[BookingFlow]) -> int:
    """Distinct add-on names seen across every step of every flow."""
    names: set[str] = set()
    for booking in bookings:
        for variation in booking.flows:
            for step in variation.steps:
                names.update(add_on.name for add_on in step.add_ons)
    return len(names)


async def run_exploration(
    config: ExplorerConfig,
    session_factory: Optional[SessionFactory] = None,
) -> ExplorationReport:
    """
    Crawl the site, explore every booking flow, and return the report.

    BrowserUnavailableError propagates: without a browser there is nothing
    to report. Every other failure is recorded in the report's errors.
    """
    started = time.monotonic()
    report = ExplorationReport(base_url=config.base_url, started_at=utc_timestamp(), config=config.snapshot())
    bind_run_context(run_id=generate_id(), domain=site_folder_name(config.base_url))
    logger.info("run.started", base_url=config.base_url)

    factory = session_factory or playwright_session
    async with factory(config) as session:
        # Crawling uses one page in its own context; flows get fresh contexts.
        context = await session.new_isolated_context()
        try:
            page = await context.new_page()
            crawler = Crawler(page, config)
            outcome = await crawler.crawl()
            crawl_stats = crawler.get_stats()
        finally:
            await session.close_context(context)

        report.pages = outcome.results
        report.triggers = outcome.triggers

        explorer = FlowExplorer(session, config)
        report.bookings = await explorer.explore_all(outcome.triggers)
        report.discoveries = list(explorer.get_booking_system_discoveries().values())
        report.errors.extend(explorer.errors)

    report.stats = CrawlStats(
        pages_visited=crawl_stats.pages_visited,
        triggers_found=len(report.triggers),
        flows_explored=sum(len(b.flows) for b in report.bookings),
        add_ons_found=count_add_ons(report.bookings),
        packages_found=sum(len(d.packages) for d in report.discoveries),
        failed_pages=crawl_stats.failed_pages,
    )
    report.completed_at = utc_timestamp()
    report.duration_ms = int((time.monotonic() - started) * 1000)

    logger.info(
        "run.completed",
        pages=report.stats.pages_visited,
        triggers=report.stats.triggers_found,
        bookings=len(report.bookings),
        flows=report.stats.flows_explored,
        packages=report.stats.packages_found,
        errors=len(report.errors),
        duration=format_duration(report.duration_ms),
    )
    return report
