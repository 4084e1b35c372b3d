"""
Playwright implementation of the browser capability interface.

Each wrapper swallows Playwright errors on reads (returning empty defaults)
and reports actions as booleans, so the core only sees the contract in
`booking_explorer.capabilities`. Launch and context-creation failures raise
BrowserUnavailableError.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from playwright.async_api import Browser, BrowserContext, Locator, Page, async_playwright
from playwright.async_api import Error as PlaywrightError

from booking_explorer.capabilities import NavigationOutcome
from booking_explorer.crawl.constants import (
    LOCALE,
    SCREENSHOT_TIMEOUT_MS,
    TIMEZONE_ID,
    USER_AGENT,
    VIEWPORT,
)
from booking_explorer.errors import BrowserUnavailableError
from shared.logging import get_logger

logger = get_logger(__name__)

# Reads should not wait for elements to appear; the explorer decides when to wait.
READ_TIMEOUT_MS = 1000

_ATTRIBUTES_JS = """(el) => {
    const attrs = {};
    for (const attr of el.attributes) { attrs[attr.name] = attr.value; }
    return attrs;
}"""
_HAS_ANCESTOR_JS = "(el, sel) => !!(el.parentElement && el.parentElement.closest(sel))"
_PARENT_TEXT_JS = "(el) => (el.parentElement ? el.parentElement.textContent : '') || ''"


def _ensure_parent(path: str) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)


class PlaywrightElement:
    """ElementHandle over a Playwright Locator resolved to one element."""

    def __init__(self, locator: Locator, action_timeout_ms: int) -> None:
        self._locator = locator
        self._action_timeout_ms = action_timeout_ms

    async def get_attribute(self, name: str) -> Optional[str]:
        try:
            return await self._locator.get_attribute(name, timeout=READ_TIMEOUT_MS)
        except PlaywrightError:
            return None

    async def attributes(self) -> dict[str, str]:
        try:
            return await self._locator.evaluate(_ATTRIBUTES_JS, timeout=READ_TIMEOUT_MS)
        except PlaywrightError:
            return {}

    async def text(self) -> str:
        try:
            return await self._locator.text_content(timeout=READ_TIMEOUT_MS) or ""
        except PlaywrightError:
            return ""

    async def tag_name(self) -> str:
        try:
            return await self._locator.evaluate("(el) => el.tagName.toLowerCase()", timeout=READ_TIMEOUT_MS)
        except PlaywrightError:
            return "unknown"

    async def is_visible(self) -> bool:
        try:
            return await self._locator.is_visible()
        except PlaywrightError:
            return False

    async def is_enabled(self) -> bool:
        try:
            return await self._locator.is_enabled(timeout=READ_TIMEOUT_MS)
        except PlaywrightError:
            return False

    async def is_checked(self) -> bool:
        try:
            return await self._locator.is_checked(timeout=READ_TIMEOUT_MS)
        except PlaywrightError:
            return False

    async def bounding_box(self) -> Optional[dict[str, float]]:
        try:
            return await self._locator.bounding_box(timeout=READ_TIMEOUT_MS)
        except PlaywrightError:
            return None

    async def input_value(self) -> Optional[str]:
        try:
            return await self._locator.input_value(timeout=READ_TIMEOUT_MS)
        except PlaywrightError:
            return None

    async def query_all(self, selector: str) -> list["PlaywrightElement"]:
        try:
            locators = await self._locator.locator(selector).all()
        except PlaywrightError:
            return []
        return [PlaywrightElement(loc, self._action_timeout_ms) for loc in locators]

    async def has_ancestor(self, selector: str) -> bool:
        try:
            return bool(await self._locator.evaluate(_HAS_ANCESTOR_JS, selector, timeout=READ_TIMEOUT_MS))
        except PlaywrightError:
            return False

    async def parent_text(self) -> str:
        try:
            return await self._locator.evaluate(_PARENT_TEXT_JS, timeout=READ_TIMEOUT_MS)
        except PlaywrightError:
            return ""

    async def click(self, *, timeout_ms: int, force: bool = False) -> bool:
        try:
            await self._locator.wait_for(state="visible", timeout=timeout_ms)
            if not force and await self._locator.is_disabled():
                return False
            try:
                await self._locator.scroll_into_view_if_needed(timeout=2000)
            except PlaywrightError:
                pass
            await self._locator.click(timeout=timeout_ms, force=force)
            return True
        except PlaywrightError as e:
            logger.debug("element.click_failed", error=str(e), error_type=type(e).__name__)
            return False

    async def fill(self, value: str) -> bool:
        try:
            await self._locator.fill(value, timeout=self._action_timeout_ms)
            return True
        except PlaywrightError:
            return False

    async def select_option(self, value: str) -> bool:
        for kwargs in ({"value": value}, {"label": value}):
            try:
                await self._locator.select_option(timeout=self._action_timeout_ms, **kwargs)
                return True
            except PlaywrightError:
                continue
        return False

    async def screenshot(self, path: str) -> Optional[str]:
        try:
            _ensure_parent(path)
            await self._locator.screenshot(path=path, timeout=SCREENSHOT_TIMEOUT_MS)
            return path
        except (PlaywrightError, OSError) as e:
            logger.debug("element.screenshot_failed", path=path, error=str(e))
            return None


class PlaywrightPage:
    """BrowserPage over a Playwright Page."""

    def __init__(self, page: Page, action_timeout_ms: int) -> None:
        self._page = page
        self._action_timeout_ms = action_timeout_ms
        page.set_default_timeout(action_timeout_ms)

    @property
    def raw(self) -> Page:
        return self._page

    @property
    def url(self) -> str:
        return self._page.url

    async def navigate(
        self, url: str, *, timeout_ms: int, wait_until: str = "domcontentloaded"
    ) -> NavigationOutcome:
        try:
            response = await self._page.goto(url, timeout=timeout_ms, wait_until=wait_until)
        except PlaywrightError as e:
            return NavigationOutcome(status=None, final_url=self._page.url, error=str(e))
        status = response.status if response is not None else None
        return NavigationOutcome(status=status, final_url=self._page.url)

    async def title(self) -> str:
        try:
            return await self._page.title()
        except PlaywrightError:
            return ""

    async def query_all(self, selector: str) -> list[PlaywrightElement]:
        try:
            locators = await self._page.locator(selector).all()
        except PlaywrightError:
            return []
        return [PlaywrightElement(loc, self._action_timeout_ms) for loc in locators]

    async def body_text(self) -> str:
        try:
            return await self._page.inner_text("body", timeout=READ_TIMEOUT_MS)
        except PlaywrightError:
            return ""

    async def content(self) -> str:
        try:
            return await self._page.content()
        except PlaywrightError:
            return ""

    async def wait_for_idle(self, timeout_ms: int) -> None:
        try:
            await self._page.wait_for_load_state("networkidle", timeout=timeout_ms)
        except PlaywrightError:
            # Long-polling widgets never go idle; the bound is what matters.
            pass

    async def sleep(self, ms: int) -> None:
        if ms > 0:
            await asyncio.sleep(ms / 1000.0)

    async def screenshot(self, path: str) -> Optional[str]:
        try:
            _ensure_parent(path)
            await self._page.screenshot(path=path, full_page=False, timeout=SCREENSHOT_TIMEOUT_MS)
            return path
        except (PlaywrightError, OSError) as e:
            logger.debug("page.screenshot_failed", path=path, error=str(e))
            return None

    async def go_back(self) -> bool:
        try:
            return await self._page.go_back(timeout=self._action_timeout_ms) is not None
        except PlaywrightError:
            return False


class PlaywrightContext:
    """BrowserContextHandle over a Playwright BrowserContext."""

    def __init__(self, context: BrowserContext, action_timeout_ms: int) -> None:
        self._context = context
        self._action_timeout_ms = action_timeout_ms
        self._wrapped: dict[int, PlaywrightPage] = {}

    def _wrap(self, page: Page) -> PlaywrightPage:
        key = id(page)
        if key not in self._wrapped:
            self._wrapped[key] = PlaywrightPage(page, self._action_timeout_ms)
        return self._wrapped[key]

    async def new_page(self) -> PlaywrightPage:
        try:
            page = await self._context.new_page()
        except PlaywrightError as e:
            raise BrowserUnavailableError(f"Could not open a page: {e}") from e
        return self._wrap(page)

    def pages(self) -> list[PlaywrightPage]:
        return [self._wrap(p) for p in self._context.pages]

    async def close(self) -> None:
        try:
            await self._context.close()
        except PlaywrightError as e:
            logger.warning("context.close_failed", error=str(e), error_type=type(e).__name__)


class PlaywrightSession:
    """BrowserSession: one browser process handing out isolated contexts."""

    def __init__(self, browser: Browser, action_timeout_ms: int) -> None:
        self._browser = browser
        self._action_timeout_ms = action_timeout_ms

    async def new_isolated_context(self) -> PlaywrightContext:
        try:
            context = await self._browser.new_context(
                viewport=VIEWPORT,
                user_agent=USER_AGENT,
                ignore_https_errors=True,
                locale=LOCALE,
                timezone_id=TIMEZONE_ID,
            )
        except PlaywrightError as e:
            raise BrowserUnavailableError(f"Could not create browser context: {e}") from e
        return PlaywrightContext(context, self._action_timeout_ms)

    async def close_context(self, context: PlaywrightContext) -> None:
        await context.close()


@asynccontextmanager
async def launch_session(*, headless: bool, action_timeout_ms: int) -> AsyncIterator[PlaywrightSession]:
    """Launch Chromium for one run; the browser is closed on exit."""
    async with async_playwright() as p:
        try:
            browser = await p.chromium.launch(headless=headless)
        except PlaywrightError as e:
            raise BrowserUnavailableError(f"Could not launch browser: {e}") from e
        logger.info("browser.launched", headless=headless)
        try:
            yield PlaywrightSession(browser, action_timeout_ms)
        finally:
            await browser.close()
