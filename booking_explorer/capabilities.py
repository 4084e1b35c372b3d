"""
Browser capability interface consumed by the crawler, detectors, extractors,
flow explorer, and package scraper.

The core never imports a browser binding directly. `booking_explorer.crawl.driver`
implements these protocols on top of Playwright; tests implement them with
in-memory fakes.

Conventions:
- Selectors are plain CSS. Text matching is done in Python over `text()`.
- Getters never raise; they return an empty default ("" / None / False / []).
- Actions (`click`, `fill`, `select_option`) return True on success.
- `navigate` reports failures through NavigationOutcome instead of raising.
- Only `BrowserSession.new_isolated_context` may raise (BrowserUnavailableError).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class NavigationOutcome:
    """Result of a page navigation. status is None when no response arrived."""

    status: Optional[int]
    final_url: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        if self.error is not None:
            return False
        # Some navigations (e.g. same-document) yield no response.
        return self.status is None or self.status < 400


@runtime_checkable
class ElementHandle(Protocol):
    async def get_attribute(self, name: str) -> Optional[str]: ...

    async def attributes(self) -> dict[str, str]: ...

    async def text(self) -> str: ...

    async def tag_name(self) -> str: ...

    async def is_visible(self) -> bool: ...

    async def is_enabled(self) -> bool: ...

    async def is_checked(self) -> bool: ...

    async def bounding_box(self) -> Optional[dict[str, float]]: ...

    async def input_value(self) -> Optional[str]: ...

    async def query_all(self, selector: str) -> list["ElementHandle"]: ...

    async def has_ancestor(self, selector: str) -> bool: ...

    async def parent_text(self) -> str: ...

    async def click(self, *, timeout_ms: int, force: bool = False) -> bool: ...

    async def fill(self, value: str) -> bool: ...

    async def select_option(self, value: str) -> bool: ...

    async def screenshot(self, path: str) -> Optional[str]: ...


@runtime_checkable
class BrowserPage(Protocol):
    @property
    def url(self) -> str: ...

    async def navigate(
        self, url: str, *, timeout_ms: int, wait_until: str = "domcontentloaded"
    ) -> NavigationOutcome: ...

    async def title(self) -> str: ...

    async def query_all(self, selector: str) -> list[ElementHandle]: ...

    async def body_text(self) -> str: ...

    async def content(self) -> str: ...

    async def wait_for_idle(self, timeout_ms: int) -> None: ...

    async def sleep(self, ms: int) -> None: ...

    async def screenshot(self, path: str) -> Optional[str]: ...

    async def go_back(self) -> bool: ...


@runtime_checkable
class BrowserContextHandle(Protocol):
    """One isolated browsing context (own cookies and storage)."""

    async def new_page(self) -> BrowserPage: ...

    def pages(self) -> list[BrowserPage]: ...

    async def close(self) -> None: ...


@runtime_checkable
class BrowserSession(Protocol):
    async def new_isolated_context(self) -> BrowserContextHandle: ...

    async def close_context(self, context: BrowserContextHandle) -> None: ...
