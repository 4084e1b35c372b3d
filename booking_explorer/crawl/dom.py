"""
Small DOM query helpers over the capability interface.

`scope` is anything with `query_all(selector)`: a BrowserPage or an ElementHandle.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, Protocol, Union

from booking_explorer.capabilities import ElementHandle
from booking_explorer.crawl.text import clean_text


class Queryable(Protocol):
    async def query_all(self, selector: str) -> list[ElementHandle]: ...


async def visible_elements(scope: Queryable, selector: str, limit: Optional[int] = None) -> list[ElementHandle]:
    found: list[ElementHandle] = []
    for element in await scope.query_all(selector):
        if await element.is_visible():
            found.append(element)
            if limit is not None and len(found) >= limit:
                break
    return found


async def first_visible(scope: Queryable, selectors: Iterable[str]) -> Optional[ElementHandle]:
    """First visible element, trying selectors in order."""
    for selector in selectors:
        hits = await visible_elements(scope, selector, limit=1)
        if hits:
            return hits[0]
    return None


async def any_visible(scope: Queryable, selectors: Iterable[str]) -> bool:
    return await first_visible(scope, selectors) is not None


async def element_text(element: ElementHandle) -> str:
    return clean_text(await element.text())


async def find_by_text(
    scope: Queryable,
    selectors: Iterable[str],
    pattern: Union[str, re.Pattern[str]],
    *,
    require_enabled: bool = False,
) -> Optional[ElementHandle]:
    """First visible element (selectors in order) whose cleaned text matches pattern."""
    regex = re.compile(pattern, re.I) if isinstance(pattern, str) else pattern
    for selector in selectors:
        for element in await visible_elements(scope, selector):
            if not regex.search(await element_text(element)):
                continue
            if require_enabled and not await element.is_enabled():
                continue
            return element
    return None


async def first_text(scope: Queryable, selectors: Iterable[str], *, min_len: int = 1, max_len: int = 10_000) -> Optional[str]:
    """Cleaned text of the first visible element whose text length is within bounds."""
    for selector in selectors:
        for element in await visible_elements(scope, selector, limit=3):
            text = await element_text(element)
            if min_len <= len(text) <= max_len:
                return text
    return None


def parse_int(value: Optional[str]) -> Optional[int]:
    """Leading integer in value ("12 guests" -> 12), or None."""
    if not value:
        return None
    match = re.search(r"-?\d+", value)
    return int(match.group(0)) if match else None
