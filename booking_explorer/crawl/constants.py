"""
Crawl constants: viewport, timeouts, link selectors, URL skip rules, booking URL patterns.
"""

from __future__ import annotations

import re

# Browser context for every exploration context (discovery and per-flow).
VIEWPORT = {"width": 1280, "height": 720}
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36 BookingExplorer/1.0"
)
TIMEZONE_ID = "Europe/London"
LOCALE = "en-GB"

# Timeout constants (in milliseconds)
POST_CLICK_IDLE_TIMEOUT = 3000  # Network idle after a click or trigger entry
POST_CLICK_SETTLE_MS = 300  # Settle after a click before reading the DOM
STEPPER_CLICK_DELAY_MS = 200  # Between +/- presses
SCREENSHOT_TIMEOUT_MS = 10_000

# Links: anchors plus clickables that carry their destination in a data attribute
ANCHOR_SELECTOR = "a[href]"
DATA_LINK_ATTRIBUTES = ("data-href", "data-url", "data-link")
DATA_LINK_SELECTOR = "[data-href], [data-url], [data-link]"

# Crawl priority: booking-looking links are visited at their depth, others later.
NON_BOOKING_PRIORITY_PENALTY = 10

# Ordered (name, pattern) table; the first match names the skip reason.
URL_SKIP_RULES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("pseudo_scheme", re.compile(r"^(mailto|tel|javascript):", re.I)),
    ("binary_asset", re.compile(r"\.(jpg|jpeg|png|gif|svg|webp|ico|pdf|zip|doc|docx|xls|xlsx)$", re.I)),
    ("static_asset", re.compile(r"\.(css|js|json|xml|rss|atom)$", re.I)),
    ("cms_internal", re.compile(r"/(wp-content|wp-admin|wp-includes)/", re.I)),
    ("auth", re.compile(r"/(login|logout|register|signup|signin|signout)\b", re.I)),
    ("tracking_params", re.compile(r"[?&](utm_[a-z]+|ref|source)=", re.I)),
    ("fragment", re.compile(r"#.+$")),
    ("editorial", re.compile(r"/(blogs?|news|articles?|posts?)\b", re.I)),
    ("taxonomy", re.compile(r"/(category|tag|author)/", re.I)),
    ("archive", re.compile(r"/archive", re.I)),
    ("share_feed", re.compile(r"/(share|feed)\b", re.I)),
    ("legal", re.compile(r"/(privacy|terms|cookie|gdpr|sitemap)", re.I)),
)

# Paths that suggest a booking destination; used for crawl priority.
BOOKING_PATH_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.I)
    for p in (
        r"/book",
        r"/reserv",
        r"/checkout",
        r"/cart",
        r"/tickets?\b",
        r"/enquir",
        r"/party",
        r"/group",
        r"/event",
        r"/function",
        r"/corporate",
        r"/private-hire",
    )
)

# Link text that marks a booking link even when its path does not.
BOOKING_LINK_TEXT = re.compile(
    r"\b(book|booking|reserve|reservation|tickets?|enquire|enquiry|party|parties|group|functions?)\b",
    re.I,
)
