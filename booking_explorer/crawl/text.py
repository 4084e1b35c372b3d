"""
Text helpers: whitespace cleanup, price extraction, slugs, ids, timestamps.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# A thousands comma only counts when three digits follow it.
AMOUNT = r"(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d{2})?"
PRICE_PATTERNS = (
    re.compile(rf"[£$€]\s*{AMOUNT}"),
    re.compile(rf"\b{AMOUNT}\s*(?:GBP|USD|EUR|pounds?|dollars?)", re.I),
    re.compile(rf"(?:GBP|USD|EUR)\s*{AMOUNT}", re.I),
)
CURRENCY_SYMBOLS = ("£", "$", "€")


def clean_text(text: Optional[str]) -> str:
    """Collapse whitespace and trim; None becomes ""."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def extract_price(text: Optional[str]) -> Optional[str]:
    """First price-looking substring ("£25", "25.00 GBP"), or None."""
    if not text:
        return None
    for pattern in PRICE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0).strip()
    return None


def detect_currency(text: str, default: str) -> str:
    for symbol in CURRENCY_SYMBOLS:
        if symbol in text:
            return symbol
    return default


def slugify(text: str, max_length: int = 50) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug[:max_length]


def generate_id() -> str:
    return str(uuid.uuid4())


def normalize_package_name(name: str) -> str:
    """
    Dedupe key for package names.

    Lowercased, punctuation stripped, whitespace collapsed:
    "Strike Package!" and "strike   package" share the key "strike package".
    """
    lowered = re.sub(r"[^\w\s]", "", name.lower()).replace("_", " ")
    return re.sub(r"\s+", " ", lowered).strip()


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def format_duration(ms: int) -> str:
    if ms < 1000:
        return f"{ms}ms"
    if ms < 60_000:
        return f"{ms / 1000:.1f}s"
    minutes, rest = divmod(ms, 60_000)
    return f"{minutes}m {round(rest / 1000)}s"


def build_screenshot_path(directory: Path, *parts: str) -> str:
    """<directory>/<slug-of-parts>.png"""
    name = "-".join(slugify(p, 40) for p in parts if p) or "screenshot"
    return str(directory / f"{name}.png")
