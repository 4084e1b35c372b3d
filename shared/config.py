"""
Environment-based configuration for the booking flow explorer.

This module exposes a small, typed configuration surface consumed by the
crawler, the flow explorer, and the package scraper. All values are sourced
from environment variables with sensible defaults; the CLI layers its own
flags on top through `ExplorerConfig.with_overrides`.

Limits use None (pages, depth) or 0 (flows) to mean "unlimited".
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, fields, replace
from datetime import date
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlparse

DEFAULT_BASE_URL = "http://localhost:3000"


def _bool_env(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or str(default)).strip().lower()
    return raw in ("true", "1", "yes")


def _int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= 0 else default


def _limit_env(name: str) -> Optional[int]:
    """Positive integer limit, or None (unlimited) when unset / zero / invalid."""
    raw = (os.getenv(name) or "").strip()
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value > 0 else None


def _date_env(name: str) -> Optional[date]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValueError(f"Unsupported {name} value (expected YYYY-MM-DD): {raw!r}") from None


def site_folder_name(url: str) -> str:
    """
    Domain of url, usable as a folder name.

    "https://www.example.com/path" -> "example.com"
    """
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return re.sub(r"[^a-zA-Z0-9.-]", "_", host) or "unknown"


@dataclass(frozen=True)
class ExplorerConfig:
    """
    Settings for one exploration run.

    Only values live here; how they are loaded (env, CLI flags) is the
    caller's concern. Instances are immutable and safe to share across
    flows, which is the only cross-flow state the explorer allows.
    """

    base_url: str = DEFAULT_BASE_URL
    # None = unlimited
    max_pages: Optional[int] = None
    max_depth: Optional[int] = None
    page_timeout_ms: int = 30_000
    action_timeout_ms: int = 15_000
    network_idle_timeout_ms: int = 5_000
    headless: bool = True
    output_dir: str = "./reports"
    take_screenshots: bool = True
    # 0 = unlimited
    max_flows: int = 0
    action_delay_ms: int = 500
    retries: int = 3
    retry_backoff_ms: int = 500
    max_steps_per_flow: int = 15
    variation_timeout_ms: int = 180_000
    # Package scraping: how many package detail views may be opened per widget.
    scrape_packages: bool = True
    max_package_details: int = 25
    # When set, package scraping also re-scrapes after picking this day.
    target_date: Optional[date] = None

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_stdout: bool = True

    def __post_init__(self) -> None:
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Invalid base URL: {self.base_url!r}")
        if self.retries < 1:
            raise ValueError("retries must be at least 1")
        if self.max_steps_per_flow < 1:
            raise ValueError("max_steps_per_flow must be at least 1")

    @classmethod
    def from_env(cls) -> "ExplorerConfig":
        """
        Construct configuration from environment variables.

        All fields have defaults suitable for a local run against
        http://localhost:3000.
        """

        return cls(
            base_url=os.getenv("BASE_URL", DEFAULT_BASE_URL),
            max_pages=_limit_env("MAX_PAGES"),
            max_depth=_limit_env("MAX_DEPTH"),
            page_timeout_ms=_int_env("PAGE_TIMEOUT", 30_000),
            action_timeout_ms=_int_env("ACTION_TIMEOUT", 15_000),
            network_idle_timeout_ms=_int_env("NETWORK_IDLE_TIMEOUT", 5_000),
            headless=_bool_env("HEADLESS", True),
            output_dir=os.getenv("OUTPUT_DIR", "./reports"),
            take_screenshots=_bool_env("SCREENSHOTS", True),
            max_flows=_int_env("MAX_FLOWS", 0),
            action_delay_ms=_int_env("ACTION_DELAY", 500),
            retries=max(1, _int_env("RETRIES", 3)),
            retry_backoff_ms=_int_env("RETRY_BACKOFF", 500),
            max_steps_per_flow=max(1, _int_env("MAX_STEPS_PER_FLOW", 15)),
            variation_timeout_ms=_int_env("VARIATION_TIMEOUT", 180_000),
            scrape_packages=_bool_env("SCRAPE_PACKAGES", True),
            max_package_details=_int_env("MAX_PACKAGE_DETAILS", 25),
            target_date=_date_env("TARGET_DATE"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE") or None,
            log_stdout=_bool_env("LOG_STDOUT", True),
        )

    def with_overrides(self, **overrides: Any) -> "ExplorerConfig":
        """
        Return a copy with the given fields replaced.

        None values are ignored so unset CLI flags do not clobber env values.
        Unknown field names raise TypeError.
        """

        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown config fields: {sorted(unknown)}")
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self

    @property
    def site_output_dir(self) -> Path:
        """Output directory for this site, e.g. ./reports/example.com."""
        return Path(self.output_dir).resolve() / site_folder_name(self.base_url)

    @property
    def screenshot_dir(self) -> Path:
        return self.site_output_dir / "screenshots"

    def snapshot(self) -> dict[str, Any]:
        """Plain dict of the settings, for embedding in reports."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        if self.target_date is not None:
            data["target_date"] = self.target_date.isoformat()
        return data


def get_config() -> ExplorerConfig:
    """
    Helper to obtain the current configuration.

    In longer-lived processes, construct a single `ExplorerConfig` at
    startup and pass it explicitly through your code.
    """

    return ExplorerConfig.from_env()
