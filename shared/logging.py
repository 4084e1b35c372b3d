"""
Structured logging setup for the booking flow explorer.

All runtime logging should go through structlog. This module provides a
minimal baseline shared by the crawler, the flow explorer, and the CLI.

Key principles:
- Logs are structured (JSON by default) and include contextual fields.
- Context can be bound per-run / per-flow (e.g. run_id, trigger_id, variation).
- Configuration is deterministic and avoids ad-hoc logging configuration
  scattered across the codebase.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Mapping, Optional

import structlog


def _build_shared_processors() -> list[structlog.types.Processor]:
    """Processors applied to every log event."""

    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        timestamper,
        structlog.processors.EventRenamer("message"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]


def configure_logging(
    level: int | str = logging.INFO,
    log_file: Optional[str] = None,
    log_stdout: bool = True,
) -> None:
    """
    Configure structlog and the standard logging module.

    Call once at process startup. Later calls replace the handlers.

    - When log_stdout is True (default), a StreamHandler(sys.stdout) is added.
    - When log_file is set, a FileHandler is added (parent dir created if needed).
    - At least one handler is always added: if both log_stdout=False and log_file
      is unset, stdout is used as fallback so the process never has zero handlers.
    """

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    if log_stdout:
        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setLevel(level)
        stdout_handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(stdout_handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(file_handler)

    if not root.handlers:
        # Fallback: avoid zero handlers (e.g. LOG_STDOUT=false and LOG_FILE unset)
        fallback = logging.StreamHandler(sys.stdout)
        fallback.setLevel(level)
        fallback.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(fallback)

    structlog.configure(
        processors=_build_shared_processors(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """
    Obtain a structured logger.

    Usage:
        from shared.logging import get_logger, bind_run_context

        logger = get_logger(__name__)
        bind_run_context(run_id="...", domain="example.com")
        logger.info("crawl_started")
    """

    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(name) if name else structlog.get_logger()


def bind_run_context(
    *,
    run_id: Optional[str] = None,
    domain: Optional[str] = None,
    trigger_id: Optional[str] = None,
    variation: Optional[str] = None,
    **extra: Any,
) -> Mapping[str, Any]:
    """
    Bind common context fields for crawl / exploration logging.

    Convention: logs carry run_id and domain for the whole run, plus
    trigger_id and variation while a single flow is being explored.
    Additional keyword arguments are also bound into the logging context.
    """

    context: dict[str, Any] = {
        "run_id": run_id,
        "domain": domain,
        "trigger_id": trigger_id,
        "variation": variation,
        **extra,
    }

    # Remove keys with None values to keep logs concise.
    filtered_context = {k: v for k, v in context.items() if v is not None}

    structlog.contextvars.bind_contextvars(**filtered_context)
    return filtered_context


def clear_flow_context() -> None:
    """Drop per-flow fields once a trigger has been explored."""

    structlog.contextvars.unbind_contextvars("trigger_id", "variation")
