"""
Exception types for the explorer.

Almost every failure is contained where it happens (page, step, variation,
trigger) and recorded in an `errors` list. Only infrastructure failures
escape, as BrowserUnavailableError.
"""

from __future__ import annotations


class ExplorerError(Exception):
    """Base class for explorer errors."""


class BrowserUnavailableError(ExplorerError):
    """No browser, or no isolated context could be created. Aborts the run."""
