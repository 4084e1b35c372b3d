"""
Action retry policy: bounded attempts with linear backoff and jitter.

Every progression action in a flow (click next, select a date, set a group
size) goes through run_with_retry. An action reports failure by returning
False or raising; either way the caller gets an ActionResult, never an
exception.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from shared.logging import get_logger

logger = get_logger(__name__)

# Defaults when no config is supplied: max 3 attempts, backoff 500ms / 1s / 1.5s
MAX_ACTION_ATTEMPTS = 3
BACKOFF_MS = 500
JITTER_MS = 0


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = MAX_ACTION_ATTEMPTS
    backoff_ms: int = BACKOFF_MS
    jitter_ms: int = JITTER_MS

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_ms(self, attempt: int) -> int:
        """Delay after failed attempt (1-based): backoff * attempt, plus jitter."""
        jitter = random.randint(0, self.jitter_ms) if self.jitter_ms > 0 else 0
        return self.backoff_ms * attempt + jitter


@dataclass
class ActionResult:
    success: bool
    attempts: int
    error: Optional[str] = None


async def run_with_retry(
    action: Callable[[], Awaitable[bool]],
    policy: RetryPolicy,
    sleep: Callable[[int], Awaitable[None]],
    *,
    description: str = "action",
) -> ActionResult:
    """
    Run action until it returns True or the policy's attempts are used up.

    `sleep(ms)` is injected so the page's own delay (and test fakes) control time.
    No sleep follows the final attempt.
    """
    last_error: Optional[str] = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            if await action():
                if attempt > 1:
                    logger.info("action.retry_succeeded", action=description, attempt=attempt)
                return ActionResult(success=True, attempts=attempt)
            last_error = f"{description} had no effect"
        except Exception as e:
            last_error = f"{description} failed: {e}"
            logger.warning(
                "action.attempt_failed",
                action=description,
                attempt=attempt,
                error=str(e),
                error_type=type(e).__name__,
            )

        if attempt < policy.max_attempts:
            await sleep(policy.delay_ms(attempt))

    logger.info(
        "action.retries_exhausted",
        action=description,
        attempts=policy.max_attempts,
        error=last_error,
    )
    return ActionResult(success=False, attempts=policy.max_attempts, error=last_error)
