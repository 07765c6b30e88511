"""Bounded retry loop with exponential backoff under one shared deadline."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from linkpreview.config import ExtractionSettings
from linkpreview.errors import ClientHttpError, ExtractionError, FetchTimeoutError
from linkpreview.models import PageMetadata

from .deadline import Deadline

logger = logging.getLogger(__name__)


@dataclass
class AttemptResult:
    """What one {fetch, extract, evaluate} pass produced."""

    metadata: PageMetadata
    is_weak: bool
    error: Optional[ExtractionError] = None
    effective_url: Optional[str] = None
    synthesized: list[str] = field(default_factory=list)


class RetryController:
    """Run an attempt up to ``max_attempts`` times.

    Stops early when an attempt is not weak, after a definitive 4xx, or
    when the shared deadline has passed. Always returns the last attempt's
    result rather than raising.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_base: float = 0.5,
        backoff_max: float = 4.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls, settings: ExtractionSettings, sleep: Callable[[float], None] = time.sleep
    ) -> "RetryController":
        return cls(
            max_attempts=settings.max_attempts,
            backoff_base=settings.backoff_base,
            backoff_max=settings.backoff_max,
            sleep=sleep,
        )

    def backoff_delay(self, retry_number: int) -> float:
        """Delay before retry ``retry_number`` (1-based)."""
        return min(self.backoff_base * (2 ** (retry_number - 1)), self.backoff_max)

    def run(
        self,
        operation: Callable[[int], AttemptResult],
        deadline: Deadline,
    ) -> AttemptResult:
        last: Optional[AttemptResult] = None

        for attempt_number in range(1, self.max_attempts + 1):
            if attempt_number > 1:
                delay = min(self.backoff_delay(attempt_number - 1), deadline.remaining())
                if delay > 0:
                    logger.debug(f"Backing off {delay:.2f}s before attempt {attempt_number}")
                    self._sleep(delay)
                if deadline.expired():
                    logger.info("Total extraction deadline reached; not retrying")
                    break

            last = operation(attempt_number)

            if not last.is_weak:
                break
            if isinstance(last.error, ClientHttpError):
                logger.info(
                    f"Client error {last.error.status_code}; not retrying {last.error.url}"
                )
                break
            if deadline.expired():
                logger.info("Total extraction deadline reached after attempt")
                break
            if attempt_number < self.max_attempts:
                reason = type(last.error).__name__ if last.error else "weak metadata"
                logger.info(f"Attempt {attempt_number} unsatisfactory ({reason}); retrying")

        if last is None:
            return AttemptResult(
                metadata=PageMetadata(),
                is_weak=True,
                error=FetchTimeoutError("deadline passed before the first attempt"),
            )
        return last
