"""Per-call diagnostic trace for metadata extraction.

Nothing here writes to a database or to stdout; the trace is returned to the
caller alongside the extracted metadata.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from linkpreview.models import METADATA_FIELDS, PageMetadata

if TYPE_CHECKING:
    from linkpreview.crawler.deadline import Deadline


@dataclass
class StrategyOutcome:
    """Result of a single strategy within one extraction call."""

    strategy: str
    attempt: int
    success: bool = False
    error: Optional[str] = None
    fields: list[str] = field(default_factory=list)
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy,
            "attempt": self.attempt,
            "success": self.success,
            "error": self.error,
            "fields": list(self.fields),
            "duration_ms": round(self.duration_ms, 1),
        }


class ExtractionAttempt:
    """Tracks one ``extract`` call: its target, deadline and strategy trace."""

    def __init__(self, target_url: str, deadline: Deadline):
        self.target_url = target_url
        self.deadline = deadline
        self.attempts_used = 0
        self.strategy_trace: list[StrategyOutcome] = []
        self.effective_url: Optional[str] = None
        self.http_status: Optional[int] = None
        self._started: dict[str, float] = {}

    def begin_attempt(self) -> int:
        self.attempts_used += 1
        return self.attempts_used

    def start_strategy(self, name: str) -> StrategyOutcome:
        outcome = StrategyOutcome(strategy=name, attempt=self.attempts_used)
        self.strategy_trace.append(outcome)
        self._started[f"{self.attempts_used}:{name}"] = time.monotonic()
        return outcome

    def end_strategy(
        self,
        outcome: StrategyOutcome,
        success: bool,
        error: Optional[str] = None,
        metadata: Optional[PageMetadata] = None,
    ) -> None:
        started = self._started.pop(f"{outcome.attempt}:{outcome.strategy}", None)
        if started is not None:
            outcome.duration_ms = (time.monotonic() - started) * 1000
        outcome.success = success
        outcome.error = error
        if metadata is not None:
            outcome.fields = [
                name for name in METADATA_FIELDS if getattr(metadata, name) is not None
            ]

    @property
    def strategies_tried(self) -> list[str]:
        return [outcome.strategy for outcome in self.strategy_trace]

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_url": self.target_url,
            "effective_url": self.effective_url,
            "attempts_used": self.attempts_used,
            "http_status": self.http_status,
            "strategy_trace": [outcome.to_dict() for outcome in self.strategy_trace],
        }
