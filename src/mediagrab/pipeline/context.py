"""Mutable state of one acquisition run."""

from __future__ import annotations

from collections import deque
from datetime import datetime

from mediagrab.shared.enums import ParserState
from mediagrab.shared.models import ParserRunStatus, utc_now

MAX_ERRORS = 50
ERROR_TEXT_LIMIT = 200


class RunContext:
    """Running flag, progress counter and bounded error list for a run.

    Passed explicitly to every coordinator call. Only the worker task that
    owns the run mutates it; ``stop()`` may be called from anywhere.
    """

    def __init__(self, *, max_errors: int = MAX_ERRORS) -> None:
        self.running = True
        self.processed = 0
        self.started_at: datetime = utc_now()
        self._errors: deque[str] = deque(maxlen=max_errors)

    @property
    def errors(self) -> list[str]:
        """Most recent errors, oldest first."""
        return list(self._errors)

    def stop(self) -> None:
        self.running = False

    def record_processed(self) -> None:
        self.processed += 1

    def record_error(self, message: str) -> None:
        self._errors.append(message[:ERROR_TEXT_LIMIT])

    def snapshot(self, state: ParserState) -> ParserRunStatus:
        return ParserRunStatus(
            status=state,
            last_run=utc_now(),
            processed_items=self.processed,
            errors=self.errors,
        )
