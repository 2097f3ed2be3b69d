"""Last run outcome and the freshness policy that decides what a query shows."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from .measurements.models import Failure, RunState, SpeedtestResult

LOGGER = logging.getLogger(__name__)

DEFAULT_QUIET_INTERVAL = timedelta(seconds=2)


class DecisionKind(Enum):
    SHOW_PROGRESS = "show_progress"
    SHOW_RESULT = "show_result"
    SHOW_FAILURE = "show_failure"
    IDLE = "idle"


@dataclass(frozen=True)
class CacheDecision:
    kind: DecisionKind
    result: Optional[SpeedtestResult] = None
    age: Optional[timedelta] = None
    failure: Optional[Failure] = None


class ResultCache:
    """Holds at most one of the last result or failure.

    A query arriving after more than ``quiet_interval`` of silence, with no
    run active, starts a fresh session: the cached outcome is dropped.
    """

    def __init__(self, state: RunState, quiet_interval: timedelta = DEFAULT_QUIET_INTERVAL):
        self._state = state
        self.quiet_interval = quiet_interval
        self._lock = threading.Lock()
        self.result: Optional[SpeedtestResult] = None
        self.failure: Optional[Failure] = None
        self.produced_at: Optional[datetime] = None
        self.last_query_at: Optional[datetime] = None

    def store_result(self, result: SpeedtestResult, now: datetime) -> None:
        with self._lock:
            self.result = result
            self.failure = None
            self.produced_at = now

    def store_failure(self, failure: Failure, now: datetime) -> None:
        with self._lock:
            self.result = None
            self.failure = failure
            self.produced_at = now

    def clear(self) -> None:
        with self._lock:
            self.result = None
            self.failure = None
            self.produced_at = None

    def clear_failure(self) -> None:
        with self._lock:
            self.failure = None

    def on_query(self, now: datetime) -> CacheDecision:
        with self._lock:
            running = self._state.is_running
            previous = self.last_query_at
            if not running and (previous is None or now - previous > self.quiet_interval):
                if self.result is not None or self.failure is not None:
                    LOGGER.debug("Query after a quiet period, dropping cached outcome")
                self.result = None
                self.failure = None
            self.last_query_at = now

            if running:
                return CacheDecision(DecisionKind.SHOW_PROGRESS)
            if self.result is not None:
                produced_at = self.produced_at or now
                return CacheDecision(DecisionKind.SHOW_RESULT, result=self.result, age=now - produced_at)
            if self.failure is not None:
                return CacheDecision(DecisionKind.SHOW_FAILURE, failure=self.failure)
            return CacheDecision(DecisionKind.IDLE)
