"""Periodic forced re-query of the launcher while a run is in flight."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .host import HostAPI
from .measurements.models import RunState

LOGGER = logging.getLogger(__name__)


class UIRefreshPump:
    """Makes the host re-issue the plugin's query on a fixed cadence.

    The job only exists between ``start()`` and ``stop()``; each tick is a
    no-op unless the run is still active.
    """

    JOB_ID = "speedtest-ui-refresh"

    def __init__(
        self,
        host: HostAPI,
        state: RunState,
        action_keyword: str,
        interval_ms: int = 300,
        scheduler: Optional[BackgroundScheduler] = None,
    ) -> None:
        self.host = host
        self.state = state
        self.action_keyword = action_keyword
        self.interval_seconds = interval_ms / 1000.0
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self._lock = threading.Lock()
        self.active = False

    def start(self) -> None:
        with self._lock:
            if not self.scheduler.running:
                self.scheduler.start()
            self.scheduler.add_job(
                self.tick,
                trigger=IntervalTrigger(seconds=self.interval_seconds),
                id=self.JOB_ID,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            self.active = True
            LOGGER.debug("UI refresh pump started (every %.0f ms)", self.interval_seconds * 1000)

    def stop(self) -> None:
        with self._lock:
            if not self.active:
                return
            try:
                self.scheduler.remove_job(self.JOB_ID)
            except JobLookupError:
                pass
            self.active = False
            LOGGER.debug("UI refresh pump stopped")

    def tick(self) -> None:
        if not self.state.is_running:
            return
        try:
            self.host.change_query(f"{self.action_keyword} ", requery=True)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning("Forced re-query failed: %s", exc)

    def final_refresh(self) -> None:
        """Restore the idle keyword so the terminal state is rendered right away."""
        try:
            self.host.change_query(self.action_keyword, requery=False)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning("Final re-query failed: %s", exc)

    def shutdown(self) -> None:
        self.stop()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
