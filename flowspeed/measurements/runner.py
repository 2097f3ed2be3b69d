"""Single-flight orchestration of speed test runs."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union

from ..cache import ResultCache
from ..host import HostAPI
from ..refresh import UIRefreshPump
from .binary import BinaryUnavailableError
from .models import (
    DownloadSample,
    ExitOutcome,
    Failure,
    FailureReason,
    FinalResult,
    PingStarted,
    ProgressEvent,
    RateLimited,
    RunPhase,
    RunState,
    ServerSelected,
    SpeedtestResult,
    UploadSample,
)
from .parser import is_rate_limited
from .process import MeasurementProcess

LOGGER = logging.getLogger(__name__)

CONNECTING_STATUS = "Connecting to server..."
RATE_LIMITED_STATUS = "⚠️ Rate limit reached - wait a few minutes"


def classify_failure(outcome: ExitOutcome, rate_limited: bool = False) -> Failure:
    """Map diagnostic text from a run without a final record to a failure reason."""
    text = outcome.diagnostic_text
    if rate_limited or is_rate_limited(text):
        reason = FailureReason.RATE_LIMITED
    elif "Configuration" in text and "Timeout" in text:
        reason = FailureReason.CONNECTION_TIMEOUT
    elif "Configuration" in text:
        reason = FailureReason.SERVER_UNREACHABLE
    else:
        reason = FailureReason.GENERIC_FAILURE
    return Failure(reason=reason, diagnostic_text=text)


class _RunProgress:
    """Per-run bookkeeping the worker keeps alongside the shared state."""

    def __init__(self) -> None:
        self.result: Optional[SpeedtestResult] = None
        self.rate_limited = False


class MeasurementRunner:
    """Owns the run state machine: IDLE -> RUNNING -> COMPLETED | FAILED.

    At most one run is active; the worker thread is the only writer of the
    progress fields while it runs.
    """

    def __init__(
        self,
        state: RunState,
        cache: ResultCache,
        host: HostAPI,
        pump: UIRefreshPump,
        binary_resolver: Callable[[], Path],
        process_factory: Callable[[Path], MeasurementProcess],
        clock: Callable[[], datetime] = datetime.now,
        settle_delay: float = 0.05,
    ) -> None:
        self.state = state
        self.cache = cache
        self.host = host
        self.pump = pump
        self._resolve_binary = binary_resolver
        self._start_process = process_factory
        self._clock = clock
        self.settle_delay = settle_delay
        self._lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None

    def request_start(self) -> bool:
        """Start a run unless one is already active. Returns whether one was started."""
        with self._lock:
            already_running = self.state.is_running
            if not already_running:
                self.state.begin(self._clock(), CONNECTING_STATUS)
                self._worker = threading.Thread(target=self._run, name="speedtest-run", daemon=True)

        if already_running:
            LOGGER.info("Speed test already running, ignoring start request")
            self.host.show_message("Speed test is already running")
            return False

        LOGGER.info("Starting speed test run")
        self.pump.start()
        self._worker.start()
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Join the current worker. Returns False if it is still alive after ``timeout``."""
        worker = self._worker
        if worker is None:
            return True
        worker.join(timeout)
        return not worker.is_alive()

    def _run(self) -> None:
        pump_stopped = False
        try:
            try:
                outcome = self._execute()
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.exception("Speed test failed: %s", exc)
                outcome = Failure(FailureReason.GENERIC_FAILURE, str(exc))
            # Once the phase leaves RUNNING a new run may start its own pump;
            # this run's stop must land before that.
            self.pump.stop()
            pump_stopped = True
            self._finish(outcome)
        finally:
            self._teardown(stop_pump=not pump_stopped)

    def _execute(self) -> Union[SpeedtestResult, Failure]:
        try:
            cli_path = self._resolve_binary()
        except BinaryUnavailableError as exc:
            LOGGER.error("Speedtest CLI unavailable: %s", exc)
            return Failure(FailureReason.BINARY_UNAVAILABLE, str(exc))

        try:
            handle = self._start_process(cli_path)
        except OSError as exc:
            LOGGER.error("Could not start %s: %s", cli_path, exc)
            return Failure(FailureReason.GENERIC_FAILURE, str(exc))

        progress = _RunProgress()
        for event in handle.events():
            self.apply_event(event, progress)
        outcome = handle.await_completion()

        # A final record wins over whatever the exit code says.
        if progress.result is not None:
            if outcome.exit_code != 0:
                LOGGER.warning("CLI exited with code %s after reporting a result", outcome.exit_code)
            return progress.result

        LOGGER.error(
            "Process exited with code %s without a result: %s",
            outcome.exit_code,
            outcome.diagnostic_text or "<no diagnostics>",
        )
        return classify_failure(outcome, progress.rate_limited)

    def apply_event(self, event: ProgressEvent, progress: _RunProgress) -> None:
        state = self.state
        if not state.is_running:
            return

        if isinstance(event, ServerSelected):
            state.status_text = f"Testing with {event.name or 'server'}"
        elif isinstance(event, PingStarted):
            state.status_text = "Testing ping..."
        elif isinstance(event, DownloadSample):
            state.status_text = "Testing download..."
            state.download_progress_pct = _advance(state.download_progress_pct, event.progress)
            state.download_speed_mbps = event.speed_mbps
        elif isinstance(event, UploadSample):
            # the CLI runs download then upload, so upload samples close out the download
            state.status_text = "Testing upload..."
            state.download_progress_pct = 100.0
            state.upload_progress_pct = _advance(state.upload_progress_pct, event.progress)
            state.upload_speed_mbps = event.speed_mbps
        elif isinstance(event, RateLimited):
            state.status_text = RATE_LIMITED_STATUS
            progress.rate_limited = True
        elif isinstance(event, FinalResult):
            progress.result = event.result

    def _finish(self, outcome: Union[SpeedtestResult, Failure]) -> None:
        now = self._clock()
        if isinstance(outcome, SpeedtestResult):
            self.cache.store_result(outcome, now)
            self.state.finish(RunPhase.COMPLETED, now)
            LOGGER.info(
                "Speed test completed: down %.2f Mbps / up %.2f Mbps, ping %.0f ms (%s)",
                outcome.download_mbps,
                outcome.upload_mbps,
                outcome.ping_ms,
                outcome.server_name or "unknown server",
            )
        else:
            self.cache.store_failure(outcome, now)
            self.state.finish(RunPhase.FAILED, now)
            LOGGER.warning("Speed test failed (%s): %s", outcome.reason.value, outcome.message)

    def _teardown(self, stop_pump: bool = True) -> None:
        if stop_pump:
            self.pump.stop()
        if self.settle_delay > 0:
            time.sleep(self.settle_delay)
        self.pump.final_refresh()


def _advance(current_pct: float, fraction: float) -> float:
    return max(current_pct, min(fraction * 100.0, 100.0))
