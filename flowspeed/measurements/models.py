"""Shared dataclasses for speed test runs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union

BYTES_PER_SEC_PER_MBPS = 125000.0


def bandwidth_to_mbps(bytes_per_second: float) -> float:
    return bytes_per_second / BYTES_PER_SEC_PER_MBPS


class RunPhase(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RunState:
    """Process-wide state of the current (or last) speed test run.

    The runner's worker thread is the only writer while a run is active; the
    query path only reads it.
    """

    phase: RunPhase = RunPhase.IDLE
    status_text: Optional[str] = None
    download_progress_pct: float = 0.0
    upload_progress_pct: float = 0.0
    download_speed_mbps: float = 0.0
    upload_speed_mbps: float = 0.0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self.phase is RunPhase.RUNNING

    def begin(self, now: datetime, status_text: str) -> None:
        self.download_progress_pct = 0.0
        self.upload_progress_pct = 0.0
        self.download_speed_mbps = 0.0
        self.upload_speed_mbps = 0.0
        self.status_text = status_text
        self.started_at = now
        self.completed_at = None
        self.phase = RunPhase.RUNNING

    def finish(self, phase: RunPhase, now: datetime) -> None:
        self.phase = phase
        self.completed_at = now
        self.status_text = None


@dataclass(frozen=True)
class SpeedtestResult:
    download_mbps: float = 0.0
    upload_mbps: float = 0.0
    ping_ms: float = 0.0
    download_jitter_ms: float = 0.0
    download_latency_ms: float = 0.0
    upload_jitter_ms: float = 0.0
    upload_latency_ms: float = 0.0
    server_name: str = ""
    server_location: str = ""
    isp: str = ""
    result_url: str = ""


class FailureReason(Enum):
    BINARY_UNAVAILABLE = "binary_unavailable"
    RATE_LIMITED = "rate_limited"
    CONNECTION_TIMEOUT = "connection_timeout"
    SERVER_UNREACHABLE = "server_unreachable"
    GENERIC_FAILURE = "generic_failure"


FAILURE_MESSAGES = {
    FailureReason.BINARY_UNAVAILABLE: "Could not install the Speedtest CLI - check your connection",
    FailureReason.RATE_LIMITED: "Rate limit reached - wait a few minutes or change your IP",
    FailureReason.CONNECTION_TIMEOUT: "Connection timeout - check your internet or try again",
    FailureReason.SERVER_UNREACHABLE: "Cannot connect to Speedtest servers - check your connection",
    FailureReason.GENERIC_FAILURE: "Test failed - check your internet connection",
}


@dataclass(frozen=True)
class Failure:
    reason: FailureReason
    diagnostic_text: str = ""

    @property
    def message(self) -> str:
        return FAILURE_MESSAGES[self.reason]


@dataclass(frozen=True)
class ExitOutcome:
    exit_code: int
    diagnostic_text: str = ""


# Progress events, one per parsed line of CLI output.


@dataclass(frozen=True)
class ServerSelected:
    name: str = ""


@dataclass(frozen=True)
class PingStarted:
    pass


@dataclass(frozen=True)
class DownloadSample:
    progress: float = 0.0
    bandwidth: float = 0.0

    @property
    def speed_mbps(self) -> float:
        return bandwidth_to_mbps(self.bandwidth)


@dataclass(frozen=True)
class UploadSample:
    progress: float = 0.0
    bandwidth: float = 0.0

    @property
    def speed_mbps(self) -> float:
        return bandwidth_to_mbps(self.bandwidth)


@dataclass(frozen=True)
class RateLimited:
    message: str = ""


@dataclass(frozen=True)
class FinalResult:
    result: SpeedtestResult


ProgressEvent = Union[ServerSelected, PingStarted, DownloadSample, UploadSample, RateLimited, FinalResult]
