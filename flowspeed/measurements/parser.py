"""Decoder for the Ookla CLI's streaming JSON progress records."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from .models import (
    DownloadSample,
    FinalResult,
    PingStarted,
    ProgressEvent,
    RateLimited,
    ServerSelected,
    SpeedtestResult,
    UploadSample,
    bandwidth_to_mbps,
)

LOGGER = logging.getLogger(__name__)

RATE_LIMIT_MARKERS = ("Limit reached", "Too many requests")


def is_rate_limited(text: str) -> bool:
    return any(marker in text for marker in RATE_LIMIT_MARKERS)


class ProgressEventParser:
    """Turns one line of ``speedtest --format=json --progress=yes`` output into an event.

    Parsing never raises: anything that cannot be decoded is logged and
    dropped so a noisy line can never abort a run.
    """

    def parse(self, raw_line: str) -> Optional[ProgressEvent]:
        line = raw_line.strip()
        if not line:
            return None

        try:
            data = json.loads(line)
        except ValueError as exc:
            LOGGER.warning("Error parsing JSON line %r: %s", line[:200], exc)
            return None

        if not isinstance(data, dict):
            LOGGER.warning("Ignoring non-object JSON record: %r", line[:200])
            return None

        record_type = data.get("type")
        if record_type == "testStart":
            return ServerSelected(name=_text(_section(data, "server").get("name")))
        if record_type == "ping":
            return PingStarted()
        if record_type == "download":
            download = _section(data, "download")
            return DownloadSample(
                progress=_number(download.get("progress")),
                bandwidth=_number(download.get("bandwidth")),
            )
        if record_type == "upload":
            upload = _section(data, "upload")
            return UploadSample(
                progress=_number(upload.get("progress")),
                bandwidth=_number(upload.get("bandwidth")),
            )
        if record_type == "result":
            return FinalResult(result=_convert_result(data))

        LOGGER.debug("Ignoring record with unknown type %r", record_type)
        return None

    def scan_diagnostic(self, line: str) -> Optional[RateLimited]:
        """Check a line of stderr for the service's throttling phrases."""
        if is_rate_limited(line):
            return RateLimited(message=line.strip())
        return None


def _convert_result(data: Dict[str, Any]) -> SpeedtestResult:
    download = _section(data, "download")
    upload = _section(data, "upload")
    ping = _section(data, "ping")
    server = _section(data, "server")
    download_latency = _section(download, "latency")
    upload_latency = _section(upload, "latency")

    return SpeedtestResult(
        download_mbps=bandwidth_to_mbps(_number(download.get("bandwidth"))),
        upload_mbps=bandwidth_to_mbps(_number(upload.get("bandwidth"))),
        ping_ms=_number(ping.get("latency")),
        download_jitter_ms=_number(download_latency.get("jitter")),
        download_latency_ms=_number(download_latency.get("iqm")),
        upload_jitter_ms=_number(upload_latency.get("jitter")),
        upload_latency_ms=_number(upload_latency.get("iqm")),
        server_name=_text(server.get("name")),
        server_location=_text(server.get("location")),
        isp=_text(data.get("isp")),
        result_url=_text(_section(data, "result").get("url")),
    )


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _number(value: Any) -> float:
    # bool is an int subclass; JSON true/false is not a measurement
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""
