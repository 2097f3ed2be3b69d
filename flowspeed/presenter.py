"""Rendering of cache decisions into launcher result rows."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from functools import partial
from typing import Callable, List, Optional

from .cache import CacheDecision, DecisionKind
from .measurements.models import Failure, RunState, SpeedtestResult

RowAction = Callable[[], bool]

MAX_DIAGNOSTIC_CHARS = 160


@dataclass
class DisplayRow:
    """One launcher result row.

    ``action`` returns True when the launcher should hide itself afterwards.
    """

    title: str
    subtitle: str = ""
    icon_path: str = ""
    action: Optional[RowAction] = None


def format_age(age: timedelta) -> str:
    minutes = max(age.total_seconds(), 0) / 60
    if minutes < 60:
        return f"{int(minutes)}m ago"
    return f"{int(minutes // 60)}h ago"


def progress_line(state: RunState) -> str:
    if state.upload_progress_pct > 0:
        return f"↑ Upload: {state.upload_speed_mbps:.1f} Mbps ({state.upload_progress_pct:.0f}%)"
    if state.download_progress_pct > 0:
        return f"↓ Download: {state.download_speed_mbps:.1f} Mbps ({state.download_progress_pct:.0f}%)"
    return "Finding best server..."


def _short_diagnostic(text: str) -> str:
    collapsed = " ".join(text.split())
    if len(collapsed) > MAX_DIAGNOSTIC_CHARS:
        collapsed = collapsed[: MAX_DIAGNOSTIC_CHARS - 3] + "..."
    return collapsed


class QueryPresenter:
    """Maps a cache decision plus the raw query text to rows.

    The presenter holds no run state of its own; the callables it is given
    are bound to rows as their actions.
    """

    def __init__(
        self,
        retest: Callable[[], None],
        retry: Callable[[], None],
        start: Callable[[], None],
        open_url: Callable[[str], None],
    ) -> None:
        self._retest = retest
        self._retry = retry
        self._start = start
        self._open_url = open_url

    def present(self, decision: CacheDecision, query_text: str, state: RunState, icon_path: str = "") -> List[DisplayRow]:
        kind = decision.kind
        if kind is DecisionKind.SHOW_PROGRESS:
            return [
                DisplayRow(
                    title=state.status_text or "Connecting to server...",
                    subtitle=progress_line(state),
                    icon_path=icon_path,
                )
            ]
        if kind is DecisionKind.SHOW_RESULT and decision.result is not None:
            return self._result_rows(decision.result, decision.age or timedelta(0), icon_path)
        if kind is DecisionKind.SHOW_FAILURE and decision.failure is not None:
            return [self._failure_row(decision.failure, icon_path)]

        if query_text.strip():
            return [
                DisplayRow(
                    title="Run speed test",
                    subtitle="Press Enter to test your internet connection",
                    icon_path=icon_path,
                    action=partial(_invoke, self._start, False),
                )
            ]
        return [
            DisplayRow(
                title="Testing your internet speed...",
                subtitle="Connecting to nearest server...",
                icon_path=icon_path,
            )
        ]

    def _result_rows(self, result: SpeedtestResult, age: timedelta, icon_path: str) -> List[DisplayRow]:
        server_name = result.server_name or "Unknown"
        rows = [
            DisplayRow(
                title=f"↓ {result.download_mbps:.1f} Mbps  ↑ {result.upload_mbps:.1f} Mbps",
                subtitle=f"Ping: {result.ping_ms:.0f} ms • {server_name} • {format_age(age)} • Enter to retest",
                icon_path=icon_path,
                action=partial(_invoke, self._retest, False),
            ),
            DisplayRow(
                title=f"↓ Download: {result.download_mbps:.2f} Mbps",
                subtitle=f"Jitter: {result.download_jitter_ms:.1f} ms • Latency: {result.download_latency_ms:.1f} ms",
                icon_path=icon_path,
            ),
            DisplayRow(
                title=f"↑ Upload: {result.upload_mbps:.2f} Mbps",
                subtitle=f"Jitter: {result.upload_jitter_ms:.1f} ms • Latency: {result.upload_latency_ms:.1f} ms",
                icon_path=icon_path,
            ),
            DisplayRow(
                title=f"📍 {server_name}",
                subtitle=f"{result.server_location} • ISP: {result.isp}",
                icon_path=icon_path,
            ),
        ]
        if result.result_url:
            rows.append(
                DisplayRow(
                    title="View detailed results online",
                    subtitle=result.result_url,
                    icon_path=icon_path,
                    action=partial(_invoke, partial(self._open_url, result.result_url), True),
                )
            )
        return rows

    def _failure_row(self, failure: Failure, icon_path: str) -> DisplayRow:
        parts = [failure.message]
        if failure.diagnostic_text.strip():
            parts.append(_short_diagnostic(failure.diagnostic_text))
        parts.append("Enter to retry")
        return DisplayRow(
            title="⚠️ Speed test failed",
            subtitle=" • ".join(parts),
            icon_path=icon_path,
            action=partial(_invoke, self._retry, False),
        )


def _invoke(callback: Callable[[], None], hide_launcher: bool) -> bool:
    callback()
    return hide_launcher
