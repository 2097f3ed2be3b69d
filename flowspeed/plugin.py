"""Launcher plugin entry point: answers queries with speed test rows."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from functools import partial
from pathlib import Path
from typing import Callable, List, Optional

from .cache import DecisionKind, ResultCache
from .config import AppConfig
from .host import HostAPI
from .measurements.binary import ensure_speedtest_binary
from .measurements.models import RunState
from .measurements.process import SPEEDTEST_ARGS, MeasurementProcess, start_measurement
from .measurements.runner import MeasurementRunner
from .presenter import DisplayRow, QueryPresenter
from .refresh import UIRefreshPump

LOGGER = logging.getLogger(__name__)

PLUGIN_TITLE = "Speed Test"
PLUGIN_DESCRIPTION = "Test your internet connection speed"
DARK_ICON = "icon-dark.png"
LIGHT_ICON = "icon-light.png"


class SpeedTestPlugin:
    """Holds the shared run state and wires the runner, cache and presenter."""

    def __init__(
        self,
        config: AppConfig,
        host: HostAPI,
        binary_resolver: Optional[Callable[[], Path]] = None,
        process_factory: Optional[Callable[[Path], MeasurementProcess]] = None,
        clock: Callable[[], datetime] = datetime.now,
        pump: Optional[UIRefreshPump] = None,
    ) -> None:
        self.config = config
        self.host = host
        self._clock = clock
        launcher = config.launcher

        self.state = RunState()
        self.cache = ResultCache(self.state, timedelta(seconds=launcher.quiet_interval_seconds))
        self.pump = pump or UIRefreshPump(
            host,
            self.state,
            launcher.action_keyword,
            interval_ms=launcher.refresh_interval_ms,
        )
        args = (*SPEEDTEST_ARGS, *config.speedtest_cli.extra_args)
        self.runner = MeasurementRunner(
            self.state,
            self.cache,
            host,
            self.pump,
            binary_resolver=binary_resolver or partial(ensure_speedtest_binary, config),
            process_factory=process_factory or partial(_start_with_args, args=args),
            clock=clock,
            settle_delay=launcher.settle_delay_ms / 1000.0,
        )
        self.presenter = QueryPresenter(
            retest=self.retest,
            retry=self.retry,
            start=self.start,
            open_url=host.open_url,
        )

    @property
    def title(self) -> str:
        return PLUGIN_TITLE

    @property
    def description(self) -> str:
        return PLUGIN_DESCRIPTION

    def icon_path(self) -> str:
        return DARK_ICON if self.host.is_dark_theme() else LIGHT_ICON

    def query(self, search: str = "") -> List[DisplayRow]:
        decision = self.cache.on_query(self._clock())
        if decision.kind is DecisionKind.IDLE and not search.strip():
            self.runner.request_start()
        return self.presenter.present(decision, search, self.state, self.icon_path())

    def start(self) -> None:
        self.runner.request_start()

    def retest(self) -> None:
        self.cache.clear()
        self.runner.request_start()

    def retry(self) -> None:
        self.cache.clear_failure()
        self.runner.request_start()

    def shutdown(self) -> None:
        self.pump.shutdown()


def _start_with_args(cli_path: Path, args) -> MeasurementProcess:
    return start_measurement(cli_path, args)
