import threading
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from flowspeed.config import load_config
from flowspeed.host import HostAPI
from flowspeed.measurements.models import ExitOutcome


class FakeHost(HostAPI):
    def __init__(self, dark=False):
        self.dark = dark
        self.queries = []
        self.messages = []
        self.opened = []

    def change_query(self, query, requery=False):
        self.queries.append((query, requery))

    def show_message(self, title, subtitle=""):
        self.messages.append(title)

    def open_url(self, url):
        self.opened.append(url)

    def is_dark_theme(self):
        return self.dark


class FakePump:
    def __init__(self):
        self.calls = []

    def start(self):
        self.calls.append("start")

    def stop(self):
        self.calls.append("stop")

    def final_refresh(self):
        self.calls.append("final")

    def shutdown(self):
        self.calls.append("shutdown")


class FakeHandle:
    """Stands in for a MeasurementProcess fed from canned events."""

    def __init__(self, events, exit_code=0, diagnostic_text="", gate=None):
        self._events = list(events)
        self._outcome = ExitOutcome(exit_code=exit_code, diagnostic_text=diagnostic_text)
        self._gate = gate

    def events(self):
        if self._gate is not None:
            self._gate.wait(timeout=5)
        yield from self._events

    def await_completion(self):
        return self._outcome


class StepClock:
    def __init__(self, start=datetime(2026, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def fake_host():
    return FakeHost()


@pytest.fixture
def fake_pump():
    return FakePump()


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def gate():
    return threading.Event()


@pytest.fixture
def app_config(tmp_path: Path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "paths:\n"
        "  bin_dir: cli\n"
        "  logs_dir: logs\n"
        "launcher:\n"
        "  action_keyword: st\n"
        "  settle_delay_ms: 0\n",
        encoding="utf-8",
    )
    return load_config(str(config_path))


@pytest.fixture
def make_handle():
    return FakeHandle
