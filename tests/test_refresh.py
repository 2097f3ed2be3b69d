import pytest

from flowspeed.measurements.models import RunState
from flowspeed.refresh import UIRefreshPump


@pytest.fixture
def pump(fake_host):
    state = RunState()
    pump = UIRefreshPump(fake_host, state, "st", interval_ms=300)
    yield pump
    pump.shutdown()


def test_job_exists_only_between_start_and_stop(pump):
    pump.start()
    job = pump.scheduler.get_job(UIRefreshPump.JOB_ID)
    assert job is not None
    assert job.trigger.interval.total_seconds() == pytest.approx(0.3)
    assert pump.active

    pump.stop()
    assert pump.scheduler.get_job(UIRefreshPump.JOB_ID) is None
    assert not pump.active

    # stopping twice is harmless
    pump.stop()


def test_restart_replaces_job(pump):
    pump.start()
    pump.start()
    assert len(pump.scheduler.get_jobs()) == 1


def test_tick_requeries_only_while_running(pump, fake_host):
    pump.tick()
    assert fake_host.queries == []

    pump.state.begin(None, "Connecting to server...")
    pump.tick()
    assert fake_host.queries == [("st ", True)]


def test_final_refresh_restores_keyword(pump, fake_host):
    pump.final_refresh()
    assert fake_host.queries == [("st", False)]


def test_host_errors_do_not_escape(fake_host):
    class BrokenHost(type(fake_host)):
        def change_query(self, query, requery=False):
            raise RuntimeError("launcher window closed")

    state = RunState()
    state.begin(None, "Connecting to server...")
    pump = UIRefreshPump(BrokenHost(), state, "st")
    pump.tick()
    pump.final_refresh()
