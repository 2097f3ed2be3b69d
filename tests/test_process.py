import sys
import textwrap

import pytest

from flowspeed.measurements.models import DownloadSample, FinalResult, RateLimited, ServerSelected
from flowspeed.measurements.process import SPEEDTEST_ARGS, start_measurement

FAKE_CLI = textwrap.dedent(
    """
    import sys
    lines = [
        '{"type":"testStart","server":{"name":"X"}}',
        'garbage that is not json',
        '{"type":"download","download":{"progress":0.5,"bandwidth":12500000}}',
        '{"type":"result","download":{"bandwidth":12500000},"upload":{"bandwidth":6250000}}',
    ]
    for line in lines:
        print(line, flush=True)
    print("[warning] something odd", file=sys.stderr, flush=True)
    sys.exit(int(sys.argv[1]))
    """
)


def _run(script, exit_code):
    handle = start_measurement(sys.executable, ["-c", script, str(exit_code)])
    events = list(handle.events())
    return events, handle.await_completion()


def test_stdout_records_become_ordered_events():
    events, outcome = _run(FAKE_CLI, 0)

    assert [type(event) for event in events] == [ServerSelected, DownloadSample, FinalResult]
    assert events[2].result.download_mbps == pytest.approx(100.0)
    assert outcome.exit_code == 0
    assert outcome.diagnostic_text == "[warning] something odd"


def test_exit_code_is_reported_uninterpreted():
    _, outcome = _run(FAKE_CLI, 3)
    assert outcome.exit_code == 3


def test_stderr_rate_limit_surfaces_event():
    script = textwrap.dedent(
        """
        import sys
        print("[error] Limit reached", file=sys.stderr, flush=True)
        sys.exit(1)
        """
    )
    events, outcome = _run(script, 1)

    assert events == [RateLimited(message="[error] Limit reached")]
    assert outcome.exit_code == 1
    assert "Limit reached" in outcome.diagnostic_text


def test_missing_executable_raises_oserror(tmp_path):
    with pytest.raises(OSError):
        start_measurement(tmp_path / "does-not-exist")


def test_default_arguments_request_json_progress_and_accept_terms():
    assert SPEEDTEST_ARGS == ("--format=json", "--progress=yes", "--accept-license", "--accept-gdpr")
