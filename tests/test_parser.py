import json
import logging

import pytest

from flowspeed.measurements.models import (
    DownloadSample,
    FinalResult,
    PingStarted,
    RateLimited,
    ServerSelected,
    UploadSample,
)
from flowspeed.measurements.parser import ProgressEventParser


@pytest.fixture
def parser():
    return ProgressEventParser()


def test_test_start_selects_server(parser):
    event = parser.parse('{"type":"testStart","server":{"name":"X"}}')
    assert event == ServerSelected(name="X")


def test_ping_record(parser):
    assert parser.parse('{"type":"ping","ping":{"latency":3.2,"progress":0.4}}') == PingStarted()


def test_download_sample_reads_nested_fields(parser):
    event = parser.parse('{"type":"download","download":{"progress":0.5,"bandwidth":12500000}}')
    assert isinstance(event, DownloadSample)
    assert event.progress == 0.5
    assert event.speed_mbps == pytest.approx(100.0)


def test_upload_sample_defaults_missing_fields_to_zero(parser):
    assert parser.parse('{"type":"upload"}') == UploadSample(progress=0.0, bandwidth=0.0)


def test_result_record_converts_bandwidth_to_mbps(parser):
    record = {
        "type": "result",
        "ping": {"latency": 15.25},
        "download": {"bandwidth": 12500000, "latency": {"jitter": 1.5, "iqm": 20.0}},
        "upload": {"bandwidth": 6250000, "latency": {"jitter": 2.5, "iqm": 30.0}},
        "server": {"name": "X", "location": "Y"},
        "isp": "Z",
        "result": {"url": "https://www.speedtest.net/result/c/abc"},
    }
    event = parser.parse(json.dumps(record))

    assert isinstance(event, FinalResult)
    result = event.result
    assert result.download_mbps == pytest.approx(100.0)
    assert result.upload_mbps == pytest.approx(50.0)
    assert result.ping_ms == 15.25
    assert result.download_jitter_ms == 1.5
    assert result.download_latency_ms == 20.0
    assert result.upload_jitter_ms == 2.5
    assert result.upload_latency_ms == 30.0
    assert (result.server_name, result.server_location, result.isp) == ("X", "Y", "Z")
    assert result.result_url.endswith("/abc")


def test_partial_result_record_defaults_everything(parser):
    event = parser.parse('{"type":"result","server":null,"download":"oops","ping":{"latency":"n/a"}}')
    assert isinstance(event, FinalResult)
    assert event.result.download_mbps == 0.0
    assert event.result.ping_ms == 0.0
    assert event.result.server_name == ""
    assert event.result.result_url == ""


@pytest.mark.parametrize(
    "line",
    [
        "",
        "   ",
        "not json at all",
        '{"type":"download",',
        "[1, 2, 3]",
        '"just a string"',
        '{"type":"log","message":"hello"}',
        '{"no_type": true}',
    ],
)
def test_noise_yields_no_event(parser, line):
    assert parser.parse(line) is None


def test_malformed_line_is_logged(parser, caplog):
    with caplog.at_level(logging.WARNING, logger="flowspeed.measurements.parser"):
        parser.parse("{broken")
    assert "Error parsing JSON" in caplog.text


@pytest.mark.parametrize(
    "line",
    [
        "[error] Limit reached: too many tests",
        "HTTP 429 Too many requests",
    ],
)
def test_rate_limit_phrases_on_stderr(parser, line):
    assert isinstance(parser.scan_diagnostic(line), RateLimited)


def test_other_stderr_text_is_not_rate_limiting(parser):
    assert parser.scan_diagnostic("[error] Configuration - Couldn't resolve host name") is None
