"""Lifecycle of a single Speedtest CLI invocation."""

from __future__ import annotations

import logging
import queue
import subprocess
import sys
import threading
from pathlib import Path
from typing import IO, Iterator, List, Optional, Sequence, Union

from .models import ExitOutcome, ProgressEvent
from .parser import ProgressEventParser

LOGGER = logging.getLogger(__name__)

SPEEDTEST_ARGS = ("--format=json", "--progress=yes", "--accept-license", "--accept-gdpr")

_STREAM_CLOSED = object()


class MeasurementProcess:
    """Handle on a running CLI process.

    stdout is decoded into progress events, stderr is collected as diagnostic
    text. Exit codes are reported as-is; deciding what they mean is up to the
    runner.
    """

    def __init__(self, process: subprocess.Popen, parser: ProgressEventParser):
        self._process = process
        self._parser = parser
        self._events: "queue.Queue[object]" = queue.Queue()
        self._diagnostics: List[str] = []
        self._diagnostics_lock = threading.Lock()
        self._readers = [
            threading.Thread(target=self._read_stdout, args=(process.stdout,), name="speedtest-stdout", daemon=True),
            threading.Thread(target=self._read_stderr, args=(process.stderr,), name="speedtest-stderr", daemon=True),
        ]
        for reader in self._readers:
            reader.start()

    @property
    def pid(self) -> int:
        return self._process.pid

    def _read_stdout(self, stream: IO[str]) -> None:
        try:
            for line in stream:
                event = self._parser.parse(line)
                if event is not None:
                    self._events.put(event)
        finally:
            self._events.put(_STREAM_CLOSED)

    def _read_stderr(self, stream: IO[str]) -> None:
        try:
            for line in stream:
                text = line.rstrip("\r\n")
                if not text.strip():
                    continue
                with self._diagnostics_lock:
                    self._diagnostics.append(text)
                LOGGER.warning("stderr: %s", text)
                event = self._parser.scan_diagnostic(text)
                if event is not None:
                    self._events.put(event)
        finally:
            self._events.put(_STREAM_CLOSED)

    def events(self) -> Iterator[ProgressEvent]:
        """Yield events in arrival order until both output streams are closed."""
        open_streams = len(self._readers)
        while open_streams:
            item = self._events.get()
            if item is _STREAM_CLOSED:
                open_streams -= 1
                continue
            yield item  # type: ignore[misc]

    def await_completion(self) -> ExitOutcome:
        exit_code = self._process.wait()
        for reader in self._readers:
            reader.join()
        with self._diagnostics_lock:
            diagnostic_text = "\n".join(self._diagnostics)
        LOGGER.info("Speedtest CLI exited with code %s", exit_code)
        return ExitOutcome(exit_code=exit_code, diagnostic_text=diagnostic_text)


def start_measurement(
    executable_path: Union[str, Path],
    args: Sequence[str] = SPEEDTEST_ARGS,
    parser: Optional[ProgressEventParser] = None,
) -> MeasurementProcess:
    """Spawn the CLI and attach stream readers.

    Raises ``OSError`` when the executable cannot be started.
    """
    command = [str(executable_path), *args]
    creationflags = getattr(subprocess, "CREATE_NO_WINDOW", 0) if sys.platform.startswith("win") else 0

    LOGGER.info("Running speedtest command: %s", " ".join(command))
    process = subprocess.Popen(
        command,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
        bufsize=1,
        creationflags=creationflags,
    )
    LOGGER.info("Process started (pid %s), waiting for results...", process.pid)
    return MeasurementProcess(process, parser or ProgressEventParser())
