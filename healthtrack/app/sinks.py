# healthtrack/app/sinks.py
from __future__ import annotations

import csv
import logging
import os
import time
from typing import Callable, List, Optional, TextIO

from healthtrack.app.status import describe_status
from healthtrack.interfaces.telemetry_sink import TelemetrySink
from healthtrack.model.telemetry import StatusCode, TelemetrySample


class PrintTelemetrySink(TelemetrySink):
    """Print samples and interpreted status lines."""
    def __init__(self, *, write: Callable[[str], None] = print):
        self._write = write

    def on_sample(self, sample: TelemetrySample) -> None:
        self._write(f"SAMPLE {sample.as_dict()}")

    def on_status(self, status: StatusCode) -> None:
        msg = describe_status(status)
        self._write(f"STATUS {status}" + (f" ({msg})" if msg else ""))

    def close(self) -> None:
        return None


class CsvTelemetrySink(TelemetrySink):
    """
    Line-buffered CSV recording: one row per sample or status token.

    Columns: ts, heart_rate, spo2, status
    """

    HEADER = ("ts", "heart_rate", "spo2", "status")

    def __init__(self, path: str) -> None:
        self._path = os.fspath(path)
        self._f: Optional[TextIO] = None
        self._w = None
        self._rows = 0
        self._open()

    def _open(self) -> None:
        os.makedirs(os.path.dirname(self._path) or ".", exist_ok=True)
        self._f = open(self._path, "w", buffering=1, encoding="utf-8", newline="")
        self._w = csv.writer(self._f)
        self._w.writerow(self.HEADER)

    @property
    def path(self) -> str:
        return self._path

    @property
    def rows_written(self) -> int:
        return self._rows

    def on_sample(self, sample: TelemetrySample) -> None:
        self._write_row(sample.timestamp, sample.heart_rate, sample.spo2, None)

    def on_status(self, status: StatusCode) -> None:
        self._write_row(time.time(), None, None, status)

    def _write_row(self, ts: float, hr, spo2, status: Optional[str]) -> None:
        if not self._f or self._w is None:
            raise RuntimeError("CsvTelemetrySink is closed")
        self._w.writerow([
            f"{ts:.3f}",
            "" if hr is None else hr,
            "" if spo2 is None else spo2,
            "" if status is None else status,
        ])
        self._rows += 1

    def close(self) -> None:
        f, self._f = self._f, None
        self._w = None
        if f:
            try:
                f.flush()
            finally:
                f.close()


class SinkFanout:
    """Deliver each sample/status to every sink; a failing sink is logged, not fatal."""

    def __init__(self, sinks: Optional[List[TelemetrySink]] = None, *, logger: Optional[logging.Logger] = None):
        self._sinks: List[TelemetrySink] = list(sinks or [])
        self._log = logger or logging.getLogger(__name__)

    def add(self, sink: TelemetrySink) -> None:
        if sink not in self._sinks:
            self._sinks.append(sink)

    def remove(self, sink: TelemetrySink) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    def on_sample(self, sample: TelemetrySample) -> None:
        for s in list(self._sinks):
            try:
                s.on_sample(sample)
            except Exception:
                self._log.exception("SINK_ON_SAMPLE_ERROR")

    def on_status(self, status: StatusCode) -> None:
        for s in list(self._sinks):
            try:
                s.on_status(status)
            except Exception:
                self._log.exception("SINK_ON_STATUS_ERROR")

    def close(self) -> None:
        for s in list(self._sinks):
            try:
                s.close()
            except Exception:
                self._log.exception("SINK_CLOSE_ERROR")
        self._sinks.clear()
