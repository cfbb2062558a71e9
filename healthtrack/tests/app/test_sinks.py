from __future__ import annotations

import csv

from healthtrack.app.sinks import CsvTelemetrySink, PrintTelemetrySink, SinkFanout
from healthtrack.model.telemetry import TelemetrySample


def test_print_sink_formats_samples_and_status():
    lines = []
    sink = PrintTelemetrySink(write=lines.append)

    sink.on_sample(TelemetrySample(timestamp=1.0, heart_rate=72))
    sink.on_status("NO_FINGER")
    sink.on_status("XYZ")

    assert lines == [
        "SAMPLE {'heart_rate': 72, 'timestamp': 1.0}",
        "STATUS NO_FINGER (Place finger on sensor)",
        "STATUS XYZ",
    ]


def test_csv_sink_writes_header_and_rows(tmp_path):
    path = tmp_path / "out" / "run.csv"
    sink = CsvTelemetrySink(str(path))
    sink.on_sample(TelemetrySample(timestamp=10.0, heart_rate=72))
    sink.on_sample(TelemetrySample(timestamp=11.0, spo2=97))
    sink.on_status("WEAK,SIGNAL")
    sink.on_status('say "hi"\nnow')
    sink.on_sample(TelemetrySample(timestamp=12.0, heart_rate="--"))
    sink.close()
    sink.close()

    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))

    assert sink.rows_written == 5
    assert rows[0] == ["ts", "heart_rate", "spo2", "status"]
    assert rows[1] == ["10.000", "72", "", ""]
    assert rows[2] == ["11.000", "", "97", ""]
    # status tokens are stored verbatim
    assert rows[3][1:] == ["", "", "WEAK,SIGNAL"]
    assert rows[4][1:] == ["", "", 'say "hi"\nnow']
    assert rows[5] == ["12.000", "--", "", ""]
    assert len(rows) == 6


class _Broken:
    def on_sample(self, sample):
        raise RuntimeError("disk full")

    def on_status(self, status):
        raise RuntimeError("disk full")

    def close(self):
        raise RuntimeError("disk full")


def test_fanout_isolates_failing_sink():
    lines = []
    fanout = SinkFanout([_Broken(), PrintTelemetrySink(write=lines.append)])

    fanout.on_sample(TelemetrySample(timestamp=1.0, spo2=99))
    fanout.on_status("OK")
    fanout.close()

    assert len(lines) == 2
