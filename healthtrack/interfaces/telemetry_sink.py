# healthtrack/interfaces/telemetry_sink.py
from typing import Protocol
from healthtrack.model.telemetry import StatusCode, TelemetrySample


class TelemetrySink(Protocol):
    def on_sample(self, sample: TelemetrySample) -> None: ...
    def on_status(self, status: StatusCode) -> None: ...
    def close(self) -> None: ...
