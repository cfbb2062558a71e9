# healthtrack/runtime/dispatcher.py
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional, Union

from healthtrack.model.codec import DecodedValue
from healthtrack.model.profile import Metric
from healthtrack.model.telemetry import StatusCode, TelemetrySample
from healthtrack.runtime.session import ConnectionSession
from healthtrack.runtime.teardown import TeardownReport

DataCallback = Callable[[TelemetrySample], None]
StatusCallback = Callable[[StatusCode], None]
StreamItem = Union[TelemetrySample, StatusCode]

_CLOSED = object()


class TelemetryStream:
    """
    Async iterator over one characteristic's decoded events, in arrival order.

    Numeric metrics yield TelemetrySample, the status metric yields the token.
    Iteration ends once the stream is closed (explicitly or by teardown).
    When `maxsize` is reached the oldest queued item is dropped.
    """

    def __init__(self, metric: Metric, *, maxsize: int = 256, on_close: Optional[Callable[["TelemetryStream"], None]] = None):
        self.metric = metric
        self._queue: asyncio.Queue = asyncio.Queue()
        self._maxsize = int(maxsize)
        self._closed = False
        self._on_close = on_close
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, item: StreamItem) -> None:
        if self._closed:
            return
        if self._maxsize > 0 and self._queue.qsize() >= self._maxsize:
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(item)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)
        cb, self._on_close = self._on_close, None
        if cb is not None:
            cb(self)

    def __aiter__(self) -> "TelemetryStream":
        return self

    async def __anext__(self) -> StreamItem:
        item = await self._queue.get()
        if item is _CLOSED:
            # keep the sentinel for any other waiter
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item


class TelemetryDispatcher:
    """
    Fans decoded characteristic values out to the caller's callbacks and to
    any open TelemetryStream.

    subscribe() only installs listeners on the session; it never connects or
    enables notifications. Radio subscriptions come from ConnectionSession.connect().
    """

    def __init__(
        self,
        *,
        session: ConnectionSession,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ):
        self._session = session
        self._clock = clock
        self._log = logger or logging.getLogger(__name__)

        self._on_data: Optional[DataCallback] = None
        self._on_status: Optional[StatusCallback] = None
        self._streams: Dict[Metric, List[TelemetryStream]] = {m: [] for m in Metric}

    @property
    def has_listeners(self) -> bool:
        return self._on_data is not None or self._on_status is not None

    def subscribe(self, on_data: Optional[DataCallback], on_status: Optional[StatusCallback]) -> bool:
        self._on_data = on_data
        self._on_status = on_status
        self._install()
        self._log.info("TELEMETRY_SUBSCRIBE live=%s", [m.value for m in self._session.subscribed_metrics])
        return True

    def open_stream(self, metric: Metric, *, maxsize: int = 256) -> TelemetryStream:
        stream = TelemetryStream(Metric(metric), maxsize=maxsize, on_close=self._forget_stream)
        self._streams[stream.metric].append(stream)
        self._install()
        return stream

    async def unsubscribe(self) -> TeardownReport:
        """Release live subscriptions, clear listeners, close streams. Idempotent."""
        report = await self._session.release_subscriptions()

        self._session.clear_listeners()
        self._on_data = None
        self._on_status = None
        self.close_streams()

        self._log.info("TELEMETRY_UNSUBSCRIBE failures=%d", len(report.failures))
        return report

    def close_streams(self) -> None:
        for streams in self._streams.values():
            for s in list(streams):
                s.close()

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def _install(self) -> None:
        self._session.set_listener(Metric.HEART_RATE, self._on_heart_rate)
        self._session.set_listener(Metric.SPO2, self._on_spo2)
        self._session.set_listener(Metric.STATUS, self._on_status_value)

    def _on_heart_rate(self, value: DecodedValue) -> None:
        if value is None:
            return
        self._note_non_numeric(Metric.HEART_RATE, value)
        self._emit_sample(Metric.HEART_RATE, TelemetrySample(timestamp=self._clock(), heart_rate=value))

    def _on_spo2(self, value: DecodedValue) -> None:
        if value is None:
            return
        self._note_non_numeric(Metric.SPO2, value)
        self._emit_sample(Metric.SPO2, TelemetrySample(timestamp=self._clock(), spo2=value))

    def _on_status_value(self, value: DecodedValue) -> None:
        if value is None:
            return
        token = str(value)
        for s in list(self._streams[Metric.STATUS]):
            s.push(token)

        cb = self._on_status
        if cb is None:
            return
        try:
            cb(token)
        except Exception:
            self._log.exception("TELEMETRY_CALLBACK_ERROR callback=on_status")

    def _emit_sample(self, metric: Metric, sample: TelemetrySample) -> None:
        for s in list(self._streams[metric]):
            s.push(sample)

        cb = self._on_data
        if cb is None:
            return
        try:
            cb(sample)
        except Exception:
            self._log.exception("TELEMETRY_CALLBACK_ERROR callback=on_data")

    def _note_non_numeric(self, metric: Metric, value: DecodedValue) -> None:
        # diagnostic only; the text is still emitted
        if not isinstance(value, int):
            self._log.warning("NON_NUMERIC_SAMPLE metric=%s value=%r", metric.value, value)

    def _forget_stream(self, stream: TelemetryStream) -> None:
        streams = self._streams.get(stream.metric, [])
        if stream in streams:
            streams.remove(stream)
