# snappy/core/tracing.py
from __future__ import annotations
import contextvars
import datetime as dt
import itertools
import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from snappy.core.ids import uuidv7

logger = logging.getLogger(__name__)

__all__ = ["JsonDict", "TraceSpan", "TraceHub", "Tracer", "getTracer", "getTraceHub"]

JsonDict = dict[str, Any]
TraceListener = Callable[[JsonDict], None]

# Attribute keys copied to the top level of every record for easy filtering.
PROMOTED_KEYS: tuple[str, ...] = ("snap", "version", "txnId", "phase", "app")

_activeSpan: contextvars.ContextVar["TraceSpan | None"] = contextvars.ContextVar("snappy.activeSpan", default=None)



def _timestamp() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")



@dataclass
class TraceSpan:
    """
    One timed operation (an install, a removal). Its attrs are inherited by
    every event and child span started while it is the active span.
    """
    spanName: str
    traceId: str
    spanId: str
    parentSpanId: str | None = None
    context: JsonDict = field(default_factory=dict)
    startedAt: float = field(default_factory=time.monotonic)
    ended: bool = False
    token: contextvars.Token | None = None

    def elapsedMs(self) -> float:
        return (time.monotonic() - self.startedAt) * 1000.0



class TraceHub:
    """
    Bounded in-memory store of trace records.

    Oldest records fall off once `capacity` is reached. Listeners are called
    synchronously on the emitting thread, after the record is stored.
    """
    def __init__(self, capacity: int = 5000) -> None:
        self.capacity = max(1, capacity)
        self._records: deque[JsonDict] = deque(maxlen=self.capacity)
        self._listeners: list[TraceListener] = []
        self._lock = threading.Lock()

    def emit(self, record: JsonDict) -> None:
        with self._lock:
            self._records.append(record)
            listeners = tuple(self._listeners)
        for listener in listeners:
            try:
                listener(record)
            except Exception as err:
                logger.debug("Trace listener %r failed: %s", listener, err, exc_info=True)

    def snapshot(self) -> list[JsonDict]:
        with self._lock:
            return list(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def subscribe(self, listener: TraceListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: TraceListener) -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                logger.debug("Listener %r was not subscribed", listener)



class Tracer:
    """
    Emits span and event records into a TraceHub.

    The active span lives in a context variable, so nested operations and
    threads each see their own. Emitting never raises into the caller.
    """
    def __init__(self, hub: TraceHub | None = None) -> None:
        self.hub = hub or TraceHub()
        self._seq = itertools.count(1)
        self._seqLock = threading.Lock()

    def activeSpan(self) -> TraceSpan | None:
        return _activeSpan.get()

    def _record(
        self,
        recordType: str,
        span: TraceSpan | None,
        *,
        level: str,
        tags: list[str] | None,
        attrs: JsonDict | None = None,
    ) -> JsonDict:
        with self._seqLock:
            seq = next(self._seq)
        merged: JsonDict = {**(span.context if span is not None else {}), **(attrs or {})}
        record: JsonDict = {
            "recordType": recordType,
            "seq": seq,
            "time": _timestamp(),
            "level": level,
            "traceId": span.traceId if span is not None else "",
            "spanId": span.spanId if span is not None else "",
            "tags": list(tags or ()),
            "attrs": merged,
        }
        record.update({key: merged[key] for key in PROMOTED_KEYS if key in merged})
        return record

    def startSpan(
        self,
        spanName: str,
        attrs: JsonDict | None = None,
        level: str = "info",
        tags: list[str] | None = None,
    ) -> TraceSpan:
        parent = self.activeSpan()
        span = TraceSpan(
            spanName=spanName,
            traceId=parent.traceId if parent is not None else uuidv7(prefix="trace_"),
            spanId=uuidv7(prefix="span_"),
            parentSpanId=parent.spanId if parent is not None else None,
            context={**(parent.context if parent is not None else {}), **(attrs or {})},
        )
        span.token = _activeSpan.set(span)

        record = self._record("spanStart", span, level=level, tags=tags)
        record["spanName"] = spanName
        record["parentSpanId"] = span.parentSpanId
        self._emit(record)
        return span

    def endSpan(
        self,
        span: TraceSpan,
        status: str = "ok",
        *,
        level: str = "info",
        tags: list[str] | None = None,
        errorType: str | None = None,
        errorMessage: str | None = None,
        attrs: JsonDict | None = None,
    ) -> None:
        """Emit spanEnd and make the parent span active again. A second call is a no-op."""
        if span.ended:
            return
        span.ended = True
        if span.token is not None and _activeSpan.get() is span:
            _activeSpan.reset(span.token)

        endAttrs = {**(attrs or {}), "durationMs": span.elapsedMs()}
        record = self._record("spanEnd", span, level=level, tags=tags, attrs=endAttrs)
        record.update(spanName=span.spanName, status=status, errorType=errorType, errorMessage=errorMessage)
        self._emit(record)

    @contextmanager
    def span(self, spanName: str, attrs: JsonDict | None = None, tags: list[str] | None = None) -> Iterator[TraceSpan]:
        """Span around a block; an escaping exception ends it with status "error"."""
        span = self.startSpan(spanName, attrs, tags=tags)
        try:
            yield span
        except BaseException as err:
            self.endSpan(
                span,
                "error",
                level="error",
                tags=[*(tags or ()), "error"],
                errorType=type(err).__name__,
                errorMessage=str(err),
            )
            raise
        self.endSpan(span, tags=tags)

    def traceEvent(
        self,
        eventName: str,
        attrs: JsonDict | None = None,
        *,
        level: str = "debug",
        tags: list[str] | None = None,
        span: TraceSpan | None = None,
    ) -> None:
        record = self._record("event", span or self.activeSpan(), level=level, tags=tags, attrs=attrs)
        record["eventName"] = eventName
        self._emit(record)

    def _emit(self, record: JsonDict) -> None:
        try:
            self.hub.emit(record)
        except Exception as err:
            logger.debug("Dropping trace record %s: %s", record.get("seq"), err, exc_info=True)



# Process-wide defaults; the engine accepts an explicit tracer too.
_defaultHub = TraceHub()
_defaultTracer = Tracer(_defaultHub)



def getTraceHub() -> TraceHub:
    return _defaultHub



def getTracer() -> Tracer:
    return _defaultTracer
