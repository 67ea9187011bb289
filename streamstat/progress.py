import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, Optional

from .state import ProcessingState

log = logging.getLogger(__name__)

READING = "reading"
HEADERS_DETECTED = "headers-detected"
PROCESSING_BATCH = "processing-batch"
MEMORY_PRESSURE = "memory-pressure"
PROCESSING_RESUMED = "processing-resumed"
FINALIZING = "finalizing"
COMPLETE = "complete"
ERROR = "error"

TERMINAL_PHASES = (COMPLETE, ERROR)
# only routine batch updates are throttled
RATE_LIMITED_PHASES = (PROCESSING_BATCH,)

MB = 1024 * 1024


@dataclass
class ProgressEvent:
    phase: str
    rows_processed: int
    bytes_read: int
    total_bytes: Optional[int]
    processing_rate_per_sec: Optional[float]
    estimated_seconds_remaining: Optional[float]
    memory_usage_mb: float
    progress_percent: Optional[int]
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        out = asdict(self)
        extra = out.pop("extra")
        out.update(extra)
        return out


class ProgressReporter:
    """Turns ProcessingState snapshots into ProgressEvents for a sink.

    Routine batch events are limited to one per interval; phase changes and
    terminal events always go out. Nothing is emitted after a terminal event.
    Safe to call from the governor thread.
    """

    def __init__(self, state: ProcessingState, sink: Optional[Callable[[ProgressEvent], None]] = None,
                 interval_s: float = 1.0, clock: Callable[[], float] = time.monotonic):
        self.state = state
        self.sink = sink
        self.interval_s = interval_s
        self.clock = clock
        self.closed = False
        self.emitted = 0
        self._last_batch_emit: Optional[float] = None
        self._lock = threading.RLock()

    def snapshot(self, phase: str, now: float, extra: Dict[str, Any]) -> ProgressEvent:
        st = self.state
        elapsed = st.elapsed(now)
        rate = st.rows_processed / elapsed if elapsed > 0 else None
        eta = None
        percent = None
        total = st.total_bytes
        if total:
            percent = min(100, int(st.bytes_read * 100 / total))
            if st.bytes_read > 0 and rate:
                est_total_rows = st.rows_processed * (total / st.bytes_read)
                eta = max(0.0, (est_total_rows - st.rows_processed) / rate)
        if phase == COMPLETE:
            eta = 0.0
            percent = 100 if total is not None else percent
        st.processing_rate = rate
        st.estimated_time_remaining = eta
        return ProgressEvent(
            phase=phase,
            rows_processed=st.rows_processed,
            bytes_read=st.bytes_read,
            total_bytes=total,
            processing_rate_per_sec=rate,
            estimated_seconds_remaining=eta,
            memory_usage_mb=round(st.memory_usage_current / MB, 2),
            progress_percent=percent,
            extra=extra,
        )

    def report(self, phase: str, **extra) -> Optional[ProgressEvent]:
        with self._lock:
            if self.closed:
                return None
            now = self.clock()
            if (phase in RATE_LIMITED_PHASES and self._last_batch_emit is not None
                    and now - self._last_batch_emit < self.interval_s):
                return None
            event = self.snapshot(phase, now, extra)
            if phase in RATE_LIMITED_PHASES:
                self._last_batch_emit = now
            if phase in TERMINAL_PHASES:
                self.closed = True
            self.emitted += 1
            log.debug("progress %s rows=%d bytes=%d", phase, event.rows_processed, event.bytes_read)
            if self.sink is not None:
                self.sink(event)
            return event
