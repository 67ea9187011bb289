import gc
import logging
import math
import os
import threading
from typing import Callable, Optional

import psutil

from .options import IngestOptions
from .progress import MEMORY_PRESSURE, PROCESSING_RESUMED, ProgressReporter
from .state import IngestState, ProcessingState

log = logging.getLogger(__name__)

MB = 1024 * 1024

PAUSE_FRACTION = 0.9
HIGH_WATERMARK_FRACTION = 0.7
LOW_WATERMARK_FRACTION = 0.4
SHRINK_FACTOR = 0.8
GROW_FACTOR = 1.2


def rss_bytes() -> int:
    """Resident set size of this process."""
    return int(psutil.Process(os.getpid()).memory_info().rss)


def reclaim_memory():
    gc.collect()


class FlowControl:
    """Pause/resume switch between the governor and the read loop."""

    def __init__(self):
        self._running = threading.Event()
        self._running.set()

    @property
    def paused(self) -> bool:
        return not self._running.is_set()

    def pause(self):
        self._running.clear()

    def resume(self):
        self._running.set()

    def wait(self, cancel: Optional[threading.Event] = None, poll: float = 0.1) -> bool:
        """Block while paused. Returns False if `cancel` fired first."""
        while not self._running.wait(poll):
            if cancel is not None and cancel.is_set():
                return False
        return not (cancel is not None and cancel.is_set())


class MemoryGovernor:
    """Periodic feedback loop over process memory.

    Shrinks the batch size above the high watermark, grows it below the low
    watermark, and pauses the read loop above the pause threshold. It never
    touches column stats or the reservoir.
    """

    def __init__(self, state: ProcessingState, options: IngestOptions, flow: FlowControl,
                 reporter: Optional[ProgressReporter] = None,
                 probe: Callable[[], int] = rss_bytes,
                 reclaim: Callable[[], None] = reclaim_memory,
                 on_transition: Optional[Callable[[IngestState], None]] = None):
        self.state = state
        self.options = options
        self.flow = flow
        self.reporter = reporter
        self.probe = probe
        self.reclaim = reclaim
        self.on_transition = on_transition
        budget = options.max_memory_budget_bytes
        self.pause_threshold = PAUSE_FRACTION * budget
        self.high_watermark = HIGH_WATERMARK_FRACTION * budget
        self.low_watermark = LOW_WATERMARK_FRACTION * budget
        self.interval_s = options.governor_interval_ms / 1000.0
        self.resume_delay_s = options.resume_delay_ms / 1000.0
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._resume_timer: Optional[threading.Timer] = None
        if not state.current_batch_size:
            state.current_batch_size = options.batch_size_initial

    def sample(self) -> int:
        rss = self.probe()
        self.state.observe_memory(rss)
        return rss

    def adapt_batch_size(self, usage: int) -> int:
        opts = self.options
        st = self.state
        size = st.current_batch_size
        if not opts.adaptive_batching or st.rows_processed < opts.warmup_rows:
            return size
        if usage > self.high_watermark:
            size = max(opts.batch_size_floor, int(size * SHRINK_FACTOR))
        elif usage < self.low_watermark:
            size = min(opts.batch_size_ceiling, math.ceil(size * GROW_FACTOR))
        if size != st.current_batch_size:
            log.debug("batch size %d -> %d (rss %.1f MB)", st.current_batch_size, size, usage / MB)
            st.current_batch_size = size
        return size

    def tick(self):
        """One control step: measure, adapt, and apply backpressure."""
        usage = self.sample()
        log.debug("governor tick: rss %.1f MB, batch %d", usage / MB, self.state.current_batch_size)
        self.adapt_batch_size(usage)
        if usage > self.pause_threshold and not self.flow.paused:
            self.pause(usage)

    def pause(self, usage: int):
        with self._lock:
            if self._stop.is_set() or self.flow.paused:
                return
            self.flow.pause()
            self.state.paused = True
            self.state.pause_count += 1
            if self._resume_timer is not None:
                self._resume_timer.cancel()
            timer = threading.Timer(self.resume_delay_s, self.resume)
            timer.daemon = True
            self._resume_timer = timer
            log.warning("memory pressure: rss %.1f MB over %.1f MB, pausing input",
                        usage / MB, self.pause_threshold / MB)
            # the resume is scheduled even if a callback raises
            try:
                if self.on_transition is not None:
                    self.on_transition(IngestState.PAUSED)
                if self.reporter is not None:
                    self.reporter.report(MEMORY_PRESSURE, pause_threshold_mb=round(self.pause_threshold / MB, 2))
            finally:
                timer.start()
        self.reclaim()

    def resume(self):
        with self._lock:
            if not self.flow.paused:
                return
            self.flow.resume()
            self.state.paused = False
            stopped = self._stop.is_set()
        if stopped:
            return
        log.info("input resumed")
        if self.on_transition is not None:
            self.on_transition(IngestState.READING)
        if self.reporter is not None:
            self.reporter.report(PROCESSING_RESUMED)

    def _run(self):
        while not self._stop.wait(self.interval_s):
            try:
                self.tick()
            except psutil.Error as e:
                log.warning("could not read memory usage: %s", e)
            except Exception:
                log.exception("governor tick failed, releasing input")
                self.resume()

    def start(self):
        self.sample()
        self._thread = threading.Thread(target=self._run, name="memory-governor", daemon=True)
        self._thread.start()

    def stop(self):
        self._stop.set()
        with self._lock:
            if self._resume_timer is not None:
                self._resume_timer.cancel()
        self.resume()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=max(1.0, self.interval_s))
        self._thread = None
