import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class IngestState(str, Enum):
    IDLE = "idle"
    READING = "reading"
    PAUSED = "paused"
    FINALIZING = "finalizing"
    COMPLETE = "complete"
    FAILED = "failed"


TERMINAL_STATES = (IngestState.COMPLETE, IngestState.FAILED)


@dataclass
class ProcessingState:
    """Live counters for one run; discarded once the summary is built."""
    rows_processed: int = 0
    bytes_read: int = 0
    total_bytes: Optional[int] = None
    start_time: float = field(default_factory=time.monotonic)
    processing_rate: Optional[float] = None
    estimated_time_remaining: Optional[float] = None
    memory_usage_current: int = 0
    memory_usage_max: int = 0
    current_batch_size: int = 0
    paused: bool = False
    pause_count: int = 0

    def elapsed(self, now: Optional[float] = None) -> float:
        return (time.monotonic() if now is None else now) - self.start_time

    def observe_memory(self, rss: int):
        self.memory_usage_current = rss
        if rss > self.memory_usage_max:
            self.memory_usage_max = rss
