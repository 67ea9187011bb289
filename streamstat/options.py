import codecs
from dataclasses import dataclass, fields
from typing import Any, Callable, Mapping, Optional

# camelCase names accepted from callers that pass plain option dicts
_ALIASES = {
    "sampleSize": "sample_size",
    "batchSizeInitial": "batch_size_initial",
    "batchSizeFloor": "batch_size_floor",
    "batchSizeCeiling": "batch_size_ceiling",
    "maxMemoryBudgetMB": "max_memory_budget_mb",
    "progressIntervalMs": "progress_interval_ms",
    "adaptiveBatching": "adaptive_batching",
    "onProgress": "on_progress",
    "governorIntervalMs": "governor_interval_ms",
    "resumeDelayMs": "resume_delay_ms",
    "warmupRows": "warmup_rows",
    "trackUnique": "track_unique",
}


@dataclass
class IngestOptions:
    sample_size: int = 1000
    batch_size_initial: int = 5000
    batch_size_floor: int = 500
    batch_size_ceiling: int = 50_000
    max_memory_budget_mb: int = 100
    progress_interval_ms: int = 1000
    adaptive_batching: bool = True
    on_progress: Optional[Callable[[Any], None]] = None
    governor_interval_ms: int = 2000
    resume_delay_ms: int = 500
    warmup_rows: int = 10_000
    encoding: str = "utf-8-sig"
    delimiter: str = ","
    seed: Optional[int] = None
    track_unique: bool = True

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]] = None) -> "IngestOptions":
        if not options:
            return cls().validate()
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in options.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"unknown option: {key}")
            kwargs[name] = value
        return cls(**kwargs).validate()

    def validate(self) -> "IngestOptions":
        if self.sample_size < 0:
            raise ValueError("sample_size must be >= 0")
        for name in ("batch_size_floor", "batch_size_ceiling", "max_memory_budget_mb",
                     "governor_interval_ms"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")
        if self.progress_interval_ms < 0 or self.resume_delay_ms < 0 or self.warmup_rows < 0:
            raise ValueError("intervals and warmup_rows must be >= 0")
        if self.batch_size_floor > self.batch_size_ceiling:
            raise ValueError("batch_size_floor must not exceed batch_size_ceiling")
        if len(self.delimiter) != 1:
            raise ValueError("delimiter must be a single character")
        try:
            codecs.lookup(self.encoding)
        except LookupError as e:
            raise ValueError(f"unknown encoding: {self.encoding}") from e
        self.batch_size_initial = min(self.batch_size_ceiling,
                                      max(self.batch_size_floor, int(self.batch_size_initial)))
        return self

    @property
    def max_memory_budget_bytes(self) -> int:
        return int(self.max_memory_budget_mb) * 1024 * 1024
