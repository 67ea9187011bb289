import csv
import io
import logging
import os
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .classify import classify
from .errors import Cancelled, ParseError, ReadError, SourceEmpty, SourceNotFound
from .memory import FlowControl, MemoryGovernor, reclaim_memory, rss_bytes
from .options import IngestOptions
from .progress import (COMPLETE, ERROR, FINALIZING, HEADERS_DETECTED, PROCESSING_BATCH, READING,
                       ProgressReporter)
from .sampling import ReservoirSampler, Row
from .state import TERMINAL_STATES, IngestState, ProcessingState
from .stats import ColumnAccumulator

log = logging.getLogger(__name__)

MB = 1024 * 1024
READ_BUFFER = 1024 * 1024

OptionsLike = Union[IngestOptions, Mapping[str, Any], None]


@dataclass
class DatasetSummary:
    row_count: int
    columns: List[str]
    column_stats: Dict[str, dict]
    file_size_bytes: Optional[int]
    processing_time_ms: float
    mismatched_rows: int = 0
    peak_memory_mb: float = 0.0
    pause_count: int = 0
    final_batch_size: int = 0
    source: str = "<stream>"

    def to_dict(self) -> dict:
        return {
            "row_count": self.row_count,
            "columns": list(self.columns),
            "column_stats": {k: dict(v) for k, v in self.column_stats.items()},
            "file_size_bytes": self.file_size_bytes,
            "processing_time_ms": self.processing_time_ms,
            "mismatched_rows": self.mismatched_rows,
            "peak_memory_mb": self.peak_memory_mb,
            "pause_count": self.pause_count,
            "final_batch_size": self.final_batch_size,
            "source": self.source,
        }


@dataclass
class IngestResult:
    summary: DatasetSummary
    sample: List[Row] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"summary": self.summary.to_dict(), "sample": [dict(r) for r in self.sample]}


class IngestContext:
    """Caller-owned handle for one run: cancellation plus the run's final state."""

    def __init__(self):
        self.cancel_event = threading.Event()
        self.state = IngestState.IDLE
        self.error: Optional[BaseException] = None

    def cancel(self):
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()


class _LineCounter:
    """Iterates text lines while counting characters, for sources with no byte offset."""

    def __init__(self, fh):
        self._it = iter(fh)
        self.chars = 0

    def __iter__(self):
        return self

    def __next__(self) -> str:
        line = next(self._it)
        self.chars += len(line)
        return line


def unique_headers(header: Sequence[str]) -> List[str]:
    """Blank names become `_<index>`; repeats get a numeric suffix."""
    seen: Dict[str, int] = {}
    out = []
    for i, raw in enumerate(header):
        name = raw.strip() or f"_{i}"
        base = name
        while name in seen:
            seen[base] += 1
            name = f"{base}_{seen[base]}"
        seen[name] = 0
        out.append(name)
    return out


class StreamIngestor:
    """Reads one delimited source exactly once into column stats and a row sample.

    Rows are pulled in batches whose size the memory governor adjusts; the
    governor may also pause the loop between batches. One instance per file.
    """

    def __init__(self, options: OptionsLike = None, context: Optional[IngestContext] = None,
                 probe: Callable[[], int] = rss_bytes, reclaim: Callable[[], None] = reclaim_memory):
        if isinstance(options, IngestOptions):
            self.options = replace(options).validate()
        else:
            self.options = IngestOptions.from_mapping(options)
        self.context = context if context is not None else IngestContext()
        self.probe = probe
        self.reclaim = reclaim
        self.state = ProcessingState(current_batch_size=self.options.batch_size_initial)
        self.reporter = ProgressReporter(self.state, self.options.on_progress,
                                         interval_s=self.options.progress_interval_ms / 1000.0)
        self.columns = ColumnAccumulator(track_unique=self.options.track_unique)
        self.sampler = ReservoirSampler(self.options.sample_size, seed=self.options.seed)
        self.header: List[str] = []
        self._extra_names: List[str] = []
        self.mismatched_rows = 0
        self._lock = threading.Lock()
        self._used = False

    # ---- state machine ----
    def _transition(self, new: IngestState):
        with self._lock:
            current = self.context.state
            if current in TERMINAL_STATES:
                return
            if new in (IngestState.PAUSED, IngestState.READING) and current in (
                    IngestState.FINALIZING, IngestState.FAILED):
                return
            self.context.state = new

    def _claim(self):
        if self._used:
            raise RuntimeError("StreamIngestor instances are single-use")
        self._used = True

    def _fail(self, err: BaseException):
        self.context.error = err
        self._transition(IngestState.FAILED)
        kind = getattr(err, "kind", type(err).__name__)
        log.error("ingestion failed (%s): %s", kind, err)
        self.reporter.report(ERROR, error=str(err), kind=kind)

    # ---- entry points ----
    def process_path(self, path: Union[str, os.PathLike]) -> IngestResult:
        self._claim()
        source = os.fspath(path)
        try:
            if not os.path.isfile(source):
                raise SourceNotFound(f"File not found: {source}", source)
            try:
                size = os.stat(source).st_size
            except OSError as e:
                raise ReadError(f"Cannot stat {source}: {e}", source) from e
            if size == 0:
                raise SourceEmpty(f"File is empty: {source}", source)
            self.state.total_bytes = size
            try:
                raw = open(source, "rb", buffering=READ_BUFFER)
            except OSError as e:
                raise ReadError(f"Cannot open {source}: {e}", source) from e
            with io.TextIOWrapper(raw, encoding=self.options.encoding, newline="") as fh:
                return self._stream(fh, source, raw.tell)
        except Exception as e:
            self._fail(e)
            raise

    def process_filelike(self, fh, source: str = "<stream>", total_bytes: Optional[int] = None) -> IngestResult:
        """Stream from an open text handle; percent and ETA need `total_bytes`."""
        self._claim()
        self.state.total_bytes = total_bytes
        lines = _LineCounter(fh)
        try:
            return self._stream(lines, source, lambda: lines.chars)
        except Exception as e:
            self._fail(e)
            raise

    # ---- read loop ----
    def _stream(self, lines, source: str, position: Callable[[], int]) -> IngestResult:
        opts = self.options
        st = self.state
        flow = FlowControl()
        governor = MemoryGovernor(st, opts, flow, self.reporter, probe=self.probe,
                                  reclaim=self.reclaim, on_transition=self._transition)
        st.start_time = time.monotonic()
        log.info("processing %s", source)
        self._transition(IngestState.READING)
        try:
            governor.start()
            self.reporter.report(READING, source=source)
            rdr = csv.reader(lines, delimiter=opts.delimiter, strict=True)
            try:
                self._read_header(rdr, source)
                index = 0
                batch: List[List[str]] = []
                for record in rdr:
                    if not record:
                        continue
                    batch.append(record)
                    if len(batch) >= st.current_batch_size:
                        index = self._process_batch(batch, index, position)
                        batch = []
                        self._checkpoint(flow, source)
                if batch:
                    index = self._process_batch(batch, index, position)
                    self._checkpoint(flow, source)
            except csv.Error as e:
                raise ParseError(f"Malformed CSV at line {rdr.line_num}: {e}", source, rdr.line_num) from e
            except UnicodeDecodeError as e:
                raise ParseError(f"Cannot decode {source} as {opts.encoding}: {e}", source, rdr.line_num) from e
            except OSError as e:
                raise ReadError(f"Error reading {source}: {e}", source) from e
        finally:
            governor.stop()
        return self._finalize(source, position)

    def _read_header(self, rdr, source: str):
        for record in rdr:
            if record:
                break
        else:
            raise SourceEmpty(f"No header row in {source}", source)
        self.header = unique_headers(record)
        for name in self.header:
            self.columns.ensure(name)
        log.info("CSV headers detected: %s", ", ".join(self.header))
        self.reporter.report(HEADERS_DETECTED, columns=list(self.header))

    def _to_row(self, record: List[str]) -> Row:
        header = self.header
        width = len(header)
        row = dict(zip(header, record))
        n = len(record)
        if n != width:
            if self.mismatched_rows == 0:
                log.warning("row has %d fields, header has %d; padding/extending", n, width)
            self.mismatched_rows += 1
            if n < width:
                for name in header[n:]:
                    row[name] = ""
            else:
                for name, value in zip(self._extra_columns(n), record[width:]):
                    row[name] = value
        return row

    def _extra_columns(self, n: int) -> List[str]:
        """Names for fields past the header: `_<index>`, suffixed when that name is taken."""
        names = self._extra_names
        width = len(self.header)
        if width + len(names) < n:
            taken = set(self.header).union(names)
            for i in range(width + len(names), n):
                base = name = f"_{i}"
                suffix = 0
                while name in taken:
                    suffix += 1
                    name = f"{base}_{suffix}"
                taken.add(name)
                names.append(name)
        return names[:n - width]

    def _process_batch(self, batch: List[List[str]], index: int, position: Callable[[], int]) -> int:
        columns = self.columns
        sampler = self.sampler
        for record in batch:
            row = self._to_row(record)
            for name, value in row.items():
                columns.update(name, classify(value))
            sampler.offer(row, index)
            index += 1
        st = self.state
        st.rows_processed = index
        st.bytes_read = position()
        self.reporter.report(PROCESSING_BATCH, batch_size=len(batch),
                             current_batch_size=st.current_batch_size)
        return index

    def _checkpoint(self, flow: FlowControl, source: str):
        cancel = self.context.cancel_event
        if (flow.paused and not flow.wait(cancel)) or cancel.is_set():
            raise Cancelled(f"Processing of {source} was cancelled", source)

    def _finalize(self, source: str, position: Callable[[], int]) -> IngestResult:
        st = self.state
        self._transition(IngestState.FINALIZING)
        st.bytes_read = position()
        self.reporter.report(FINALIZING)
        column_stats = self.columns.finalize_all()
        sample = self.sampler.result()
        summary = DatasetSummary(
            row_count=st.rows_processed,
            columns=list(column_stats),
            column_stats=column_stats,
            file_size_bytes=st.total_bytes,
            processing_time_ms=round(st.elapsed() * 1000.0, 3),
            mismatched_rows=self.mismatched_rows,
            peak_memory_mb=round(st.memory_usage_max / MB, 2),
            pause_count=st.pause_count,
            final_batch_size=st.current_batch_size,
            source=source,
        )
        if self.context.cancelled:
            raise Cancelled(f"Processing of {source} was cancelled", source)
        self._transition(IngestState.COMPLETE)
        self.reporter.report(COMPLETE, row_count=summary.row_count, sample_size=len(sample))
        log.info("finished %s: %d rows, %d sampled, %.0f ms", source, summary.row_count,
                 len(sample), summary.processing_time_ms)
        return IngestResult(summary=summary, sample=sample)


def process(source_path: Union[str, os.PathLike], options: OptionsLike = None,
            context: Optional[IngestContext] = None) -> IngestResult:
    """Stream a CSV file once and return its summary and a uniform row sample.

    Raises one of SourceNotFound, SourceEmpty, ReadError, ParseError, Cancelled.
    """
    return StreamIngestor(options, context).process_path(source_path)


def process_filelike(fh, options: OptionsLike = None, context: Optional[IngestContext] = None,
                     source: str = "<stream>", total_bytes: Optional[int] = None) -> IngestResult:
    return StreamIngestor(options, context).process_filelike(fh, source=source, total_bytes=total_bytes)
