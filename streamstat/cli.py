import argparse
import csv
import json
import logging
import math
import sys
from typing import List, Optional

from . import __version__
from .errors import IngestError
from .ingest import IngestContext, IngestResult, StreamIngestor
from .options import IngestOptions
from .progress import MEMORY_PRESSURE, PROCESSING_BATCH, PROCESSING_RESUMED, ProgressEvent

TYPE_LABELS = {"numeric": "Number", "categorical": "Text", "mixed": "Mixed", "unknown": "Unknown"}


def print_progress(event: ProgressEvent):
    if event.phase == PROCESSING_BATCH:
        pct_str = f"{event.progress_percent:5.1f}%" if event.progress_percent is not None else "  ?.%"
        rps = event.processing_rate_per_sec or 0
        eta = event.estimated_seconds_remaining
        eta_str = f" | ETA ~{int(eta)}s" if eta is not None else ""
        print(f"[progress] {pct_str} | {rps:,.0f} rows/s{eta_str} | {event.memory_usage_mb:.1f} MB",
              file=sys.stderr)
    elif event.phase == MEMORY_PRESSURE:
        print(f"[memory] paused at {event.memory_usage_mb:.1f} MB", file=sys.stderr)
    elif event.phase == PROCESSING_RESUMED:
        print("[memory] resumed", file=sys.stderr)


def print_stream_results(result: IngestResult, unique_skipped: bool = False):
    def pr(label: str, value: str):
        print(f"    {label.ljust(24)}{value}")
    def fmt_num(x: Optional[float]):
        if x is None or (isinstance(x, float) and (math.isinf(x) or math.isnan(x))):
            return "None"
        if isinstance(x, int) or float(x).is_integer():
            return f"{int(round(x)):,}"
        return f"{x:,.3f}"
    def fmt_unique(u: Optional[int], exact: bool):
        if u is None:
            return "(skipped)" if unique_skipped else "None"
        return f"{u:,}" if exact else f"~{int(round(u / 1000.0)) * 1000:,}"
    summary = result.summary
    for idx, name in enumerate(summary.columns, start=1):
        r = summary.column_stats[name]
        has_nulls = r["null_count"] > 0
        print(f"{idx}. \"{name}\"")
        pr("Type of data:", TYPE_LABELS.get(r["data_type"], r["data_type"]))
        if r["numeric_count"] > 0:
            pr("Contains null values:", f"{has_nulls} (excluded from numeric stats)")
        else:
            pr("Contains null values:", str(has_nulls))
        pr("Non-null values:", f"{r['count']:,}")
        pr("Unique values:", fmt_unique(r["unique"], r["unique_exact"]))
        if r["numeric_count"] > 0:
            pr("Smallest value:", fmt_num(r["min"]))
            pr("Largest value:", fmt_num(r["max"]))
            pr("Sum:", fmt_num(r["sum"]))
            pr("Mean:", fmt_num(r["mean"]))
            pr("StDev:", fmt_num(r["stdev"]))
        if r["text_count"] > 0:
            pr("Text values:", f"{r['text_count']:,}")
            pr("Longest value length:", str(r["longest_len"] or 0))
        print()
    print(f"Row count: {summary.row_count:,}")
    if summary.mismatched_rows:
        print(f"Rows with mismatched field count: {summary.mismatched_rows:,}")
    print(f"Sample rows: {len(result.sample):,}")
    print(f"Processing time: {summary.processing_time_ms / 1000.0:.2f}s | peak memory {summary.peak_memory_mb:.1f} MB"
          f" | pauses {summary.pause_count}")


def write_sample(path: str, result: IngestResult):
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=result.summary.columns, restval="")
        w.writeheader()
        w.writerows(result.sample)


def build_parser() -> argparse.ArgumentParser:
    d = IngestOptions()
    ap = argparse.ArgumentParser(prog="streamstat",
                                 description="Single-pass CSV statistics and row sample with bounded memory")
    ap.add_argument("file", help="CSV path or '-' for stdin")
    ap.add_argument("--sample-size", type=int, default=d.sample_size, help="Rows kept in the reservoir sample")
    ap.add_argument("--batch-size", type=int, default=d.batch_size_initial, help="Initial rows per batch")
    ap.add_argument("--batch-floor", type=int, default=d.batch_size_floor, help="Smallest adaptive batch")
    ap.add_argument("--batch-ceiling", type=int, default=d.batch_size_ceiling, help="Largest adaptive batch")
    ap.add_argument("--mem-budget-mb", type=int, default=d.max_memory_budget_mb, help="Memory budget (MB) for watermarks")
    ap.add_argument("--no-adaptive", action="store_true", help="Keep the batch size fixed")
    ap.add_argument("--governor-interval-ms", type=int, default=d.governor_interval_ms, help="Memory check period")
    ap.add_argument("--resume-delay-ms", type=int, default=d.resume_delay_ms, help="Pause length under memory pressure")
    ap.add_argument("--warmup-rows", type=int, default=d.warmup_rows, help="Rows before batch sizing adapts")
    ap.add_argument("--progress", action="store_true", help="Show progress with %% complete, rows/s, ETA")
    ap.add_argument("--progress-interval-ms", type=int, default=d.progress_interval_ms, help="Min gap between progress lines")
    ap.add_argument("--encoding", default=d.encoding)
    ap.add_argument("--delimiter", default=d.delimiter)
    ap.add_argument("--seed", type=int, default=None, help="Seed for reproducible sampling")
    ap.add_argument("--skip-unique", action="store_true", help="Skip unique counting (faster)")
    ap.add_argument("--json", action="store_true", help="Print {summary, sample} as JSON")
    ap.add_argument("--sample-out", help="Write the sample rows to this CSV path")
    ap.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return ap


def options_from_args(args: argparse.Namespace) -> IngestOptions:
    return IngestOptions(
        sample_size=args.sample_size,
        batch_size_initial=args.batch_size,
        batch_size_floor=args.batch_floor,
        batch_size_ceiling=args.batch_ceiling,
        max_memory_budget_mb=args.mem_budget_mb,
        progress_interval_ms=args.progress_interval_ms,
        adaptive_batching=not args.no_adaptive,
        on_progress=print_progress if args.progress else None,
        governor_interval_ms=args.governor_interval_ms,
        resume_delay_ms=args.resume_delay_ms,
        warmup_rows=args.warmup_rows,
        encoding=args.encoding,
        delimiter=args.delimiter,
        seed=args.seed,
        track_unique=not args.skip_unique,
    ).validate()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        opts = options_from_args(args)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    ingestor = StreamIngestor(opts, IngestContext())
    try:
        if args.file == "-":
            result = ingestor.process_filelike(sys.stdin, source="<stdin>")
        else:
            result = ingestor.process_path(args.file)
    except IngestError as e:
        print(f"error: {e.kind}: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("interrupted", file=sys.stderr)
        return 130

    if args.sample_out:
        write_sample(args.sample_out, result)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print_stream_results(result, unique_skipped=args.skip_unique)
    return 0
