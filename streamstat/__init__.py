"""Single-pass CSV statistics and reservoir sampling with bounded memory."""

from .classify import Cell, classify
from .errors import Cancelled, IngestError, ParseError, ReadError, SourceEmpty, SourceNotFound
from .ingest import (DatasetSummary, IngestContext, IngestResult, StreamIngestor, process,
                     process_filelike)
from .options import IngestOptions
from .progress import ProgressEvent
from .sampling import ReservoirSampler
from .stats import ColumnAccumulator, ColumnStats

__version__ = "0.2.0"

__all__ = [
    "Cell", "classify",
    "IngestError", "SourceNotFound", "SourceEmpty", "ReadError", "ParseError", "Cancelled",
    "DatasetSummary", "IngestContext", "IngestResult", "StreamIngestor", "process", "process_filelike",
    "IngestOptions", "ProgressEvent", "ReservoirSampler", "ColumnAccumulator", "ColumnStats",
]
