from typing import Optional


class IngestError(Exception):
    """Base class for every failure surfaced by the ingestion engine."""
    kind = "IngestError"

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class SourceNotFound(IngestError):
    kind = "SourceNotFound"


class SourceEmpty(IngestError):
    kind = "SourceEmpty"


class ReadError(IngestError):
    kind = "ReadError"


class ParseError(IngestError):
    kind = "ParseError"

    def __init__(self, message: str, source: Optional[str] = None, line: Optional[int] = None):
        super().__init__(message, source)
        self.line = line


class Cancelled(IngestError):
    kind = "Cancelled"
