from .file import FileResponse
from .record import SearchResult, SearchResponse
from .stats import StatsResponse
from .ingest import IngestFailure, IngestSummaryResponse

__all__ = [
    "FileResponse",
    "SearchResult",
    "SearchResponse",
    "StatsResponse",
    "IngestFailure",
    "IngestSummaryResponse",
]
