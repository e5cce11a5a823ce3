"""
Ingestion summary schemas.
"""
from pydantic import BaseModel
from typing import List


class IngestFailure(BaseModel):
    path: str
    reason: str


class IngestSummaryResponse(BaseModel):
    imported: int = 0
    skipped: int = 0
    reimported: int = 0
    failed: int = 0
    cancelled: int = 0
    pruned: int = 0
    total: int = 0
    failures: List[IngestFailure] = []
    duration: float = 0.0
