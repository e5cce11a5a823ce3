"""
Search result schemas.
"""
from pydantic import BaseModel
from datetime import datetime
from typing import List


class SearchResult(BaseModel):
    id: int
    file_name: str
    sheet_name: str
    row_number: int
    data_json: str  # JSON object string, keys in the file's field order
    import_time: datetime


class SearchResponse(BaseModel):
    results: List[SearchResult]
    total: int
    limit: int
    offset: int
