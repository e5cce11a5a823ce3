"""
Stats schemas.
"""
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class StatsResponse(BaseModel):
    total_files: int
    total_records: int
    last_updated: Optional[datetime] = None
