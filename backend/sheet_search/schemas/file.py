"""
File schemas.
"""
from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional


class FileResponse(BaseModel):
    id: int
    path: str
    name: str
    size: int
    hash: str
    field_order: Optional[List[str]] = None
    created_at: datetime
    updated_at: datetime
    record_count: int = 0

    class Config:
        from_attributes = True
