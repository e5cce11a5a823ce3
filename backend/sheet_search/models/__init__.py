from .file import File
from .record import Record

__all__ = [
    "File",
    "Record",
]
