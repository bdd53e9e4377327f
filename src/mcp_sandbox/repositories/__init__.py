"""Repository pattern implementations for data access."""

from .base import BaseRepository
from .containers import ContainerRecordRepository

__all__ = [
    "BaseRepository",
    "ContainerRecordRepository",
]
