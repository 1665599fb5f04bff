from abc import ABC, abstractmethod
from typing import List

from ..db_sync.models import MirrorRecord, SourceRecord


class SourceReader(ABC):
    """Read-only view over the production table"""

    @abstractmethod
    def fetch_recent(self, limit: int) -> List[SourceRecord]:
        """Most recent rows by DateTime, newest first"""
        pass


class MirrorStore(ABC):
    """Abstract base class for the dashboard mirror"""

    @abstractmethod
    def ensure_schema(self) -> bool:
        """Create the mirror table if missing"""
        pass

    @abstractmethod
    def upsert(self, record: SourceRecord) -> None:
        """Insert or update a single record atomically"""
        pass

    @abstractmethod
    def fetch_recent(self, limit: int) -> List[MirrorRecord]:
        """Most recent mirror rows by DateTime, newest first"""
        pass

    @abstractmethod
    def count(self) -> int:
        pass
