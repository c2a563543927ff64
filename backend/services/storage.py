"""Persistence adapter for finished analyses."""

import itertools
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from pydantic import BaseModel

from models.responses import AnalysisDetails, StoredAnalysis
from models.schemas.job_description import JobDescription

logger = logging.getLogger(__name__)


class NewAnalysis(BaseModel):
    """What the analyzer hands over for storage."""
    user_id: str | None = None
    content: str
    score: int
    job_description: JobDescription | None = None
    analysis: AnalysisDetails


class AnalysisStore(ABC):

    @abstractmethod
    async def save(self, record: NewAnalysis) -> StoredAnalysis:
        """Persist a record and return it with its id and timestamps."""

    @abstractmethod
    async def get(self, analysis_id: int) -> StoredAnalysis | None:
        ...

    @abstractmethod
    async def list_for_user(self, user_id: str) -> list[StoredAnalysis]:
        ...


class InMemoryAnalysisStore(AnalysisStore):
    """Dict-backed store for development and tests. Newest first on listing."""

    def __init__(self) -> None:
        self._records: dict[int, StoredAnalysis] = {}
        self._ids = itertools.count(1)

    async def save(self, record: NewAnalysis) -> StoredAnalysis:
        now = datetime.now(timezone.utc)
        stored = StoredAnalysis(
            id=next(self._ids),
            user_id=record.user_id,
            content=record.content,
            score=record.score,
            job_description=record.job_description,
            analysis=record.analysis,
            created_at=now,
            updated_at=now,
        )
        self._records[stored.id] = stored
        logger.info("Stored analysis %d for user %s", stored.id, stored.user_id)
        return stored

    async def get(self, analysis_id: int) -> StoredAnalysis | None:
        return self._records.get(analysis_id)

    async def list_for_user(self, user_id: str) -> list[StoredAnalysis]:
        records = [r for r in self._records.values() if r.user_id == user_id]
        return sorted(records, key=lambda r: r.id, reverse=True)
