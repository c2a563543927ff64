"""Content-addressed cache of finished analyses."""

import hashlib
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

from models.responses import AnalysisResult
from models.schemas.job_description import RawJobDescription, StructuredJobDescription

logger = logging.getLogger(__name__)

# Only the head of a pasted job posting goes into the key
JOB_PREVIEW_CHARS = 100


def _md5(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()


def make_cache_key(
    resume_text: str,
    job_description: RawJobDescription | StructuredJobDescription | None,
) -> str:
    """Hash of the resume plus a bounded fingerprint of the job description."""
    if job_description is None:
        return _md5(resume_text)
    if isinstance(job_description, RawJobDescription):
        preview = job_description.text[:JOB_PREVIEW_CHARS]
        return _md5(f"{resume_text}-job:{preview}")
    if isinstance(job_description, StructuredJobDescription):
        job_key = "-".join([
            job_description.role_title or "",
            job_description.company_name or "",
            ",".join(job_description.skills),
        ])
        return _md5(f"{resume_text}-{job_key}")
    raise TypeError(f"Unsupported job description type: {type(job_description).__name__}")


class CacheLayer(ABC):
    """Storage for AnalysisResult objects keyed by make_cache_key()."""

    @abstractmethod
    def get(self, key: str) -> AnalysisResult | None:
        """Return a fresh entry, or None on miss / expiry."""

    @abstractmethod
    def put(self, key: str, result: AnalysisResult) -> None:
        """Store ``result``, replacing any existing entry for ``key``."""

    def clear(self) -> None:
        pass


@dataclass
class CacheEntry:
    timestamp: float
    result: AnalysisResult


class InMemoryAnalysisCache(CacheLayer):
    """Process-local TTL cache with an optional LRU size cap.

    Expired entries are dropped only when read. A lock guards the map.
    """

    def __init__(
        self,
        ttl_seconds: float = 24 * 60 * 60,
        max_entries: int = 0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> AnalysisResult | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if self._clock() - entry.timestamp >= self.ttl_seconds:
                del self._entries[key]
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return entry.result

    def put(self, key: str, result: AnalysisResult) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(timestamp=self._clock(), result=result)
            self._entries.move_to_end(key)
            if self.max_entries:
                while len(self._entries) > self.max_entries:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.debug("Evicted analysis cache entry %s", evicted)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)
