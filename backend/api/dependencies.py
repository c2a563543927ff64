"""Shared dependencies for API routes."""

from functools import lru_cache

from config import settings
from services.cache import InMemoryAnalysisCache
from services.pipeline.model_registry import get_role
from services.resume_analyzer import ResumeAnalyzer
from services.storage import AnalysisStore, InMemoryAnalysisStore


@lru_cache
def get_cache() -> InMemoryAnalysisCache:
    return InMemoryAnalysisCache(
        ttl_seconds=settings.cache_ttl_hours * 3600,
        max_entries=settings.cache_max_entries,
    )


@lru_cache
def get_store() -> AnalysisStore:
    return InMemoryAnalysisStore()


@lru_cache
def get_analyzer() -> ResumeAnalyzer:
    return ResumeAnalyzer(
        fast=get_role("fast_extractor"),
        deep=get_role("deep_analyzer"),
        cache=get_cache(),
        store=get_store(),
    )
