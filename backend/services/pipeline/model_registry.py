"""Lazy registry of model role instances.

Global singleton map, built on first use.
"""

import logging

from services.pipeline.base import BaseModelRole

logger = logging.getLogger(__name__)

_registry: dict[str, BaseModelRole] = {}


def _create_role(name: str) -> BaseModelRole:
    """Factory: create a model role by name with deferred imports."""
    if name == "fast_extractor":
        from services.pipeline.fast_extractor import GeminiFastExtractor
        return GeminiFastExtractor()
    elif name == "deep_analyzer":
        from services.pipeline.deep_analyzer import GeminiDeepAnalyzer
        return GeminiDeepAnalyzer()
    else:
        raise ValueError(f"Unknown model role: {name}")


def get_role(name: str) -> BaseModelRole:
    """Get a model role by name, creating it on first access."""
    if name not in _registry:
        _registry[name] = _create_role(name)
        logger.info("Model role ready: %r", _registry[name])
    return _registry[name]


def register(name: str, role: BaseModelRole) -> None:
    """Install a specific role instance (e.g. a fake in tests)."""
    _registry[name] = role


def clear() -> None:
    """Drop all role instances. Useful for testing."""
    _registry.clear()
