"""Capability interfaces for the two model tiers used by the pipeline."""

from abc import ABC, abstractmethod
import logging

logger = logging.getLogger(__name__)


class BaseModelRole(ABC):
    """A model tier the orchestration talks to without knowing the provider.

    Subclasses must implement:
        - complete(): send a system prompt + user content, return raw text
    """

    role_name: str = ""
    model_name: str = ""
    default_temperature: float = 0.0

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_content: str,
        *,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> str:
        """Run one completion. Provider errors propagate to the caller."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model_name!r})"


class FastExtractor(BaseModelRole):
    """Cheap, fast tier: chunk summaries and stage 1 fact extraction."""

    role_name = "fast_extractor"
    default_temperature = 0.0


class DeepAnalyzer(BaseModelRole):
    """Stronger tier: stage 2 scoring and job-fit comparison."""

    role_name = "deep_analyzer"
    default_temperature = 0.1
