"""Deep tier backed by a Gemini Pro model."""

from config import settings
from services import gemini_client
from services.pipeline.base import DeepAnalyzer


class GeminiDeepAnalyzer(DeepAnalyzer):

    def __init__(self, model_name: str | None = None) -> None:
        self.model_name = model_name or settings.deep_model

    async def complete(
        self,
        system_prompt: str,
        user_content: str,
        *,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> str:
        return await gemini_client.generate_text(
            self.model_name,
            system_prompt,
            user_content,
            temperature=self.default_temperature if temperature is None else temperature,
            json_mode=json_mode,
        )
