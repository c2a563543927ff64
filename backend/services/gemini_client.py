"""Google Gemini API wrapper used by the model roles."""

import logging

from google import genai
from google.genai import types

from config import settings
from services.errors import UpstreamServiceError

logger = logging.getLogger(__name__)

_client: genai.Client | None = None


def get_client() -> genai.Client | None:
    global _client
    if not settings.gemini_api_key:
        logger.warning("No GEMINI_API_KEY set - Gemini features disabled")
        return None
    if _client is None:
        _client = genai.Client(api_key=settings.gemini_api_key)
    return _client


def strip_code_fences(text: str) -> str:
    """Remove a ```json ... ``` wrapper if the model added one."""
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()
    return text


async def generate_text(
    model: str,
    system_prompt: str,
    user_content: str,
    *,
    temperature: float = 0.0,
    json_mode: bool = False,
    max_output_tokens: int = 8192,
) -> str:
    """Send one chat-style request and return the raw response text.

    Provider errors (google.genai.errors.APIError) propagate untouched so the
    backoff layer can classify them by status code.
    """
    client = get_client()
    if client is None:
        raise UpstreamServiceError("Gemini API key is not configured", retryable=False)

    config = types.GenerateContentConfig(
        system_instruction=system_prompt,
        temperature=temperature,
        max_output_tokens=max_output_tokens,
        response_mime_type="application/json" if json_mode else None,
    )
    response = await client.aio.models.generate_content(
        model=model,
        contents=user_content,
        config=config,
    )

    text = response.text or ""
    if json_mode:
        text = strip_code_fences(text)
    logger.debug("Gemini %s returned %d chars", model, len(text))
    return text
