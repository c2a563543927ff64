"""Shrink oversized resume text before analysis.

Tiers:
1. Paragraph-aware chunks summarized in parallel by the fast model.
2. Fixed-size chunks summarized one at a time with a simpler prompt;
   a chunk that fails is replaced by a raw excerpt.
3. The original text, truncated, with a notice appended.

preprocess() never raises.
"""

import asyncio
import logging
import re
import time

from config import Settings, settings as default_settings
from services import prompt_builder
from services.backoff import with_policy
from services.pipeline.base import FastExtractor

logger = logging.getLogger(__name__)

TRUNCATION_NOTICE = (
    "\n\n[Note: The resume was truncated due to its length. "
    "Some information may be missing.]"
)

_PARAGRAPH_RE = re.compile(r"\n\n+")


def split_into_chunks(text: str, chunk_size: int) -> list[str]:
    """Greedily pack paragraphs into chunks of at most ``chunk_size`` chars.

    Paragraph order is kept. A paragraph that is longer than ``chunk_size``
    on its own is cut at fixed character offsets.
    """
    chunks: list[str] = []
    current = ""
    for paragraph in _PARAGRAPH_RE.split(text):
        if not paragraph.strip():
            continue
        if len(paragraph) > chunk_size:
            if current:
                chunks.append(current)
                current = ""
            chunks.extend(split_fixed(paragraph, chunk_size))
            continue
        if current and len(current) + 2 + len(paragraph) > chunk_size:
            chunks.append(current)
            current = paragraph
        else:
            current = f"{current}\n\n{paragraph}" if current else paragraph
    if current:
        chunks.append(current)
    return chunks


def split_fixed(text: str, size: int) -> list[str]:
    return [text[i:i + size] for i in range(0, len(text), size)]


class TextPreprocessor:
    """Stateless between calls; one instance is shared by all requests."""

    def __init__(self, fast: FastExtractor, settings: Settings | None = None) -> None:
        self.fast = fast
        self.settings = settings or default_settings

    async def preprocess(self, text: str) -> str:
        cfg = self.settings
        if len(text) <= cfg.max_text_length:
            logger.debug("Text under threshold (%d chars), skipping preprocessing", len(text))
            return text

        start = time.perf_counter()
        logger.info("Preprocessing text of length %d", len(text))
        try:
            summary = await self._summarize_semantic(text)
            logger.info(
                "Summarized in %.2fs, %d -> %d chars",
                time.perf_counter() - start, len(text), len(summary),
            )
            return summary
        except Exception as e:
            logger.warning("Chunked summarization failed (%s: %s), using fallback", type(e).__name__, e)

        try:
            summary = await self._summarize_sequential(text)
            logger.info("Fallback preprocessing completed, final size %d", len(summary))
            return summary
        except Exception:
            logger.exception("Fallback preprocessing failed, truncating original text")
            return text[:cfg.max_text_length] + TRUNCATION_NOTICE

    async def _summarize_semantic(self, text: str) -> str:
        chunks = split_into_chunks(text, self.settings.chunk_size)
        logger.info("Split text into %d chunks for summarization", len(chunks))

        async def summarize(index: int, chunk: str) -> str:
            logger.debug("Summarizing chunk %d/%d", index + 1, len(chunks))
            return await with_policy(
                lambda: self.fast.complete(prompt_builder.CHUNK_SUMMARY_PROMPT, chunk, temperature=0),
                self.settings.summarize_policy,
                label=f"chunk {index + 1} summary",
            )

        tasks = [asyncio.create_task(summarize(i, c)) for i, c in enumerate(chunks)]
        try:
            # gather() returns results in argument order, not completion order
            summaries = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return "\n\n".join(summaries)

    async def _summarize_sequential(self, text: str) -> str:
        cfg = self.settings
        chunks = split_fixed(text, cfg.fallback_chunk_size)
        logger.info("Processing %d fallback chunks sequentially", len(chunks))
        parts: list[str] = []
        for index, chunk in enumerate(chunks, start=1):
            logger.debug("Processing fallback chunk %d/%d", index, len(chunks))
            try:
                content = await with_policy(
                    lambda: self.fast.complete(prompt_builder.FALLBACK_SUMMARY_PROMPT, chunk, temperature=0),
                    cfg.fallback_summarize_policy,
                    label=f"fallback chunk {index}",
                )
            except Exception as e:
                logger.warning("Failed to process fallback chunk %d: %s", index, e)
                content = f"[Resume content section {index}]: {chunk[:cfg.fallback_excerpt_chars]}..."
            parts.append(content)
        return "\n\n".join(parts)
