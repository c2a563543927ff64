"""Tests for the two-stage resume analyzer."""

import asyncio
import json

import pytest

from conftest import (
    SAMPLE_JD,
    SAMPLE_RESUME,
    FakeDeepAnalyzer,
    FakeFastExtractor,
    FakeProviderError,
    analysis_payload,
    default_deep_responder,
    default_fast_responder,
    fast_policy,
)
from config import Settings
from models.schemas.job_description import RawJobDescription
from services import prompt_builder
from services.errors import AnalysisTimeoutError, InvalidInputError, RateLimitedError
from services.preprocessor import split_into_chunks
from services.resume_analyzer import ResumeAnalyzer


def long_resume(chars: int = 20000) -> str:
    paragraphs = []
    i = 0
    while sum(len(p) + 2 for p in paragraphs) < chars:
        paragraphs.append(
            f"Project {i}: Built Python services on Kubernetes for team {i}. " + "Details. " * 60
        )
        i += 1
    return "\n\n".join(paragraphs)


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_short_resume_without_job_description(self, analyzer, fast, deep):
        result = await analyzer.analyze(SAMPLE_RESUME)
        assert result.score == 72
        assert result.job_analysis is None
        assert result.degraded is False
        # No preprocessing: one extraction call, one scoring call
        assert fast.call_count == 1
        assert deep.call_count == 1
        assert deep.calls[0]["system_prompt"] == prompt_builder.RESUME_ANALYSIS_PROMPT

    @pytest.mark.asyncio
    async def test_call_parameters_per_stage(self, analyzer, fast, deep):
        await analyzer.analyze(SAMPLE_RESUME)
        extraction_call = fast.calls_with(prompt_builder.EXTRACTION_SYSTEM_PROMPT)[0]
        assert extraction_call["temperature"] == 0
        assert extraction_call["json_mode"] is True
        assert deep.calls[0]["temperature"] == 0.1
        assert deep.calls[0]["json_mode"] is True
        assert '"technicalSkills"' in deep.calls[0]["user_content"]

    @pytest.mark.asyncio
    async def test_long_resume_with_job_description(self, analyzer, fast, deep):
        resume = long_resume(20000)
        result = await analyzer.analyze(resume, SAMPLE_JD)

        chunks = split_into_chunks(resume, analyzer.settings.chunk_size)
        assert len(chunks) > 1
        assert len(fast.calls_with(prompt_builder.CHUNK_SUMMARY_PROMPT)) == len(chunks)
        assert result.job_analysis is not None
        assert result.job_analysis.alignment_and_strengths
        user_prompt = deep.calls[0]["user_content"]
        assert deep.calls[0]["system_prompt"] == prompt_builder.JOB_ANALYSIS_PROMPT
        assert "Job Description:\n" + SAMPLE_JD in user_prompt
        assert "Summary of section starting:" in user_prompt
        assert len(user_prompt) < len(resume)

    @pytest.mark.asyncio
    async def test_structured_job_description(self, analyzer, deep):
        jd = {"roleTitle": "Backend Engineer", "companyName": "Acme", "skills": ["Python", "Terraform"]}
        result = await analyzer.analyze(SAMPLE_RESUME, jd)
        assert result.job_analysis is not None
        user_prompt = deep.calls[0]["user_content"]
        assert "Role: Backend Engineer" in user_prompt
        assert "Required Skills: Python, Terraform" in user_prompt

    @pytest.mark.asyncio
    async def test_missing_job_analysis_is_synthesized(self, fast, cache, test_settings):
        deep = FakeDeepAnalyzer(lambda s, u: json.dumps(analysis_payload(with_job=False)))
        analyzer = ResumeAnalyzer(fast=fast, deep=deep, cache=cache, settings=test_settings)
        result = await analyzer.analyze(SAMPLE_RESUME, SAMPLE_JD)
        ja = result.job_analysis
        assert ja is not None
        assert any("Terraform" in item for item in ja.gaps_and_concerns)

    @pytest.mark.asyncio
    async def test_unparseable_extraction_is_tolerated(self, deep, cache, test_settings):
        def fast_responder(system_prompt, user_content):
            if system_prompt == prompt_builder.EXTRACTION_SYSTEM_PROMPT:
                return "Sorry, here are the skills: Python"
            return default_fast_responder(system_prompt, user_content)

        fast = FakeFastExtractor(fast_responder)
        analyzer = ResumeAnalyzer(fast=fast, deep=deep, cache=cache, settings=test_settings)
        result = await analyzer.analyze(SAMPLE_RESUME)
        assert result.score == 72
        assert '"technicalSkills": []' in deep.calls[0]["user_content"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   \n\t  "])
    async def test_empty_resume_is_rejected_before_any_call(self, analyzer, fast, deep, text):
        with pytest.raises(InvalidInputError):
            await analyzer.analyze(text)
        assert fast.call_count == 0
        assert deep.call_count == 0

    @pytest.mark.asyncio
    async def test_blank_job_description_counts_as_none(self, analyzer, deep):
        result = await analyzer.analyze(SAMPLE_RESUME, "   ")
        assert result.job_analysis is None
        assert deep.calls[0]["system_prompt"] == prompt_builder.RESUME_ANALYSIS_PROMPT


class TestJobDescriptionInput:
    @pytest.mark.asyncio
    async def test_comma_separated_skills_are_accepted(self, analyzer, deep):
        result = await analyzer.analyze(SAMPLE_RESUME, {"roleTitle": "Dev", "skills": "Python, Go"})
        assert result.job_analysis is not None
        assert "Required Skills: Python, Go" in deep.calls[0]["user_content"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("job", [
        {"roleTitle": {"name": "Dev"}},
        {"kind": "structured", "skills": [{"name": "Python"}], "industry": ["IT", "Finance"]},
        42,
    ])
    async def test_malformed_job_description_is_invalid_input(self, analyzer, fast, deep, job):
        with pytest.raises(InvalidInputError):
            await analyzer.analyze(SAMPLE_RESUME, job)
        assert fast.call_count == 0
        assert deep.call_count == 0

    @pytest.mark.asyncio
    async def test_pasted_posting_is_parsed_when_enabled(self, deep, cache, test_settings):
        parsed = {"roleTitle": "Senior Python Developer", "skills": ["Python", "Terraform"], "requirements": ["5+ years"]}

        def fast_responder(system_prompt, user_content):
            if system_prompt == prompt_builder.JOB_DESCRIPTION_PROMPT:
                return json.dumps(parsed)
            return default_fast_responder(system_prompt, user_content)

        fast = FakeFastExtractor(fast_responder)
        settings = test_settings.model_copy(update={"parse_job_descriptions": True})
        analyzer = ResumeAnalyzer(fast=fast, deep=deep, cache=cache, settings=settings)
        result = await analyzer.analyze(SAMPLE_RESUME, "<p>Senior Python Developer</p>\n\n<ul><li>Terraform</li></ul>")

        parse_call = fast.calls_with(prompt_builder.JOB_DESCRIPTION_PROMPT)[0]
        assert parse_call["user_content"] == "Senior Python Developer Terraform"
        user_prompt = deep.calls[0]["user_content"]
        assert "Role: Senior Python Developer" in user_prompt
        assert "Job Description:" not in user_prompt
        assert result.job_analysis is not None

    @pytest.mark.asyncio
    async def test_failed_parse_falls_back_to_raw_text(self, fast, deep, cache, test_settings):
        settings = test_settings.model_copy(update={"parse_job_descriptions": True})
        analyzer = ResumeAnalyzer(fast=fast, deep=deep, cache=cache, settings=settings)
        result = await analyzer.analyze(SAMPLE_RESUME, SAMPLE_JD)
        # The default fast responder answers the parse request with plain text
        assert len(fast.calls_with(prompt_builder.JOB_DESCRIPTION_PROMPT)) == 1
        assert "Job Description:\n" + SAMPLE_JD in deep.calls[0]["user_content"]
        assert result.degraded is False

    @pytest.mark.asyncio
    async def test_parsing_is_off_by_default(self, analyzer, fast):
        await analyzer.analyze(SAMPLE_RESUME, SAMPLE_JD)
        assert fast.calls_with(prompt_builder.JOB_DESCRIPTION_PROMPT) == []


class TestCaching:
    @pytest.mark.asyncio
    async def test_repeat_request_is_served_from_cache(self, analyzer, fast, deep, cache):
        first = await analyzer.analyze(SAMPLE_RESUME, SAMPLE_JD)
        fast_calls, deep_calls = fast.call_count, deep.call_count
        second = await analyzer.analyze(SAMPLE_RESUME, SAMPLE_JD)
        assert second is first
        assert fast.call_count == fast_calls
        assert deep.call_count == deep_calls
        assert cache.hits == 1

    @pytest.mark.asyncio
    async def test_job_description_gets_its_own_entry(self, analyzer, deep, cache):
        without = await analyzer.analyze(SAMPLE_RESUME)
        with_job = await analyzer.analyze(SAMPLE_RESUME, SAMPLE_JD)
        assert deep.call_count == 2
        assert len(cache) == 2
        assert without.job_analysis is None
        assert with_job.job_analysis is not None

    @pytest.mark.asyncio
    async def test_raw_string_and_tagged_raw_share_an_entry(self, analyzer, deep):
        await analyzer.analyze(SAMPLE_RESUME, SAMPLE_JD)
        await analyzer.analyze(SAMPLE_RESUME, RawJobDescription(text=SAMPLE_JD))
        await analyzer.analyze(SAMPLE_RESUME, {"kind": "raw", "text": SAMPLE_JD})
        assert deep.call_count == 1


class TestFailures:
    @pytest.mark.asyncio
    async def test_rate_limit_on_scoring_propagates(self, fast, cache, test_settings):
        deep = FakeDeepAnalyzer(lambda s, u: FakeProviderError(429, "RESOURCE_EXHAUSTED"))
        analyzer = ResumeAnalyzer(fast=fast, deep=deep, cache=cache, settings=test_settings)
        with pytest.raises(RateLimitedError):
            await analyzer.analyze(SAMPLE_RESUME, SAMPLE_JD)
        assert deep.call_count == 1
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_rate_limit_on_extraction_propagates(self, deep, cache, test_settings):
        def fast_responder(system_prompt, user_content):
            return FakeProviderError(429, "quota")

        fast = FakeFastExtractor(fast_responder)
        analyzer = ResumeAnalyzer(fast=fast, deep=deep, cache=cache, settings=test_settings)
        with pytest.raises(RateLimitedError):
            await analyzer.analyze(SAMPLE_RESUME)
        assert fast.call_count == 1
        assert deep.call_count == 0

    @pytest.mark.asyncio
    async def test_server_errors_degrade_to_fallback(self, fast, cache, test_settings):
        deep = FakeDeepAnalyzer(lambda s, u: FakeProviderError(503, "unavailable"))
        analyzer = ResumeAnalyzer(fast=fast, deep=deep, cache=cache, settings=test_settings)
        result = await analyzer.analyze(SAMPLE_RESUME, SAMPLE_JD)
        assert result.degraded is True
        assert result.score == 50
        assert result.job_analysis is not None
        assert result.job_analysis.overall_fit
        # analysis policy allows one retry
        assert deep.call_count == 2
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_degraded_result_is_not_reused(self, fast, cache, test_settings):
        answers = iter([FakeProviderError(500), FakeProviderError(500)])

        def deep_responder(system_prompt, user_content):
            return next(answers, None) or default_deep_responder(system_prompt, user_content)

        deep = FakeDeepAnalyzer(deep_responder)
        analyzer = ResumeAnalyzer(fast=fast, deep=deep, cache=cache, settings=test_settings)
        first = await analyzer.analyze(SAMPLE_RESUME)
        second = await analyzer.analyze(SAMPLE_RESUME)
        assert first.degraded is True
        assert second.degraded is False
        assert second.score == 72

    @pytest.mark.asyncio
    async def test_garbage_scoring_output_gives_fallback(self, fast, cache, test_settings):
        deep = FakeDeepAnalyzer(lambda s, u: "not json at all")
        analyzer = ResumeAnalyzer(fast=fast, deep=deep, cache=cache, settings=test_settings)
        result = await analyzer.analyze(SAMPLE_RESUME)
        assert result.score == 50
        assert result.job_analysis is None

    @pytest.mark.asyncio
    async def test_slow_scoring_call_times_out(self, fast, cache):
        async def hang(system_prompt, user_content):
            await asyncio.sleep(5)
            return "{}"

        settings = Settings(analysis_policy=fast_policy(max_retries=1, timeout=0.05), extraction_policy=fast_policy())
        deep = FakeDeepAnalyzer(hang)
        analyzer = ResumeAnalyzer(fast=fast, deep=deep, cache=cache, settings=settings)
        with pytest.raises(AnalysisTimeoutError):
            await analyzer.analyze(SAMPLE_RESUME)
        assert deep.call_count == 1
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_overall_scoring_budget_is_enforced(self, fast, cache):
        async def hang(system_prompt, user_content):
            await asyncio.sleep(5)
            return "{}"

        settings = Settings(
            analysis_policy=fast_policy(timeout=10),
            extraction_policy=fast_policy(),
            analysis_timeout_seconds=0.05,
        )
        analyzer = ResumeAnalyzer(fast=fast, deep=FakeDeepAnalyzer(hang), cache=cache, settings=settings)
        with pytest.raises(AnalysisTimeoutError):
            await analyzer.analyze(SAMPLE_RESUME)


class TestAnalyzeAndStore:
    @pytest.mark.asyncio
    async def test_result_is_persisted(self, analyzer, store):
        stored = await analyzer.analyze_and_store(SAMPLE_RESUME, SAMPLE_JD, user_id="user-1")
        assert stored.id == 1
        assert stored.user_id == "user-1"
        assert stored.content == SAMPLE_RESUME
        assert stored.score == 72
        assert stored.job_description == RawJobDescription(text=SAMPLE_JD)
        assert stored.analysis.job_analysis is not None
        assert await store.get(1) == stored

    @pytest.mark.asyncio
    async def test_without_store_raises(self, fast, deep, cache, test_settings):
        analyzer = ResumeAnalyzer(fast=fast, deep=deep, cache=cache, settings=test_settings)
        with pytest.raises(RuntimeError):
            await analyzer.analyze_and_store(SAMPLE_RESUME)

    @pytest.mark.asyncio
    async def test_invalid_input_is_not_stored(self, analyzer, store):
        with pytest.raises(InvalidInputError):
            await analyzer.analyze_and_store("", user_id="user-1")
        assert await store.list_for_user("user-1") == []
