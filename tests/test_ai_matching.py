"""Tests for the AI matching stage: response parsing, batching, cache and breaker"""
import asyncio
import json
import time
from unittest.mock import patch

import pytest

from libs.errors import AIMatchingError, CircuitOpenError
from libs.llm.mock_provider import MockLLMProvider
from libs.llm.openai_provider import OpenAILLMProvider
from libs.matching.ai_matching import AIMatchingService, clean_response, parse_response
from libs.matching.cache import LRUMatchCache
from libs.matching.circuit_breaker import CLOSED, HALF_OPEN, OPEN, CircuitBreaker
from libs.matching.models import MatchingOptions, MatchMethod
from libs.observability import MetricsCollector, PerformanceMetrics


def payload(*entries):
    return json.dumps({"matches": list(entries)})


# ---------------- parsing ----------------

def test_clean_response_strips_prose_and_fences():
    raw = 'Sure! Here are the matches:\n```json\n{"matche": []}\n```\nHope this helps.'
    assert clean_response(raw) == '{"matches": []}'


def test_parse_response_camel_case(make_job):
    jobs = [make_job(), make_job()]
    content = payload({"jobIndex": 0, "matchScore": 82, "confidenceScore": 90, "matchReason": "Strong fit"})
    matches = parse_response(content, jobs)
    assert len(matches) == 1
    match = matches[0]
    assert match.job is jobs[0]
    assert match.job_index == 0
    assert match.match_score == 82
    assert match.confidence_score == pytest.approx(0.9)
    assert match.method == MatchMethod.AI
    assert match.score_breakdown["relevance"] == pytest.approx(32.8)
    assert "strong match" in match.explanation


def test_parse_response_snake_case_and_offset(make_job):
    jobs = [make_job(), make_job()]
    content = payload({"job_index": 1, "match_score": 75, "confidence_score": 0.7, "match_reason": "ok"})
    match = parse_response(content, jobs, index_offset=5)[0]
    assert match.job is jobs[1]
    assert match.job_index == 6
    assert match.confidence_score == pytest.approx(0.7)


def test_parse_response_skips_bad_entries(make_job):
    jobs = [make_job(), make_job()]
    content = payload(
        {"jobIndex": 0, "matchScore": 20, "matchReason": "weak"},
        {"jobIndex": 7, "matchScore": 80, "matchReason": "out of range"},
        {"jobIndex": "x", "matchScore": 80},
        "garbage",
        {"jobIndex": 1, "matchScore": 80, "matchReason": "kept"},
    )
    matches = parse_response(content, jobs)
    assert [m.match_reason for m in matches] == ["kept"]
    assert matches[0].confidence_score == pytest.approx(0.85)


def test_parse_response_merges_score_breakdown(make_job):
    jobs = [make_job()]
    content = payload({"jobIndex": 0, "matchScore": 90, "matchReason": "fit",
                       "scoreBreakdown": {"skills": 95, "location": 88, "note": "n/a"}})
    breakdown = parse_response(content, jobs)[0].score_breakdown
    assert breakdown["skills"] == 95
    assert breakdown["location"] == 88
    assert "note" not in breakdown
    assert breakdown["timing"] == pytest.approx(9.0)


@pytest.mark.parametrize("content", ["not json at all", '{"result": []}', "[1, 2]"])
def test_parse_response_malformed(make_job, content):
    with pytest.raises(AIMatchingError) as exc:
        parse_response(content, [make_job()])
    assert exc.value.reason == "malformed_response"


# ---------------- service ----------------

@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.mark.asyncio
async def test_find_matches_with_generated_responses(free_user, make_job, metrics):
    provider = MockLLMProvider()
    service = AIMatchingService(provider, metrics=metrics)
    jobs = [make_job() for _ in range(3)]
    result = await service.find_matches(free_user, jobs)
    assert [m.match_score for m in result.matches] == [88, 85, 82]
    assert result.batches == 1
    assert result.model == "mock-matcher"
    assert len(provider.calls) == 1
    assert "0: Software Engineer | Company 1 | London" in provider.calls[0]["user"]


@pytest.mark.asyncio
async def test_find_matches_batches_and_offsets(free_user, make_job, metrics):
    provider = MockLLMProvider()
    service = AIMatchingService(provider, batch_size=5, metrics=metrics)
    jobs = [make_job() for _ in range(7)]
    result = await service.find_matches(free_user, jobs, MatchingOptions(max_jobs_for_ai=10))
    assert result.batches == 2
    assert len(provider.calls) == 2
    assert sorted(m.job_index for m in result.matches) == list(range(7))
    by_index = {m.job_index: m for m in result.matches}
    assert by_index[5].job is jobs[5]


@pytest.mark.asyncio
async def test_find_matches_truncates_to_max_jobs_for_ai(free_user, make_job, metrics):
    provider = MockLLMProvider()
    service = AIMatchingService(provider, metrics=metrics)
    jobs = [make_job() for _ in range(12)]
    result = await service.find_matches(free_user, jobs, MatchingOptions(max_jobs_for_ai=4))
    assert len(result.matches) == 4


@pytest.mark.asyncio
async def test_cache_hit_skips_provider(free_user, make_job, metrics):
    provider = MockLLMProvider()
    service = AIMatchingService(provider, cache=LRUMatchCache(), metrics=metrics)
    jobs = [make_job() for _ in range(2)]
    first = await service.find_matches(free_user, jobs)
    second = await service.find_matches(free_user, jobs)
    assert len(provider.calls) == 1
    assert second.cached_batches == 1
    assert [m.match_score for m in second.matches] == [m.match_score for m in first.matches]
    assert second.matches[0] is not first.matches[0]
    assert metrics.total(PerformanceMetrics.CACHE_HIT) == 1
    assert metrics.total(PerformanceMetrics.CACHE_MISS) == 1


@pytest.mark.asyncio
async def test_empty_jobs_returns_empty_result(free_user, metrics):
    provider = MockLLMProvider()
    result = await AIMatchingService(provider, metrics=metrics).find_matches(free_user, [])
    assert result.matches == []
    assert provider.calls == []


@pytest.mark.asyncio
async def test_missing_api_key_raises(free_user, make_job, metrics):
    service = AIMatchingService(OpenAILLMProvider(api_key="not-a-key"), metrics=metrics)
    with pytest.raises(AIMatchingError) as exc:
        await service.find_matches(free_user, [make_job()])
    assert exc.value.reason == "missing_api_key"


@pytest.mark.asyncio
async def test_provider_error_trips_breaker_and_reports(free_user, make_job, metrics):
    provider = MockLLMProvider(responses=[AIMatchingError("slow", reason="timeout")])
    breaker = CircuitBreaker(failure_threshold=1, cooldown_s=60)
    service = AIMatchingService(provider, breaker=breaker, metrics=metrics)
    with patch("libs.matching.ai_matching.sentry_sdk") as sentry:
        with pytest.raises(AIMatchingError) as exc:
            await service.find_matches(free_user, [make_job()])
    assert exc.value.reason == "timeout"
    assert breaker.state == OPEN
    sentry.capture_exception.assert_called_once()

    with pytest.raises(CircuitOpenError) as exc:
        await service.find_matches(free_user, [make_job()])
    assert exc.value.reason == "circuit_open"
    assert len(provider.calls) == 1
    assert metrics.total(PerformanceMetrics.CIRCUIT_OPEN) == 1


@pytest.mark.asyncio
async def test_unexpected_exception_is_wrapped(free_user, make_job, metrics):
    service = AIMatchingService(MockLLMProvider(responses=[RuntimeError("boom")]), metrics=metrics)
    with pytest.raises(AIMatchingError) as exc:
        await service.find_matches(free_user, [make_job()])
    assert exc.value.reason == "provider_error"
    assert isinstance(exc.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_malformed_response_counts_as_failure(free_user, make_job, metrics):
    breaker = CircuitBreaker(failure_threshold=5)
    service = AIMatchingService(MockLLMProvider(responses=["I cannot help with that"]), breaker=breaker,
                                metrics=metrics)
    with pytest.raises(AIMatchingError) as exc:
        await service.find_matches(free_user, [make_job()])
    assert exc.value.reason == "malformed_response"
    assert breaker.failures == 1


@pytest.mark.asyncio
async def test_premium_users_get_premium_prompt(premium_user, make_job, metrics):
    provider = MockLLMProvider()
    service = AIMatchingService(provider, metrics=metrics)
    await service.find_matches(premium_user, [make_job(city="Berlin", categories=["data"])])
    prompt = provider.calls[0]["user"]
    assert "OPPORTUNITIES:" in prompt
    assert "Industry: data" in prompt


class SlowProvider(MockLLMProvider):
    def complete(self, *args, **kwargs):
        time.sleep(0.3)
        return super().complete(*args, **kwargs)


@pytest.mark.asyncio
async def test_cancelled_half_open_trial_does_not_lock_breaker(free_user, make_job, metrics):
    now = [0.0]
    breaker = CircuitBreaker(failure_threshold=1, cooldown_s=30, clock=lambda: now[0])
    breaker.on_failure()
    now[0] = 31
    service = AIMatchingService(SlowProvider(), breaker=breaker, metrics=metrics)
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(service.find_matches(free_user, [make_job()]), 0.05)
    assert breaker.state == HALF_OPEN

    service.provider = MockLLMProvider()
    result = await service.find_matches(free_user, [make_job()])
    assert len(result.matches) == 1
    assert breaker.state == CLOSED


def test_parse_response_keeps_explicit_zero_confidence(make_job):
    content = payload({"jobIndex": 0, "matchScore": 80, "confidenceScore": 0, "matchReason": "unsure"})
    assert parse_response(content, [make_job()])[0].confidence_score == 0.0
