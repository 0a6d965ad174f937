"""AI matching stage.

Sends prefiltered jobs to the LLM provider in small batches using the
tier-specific prompt, parses the JSON reply tolerantly and returns scored
``JobMatch`` objects. Every failure (missing key, open circuit, timeout,
empty or unparseable reply) raises ``AIMatchingError`` so the engine can
fall back; an empty success is never returned for a failed call.
"""
from __future__ import annotations

import asyncio
import dataclasses
import json
import re
from typing import Any, Dict, List, Optional, Sequence

import sentry_sdk

from libs.errors import AIMatchingError, CircuitOpenError
from libs.llm.match_prompts import MatchPrompt, prompt_for
from libs.llm.provider_base import LLMProvider
from libs.matching.cache import LRUMatchCache, generate_cache_key
from libs.matching.circuit_breaker import CircuitBreaker
from libs.matching.models import AIMatchResult, Job, JobMatch, MatchMethod, MatchingOptions, ParsedMatch, UserPreferences
from libs.matching.validation import is_valid_match
from libs.observability import MetricsCollector, PerformanceMetrics, get_logger, get_metrics_collector

logger = get_logger(__name__)

MIN_AI_SCORE = 30
DEFAULT_CONFIDENCE = 85
SCORE_COMPONENTS = {"relevance": 0.4, "quality": 0.3, "opportunity": 0.2, "timing": 0.1}

_FENCE_START = re.compile(r"^```(?:json)?\s*")
_FENCE_END = re.compile(r"\s*```$")


def _first(entry: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if entry.get(key) is not None:
            return entry[key]
    return None


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clean_response(content: str) -> str:
    """Cut prose and markdown fences around the JSON object, fix known typos."""
    text = content.strip()
    start = text.find("{")
    if start > 0:
        text = text[start:]
    end = text.rfind("}")
    if 0 < end < len(text) - 1:
        text = text[:end + 1]
    text = _FENCE_END.sub("", _FENCE_START.sub("", text)).strip()
    return text.replace('"matche":', '"matches":')


def generate_score_explanation(title: str, score: float, confidence: float, components: Dict[str, float]) -> str:
    if score >= 85:
        band = "excellent"
    elif score >= 70:
        band = "strong"
    elif score >= 50:
        band = "moderate"
    else:
        band = "weak"
    strongest = max(components, key=components.get) if components else "relevance"
    return f"{title}: {band} match ({round(score)}/100, {round(confidence * 100)}% confidence), driven mostly by {strongest}"


def parse_response(content: str, jobs: Sequence[Job], index_offset: int = 0) -> List[JobMatch]:
    """Turn a raw completion into matches against ``jobs`` (0-based indices)."""
    cleaned = clean_response(content)
    try:
        parsed = json.loads(cleaned)
    except ValueError as e:
        raise AIMatchingError(f"Unparseable AI response: {e}", reason="malformed_response", cause=e) from e
    if not isinstance(parsed, dict) or not isinstance(parsed.get("matches"), list):
        raise AIMatchingError("AI response does not contain a matches array", reason="malformed_response")

    matches: List[JobMatch] = []
    for entry in parsed["matches"]:
        if not isinstance(entry, dict):
            continue
        try:
            index = int(_first(entry, "jobIndex", "job_index"))
            score = _clamp(float(_first(entry, "matchScore", "match_score", "score") or 0), 0, 100)
            raw_confidence = _first(entry, "confidenceScore", "confidence_score")
            raw_confidence = DEFAULT_CONFIDENCE if raw_confidence is None else float(raw_confidence)
        except (TypeError, ValueError):
            logger.warning("Invalid match entry in AI response", entry=entry)
            continue

        if score < MIN_AI_SCORE:
            logger.debug("Skipping low-score match from AI", job_index=index, score=score)
            continue

        confidence = _clamp(raw_confidence / 100 if raw_confidence > 1 else raw_confidence, 0, 1)
        reason = _first(entry, "matchReason", "match_reason", "reason") or "AI analyzed match"
        candidate = ParsedMatch(job_index=index, match_score=score, confidence_score=confidence,
                                match_reason=str(reason))
        if not is_valid_match(candidate, len(jobs)):
            logger.warning("Invalid jobIndex in AI response", job_index=index, available_jobs=len(jobs))
            continue

        job = jobs[index]
        components = {k: round(_clamp(score * w, 0, 100), 1) for k, w in SCORE_COMPONENTS.items()}
        breakdown = entry.get("scoreBreakdown") or entry.get("score_breakdown")
        if isinstance(breakdown, dict):
            components.update({k: v for k, v in breakdown.items() if isinstance(v, (int, float))})
        matches.append(JobMatch(
            job=job,
            job_index=index_offset + index,
            match_score=score,
            match_reason=candidate.match_reason,
            confidence_score=confidence,
            method=MatchMethod.AI,
            score_breakdown=components,
            explanation=generate_score_explanation(job.title, score, confidence, components),
        ))
    return matches


def _clone(match: JobMatch) -> JobMatch:
    return dataclasses.replace(
        match, score_breakdown=dict(match.score_breakdown), validation_issues=list(match.validation_issues)
    )


class AIMatchingService:
    def __init__(
        self,
        provider: LLMProvider,
        cache: Optional[LRUMatchCache] = None,
        breaker: Optional[CircuitBreaker] = None,
        batch_size: int = 5,
        temperature: float = 0.3,
        max_tokens: int = 2000,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.provider = provider
        self.cache = cache
        self.breaker = breaker
        self.batch_size = batch_size
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.metrics = metrics or get_metrics_collector()

    async def find_matches(
        self, user: UserPreferences, jobs: Sequence[Job], options: Optional[MatchingOptions] = None
    ) -> AIMatchResult:
        options = options or MatchingOptions.for_tier(user.subscription_tier)
        jobs = list(jobs)[:options.max_jobs_for_ai]
        result = AIMatchResult(matches=[], model=self.provider.get_model_name())
        if not jobs:
            return result

        if not self.provider.is_configured():
            raise AIMatchingError("AI provider is not configured (missing or invalid API key)",
                                  reason="missing_api_key")

        prompt_cls = prompt_for(user)
        for offset in range(0, len(jobs), self.batch_size):
            batch = jobs[offset:offset + self.batch_size]
            matches, cached, tokens = await self._process_batch(user, batch, offset, prompt_cls)
            result.matches.extend(matches)
            result.batches += 1
            result.cached_batches += int(cached)
            result.tokens_used += tokens

        result.matches.sort(key=lambda m: m.match_score, reverse=True)
        logger.info(
            "AI matching completed",
            user=user.email,
            jobs=len(jobs),
            matches=len(result.matches),
            batches=result.batches,
            cached_batches=result.cached_batches,
        )
        return result

    async def _process_batch(self, user: UserPreferences, batch: List[Job], offset: int, prompt_cls: type):
        key = generate_cache_key(user, batch)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                self.metrics.counter(PerformanceMetrics.CACHE_HIT)
                return [_clone(m) for m in cached], True, 0
            self.metrics.counter(PerformanceMetrics.CACHE_MISS)

        if self.breaker is not None and not self.breaker.allow():
            self.metrics.counter(PerformanceMetrics.CIRCUIT_OPEN)
            raise CircuitOpenError()

        try:
            response = await self._call_provider(prompt_cls.build_prompt(user, batch))
            matches = parse_response(response.content, batch, index_offset=offset)
        except AIMatchingError as e:
            self._record_failure(user, batch, e)
            raise
        except Exception as e:
            self._record_failure(user, batch, e)
            raise AIMatchingError(f"AI provider call failed: {e}", reason="provider_error", cause=e) from e
        except BaseException:
            if self.breaker is not None:
                self.breaker.release_trial()
            raise

        if self.breaker is not None:
            self.breaker.on_success()
        if self.cache is not None:
            self.cache.set(key, [_clone(m) for m in matches])
        return matches, False, response.tokens_used

    async def _call_provider(self, prompt: str):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            lambda: self.provider.complete(
                MatchPrompt.SYSTEM_PROMPT, prompt, temperature=self.temperature, max_tokens=self.max_tokens
            ),
        )

    def _record_failure(self, user: UserPreferences, batch: List[Job], error: Exception) -> None:
        if self.breaker is not None:
            self.breaker.on_failure()
        logger.error("AI provider call failed", user=user.email, jobs=len(batch), error=str(error))
        sentry_sdk.capture_exception(
            error,
            tags={"service": "AIMatchingService", "provider": self.provider.get_model_name()},
            extras={"jobs_count": len(batch), "subscription_tier": user.subscription_tier},
        )
