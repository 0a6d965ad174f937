"""Matching engine: Prefilter -> AIMatch -> Validate -> {Accept | Fallback} -> Result.

There are no retries. An AI error or a validation rejection routes straight
to the rule-based fallback, and any unexpected error falls through to an
emergency fallback over the raw job list so callers always get a result.
"""
from __future__ import annotations

import time
from typing import Dict, List, Optional, Sequence

from libs.errors import AIMatchingError
from libs.matching.ai_matching import AIMatchingService
from libs.matching.fallback import FallbackService
from libs.matching.models import (
    Job, JobMatch, MatchLevel, MatchMethod, MatchingOptions, MatchingResult, PrefilterResult, UserPreferences
)
from libs.matching.prefilter import PrefilterService
from libs.matching.validation import validate_ai_output
from libs.observability import MetricsCollector, PerformanceMetrics, get_logger, get_metrics_collector

logger = get_logger(__name__)


def dedupe_matches(matches: Sequence[JobMatch]) -> List[JobMatch]:
    """One match per job (by URL, else hash); the higher score wins"""
    best: Dict[str, JobMatch] = {}
    for match in matches:
        key = match.job.identity()
        current = best.get(key)
        if current is None or match.match_score > current.match_score:
            best[key] = match
    return sorted(best.values(), key=lambda m: m.match_score, reverse=True)


class SimplifiedMatchingEngine:
    def __init__(
        self,
        prefilter: PrefilterService,
        ai_service: Optional[AIMatchingService],
        fallback: FallbackService,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.prefilter = prefilter
        self.ai_service = ai_service
        self.fallback = fallback
        self.metrics = metrics or get_metrics_collector()

    async def find_matches_for_user(
        self, user: UserPreferences, jobs: Sequence[Job], options: Optional[MatchingOptions] = None
    ) -> MatchingResult:
        options = options or MatchingOptions()
        jobs = list(jobs)
        start = time.perf_counter()
        try:
            return await self._run(user, jobs, options, start)
        except Exception as e:
            logger.exception("Matching engine failed", user=user.email, total_jobs=len(jobs), error=str(e))
            self.metrics.counter(PerformanceMetrics.EMERGENCY_FALLBACK)
            matches = self.fallback.generate_fallback_matches(jobs, user, options.fallback_threshold * 2)
            return MatchingResult(
                matches=list(matches),
                method=MatchMethod.FALLBACK,
                total_jobs_processed=len(jobs),
                prefilter_results=PrefilterResult(jobs=[], match_level=MatchLevel.BROAD, filtered_count=0),
                processing_time=time.perf_counter() - start,
                metadata={"emergency_fallback": True},
            )

    async def _run(self, user: UserPreferences, jobs: List[Job], options: MatchingOptions,
                   start: float) -> MatchingResult:
        metadata: Dict[str, object] = {"tier": user.subscription_tier}

        with self.metrics.timer(PerformanceMetrics.PREFILTER_STAGE):
            prefiltered = self.prefilter.prefilter_jobs(jobs, user)

        if not prefiltered.jobs:
            logger.warning("No jobs passed prefilter", user=user.email, total_jobs=len(jobs))
            return MatchingResult(
                matches=[],
                method=MatchMethod.FALLBACK,
                total_jobs_processed=len(jobs),
                prefilter_results=prefiltered,
                processing_time=time.perf_counter() - start,
                metadata=metadata,
            )

        candidates = prefiltered.job_list()
        ai_matches: List[JobMatch] = []
        ai_error: Optional[str] = None

        if options.use_ai and self.ai_service is not None:
            ai_jobs = candidates[:options.max_jobs_for_ai]
            try:
                with self.metrics.timer(PerformanceMetrics.AI_STAGE):
                    ai_result = await self.ai_service.find_matches(user, ai_jobs, options)
                outcome = validate_ai_output(ai_result, ai_jobs, user, max_matches=options.max_matches)
                metadata.update(ai_batches=ai_result.batches, ai_cached_batches=ai_result.cached_batches,
                                ai_tokens=ai_result.tokens_used, validation_rejected=outcome.rejected)
                if outcome.accepted:
                    ai_matches = outcome.matches
                    self.metrics.counter(PerformanceMetrics.AI_SUCCESS)
                else:
                    self.metrics.counter(PerformanceMetrics.VALIDATION_REJECTED)
                    logger.warning("AI matches rejected by validation", user=user.email,
                                   received=len(ai_result.matches))
            except AIMatchingError as e:
                ai_error = e.reason
                self.metrics.counter(PerformanceMetrics.AI_FAILURE, tags={"reason": e.reason})
                logger.warning("AI matching failed, falling back to rules", user=user.email,
                               reason=e.reason, error=str(e))

        matches: List[JobMatch] = list(ai_matches)
        fallback_count = options.fallback_threshold * 2
        if len(ai_matches) < options.fallback_threshold:
            if not ai_matches:
                fallback_count = max(fallback_count, options.max_matches)
            self.metrics.counter(PerformanceMetrics.FALLBACK_USED)
            with self.metrics.timer(PerformanceMetrics.FALLBACK_STAGE):
                matches.extend(self.fallback.generate_fallback_matches(candidates, user, fallback_count))
            metadata["fallback_count"] = fallback_count

        matches = dedupe_matches(matches)
        method = MatchMethod.AI if ai_matches else MatchMethod.FALLBACK
        elapsed = time.perf_counter() - start
        logger.info(
            "Matching completed",
            user=user.email,
            method=method.value,
            matches=len(matches),
            total_jobs=len(jobs),
            match_level=prefiltered.match_level.value,
            processing_time=round(elapsed, 4),
        )
        return MatchingResult(
            matches=matches,
            method=method,
            total_jobs_processed=len(jobs),
            prefilter_results=prefiltered,
            processing_time=elapsed,
            ai_error=ai_error,
            metadata=metadata,
        )


def build_matching_engine(settings=None, provider=None, metrics: Optional[MetricsCollector] = None
                          ) -> SimplifiedMatchingEngine:
    """Construct every stage once from settings; the process keeps the result."""
    from libs.config import get_settings
    from libs.llm.mock_provider import MockLLMProvider
    from libs.llm.openai_provider import OpenAILLMProvider
    from libs.matching.cache import LRUMatchCache
    from libs.matching.circuit_breaker import CircuitBreaker

    settings = settings or get_settings()
    m = settings.matching
    if provider is None:
        if m.llm_provider == "mock":
            provider = MockLLMProvider()
        else:
            provider = OpenAILLMProvider(
                api_key=settings.openai.api_key,
                model=settings.openai.model,
                timeout=settings.openai.timeout_seconds,
            )

    ai_service = AIMatchingService(
        provider=provider,
        cache=LRUMatchCache(capacity=m.cache_capacity, ttl_seconds=m.cache_ttl_seconds),
        breaker=CircuitBreaker(failure_threshold=m.breaker_failure_threshold, cooldown_s=m.breaker_cooldown_seconds),
        batch_size=m.batch_size,
        temperature=settings.openai.temperature,
        max_tokens=settings.openai.max_tokens,
        metrics=metrics,
    )
    return SimplifiedMatchingEngine(
        prefilter=PrefilterService(min_jobs=m.prefilter_min_jobs, max_jobs=m.prefilter_max_jobs),
        ai_service=ai_service if m.use_ai else None,
        fallback=FallbackService(),
        metrics=metrics,
    )
