"""Cheap rule-based prefilter run before any AI call.

Each job gets a 0-100 basic score:
  location 40 | career path 30 | role keywords 15 | freshness 15

The candidate set is then relaxed progressively until at least ``min_jobs``
survive: exact (location and career) -> location only -> broad (everything).
"""
from __future__ import annotations

import time
from collections import Counter
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from libs.matching.categories import GENERAL_PATH, job_in_career_paths
from libs.matching.distribution import distribute_jobs_with_diversity
from libs.matching.models import (
    FreshnessTier, Job, MatchLevel, PrefilteredJob, PrefilterResult, UserPreferences
)
from libs.observability import get_logger

logger = get_logger(__name__)

FRESHNESS_POINTS = {
    FreshnessTier.ULTRA_FRESH: 15,
    FreshnessTier.FRESH: 12,
    FreshnessTier.COMFORTABLE: 8,
    FreshnessTier.STALE: 4,
    FreshnessTier.OLD: 1,
    FreshnessTier.UNKNOWN: 5,
}


def calculate_freshness_tier(job: Job, now: Optional[datetime] = None) -> FreshnessTier:
    days = job.age_in_days(now)
    if days is None:
        return FreshnessTier.UNKNOWN
    if days <= 1:
        return FreshnessTier.ULTRA_FRESH
    if days <= 3:
        return FreshnessTier.FRESH
    if days <= 7:
        return FreshnessTier.COMFORTABLE
    if days <= 30:
        return FreshnessTier.STALE
    return FreshnessTier.OLD


class PrefilterService:
    def __init__(self, min_jobs: int = 10, max_jobs: int = 100,
                 clock: Callable[[], datetime] = datetime.utcnow):
        self.min_jobs = min_jobs
        self.max_jobs = max_jobs
        self.clock = clock

    def prefilter_jobs(self, jobs: Sequence[Job], user: UserPreferences) -> PrefilterResult:
        start = time.perf_counter()
        now = self.clock()
        scored = [self._score(job, user, now) for job in jobs]

        exact = [p for p in scored if p.location_match and p.career_match]
        level = MatchLevel.EXACT
        kept = exact
        if len(kept) < self.min_jobs:
            level = MatchLevel.LOCATION
            kept = [p for p in scored if p.location_match]
        if len(kept) < self.min_jobs:
            level = MatchLevel.BROAD
            kept = scored

        kept = sorted(kept, key=lambda p: p.prefilter_score, reverse=True)
        if len(kept) > self.max_jobs:
            kept = distribute_jobs_with_diversity(
                kept, self.max_jobs, user.target_cities, job_of=lambda p: p.job
            )
            kept.sort(key=lambda p: p.prefilter_score, reverse=True)

        sources = Counter(p.job.source or "unknown" for p in kept)
        logger.info(
            "Prefilter completed",
            user=user.email,
            jobs_in=len(jobs),
            jobs_out=len(kept),
            match_level=level.value,
            processing_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return PrefilterResult(
            jobs=kept,
            match_level=level,
            filtered_count=len(jobs) - len(kept),
            source_distribution=dict(sources),
        )

    def _score(self, job: Job, user: UserPreferences, now: datetime) -> PrefilteredJob:
        location_points, location_match = self._location(job, user)
        career_points, career_match = self._career(job, user)
        tier = calculate_freshness_tier(job, now)
        score = location_points + career_points + self._roles(job, user) + FRESHNESS_POINTS[tier]
        return PrefilteredJob(
            job=job,
            prefilter_score=float(min(100, score)),
            freshness_tier=tier,
            location_match=location_match,
            career_match=career_match,
        )

    @staticmethod
    def _location(job: Job, user: UserPreferences):
        if not user.target_cities:
            return 20, True
        city = (job.city or "").lower()
        location = job.location.lower()
        for target in user.target_cities:
            t = target.lower()
            if (city and (t == city or t in city)) or t in location:
                return 40, True
        if job.is_remote_or_hybrid():
            return 30, True
        return 0, False

    @staticmethod
    def _career(job: Job, user: UserPreferences):
        paths = user.career_path
        if not paths or paths == [GENERAL_PATH]:
            return 15, True
        if job_in_career_paths(job.categories, f"{job.title} {' '.join(job.categories)}", paths):
            return 30, True
        return 0, False

    @staticmethod
    def _roles(job: Job, user: UserPreferences) -> int:
        if not user.roles_selected:
            return 7
        title = job.title.lower()
        best = 0
        for role in user.roles_selected:
            role = role.lower().strip()
            if role and role in title:
                return 15
            words = [w for w in role.split() if len(w) > 3]
            if words and any(w in title for w in words):
                best = 8
        return best
