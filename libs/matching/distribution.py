"""Job distribution: keep source diversity and balance across target cities.

Selection runs in three passes:
  1. round-robin over target cities, taking the least-used source each time
     while respecting per-city quotas and ``max_per_source``
  2. fill remaining slots from any city, still respecting ``max_per_source``
  3. fill whatever is left with no source cap
"""
from __future__ import annotations

import math
from collections import Counter
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from libs.matching.models import Job

T = TypeVar("T")


def _identity(item):
    return item


def _job_id(job: Job) -> str:
    return job.job_hash or f"{job.title}_{job.company}_{job.city}"


def _source(job: Job) -> str:
    return job.source or "unknown"


def distribute_jobs_with_diversity(
    items: Sequence[T],
    target_count: int,
    target_cities: Sequence[str],
    max_per_source: Optional[int] = None,
    ensure_city_balance: bool = True,
    job_of: Callable[[T], Job] = _identity,
) -> List[T]:
    """Pick up to ``target_count`` items, spreading them across sources and cities.

    ``job_of`` extracts the ``Job`` from each item so wrapped jobs (e.g.
    prefilter results) can be distributed without unwrapping.
    """
    if not items or target_count <= 0:
        return []
    if max_per_source is None:
        max_per_source = math.ceil(target_count / 3)

    cities = [c for c in target_cities if c]
    balanced = ensure_city_balance and len(cities) > 0
    per_city = target_count // len(cities) if balanced else target_count
    remainder = target_count % len(cities) if balanced else 0

    selected: List[T] = []
    selected_ids = set()
    source_counts: Counter = Counter()
    city_counts: Counter = Counter()

    def matched_city(city: str) -> Optional[str]:
        city = city.lower()
        for tc in cities:
            if tc.lower() in city:
                return tc
        return None

    def needs_more_from_city(city: str) -> bool:
        if not balanced:
            return True
        target = matched_city(city)
        if target is None:
            return True
        quota = per_city + (1 if cities.index(target) < remainder else 0)
        return city_counts[target.lower()] < quota

    def take(item: T) -> None:
        job = job_of(item)
        selected.append(item)
        selected_ids.add(_job_id(job))
        source_counts[_source(job)] += 1
        target = matched_city(job.city or "")
        if target:
            city_counts[target.lower()] += 1

    def by_source_usage(pool: List[T]) -> List[T]:
        return sorted(pool, key=lambda it: source_counts[_source(job_of(it))])

    # Pass 1: round-robin across target cities
    for _ in range(math.ceil(target_count / 2)):
        if len(selected) >= target_count:
            break
        for target_city in cities:
            if len(selected) >= target_count:
                break
            available = [
                it for it in items
                if _job_id(job_of(it)) not in selected_ids
                and target_city.lower() in (job_of(it).city or "").lower()
            ]
            for it in by_source_usage(available):
                job = job_of(it)
                if source_counts[_source(job)] < max_per_source and needs_more_from_city(job.city or "unknown"):
                    take(it)
                    break

    # Pass 2: any city, source cap still applies
    if len(selected) < target_count:
        remaining = [it for it in items if _job_id(job_of(it)) not in selected_ids]
        for it in by_source_usage(remaining):
            if len(selected) >= target_count:
                break
            if source_counts[_source(job_of(it))] < max_per_source:
                take(it)

    # Pass 3: relax the source cap
    if len(selected) < target_count:
        for it in items:
            if len(selected) >= target_count:
                break
            if _job_id(job_of(it)) not in selected_ids:
                take(it)

    return selected[:target_count]


def get_distribution_stats(jobs: Sequence[Job]) -> Dict[str, object]:
    source_distribution: Dict[str, int] = {}
    city_distribution: Dict[str, int] = {}
    for job in jobs:
        source = _source(job)
        city = job.city or "unknown"
        source_distribution[source] = source_distribution.get(source, 0) + 1
        city_distribution[city] = city_distribution.get(city, 0) + 1
    return {
        "source_distribution": source_distribution,
        "city_distribution": city_distribution,
        "total_jobs": len(jobs),
    }
