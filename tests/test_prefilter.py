"""Tests for the rule-based prefilter stage"""
import pytest

from libs.matching.models import FreshnessTier, MatchLevel, UserPreferences
from libs.matching.prefilter import PrefilterService, calculate_freshness_tier


@pytest.fixture
def prefilter(clock):
    return PrefilterService(clock=clock)


def test_exact_level_when_enough_jobs_match(prefilter, free_user, london_jobs):
    result = prefilter.prefilter_jobs(london_jobs, free_user)
    assert result.match_level == MatchLevel.EXACT
    assert len(result.jobs) == 12
    assert result.filtered_count == 0
    assert result.source_distribution == {"adzuna": 12}


def test_full_score_for_perfect_job(prefilter, free_user, make_job):
    result = prefilter.prefilter_jobs([make_job(title="Software Engineer")], free_user)
    job = result.jobs[0]
    assert job.prefilter_score == 100
    assert job.freshness_tier == FreshnessTier.ULTRA_FRESH
    assert job.location_match and job.career_match


def test_relaxes_to_location_level(prefilter, free_user, make_job):
    tech = [make_job() for _ in range(3)]
    marketing = [make_job(title="Marketing Assistant", categories=["marketing"]) for _ in range(8)]
    paris = [make_job(city="Paris") for _ in range(5)]
    result = prefilter.prefilter_jobs(tech + marketing + paris, free_user)
    assert result.match_level == MatchLevel.LOCATION
    assert len(result.jobs) == 11
    assert result.filtered_count == 5
    assert all(p.job.city == "London" for p in result.jobs)


def test_relaxes_to_broad_level(prefilter, free_user, make_job):
    jobs = [make_job() for _ in range(3)] + [make_job(city="Paris") for _ in range(10)]
    result = prefilter.prefilter_jobs(jobs, free_user)
    assert result.match_level == MatchLevel.BROAD
    assert len(result.jobs) == 13
    # London jobs score higher and come first
    assert [p.job.city for p in result.jobs[:3]] == ["London"] * 3


def test_remote_jobs_count_as_location_match(prefilter, free_user, make_job):
    remote = make_job(city="Paris", work_environment="Remote")
    result = prefilter.prefilter_jobs([remote], free_user)
    assert result.jobs[0].location_match


def test_no_preferences_is_neutral(prefilter, make_job):
    user = UserPreferences(email="open@example.com")
    result = prefilter.prefilter_jobs([make_job(city="Madrid", categories=["sales"])], user)
    job = result.jobs[0]
    assert job.location_match and job.career_match
    assert job.prefilter_score == 20 + 15 + 7 + 15


def test_caps_at_max_jobs(free_user, london_jobs, clock):
    service = PrefilterService(min_jobs=1, max_jobs=5, clock=clock)
    result = service.prefilter_jobs(london_jobs, free_user)
    assert len(result.jobs) == 5
    assert result.filtered_count == 7


def test_empty_input(prefilter, free_user):
    result = prefilter.prefilter_jobs([], free_user)
    assert result.jobs == []
    assert result.match_level == MatchLevel.BROAD


@pytest.mark.parametrize("days,tier", [
    (0.5, FreshnessTier.ULTRA_FRESH),
    (2, FreshnessTier.FRESH),
    (5, FreshnessTier.COMFORTABLE),
    (20, FreshnessTier.STALE),
    (45, FreshnessTier.OLD),
    (None, FreshnessTier.UNKNOWN),
])
def test_freshness_tiers(make_job, now, days, tier):
    assert calculate_freshness_tier(make_job(days_old=days), now) == tier
