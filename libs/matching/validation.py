"""Validation of AI match output before it is trusted.

Three layers run in order:
  1. structural: index, score, confidence and reason are well formed and the
     job really is one we sent
  2. hard filters: location, role and career path must agree with the user's
     preferences, otherwise the match is dropped
  3. quality: hallucinated skills, thin reasoning and over-confident scores
     reduce score/confidence; survivors need score >= 50 and confidence >= 0.4
"""
from __future__ import annotations

import re
from typing import Dict, List, Sequence, Tuple, Union

from libs.matching.categories import job_in_career_paths
from libs.matching.models import AIMatchResult, Job, JobMatch, ParsedMatch, UserPreferences, ValidationOutcome
from libs.observability import get_logger

logger = get_logger(__name__)

MIN_SCORE = 50
MIN_CONFIDENCE = 0.4
EVIDENCE_WORDS = 20

SKILL_DOMAINS: Dict[str, List[str]] = {
    "react": ["frontend", "javascript", "web", "ui", "user interface", "component"],
    "python": ["data", "backend", "ml", "ai", "automation", "scripting"],
    "javascript": ["web", "frontend", "backend", "fullstack", "node"],
    "leadership": ["team", "manage", "lead", "coordinate", "mentor", "guide"],
    "communication": ["team", "collaborate", "present", "stakeholder"],
    "mentorship": ["team", "junior", "train", "develop", "grow", "support"],
}

GROWTH_TERMS = [
    "learn", "grow", "develop", "mentor", "train", "support", "team", "collaborate", "opportunity",
    "career", "professional", "future", "path", "journey", "aspirations",
    "dynamic", "innovative", "growing", "scale", "startup", "tech-forward",
]
GENERIC_PHRASES = ["good fit", "great match", "perfect", "excellent", "ideal"]


def is_valid_match(match: ParsedMatch, batch_size: int) -> bool:
    """Shape check for one parsed entry against the batch it came from"""
    return (
        isinstance(match.job_index, int)
        and 0 <= match.job_index < batch_size
        and 0 <= match.match_score <= 100
        and 0 <= match.confidence_score <= 1
        and bool(match.match_reason and match.match_reason.strip())
    )


def _structural_issues(match: JobMatch, known_hashes: set) -> List[str]:
    issues = []
    if match.job_hash not in known_hashes:
        issues.append("job_not_found")
    if not 0 <= match.match_score <= 100:
        issues.append("score_out_of_range")
    if not 0 <= match.confidence_score <= 1:
        issues.append("confidence_out_of_range")
    if not (match.match_reason or "").strip():
        issues.append("empty_reason")
    return issues


def _city_pattern(city: str) -> "re.Pattern[str]":
    return re.compile(rf"\b{re.escape(city)}\b", re.IGNORECASE)


def location_matches(job: Job, user: UserPreferences) -> bool:
    if not user.target_cities:
        return True
    job_city = (job.city or "").lower()
    job_location = job.location.lower()
    for city in user.target_cities:
        city = city.lower()
        if job_city and job_city == city:
            return True
        if not job_city and _city_pattern(city).search(job_location):
            return True
        if "remote" in job_location or "hybrid" in job_location:
            return True
    return False


def role_matches(job: Job, user: UserPreferences) -> bool:
    if not user.roles_selected:
        return True
    title = job.title.lower()
    description = job.description.lower()
    return any(r.lower() in title or r.lower() in description for r in user.roles_selected if r)


def career_path_matches(job: Job, user: UserPreferences) -> bool:
    if not user.career_path:
        return True
    title = job.title.lower()
    description = job.description.lower()
    for path in user.career_path:
        p = path.lower()
        if p in title or p in description:
            return True
        for category in job.categories:
            c = category.lower()
            if c and (c in p or p in c):
                return True
    return job_in_career_paths(job.categories, job.title, user.career_path)


def validate_ai_matches(matches: Sequence[JobMatch], jobs: Sequence[Job], user: UserPreferences) -> List[JobMatch]:
    """Hard filters: drop matches whose job contradicts location, role or career path"""
    by_hash = {j.job_hash: j for j in jobs}
    kept = []
    for match in matches:
        job = by_hash.get(match.job_hash)
        if job is None:
            logger.warning("Job not found for hash", job_hash=match.job_hash)
            continue
        if not location_matches(job, user):
            logger.warning("Location mismatch", job=job.title, location=job.location, cities=user.target_cities)
            continue
        if not role_matches(job, user):
            logger.warning("Role mismatch", job=job.title, roles=user.roles_selected)
            continue
        if not career_path_matches(job, user):
            logger.warning("Career path mismatch", job=job.title, career_paths=user.career_path)
            continue

        words = len(match.match_reason.split())
        if words < EVIDENCE_WORDS:
            logger.debug(
                "Short match reason detected",
                user=user.email,
                job_hash=match.job_hash,
                reason_words=words,
                threshold=EVIDENCE_WORDS,
            )
        kept.append(match)
    return kept


def _skill_domain_related(skill: str, job_text: str) -> bool:
    for key, related in SKILL_DOMAINS.items():
        if key in skill:
            return any(term in job_text for term in related)
    return False


def check_hallucinations(match: JobMatch, job: Job, user: UserPreferences) -> List[str]:
    issues = []
    reason = match.match_reason.lower()
    job_text = f"{job.title} {job.description}".lower()
    for skill in user.skills:
        s = skill.lower()
        if s in reason and s not in job_text and not _skill_domain_related(s, job_text):
            issues.append(f"hallucinated_unrelated_skill_{skill}")
    if "remote work" in reason and "office required" in job_text:
        issues.append("contradictory_work_environment")
    return issues


def reasoning_quality(match: JobMatch) -> Tuple[float, List[str]]:
    issues = []
    quality = 1.0
    reason = match.match_reason.lower()
    words = reason.split()

    if match.match_score >= 85:
        expected = 40
    elif match.match_score >= 75:
        expected = 30
    elif match.match_score >= 65:
        expected = 20
    else:
        expected = 15
    if len(words) < expected:
        issues.append("insufficient_evidence_length")
        quality *= 0.8

    if sum(1 for term in GROWTH_TERMS if term in reason) < 2:
        issues.append("lack_of_growth_indicators")
        quality *= 0.85

    if match.match_score >= 90 and any(p in reason for p in GENERIC_PHRASES):
        issues.append("generic_language_high_score")
        quality *= 0.9

    return quality, issues


def _adjust(match: JobMatch, job: Job, user: UserPreferences) -> JobMatch:
    issues = list(match.validation_issues)
    score = match.match_score
    confidence = 0.7 if match.confidence_score is None else match.confidence_score

    hallucinations = check_hallucinations(match, job, user)
    if hallucinations:
        issues.extend(hallucinations)
        confidence = max(0.3, confidence - 0.4)
        score = max(50, score - 20)
        logger.error("Hallucinations detected in AI match", job=job.title, issues=hallucinations)

    quality, quality_issues = reasoning_quality(match)
    if quality < 1.0:
        issues.extend(quality_issues)
        confidence *= quality
        score = round(score * quality)

    if score >= 85 and confidence < 0.7:
        issues.append("score_confidence_mismatch")
        score = max(75, score - 10)

    cities = [c.lower() for c in user.target_cities]
    if cities and not job.is_remote_or_hybrid():
        job_city = (job.city or job.location).lower()
        if not any(c in job_city for c in cities):
            issues.append("CRITICAL_location_filter_failure")
            score = 0
            confidence = 0.0
            logger.error("Location filter failed", job=job.title, city=job.city)

    match.match_score = max(0, min(100, score))
    match.confidence_score = max(0.0, min(1.0, confidence))
    match.validation_issues = issues
    return match


def validate_ai_output(
    ai_result: Union[AIMatchResult, Sequence[JobMatch]],
    jobs: Sequence[Job],
    user: UserPreferences,
    max_matches: int = 5,
) -> ValidationOutcome:
    """Run every validation layer and decide whether the AI result is usable."""
    matches = list(ai_result.matches if isinstance(ai_result, AIMatchResult) else ai_result)
    known = {j.job_hash for j in jobs}
    by_hash = {j.job_hash: j for j in jobs}
    issues: List[str] = []

    structurally_ok = []
    for m in matches:
        problems = _structural_issues(m, known)
        if problems:
            issues.extend(f"{m.job_hash[:12]}:{p}" for p in problems)
            continue
        structurally_ok.append(m)

    filtered = validate_ai_matches(structurally_ok, jobs, user)
    adjusted = [_adjust(m, by_hash[m.job_hash], user) for m in filtered]
    for m in adjusted:
        issues.extend(f"{m.job_hash[:12]}:{i}" for i in m.validation_issues)

    survivors = [m for m in adjusted if m.match_score >= MIN_SCORE and m.confidence_score >= MIN_CONFIDENCE]
    survivors.sort(key=lambda m: m.match_score * m.confidence_score, reverse=True)
    survivors = survivors[:max_matches]

    outcome = ValidationOutcome(
        matches=survivors,
        accepted=bool(survivors),
        rejected=len(matches) - len(survivors),
        issues=issues,
    )
    logger.info(
        "AI output validated",
        user=user.email,
        received=len(matches),
        accepted=len(survivors),
        rejected=outcome.rejected,
    )
    return outcome
