"""Rule-based fallback matcher.

Scores every job on five weighted signals and then picks a balanced set
across the user's target cities and career paths. Pure and deterministic
for a fixed clock: no network, no database, no randomness.
"""
from __future__ import annotations

import time
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from libs.matching.categories import category_match_score, category_matches_career_path
from libs.matching.models import FallbackMatch, Job, UserPreferences
from libs.observability import get_logger

logger = get_logger(__name__)

WEIGHTS = {
    "skills": 0.35,
    "experience": 0.25,
    "location": 0.20,
    "career_path": 0.15,
    "recency": 0.05,
}

SKILL_SYNONYMS: Dict[str, List[str]] = {
    "javascript": ["js", "es6", "es2015", "typescript", "ts", "node", "nodejs", "react", "vue", "angular"],
    "python": ["django", "flask", "pandas", "numpy", "tensorflow", "pytorch"],
    "react": ["reactjs", "nextjs", "redux", "hooks", "jsx"],
    "node": ["nodejs", "express", "npm", "javascript"],
    "aws": ["amazon web services", "ec2", "s3", "lambda", "cloudformation"],
    "docker": ["kubernetes", "k8s", "containers", "microservices"],
    "sql": ["mysql", "postgresql", "mongodb", "database", "oracle"],
    "marketing": ["growth", "seo", "content", "social media", "analytics"],
    "finance": ["accounting", "investment", "fp&a", "analysis", "banking"],
    "design": ["ui", "ux", "figma", "sketch", "photoshop", "illustrator"],
}

LEVEL_HIERARCHY: Dict[str, int] = {
    "internship": 0,
    "intern": 0,
    "entry-level": 1,
    "junior": 1,
    "graduate": 1,
    "mid-level": 2,
    "intermediate": 2,
    "senior": 3,
    "lead": 4,
    "principal": 4,
    "manager": 5,
    "director": 6,
}

EUROPEAN_CITIES = ["london", "paris", "berlin", "amsterdam", "barcelona", "madrid", "rome", "munich"]
EUROPEAN_COUNTRIES = ["europe", "germany", "france", "spain", "italy", "netherlands"]

RECENCY_TIERS = [(1, 100), (2, 95), (3, 85), (7, 70), (14, 50), (21, 35), (30, 20), (60, 10)]


def match_quality(score: float) -> str:
    if score >= 75:
        return "excellent"
    if score >= 60:
        return "good"
    if score >= 40:
        return "fair"
    return "low"


class FallbackService:
    """Deterministic rule-based matcher used when AI matching is off or fails."""

    def __init__(self, clock: Callable[[], datetime] = datetime.utcnow):
        self.clock = clock

    def generate_fallback_matches(
        self, jobs: Sequence[Job], user: UserPreferences, max_matches: int = 10
    ) -> List[FallbackMatch]:
        start = time.perf_counter()
        now = self.clock()
        scored = [self.score_job(job, user, now) for job in jobs]
        scored.sort(key=lambda m: m.match_score, reverse=True)
        matches = self._apply_balanced_distribution(scored, user, max_matches)

        logger.info(
            "Fallback matching completed",
            user=user.email,
            jobs_processed=len(jobs),
            matches_found=len(matches),
            average_score=round(sum(m.match_score for m in matches) / len(matches), 1) if matches else 0,
            processing_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return matches

    def score_job(self, job: Job, user: UserPreferences, now: Optional[datetime] = None) -> FallbackMatch:
        breakdown = {
            "skills": self.skills_score(job, user),
            "experience": self.experience_score(job, user),
            "location": self.location_score(job, user),
            "career_path": self.career_path_score(job, user),
            "recency": self.recency_score(job, now or self.clock()),
        }
        total = sum(breakdown[k] * w for k, w in WEIGHTS.items())
        final = min(100.0, max(0.0, total))
        quality = match_quality(final)
        return FallbackMatch(
            job=job,
            match_score=round(final),
            match_reason=self._match_reason(breakdown, quality, job, user),
            confidence_score=min(90, round(final + 3)) / 100,
            score_breakdown={k: round(v, 1) for k, v in breakdown.items()},
            match_quality=quality,
        )

    # -- individual signals -------------------------------------------------

    def skills_score(self, job: Job, user: UserPreferences) -> float:
        keywords = user.keyword_list()
        if not keywords:
            return 0
        job_text = f"{job.title} {job.description}".lower()
        job_words = job_text.split()

        total = 0.0
        matched = 0
        for keyword in keywords:
            score = 0
            if keyword in job_text:
                score = 100
            elif keyword in SKILL_SYNONYMS:
                if any(s in job_text for s in SKILL_SYNONYMS[keyword]):
                    score = 85
            elif any(keyword in w or (w in keyword and len(w) > 3) for w in job_words):
                score = 70
            if score:
                total += score
                matched += 1

        if matched == 0:
            return 0
        return min(100.0, total / len(keywords) + min(25, matched * 4))

    def experience_score(self, job: Job, user: UserPreferences) -> float:
        if not user.entry_level_preference or not job.experience_required:
            return 50
        user_level = LEVEL_HIERARCHY.get(user.entry_level_preference.lower(), 2)
        job_level = LEVEL_HIERARCHY.get(job.experience_required.lower(), 2)
        diff = abs(user_level - job_level)
        if diff == 0:
            return 100
        if diff == 1:
            return 80
        if diff == 2 and user_level < job_level:
            return 65
        return 25

    def location_score(self, job: Job, user: UserPreferences) -> float:
        cities = [c.lower() for c in user.target_cities]
        if not cities:
            return 50
        job_city = (job.city or "").lower()
        job_country = (job.country or "").lower()
        job_location = job.location.lower()

        if any(c == job_city or c in job_city or c in job_location for c in cities):
            return 100
        if any(c in job_country for c in cities if job_country):
            return 75

        job_is_european = any(ec in job_city for ec in EUROPEAN_CITIES) or any(
            country in job_country for country in EUROPEAN_COUNTRIES
        )
        if job_is_european and any(any(ec in c for ec in EUROPEAN_CITIES) for c in cities):
            return 50

        environment = (job.work_environment or "").lower()
        if "remote" in environment or "hybrid" in environment:
            return 35
        return 15

    def career_path_score(self, job: Job, user: UserPreferences) -> float:
        paths = user.career_path
        if not paths or not job.categories:
            return 40

        relevance = 0.0
        matched = 0
        strong = 0
        for category in job.categories:
            best = 0.0
            for path in paths:
                score = category_match_score(category, path)
                best = max(best, score)
                if score >= 80:
                    strong += 1
                if score >= 60:
                    matched += 1
            relevance += best

        average = relevance / len(job.categories)
        coverage_bonus = min(25, matched / len(paths) * 25)
        strong_bonus = min(20, strong * 5)
        return min(100.0, average + coverage_bonus + strong_bonus)

    def recency_score(self, job: Job, now: datetime) -> float:
        days = job.age_in_days(now)
        if days is None:
            days = 0
        for limit, score in RECENCY_TIERS:
            if days <= limit:
                return score
        return 5

    # -- reasons and selection ---------------------------------------------

    def _match_reason(self, breakdown: Dict[str, float], quality: str, job: Job, user: UserPreferences) -> str:
        reasons = []
        skills = breakdown["skills"]
        if skills >= 80:
            reasons.append("excellent skills alignment")
        elif skills >= 60:
            reasons.append("strong skills match")
        elif skills >= 40:
            reasons.append("relevant skills found")
        elif skills >= 20:
            reasons.append("some skill overlap")

        experience = breakdown["experience"]
        if experience >= 90:
            reasons.append("perfect experience level match")
        elif experience >= 70:
            reasons.append("suitable experience level")
        elif experience >= 50:
            reasons.append("reasonable experience fit")

        location = breakdown["location"]
        if location >= 90:
            reasons.append("ideal location match")
        elif location >= 70:
            reasons.append("good location fit")
        elif location >= 40:
            reasons.append("acceptable location")

        career = breakdown["career_path"]
        if career >= 80:
            reasons.append("excellent career path alignment")
        elif career >= 60:
            reasons.append("strong career area match")
        elif career >= 40:
            reasons.append("relevant career area")

        recency = breakdown["recency"]
        if recency >= 80:
            reasons.append("very recently posted")
        elif recency >= 60:
            reasons.append("recently posted")

        if user.work_environment and job.work_environment:
            user_env = user.work_environment.lower()
            job_env = job.work_environment.lower()
            if user_env == job_env or (user_env == "hybrid" and job_env == "remote"):
                reasons.append("work environment match")

        if not reasons:
            return f"{job.title} opportunity at {job.company} ({quality} match)"
        return ", ".join(reasons) + f" ({quality} match)"

    def _apply_balanced_distribution(
        self, scored: List[FallbackMatch], user: UserPreferences, max_matches: int
    ) -> List[FallbackMatch]:
        cities = [c.lower() for c in user.target_cities]
        paths = list(user.career_path)
        if not cities and not paths:
            return scored[:max_matches]

        per_city = max_matches // len(cities) if cities else max_matches
        per_path = max_matches // len(paths) if paths else max_matches
        city_counts = {c: 0 for c in cities}
        path_counts = {p: 0 for p in paths}
        selected: List[FallbackMatch] = []

        # Round 1: fair share per city and career path
        for match in scored:
            if len(selected) >= max_matches:
                break
            job_city = (match.job.city or "").lower()
            city_slot = next((c for c in cities if c in job_city and city_counts[c] < per_city), None)
            path_slot = next(
                (p for p in paths
                 if path_counts[p] < per_path
                 and any(category_matches_career_path(cat, p) for cat in match.job.categories)),
                None,
            )
            if (not cities or city_slot) and (not paths or path_slot):
                selected.append(match)
                if city_slot:
                    city_counts[city_slot] += 1
                if path_slot:
                    path_counts[path_slot] += 1

        # Round 2: top up with the best remaining scores
        taken = {m.job.identity() for m in selected}
        for match in scored:
            if len(selected) >= max_matches:
                break
            if match.job.identity() in taken:
                continue
            selected.append(match)
            taken.add(match.job.identity())

        logger.debug(
            "Applied balanced distribution",
            user=user.email,
            location_counts=city_counts,
            career_path_counts=path_counts,
            total_matches=len(selected),
        )
        return selected
