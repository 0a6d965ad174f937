"""Data types flowing through the matching pipeline.

Inputs (``UserPreferences``, ``Job``) are pydantic models because they are
built from database rows, config files and HTTP bodies; everything produced
by the pipeline is a plain dataclass.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from libs.db.models import generate_job_hash

PREMIUM_TIERS = ("premium", "premium_pending")


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [str(v) for v in value if v is not None and str(v).strip()]


def utc_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """Normalise a datetime to naive UTC so ages can be compared safely"""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


class UserPreferences(BaseModel):
    """A job seeker's matching preferences plus the account fields matching needs"""
    model_config = ConfigDict(extra="ignore")

    email: str
    full_name: Optional[str] = None
    subscription_tier: str = "free"

    target_cities: List[str] = []
    career_path: List[str] = []
    roles_selected: List[str] = []
    entry_level_preference: Optional[str] = None
    work_environment: Optional[str] = None
    visa_status: Optional[str] = None
    career_keywords: Optional[str] = None

    skills: List[str] = []
    industries: List[str] = []
    company_size_preference: Optional[str] = None
    professional_expertise: Optional[str] = None

    @field_validator("target_cities", "career_path", "roles_selected", "skills", "industries", mode="before")
    @classmethod
    def _coerce_list(cls, v):
        return _as_list(v)

    @field_validator("career_keywords", mode="before")
    @classmethod
    def _join_keywords(cls, v):
        if isinstance(v, (list, tuple)):
            return ", ".join(str(k) for k in v)
        return v

    @field_validator("subscription_tier", mode="before")
    @classmethod
    def _tier(cls, v):
        return (v or "free").strip().lower()

    @property
    def is_premium(self) -> bool:
        return self.subscription_tier in PREMIUM_TIERS

    def keyword_list(self) -> List[str]:
        if not self.career_keywords:
            return []
        return [k.strip().lower() for k in self.career_keywords.split(",") if k.strip()]


class Job(BaseModel):
    """A scraped job posting as seen by the matcher"""
    model_config = ConfigDict(extra="ignore")

    job_hash: str = ""
    title: str
    company: str
    location: str = ""
    city: Optional[str] = None
    country: Optional[str] = None
    job_url: Optional[str] = None
    description: str = ""
    experience_required: Optional[str] = None
    work_environment: Optional[str] = None
    source: Optional[str] = None
    categories: List[str] = []
    posted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    visa_friendly: Optional[bool] = None

    @field_validator("categories", mode="before")
    @classmethod
    def _categories(cls, v):
        if isinstance(v, str):
            return [c.strip() for c in v.replace("|", ",").split(",") if c.strip()]
        return _as_list(v)

    @field_validator("location", "description", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return v or ""

    @model_validator(mode="after")
    def _fill_hash(self):
        if not self.job_hash:
            self.job_hash = generate_job_hash(self.company, self.title, self.location)
        return self

    def is_remote_or_hybrid(self) -> bool:
        text = f"{self.work_environment or ''} {self.location}".lower()
        return "remote" in text or "hybrid" in text

    def age_in_days(self, now: Optional[datetime] = None) -> Optional[float]:
        posted = utc_naive(self.posted_at or self.created_at)
        if posted is None:
            return None
        now = utc_naive(now) or datetime.utcnow()
        return max(0.0, (now - posted).total_seconds() / 86400)

    def identity(self) -> str:
        """Dedup key: the posting URL when known, otherwise the content hash"""
        return self.job_url or self.job_hash


class MatchMethod(str, Enum):
    AI = "ai"
    FALLBACK = "fallback"


class MatchLevel(str, Enum):
    EXACT = "exact"
    LOCATION = "location"
    BROAD = "broad"


class FreshnessTier(str, Enum):
    ULTRA_FRESH = "ultra_fresh"  # <= 1 day
    FRESH = "fresh"              # <= 3 days
    COMFORTABLE = "comfortable"  # <= 7 days
    STALE = "stale"              # <= 30 days
    OLD = "old"
    UNKNOWN = "unknown"


@dataclass
class JobMatch:
    """One matched job, produced by either the AI or the fallback stage"""
    job: Job
    match_score: float
    match_reason: str
    confidence_score: float  # 0-1
    job_index: Optional[int] = None
    method: MatchMethod = MatchMethod.AI
    score_breakdown: Dict[str, float] = field(default_factory=dict)
    validation_issues: List[str] = field(default_factory=list)
    explanation: str = ""

    @property
    def job_hash(self) -> str:
        return self.job.job_hash

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_hash": self.job.job_hash,
            "title": self.job.title,
            "company": self.job.company,
            "city": self.job.city,
            "job_url": self.job.job_url,
            "match_score": round(self.match_score, 1),
            "confidence_score": round(self.confidence_score, 3),
            "match_reason": self.match_reason,
            "method": self.method.value,
            "score_breakdown": self.score_breakdown,
            "validation_issues": self.validation_issues,
            "explanation": self.explanation,
        }


@dataclass
class FallbackMatch(JobMatch):
    method: MatchMethod = MatchMethod.FALLBACK
    match_quality: str = "low"  # excellent | good | fair | low

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["match_quality"] = self.match_quality
        return data


@dataclass
class ParsedMatch:
    """One raw entry from the model response, before validation"""
    job_index: int
    match_score: float
    confidence_score: float  # normalised to 0-1
    match_reason: str
    score_breakdown: Dict[str, float] = field(default_factory=dict)


@dataclass
class AIMatchResult:
    matches: List[JobMatch]
    model: str
    batches: int = 0
    cached_batches: int = 0
    tokens_used: int = 0


@dataclass
class VisaConfidence:
    level: str  # high | medium | low | unknown
    label: str
    score: float


@dataclass
class PrefilteredJob:
    job: Job
    prefilter_score: float
    freshness_tier: FreshnessTier
    location_match: bool = False
    career_match: bool = False


@dataclass
class PrefilterResult:
    jobs: List[PrefilteredJob]
    match_level: MatchLevel
    filtered_count: int
    source_distribution: Dict[str, int] = field(default_factory=dict)

    def job_list(self) -> List[Job]:
        return [p.job for p in self.jobs]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobs": len(self.jobs),
            "match_level": self.match_level.value,
            "filtered_count": self.filtered_count,
            "source_distribution": self.source_distribution,
        }


@dataclass
class ValidationOutcome:
    matches: List[JobMatch]
    accepted: bool
    rejected: int = 0
    issues: List[str] = field(default_factory=list)


@dataclass
class MatchingOptions:
    """Per-request knobs; ``for_tier`` gives the free/premium presets"""
    use_ai: bool = True
    max_jobs_for_ai: int = 10
    max_matches: int = 5
    fallback_threshold: int = 3
    include_prefilter_score: bool = False
    job_freshness_days: int = 30

    @classmethod
    def for_tier(cls, tier: str) -> "MatchingOptions":
        if tier in PREMIUM_TIERS:
            return cls(max_jobs_for_ai=30, max_matches=15, fallback_threshold=3,
                       include_prefilter_score=True, job_freshness_days=7)
        return cls(max_jobs_for_ai=10, max_matches=5, fallback_threshold=1, job_freshness_days=30)


@dataclass
class MatchingResult:
    """Unified output of the matching engine"""
    matches: List[JobMatch]
    method: MatchMethod
    total_jobs_processed: int
    prefilter_results: PrefilterResult
    processing_time: float
    ai_error: Optional[str] = None
    metadata: Dict[str, Any] = None

    def __post_init__(self):
        if self.metadata is None:
            self.metadata = {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matches": [m.to_dict() for m in self.matches],
            "method": self.method.value,
            "total_jobs_processed": self.total_jobs_processed,
            "prefilter_results": self.prefilter_results.to_dict(),
            "processing_time": round(self.processing_time, 4),
            "ai_error": self.ai_error,
            "metadata": self.metadata,
        }
