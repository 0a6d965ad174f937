"""Read helpers that turn ORM rows into matching models."""
from __future__ import annotations
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from libs.db import models
from libs.matching.models import Job, UserPreferences

logger = logging.getLogger(__name__)


def user_to_preferences(user: models.User) -> UserPreferences:
    return UserPreferences(
        email=user.email,
        full_name=user.full_name,
        subscription_tier=user.subscription_tier or "free",
        target_cities=user.target_cities or [],
        career_path=user.career_path or [],
        roles_selected=user.roles_selected or [],
        entry_level_preference=user.entry_level_preference,
        work_environment=user.work_environment,
        visa_status=user.visa_status,
        career_keywords=user.career_keywords,
        skills=user.skills or [],
        industries=user.industries or [],
        company_size_preference=user.company_size_preference,
        professional_expertise=user.professional_expertise,
    )


def job_row_to_model(row: models.Job) -> Job:
    return Job(
        job_hash=row.job_hash,
        title=row.title,
        company=row.company,
        location=row.location or "",
        city=row.city,
        country=row.country,
        job_url=row.job_url,
        description=row.description or "",
        experience_required=row.experience_required,
        work_environment=row.work_environment,
        source=row.source,
        categories=row.categories or [],
        posted_at=row.posted_at,
        created_at=row.created_at,
        visa_friendly=row.visa_friendly,
    )


def load_user_preferences(session: Session, email: str) -> Optional[UserPreferences]:
    """Active user by email (case-insensitive), or None"""
    user = session.query(models.User).filter(
        models.User.email == email.strip().lower(),
        models.User.active.is_(True),
    ).first()
    if user is None:
        logger.info(f"No active user found for {email}")
        return None
    return user_to_preferences(user)


def load_active_jobs(session: Session, limit: int = 1000, since: Optional[datetime] = None) -> List[Job]:
    """Newest active jobs first"""
    query = session.query(models.Job).filter(models.Job.is_active.is_(True))
    if since is not None:
        query = query.filter(models.Job.created_at >= since)
    rows = query.order_by(models.Job.created_at.desc()).limit(limit).all()
    return [job_row_to_model(row) for row in rows]


def get_job_by_hash(session: Session, job_hash: str) -> Optional[Job]:
    row = session.query(models.Job).filter(models.Job.job_hash == job_hash).first()
    return job_row_to_model(row) if row is not None else None
