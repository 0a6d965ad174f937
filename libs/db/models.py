"""
Database models for users, scraped jobs and analytics events
libs/db/models.py
"""
from datetime import datetime
import hashlib

from sqlalchemy import (
    Column, String, Integer, Boolean, Text, DateTime, JSON, Index, CheckConstraint
)
from sqlalchemy.orm import declarative_base, validates

Base = declarative_base()

SUBSCRIPTION_TIERS = ("free", "premium", "premium_pending")


def generate_job_hash(company: str, title: str, location: str) -> str:
    """Content-addressed job id: stable across re-scrapes of the same posting"""
    content = f"{(company or '').strip().lower()}|{(title or '').strip().lower()}|{(location or '').strip().lower()}"
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class User(Base):
    """Job seeker account with matching preferences"""
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(320), nullable=False, unique=True)
    full_name = Column(String(255))
    subscription_tier = Column(String(32), nullable=False, default="free")
    active = Column(Boolean, default=True)

    # Preferences
    target_cities = Column(JSON, default=list)
    career_path = Column(JSON, default=list)
    roles_selected = Column(JSON, default=list)
    entry_level_preference = Column(String(64))
    work_environment = Column(String(64))
    visa_status = Column(String(128))
    career_keywords = Column(Text)

    # Premium assessment extras
    skills = Column(JSON, default=list)
    industries = Column(JSON, default=list)
    company_size_preference = Column(String(64))
    professional_expertise = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(
            "subscription_tier in ('free', 'premium', 'premium_pending')",
            name='check_subscription_tier',
        ),
    )

    @validates('email')
    def validate_email(self, key, email):
        if not email or '@' not in email:
            raise ValueError("A valid email is required")
        return email.strip().lower()


class Job(Base):
    """Scraped job posting"""
    __tablename__ = 'jobs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_hash = Column(String(64), nullable=False, unique=True)

    title = Column(String(500), nullable=False)
    company = Column(String(255), nullable=False)
    location = Column(String(500))
    city = Column(String(128))
    country = Column(String(128))
    job_url = Column(String(1000))
    description = Column(Text)
    experience_required = Column(String(64))
    work_environment = Column(String(64))
    source = Column(String(64))
    categories = Column(JSON, default=list)
    visa_friendly = Column(Boolean)

    is_active = Column(Boolean, default=True)
    posted_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Filled by the embedding queue
    embedding = Column(JSON)
    embedding_model = Column(String(128))
    embedded_at = Column(DateTime)

    __table_args__ = (
        Index('idx_jobs_created_at', 'created_at'),
        Index('idx_jobs_source', 'source'),
        Index('idx_jobs_city', 'city'),
        Index('idx_jobs_active', 'is_active'),
    )

    def embedding_text(self) -> str:
        """Text fed to the embedding model"""
        parts = [self.title, self.company, self.city or self.location or "", " ".join(self.categories or []),
                 (self.description or "")[:2000]]
        return "\n".join(p for p in parts if p)


class AnalyticsEvent(Base):
    """Client-side analytics event"""
    __tablename__ = 'analytics_events'

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_name = Column(String(255), nullable=False)
    properties = Column(JSON, default=dict)
    timestamp = Column(DateTime, default=datetime.utcnow)
    url = Column(String(2000))
    user_agent = Column(String(1000))
    ip_address = Column(String(128))
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('idx_analytics_event_name', 'event_name'),
    )
