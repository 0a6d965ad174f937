"""Shared fixtures: users, job factory, fixed clock, in-memory database."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from libs.db.models import Base
from libs.db.session import make_session_factory
from libs.matching.models import Job, UserPreferences

NOW = datetime(2025, 6, 2, 12, 0, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def free_user():
    return UserPreferences(
        email="grad@example.com",
        full_name="Alex Grad",
        subscription_tier="free",
        target_cities=["London"],
        career_path=["Tech & Transformation"],
        roles_selected=["Software Engineer"],
        entry_level_preference="entry-level",
        work_environment="hybrid",
        visa_status="EU citizen",
        career_keywords="python, sql",
    )


@pytest.fixture
def premium_user():
    return UserPreferences(
        email="pro@example.com",
        subscription_tier="premium",
        target_cities=["Berlin", "Amsterdam"],
        career_path=["Data & Analytics"],
        roles_selected=["Data Analyst"],
        entry_level_preference="graduate",
        career_keywords="sql, python, tableau",
        skills=["SQL", "Python"],
        industries=["Fintech"],
    )


@pytest.fixture
def make_job():
    counter = {"n": 0}

    def _make(title="Software Engineer", company=None, city="London", days_old=1, **kwargs):
        counter["n"] += 1
        n = counter["n"]
        kwargs.setdefault("location", f"{city}, UK" if city else "")
        kwargs.setdefault("categories", ["tech", "early-career"])
        kwargs.setdefault("source", "adzuna")
        kwargs.setdefault("experience_required", "entry-level")
        kwargs.setdefault("description", f"{title} role working with python and sql in a supportive team")
        kwargs.setdefault("job_url", f"https://jobs.example.com/{n}")
        return Job(
            title=title,
            company=company or f"Company {n}",
            city=city,
            posted_at=NOW - timedelta(days=days_old) if days_old is not None else None,
            **kwargs,
        )

    return _make


@pytest.fixture
def london_jobs(make_job):
    return [make_job(title=f"Software Engineer {i}") for i in range(12)]


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool, future=True
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return make_session_factory(db_engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()
