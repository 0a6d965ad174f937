"""Repository, cycle stats and embedding queue against an in-memory database"""
from datetime import datetime, timedelta
from unittest.mock import Mock

import numpy as np
import pytest

from libs.automation.stats import collect_cycle_stats
from libs.db import models
from libs.db.repository import get_job_by_hash, load_active_jobs, load_user_preferences
from libs.db.session import session_scope
from libs.embed.mock_provider import MockEmbeddingProvider
from libs.embed.queue import EmbeddingQueueProcessor, pending_jobs
from libs.errors import EmbeddingQueueError

NOW = datetime(2025, 6, 2, 12, 0, 0)


def add_job(session, title, company="Acme", city="London", age_hours=1, source="adzuna", **kwargs):
    location = f"{city}, UK"
    row = models.Job(
        job_hash=models.generate_job_hash(company, title, location),
        title=title,
        company=company,
        location=location,
        city=city,
        source=source,
        categories=["tech"],
        description=f"{title} at {company}",
        created_at=NOW - timedelta(hours=age_hours),
        **kwargs,
    )
    session.add(row)
    return row


@pytest.fixture
def seeded(db_session):
    db_session.add(models.User(
        email="Grad@Example.com",
        subscription_tier="premium",
        target_cities=["London"],
        career_path=["Tech & Transformation"],
        roles_selected=["Software Engineer"],
        career_keywords="python",
        skills=["Python"],
    ))
    db_session.add(models.User(email="gone@example.com", active=False))
    add_job(db_session, "Junior Developer", age_hours=30, source="reed")
    add_job(db_session, "Data Analyst", age_hours=2)
    add_job(db_session, "Graduate Engineer", age_hours=5, source=None)
    add_job(db_session, "Closed Role", age_hours=1, is_active=False)
    db_session.commit()
    return db_session


def test_load_user_preferences(seeded):
    user = load_user_preferences(seeded, "  GRAD@example.com ")
    assert user.email == "grad@example.com"
    assert user.is_premium
    assert user.target_cities == ["London"]
    assert user.skills == ["Python"]


def test_inactive_or_unknown_user(seeded):
    assert load_user_preferences(seeded, "gone@example.com") is None
    assert load_user_preferences(seeded, "nobody@example.com") is None


def test_user_email_must_be_valid():
    with pytest.raises(ValueError):
        models.User(email="not-an-email")


def test_load_active_jobs_newest_first(seeded):
    jobs = load_active_jobs(seeded)
    assert [j.title for j in jobs] == ["Data Analyst", "Graduate Engineer", "Junior Developer"]
    assert jobs[0].categories == ["tech"]
    assert load_active_jobs(seeded, limit=1)[0].title == "Data Analyst"
    recent = load_active_jobs(seeded, since=NOW - timedelta(hours=24))
    assert [j.title for j in recent] == ["Data Analyst", "Graduate Engineer"]


def test_get_job_by_hash(seeded):
    job_hash = models.generate_job_hash("Acme", "Data Analyst", "London, UK")
    job = get_job_by_hash(seeded, job_hash)
    assert job.title == "Data Analyst"
    assert job.job_hash == job_hash
    assert get_job_by_hash(seeded, "missing") is None


def test_job_hash_is_normalised():
    assert models.generate_job_hash(" ACME ", "Data Analyst", "London") == \
        models.generate_job_hash("acme", "data analyst", "london ")


def test_cycle_stats(seeded):
    stats = collect_cycle_stats(seeded, NOW - timedelta(hours=24))
    assert stats == {"total": 3, "per_source": {"adzuna": 2, "unknown": 1}}
    assert collect_cycle_stats(seeded, NOW + timedelta(hours=1)) == {"total": 0, "per_source": {}}


def test_cycle_stats_swallow_database_errors():
    session = Mock()
    session.query.side_effect = RuntimeError("connection reset")
    assert collect_cycle_stats(session, NOW) == {"total": 0, "per_source": {}}


def test_session_scope_commits_and_rolls_back(session_factory):
    with session_scope(session_factory) as session:
        add_job(session, "Kept")
    with pytest.raises(RuntimeError):
        with session_scope(session_factory) as session:
            add_job(session, "Discarded")
            raise RuntimeError("abort")
    with session_scope(session_factory) as session:
        assert [j.title for j in session.query(models.Job).all()] == ["Kept"]


# ---------------- embedding queue ----------------

def test_queue_embeds_pending_active_jobs(seeded):
    provider = MockEmbeddingProvider(dimension=4)
    result = EmbeddingQueueProcessor(provider, batch_size=10).process(seeded)
    seeded.commit()

    assert result.to_dict() == {"processed": 3, "failed": 0}
    assert provider.calls == 1
    embedded = seeded.query(models.Job).filter(models.Job.embedding.isnot(None)).all()
    assert len(embedded) == 3
    assert all(len(j.embedding) == 4 and j.embedding_model == "mock-embedding" for j in embedded)
    assert pending_jobs(seeded, 10) == []

    again = EmbeddingQueueProcessor(provider).process(seeded)
    assert again.processed == 0


def test_queue_respects_batch_size(seeded):
    result = EmbeddingQueueProcessor(MockEmbeddingProvider(), batch_size=2).process(seeded)
    assert result.processed == 2
    assert len(pending_jobs(seeded, 10)) == 1


def test_queue_retries_individually_after_batch_failure(seeded):
    provider = MockEmbeddingProvider(fail_on="Graduate Engineer")
    result = EmbeddingQueueProcessor(provider).process(seeded)
    assert result.processed == 2
    assert result.failed == 1
    assert result.failed_hashes == [models.generate_job_hash("Acme", "Graduate Engineer", "London, UK")]
    assert [j.title for j in pending_jobs(seeded, 10)] == ["Graduate Engineer"]


def test_queue_requires_configured_provider(seeded):
    provider = MockEmbeddingProvider()
    provider.is_configured = lambda: False
    with pytest.raises(EmbeddingQueueError):
        EmbeddingQueueProcessor(provider).process(seeded)


def test_cosine_similarity_handles_zero_vectors():
    provider = MockEmbeddingProvider()
    assert provider.cosine_similarity(np.zeros(3), np.ones(3)) == 0.0
    assert provider.cosine_similarity(np.ones(3), np.ones(3)) == pytest.approx(1.0)
