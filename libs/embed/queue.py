"""Embedding queue: fill in vectors for active jobs that have none yet.

Run on a schedule through ``POST /api/process-embedding-queue``. A failed
batch call is retried job by job so one bad posting does not block the rest.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from sqlalchemy.orm import Session

from libs.db.models import Job
from libs.embed.provider_base import EmbeddingProvider
from libs.errors import EmbeddingQueueError
from libs.observability import PerformanceMetrics, counter, get_logger, get_metrics_collector

logger = get_logger(__name__)


@dataclass
class EmbeddingQueueResult:
    processed: int = 0
    failed: int = 0
    failed_hashes: List[str] = field(default_factory=list)

    def to_dict(self):
        return {"processed": self.processed, "failed": self.failed}


def pending_jobs(session: Session, limit: int) -> List[Job]:
    return session.query(Job).filter(
        Job.is_active.is_(True),
        Job.embedding.is_(None),
    ).order_by(Job.created_at.desc()).limit(limit).all()


class EmbeddingQueueProcessor:
    def __init__(self, provider: EmbeddingProvider, batch_size: int = 50):
        self.provider = provider
        self.batch_size = batch_size

    def process(self, session: Session) -> EmbeddingQueueResult:
        if not self.provider.is_configured():
            raise EmbeddingQueueError("Embedding provider is not configured")

        jobs = pending_jobs(session, self.batch_size)
        get_metrics_collector().gauge(PerformanceMetrics.EMBEDDING_BATCH, len(jobs))
        result = EmbeddingQueueResult()
        if not jobs:
            logger.info("Embedding queue empty")
            return result

        try:
            vectors = self.provider.embed_batch([job.embedding_text() for job in jobs])
            for job, vector in zip(jobs, vectors):
                self._store(job, vector)
                result.processed += 1
        except Exception as e:
            logger.warning("Batch embedding failed, retrying per job", jobs=len(jobs), error=str(e))
            result = self._process_individually(jobs)

        session.flush()
        counter(PerformanceMetrics.EMBEDDINGS_PROCESSED, result.processed)
        if result.failed:
            counter(PerformanceMetrics.EMBEDDINGS_FAILED, result.failed)
        logger.info("Embedding queue processed", processed=result.processed, failed=result.failed,
                    model=self.provider.get_model_name())
        return result

    def _process_individually(self, jobs: List[Job]) -> EmbeddingQueueResult:
        result = EmbeddingQueueResult()
        for job in jobs:
            try:
                self._store(job, self.provider.embed_text(job.embedding_text()))
                result.processed += 1
            except Exception as e:
                logger.error("Failed to embed job", job_hash=job.job_hash, error=str(e))
                result.failed += 1
                result.failed_hashes.append(job.job_hash)
        return result

    def _store(self, job: Job, vector) -> None:
        job.embedding = [float(x) for x in vector]
        job.embedding_model = self.provider.get_model_name()
        job.embedded_at = datetime.utcnow()
