"""Scrape cycle statistics: how many distinct jobs arrived, and from where."""
from __future__ import annotations
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import func
from sqlalchemy.orm import Session

from libs.db.models import Job
from libs.observability import get_logger

logger = get_logger(__name__)


def collect_cycle_stats(session: Session, since: datetime) -> Dict[str, Any]:
    """Jobs created since ``since``: unique hash count and per-source counts.

    Database failures are logged and reported as an empty cycle so a
    reporting run never aborts the caller.
    """
    try:
        total = session.query(func.count(func.distinct(Job.job_hash))).filter(
            Job.created_at >= since
        ).scalar()
        rows = session.query(Job.source, func.count(Job.id)).filter(
            Job.created_at >= since
        ).group_by(Job.source).all()
    except Exception as e:
        logger.error("Failed to collect cycle stats", since=since.isoformat(), error=str(e))
        return {"total": 0, "per_source": {}}

    per_source = {(source or "unknown"): count for source, count in rows}
    logger.info("Cycle stats collected", since=since.isoformat(), total=total or 0)
    return {"total": total or 0, "per_source": per_source}
