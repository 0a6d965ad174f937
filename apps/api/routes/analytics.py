from datetime import datetime

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from apps.api.deps import get_session_factory
from libs.db.models import AnalyticsEvent
from libs.db.session import session_scope
from libs.matching.models import utc_naive
from libs.observability import PerformanceMetrics, counter, get_logger

logger = get_logger(__name__)

router = APIRouter()


def _parse_timestamp(value):
    if not value:
        return datetime.utcnow()
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return datetime.utcnow()
    return utc_naive(parsed)


@router.post("/api/analytics/track")
async def track_event(request: Request):
    """Store one analytics event. Storage failures never fail the request."""
    try:
        body = await request.json()
        if not isinstance(body, dict):
            raise ValueError("event body must be a JSON object")
    except ValueError as e:
        logger.error("Analytics API error", error=str(e))
        return JSONResponse({"error": "Failed to track event"}, status_code=500)

    forwarded = request.headers.get("x-forwarded-for")
    ip = forwarded.split(",")[0].strip() if forwarded else request.headers.get("x-real-ip")
    event = AnalyticsEvent(
        event_name=str(body.get("event") or "unknown"),
        properties=body.get("properties") or {},
        timestamp=_parse_timestamp(body.get("timestamp")),
        url=body.get("url"),
        user_agent=request.headers.get("user-agent"),
        ip_address=ip,
    )

    try:
        factory: sessionmaker = get_session_factory(request)
        with session_scope(factory) as session:
            session.add(event)
        counter(PerformanceMetrics.ANALYTICS_EVENTS)
    except Exception as e:
        logger.warning("Failed to store analytics event", event=event.event_name, error=str(e))

    return {"success": True}
