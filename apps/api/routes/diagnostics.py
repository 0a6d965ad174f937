"""Echo and error-tracking diagnostic routes."""
import os
from datetime import datetime, timezone

import sentry_sdk
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from apps.api.deps import get_app_settings
from libs.config import Settings
from libs.observability import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/api/test-route")
def test_route_get():
    return {"message": "GET works", "timestamp": _now()}


@router.post("/api/test-route")
async def test_route_post(request: Request):
    try:
        body = await request.json()
    except ValueError:
        body = {}
    return {"message": "POST works", "body": body, "timestamp": _now()}


@router.get("/api/debug/sentry-status")
def sentry_status(emit: bool = True, settings: Settings = Depends(get_app_settings)):
    dsn = settings.sentry.dsn
    initialized = sentry_sdk.get_client().is_active()
    status = {
        "enabled": bool(dsn),
        "dsn": f"{dsn[:20]}..." if dsn else "NOT SET",
        "environment": settings.sentry.environment or "development",
        "hasSentryDSN": bool(os.environ.get("SENTRY_DSN")),
        "hasNextPublicSentryDSN": bool(os.environ.get("NEXT_PUBLIC_SENTRY_DSN")),
        "sentryInitialized": initialized,
        "timestamp": _now(),
        "testMessageSent": False,
    }
    if not emit:
        status["testMessageNote"] = "Test message skipped"
    elif initialized:
        sentry_sdk.capture_message("Sentry status check", level="info")
        sentry_sdk.flush(timeout=2)
        status["testMessageSent"] = True
        status["testMessageNote"] = "Event sent - check Sentry dashboard"
    else:
        status["testMessageNote"] = "Sentry not initialized - DSN not configured"
    return status


@router.get("/api/sentry-test")
def sentry_test(settings: Settings = Depends(get_app_settings)):
    """Raise, capture with tags, answer 500"""
    try:
        raise RuntimeError("Intentional server error for Sentry testing")
    except RuntimeError as e:
        sentry_sdk.capture_exception(
            e,
            tags={"test": "sentry-test-api", "environment": settings.sentry.environment or "development"},
            extras={"endpoint": "/api/sentry-test", "timestamp": _now()},
        )
        logger.error("Sentry test error captured", error=str(e))
        return JSONResponse(
            {"message": "Server error triggered and sent to Sentry!", "error": str(e)},
            status_code=500,
        )


@router.get("/api/sentry-test-simple")
def sentry_test_simple():
    """Unhandled error; the Sentry integration reports it"""
    raise RuntimeError("Unhandled test error from /api/sentry-test-simple")
