"""FastAPI application for the JobPing backend routes."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import sentry_sdk
from fastapi import Depends, FastAPI
from sqlalchemy.orm import sessionmaker

from apps.api.deps import get_matching_engine
from apps.api.routes import analytics, checkout, diagnostics, embedding_queue
from libs.config import Settings, get_settings
from libs.embed.openai_provider import OpenAIEmbeddingProvider
from libs.embed.provider_base import EmbeddingProvider
from libs.embed.queue import EmbeddingQueueProcessor
from libs.matching.engine import SimplifiedMatchingEngine, build_matching_engine
from libs.observability import configure_logging, get_logger

logger = get_logger(__name__)

VERSION = "0.1.0"


def init_sentry(settings: Settings) -> bool:
    if not settings.sentry.dsn:
        logger.info("Sentry DSN not set, error tracking disabled")
        return False
    sentry_sdk.init(
        dsn=settings.sentry.dsn,
        environment=settings.sentry.environment or "development",
        release=f"jobping@{VERSION}",
        traces_sample_rate=0.1,
    )
    logger.info("Sentry initialised", environment=settings.sentry.environment or "development")
    return True


def create_app(
    settings: Optional[Settings] = None,
    matching_engine: Optional[SimplifiedMatchingEngine] = None,
    session_factory: Optional[sessionmaker] = None,
    embedding_provider: Optional[EmbeddingProvider] = None,
) -> FastAPI:
    """Build the app and every long-lived service it serves from."""
    settings = settings or get_settings()
    configure_logging(settings.logging.level)
    init_sentry(settings)

    app = FastAPI(title="JobPing API", version=VERSION)
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.matching_engine = matching_engine or build_matching_engine(settings)
    app.state.embedding_processor = EmbeddingQueueProcessor(
        provider=embedding_provider or OpenAIEmbeddingProvider(
            api_key=settings.openai.api_key, model=settings.openai.embedding_model
        ),
        batch_size=settings.embedding_queue.batch_size,
    )
    app.state.started_at = datetime.now(timezone.utc)

    app.include_router(analytics.router)
    app.include_router(checkout.router)
    app.include_router(diagnostics.router)
    app.include_router(embedding_queue.router)

    @app.get("/api/health")
    def health(engine: SimplifiedMatchingEngine = Depends(get_matching_engine)):
        ai_service = engine.ai_service
        breaker = getattr(ai_service, "breaker", None)
        now = datetime.now(timezone.utc)
        return {
            "status": "healthy",
            "timestamp": now.isoformat(),
            "uptime": (now - app.state.started_at).total_seconds(),
            "version": VERSION,
            "ai": {
                "enabled": ai_service is not None,
                "configured": bool(ai_service and ai_service.provider.is_configured()),
                "circuit": breaker.state if breaker is not None else None,
            },
        }

    return app
