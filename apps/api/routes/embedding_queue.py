from datetime import datetime, timezone
import hmac

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from apps.api.deps import get_app_settings, get_embedding_processor, get_session_factory
from libs.config import Settings
from libs.db.session import session_scope
from libs.embed.queue import EmbeddingQueueProcessor
from libs.errors import EmbeddingQueueError
from libs.observability import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/api/process-embedding-queue")
def embedding_queue_health():
    return {"status": "ok", "message": "Embedding queue processor is available", "timestamp": _now()}


@router.post("/api/process-embedding-queue")
def process_embedding_queue(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    processor: EmbeddingQueueProcessor = Depends(get_embedding_processor),
):
    secret = settings.embedding_queue.cron_secret
    if not secret:
        logger.error("CRON_SECRET not configured")
        return JSONResponse({"error": "CRON_SECRET not configured"}, status_code=500)
    supplied = request.headers.get("authorization", "")
    if not hmac.compare_digest(supplied, f"Bearer {secret}"):
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    logger.info("Processing embedding queue")
    try:
        with session_scope(get_session_factory(request)) as session:
            result = processor.process(session)
    except EmbeddingQueueError as e:
        logger.error("Embedding queue unavailable", error=str(e))
        return JSONResponse({"error": str(e)}, status_code=503)
    except Exception as e:
        logger.exception("Embedding queue failed", error=str(e))
        return JSONResponse({"error": "Failed to process embedding queue"}, status_code=500)

    return {
        "success": True,
        "message": "Embedding queue processed successfully",
        "processed": result.processed,
        "failed": result.failed,
        "timestamp": _now(),
    }
