import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from loguru import logger

from bookwise.api.deps import get_quiz_worker
from bookwise.core.config import settings
from bookwise.services.database import ping_database
from bookwise.services.quiz_worker import QuizWorker

router = APIRouter(tags=["health"])

_started_at = time.monotonic()


@router.get("/health")
def health_check():
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "time": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/detailed")
async def detailed_health(quiz_worker: QuizWorker = Depends(get_quiz_worker)):
    database_ok = await ping_database()
    try:
        worker_stats = (await quiz_worker.get_stats()).model_dump()
    except Exception as e:
        logger.error(f"Error collecting quiz worker stats: {e}")
        worker_stats = None

    return {
        "status": "healthy" if database_ok else "degraded",
        "service": settings.PROJECT_NAME,
        "uptime_seconds": round(time.monotonic() - _started_at, 3),
        "components": {
            "database": "healthy" if database_ok else "unhealthy",
            "quiz_worker": worker_stats,
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
