from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from bookwise.api.v1.api import api_router
from bookwise.api.v1.health import router as health_router
from bookwise.core.config import settings
from bookwise.services.database import engine
from bookwise.services.quiz_worker import QuizWorker

# Load environment variables
load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    quiz_worker = QuizWorker.from_settings(settings)
    app.state.quiz_worker = quiz_worker

    if settings.QUIZ_WORKER_ENABLED:
        await quiz_worker.start()
        # The queue is not durable: pick up whatever a previous process left behind
        quiz_worker.schedule_pending_sweep()
        quiz_worker.start_periodic_retry(settings.QUIZ_RETRY_INTERVAL_SECONDS)
        await quiz_worker.log_stats()
    else:
        logger.warning("Quiz worker disabled, books will stay in 'pending'")

    yield

    logger.info("Shutting down application")
    await quiz_worker.stop()
    await engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION, lifespan=lifespan)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    return {
        "message": "Welcome to Bookwise",
    }
