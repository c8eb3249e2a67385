from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from loguru import logger
from sqlmodel.ext.asyncio.session import AsyncSession

from bookwise.api.deps import get_quiz_worker
from bookwise.models import BookQuizStatus, Quiz, QuizRead
from bookwise.schemas import WorkerStats
from bookwise.services import quiz_store
from bookwise.services.database import get_session
from bookwise.services.quiz_generator import QuizGenerationError, validate_quiz_json
from bookwise.services.quiz_worker import QuizWorker

router = APIRouter()

_IN_PROGRESS_MESSAGES = {
    BookQuizStatus.PENDING: "Quiz has not been generated yet. Please try again later.",
    BookQuizStatus.GENERATING: "Quiz is being generated. Please try again in a few seconds.",
}


def _quiz_response(quiz: Quiz) -> Dict[str, QuizRead]:
    try:
        questions = validate_quiz_json(quiz.questions)
    except QuizGenerationError as e:
        logger.error(f"[book={quiz.book_id}] Stored quiz {quiz.id} is unreadable: {e}")
        raise HTTPException(status_code=500, detail="Quiz data could not be read")
    return {
        "data": QuizRead(
            id=quiz.id,
            book_id=quiz.book_id,
            quiz=questions,
            ai_model=quiz.ai_model,
            created_at=quiz.created_at,
        )
    }


@router.get("/stats", response_model=Dict[str, WorkerStats])
async def get_quiz_stats(quiz_worker: QuizWorker = Depends(get_quiz_worker)):
    try:
        return {"data": await quiz_worker.get_stats()}
    except Exception as e:
        logger.error(f"Error getting quiz stats: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/id/{quiz_id}", response_model=Dict[str, QuizRead])
async def get_quiz_by_id(quiz_id: int, session: AsyncSession = Depends(get_session)):
    quiz = await quiz_store.get_quiz(session, quiz_id)
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")
    return _quiz_response(quiz)


@router.get("/{book_id}", response_model=Dict[str, QuizRead])
async def get_quiz(book_id: int, session: AsyncSession = Depends(get_session)):
    """Quiz for a book, or its generation status while it is not ready.

    ``generating`` may be stale after a crash; callers should keep polling.
    """
    book = await quiz_store.get_book(session, book_id)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")

    if book.quiz_status in _IN_PROGRESS_MESSAGES:
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content={
                "status": book.quiz_status,
                "message": _IN_PROGRESS_MESSAGES[book.quiz_status],
            },
        )

    if book.quiz_status == BookQuizStatus.FAILED:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "status": BookQuizStatus.FAILED,
                "error": "Quiz could not be generated. It will be retried automatically.",
            },
        )

    quiz = await quiz_store.get_quiz_by_book(session, book_id)
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")
    return _quiz_response(quiz)
