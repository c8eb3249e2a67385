from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlmodel.ext.asyncio.session import AsyncSession

from bookwise.api.deps import get_quiz_worker
from bookwise.models import BookCreate, BookRead
from bookwise.schemas import BookCreateResult, BookPage, Pagination, QuizEnqueueResult
from bookwise.services import quiz_store
from bookwise.services.database import get_session
from bookwise.services.quiz_worker import QuizWorker

router = APIRouter()

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@router.post("/", response_model=BookCreateResult)
async def create_book(
    payload: BookCreate,
    session: AsyncSession = Depends(get_session),
    quiz_worker: QuizWorker = Depends(get_quiz_worker),
):
    """Store an already-merged book record and schedule its quiz.

    A book whose ISBN is already stored is returned as-is.
    """
    try:
        existing = await quiz_store.get_book_by_isbn(session, payload.isbn)
        if existing:
            logger.info(f"Book already exists in database: {existing.title} (ISBN: {existing.isbn})")
            return {
                "data": BookRead.model_validate(existing),
                "cache_hit": True,
                "quiz_queued": False,
            }

        book = await quiz_store.create_book(session, payload)
        logger.info(f"Book saved to database: {book.title} (id: {book.id})")

        queued = quiz_worker.enqueue(book.id)
        return {
            "data": BookRead.model_validate(book),
            "cache_hit": False,
            "quiz_queued": queued,
        }
    except IntegrityError as e:
        await session.rollback()
        logger.error(f"Error creating book: {e}")
        raise HTTPException(status_code=409, detail="Book with this ISBN already exists")
    except Exception as e:
        await session.rollback()
        logger.error(f"Error creating book: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/", response_model=BookPage)
async def list_books(
    page: int = Query(1),
    limit: int = Query(DEFAULT_PAGE_SIZE),
    session: AsyncSession = Depends(get_session),
):
    if page < 1:
        page = 1
    if limit < 1 or limit > MAX_PAGE_SIZE:
        limit = DEFAULT_PAGE_SIZE

    try:
        total = await quiz_store.count_books(session)
        books = await quiz_store.list_books(session, offset=(page - 1) * limit, limit=limit)
        return {
            "data": [BookRead.model_validate(book) for book in books],
            "pagination": Pagination(
                page=page,
                limit=limit,
                total=total,
                total_pages=(total + limit - 1) // limit,
            ),
        }
    except Exception as e:
        logger.error(f"Error listing books: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/isbn/{isbn}", response_model=Dict[str, BookRead])
async def get_book_by_isbn(isbn: str, session: AsyncSession = Depends(get_session)):
    book = await quiz_store.get_book_by_isbn(session, isbn)
    if not book:
        raise HTTPException(status_code=404, detail="No book stored with this ISBN")
    return {"data": BookRead.model_validate(book)}


@router.get("/{book_id}", response_model=Dict[str, BookRead])
async def get_book(book_id: int, session: AsyncSession = Depends(get_session)):
    book = await quiz_store.get_book(session, book_id)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    return {"data": BookRead.model_validate(book)}


@router.post(
    "/{book_id}/quiz",
    response_model=Dict[str, QuizEnqueueResult],
    status_code=status.HTTP_202_ACCEPTED,
)
async def request_quiz(
    book_id: int,
    session: AsyncSession = Depends(get_session),
    quiz_worker: QuizWorker = Depends(get_quiz_worker),
):
    """Ask the pipeline to (re)generate a book's quiz. Poll the book for the outcome."""
    book = await quiz_store.get_book(session, book_id)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")

    queued = quiz_worker.enqueue(book.id)
    return {
        "data": QuizEnqueueResult(
            book_id=book.id, quiz_status=book.quiz_status, queued=queued
        )
    }
