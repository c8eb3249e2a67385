"""Book (record) and quiz (artifact) persistence used by the quiz pipeline.

Every function takes the caller's session; nothing here keeps a handle to a
row beyond the call. Functions that write accept ``commit=False`` so the
worker can group several writes into one transaction.
"""

from typing import Dict, List, Optional, Sequence

from sqlalchemy import func, or_
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from bookwise.models import Book, BookCreate, BookQuizStatus, Quiz


# --------------------
# Books
# --------------------

async def get_book(session: AsyncSession, book_id: int) -> Optional[Book]:
    return await session.get(Book, book_id)


async def get_book_by_isbn(session: AsyncSession, isbn: str) -> Optional[Book]:
    _result = await session.exec(
        select(Book).where(or_(Book.isbn == isbn, Book.isbn13 == isbn))
    )
    return _result.first()


async def create_book(session: AsyncSession, data: BookCreate) -> Book:
    book = Book.model_validate(data)
    book.quiz_status = BookQuizStatus.PENDING
    session.add(book)
    await session.commit()
    await session.refresh(book)
    return book


async def list_books(session: AsyncSession, offset: int, limit: int) -> List[Book]:
    _result = await session.exec(
        select(Book)
        .order_by(Book.created_at.desc(), Book.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(_result.all())


async def count_books(session: AsyncSession) -> int:
    _result = await session.exec(select(func.count()).select_from(Book))
    return int(_result.one() or 0)


async def update_book_status(
    session: AsyncSession, book: Book, status: str, commit: bool = True, **fields
) -> Book:
    if status not in BookQuizStatus.ALL:
        raise ValueError(f"Unknown quiz status: {status}")
    book.quiz_status = status
    for field, value in fields.items():
        setattr(book, field, value)
    session.add(book)
    if commit:
        await session.commit()
    return book


async def find_books_by_status(
    session: AsyncSession, statuses: Sequence[str]
) -> List[Book]:
    _result = await session.exec(
        select(Book).where(Book.quiz_status.in_(list(statuses))).order_by(Book.id)
    )
    return list(_result.all())


async def count_books_by_status(session: AsyncSession) -> Dict[str, int]:
    _result = await session.exec(
        select(Book.quiz_status, func.count(Book.id)).group_by(Book.quiz_status)
    )
    counts = {status: 0 for status in BookQuizStatus.ALL}
    for status, count in _result.all():
        counts[status] = int(count)
    return counts


# --------------------
# Quizzes
# --------------------

async def get_quiz(session: AsyncSession, quiz_id: int) -> Optional[Quiz]:
    return await session.get(Quiz, quiz_id)


async def get_quiz_by_book(session: AsyncSession, book_id: int) -> Optional[Quiz]:
    _result = await session.exec(select(Quiz).where(Quiz.book_id == book_id))
    return _result.first()


async def find_quiz(
    session: AsyncSession, book_id: int, status: str
) -> Optional[Quiz]:
    _result = await session.exec(
        select(Quiz).where(Quiz.book_id == book_id, Quiz.status == status)
    )
    return _result.first()


async def create_quiz(session: AsyncSession, quiz: Quiz, commit: bool = True) -> Quiz:
    session.add(quiz)
    if commit:
        await session.commit()
        await session.refresh(quiz)
    else:
        await session.flush()
    return quiz


async def delete_quizzes(
    session: AsyncSession, book_id: int, status: str, commit: bool = True
) -> int:
    _result = await session.exec(
        select(Quiz).where(Quiz.book_id == book_id, Quiz.status == status)
    )
    quizzes = _result.all()
    for quiz in quizzes:
        await session.delete(quiz)
    if commit:
        await session.commit()
    elif quizzes:
        await session.flush()
    return len(quizzes)
