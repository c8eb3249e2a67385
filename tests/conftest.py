"""Shared fixtures: a throwaway SQLite database and a scripted quiz generator."""

import asyncio
import itertools
from typing import List, Optional

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import select

from bookwise.models import Book, Quiz, QuizQuestion
from bookwise.services.database import build_session_maker, create_db_and_tables
from bookwise.services.quiz_generator import QuizDraft, QuizGenerationError

_isbn_counter = itertools.count(9780000000001)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookwise.db'}")
    await create_db_and_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return build_session_maker(db_engine)


def make_question(i: int) -> QuizQuestion:
    return QuizQuestion(
        question=f"Question {i}?",
        options=["A) one", "B) two", "C) three", "D) four"],
        answer="B) two",
        explanation=f"Because of reason {i}.",
    )


class FakeGenerator:
    """Stands in for QuizGenerator; records every book it is asked about."""

    model_name = "fake-gemini"

    def __init__(
        self,
        questions: int = 5,
        fail: bool = False,
        retry_limit: int = 3,
        gate: Optional[asyncio.Event] = None,
        error: Optional[Exception] = None,
    ):
        self.questions = questions
        self.fail = fail
        self.retry_limit = retry_limit
        self.gate = gate
        self.error = error
        self.calls: List[int] = []
        self.started = asyncio.Event()

    async def generate(self, book: Book) -> QuizDraft:
        self.calls.append(book.id)
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if self.fail:
            raise QuizGenerationError(
                f"failed to generate quiz after {self.retry_limit} attempts: "
                "Question 1 must have exactly 4 options, got 3",
                attempts=self.retry_limit,
            )
        return QuizDraft(
            questions=[make_question(i) for i in range(1, self.questions + 1)],
            ai_model=self.model_name,
            attempts=1,
        )


@pytest.fixture
def fake_generator():
    return FakeGenerator


@pytest.fixture
def add_book(session_maker):
    async def _add_book(**fields) -> int:
        data = {
            "title": "Dune",
            "authors": ["Frank Herbert"],
            "isbn": str(next(_isbn_counter)),
            "description": "A desert planet and its spice.",
            "categories": ["Fiction"],
            "publisher": "Chilton Books",
            "published_date": "1965",
        }
        data.update(fields)
        async with session_maker() as session:
            book = Book(**data)
            session.add(book)
            await session.commit()
            await session.refresh(book)
            return book.id

    return _add_book


@pytest.fixture
def add_quiz(session_maker):
    async def _add_quiz(book_id: int, status: str, questions: Optional[list] = None) -> int:
        async with session_maker() as session:
            quiz = Quiz(
                book_id=book_id,
                questions=questions if questions is not None else [],
                ai_model="fake-gemini",
                status=status,
            )
            session.add(quiz)
            await session.commit()
            await session.refresh(quiz)
            return quiz.id

    return _add_quiz


@pytest.fixture
def load_book(session_maker):
    async def _load_book(book_id: int) -> Optional[Book]:
        async with session_maker() as session:
            return await session.get(Book, book_id)

    return _load_book


@pytest.fixture
def load_quizzes(session_maker):
    async def _load_quizzes(book_id: int) -> List[Quiz]:
        async with session_maker() as session:
            _result = await session.exec(select(Quiz).where(Quiz.book_id == book_id))
            return list(_result.all())

    return _load_quizzes
