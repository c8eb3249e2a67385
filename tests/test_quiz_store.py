import pytest

from bookwise.models import BookCreate, BookQuizStatus, QuizStatus
from bookwise.services import quiz_store

pytestmark = pytest.mark.anyio


async def test_create_book_starts_pending(session_maker):
    async with session_maker() as session:
        book = await quiz_store.create_book(
            session,
            BookCreate(title="Dune", isbn="0441013597", isbn13="9780441013593", authors=["Frank Herbert"]),
        )

    assert book.id is not None
    assert book.quiz_status == BookQuizStatus.PENDING
    assert book.quiz_id is None


async def test_get_book_by_isbn_matches_either_form(session_maker, add_book):
    book_id = await add_book(isbn="0441013597", isbn13="9780441013593")

    async with session_maker() as session:
        by_isbn10 = await quiz_store.get_book_by_isbn(session, "0441013597")
        by_isbn13 = await quiz_store.get_book_by_isbn(session, "9780441013593")
        missing = await quiz_store.get_book_by_isbn(session, "0000000000")

    assert by_isbn10.id == book_id
    assert by_isbn13.id == book_id
    assert missing is None


async def test_update_book_status_rejects_unknown_status(session_maker, add_book):
    book_id = await add_book()

    async with session_maker() as session:
        book = await quiz_store.get_book(session, book_id)
        with pytest.raises(ValueError):
            await quiz_store.update_book_status(session, book, "queued")


async def test_count_books_by_status_includes_empty_states(session_maker, add_book):
    await add_book()
    await add_book(quiz_status=BookQuizStatus.COMPLETED)

    async with session_maker() as session:
        counts = await quiz_store.count_books_by_status(session)

    assert counts == {
        BookQuizStatus.PENDING: 1,
        BookQuizStatus.GENERATING: 0,
        BookQuizStatus.COMPLETED: 1,
        BookQuizStatus.FAILED: 0,
    }


async def test_delete_quizzes_only_touches_given_status(session_maker, add_book, add_quiz, load_quizzes):
    book_id = await add_book()
    await add_quiz(book_id, QuizStatus.FAILED)

    async with session_maker() as session:
        assert await quiz_store.delete_quizzes(session, book_id, QuizStatus.COMPLETED) == 0
        assert await quiz_store.delete_quizzes(session, book_id, QuizStatus.FAILED) == 1

    assert await load_quizzes(book_id) == []


async def test_list_books_pages_newest_first(session_maker, add_book):
    ids = [await add_book() for _ in range(5)]

    async with session_maker() as session:
        first_page = await quiz_store.list_books(session, offset=0, limit=2)
        last_page = await quiz_store.list_books(session, offset=4, limit=2)
        total = await quiz_store.count_books(session)

    assert [b.id for b in first_page] == [ids[4], ids[3]]
    assert [b.id for b in last_page] == [ids[0]]
    assert total == 5
