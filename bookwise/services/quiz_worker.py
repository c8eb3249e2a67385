"""Background quiz generation: bounded queue, worker pool and retry sweeps.

A ``QuizWorker`` is created once per application and lives on
``app.state``. All of its methods must be called from the event loop the
pool was started on; ``enqueue`` is synchronous and therefore atomic with
respect to the other coroutines touching the queue.

Book status is the only durable coordination state. The in-memory queue is
lost on restart, which is why ``process_all_pending`` runs at boot.
"""

import asyncio
import contextlib
import json
from typing import List, Optional, Set

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from bookwise.core.config import Settings
from bookwise.models import Book, BookQuizStatus, Quiz, QuizStatus
from bookwise.schemas import WorkerStats
from bookwise.services import quiz_store
from bookwise.services.database import async_session_maker
from bookwise.services.quiz_generator import QuizGenerationError, QuizGenerator

# Queued once per worker by stop(); FIFO order means every real job ahead of
# it is drained first.
_CLOSE = object()

# Quizzes that never count as a finished artifact and are cleared before a new attempt
_STALE_QUIZ_STATUSES = (QuizStatus.FAILED, QuizStatus.RETRYING)


class QuizWorker:
    def __init__(
        self,
        generator: QuizGenerator,
        session_maker: async_sessionmaker = async_session_maker,
        worker_count: int = 3,
        queue_size: int = 100,
    ):
        self.generator = generator
        self.session_maker = session_maker
        self.worker_count = worker_count
        # asyncio treats maxsize=0 as unbounded
        self.queue_size = max(1, queue_size)

        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []
        # Book ids that are queued or being processed
        self._tracked: Set[int] = set()
        self._running = False
        self._lock = asyncio.Lock()

        self._retry_task: Optional[asyncio.Task] = None
        self._retry_stop: Optional[asyncio.Event] = None
        self._sweep_task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, settings: Settings, session_maker: async_sessionmaker = async_session_maker) -> "QuizWorker":
        return cls(
            generator=QuizGenerator.from_settings(settings),
            session_maker=session_maker,
            worker_count=settings.QUIZ_WORKER_COUNT,
            queue_size=settings.QUIZ_QUEUE_SIZE,
        )

    @property
    def running(self) -> bool:
        return self._running

    # --------------------
    # Lifecycle
    # --------------------

    async def start(self) -> None:
        async with self._lock:
            if self._running:
                return
            self._queue = asyncio.Queue(maxsize=self.queue_size)
            self._tracked.clear()
            self._running = True

            logger.info(f"Starting quiz worker pool with {self.worker_count} workers")
            self._workers = [
                asyncio.create_task(self._worker(i + 1, self._queue), name=f"quiz-worker-{i + 1}")
                for i in range(self.worker_count)
            ]

    async def stop(self) -> None:
        """Stop background sweeps, drain the queue and wait for every worker.

        Generation calls already in flight run to completion; nothing is
        cancelled mid-attempt.
        """
        await self.stop_periodic_retry()
        await self._cancel_pending_sweep()

        async with self._lock:
            if not self._running:
                return
            logger.info("Stopping quiz worker pool...")
            # Refuse new jobs before closing the queue
            self._running = False

            for _ in self._workers:
                await self._queue.put(_CLOSE)
            await asyncio.gather(*self._workers, return_exceptions=True)
            self._workers = []
            logger.info("Quiz worker pool stopped")

    # --------------------
    # Queue
    # --------------------

    def enqueue(self, book_id: int) -> bool:
        """Schedule quiz generation for a book without ever blocking.

        Returns False when the job was dropped: pool not running, book already
        queued or in progress, or queue full.
        """
        if not self._running or self._queue is None:
            logger.warning(f"[book={book_id}] Quiz worker not running, cannot enqueue")
            return False

        if book_id in self._tracked:
            logger.info(f"[book={book_id}] Quiz generation already queued, skipping")
            return False

        try:
            self._queue.put_nowait(book_id)
        except asyncio.QueueFull:
            logger.warning(f"[book={book_id}] Quiz queue is full, skipping book")
            return False

        self._tracked.add(book_id)
        logger.info(f"[book={book_id}] Added to quiz generation queue")
        return True

    def get_queue_depth(self) -> int:
        if self._queue is None:
            return 0
        return self._queue.qsize()

    async def _worker(self, worker_id: int, queue: asyncio.Queue) -> None:
        logger.info(f"Worker #{worker_id} started")

        while True:
            book_id = await queue.get()
            try:
                if book_id is _CLOSE:
                    break
                logger.info(f"Worker #{worker_id} processing book {book_id}")
                try:
                    await self.process_quiz_generation(book_id)
                except Exception:
                    logger.exception(f"[book={book_id}] Unexpected error in worker #{worker_id}")
                finally:
                    self._tracked.discard(book_id)
            finally:
                queue.task_done()

        logger.info(f"Worker #{worker_id} stopped")

    # --------------------
    # Generation workflow
    # --------------------

    async def process_quiz_generation(self, book_id: int) -> None:
        async with self.session_maker() as session:
            try:
                await self._run_workflow(session, book_id)
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"[book={book_id}] Database error during quiz generation: {e}")
                await self._mark_failed_after_error(book_id)
            except Exception:
                await session.rollback()
                logger.exception(f"[book={book_id}] Unexpected error during quiz generation")
                await self._mark_failed_after_error(book_id)

    async def _run_workflow(self, session: AsyncSession, book_id: int) -> None:
        book = await quiz_store.get_book(session, book_id)
        if book is None:
            logger.error(f"[book={book_id}] Book not found, dropping quiz job")
            return

        existing = await quiz_store.find_quiz(session, book_id, QuizStatus.COMPLETED)
        if existing is not None:
            logger.info(f"[book={book_id}] Quiz already exists for '{book.title}', skipping")
            await quiz_store.update_book_status(
                session, book, BookQuizStatus.COMPLETED, quiz_id=existing.id
            )
            return

        for status in _STALE_QUIZ_STATUSES:
            deleted = await quiz_store.delete_quizzes(session, book_id, status, commit=False)
            if deleted:
                logger.info(f"[book={book_id}] Removed {deleted} {status} quiz before retrying")
        await quiz_store.update_book_status(session, book, BookQuizStatus.GENERATING)

        try:
            draft = await self.generator.generate(book)
        except QuizGenerationError as e:
            logger.error(f"[book={book_id}] Failed to generate quiz for '{book.title}': {e}")
            await self._record_failure(session, book, e)
            return

        quiz = Quiz(
            book_id=book_id,
            questions=[q.model_dump() for q in draft.questions],
            ai_model=draft.ai_model,
            status=QuizStatus.COMPLETED,
            retry_count=draft.attempts - 1,
        )
        await quiz_store.create_quiz(session, quiz, commit=False)
        await quiz_store.update_book_status(
            session, book, BookQuizStatus.COMPLETED, quiz_id=quiz.id
        )
        logger.info(f"[book={book_id}] Quiz generated and saved for '{book.title}' (quiz_id: {quiz.id})")

    async def _record_failure(
        self, session: AsyncSession, book: Book, error: QuizGenerationError
    ) -> None:
        # Status flip and failure marker land in one transaction
        await quiz_store.update_book_status(session, book, BookQuizStatus.FAILED, commit=False)
        failed_quiz = Quiz(
            book_id=book.id,
            questions=[],
            ai_model=self.generator.model_name,
            status=QuizStatus.FAILED,
            retry_count=self.generator.retry_limit,
            error_log=str(error),
        )
        await quiz_store.create_quiz(session, failed_quiz, commit=False)
        await session.commit()

    async def _mark_failed_after_error(self, book_id: int) -> None:
        # Keep the book out of "generating" so the next sweep picks it up
        try:
            async with self.session_maker() as session:
                book = await quiz_store.get_book(session, book_id)
                if book is not None and book.quiz_status == BookQuizStatus.GENERATING:
                    await quiz_store.update_book_status(session, book, BookQuizStatus.FAILED)
        except SQLAlchemyError as e:
            logger.error(f"[book={book_id}] Could not mark quiz as failed: {e}")

    # --------------------
    # Sweeps
    # --------------------

    async def process_all_pending(self) -> int:
        """Enqueue every book whose quiz is pending or failed. Returns the number queued."""
        try:
            async with self.session_maker() as session:
                books = await quiz_store.find_books_by_status(
                    session, [BookQuizStatus.PENDING, BookQuizStatus.FAILED]
                )
        except SQLAlchemyError as e:
            logger.error(f"Failed to get pending books: {e}")
            return 0

        if not books:
            logger.info("No pending quizzes to process")
            return 0

        logger.info(f"Found {len(books)} books with pending quizzes")
        return sum(1 for book in books if self.enqueue(book.id))

    async def retry_failed_quizzes(self) -> int:
        """Reset failed books to pending and enqueue them. Returns the number queued.

        Books still held by a worker are left alone. A book the queue refuses
        goes back to failed so the next tick sees it again.
        """
        try:
            async with self.session_maker() as session:
                books = await quiz_store.find_books_by_status(session, [BookQuizStatus.FAILED])
                books = [book for book in books if book.id not in self._tracked]
                if not books:
                    logger.info("No failed quizzes to retry")
                    return 0

                logger.info(f"Retrying {len(books)} failed quizzes")
                for book in books:
                    await quiz_store.update_book_status(
                        session, book, BookQuizStatus.PENDING, commit=False
                    )
                await session.commit()

                queued = 0
                dropped = []
                for book in books:
                    if self.enqueue(book.id):
                        queued += 1
                    elif book.id not in self._tracked:
                        dropped.append(book)

                if dropped:
                    logger.warning(f"Could not queue {len(dropped)} failed quizzes, keeping them failed")
                    for book in dropped:
                        await quiz_store.update_book_status(
                            session, book, BookQuizStatus.FAILED, commit=False
                        )
                    await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to reset failed quizzes: {e}")
            return 0

        return queued

    def schedule_pending_sweep(self) -> asyncio.Task:
        """Run ``process_all_pending`` once in the background (used at boot)."""
        self._sweep_task = asyncio.create_task(self.process_all_pending(), name="quiz-pending-sweep")
        return self._sweep_task

    async def _cancel_pending_sweep(self) -> None:
        task, self._sweep_task = self._sweep_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def start_periodic_retry(self, interval: float) -> None:
        if self._retry_task is not None and not self._retry_task.done():
            logger.info("Periodic retry already running")
            return

        self._retry_stop = asyncio.Event()
        self._retry_task = asyncio.create_task(
            self._periodic_retry_loop(interval, self._retry_stop), name="quiz-periodic-retry"
        )
        logger.info(f"Periodic retry started (interval: {interval}s)")

    async def stop_periodic_retry(self) -> None:
        task, stop_event = self._retry_task, self._retry_stop
        self._retry_task, self._retry_stop = None, None
        if task is None:
            return
        stop_event.set()
        await task
        logger.info("Periodic retry stopped")

    async def _periodic_retry_loop(self, interval: float, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                logger.info("Periodic retry check triggered")
                try:
                    await self.retry_failed_quizzes()
                except Exception:
                    logger.exception("Periodic retry check failed")

    # --------------------
    # Stats
    # --------------------

    async def get_stats(self) -> WorkerStats:
        async with self.session_maker() as session:
            counts = await quiz_store.count_books_by_status(session)
            total = await quiz_store.count_books(session)

        return WorkerStats(
            total_books=total,
            pending=counts[BookQuizStatus.PENDING],
            generating=counts[BookQuizStatus.GENERATING],
            completed=counts[BookQuizStatus.COMPLETED],
            failed=counts[BookQuizStatus.FAILED],
            queue_size=self.get_queue_depth(),
            worker_count=self.worker_count,
            worker_running=self._running,
        )

    async def log_stats(self) -> None:
        try:
            stats = await self.get_stats()
        except SQLAlchemyError as e:
            logger.error(f"Failed to collect quiz worker stats: {e}")
            return
        logger.info(f"Quiz worker stats:\n{json.dumps(stats.model_dump(), indent=2)}")
