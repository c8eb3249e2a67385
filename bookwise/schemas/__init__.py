from bookwise.schemas.book import BookCreateResult, BookPage, Pagination
from bookwise.schemas.quiz import QuizEnqueueResult, WorkerStats

__all__ = ["BookCreateResult", "BookPage", "Pagination", "QuizEnqueueResult", "WorkerStats"]
