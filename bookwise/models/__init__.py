from bookwise.models.book import Book, BookCreate, BookQuizStatus, BookRead
from bookwise.models.quiz import Quiz, QuizQuestion, QuizRead, QuizStatus

__all__ = [
    "Book",
    "BookCreate",
    "BookQuizStatus",
    "BookRead",
    "Quiz",
    "QuizQuestion",
    "QuizRead",
    "QuizStatus",
]
