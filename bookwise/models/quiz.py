from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy import JSON, Column, ForeignKey, Integer, Text
from sqlmodel import Field, SQLModel

from bookwise.models.base import TimestampedModel


class QuizStatus:
    COMPLETED = "completed"
    FAILED = "failed"
    RETRYING = "retrying"


class QuizQuestion(BaseModel):
    question: str
    options: List[str]
    answer: str
    explanation: str


class QuizBase(SQLModel):
    # One quiz per book
    book_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("books.id", ondelete="CASCADE"),
            unique=True,
            index=True,
            nullable=False,
        )
    )
    questions: List[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    ai_model: Optional[str] = Field(default=None, max_length=100)
    status: str = Field(default=QuizStatus.COMPLETED, max_length=20)
    retry_count: int = 0
    error_log: Optional[str] = Field(default=None, sa_column=Column(Text))


class Quiz(QuizBase, TimestampedModel, table=True):
    __tablename__ = "quizzes"

    id: Optional[int] = Field(default=None, primary_key=True)


class QuizRead(BaseModel):
    id: int
    book_id: int
    quiz: List[QuizQuestion]
    ai_model: Optional[str] = None
    created_at: Optional[datetime] = None
