from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from bookwise.models.base import TimestampedModel


class BookQuizStatus:
    # "pending" -> "generating" -> "completed" | "failed"; the retry sweep
    # moves "failed" back to "pending".
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"

    ALL = (PENDING, GENERATING, COMPLETED, FAILED)


class BookBase(SQLModel):
    title: str = Field(max_length=500)
    authors: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    isbn: str = Field(max_length=32, index=True, unique=True)
    isbn13: Optional[str] = Field(default=None, max_length=32)
    description: Optional[str] = None
    publisher: Optional[str] = Field(default=None, max_length=255)
    published_date: Optional[str] = Field(default=None, max_length=50)
    page_count: Optional[int] = None
    categories: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    language: Optional[str] = Field(default=None, max_length=20)
    cover_url: Optional[str] = Field(default=None, max_length=500)
    thumbnail_url: Optional[str] = Field(default=None, max_length=500)
    data_sources: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))


class Book(BookBase, TimestampedModel, table=True):
    __tablename__ = "books"

    id: Optional[int] = Field(default=None, primary_key=True)
    # Raw provider payloads, kept for debugging merges
    source_data: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    quiz_id: Optional[int] = Field(default=None, index=True)
    quiz_status: str = Field(
        default=BookQuizStatus.PENDING, max_length=20, index=True
    )


class BookCreate(BookBase):
    source_data: Optional[dict] = None


class BookRead(BookBase):
    id: int
    quiz_id: Optional[int] = None
    quiz_status: str
    created_at: Optional[datetime] = None
