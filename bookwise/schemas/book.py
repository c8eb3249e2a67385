from typing import List

from pydantic import BaseModel

from bookwise.models import BookRead


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class BookPage(BaseModel):
    data: List[BookRead]
    pagination: Pagination


class BookCreateResult(BaseModel):
    data: BookRead
    # True when the ISBN was already stored and nothing was written
    cache_hit: bool
    quiz_queued: bool
