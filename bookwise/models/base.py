"""Shared column definitions for the bookwise tables."""

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def _timestamp(**column_kwargs: Any) -> Any:
    return Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),
        sa_column_kwargs={"server_default": sa.func.now(), **column_kwargs},
    )


class TimestampedModel(SQLModel):
    """Adds server-managed ``created_at`` / ``updated_at`` columns.

    ``updated_at`` is refreshed by SQLAlchemy on every UPDATE issued through
    the ORM, which is what the quiz pipeline relies on to show when a book's
    quiz status last moved.
    """

    created_at: datetime | None = _timestamp()
    updated_at: datetime | None = _timestamp(onupdate=sa.func.now())
