"""create books and quizzes

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3f1c2a9d7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    if not inspector.has_table("books"):
        op.create_table(
            "books",
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=500), nullable=False),
            sa.Column("authors", sa.JSON(), nullable=True),
            sa.Column("isbn", sa.String(length=32), nullable=False),
            sa.Column("isbn13", sa.String(length=32), nullable=True),
            sa.Column("description", sa.String(), nullable=True),
            sa.Column("publisher", sa.String(length=255), nullable=True),
            sa.Column("published_date", sa.String(length=50), nullable=True),
            sa.Column("page_count", sa.Integer(), nullable=True),
            sa.Column("categories", sa.JSON(), nullable=True),
            sa.Column("language", sa.String(length=20), nullable=True),
            sa.Column("cover_url", sa.String(length=500), nullable=True),
            sa.Column("thumbnail_url", sa.String(length=500), nullable=True),
            sa.Column("data_sources", sa.JSON(), nullable=True),
            sa.Column("source_data", sa.JSON(), nullable=True),
            sa.Column("quiz_id", sa.Integer(), nullable=True),
            sa.Column("quiz_status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_books_isbn", "books", ["isbn"], unique=True)
        op.create_index("ix_books_quiz_id", "books", ["quiz_id"])
        op.create_index("ix_books_quiz_status", "books", ["quiz_status"])

    if not inspector.has_table("quizzes"):
        op.create_table(
            "quizzes",
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("book_id", sa.Integer(), nullable=False),
            sa.Column("questions", sa.JSON(), nullable=False),
            sa.Column("ai_model", sa.String(length=100), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False),
            sa.Column("retry_count", sa.Integer(), nullable=False),
            sa.Column("error_log", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["book_id"], ["books.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_quizzes_book_id", "quizzes", ["book_id"], unique=True)


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    if inspector.has_table("quizzes"):
        op.drop_index("ix_quizzes_book_id", table_name="quizzes")
        op.drop_table("quizzes")
    if inspector.has_table("books"):
        op.drop_index("ix_books_quiz_status", table_name="books")
        op.drop_index("ix_books_quiz_id", table_name="books")
        op.drop_index("ix_books_isbn", table_name="books")
        op.drop_table("books")
