"""Relational schema of the metadata store (SQLAlchemy Core).

books 1-n reseller_urls, 1-n chapter_summaries, n-m authors, n-m tags.
Child rows are always replaced wholesale, never diffed.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
)

metadata = MetaData()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


books = Table(
    "books",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("reference", String(255), nullable=False, unique=True),
    Column("fingerprint", String(64), nullable=False),
    Column("title", Text, nullable=False),
    Column("editor", Text),
    Column("edition_date", String(64)),
    Column("summary", Text),
    Column("introduction", Text),
    Column("cover_text", Text),
    Column("ean", String(32)),
    Column("isbn", String(32)),
    # title + editor + authors + body, the input of the full-text predicate
    Column("search_projection", Text, nullable=False, default=""),
    Column("created_at", DateTime(timezone=True), nullable=False, default=_utcnow),
    Column("updated_at", DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow),
)

authors = Table(
    "authors",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False, unique=True),
)

tags = Table(
    "tags",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False, unique=True),
)

book_authors = Table(
    "book_authors",
    metadata,
    Column("book_id", Uuid, ForeignKey("books.id", ondelete="CASCADE"), primary_key=True),
    Column("author_id", Integer, ForeignKey("authors.id", ondelete="CASCADE"), primary_key=True),
)

book_tags = Table(
    "book_tags",
    metadata,
    Column("book_id", Uuid, ForeignKey("books.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)

reseller_urls = Table(
    "reseller_urls",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("book_id", Uuid, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("url", Text, nullable=False),
    Column("kind", String(16), nullable=False),
    CheckConstraint("kind IN ('paper', 'digital')", name="ck_reseller_urls_kind"),
)

chapter_summaries = Table(
    "chapter_summaries",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("book_id", Uuid, ForeignKey("books.id", ondelete="CASCADE"), nullable=False),
    Column("chapter_idx", Integer, nullable=False),
    Column("title", Text),
    Column("summary", Text, nullable=False),
    UniqueConstraint("book_id", "chapter_idx", name="uq_chapter_summaries_book_chapter"),
)
