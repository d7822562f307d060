"""Pydantic models for books.

Hierarchy:
  BookFrontmatter   — structured metadata block at the top of a manuscript.
  ParsedBook        — front-matter + body + content fingerprint of one file.
  Chapter / Chunk   — text segments derived from the body.
  ExistingBook      — what the metadata store knows for idempotency checks.
  BookSearchResult  — one row of a catalogue search.
  BookDetail        — everything stored about one book.
"""

from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, field_validator


class BookFrontmatter(BaseModel):
    """Front-matter of a book manuscript. `reference` is the natural key."""

    reference: str
    title: str
    authors: list[str] = []
    editor: str | None = None
    tags: list[str] = []
    edition_date: str | None = None
    summary: str | None = None
    introduction: str | None = None
    cover_text: str | None = None
    ean: str | None = None
    isbn: str | None = None
    reseller_paper_urls: list[str] = []
    reseller_digital_urls: list[str] = []

    @field_validator("reference", "title")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("reference", "title", "editor", "edition_date", "summary", "introduction", "cover_text", "ean", "isbn", mode="before")
    @classmethod
    def _scalar_to_str(cls, value):
        # YAML turns 2021-03-01 into a date and bare EAN/ISBN digits into ints
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("authors", "tags", "reseller_paper_urls", "reseller_digital_urls", mode="before")
    @classmethod
    def _none_to_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value

    @field_validator("authors", "tags", "reseller_paper_urls", "reseller_digital_urls")
    @classmethod
    def _strip_items(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value if item and item.strip()]


class ParsedBook(BaseModel):
    frontmatter: BookFrontmatter
    content: str
    fingerprint: str


class Chapter(BaseModel):
    """A heading-delimited section of the body. `title` is None before the first heading."""

    title: str | None = None
    text: str


class Chunk(BaseModel):
    """A fixed-size character window of one chapter."""

    chapter_idx: int
    chapter_title: str | None = None
    chunk_index: int
    text: str


class ExistingBook(BaseModel):
    id: UUID
    fingerprint: str


class ResellerUrl(BaseModel):
    url: str
    kind: Literal["paper", "digital"]


class ChapterSummary(BaseModel):
    chapter_idx: int
    title: str | None = None
    summary: str


class BookSearchResult(BaseModel):
    id: UUID
    reference: str
    title: str
    authors: list[str] = []
    tags: list[str] = []
    editor: str | None = None
    edition_date: str | None = None
    summary: str | None = None


class BookSearchPage(BaseModel):
    books: list[BookSearchResult]
    total: int


class BookDetail(BaseModel):
    id: UUID
    reference: str
    title: str
    authors: list[str] = []
    editor: str | None = None
    tags: list[str] = []
    edition_date: str | None = None
    summary: str | None = None
    introduction: str | None = None
    cover_text: str | None = None
    ean: str | None = None
    isbn: str | None = None
    reseller_urls: list[ResellerUrl] = []
    chapter_summaries: list[ChapterSummary] = []


class BookReference(BaseModel):
    reference: str
    title: str
