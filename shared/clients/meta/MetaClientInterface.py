from abc import abstractmethod
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator
import uuid

from sqlalchemy import delete, exists, func, insert, or_, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.sql.elements import ColumnElement

from shared.clients.ClientInterface import ClientInterface
from shared.clients.meta import schema
from shared.exceptions import StoreError
from shared.helper.HelperConfig import HelperConfig
from shared.models.book import (
    BookDetail,
    BookReference,
    BookSearchPage,
    BookSearchResult,
    ChapterSummary,
    ExistingBook,
    ParsedBook,
    ResellerUrl,
)


class MetaClientInterface(ClientInterface):
    """Relational metadata store: the single source of truth for books.

    All operations go through SQLAlchemy Core on an AsyncEngine. Engines
    differ only in their connection URL, extra DDL and the full-text
    predicate used by do_search().
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._engine: AsyncEngine | None = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "meta"

    def _get_error_class(self) -> type[StoreError]:
        return StoreError

    ################ CONNECTION ##################
    @abstractmethod
    def _get_database_url(self) -> str:
        """
        Returns the SQLAlchemy async database URL (e.g. "postgresql+asyncpg://user:pw@host/db").
        """
        pass

    def _get_engine_options(self) -> dict:
        """
        Returns extra keyword arguments for create_async_engine().
        """
        return {}

    def _get_extra_ddl(self) -> list[str]:
        """
        Returns engine-specific DDL run after create_all() (e.g. full-text indexes).
        Every statement must be idempotent.
        """
        return []

    ################ SEARCH ##################
    @abstractmethod
    def _get_fulltext_condition(self, query: str) -> ColumnElement[bool]:
        """
        Returns the full-text predicate over books.search_projection for a non-blank query.
        """
        pass

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def boot(self) -> None:
        """Create the engine and the schema (idempotent)."""
        self._engine = create_async_engine(self._get_database_url(), **self._get_engine_options())
        async with self._transaction() as conn:
            await conn.run_sync(schema.metadata.create_all)
            for statement in self._get_extra_ddl():
                await conn.execute(text(statement))

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    async def do_healthcheck(self) -> bool:
        try:
            async with self._transaction() as conn:
                await conn.execute(text("SELECT 1"))
        except StoreError as exc:
            self.logging.warning("META client '%s' healthcheck failed: %s", self.get_engine_name(), exc)
            return False
        return True

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncConnection]:
        """Yield a connection inside one transaction; SQLAlchemy errors become StoreError."""
        if self._engine is None:
            raise StoreError("META client not initialised. Call boot() before making requests.")
        try:
            async with self._engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            self.logging.error("Metadata store operation failed on %s: %s", self.get_engine_name(), exc)
            raise StoreError(f"Metadata store operation failed: {exc}") from exc

    ##########################################
    ################ HELPERS #################
    ##########################################

    @staticmethod
    def build_search_projection(book: ParsedBook) -> str:
        fm = book.frontmatter
        return f"{fm.title} {fm.editor or ''} {' '.join(fm.authors)} {book.content}"

    def _book_values(self, book: ParsedBook, summary: str | None) -> dict:
        fm = book.frontmatter
        return {
            "fingerprint": book.fingerprint,
            "title": fm.title,
            "editor": fm.editor,
            "edition_date": fm.edition_date,
            "summary": summary,
            "introduction": fm.introduction,
            "cover_text": fm.cover_text,
            "ean": fm.ean,
            "isbn": fm.isbn,
            "search_projection": self.build_search_projection(book),
        }

    async def _get_or_create_name(self, conn: AsyncConnection, table, name: str) -> int:
        # insert-or-reuse by unique name
        found = await conn.scalar(select(table.c.id).where(table.c.name == name))
        if found is not None:
            return found
        result = await conn.execute(insert(table).values(name=name))
        return result.inserted_primary_key[0]

    async def _write_children(self, conn: AsyncConnection, book_id: uuid.UUID, book: ParsedBook) -> None:
        fm = book.frontmatter
        for name in dict.fromkeys(fm.authors):
            author_id = await self._get_or_create_name(conn, schema.authors, name)
            await conn.execute(insert(schema.book_authors).values(book_id=book_id, author_id=author_id))
        for name in dict.fromkeys(fm.tags):
            tag_id = await self._get_or_create_name(conn, schema.tags, name)
            await conn.execute(insert(schema.book_tags).values(book_id=book_id, tag_id=tag_id))
        urls = [{"book_id": book_id, "url": url, "kind": "paper"} for url in fm.reseller_paper_urls]
        urls += [{"book_id": book_id, "url": url, "kind": "digital"} for url in fm.reseller_digital_urls]
        if urls:
            await conn.execute(insert(schema.reseller_urls), urls)

    async def _fetch_names(self, conn: AsyncConnection, book_ids: list[uuid.UUID]) -> tuple[dict, dict]:
        """Returns ({book_id: [author names]}, {book_id: [tag names]}), sorted and distinct."""
        authors_by_book: dict[uuid.UUID, set[str]] = defaultdict(set)
        tags_by_book: dict[uuid.UUID, set[str]] = defaultdict(set)
        if not book_ids:
            return {}, {}
        author_rows = await conn.execute(
            select(schema.book_authors.c.book_id, schema.authors.c.name)
            .join(schema.authors, schema.authors.c.id == schema.book_authors.c.author_id)
            .where(schema.book_authors.c.book_id.in_(book_ids))
        )
        for book_id, name in author_rows:
            authors_by_book[book_id].add(name)
        tag_rows = await conn.execute(
            select(schema.book_tags.c.book_id, schema.tags.c.name)
            .join(schema.tags, schema.tags.c.id == schema.book_tags.c.tag_id)
            .where(schema.book_tags.c.book_id.in_(book_ids))
        )
        for book_id, name in tag_rows:
            tags_by_book[book_id].add(name)
        return (
            {book_id: sorted(names) for book_id, names in authors_by_book.items()},
            {book_id: sorted(names) for book_id, names in tags_by_book.items()},
        )

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_find_by_reference(self, reference: str) -> ExistingBook | None:
        """Return the id and fingerprint of a stored book, None if the reference is unknown."""
        async with self._transaction() as conn:
            row = (await conn.execute(
                select(schema.books.c.id, schema.books.c.fingerprint).where(schema.books.c.reference == reference)
            )).first()
        if row is None:
            return None
        return ExistingBook(id=row.id, fingerprint=row.fingerprint)

    async def do_insert_book(self, book: ParsedBook, summary: str | None) -> uuid.UUID:
        """Insert a new book with its authors, tags and reseller links in one transaction.

        Returns:
            uuid.UUID: The generated book id.
        """
        book_id = uuid.uuid4()
        async with self._transaction() as conn:
            await conn.execute(
                insert(schema.books).values(
                    id=book_id,
                    reference=book.frontmatter.reference,
                    **self._book_values(book, summary),
                )
            )
            await self._write_children(conn, book_id, book)
        return book_id

    async def do_update_book(self, reference: str, book: ParsedBook, summary: str | None) -> uuid.UUID:
        """Update a stored book in place; author, tag and reseller links are replaced wholesale.

        Raises:
            StoreError: If no book has this reference.
        """
        async with self._transaction() as conn:
            book_id = await conn.scalar(select(schema.books.c.id).where(schema.books.c.reference == reference))
            if book_id is None:
                raise StoreError(f"Cannot update unknown book reference '{reference}'")
            await conn.execute(
                update(schema.books)
                .where(schema.books.c.id == book_id)
                .values(**self._book_values(book, summary))
            )
            for child in (schema.book_authors, schema.book_tags, schema.reseller_urls):
                await conn.execute(delete(child).where(child.c.book_id == book_id))
            await self._write_children(conn, book_id, book)
        return book_id

    async def do_replace_chapter_summaries(self, book_id: uuid.UUID, summaries: list[ChapterSummary]) -> int:
        """Delete every chapter summary of the book, then store the non-empty ones.

        Returns:
            int: Number of summaries stored.
        """
        rows = [
            {"book_id": book_id, "chapter_idx": s.chapter_idx, "title": s.title, "summary": s.summary}
            for s in summaries
            if s.summary.strip()
        ]
        async with self._transaction() as conn:
            await conn.execute(delete(schema.chapter_summaries).where(schema.chapter_summaries.c.book_id == book_id))
            if rows:
                await conn.execute(insert(schema.chapter_summaries), rows)
        return len(rows)

    async def do_search(
        self,
        query: str = "",
        tags: list[str] | None = None,
        author: str | None = None,
        page: int = 0,
        page_size: int = 20,
    ) -> BookSearchPage:
        """Catalogue search, most recently updated first.

        A blank query lists every book matching the filters. Otherwise a book
        matches on the full-text predicate or on a substring of its title or
        editor. Tags are OR-ed (at least one), the author must match exactly.
        """
        books = schema.books
        conditions: list[ColumnElement[bool]] = []
        if tags:
            conditions.append(exists(
                select(schema.book_tags.c.book_id)
                .join(schema.tags, schema.tags.c.id == schema.book_tags.c.tag_id)
                .where(schema.book_tags.c.book_id == books.c.id, schema.tags.c.name.in_(tags))
            ))
        if author:
            conditions.append(exists(
                select(schema.book_authors.c.book_id)
                .join(schema.authors, schema.authors.c.id == schema.book_authors.c.author_id)
                .where(schema.book_authors.c.book_id == books.c.id, schema.authors.c.name == author)
            ))
        query = (query or "").strip()
        if query:
            conditions.append(or_(
                self._get_fulltext_condition(query),
                books.c.title.icontains(query, autoescape=True),
                books.c.editor.icontains(query, autoescape=True),
            ))

        page = max(page, 0)
        async with self._transaction() as conn:
            total = await conn.scalar(select(func.count()).select_from(books).where(*conditions))
            rows = (await conn.execute(
                select(
                    books.c.id, books.c.reference, books.c.title, books.c.editor,
                    books.c.edition_date, books.c.summary,
                )
                .where(*conditions)
                .order_by(books.c.updated_at.desc(), books.c.reference)
                .limit(page_size)
                .offset(page * page_size)
            )).all()
            authors_by_book, tags_by_book = await self._fetch_names(conn, [row.id for row in rows])

        return BookSearchPage(
            books=[
                BookSearchResult(
                    id=row.id,
                    reference=row.reference,
                    title=row.title,
                    authors=authors_by_book.get(row.id, []),
                    tags=tags_by_book.get(row.id, []),
                    editor=row.editor,
                    edition_date=row.edition_date,
                    summary=row.summary,
                )
                for row in rows
            ],
            total=total or 0,
        )

    async def do_get_detail(self, reference: str) -> BookDetail | None:
        """Everything stored about one book, None if the reference is unknown."""
        books = schema.books
        async with self._transaction() as conn:
            row = (await conn.execute(select(books).where(books.c.reference == reference))).first()
            if row is None:
                return None
            authors_by_book, tags_by_book = await self._fetch_names(conn, [row.id])
            urls = (await conn.execute(
                select(schema.reseller_urls.c.url, schema.reseller_urls.c.kind)
                .where(schema.reseller_urls.c.book_id == row.id)
                .order_by(schema.reseller_urls.c.kind, schema.reseller_urls.c.url)
            )).all()
            chapters = (await conn.execute(
                select(
                    schema.chapter_summaries.c.chapter_idx,
                    schema.chapter_summaries.c.title,
                    schema.chapter_summaries.c.summary,
                )
                .where(schema.chapter_summaries.c.book_id == row.id)
                .order_by(schema.chapter_summaries.c.chapter_idx)
            )).all()

        return BookDetail(
            id=row.id,
            reference=row.reference,
            title=row.title,
            authors=authors_by_book.get(row.id, []),
            editor=row.editor,
            tags=tags_by_book.get(row.id, []),
            edition_date=row.edition_date,
            summary=row.summary,
            introduction=row.introduction,
            cover_text=row.cover_text,
            ean=row.ean,
            isbn=row.isbn,
            reseller_urls=[ResellerUrl(url=u.url, kind=u.kind) for u in urls],
            chapter_summaries=[
                ChapterSummary(chapter_idx=c.chapter_idx, title=c.title, summary=c.summary) for c in chapters
            ],
        )

    async def do_list_tags(self) -> list[str]:
        """Distinct names of tags linked to at least one book, sorted."""
        async with self._transaction() as conn:
            result = await conn.scalars(
                select(schema.tags.c.name)
                .join(schema.book_tags, schema.book_tags.c.tag_id == schema.tags.c.id)
                .distinct()
                .order_by(schema.tags.c.name)
            )
            return list(result)

    async def do_list_authors(self) -> list[str]:
        """Distinct names of authors linked to at least one book, sorted."""
        async with self._transaction() as conn:
            result = await conn.scalars(
                select(schema.authors.c.name)
                .join(schema.book_authors, schema.book_authors.c.author_id == schema.authors.c.id)
                .distinct()
                .order_by(schema.authors.c.name)
            )
            return list(result)

    async def do_list_references(self) -> list[BookReference]:
        async with self._transaction() as conn:
            rows = (await conn.execute(
                select(schema.books.c.reference, schema.books.c.title).order_by(schema.books.c.title)
            )).all()
        return [BookReference(reference=row.reference, title=row.title) for row in rows]
