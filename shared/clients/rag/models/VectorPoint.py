"""VectorPoint model: payload stored alongside each chunk vector in the RAG backend."""

from pydantic import BaseModel


class VectorPoint(BaseModel):
    """Payload stored alongside each chunk vector.

    Denormalised from the metadata store so searches can filter on tags and
    authors without a join back to it.

    Attributes:
        book_id:      Metadata-store id of the book (UUID string); delete-by-book key.
        reference:    Natural key of the book.
        title:        Book title, shown in chat sources.
        chunk_index:  Zero-based position of this chunk within its chapter.
        chunk_text:   Raw text content of this chunk.
        chapter_idx:  Zero-based chapter position in the book.
        chapter:      Chapter title, "" for an untitled chapter.
        authors:      Author names (keyword-indexed).
        tags:         Tag names (keyword-indexed).
    """

    book_id: str
    reference: str
    title: str
    chunk_index: int
    chunk_text: str
    chapter_idx: int
    chapter: str = ""
    authors: list[str] = []
    tags: list[str] = []
