from pydantic import BaseModel

from shared.models.book import BookSearchResult


class SearchResponse(BaseModel):
    books: list[BookSearchResult]
    total: int


class SemanticSearchResponse(BaseModel):
    books: list[BookSearchResult]


class ErrorResponse(BaseModel):
    error: str
