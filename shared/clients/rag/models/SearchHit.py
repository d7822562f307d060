from pydantic import BaseModel


class SearchHit(BaseModel):
    """One similarity-search result, validated from the raw backend response."""

    reference: str
    title: str
    chunk_text: str
    score: float
