from pydantic import BaseModel, Field

from shared.models.chat import ChatMessage


class SearchRequest(BaseModel):
    query: str = ""
    tags: list[str] = []
    author: str | None = None
    page: int = Field(default=0, ge=0)
    page_size: int = Field(default=20, ge=1, le=100)


class SemanticSearchRequest(BaseModel):
    query: str = Field(min_length=1)
    tags: list[str] = []
    author: str | None = None
    limit: int = Field(default=10, ge=1, le=50)


class ChatRequest(BaseModel):
    messages: list[ChatMessage]
