"""Pydantic models for the grounded chat exchange."""

from typing import Literal

from pydantic import BaseModel


class ChatSource(BaseModel):
    """A cited passage shown under an assistant answer."""

    reference: str
    title: str
    chunk_text: str


class ChatMessage(BaseModel):
    """One turn of the conversation. Only assistant turns carry sources."""

    role: Literal["user", "assistant"]
    content: str
    sources: list[ChatSource] = []
