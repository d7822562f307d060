"""Shared pytest fixtures for the book_ai_bridge test suite."""

import logging
import uuid
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from shared.clients.meta.sqlite.MetaClientSqlite import MetaClientSqlite
from shared.clients.rag.models.SearchHit import SearchHit
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.helper.HelperConfig import HelperConfig
from shared.helper.fingerprint import fingerprint
from shared.logging.logging_setup import ColorLogger
from shared.models.book import BookFrontmatter, ParsedBook

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

TEST_ENV = {
    "LLM_ENGINE": "mistral",
    "LLM_MISTRAL_API_KEY": "test-key",
    "LLM_MISTRAL_BASE_URL": "http://mistral.test",
    "RAG_ENGINE": "qdrant",
    "RAG_QDRANT_BASE_URL": "http://qdrant.test",
    "META_ENGINE": "sqlite",
    "APP_API_KEY": "secret",
    "APP_PUBLIC_URL": "https://books.example.org",
}


@pytest.fixture
def logger() -> ColorLogger:
    return ColorLogger(logging.getLogger("tests"))


@pytest.fixture
def helper_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, logger: ColorLogger) -> HelperConfig:
    """HelperConfig over a clean, fully configured test environment."""
    for key in ("LLM_MODEL", "LLM_CHAT_MODEL", "RAG_VECTOR_SIZE", "RAG_QDRANT_API_KEY", "RAG_QDRANT_COLLECTION"):
        monkeypatch.delenv(key, raising=False)
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.setenv("META_SQLITE_PATH", str(tmp_path / "books.sqlite3"))
    return HelperConfig(logger=logger)


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


@pytest.fixture
async def meta_client(helper_config: HelperConfig):
    """A booted SQLite metadata store in tmp_path."""
    client = MetaClientSqlite(helper_config=helper_config)
    await client.boot()
    yield client
    await client.close()


class FakeRAGClient:
    """In-memory stand-in for the vector index, recording the call order."""

    def __init__(self) -> None:
        self.points: dict[str, tuple[list[float], VectorPoint]] = {}
        self.calls: list[tuple[str, object]] = []
        self.hits: list[SearchHit] = []
        self.search_calls: list[dict] = []

    async def do_ensure_collection(self) -> bool:
        return False

    async def do_delete_by_book(self, book_id: str) -> None:
        self.calls.append(("delete", book_id))
        self.points = {pid: p for pid, p in self.points.items() if p[1].book_id != book_id}

    async def do_upsert_points(self, points: list[tuple[list[float], VectorPoint]]) -> int:
        self.calls.append(("upsert", len(points)))
        for vector, payload in points:
            self.points[str(uuid.uuid4())] = (vector, payload)
        return len(points)

    async def do_search(self, vector, tags=None, author=None, limit=5) -> list[SearchHit]:
        self.search_calls.append({"vector": vector, "tags": tags, "author": author, "limit": limit})
        return self.hits[:limit]

    async def do_count(self, book_id: str | None = None) -> int:
        return sum(1 for _, payload in self.points.values() if book_id is None or payload.book_id == book_id)


@pytest.fixture
def rag_client() -> FakeRAGClient:
    return FakeRAGClient()


@pytest.fixture
def llm_client() -> MagicMock:
    """LLM gateway mock with a configured key and deterministic answers."""
    client = MagicMock()
    client.has_api_key.return_value = True
    client.do_summarize = AsyncMock(return_value="Un résumé.")
    client.do_summarize_chapters = AsyncMock(
        side_effect=lambda chapters: [f"Résumé de {c.title or 'intro'}" if c.text.strip() else "" for c in chapters]
    )
    client.do_embed = AsyncMock(side_effect=lambda texts: [[float(i), 1.0] for i, _ in enumerate(texts)])
    client.do_chat_answer = AsyncMock(return_value="**Réponse** tirée des extraits.")
    return client


# ---------------------------------------------------------------------------
# Books
# ---------------------------------------------------------------------------


@pytest.fixture
def make_book():
    """Factory building a ParsedBook without going through a file."""

    def _make(reference: str, title: str, content: str = "Texte du livre.", **frontmatter) -> ParsedBook:
        return ParsedBook(
            frontmatter=BookFrontmatter(reference=reference, title=title, **frontmatter),
            content=content,
            fingerprint=fingerprint(f"{reference}|{title}|{content}|{sorted(frontmatter.items())}".encode()),
        )

    return _make


def manuscript(reference: str, title: str, body: str, **extra) -> str:
    """Render a markdown manuscript with YAML front-matter."""
    lines = ["---", f"reference: {reference}", f"title: {title}"]
    for key, value in extra.items():
        if isinstance(value, list):
            lines.append(f"{key}:")
            lines.extend(f"  - {item}" for item in value)
        else:
            lines.append(f"{key}: {value}")
    lines.append("---")
    return "\n".join(lines) + "\n" + body


@pytest.fixture
def write_manuscript():
    """Factory writing a manuscript file and returning its path."""

    def _write(directory: Path, filename: str, reference: str, title: str, body: str, **extra) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / filename
        path.write_text(manuscript(reference, title, body, **extra), encoding="utf-8")
        return path

    return _write
