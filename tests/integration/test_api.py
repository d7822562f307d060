"""API tests: routers, auth and error payloads with a mocked QueryService."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from server.api_server import create_app
from shared.exceptions import ConfigurationError, NotFoundError, ProviderError, StoreError
from shared.models.book import BookDetail, BookReference, BookSearchPage, BookSearchResult
from shared.models.chat import ChatMessage, ChatSource

_BOOK_ID = uuid.UUID("12345678-1234-5678-1234-567812345678")

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def query_service() -> MagicMock:
    service = MagicMock()
    service.do_search = AsyncMock(return_value=BookSearchPage(
        books=[BookSearchResult(id=_BOOK_ID, reference="dune", title="Dune", authors=["Frank Herbert"], tags=["sf"])],
        total=1,
    ))
    service.do_semantic_search = AsyncMock(return_value=[])
    service.do_list_tags = AsyncMock(return_value=["classique", "sf"])
    service.do_list_authors = AsyncMock(return_value=["Frank Herbert"])
    service.do_get_book = AsyncMock(return_value=None)
    service.do_list_references = AsyncMock(return_value=[BookReference(reference="dune", title="Dune")])
    service.do_chat = AsyncMock(return_value=ChatMessage(
        role="assistant",
        content="<p>Arrakis.</p>",
        sources=[ChatSource(reference="dune", title="Dune", chunk_text="Le désert")],
    ))
    return service


@pytest.fixture
def client(helper_config, logger, query_service) -> TestClient:
    app = create_app(with_lifespan=False)
    app.state.logging = logger
    app.state.helper_config = helper_config
    app.state.query_service = query_service
    return TestClient(app, raise_server_exceptions=False)


_CHAT_BODY = {"messages": [{"role": "user", "content": "Où se passe Dune ?"}]}


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------


class TestCatalogue:
    def test_search(self, client, query_service) -> None:
        response = client.post("/search", json={"query": "dune", "tags": ["sf"], "page": 1, "page_size": 10})

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["books"][0]["reference"] == "dune"
        assert body["books"][0]["id"] == str(_BOOK_ID)
        query_service.do_search.assert_awaited_once_with(query="dune", tags=["sf"], author=None, page=1, page_size=10)

    def test_search_defaults(self, client, query_service) -> None:
        assert client.post("/search", json={}).status_code == 200
        query_service.do_search.assert_awaited_once_with(query="", tags=[], author=None, page=0, page_size=20)

    def test_invalid_pagination_is_rejected(self, client) -> None:
        response = client.post("/search", json={"page": -1})
        assert response.status_code == 422
        assert "page" in response.json()["error"]

    def test_semantic_search(self, client, query_service) -> None:
        response = client.post("/search/semantic", json={"query": "désert", "author": "Frank Herbert"})
        assert response.status_code == 200
        assert response.json() == {"books": []}
        query_service.do_semantic_search.assert_awaited_once_with(query="désert", tags=[], author="Frank Herbert", limit=10)

    def test_tags_and_authors(self, client) -> None:
        assert client.get("/tags").json() == ["classique", "sf"]
        assert client.get("/authors").json() == ["Frank Herbert"]

    def test_unknown_book_is_404(self, client) -> None:
        response = client.get("/books/inconnu")
        assert response.status_code == 404
        assert response.json() == {"error": "Book 'inconnu' not found"}

    def test_book_detail(self, client, query_service) -> None:
        query_service.do_get_book.return_value = BookDetail(id=_BOOK_ID, reference="dune", title="Dune")
        response = client.get("/books/dune")
        assert response.status_code == 200
        assert response.json()["title"] == "Dune"

    def test_store_error_is_503(self, client, query_service) -> None:
        query_service.do_list_tags.side_effect = StoreError("database is locked")
        response = client.get("/tags")
        assert response.status_code == 503
        assert response.json() == {"error": "database is locked"}

    def test_error_payload_is_documented(self, client) -> None:
        schema = client.get("/openapi.json").json()
        not_found = schema["paths"]["/books/{reference}"]["get"]["responses"]["404"]
        assert not_found["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
        assert "401" in schema["paths"]["/chat"]["post"]["responses"]
        assert schema["components"]["schemas"]["ErrorResponse"]["required"] == ["error"]

    def test_sitemap(self, client) -> None:
        response = client.get("/sitemap.xml")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        assert "<loc>https://books.example.org/</loc>" in response.text
        assert "<loc>https://books.example.org/chat</loc>" in response.text
        assert "<loc>https://books.example.org/book/dune</loc>" in response.text


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class TestChat:
    def test_requires_api_key(self, client, query_service) -> None:
        response = client.post("/chat", json=_CHAT_BODY)
        assert response.status_code == 401
        assert "error" in response.json()
        query_service.do_chat.assert_not_awaited()

    def test_wrong_api_key(self, client) -> None:
        response = client.post("/chat", json=_CHAT_BODY, headers={"X-API-Key": "wrong"})
        assert response.status_code == 401

    def test_non_ascii_api_key_is_401(self, client, query_service) -> None:
        response = client.post("/chat", json=_CHAT_BODY, headers={"X-API-Key": b"s\xe9cret"})
        assert response.status_code == 401
        assert "error" in response.json()
        query_service.do_chat.assert_not_awaited()

    def test_closed_when_no_key_configured(self, client, monkeypatch) -> None:
        monkeypatch.delenv("APP_API_KEY")
        response = client.post("/chat", json=_CHAT_BODY, headers={"X-API-Key": "secret"})
        assert response.status_code == 401

    def test_answer(self, client, query_service) -> None:
        response = client.post("/chat", json=_CHAT_BODY, headers={"X-API-Key": "secret"})

        assert response.status_code == 200
        assert response.json() == {
            "role": "assistant",
            "content": "<p>Arrakis.</p>",
            "sources": [{"reference": "dune", "title": "Dune", "chunk_text": "Le désert"}],
        }
        messages = query_service.do_chat.await_args.args[0]
        assert [(m.role, m.content) for m in messages] == [("user", "Où se passe Dune ?")]

    @pytest.mark.parametrize(
        "error,status",
        [
            (NotFoundError("No user message"), 400),
            (ConfigurationError("No LLM API key configured"), 500),
            (ProviderError("Request failed", status_code=429), 502),
            (StoreError("qdrant down"), 503),
            (RuntimeError("boom"), 500),
        ],
    )
    def test_errors_become_json_payloads(self, client, query_service, error, status) -> None:
        query_service.do_chat.side_effect = error
        response = client.post("/chat", json=_CHAT_BODY, headers={"X-API-Key": "secret"})
        assert response.status_code == status
        assert isinstance(response.json()["error"], str)
        assert "Traceback" not in response.text

    def test_invalid_role_is_rejected(self, client) -> None:
        response = client.post(
            "/chat",
            json={"messages": [{"role": "system", "content": "x"}]},
            headers={"X-API-Key": "secret"},
        )
        assert response.status_code == 422
