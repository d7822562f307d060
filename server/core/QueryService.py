from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.meta.MetaClientInterface import MetaClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.SearchHit import SearchHit
from shared.exceptions import BridgeError, ConfigurationError, NotFoundError, ProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.helper.book_parser import render_markdown
from shared.models.book import BookDetail, BookReference, BookSearchPage, BookSearchResult
from shared.models.chat import ChatMessage, ChatSource

CHAT_SEARCH_LIMIT = 5        # passages handed to the model per chat answer
SOURCE_PREVIEW_CHARS = 200   # excerpt length shown in the citation list
SEARCH_BOOST_LIMIT = 10      # semantic hits appended to the first catalogue page


class QueryService:
    """Answers catalogue searches and grounded chat questions.

    Chat: embed the last user message -> similarity search -> context ->
    grounded completion -> deduplicated sources. Any failure surfaces as an
    exception; there is no ungrounded fallback.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        llm_client: LLMClientInterface,
        meta_client: MetaClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._llm_client = llm_client
        self._meta_client = meta_client

    ##########################################
    ################ HELPERS #################
    ##########################################

    @staticmethod
    def build_context(hits: list[SearchHit]) -> str:
        """Label each hit as "[Source i: title - reference]" followed by its chunk, in score order."""
        return "".join(
            f"[Source {i + 1}: {hit.title} - {hit.reference}]\n{hit.chunk_text}\n"
            for i, hit in enumerate(hits)
        )

    @staticmethod
    def dedupe_sources(hits: list[SearchHit]) -> list[ChatSource]:
        """One source per reference; the first (highest scoring) hit wins."""
        sources: dict[str, ChatSource] = {}
        for hit in hits:
            if hit.reference not in sources:
                sources[hit.reference] = ChatSource(
                    reference=hit.reference,
                    title=hit.title,
                    chunk_text=hit.chunk_text[:SOURCE_PREVIEW_CHARS],
                )
        return list(sources.values())

    async def _embed_query(self, text: str) -> list[float]:
        vectors = await self._llm_client.do_embed([text])
        if not vectors or not vectors[0]:
            raise ProviderError("No embedding returned")
        return vectors[0]

    ##########################################
    ################# CHAT ###################
    ##########################################

    async def do_chat(self, messages: list[ChatMessage]) -> ChatMessage:
        """Answer the conversation from the library's passages.

        Raises:
            NotFoundError: If the conversation holds no user message (no provider call is made).
            ConfigurationError: If no provider key is configured.
            ProviderError: If embedding or completion fails.
            StoreError: If the vector search fails.
        """
        question = next((m for m in reversed(messages) if m.role == "user"), None)
        if question is None:
            raise NotFoundError("No user message")
        if not self._llm_client.has_api_key():
            raise ConfigurationError("No LLM API key configured")

        self.logging.info("QueryService.do_chat: %d message(s), question of %d chars.", len(messages), len(question.content))
        vector = await self._embed_query(question.content)
        hits = await self._rag_client.do_search(vector, limit=CHAT_SEARCH_LIMIT)
        self.logging.debug("QueryService.do_chat: %d passage(s) retrieved.", len(hits))

        answer = await self._llm_client.do_chat_answer(
            context=self.build_context(hits),
            messages=[{"role": m.role, "content": m.content} for m in messages],
        )
        return ChatMessage(
            role="assistant",
            content=render_markdown(answer),
            sources=self.dedupe_sources(hits),
        )

    ##########################################
    ################ SEARCH ##################
    ##########################################

    async def do_semantic_search(self, query: str, tags: list[str] | None = None, author: str | None = None, limit: int = 10) -> list[BookSearchResult]:
        """Books whose passages are closest to the query, best first.

        Hits are deduplicated by reference and hydrated from the metadata
        store; references the store no longer knows are skipped.
        """
        if not self._llm_client.has_api_key():
            raise ConfigurationError("No LLM API key configured")
        vector = await self._embed_query(query)
        hits = await self._rag_client.do_search(vector, tags=tags, author=author, limit=limit)

        books: list[BookSearchResult] = []
        seen: set[str] = set()
        for hit in hits:
            if hit.reference in seen:
                continue
            seen.add(hit.reference)
            detail = await self._meta_client.do_get_detail(hit.reference)
            if detail is None:
                self.logging.warning("Semantic hit for unknown book '%s' skipped.", hit.reference)
                continue
            books.append(BookSearchResult(
                id=detail.id,
                reference=detail.reference,
                title=detail.title,
                authors=detail.authors,
                tags=detail.tags,
                editor=detail.editor,
                edition_date=detail.edition_date,
                summary=detail.summary,
            ))
        return books

    async def do_search(self, query: str = "", tags: list[str] | None = None, author: str | None = None, page: int = 0, page_size: int = 20) -> BookSearchPage:
        """Catalogue search. The first page of a non-blank query is extended with
        semantically close books the text match missed (when a key is configured).
        `total` counts the text matches only.
        """
        result = await self._meta_client.do_search(query=query, tags=tags, author=author, page=page, page_size=page_size)
        if page == 0 and query.strip() and self._llm_client.has_api_key():
            known = {book.reference for book in result.books}
            extra = await self._semantic_boost(query.strip(), tags, author)
            result.books.extend(book for book in extra if book.reference not in known)
        return result

    async def _semantic_boost(self, query: str, tags: list[str] | None, author: str | None) -> list[BookSearchResult]:
        try:
            return await self.do_semantic_search(query, tags=tags, author=author, limit=SEARCH_BOOST_LIMIT)
        except BridgeError as exc:
            # the text results stand on their own
            self.logging.warning("Semantic boost skipped for '%s': %s", query, exc)
            return []

    async def do_list_tags(self) -> list[str]:
        return await self._meta_client.do_list_tags()

    async def do_list_authors(self) -> list[str]:
        return await self._meta_client.do_list_authors()

    async def do_get_book(self, reference: str) -> BookDetail | None:
        return await self._meta_client.do_get_detail(reference)

    async def do_list_references(self) -> list[BookReference]:
        return await self._meta_client.do_list_references()
