from abc import abstractmethod

from pydantic import BaseModel

from shared.clients.HttpClientInterface import HttpClientInterface
from shared.clients.llm import prompts
from shared.exceptions import ProviderError
from shared.helper.HelperConfig import HelperConfig

EMBED_BATCH_SIZE = 16           # max texts per embedding request
SUMMARY_MAX_CHARS = 6000        # prefix of the book body sent for the book summary
CHAPTER_SUMMARY_MAX_CHARS = 4000  # prefix of each chapter sent for its summary


class ChapterInput(BaseModel):
    title: str | None = None
    text: str


class LLMClientInterface(HttpClientInterface):
    """Embedding and completion gateway.

    Fail-fast: every non-success provider response raises ProviderError and
    nothing is retried here. Callers decide whether a failure is fatal
    (embedding during import, chat) or degraded to a warning (summaries).
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # embedding config
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL", default=self._get_default_embed_model())

        # chat / completion config
        self.chat_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_CHAT_MODEL", default=self._get_default_chat_model())

    ##########################################
    ############### CHECKER ##################
    ##########################################

    @abstractmethod
    def has_api_key(self) -> bool:
        """Returns True when a provider API key is configured.

        Import skips summaries and embeddings without one; chat refuses to answer.
        """
        pass

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    def _get_error_class(self) -> type[ProviderError]:
        return ProviderError

    @abstractmethod
    def _get_default_embed_model(self) -> str:
        """Returns the embedding model used when LLM_MODEL is not set."""
        pass

    @abstractmethod
    def _get_default_chat_model(self) -> str:
        """Returns the chat model used when LLM_CHAT_MODEL is not set."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """Returns the endpoint path for embedding requests (e.g. "/v1/embeddings")."""
        pass

    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        """Returns the endpoint path for chat/completion requests (e.g. "/v1/chat/completions")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed (at most EMBED_BATCH_SIZE).

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    @abstractmethod
    def get_chat_payload(self, messages: list[dict]) -> dict:
        """Build the backend-specific request body for a chat/completion request.

        Args:
            messages (list[dict]): OpenAI-format messages
                (e.g. [{"role": "user", "content": "..."}]).

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            ProviderError: If the response does not contain embeddings.
        """
        pass

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the assistant reply text from a raw chat API response.

        Raises:
            ProviderError: If the response does not contain a reply.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Embed texts, EMBED_BATCH_SIZE per request, preserving input order.

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            list[list[float]]: One vector per input text. Empty input returns
                an empty list without calling the provider.

        Raises:
            ProviderError: If a request fails or returns the wrong number of vectors.
        """
        texts = [texts] if isinstance(texts, str) else list(texts)
        vectors: list[list[float]] = []
        for batch_start in range(0, len(texts), EMBED_BATCH_SIZE):
            batch = texts[batch_start: batch_start + EMBED_BATCH_SIZE]
            response = await self.do_request(
                method="POST",
                endpoint=self.get_endpoint_embedding(),
                json=self.get_embed_payload(batch),
                raise_on_error=True,
            )
            batch_vectors = self.extract_embeddings_from_response(self.do_parse_json(response))
            if len(batch_vectors) != len(batch):
                raise ProviderError(
                    "Embedding response returned %d vectors for %d inputs." % (len(batch_vectors), len(batch))
                )
            vectors.extend(batch_vectors)
        return vectors

    async def do_chat(self, messages: list[dict]) -> str:
        """Send a chat/completion request and return the assistant reply text.

        Args:
            messages (list[dict]): OpenAI-format messages.

        Returns:
            str: The assistant reply text.

        Raises:
            ProviderError: If the request fails or the reply is missing.
        """
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_chat(),
            json=self.get_chat_payload(messages),
            raise_on_error=True,
        )
        return self.extract_chat_response(self.do_parse_json(response))

    async def do_summarize(self, text: str) -> str:
        """Summarise a book body in French (5 sentences max, no preamble).

        Only the first SUMMARY_MAX_CHARS characters are sent.
        """
        prompt = prompts.BOOK_SUMMARY_USER.format(text=text[:SUMMARY_MAX_CHARS])
        return await self.do_chat([
            {"role": "system", "content": prompts.BOOK_SUMMARY_SYSTEM},
            {"role": "user", "content": prompt},
        ])

    async def do_summarize_chapters(self, chapters: list[ChapterInput]) -> list[str]:
        """Summarise chapters one request at a time (each needs its own prompt).

        Args:
            chapters (list[ChapterInput]): Chapters in source order.

        Returns:
            list[str]: One summary per chapter, "" for blank chapters (no request sent).

        Raises:
            ProviderError: On the first failed request.
        """
        summaries: list[str] = []
        for chapter in chapters:
            if not chapter.text.strip():
                summaries.append("")
                continue
            label = (
                prompts.CHAPTER_LABEL_TITLED.format(title=chapter.title)
                if chapter.title
                else prompts.CHAPTER_LABEL_UNTITLED
            )
            prompt = prompts.CHAPTER_SUMMARY_USER.format(label=label, text=chapter.text[:CHAPTER_SUMMARY_MAX_CHARS])
            summaries.append(await self.do_chat([
                {"role": "system", "content": prompts.CHAPTER_SUMMARY_SYSTEM},
                {"role": "user", "content": prompt},
            ]))
        return summaries

    async def do_chat_answer(self, context: str, messages: list[dict]) -> str:
        """Answer the conversation strictly from the given book excerpts.

        Args:
            context (str): Labelled excerpts assembled by the responder.
            messages (list[dict]): Prior conversation ({"role", "content"}), oldest first.

        Returns:
            str: The assistant reply (markdown).
        """
        system = prompts.GROUNDED_CHAT_SYSTEM.format(context=context)
        history = [{"role": m["role"], "content": m["content"]} for m in messages]
        return await self.do_chat([{"role": "system", "content": system}, *history])
