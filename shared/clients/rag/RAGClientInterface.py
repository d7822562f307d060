from abc import abstractmethod
import json
import uuid

from pydantic import ValidationError as PydanticValidationError

from shared.clients.HttpClientInterface import HttpClientInterface
from shared.clients.rag.models.SearchHit import SearchHit
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.exceptions import StoreError
from shared.helper.HelperConfig import HelperConfig

UPSERT_BATCH_SIZE = 100


class RAGClientInterface(HttpClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.vector_size = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_VECTOR_SIZE", default=1024))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    def _get_error_class(self) -> type[StoreError]:
        return StoreError

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_points(self) -> str:
        """
        Returns the endpoint path for points upsert requests (e.g. "/collections/my_col/points").
        """
        pass

    @abstractmethod
    def _get_endpoint_delete_points(self) -> str:
        """
        Returns the endpoint path for deleting points by filter (e.g. "/collections/my_col/points/delete").
        """
        pass

    @abstractmethod
    def _get_endpoint_search(self) -> str:
        """
        Returns the endpoint path for similarity search requests (e.g. "/collections/my_col/points/search").
        """
        pass

    @abstractmethod
    def _get_endpoint_check_collection_existence(self) -> str:
        """
        Returns the endpoint path for collection existence check requests (e.g. "/collections/my_col/exists").
        """
        pass

    @abstractmethod
    def _get_endpoint_create_collection(self) -> str:
        """
        Returns the endpoint path for create collection requests (e.g. "/collections/my_col").
        """
        pass

    @abstractmethod
    def _get_endpoint_payload_index(self) -> str:
        """
        Returns the endpoint path for creating a payload field index (e.g. "/collections/my_col/index").
        """
        pass

    @abstractmethod
    def _get_endpoint_count(self) -> str:
        """Returns the endpoint path for counting points matching a filter (e.g. "/collections/my_col/points/count")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_filter(self, book_id: str | None = None, tags: list[str] | None = None, author: str | None = None) -> dict | None:
        """Builds the backend-specific filter that ANDs every given condition.

        Returns:
            dict | None: The filter, or None if no condition is given.
        """
        pass

    @abstractmethod
    def get_create_collection_payload(self) -> dict:
        """Builds the payload creating the collection (vector size, distance, quantization)."""
        pass

    @abstractmethod
    def get_payload_index_payloads(self) -> list[dict]:
        """Builds one request payload per keyword-indexed payload field."""
        pass

    @abstractmethod
    def get_upsert_payload(self, points: list[tuple[list[float], VectorPoint]]) -> dict:
        """Builds the upsert request body for one batch of (vector, payload) pairs."""
        pass

    @abstractmethod
    def get_search_payload(self, vector: list[float], filter: dict | None, limit: int) -> dict:
        """Builds the similarity-search request body."""
        pass

    @abstractmethod
    def get_count_payload(self, filter: dict | None) -> dict:
        """Builds the backend-specific request payload for a point count."""
        pass

    ################ RESPONSE PARSER ##################
    @abstractmethod
    def extract_search_results(self, raw_response: dict) -> list[dict]:
        """Returns the raw hits ({"payload": {...}, "score": float}) of a search response."""
        pass

    @abstractmethod
    def extract_collection_exists(self, raw_response: dict) -> bool:
        pass

    @abstractmethod
    def extract_count(self, raw_response: dict) -> int:
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_existence_check(self) -> bool:
        """Check if the collection exists in the rag backend."""
        resp = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_check_collection_existence(),
            raise_on_error=True,
        )
        return self.extract_collection_exists(self.do_parse_json(resp))

    async def do_ensure_collection(self) -> bool:
        """Create the collection and its payload indexes if absent. Idempotent.

        Returns:
            bool: True if the collection was created by this call.
        """
        if await self.do_existence_check():
            self.logging.debug("Collection already exists in %s.", self.get_engine_name())
            return False
        await self.do_request(
            method="PUT",
            json=self.get_create_collection_payload(),
            endpoint=self._get_endpoint_create_collection(),
            raise_on_error=True,
        )
        for index_payload in self.get_payload_index_payloads():
            await self.do_request(
                method="PUT",
                json=index_payload,
                endpoint=self._get_endpoint_payload_index(),
                raise_on_error=True,
            )
        self.logging.info("Created collection in %s (vector size %d).", self.get_engine_name(), self.vector_size)
        return True

    async def do_delete_by_book(self, book_id: str) -> None:
        """Deletes every point whose payload book_id matches.

        Used before re-indexing an updated book so no stale chunk survives.
        """
        await self.do_request(
            method="POST",
            content=json.dumps({"filter": self.get_filter(book_id=book_id)}),
            endpoint=self._get_endpoint_delete_points(),
            params={"wait": "true"},
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )

    async def do_upsert_points(self, points: list[tuple[list[float], VectorPoint]]) -> int:
        """Insert points in batches of UPSERT_BATCH_SIZE; each point gets a random UUID.

        Args:
            points (list[tuple[list[float], VectorPoint]]): (vector, payload) pairs.

        Returns:
            int: Number of points written.
        """
        for batch_start in range(0, len(points), UPSERT_BATCH_SIZE):
            batch = points[batch_start: batch_start + UPSERT_BATCH_SIZE]
            await self.do_request(
                method="PUT",
                content=json.dumps(self.get_upsert_payload(batch)),
                endpoint=self._get_endpoint_points(),
                params={"wait": "true"},
                additional_headers={"Content-Type": "application/json"},
                raise_on_error=True,
            )
        return len(points)

    async def do_search(self, vector: list[float], tags: list[str] | None = None, author: str | None = None, limit: int = 5) -> list[SearchHit]:
        """Return the top-`limit` hits by similarity score, descending.

        Every given tag must match, and so must the author when given.

        Raises:
            StoreError: If the request fails or a hit's payload lacks a required field.
        """
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_search_payload(vector, self.get_filter(tags=tags, author=author), limit)),
            endpoint=self._get_endpoint_search(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        hits: list[SearchHit] = []
        for raw in self.extract_search_results(self.do_parse_json(resp)):
            payload = raw.get("payload") or {}
            try:
                hits.append(SearchHit(
                    reference=payload.get("reference"),
                    title=payload.get("title"),
                    chunk_text=payload.get("chunk_text"),
                    score=raw.get("score", 0.0),
                ))
            except PydanticValidationError as exc:
                raise StoreError(f"Malformed search hit from {self.get_engine_name()}: {exc}") from exc
        return hits

    async def do_count(self, book_id: str | None = None) -> int:
        """Count points, optionally only those of one book."""
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_count_payload(self.get_filter(book_id=book_id))),
            endpoint=self._get_endpoint_count(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        return self.extract_count(self.do_parse_json(resp))

    ##########################################
    ################# OTHER ##################
    ##########################################

    @staticmethod
    def new_point_id() -> str:
        return str(uuid.uuid4())
