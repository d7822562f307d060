from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.models.config import EnvConfig

KEYWORD_INDEXED_FIELDS = ("book_id", "tags", "authors")


class RAGClientQdrant(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default="book_chunks", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default="book_chunks"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": f"{self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_points(self) -> str:
        return f"/collections/{self._collection_name}/points"

    def _get_endpoint_delete_points(self) -> str:
        return f"/collections/{self._collection_name}/points/delete"

    def _get_endpoint_search(self) -> str:
        return f"/collections/{self._collection_name}/points/search"

    def _get_endpoint_check_collection_existence(self) -> str:
        return f"/collections/{self._collection_name}/exists"

    def _get_endpoint_create_collection(self) -> str:
        return f"/collections/{self._collection_name}"

    def _get_endpoint_payload_index(self) -> str:
        return f"/collections/{self._collection_name}/index"

    def _get_endpoint_count(self) -> str:
        return f"/collections/{self._collection_name}/points/count"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_filter(self, book_id: str | None = None, tags: list[str] | None = None, author: str | None = None) -> dict | None:
        must: list[dict] = []
        if book_id:
            must.append({"key": "book_id", "match": {"value": book_id}})
        # one condition per tag: a point must carry every requested tag
        for tag in tags or []:
            must.append({"key": "tags", "match": {"value": tag}})
        if author:
            must.append({"key": "authors", "match": {"value": author}})
        return {"must": must} if must else None

    def get_create_collection_payload(self) -> dict:
        return {
            "vectors": {"size": self.vector_size, "distance": "Cosine"},
            "quantization_config": {"scalar": {"type": "int8", "always_ram": True}},
        }

    def get_payload_index_payloads(self) -> list[dict]:
        return [{"field_name": field, "field_schema": "keyword"} for field in KEYWORD_INDEXED_FIELDS]

    def get_upsert_payload(self, points: list[tuple[list[float], VectorPoint]]) -> dict:
        return {
            "points": [
                {"id": self.new_point_id(), "vector": vector, "payload": payload.model_dump()}
                for vector, payload in points
            ]
        }

    def get_search_payload(self, vector: list[float], filter: dict | None, limit: int) -> dict:
        payload = {"vector": vector, "limit": limit, "with_payload": True}
        if filter is not None:
            payload["filter"] = filter
        return payload

    def get_count_payload(self, filter: dict | None) -> dict:
        payload: dict = {"exact": True}
        if filter is not None:
            payload["filter"] = filter
        return payload

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_search_results(self, raw_response: dict) -> list[dict]:
        return raw_response.get("result") or []

    def extract_collection_exists(self, raw_response: dict) -> bool:
        return bool(raw_response.get("result", {}).get("exists"))

    def extract_count(self, raw_response: dict) -> int:
        return raw_response.get("result", {}).get("count", 0)
