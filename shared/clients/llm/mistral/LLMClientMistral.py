from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.exceptions import ProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientMistral(LLMClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.mistral.ai", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def has_api_key(self) -> bool:
        return bool(self._api_key)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Mistral"

    def _get_default_embed_model(self) -> str:
        return "mistral-embed"

    def _get_default_chat_model(self) -> str:
        return "mistral-small-latest"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        # the key is optional: without one, import runs metadata-only
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.mistral.ai"),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/v1/models"

    def get_endpoint_embedding(self) -> str:
        return "/v1/embeddings"

    def _get_endpoint_chat(self) -> str:
        return "/v1/chat/completions"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the Mistral embedding request body.

        Returns:
            dict: {"model": "...", "input": [...]}
        """
        return {"model": self.embed_model, "input": texts}

    def get_chat_payload(self, messages: list[dict]) -> dict:
        return {"model": self.chat_model, "messages": messages}

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a Mistral /v1/embeddings response.

        Items carry an "index"; they are re-ordered by it so the output
        always matches the input order.

        Raises:
            ProviderError: If the response has no "data" list.
        """
        data = response_data.get("data")
        if not isinstance(data, list):
            raise ProviderError(
                "Mistral response does not contain embeddings. "
                "Response keys: %s" % list(response_data.keys())
            )
        if not all(isinstance(item, dict) and isinstance(item.get("embedding"), list) for item in data):
            raise ProviderError("Mistral response contains an item without an embedding.")
        items = sorted(data, key=lambda item: item.get("index", 0))
        return [item["embedding"] for item in items]

    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the assistant reply text from a Mistral /v1/chat/completions response.

        Raises:
            ProviderError: If the response has no message content.
        """
        choices = response_data.get("choices") or []
        message = choices[0].get("message") if isinstance(choices, list) and choices and isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise ProviderError(
                "Mistral chat response does not contain a valid message. "
                "Response keys: %s" % list(response_data.keys())
            )
        return content
