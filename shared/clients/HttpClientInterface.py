from abc import abstractmethod

import httpx
from httpx._types import QueryParamTypes, RequestContent, RequestData, RequestFiles

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class HttpClientInterface(ClientInterface):
    """Base for clients that talk to their backend over HTTP (LLM provider, Qdrant)."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._client: httpx.AsyncClient | None = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """
        Returns the authentication header for the backend server, if an API key is set.

        Returns:
            dict: A dictionary containing the auth data
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        """
        Returns the base URL of the backend server from env variables
        (e.g. "http://localhost:6333").
        """
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        """
        Returns the endpoint path for healthcheck requests (e.g. "/healthz").
        """
        pass

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def boot(self) -> None:
        """Initialise the HTTP client."""
        self._client = httpx.AsyncClient(timeout=self.timeout)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def do_healthcheck(self) -> bool:
        """Check if the backend is healthy by sending a request to its healthcheck endpoint."""
        try:
            response = await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck())
        except self._get_error_class() as exc:
            self.logging.warning(
                "%s client '%s' healthcheck failed: %s",
                self.get_client_type().upper(), self.get_engine_name(), exc,
            )
            return False
        if not response.is_success:
            self.logging.warning(
                "%s client '%s' healthcheck failed with status %d.",
                self.get_client_type().upper(), self.get_engine_name(), response.status_code,
            )
        return response.is_success

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def do_request(
        self,
        method: str = "GET",
        content: RequestContent | None = None,
        data: RequestData | None = None,
        files: RequestFiles | None = None,
        json: dict | None = None,
        params: QueryParamTypes | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send an HTTP request to the backend.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, …).
            content: Raw bytes / stream body.
            data: Form-encoded body (dict or list of tuples).
            files: Multipart file upload.
            json: JSON-serialisable body (sets Content-Type automatically).
            params: URL query parameters.
            endpoint: Path to append to the base URL (leading slash optional).
            additional_headers: Extra headers that override the defaults.
            raise_on_error: Raise the client's error type on a non-2xx status.

        Returns:
            The raw httpx.Response.

        Raises:
            BridgeError subclass (see _get_error_class): If the client is not
                booted, the transport fails, or the status is non-2xx while
                raise_on_error is True.
        """
        error_class = self._get_error_class()
        if self._client is None:
            raise error_class(f"{self.get_client_type().upper()} client not initialised. Call boot() before making requests.")

        endpoint = "/" + endpoint.strip().lstrip("/") if endpoint.strip() else ""

        # No default Content-Type: httpx sets it for json/data/files.
        headers: dict = {}
        headers.update(self._get_auth_header())
        if additional_headers:
            headers.update(additional_headers)

        kwargs: dict = {
            "url": f"{self._get_base_url().rstrip('/')}{endpoint}",
            "headers": headers,
            "timeout": self.timeout,
            "params": params,
        }

        # add exactly one body argument
        if content is not None:
            kwargs["content"] = content
        elif data is not None:
            kwargs["data"] = data
        elif files is not None:
            kwargs["files"] = files
        elif json is not None:
            kwargs["json"] = json

        try:
            response = await self._client.request(method, **kwargs)
        except httpx.HTTPError as exc:
            self.logging.error("Request to %s failed: %s", kwargs["url"], exc)
            raise error_class(f"Request to {kwargs['url']} failed: {exc}") from exc

        if raise_on_error and not response.is_success:
            self.logging.error(
                "Request to %s failed with status %d: %s",
                kwargs["url"],
                response.status_code,
                response.text[:500],
            )
            raise error_class(
                f"Request to {kwargs['url']} failed",
                status_code=response.status_code,
                body=response.text,
            )

        return response

    def do_parse_json(self, response: httpx.Response) -> dict:
        """Decode a JSON object body, raising the client's error type when it is not one."""
        error_class = self._get_error_class()
        try:
            data = response.json()
        except ValueError as exc:
            raise error_class(
                f"Response from {response.request.url} is not valid JSON",
                status_code=response.status_code,
                body=response.text,
            ) from exc
        if not isinstance(data, dict):
            raise error_class(
                f"Response from {response.request.url} is not a JSON object",
                status_code=response.status_code,
                body=response.text,
            )
        return data
