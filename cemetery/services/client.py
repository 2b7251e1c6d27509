"""
ServiceClient - async HTTP transport for the remote cemetery service.

Every remote operation is a POST to ``{base_url}/{method}`` with the named
arguments as a JSON object. The response body is the JSON-encoded return
value. Transport problems surface as ConnectivityError subclasses; a 4xx
reply is a RemoteFault carrying the service's own text.
"""

from typing import Any

import httpx
from loguru import logger

from cemetery.services.errors import (
    RemoteFault,
    RequestTimeoutError,
    ServiceUnavailableError,
)
from cemetery.settings import global_settings
from cemetery.utils import log_remote_call


class ServiceClient:
    """
    HTTP client bound to one remote service.

    Usage:
        async with ServiceClient("https://cemetery.example/api") as client:
            layout = await client.call("getCemeteryState")
    """

    def __init__(
        self,
        base_url: str | None = None,
        service_id: str | None = None,
        timeout: float | None = None,
        principal: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or global_settings.service_url).rstrip("/")
        self.service_id = service_id or global_settings.service_id
        self.timeout = timeout or global_settings.request_timeout
        self.principal = principal
        self._transport = transport

        # HTTP client (lazy initialization)
        self._http_client: httpx.AsyncClient | None = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._http_client

    def set_principal(self, principal: str | None) -> None:
        """Change the identity sent with subsequent calls."""
        self.principal = principal

    @log_remote_call
    async def call(self, method: str, **arguments: Any) -> Any:
        """
        Invoke a remote operation.

        Raises:
            RequestTimeoutError: If the call times out
            ServiceUnavailableError: On transport failure or HTTP 5xx
            RemoteFault: If the service rejected the call (HTTP 4xx)
        """
        client = await self._get_http_client()
        headers = {"X-Principal": self.principal} if self.principal else {}

        try:
            response = await client.post(
                f"{self.base_url}/{method}",
                json=arguments,
                headers=headers,
            )
            response.raise_for_status()

        except httpx.TimeoutException as e:
            raise RequestTimeoutError(self.service_id, self.timeout) from e

        except httpx.HTTPStatusError as e:
            text = _fault_text(e.response)
            if e.response.status_code >= 500:
                raise ServiceUnavailableError(
                    f"HTTP {e.response.status_code}: {text[:200]}",
                    service_id=self.service_id,
                ) from e
            raise RemoteFault(text, service_id=self.service_id) from e

        except httpx.RequestError as e:
            raise ServiceUnavailableError(str(e), service_id=self.service_id) from e

        if not response.content:
            return None
        return response.json()

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug(f"ServiceClient '{self.service_id}' closed")

    async def __aenter__(self) -> "ServiceClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def _fault_text(response: httpx.Response) -> str:
    """Extract the rejection message from an error reply."""
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or body)
    return str(body)
