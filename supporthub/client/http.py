import logging
from typing import Any, Optional

import httpx

from supporthub.client.errors import TransportError, raise_for_response

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class ApiClient:
    """Thin httpx wrapper that turns HTTP failures into ChatAPIError subclasses."""

    def __init__(self,
                 base_url: str,
                 timeout: float = DEFAULT_TIMEOUT,
                 http_client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        self.headers: dict = {}

    async def request(self, method: str, path: str, **kwargs) -> Any:
        headers = {**self.headers, **kwargs.pop("headers", {})}
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise TransportError(str(e)) from e

        raise_for_response(response)
        return response.json() if response.content else None

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> Any:
        return await self.request("POST", path, **kwargs)

    def ws_url(self, path: str) -> str:
        if self.base_url.startswith("https://"):
            return "wss://" + self.base_url[len("https://"):] + path
        if self.base_url.startswith("http://"):
            return "ws://" + self.base_url[len("http://"):] + path
        return self.base_url + path

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
