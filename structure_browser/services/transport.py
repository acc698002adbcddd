from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from structure_browser.config.model import BrowserConfig
from structure_browser.core.exceptions import TransportError

logger = logging.getLogger(__name__)


class Transport(ABC):
    """
    Abstract interface to the structures API (HTTP, in-memory fakes, etc.).

    Implementations return decoded JSON and raise TransportError on any failure.
    """

    @abstractmethod
    async def get_json(self, path: str) -> Any:
        pass

    @abstractmethod
    async def post_json(self, path: str, body: Any) -> Any:
        pass


class HttpxTransport(Transport):
    """
    Production transport backed by a shared httpx.AsyncClient.
    """

    def __init__(
            self,
            base_url: str,
            *,
            timeout: float = 30.0,
            client: Optional[httpx.AsyncClient] = None,
    ):
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    @classmethod
    def from_config(cls, cfg: BrowserConfig) -> HttpxTransport:
        return cls(cfg.api_base_url, timeout=cfg.request_timeout)

    async def get_json(self, path: str) -> Any:
        return await self._request("GET", path)

    async def post_json(self, path: str, body: Any) -> Any:
        return await self._request("POST", path, json=body)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(
                method,
                path,
                headers={"Accept": "application/json"},
                **kwargs,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                "Structures API request failed",
                extra={"method": method, "endpoint": path, "error": str(e)},
            )
            raise TransportError(f"{method} {path} failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"{method} {path} returned invalid JSON") from e

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpxTransport:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
