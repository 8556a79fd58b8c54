"""HTTP client for the remote deliveries API."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import httpx

from delivery_sync.config import DeliverySyncConfig
from delivery_sync.types import NetworkFailure, NetworkResult, NetworkSuccess

logger = logging.getLogger(__name__)

DELIVERIES_PATH = "/api/rest/v1/deliveries"
BULK_PATH = "/api/rest/v1/deliveries/bulk"
HISTORY_PATH = "/api/rest/v1/deliveries/history"


def describe_error(exc: BaseException) -> str:
    """Human-readable text for a transport exception."""
    message = str(exc).strip()
    if isinstance(exc, httpx.TimeoutException) and not message:
        return "Request timed out"
    return message or type(exc).__name__


class DeliveryApiClient:
    """Thin async transport over ``httpx.AsyncClient``.

    Every call returns a ``NetworkResult``: ``NetworkSuccess`` whenever
    the server answered (whatever the status) and ``NetworkFailure``
    when no response was obtained. Nothing raises past this class.
    """

    def __init__(
        self,
        config: DeliverySyncConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url.rstrip("/"),
                timeout=self.config.timeout_seconds,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> DeliveryApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> NetworkResult:
        client = self._get_client()
        try:
            response = await client.request(
                method, path, json=json, params=params
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            return NetworkFailure(describe_error(exc))
        except Exception as exc:
            logger.exception("Unexpected error during %s %s", method, path)
            return NetworkFailure(describe_error(exc))
        logger.debug("%s %s -> %d", method, path, response.status_code)
        return NetworkSuccess(
            status_code=response.status_code, body=response.text
        )

    async def post_delivery(self, payload: dict[str, Any]) -> NetworkResult:
        """Submit one delivery."""
        return await self._request("POST", DELIVERIES_PATH, json=payload)

    async def post_deliveries_bulk(
        self, payloads: Sequence[dict[str, Any]]
    ) -> NetworkResult:
        """Submit many deliveries in one request, in the given order."""
        return await self._request("POST", BULK_PATH, json=list(payloads))

    async def get_history(
        self,
        page: int = 1,
        limit: int = 20,
        keyword: str | None = None,
    ) -> NetworkResult:
        """Fetch one history page; ``limit`` is capped by config."""
        params: dict[str, Any] = {
            "page": page,
            "limit": min(limit, self.config.history_max_page_size),
        }
        if keyword is not None and keyword.strip():
            params["keyword"] = keyword
        return await self._request("GET", HISTORY_PATH, params=params)

    async def get_history_detail(self, code: str) -> NetworkResult:
        """Fetch one history entry by its code."""
        encoded = quote(code, safe="")
        return await self._request("GET", f"{HISTORY_PATH}/{encoded}")
