"""HTTP client for the upstream order-tracking API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import quote

import httpx

from .errors import UpstreamUnavailableError
from .logging_config import get_logger

LOGGER = get_logger(__name__)

ORDER_ID_PARAM = "channel_order_no"

# Characters left unescaped by JavaScript's encodeURIComponent.
_UNRESERVED = "-_.!~*'()"


@dataclass(frozen=True, slots=True)
class UpstreamResponse:
    status_code: int
    raw_body: str


class TrackingClient:
    """Thin wrapper around the tracking API's ``track_order`` endpoint."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str],
        *,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url
        self._token = token
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self._base_url

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def build_url(self, order_id: str) -> str:
        """Return the upstream URL with ``order_id`` percent-encoded as a query parameter."""

        separator = "&" if "?" in self._base_url else "?"
        return f"{self._base_url}{separator}{ORDER_ID_PARAM}={quote(order_id, safe=_UNRESERVED)}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "access-token": self._token or "",
        }

    async def fetch(self, order_id: str) -> UpstreamResponse:
        """Issue one GET for ``order_id`` and return the status with the body as text.

        Raises :class:`UpstreamUnavailableError` when no HTTP response was received.
        """

        client = self._ensure_client()
        url = self.build_url(order_id)
        try:
            response = await client.get(url, headers=self._headers())
        except httpx.HTTPError as exc:
            LOGGER.error(
                "Tracking API request failed",
                extra={"orderId": order_id, "error": f"{type(exc).__name__}: {exc}"},
            )
            raise UpstreamUnavailableError() from exc
        # The body is consumed as text so non-JSON payloads can still be logged.
        return UpstreamResponse(status_code=response.status_code, raw_body=response.text)


__all__ = ["ORDER_ID_PARAM", "TrackingClient", "UpstreamResponse"]
