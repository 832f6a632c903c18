"""
HTTP fetch capability for the case API.

Maps HTTP statuses and transport failures onto the toolkit's error
taxonomy so retry predicates can branch on them.
"""

from dataclasses import dataclass
from typing import Any, Optional, Protocol
from urllib.parse import quote

import httpx
import structlog

from ...core.abort import AbortSignal
from ...core.config import Settings
from ...core.exceptions import (
    RemoteNotFoundError,
    TerminalRemoteError,
    TransientRemoteError,
)

logger = structlog.get_logger()


class FetchJson(Protocol):
    """Fetch a URL and return parsed JSON."""

    async def __call__(self, url: str, signal: Optional[AbortSignal] = None) -> Any:
        ...


@dataclass(frozen=True)
class LegajoEndpoints:
    """Builds sub-resource URLs for a record id."""

    base_url: str
    actas_path: str = "/Acta/PorLegajo"
    articulos_path: str = "/LegajoArticulo/ById"
    historial_estados_path: str = "/legajos/HistorialEstadosPorId"
    historial_giros_path: str = "/legajos/HistorialGirosPorId"

    @classmethod
    def from_settings(cls, settings: Settings) -> "LegajoEndpoints":
        return cls(
            base_url=settings.API_BASE_URL,
            actas_path=settings.API_ACTAS_PATH,
            articulos_path=settings.API_ARTICULOS_PATH,
            historial_estados_path=settings.API_HISTORIAL_ESTADOS_PATH,
            historial_giros_path=settings.API_HISTORIAL_GIROS_PATH,
        )

    def actas(self, legajo_id: str) -> str:
        return f"{self.base_url}{self.actas_path}/{quote(legajo_id, safe='')}"

    def articulos(self, legajo_id: str) -> str:
        return f"{self.base_url}{self.articulos_path}/{quote(legajo_id, safe='')}"

    def historial_estados(self, legajo_id: str) -> str:
        path = self.historial_estados_path
        return f"{self.base_url}{path}?legajoId={quote(legajo_id)}"

    def historial_giros(self, legajo_id: str) -> str:
        path = self.historial_giros_path
        return f"{self.base_url}{path}?legajoId={quote(legajo_id)}"


def raise_for_status(response: httpx.Response) -> None:
    """Translate a non-2xx response into the error taxonomy."""
    status = response.status_code
    url = str(response.request.url)
    if status == 404:
        raise RemoteNotFoundError(url=url)
    if status == 429 or status >= 500:
        raise TransientRemoteError(
            message=f"Remote error: {status} {response.reason_phrase}",
            status=status,
            url=url,
        )
    if status >= 400:
        raise TerminalRemoteError(
            message=f"Remote error: {status} {response.reason_phrase}",
            status=status,
            url=url,
        )


class HttpxFetcher:
    """
    FetchJson implementation over httpx.AsyncClient.

    The client is created lazily and owned by the fetcher unless one is
    passed in.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def _get_json(self, url: str) -> Any:
        try:
            response = await self._get_client().get(url)
        except httpx.TimeoutException as e:
            raise TransientRemoteError(
                message=f"Request timeout: {url}", url=url, original_error=e
            ) from e
        except httpx.TransportError as e:
            raise TransientRemoteError(
                message=f"Network error: {url}", url=url, original_error=e
            ) from e

        raise_for_status(response)

        try:
            return response.json()
        except ValueError as e:
            raise TerminalRemoteError(
                message=f"Malformed response from {url}",
                status=response.status_code,
                url=url,
                original_error=e,
            ) from e

    async def __call__(self, url: str, signal: Optional[AbortSignal] = None) -> Any:
        logger.debug("Fetching", url=url)
        if signal is None:
            return await self._get_json(url)
        return await signal.race(self._get_json(url))

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
