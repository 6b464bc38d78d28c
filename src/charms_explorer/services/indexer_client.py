"""Async HTTP client for the Charms indexer API."""

from __future__ import annotations

import logging
from typing import Any, Mapping
from urllib.parse import quote

import httpx

from charms_explorer.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)


class IndexerClientError(RuntimeError):
    """Raised when the indexer cannot be reached or answers with an error."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _segment(value: str) -> str:
    return quote(value, safe="")


def _unwrap_list(payload: Any, key: str) -> list[dict[str, Any]]:
    """Return the record list from ``payload``.

    Accepts a bare list, ``{key: [...]}`` or ``{"data": {key: [...]}}``.
    """

    candidate: Any = payload
    if isinstance(payload, Mapping):
        data = payload.get("data")
        if isinstance(data, Mapping) and key in data:
            candidate = data[key]
        elif isinstance(data, list):
            candidate = data
        else:
            candidate = payload.get(key, [])
    if not isinstance(candidate, list):
        return []
    return [item for item in candidate if isinstance(item, Mapping)]


def _unwrap_object(payload: Any) -> dict[str, Any] | None:
    if not isinstance(payload, Mapping):
        return None
    data = payload.get("data")
    if isinstance(data, Mapping) and len(payload) == 1:
        return dict(data)
    return dict(payload)


class IndexerClient:
    """Thin async wrapper over the indexer REST endpoints.

    Lookups of a single resource return ``None`` when the indexer answers
    404. Every other transport or HTTP failure raises
    :class:`IndexerClientError` chained from the underlying ``httpx`` error.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        network: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        resolved = settings or get_settings()
        self.base_url = (base_url or resolved.indexer.base_url).rstrip("/")
        self.network = network or resolved.indexer.network
        self.reference_list_limit = resolved.indexer.reference_list_limit
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else resolved.indexer.timeout_seconds,
        )

    async def __aenter__(self) -> "IndexerClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get(
        self,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        allow_missing: bool = False,
    ) -> Any:
        query = {key: value for key, value in (params or {}).items() if value is not None}
        try:
            response = await self._client.get(path, params=query or None)
            if allow_missing and response.status_code == 404:
                LOGGER.debug("Indexer resource missing: %s", path)
                return None
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise IndexerClientError(f"Indexer returned HTTP {status} for {path}", status_code=status) from exc
        except httpx.HTTPError as exc:
            raise IndexerClientError(f"Indexer request failed for {path}: {exc}") from exc
        except ValueError as exc:
            raise IndexerClientError(f"Indexer returned invalid JSON for {path}") from exc

    async def list_assets(
        self,
        asset_type: str | None = None,
        *,
        page: int = 1,
        limit: int | None = None,
        sort: str = "newest",
        network: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return one page of asset records from ``GET /assets``."""

        payload = await self._get(
            "/assets",
            params={
                "asset_type": None if asset_type in (None, "all") else asset_type,
                "page": page,
                "limit": limit,
                "sort": sort,
                "network": network or self.network,
            },
        )
        return _unwrap_list(payload, "assets")

    async def list_reference_assets(self) -> list[dict[str, Any]]:
        """Return the large asset listing used to warm the reference cache."""

        return await self.list_assets(limit=self.reference_list_limit)

    async def list_charms(self, network: str | None = None) -> list[dict[str, Any]]:
        payload = await self._get("/charms", params={"network": network or self.network})
        return _unwrap_list(payload, "charms")

    async def get_charm(self, charm_id: str) -> dict[str, Any] | None:
        payload = await self._get(f"/charms/by-charmid/{_segment(charm_id)}", allow_missing=True)
        return _unwrap_object(payload)

    async def charms_by_address(self, address: str) -> list[dict[str, Any]]:
        payload = await self._get(f"/charms/by-address/{_segment(address)}")
        return _unwrap_list(payload, "charms")

    async def get_reference_nft(self, content_hash: str) -> dict[str, Any] | None:
        payload = await self._get(f"/assets/reference-nft/{_segment(content_hash)}", allow_missing=True)
        return _unwrap_object(payload)

    async def get_holders(self, app_id: str) -> dict[str, Any] | None:
        payload = await self._get(f"/assets/{_segment(app_id)}/holders", allow_missing=True)
        return _unwrap_object(payload)

    async def open_dex_orders(self, network: str | None = None) -> list[dict[str, Any]]:
        payload = await self._get("/dex/orders/open", params={"network": network or self.network})
        return _unwrap_list(payload, "orders")


__all__ = ["IndexerClient", "IndexerClientError"]
