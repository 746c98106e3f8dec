"""Async HTTP client for the catalog API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from storefront.client.filters import FilterSet

logger = logging.getLogger(__name__)

HAS_MORE_HEADER = "X-Has-More"
TIMEOUT_SECONDS = 15.0


class CatalogError(Exception):
    """Transport failure or non-success response from the catalog API."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class ProductPage:
    items: list[dict[str, Any]]
    has_more: bool


class CatalogClient:
    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = TIMEOUT_SECONDS,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "CatalogClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        try:
            response = await self._http.get(path, params=params)
        except httpx.RequestError as e:
            logger.warning(f"Catalog request {path} failed: {e}")
            raise CatalogError(f"Request failed: {e}") from e

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = None
            detail = body.get("detail") if isinstance(body, dict) else None
            raise CatalogError(
                str(detail or f"HTTP {response.status_code}"),
                status_code=response.status_code,
            )
        return response

    async def _get_json(
        self, path: str, expected: type, params: dict[str, Any] | None = None
    ) -> tuple[Any, httpx.Response]:
        """GET ``path`` and decode a body of type ``expected`` (list or dict)."""
        response = await self._get(path, params)
        try:
            body = response.json()
        except ValueError as e:
            logger.warning(f"Catalog response from {path} is not JSON: {e}")
            raise CatalogError(
                "Malformed response from catalog", status_code=response.status_code
            ) from e
        if not isinstance(body, expected):
            raise CatalogError(
                f"Unexpected {type(body).__name__} response from catalog",
                status_code=response.status_code,
            )
        return body, response

    async def fetch_products(
        self,
        filters: FilterSet,
        *,
        search: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> ProductPage:
        """Fetch one page of products.

        ``has_more`` comes from the ``X-Has-More`` header; older servers
        without it fall back to "the page came back full".
        """
        params: dict[str, Any] = {"page": page, "limit": limit, **filters.to_query_params()}
        if search and search.strip():
            params["search"] = search.strip()

        items, response = await self._get_json("/api/products", list, params)
        header = response.headers.get(HAS_MORE_HEADER)
        if header is not None:
            has_more = header.strip().lower() == "true"
        else:
            has_more = len(items) == limit
        return ProductPage(items=items, has_more=has_more)

    async def fetch_product(self, product_id: int) -> dict[str, Any]:
        body, _ = await self._get_json(f"/api/products/{product_id}", dict)
        return body

    async def fetch_by_barcode(self, barcode: str) -> dict[str, Any] | None:
        try:
            body, _ = await self._get_json(f"/api/products/by-barcode/{barcode}", dict)
        except CatalogError as e:
            if e.status_code == 404:
                return None
            raise
        return body

    async def fetch_categories(self) -> list[dict[str, Any]]:
        body, _ = await self._get_json("/api/categories", list)
        return body

    async def fetch_subcategories(self) -> list[dict[str, Any]]:
        body, _ = await self._get_json("/api/categories/sub", list)
        return body

    async def fetch_brands(self) -> list[dict[str, Any]]:
        body, _ = await self._get_json("/api/brands", list)
        return body
