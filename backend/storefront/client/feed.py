"""Paginated product feed driven by search text and the applied filter set.

Search keystrokes are debounced; each fetch is tagged with a sequence number
and a response is only applied if no newer fetch has been issued since.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from storefront.client.catalog_client import CatalogClient, CatalogError
from storefront.client.filters import FilterStateManager

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 0.5
PAGE_SIZE = 20


class ProductFeed:
    def __init__(
        self,
        client: CatalogClient,
        filters: FilterStateManager | None = None,
        *,
        page_size: int = PAGE_SIZE,
        debounce_seconds: float = DEBOUNCE_SECONDS,
    ):
        self.client = client
        self.filters = filters or FilterStateManager()
        self.page_size = page_size
        self.debounce_seconds = debounce_seconds

        self.products: list[dict[str, Any]] = []
        self.page = 1
        self.has_more = True
        self.loading = False
        self.error: str | None = None
        self.search = ""
        self.search_text = ""

        self._sequence = 0
        # Only the sleep phase lives in the debounce task; a settled search
        # fetches in its own task so a later keystroke cannot cancel it.
        self._debounce_task: asyncio.Task | None = None
        self._search_fetch: asyncio.Task | None = None

    def _next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    def _is_current(self, sequence: int) -> bool:
        return sequence == self._sequence

    def set_search_text(self, text: str) -> None:
        """Record a keystroke; the search settles after a quiet period.

        Must be called from a running event loop.
        """
        self.search_text = text
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = asyncio.get_running_loop().create_task(
            self._settle(text)
        )

    async def _settle(self, text: str) -> None:
        await asyncio.sleep(self.debounce_seconds)
        if text == self.search:
            return
        self.search = text
        self._search_fetch = asyncio.get_running_loop().create_task(self.refresh())

    async def wait_for_search(self) -> None:
        """Wait until any pending debounced search has been fetched."""
        task = self._debounce_task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._search_fetch is not None:
            await self._search_fetch

    async def apply_filters(self) -> None:
        self.filters.apply()
        await self.refresh()

    async def refresh(self) -> None:
        """Reload from page 1, replacing the current list."""
        sequence = self._next_sequence()
        self.loading = True
        self.error = None
        try:
            page = await self.client.fetch_products(
                self.filters.applied,
                search=self.search,
                page=1,
                limit=self.page_size,
            )
        except CatalogError as e:
            if self._is_current(sequence):
                logger.warning(f"Product feed refresh failed: {e}")
                self.products = []
                self.page = 1
                self.has_more = False
                self.error = "Failed to load products."
        else:
            if self._is_current(sequence):
                self.products = list(page.items)
                self.page = 1
                self.has_more = page.has_more
            else:
                logger.debug(f"Discarding stale product page (request {sequence})")
        finally:
            if self._is_current(sequence):
                self.loading = False

    async def load_more(self) -> bool:
        """Append the next page. Returns False when the call was suppressed."""
        if self.loading or not self.has_more:
            return False

        sequence = self._next_sequence()
        next_page = self.page + 1
        self.loading = True
        try:
            page = await self.client.fetch_products(
                self.filters.applied,
                search=self.search,
                page=next_page,
                limit=self.page_size,
            )
        except CatalogError as e:
            if self._is_current(sequence):
                logger.warning(f"Loading page {next_page} failed: {e}")
                self.error = "Failed to load more products."
        else:
            if self._is_current(sequence):
                seen = {product["id"] for product in self.products}
                self.products.extend(
                    item for item in page.items if item["id"] not in seen
                )
                self.page = next_page
                self.has_more = page.has_more
        finally:
            if self._is_current(sequence):
                self.loading = False
        return True

    async def close(self) -> None:
        for task in (self._debounce_task, self._search_fetch):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
