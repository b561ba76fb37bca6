"""Catalog store: paginated, filtered view over the product catalog."""

import logging
import math
from typing import Optional

from .config import Settings
from .errors import NotFound
from .models import CatalogFilter, CatalogPage, Category, PaginationState, Product, ProductPage
from .sources import CatalogSource

logger = logging.getLogger(__name__)

HIGHLIGHT_KINDS = ("featured", "new", "top_sold")


class CatalogStore:
    """
    Client-side pagination over a cached set of active products.

    Page 1 fetches the filtered catalog from the source and replaces the cache;
    later pages are sliced out of that cache without another query. Changing
    the filter therefore means calling reset() and starting again at page 1.

    Every reset and every page-1 load bumps a request token. A load that
    finishes after the token moved on is discarded instead of overwriting the
    newer state.
    """

    def __init__(self, source: CatalogSource, settings: Optional[Settings] = None) -> None:
        self.source = source
        self.settings = settings or Settings()
        self.state = PaginationState(page_size=self.settings.page_size)
        self.categories: list[Category] = []
        self._products: dict[str, Product] = {}
        self._token = 0

    def reset(self) -> None:
        """Drop cached and paginated state. In-flight loads become stale."""
        self._token += 1
        self.state = PaginationState(page_size=self.settings.page_size)
        logger.debug(f"Catalog reset (token={self._token})")

    async def _fetch(self, catalog_filter: CatalogFilter) -> ProductPage:
        limit = self.settings.prefetch_limit
        if catalog_filter.kind == "search":
            return await self.source.search_products(catalog_filter.search, 1, limit)
        if catalog_filter.kind == "category":
            return await self.source.list_by_category(catalog_filter.category, 1, limit)
        return await self.source.list_products(1, limit)

    def _build_state(self, catalog_filter: CatalogFilter, result: ProductPage, page_size: int) -> PaginationState:
        active = [p for p in result.items if p.status]
        if result.total > len(result.items):
            logger.warning(
                f"Source reported {result.total} products but returned {len(result.items)}; "
                f"paging over the fetched set only"
            )
        for product in active:
            self._products[product.id] = product

        total_pages = math.ceil(len(active) / page_size)
        logger.info(f"Cached {len(active)} active product(s), {total_pages} page(s)")
        return PaginationState(
            filter=catalog_filter,
            current_page=1,
            total_pages=total_pages,
            page_size=page_size,
            active_products=active,
            loaded=active[:page_size],
        )

    @staticmethod
    def _page_from(state: PaginationState, page: int) -> tuple[CatalogPage, PaginationState]:
        """Slice one page out of a state. Returns the page and the state to keep."""
        if page > max(state.total_pages, 1):
            # Past the end: nothing changes, hand back the cached tail
            start = max(state.total_pages - 1, 0) * state.page_size
            logger.debug(f"Page {page} beyond {state.total_pages} pages, returning cached tail")
            tail = CatalogPage(
                items=state.active_products[start:],
                page=state.total_pages or state.current_page,
                total_pages=state.total_pages,
                has_more=False,
            )
            return tail, state

        size = state.page_size
        items = state.active_products[size * (page - 1):size * page]
        new_state = state.model_copy(update={"current_page": page, "loaded": state.active_products[:size * page]})
        return (
            CatalogPage(items=items, page=page, total_pages=state.total_pages, has_more=new_state.has_more),
            new_state,
        )

    async def load_page(
        self,
        catalog_filter: Optional[CatalogFilter] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> CatalogPage:
        """
        Load one page of products.

        Args:
            catalog_filter: Category/search context (None means the whole catalog)
            page: 1-based page number
            page_size: Defaults to settings.page_size. Only page 1 may choose it;
                later pages must repeat the cached size or leave it out.

        Returns:
            The page's products and pagination flags. `stale` is True when a
            reset happened while the source call was in flight.

        Raises:
            ValueError: page < 1, or page > 1 for a filter or page size other
                than the cached one
            TransportError: The source call failed (cached state is kept)
        """
        catalog_filter = catalog_filter or CatalogFilter()
        if page < 1:
            raise ValueError(f"Page must be >= 1, got {page}")

        if page == 1:
            return await self._load_first_page(catalog_filter, page_size or self.settings.page_size)

        if catalog_filter != self.state.filter or self.state.current_page == 0:
            raise ValueError("Filter changed; reset the catalog and load page 1 first")
        if page_size is not None and page_size != self.state.page_size:
            raise ValueError(
                f"Page size is fixed at {self.state.page_size} until page 1 is reloaded, got {page_size}"
            )
        result, self.state = self._page_from(self.state, page)
        return result

    async def _load_first_page(self, catalog_filter: CatalogFilter, page_size: int) -> CatalogPage:
        # A newer page-1 load supersedes this one too
        self._token += 1
        token = self._token
        logger.info(f"Loading catalog page 1 ({catalog_filter.kind}, page_size={page_size})")

        result = await self._fetch(catalog_filter)

        if token != self._token:
            logger.info(f"Discarding stale catalog response (token {token}, current {self._token})")
            return CatalogPage(
                page=self.state.current_page,
                total_pages=self.state.total_pages,
                has_more=self.state.has_more,
                stale=True,
            )

        # Whole-object swap
        self.state = self._build_state(catalog_filter, result, page_size)
        first, _ = self._page_from(self.state, 1)
        return first

    async def browse(self, catalog_filter: Optional[CatalogFilter] = None, page: int = 1) -> CatalogPage:
        """
        Jump to a page of a filter, starting a new filter context when needed.

        Later pages of the cached filter are sliced from the cache. Anything
        else fetches the filter afresh and answers from that response, even
        when an overlapping browse for another filter finished first; only the
        newest load becomes the shared state.
        """
        catalog_filter = catalog_filter or CatalogFilter()
        if page < 1:
            raise ValueError(f"Page must be >= 1, got {page}")

        if page > 1 and catalog_filter == self.state.filter and self.state.current_page > 0:
            return await self.load_page(catalog_filter, page)

        self._token += 1
        token = self._token
        logger.info(f"Browsing catalog page {page} ({catalog_filter.kind})")

        result = await self._fetch(catalog_filter)
        state = self._build_state(catalog_filter, result, self.settings.page_size)
        response, state = self._page_from(state, page)

        if token == self._token:
            self.state = state
        else:
            logger.info(f"Newer catalog load owns the state (token {token}, current {self._token})")
        return response

    async def load_next_page(self) -> Optional[CatalogPage]:
        """Infinite-scroll helper: the page after the current one, or None at the end."""
        if not self.state.has_more:
            return None
        return await self.load_page(self.state.filter, self.state.current_page + 1)

    async def highlights(self, kind: str, limit: int = 10) -> list[Product]:
        """
        Featured, newly arrived or best-selling products.

        Args:
            kind: "featured", "new" or "top_sold"
            limit: Maximum number of products to ask the source for

        Returns:
            Active products only, in the source's order

        Raises:
            ValueError: Unknown kind or limit < 1
        """
        if kind not in HIGHLIGHT_KINDS:
            raise ValueError(f"Unknown highlight kind '{kind}', expected one of {', '.join(HIGHLIGHT_KINDS)}")
        if limit < 1:
            raise ValueError(f"Limit must be >= 1, got {limit}")

        if kind == "featured":
            products = await self.source.list_featured(limit)
        elif kind == "new":
            products = await self.source.list_new(limit)
        else:
            products = await self.source.list_top_sold(limit)

        active = [p for p in products if p.status]
        for product in active:
            self._products[product.id] = product
        return active

    async def get_product(self, product_id: str, refresh: bool = False) -> Product:
        """Product detail, served from the id cache unless refresh is set."""
        if not refresh and product_id in self._products:
            return self._products[product_id]
        product = await self.source.get_product(product_id)
        if product is None:
            raise NotFound("product", product_id)
        self._products[product.id] = product
        return product

    async def load_categories(self) -> list[Category]:
        self.categories = await self.source.list_categories()
        return self.categories
