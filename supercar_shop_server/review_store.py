"""Review store: per-product review lists and rating aggregates."""

import logging
from typing import Optional

from .auth import AuthManager
from .errors import ShopError, Unauthenticated
from .models import Review, ReviewEntry
from .sources import ReviewSource

logger = logging.getLogger(__name__)


class ReviewStore:
    """
    Reviews keyed strictly by product id.

    Each fetch writes only its own product's entry, with a fresh entry object,
    so concurrent fetches for different products never see each other's data.
    """

    def __init__(self, source: ReviewSource, auth_manager: Optional[AuthManager] = None) -> None:
        self.source = source
        self.auth_manager = auth_manager
        self._entries: dict[str, ReviewEntry] = {}

    def entry(self, product_id: str) -> ReviewEntry:
        return self._entries.get(product_id) or ReviewEntry()

    async def fetch_reviews(self, product_id: str) -> list[Review]:
        """
        Load (or reload) one product's reviews.

        Raises:
            TransportError: The source failed; only this product's entry is marked
        """
        previous = self.entry(product_id)
        self._entries[product_id] = ReviewEntry(reviews=previous.reviews, is_loading=True)

        try:
            reviews = await self.source.get_reviews(product_id)
        except ShopError as e:
            logger.error(f"Fetching reviews for {product_id} failed: {e}")
            self._entries[product_id] = ReviewEntry(reviews=previous.reviews, error=e.kind)
            raise

        own = [r for r in reviews if r.product_id == product_id]
        if len(own) != len(reviews):
            logger.warning(f"Ignored {len(reviews) - len(own)} review(s) for other products")
        self._entries[product_id] = ReviewEntry(reviews=own)
        return list(own)

    def reviews_for(self, product_id: str) -> list[Review]:
        return list(self.entry(product_id).reviews)

    def average_rating(self, product_id: str) -> float:
        """Mean rating, 0 when there are no reviews."""
        reviews = self.entry(product_id).reviews
        if not reviews:
            return 0.0
        return sum(r.rating for r in reviews) / len(reviews)

    def invalidate(self, product_id: Optional[str] = None) -> None:
        """Drop one product's entry, or all of them."""
        if product_id is None:
            self._entries.clear()
        else:
            self._entries.pop(product_id, None)

    async def add_review(self, product_id: str, rating: int, comment: Optional[str] = None) -> list[Review]:
        """
        Post a review, then re-read the product's reviews.

        Raises:
            Unauthenticated: No user session
            ValueError: rating outside 1..5
        """
        user_id = self.auth_manager.current_user_id if self.auth_manager else None
        if not user_id:
            raise Unauthenticated()
        if not 1 <= rating <= 5:
            raise ValueError(f"Rating must be between 1 and 5, got {rating}")

        await self.source.add_review(user_id, product_id, rating, comment)
        logger.info(f"Review added for {product_id} (rating {rating})")
        return await self.fetch_reviews(product_id)
