import asyncio

import pytest

from supercar_shop_server.errors import TransportError, Unauthenticated
from supercar_shop_server.models import Review
from supercar_shop_server.review_store import ReviewStore


def review(review_id, product_id, rating):
    return Review(id=review_id, product_id=product_id, rating=rating)


@pytest.fixture
def reviews(backend, signed_in):
    backend.reviews = [review("r1", "A", 5), review("r2", "A", 4), review("r3", "B", 1)]
    return ReviewStore(backend, signed_in)


async def test_reviews_are_isolated_per_product(reviews, backend):
    backend.gates["get_reviews"] = gate = asyncio.Event()
    both = asyncio.gather(reviews.fetch_reviews("A"), reviews.fetch_reviews("B"))
    await asyncio.sleep(0)
    assert reviews.entry("A").is_loading
    assert reviews.entry("B").is_loading
    gate.set()
    a, b = await both

    assert [r.id for r in a] == ["r1", "r2"]
    assert [r.id for r in b] == ["r3"]
    assert reviews.average_rating("A") == 4.5
    assert reviews.average_rating("B") == 1.0
    assert not reviews.entry("A").is_loading


async def test_reviews_for_other_products_are_ignored(reviews, backend):
    async def leaky(product_id):
        return list(backend.reviews)

    backend.get_reviews = leaky

    result = await reviews.fetch_reviews("B")
    assert [r.id for r in result] == ["r3"]


async def test_average_without_reviews_is_zero(reviews):
    assert reviews.average_rating("unknown") == 0.0
    await reviews.fetch_reviews("C")
    assert reviews.average_rating("C") == 0.0


async def test_failure_marks_only_that_product(reviews, backend):
    await reviews.fetch_reviews("A")
    await reviews.fetch_reviews("B")
    backend.fail.add("get_reviews")

    with pytest.raises(TransportError):
        await reviews.fetch_reviews("A")

    assert reviews.entry("A").error == "transport_error"
    assert len(reviews.reviews_for("A")) == 2
    assert reviews.entry("B").error is None


async def test_add_review_refreshes(reviews, backend):
    result = await reviews.add_review("B", 5, "Brutal acceleration")

    assert [r.rating for r in result] == [1, 5]
    assert reviews.average_rating("B") == 3.0
    assert backend.calls[-1] == ("get_reviews", "B")


async def test_add_review_validation(backend, signed_in):
    with pytest.raises(Unauthenticated):
        await ReviewStore(backend).add_review("A", 5)

    store = ReviewStore(backend, signed_in)
    with pytest.raises(ValueError):
        await store.add_review("A", 6)


async def test_invalidate(reviews):
    await reviews.fetch_reviews("A")
    await reviews.fetch_reviews("B")

    reviews.invalidate("A")
    assert reviews.reviews_for("A") == []
    assert len(reviews.reviews_for("B")) == 1

    reviews.invalidate()
    assert reviews.reviews_for("B") == []
