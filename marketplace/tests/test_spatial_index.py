"""Tests for the shop location index adapter."""

import asyncio

import pytest
from sqlalchemy import text

from marketplace.models import Shop
from marketplace.services.errors import IndexUnavailable, QueryTimeout
from marketplace.services.geo_math import Coordinate, distance_km
from marketplace.services.spatial_index import (
    ACTIVE_APPROVED,
    BoundingBox,
    ShopFilter,
    SpatialIndexAdapter,
)

from .helpers import BANGALORE, north_of


@pytest.mark.asyncio
async def test_find_near_returns_active_approved_sorted(session_factory, add_shop):
    await add_shop("Far", at=north_of(BANGALORE, 4.0))
    await add_shop("Near", at=north_of(BANGALORE, 1.0))
    await add_shop("Mid", at=north_of(BANGALORE, -2.0))
    await add_shop("Inactive", at=north_of(BANGALORE, 0.5), is_active=False)
    await add_shop("Unapproved", at=north_of(BANGALORE, 0.5), is_approved=False)
    await add_shop("Out of range", at=north_of(BANGALORE, 30.0))

    adapter = SpatialIndexAdapter(session_factory, timeout_seconds=5)
    results = await adapter.find_near(BANGALORE, 10.0, ACTIVE_APPROVED)

    assert [shop.name for shop, _ in results] == ["Near", "Mid", "Far"]
    estimates = [estimate for _, estimate in results]
    assert estimates == sorted(estimates)
    assert estimates[0] == pytest.approx(1.0, rel=1e-3)


@pytest.mark.asyncio
async def test_find_near_skips_shops_without_saved_location(session_factory, add_shop):
    # Unset shops sit at (0, 0); an origin nearby must not pick them up
    await add_shop("Unset")
    adapter = SpatialIndexAdapter(session_factory, timeout_seconds=5)

    results = await adapter.find_all_sorted_by_distance(Coordinate(0.001, 0.001))

    assert results == []


@pytest.mark.asyncio
async def test_find_all_sorted_by_distance_is_unbounded(session_factory, add_shop):
    await add_shop("Mysore", at=Coordinate(12.2958, 76.6394))
    await add_shop("Local", at=north_of(BANGALORE, 2.0))
    await add_shop("Chennai", at=Coordinate(13.0827, 80.2707))
    await add_shop("Closed", at=north_of(BANGALORE, 1.0), is_active=False)

    adapter = SpatialIndexAdapter(session_factory, timeout_seconds=5)
    results = await adapter.find_all_sorted_by_distance(BANGALORE, ACTIVE_APPROVED)

    assert [shop.name for shop, _ in results] == ["Local", "Mysore", "Chennai"]


@pytest.mark.asyncio
async def test_find_near_orders_ties_by_id(session_factory, add_shop):
    spot = north_of(BANGALORE, 1.0)
    first = await add_shop("First", at=spot)
    second = await add_shop("Second", at=spot)

    adapter = SpatialIndexAdapter(session_factory, timeout_seconds=5)
    results = await adapter.find_near(BANGALORE, 5.0)

    assert [shop.id for shop, _ in results] == [first.id, second.id]


@pytest.mark.asyncio
async def test_find_near_across_antimeridian(session_factory, add_shop):
    origin = Coordinate(-17.0, 179.98)
    await add_shop("East side", at=Coordinate(-17.0, -179.98))
    await add_shop("Far west", at=Coordinate(-17.0, 178.0))

    adapter = SpatialIndexAdapter(session_factory, timeout_seconds=5)
    results = await adapter.find_near(origin, 10.0)

    assert [shop.name for shop, _ in results] == ["East side"]
    shop, estimate = results[0]
    exact = distance_km(origin, Coordinate(shop.latitude, shop.longitude))
    assert estimate == pytest.approx(exact, rel=0.01)


@pytest.mark.asyncio
async def test_custom_filter_is_applied_in_store(session_factory, add_shop):
    await add_shop("Pending approval", at=north_of(BANGALORE, 1.0), is_approved=False)
    adapter = SpatialIndexAdapter(session_factory, timeout_seconds=5)

    pending = await adapter.find_near(BANGALORE, 5.0, ShopFilter(is_active=True, is_approved=False))

    assert [shop.name for shop, _ in pending] == ["Pending approval"]


@pytest.mark.asyncio
async def test_missing_index_raises_index_unavailable(engine, session_factory, add_shop):
    await add_shop("Anywhere", at=north_of(BANGALORE, 1.0))
    async with engine.begin() as conn:
        await conn.execute(text("DROP INDEX ix_shops_location"))

    adapter = SpatialIndexAdapter(session_factory, timeout_seconds=5)
    with pytest.raises(IndexUnavailable):
        await adapter.find_near(BANGALORE, 5.0)


@pytest.mark.asyncio
async def test_missing_table_raises_index_unavailable(engine, session_factory):
    async with engine.begin() as conn:
        await conn.run_sync(Shop.__table__.drop)

    adapter = SpatialIndexAdapter(session_factory, timeout_seconds=5)
    with pytest.raises(IndexUnavailable):
        await adapter.find_all_sorted_by_distance(BANGALORE)


@pytest.mark.asyncio
async def test_slow_store_raises_query_timeout(session_factory, monkeypatch):
    adapter = SpatialIndexAdapter(session_factory, timeout_seconds=0.05)

    async def stalled(stmt):
        await asyncio.sleep(1)
        return []

    monkeypatch.setattr(adapter, "_verified_fetch", stalled)

    with pytest.raises(QueryTimeout):
        await adapter.find_near(BANGALORE, 5.0)


def test_bounding_box_covers_radius():
    box = BoundingBox.around(BANGALORE, 10.0)
    assert box.lat_min < north_of(BANGALORE, -9.999).latitude
    assert box.lat_max > north_of(BANGALORE, 9.999).latitude
    (lon_min, lon_max), = box.lon_ranges
    assert lon_min < BANGALORE.longitude < lon_max


def test_bounding_box_splits_at_antimeridian():
    box = BoundingBox.around(Coordinate(0.0, 179.99), 5.0)
    assert len(box.lon_ranges) == 2
    assert box.lon_ranges[0][1] == 180.0
    assert box.lon_ranges[1][0] == -180.0


def test_bounding_box_near_pole_spans_all_longitudes():
    box = BoundingBox.around(Coordinate(89.99, 0.0), 5.0)
    assert box.lon_ranges == ((-180.0, 180.0),)
    assert box.lat_max == 90.0
