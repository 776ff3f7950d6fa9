"""Tests for nearby, deliverable and radius shop discovery."""

import pytest
import pytest_asyncio

from marketplace.models import Shop
from marketplace.services.discovery import CandidateShop, DiscoveryQuery, DiscoveryService
from marketplace.services.errors import IndexUnavailable, InvalidInput, QueryTimeout
from marketplace.services.geo_math import Coordinate, distance_km
from marketplace.services.spatial_index import ACTIVE_APPROVED, SpatialIndexAdapter

from .helpers import BANGALORE, north_of


class RecordingIndex:
    """Stand-in index that records calls and returns canned candidates."""

    def __init__(self, candidates=None, error=None):
        self.calls = []
        self._candidates = candidates or []
        self._error = error

    async def find_near(self, origin, max_distance_km, shop_filter):
        self.calls.append(("find_near", origin, max_distance_km, shop_filter))
        if self._error:
            raise self._error
        return list(self._candidates)

    async def find_all_sorted_by_distance(self, origin, shop_filter):
        self.calls.append(("find_all", origin, shop_filter))
        if self._error:
            raise self._error
        return list(self._candidates)


def _shop(shop_id, at, radius=5.0, name=None):
    return Shop(
        id=shop_id,
        owner_id=f"owner-{shop_id}",
        name=name or f"Shop {shop_id}",
        latitude=at.latitude,
        longitude=at.longitude,
        delivery_radius_km=radius,
        location_set=True,
        rating=4.5,
        total_orders=0,
    )


@pytest.fixture
def discovery(session_factory):
    return DiscoveryService(SpatialIndexAdapter(session_factory, timeout_seconds=5))


@pytest_asyncio.fixture
async def bangalore_shops(add_shop):
    """A at 3.2 km (radius 5), B at 8 km (radius 10), C at 12 km (radius 10)."""
    a = await add_shop("A", at=north_of(BANGALORE, 3.2), delivery_radius_km=5)
    b = await add_shop("B", at=north_of(BANGALORE, -8.0), delivery_radius_km=10)
    c = await add_shop("C", at=north_of(BANGALORE, 12.0), delivery_radius_km=10)
    return a, b, c


@pytest.mark.asyncio
async def test_nearby_scenario_within_ten_km(discovery, bangalore_shops):
    result = await discovery.nearby_shops(BANGALORE.latitude, BANGALORE.longitude, 10)

    assert [shop.name for shop in result.shops] == ["A", "B"]
    assert [shop.distance_km for shop in result.shops] == [3.2, 8.0]
    assert all(shop.within_delivery_radius for shop in result.shops)
    assert result.query.search_radius_km == 10


@pytest.mark.asyncio
async def test_nearby_scenario_within_five_km(discovery, bangalore_shops):
    result = await discovery.nearby_shops(BANGALORE.latitude, BANGALORE.longitude, 5)
    assert [shop.name for shop in result.shops] == ["A"]


@pytest.mark.asyncio
async def test_nearby_reports_shops_outside_their_delivery_radius(discovery, bangalore_shops):
    result = await discovery.nearby_shops(BANGALORE.latitude, BANGALORE.longitude, 15)

    by_name = {shop.name: shop for shop in result.shops}
    assert list(by_name) == ["A", "B", "C"]
    assert by_name["C"].within_delivery_radius is False
    assert by_name["C"].to_dict()["withinDeliveryRadius"] is False


@pytest.mark.asyncio
async def test_nearby_defaults_to_ten_km(discovery, bangalore_shops):
    result = await discovery.nearby_shops(BANGALORE.latitude, BANGALORE.longitude)

    assert result.query.search_radius_km == 10
    assert [shop.name for shop in result.shops] == ["A", "B"]


@pytest.mark.asyncio
async def test_deliverable_uses_each_shops_own_radius(discovery, bangalore_shops):
    result = await discovery.deliverable_shops(BANGALORE.latitude, BANGALORE.longitude)

    assert [shop.name for shop in result.shops] == ["A", "B"]
    assert result.query.search_radius_km is None
    assert "withinDeliveryRadius" not in result.shops[0].to_dict()


@pytest.mark.asyncio
async def test_deliverable_results_satisfy_admission_rule(discovery, add_shop):
    await add_shop("Big radius far", at=north_of(BANGALORE, 40.0), delivery_radius_km=45)
    await add_shop("Small radius near", at=north_of(BANGALORE, 1.5), delivery_radius_km=1)
    await add_shop("Edge", at=north_of(BANGALORE, -2.0), delivery_radius_km=2.5)
    await add_shop("Inactive", at=north_of(BANGALORE, 0.2), delivery_radius_km=10, is_active=False)

    result = await discovery.deliverable_shops(BANGALORE.latitude, BANGALORE.longitude)

    assert [shop.name for shop in result.shops] == ["Edge", "Big radius far"]
    for shop in result.shops:
        assert distance_km(BANGALORE, shop.location) <= shop.delivery_radius_km


@pytest.mark.asyncio
async def test_radius_shops_ignore_delivery_radius(discovery, bangalore_shops):
    result = await discovery.radius_shops(BANGALORE.latitude, BANGALORE.longitude, 15)

    assert [shop.name for shop in result.shops] == ["A", "B", "C"]
    assert all(shop.within_delivery_radius is None for shop in result.shops)
    assert result.query.search_radius_km == 15


@pytest.mark.asyncio
async def test_radius_defaults_to_five_km(discovery, bangalore_shops):
    result = await discovery.radius_shops(BANGALORE.latitude, BANGALORE.longitude)

    assert result.query.search_radius_km == 5
    assert [shop.name for shop in result.shops] == ["A"]


@pytest.mark.asyncio
async def test_radius_zero_returns_only_shops_at_origin(discovery, add_shop):
    await add_shop("Here", at=BANGALORE)
    await add_shop("Next door", at=north_of(BANGALORE, 0.05))

    result = await discovery.radius_shops(BANGALORE.latitude, BANGALORE.longitude, 0)

    assert [shop.name for shop in result.shops] == ["Here"]
    assert result.shops[0].distance_km == 0


@pytest.mark.asyncio
async def test_huge_radius_matches_unbounded_scan(discovery, session_factory, add_shop):
    await add_shop("Local", at=north_of(BANGALORE, 2.0))
    await add_shop("Sydney", at=Coordinate(-33.8688, 151.2093))
    await add_shop("Reykjavik", at=Coordinate(64.1466, -21.9426))
    await add_shop("Hidden", at=Coordinate(40.0, -74.0), is_approved=False)

    result = await discovery.radius_shops(BANGALORE.latitude, BANGALORE.longitude, 50000)
    unbounded = await SpatialIndexAdapter(session_factory, timeout_seconds=5).find_all_sorted_by_distance(
        BANGALORE, ACTIVE_APPROVED
    )

    assert {shop.id for shop in result.shops} == {shop.id for shop, _ in unbounded}
    assert len(result.shops) == 3


@pytest.mark.asyncio
async def test_nearby_results_bounded_and_sorted(discovery, add_shop):
    for index, km in enumerate([9.9, 0.4, 4.4, 10.4, 7.1, 2.2]):
        await add_shop(f"S{index}", at=north_of(BANGALORE, km if index % 2 else -km))

    result = await discovery.nearby_shops(BANGALORE.latitude, BANGALORE.longitude, 10)
    distances = [shop.distance_km for shop in result.shops]

    assert len(distances) == 5
    assert distances == sorted(distances)
    assert all(d <= 10 for d in distances)


@pytest.mark.asyncio
async def test_max_results_limits_after_sorting(discovery, bangalore_shops):
    result = await discovery.nearby_shops(BANGALORE.latitude, BANGALORE.longitude, 15, max_results=2)
    assert [shop.name for shop in result.shops] == ["A", "B"]


@pytest.mark.asyncio
async def test_local_distance_overrides_store_estimate():
    two_km = _shop(1, north_of(BANGALORE, 2.0))
    one_km = _shop(2, north_of(BANGALORE, 1.0))
    # Store estimates deliberately wrong and in the wrong order
    index = RecordingIndex(candidates=[(two_km, 0.1), (one_km, 0.2)])

    result = await DiscoveryService(index).nearby_shops(BANGALORE.latitude, BANGALORE.longitude, 10)

    assert [shop.id for shop in result.shops] == [2, 1]
    assert [shop.distance_km for shop in result.shops] == [1.0, 2.0]


@pytest.mark.asyncio
async def test_nearby_passes_active_approved_filter_and_radius():
    index = RecordingIndex()
    await DiscoveryService(index).nearby_shops(12.9716, 77.5946, 7.5)

    name, origin, radius, shop_filter = index.calls[0]
    assert name == "find_near"
    assert origin == BANGALORE
    assert radius == 7.5
    assert shop_filter == ACTIVE_APPROVED


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "lat, lon",
    [(95, 10), (10, -200), (95, -200), (None, 77.5), (12.9, None), ("north", 77.5), (0, 0)],
)
async def test_invalid_origin_fails_before_store_query(lat, lon):
    index = RecordingIndex()
    service = DiscoveryService(index)

    with pytest.raises(InvalidInput):
        await service.nearby_shops(lat, lon)
    with pytest.raises(InvalidInput):
        await service.deliverable_shops(lat, lon)
    with pytest.raises(InvalidInput):
        await service.radius_shops(lat, lon, 5)

    assert index.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("radius", [-1, "wide"])
async def test_invalid_search_radius_fails_before_store_query(radius):
    index = RecordingIndex()
    with pytest.raises(InvalidInput):
        await DiscoveryService(index).nearby_shops(12.9716, 77.5946, radius)
    assert index.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("max_results", [0, -3, "ten", True])
async def test_invalid_max_results(max_results):
    index = RecordingIndex()
    with pytest.raises(InvalidInput):
        await DiscoveryService(index).deliverable_shops(12.9716, 77.5946, max_results)
    assert index.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [IndexUnavailable("index missing"), QueryTimeout("slow")])
async def test_store_failures_are_not_empty_results(error):
    service = DiscoveryService(RecordingIndex(error=error))

    with pytest.raises(type(error)):
        await service.nearby_shops(12.9716, 77.5946)
    with pytest.raises(type(error)):
        await service.deliverable_shops(12.9716, 77.5946)
    with pytest.raises(type(error)):
        await service.radius_shops(12.9716, 77.5946, 3)


@pytest.mark.asyncio
async def test_no_shops_is_an_empty_success(discovery):
    result = await discovery.nearby_shops(BANGALORE.latitude, BANGALORE.longitude)
    assert result.shops == []
    assert result.count == 0


def test_discovery_query_is_immutable():
    query = DiscoveryService.build_query(12.9716, 77.5946, None, 10)
    assert query == DiscoveryQuery(origin=BANGALORE, search_radius_km=10)
    with pytest.raises(AttributeError):
        query.search_radius_km = 20


def test_candidate_payload_shape():
    shop = _shop(7, north_of(BANGALORE, 1.234), radius=3, name="Bakery")

    payload = CandidateShop.from_shop(shop, 1.23456, within_delivery_radius=True).to_dict()

    assert payload["id"] == 7
    assert payload["name"] == "Bakery"
    assert payload["distanceKm"] == 1.23
    assert payload["deliveryRadiusKm"] == 3
    assert payload["withinDeliveryRadius"] is True
    assert set(payload["location"]) == {"latitude", "longitude"}
