import time

import pytest

from tests.fakes import FakePoiSearch, InMemoryPlaceRepository, make_external_place, make_place
from tripplanner.core.exclusion import ExclusionSet
from tripplanner.core.meal_service import MealAnchor, MealAugmenter
from tripplanner.core.pool_builder import PoolBuilder
from tripplanner.core.schemas import Classification, Coordinate, PlaceCategory, PriceLevel, WarningCode

BEIRUT = Coordinate(lat=33.89, lng=35.50)
TRIPOLI = Coordinate(lat=34.43, lng=35.84)


def anchor(coordinate, name=None):
    return MealAnchor(coordinate=coordinate, name=name)


def restaurant(coordinate, **kwargs):
    kwargs.setdefault("category", PlaceCategory.RESTAURANT)
    return make_place(coordinate.lat, coordinate.lng, **kwargs)


def augmenter(repo, search=None, timeout=5.0):
    return MealAugmenter(PoolBuilder(repo, search), search, timeout_seconds=timeout)


@pytest.mark.asyncio
async def test_missing_breakfast_tries_external_search_once():
    repo = InMemoryPlaceRepository(
        [restaurant(TRIPOLI, name="Lunch spot"), restaurant(TRIPOLI, name="Dinner spot", rating=4.0)]
    )
    search = FakePoiSearch()

    result = await augmenter(repo, search).fetch_meals_for_day(
        anchor(BEIRUT, "National Museum"),
        anchor(TRIPOLI),
        anchor(TRIPOLI),
        "Lebanon",
        "Beirut",
        None,
        ExclusionSet(),
    )

    assert result.meals.breakfast is None
    assert result.meals.lunch.name == "Lunch spot"
    assert result.meals.dinner.name == "Dinner spot"
    assert search.text_queries == ["restaurant OR cafe near National Museum, Beirut"]
    assert result.external_searches == 1
    assert [w.code for w in result.warnings] == [WarningCode.MEAL_NOT_FOUND]


@pytest.mark.asyncio
async def test_slots_never_share_a_place():
    only = restaurant(BEIRUT)
    repo = InMemoryPlaceRepository([only])
    exclusion = ExclusionSet()

    result = await augmenter(repo).fetch_meals_for_day(
        anchor(BEIRUT), anchor(BEIRUT), anchor(BEIRUT), "Lebanon", None, None, exclusion
    )

    assert result.meals.breakfast == only
    assert result.meals.lunch is None
    assert result.meals.dinner is None
    assert exclusion.role_of(only) == "meal"
    assert sum(w.code == WarningCode.MEAL_NOT_FOUND for w in result.warnings) == 2


@pytest.mark.asyncio
async def test_activities_are_not_eaten():
    activity = restaurant(BEIRUT, name="Booked as activity", rating=5.0)
    meal = restaurant(BEIRUT, name="Free table", rating=3.0)
    exclusion = ExclusionSet()
    exclusion.add(activity, "activity")

    result = await augmenter(InMemoryPlaceRepository([activity, meal])).fetch_meals_for_day(
        anchor(BEIRUT), anchor(TRIPOLI), anchor(TRIPOLI), "Lebanon", None, None, exclusion
    )

    assert result.meals.breakfast == meal


@pytest.mark.asyncio
async def test_dinner_radius_is_wider():
    # About 17 km north of the anchor: outside 15 km, inside 20 km
    place = restaurant(Coordinate(lat=34.043, lng=35.50))
    repo = InMemoryPlaceRepository([place])

    result = await augmenter(repo).fetch_meals_for_day(
        anchor(BEIRUT), anchor(BEIRUT), anchor(BEIRUT), "Lebanon", None, None, ExclusionSet()
    )

    assert result.meals.breakfast is None
    assert result.meals.lunch is None
    assert result.meals.dinner == place


@pytest.mark.asyncio
async def test_price_tier_filters_database_meals():
    cheap = restaurant(BEIRUT, price_level=PriceLevel.INEXPENSIVE)
    fancy = restaurant(BEIRUT, price_level=PriceLevel.EXPENSIVE)

    result = await augmenter(InMemoryPlaceRepository([cheap, fancy])).fetch_meals_for_day(
        anchor(BEIRUT), anchor(TRIPOLI), anchor(TRIPOLI), "Lebanon", None, PriceLevel.EXPENSIVE, ExclusionSet()
    )

    assert result.meals.breakfast == fancy


@pytest.mark.asyncio
async def test_external_meal_is_persisted_and_distance_filtered():
    far = make_external_place(TRIPOLI.lat, TRIPOLI.lng, "g-far", rating=4.9)
    near = make_external_place(33.895, 35.505, "g-near", rating=4.0)
    search = FakePoiSearch(text_results={"near": [far, near]})
    repo = InMemoryPlaceRepository([])
    exclusion = ExclusionSet()

    result = await augmenter(repo, search).fetch_meals_for_day(
        anchor(BEIRUT, "Raouche"), anchor(BEIRUT, "Raouche"), anchor(BEIRUT, "Raouche"),
        "Lebanon", "Beirut", None, exclusion,
    )

    breakfast = result.meals.breakfast
    assert breakfast.external_id == "g-near"
    assert not breakfast.is_external
    assert breakfast.classification == Classification.HIDDEN_GEM
    assert breakfast.id in repo.places
    assert breakfast in exclusion
    # Lunch and dinner saw the same results; the only nearby one is taken
    assert result.meals.lunch is None
    assert result.meals.dinner is None
    assert len(search.text_queries) == 3


@pytest.mark.asyncio
async def test_degraded_search_is_reported():
    search = FakePoiSearch(source="degraded")

    result = await augmenter(InMemoryPlaceRepository([]), search).fetch_meals_for_day(
        anchor(BEIRUT), anchor(BEIRUT), anchor(BEIRUT), "Lebanon", None, None, ExclusionSet()
    )

    codes = [w.code for w in result.warnings]
    assert codes.count(WarningCode.SERVICE_DEGRADED) == 3
    assert codes.count(WarningCode.MEAL_NOT_FOUND) == 3


class SlowRepository(InMemoryPlaceRepository):
    def fetch(self, *args, **kwargs):
        time.sleep(0.3)
        return super().fetch(*args, **kwargs)


@pytest.mark.asyncio
async def test_slow_lookup_times_out():
    repo = SlowRepository([restaurant(BEIRUT)])

    result = await augmenter(repo, timeout=0.05).fetch_meals_for_day(
        anchor(BEIRUT), anchor(BEIRUT), anchor(BEIRUT), "Lebanon", None, None, ExclusionSet()
    )

    assert result.meals.breakfast is None
    codes = [w.code for w in result.warnings]
    assert codes.count(WarningCode.AUGMENTATION_TIMEOUT) == 3


class BrokenCafeRepository(InMemoryPlaceRepository):
    def fetch(self, categories, *args, **kwargs):
        if PlaceCategory.CAFE in set(categories):
            raise ConnectionError("meal lookup backend down")
        return super().fetch(categories, *args, **kwargs)


@pytest.mark.asyncio
async def test_failed_lookup_only_loses_its_own_slot():
    repo = BrokenCafeRepository([restaurant(BEIRUT, name="First"), restaurant(BEIRUT, name="Second", rating=4.0)])

    result = await augmenter(repo).fetch_meals_for_day(
        anchor(BEIRUT), anchor(BEIRUT), anchor(BEIRUT), "Lebanon", None, None, ExclusionSet(), day_number=2
    )

    assert result.meals.breakfast is None
    assert result.meals.lunch.name == "First"
    assert result.meals.dinner.name == "Second"
    degraded = [w for w in result.warnings if w.code == WarningCode.SERVICE_DEGRADED]
    assert len(degraded) == 1
    assert "breakfast lookup failed" in degraded[0].message
    assert degraded[0].day_number == 2
    assert [w.code for w in result.warnings].count(WarningCode.MEAL_NOT_FOUND) == 1
