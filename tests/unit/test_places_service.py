from unittest import mock

import pytest
import requests

from tripplanner.core.circuit_breaker import CircuitBreaker
from tripplanner.core.places_service import PlacesService, categorize_place, parse_place
from tripplanner.core.schemas import PlaceCategory, PriceLevel


def google_result(place_id="abc", name="Cafe Younes", rating=4.6, **extra):
    result = {
        "place_id": place_id,
        "name": name,
        "geometry": {"location": {"lat": 33.8959, "lng": 35.4784}},
        "types": ["cafe", "food", "point_of_interest"],
        "rating": rating,
        "user_ratings_total": 812,
        "price_level": 2,
        "formatted_address": "Hamra St, Beirut",
    }
    result.update(extra)
    return result


def response(payload, status_code=200):
    resp = mock.Mock()
    resp.status_code = status_code
    resp.json.return_value = payload
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    else:
        resp.raise_for_status.return_value = None
    return resp


@pytest.fixture
def service(test_settings):
    return PlacesService(breaker=CircuitBreaker("Google Places", failure_threshold=3), settings=test_settings)


def test_parse_place_builds_external_candidate():
    place = parse_place(google_result())

    assert place.id == "external-abc"
    assert place.is_external
    assert place.external_id == "abc"
    assert place.category == PlaceCategory.CAFE
    assert place.price_level == PriceLevel.MODERATE
    assert place.popularity == 812
    assert place.external.address == "Hamra St, Beirut"


def test_parse_place_without_coordinates_is_skipped():
    assert parse_place(google_result(geometry={})) is None
    assert parse_place({"name": "No id"}) is None


def test_categorize_place_defaults_to_other():
    assert categorize_place(["lodging"]) == PlaceCategory.HOTEL
    assert categorize_place(["premise"]) == PlaceCategory.OTHER


def test_search_by_text_filters_by_rating(service):
    payload = {
        "status": "OK",
        "results": [google_result("a", rating=4.8), google_result("b", rating=3.1), "junk"],
    }
    with mock.patch("tripplanner.core.places_service.requests.get", return_value=response(payload)) as get:
        result = service.search_by_text("cafes in Beirut", min_rating=4.0)

    assert result.source == "live"
    assert [p.external_id for p in result.places] == ["a"]
    _, kwargs = get.call_args
    assert kwargs["params"]["query"] == "cafes in Beirut"
    assert kwargs["timeout"] == service.timeout


def test_zero_results_is_empty_not_an_error(service):
    with mock.patch(
        "tripplanner.core.places_service.requests.get",
        return_value=response({"status": "ZERO_RESULTS", "results": []}),
    ):
        result = service.search_by_text("igloos in Beirut")

    assert result.source == "live"
    assert result.places == []
    assert service.breaker.stats()["failures"] == 0


@pytest.mark.parametrize(
    "payload,status_code",
    [
        ({"status": "REQUEST_DENIED", "error_message": "bad key"}, 200),
        ({"status": "OK", "results": {"not": "a list"}}, 200),
        (["not", "a", "dict"], 200),
        ({}, 500),
    ],
)
def test_bad_responses_are_unavailable(service, payload, status_code):
    with mock.patch(
        "tripplanner.core.places_service.requests.get",
        return_value=response(payload, status_code),
    ):
        result = service.search_by_text("museums")

    assert result.source == "unavailable"
    assert result.error
    assert service.breaker.stats()["failures"] == 1


def test_search_nearby_caps_radius_and_sets_type(service):
    with mock.patch(
        "tripplanner.core.places_service.requests.get",
        return_value=response({"status": "OK", "results": [google_result(types=["lodging"])]}),
    ) as get:
        result = service.search_nearby(33.89, 35.50, 80000, place_type="lodging")

    params = get.call_args.kwargs["params"]
    assert params["radius"] == 50000
    assert params["type"] == "lodging"
    assert params["location"] == "33.89,35.5"
    assert result.places[0].category == PlaceCategory.HOTEL


def test_missing_api_key_never_touches_network(test_settings):
    service = PlacesService(api_key="", settings=test_settings)
    with mock.patch("tripplanner.core.places_service.requests.get") as get:
        result = service.search_by_text("museums")

    get.assert_not_called()
    assert result.source == "unavailable"
    assert not result.degraded
