"""
Google Places API integration used as the external point-of-interest search.

Every network call goes through a circuit breaker. Failures never propagate:
callers receive a ``PlaceSearchResult`` whose ``source`` tells them whether
the data is live, unavailable, or withheld because the service is degraded.
"""

import logging
from typing import Any, Literal, Optional

import requests
from pydantic import BaseModel, Field, ValidationError

from tripplanner.core.circuit_breaker import CircuitBreaker
from tripplanner.core.exceptions import CircuitOpenError, PlacesApiError
from tripplanner.core.itinerary_planner import parse_price_level
from tripplanner.core.schemas import CandidatePlace, ExternalSource, PlaceCategory
from tripplanner.core.settings import Settings, get_settings

logger = logging.getLogger(__name__)

PLACES_API_BASE = "https://maps.googleapis.com/maps/api/place"
SERVICE_NAME = "Google Places"

# Google place types mapped to our categories; the first matching type wins
GOOGLE_TYPE_TO_CATEGORY: dict[str, PlaceCategory] = {
    "lodging": PlaceCategory.HOTEL,
    "restaurant": PlaceCategory.RESTAURANT,
    "meal_takeaway": PlaceCategory.RESTAURANT,
    "food": PlaceCategory.RESTAURANT,
    "cafe": PlaceCategory.CAFE,
    "bakery": PlaceCategory.CAFE,
    "bar": PlaceCategory.BAR,
    "night_club": PlaceCategory.NIGHTCLUB,
    "museum": PlaceCategory.MUSEUM,
    "art_gallery": PlaceCategory.MUSEUM,
    "church": PlaceCategory.RELIGIOUS_SITE,
    "mosque": PlaceCategory.RELIGIOUS_SITE,
    "synagogue": PlaceCategory.RELIGIOUS_SITE,
    "hindu_temple": PlaceCategory.RELIGIOUS_SITE,
    "place_of_worship": PlaceCategory.RELIGIOUS_SITE,
    "park": PlaceCategory.PARK,
    "campground": PlaceCategory.HIKING,
    "natural_feature": PlaceCategory.VIEWPOINT,
    "shopping_mall": PlaceCategory.SHOPPING,
    "clothing_store": PlaceCategory.SHOPPING,
    "store": PlaceCategory.SHOPPING,
    "amusement_park": PlaceCategory.ACTIVITY,
    "aquarium": PlaceCategory.ACTIVITY,
    "zoo": PlaceCategory.ACTIVITY,
    "stadium": PlaceCategory.ACTIVITY,
    "tourist_attraction": PlaceCategory.HISTORICAL_SITE,
}


class PlaceSearchResult(BaseModel):
    places: list[CandidatePlace] = Field(default_factory=list)
    source: Literal["live", "unavailable", "degraded"] = "live"
    error: str | None = None

    @property
    def degraded(self) -> bool:
        """The circuit is open; callers should skip augmentation for this scope."""
        return self.source == "degraded"


def categorize_place(types: list[str]) -> PlaceCategory:
    """Pick our category for a list of Google place types."""
    for place_type in types:
        if place_type in GOOGLE_TYPE_TO_CATEGORY:
            return GOOGLE_TYPE_TO_CATEGORY[place_type]
    return PlaceCategory.OTHER


def parse_place(result: dict[str, Any]) -> CandidatePlace | None:
    """
    Convert one Places API result into an external CandidatePlace.

    Returns:
        None when the result has no id, name, or coordinates
    """
    place_id = result.get("place_id")
    location = (result.get("geometry") or {}).get("location") or {}
    lat = location.get("lat")
    lng = location.get("lng")
    if not place_id or not result.get("name") or lat is None or lng is None:
        return None

    photos = result.get("photos") or [{}]
    return CandidatePlace(
        id=f"external-{place_id}",
        name=result["name"],
        latitude=lat,
        longitude=lng,
        category=categorize_place(result.get("types", [])),
        rating=result.get("rating"),
        popularity=result.get("user_ratings_total"),
        price_level=parse_price_level(result.get("price_level")),
        external=ExternalSource(
            external_id=place_id,
            address=result.get("formatted_address") or result.get("vicinity"),
            total_ratings=result.get("user_ratings_total"),
            photo_reference=photos[0].get("photo_reference"),
        ),
        is_external=True,
    )


class PlacesService:
    """Service for searching points of interest with the Google Places API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        breaker: Optional[CircuitBreaker] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.api_key = api_key if api_key is not None else settings.google_maps_api_key
        self.timeout = settings.places_timeout_seconds
        self.breaker = breaker or CircuitBreaker(
            SERVICE_NAME,
            failure_threshold=settings.places_failure_threshold,
            reset_timeout=settings.places_reset_timeout_seconds,
            half_open_requests=settings.places_half_open_requests,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def search_by_text(self, query: str, min_rating: float | None = None) -> PlaceSearchResult:
        """
        Search for places using the Text Search API.

        Args:
            query: Natural-language query (e.g., "best museums in Beirut")
            min_rating: Drop results rated below this value

        Returns:
            Search result with parsed places
        """
        params = {"query": query, "key": self.api_key}
        return self._search("textsearch", params, min_rating, description=f'"{query}"')

    def search_nearby(
        self,
        lat: float,
        lng: float,
        radius_meters: int,
        min_rating: float | None = None,
        place_type: str | None = None,
    ) -> PlaceSearchResult:
        """
        Search for places around a coordinate using the Nearby Search API.

        Args:
            lat, lng: Search center
            radius_meters: Search radius (Google caps this at 50 km)
            min_rating: Drop results rated below this value
            place_type: Optional Google place type filter (e.g., "lodging")

        Returns:
            Search result with parsed places
        """
        params: dict[str, Any] = {
            "location": f"{lat},{lng}",
            "radius": min(int(radius_meters), 50000),
            "key": self.api_key,
        }
        if place_type:
            params["type"] = place_type
        return self._search(
            "nearbysearch",
            params,
            min_rating,
            description=f"{place_type or 'places'} near ({lat:.4f}, {lng:.4f})",
        )

    def _search(
        self,
        endpoint: str,
        params: dict[str, Any],
        min_rating: float | None,
        description: str,
    ) -> PlaceSearchResult:
        if not self.is_configured:
            return PlaceSearchResult(
                source="unavailable", error="Google Places API key not configured"
            )

        try:
            results = self.breaker.call(self._fetch_results, endpoint, params)
        except CircuitOpenError as e:
            logger.warning(f"[PLACES] {e}")
            return PlaceSearchResult(source="degraded", error=str(e))
        except (requests.RequestException, PlacesApiError, ValueError) as e:
            logger.warning(f"[PLACES] Search for {description} failed: {e}")
            return PlaceSearchResult(source="unavailable", error=str(e))

        places = []
        for result in results:
            if not isinstance(result, dict):
                continue
            if min_rating is not None and (result.get("rating") or 0) < min_rating:
                continue
            try:
                place = parse_place(result)
            except (ValidationError, AttributeError) as e:
                logger.debug(f"[PLACES] Skipping malformed result: {e}")
                continue
            if place is not None:
                places.append(place)

        logger.info(f"[PLACES] {description}: {len(places)} results")
        return PlaceSearchResult(places=places)

    def _fetch_results(self, endpoint: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        response = requests.get(
            f"{PLACES_API_BASE}/{endpoint}/json", params=params, timeout=self.timeout
        )
        response.raise_for_status()
        data = response.json()

        if not isinstance(data, dict):
            raise PlacesApiError("Malformed Places response: expected a JSON object")

        status = data.get("status")
        if status == "ZERO_RESULTS":
            return []
        if status != "OK":
            raise PlacesApiError(f"Places search failed: {status} {data.get('error_message', '')}".strip())

        results = data.get("results")
        if not isinstance(results, list):
            raise PlacesApiError("Malformed Places response: 'results' is not a list")
        return results
