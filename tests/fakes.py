import asyncio
import itertools
from typing import Iterable, Optional

from tripplanner.core.places_service import PlaceSearchResult
from tripplanner.core.repository import CandidateSource
from tripplanner.core.schemas import (
    CandidatePlace,
    Classification,
    ExternalSource,
    PlaceCategory,
    PriceLevel,
)

_ids = itertools.count(1)

def make_place(
    lat: float,
    lng: float,
    name: str | None = None,
    category: PlaceCategory = PlaceCategory.HISTORICAL_SITE,
    rating: float | None = 4.5,
    popularity: int | None = 100,
    classification: Classification | None = None,
    price_level: PriceLevel | None = None,
    city: str | None = "Beirut",
    country: str = "Lebanon",
    place_id: str | None = None,
    **kwargs,
) -> CandidatePlace:
    place_id = place_id or f"plc_{next(_ids)}"
    return CandidatePlace(
        id=place_id,
        name=name or f"Place {place_id}",
        latitude=lat,
        longitude=lng,
        category=category,
        rating=rating,
        popularity=popularity,
        classification=classification,
        price_level=price_level,
        city=city,
        country=country,
        **kwargs,
    )

def make_external_place(
    lat: float,
    lng: float,
    external_id: str,
    name: str | None = None,
    category: PlaceCategory = PlaceCategory.RESTAURANT,
    rating: float | None = 4.5,
) -> CandidatePlace:
    return CandidatePlace(
        id=f"external-{external_id}",
        name=name or f"External {external_id}",
        latitude=lat,
        longitude=lng,
        category=category,
        rating=rating,
        external=ExternalSource(external_id=external_id),
        is_external=True,
    )

class InMemoryPlaceRepository(CandidateSource):
    """Dict-backed place repository with the same filters as the Mongo one."""

    def __init__(self, places: Iterable[CandidatePlace] = ()):
        self.places: dict[str, CandidatePlace] = {p.id: p for p in places}
        self.fetch_calls: list[dict] = []
        self.created: list[CandidatePlace] = []
        self._next_id = itertools.count(1)

    def fetch(
        self,
        categories,
        country,
        city=None,
        limit=20,
        exclude_ids=(),
        price_level=None,
        exclude_tourist_traps=True,
    ):
        categories = set(categories)
        excluded = set(exclude_ids)
        self.fetch_calls.append({"categories": categories, "city": city, "limit": limit})

        matches = [
            p
            for p in self.places.values()
            if p.category in categories
            and (p.country or "").lower() == country.lower()
            and (city is None or (p.city or "").lower() == city.lower())
            and p.id not in excluded
            and (price_level is None or p.price_level == price_level)
            and not (exclude_tourist_traps and p.classification == Classification.TOURIST_TRAP)
        ]
        matches.sort(key=lambda p: (-(p.rating or 0), -(p.popularity or 0)))
        return matches[:limit]

    def find_by_external_id(self, external_id: str) -> Optional[CandidatePlace]:
        for place in self.places.values():
            if place.external_id == external_id:
                return place
        return None

    def create(self, candidate: CandidatePlace) -> CandidatePlace:
        if candidate.external_id:
            existing = self.find_by_external_id(candidate.external_id)
            if existing is not None:
                return existing
        stored = candidate.model_copy(
            update={"id": f"stored_{next(self._next_id)}", "is_external": False}
        )
        self.places[stored.id] = stored
        self.created.append(stored)
        return stored

class FakePoiSearch:
    """Stands in for PlacesService; records every query it receives."""

    def __init__(
        self,
        text_results: dict[str, list[CandidatePlace]] | None = None,
        nearby_results: list[CandidatePlace] | None = None,
        source: str = "live",
    ):
        self.text_results = text_results or {}
        self.nearby_results = nearby_results or []
        self.source = source
        self.text_queries: list[str] = []
        self.nearby_calls: list[dict] = []

    def search_by_text(self, query: str, min_rating: float | None = None) -> PlaceSearchResult:
        self.text_queries.append(query)
        if self.source != "live":
            return PlaceSearchResult(source=self.source)
        places = []
        for key, results in self.text_results.items():
            if key in query:
                places.extend(results)
        if min_rating is not None:
            places = [p for p in places if (p.rating or 0) >= min_rating]
        return PlaceSearchResult(places=places)

    def search_nearby(
        self,
        lat: float,
        lng: float,
        radius_meters: int,
        min_rating: float | None = None,
        place_type: str | None = None,
    ) -> PlaceSearchResult:
        self.nearby_calls.append(
            {"lat": lat, "lng": lng, "radius_meters": radius_meters, "min_rating": min_rating, "type": place_type}
        )
        if self.source != "live":
            return PlaceSearchResult(source=self.source)
        places = self.nearby_results
        if min_rating is not None:
            places = [p for p in places if (p.rating or 0) >= min_rating]
        return PlaceSearchResult(places=list(places))

class FakeLLM:
    """Stands in for LLMProvider; returns a canned reply or raises."""

    def __init__(self, response: str = "", error: Exception | None = None, delay: float = 0.0):
        self.response = response
        self.error = error
        self.delay = delay
        self.calls: list[dict] = []

    async def chat_async(self, messages: list[dict], temperature: float = 1.0) -> str:
        self.calls.append({"messages": messages, "temperature": temperature})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response
