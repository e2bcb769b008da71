"""
Candidate pool construction: ranked repository fetches with tiered fallback.

Tier 0 queries the requested city, tier 1 widens to the whole country, and
tier 2 augments from the external POI search, persisting what it discovers.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from tripplanner.core.exclusion import ExclusionSet
from tripplanner.core.itinerary_planner import describe_category
from tripplanner.core.places_service import PlacesService
from tripplanner.core.repository import CandidateSource
from tripplanner.core.schemas import (
    FOOD_CATEGORIES,
    CandidatePlace,
    Classification,
    PlaceCategory,
    PlanWarning,
    PriceLevel,
    WarningCode,
)

logger = logging.getLogger(__name__)

AUGMENT_MIN_RATING = 4.0

_CLASSIFICATION_PRIORITY = {
    Classification.MUST_SEE: 0,
    Classification.HIDDEN_GEM: 0,
    Classification.CONDITIONAL: 1,
    Classification.TOURIST_TRAP: 2,
}


class PoolResult(BaseModel):
    places: list[CandidatePlace] = Field(default_factory=list)
    requested: int
    augmented: int = 0
    warnings: list[PlanWarning] = Field(default_factory=list)

    @property
    def limited_data(self) -> bool:
        return len(self.places) < self.requested


def classification_priority(place: CandidatePlace) -> int:
    """MUST_SEE/HIDDEN_GEM first, TOURIST_TRAP last, unclassified after everything."""
    return _CLASSIFICATION_PRIORITY.get(place.classification, 3)


def rank_key(place: CandidatePlace) -> tuple[int, float, int]:
    return (classification_priority(place), -(place.rating or 0), -(place.popularity or 0))


def is_food_category(categories: Iterable[PlaceCategory]) -> bool:
    """
    Food groups are exempt from the tourist-trap exclusion.

    Product decision carried over as-is: avoiding every trap restaurant in
    food-scarce areas degrades results more than the trap risk does.
    """
    return any(category in FOOD_CATEGORIES for category in categories)


def check_limited_data(found: int, requested: int, context: str) -> Optional[PlanWarning]:
    if found >= requested:
        return None
    logger.warning(
        f"[LIMITED DATA] {context}: Requested {requested}, but only found {found}. "
        "Itinerary quality may degrade."
    )
    return PlanWarning(
        code=WarningCode.LIMITED_DATA,
        stage=context,
        message=f"Requested {requested} places but only {found} are available",
        requested=requested,
        found=found,
    )


class PoolBuilder:
    def __init__(self, source: CandidateSource, poi_search: Optional[PlacesService] = None):
        self.source = source
        self.poi_search = poi_search

    def fetch_ranked(
        self,
        categories: list[PlaceCategory],
        country: str,
        city: Optional[str],
        limit: int,
        exclusion: Optional[ExclusionSet] = None,
        price_level: Optional[PriceLevel] = None,
    ) -> list[CandidatePlace]:
        """
        Fetch places from the repository ranked by classification, rating and
        popularity, widening from the city to the whole country if short.

        Args:
            categories: Target categories
            country: Country to search
            city: Optional city; None searches country-wide
            limit: Maximum number of places to return
            exclusion: Places already committed to the plan
            price_level: Optional price tier filter

        Returns:
            Ranked, deduplicated places not present in ``exclusion``
        """
        if limit <= 0:
            return []

        exclusion = exclusion or ExclusionSet()
        exclude_traps = not is_food_category(categories)

        places = self._query(
            categories, country, city, limit * 2, exclusion, [], price_level, exclude_traps
        )[:limit]

        # Tier 1: fill with country-wide places
        if len(places) < limit and city:
            missing = limit - len(places)
            logger.info(f"[POOL] Only {len(places)}/{limit} in {city}, widening to {country}")
            country_places = self._query(
                categories, country, None, missing * 2, exclusion, places, price_level, exclude_traps
            )
            places.extend(country_places[:missing])

        return places

    def _query(
        self,
        categories: list[PlaceCategory],
        country: str,
        city: Optional[str],
        limit: int,
        exclusion: ExclusionSet,
        chosen: list[CandidatePlace],
        price_level: Optional[PriceLevel],
        exclude_traps: bool,
    ) -> list[CandidatePlace]:
        chosen_ids = {p.id for p in chosen}
        fetched = self.source.fetch(
            categories,
            country,
            city=city,
            limit=limit,
            exclude_ids=sorted(exclusion.ids() | chosen_ids),
            price_level=price_level,
            exclude_tourist_traps=exclude_traps,
        )

        unique: list[CandidatePlace] = []
        for place in fetched:
            if place.id in chosen_ids or place in exclusion:
                continue
            chosen_ids.add(place.id)
            unique.append(place)

        unique.sort(key=rank_key)
        return unique

    def build(
        self,
        categories: list[PlaceCategory],
        country: str,
        city: Optional[str],
        size: int,
        exclusion: Optional[ExclusionSet] = None,
        price_level: Optional[PriceLevel] = None,
        augment: bool = True,
    ) -> PoolResult:
        """
        Assemble a ranked candidate pool of at most ``size`` places.

        Short pools are not an error: the result carries a LIMITED_DATA warning
        and downstream stages work with what is available.
        """
        exclusion = exclusion or ExclusionSet()
        result = PoolResult(requested=size)

        places = self.fetch_ranked(categories, country, city, size, exclusion, price_level)
        logger.info(f"[POOL] Repository supplied {len(places)}/{size} candidates")

        if len(places) < size and augment and self.poi_search is not None:
            before = len(places)
            places, warnings = self._augment(places, categories, size, country, city, exclusion)
            result.augmented = len(places) - before
            result.warnings.extend(warnings)

        result.places = places
        warning = check_limited_data(len(places), size, "Activity Pool")
        if warning:
            result.warnings.append(warning)
        return result

    def _augment(
        self,
        pool: list[CandidatePlace],
        categories: list[PlaceCategory],
        size: int,
        country: str,
        city: Optional[str],
        exclusion: ExclusionSet,
    ) -> tuple[list[CandidatePlace], list[PlanWarning]]:
        pool = list(pool)
        warnings: list[PlanWarning] = []
        known_external = {p.external_id for p in pool if p.external_id}
        area = city or country

        logger.info(
            f"[AUGMENT] Pool too small ({len(pool)} < {size}). "
            f"Attempting to fetch {size - len(pool)} new places from Google..."
        )

        for category in categories:
            if len(pool) >= size:
                break

            query = f"Best {describe_category(category)} in {area}"
            search = self.poi_search.search_by_text(query, min_rating=AUGMENT_MIN_RATING)
            if search.degraded:
                warnings.append(
                    PlanWarning(
                        code=WarningCode.SERVICE_DEGRADED,
                        stage="Activity Pool",
                        message="External place search unavailable; pool augmentation skipped",
                    )
                )
                break

            for found in search.places:
                if len(pool) >= size:
                    break
                if found.external_id in known_external or found in exclusion:
                    continue
                known_external.add(found.external_id)

                try:
                    if self.source.find_by_external_id(found.external_id) is not None:
                        continue
                    stored = self.source.create(
                        found.model_copy(
                            update={
                                "category": category,
                                "classification": Classification.MUST_SEE,
                                "city": area,
                                "country": country,
                            }
                        )
                    )
                except Exception as e:
                    logger.warning(f"[AUGMENT] Could not persist {found.name}: {e}")
                    continue
                pool.append(stored)

        logger.info(f"[AUGMENT] Pool size after augmentation: {len(pool)}")
        return pool, warnings
