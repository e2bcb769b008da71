"""
Meal selection near a day's morning, midday and evening anchor points.

The three slot searches are independent and run concurrently; picks are then
reconciled one slot at a time against the shared exclusion set so that two
slots can never claim the same place.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from pydantic import BaseModel, Field

from tripplanner.core.exclusion import ExclusionSet
from tripplanner.core.geo_utils import distance_to_place
from tripplanner.core.places_service import PlaceSearchResult, PlacesService
from tripplanner.core.pool_builder import PoolBuilder
from tripplanner.core.schemas import (
    CandidatePlace,
    Classification,
    Coordinate,
    DayMeals,
    PlaceCategory,
    PlanWarning,
    PriceLevel,
    WarningCode,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MEAL_FETCH_LIMIT = 10
EXTERNAL_MEAL_MIN_RATING = 3.5


class MealSlot(BaseModel):
    name: str
    categories: list[PlaceCategory]
    radius_km: float
    query: str


BREAKFAST = MealSlot(
    name="breakfast",
    categories=[PlaceCategory.CAFE, PlaceCategory.RESTAURANT],
    radius_km=15,
    query="restaurant OR cafe",
)
LUNCH = MealSlot(
    name="lunch", categories=[PlaceCategory.RESTAURANT], radius_km=15, query="restaurant"
)
DINNER = MealSlot(
    name="dinner",
    categories=[PlaceCategory.RESTAURANT, PlaceCategory.BAR],
    radius_km=20,
    query="restaurant OR bar",
)
MEAL_SLOTS = [BREAKFAST, LUNCH, DINNER]


class MealAnchor(BaseModel):
    coordinate: Coordinate
    name: str | None = None


class MealResult(BaseModel):
    meals: DayMeals = Field(default_factory=DayMeals)
    warnings: list[PlanWarning] = Field(default_factory=list)
    external_searches: int = 0


class MealAugmenter:
    def __init__(
        self,
        pool_builder: PoolBuilder,
        poi_search: Optional[PlacesService] = None,
        timeout_seconds: float = 20.0,
    ):
        self.pool_builder = pool_builder
        self.poi_search = poi_search
        self.timeout_seconds = timeout_seconds

    async def fetch_meals_for_day(
        self,
        morning: MealAnchor,
        midday: MealAnchor,
        evening: MealAnchor,
        country: str,
        city: Optional[str],
        price_level: Optional[PriceLevel],
        exclusion: ExclusionSet,
        day_number: Optional[int] = None,
    ) -> MealResult:
        """
        Find breakfast, lunch and dinner near the day's anchors.

        Each picked meal is added to ``exclusion``. A slot with no candidate
        resolves to None; that is reported as a warning, not an error.
        """
        result = MealResult()
        anchors = dict(zip([s.name for s in MEAL_SLOTS], [morning, midday, evening]))
        picks: dict[str, Optional[CandidatePlace]] = {s.name: None for s in MEAL_SLOTS}

        logger.info(f"[MEALS] Day {day_number}: fetching restaurants for breakfast, lunch, dinner...")

        db_candidates = await asyncio.gather(
            *(
                self._bounded(
                    lambda slot=slot: self._db_candidates(
                        slot, anchors[slot.name], country, price_level, exclusion
                    ),
                    result,
                    f"{slot.name} lookup",
                    day_number,
                    default=[],
                )
                for slot in MEAL_SLOTS
            )
        )
        for slot, candidates in zip(MEAL_SLOTS, db_candidates):
            picks[slot.name] = self._pick(candidates, exclusion)

        missing = [slot for slot in MEAL_SLOTS if picks[slot.name] is None]
        if missing and self.poi_search is not None:
            searches = await asyncio.gather(
                *(
                    self._bounded(
                        lambda slot=slot: self._external_search(slot, anchors[slot.name], country, city),
                        result,
                        f"{slot.name} search",
                        day_number,
                        default=PlaceSearchResult(source="unavailable"),
                    )
                    for slot in missing
                )
            )
            result.external_searches += len(missing)

            for slot, search in zip(missing, searches):
                if search.degraded:
                    result.warnings.append(
                        PlanWarning(
                            code=WarningCode.SERVICE_DEGRADED,
                            stage="Meals",
                            message=f"External place search unavailable for {slot.name}",
                            day_number=day_number,
                        )
                    )
                    continue
                nearby = self._within_radius(search.places, anchors[slot.name], slot)
                picks[slot.name] = await self._persist_first(
                    nearby, slot, country, city, exclusion
                )

        for slot in MEAL_SLOTS:
            place = picks[slot.name]
            if place is not None:
                logger.info(f"[MEALS] ✓ {slot.name.capitalize()}: {place.name}")
            else:
                logger.warning(f"[MEALS] ✗ No {slot.name} found")
                result.warnings.append(
                    PlanWarning(
                        code=WarningCode.MEAL_NOT_FOUND,
                        stage="Meals",
                        message=f"No {slot.name} found within {slot.radius_km:g} km",
                        day_number=day_number,
                    )
                )

        result.meals = DayMeals(**picks)
        return result

    async def _bounded(
        self,
        fn: Callable[[], T],
        result: MealResult,
        label: str,
        day_number: Optional[int],
        default: T,
    ) -> T:
        # Blocking repository/HTTP work runs on a worker thread with a deadline
        call: Awaitable[T] = asyncio.to_thread(fn)
        try:
            return await asyncio.wait_for(call, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"[MEALS] {label} timed out after {self.timeout_seconds}s")
            result.warnings.append(
                PlanWarning(
                    code=WarningCode.AUGMENTATION_TIMEOUT,
                    stage="Meals",
                    message=f"{label} timed out",
                    day_number=day_number,
                )
            )
            return default
        except Exception as e:
            logger.warning(f"[MEALS] {label} failed: {e}")
            result.warnings.append(
                PlanWarning(
                    code=WarningCode.SERVICE_DEGRADED,
                    stage="Meals",
                    message=f"{label} failed: {e}",
                    day_number=day_number,
                )
            )
            return default

    def _db_candidates(
        self,
        slot: MealSlot,
        anchor: MealAnchor,
        country: str,
        price_level: Optional[PriceLevel],
        exclusion: ExclusionSet,
    ) -> list[CandidatePlace]:
        fetched = self.pool_builder.fetch_ranked(
            slot.categories, country, None, MEAL_FETCH_LIMIT, exclusion, price_level
        )
        nearby = self._within_radius(fetched, anchor, slot)
        logger.info(
            f"[MEALS] {slot.name.capitalize()}: Found {len(fetched)} candidates, "
            f"{len(nearby)} within {slot.radius_km:g}km"
        )
        return nearby

    def _external_search(
        self, slot: MealSlot, anchor: MealAnchor, country: str, city: Optional[str]
    ) -> PlaceSearchResult:
        area = city or country
        query = f"{slot.query} near {anchor.name}, {area}" if anchor.name else f"{slot.query} in {area}"
        logger.info(f"[MEALS] Searching Google Places for {slot.name}: {query!r}")
        return self.poi_search.search_by_text(query, min_rating=EXTERNAL_MEAL_MIN_RATING)

    @staticmethod
    def _within_radius(
        places: list[CandidatePlace], anchor: MealAnchor, slot: MealSlot
    ) -> list[CandidatePlace]:
        return [p for p in places if distance_to_place(anchor.coordinate, p) < slot.radius_km]

    @staticmethod
    def _pick(candidates: list[CandidatePlace], exclusion: ExclusionSet) -> Optional[CandidatePlace]:
        for candidate in candidates:
            if not exclusion.conflicts(candidate, "meal"):
                exclusion.add(candidate, "meal")
                return candidate
        return None

    async def _persist_first(
        self,
        candidates: list[CandidatePlace],
        slot: MealSlot,
        country: str,
        city: Optional[str],
        exclusion: ExclusionSet,
    ) -> Optional[CandidatePlace]:
        source = self.pool_builder.source
        for candidate in candidates:
            if exclusion.conflicts(candidate, "meal"):
                continue
            # Reserve before persisting so a concurrent slot cannot claim it
            exclusion.add(candidate, "meal")
            category = candidate.category if candidate.category in slot.categories else PlaceCategory.RESTAURANT
            try:
                stored = await asyncio.to_thread(
                    source.create,
                    candidate.model_copy(
                        update={
                            "category": category,
                            "classification": Classification.HIDDEN_GEM,
                            "city": city or country,
                            "country": country,
                        }
                    ),
                )
            except Exception as e:
                logger.warning(f"[MEALS] Could not persist {candidate.name}: {e}")
                continue
            exclusion.add(stored, "meal")
            return stored
        return None
