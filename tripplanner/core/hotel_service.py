"""
Lodging selection near a day's evening anchor.
"""

import logging
from typing import Optional, Sequence

from pydantic import BaseModel, Field

from tripplanner.core.exclusion import ExclusionSet
from tripplanner.core.geo_utils import haversine_distance
from tripplanner.core.places_service import PlacesService
from tripplanner.core.schemas import CandidatePlace, PlaceCategory, PlanWarning, WarningCode

logger = logging.getLogger(__name__)

DEFAULT_LODGING_RADIUS_KM = 10
EXTERNAL_LODGING_MIN_RATING = 4.0


class LodgingResult(BaseModel):
    lodging: CandidatePlace | None = None
    warnings: list[PlanWarning] = Field(default_factory=list)


class LodgingAugmenter:
    def __init__(self, poi_search: Optional[PlacesService] = None):
        self.poi_search = poi_search

    def find_lodging(
        self,
        lat: float,
        lng: float,
        candidates: Sequence[CandidatePlace],
        exclusion: ExclusionSet,
        radius_km: float = DEFAULT_LODGING_RADIUS_KM,
        day_number: Optional[int] = None,
    ) -> LodgingResult:
        """
        Pick the nearest lodging within ``radius_km`` of the anchor.

        Falls back to a nearby external search and takes its top-rated result,
        which stays marked external. The chosen place is added to ``exclusion``.
        """
        result = LodgingResult()

        nearest: CandidatePlace | None = None
        nearest_dist = float("inf")
        for candidate in candidates:
            if exclusion.conflicts(candidate, "lodging"):
                continue
            dist = haversine_distance(lat, lng, candidate.latitude, candidate.longitude)
            if dist <= radius_km and dist < nearest_dist:
                nearest = candidate
                nearest_dist = dist

        if nearest is not None:
            logger.info(f"[HOTEL] Found DB hotel: {nearest.name} ({nearest_dist:.1f}km)")
            exclusion.add(nearest, "lodging")
            result.lodging = nearest
            return result

        if self.poi_search is not None:
            logger.info(f"[HOTEL] No DB hotel within {radius_km}km, searching Google Places...")
            search = self.poi_search.search_nearby(
                lat,
                lng,
                int(radius_km * 1000),
                min_rating=EXTERNAL_LODGING_MIN_RATING,
                place_type="lodging",
            )
            if search.degraded:
                result.warnings.append(
                    PlanWarning(
                        code=WarningCode.SERVICE_DEGRADED,
                        stage="Lodging",
                        message="External place search unavailable; lodging fallback skipped",
                        day_number=day_number,
                    )
                )
            else:
                found = [p for p in search.places if not exclusion.conflicts(p, "lodging")]
                if found:
                    best = max(found, key=lambda p: p.rating or 0)
                    best = best.model_copy(update={"category": PlaceCategory.HOTEL})
                    logger.info(f"[HOTEL] Found Google hotel: {best.name} (rating: {best.rating})")
                    exclusion.add(best, "lodging")
                    result.lodging = best
                    return result

        logger.warning("[HOTEL] No hotel found near anchor")
        result.warnings.append(
            PlanWarning(
                code=WarningCode.LODGING_NOT_FOUND,
                stage="Lodging",
                message=f"No lodging found within {radius_km:g} km",
                day_number=day_number,
            )
        )
        return result
