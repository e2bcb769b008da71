"""
Trip planning orchestrator.

Pipeline: pool -> k-means day clusters -> cluster order from the origin ->
(per day) nearest-neighbor route -> time blocks -> budget trim ->
(per day) meals and lodging -> optional LLM polish.

One ExclusionSet is threaded through every stage so a place is never booked
twice as an activity, or as both an activity and a meal or hotel.
"""

import asyncio
import logging
import random
from typing import Optional, Sequence

from tripplanner.core.cluster_balance import balance_clusters
from tripplanner.core.countries import resolve_origin
from tripplanner.core.exceptions import InvalidTripRequestError, PlanInvariantError
from tripplanner.core.exclusion import ExclusionSet
from tripplanner.core.geo_utils import (
    cluster_places_by_days,
    distance_to_place,
    nearest_neighbor_route,
    order_clusters_by_proximity,
    route_distance,
)
from tripplanner.core.hotel_service import LodgingAugmenter, LodgingResult
from tripplanner.core.itinerary_planner import (
    calculate_pool_size,
    get_activity_categories,
    map_budget_to_price_level,
)
from tripplanner.core.meal_service import MealAnchor, MealAugmenter
from tripplanner.core.places_service import PlacesService
from tripplanner.core.polish_service import ItineraryPolisher
from tripplanner.core.pool_builder import PoolBuilder
from tripplanner.core.repository import CandidateSource
from tripplanner.core.schemas import (
    HOTEL_CATEGORIES,
    BudgetLevel,
    CandidatePlace,
    DayCluster,
    DayPlan,
    PlanWarning,
    TripPlan,
    TripRequest,
    WarningCode,
)
from tripplanner.core.settings import Settings, get_settings
from tripplanner.core.travel_time_utils import (
    estimate_travel_time,
    generate_time_blocks,
    parse_clock_time,
)

logger = logging.getLogger(__name__)

LODGING_POOL_SIZE = 20
EMPTY_DAY_FILL = 3
DEFAULT_ACTIVITY_COST_USD = 20
DAILY_BASE_COST_HIGH_USD = 150
DAILY_BASE_COST_USD = 50
BUDGET_BUFFER = 1.10
# Budget trimming never shrinks a day below this many activities
MIN_PLACES_AFTER_TRIM = 3


def activity_cost(place: CandidatePlace) -> float:
    return place.cost_min_usd or DEFAULT_ACTIVITY_COST_USD


def estimate_trip_cost(days: Sequence[DayPlan], budget_level: BudgetLevel) -> float:
    """Activities at their minimum cost plus a flat daily base per day."""
    daily_base = DAILY_BASE_COST_HIGH_USD if budget_level == BudgetLevel.HIGH else DAILY_BASE_COST_USD
    return sum(sum(activity_cost(p) for p in day.places) + daily_base for day in days)


def cap_day_places(places: Sequence[CandidatePlace], cap: int) -> tuple[list[CandidatePlace], list[CandidatePlace]]:
    """Keep the ``cap`` top-rated places; return (kept, overflow)."""
    ranked = sorted(places, key=lambda p: p.rating or 0, reverse=True)
    return ranked[:cap], ranked[cap:]


class TripPlanner:
    def __init__(
        self,
        source: CandidateSource,
        poi_search: Optional[PlacesService] = None,
        settings: Optional[Settings] = None,
        polisher: Optional[ItineraryPolisher] = None,
    ):
        self.settings = settings or get_settings()
        self.pool_builder = PoolBuilder(source, poi_search)
        self.meal_augmenter = MealAugmenter(
            self.pool_builder, poi_search, timeout_seconds=self.settings.augmentation_timeout_seconds
        )
        self.lodging_augmenter = LodgingAugmenter(poi_search)
        self.polisher = polisher

    async def generate(self, request: TripRequest) -> TripPlan:
        """
        Generate a multi-day plan for ``request``.

        Scarcity and degraded external services never raise; they shrink the
        plan and are reported in ``TripPlan.warnings``.

        Raises:
            InvalidTripRequestError: blank country, or no origin can be resolved
            PlanInvariantError: an impossible stage input in development/test
        """
        if not request.country.strip():
            raise InvalidTripRequestError("country is required")

        settings = self.settings
        parse_clock_time(settings.day_start_time)
        origin = resolve_origin(request.country, request.origin)
        country, city = request.country.strip(), request.city

        seed = request.seed if request.seed is not None else random.randrange(2**32)
        rng = random.Random(seed)
        logger.info(f"[PLANNER] Generating {request.number_of_days}-day trip to {city or country} (seed={seed})")

        places_per_day = request.places_per_day or settings.places_per_day
        max_per_day = max(places_per_day, settings.max_places_per_day)
        categories = request.categories or get_activity_categories(request.travel_styles)
        pool_size = calculate_pool_size(request.number_of_days, places_per_day, settings.pool_size_multiplier)
        meal_price_level = map_budget_to_price_level(request.budget_level)

        exclusion = ExclusionSet()
        warnings: list[PlanWarning] = []

        # 1. Candidate pool
        pool_result = await asyncio.to_thread(
            self.pool_builder.build, categories, country, city, pool_size, exclusion
        )
        pool = pool_result.places
        warnings.extend(pool_result.warnings)
        logger.info(f"[POOL] Built pool of {len(pool)}/{pool_size} activities")

        # 2. Day clusters, ordered from the origin
        clusters = cluster_places_by_days(pool, request.number_of_days, places_per_day, rng=rng)
        clusters = order_clusters_by_proximity(clusters, origin)
        if settings.balance_clusters:
            clusters = balance_clusters(clusters, request.number_of_days, origin)
        clusters = self._drop_empty_clusters(clusters, warnings)
        logger.info(f"[CLUSTER] {len(clusters)} clusters: {[len(c.places) for c in clusters]}")

        day_places: list[list[CandidatePlace]] = []
        overflow: list[CandidatePlace] = []
        for cluster in clusters:
            kept, extra = cap_day_places(cluster.places, max_per_day)
            day_places.append(kept)
            overflow.extend(extra)
        assigned = {p.id for places in day_places for p in places}
        unused = [p for p in pool if p.id not in assigned]
        if overflow:
            logger.info(f"[CLUSTER] Returned {len(overflow)} places over the daily cap to the pool")

        # 3. Day routes
        days: list[DayPlan] = []
        entry = origin
        for day_number in range(1, request.number_of_days + 1):
            candidates = day_places[day_number - 1] if day_number <= len(day_places) else []
            places = [p for p in candidates if not exclusion.conflicts(p, "activity")]

            if not places:
                places = [p for p in unused if not exclusion.conflicts(p, "activity")][
                    : min(EMPTY_DAY_FILL, max_per_day)
                ]
                if places:
                    logger.info(f"[PLANNER] Day {day_number}: filled with {len(places)} unused pool places")

            if not places:
                logger.warning(f"[LIMITED DATA] Day {day_number}: no activities left to schedule")
                warnings.append(
                    PlanWarning(
                        code=WarningCode.LIMITED_DATA,
                        stage="Day Planning",
                        message="No activities left to schedule",
                        day_number=day_number,
                        requested=places_per_day,
                        found=0,
                    )
                )
                days.append(DayPlan(day_number=day_number))
                continue

            route = nearest_neighbor_route(places, entry)
            exclusion.add_all(route, "activity")
            day = DayPlan(day_number=day_number)
            self._schedule_day(day, route)
            days.append(day)
            entry = route[-1].coordinate

        # 4. Budget, before meals and lodging so they anchor on the final routes
        estimated_cost = self._fit_budget(days, request, warnings)

        # 5. Meals and lodging
        lodging_pool = await self._lodging_pool(country, city, warnings)
        for day in days:
            if not day.blocks:
                continue
            route = day.places
            meal_result = await self.meal_augmenter.fetch_meals_for_day(
                MealAnchor(coordinate=route[0].coordinate, name=route[0].name),
                MealAnchor(coordinate=route[len(route) // 2].coordinate, name=route[len(route) // 2].name),
                MealAnchor(coordinate=route[-1].coordinate, name=route[-1].name),
                country,
                city,
                meal_price_level,
                exclusion,
                day_number=day.day_number,
            )
            day.meals = meal_result.meals
            warnings.extend(meal_result.warnings)

            lodging_result = await self._find_lodging(route[-1], lodging_pool, exclusion, day.day_number)
            day.lodging = lodging_result.lodging
            warnings.extend(lodging_result.warnings)

        plan = TripPlan(
            days=days,
            origin=origin,
            estimated_cost_usd=estimated_cost,
            seed=seed,
            warnings=warnings,
        )
        self._compute_totals(plan)

        # 6. Optional advice; never fatal
        await self._polish(plan, city or country)
        logger.info(
            f"[PLANNER] Done: {sum(len(d.blocks) for d in days)} activities over {len(days)} days, "
            f"{plan.total_distance_km} km, {len(plan.warnings)} warnings"
        )
        return plan

    def _invariant_violation(self, message: str, warnings: list[PlanWarning], stage: str) -> None:
        if self.settings.is_strict:
            raise PlanInvariantError(message)
        logger.error(f"[PLANNER] {message}; skipping")
        warnings.append(PlanWarning(code=WarningCode.INVARIANT_SKIPPED, stage=stage, message=message))

    def _drop_empty_clusters(
        self, clusters: Sequence[DayCluster], warnings: list[PlanWarning]
    ) -> list[DayCluster]:
        kept = []
        for cluster in clusters:
            if not cluster.places:
                self._invariant_violation("Empty cluster reached the scheduler", warnings, "Clustering")
                continue
            kept.append(cluster)
        return kept

    def _schedule_day(self, day: DayPlan, route: Sequence[CandidatePlace]) -> None:
        day.blocks = generate_time_blocks(route, start_time=self.settings.day_start_time)
        day.total_distance_km = round(route_distance(route), 1)
        day.travel_minutes = sum(block.travel_minutes_from_previous for block in day.blocks)

    async def _lodging_pool(
        self, country: str, city: Optional[str], warnings: list[PlanWarning]
    ) -> list[CandidatePlace]:
        try:
            lodging_pool = await asyncio.to_thread(
                self.pool_builder.fetch_ranked, HOTEL_CATEGORIES, country, city, LODGING_POOL_SIZE
            )
        except Exception as e:
            logger.warning(f"[HOTEL] Lodging candidate lookup failed: {e}")
            warnings.append(
                PlanWarning(
                    code=WarningCode.SERVICE_DEGRADED,
                    stage="Lodging",
                    message=f"Lodging candidate lookup failed: {e}",
                )
            )
            return []
        logger.info(f"[HOTEL] {len(lodging_pool)} lodging candidates")
        return lodging_pool

    async def _find_lodging(
        self,
        anchor: CandidatePlace,
        lodging_pool: list[CandidatePlace],
        exclusion: ExclusionSet,
        day_number: int,
    ) -> LodgingResult:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(
                    self.lodging_augmenter.find_lodging,
                    anchor.latitude,
                    anchor.longitude,
                    lodging_pool,
                    exclusion,
                    day_number=day_number,
                ),
                timeout=self.settings.augmentation_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"[HOTEL] Day {day_number}: lodging search timed out")
            return LodgingResult(
                warnings=[
                    PlanWarning(
                        code=WarningCode.AUGMENTATION_TIMEOUT,
                        stage="Lodging",
                        message="Lodging search timed out",
                        day_number=day_number,
                    )
                ]
            )
        except Exception as e:
            logger.warning(f"[HOTEL] Day {day_number}: lodging search failed: {e}")
            return LodgingResult(
                warnings=[
                    PlanWarning(
                        code=WarningCode.SERVICE_DEGRADED,
                        stage="Lodging",
                        message=f"Lodging search failed: {e}",
                        day_number=day_number,
                    )
                ]
            )

    async def _polish(self, plan: TripPlan, area: str) -> None:
        if self.polisher is None:
            logger.info("[POLISH] No LLM configured; skipping itinerary polish")
            self._skip_polish(plan, "No LLM configured")
            return
        if not any(day.blocks for day in plan.days):
            self._skip_polish(plan, "No scheduled activities to polish")
            return

        try:
            result = await asyncio.wait_for(
                self.polisher.polish(plan.days, area),
                timeout=self.settings.polish_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"[POLISH] Timed out after {self.settings.polish_timeout_seconds}s")
            self._skip_polish(plan, "Itinerary polish timed out")
            return
        except Exception as e:
            logger.warning(f"[POLISH] Failed (non-critical): {e}")
            self._skip_polish(plan, f"Itinerary polish failed: {e}")
            return

        plan.travel_alerts = result.travel_alerts
        plan.tourist_traps = result.tourist_traps
        plan.local_tips = result.local_tips
        plan.checklist = result.checklist

    @staticmethod
    def _skip_polish(plan: TripPlan, message: str) -> None:
        plan.warnings.append(PlanWarning(code=WarningCode.POLISH_SKIPPED, stage="Polish", message=message))

    def _fit_budget(
        self, days: list[DayPlan], request: TripRequest, warnings: list[PlanWarning]
    ) -> float:
        """
        Trim the most expensive activities until the estimate fits the budget
        plus a 10% buffer. Days never drop below three activities.
        """
        total = estimate_trip_cost(days, request.budget_level)
        limit = request.budget_usd * BUDGET_BUFFER
        if request.budget_usd <= 0 or total <= limit:
            logger.info(f"[BUDGET] Within budget: ${total:.0f} <= ${request.budget_usd:.0f}")
            return total

        logger.info(
            f"[BUDGET] Over budget (${total:.0f} > ${request.budget_usd:.0f} + 10% buffer). Trimming..."
        )
        candidates = [(place, day) for day in days for place in day.places]
        candidates.sort(key=lambda item: activity_cost(item[0]), reverse=True)

        trimmed: dict[int, DayPlan] = {}
        removed = 0
        for place, day in candidates:
            if total <= limit:
                break
            remaining = [p for p in day.places if p.id != place.id]
            if len(day.places) <= MIN_PLACES_AFTER_TRIM:
                continue
            self._schedule_day(day, remaining)
            trimmed[day.day_number] = day
            total -= activity_cost(place)
            removed += 1
            logger.info(f'[BUDGET] Removed expensive item "{place.name}" to save ${activity_cost(place):.0f}')

        logger.info(
            f"[BUDGET] Trimming complete. Removed {removed} activities from "
            f"{len(trimmed)} days. New total: ${total:.0f}"
        )
        if total > limit:
            warnings.append(
                PlanWarning(
                    code=WarningCode.OVER_BUDGET,
                    stage="Budget",
                    message=f"Estimated cost ${total:.0f} exceeds budget ${request.budget_usd:.0f}",
                )
            )
        return total

    @staticmethod
    def _compute_totals(plan: TripPlan) -> None:
        distance = 0.0
        minutes = 0
        current = plan.origin
        for day in plan.days:
            if not day.blocks:
                continue
            entry_km = distance_to_place(current, day.places[0])
            distance += entry_km + day.total_distance_km
            minutes += estimate_travel_time(entry_km) + day.travel_minutes
            current = day.places[-1].coordinate

        plan.total_distance_km = round(distance, 1)
        plan.total_travel_minutes = minutes
