from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

# =============================================================================
# Enumerations
# =============================================================================


class PlaceCategory(str, Enum):
    RESTAURANT = "RESTAURANT"
    CAFE = "CAFE"
    BAR = "BAR"
    NIGHTCLUB = "NIGHTCLUB"
    BEACH = "BEACH"
    HIKING = "HIKING"
    HISTORICAL_SITE = "HISTORICAL_SITE"
    MUSEUM = "MUSEUM"
    MARKET = "MARKET"
    VIEWPOINT = "VIEWPOINT"
    PARK = "PARK"
    RELIGIOUS_SITE = "RELIGIOUS_SITE"
    SHOPPING = "SHOPPING"
    ACTIVITY = "ACTIVITY"
    HOTEL = "HOTEL"
    ACCOMMODATION = "ACCOMMODATION"
    OTHER = "OTHER"


FOOD_CATEGORIES = frozenset(
    {PlaceCategory.RESTAURANT, PlaceCategory.CAFE, PlaceCategory.BAR}
)
HOTEL_CATEGORIES = [PlaceCategory.HOTEL, PlaceCategory.ACCOMMODATION]


class Classification(str, Enum):
    MUST_SEE = "MUST_SEE"
    HIDDEN_GEM = "HIDDEN_GEM"
    CONDITIONAL = "CONDITIONAL"
    TOURIST_TRAP = "TOURIST_TRAP"


class PriceLevel(str, Enum):
    INEXPENSIVE = "INEXPENSIVE"
    MODERATE = "MODERATE"
    EXPENSIVE = "EXPENSIVE"


class BudgetLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class TravelStyle(str, Enum):
    ADVENTURE = "ADVENTURE"
    CULTURAL = "CULTURAL"
    NATURE_ECO = "NATURE_ECO"
    BEACH_RELAXATION = "BEACH_RELAXATION"
    URBAN_CITY = "URBAN_CITY"
    FAMILY_GROUP = "FAMILY_GROUP"


class WarningCode(str, Enum):
    LIMITED_DATA = "LIMITED_DATA"
    SERVICE_DEGRADED = "SERVICE_DEGRADED"
    AUGMENTATION_TIMEOUT = "AUGMENTATION_TIMEOUT"
    MEAL_NOT_FOUND = "MEAL_NOT_FOUND"
    LODGING_NOT_FOUND = "LODGING_NOT_FOUND"
    INVARIANT_SKIPPED = "INVARIANT_SKIPPED"
    OVER_BUDGET = "OVER_BUDGET"
    POLISH_SKIPPED = "POLISH_SKIPPED"


class ChecklistCategory(str, Enum):
    ESSENTIALS = "ESSENTIALS"
    WEATHER = "WEATHER"
    TERRAIN = "TERRAIN"
    ACTIVITY = "ACTIVITY"
    SAFETY = "SAFETY"
    DOCUMENTATION = "DOCUMENTATION"


# =============================================================================
# Places
# =============================================================================


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class ExternalSource(BaseModel):
    """Metadata for a place discovered through an external POI provider."""

    model_config = ConfigDict(frozen=True)

    provider: str = "google_places"
    external_id: str
    address: str | None = None
    total_ratings: int | None = None
    website_url: str | None = None
    photo_reference: str | None = None


class CandidatePlace(BaseModel):
    """
    A point of interest that can be scheduled as an activity, a meal or lodging.

    Instances are immutable; enrichment produces a copy via ``model_copy``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    category: PlaceCategory = PlaceCategory.OTHER
    classification: Classification | None = None
    rating: float | None = Field(None, description="Rating (0-5)")
    popularity: int | None = Field(None, description="Review count or visit popularity")
    price_level: PriceLevel | None = None
    suggested_duration: int | None = Field(
        None, gt=0, description="Suggested visit duration in minutes"
    )
    city: str | None = None
    country: str | None = None
    cost_min_usd: float | None = Field(None, ge=0)
    external: ExternalSource | None = None
    # True until the place has been persisted to the place repository
    is_external: bool = False

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(lat=self.latitude, lng=self.longitude)

    @property
    def external_id(self) -> str | None:
        return self.external.external_id if self.external else None


# =============================================================================
# Plan structures
# =============================================================================


class DayCluster(BaseModel):
    """Unordered group of places assigned to one day."""

    places: list[CandidatePlace] = Field(default_factory=list)
    centroid: Coordinate


class RouteBlock(BaseModel):
    place: CandidatePlace
    start_time: str = Field(..., description="Local 24h clock label, e.g. '09:00'")
    end_time: str
    # Minutes since midnight of the day start, never wrapped
    start_minutes: int
    end_minutes: int
    travel_minutes_from_previous: int = 0


class DayMeals(BaseModel):
    breakfast: CandidatePlace | None = None
    lunch: CandidatePlace | None = None
    dinner: CandidatePlace | None = None


class PlanWarning(BaseModel):
    code: WarningCode
    stage: str
    message: str
    day_number: int | None = None
    requested: int | None = None
    found: int | None = None


class DayPlan(BaseModel):
    day_number: int
    blocks: list[RouteBlock] = Field(default_factory=list)
    meals: DayMeals = Field(default_factory=DayMeals)
    lodging: CandidatePlace | None = None
    total_distance_km: float = 0.0
    travel_minutes: int = 0

    @property
    def places(self) -> list[CandidatePlace]:
        return [block.place for block in self.blocks]


# =============================================================================
# Itinerary polish (optional LLM advice)
# =============================================================================


class TravelAlert(BaseModel):
    title: str
    description: str = ""


class TouristTrapAlert(BaseModel):
    name: str
    reason: str = ""


class ChecklistItem(BaseModel):
    category: ChecklistCategory
    item: str
    reason: str = ""


class TripPlan(BaseModel):
    days: list[DayPlan] = Field(default_factory=list)
    total_distance_km: float = 0.0
    # Intra-day block travel plus the leg into each day's first place
    total_travel_minutes: int = 0
    origin: Coordinate
    estimated_cost_usd: float = 0.0
    seed: int | None = None
    warnings: list[PlanWarning] = Field(default_factory=list)

    # Filled by the polish step; empty when no LLM is configured
    travel_alerts: list[TravelAlert] = Field(default_factory=list)
    tourist_traps: list[TouristTrapAlert] = Field(default_factory=list)
    local_tips: list[str] = Field(default_factory=list)
    checklist: list[ChecklistItem] = Field(default_factory=list)

    @property
    def limited_data(self) -> bool:
        return any(w.code == WarningCode.LIMITED_DATA for w in self.warnings)


# =============================================================================
# Request
# =============================================================================


class TripRequest(BaseModel):
    country: str = Field(..., min_length=1)
    city: str | None = None
    number_of_days: int = Field(..., ge=1, le=30)
    budget_level: BudgetLevel = BudgetLevel.MEDIUM
    budget_usd: float = Field(0.0, ge=0)
    travel_styles: list[TravelStyle] = Field(
        default_factory=lambda: [TravelStyle.CULTURAL], min_length=1, max_length=3
    )
    # Explicit categories take precedence over the travel-style mapping
    categories: list[PlaceCategory] | None = None
    origin: Coordinate | None = None
    places_per_day: int | None = Field(None, ge=1, le=12)
    seed: int | None = None

    @field_validator("city")
    @classmethod
    def blank_city_is_none(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v
