"""
Helper functions for turning trip preferences into planning parameters.
"""

import logging
import math
from enum import Enum
from typing import Any

from tripplanner.core.schemas import BudgetLevel, PlaceCategory, PriceLevel, TravelStyle

logger = logging.getLogger(__name__)

ACTIVITY_CATEGORIES: dict[TravelStyle, list[PlaceCategory]] = {
    TravelStyle.ADVENTURE: [
        PlaceCategory.HIKING,
        PlaceCategory.ACTIVITY,
        PlaceCategory.BEACH,
        PlaceCategory.PARK,
        PlaceCategory.VIEWPOINT,
    ],
    TravelStyle.CULTURAL: [
        PlaceCategory.HISTORICAL_SITE,
        PlaceCategory.MUSEUM,
        PlaceCategory.RELIGIOUS_SITE,
        PlaceCategory.MARKET,
    ],
    TravelStyle.NATURE_ECO: [
        PlaceCategory.PARK,
        PlaceCategory.HIKING,
        PlaceCategory.BEACH,
        PlaceCategory.VIEWPOINT,
    ],
    TravelStyle.BEACH_RELAXATION: [
        PlaceCategory.BEACH,
        PlaceCategory.CAFE,
        PlaceCategory.VIEWPOINT,
        PlaceCategory.PARK,
    ],
    TravelStyle.URBAN_CITY: [
        PlaceCategory.SHOPPING,
        PlaceCategory.MARKET,
        PlaceCategory.VIEWPOINT,
    ],
    TravelStyle.FAMILY_GROUP: [
        PlaceCategory.MUSEUM,
        PlaceCategory.PARK,
        PlaceCategory.ACTIVITY,
        PlaceCategory.SHOPPING,
    ],
}

DEFAULT_ACTIVITY_CATEGORIES = [
    PlaceCategory.HISTORICAL_SITE,
    PlaceCategory.VIEWPOINT,
    PlaceCategory.ACTIVITY,
]

MAX_TRAVEL_STYLES = 3

# Every accepted raw price representation. Keys are normalised with
# str(value).strip().upper() before lookup.
PRICE_LEVEL_TABLE: dict[str, PriceLevel] = {
    # Google numeric scale (0 = free, 4 = very expensive)
    "0": PriceLevel.INEXPENSIVE,
    "1": PriceLevel.INEXPENSIVE,
    "2": PriceLevel.MODERATE,
    "3": PriceLevel.EXPENSIVE,
    "4": PriceLevel.EXPENSIVE,
    # Places API (New) enum strings
    "PRICE_LEVEL_FREE": PriceLevel.INEXPENSIVE,
    "PRICE_LEVEL_INEXPENSIVE": PriceLevel.INEXPENSIVE,
    "PRICE_LEVEL_MODERATE": PriceLevel.MODERATE,
    "PRICE_LEVEL_EXPENSIVE": PriceLevel.EXPENSIVE,
    "PRICE_LEVEL_VERY_EXPENSIVE": PriceLevel.EXPENSIVE,
    # Our own enum names and common aliases
    "FREE": PriceLevel.INEXPENSIVE,
    "INEXPENSIVE": PriceLevel.INEXPENSIVE,
    "CHEAP": PriceLevel.INEXPENSIVE,
    "MODERATE": PriceLevel.MODERATE,
    "EXPENSIVE": PriceLevel.EXPENSIVE,
    "VERY_EXPENSIVE": PriceLevel.EXPENSIVE,
    # Dollar-sign notation
    "$": PriceLevel.INEXPENSIVE,
    "$$": PriceLevel.MODERATE,
    "$$$": PriceLevel.EXPENSIVE,
    "$$$$": PriceLevel.EXPENSIVE,
}


def parse_price_level(raw: Any) -> PriceLevel | None:
    """
    Map a heterogeneous external price representation onto ``PriceLevel``.

    Args:
        raw: int/float (Google 0-4 scale), numeric string, "$".."$$$$",
            ``PriceLevel`` or its name, or a Google ``PRICE_LEVEL_*`` string

    Returns:
        The matching price level, or None when the value is missing or unknown
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, PriceLevel):
        return raw
    if isinstance(raw, float):
        if not raw.is_integer():
            return None
        raw = int(raw)

    key = raw.value if isinstance(raw, Enum) else str(raw)
    return PRICE_LEVEL_TABLE.get(key.strip().upper())


def map_budget_to_price_level(budget_level: BudgetLevel) -> PriceLevel:
    """Map a trip budget level to the price tier used for meal searches."""
    return {
        BudgetLevel.LOW: PriceLevel.INEXPENSIVE,
        BudgetLevel.MEDIUM: PriceLevel.MODERATE,
        BudgetLevel.HIGH: PriceLevel.EXPENSIVE,
    }[budget_level]


def parse_travel_styles(values: list[str] | None) -> list[TravelStyle]:
    """Parse up to three travel styles; unknown values fall back to CULTURAL."""
    if not values:
        return [TravelStyle.CULTURAL]

    styles = []
    for value in values[:MAX_TRAVEL_STYLES]:
        try:
            styles.append(TravelStyle(value.strip().upper()))
        except ValueError:
            logger.warning(f"[PREFS] Unknown travel style {value!r}, using CULTURAL")
            styles.append(TravelStyle.CULTURAL)
    return styles


def get_activity_categories(travel_styles: list[TravelStyle]) -> list[PlaceCategory]:
    """
    Map travel styles to their place categories.

    Returns:
        Order-preserving union of the styles' categories, or a general-interest
        default when no style maps to anything
    """
    categories: list[PlaceCategory] = []
    for style in travel_styles:
        for category in ACTIVITY_CATEGORIES.get(style, []):
            if category not in categories:
                categories.append(category)

    if not categories:
        logger.warning(
            f"[PREFS] No categories match travel styles {travel_styles}. Defaulting to general interest."
        )
        return list(DEFAULT_ACTIVITY_CATEGORIES)
    return categories


def calculate_pool_size(number_of_days: int, places_per_day: int, multiplier: float = 2.0) -> int:
    """Number of candidate activities to fetch for a trip."""
    return math.ceil(number_of_days * places_per_day * multiplier)


def describe_category(category: PlaceCategory) -> str:
    """Human-readable label for search queries, e.g. HISTORICAL_SITE -> 'historical site'."""
    return category.value.replace("_", " ").lower()
