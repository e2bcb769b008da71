"""
Utilities for travel-time estimates and converting a day route into clock times.
"""

import math
import re
from typing import Sequence

from tripplanner.core.geo_utils import haversine_distance
from tripplanner.core.schemas import CandidatePlace, RouteBlock

# Flat average speed accounting for urban traffic
AVERAGE_SPEED_KMH = 25
DEFAULT_VISIT_MINUTES = 90
MINUTES_PER_DAY = 24 * 60

_CLOCK_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


def estimate_travel_time(distance_km: float) -> int:
    """
    Estimate travel time in minutes at a flat 25 km/h.

    Args:
        distance_km: Distance in kilometers

    Returns:
        Travel time in whole minutes, rounded up
    """
    if distance_km <= 0:
        return 0
    return math.ceil(distance_km / AVERAGE_SPEED_KMH * 60)


def parse_clock_time(time_str: str) -> int:
    """
    Parse a 24-hour "HH:MM" label into minutes since midnight.

    Raises:
        ValueError: if the label is not a valid clock time
    """
    match = _CLOCK_PATTERN.match(time_str.strip())
    if not match:
        raise ValueError(f"Invalid clock time: {time_str!r}")

    hour = int(match.group(1))
    minute = int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Invalid clock time: {time_str!r}")

    return hour * 60 + minute


def format_clock_time(total_minutes: int) -> str:
    """Format minutes since midnight as "HH:MM", wrapping past midnight."""
    total_minutes = total_minutes % MINUTES_PER_DAY
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def add_minutes_to_time(time_str: str, minutes: int) -> str:
    """
    Add minutes to a 24-hour time label.

    Args:
        time_str: Time in "HH:MM" format (e.g., "09:00", "14:30")
        minutes: Minutes to add

    Returns:
        New time label, wrapped to the next day if needed
    """
    return format_clock_time(parse_clock_time(time_str) + minutes)


def generate_time_blocks(
    route: Sequence[CandidatePlace],
    start_time: str = "09:00",
    default_duration: int = DEFAULT_VISIT_MINUTES,
) -> list[RouteBlock]:
    """
    Convert an ordered day route into clock-time visit blocks.

    Each place after the first is preceded by the estimated travel time from the
    previous place; each visit lasts the place's suggested duration, or
    ``default_duration`` minutes.
    """
    blocks: list[RouteBlock] = []
    current = parse_clock_time(start_time)

    for i, place in enumerate(route):
        travel = 0
        if i > 0:
            prev = route[i - 1]
            travel = estimate_travel_time(
                haversine_distance(prev.latitude, prev.longitude, place.latitude, place.longitude)
            )
            current += travel

        start = current
        current += place.suggested_duration or default_duration

        blocks.append(
            RouteBlock(
                place=place,
                start_time=format_clock_time(start),
                end_time=format_clock_time(current),
                start_minutes=start,
                end_minutes=current,
                travel_minutes_from_previous=travel,
            )
        )

    return blocks
