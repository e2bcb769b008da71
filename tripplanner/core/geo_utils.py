"""
Geographic utilities for clustering places into days and sequencing routes.
"""

import logging
import math
import random
from typing import Optional, Sequence

from tripplanner.core.schemas import CandidatePlace, Coordinate, DayCluster

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371
KMEANS_MAX_ITERATIONS = 50
# Centroid movement (km) below which k-means is considered converged
KMEANS_CONVERGENCE_KM = 0.1


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Args:
        lat1, lng1: Coordinates of point 1
        lat2, lng2: Coordinates of point 2

    Returns:
        Distance in kilometers
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def distance_between(a: Coordinate, b: Coordinate) -> float:
    return haversine_distance(a.lat, a.lng, b.lat, b.lng)


def distance_to_place(point: Coordinate, place: CandidatePlace) -> float:
    return haversine_distance(point.lat, point.lng, place.latitude, place.longitude)


def calculate_centroid(places: Sequence[CandidatePlace]) -> Coordinate:
    """Arithmetic mean of the places' coordinates."""
    if not places:
        raise ValueError("Cannot compute the centroid of an empty set of places")

    avg_lat = sum(p.latitude for p in places) / len(places)
    avg_lng = sum(p.longitude for p in places) / len(places)
    return Coordinate(lat=avg_lat, lng=avg_lng)


def route_distance(places: Sequence[CandidatePlace]) -> float:
    """Sum of consecutive haversine distances along the given order, in km."""
    total = 0.0
    for prev, nxt in zip(places, places[1:]):
        total += haversine_distance(prev.latitude, prev.longitude, nxt.latitude, nxt.longitude)
    return total


def _nearest_index(point: Coordinate, centroids: Sequence[Coordinate]) -> int:
    min_dist = float("inf")
    nearest_idx = 0
    for i, centroid in enumerate(centroids):
        dist = haversine_distance(point.lat, point.lng, centroid.lat, centroid.lng)
        if dist < min_dist:
            min_dist = dist
            nearest_idx = i
    return nearest_idx


def cluster_places_by_days(
    places: Sequence[CandidatePlace],
    num_days: int,
    places_per_day: int = 4,
    rng: Optional[random.Random] = None,
) -> list[DayCluster]:
    """
    Partition places into day-sized geographic groups with bounded k-means.

    ``k = min(num_days, ceil(len(places) / places_per_day))``. Initial centroids
    are sampled without replacement from the places using ``rng`` (any object
    with a ``sample`` method), so callers can make the result reproducible.

    Args:
        places: Candidate pool, flattened across categories
        num_days: Number of trip days
        places_per_day: Desired places per day
        rng: Random source used for centroid seeding

    Returns:
        Non-empty clusters, at most k of them
    """
    if num_days < 1:
        raise ValueError("num_days must be at least 1")
    if places_per_day < 1:
        raise ValueError("places_per_day must be at least 1")
    if not places:
        return []

    k = min(num_days, math.ceil(len(places) / places_per_day))

    if len(places) <= k:
        return [DayCluster(places=[p], centroid=p.coordinate) for p in places]

    rng = rng or random.Random()
    seed_indices = rng.sample(range(len(places)), k)
    centroids = [places[i].coordinate for i in seed_indices]

    clusters: list[list[CandidatePlace]] = []
    iterations = 0
    for iterations in range(1, KMEANS_MAX_ITERATIONS + 1):
        clusters = [[] for _ in range(k)]
        for place in places:
            clusters[_nearest_index(place.coordinate, centroids)].append(place)

        converged = True
        for i, cluster in enumerate(clusters):
            if not cluster:
                continue
            new_centroid = calculate_centroid(cluster)
            if distance_between(centroids[i], new_centroid) > KMEANS_CONVERGENCE_KM:
                converged = False
            centroids[i] = new_centroid

        if converged:
            break

    result = [
        DayCluster(places=cluster, centroid=centroids[i])
        for i, cluster in enumerate(clusters)
        if cluster
    ]
    if len(result) < k:
        logger.info(f"[CLUSTER] Dropped {k - len(result)} empty clusters")
    logger.debug(
        f"[CLUSTER] k={k}, iterations={iterations}, sizes={[len(c.places) for c in result]}"
    )
    return result


def order_clusters_by_proximity(
    clusters: Sequence[DayCluster], origin: Coordinate
) -> list[DayCluster]:
    """
    Greedy nearest-centroid chaining starting from a fixed origin (e.g. an airport).
    """
    ordered: list[DayCluster] = []
    remaining = list(clusters)
    current = origin

    while remaining:
        nearest = min(remaining, key=lambda c: distance_between(current, c.centroid))
        remaining.remove(nearest)
        ordered.append(nearest)
        current = nearest.centroid

    return ordered


def nearest_neighbor_route(
    places: Sequence[CandidatePlace], start: Coordinate
) -> list[CandidatePlace]:
    """
    Order the places of one day using the nearest-neighbor TSP heuristic.

    Args:
        places: Places assigned to the day
        start: Entry point (previous day's last place, or the trip origin)

    Returns:
        Reordered list of places
    """
    route: list[CandidatePlace] = []
    remaining = list(places)
    current = start

    # Nearest-neighbor: always pick closest unvisited place
    while remaining:
        min_dist = float("inf")
        nearest_idx = 0
        for i, place in enumerate(remaining):
            dist = distance_to_place(current, place)
            if dist < min_dist:
                min_dist = dist
                nearest_idx = i

        nearest = remaining.pop(nearest_idx)
        route.append(nearest)
        current = nearest.coordinate

    return route
