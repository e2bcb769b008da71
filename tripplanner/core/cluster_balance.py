import logging
from typing import Sequence

from tripplanner.core.geo_utils import calculate_centroid, distance_to_place
from tripplanner.core.schemas import CandidatePlace, Coordinate, DayCluster

logger = logging.getLogger(__name__)

MAX_BALANCE_ATTEMPTS = 30


def balance_clusters(
    clusters: Sequence[DayCluster], number_of_days: int, origin: Coordinate
) -> list[DayCluster]:
    """
    Even out day sizes by moving places from the largest cluster to the smallest.

    Each pass moves the donor's place nearest the receiver's centroid. Passes
    stop once every cluster is within [max(3, target - 1), target + 2], when
    nothing can move, or after 30 attempts. The set of places is unchanged.

    Args:
        clusters: Clusters from k-means
        number_of_days: Trip length, used for the per-day target
        origin: Stand-in centroid for an empty receiver

    Returns:
        New clusters with recomputed centroids, in the input order
    """
    groups: list[list[CandidatePlace]] = [list(c.places) for c in clusters]
    if len(groups) < 2 or number_of_days < 1:
        return [DayCluster(places=g, centroid=c.centroid) for g, c in zip(groups, clusters)]

    total = sum(len(g) for g in groups)
    target = total // number_of_days
    min_per_day = max(3, target - 1)
    max_per_day = target + 2
    logger.info(f"[CLUSTER] Target per day: {target}, Min: {min_per_day}, Max: {max_per_day}")

    attempts = 0
    while attempts < MAX_BALANCE_ATTEMPTS:
        attempts += 1
        min_idx = min(range(len(groups)), key=lambda i: len(groups[i]))
        max_idx = max(range(len(groups)), key=lambda i: len(groups[i]))
        smallest, largest = groups[min_idx], groups[max_idx]

        if len(smallest) >= min_per_day and len(largest) <= max_per_day:
            break
        # Donor must keep at least one place
        if min_idx == max_idx or len(largest) <= 1:
            break

        receiver = calculate_centroid(smallest) if smallest else origin
        moved = min(largest, key=lambda p: distance_to_place(receiver, p))
        largest.remove(moved)
        smallest.append(moved)

    logger.info(
        f"[CLUSTER] After rebalancing ({attempts} attempts): {', '.join(str(len(g)) for g in groups)}"
    )
    return [DayCluster(places=g, centroid=calculate_centroid(g)) for g in groups if g]
