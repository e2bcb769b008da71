import itertools
import math
import random

import pytest

from tests.fakes import make_place
from tripplanner.core.geo_utils import (
    calculate_centroid,
    cluster_places_by_days,
    haversine_distance,
    nearest_neighbor_route,
    order_clusters_by_proximity,
    route_distance,
)
from tripplanner.core.schemas import Coordinate, DayCluster


class FixedSample:
    """rng stand-in that always seeds k-means with the given indices."""

    def __init__(self, indices):
        self.indices = indices

    def sample(self, population, k):
        return self.indices[:k]


def three_groups():
    # Beirut, Byblos, Tyre: about 35-40 km apart, places within ~1 km of each other
    centers = [(33.8938, 35.5018), (34.1236, 35.6511), (33.2705, 35.2038)]
    places = []
    for lat, lng in centers:
        for i in range(4):
            places.append(make_place(lat + i * 0.002, lng + i * 0.002))
    return places


def test_haversine_known_distance():
    # Beirut to Byblos is roughly 29 km
    dist = haversine_distance(33.8938, 35.5018, 34.1236, 35.6511)
    assert 27 < dist < 31


def test_haversine_symmetric_and_zero():
    a = (33.89, 35.50)
    b = (34.43, 35.84)
    assert haversine_distance(*a, *b) == pytest.approx(haversine_distance(*b, *a))
    assert haversine_distance(*a, *a) == pytest.approx(0.0)
    assert haversine_distance(*a, *b) > 0


def test_centroid_is_mean():
    places = [make_place(10, 20), make_place(12, 24)]
    centroid = calculate_centroid(places)
    assert centroid.lat == pytest.approx(11)
    assert centroid.lng == pytest.approx(22)


def test_centroid_of_nothing_raises():
    with pytest.raises(ValueError):
        calculate_centroid([])


def test_twelve_places_three_days_gives_three_clusters():
    places = three_groups()
    clusters = cluster_places_by_days(places, 3, places_per_day=4, rng=FixedSample([0, 4, 8]))

    assert len(clusters) == 3
    assert all(len(c.places) == 4 for c in clusters)
    assert sorted(p.id for c in clusters for p in c.places) == sorted(p.id for p in places)
    # Each cluster is one geographic group
    for cluster in clusters:
        spread = max(
            haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)
            for a, b in itertools.combinations(cluster.places, 2)
        )
        assert spread < 2


@pytest.mark.parametrize("seed", range(10))
def test_clusters_partition_the_pool(seed):
    rng = random.Random(seed)
    places = [make_place(33 + rng.random(), 35 + rng.random()) for _ in range(rng.randint(1, 30))]
    days = rng.randint(1, 6)

    clusters = cluster_places_by_days(places, days, places_per_day=4, rng=random.Random(seed))

    assert len(clusters) <= min(days, math.ceil(len(places) / 4))
    assert all(c.places for c in clusters)
    members = [p.id for c in clusters for p in c.places]
    assert sorted(members) == sorted(p.id for p in places)


def test_same_seed_same_clusters():
    places = three_groups()
    first = cluster_places_by_days(places, 3, rng=random.Random(42))
    second = cluster_places_by_days(places, 3, rng=random.Random(42))
    assert [[p.id for p in c.places] for c in first] == [[p.id for p in c.places] for c in second]


def test_fewer_places_than_days_gives_singletons():
    places = [make_place(33.9, 35.5), make_place(34.0, 35.6)]
    clusters = cluster_places_by_days(places, 5, places_per_day=1)
    assert len(clusters) == 2
    assert all(len(c.places) == 1 for c in clusters)


def test_empty_pool_gives_no_clusters():
    assert cluster_places_by_days([], 3) == []


def test_cluster_rejects_zero_days():
    with pytest.raises(ValueError):
        cluster_places_by_days([make_place(33.9, 35.5)], 0)


def test_order_clusters_from_origin():
    near = DayCluster(places=[make_place(33.85, 35.50)], centroid=Coordinate(lat=33.85, lng=35.50))
    middle = DayCluster(places=[make_place(34.12, 35.65)], centroid=Coordinate(lat=34.12, lng=35.65))
    far = DayCluster(places=[make_place(34.43, 35.84)], centroid=Coordinate(lat=34.43, lng=35.84))

    ordered = order_clusters_by_proximity([far, near, middle], Coordinate(lat=33.82, lng=35.49))

    assert ordered == [near, middle, far]


def test_nearest_neighbor_route_follows_the_line():
    start = Coordinate(lat=33.80, lng=35.50)
    a = make_place(33.81, 35.50)
    b = make_place(33.83, 35.50)
    c = make_place(33.86, 35.50)

    assert nearest_neighbor_route([c, a, b], start) == [a, b, c]


@pytest.mark.parametrize("seed", range(10))
def test_route_is_permutation_within_bound(seed):
    rng = random.Random(seed)
    places = [make_place(33 + rng.random(), 35 + rng.random()) for _ in range(rng.randint(1, 8))]
    start = Coordinate(lat=33.5, lng=35.5)

    route = nearest_neighbor_route(places, start)

    assert sorted(p.id for p in route) == sorted(p.id for p in places)
    longest_hop = max(
        (
            haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)
            for a, b in itertools.combinations(places, 2)
        ),
        default=0.0,
    )
    assert route_distance(route) <= (len(places) - 1) * longest_hop + 1e-9


def test_route_distance_of_single_place_is_zero():
    assert route_distance([make_place(33.9, 35.5)]) == 0.0
