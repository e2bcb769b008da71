from tests.fakes import make_place
from tripplanner.core.cluster_balance import balance_clusters
from tripplanner.core.geo_utils import calculate_centroid
from tripplanner.core.schemas import Coordinate, DayCluster

ORIGIN = Coordinate(lat=33.82, lng=35.49)


def cluster(n, lat, lng):
    places = [make_place(lat + i * 0.001, lng) for i in range(n)]
    return DayCluster(places=places, centroid=calculate_centroid(places))


def member_ids(clusters):
    return sorted(p.id for c in clusters for p in c.places)


def test_moves_places_from_largest_to_smallest():
    clusters = [cluster(9, 33.90, 35.50), cluster(1, 34.10, 35.60), cluster(2, 34.40, 35.80)]

    balanced = balance_clusters(clusters, 3, ORIGIN)

    sizes = [len(c.places) for c in balanced]
    assert min(sizes) >= 3
    assert max(sizes) <= 6
    assert member_ids(balanced) == member_ids(clusters)


def test_balanced_clusters_are_untouched():
    clusters = [cluster(4, 33.90, 35.50), cluster(4, 34.10, 35.60), cluster(4, 34.40, 35.80)]

    balanced = balance_clusters(clusters, 3, ORIGIN)

    assert [[p.id for p in c.places] for c in balanced] == [[p.id for p in c.places] for c in clusters]


def test_donor_keeps_at_least_one_place():
    clusters = [cluster(2, 33.90, 35.50), cluster(1, 34.10, 35.60)]

    balanced = balance_clusters(clusters, 2, ORIGIN)

    assert all(c.places for c in balanced)
    assert member_ids(balanced) == member_ids(clusters)


def test_centroids_are_recomputed():
    clusters = [cluster(8, 33.90, 35.50), cluster(1, 34.10, 35.60)]

    balanced = balance_clusters(clusters, 2, ORIGIN)

    for c in balanced:
        assert c.centroid == calculate_centroid(c.places)


def test_single_cluster_is_returned_as_is():
    clusters = [cluster(5, 33.90, 35.50)]
    assert member_ids(balance_clusters(clusters, 3, ORIGIN)) == member_ids(clusters)
