"""
Unit tests for DBSCAN clustering.
"""
import math
from unittest.mock import patch

import pytest
import numpy as np

from crimemap.clustering.clusterer import (
    ClusterResult,
    ClusterStats,
    DBSCANClusterer,
    as_coordinates,
    cluster_many,
    dbscan,
    summarize,
)
from crimemap.core.exceptions import ClusteringError, InvalidParameterError
from crimemap.core.models import Point


@pytest.fixture
def two_groups_with_border():
    """Two dense groups of four with a border point between them.

    The border point (0, 0.0125) is within 0.01 of (0, 0.003) and (0, 0.022)
    only, so with min_points=4 it is not a core point itself.
    """
    left = [(0.0, 0.0), (0.0, 0.001), (0.0, 0.002), (0.0, 0.003)]
    border = [(0.0, 0.0125)]
    right = [(0.0, 0.022), (0.0, 0.023), (0.0, 0.024), (0.0, 0.025)]
    return left, border, right


@pytest.fixture
def mergeable_groups():
    """Three groups; the first two merge once epsilon reaches 0.02."""
    a = [(0.0, 0.001 * i) for i in range(5)]
    b = [(0.0, 0.02 + 0.001 * i) for i in range(5)]
    c = [(1.0, 1.0 + 0.001 * i) for i in range(5)]
    return a + b + c


@pytest.fixture
def random_points():
    """Random points around a city center."""
    rng = np.random.default_rng(42)
    return [tuple(p) for p in rng.normal([42.36, -71.06], 0.01, size=(200, 2))]


def assert_partition(points, result):
    """Every point is in exactly one cluster or in noise."""
    seen = [p for cluster in result.clusters for p in cluster] + list(result.noise)
    assert sorted(seen) == sorted(Point(*p) for p in points)
    assert len(result.labels) == len(points)
    for cid, cluster in enumerate(result.clusters):
        assert len(cluster) == result.labels.count(cid)


class TestScenarios:
    """Small hand-checked inputs."""

    def test_single_point_is_own_cluster_with_min_points_one(self):
        """Test one point with min_points=1 forms a cluster."""
        result = dbscan([(0, 0)], epsilon=1, min_points=1)

        assert result.clusters == [[(0, 0)]]
        assert result.noise == []
        assert result.labels == [0]

    def test_single_point_is_noise_with_min_points_two(self):
        """Test one point with min_points=2 is noise."""
        result = dbscan([(0, 0)], epsilon=1, min_points=2)

        assert result.clusters == []
        assert result.noise == [(0, 0)]
        assert result.labels == [-1]

    def test_chain_forms_one_cluster(self):
        """Test close points chain into a single cluster."""
        points = [(0, 0), (0, 0.001), (0, 0.002)]
        result = dbscan(points, epsilon=0.01, min_points=2)

        assert len(result.clusters) == 1
        assert sorted(result.clusters[0]) == sorted(points)
        assert result.noise == []

    def test_far_points_are_noise(self):
        """Test isolated points are all noise."""
        result = dbscan([(0, 0), (10, 10)], epsilon=0.01, min_points=2)

        assert result.clusters == []
        assert result.noise == [(0, 0), (10, 10)]

    def test_density_reachable_point_joins_cluster(self):
        """Test a point reachable only through a core point joins its cluster."""
        points = [(0, 0), (0, 0.005), (0, 0.011)]
        result = dbscan(points, epsilon=0.01, min_points=2)

        assert len(result.clusters) == 1
        assert (0, 0.011) in result.clusters[0]
        assert result.noise == []

    def test_empty_input(self):
        """Test empty input gives an empty result."""
        result = dbscan([], epsilon=0.01, min_points=3)

        assert result.clusters == []
        assert result.noise == []
        assert result.labels == []

    def test_points_are_returned_as_point_tuples(self):
        """Test output points are Point named tuples."""
        result = dbscan([(42.36, -71.06)], epsilon=0.01, min_points=1)

        point = result.clusters[0][0]
        assert isinstance(point, Point)
        assert point.lat == 42.36
        assert point.lng == -71.06

    def test_numpy_input(self):
        """Test an (n, 2) array is accepted."""
        points = np.array([[0.0, 0.0], [0.0, 0.001], [5.0, 5.0]])
        result = dbscan(points, epsilon=0.01, min_points=2)

        assert result.clusters == [[(0.0, 0.0), (0.0, 0.001)]]
        assert result.noise == [(5.0, 5.0)]

    def test_seed_is_first_cluster_member(self):
        """Test the cluster lists its seed point first."""
        points = [(0, 0.002), (0, 0), (0, 0.001)]
        result = dbscan(points, epsilon=0.01, min_points=2)

        assert result.clusters[0][0] == (0, 0.002)


class TestBorderPoints:
    """Border and provisional-noise handling."""

    def test_border_point_claimed_by_first_cluster(self, two_groups_with_border):
        """Test a border point shared by two clusters goes to the first only."""
        left, border, right = two_groups_with_border
        result = dbscan(left + border + right, epsilon=0.01, min_points=4)

        assert len(result.clusters) == 2
        assert border[0] in result.clusters[0]
        assert border[0] not in result.clusters[1]
        assert border[0] not in result.noise
        assert len(result.clusters[0]) == 5
        assert len(result.clusters[1]) == 4

    def test_provisional_noise_is_absorbed(self, two_groups_with_border):
        """Test a point first seen as noise is claimed by a later cluster."""
        left, border, _ = two_groups_with_border
        points = border + left
        result = dbscan(points, epsilon=0.01, min_points=4)

        assert len(result.clusters) == 1
        assert border[0] in result.clusters[0]
        assert result.noise == []
        assert result.labels[0] == 0

    def test_no_point_in_two_clusters(self, two_groups_with_border):
        """Test clusters are disjoint."""
        left, border, right = two_groups_with_border
        points = left + border + right
        result = dbscan(points, epsilon=0.01, min_points=4)

        assert_partition(points, result)


class TestDuplicates:
    """Duplicate coordinate handling."""

    def test_duplicates_are_preserved_by_default(self):
        """Test repeated incidents at one spot count toward density."""
        points = [(0, 0), (0, 0), (5, 5)]
        result = dbscan(points, epsilon=0.1, min_points=2)

        assert result.clusters == [[(0, 0), (0, 0)]]
        assert result.noise == [(5, 5)]
        assert result.labels == [0, 0, -1]

    def test_deduplicate_collapses_duplicates(self):
        """Test deduplicate=True treats repeats as one point."""
        points = [(0, 0), (0, 0), (5, 5)]
        result = dbscan(points, epsilon=0.1, min_points=2, deduplicate=True)

        assert result.clusters == []
        assert result.noise == [(0, 0), (5, 5)]
        assert result.labels == [-1, -1, -1]

    def test_deduplicate_labels_follow_input(self):
        """Test labels stay aligned with input when deduplicating."""
        points = [(0, 0), (9, 9), (0, 0.001), (0, 0)]
        result = dbscan(points, epsilon=0.01, min_points=2, deduplicate=True)

        assert result.clusters == [[(0, 0), (0, 0.001)]]
        assert result.labels == [0, -1, 0, 0]

    def test_duplicates_share_classification(self):
        """Test identical points always land in the same place."""
        points = [(0, 0), (0, 0.005), (0, 0.005), (3, 3), (3, 3)]
        result = dbscan(points, epsilon=0.01, min_points=3)

        assert result.labels[1] == result.labels[2]
        assert result.labels[3] == result.labels[4]


class TestProperties:
    """Properties that hold for any input."""

    def test_partition(self, random_points):
        """Test every point is accounted for exactly once."""
        result = dbscan(random_points, epsilon=0.002, min_points=4)

        assert_partition(random_points, result)

    def test_min_points_one_leaves_no_noise(self, random_points):
        """Test min_points=1 puts every point in a cluster."""
        result = dbscan(random_points, epsilon=0.001, min_points=1)

        assert result.noise == []
        assert -1 not in result.labels

    def test_determinism(self, random_points):
        """Test identical input gives identical output."""
        first = dbscan(random_points, epsilon=0.002, min_points=4)
        second = dbscan(random_points, epsilon=0.002, min_points=4)

        assert first == second

    def test_larger_epsilon_merges_clusters(self, mergeable_groups):
        """Test clusters only grow or merge as epsilon grows."""
        small = dbscan(mergeable_groups, epsilon=0.002, min_points=3)
        large = dbscan(mergeable_groups, epsilon=0.02, min_points=3)

        assert small.num_clusters == 3
        assert large.num_clusters == 2
        for cluster in small.clusters:
            assert any(set(cluster) <= set(big) for big in large.clusters)

    def test_noise_becomes_clustered_with_larger_epsilon(self, mergeable_groups):
        """Test a noise point joins a cluster once it has a dense neighborhood."""
        outlier = (0.0, 0.05)
        points = mergeable_groups + [outlier]

        assert outlier in dbscan(points, epsilon=0.01, min_points=3).noise
        assert outlier not in dbscan(points, epsilon=0.05, min_points=3).noise

    def test_noise_becomes_clustered_with_smaller_min_points(self):
        """Test lowering min_points clears noise."""
        points = [(0, 0), (0, 0.005)]

        assert len(dbscan(points, epsilon=0.01, min_points=3).noise) == 2
        assert dbscan(points, epsilon=0.01, min_points=2).noise == []


class TestInvalidParameters:
    """Argument validation."""

    @pytest.mark.parametrize("epsilon", [0, -0.1, math.nan, math.inf, "0.1", None, True])
    def test_bad_epsilon(self, epsilon):
        """Test non-positive or non-numeric epsilon is rejected."""
        with pytest.raises(InvalidParameterError):
            dbscan([(0, 0)], epsilon=epsilon, min_points=2)

    @pytest.mark.parametrize("min_points", [0, -3, 1.5, "2", None, True])
    def test_bad_min_points(self, min_points):
        """Test non-positive or non-integer min_points is rejected."""
        with pytest.raises(InvalidParameterError):
            dbscan([(0, 0)], epsilon=0.1, min_points=min_points)

    def test_empty_input_still_validated(self):
        """Test parameters are checked before looking at points."""
        with pytest.raises(InvalidParameterError):
            dbscan([], epsilon=0, min_points=2)

    @pytest.mark.parametrize(
        "points",
        [
            [(0, math.nan)],
            [(math.inf, 0)],
            [(0, 0), (1, 2, 3)],
            [(0, 0, 0)],
            [1.0, 2.0],
            [("a", "b")],
        ],
    )
    def test_bad_points(self, points):
        """Test non-finite or malformed points are rejected."""
        with pytest.raises(InvalidParameterError):
            dbscan(points, epsilon=0.1, min_points=2)

    def test_invalid_parameter_is_clustering_error(self):
        """Test the error hierarchy."""
        with pytest.raises(ClusteringError):
            dbscan([(0, 0)], epsilon=-1, min_points=2)


class TestClusterMany:
    """Tests for concurrent clustering."""

    def test_results_match_sequential_runs(self, random_points, mergeable_groups):
        """Test each result equals a standalone run, in input order."""
        point_sets = [random_points, mergeable_groups, [], [(0, 0)]]

        results = cluster_many(point_sets, epsilon=0.002, min_points=3, max_workers=3)

        assert len(results) == len(point_sets)
        for points, result in zip(point_sets, results):
            assert result == dbscan(points, epsilon=0.002, min_points=3)

    def test_invalid_parameters_rejected_up_front(self):
        """Test bad parameters fail before any work is submitted."""
        with pytest.raises(InvalidParameterError):
            cluster_many([[(0, 0)]], epsilon=0.1, min_points=0)

    def test_bad_point_set_raises(self):
        """Test a failing run surfaces its error."""
        with pytest.raises(InvalidParameterError):
            cluster_many([[(0, 0)], [(0, math.nan)]], epsilon=0.1, min_points=1)


class TestDBSCANClusterer:
    """Tests for DBSCANClusterer class."""

    def test_initialization(self):
        """Test clusterer initializes correctly."""
        clusterer = DBSCANClusterer()

        assert clusterer.epsilon == 0.01
        assert clusterer.min_points == 3
        assert clusterer.deduplicate is False
        assert clusterer.result is None
        assert clusterer.points is None

    def test_invalid_parameters_fail_fast(self):
        """Test bad parameters are rejected at construction."""
        with pytest.raises(InvalidParameterError):
            DBSCANClusterer(epsilon=0)
        with pytest.raises(InvalidParameterError):
            DBSCANClusterer(min_points=0)

    def test_cluster_keeps_result(self, mergeable_groups):
        """Test cluster() stores its result."""
        clusterer = DBSCANClusterer(epsilon=0.002, min_points=3)

        result = clusterer.cluster(mergeable_groups)

        assert isinstance(result, ClusterResult)
        assert clusterer.result is result
        assert result.num_clusters == 3

    def test_cluster_converts_points_once(self, mergeable_groups):
        """Test the input is validated and converted a single time."""
        clusterer = DBSCANClusterer(epsilon=0.002, min_points=3)

        with patch("crimemap.clustering.clusterer.as_coordinates", wraps=as_coordinates) as convert:
            result = clusterer.cluster(mergeable_groups)

        assert convert.call_count == 1
        assert result == dbscan(mergeable_groups, 0.002, 3)
        assert clusterer.points.shape == (len(mergeable_groups), 2)

    def test_get_stats(self, mergeable_groups):
        """Test statistics retrieval."""
        clusterer = DBSCANClusterer(epsilon=0.002, min_points=3)
        clusterer.cluster(mergeable_groups + [(9.0, 9.0)])

        stats = clusterer.get_stats()

        assert isinstance(stats, ClusterStats)
        assert stats.num_clusters == 3
        assert stats.num_noise_points == 1
        assert stats.total_points == 16
        assert stats.cluster_sizes == {0: 5, 1: 5, 2: 5}
        assert stats.avg_cluster_size == 5.0
        assert stats.largest_cluster_size == 5
        assert stats.smallest_cluster_size == 5
        assert stats.noise_fraction == pytest.approx(1 / 16)

    def test_get_stats_before_cluster_raises_error(self):
        """Test stats require a clustering run."""
        with pytest.raises(ClusteringError):
            DBSCANClusterer().get_stats()

    def test_get_cluster_members(self, mergeable_groups):
        """Test retrieving member indices of a cluster and of noise."""
        points = mergeable_groups + [(9.0, 9.0)]
        clusterer = DBSCANClusterer(epsilon=0.002, min_points=3)
        clusterer.cluster(points)

        assert list(clusterer.get_cluster_members(2)) == [10, 11, 12, 13, 14]
        assert list(clusterer.get_cluster_members(-1)) == [15]

    def test_get_cluster_center(self, mergeable_groups):
        """Test retrieving cluster center."""
        clusterer = DBSCANClusterer(epsilon=0.002, min_points=3)
        clusterer.cluster(mergeable_groups)

        center = clusterer.get_cluster_center(2)

        assert center.lat == pytest.approx(1.0)
        assert center.lng == pytest.approx(1.002)

    def test_get_cluster_center_noise_raises_error(self, mergeable_groups):
        """Test that getting center of noise raises error."""
        clusterer = DBSCANClusterer(epsilon=0.002, min_points=3)
        clusterer.cluster(mergeable_groups)

        with pytest.raises(ClusteringError):
            clusterer.get_cluster_center(-1)

    def test_get_cluster_center_unknown_cluster_raises_error(self, mergeable_groups):
        """Test that a missing cluster raises error."""
        clusterer = DBSCANClusterer(epsilon=0.002, min_points=3)
        clusterer.cluster(mergeable_groups)

        with pytest.raises(ClusteringError):
            clusterer.get_cluster_center(7)


def test_summarize_empty_result():
    """Test statistics of an empty result."""
    stats = summarize(ClusterResult())

    assert stats.num_clusters == 0
    assert stats.total_points == 0
    assert stats.avg_cluster_size == 0.0
    assert stats.noise_fraction == 0.0
