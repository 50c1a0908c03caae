"""
Tests for DBSCAN (minPts=1) clustering and automatic eps selection.
"""

import pytest
import numpy as np
from hypothesis import given, settings, strategies as st

from gfalook.density import (
    FALLBACK_EPS,
    AutoEpsSelector,
    DensityClusterer,
    dbscan_cluster,
    dbscan_count_clusters,
    default_max_clusters
)


TWO_GROUPS = np.array([
    [0.0, 0.1, 0.9, 0.9],
    [0.1, 0.0, 0.9, 0.9],
    [0.9, 0.9, 0.0, 0.2],
    [0.9, 0.9, 0.2, 0.0],
])

# Same structure with within-group distances away from the 0.005 scan grid
OFF_GRID = np.array([
    [0.0, 0.123, 0.9, 0.9],
    [0.123, 0.0, 0.9, 0.9],
    [0.9, 0.9, 0.0, 0.223],
    [0.9, 0.9, 0.223, 0.0],
])


def matrix_from_upper(n, values):
    matrix = np.zeros((n, n))
    rows, cols = np.triu_indices(n, k=1)
    matrix[rows, cols] = values
    matrix[cols, rows] = values
    return matrix


class TestDbscan:
    """Test connected-component clustering at a fixed eps."""

    def test_two_groups(self):
        """Test that eps=0.3 separates {0,1} from {2,3}."""
        assert dbscan_cluster(TWO_GROUPS, 0.3) == [0, 0, 1, 1]
        assert dbscan_count_clusters(TWO_GROUPS, 0.3) == 2

    def test_eps_inclusive(self):
        """Test that a pair exactly at eps is linked."""
        matrix = np.array([[0.0, 0.25], [0.25, 0.0]])
        assert dbscan_count_clusters(matrix, 0.25) == 1

    def test_chaining(self):
        """Test that clusters chain through intermediate paths."""
        matrix = np.array([
            [0.0, 0.1, 0.8],
            [0.1, 0.0, 0.1],
            [0.8, 0.1, 0.0],
        ])
        assert dbscan_cluster(matrix, 0.15) == [0, 0, 0]

    def test_eps_zero_uses_only_zero_distances(self):
        """Test that eps=0 joins only exactly-identical paths."""
        matrix = np.array([
            [0.0, 0.0, 0.5, 0.5],
            [0.0, 0.0, 0.5, 0.5],
            [0.5, 0.5, 0.0, 0.01],
            [0.5, 0.5, 0.01, 0.0],
        ])
        assert dbscan_count_clusters(matrix, 0.0) == 3
        assert dbscan_cluster(matrix, 0.0) == [0, 0, 1, 2]

    def test_labels_by_first_appearance(self):
        """Test that cluster ids follow path order."""
        matrix = np.array([
            [0.0, 0.9, 0.1],
            [0.9, 0.0, 0.9],
            [0.1, 0.9, 0.0],
        ])
        assert dbscan_cluster(matrix, 0.2) == [0, 1, 0]

    def test_empty(self):
        """Test the empty matrix."""
        empty = np.zeros((0, 0))
        assert dbscan_cluster(empty, 0.3) == []
        assert dbscan_count_clusters(empty, 0.3) == 0

    @settings(max_examples=50, deadline=None)
    @given(
        n=st.integers(min_value=2, max_value=8),
        data=st.data()
    )
    def test_count_monotone_in_eps(self, n, data):
        """Property: the cluster count never increases as eps grows."""
        values = data.draw(st.lists(st.floats(min_value=0.0, max_value=1.0),
                                    min_size=n * (n - 1) // 2, max_size=n * (n - 1) // 2))
        matrix = matrix_from_upper(n, values)
        eps_a = data.draw(st.floats(min_value=0.0, max_value=1.0))
        eps_b = data.draw(st.floats(min_value=0.0, max_value=1.0))
        low, high = sorted((eps_a, eps_b))
        assert dbscan_count_clusters(matrix, high) <= dbscan_count_clusters(matrix, low)


class TestAutoEpsSelector:
    """Test the stabilization scan for eps."""

    def test_default_max_clusters(self):
        """Test one cluster per nine paths, rounded up."""
        assert default_max_clusters(1) == 1
        assert default_max_clusters(9) == 1
        assert default_max_clusters(10) == 2
        assert default_max_clusters(27) == 3

    def test_stabilized(self):
        """Test acceptance when the count changes by at most one within budget."""
        selection = AutoEpsSelector(max_clusters=2).select(OFF_GRID)

        # 4 clusters until 0.123 (-> 3, over budget), 0.223 links the second pair (-> 2)
        assert selection.method == 'stabilized'
        assert selection.eps == pytest.approx(0.225)
        assert selection.max_clusters == 2
        assert dbscan_cluster(OFF_GRID, selection.eps) == [0, 0, 1, 1]

    def test_first_hit_max(self):
        """Test acceptance on a jump from above the budget straight into it."""
        matrix = np.full((4, 4), 0.052)
        np.fill_diagonal(matrix, 0.0)

        selection = AutoEpsSelector().select(matrix)

        assert selection.method == 'first_hit_max'
        assert selection.eps == pytest.approx(0.055)
        assert selection.max_clusters == 1

    def test_stabilized_checked_before_first_hit_max(self):
        """Test that a one-step change into the budget reports as stabilized."""
        matrix = np.array([[0.0, 0.052], [0.052, 0.0]])
        # 2 -> 1 with budget 1: both conditions hold, stabilized wins
        selection = AutoEpsSelector().select(matrix)
        assert selection.method == 'stabilized'
        assert selection.eps == pytest.approx(0.055)

    def test_fallback(self):
        """Test the 0.3 fallback when the count never settles within budget."""
        selection = AutoEpsSelector().select(OFF_GRID)

        assert selection.method == 'fallback'
        assert selection.eps == FALLBACK_EPS
        assert len(selection.history) == 61

    def test_identical_paths_stabilize_immediately(self):
        """Test that an all-zero matrix is accepted at the first step."""
        selection = AutoEpsSelector().select(np.zeros((3, 3)))
        assert selection.method == 'stabilized'
        assert selection.eps == pytest.approx(0.005)

    def test_history_starts_at_zero(self):
        """Test that the scan history records the eps=0 count first."""
        selection = AutoEpsSelector(max_clusters=2).select(OFF_GRID)
        assert selection.history[0] == {'eps': 0.0, 'clusters': 4}

    def test_empty_matrix(self):
        """Test that an empty matrix falls back without scanning."""
        selection = AutoEpsSelector().select(np.zeros((0, 0)))
        assert selection.eps == FALLBACK_EPS
        assert selection.method == 'fallback'


class TestDensityClusterer:
    """Test the DBSCAN clusterer front end."""

    def test_user_threshold(self):
        """Test that a similarity threshold t gives eps = 1 - t."""
        clusterer = DensityClusterer(threshold=0.7)
        labels = clusterer.cluster(TWO_GROUPS)

        assert clusterer.selection_.method == 'user'
        assert clusterer.selection_.eps == pytest.approx(0.3)
        assert labels == [0, 0, 1, 1]

    def test_automatic(self):
        """Test that the automatic scan is used without a threshold."""
        clusterer = DensityClusterer(max_clusters=2)
        labels = clusterer.cluster(OFF_GRID)

        assert clusterer.selection_.method == 'stabilized'
        assert labels == [0, 0, 1, 1]

    def test_single_path(self):
        """Test that one path forms one cluster."""
        clusterer = DensityClusterer()
        assert clusterer.cluster(np.zeros((1, 1))) == [0]
