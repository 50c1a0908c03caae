"""
Tests for the path similarity clustering pipeline.
"""

import logging

import pytest
import numpy as np
from hypothesis import given, settings, strategies as st
from sklearn.metrics import adjusted_rand_score

from gfalook.core import PathSimilarityClustering
from gfalook.gfa import GraphPath, PathStep


NODE_LENGTHS = {0: 100, 1: 100, 2: 100, 3: 100, 4: 10, 5: 10}


def make_path(name, node_ids):
    return GraphPath(name, [PathStep(node_id) for node_id in node_ids])


def two_group_paths():
    return [
        make_path("A", [0, 1, 2]),
        make_path("B", [0, 1, 2, 4]),
        make_path("C", [0, 3]),
        make_path("D", [0, 3, 5]),
    ]


def labels_by_path(result):
    """Cluster id per input path index."""
    labels = [0] * len(result.ordering)
    for path_index, cluster_id in zip(result.ordering, result.cluster_ids):
        labels[path_index] = cluster_id
    return labels


def make_clustering(**kwargs):
    kwargs.setdefault('num_threads', 0)
    kwargs.setdefault('show_progress', False)
    return PathSimilarityClustering(**kwargs)


class TestPathSimilarityClustering:
    """Test suite for PathSimilarityClustering."""

    def test_initialization(self):
        """Test default parameters."""
        clustering = PathSimilarityClustering()
        assert clustering.threshold is None
        assert clustering.use_all_nodes is False
        assert clustering.use_upgma is False
        assert clustering.num_threads is None
        assert clustering.show_progress is True

    @pytest.mark.parametrize("kwargs", [
        {'threshold': 1.5},
        {'threshold': -0.1},
        {'upgma_threshold': 2.0},
        {'max_clusters': 0},
        {'num_threads': -1},
    ])
    def test_invalid_parameters(self, kwargs):
        """Test that out-of-range parameters are rejected."""
        with pytest.raises(ValueError):
            PathSimilarityClustering(**kwargs)

    def test_dbscan_two_groups(self):
        """Test automatic DBSCAN on two well separated groups."""
        clustering = make_clustering()
        result, metrics = clustering.cluster(two_group_paths(), NODE_LENGTHS)

        assert result.num_clusters == 2
        assert adjusted_rand_score([0, 0, 1, 1], labels_by_path(result)) == 1.0
        # The budget of one cluster is never met, so the scan falls back
        assert metrics['eps_method'] == 'fallback'
        assert metrics['eps'] == pytest.approx(0.3)
        assert metrics['method'] == 'dbscan'
        assert metrics['medoids'] == ['A', 'C']

    def test_ordering_and_ids(self):
        """Test the display order: largest path first within each cluster."""
        result, _ = make_clustering().cluster(two_group_paths(), NODE_LENGTHS)

        assert result.ordering == [1, 0, 3, 2]
        assert result.cluster_ids == [0, 0, 1, 1]
        assert result.cluster_sizes == [2, 2]
        assert result.representatives == [0, 2]

    def test_metrics(self):
        """Test the recorded node usage and distance summary."""
        clustering = make_clustering()
        _, metrics = clustering.cluster(two_group_paths(), NODE_LENGTHS)

        # Node 0 is on every path with the same coverage
        assert metrics['nodes_used'] == 5
        assert metrics['nodes_total'] == 6
        assert metrics['max_edr'] == pytest.approx(1.0)
        assert metrics['separation']['gap_exists'] is True
        assert metrics['silhouette'] > 0.9
        assert metrics['eps_scan'][0] == {'eps': 0.0, 'clusters': 4}
        assert clustering.distance_matrix_.shape == (4, 4)

    def test_user_threshold(self):
        """Test a similarity threshold that merges everything."""
        result, metrics = make_clustering(threshold=0.0).cluster(two_group_paths(), NODE_LENGTHS)
        assert result.num_clusters == 1
        assert metrics['eps_method'] == 'user'
        assert metrics['eps'] == pytest.approx(1.0)

    def test_dbscan_with_dendrogram(self):
        """Test that the dendrogram's leaf order drives the ordering."""
        result, _ = make_clustering(compute_dendrogram=True).cluster(two_group_paths(), NODE_LENGTHS)

        assert result.dendrogram is not None
        assert result.ordering == result.dendrogram.leaf_order
        assert result.cluster_ids == sorted(result.cluster_ids)
        assert result.num_clusters == 2

    def test_upgma_auto(self):
        """Test the automatic UPGMA cut with a two-cluster budget."""
        result, metrics = make_clustering(use_upgma=True, max_clusters=2).cluster(
            two_group_paths(), NODE_LENGTHS
        )

        assert result.num_clusters == 2
        assert adjusted_rand_score([0, 0, 1, 1], labels_by_path(result)) == 1.0
        assert metrics['method'] == 'upgma'
        assert metrics['cut_method'] == 'auto'
        assert metrics['max_height'] == pytest.approx(0.5)
        assert result.ordering == [0, 1, 2, 3]

    def test_upgma_user_threshold(self):
        """Test relative cut heights at both ends of the range."""
        paths = two_group_paths()

        result, metrics = make_clustering(use_upgma=True, upgma_threshold=1.0).cluster(paths, NODE_LENGTHS)
        assert result.num_clusters == 1
        assert metrics['cut_method'] == 'user'

        result, _ = make_clustering(use_upgma=True, upgma_threshold=0.0).cluster(paths, NODE_LENGTHS)
        assert result.num_clusters == 4

    def test_identical_paths(self):
        """Test that identical paths form a single cluster with zero distances."""
        paths = [make_path(name, [0, 1, 2]) for name in ("x", "y", "z")]
        clustering = make_clustering()
        result, metrics = clustering.cluster(paths, NODE_LENGTHS)

        assert result.num_clusters == 1
        assert metrics['max_edr'] == 0.0
        assert np.all(clustering.distance_matrix_ == 0.0)

    def test_single_path(self):
        """Test that one path forms one cluster."""
        result, _ = make_clustering().cluster([make_path("solo", [0, 1])], NODE_LENGTHS)
        assert result.ordering == [0]
        assert result.cluster_ids == [0]
        assert result.representatives == [0]

    def test_no_paths(self):
        """Test that no paths give an empty result."""
        clustering = make_clustering()
        result, metrics = clustering.cluster([], NODE_LENGTHS)
        assert result.ordering == []
        assert result.num_clusters == 0
        assert metrics['num_clusters'] == 0
        assert clustering.distance_matrix_.shape == (0, 0)

    def test_all_nodes(self):
        """Test that all nodes are used on request."""
        _, metrics = make_clustering(use_all_nodes=True).cluster(two_group_paths(), NODE_LENGTHS)
        assert metrics['nodes_used'] == 6

    def test_custom_logger(self):
        """Test that a supplied logger receives progress messages."""
        logger = logging.getLogger("gfalook.test")
        clustering = make_clustering(logger=logger)
        assert clustering.logger is logger

    @settings(max_examples=25, deadline=None)
    @given(
        paths=st.lists(
            st.lists(st.integers(min_value=0, max_value=5), min_size=1, max_size=6),
            min_size=1, max_size=12
        ),
        use_upgma=st.booleans()
    )
    def test_result_invariants(self, paths, use_upgma):
        """Property: the ordering is a permutation, ids are contiguous and medoids belong to their clusters."""
        graph_paths = [make_path(f"p{k}", nodes) for k, nodes in enumerate(paths)]
        result, _ = make_clustering(use_upgma=use_upgma).cluster(graph_paths, NODE_LENGTHS)

        n = len(graph_paths)
        assert sorted(result.ordering) == list(range(n))
        # each cluster occupies one contiguous run of rows
        runs = [cid for k, cid in enumerate(result.cluster_ids) if k == 0 or result.cluster_ids[k - 1] != cid]
        assert len(runs) == len(set(runs))
        assert set(result.cluster_ids) == set(range(result.num_clusters))
        assert sum(result.cluster_sizes) == n
        labels = labels_by_path(result)
        for cluster_id, medoid in enumerate(result.representatives):
            assert labels[medoid] == cluster_id
