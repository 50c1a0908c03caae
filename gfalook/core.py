"""
Path similarity clustering for gfalook.

This module ties the pipeline together: per-path node coverage, pairwise
distances from weighted Jaccard similarity, flat clustering with either
DBSCAN (minPts=1) or a cut UPGMA tree, and the final display layout.
"""

import logging
from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from .analyze import (
    calculate_percentiles,
    calculate_intra_cluster_distances,
    calculate_inter_cluster_distances,
    calculate_separation_metrics,
    calculate_silhouette
)
from .coverage import build_path_coverage
from .density import DensityClusterer
from .distances import (
    build_distance_matrix,
    edr_for_paths,
    log_distance_distribution,
    upper_triangle_distances
)
from .gfa import GraphPath
from .hierarchical import ConstrainedMergeSelection, HierarchicalClusterer, TreeCutter
from .organize import ClusterOrganizer, ClusteringResult


class PathSimilarityClustering:
    """
    Cluster and order paths of a variation graph by similarity.

    Two clustering modes are available:
    1. DBSCAN (default): connected components at an eps chosen automatically or
       from a similarity threshold; optionally a dendrogram constrained by the
       DBSCAN clusters is built for display.
    2. UPGMA: a full average-linkage tree cut at an automatic or relative height.

    For library usage:
    - Set show_progress=False to disable progress bars in headless environments
    - Pass a custom logger to integrate with your application's logging system
    """

    def __init__(self,
                 threshold: Optional[float] = None,
                 use_all_nodes: bool = False,
                 max_clusters: Optional[int] = None,
                 compute_dendrogram: bool = False,
                 use_upgma: bool = False,
                 upgma_threshold: Optional[float] = None,
                 num_threads: Optional[int] = None,
                 show_progress: bool = True,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the path clustering.

        Args:
            threshold: Similarity threshold in [0, 1] for DBSCAN (eps = 1 - threshold); automatic if None
            use_all_nodes: Use every node instead of only nodes whose coverage varies between paths
            max_clusters: Cluster budget for automatic eps / tree cut (default: ceil(n / 9))
            compute_dendrogram: Build a dendrogram in DBSCAN mode
            use_upgma: Cluster by cutting a UPGMA tree instead of DBSCAN
            upgma_threshold: Relative cut height in [0, 1] (scaled by the tree height); automatic if None
            num_threads: Worker processes for distances (None: auto, 0: in-process)
            show_progress: If True, show a progress bar while computing distances
            logger: Optional logger instance for output; uses default logging if None

        Raises:
            ValueError: If a parameter is out of range
        """
        if threshold is not None and not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be in [0, 1], got {threshold}")
        if upgma_threshold is not None and not 0.0 <= upgma_threshold <= 1.0:
            raise ValueError(f"upgma_threshold must be in [0, 1], got {upgma_threshold}")
        if max_clusters is not None and max_clusters < 1:
            raise ValueError(f"max_clusters must be at least 1, got {max_clusters}")
        if num_threads is not None and num_threads < 0:
            raise ValueError(f"num_threads must be non-negative, got {num_threads}")

        self.threshold = threshold
        self.use_all_nodes = use_all_nodes
        self.max_clusters = max_clusters
        self.compute_dendrogram = compute_dendrogram
        self.use_upgma = use_upgma
        self.upgma_threshold = upgma_threshold
        self.num_threads = num_threads
        self.show_progress = show_progress
        self.logger = logger or logging.getLogger(__name__)
        self.distance_matrix_: Optional[np.ndarray] = None

    def cluster(self,
                paths: Sequence[GraphPath],
                node_lengths: Mapping[int, int]) -> Tuple[ClusteringResult, Dict]:
        """
        Cluster paths and compute their display ordering.

        Args:
            paths: Paths in input order; result indices refer to this order
            node_lengths: Node id -> length in bp

        Returns:
            Tuple of (result, metrics) where metrics is a JSON-serialisable
            record of how the clustering was obtained
        """
        n = len(paths)
        metrics: Dict = {'num_paths': n, 'method': 'upgma' if self.use_upgma else 'dbscan'}

        if n == 0:
            self.logger.info("No paths to cluster")
            self.distance_matrix_ = np.zeros((0, 0))
            metrics.update({'num_clusters': 0, 'cluster_sizes': []})
            return ClusteringResult(), metrics

        self.logger.info(f"Clustering {n} paths by estimated difference rate")

        coverage = build_path_coverage(paths, node_lengths, use_all_nodes=self.use_all_nodes)
        metrics['nodes_used'] = coverage.nodes_used
        metrics['nodes_total'] = coverage.nodes_total

        distance_matrix, max_edr = build_distance_matrix(
            coverage, num_threads=self.num_threads, show_progress=self.show_progress
        )
        self.distance_matrix_ = distance_matrix
        metrics['max_edr'] = max_edr
        self._log_first_pairs(paths, coverage, n)
        log_distance_distribution(distance_matrix, self.logger)

        if self.use_upgma:
            assignments, dendrogram = self._cluster_upgma(distance_matrix, metrics)
        else:
            assignments, dendrogram = self._cluster_dbscan(distance_matrix, metrics)

        result = ClusterOrganizer(self.logger).organize(
            assignments, distance_matrix, coverage.totals, dendrogram
        )

        metrics['num_clusters'] = result.num_clusters
        metrics['cluster_sizes'] = list(result.cluster_sizes)
        metrics['medoids'] = [paths[i].name for i in result.representatives]
        metrics['distance_percentiles'] = calculate_percentiles(upper_triangle_distances(distance_matrix))
        metrics['separation'] = calculate_separation_metrics(
            calculate_intra_cluster_distances(distance_matrix, assignments),
            calculate_inter_cluster_distances(distance_matrix, assignments)
        )
        metrics['silhouette'] = calculate_silhouette(distance_matrix, assignments)

        self.logger.info(f"{result.num_clusters} clusters {result.cluster_sizes}")
        return result, metrics

    def _cluster_dbscan(self, distance_matrix: np.ndarray, metrics: Dict):
        clusterer = DensityClusterer(self.threshold, self.max_clusters, logger=self.logger)
        assignments = clusterer.cluster(distance_matrix)

        selection = clusterer.selection_
        metrics['eps'] = selection.eps
        metrics['eps_method'] = selection.method
        metrics['eps_scan'] = selection.history

        dendrogram = None
        if self.compute_dendrogram:
            hierarchical = HierarchicalClusterer(ConstrainedMergeSelection(assignments), logger=self.logger)
            dendrogram = hierarchical.build(distance_matrix)
        return assignments, dendrogram

    def _cluster_upgma(self, distance_matrix: np.ndarray, metrics: Dict):
        self.logger.debug("Using UPGMA hierarchical clustering")
        dendrogram = HierarchicalClusterer(logger=self.logger).build(distance_matrix)
        cutter = TreeCutter(dendrogram, logger=self.logger)

        if self.upgma_threshold is not None:
            cut_height = self.upgma_threshold * dendrogram.max_height
            method = 'user'
            self.logger.debug(f"Using user-specified UPGMA threshold: {self.upgma_threshold:.4f}")
        else:
            cut_height, method = cutter.auto_threshold(self.max_clusters)

        assignments = cutter.cut(cut_height)
        num_clusters = max(assignments) + 1 if assignments else 0
        self.logger.info(f"UPGMA cut at height {cut_height:.4f} ({method}) gives {num_clusters} clusters")

        metrics['cut_height'] = cut_height
        metrics['cut_method'] = method
        metrics['max_height'] = dendrogram.max_height
        return assignments, dendrogram

    def _log_first_pairs(self, paths, coverage, n: int, limit: int = 5) -> None:
        if not self.logger.isEnabledFor(logging.DEBUG):
            return
        shown = 0
        for i in range(n):
            for j in range(i + 1, n):
                if shown == limit:
                    return
                edr = edr_for_paths(coverage.counts, coverage.totals, i, j)
                self.logger.debug(f"EDR: {paths[i].name} vs {paths[j].name} = {edr:.6f} "
                                  f"(bp_a={coverage.totals[i]}, bp_b={coverage.totals[j]})")
                shown += 1
