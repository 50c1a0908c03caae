"""
Density-based clustering of paths (DBSCAN with minPts=1).

With a minimum neighbourhood of one point every path is a core point, so
DBSCAN reduces to connected components of the graph linking paths whose
distance is at most eps. Components are found with union-find.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from .union_find import UnionFind

logger = logging.getLogger(__name__)

EPS_STEP = 0.005
EPS_STEPS = 60  # scan 0.005 .. 0.300
FALLBACK_EPS = 0.30
PATHS_PER_CLUSTER = 9


def default_max_clusters(n_paths: int) -> int:
    """Automatic cluster budget: one cluster per nine paths, rounded up."""
    return math.ceil(n_paths / PATHS_PER_CLUSTER)


def _connect_within_eps(distance_matrix: np.ndarray, eps: float) -> UnionFind:
    n = len(distance_matrix)
    uf = UnionFind(n)
    rows, cols = np.nonzero(np.triu(distance_matrix <= eps, k=1))
    for i, j in zip(rows.tolist(), cols.tolist()):
        uf.union(i, j)
    return uf


def dbscan_count_clusters(distance_matrix: np.ndarray, eps: float) -> int:
    """Number of clusters DBSCAN (minPts=1) finds at eps."""
    if len(distance_matrix) == 0:
        return 0
    return _connect_within_eps(distance_matrix, eps).count_components()


def dbscan_cluster(distance_matrix: np.ndarray, eps: float) -> List[int]:
    """
    Cluster assignment for every path at eps.

    Returns:
        Consecutive cluster ids numbered by first appearance in path order
    """
    if len(distance_matrix) == 0:
        return []
    return _connect_within_eps(distance_matrix, eps).component_labels()


@dataclass
class EpsSelection:
    """Outcome of an eps search."""
    eps: float
    method: str  # user, stabilized, first_hit_max or fallback
    max_clusters: Optional[int] = None
    history: List[Dict] = field(default_factory=list)


class AutoEpsSelector:
    """
    Pick eps by scanning for the point where the cluster count settles.

    Starting from the count at eps=0, eps is raised in 0.005 steps up to 0.3.
    A step is accepted as soon as its count is within the cluster budget and
    either differs from the previous step's count by at most one (stabilized)
    or the previous count was still above the budget (first_hit_max, a jump
    straight into range). Without any acceptance the scan falls back to 0.3.
    """

    def __init__(self, max_clusters: Optional[int] = None,
                 logger: Optional[logging.Logger] = None):
        self.max_clusters = max_clusters
        self.logger = logger or logging.getLogger(__name__)

    def select(self, distance_matrix: np.ndarray) -> EpsSelection:
        n = len(distance_matrix)
        if n == 0:
            return EpsSelection(FALLBACK_EPS, 'fallback')

        max_clusters = self.max_clusters if self.max_clusters is not None else default_max_clusters(n)
        source = "user override" if self.max_clusters is not None else "automatic"
        self.logger.debug(f"DBSCAN max_clusters: {max_clusters} ({source})")

        prev_clusters = dbscan_count_clusters(distance_matrix, 0.0)
        history = [{'eps': 0.0, 'clusters': prev_clusters}]
        self.logger.debug(f"DBSCAN eps scan: eps=0.000 -> {prev_clusters} clusters")

        for step in range(1, EPS_STEPS + 1):
            eps = step * EPS_STEP
            curr_clusters = dbscan_count_clusters(distance_matrix, eps)
            history.append({'eps': eps, 'clusters': curr_clusters})

            change = abs(prev_clusters - curr_clusters)
            self.logger.debug(f"DBSCAN eps scan: eps={eps:.3f} -> {curr_clusters} clusters "
                              f"(change={change} from prev={prev_clusters}, max_allowed={max_clusters})")

            stabilized = change <= 1
            first_hit_max = prev_clusters > max_clusters and curr_clusters <= max_clusters

            if (stabilized or first_hit_max) and curr_clusters <= max_clusters:
                if first_hit_max and not stabilized:
                    self.logger.debug(f"DBSCAN: first hit max_clusters at eps {eps:.3f} with "
                                      f"{curr_clusters} clusters (jumped from {prev_clusters})")
                    method = 'first_hit_max'
                else:
                    self.logger.debug(f"DBSCAN: stabilized at eps {eps:.3f} with {curr_clusters} clusters "
                                      f"(max allowed: {max_clusters})")
                    method = 'stabilized'
                return EpsSelection(eps, method, max_clusters, history)

            prev_clusters = curr_clusters

        self.logger.debug(f"DBSCAN: no stabilization found, using fallback eps {FALLBACK_EPS:.2f}")
        return EpsSelection(FALLBACK_EPS, 'fallback', max_clusters, history)


class DensityClusterer:
    """
    DBSCAN (minPts=1) over a precomputed distance matrix.

    A user similarity threshold t fixes eps = 1 - t; otherwise eps is chosen
    by AutoEpsSelector.
    """

    def __init__(self,
                 threshold: Optional[float] = None,
                 max_clusters: Optional[int] = None,
                 logger: Optional[logging.Logger] = None):
        self.threshold = threshold
        self.max_clusters = max_clusters
        self.logger = logger or logging.getLogger(__name__)
        self.selection_: Optional[EpsSelection] = None

    def select_eps(self, distance_matrix: np.ndarray) -> EpsSelection:
        if self.threshold is not None:
            eps = 1.0 - self.threshold
            self.logger.debug(f"Using user-specified threshold {self.threshold:.2f} (eps = {eps:.2f})")
            return EpsSelection(eps, 'user', self.max_clusters)
        return AutoEpsSelector(self.max_clusters, logger=self.logger).select(distance_matrix)

    def cluster(self, distance_matrix: np.ndarray) -> List[int]:
        """
        Assign every path to a cluster.

        Args:
            distance_matrix: Normalised n x n distance matrix

        Returns:
            Cluster id per path, consecutive from 0
        """
        self.selection_ = self.select_eps(distance_matrix)
        labels = dbscan_cluster(distance_matrix, self.selection_.eps)
        num_clusters = max(labels) + 1 if labels else 0
        self.logger.info(f"DBSCAN eps {self.selection_.eps:.3f} ({self.selection_.method}) "
                         f"gives {num_clusters} clusters")
        return labels
