"""
Turning a flat cluster assignment into a display layout.

Clusters are laid out largest first. Within a cluster, paths follow a greedy
nearest-neighbour tour; this is a fast deterministic heuristic, not an optimal
ordering. When a dendrogram is available its leaf order replaces the tour so
that rows line up with the drawn tree.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from .hierarchical import Dendrogram

logger = logging.getLogger(__name__)


@dataclass
class ClusteringResult:
    """Final ordering and cluster summary handed to renderers and exporters."""
    ordering: List[int] = field(default_factory=list)
    cluster_ids: List[int] = field(default_factory=list)
    num_clusters: int = 0
    representatives: List[int] = field(default_factory=list)
    cluster_sizes: List[int] = field(default_factory=list)
    dendrogram: Optional[Dendrogram] = None


def group_by_cluster(assignments: Sequence[int]) -> List[List[int]]:
    """Member lists per cluster id, members in path order."""
    num_clusters = max(assignments) + 1 if len(assignments) else 0
    members: List[List[int]] = [[] for _ in range(num_clusters)]
    for path_index, cluster in enumerate(assignments):
        members[cluster].append(path_index)
    return [m for m in members if m]


def find_medoid(members: Sequence[int], distance_matrix: np.ndarray) -> int:
    """Member with the smallest mean distance to the other members (first on ties)."""
    if len(members) == 1:
        return members[0]
    best_medoid = members[0]
    best_avg = float('inf')
    for candidate in members:
        total = sum(distance_matrix[candidate, m] for m in members if m != candidate)
        avg = total / (len(members) - 1)
        if avg < best_avg:
            best_avg = avg
            best_medoid = candidate
    return best_medoid


def greedy_nearest_neighbor_order(members: Sequence[int],
                                  distance_matrix: np.ndarray,
                                  total_bp: Sequence[int]) -> List[int]:
    """
    Order cluster members by a greedy nearest-neighbour walk.

    Starts at the member with the most base pairs (first on ties) and keeps
    stepping to the closest member not yet placed (first in member order on
    ties). Heuristic only: no attempt is made to minimise the total tour.
    """
    if len(members) <= 1:
        return list(members)

    start = 0
    for local, path_index in enumerate(members):
        if total_bp[path_index] > total_bp[members[start]]:
            start = local

    placed = [False] * len(members)
    placed[start] = True
    order = [members[start]]
    current = members[start]

    while len(order) < len(members):
        best_local = None
        best_dist = float('inf')
        for local, path_index in enumerate(members):
            if placed[local]:
                continue
            dist = distance_matrix[current, path_index]
            if best_local is None or dist < best_dist:
                best_dist = dist
                best_local = local
        placed[best_local] = True
        current = members[best_local]
        order.append(current)

    return order


class ClusterOrganizer:
    """Size-sort clusters, pick medoids and build the display ordering."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def organize(self,
                 assignments: Sequence[int],
                 distance_matrix: np.ndarray,
                 total_bp: Sequence[int],
                 dendrogram: Optional[Dendrogram] = None) -> ClusteringResult:
        """
        Build the clustering result.

        Args:
            assignments: Cluster id per path (any consecutive numbering)
            distance_matrix: Normalised n x n distances
            total_bp: Total coverage per path, used to start each tour
            dendrogram: If given, its leaf order becomes the display order

        Returns:
            ClusteringResult whose cluster ids are renumbered so that cluster 0
            is the largest (ties keep discovery order)
        """
        n = len(assignments)
        if n == 0:
            return ClusteringResult(dendrogram=dendrogram)

        cluster_members = group_by_cluster(assignments)
        # sorted() is stable, so equal sizes keep discovery order
        cluster_members = sorted(cluster_members, key=len, reverse=True)

        sorted_ids = [0] * n
        for cluster_id, members in enumerate(cluster_members):
            for path_index in members:
                sorted_ids[path_index] = cluster_id

        representatives = [find_medoid(members, distance_matrix) for members in cluster_members]
        cluster_sizes = [len(members) for members in cluster_members]

        if dendrogram is not None:
            ordering = list(dendrogram.leaf_order)
        else:
            ordering = []
            for members in cluster_members:
                ordering.extend(greedy_nearest_neighbor_order(members, distance_matrix, total_bp))
        cluster_ids = [sorted_ids[path_index] for path_index in ordering]

        self.logger.debug(f"Final ordering: {len(ordering)} paths in {len(cluster_members)} clusters")

        return ClusteringResult(
            ordering=ordering,
            cluster_ids=cluster_ids,
            num_clusters=len(cluster_members),
            representatives=representatives,
            cluster_sizes=cluster_sizes,
            dendrogram=dendrogram,
        )


def representatives_view(result: ClusteringResult) -> ClusteringResult:
    """
    Restrict the display rows to cluster medoids.

    The returned ordering indexes the kept rows (0..k-1 in display order);
    the caller pairs it with the paths it selects from the full ordering.
    """
    rep_set = set(result.representatives)
    kept_ids = [
        result.cluster_ids[pos]
        for pos, path_index in enumerate(result.ordering)
        if path_index in rep_set
    ]
    return ClusteringResult(
        ordering=list(range(len(kept_ids))),
        cluster_ids=kept_ids,
        num_clusters=result.num_clusters,
        representatives=list(result.representatives),
        cluster_sizes=list(result.cluster_sizes),
        dendrogram=result.dendrogram,
    )


def representative_paths(result: ClusteringResult) -> List[int]:
    """Input indices of the medoid rows, in display order."""
    rep_set = set(result.representatives)
    return [path_index for path_index in result.ordering if path_index in rep_set]
