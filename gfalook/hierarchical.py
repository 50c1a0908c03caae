"""
UPGMA hierarchical clustering of paths and cutting of the resulting tree.

The dendrogram is stored as a flat arena: ids 0..n-1 are leaves and id n+k is
the internal node created by the k-th merge. Merge heights are half the
average-linkage distance at which two clusters are joined.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .density import default_max_clusters
from .union_find import UnionFind

logger = logging.getLogger(__name__)

DEFAULT_EMPTY_THRESHOLD = 0.5


@dataclass
class DendrogramNode:
    """Internal node: the merge of two subtrees."""
    left: int
    right: int
    height: float
    size: int


@dataclass
class Dendrogram:
    """Binary merge tree over n leaves with n-1 internal nodes."""
    nodes: List[DendrogramNode] = field(default_factory=list)
    leaf_order: List[int] = field(default_factory=list)
    max_height: float = 0.0

    @property
    def n_leaves(self) -> int:
        return len(self.leaf_order)

    def to_dict(self) -> dict:
        return {
            'nodes': [[node.left, node.right, node.height, node.size] for node in self.nodes],
            'leaf_order': list(self.leaf_order),
            'max_height': self.max_height,
        }


class GlobalMergeSelection:
    """Pick the closest pair of active clusters anywhere in the matrix."""

    def select(self, dists: np.ndarray) -> Tuple[float, int, int]:
        """
        Find the minimum-distance pair.

        Inactive slots and the diagonal hold +inf. The matrix is symmetric, so
        the first minimum in row-major order is the first pair (i, j) with
        i < j, which is the scan-order tie-break.
        """
        flat = int(np.argmin(dists))
        i, j = divmod(flat, dists.shape[1])
        return float(dists[i, j]), i, j


class ConstrainedMergeSelection(GlobalMergeSelection):
    """
    Prefer merges between clusters sharing a tag from an existing flat clustering.

    Only when no two active clusters share a tag does the search fall back to
    the global minimum. A merged cluster keeps the tag of the slot it occupies.
    """

    def __init__(self, tags: Sequence[int]):
        tags = np.asarray(tags)
        self.same_tag = tags[:, None] == tags[None, :]

    def select(self, dists: np.ndarray) -> Tuple[float, int, int]:
        within = np.where(self.same_tag, dists, np.inf)
        min_dist, i, j = super().select(within)
        if np.isfinite(min_dist):
            return min_dist, i, j
        return super().select(dists)


class HierarchicalClusterer:
    """
    Average-linkage (UPGMA) agglomerative clustering.

    The merge selection strategy decides which pair is merged next; the rest
    of the procedure (recording the merge, size-weighted distance update,
    retiring a slot) is the same for every strategy.
    """

    def __init__(self, selection: Optional[GlobalMergeSelection] = None,
                 logger: Optional[logging.Logger] = None):
        self.selection = selection or GlobalMergeSelection()
        self.logger = logger or logging.getLogger(__name__)

    def build(self, distance_matrix: np.ndarray) -> Dendrogram:
        """
        Build the dendrogram for a symmetric distance matrix.

        Args:
            distance_matrix: n x n distances

        Returns:
            Dendrogram with n-1 nodes in merge order and the root's leaf order
        """
        n = len(distance_matrix)
        if n == 0:
            return Dendrogram()
        if n == 1:
            return Dendrogram(leaf_order=[0])

        dists = np.array(distance_matrix, dtype=np.float64)
        np.fill_diagonal(dists, np.inf)

        slot_cluster = list(range(n))
        slot_size = [1] * n
        # Arena of leaf lists indexed by cluster id
        members: List[Optional[List[int]]] = [[i] for i in range(n)] + [None] * (n - 1)

        nodes: List[DendrogramNode] = []
        max_height = 0.0

        for merge_idx in range(n - 1):
            min_dist, i, j = self.selection.select(dists)

            new_id = n + merge_idx
            left_id, right_id = slot_cluster[i], slot_cluster[j]
            left_size, right_size = slot_size[i], slot_size[j]
            new_size = left_size + right_size
            height = min_dist / 2.0

            nodes.append(DendrogramNode(left_id, right_id, height, new_size))
            max_height = max(max_height, height)

            members[new_id] = members[left_id] + members[right_id]
            members[left_id] = None
            members[right_id] = None

            merged = (dists[i] * left_size + dists[j] * right_size) / new_size
            dists[i, :] = merged
            dists[:, i] = merged
            dists[i, i] = np.inf
            dists[j, :] = np.inf
            dists[:, j] = np.inf

            slot_cluster[i] = new_id
            slot_size[i] = new_size

        self.logger.debug(f"UPGMA built {len(nodes)} merges, max height {max_height:.4f}")
        return Dendrogram(nodes, members[2 * n - 2], max_height)


def build_dendrogram(distance_matrix: np.ndarray,
                     cluster_assignments: Optional[Sequence[int]] = None) -> Dendrogram:
    """Build a UPGMA dendrogram, constrained by a flat clustering when given."""
    selection = None
    if cluster_assignments is not None:
        selection = ConstrainedMergeSelection(cluster_assignments)
    return HierarchicalClusterer(selection).build(distance_matrix)


def find_leftmost_leaf(dendrogram: Dendrogram, node_id: int) -> int:
    """Follow left children from node_id down to a leaf."""
    n_leaves = dendrogram.n_leaves
    while node_id >= n_leaves:
        internal = node_id - n_leaves
        if internal >= len(dendrogram.nodes):
            return 0
        node_id = dendrogram.nodes[internal].left
    return node_id


class TreeCutter:
    """Turn a dendrogram into flat clusters by cutting at a height."""

    def __init__(self, dendrogram: Dendrogram, logger: Optional[logging.Logger] = None):
        self.dendrogram = dendrogram
        self.logger = logger or logging.getLogger(__name__)

    def cut(self, threshold: float) -> List[int]:
        """
        Cluster id per leaf after applying every merge with height <= threshold.

        Ids are consecutive and numbered by first appearance in leaf index order.
        """
        n_leaves = self.dendrogram.n_leaves
        if n_leaves == 0:
            return []
        if not self.dendrogram.nodes:
            return [0]

        uf = UnionFind(n_leaves)
        for node in self.dendrogram.nodes:
            if node.height <= threshold:
                uf.union(find_leftmost_leaf(self.dendrogram, node.left),
                         find_leftmost_leaf(self.dendrogram, node.right))
        return uf.component_labels()

    def count(self, threshold: float) -> int:
        labels = self.cut(threshold)
        return max(labels) + 1 if labels else 0

    def auto_threshold(self, max_clusters: Optional[int] = None) -> Tuple[float, str]:
        """
        Highest merge height whose cut yields at least the target cluster count.

        Args:
            max_clusters: Target cluster count (default: ceil(n / 9))

        Returns:
            Tuple of (threshold, method) where method is 'auto', 'minimum' when
            no height reaches the target, or 'empty' for a tree without merges
        """
        if not self.dendrogram.nodes:
            return DEFAULT_EMPTY_THRESHOLD, 'empty'

        target = max_clusters if max_clusters is not None else default_max_clusters(self.dendrogram.n_leaves)
        heights = sorted({node.height for node in self.dendrogram.nodes})

        for threshold in reversed(heights):
            num_clusters = self.count(threshold)
            self.logger.debug(f"UPGMA cut at {threshold:.4f} gives {num_clusters} clusters (target: {target})")
            if num_clusters >= target:
                self.logger.debug(f"UPGMA auto-threshold: {threshold:.4f} gives {num_clusters} clusters")
                return threshold, 'auto'

        self.logger.debug(f"UPGMA using minimum threshold: {heights[0]:.4f}")
        return heights[0], 'minimum'
