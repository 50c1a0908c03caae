"""
Disjoint-set forest shared by density clustering and dendrogram cutting.
"""

from typing import List


class UnionFind:
    """Union-find with path compression and union by rank."""

    def __init__(self, n: int):
        self.parent = list(range(n))
        self.rank = [0] * n

    def __len__(self) -> int:
        return len(self.parent)

    def find(self, x: int) -> int:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        # Path compression
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, x: int, y: int) -> None:
        px = self.find(x)
        py = self.find(y)
        if px == py:
            return
        if self.rank[px] < self.rank[py]:
            self.parent[px] = py
        elif self.rank[px] > self.rank[py]:
            self.parent[py] = px
        else:
            self.parent[py] = px
            self.rank[px] += 1

    def count_components(self) -> int:
        """Number of distinct roots."""
        return len({self.find(i) for i in range(len(self.parent))})

    def component_labels(self) -> List[int]:
        """
        Label every element with a consecutive component id.

        Ids are assigned in order of first appearance when scanning
        elements 0..n-1, so element 0 is always in component 0.
        """
        root_to_label = {}
        labels = []
        for i in range(len(self.parent)):
            root = self.find(i)
            if root not in root_to_label:
                root_to_label[root] = len(root_to_label)
            labels.append(root_to_label[root])
        return labels
