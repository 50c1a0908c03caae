"""
Per-path base-pair coverage of graph nodes.

Each path is summarised as a map node id -> total bp it contributes on that
node (node length times number of visits). Nodes that every path covers
identically carry no signal for telling paths apart and are dropped unless
all nodes are requested.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence, Set

from .gfa import GraphPath

logger = logging.getLogger(__name__)


@dataclass
class PathCoverage:
    """Coverage maps and totals for a set of paths, in input order."""
    counts: List[Dict[int, int]] = field(default_factory=list)
    totals: List[int] = field(default_factory=list)
    nodes_used: int = 0
    nodes_total: int = 0

    def __len__(self) -> int:
        return len(self.counts)


def path_bp_counts(path: GraphPath, node_lengths: Mapping[int, int]) -> Dict[int, int]:
    """Sum node lengths over every step of a path, keyed by node id."""
    counts: Dict[int, int] = {}
    for step in path.steps:
        counts[step.node_id] = counts.get(step.node_id, 0) + node_lengths.get(step.node_id, 0)
    return counts


def find_variable_nodes(all_counts: Sequence[Mapping[int, int]], nodes: Set[int]) -> Set[int]:
    """
    Nodes whose coverage differs between the first path and any other path.

    A node absent from a path counts as coverage 0 on that path.
    """
    if not all_counts:
        return set()
    first = all_counts[0]
    variable = set()
    for node in nodes:
        first_bp = first.get(node, 0)
        if any(counts.get(node, 0) != first_bp for counts in all_counts[1:]):
            variable.add(node)
    return variable


def build_path_coverage(paths: Sequence[GraphPath],
                        node_lengths: Mapping[int, int],
                        use_all_nodes: bool = False) -> PathCoverage:
    """
    Build the coverage model used for path similarity.

    Args:
        paths: Paths to compare
        node_lengths: Node id -> length in bp
        use_all_nodes: Keep every node instead of only variable ones

    Returns:
        PathCoverage with per-path (possibly filtered) counts and totals. When
        filtering, totals are summed over the filtered counts so that the
        Jaccard intersection and union are taken over the same node set.
    """
    all_counts = [path_bp_counts(path, node_lengths) for path in paths]

    all_nodes: Set[int] = set()
    for counts in all_counts:
        all_nodes.update(counts)

    if use_all_nodes:
        logger.debug(f"Clustering on all {len(all_nodes)} nodes")
        totals = [sum(counts.values()) for counts in all_counts]
        return PathCoverage(all_counts, totals, len(all_nodes), len(all_nodes))

    variable_nodes = find_variable_nodes(all_counts, all_nodes)
    logger.debug(f"Clustering on variable nodes only: {len(variable_nodes)} of {len(all_nodes)} nodes "
                 f"({len(all_nodes) - len(variable_nodes)} invariant nodes excluded)")

    filtered = [
        {node: bp for node, bp in counts.items() if node in variable_nodes}
        for counts in all_counts
    ]
    totals = [sum(counts.values()) for counts in filtered]
    return PathCoverage(filtered, totals, len(variable_nodes), len(all_nodes))
