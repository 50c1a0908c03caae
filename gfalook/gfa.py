"""
GFA loading for gfalook.

Reads segment lengths and path/walk step lists from a GFA file. Only the
information needed to order paths is kept: node lengths and, per path, the
ordered list of oriented node visits.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple, Union

logger = logging.getLogger(__name__)

_WALK_STEP = re.compile(r'([><])([^><]+)')


@dataclass(frozen=True)
class PathStep:
    """One visit of a path to a node."""
    node_id: int
    is_reverse: bool = False


@dataclass
class GraphPath:
    """A named path (P line) or walk (W line) through the graph."""
    name: str
    steps: List[PathStep] = field(default_factory=list)


@dataclass
class Graph:
    """Segments and paths of a variation graph."""
    node_names: List[str] = field(default_factory=list)
    node_lengths: Dict[int, int] = field(default_factory=dict)
    paths: List[GraphPath] = field(default_factory=list)

    @property
    def total_length(self) -> int:
        return sum(self.node_lengths.values())


def parse_path_steps(steps_field: str, name_to_id: Dict[str, int]) -> Tuple[List[PathStep], int]:
    """
    Parse the segment list of a P line, e.g. ``1+,2-,3+``.

    Args:
        steps_field: Comma-separated oriented segment names
        name_to_id: Segment name to node id lookup

    Returns:
        Tuple of (steps, dropped) where dropped counts steps naming unknown segments
    """
    steps = []
    dropped = 0
    for token in steps_field.split(','):
        token = token.strip()
        if not token:
            continue
        if token.endswith('+'):
            name, is_reverse = token[:-1], False
        elif token.endswith('-'):
            name, is_reverse = token[:-1], True
        else:
            name, is_reverse = token, False
        node_id = name_to_id.get(name)
        if node_id is None:
            dropped += 1
            continue
        steps.append(PathStep(node_id, is_reverse))
    return steps, dropped


def parse_walk_steps(walk_field: str, name_to_id: Dict[str, int]) -> Tuple[List[PathStep], int]:
    """Parse the walk of a W line, e.g. ``>1<2>3``."""
    steps = []
    dropped = 0
    for orientation, name in _WALK_STEP.findall(walk_field):
        node_id = name_to_id.get(name)
        if node_id is None:
            dropped += 1
            continue
        steps.append(PathStep(node_id, orientation == '<'))
    return steps, dropped


def load_gfa(gfa_path: Union[str, Path]) -> Graph:
    """
    Load segments, paths and walks from a GFA file.

    Segments are numbered in file order. Path steps that reference a segment
    missing from the file are dropped so that downstream stages only ever see
    known node ids.

    Args:
        gfa_path: Path to the GFA file

    Returns:
        Graph with node lengths and paths in file order

    Raises:
        OSError: If the file cannot be read
    """
    graph = Graph()
    name_to_id: Dict[str, int] = {}

    logger.info(f"Loading GFA file {gfa_path}")

    # Segments first so that paths may precede them in the file
    with open(gfa_path) as f:
        for line in f:
            if not line.startswith('S\t'):
                continue
            parts = line.rstrip('\n').split('\t')
            if len(parts) < 3:
                continue
            name = parts[1]
            node_id = len(graph.node_names)
            name_to_id[name] = node_id
            graph.node_names.append(name)
            graph.node_lengths[node_id] = len(parts[2])

    logger.info(f"Found {len(graph.node_names)} segments, total length: {graph.total_length} bp")

    dropped_steps = 0
    with open(gfa_path) as f:
        for line in f:
            if line.startswith('P\t'):
                parts = line.rstrip('\n').split('\t')
                if len(parts) < 3:
                    continue
                steps, dropped = parse_path_steps(parts[2], name_to_id)
                graph.paths.append(GraphPath(parts[1], steps))
                dropped_steps += dropped
            elif line.startswith('W\t'):
                parts = line.rstrip('\n').split('\t')
                if len(parts) < 7:
                    continue
                name = f"{parts[1]}#{parts[2]}#{parts[3]}"
                steps, dropped = parse_walk_steps(parts[6], name_to_id)
                graph.paths.append(GraphPath(name, steps))
                dropped_steps += dropped

    if dropped_steps:
        logger.warning(f"Dropped {dropped_steps} path steps referencing unknown segments")
    logger.info(f"Found {len(graph.paths)} paths")

    return graph
