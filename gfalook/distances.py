"""
Pairwise path distances from base-pair weighted Jaccard similarity.

Similarity between two paths is the bp-weighted Jaccard index of their node
coverage. It is converted to an estimated difference rate (EDR) and the EDRs
are normalised by their maximum so that all distances fall in [0, 1].
"""

import logging
import os
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import List, Mapping, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from .coverage import PathCoverage

logger = logging.getLogger(__name__)

# Below this many paths the pool start-up costs more than the pairs themselves
MIN_PATHS_FOR_PARALLEL = 128
MAX_AUTO_WORKERS = 4


def weighted_jaccard_similarity(counts_a: Mapping[int, int],
                                counts_b: Mapping[int, int],
                                bp_a: int,
                                bp_b: int) -> float:
    """
    Base-pair weighted Jaccard similarity of two coverage maps.

    The intersection adds min(bp_a_on_node, bp_b_on_node) over shared nodes and
    the union is bp_a + bp_b - intersection. Two empty paths are identical.

    Args:
        counts_a: Node id -> bp for the first path
        counts_b: Node id -> bp for the second path
        bp_a: Total bp of the first path
        bp_b: Total bp of the second path

    Returns:
        Similarity in [0, 1]
    """
    if bp_a == 0 and bp_b == 0:
        return 1.0

    if len(counts_b) < len(counts_a):
        counts_a, counts_b = counts_b, counts_a

    intersection = 0
    for node, bp_on_a in counts_a.items():
        bp_on_b = counts_b.get(node)
        if bp_on_b is not None:
            intersection += min(bp_on_a, bp_on_b)

    union = bp_a + bp_b - intersection
    if union == 0:
        return 1.0
    return intersection / union


def jaccard_to_edr(jaccard: float) -> float:
    """Estimated difference rate: (1 - J) / (1 + J)."""
    return (1.0 - jaccard) / (1.0 + jaccard)


# Per-process state, set once per worker by _init_edr_worker
_worker_counts = None
_worker_totals = None


def _init_edr_worker(counts: Sequence[Mapping[int, int]], totals: Sequence[int]) -> None:
    """Store the coverage model in a worker process so tasks carry only row indices."""
    global _worker_counts, _worker_totals
    _worker_counts = counts
    _worker_totals = totals


def edr_rows(rows: Sequence[int],
             counts: Sequence[Mapping[int, int]],
             totals: Sequence[int]) -> List[Tuple[int, int, float]]:
    """Compute EDR for every pair (i, j), j > i, for the given rows."""
    n = len(counts)
    results = []
    for i in rows:
        for j in range(i + 1, n):
            jaccard = weighted_jaccard_similarity(counts[i], counts[j], totals[i], totals[j])
            results.append((i, j, jaccard_to_edr(jaccard)))
    return results


def _edr_rows_worker(rows: Sequence[int]) -> List[Tuple[int, int, float]]:
    return edr_rows(rows, _worker_counts, _worker_totals)


def _split_rows(n: int, num_chunks: int) -> List[List[int]]:
    """Interleave rows across chunks; row i has n-1-i pairs, so striding balances the work."""
    chunks = [list(range(start, n, num_chunks)) for start in range(num_chunks)]
    return [chunk for chunk in chunks if chunk]


def resolve_num_workers(n_paths: int, num_threads: Optional[int]) -> int:
    """
    Decide how many worker processes to use for n_paths.

    None picks automatically (in-process for small inputs), 0 or 1 forces
    in-process computation, anything larger is used as given.
    """
    if num_threads is None:
        if n_paths < MIN_PATHS_FOR_PARALLEL:
            return 0
        return min(os.cpu_count() or MAX_AUTO_WORKERS, MAX_AUTO_WORKERS)
    if num_threads <= 1:
        return 0
    return num_threads


def compute_pairwise_edr(coverage: PathCoverage,
                         num_threads: Optional[int] = None,
                         show_progress: bool = False) -> List[Tuple[int, int, float]]:
    """
    Compute (i, j, edr) for every unordered pair of paths.

    Pairs are independent, so they are farmed out to a process pool in row
    chunks; the order of the returned triples is unspecified.
    """
    n = len(coverage)
    total_pairs = n * (n - 1) // 2
    if total_pairs == 0:
        return []

    workers = resolve_num_workers(n, num_threads)

    pbar = None
    if show_progress:
        pbar = tqdm(total=total_pairs, desc="Computing path distances", unit=" pairs")

    triples: List[Tuple[int, int, float]] = []
    if workers == 0:
        for i in range(n):
            part = edr_rows([i], coverage.counts, coverage.totals)
            triples.extend(part)
            if pbar:
                pbar.update(len(part))
    else:
        logger.debug(f"Computing {total_pairs} pairs with {workers} worker processes")
        chunks = _split_rows(n, workers * 4)
        with ProcessPoolExecutor(max_workers=workers,
                                 initializer=_init_edr_worker,
                                 initargs=(coverage.counts, coverage.totals)) as executor:
            futures = [executor.submit(_edr_rows_worker, chunk) for chunk in chunks]
            for future in as_completed(futures):
                part = future.result()
                triples.extend(part)
                if pbar:
                    pbar.update(len(part))

    if pbar:
        pbar.close()

    return triples


def build_distance_matrix(coverage: PathCoverage,
                          num_threads: Optional[int] = None,
                          show_progress: bool = False) -> Tuple[np.ndarray, float]:
    """
    Build the normalised symmetric distance matrix.

    Args:
        coverage: Coverage model of the paths
        num_threads: Worker processes (None: auto, 0: in-process)
        show_progress: Show a progress bar over pairs

    Returns:
        Tuple of (distance_matrix, max_edr). The matrix is n x n with zero
        diagonal; entries are edr / max_edr, or all zero when max_edr is 0.
    """
    n = len(coverage)
    distance_matrix = np.zeros((n, n), dtype=np.float64)

    triples = compute_pairwise_edr(coverage, num_threads=num_threads, show_progress=show_progress)
    if not triples:
        return distance_matrix, 0.0

    max_edr = max(edr for _, _, edr in triples)
    logger.debug(f"Max EDR: {max_edr:.6f}")

    if max_edr > 0:
        for i, j, edr in triples:
            distance_matrix[i, j] = edr / max_edr
            distance_matrix[j, i] = distance_matrix[i, j]

    return distance_matrix, float(max_edr)


def upper_triangle_distances(distance_matrix: np.ndarray) -> np.ndarray:
    """Flatten the strictly upper triangle (one value per unordered pair)."""
    n = len(distance_matrix)
    rows, cols = np.triu_indices(n, k=1)
    return distance_matrix[rows, cols]


def log_distance_distribution(distance_matrix: np.ndarray,
                              log: Optional[logging.Logger] = None) -> None:
    """Log the range and quartiles of the pairwise distances at DEBUG level."""
    log = log or logger
    distances = np.sort(upper_triangle_distances(distance_matrix))
    if len(distances) == 0:
        return
    log.debug(f"Distance range: {distances[0]:.3f} - {distances[-1]:.3f}")
    if len(distances) >= 4:
        q1 = distances[len(distances) // 4]
        median = distances[len(distances) // 2]
        q3 = distances[3 * len(distances) // 4]
        log.debug(f"Distance quartiles: Q1={q1:.3f}, median={median:.3f}, Q3={q3:.3f}")


def edr_for_paths(counts: Sequence[Mapping[int, int]], totals: Sequence[int], i: int, j: int) -> float:
    """EDR between two paths of a coverage model."""
    return jaccard_to_edr(weighted_jaccard_similarity(counts[i], counts[j], totals[i], totals[j]))
