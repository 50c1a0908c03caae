"""
Analysis of path clustering results.

Summaries of the pairwise distance distribution, intra- versus inter-cluster
separation, and figures (distance histogram, dendrogram) for inspecting how
paths were grouped.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend
import matplotlib.pyplot as plt
from sklearn.metrics import silhouette_score

from .distances import upper_triangle_distances
from .hierarchical import Dendrogram

Segment = Tuple[Tuple[float, float], Tuple[float, float]]


def calculate_percentiles(distances: np.ndarray,
                          percentiles: Sequence[float] = (5, 25, 50, 75, 95, 100)) -> Dict[str, float]:
    """
    Calculate key percentile values for a set of distances.

    Args:
        distances: Array of distance values
        percentiles: Percentiles to calculate

    Returns:
        Dictionary mapping percentile names to values
    """
    if len(distances) == 0:
        return {f"P{p}": np.nan for p in percentiles}

    percentile_values = np.percentile(distances, percentiles)
    return {f"P{int(p)}": float(val) for p, val in zip(percentiles, percentile_values)}


def calculate_intra_cluster_distances(distance_matrix: np.ndarray,
                                      assignments: Sequence[int]) -> np.ndarray:
    """Distances between every pair of paths sharing a cluster."""
    labels = np.asarray(assignments)
    if len(labels) < 2:
        return np.array([])
    rows, cols = np.triu_indices(len(labels), k=1)
    same = labels[rows] == labels[cols]
    return distance_matrix[rows[same], cols[same]]


def calculate_inter_cluster_distances(distance_matrix: np.ndarray,
                                      assignments: Sequence[int]) -> np.ndarray:
    """Distances between every pair of paths in different clusters."""
    labels = np.asarray(assignments)
    if len(labels) < 2:
        return np.array([])
    rows, cols = np.triu_indices(len(labels), k=1)
    different = labels[rows] != labels[cols]
    return distance_matrix[rows[different], cols[different]]


def calculate_separation_metrics(intra_distances: np.ndarray,
                                 inter_distances: np.ndarray) -> Dict[str, float]:
    """
    Compare intra- and inter-cluster distances.

    The gap is the smallest inter-cluster distance minus the largest
    intra-cluster distance; a positive gap means every cluster is closer
    internally than to any other cluster.
    """
    if len(intra_distances) == 0 or len(inter_distances) == 0:
        return {
            "intra_median": float(np.median(intra_distances)) if len(intra_distances) else np.nan,
            "intra_max": float(np.max(intra_distances)) if len(intra_distances) else np.nan,
            "inter_min": float(np.min(inter_distances)) if len(inter_distances) else np.nan,
            "inter_median": float(np.median(inter_distances)) if len(inter_distances) else np.nan,
            "gap_size": np.nan,
            "gap_exists": False
        }

    intra_max = float(np.max(intra_distances))
    inter_min = float(np.min(inter_distances))
    return {
        "intra_median": float(np.median(intra_distances)),
        "intra_max": intra_max,
        "inter_min": inter_min,
        "inter_median": float(np.median(inter_distances)),
        "gap_size": inter_min - intra_max,
        "gap_exists": bool(inter_min > intra_max)
    }


def calculate_silhouette(distance_matrix: np.ndarray,
                         assignments: Sequence[int]) -> float:
    """
    Mean silhouette of a flat clustering over precomputed distances.

    Returns NaN unless there are at least two clusters and fewer clusters
    than paths, the range where the score is defined.
    """
    labels = np.asarray(assignments)
    num_clusters = len(set(labels.tolist()))
    if num_clusters < 2 or num_clusters >= len(labels):
        return np.nan
    return float(silhouette_score(distance_matrix, labels, metric="precomputed"))


def create_histogram(distance_matrix: np.ndarray,
                     title: str = "Pairwise Path Distances",
                     bins: int = 50,
                     eps: Optional[float] = None,
                     save_path: Optional[str] = None) -> plt.Figure:
    """
    Histogram of normalised pairwise distances with quartile markers.

    Args:
        distance_matrix: Normalised n x n distances
        title: Title for the histogram
        bins: Number of histogram bins
        eps: Optional DBSCAN eps to mark
        save_path: Optional path to save the figure

    Returns:
        matplotlib Figure object
    """
    distances = upper_triangle_distances(distance_matrix)
    fig, ax = plt.subplots(figsize=(10, 6))

    if len(distances) == 0:
        ax.text(0.5, 0.5, 'No distances available',
                ha='center', va='center', transform=ax.transAxes)
        ax.set_title(title)
        ax.set_xlabel("Normalized distance")
        ax.set_ylabel("Frequency")
        return fig

    ax.hist(distances, bins=bins, range=(0.0, 1.0), alpha=0.7, edgecolor='black')

    for p, val in zip([25, 50, 75], np.percentile(distances, [25, 50, 75])):
        ax.axvline(val, color='orange', linestyle='--', alpha=0.8, label=f'P{p}: {val:.3f}')
    if eps is not None:
        ax.axvline(eps, color='red', linewidth=2, label=f'eps: {eps:.3f}')

    ax.set_title(title)
    ax.set_xlabel("Normalized distance")
    ax.set_ylabel("Frequency")
    ax.grid(True, alpha=0.3)
    ax.legend()

    stats_text = f"pairs={len(distances):,}\nMean: {np.mean(distances):.4f}\nStd: {np.std(distances):.4f}"
    ax.text(0.02, 0.98, stats_text, transform=ax.transAxes,
            verticalalignment='top', bbox=dict(boxstyle='round', facecolor='wheat', alpha=0.8))

    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=300, bbox_inches='tight')
        logging.info(f"Histogram saved to {save_path}")

    return fig


def dendrogram_segments(dendrogram: Dendrogram) -> List[Segment]:
    """
    Line segments drawing the dendrogram.

    Leaves sit at x = their position in leaf_order and y = 0; each internal
    node sits midway between its children at its merge height. Every merge
    contributes two vertical risers and one horizontal bar.
    """
    n = dendrogram.n_leaves
    if n < 2:
        return []

    x = {leaf: float(pos) for pos, leaf in enumerate(dendrogram.leaf_order)}
    y = {leaf: 0.0 for leaf in range(n)}
    segments: List[Segment] = []

    for k, node in enumerate(dendrogram.nodes):
        xl, xr = x[node.left], x[node.right]
        yl, yr = y[node.left], y[node.right]
        segments.append(((xl, yl), (xl, node.height)))
        segments.append(((xr, yr), (xr, node.height)))
        segments.append(((xl, node.height), (xr, node.height)))
        x[n + k] = (xl + xr) / 2.0
        y[n + k] = node.height

    return segments


def create_dendrogram_plot(dendrogram: Dendrogram,
                           path_names: Sequence[str],
                           leaf_cluster_ids: Optional[Sequence[int]] = None,
                           title: str = "Path Dendrogram",
                           save_path: Optional[str] = None) -> plt.Figure:
    """
    Draw the dendrogram with leaves labelled by path name.

    Args:
        dendrogram: Tree to draw
        path_names: Name per input path index
        leaf_cluster_ids: Cluster id per leaf position (leaf_order), for colouring labels
        title: Figure title
        save_path: Optional path to save the figure

    Returns:
        matplotlib Figure object
    """
    n = dendrogram.n_leaves
    fig, ax = plt.subplots(figsize=(max(6, 0.3 * n), 6))

    if n < 2:
        ax.text(0.5, 0.5, 'Not enough paths for a dendrogram',
                ha='center', va='center', transform=ax.transAxes)
        ax.set_title(title)
        return fig

    for (x0, y0), (x1, y1) in dendrogram_segments(dendrogram):
        ax.plot([x0, x1], [y0, y1], color='black', linewidth=0.8)

    ax.set_xticks(range(n))
    ax.set_xticklabels([path_names[leaf] for leaf in dendrogram.leaf_order],
                       rotation=90, fontsize=7)
    if leaf_cluster_ids is not None:
        cmap = plt.get_cmap('tab10')
        for label, cluster_id in zip(ax.get_xticklabels(), leaf_cluster_ids):
            label.set_color(cmap(cluster_id % 10))

    ax.set_xlim(-0.5, n - 0.5)
    ax.set_ylim(0, dendrogram.max_height * 1.05 or 1.0)
    ax.set_ylabel("Merge height")
    ax.set_title(title)

    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=300, bbox_inches='tight')
        logging.info(f"Dendrogram saved to {save_path}")

    return fig
