"""
Utility functions for gfalook.

This module provides the flat-file exports of a clustering result: one table
of cluster assignments per path, one table of medoids per cluster, and a
plain-text summary.
"""

import logging
from pathlib import Path
from typing import List, Sequence, Union

from .organize import ClusteringResult, representative_paths, representatives_view


def output_base(output_path: Union[str, Path]) -> Path:
    """Strip the extension from an output path: foo.png -> foo."""
    return Path(output_path).with_suffix('')


def cluster_tsv_path(output_path: Union[str, Path]) -> Path:
    return output_base(output_path).with_name(output_base(output_path).name + '.clusters.tsv')


def medoids_tsv_path(output_path: Union[str, Path]) -> Path:
    return output_base(output_path).with_name(output_base(output_path).name + '.medoids.tsv')


def write_cluster_tsv(tsv_path: Union[str, Path],
                      path_names: Sequence[str],
                      result: ClusteringResult) -> None:
    """
    Write one row per path in display order.

    Args:
        tsv_path: Destination file
        path_names: Name per input path index
        result: Clustering result
    """
    with open(tsv_path, 'w') as f:
        f.write("path.name\tcluster\n")
        for path_index, cluster_id in zip(result.ordering, result.cluster_ids):
            f.write(f"{path_names[path_index]}\t{cluster_id}\n")
    logging.info(f"Cluster assignments saved to {tsv_path}")


def write_medoids_tsv(tsv_path: Union[str, Path],
                      path_names: Sequence[str],
                      result: ClusteringResult) -> None:
    """Write one row per cluster: id, medoid path name and size."""
    with open(tsv_path, 'w') as f:
        f.write("cluster\tmedoid.path\tcluster.size\n")
        for cluster_id, (medoid, size) in enumerate(zip(result.representatives, result.cluster_sizes)):
            f.write(f"{cluster_id}\t{path_names[medoid]}\t{size}\n")
    logging.info(f"Cluster medoids saved to {tsv_path}")


def format_cluster_output(result: ClusteringResult,
                          path_names: Sequence[str],
                          representatives_only: bool = False) -> str:
    """
    Format clustering results as readable text.

    Args:
        result: Clustering result
        path_names: Name per input path index
        representatives_only: List only the medoid of each cluster

    Returns:
        Formatted string representation of clusters
    """
    if representatives_only:
        view = representatives_view(result)
        rows = zip(representative_paths(result), view.cluster_ids)
    else:
        rows = zip(result.ordering, result.cluster_ids)

    members: List[List[int]] = [[] for _ in range(result.num_clusters)]
    for path_index, cluster_id in rows:
        members[cluster_id].append(path_index)

    output_lines = []
    for cluster_id, cluster in enumerate(members):
        medoid = path_names[result.representatives[cluster_id]]
        output_lines.append(f"Cluster {cluster_id} ({result.cluster_sizes[cluster_id]} paths, medoid {medoid}):")
        for path_index in cluster:
            output_lines.append(f"  - {path_names[path_index]}")

    return "\n".join(output_lines)


def save_clustering_results(result: ClusteringResult,
                            path_names: Sequence[str],
                            output_path: Union[str, Path],
                            format: str = "tsv",
                            representatives_only: bool = False) -> List[Path]:
    """
    Save clustering results next to the output path.

    Args:
        result: Clustering result
        path_names: Name per input path index
        output_path: Output file whose extension is replaced
        format: "tsv" (clusters and medoids tables) or "text"
        representatives_only: For text output, list only medoids

    Returns:
        Paths of the files written
    """
    if format == "tsv":
        clusters_file = cluster_tsv_path(output_path)
        medoids_file = medoids_tsv_path(output_path)
        write_cluster_tsv(clusters_file, path_names, result)
        write_medoids_tsv(medoids_file, path_names, result)
        return [clusters_file, medoids_file]

    if format == "text":
        text_file = output_base(output_path).with_name(output_base(output_path).name + '.clusters.txt')
        with open(text_file, 'w') as f:
            f.write(format_cluster_output(result, path_names, representatives_only))
            f.write("\n")
        logging.info(f"Cluster summary saved to {text_file}")
        return [text_file]

    raise ValueError(f"Unknown output format: {format}")
