"""
gfalook: similarity ordering of variation graph paths

A Python package for clustering the paths of a pangenome variation graph by
base-pair weighted Jaccard similarity, producing a display ordering, per-cluster
medoids and an optional UPGMA dendrogram.
"""

__version__ = "0.1.0"

from .core import PathSimilarityClustering
from .gfa import Graph, GraphPath, PathStep, load_gfa
from .coverage import PathCoverage, build_path_coverage
from .distances import (
    build_distance_matrix,
    jaccard_to_edr,
    weighted_jaccard_similarity
)
from .density import (
    AutoEpsSelector,
    DensityClusterer,
    dbscan_cluster,
    dbscan_count_clusters
)
from .hierarchical import (
    ConstrainedMergeSelection,
    Dendrogram,
    DendrogramNode,
    GlobalMergeSelection,
    HierarchicalClusterer,
    TreeCutter,
    build_dendrogram
)
from .organize import ClusterOrganizer, ClusteringResult, representatives_view
from .utils import (
    format_cluster_output,
    save_clustering_results,
    write_cluster_tsv,
    write_medoids_tsv
)

__all__ = [
    "PathSimilarityClustering",
    "Graph",
    "GraphPath",
    "PathStep",
    "load_gfa",
    "PathCoverage",
    "build_path_coverage",
    "build_distance_matrix",
    "jaccard_to_edr",
    "weighted_jaccard_similarity",
    "AutoEpsSelector",
    "DensityClusterer",
    "dbscan_cluster",
    "dbscan_count_clusters",
    "ConstrainedMergeSelection",
    "Dendrogram",
    "DendrogramNode",
    "GlobalMergeSelection",
    "HierarchicalClusterer",
    "TreeCutter",
    "build_dendrogram",
    "ClusterOrganizer",
    "ClusteringResult",
    "representatives_view",
    "format_cluster_output",
    "save_clustering_results",
    "write_cluster_tsv",
    "write_medoids_tsv"
]
