"""
Command-line interface for gfalook path clustering.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import numpy as np

from .analyze import create_dendrogram_plot, create_histogram
from .core import PathSimilarityClustering
from .gfa import load_gfa
from .utils import save_clustering_results


def setup_logging(verbose: bool = False):
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def unit_interval(value: str) -> float:
    """argparse type for a float in [0, 1]."""
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid float value: {value!r}")
    if not 0.0 <= number <= 1.0:
        raise argparse.ArgumentTypeError(f"{value} is not in the range [0, 1]")
    return number


def positive_int(value: str) -> int:
    """argparse type for an integer >= 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"{value} must be at least 1")
    return number


def convert_to_json_serializable(obj):
    """Convert numpy types nested in dicts and lists to Python types, NaN to None."""
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, (float, np.floating)):
        # Strict JSON has no NaN
        return None if np.isnan(obj) else float(obj)
    elif isinstance(obj, dict):
        return {k: convert_to_json_serializable(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [convert_to_json_serializable(item) for item in obj]
    return obj


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='gfalook: order and cluster the paths of a variation graph by similarity',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  gfalook-cluster graph.gfa -o graph.png             # Creates graph.clusters.tsv and graph.medoids.tsv
  gfalook-cluster graph.gfa -o out --cluster-threshold 0.9
  gfalook-cluster graph.gfa -o out --use-upgma --upgma-threshold 0.4
  gfalook-cluster graph.gfa -o out -D --plot-dendrogram tree.png
  gfalook-cluster graph.gfa -o out --format text -K   # Text summary listing medoids only
        """
    )

    # Required arguments
    parser.add_argument(
        'input',
        help='Input GFA file containing paths (P lines) or walks (W lines)'
    )

    # Output options
    parser.add_argument(
        '-o', '--output',
        help='Output path; tables are written next to it with its extension replaced (default: input basename)'
    )
    parser.add_argument(
        '--format',
        choices=['tsv', 'text'],
        default='tsv',
        help='Output format (default: tsv)'
    )

    # Clustering parameters
    parser.add_argument(
        '--cluster-threshold',
        type=unit_interval,
        help='Similarity threshold for cluster detection (eps = 1 - threshold, default: automatic)'
    )
    parser.add_argument(
        '--cluster-all-nodes',
        action='store_true',
        help='Use all nodes for clustering instead of only variable nodes'
    )
    parser.add_argument(
        '--max-clusters',
        type=positive_int,
        help='Maximum number of clusters for automatic selection (default: one per 9 paths)'
    )
    parser.add_argument(
        '-D', '--dendrogram',
        action='store_true',
        help='Compute a dendrogram and order paths by its leaves'
    )
    parser.add_argument(
        '--use-upgma',
        action='store_true',
        help='Use UPGMA hierarchical clustering instead of DBSCAN'
    )
    parser.add_argument(
        '--upgma-threshold',
        type=unit_interval,
        help='Relative height (0.0-1.0) for cutting the UPGMA tree (default: automatic)'
    )
    parser.add_argument(
        '-K', '--cluster-representatives',
        action='store_true',
        help='Show only one representative path (medoid) per cluster in text output'
    )

    # Additional options
    parser.add_argument(
        '--plot-dendrogram',
        help='Save a dendrogram figure to this file (implies --dendrogram)'
    )
    parser.add_argument(
        '--plot-histogram',
        help='Save a histogram of pairwise path distances to this file'
    )
    parser.add_argument(
        '--export-metrics',
        help='Export clustering metrics and the eps scan to JSON file'
    )
    parser.add_argument(
        '-t', '--threads',
        type=int,
        help='Number of worker processes for distance computation (default: auto-detect, 0: single-process)'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )
    return parser


def main():
    """Main entry point for the gfalook clustering CLI."""
    parser = build_parser()
    args = parser.parse_args()

    if args.upgma_threshold is not None and not args.use_upgma:
        parser.error("--upgma-threshold requires --use-upgma")
    if args.threads is not None and args.threads < 0:
        parser.error("--threads must be non-negative")

    # Setup logging
    setup_logging(args.verbose)

    try:
        # Validate input file
        input_path = Path(args.input)
        if not input_path.exists():
            logging.error(f"Input file not found: {args.input}")
            sys.exit(1)

        if args.output is None:
            args.output = str(input_path)

        graph = load_gfa(input_path)
        path_names = [path.name for path in graph.paths]

        clustering = PathSimilarityClustering(
            threshold=args.cluster_threshold,
            use_all_nodes=args.cluster_all_nodes,
            max_clusters=args.max_clusters,
            compute_dendrogram=args.dendrogram or bool(args.plot_dendrogram),
            use_upgma=args.use_upgma,
            upgma_threshold=args.upgma_threshold,
            num_threads=args.threads,
        )
        result, metrics = clustering.cluster(graph.paths, graph.node_lengths)

        save_clustering_results(
            result,
            path_names,
            args.output,
            format=args.format,
            representatives_only=args.cluster_representatives
        )

        if args.plot_dendrogram and result.dendrogram is not None:
            create_dendrogram_plot(result.dendrogram, path_names, result.cluster_ids,
                                   save_path=args.plot_dendrogram)

        if args.plot_histogram:
            create_histogram(clustering.distance_matrix_, eps=metrics.get('eps'), save_path=args.plot_histogram)

        # Export metrics if requested
        if args.export_metrics:
            logging.info(f"Exporting metrics to {args.export_metrics}")
            with open(args.export_metrics, 'w') as f:
                json.dump(convert_to_json_serializable(metrics), f, indent=2)

        logging.debug("Done!")

    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        sys.exit(1)
    except Exception as e:
        logging.error(f"Error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == '__main__':
    main()
