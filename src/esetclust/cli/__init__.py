"""
esetclust CLI - Command-line interface for clustering expression sets.

Commands:
    esetclust cluster  - Hierarchical clustering of samples in an expression table
    esetclust run      - Full workflow from a YAML/JSON config
"""

import argparse
import logging
import sys
from typing import List, Optional

from esetclust import __version__
from esetclust.errors import EsetClustError


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for esetclust."""
    parser = argparse.ArgumentParser(
        prog="esetclust",
        description="Cluster the samples of expression sets with generic clustering tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  cluster   Hierarchical clustering of samples in an expression table
  run       Full workflow (annotate, rank, heatmap, classify, cluster) from a config

Examples:
  esetclust cluster --input all_expr.csv --n-features 50 -k 3 --output clusters.csv
  esetclust run --config workflow.yaml
  esetclust run --config workflow.yaml -k 4 --output results/k4
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    from esetclust.cli import cluster, run
    cluster.register_parser(subparsers)
    run.register_parser(subparsers)

    argv = list(sys.argv[1:] if args is None else args)
    parsed_args = parser.parse_args(argv)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if parsed_args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger = logging.getLogger(__name__)
    parsed_args.argv = argv

    try:
        return parsed_args.func(parsed_args)
    except (EsetClustError, ValueError, KeyError, FileNotFoundError) as e:
        logger.error(f"{parsed_args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
