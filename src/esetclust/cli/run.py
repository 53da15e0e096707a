"""
esetclust run command - Full workflow from a config file.

Usage:
    esetclust run --config workflow.yaml
    esetclust run --config workflow.yaml --factor mol.biol -k 4 --output results/k4
"""

import argparse
import logging
from pathlib import Path

from esetclust.cli._validators import _positive_int
from esetclust.cluster.hclust import LINKAGE_METHODS

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the run subcommand."""
    parser = subparsers.add_parser(
        "run",
        help="Full workflow (annotate, rank, heatmap, classify, cluster) from a config",
        description=(
            "Run the workflow described by a YAML/JSON config. Options given "
            "on the command line override the config file."
        )
    )

    parser.add_argument("--config", "-c", type=Path, required=True,
                        help="Workflow config (.yaml, .yml or .json)")

    # Overrides
    parser.add_argument("--input", "-i", type=Path, default=None,
                        help="Expression data CSV/TSV (overrides config)")
    parser.add_argument("--metadata", "-m", type=Path, default=None,
                        help="Sample metadata CSV (overrides config)")
    parser.add_argument("--output", "-o", type=Path, default=None,
                        help="Output directory (overrides config)")
    parser.add_argument("--factor", default=None,
                        help="Grouping column for differential expression (overrides config)")
    parser.add_argument("--n-top", type=_positive_int, default=None,
                        help="Rows of the top table to keep (overrides config)")
    parser.add_argument("--metric", default=None,
                        help="Clustering distance metric (overrides config)")
    parser.add_argument("--method", choices=LINKAGE_METHODS, default=None,
                        help="Clustering linkage method (overrides config)")
    parser.add_argument("-k", type=_positive_int, default=None,
                        help="Number of clusters (overrides config)")
    parser.add_argument("--random-state", type=int, default=None,
                        help="Random seed (overrides config)")

    parser.set_defaults(func=run_run)


def run_run(args: argparse.Namespace) -> int:
    """Execute the run command."""
    from esetclust.config import config_from_dict, load_config, merge_config_with_args
    from esetclust.workflow import run_workflow

    raw = load_config(args.config)
    merged = merge_config_with_args(raw, args, getattr(args, "argv", None))
    config = config_from_dict(merged)

    logger.info(f"Running workflow from {args.config}")
    result = run_workflow(config)

    print(f"\n{'='*70}")
    print(f"  Top {len(result.top_table)} features by moderated F ({result.design.factor})")
    print(f"{'='*70}\n")
    print(result.top_table.head(10).to_string())

    if result.classification is not None:
        print(f"\n{result.classification.summary()}")
        print(result.classification.confusion.to_string())

    sizes = ", ".join(f"{c}: {len(m)}" for c, m in sorted(result.clustering.members().items()))
    print(f"\n{result.clustering.n_clusters} clusters ({sizes})")

    for name, path in result.artifacts.items():
        print(f"  {name}: {path}")

    result.figures.close_all()
    return 0
