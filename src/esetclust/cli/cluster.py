"""
esetclust cluster command - Hierarchical clustering of samples.

Loads an expression table, optionally restricts it to chosen features and
samples (or the most variable features), builds the samples × features
view and cuts the hierarchical clustering tree into k groups.

Usage:
    esetclust cluster --input all_expr.csv --n-features 50 -k 3 --output clusters.csv
"""

import argparse
import logging
from pathlib import Path

import numpy as np
import pandas as pd

from esetclust.cli._validators import _positive_int
from esetclust.cluster.hclust import LINKAGE_METHODS

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the cluster subcommand."""
    parser = subparsers.add_parser(
        "cluster",
        help="Hierarchical clustering of samples in an expression table",
        description=(
            "Transpose an expression table (features x samples) into a "
            "samples x features view and cluster its rows."
        )
    )

    # Input/output
    parser.add_argument("--input", "-i", type=Path, required=True,
                        help="Expression data CSV/TSV (features x samples)")
    parser.add_argument("--metadata", "-m", type=Path,
                        help="Sample metadata CSV (optional, labels the dendrogram)")
    parser.add_argument("--sample-id-column", default=None,
                        help="Sample id column of the metadata file (default: first column)")
    parser.add_argument("--output", "-o", type=Path, default=None,
                        help="Cluster assignments CSV (default: print to stdout)")
    parser.add_argument("--dendrogram", type=Path, default=None,
                        help="Write the dendrogram figure (png/pdf/svg)")

    # Selection
    parser.add_argument("--features", nargs="+", default=None,
                        help="Feature ids to use (default: all)")
    parser.add_argument("--samples", nargs="+", default=None,
                        help="Sample ids to use (default: all)")
    parser.add_argument("--n-features", type=_positive_int, default=None,
                        help="Use the N most variable features")

    # Clustering
    parser.add_argument("--metric", default="euclidean",
                        help="Distance metric passed to scipy pdist (default: euclidean)")
    parser.add_argument("--method", choices=LINKAGE_METHODS, default="complete",
                        help="Linkage method (default: complete)")
    parser.add_argument("-k", type=_positive_int, default=3,
                        help="Number of clusters (default: 3)")
    parser.add_argument("--scale", action="store_true",
                        help="Z-scale features before computing distances")
    parser.add_argument("--color-by", default=None,
                        help="Metadata column appended to dendrogram leaf labels")

    parser.set_defaults(func=run_cluster)


def run_cluster(args: argparse.Namespace) -> int:
    """Execute the cluster command."""
    from esetclust.adapter import es_hclust
    from esetclust.io.loaders import load_expression_set
    from esetclust.io.writers import write_table
    from esetclust.workflow import unique_feature_ids

    eset = load_expression_set(
        args.input,
        sample_metadata=args.metadata,
        sample_id_column=args.sample_id_column,
    )

    eset = unique_feature_ids(eset)

    if args.samples:
        eset = eset.select_samples(args.samples)
    if args.features:
        eset = eset.select_features(args.features)
    if args.n_features is not None and args.n_features < eset.n_features:
        variance = np.nanvar(eset.data, axis=1)
        top = np.sort(np.argsort(variance)[::-1][:args.n_features])
        eset = eset.select_features(top)
        logger.info(f"Selected {args.n_features} most variable features")

    session = es_hclust(
        eset,
        metric=args.metric,
        method=args.method,
        k=args.k,
        scale=args.scale,
    )

    assignments = pd.DataFrame({
        'sample_id': [str(s) for s in eset.sample_ids],
        'label': list(session.clusters.index),
        'cluster': session.clusters.values,
    })
    if args.color_by is not None:
        if args.color_by not in eset.sample_metadata.columns:
            raise KeyError(f"Sample metadata has no column '{args.color_by}'")
        assignments[args.color_by] = eset.sample_metadata[args.color_by].values

    if args.output is not None:
        write_table(assignments, args.output, index=False)
    else:
        print(assignments.to_string(index=False))

    if args.dendrogram is not None:
        color_by = None
        if args.color_by is not None:
            color_by = pd.Series(
                eset.sample_metadata[args.color_by].values, index=session.view.index
            )
        figure = session.plot_dendrogram(color_by=color_by)
        figure.save(args.dendrogram)
        figure.close()
        logger.info(f"Wrote dendrogram to {args.dendrogram}")

    sizes = ", ".join(f"{c}: {len(m)}" for c, m in sorted(session.members().items()))
    print(f"\n{session.n_clusters} clusters of {len(session.view)} samples ({sizes})")
    return 0
