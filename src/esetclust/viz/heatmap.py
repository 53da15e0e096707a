"""
Expression heatmaps.

Draws a features × samples heatmap of an ExpressionSet subset (typically the
top differentially expressed features) with hierarchical ordering of both
axes and a colour bar marking each sample's group.
"""

from __future__ import annotations

from typing import Literal, Optional

import matplotlib.patches as mpatches
import numpy as np
import pandas as pd
import seaborn as sns

from esetclust.core.expression_set import ExpressionSet, Selector
from esetclust.core.labels import normalize_index
from esetclust.errors import EmptyInputError
from esetclust.viz.core import Figure
from esetclust.viz.styles import PALETTES, Palette

__all__ = ['plot_expression_heatmap', 'row_zscore']


def row_zscore(values: np.ndarray) -> np.ndarray:
    """Centre and scale each row; constant rows become zeros."""
    mean = values.mean(axis=1, keepdims=True)
    std = values.std(axis=1, ddof=1, keepdims=True)
    std = np.where(std > 0, std, 1.0)
    return (values - mean) / std


def plot_expression_heatmap(
    eset: ExpressionSet,
    features: Optional[Selector] = None,
    annotate_by: Optional[str] = None,
    scale: Literal["row", "none"] = "row",
    cluster_features: bool = True,
    cluster_samples: bool = True,
    method: str = "average",
    metric: str = "euclidean",
    palette: Optional[Palette] = None,
    figsize: tuple[float, float] = (10, 8),
    title: Optional[str] = None,
) -> Figure:
    """
    Heatmap of expression values with optional dendrogram ordering.

    Parameters
    ----------
    eset : ExpressionSet
        Expression set to draw.
    features : selector, optional
        Features to include (mask, positions or labels). All if None.
    annotate_by : str, optional
        sample_metadata column used for the sample colour bar.
    scale : {"row", "none"}
        "row" z-scores each feature before drawing.
    cluster_features, cluster_samples : bool
        Reorder the axis by hierarchical clustering.
    method, metric : str
        Linkage method and distance metric for the dendrograms.
    palette : Palette, optional
        Colours; default palette if None.
    figsize : tuple
        Figure size.
    title : str, optional
        Figure title.

    Returns
    -------
    Figure
        Wrapper around the seaborn ClusterGrid's figure. ``figure.grid``
        gives access to the dendrogram orderings.

    Raises
    ------
    EmptyInputError
        If the selection has no features or no samples.
    KeyError
        If ``annotate_by`` is not a sample_metadata column.
    """
    if palette is None:
        palette = PALETTES["default"]

    subset = eset.select_features(features) if features is not None else eset
    if subset.n_features == 0 or subset.n_samples == 0:
        raise EmptyInputError(
            f"Cannot draw heatmap of {subset.n_features} features × {subset.n_samples} samples"
        )

    values = row_zscore(subset.data) if scale == "row" else subset.data
    # Duplicate labels break colour-bar alignment
    frame = pd.DataFrame(
        values,
        index=normalize_index(subset.feature_ids, syntactic=False),
        columns=normalize_index(subset.sample_ids, syntactic=False),
    )

    col_colors = None
    if annotate_by is not None:
        if annotate_by not in subset.sample_metadata.columns:
            raise KeyError(f"Sample metadata has no column '{annotate_by}'")
        groups = subset.sample_metadata[annotate_by]
        col_colors = palette.sample_colors(groups)
        col_colors.index = frame.columns
        col_colors.name = annotate_by

    # Clustering needs at least two observations along the axis
    row_cluster = cluster_features and subset.n_features > 1
    col_cluster = cluster_samples and subset.n_samples > 1

    grid = sns.clustermap(
        frame,
        method=method,
        metric=metric,
        row_cluster=row_cluster,
        col_cluster=col_cluster,
        col_colors=col_colors,
        cmap=palette.diverging if scale == "row" else palette.sequential,
        center=0 if scale == "row" else None,
        yticklabels=subset.n_features <= 60,
        xticklabels=subset.n_samples <= 60,
        figsize=figsize,
        cbar_kws={"label": "row z-score" if scale == "row" else "expression"},
    )

    if title is None:
        title = f"Expression of {subset.n_features} features across {subset.n_samples} samples"
    grid.figure.suptitle(title, y=1.02)

    if annotate_by is not None:
        mapping = palette.for_groups(subset.sample_metadata[annotate_by])
        handles = [
            mpatches.Patch(color=color, label=str(group)) for group, color in mapping.items()
        ]
        grid.ax_heatmap.legend(
            handles=handles,
            title=annotate_by,
            loc="upper left",
            bbox_to_anchor=(1.15, 1.0),
        )

    return Figure(
        fig=grid.figure,
        title=title,
        grid=grid,
        metadata={
            "linkage": f"{method} linkage on {metric} distance",
            "n_features": subset.n_features,
            "n_samples": subset.n_samples,
            "annotate_by": annotate_by,
            "scale": scale,
        },
    )
