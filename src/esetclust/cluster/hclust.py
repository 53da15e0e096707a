"""
Default hierarchical clustering routine for the matrix adapter.

``hclust_explorer`` is a non-interactive stand-in for an interactive
clustering explorer: it takes a samples × features table, optionally
restricts and scales the columns, builds an agglomerative tree and cuts it
into ``k`` groups. The returned ``HclustSession`` carries everything an
explorer would show (the tree, the cut, the settings) and can draw its
dendrogram.

Any callable with the same first argument can replace it in
``esetclust.adapter.es_hclust``.

Examples:
    >>> session = hclust_explorer(view, metric="correlation", method="average", k=2)
    >>> session.clusters.head()
    X01005    1
    X01010    2
    ...
    >>> session.plot_dendrogram().save("dendrogram.png")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from scipy.cluster import hierarchy
from scipy.spatial.distance import pdist

from esetclust.viz.core import Figure
from esetclust.viz.styles import PALETTES

__all__ = ['HclustSession', 'hclust_explorer', 'LINKAGE_METHODS']

logger = logging.getLogger(__name__)

LINKAGE_METHODS = ('single', 'complete', 'average', 'weighted', 'centroid', 'median', 'ward')

# Methods whose merge heights are only meaningful on Euclidean distances
_EUCLIDEAN_ONLY = ('centroid', 'median', 'ward')


@dataclass
class HclustSession:
    """
    Result of one clustering session.

    Attributes:
        view: Table that was clustered (after column selection and scaling)
        linkage: scipy linkage matrix, shape (n_rows - 1, 4)
        metric: Distance metric
        method: Linkage method
        k: Number of clusters the tree was cut into
        clusters: Cluster id (1..k) per row label
        columns: Columns used
        scaled: Whether columns were z-scaled
    """
    view: pd.DataFrame
    linkage: np.ndarray
    metric: str
    method: str
    k: int
    clusters: pd.Series
    columns: list[str] = field(default_factory=list)
    scaled: bool = False

    @property
    def n_clusters(self) -> int:
        return int(self.clusters.nunique())

    def cut(self, k: int) -> pd.Series:
        """Re-cut the tree into ``k`` clusters without refitting."""
        _check_k(k, len(self.view))
        labels = hierarchy.fcluster(self.linkage, t=k, criterion='maxclust')
        return pd.Series(labels, index=self.view.index, name='cluster')

    def members(self) -> dict[int, list[str]]:
        """Row labels grouped by cluster id."""
        return {
            int(cluster): list(labels)
            for cluster, labels in self.clusters.groupby(self.clusters).groups.items()
        }

    def plot_dendrogram(
        self,
        color_by: Optional[pd.Series] = None,
        figsize: tuple[float, float] = (10, 5),
    ) -> Figure:
        """
        Draw the dendrogram with the k-cluster cut marked.

        Args:
            color_by: Optional Series indexed like the view rows; its values
                are appended to leaf labels.
            figsize: Figure size.
        """
        fig, ax = plt.subplots(figsize=figsize)

        labels = [str(label) for label in self.view.index]
        if color_by is not None:
            labels = [f"{label} ({color_by.get(label, '')})" for label in self.view.index]

        # Height at which the tree splits into k clusters
        threshold = None
        if 1 < self.k < len(self.view):
            heights = np.sort(self.linkage[:, 2])
            threshold = float(heights[-(self.k - 1)])

        hierarchy.dendrogram(
            self.linkage,
            labels=labels,
            ax=ax,
            color_threshold=threshold,
            leaf_rotation=90,
            no_labels=len(labels) > 100,
        )
        if threshold is not None:
            ax.axhline(threshold, color=PALETTES["default"].neutral, linestyle="--", linewidth=0.8)

        ax.set_ylabel(f"{self.metric} distance ({self.method} linkage)")
        title = f"Hierarchical clustering of {len(self.view)} rows, k={self.k}"
        ax.set_title(title)
        plt.tight_layout()

        return Figure(
            fig=fig,
            title=title,
            metadata={
                "metric": self.metric,
                "method": self.method,
                "k": self.k,
                "n_columns": len(self.columns),
                "scaled": self.scaled,
            },
        )


def _check_k(k: int, n_rows: int) -> None:
    if not 1 <= k <= n_rows:
        raise ValueError(f"k must be between 1 and the number of rows ({n_rows}), got {k}")


def hclust_explorer(
    view: pd.DataFrame,
    *,
    metric: str = 'euclidean',
    method: str = 'complete',
    k: int = 3,
    columns: Optional[Sequence[str]] = None,
    scale: bool = False,
) -> HclustSession:
    """
    Agglomerative clustering of the rows of ``view``.

    Args:
        view: Samples × features table (rows are clustered).
        metric: Any ``scipy.spatial.distance.pdist`` metric
            ("euclidean", "correlation", "cityblock", ...).
        method: Linkage method, one of LINKAGE_METHODS.
        k: Number of clusters to cut the tree into.
        columns: Columns to use; all if None.
        scale: If True, z-scale each column first (constant columns become 0).

    Returns:
        HclustSession with tree, cut and settings.

    Raises:
        ValueError: Fewer than two rows, unknown method or columns, k out of
            range, non-finite values, or a Euclidean-only method with another
            metric.
    """
    if method not in LINKAGE_METHODS:
        raise ValueError(f"Unknown linkage method '{method}'. Choose from: {', '.join(LINKAGE_METHODS)}")
    if method in _EUCLIDEAN_ONLY and metric != 'euclidean':
        raise ValueError(f"Linkage method '{method}' requires metric='euclidean', got '{metric}'")
    if len(view) < 2:
        raise ValueError(f"Need at least 2 rows to cluster, got {len(view)}")
    _check_k(k, len(view))

    if columns is not None:
        missing = [c for c in columns if c not in view.columns]
        if missing:
            raise ValueError(f"Unknown columns: {missing[:5]}")
        view = view.loc[:, list(columns)]

    values = view.to_numpy(dtype=float)
    if not np.isfinite(values).all():
        raise ValueError("View contains NaN or infinite values; filter or impute before clustering")

    if scale:
        std = values.std(axis=0, ddof=1)
        std = np.where(std > 0, std, 1.0)
        values = (values - values.mean(axis=0)) / std
        view = pd.DataFrame(values, index=view.index, columns=view.columns)

    distances = pdist(values, metric=metric)
    tree = hierarchy.linkage(distances, method=method)
    labels = hierarchy.fcluster(tree, t=k, criterion='maxclust')

    clusters = pd.Series(labels, index=view.index, name='cluster')
    logger.info(
        f"Clustered {len(view)} rows on {view.shape[1]} columns "
        f"({metric}, {method}) into {clusters.nunique()} clusters"
    )

    return HclustSession(
        view=view,
        linkage=tree,
        metric=metric,
        method=method,
        k=k,
        clusters=clusters,
        columns=[str(c) for c in view.columns],
        scaled=scale,
    )
