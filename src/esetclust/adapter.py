"""
Matrix adapter: expression sets into generic clustering tools.

Generic clustering tools expect the "observations are rows" orientation:
one row per sample, one column per variable. Expression sets are stored the
other way round (features × samples). The adapter bridges the two:

    1. Transpose the numeric array to samples × features
    2. Label rows with the (normalized) sample identifiers
    3. Label columns with the (normalized) feature identifiers
    4. Hand the labelled table to a clustering routine and return its result

Values are never altered, filtered or reordered. Identifiers are normalized
into unique, syntactically valid names so that duplicate symbols
(several probes per gene) or numeric sample ids survive as labels.

Examples:
    >>> from esetclust.adapter import es_hclust, to_tabular_view
    >>>
    >>> view = to_tabular_view(eset)
    >>> view.shape == (eset.n_samples, eset.n_features)
    True
    >>>
    >>> # Cluster the 50 most variable genes with the default routine
    >>> top = eset.select_features(np.argsort(eset.data.var(axis=1))[::-1][:50])
    >>> session = es_hclust(top, k=3, method="average")
    >>> session.clusters.value_counts()
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Union

import numpy as np
import pandas as pd

from esetclust.core.expression_set import ExpressionSet
from esetclust.core.labels import normalize_index
from esetclust.core.tabular import TabularSource, as_tabular_source
from esetclust.errors import EmptyInputError, ShapeMismatchError

__all__ = ['to_tabular_view', 'es_hclust', 'ClusterRoutine']

logger = logging.getLogger(__name__)

ClusterRoutine = Callable[..., Any]
ContainerLike = Union[ExpressionSet, TabularSource, pd.DataFrame]


def _unpack(container: ContainerLike) -> tuple[np.ndarray, pd.Index, pd.Index]:
    """Return (array, feature labels, sample labels) in features × samples orientation."""
    if isinstance(container, ExpressionSet):
        return container.data, container.feature_ids, container.sample_ids
    source = as_tabular_source(container)
    return np.asarray(source.numeric_array), pd.Index(source.row_labels), pd.Index(source.col_labels)


def to_tabular_view(container: ContainerLike, make_syntactic: bool = True) -> pd.DataFrame:
    """
    Build the samples × features view of an expression container.

    Args:
        container: ExpressionSet, or any TabularSource/DataFrame whose rows
            are features and whose columns are samples.
        make_syntactic: If True, identifiers are rewritten into syntactic
            names before de-duplication. If False, they are only de-duplicated.

    Returns:
        DataFrame with one row per sample and one column per feature.
        ``view.iloc[s, f] == container.data[f, s]`` for every cell.

    Raises:
        ShapeMismatchError: If the array is not 2D or its dimensions do not
            match the identifier lengths.
        EmptyInputError: If there are zero features or zero samples.
        DuplicateLabelUnresolvableError: If identifiers cannot be turned into
            unique labels (missing ids with make_syntactic=False).

    Examples:
        >>> eset = ExpressionSet(
        ...     data=np.arange(12, dtype=float).reshape(3, 4),
        ...     feature_ids=["g1", "g2", "g3"],
        ...     sample_ids=["A", "A", "B", "C"],
        ... )
        >>> view = to_tabular_view(eset)
        >>> list(view.index)
        ['A', 'A.1', 'B', 'C']
    """
    data, feature_ids, sample_ids = _unpack(container)

    if data.ndim != 2:
        raise ShapeMismatchError(f"expression array must be 2D, got shape {data.shape}")

    n_features, n_samples = data.shape
    if len(feature_ids) != n_features or len(sample_ids) != n_samples:
        raise ShapeMismatchError(
            f"array shape {data.shape} does not match identifier lengths "
            f"({len(feature_ids)} features, {len(sample_ids)} samples)"
        )
    if n_features == 0 or n_samples == 0:
        raise EmptyInputError(
            f"expression container is empty: {n_features} features × {n_samples} samples"
        )

    row_labels = normalize_index(sample_ids, syntactic=make_syntactic)
    col_labels = normalize_index(feature_ids, syntactic=make_syntactic)

    return pd.DataFrame(data.T.copy(), index=row_labels, columns=col_labels)


def es_hclust(
    container: ContainerLike,
    clusterer: Optional[ClusterRoutine] = None,
    *,
    make_syntactic: bool = True,
    **kwargs: Any,
) -> Any:
    """
    Cluster the samples of an expression container.

    Builds the tabular view and calls ``clusterer(view, **kwargs)``. The
    routine's return value (a session or result object) is handed back
    unchanged; the adapter keeps no reference to it. Errors raised by the
    routine propagate unchanged.

    Args:
        container: Expression container (see ``to_tabular_view``). Subset
            it beforehand to choose features/samples.
        clusterer: Callable taking the samples × features DataFrame. Defaults
            to ``esetclust.cluster.hclust.hclust_explorer``.
        make_syntactic: Passed to ``to_tabular_view``.
        **kwargs: Forwarded to the clustering routine.

    Returns:
        Whatever the clustering routine returns.
    """
    if clusterer is None:
        from esetclust.cluster.hclust import hclust_explorer
        clusterer = hclust_explorer

    view = to_tabular_view(container, make_syntactic=make_syntactic)
    logger.debug(
        f"Clustering view of {view.shape[0]} samples × {view.shape[1]} features "
        f"with {getattr(clusterer, '__name__', type(clusterer).__name__)}"
    )
    return clusterer(view, **kwargs)
