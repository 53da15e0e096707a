"""
Relabel expression-set features with annotation symbols.

Probe ids are unreadable in heatmaps and cluster tables; symbols are not
unique (several probes per gene) and may be missing. ``annotate_features``
swaps ids for symbols, normalizes them into unique syntactic labels, and
keeps the original id in ``feature_metadata`` so nothing is lost.
"""

from __future__ import annotations

import logging
from typing import Literal

import numpy as np

from esetclust.annotation.providers import AnnotationSource
from esetclust.core.expression_set import ExpressionSet
from esetclust.core.labels import make_names, make_unique

logger = logging.getLogger(__name__)

__all__ = ['annotate_features', 'ORIGINAL_ID_COLUMN']

ORIGINAL_ID_COLUMN = "probe_id"


def annotate_features(
    eset: ExpressionSet,
    source: AnnotationSource,
    unmapped: Literal["keep", "drop"] = "keep",
    make_syntactic: bool = True,
) -> ExpressionSet:
    """
    Replace feature ids with symbols from an annotation source.

    Args:
        eset: Expression set whose feature ids are keys of ``source``.
        source: Annotation source (passed explicitly, never global).
        unmapped: "keep" leaves unmapped features labelled by their original
            id; "drop" removes them.
        make_syntactic: If True, labels become syntactic names; otherwise
            they are only de-duplicated.

    Returns:
        New ExpressionSet with symbol labels, the original ids in
        ``feature_metadata["probe_id"]``, the symbol (or NaN) in
        ``feature_metadata["symbol"]``, and ``annotation`` set to the source name.

    Raises:
        ValueError: If ``unmapped`` is not "keep" or "drop".
    """
    if unmapped not in ("keep", "drop"):
        raise ValueError(f"unmapped must be 'keep' or 'drop', got '{unmapped}'")

    original_ids = [str(fid) for fid in eset.feature_ids]
    mapping = source.map_ids(original_ids)
    mapped_mask = np.array([fid in mapping for fid in original_ids], dtype=bool)

    n_mapped = int(mapped_mask.sum())
    logger.info(
        f"Annotated {n_mapped}/{eset.n_features} features with {source.name} "
        f"({unmapped} unmapped)"
    )

    if unmapped == "drop":
        eset = eset.select_features(mapped_mask)
        original_ids = [fid for fid, ok in zip(original_ids, mapped_mask) if ok]

    symbols = [mapping.get(fid) for fid in original_ids]
    labels = [symbol if symbol is not None else fid for fid, symbol in zip(original_ids, symbols)]
    labels = make_names(labels) if make_syntactic else make_unique(labels)

    annotated = eset.with_feature_ids(
        labels,
        keep_original_as=ORIGINAL_ID_COLUMN,
        annotation=source.name,
    )
    feature_metadata = annotated.feature_metadata.copy()
    feature_metadata["symbol"] = [s if s is not None else np.nan for s in symbols]
    return ExpressionSet(
        data=annotated.data,
        feature_ids=annotated.feature_ids,
        sample_ids=annotated.sample_ids,
        sample_metadata=annotated.sample_metadata,
        annotation=annotated.annotation,
        feature_metadata=feature_metadata,
    )
