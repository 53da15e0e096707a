"""
CSV writers for expression sets and result tables.

An expression set is written as two files so it can be reloaded by R or by
``load_expression_set``:

    {path}.data.csv     features × samples matrix, feature ids first
    {path}.samples.csv  phenotype table, sample ids first
"""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from esetclust.core.expression_set import ExpressionSet
from esetclust.errors import EmptyInputError

logger = logging.getLogger(__name__)

__all__ = ['write_expression_set', 'write_table']


def _prepare(path: Path) -> Path:
    path = Path(path)
    if path.parent != Path('.') and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    return path


def write_expression_set(eset: ExpressionSet, path: Path) -> tuple[Path, Path]:
    """
    Write an ExpressionSet as ``{path}.data.csv`` and ``{path}.samples.csv``.

    Args:
        eset: Expression set to write
        path: Base path (without extension)

    Returns:
        (data_path, samples_path)

    Raises:
        TypeError: If eset is not an ExpressionSet
        EmptyInputError: If the set has no values
    """
    if not isinstance(eset, ExpressionSet):
        raise TypeError(f"eset must be ExpressionSet, got {type(eset)}")
    if eset.data.size == 0:
        raise EmptyInputError("Cannot write an empty expression set")

    path = _prepare(path)

    data_path = Path(str(path) + ".data.csv")
    eset.to_frame().to_csv(data_path)
    logger.info(f"Wrote data matrix to {data_path}")

    samples_path = Path(str(path) + ".samples.csv")
    samples = eset.sample_metadata.copy()
    samples.index = pd.Index(eset.sample_ids, name="sample_id")
    samples.to_csv(samples_path)
    logger.info(f"Wrote sample metadata to {samples_path}")

    return data_path, samples_path


def write_table(df: pd.DataFrame, path: Path, index: bool = True) -> Path:
    """Write a result table (top table, confusion matrix, clusters) to CSV."""
    path = _prepare(path)
    df.to_csv(path, index=index)
    logger.info(f"Wrote {len(df)} rows to {path}")
    return path
