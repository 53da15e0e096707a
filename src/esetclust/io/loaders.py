"""
CSV loaders for expression sets and sample phenotype tables.

Expected layout of an expression table (as written by R's
``write.csv(exprs(eset))`` or exported from an array pipeline):

    "","01005","01010","03002"
    "1000_at",7.60,7.48,7.57
    "1001_at",5.05,4.93,4.80

- First column: feature ids (probe ids, gene symbols); header may be empty
- Remaining columns: one per sample, numeric values

Phenotype tables have one row per sample, keyed by a sample id column (the
first column unless named), and any number of annotation columns.

Identifiers are taken as-is: duplicated probe or sample ids are kept (with a
warning) and only normalized later, when a tabular view is built.

Examples:
    >>> from pathlib import Path
    >>> from esetclust.io.loaders import load_expression_set
    >>>
    >>> eset = load_expression_set(
    ...     Path("all_expr.csv"),
    ...     sample_metadata=Path("all_pheno.csv"),
    ...     annotation="hgu95av2",
    ... )
    >>> eset.shape
    (12625, 128)
"""

from __future__ import annotations

import logging
import warnings
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd

from esetclust.core.expression_set import ExpressionSet
from esetclust.errors import EmptyInputError
from esetclust.io.formats import sniff_delimiter

logger = logging.getLogger(__name__)

__all__ = ['load_expression_set', 'load_sample_metadata']


def _check_file(path: Path, kind: str) -> Path:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"{kind} file not found: {path}")
    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")
    return path


def _non_numeric_examples(df: pd.DataFrame, limit: int = 5) -> list[str]:
    numeric = df.apply(pd.to_numeric, errors='coerce')
    bad = numeric.isna() & df.notna()
    examples = []
    for i, j in zip(*np.where(bad.values)):
        examples.append(
            f"row {i} ('{df.index[i]}'), col {j} ('{df.columns[j]}'): {df.iat[i, j]!r}"
        )
        if len(examples) >= limit:
            break
    return examples


def load_sample_metadata(
    path: Path,
    sample_ids: Sequence | pd.Index,
    sample_id_column: Optional[str] = None,
) -> pd.DataFrame:
    """
    Load a phenotype table and align it to ``sample_ids``.

    Args:
        path: CSV/TSV with one row per sample.
        sample_ids: Sample order of the expression set.
        sample_id_column: Column holding sample ids; first column if None.

    Returns:
        DataFrame indexed by ``sample_ids`` (same order). Extra phenotype
        rows are dropped.

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the id column is missing or a sample has no row
    """
    path = _check_file(path, "Sample metadata")
    sep = sniff_delimiter(path)

    columns = list(pd.read_csv(path, sep=sep, nrows=0).columns)
    if sample_id_column is None:
        sample_id_column = columns[0]
    elif sample_id_column not in columns:
        raise ValueError(
            f"Sample id column '{sample_id_column}' not in {path}; "
            f"available: {columns}"
        )

    # Ids like "01005" must not be parsed as numbers
    table = pd.read_csv(path, sep=sep, dtype={sample_id_column: str})

    ids = table[sample_id_column].astype(str)
    table = table.drop(columns=[sample_id_column])
    table.index = pd.Index(ids, name="sample_id")

    if table.index.duplicated().any():
        n_dup = int(table.index.duplicated().sum())
        warnings.warn(
            f"Found {n_dup} duplicate sample ids in {path.name}. Using first occurrence of each.",
            UserWarning,
        )
        table = table[~table.index.duplicated(keep='first')]

    wanted = [str(s) for s in sample_ids]
    missing = [s for s in wanted if s not in table.index]
    if missing:
        raise ValueError(
            f"{len(missing)} samples have no row in {path.name}: "
            f"{missing[:5]}{' ...' if len(missing) > 5 else ''}"
        )

    extra = len(table.index.difference(wanted))
    if extra:
        logger.info(f"Ignoring {extra} phenotype rows without expression data")

    aligned = table.loc[wanted]
    aligned.index = pd.Index(sample_ids)
    return aligned


def load_expression_set(
    path: Path,
    sample_metadata: Union[Path, pd.DataFrame, None] = None,
    annotation: Optional[str] = None,
    sample_id_column: Optional[str] = None,
) -> ExpressionSet:
    """
    Load an expression table (features × samples) into an ExpressionSet.

    Args:
        path: CSV/TSV file; delimiter is sniffed.
        sample_metadata: Phenotype table path, or a DataFrame indexed by
            sample id (aligned the same way).
        annotation: Annotation tag recorded on the set (e.g. "hgu95av2").
        sample_id_column: Sample id column of the phenotype file.

    Returns:
        ExpressionSet.

    Raises:
        FileNotFoundError: If a file does not exist
        EmptyInputError: If the table has no features or no samples
        ValueError: If the table holds non-numeric or infinite values
    """
    path = _check_file(path, "Expression")
    sep = sniff_delimiter(path)

    try:
        # Feature ids like "00123" or "1.10" must stay text
        df = pd.read_csv(path, sep=sep, index_col=0, converters={0: str})
    except pd.errors.EmptyDataError as e:
        raise EmptyInputError(f"Expression file is empty: {path}") from e

    if df.shape[0] == 0:
        raise EmptyInputError(f"Expression file contains no features (rows): {path}")
    if df.shape[1] == 0:
        raise EmptyInputError(f"Expression file contains no samples (columns): {path}")

    df.index = pd.Index([str(i) for i in df.index])

    if df.index.duplicated().any():
        warnings.warn(
            f"Found {int(df.index.duplicated().sum())} duplicate feature ids; "
            "they are kept and made unique when labelled.",
            UserWarning,
        )
    # pandas mangles repeated headers ("S1" -> "S1.1"); restore the raw ids
    header = pd.read_csv(path, sep=sep, header=None, nrows=1, dtype=str).iloc[0, 1:]
    if len(header) == df.shape[1]:
        df.columns = pd.Index([str(s) for s in header])
    if df.columns.duplicated().any():
        warnings.warn(
            f"Found {int(df.columns.duplicated().sum())} duplicate sample ids.",
            UserWarning,
        )

    try:
        data = df.to_numpy(dtype=float)
    except (ValueError, TypeError) as e:
        examples = _non_numeric_examples(df)
        raise ValueError(
            f"Expression file {path.name} contains non-numeric values:\n"
            + "\n".join(f"  - {x}" for x in examples)
            + ("\n  ..." if len(examples) >= 5 else "")
        ) from e

    if np.isnan(data).any():
        n_nan = int(np.isnan(data).sum())
        warnings.warn(
            f"Found {n_nan:,} NaN values ({100 * n_nan / data.size:.2f}% of data).",
            UserWarning,
        )
    if np.isinf(data).any():
        raise ValueError(
            f"Expression file contains {int(np.isinf(data).sum())} infinite values."
        )

    metadata = None
    if isinstance(sample_metadata, pd.DataFrame):
        metadata = sample_metadata.copy()
        metadata.index = metadata.index.astype(str)
        missing = [s for s in df.columns if s not in metadata.index]
        if missing:
            raise ValueError(f"{len(missing)} samples have no metadata row: {missing[:5]}")
        metadata = metadata.loc[list(df.columns)]
    elif sample_metadata is not None:
        metadata = load_sample_metadata(sample_metadata, df.columns, sample_id_column)

    eset = ExpressionSet(
        data=data,
        feature_ids=df.index,
        sample_ids=df.columns,
        sample_metadata=metadata,
        annotation=annotation,
    )
    logger.info(f"Loaded {eset.n_features} features × {eset.n_samples} samples from {path}")
    return eset
