"""
Tabular capability contract accepted by the matrix adapter.

Anything with a numeric 2-D array plus row and column labels can be handed to
the adapter. ``ExpressionSet`` satisfies the contract natively (features are
rows); ``as_tabular_source`` wraps a ``pd.DataFrame`` or any object exposing
the three attributes.

Examples:
    >>> import pandas as pd
    >>> df = pd.DataFrame([[1.0, 2.0], [3.0, 4.0]],
    ...                   index=["g1", "g2"], columns=["s1", "s2"])
    >>> source = as_tabular_source(df)
    >>> list(source.row_labels)
    ['g1', 'g2']
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import numpy as np
import pandas as pd

from esetclust.errors import ShapeMismatchError

__all__ = ['TabularSource', 'FrameSource', 'as_tabular_source']


@runtime_checkable
class TabularSource(Protocol):
    """Anything with a numeric array, row labels and column labels."""

    @property
    def numeric_array(self) -> np.ndarray: ...

    @property
    def row_labels(self) -> pd.Index: ...

    @property
    def col_labels(self) -> pd.Index: ...


@dataclass(frozen=True)
class FrameSource:
    """``TabularSource`` view over a labelled DataFrame."""

    frame: pd.DataFrame

    @property
    def numeric_array(self) -> np.ndarray:
        return self.frame.to_numpy(dtype=float)

    @property
    def row_labels(self) -> pd.Index:
        return self.frame.index

    @property
    def col_labels(self) -> pd.Index:
        return self.frame.columns


@dataclass(frozen=True)
class _AttributeSource:
    numeric_array: np.ndarray
    row_labels: pd.Index
    col_labels: pd.Index


def as_tabular_source(obj: object) -> TabularSource:
    """
    Coerce ``obj`` into a ``TabularSource``.

    Accepts objects already satisfying the protocol, DataFrames, and objects
    with ``numeric_array``/``row_labels``/``col_labels`` attributes.

    Raises:
        TypeError: If ``obj`` exposes none of the supported shapes.
        ShapeMismatchError: If the array is not 2-D.
    """
    if isinstance(obj, pd.DataFrame):
        return FrameSource(obj)
    if isinstance(obj, TabularSource):
        array = np.asarray(obj.numeric_array)
        if array.ndim != 2:
            raise ShapeMismatchError(f"numeric_array must be 2D, got shape {array.shape}")
        return _AttributeSource(
            numeric_array=array,
            row_labels=pd.Index(obj.row_labels),
            col_labels=pd.Index(obj.col_labels),
        )
    raise TypeError(
        f"Expected ExpressionSet, DataFrame or an object with numeric_array, "
        f"row_labels and col_labels; got {type(obj).__name__}"
    )
