"""
Core data structure for annotated expression matrices.

ExpressionSet couples a numeric measurement matrix with its identifiers and
annotations: which feature (probe, gene) each row is, which sample each
column is, what is known about each sample (phenotype, batch), and which
annotation source the feature ids belong to.

Biological Context:
    Microarray and RNA-seq data arrive as features x samples:
    - Rows = features (probes such as "1007_s_at", genes, transcripts)
    - Columns = samples (patients, cell lines)
    - Values = log-scale intensities or normalized counts

    Analyses move back and forth between the two orientations: linear
    models treat every feature as a response over samples, while clustering
    and classification treat every sample as an observation described by
    features. Keeping the matrix and its annotations together makes every
    subset carry its phenotype table along.

Engineering Design:
    - Immutable: properties only, operations return new instances
    - Validated: constructor checks shape consistency
    - Numpy for the data, pandas for identifiers and metadata
    - Identifiers are stored as given; uniqueness is established by
      esetclust.core.labels wherever ids become structural labels

Examples:
    >>> import numpy as np
    >>> import pandas as pd
    >>> from esetclust.core.expression_set import ExpressionSet
    >>>
    >>> eset = ExpressionSet(
    ...     data=np.array([[7.1, 5.2, 6.0], [3.3, 4.4, 3.9]]),
    ...     feature_ids=pd.Index(["1000_at", "1001_at"]),
    ...     sample_ids=pd.Index(["01005", "01010", "03002"]),
    ...     sample_metadata=pd.DataFrame({"mol.biol": ["BCR/ABL", "NEG", "NEG"]}),
    ...     annotation="hgu95av2",
    ... )
    >>> neg = eset.select_samples(eset.sample_metadata["mol.biol"] == "NEG")
    >>> neg.shape
    (2, 2)
"""

from __future__ import annotations

from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd

from esetclust.errors import ShapeMismatchError

__all__ = ['ExpressionSet', 'Selector', 'resolve_selector']

Selector = Union[np.ndarray, pd.Series, pd.Index, Sequence]


def resolve_selector(selector: Selector, index: pd.Index, axis_name: str) -> np.ndarray:
    """
    Translate a selector into integer positions along one axis.

    Supported selectors:
        - boolean mask (array, list or Series) of the axis length
        - integer positions (order respected, negative positions allowed)
        - labels present in ``index`` (order respected; a label repeated in
          ``index`` selects every matching position)

    Args:
        selector: Mask, positions or labels.
        index: Identifiers of the axis being selected.
        axis_name: "features" or "samples", used in error messages.

    Returns:
        Integer position array.

    Raises:
        ValueError: If a boolean mask has the wrong length.
        IndexError: If an integer position is out of range.
        KeyError: If a label is not present.
    """
    if isinstance(selector, pd.Series):
        selector = selector.values
    values = np.asarray(list(selector) if not isinstance(selector, np.ndarray) else selector)
    n = len(index)

    if values.dtype == bool:
        if len(values) != n:
            raise ValueError(
                f"mask length ({len(values)}) must match n_{axis_name} ({n})"
            )
        return np.flatnonzero(values)

    if values.size == 0:
        return np.array([], dtype=int)

    if np.issubdtype(values.dtype, np.integer):
        out_of_range = (values >= n) | (values < -n)
        if out_of_range.any():
            raise IndexError(
                f"{axis_name} positions out of range for length {n}: "
                f"{values[out_of_range].tolist()[:5]}"
            )
        return np.where(values < 0, values + n, values).astype(int)

    wanted = pd.Index(values)
    missing = wanted[~wanted.isin(index)]
    if len(missing) > 0:
        raise KeyError(f"Unknown {axis_name}: {missing.tolist()[:5]}")
    if index.is_unique:
        return index.get_indexer(wanted)
    return index.get_indexer_for(wanted)


class ExpressionSet:
    """
    Immutable container for an expression matrix plus its annotations.

    Attributes:
        data: Numeric matrix (features × samples)
        feature_ids: Row identifiers (probe ids, gene symbols)
        sample_ids: Column identifiers (sample/patient ids)
        sample_metadata: Phenotype table, one row per sample
        feature_metadata: Feature annotation table, one row per feature
        annotation: Tag naming the annotation source (e.g. "hgu95av2")

    Shape Invariants:
        - data.ndim == 2
        - data.shape[0] == len(feature_ids)
        - data.shape[1] == len(sample_ids)
        - sample_metadata has one row per sample, indexed by sample_ids
        - feature_metadata has one row per feature, indexed by feature_ids
    """

    def __init__(
        self,
        data: np.ndarray,
        feature_ids: Sequence | pd.Index,
        sample_ids: Sequence | pd.Index,
        sample_metadata: Optional[pd.DataFrame] = None,
        annotation: Optional[str] = None,
        feature_metadata: Optional[pd.DataFrame] = None,
    ):
        """
        Initialize ExpressionSet with validation.

        Args:
            data: Numeric matrix (features × samples)
            feature_ids: Row identifiers
            sample_ids: Column identifiers
            sample_metadata: Optional per-sample table. Rows are aligned by
                position and re-indexed by sample_ids.
            annotation: Optional annotation source tag
            feature_metadata: Optional per-feature table, aligned by position

        Raises:
            ShapeMismatchError: If dimensions are inconsistent
            TypeError: If data is not array-like or metadata is not a DataFrame
        """
        data = np.asarray(data)
        if not (np.issubdtype(data.dtype, np.number) or data.dtype == bool):
            raise TypeError(f"data must be numeric, got dtype {data.dtype}")
        data = data.astype(float, copy=False)

        if data.ndim != 2:
            raise ShapeMismatchError(f"data must be 2D, got shape {data.shape}")

        feature_ids = pd.Index(feature_ids)
        sample_ids = pd.Index(sample_ids)
        n_features, n_samples = data.shape

        if len(feature_ids) != n_features:
            raise ShapeMismatchError(
                f"feature_ids length ({len(feature_ids)}) must match data rows ({n_features})"
            )
        if len(sample_ids) != n_samples:
            raise ShapeMismatchError(
                f"sample_ids length ({len(sample_ids)}) must match data columns ({n_samples})"
            )

        sample_metadata = self._align_metadata(sample_metadata, sample_ids, "sample")
        feature_metadata = self._align_metadata(feature_metadata, feature_ids, "feature")

        self._data = data
        self._feature_ids = feature_ids
        self._sample_ids = sample_ids
        self._sample_metadata = sample_metadata
        self._feature_metadata = feature_metadata
        self._annotation = annotation

    @staticmethod
    def _align_metadata(
        metadata: Optional[pd.DataFrame],
        ids: pd.Index,
        kind: str,
    ) -> pd.DataFrame:
        if metadata is None:
            return pd.DataFrame(index=ids)
        if not isinstance(metadata, pd.DataFrame):
            raise TypeError(f"{kind}_metadata must be pd.DataFrame, got {type(metadata)}")
        if len(metadata) != len(ids):
            raise ShapeMismatchError(
                f"{kind}_metadata has {len(metadata)} rows for {len(ids)} {kind}s"
            )
        aligned = metadata.copy()
        aligned.index = ids
        return aligned

    @property
    def data(self) -> np.ndarray:
        """Numeric matrix (features × samples)."""
        return self._data

    @property
    def feature_ids(self) -> pd.Index:
        """Row identifiers."""
        return self._feature_ids

    @property
    def sample_ids(self) -> pd.Index:
        """Column identifiers."""
        return self._sample_ids

    @property
    def sample_metadata(self) -> pd.DataFrame:
        """Phenotype table indexed by sample_ids."""
        return self._sample_metadata

    @property
    def feature_metadata(self) -> pd.DataFrame:
        """Feature annotation table indexed by feature_ids."""
        return self._feature_metadata

    @property
    def annotation(self) -> Optional[str]:
        """Annotation source tag."""
        return self._annotation

    @property
    def shape(self) -> tuple[int, int]:
        """Matrix dimensions (n_features, n_samples)."""
        return self._data.shape

    @property
    def n_features(self) -> int:
        return self._data.shape[0]

    @property
    def n_samples(self) -> int:
        return self._data.shape[1]

    # TabularSource capability (native orientation: features are rows)

    @property
    def numeric_array(self) -> np.ndarray:
        return self._data

    @property
    def row_labels(self) -> pd.Index:
        return self._feature_ids

    @property
    def col_labels(self) -> pd.Index:
        return self._sample_ids

    def _replace(self, **changes) -> ExpressionSet:
        fields = dict(
            data=self._data,
            feature_ids=self._feature_ids,
            sample_ids=self._sample_ids,
            sample_metadata=self._sample_metadata,
            annotation=self._annotation,
            feature_metadata=self._feature_metadata,
        )
        fields.update(changes)
        return ExpressionSet(**fields)

    def select_samples(self, selector: Selector) -> ExpressionSet:
        """
        Subset by samples (columns).

        Args:
            selector: Boolean mask, integer positions or sample labels.
                If Series, uses values and ignores index.

        Returns:
            New ExpressionSet with selected samples, metadata subset alongside.

        Examples:
            >>> neg = eset.select_samples(eset.sample_metadata["mol.biol"] == "NEG")
            >>> first_ten = eset.select_samples(range(10))
            >>> named = eset.select_samples(["01005", "03002"])
        """
        positions = resolve_selector(selector, self._sample_ids, "samples")
        return self._replace(
            data=self._data[:, positions],
            sample_ids=self._sample_ids[positions],
            sample_metadata=self._sample_metadata.iloc[positions],
        )

    def select_features(self, selector: Selector) -> ExpressionSet:
        """
        Subset by features (rows).

        Args:
            selector: Boolean mask, integer positions or feature labels.

        Returns:
            New ExpressionSet with selected features.

        Examples:
            >>> variances = eset.data.var(axis=1)
            >>> top = eset.select_features(np.argsort(variances)[::-1][:100])
        """
        positions = resolve_selector(selector, self._feature_ids, "features")
        return self._replace(
            data=self._data[positions, :],
            feature_ids=self._feature_ids[positions],
            feature_metadata=self._feature_metadata.iloc[positions],
        )

    def subset(
        self,
        features: Optional[Selector] = None,
        samples: Optional[Selector] = None,
    ) -> ExpressionSet:
        """Subset features and samples in one call; None keeps the axis whole."""
        result = self
        if features is not None:
            result = result.select_features(features)
        if samples is not None:
            result = result.select_samples(samples)
        return result

    def with_feature_ids(
        self,
        feature_ids: Sequence | pd.Index,
        keep_original_as: Optional[str] = None,
        annotation: Optional[str] = None,
    ) -> ExpressionSet:
        """
        Relabel features.

        Args:
            feature_ids: New identifiers, one per feature
            keep_original_as: If given, store current ids in this
                feature_metadata column
            annotation: New annotation tag (keeps current tag if None)
        """
        feature_metadata = self._feature_metadata.copy()
        if keep_original_as is not None:
            feature_metadata[keep_original_as] = list(self._feature_ids)
        return self._replace(
            feature_ids=pd.Index(feature_ids),
            feature_metadata=feature_metadata,
            annotation=annotation if annotation is not None else self._annotation,
        )

    def with_sample_metadata(self, sample_metadata: pd.DataFrame) -> ExpressionSet:
        """Replace the phenotype table (rows aligned by position)."""
        return self._replace(sample_metadata=sample_metadata)

    def to_frame(self) -> pd.DataFrame:
        """Features × samples DataFrame with raw identifiers."""
        return pd.DataFrame(self._data, index=self._feature_ids, columns=self._sample_ids)

    def transpose(self) -> pd.DataFrame:
        """Samples × features DataFrame with raw identifiers."""
        return pd.DataFrame(self._data.T, index=self._sample_ids, columns=self._feature_ids)

    def copy(self, deep: bool = True) -> ExpressionSet:
        """
        Create a copy of this set.

        Args:
            deep: If True, copy arrays and tables. If False, share them.
        """
        if not deep:
            return self._replace()
        return ExpressionSet(
            data=self._data.copy(),
            feature_ids=self._feature_ids.copy(),
            sample_ids=self._sample_ids.copy(),
            sample_metadata=self._sample_metadata.copy(),
            annotation=self._annotation,
            feature_metadata=self._feature_metadata.copy(),
        )

    def __repr__(self) -> str:
        """String representation for debugging."""
        def _span(ids: pd.Index) -> str:
            if len(ids) == 0:
                return "(none)"
            return f"{ids[0]}...{ids[-1]}"

        return (
            f"ExpressionSet({self.n_features} features × {self.n_samples} samples)\n"
            f"  Features: {_span(self.feature_ids)}\n"
            f"  Samples: {_span(self.sample_ids)}\n"
            f"  Metadata columns: {list(self.sample_metadata.columns)}\n"
            f"  Annotation: {self.annotation}"
        )

    def __str__(self) -> str:
        return self.__repr__()
