"""
Design matrix construction from sample metadata.

Builds the design for a one-factor linear model with optional covariate
adjustment, the model fitted for every feature in differential analysis:

    X = [intercept | factor dummies (reference level dropped) | covariates]

With a factor of k levels, coefficients 1..k-1 are the differences between
each non-reference level and the reference. Testing those k-1 coefficients
jointly (moderated F) asks whether the feature differs between any of the
groups; covariate columns are nuisance parameters.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from numpy.typing import NDArray

__all__ = ['DesignMatrix', 'build_design_matrix']


@dataclass(frozen=True)
class DesignMatrix:
    """Design matrix for a one-factor (+ covariates) model.

    Attributes:
        X: Design matrix (n_valid_samples, n_params), full column rank.
        col_names: Column names; "const" for the intercept,
            "{factor}_{level}" for factor dummies.
        factor: Name of the grouping column.
        levels: Factor levels, reference first.
        factor_cols: Column indices of the factor dummies.
        covariate_cols: Column indices of the covariates.
        sample_mask: Boolean mask over the original samples; True for
            samples used (no missing factor or covariate value).
    """

    X: NDArray[np.float64]
    col_names: list[str]
    factor: str
    levels: list[str]
    factor_cols: list[int]
    covariate_cols: list[int]
    sample_mask: NDArray[np.bool_]

    @property
    def n_params(self) -> int:
        return self.X.shape[1]

    @property
    def n_samples(self) -> int:
        return self.X.shape[0]

    @property
    def df_residual(self) -> int:
        return self.n_samples - self.n_params

    @property
    def reference(self) -> str:
        return self.levels[0]

    def as_frame(self, sample_ids: Optional[Sequence] = None) -> pd.DataFrame:
        """Design as a DataFrame (rows = used samples)."""
        index = None
        if sample_ids is not None:
            index = pd.Index(sample_ids)[self.sample_mask]
        return pd.DataFrame(self.X, columns=self.col_names, index=index)


def build_design_matrix(
    sample_metadata: pd.DataFrame,
    factor: str,
    covariates: Optional[Sequence[str]] = None,
    reference: Optional[str] = None,
    levels: Optional[Sequence[str]] = None,
) -> DesignMatrix:
    """
    Build the design matrix ``~ factor [+ covariates]``.

    Categorical covariates are dummy coded (drop_first=True). Numeric
    covariates are standardized (zero mean, unit variance).

    Args:
        sample_metadata: Per-sample table.
        factor: Grouping column.
        covariates: Additional adjustment columns.
        reference: Reference level. Defaults to the first of ``levels``.
        levels: Level order. Defaults to categorical order if the column is
            categorical (unused categories removed), else sorted values.
            Samples whose factor value is not in an explicit ``levels`` are
            excluded from the design, with a warning.

    Returns:
        DesignMatrix.

    Raises:
        KeyError: If a column is missing.
        ValueError: Fewer than two levels, unknown reference, too few samples,
            or rank-deficient design.
    """
    import statsmodels.api as sm

    covariates = list(covariates or [])
    missing = [c for c in [factor, *covariates] if c not in sample_metadata.columns]
    if missing:
        raise KeyError(f"Sample metadata lacks columns: {missing}")

    groups = sample_metadata[factor]

    # --- Step 1: Levels ---
    if levels is None:
        if isinstance(groups.dtype, pd.CategoricalDtype):
            levels = [str(c) for c in groups.cat.remove_unused_categories().cat.categories]
        else:
            levels = sorted(str(v) for v in groups.dropna().unique())
    else:
        levels = [str(v) for v in levels]

    if reference is not None:
        if str(reference) not in levels:
            raise ValueError(f"Reference level '{reference}' not found in {levels}")
        levels = [str(reference)] + [lvl for lvl in levels if lvl != str(reference)]

    if len(levels) < 2:
        raise ValueError(f"Factor '{factor}' needs at least 2 levels, got {levels}")

    group_labels = groups.astype(object).map(lambda v: np.nan if pd.isna(v) else str(v))
    outside = group_labels.notna() & ~group_labels.isin(levels)
    if outside.any():
        warnings.warn(
            f"{int(outside.sum())} samples have a '{factor}' value outside levels "
            f"{levels} and are excluded from the design",
            UserWarning,
            stacklevel=2,
        )
    condition_cat = pd.Categorical(group_labels.where(~outside), categories=levels)

    # --- Step 2: Valid samples (no NaN in factor or covariates) ---
    valid_mask = ~pd.isna(condition_cat)
    if covariates:
        valid_mask = valid_mask & ~sample_metadata[covariates].isna().any(axis=1).values

    valid_indices = np.where(valid_mask)[0]
    n_valid = len(valid_indices)
    if n_valid < 3:
        raise ValueError(f"Insufficient valid samples after NaN removal: {n_valid}")

    # --- Step 3: Factor part ---
    cond_valid = pd.Series(condition_cat[valid_indices], name=factor)
    X_cond = pd.get_dummies(cond_valid, prefix=factor, drop_first=True, dtype=float)
    X_cond = sm.add_constant(X_cond, has_constant='add')
    col_names = [str(c) for c in X_cond.columns]
    parts = [X_cond.values.astype(np.float64)]
    factor_cols = list(range(1, len(col_names)))

    # --- Step 4: Covariates ---
    covariate_cols: list[int] = []
    for col in covariates:
        series = sample_metadata[col].iloc[valid_indices].reset_index(drop=True)
        if not pd.api.types.is_numeric_dtype(series):
            dummies = pd.get_dummies(series, prefix=col, drop_first=True, dtype=float)
            block = dummies.values
            names = [str(c) for c in dummies.columns]
        else:
            vals = series.values.astype(np.float64)
            sigma = np.std(vals, ddof=1)
            if sigma < 1e-10:
                raise ValueError(f"Covariate '{col}' has zero variance; cannot standardize")
            block = ((vals - vals.mean()) / sigma).reshape(-1, 1)
            names = [str(col)]
        start = sum(p.shape[1] for p in parts)
        covariate_cols.extend(range(start, start + block.shape[1]))
        col_names.extend(names)
        parts.append(block)

    X = np.hstack(parts)
    n_params = X.shape[1]

    # --- Step 5: Validate ---
    rank = np.linalg.matrix_rank(X)
    if rank < n_params:
        raise ValueError(
            f"Design matrix is rank-deficient: rank={rank}, n_params={n_params}. "
            f"Columns: {col_names}. A level may be empty or a covariate collinear "
            f"with the factor."
        )
    if n_valid - n_params < 1:
        raise ValueError(
            f"Insufficient residual df: {n_valid} samples - {n_params} params = "
            f"{n_valid - n_params}. Reduce covariates or increase sample size."
        )

    counts = pd.Series(condition_cat[valid_indices]).value_counts()
    if counts.min() > 0 and counts.max() / counts.min() > 3.0:
        warnings.warn(
            f"Group sizes for '{factor}' are highly imbalanced: {counts.to_dict()}",
            UserWarning,
            stacklevel=2,
        )

    return DesignMatrix(
        X=X,
        col_names=col_names,
        factor=factor,
        levels=levels,
        factor_cols=factor_cols,
        covariate_cols=covariate_cols,
        sample_mask=np.asarray(valid_mask, dtype=bool),
    )
