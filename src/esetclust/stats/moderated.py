"""
Linear models with empirical Bayes moderated statistics (limma-style).

For each feature g the model y_g = X β_g + ε is fitted by ordinary least
squares. With few samples per group the residual variances s²_g are noisy,
so they are shrunk toward a common prior fitted across all features:

    s²_post,g = (d₀ s₀² + d s²_g) / (d₀ + d)

Moderated statistics use s²_post and d₀ + d degrees of freedom:

    t_gj = β_gj / sqrt(s²_post,g · V_jj)                      (one coefficient)
    F_g  = β_gC' (V_CC)⁻¹ β_gC / (q · s²_post,g)              (q coefficients)

where V = (X'X)⁻¹. The F-statistic over all factor coefficients tests
whether a feature differs between any of the groups.

References:
    - Smyth (2004) "Linear models and empirical Bayes methods for assessing
      differential expression in microarray experiments"
    - Ritchie et al. (2015) Nucleic Acids Research 43(7):e47 (limma)

Examples:
    >>> design = build_design_matrix(eset.sample_metadata, factor="mol.biol")
    >>> fit = ebayes(lm_fit(eset, design))
    >>> top_table(fit, n=20)            # moderated F over all factor levels
    >>> top_table(fit, coef="mol.biol_NEG", n=20)   # one coefficient
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Optional, Sequence, Union

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from scipy import stats as scipy_stats
from scipy.special import digamma, polygamma

from esetclust.core.expression_set import ExpressionSet
from esetclust.stats.design_matrix import DesignMatrix

logger = logging.getLogger(__name__)

__all__ = [
    'LinearModelFit',
    'ModeratedFit',
    'trigamma_inverse',
    'fit_f_dist',
    'squeeze_var',
    'lm_fit',
    'ebayes',
    'fdr_correction',
    'top_table',
]

CoefSelector = Union[str, int, Sequence[Union[str, int]]]


# =============================================================================
# Empirical Bayes hyperparameters
# =============================================================================

def trigamma_inverse(x: float, tol: float = 1e-8, max_iter: int = 50) -> float:
    """
    Inverse of the trigamma function by Newton's method.

    Solves trigamma(y) = x, starting from y = 0.5 + 1/x.

    Args:
        x: Target trigamma value (must be positive)
        tol: Relative convergence tolerance
        max_iter: Maximum Newton iterations

    Returns:
        y such that trigamma(y) ≈ x (inf for non-positive x)
    """
    if x <= 0:
        return np.inf

    if x > 1e7:
        return 1.0 / np.sqrt(x)
    elif x < 1e-6:
        return 1.0 / x

    y = 0.5 + 1.0 / x

    for _ in range(max_iter):
        tri = polygamma(1, y)
        tri_deriv = polygamma(2, y)

        if abs(tri_deriv) < 1e-15:
            break
        delta = (tri - x) / tri_deriv
        y_new = y - delta

        # Keep y positive
        if y_new <= 0:
            y = y / 2.0
        else:
            y = y_new

        if abs(delta) < tol * abs(y):
            break

    return max(float(y), 1e-10)


def fit_f_dist(
    sigma2: NDArray[np.float64],
    df: float,
) -> tuple[float, float]:
    """
    Estimate the prior d₀ and s₀² by the method of moments (limma fitFDist).

    Assumes s²_g ~ s₀² · F(d, d₀). On the log scale:
        1. e = log(s²) - digamma(d/2) + log(d/2)
        2. evar = var(e) - trigamma(d/2)
        3. d₀ = 2 · trigamma⁻¹(evar)
        4. s₀² = exp(mean(e) + digamma(d₀/2) - log(d₀/2))

    Args:
        sigma2: Residual variances (n_features,)
        df: Residual degrees of freedom

    Returns:
        (d0, s0_sq). d0 is inf when the variances are no more dispersed
        than sampling alone explains (complete shrinkage).
    """
    valid_mask = (sigma2 > 0) & np.isfinite(sigma2)
    sigma2_valid = sigma2[valid_mask]

    if len(sigma2_valid) < 3:
        return np.inf, float(np.median(sigma2_valid)) if len(sigma2_valid) > 0 else 1.0

    df_half = df / 2.0
    e = np.log(sigma2_valid) - digamma(df_half) + np.log(df_half)

    emean = np.mean(e)
    evar = np.var(e, ddof=1) - polygamma(1, df_half)

    if evar <= 0:
        return np.inf, float(np.exp(emean))

    d0 = 2.0 * trigamma_inverse(evar)
    if d0 > 1e10:
        return np.inf, float(np.exp(emean))

    s0_sq = np.exp(emean + digamma(d0 / 2.0) - np.log(d0 / 2.0))
    return float(d0), float(s0_sq)


def squeeze_var(
    sigma2: NDArray[np.float64],
    df: float,
    d0: float,
    s0_sq: float,
) -> tuple[NDArray[np.float64], float]:
    """
    Shrink variances toward the prior (limma squeezeVar).

        s²_post = (d₀ s₀² + d s²) / (d₀ + d)

    Returns:
        (s2_post, df_total). With d0 = inf every feature gets s0_sq and
        df_total is inf.
    """
    if np.isinf(d0):
        return np.full_like(sigma2, s0_sq, dtype=np.float64), np.inf
    s2_post = (d0 * s0_sq + df * sigma2) / (d0 + df)
    return s2_post, float(d0 + df)


# =============================================================================
# Model fit
# =============================================================================

@dataclass
class LinearModelFit:
    """Per-feature OLS fit.

    Attributes:
        feature_ids: Feature identifiers (n_features,)
        coefficients: β (n_features, n_params)
        cov_unscaled: (X'X)⁻¹ (n_params, n_params), shared by all features
        sigma2: Residual variances (n_features,)
        df_residual: n_samples - n_params
        ave_expr: Mean expression per feature over the fitted samples
        design: Design used
    """
    feature_ids: pd.Index
    coefficients: NDArray[np.float64]
    cov_unscaled: NDArray[np.float64]
    sigma2: NDArray[np.float64]
    df_residual: int
    ave_expr: NDArray[np.float64]
    design: DesignMatrix

    @property
    def coef_names(self) -> list[str]:
        return self.design.col_names

    @property
    def stdev_unscaled(self) -> NDArray[np.float64]:
        return np.sqrt(np.diag(self.cov_unscaled))

    def coefficients_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.coefficients, index=self.feature_ids, columns=self.coef_names)


@dataclass
class ModeratedFit:
    """LinearModelFit plus empirical Bayes moderated statistics.

    Attributes:
        fit: The underlying LinearModelFit
        d0: Prior degrees of freedom (inf = complete shrinkage)
        s0_sq: Prior variance
        s2_post: Posterior variances (n_features,)
        df_total: d0 + df_residual
        t: Moderated t-statistics (n_features, n_params)
        p_value: Two-sided p-values for t (n_features, n_params)
    """
    fit: LinearModelFit
    d0: float
    s0_sq: float
    s2_post: NDArray[np.float64]
    df_total: float
    t: NDArray[np.float64]
    p_value: NDArray[np.float64]

    @property
    def feature_ids(self) -> pd.Index:
        return self.fit.feature_ids

    @property
    def coef_names(self) -> list[str]:
        return self.fit.coef_names

    def coef_indices(self, coef: Optional[CoefSelector]) -> list[int]:
        """Resolve coefficient names/positions; None means all factor coefficients."""
        if coef is None:
            return list(self.fit.design.factor_cols)
        if isinstance(coef, (str, int, np.integer)):
            coef = [coef]
        indices = []
        for c in coef:
            if isinstance(c, (int, np.integer)):
                if not 0 <= c < len(self.coef_names):
                    raise IndexError(f"Coefficient position {c} out of range")
                indices.append(int(c))
            elif c in self.coef_names:
                indices.append(self.coef_names.index(c))
            else:
                raise KeyError(f"Unknown coefficient '{c}'. Available: {self.coef_names}")
        return indices

    def f_test(self, coef: Optional[CoefSelector] = None) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """
        Moderated F-statistic over several coefficients.

        Returns:
            (F, p_value), each (n_features,)
        """
        idx = self.coef_indices(coef)
        q = len(idx)
        beta = self.fit.coefficients[:, idx]
        cov_inv = np.linalg.inv(self.fit.cov_unscaled[np.ix_(idx, idx)])
        quad = np.einsum('ij,jk,ik->i', beta, cov_inv, beta)
        f_stat = quad / (q * self.s2_post)

        if np.isinf(self.df_total):
            p_value = scipy_stats.chi2.sf(q * f_stat, q)
        else:
            p_value = scipy_stats.f.sf(f_stat, q, self.df_total)
        return f_stat, p_value


def lm_fit(
    data: ExpressionSet | NDArray[np.float64],
    design: DesignMatrix,
    feature_ids: Optional[Sequence] = None,
) -> LinearModelFit:
    """
    Fit the design to every feature at once.

    Args:
        data: ExpressionSet or array (n_features, n_samples) over the
            original samples; ``design.sample_mask`` selects the columns used.
        design: Design from build_design_matrix.
        feature_ids: Identifiers when ``data`` is an array.

    Returns:
        LinearModelFit.

    Raises:
        ValueError: If sample counts disagree or the data contain NaN.
    """
    if isinstance(data, ExpressionSet):
        feature_ids = data.feature_ids
        values = data.data
    else:
        values = np.asarray(data, dtype=float)
        if feature_ids is None:
            feature_ids = [f"feature_{i}" for i in range(values.shape[0])]

    if values.ndim != 2:
        raise ValueError(f"data must be 2D, got shape {values.shape}")
    if values.shape[1] != len(design.sample_mask):
        raise ValueError(
            f"data has {values.shape[1]} samples but design was built for "
            f"{len(design.sample_mask)}"
        )

    Y = values[:, design.sample_mask]
    if np.isnan(Y).any():
        raise ValueError(
            f"{int(np.isnan(Y).any(axis=1).sum())} features contain NaN; "
            "filter or impute before fitting"
        )

    X = design.X
    XtX_inv = np.linalg.inv(X.T @ X)
    beta = Y @ X @ XtX_inv.T
    residuals = Y - beta @ X.T
    df_residual = design.df_residual
    sigma2 = np.sum(residuals ** 2, axis=1) / df_residual

    logger.debug(
        f"Fitted {Y.shape[0]} features on {Y.shape[1]} samples, "
        f"{X.shape[1]} parameters, residual df {df_residual}"
    )

    return LinearModelFit(
        feature_ids=pd.Index(feature_ids),
        coefficients=beta,
        cov_unscaled=XtX_inv,
        sigma2=sigma2,
        df_residual=df_residual,
        ave_expr=Y.mean(axis=1),
        design=design,
    )


def ebayes(fit: LinearModelFit, moderate: bool = True) -> ModeratedFit:
    """
    Empirical Bayes moderation of a linear model fit.

    Args:
        fit: LinearModelFit from lm_fit.
        moderate: If False, ordinary t-statistics on the residual variances
            (d0 = 0).

    Returns:
        ModeratedFit with moderated t per coefficient.
    """
    df = fit.df_residual
    if moderate:
        d0, s0_sq = fit_f_dist(fit.sigma2, df)
        s2_post, df_total = squeeze_var(fit.sigma2, df, d0, s0_sq)
        if np.isinf(d0):
            logger.info(f"EB priors: d0=Inf (complete shrinkage), s0²={s0_sq:.6g}")
        else:
            logger.info(
                f"EB priors: d0={d0:.2f}, s0²={s0_sq:.6g}; "
                f"{100 * d0 / (d0 + df):.1f}% prior weight"
            )
    else:
        d0, s0_sq = 0.0, np.nan
        s2_post, df_total = fit.sigma2.copy(), float(df)

    se = np.sqrt(np.outer(s2_post, np.diag(fit.cov_unscaled)))
    se = np.maximum(se, 1e-300)
    t_stat = fit.coefficients / se

    if np.isinf(df_total):
        p_value = 2 * scipy_stats.norm.sf(np.abs(t_stat))
    else:
        p_value = 2 * scipy_stats.t.sf(np.abs(t_stat), df_total)

    return ModeratedFit(
        fit=fit,
        d0=d0,
        s0_sq=s0_sq,
        s2_post=s2_post,
        df_total=df_total,
        t=t_stat,
        p_value=p_value,
    )


# =============================================================================
# Reporting
# =============================================================================

def fdr_correction(
    pvalues: NDArray[np.float64],
    method: Literal["BH", "BY", "bonferroni", "none"] = "BH",
) -> NDArray[np.float64]:
    """
    Multiple testing correction.

    Args:
        pvalues: Raw p-values (NaN allowed, passed through).
        method: "BH" / "BY" (FDR), "bonferroni" (FWER), or "none".

    Returns:
        Adjusted p-values.
    """
    from statsmodels.stats.multitest import multipletests

    pvalues = np.asarray(pvalues, dtype=float)
    if method == "none":
        return pvalues.copy()

    method_map = {"BH": "fdr_bh", "BY": "fdr_by", "bonferroni": "bonferroni"}
    if method not in method_map:
        raise ValueError(f"Unknown adjustment method '{method}'. Choose from: BH, BY, bonferroni, none")

    valid_mask = ~np.isnan(pvalues)
    adj = np.full_like(pvalues, np.nan)
    if not np.any(valid_mask):
        return adj

    _, adj[valid_mask], _, _ = multipletests(pvalues[valid_mask], method=method_map[method])
    return adj


def top_table(
    mfit: ModeratedFit,
    coef: Optional[CoefSelector] = None,
    n: Optional[int] = 10,
    adjust: Literal["BH", "BY", "bonferroni", "none"] = "BH",
    p_threshold: float = 1.0,
) -> pd.DataFrame:
    """
    Rank features by evidence of differential expression.

    One coefficient: columns log_fc, ave_expr, t, p_value, adj_p_value.
    Several coefficients (default: all factor coefficients): one estimate
    column per coefficient, then ave_expr, F, p_value, adj_p_value.

    Args:
        mfit: ModeratedFit from ebayes.
        coef: Coefficient name/position or a list of them.
        n: Number of rows to return; None for all.
        adjust: Multiple testing correction (over all features).
        p_threshold: Keep rows with adjusted p-value <= threshold.

    Returns:
        DataFrame indexed by feature id, sorted by p-value.
    """
    idx = mfit.coef_indices(coef)
    feature_ids = mfit.feature_ids

    if len(idx) == 1:
        j = idx[0]
        table = pd.DataFrame({
            'log_fc': mfit.fit.coefficients[:, j],
            'ave_expr': mfit.fit.ave_expr,
            't': mfit.t[:, j],
            'p_value': mfit.p_value[:, j],
        }, index=feature_ids)
        tie_break = table['t'].abs()
    else:
        f_stat, p_value = mfit.f_test(idx)
        table = pd.DataFrame(
            mfit.fit.coefficients[:, idx],
            columns=[mfit.coef_names[j] for j in idx],
            index=feature_ids,
        )
        table['ave_expr'] = mfit.fit.ave_expr
        table['F'] = f_stat
        table['p_value'] = p_value
        tie_break = table['F']

    table['adj_p_value'] = fdr_correction(table['p_value'].values, method=adjust)
    table.index.name = 'feature_id'

    # Sort by p-value; ties (e.g. underflow to 0) broken by statistic size
    order = np.lexsort((-tie_break.values, table['p_value'].values))
    table = table.iloc[order]

    if p_threshold < 1.0:
        table = table[table['adj_p_value'] <= p_threshold]
    if n is not None:
        table = table.head(n)
    return table
