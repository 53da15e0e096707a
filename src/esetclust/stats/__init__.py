"""
Differential expression for expression sets.

- design_matrix: ``~ factor [+ covariates]`` designs from sample metadata
- moderated: per-feature OLS, empirical Bayes variance moderation,
  moderated t and F statistics, ranked top tables
"""

from esetclust.stats.design_matrix import DesignMatrix, build_design_matrix
from esetclust.stats.moderated import (
    LinearModelFit,
    ModeratedFit,
    ebayes,
    fdr_correction,
    fit_f_dist,
    lm_fit,
    squeeze_var,
    top_table,
)

__all__ = [
    'DesignMatrix',
    'build_design_matrix',
    'LinearModelFit',
    'ModeratedFit',
    'lm_fit',
    'ebayes',
    'top_table',
    'fit_f_dist',
    'squeeze_var',
    'fdr_correction',
]
