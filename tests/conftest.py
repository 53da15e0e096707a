"""
Pytest configuration and shared fixtures.

This module provides synthetic expression-set generators shared by all
test suites. Figures are drawn with the non-interactive Agg backend.
"""

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest

from esetclust.core.expression_set import ExpressionSet


def generate_grouped_expression_set(
    n_features: int = 200,
    group_sizes: tuple = (8, 8, 8),
    n_differential: int = 20,
    effect: float = 3.0,
    seed: int = 42,
) -> ExpressionSet:
    """
    Generate a log-scale expression set with group structure.

    Args:
        n_features: Number of probes
        group_sizes: Samples per group; groups are named G1, G2, ...
        n_differential: Leading probes shifted by ``effect`` per group index
        effect: Mean shift between consecutive groups for differential probes
        seed: Random seed for reproducibility

    Returns:
        ExpressionSet with probe ids "p0000_at", ..., sample ids "S01", ...,
        and sample_metadata columns "group" and "batch".
    """
    rng = np.random.RandomState(seed)
    n_samples = sum(group_sizes)

    groups = np.concatenate([
        np.full(size, f"G{i + 1}") for i, size in enumerate(group_sizes)
    ])
    group_index = np.concatenate([
        np.full(size, i) for i, size in enumerate(group_sizes)
    ])

    baseline = rng.uniform(4, 10, size=(n_features, 1))
    scale = rng.uniform(0.2, 0.6, size=(n_features, 1))
    data = baseline + scale * rng.randn(n_features, n_samples)
    data[:n_differential] += effect * group_index[np.newaxis, :]

    metadata = pd.DataFrame({
        "group": groups,
        "batch": np.where(np.arange(n_samples) % 2 == 0, "b1", "b2"),
    })

    return ExpressionSet(
        data=data,
        feature_ids=[f"p{i:04d}_at" for i in range(n_features)],
        sample_ids=[f"S{i + 1:02d}" for i in range(n_samples)],
        sample_metadata=metadata,
    )


@pytest.fixture
def grouped_eset():
    """Three groups of eight samples, 20 differential probes out of 200."""
    return generate_grouped_expression_set()


@pytest.fixture
def make_eset():
    """Factory fixture for custom grouped expression sets."""
    return generate_grouped_expression_set


@pytest.fixture
def small_eset():
    """The 3 features × 4 samples example with a duplicated sample id."""
    return ExpressionSet(
        data=np.arange(12, dtype=float).reshape(3, 4),
        feature_ids=["g1", "g2", "g3"],
        sample_ids=["A", "A", "B", "C"],
        sample_metadata=pd.DataFrame({"group": ["x", "x", "y", "y"]}),
    )


@pytest.fixture
def expression_csv(tmp_path, grouped_eset):
    """Write the grouped set as R-style CSVs; returns (data_path, pheno_path)."""
    data_path = tmp_path / "expr.csv"
    frame = grouped_eset.to_frame()
    frame.index.name = ""
    frame.to_csv(data_path)

    pheno_path = tmp_path / "pheno.csv"
    pheno = grouped_eset.sample_metadata.copy()
    pheno.insert(0, "sample", [str(s) for s in grouped_eset.sample_ids])
    pheno.to_csv(pheno_path, index=False)
    return data_path, pheno_path


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")
