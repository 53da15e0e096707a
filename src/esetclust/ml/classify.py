"""
Random forest sanity check on expression features.

After ranking features by differential expression, a quick supervised check
asks whether those features actually separate the groups: train a random
forest on part of the samples and look at the confusion matrix on the rest.
A near-diagonal matrix on held-out samples says the selected features carry
the group signal; a noisy one says the ranking is fragile.

The samples × features matrix comes from the same tabular view the
clustering adapter builds, so features and samples are labelled identically
in both analyses.

Examples:
    >>> top = eset.select_features(table.index[:50])
    >>> result = random_forest_check(top, label="mol.biol", random_state=1234)
    >>> result.confusion
    truth \\ predicted   ALL1/AF4  BCR/ABL  NEG
    ALL1/AF4                   3        0    0
    ...
    >>> result.accuracy
    0.86
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import numpy as np
import pandas as pd

from esetclust.adapter import to_tabular_view
from esetclust.core.expression_set import ExpressionSet, Selector

logger = logging.getLogger(__name__)

__all__ = ['ClassificationResult', 'random_forest_check']


@dataclass
class ClassificationResult:
    """
    Outcome of a train/test random forest check.

    Attributes:
        model: Fitted sklearn RandomForestClassifier
        label: sample_metadata column that was predicted
        train_samples: Sample labels used for training
        test_samples: Sample labels held out
        predictions: Predicted class per test sample
        truth: True class per test sample
        confusion: Confusion matrix (rows = truth, columns = predicted)
        accuracy: Fraction of test samples classified correctly
        importances: Mean decrease in impurity per feature, descending
        oob_score: Out-of-bag accuracy on the training samples (if computed)
    """
    model: Any
    label: str
    train_samples: list[str]
    test_samples: list[str]
    predictions: pd.Series
    truth: pd.Series
    confusion: pd.DataFrame
    accuracy: float
    importances: pd.Series
    oob_score: Optional[float] = None

    def summary(self) -> str:
        return (
            f"Random forest on '{self.label}': {len(self.train_samples)} train / "
            f"{len(self.test_samples)} test samples, accuracy {self.accuracy:.3f}"
            + (f", OOB {self.oob_score:.3f}" if self.oob_score is not None else "")
        )


def random_forest_check(
    eset: ExpressionSet,
    label: str,
    *,
    features: Optional[Selector] = None,
    train: Optional[Sequence[int]] = None,
    train_fraction: float = 0.7,
    n_estimators: int = 500,
    max_features: str | float = "sqrt",
    random_state: Optional[int] = None,
) -> ClassificationResult:
    """
    Train a random forest on a subset of samples and evaluate the rest.

    Args:
        eset: Expression set; samples with a missing label are dropped.
        label: sample_metadata column with the class of each sample.
        features: Features to use (mask, positions, labels); all if None.
        train: Explicit training sample positions (after dropping unlabelled
            samples). If None, a stratified split with ``train_fraction``.
        train_fraction: Fraction of samples used for training.
        n_estimators: Number of trees.
        max_features: Features considered per split.
        random_state: Seed for the split and the forest.

    Returns:
        ClassificationResult.

    Raises:
        KeyError: If ``label`` is not a sample_metadata column.
        ValueError: Fewer than two classes, empty train or test set, or an
            invalid train_fraction.
    """
    from sklearn.ensemble import RandomForestClassifier
    from sklearn.metrics import accuracy_score, confusion_matrix
    from sklearn.model_selection import train_test_split

    if label not in eset.sample_metadata.columns:
        raise KeyError(f"Sample metadata has no column '{label}'")
    if not 0 < train_fraction < 1:
        raise ValueError(f"train_fraction must be in (0, 1), got {train_fraction}")

    subset = eset.select_features(features) if features is not None else eset
    labelled = subset.sample_metadata[label].notna().values
    if not labelled.all():
        logger.info(f"Dropping {int((~labelled).sum())} samples without '{label}'")
        subset = subset.select_samples(labelled)

    view = to_tabular_view(subset)
    y = np.asarray(subset.sample_metadata[label].astype(str).values)
    classes = sorted(set(y))
    if len(classes) < 2:
        raise ValueError(f"Need at least 2 classes in '{label}', got {classes}")

    positions = np.arange(len(y))
    if train is None:
        counts = pd.Series(y).value_counts()
        stratify = y if counts.min() >= 2 else None
        train_idx, test_idx = train_test_split(
            positions,
            train_size=train_fraction,
            stratify=stratify,
            random_state=random_state,
        )
    else:
        train_idx = np.unique(np.asarray(train, dtype=int))
        if train_idx.size and (train_idx.min() < 0 or train_idx.max() >= len(y)):
            raise ValueError(f"train positions must be within [0, {len(y)})")
        test_idx = np.setdiff1d(positions, train_idx)

    if len(train_idx) == 0 or len(test_idx) == 0:
        raise ValueError(
            f"Need non-empty train and test sets, got {len(train_idx)} / {len(test_idx)}"
        )

    X = view.to_numpy(dtype=float)
    model = RandomForestClassifier(
        n_estimators=n_estimators,
        max_features=max_features,
        oob_score=len(train_idx) >= 10,
        random_state=random_state,
    )
    model.fit(X[train_idx], y[train_idx])
    predicted = model.predict(X[test_idx])

    test_labels = [str(s) for s in view.index[test_idx]]
    truth = pd.Series(y[test_idx], index=test_labels, name="truth")
    predictions = pd.Series(predicted, index=test_labels, name="predicted")

    confusion = pd.DataFrame(
        confusion_matrix(truth, predictions, labels=classes),
        index=pd.Index(classes, name="truth"),
        columns=pd.Index(classes, name="predicted"),
    )
    accuracy = float(accuracy_score(truth, predictions))
    importances = pd.Series(
        model.feature_importances_, index=view.columns, name="importance"
    ).sort_values(ascending=False)
    oob = float(model.oob_score_) if getattr(model, "oob_score", False) else None

    result = ClassificationResult(
        model=model,
        label=label,
        train_samples=[str(s) for s in view.index[train_idx]],
        test_samples=test_labels,
        predictions=predictions,
        truth=truth,
        confusion=confusion,
        accuracy=accuracy,
        importances=importances,
        oob_score=oob,
    )
    logger.info(result.summary())
    return result
