"""Tests for the random forest sanity check."""

import numpy as np
import pandas as pd
import pytest

from esetclust.ml import ClassificationResult, random_forest_check


class TestRandomForestCheck:
    """Tests for random_forest_check."""

    def test_separable_groups_classified(self, grouped_eset):
        result = random_forest_check(
            grouped_eset, "group", features=list(range(20)),
            n_estimators=100, random_state=1234,
        )
        assert isinstance(result, ClassificationResult)
        assert result.accuracy == 1.0
        assert list(result.confusion.index) == ["G1", "G2", "G3"]
        assert result.confusion.index.name == "truth"
        assert int(np.trace(result.confusion.values)) == len(result.test_samples)

    def test_stratified_split(self, grouped_eset):
        result = random_forest_check(
            grouped_eset, "group", train_fraction=0.5, n_estimators=50, random_state=0
        )
        assert len(result.train_samples) == 12
        assert len(result.test_samples) == 12
        assert result.truth.value_counts().to_dict() == {"G1": 4, "G2": 4, "G3": 4}
        assert not set(result.train_samples) & set(result.test_samples)

    def test_explicit_training_positions(self, grouped_eset):
        train = [0, 1, 2, 3, 8, 9, 10, 11, 16, 17, 18, 19]
        result = random_forest_check(
            grouped_eset, "group", train=train, n_estimators=50, random_state=0
        )
        assert result.train_samples == [f"S{i + 1:02d}" for i in train]
        assert len(result.test_samples) == 12

    def test_importances_favour_differential_features(self, grouped_eset):
        result = random_forest_check(
            grouped_eset, "group", n_estimators=200, random_state=7
        )
        top = set(result.importances.index[:10])
        differential = {f"p{i:04d}_at" for i in range(20)}
        assert len(top & differential) >= 8
        assert result.importances.is_monotonic_decreasing

    def test_reproducible_with_seed(self, grouped_eset):
        first = random_forest_check(grouped_eset, "group", n_estimators=30, random_state=3)
        second = random_forest_check(grouped_eset, "group", n_estimators=30, random_state=3)
        assert first.test_samples == second.test_samples
        pd.testing.assert_series_equal(first.importances, second.importances)

    def test_unlabelled_samples_dropped(self, make_eset):
        eset = make_eset(n_features=30, group_sizes=(6, 6))
        metadata = eset.sample_metadata.copy()
        metadata.loc[metadata.index[0], "group"] = None
        eset = eset.with_sample_metadata(metadata)

        result = random_forest_check(eset, "group", n_estimators=20, random_state=0)

        assert "S01" not in result.train_samples + result.test_samples
        assert len(result.train_samples) + len(result.test_samples) == 11


class TestClassifyValidation:
    """Invalid inputs."""

    def test_missing_label_column(self, grouped_eset):
        with pytest.raises(KeyError, match="mol.biol"):
            random_forest_check(grouped_eset, "mol.biol")

    def test_single_class(self, grouped_eset):
        eset = grouped_eset.select_samples(grouped_eset.sample_metadata["group"] == "G1")
        with pytest.raises(ValueError, match="at least 2 classes"):
            random_forest_check(eset, "group")

    def test_bad_train_fraction(self, grouped_eset):
        with pytest.raises(ValueError, match="train_fraction"):
            random_forest_check(grouped_eset, "group", train_fraction=1.0)

    def test_all_samples_in_training(self, grouped_eset):
        with pytest.raises(ValueError, match="non-empty train and test"):
            random_forest_check(grouped_eset, "group", train=range(grouped_eset.n_samples))
