"""Tests for the matrix adapter (expression set -> samples × features view)."""

import numpy as np
import pandas as pd
import pytest

from esetclust.adapter import es_hclust, to_tabular_view
from esetclust.cluster.hclust import HclustSession
from esetclust.core.expression_set import ExpressionSet
from esetclust.errors import (
    DuplicateLabelUnresolvableError,
    EmptyInputError,
    EsetClustError,
    ShapeMismatchError,
)


class TestTabularView:
    """Shape, values and labels of the tabular view."""

    def test_literal_three_by_four(self):
        """3 features × 4 samples becomes 4 rows × 3 columns, values transposed."""
        data = np.array([
            [1.0, 2.0, 3.0, 4.0],
            [5.0, 6.0, 7.0, 8.0],
            [9.0, 10.0, 11.0, 12.0],
        ])
        eset = ExpressionSet(data, ["g1", "g2", "g3"], ["s1", "s2", "s3", "s4"])

        view = to_tabular_view(eset)

        expected = pd.DataFrame(
            [[1.0, 5.0, 9.0], [2.0, 6.0, 10.0], [3.0, 7.0, 11.0], [4.0, 8.0, 12.0]],
            index=["s1", "s2", "s3", "s4"],
            columns=["g1", "g2", "g3"],
        )
        pd.testing.assert_frame_equal(view, expected, check_index_type=False, check_column_type=False)

    def test_shape_is_samples_by_features(self, grouped_eset):
        view = to_tabular_view(grouped_eset)
        assert view.shape == (grouped_eset.n_samples, grouped_eset.n_features)

    def test_exact_transposition(self, grouped_eset):
        view = to_tabular_view(grouped_eset)
        for f in (0, 17, 199):
            for s in (0, 11, 23):
                assert view.iat[s, f] == grouped_eset.data[f, s]

    def test_labels_in_original_order(self, grouped_eset):
        view = to_tabular_view(grouped_eset)
        assert list(view.index) == list(grouped_eset.sample_ids)
        assert list(view.columns) == list(grouped_eset.feature_ids)

    def test_duplicate_sample_ids_suffixed(self):
        eset = ExpressionSet(np.ones((2, 3)), ["g1", "g2"], ["A", "A", "B"])
        view = to_tabular_view(eset)
        assert list(view.index) == ["A", "A.1", "B"]

    def test_numeric_ids_made_syntactic(self):
        eset = ExpressionSet(np.ones((2, 2)), ["1000_at", "1000_at"], ["01005", "01010"])
        view = to_tabular_view(eset)
        assert list(view.index) == ["X01005", "X01010"]
        assert list(view.columns) == ["X1000_at", "X1000_at.1"]

    def test_non_syntactic_only_deduplicates(self):
        eset = ExpressionSet(np.ones((2, 2)), ["1000_at", "1000_at"], ["01005", "01010"])
        view = to_tabular_view(eset, make_syntactic=False)
        assert list(view.columns) == ["1000_at", "1000_at.1"]
        assert list(view.index) == ["01005", "01010"]

    def test_idempotent(self, small_eset):
        pd.testing.assert_frame_equal(to_tabular_view(small_eset), to_tabular_view(small_eset))

    def test_view_does_not_share_memory(self, small_eset):
        view = to_tabular_view(small_eset)
        view.iloc[0, 0] = -1.0
        assert small_eset.data[0, 0] == 0.0

    def test_container_unchanged(self, small_eset):
        before = small_eset.data.copy()
        to_tabular_view(small_eset)
        np.testing.assert_array_equal(small_eset.data, before)
        assert list(small_eset.sample_ids) == ["A", "A", "B", "C"]


class TestAdapterErrors:
    """Failure modes."""

    def test_zero_samples(self):
        eset = ExpressionSet(np.zeros((3, 0)), ["g1", "g2", "g3"], [])
        with pytest.raises(EmptyInputError):
            to_tabular_view(eset)

    def test_zero_features(self):
        eset = ExpressionSet(np.zeros((0, 2)), [], ["s1", "s2"])
        with pytest.raises(EmptyInputError, match="empty"):
            to_tabular_view(eset)

    def test_missing_id_unresolvable_without_syntactic_names(self):
        """A missing sample id cannot be suffixed into a label."""
        eset = ExpressionSet(np.ones((2, 3)), ["g1", "g2"], ["s1", None, "s3"])
        with pytest.raises(DuplicateLabelUnresolvableError, match="position 1"):
            to_tabular_view(eset, make_syntactic=False)

    def test_missing_feature_id_repaired_with_syntactic_names(self):
        eset = ExpressionSet(np.ones((2, 3)), ["g1", np.nan], ["s1", "s2", "s3"])
        view = to_tabular_view(eset)
        assert list(view.columns) == ["g1", "NA."]

    def test_errors_are_value_errors(self):
        assert issubclass(EmptyInputError, ValueError)
        assert issubclass(EmptyInputError, EsetClustError)
        assert issubclass(ShapeMismatchError, ValueError)

    def test_label_length_mismatch_on_generic_source(self):
        class Source:
            numeric_array = np.zeros((2, 3))
            row_labels = pd.Index(["f1", "f2"])
            col_labels = pd.Index(["s1", "s2"])

        with pytest.raises(ShapeMismatchError, match="identifier lengths"):
            to_tabular_view(Source())

    def test_dataframe_input(self):
        """Rows of a DataFrame are features, columns are samples."""
        frame = pd.DataFrame([[1.0, 2.0], [3.0, 4.0]], index=["f1", "f2"], columns=["s1", "s2"])
        view = to_tabular_view(frame)
        assert list(view.index) == ["s1", "s2"]
        assert view.loc["s2", "f1"] == 2.0


class TestEsHclust:
    """Handing the view to a clustering routine."""

    def test_default_routine(self, grouped_eset):
        top = grouped_eset.select_features(list(range(20)))
        session = es_hclust(top, k=3, method="average")
        assert isinstance(session, HclustSession)
        assert session.n_clusters == 3
        assert list(session.clusters.index) == list(grouped_eset.sample_ids)

    def test_custom_routine_receives_view_and_kwargs(self, small_eset):
        calls = {}

        def routine(view, **kwargs):
            calls["view"] = view
            calls["kwargs"] = kwargs
            return "result"

        result = es_hclust(small_eset, routine, k=2)

        assert result == "result"
        assert calls["kwargs"] == {"k": 2}
        assert list(calls["view"].index) == ["A", "A.1", "B", "C"]

    def test_routine_errors_propagate(self, small_eset):
        def failing(view, **kwargs):
            raise RuntimeError("routine failed")

        with pytest.raises(RuntimeError, match="routine failed"):
            es_hclust(small_eset, failing)

    def test_empty_input_not_forwarded(self):
        eset = ExpressionSet(np.zeros((3, 0)), ["g1", "g2", "g3"], [])

        def routine(view, **kwargs):
            pytest.fail("routine should not be called")

        with pytest.raises(EmptyInputError):
            es_hclust(eset, routine)
