"""Tests for heatmaps, palettes and the figure wrapper."""

import numpy as np
import pandas as pd
import pytest

from esetclust.core.expression_set import ExpressionSet
from esetclust.errors import EmptyInputError
from esetclust.viz import (
    PALETTES,
    Figure,
    FigureCollection,
    Palette,
    configure_style,
    plot_expression_heatmap,
    row_zscore,
)


class TestRowZscore:
    """Tests for row_zscore."""

    def test_rows_centred_and_scaled(self):
        values = np.array([[1.0, 2.0, 3.0], [10.0, 20.0, 30.0]])
        z = row_zscore(values)
        np.testing.assert_allclose(z.mean(axis=1), 0.0, atol=1e-12)
        np.testing.assert_allclose(z.std(axis=1, ddof=1), 1.0)

    def test_constant_row_becomes_zero(self):
        z = row_zscore(np.array([[5.0, 5.0, 5.0]]))
        np.testing.assert_array_equal(z, [[0.0, 0.0, 0.0]])


class TestPalette:
    """Tests for Palette."""

    def test_for_groups_is_order_independent(self):
        palette = Palette()
        assert palette.for_groups(["b", "a"]) == palette.for_groups(["a", "b", "a"])

    def test_sample_colors_missing(self):
        palette = Palette()
        colors = palette.sample_colors(pd.Series(["a", None, "b"]))
        assert colors.iloc[1] == palette.missing
        assert colors.iloc[0] != colors.iloc[2]

    def test_sample_colors_categorical(self):
        labels = pd.Series(pd.Categorical(["x", "y", "x"]))
        colors = Palette().sample_colors(labels)
        assert colors.iloc[0] == colors.iloc[2]

    def test_configure_style_by_name(self):
        assert configure_style("notebook", palette="print") == PALETTES["print"]


class TestExpressionHeatmap:
    """Tests for plot_expression_heatmap."""

    def test_heatmap_of_top_features(self, grouped_eset):
        figure = plot_expression_heatmap(
            grouped_eset, features=list(range(20)), annotate_by="group"
        )
        assert isinstance(figure, Figure)
        assert figure.metadata["n_features"] == 20
        assert figure.metadata["n_samples"] == grouped_eset.n_samples
        assert figure.grid.data2d.shape == (20, grouped_eset.n_samples)

    def test_duplicate_labels_supported(self, small_eset):
        figure = plot_expression_heatmap(small_eset, annotate_by="group", cluster_features=False)
        assert list(figure.grid.data.columns) == ["A", "A.1", "B", "C"]

    def test_unscaled(self, grouped_eset):
        figure = plot_expression_heatmap(grouped_eset, features=[0, 1, 2], scale="none")
        np.testing.assert_allclose(figure.grid.data.values, grouped_eset.data[:3])

    def test_unknown_annotation_column(self, grouped_eset):
        with pytest.raises(KeyError, match="no column"):
            plot_expression_heatmap(grouped_eset, features=[0, 1], annotate_by="mol.biol")

    def test_empty_selection(self, grouped_eset):
        with pytest.raises(EmptyInputError):
            plot_expression_heatmap(grouped_eset, features=[])

    def test_save_formats(self, grouped_eset, tmp_path):
        figure = plot_expression_heatmap(grouped_eset, features=[0, 1, 2, 3])
        assert figure.save(tmp_path / "heatmap.png").exists()
        html = figure.save(tmp_path / "heatmap.html")
        assert "data:image/png;base64" in html.read_text()


class TestFigureCollection:
    """Tests for FigureCollection."""

    def test_save_all(self, grouped_eset, tmp_path):
        figure = plot_expression_heatmap(grouped_eset, features=[0, 1, 2])
        collection = FigureCollection().add("heatmap", figure)

        paths = collection.save_all(tmp_path / "figures", format="svg")
        assert paths["heatmap"].name == "heatmap.svg"
        assert paths["heatmap"].exists()
        assert len(collection) == 1
        assert collection["heatmap"] is figure
