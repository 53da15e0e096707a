"""
Visualization for expression sets.

Static matplotlib/seaborn figures wrapped in ``Figure`` for consistent
saving and closing:
- Expression heatmaps with sample group colour bars
- Dendrograms (via ``HclustSession.plot_dendrogram``)

Examples
--------
>>> from esetclust.viz import plot_expression_heatmap, FigureCollection
>>> fig = plot_expression_heatmap(top, annotate_by="mol.biol")
>>> collection = FigureCollection().add("heatmap", fig)
>>> collection.save_all("figures/", format="pdf")
"""

from esetclust.viz.core import Figure, FigureCollection
from esetclust.viz.styles import Palette, PALETTES, configure_style
from esetclust.viz.heatmap import plot_expression_heatmap, row_zscore

__all__ = [
    "Figure",
    "FigureCollection",
    "Palette",
    "PALETTES",
    "configure_style",
    "plot_expression_heatmap",
    "row_zscore",
]
