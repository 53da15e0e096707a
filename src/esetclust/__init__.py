"""
esetclust - Cluster expression sets with generic clustering tools

Turns features × samples expression sets into samples × features tables
with clean, unique labels, and carries the surrounding analysis: probe
annotation, moderated differential expression, heatmaps, a random forest
check and hierarchical clustering of samples.
"""

__version__ = "0.1.0"

from esetclust.core.expression_set import ExpressionSet
from esetclust.core.tabular import TabularSource
from esetclust.adapter import es_hclust, to_tabular_view
from esetclust.errors import (
    DuplicateLabelUnresolvableError,
    EmptyInputError,
    EsetClustError,
    ShapeMismatchError,
)

__all__ = [
    "ExpressionSet",
    "TabularSource",
    "es_hclust",
    "to_tabular_view",
    "EsetClustError",
    "ShapeMismatchError",
    "EmptyInputError",
    "DuplicateLabelUnresolvableError",
]
