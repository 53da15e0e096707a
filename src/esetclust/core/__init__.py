"""
Core data structures for expression-set analysis.

1. ExpressionSet: expression matrix with identifiers, phenotype table and
   annotation tag
2. TabularSource: the capability contract {numeric_array, row_labels,
   col_labels} accepted by the matrix adapter
3. make_names / make_unique: identifier normalization into unique,
   syntactically valid labels

Design Philosophy:
    - Immutability: all operations return new instances
    - Explicit contracts: duck-typed "anything with rows, columns and names"
      is spelled out as a Protocol
"""

from esetclust.core.expression_set import ExpressionSet
from esetclust.core.labels import make_names, make_unique
from esetclust.core.tabular import TabularSource, as_tabular_source

__all__ = [
    'ExpressionSet',
    'TabularSource',
    'as_tabular_source',
    'make_names',
    'make_unique',
]
