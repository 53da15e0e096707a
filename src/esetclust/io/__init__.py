"""Reading and writing expression sets and result tables."""

from esetclust.io.formats import sniff_delimiter
from esetclust.io.loaders import load_expression_set, load_sample_metadata
from esetclust.io.writers import write_expression_set, write_table

__all__ = [
    'load_expression_set',
    'load_sample_metadata',
    'sniff_delimiter',
    'write_expression_set',
    'write_table',
]
