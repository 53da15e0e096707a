"""
Feature annotation: map probe ids to human-readable symbols.

Examples:
    >>> from esetclust.annotation import TableAnnotationSource, annotate_features
    >>> source = TableAnnotationSource.from_csv(Path("hgu95av2.csv"), name="hgu95av2")
    >>> annotated = annotate_features(eset, source)
"""

from esetclust.annotation.providers import (
    AnnotationSource,
    TableAnnotationSource,
    MyGeneAnnotationSource,
)
from esetclust.annotation.annotate import annotate_features, ORIGINAL_ID_COLUMN

__all__ = [
    'AnnotationSource',
    'TableAnnotationSource',
    'MyGeneAnnotationSource',
    'annotate_features',
    'ORIGINAL_ID_COLUMN',
]
