"""
Clustering routines consumed by the matrix adapter.

The adapter accepts any callable taking a samples × features DataFrame;
``hclust_explorer`` is the default.
"""

from esetclust.cluster.hclust import HclustSession, hclust_explorer, LINKAGE_METHODS

__all__ = [
    'HclustSession',
    'hclust_explorer',
    'LINKAGE_METHODS',
]
