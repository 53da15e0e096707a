"""Supervised checks on expression features."""

from esetclust.ml.classify import ClassificationResult, random_forest_check

__all__ = ['ClassificationResult', 'random_forest_check']
