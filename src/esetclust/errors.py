"""
Error taxonomy for expression-set handling and the matrix adapter.

All errors derive from ``ValueError`` as well as ``EsetClustError`` so that
callers catching ``ValueError`` (the convention used throughout the stats and
I/O layers) keep working, while callers that want to single out adapter
failures can catch the narrower types.

Errors raised by collaborators (numpy, scipy, scikit-learn, mygene, or a
user-supplied clustering routine) are never wrapped; they propagate to the
caller unchanged.
"""

from __future__ import annotations

__all__ = [
    'EsetClustError',
    'ShapeMismatchError',
    'EmptyInputError',
    'DuplicateLabelUnresolvableError',
]


class EsetClustError(Exception):
    """Base class for errors raised by esetclust itself."""


class ShapeMismatchError(EsetClustError, ValueError):
    """Array dimensions do not match the identifier sequence lengths."""


class EmptyInputError(EsetClustError, ValueError):
    """A container has zero features or zero samples."""


class DuplicateLabelUnresolvableError(EsetClustError, ValueError):
    """An identifier collision could not be disambiguated into a usable label."""
