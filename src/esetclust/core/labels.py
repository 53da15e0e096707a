"""
Identifier normalization for structural labels.

Expression sets routinely carry identifiers that are unfit to be used as row
or column names: probe ids mapped to gene symbols collide ("HLA-DRB1" from
several probes), sample ids start with digits ("01005"), and annotation
lookups return missing values for unmapped probes.

Two operations cover this:

- ``make_unique``: keeps the first occurrence of every label and suffixes
  later duplicates with ``.1``, ``.2``, ... in order of appearance, skipping
  any suffix that would collide with another label in the sequence.
- ``make_names``: rewrites labels into syntactic names (letters, digits,
  ``.`` and ``_``; starts with a letter or a dot not followed by a digit)
  and then applies ``make_unique``.

Both follow the naming rules of Bioconductor's ``make.names`` /
``make.unique`` so labels match what the same data set shows in R.

Examples:
    >>> make_unique(["A", "A", "B"])
    ['A', 'A.1', 'B']
    >>> make_unique(["a", "a", "a.1"])
    ['a', 'a.2', 'a.1']
    >>> make_names(["1007_s_at", "HLA-DRB1", None, "HLA-DRB1"])
    ['X1007_s_at', 'HLA.DRB1', 'NA.', 'HLA.DRB1.1']
"""

from __future__ import annotations

import re
from typing import Iterable, Sequence

import pandas as pd

from esetclust.errors import DuplicateLabelUnresolvableError

__all__ = ['make_unique', 'make_names', 'is_missing_label', 'normalize_index']

# Words that cannot stand alone as a name.
RESERVED_WORDS = frozenset({
    'if', 'else', 'repeat', 'while', 'function', 'for', 'next', 'break',
    'TRUE', 'FALSE', 'NULL', 'Inf', 'NaN', 'NA', 'NA_integer_', 'NA_real_',
    'NA_character_', 'in',
})

_INVALID_CHARS = re.compile(r'[^A-Za-z0-9._]')
_VALID_START = re.compile(r'^([A-Za-z]|\.(?![0-9]))')

# Upper bound on suffix attempts per label; only reachable with adversarial input.
MAX_SUFFIX_ATTEMPTS = 1_000_000


def is_missing_label(label: object) -> bool:
    """True for None, NaN/NA scalars and empty strings."""
    if label is None:
        return True
    if isinstance(label, str):
        return label == ''
    try:
        return bool(pd.isna(label))
    except (TypeError, ValueError):
        return False


def make_unique(labels: Iterable[object], sep: str = '.') -> list[str]:
    """
    Disambiguate duplicate labels by appending a numeric suffix.

    The first occurrence of a label is kept as is. Each later occurrence gets
    ``{label}{sep}{n}`` with the smallest ``n >= 1`` (continuing from the last
    suffix used for that label) that does not collide with any label in the
    input or any label generated so far. Original order is preserved.

    Args:
        labels: Sequence of labels. Non-string labels are converted with ``str``.
        sep: Separator between the label and its counter.

    Returns:
        List of unique string labels, same length and order as the input.

    Raises:
        DuplicateLabelUnresolvableError: If a label is missing (None/NaN/empty),
            since it cannot be turned into a usable name by suffixing.
    """
    raw = list(labels)
    for position, label in enumerate(raw):
        if is_missing_label(label):
            raise DuplicateLabelUnresolvableError(
                f"Label at position {position} is missing ({label!r}); "
                "cannot be used as a structural label. "
                "Use make_names() to repair missing labels."
            )
    names = [str(label) for label in raw]

    taken = set(names)
    emitted: set[str] = set()
    counters: dict[str, int] = {}
    result = []

    for name in names:
        if name not in emitted:
            emitted.add(name)
            result.append(name)
            continue

        counter = counters.get(name, 0)
        for _ in range(MAX_SUFFIX_ATTEMPTS):
            counter += 1
            candidate = f"{name}{sep}{counter}"
            if candidate not in taken:
                break
        else:
            raise DuplicateLabelUnresolvableError(
                f"Could not find a unique suffix for label {name!r} "
                f"after {MAX_SUFFIX_ATTEMPTS} attempts"
            )
        counters[name] = counter
        taken.add(candidate)
        emitted.add(candidate)
        result.append(candidate)

    return result


def _syntactic_name(label: object) -> str:
    if is_missing_label(label) and not (isinstance(label, str)):
        return 'NA.'
    name = _INVALID_CHARS.sub('.', str(label))
    if not _VALID_START.match(name):
        name = 'X' + name
    if name in RESERVED_WORDS:
        name = name + '.'
    return name


def make_names(labels: Iterable[object], unique: bool = True) -> list[str]:
    """
    Convert labels into syntactically valid names.

    Rules, applied in order:
        1. Missing values (None/NaN) become ``"NA."``.
        2. Characters other than letters, digits, ``.`` and ``_`` become ``.``.
        3. Names not starting with a letter, or with a dot followed by a digit,
           are prefixed with ``X`` (the empty string becomes ``"X"``).
        4. Reserved words get a trailing ``.``.
        5. If ``unique``, duplicates are disambiguated with ``make_unique``.

    Args:
        labels: Labels to convert.
        unique: Whether to de-duplicate after conversion.

    Returns:
        List of names in input order.
    """
    names = [_syntactic_name(label) for label in labels]
    if unique:
        names = make_unique(names)
    return names


def normalize_index(index: Sequence[object] | pd.Index, syntactic: bool = True) -> pd.Index:
    """Return a ``pd.Index`` of unique labels (syntactic if requested)."""
    labels = list(index)
    normalized = make_names(labels) if syntactic else make_unique(labels)
    return pd.Index(normalized, dtype=object)
