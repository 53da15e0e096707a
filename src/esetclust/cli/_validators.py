"""argparse ``type=`` callables that reject out-of-range option values at parse time."""

from __future__ import annotations

import argparse


def _positive_int(value: str) -> int:
    """Integer >= 1, for counts such as ``-k`` and ``--n-features``."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got '{value}'") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number
