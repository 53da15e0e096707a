"""
Delimiter detection for expression and phenotype tables.

Expression exports come as CSV from R (``write.csv(exprs(eset))``) or as
tab-separated text from array facility pipelines. The delimiter is sniffed
from the file head; a file with no recognizable delimiter fails loudly
instead of being read as a single column.
"""

from __future__ import annotations

import csv
from pathlib import Path

__all__ = ['sniff_delimiter', 'DELIMITERS']

DELIMITERS = '\t,;|'


def sniff_delimiter(path: Path, sample_size: int = 8192) -> str:
    """
    Detect the delimiter of a table file from its first ``sample_size`` bytes.

    ``csv.Sniffer`` is tried first. It gives up on short or irregular heads
    (a single data row, quoted empty corner cell), in which case the most
    frequent candidate in the header line wins.

    Raises:
        ValueError: If the header line holds none of ``DELIMITERS``
    """
    with open(path, 'r', encoding='utf-8', errors='ignore') as f:
        head = f.read(sample_size)

    try:
        return csv.Sniffer().sniff(head, delimiters=DELIMITERS).delimiter
    except csv.Error:
        header = head.splitlines()[0] if head else ''

    delimiter = max(DELIMITERS, key=header.count)
    if header.count(delimiter) == 0:
        raise ValueError(f"Could not detect delimiter in {path}")
    return delimiter
