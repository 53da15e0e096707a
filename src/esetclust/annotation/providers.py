"""
Annotation sources: feature identifier → gene symbol lookup.

A source is keyed explicitly by the caller (a probe-to-symbol table for a
given array platform, or a mygene.info query scoped to probe ids); nothing
is looked up from ambient global state.

Sources:
    - TableAnnotationSource: in-memory mapping or two-column CSV
      (e.g. an exported platform annotation table)
    - MyGeneAnnotationSource: mygene.info batch queries with a JSON cache

Examples:
    >>> from esetclust.annotation.providers import TableAnnotationSource
    >>>
    >>> source = TableAnnotationSource({"1000_at": "MAPK3", "1001_at": "TIE1"}, name="hgu95av2")
    >>> source.map_ids(["1000_at", "1001_at", "1002_f_at"])
    {'1000_at': 'MAPK3', '1001_at': 'TIE1'}
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import pandas as pd

logger = logging.getLogger(__name__)

__all__ = ['AnnotationSource', 'TableAnnotationSource', 'MyGeneAnnotationSource']


class AnnotationSource(ABC):
    """Abstract interface for feature id → symbol lookup"""

    name: str = "annotation"

    @abstractmethod
    def map_ids(self, feature_ids: List[str]) -> Dict[str, str]:
        """
        Map feature ids to symbols

        Args:
            feature_ids: Feature identifiers (e.g. Affymetrix probe ids)

        Returns:
            Dict mapping feature_id → symbol. Unmapped ids are absent.
        """
        pass


class TableAnnotationSource(AnnotationSource):
    """
    Lookup backed by an explicit id → symbol mapping.

    Usage:
        source = TableAnnotationSource.from_csv(
            Path("hgu95av2_symbols.csv"), id_column="probe", symbol_column="symbol",
            name="hgu95av2",
        )
    """

    def __init__(self, mapping: Mapping[str, str], name: str = "table"):
        self.name = name
        self._mapping = {
            str(key): str(value)
            for key, value in mapping.items()
            if not pd.isna(value) and str(value) != ""
        }

    @classmethod
    def from_csv(
        cls,
        path: Path,
        id_column: str = "probe",
        symbol_column: str = "symbol",
        name: Optional[str] = None,
    ) -> TableAnnotationSource:
        """
        Load mapping from a CSV/TSV with an id column and a symbol column.

        Duplicate ids keep their first symbol.

        Raises:
            FileNotFoundError: If path does not exist
            ValueError: If a required column is missing
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Annotation table not found: {path}")

        sep = "\t" if path.suffix.lower() in (".tsv", ".txt") else ","
        table = pd.read_csv(path, sep=sep, dtype=str)

        missing = [c for c in (id_column, symbol_column) if c not in table.columns]
        if missing:
            raise ValueError(
                f"Annotation table {path} lacks columns {missing}; "
                f"available: {list(table.columns)}"
            )

        table = table.dropna(subset=[id_column]).drop_duplicates(subset=[id_column], keep="first")
        mapping = dict(zip(table[id_column], table[symbol_column]))
        logger.info(f"Loaded {len(mapping)} annotations from {path}")
        return cls(mapping, name=name or path.stem)

    def __len__(self) -> int:
        return len(self._mapping)

    def map_ids(self, feature_ids: List[str]) -> Dict[str, str]:
        return {fid: self._mapping[fid] for fid in feature_ids if fid in self._mapping}


class MyGeneAnnotationSource(AnnotationSource):
    """
    Lookup through mygene.info with concurrent batch queries and caching

    Affymetrix probe ids are resolved with ``scopes="reporter"``; Ensembl
    or Entrez ids with "ensembl.gene" / "entrezgene".

    Usage:
        source = MyGeneAnnotationSource(scopes="reporter", name="hgu95av2")
        mapping = source.map_ids(["1000_at", "1001_at"])
        # {'1000_at': 'MAPK3', '1001_at': 'TIE1'}
    """

    def __init__(
        self,
        scopes: str = "reporter",
        field: str = "symbol",
        species: str = "human",
        name: str = "mygene",
        cache_dir: Optional[Path] = None,
        max_workers: int = 4,
        batch_size: int = 1000,
    ):
        """
        Args:
            scopes: mygene field the query ids belong to
            field: mygene field to return (nested fields with dots)
            species: Species to query
            name: Annotation tag recorded on annotated sets
            cache_dir: Cache directory (default: ~/.cache/esetclust/annotation)
            max_workers: Concurrent API requests
            batch_size: Ids per request
        """
        self.scopes = scopes
        self.field = field
        self.species = species
        self.name = name
        self.cache_dir = Path(cache_dir) if cache_dir else Path.home() / ".cache/esetclust/annotation"
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.max_workers = max_workers
        self.batch_size = batch_size
        self._lock = threading.Lock()

    def _query_batch(self, batch: List[str], batch_num: int, total_batches: int) -> Dict[str, str]:
        """
        Query a single batch.

        Creates a new MyGeneInfo client per call to avoid sharing a session
        across threads.
        """
        import mygene

        mg = mygene.MyGeneInfo()
        logger.debug(f"Querying batch {batch_num + 1}/{total_batches} ({len(batch)} IDs)")

        query_results = mg.querymany(
            batch,
            scopes=self.scopes,
            fields=self.field,
            species=self.species,
            returnall=True,
            verbose=False,
        )

        results = {}
        for item in query_results['out']:
            source_id = item.get('query')
            if item.get('notfound'):
                continue

            value = item
            for part in self.field.split('.'):
                if isinstance(value, dict):
                    value = value.get(part)
                else:
                    value = None
                    break

            if isinstance(value, list):
                value = value[0] if value else None

            # First hit wins when a probe maps to several genes
            if value and source_id and source_id not in results:
                results[source_id] = str(value)

        return results

    def _cache_path(self, feature_ids: List[str]) -> Path:
        digest = hashlib.sha256("\n".join(sorted(feature_ids)).encode()).hexdigest()[:16]
        return self.cache_dir / f"{self.scopes}_to_{self.field}_{self.species}_{digest}.json"

    def map_ids(self, feature_ids: List[str]) -> Dict[str, str]:
        """
        Map ids using mygene.info batch queries

        Returns:
            Dict mapping feature_id → symbol (only successful mappings)
        """
        feature_ids = [str(fid) for fid in feature_ids]
        if not feature_ids:
            return {}

        cache_path = self._cache_path(feature_ids)
        if cache_path.exists():
            try:
                with open(cache_path, 'r') as f:
                    return json.load(f)
            except (json.JSONDecodeError, ValueError) as e:
                logger.warning(f"Corrupted cache file {cache_path}, ignoring: {e}")

        batches = [
            feature_ids[i:i + self.batch_size]
            for i in range(0, len(feature_ids), self.batch_size)
        ]
        logger.info(
            f"Starting annotation lookup: {len(feature_ids)} IDs in {len(batches)} batches "
            f"with {self.max_workers} workers"
        )

        results: Dict[str, str] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(self._query_batch, batch, i, len(batches)): i
                for i, batch in enumerate(batches)
            }
            for future in as_completed(futures):
                batch_results = future.result()
                with self._lock:
                    results.update(batch_results)

        logger.info(
            f"Annotation lookup complete: {len(results)}/{len(feature_ids)} IDs mapped "
            f"({len(results) / len(feature_ids) * 100:.1f}%)"
        )

        with open(cache_path, 'w') as f:
            json.dump(results, f, indent=2)

        return results
