"""Tests for annotation sources and feature relabelling."""

import json

import mygene
import numpy as np
import pandas as pd
import pytest

from esetclust.annotation import (
    ORIGINAL_ID_COLUMN,
    MyGeneAnnotationSource,
    TableAnnotationSource,
    annotate_features,
)
from esetclust.core.expression_set import ExpressionSet


@pytest.fixture
def probe_eset():
    return ExpressionSet(
        data=np.arange(8, dtype=float).reshape(4, 2),
        feature_ids=["1000_at", "1001_at", "1002_f_at", "1003_s_at"],
        sample_ids=["01005", "01010"],
    )


@pytest.fixture
def source():
    return TableAnnotationSource(
        {"1000_at": "MAPK3", "1001_at": "TIE1", "1003_s_at": "MAPK3"},
        name="hgu95av2",
    )


class FakeMyGeneInfo:
    """Stands in for mygene.MyGeneInfo; records every querymany call."""

    calls = []
    table = {
        "1000_at": {"symbol": "MAPK3"},
        "1001_at": {"symbol": ["TIE1", "TIE1-AS"]},
    }

    def querymany(self, ids, scopes, fields, species, returnall, verbose):
        FakeMyGeneInfo.calls.append(list(ids))
        out = []
        for query in ids:
            if query in self.table:
                out.append({"query": query, **self.table[query]})
            else:
                out.append({"query": query, "notfound": True})
        return {"out": out, "missing": [], "dup": []}


@pytest.fixture
def fake_mygene(monkeypatch):
    FakeMyGeneInfo.calls = []
    monkeypatch.setattr(mygene, "MyGeneInfo", FakeMyGeneInfo)
    return FakeMyGeneInfo


class TestTableAnnotationSource:
    """Tests for TableAnnotationSource."""

    def test_map_ids_skips_unmapped(self, source):
        assert source.map_ids(["1000_at", "1002_f_at"]) == {"1000_at": "MAPK3"}

    def test_blank_symbols_dropped(self):
        table = TableAnnotationSource({"a": "X", "b": "", "c": np.nan})
        assert len(table) == 1

    def test_from_csv(self, tmp_path):
        path = tmp_path / "hgu95av2.csv"
        pd.DataFrame({
            "probe": ["1000_at", "1001_at", "1000_at"],
            "symbol": ["MAPK3", "TIE1", "OTHER"],
        }).to_csv(path, index=False)

        table = TableAnnotationSource.from_csv(path)

        assert table.name == "hgu95av2"
        assert table.map_ids(["1000_at"]) == {"1000_at": "MAPK3"}

    def test_from_tsv_custom_columns(self, tmp_path):
        path = tmp_path / "platform.tsv"
        path.write_text("ID\tGene Symbol\n1000_at\tMAPK3\n")
        table = TableAnnotationSource.from_csv(
            path, id_column="ID", symbol_column="Gene Symbol", name="GPL8300"
        )
        assert table.map_ids(["1000_at"]) == {"1000_at": "MAPK3"}
        assert table.name == "GPL8300"

    def test_from_csv_missing_column(self, tmp_path):
        path = tmp_path / "bad.csv"
        pd.DataFrame({"probe": ["1000_at"]}).to_csv(path, index=False)
        with pytest.raises(ValueError, match="lacks columns"):
            TableAnnotationSource.from_csv(path)

    def test_from_csv_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            TableAnnotationSource.from_csv(tmp_path / "nope.csv")


class TestMyGeneAnnotationSource:
    """Tests for MyGeneAnnotationSource with a fake client."""

    def test_batches_and_first_hit(self, fake_mygene, tmp_path):
        source = MyGeneAnnotationSource(cache_dir=tmp_path, batch_size=2, max_workers=2)
        mapping = source.map_ids(["1000_at", "1001_at", "1002_f_at"])

        assert mapping == {"1000_at": "MAPK3", "1001_at": "TIE1"}
        assert sorted(len(batch) for batch in fake_mygene.calls) == [1, 2]

    def test_cache_reused(self, fake_mygene, tmp_path):
        source = MyGeneAnnotationSource(cache_dir=tmp_path)
        first = source.map_ids(["1000_at"])
        second = source.map_ids(["1000_at"])

        assert first == second
        assert len(fake_mygene.calls) == 1
        cached = list(tmp_path.glob("*.json"))
        assert len(cached) == 1
        assert json.loads(cached[0].read_text()) == {"1000_at": "MAPK3"}

    def test_corrupted_cache_ignored(self, fake_mygene, tmp_path):
        source = MyGeneAnnotationSource(cache_dir=tmp_path)
        source._cache_path(["1000_at"]).write_text("{not json")
        assert source.map_ids(["1000_at"]) == {"1000_at": "MAPK3"}

    def test_empty_input(self, fake_mygene, tmp_path):
        assert MyGeneAnnotationSource(cache_dir=tmp_path).map_ids([]) == {}
        assert fake_mygene.calls == []


class TestAnnotateFeatures:
    """Tests for annotate_features."""

    def test_symbols_made_unique_and_ids_kept(self, probe_eset, source):
        annotated = annotate_features(probe_eset, source)

        assert list(annotated.feature_ids) == ["MAPK3", "TIE1", "X1002_f_at", "MAPK3.1"]
        assert list(annotated.feature_metadata[ORIGINAL_ID_COLUMN]) == list(probe_eset.feature_ids)
        symbols = annotated.feature_metadata["symbol"]
        assert symbols.iloc[0] == "MAPK3"
        assert pd.isna(symbols.iloc[2])
        assert annotated.annotation == "hgu95av2"
        np.testing.assert_array_equal(annotated.data, probe_eset.data)

    def test_drop_unmapped(self, probe_eset, source):
        annotated = annotate_features(probe_eset, source, unmapped="drop")
        assert list(annotated.feature_ids) == ["MAPK3", "TIE1", "MAPK3.1"]
        np.testing.assert_array_equal(annotated.data, probe_eset.data[[0, 1, 3]])

    def test_non_syntactic(self, probe_eset, source):
        annotated = annotate_features(probe_eset, source, make_syntactic=False)
        assert list(annotated.feature_ids)[2] == "1002_f_at"

    def test_invalid_unmapped(self, probe_eset, source):
        with pytest.raises(ValueError, match="unmapped"):
            annotate_features(probe_eset, source, unmapped="ignore")
