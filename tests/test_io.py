"""Tests for expression set loading and writing."""

import numpy as np
import pandas as pd
import pytest

from esetclust.errors import EmptyInputError
from esetclust.io import (
    load_expression_set,
    load_sample_metadata,
    sniff_delimiter,
    write_expression_set,
    write_table,
)


class TestSniffDelimiter:
    """Tests for sniff_delimiter."""

    def test_csv_and_tsv(self, tmp_path):
        csv_path = tmp_path / "a.csv"
        csv_path.write_text(",s1,s2\ng1,1.0,2.0\ng2,3.0,4.0\n")
        tsv_path = tmp_path / "a.txt"
        tsv_path.write_text("\ts1\ts2\ng1\t1.0\t2.0\ng2\t3.0\t4.0\n")
        assert sniff_delimiter(csv_path) == ","
        assert sniff_delimiter(tsv_path) == "\t"

    def test_undetectable(self, tmp_path):
        path = tmp_path / "single.txt"
        path.write_text("value\n1\n2\n")
        with pytest.raises(ValueError, match="delimiter"):
            sniff_delimiter(path)


class TestLoadExpressionSet:
    """Tests for load_expression_set."""

    def test_round_trip_with_metadata(self, expression_csv, grouped_eset):
        data_path, pheno_path = expression_csv
        eset = load_expression_set(data_path, sample_metadata=pheno_path, annotation="hgu95av2")

        assert eset.shape == grouped_eset.shape
        assert list(eset.feature_ids) == list(grouped_eset.feature_ids)
        assert list(eset.sample_ids) == list(grouped_eset.sample_ids)
        np.testing.assert_allclose(eset.data, grouped_eset.data)
        assert list(eset.sample_metadata["group"]) == list(grouped_eset.sample_metadata["group"])
        assert eset.annotation == "hgu95av2"

    def test_numeric_looking_sample_ids_kept_as_text(self, tmp_path):
        path = tmp_path / "expr.csv"
        path.write_text('"","01005","01010"\n"1000_at",7.6,7.5\n"1001_at",5.0,4.9\n')
        eset = load_expression_set(path)
        assert list(eset.sample_ids) == ["01005", "01010"]

    def test_numeric_looking_feature_ids_kept_as_text(self, tmp_path):
        path = tmp_path / "expr.csv"
        path.write_text('"","s1","s2"\n"00123",1,2\n"00456",3,4\n"1.10",5,6\n')
        eset = load_expression_set(path)
        assert list(eset.feature_ids) == ["00123", "00456", "1.10"]

    def test_duplicate_ids_kept_with_warning(self, tmp_path):
        path = tmp_path / "dup.csv"
        path.write_text(",A,A,B\ng1,1,2,3\ng1,4,5,6\n")
        with pytest.warns(UserWarning, match="duplicate"):
            eset = load_expression_set(path)
        assert list(eset.sample_ids) == ["A", "A", "B"]
        assert list(eset.feature_ids) == ["g1", "g1"]
        assert eset.data[1, 2] == 6.0

    def test_non_numeric_values(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text(",s1,s2\ng1,1.0,high\ng2,3.0,4.0\n")
        with pytest.raises(ValueError, match="non-numeric") as excinfo:
            load_expression_set(path)
        assert "high" in str(excinfo.value)

    def test_nan_warned(self, tmp_path):
        path = tmp_path / "nan.csv"
        path.write_text(",s1,s2\ng1,1.0,\ng2,3.0,4.0\n")
        with pytest.warns(UserWarning, match="NaN"):
            eset = load_expression_set(path)
        assert np.isnan(eset.data[0, 1])

    def test_no_features(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text(",s1,s2\n")
        with pytest.raises(EmptyInputError):
            load_expression_set(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_expression_set(tmp_path / "nope.csv")

    def test_metadata_dataframe(self, expression_csv, grouped_eset):
        data_path, _ = expression_csv
        metadata = grouped_eset.sample_metadata.iloc[::-1]
        eset = load_expression_set(data_path, sample_metadata=metadata)
        assert list(eset.sample_metadata["group"]) == list(grouped_eset.sample_metadata["group"])


class TestLoadSampleMetadata:
    """Tests for load_sample_metadata."""

    def test_aligned_to_sample_order(self, expression_csv):
        _, pheno_path = expression_csv
        metadata = load_sample_metadata(pheno_path, ["S03", "S01"])
        assert list(metadata.index) == ["S03", "S01"]
        assert "sample" not in metadata.columns

    def test_named_id_column(self, tmp_path):
        path = tmp_path / "pheno.csv"
        pd.DataFrame({"sex": ["M", "F"], "cod": ["01005", "01010"]}).to_csv(path, index=False)
        metadata = load_sample_metadata(path, ["01010"], sample_id_column="cod")
        assert metadata.loc["01010", "sex"] == "F"

    def test_missing_sample(self, expression_csv):
        _, pheno_path = expression_csv
        with pytest.raises(ValueError, match="no row"):
            load_sample_metadata(pheno_path, ["S01", "S99"])

    def test_unknown_id_column(self, expression_csv):
        _, pheno_path = expression_csv
        with pytest.raises(ValueError, match="Sample id column"):
            load_sample_metadata(pheno_path, ["S01"], sample_id_column="cod")


class TestWriters:
    """Tests for write_expression_set and write_table."""

    def test_write_and_reload(self, grouped_eset, tmp_path):
        data_path, samples_path = write_expression_set(grouped_eset, tmp_path / "out" / "all")

        assert data_path.name == "all.data.csv"
        assert samples_path.name == "all.samples.csv"

        reloaded = load_expression_set(data_path, sample_metadata=samples_path)
        np.testing.assert_allclose(reloaded.data, grouped_eset.data)
        assert list(reloaded.sample_metadata["batch"]) == list(grouped_eset.sample_metadata["batch"])

    def test_write_empty_rejected(self, tmp_path):
        from esetclust.core.expression_set import ExpressionSet

        with pytest.raises(EmptyInputError):
            write_expression_set(ExpressionSet(np.zeros((0, 2)), [], ["a", "b"]), tmp_path / "x")

    def test_write_table(self, tmp_path):
        path = write_table(pd.DataFrame({"a": [1, 2]}), tmp_path / "tables" / "t.csv", index=False)
        assert pd.read_csv(path)["a"].tolist() == [1, 2]
