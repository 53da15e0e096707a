"""End-to-end tests for the workflow runner."""

import pandas as pd
import pytest

from esetclust.config import SubsetConfig, config_from_dict
from esetclust.errors import EmptyInputError
from esetclust.workflow import WorkflowResult, run_workflow, subset_samples


@pytest.fixture
def annotation_csv(tmp_path):
    path = tmp_path / "probe_symbols.csv"
    pd.DataFrame({
        "probe": ["p0000_at", "p0001_at", "p0002_at", "p0150_at"],
        "symbol": ["MAPK3", "TIE1", "MAPK3", "CYP2E1"],
    }).to_csv(path, index=False)
    return path


@pytest.fixture
def workflow_config(expression_csv, annotation_csv, tmp_path):
    data_path, pheno_path = expression_csv
    return {
        "input": str(data_path),
        "metadata": str(pheno_path),
        "output": str(tmp_path / "results"),
        "annotation": {"source": "table", "path": str(annotation_csv), "name": "hgu95av2"},
        "differential": {"factor": "group", "n_top": 30},
        "heatmap": {"n_features": 20, "annotate_by": "group"},
        "classification": {"label": "group", "n_features": 20, "n_estimators": 100},
        "clustering": {"method": "average", "k": 3, "n_features": 20},
        "random_state": 1234,
    }


class TestRunWorkflow:
    """Full runs on synthetic data."""

    def test_full_run(self, workflow_config, tmp_path):
        result = run_workflow(config_from_dict(workflow_config))

        assert isinstance(result, WorkflowResult)
        assert result.eset.annotation == "hgu95av2"
        assert len(result.top_table) == 30
        assert {"MAPK3", "TIE1", "MAPK3.1"} <= set(result.top_table.index[:20])
        assert list(result.top_table.columns[:2]) == ["group_G2", "group_G3"]
        assert result.classification.accuracy == 1.0
        assert result.clustering.n_clusters == 3

        clusters = result.cluster_table()
        for group in ("G1", "G2", "G3"):
            assert clusters.loc[clusters["group"] == group, "cluster"].nunique() == 1

        out = tmp_path / "results"
        for name in ("top_table.csv", "clusters.csv", "confusion_matrix.csv", "heatmap.png", "dendrogram.png"):
            assert (out / name).exists()
        assert set(result.artifacts) == {"top_table", "clusters", "confusion_matrix", "heatmap", "dendrogram"}

        written = pd.read_csv(out / "top_table.csv", index_col=0)
        assert written.index.name == "feature_id"
        assert list(written.index) == list(result.top_table.index)

    def test_subset_and_no_output(self, workflow_config):
        workflow_config.pop("output")
        workflow_config.pop("classification")
        workflow_config["subset"] = {"column": "group", "values": ["G3", "G1"]}
        workflow_config["clustering"]["k"] = 2

        result = run_workflow(config_from_dict(workflow_config))

        assert result.eset.n_samples == 16
        assert result.design.levels == ["G3", "G1"]
        assert result.classification is None
        assert result.artifacts == {}
        assert "log_fc" in result.top_table.columns

    def test_requires_factor(self, workflow_config):
        workflow_config["differential"] = {}
        with pytest.raises(ValueError, match="differential.factor"):
            run_workflow(config_from_dict(workflow_config))

    def test_requires_input(self):
        with pytest.raises(ValueError, match="input"):
            run_workflow(config_from_dict({"differential": {"factor": "group"}}))


class TestSubsetSamples:
    """Tests for subset_samples."""

    def test_unused_categories_dropped(self, grouped_eset):
        subset = subset_samples(grouped_eset, SubsetConfig(column="group", values=["G2", "G9"]))
        assert subset.n_samples == 8
        assert list(subset.sample_metadata["group"].cat.categories) == ["G2"]

    def test_no_match(self, grouped_eset):
        with pytest.raises(EmptyInputError):
            subset_samples(grouped_eset, SubsetConfig(column="group", values=["G9"]))

    def test_missing_column(self, grouped_eset):
        with pytest.raises(KeyError):
            subset_samples(grouped_eset, SubsetConfig(column="mol.biol", values=["NEG"]))
