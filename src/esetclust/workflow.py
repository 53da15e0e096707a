"""
End-to-end workflow: from an expression table to clusters of samples.

    load → annotate → subset samples → moderated F ranking → heatmap
         → random forest check → adapter + hierarchical clustering → write

Each step is a plain call into the library; ``run_workflow`` only wires
them together from a WorkflowConfig and collects the results, so the same
analysis can be reproduced step by step in a notebook.

Examples:
    >>> from esetclust.config import load_config, config_from_dict
    >>> from esetclust.workflow import run_workflow
    >>>
    >>> config = config_from_dict(load_config(Path("workflow.yaml")))
    >>> result = run_workflow(config)
    >>> result.top_table.head()
    >>> result.clustering.members()
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import pandas as pd

from esetclust.adapter import es_hclust
from esetclust.annotation import (
    AnnotationSource,
    MyGeneAnnotationSource,
    TableAnnotationSource,
    annotate_features,
)
from esetclust.cluster.hclust import HclustSession
from esetclust.config import AnnotationConfig, SubsetConfig, WorkflowConfig
from esetclust.core.expression_set import ExpressionSet
from esetclust.core.labels import make_unique
from esetclust.errors import EmptyInputError
from esetclust.io.loaders import load_expression_set
from esetclust.io.writers import write_table
from esetclust.ml.classify import ClassificationResult, random_forest_check
from esetclust.stats import DesignMatrix, ModeratedFit, build_design_matrix, ebayes, lm_fit, top_table
from esetclust.viz.core import Figure, FigureCollection
from esetclust.viz.heatmap import plot_expression_heatmap

logger = logging.getLogger(__name__)

__all__ = [
    'WorkflowResult',
    'run_workflow',
    'build_annotation_source',
    'subset_samples',
    'unique_feature_ids',
]


@dataclass
class WorkflowResult:
    """
    Everything the workflow produced.

    Attributes:
        eset: Expression set after annotation and sample subsetting
        design: Design matrix of the differential model
        moderated: Moderated fit (t and F statistics)
        top_table: Ranked features (moderated F over the factor coefficients)
        heatmap: Heatmap of the top features
        classification: Random forest check, if configured
        clustering: Clustering session on the top features
        figures: All figures by name
        artifacts: Written files by name (empty when no output is set)
    """
    eset: ExpressionSet
    design: DesignMatrix
    moderated: ModeratedFit
    top_table: pd.DataFrame
    heatmap: Figure
    clustering: HclustSession
    classification: Optional[ClassificationResult] = None
    figures: FigureCollection = field(default_factory=FigureCollection)
    artifacts: Dict[str, Path] = field(default_factory=dict)

    def cluster_table(self) -> pd.DataFrame:
        """Cluster assignment per sample, with the original sample ids."""
        table = pd.DataFrame({
            'sample_id': [str(s) for s in self.eset.sample_ids],
            'label': list(self.clustering.clusters.index),
            'cluster': self.clustering.clusters.values,
        })
        factor = self.design.factor
        if factor in self.eset.sample_metadata.columns:
            table[factor] = self.eset.sample_metadata[factor].astype(object).values
        return table


def build_annotation_source(config: AnnotationConfig) -> AnnotationSource:
    """Create the annotation source named by the config."""
    if config.source == "table":
        return TableAnnotationSource.from_csv(
            config.path,
            id_column=config.id_column,
            symbol_column=config.symbol_column,
            name=config.name,
        )
    if config.source == "mygene":
        return MyGeneAnnotationSource(
            scopes=config.scopes,
            species=config.species,
            name=config.name or "mygene",
        )
    raise ValueError(f"Unknown annotation source '{config.source}'")


def subset_samples(eset: ExpressionSet, subset: SubsetConfig) -> ExpressionSet:
    """
    Keep samples whose ``subset.column`` value is one of ``subset.values``.

    The column becomes categorical with the requested values as categories
    (in the given order), unused ones removed.

    Raises:
        KeyError: If the column is missing
        EmptyInputError: If no sample matches
    """
    metadata = eset.sample_metadata
    if subset.column not in metadata.columns:
        raise KeyError(f"Sample metadata has no column '{subset.column}'")

    values = metadata[subset.column].map(lambda v: None if pd.isna(v) else str(v))
    keep = values.isin(subset.values).values
    if not keep.any():
        raise EmptyInputError(
            f"No samples with {subset.column} in {subset.values}"
        )

    selected = eset.select_samples(keep)
    selected_metadata = selected.sample_metadata.copy()
    selected_metadata[subset.column] = pd.Categorical(
        values[keep].values, categories=subset.values
    ).remove_unused_categories()

    logger.info(
        f"Kept {int(keep.sum())}/{eset.n_samples} samples with "
        f"{subset.column} in {subset.values}"
    )
    return selected.with_sample_metadata(selected_metadata)


def unique_feature_ids(eset: ExpressionSet) -> ExpressionSet:
    """Make duplicated feature ids unique (``make_unique`` suffixes), warning when any change."""
    if eset.feature_ids.is_unique:
        return eset
    warnings.warn(
        f"{int(eset.feature_ids.duplicated().sum())} duplicate feature ids made unique "
        "before selection",
        UserWarning,
        stacklevel=2,
    )
    return eset.with_feature_ids(make_unique(eset.feature_ids))


def run_workflow(config: WorkflowConfig) -> WorkflowResult:
    """
    Run the full analysis described by ``config``.

    Raises:
        ValueError: If input or differential.factor is missing, or a step
            rejects the data
        FileNotFoundError: If an input file does not exist
    """
    if config.input is None:
        raise ValueError("Workflow config requires 'input'")
    if not config.differential.factor:
        raise ValueError("Workflow config requires 'differential.factor'")

    # --- Step 1: Load ---
    eset = load_expression_set(
        config.input,
        sample_metadata=config.metadata,
        sample_id_column=config.sample_id_column,
    )

    # --- Step 2: Annotate ---
    if config.annotation is not None:
        source = build_annotation_source(config.annotation)
        eset = annotate_features(eset, source, unmapped=config.annotation.unmapped)
    eset = unique_feature_ids(eset)

    # --- Step 3: Subset samples ---
    if config.subset is not None:
        eset = subset_samples(eset, config.subset)

    # --- Step 4: Differential expression ---
    diff = config.differential
    design = build_design_matrix(
        eset.sample_metadata,
        factor=diff.factor,
        covariates=diff.covariates,
        reference=diff.reference,
    )
    moderated = ebayes(lm_fit(eset, design))
    table = top_table(moderated, coef=None, n=None, adjust=diff.adjust)
    top = table.head(diff.n_top)
    logger.info(
        f"Ranked {len(table)} features by moderated F over {len(design.factor_cols)} "
        f"coefficients; {int((table['adj_p_value'] < 0.05).sum())} with adj. p < 0.05"
    )

    figures = FigureCollection()

    # --- Step 5: Heatmap ---
    heatmap_cfg = config.heatmap
    heatmap = plot_expression_heatmap(
        eset,
        features=list(table.index[:heatmap_cfg.n_features]),
        annotate_by=heatmap_cfg.annotate_by,
        scale=heatmap_cfg.scale,
        title=f"Top {min(heatmap_cfg.n_features, len(table))} features by moderated F",
    )
    figures.add("heatmap", heatmap)

    # --- Step 6: Random forest check ---
    classification = None
    if config.classification is not None:
        cls_cfg = config.classification
        classification = random_forest_check(
            eset,
            label=cls_cfg.label or diff.factor,
            features=list(table.index[:cls_cfg.n_features]),
            train_fraction=cls_cfg.train_fraction,
            n_estimators=cls_cfg.n_estimators,
            random_state=config.random_state,
        )

    # --- Step 7: Cluster samples on the top features ---
    clu = config.clustering
    session = es_hclust(
        eset.select_features(list(table.index[:clu.n_features])),
        metric=clu.metric,
        method=clu.method,
        k=clu.k,
        scale=clu.scale,
    )
    figures.add("dendrogram", session.plot_dendrogram())

    result = WorkflowResult(
        eset=eset,
        design=design,
        moderated=moderated,
        top_table=top,
        heatmap=heatmap,
        clustering=session,
        classification=classification,
        figures=figures,
    )

    # --- Step 8: Write ---
    if config.output is not None:
        result.artifacts = write_artifacts(result, config.output)

    return result


def write_artifacts(result: WorkflowResult, output: Path) -> Dict[str, Path]:
    """Write tables and figures of a workflow run into ``output``."""
    output = Path(output)
    output.mkdir(parents=True, exist_ok=True)

    artifacts = {
        'top_table': write_table(result.top_table, output / "top_table.csv"),
        'clusters': write_table(result.cluster_table(), output / "clusters.csv", index=False),
    }
    if result.classification is not None:
        artifacts['confusion_matrix'] = write_table(
            result.classification.confusion, output / "confusion_matrix.csv"
        )

    artifacts.update(result.figures.save_all(output))

    logger.info(f"Wrote {len(artifacts)} artifacts to {output}")
    return artifacts
