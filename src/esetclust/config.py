"""
Configuration file support for esetclust workflows.

Supports YAML and JSON config files with CLI argument override.

Example ``workflow.yaml``:

    input: data/all_expr.csv
    metadata: data/all_pheno.csv
    output: results/
    annotation: {source: table, path: data/probe_symbols.csv, name: hgu95av2}
    subset: {column: mol.biol, values: [BCR/ABL, NEG, ALL1/AF4]}
    differential: {factor: mol.biol, n_top: 50}
    heatmap: {n_features: 50, annotate_by: mol.biol}
    classification: {label: mol.biol, n_features: 50}
    clustering: {method: complete, k: 3}
    random_state: 1234
"""

import json
from argparse import Namespace
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from esetclust.cluster.hclust import LINKAGE_METHODS

__all__ = [
    'AnnotationConfig',
    'SubsetConfig',
    'DifferentialConfig',
    'HeatmapConfig',
    'ClassificationConfig',
    'ClusteringConfig',
    'WorkflowConfig',
    'load_config',
    'validate_config',
    'config_from_dict',
    'merge_config_with_args',
]

ANNOTATION_SOURCES = ('table', 'mygene')
HEATMAP_SCALES = ('row', 'none')


@dataclass
class AnnotationConfig:
    """Feature annotation source."""
    source: str = "table"
    path: Optional[Path] = None
    id_column: str = "probe"
    symbol_column: str = "symbol"
    name: Optional[str] = None
    scopes: str = "reporter"
    species: str = "human"
    unmapped: str = "keep"


@dataclass
class SubsetConfig:
    """Keep samples whose ``column`` value is in ``values``."""
    column: str = ""
    values: List[str] = field(default_factory=list)


@dataclass
class DifferentialConfig:
    """Moderated linear model ``~ factor [+ covariates]``."""
    factor: str = ""
    covariates: List[str] = field(default_factory=list)
    reference: Optional[str] = None
    n_top: int = 50
    adjust: str = "BH"


@dataclass
class HeatmapConfig:
    """Heatmap of the top features."""
    n_features: int = 50
    annotate_by: Optional[str] = None
    scale: str = "row"


@dataclass
class ClassificationConfig:
    """Random forest check on the top features."""
    label: Optional[str] = None
    n_features: int = 50
    train_fraction: float = 0.7
    n_estimators: int = 500


@dataclass
class ClusteringConfig:
    """Hierarchical clustering of samples on the top features."""
    metric: str = "euclidean"
    method: str = "complete"
    k: int = 3
    n_features: int = 50
    scale: bool = False


@dataclass
class WorkflowConfig:
    """
    Complete configuration for ``esetclust run``.

    Sections left out of the file are skipped by the workflow (annotation,
    subset, classification) or use their defaults.
    """
    input: Optional[Path] = None
    metadata: Optional[Path] = None
    output: Optional[Path] = None
    sample_id_column: Optional[str] = None
    annotation: Optional[AnnotationConfig] = None
    subset: Optional[SubsetConfig] = None
    differential: DifferentialConfig = field(default_factory=DifferentialConfig)
    heatmap: HeatmapConfig = field(default_factory=HeatmapConfig)
    classification: Optional[ClassificationConfig] = None
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    random_state: Optional[int] = None


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Parameters:
        config_path: Path to config file (.yaml, .yml, or .json)

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is unsupported or invalid

    Examples:
        >>> config = load_config(Path("workflow.yaml"))
        >>> print(config['differential']['factor'])
        mol.biol
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    try:
        with open(config_path, 'r') as f:
            if suffix in ('.yaml', '.yml'):
                config = yaml.safe_load(f)
            elif suffix == '.json':
                config = json.load(f)
            else:
                raise ValueError(
                    f"Unsupported config format: {suffix}. "
                    f"Use .yaml, .yml, or .json"
                )
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}")

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ValueError("Config file must contain a dictionary/mapping at top level")

    return config


def _section(cls, values: Optional[Dict[str, Any]], name: str):
    if values is None:
        return None
    if not isinstance(values, dict):
        raise ValueError(f"Config section '{name}' must be a mapping, got {type(values).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown keys in config section '{name}': {unknown}")
    return cls(**values)


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and values.

    Parameters:
        config: Configuration dictionary

    Raises:
        ValueError: If configuration is invalid
    """
    known = {f.name for f in fields(WorkflowConfig)}
    unknown = sorted(set(config) - known)
    if unknown:
        raise ValueError(f"Unknown config keys: {unknown}")

    annotation = config.get('annotation') or {}
    if 'source' in annotation and annotation['source'] not in ANNOTATION_SOURCES:
        raise ValueError(
            f"Invalid annotation source '{annotation['source']}'. "
            f"Choose from: {', '.join(ANNOTATION_SOURCES)}"
        )
    if annotation.get('source', 'table') == 'table' and annotation and not annotation.get('path'):
        raise ValueError("Table annotation requires 'path'")
    if annotation.get('unmapped', 'keep') not in ('keep', 'drop'):
        raise ValueError(f"annotation.unmapped must be 'keep' or 'drop', got {annotation['unmapped']!r}")

    subset = config.get('subset')
    if subset is not None:
        if not subset.get('column'):
            raise ValueError("subset requires 'column'")
        if not isinstance(subset.get('values'), list) or not subset['values']:
            raise ValueError("subset.values must be a non-empty list")

    for section, key in (
        ('differential', 'n_top'),
        ('heatmap', 'n_features'),
        ('classification', 'n_features'),
        ('classification', 'n_estimators'),
        ('clustering', 'n_features'),
        ('clustering', 'k'),
    ):
        value = (config.get(section) or {}).get(key)
        if value is not None and (not isinstance(value, int) or isinstance(value, bool) or value <= 0):
            raise ValueError(f"{section}.{key} must be a positive integer, got: {value}")

    fraction = (config.get('classification') or {}).get('train_fraction')
    if fraction is not None and not (isinstance(fraction, (int, float)) and 0 < fraction < 1):
        raise ValueError(f"classification.train_fraction must be in (0, 1), got: {fraction}")

    scale = (config.get('heatmap') or {}).get('scale')
    if scale is not None and scale not in HEATMAP_SCALES:
        raise ValueError(
            f"Invalid heatmap scale '{scale}'. Choose from: {', '.join(HEATMAP_SCALES)}"
        )

    method = (config.get('clustering') or {}).get('method')
    if method is not None and method not in LINKAGE_METHODS:
        raise ValueError(
            f"Invalid linkage method '{method}'. Choose from: {', '.join(LINKAGE_METHODS)}"
        )

    adjust = (config.get('differential') or {}).get('adjust')
    if adjust is not None and adjust not in ('BH', 'BY', 'bonferroni', 'none'):
        raise ValueError(f"Invalid p-value adjustment '{adjust}'")

    seed = config.get('random_state')
    if seed is not None and (not isinstance(seed, int) or isinstance(seed, bool)):
        raise ValueError(f"random_state must be an integer, got: {seed}")


def config_from_dict(config: Dict[str, Any]) -> WorkflowConfig:
    """
    Validate a config mapping and build the WorkflowConfig.

    Raises:
        ValueError: If configuration is invalid
    """
    validate_config(config)

    annotation = _section(AnnotationConfig, config.get('annotation'), 'annotation')
    if annotation is not None and annotation.path is not None:
        annotation.path = Path(annotation.path)

    subset = _section(SubsetConfig, config.get('subset'), 'subset')
    if subset is not None:
        subset.values = [str(v) for v in subset.values]

    return WorkflowConfig(
        input=Path(config['input']) if config.get('input') else None,
        metadata=Path(config['metadata']) if config.get('metadata') else None,
        output=Path(config['output']) if config.get('output') else None,
        sample_id_column=config.get('sample_id_column'),
        annotation=annotation,
        subset=subset,
        differential=_section(DifferentialConfig, config.get('differential') or {}, 'differential'),
        heatmap=_section(HeatmapConfig, config.get('heatmap') or {}, 'heatmap'),
        classification=_section(ClassificationConfig, config.get('classification'), 'classification'),
        clustering=_section(ClusteringConfig, config.get('clustering') or {}, 'clustering'),
        random_state=config.get('random_state'),
    )


def _merge_value(cli_value: Any, config_value: Any, was_explicitly_set: bool) -> Any:
    """
    Merge a single config value with CLI argument.

    Rules:
    - CLI args ALWAYS override config if explicitly set
    - If CLI arg not set, use config value
    - If neither set, keep CLI default
    """
    if was_explicitly_set:
        return cli_value
    if config_value is not None:
        return config_value
    return cli_value


def _explicit_args(cli_args: Optional[List[str]]) -> set:
    short_to_long = {'i': 'input', 'o': 'output', 'm': 'metadata', 'k': 'k'}
    explicit = set()
    for arg in cli_args or []:
        if arg.startswith('--'):
            explicit.add(arg[2:].split('=', 1)[0].replace('-', '_'))
        elif arg.startswith('-') and len(arg) == 2 and arg[1] in short_to_long:
            explicit.add(short_to_long[arg[1]])
    return explicit


# CLI override name -> (config section or None, config key)
_OVERRIDES = {
    'input': (None, 'input'),
    'metadata': (None, 'metadata'),
    'output': (None, 'output'),
    'random_state': (None, 'random_state'),
    'factor': ('differential', 'factor'),
    'n_top': ('differential', 'n_top'),
    'method': ('clustering', 'method'),
    'metric': ('clustering', 'metric'),
    'k': ('clustering', 'k'),
}


def merge_config_with_args(
    config: Dict[str, Any],
    args: Namespace,
    cli_args: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Merge config file values with CLI overrides.

    Priority (highest to lowest):
    1. Explicitly provided CLI arguments
    2. Config file values
    3. CLI argument defaults

    Parameters:
        config: Configuration dictionary from load_config()
        args: Parsed CLI arguments (argparse.Namespace)
        cli_args: Raw CLI arguments list (for detecting explicit values).
                  If None, an argument counts as explicit when it is not None.

    Returns:
        New configuration dictionary with the overrides applied

    Examples:
        >>> config = load_config(Path("workflow.yaml"))
        >>> args = parser.parse_args(["run", "--config", "workflow.yaml", "-k", "4"])
        >>> merged = merge_config_with_args(config, args, ["-k", "4"])
        >>> merged['clustering']['k']
        4
    """
    explicit = _explicit_args(cli_args)
    merged = {
        key: dict(value) if isinstance(value, dict) else value
        for key, value in config.items()
    }

    for arg_name, (section, key) in _OVERRIDES.items():
        if not hasattr(args, arg_name):
            continue
        cli_value = getattr(args, arg_name)
        was_explicit = arg_name in explicit if cli_args is not None else cli_value is not None

        if section is not None and merged.get(section) is None:
            merged[section] = {}
        target = merged if section is None else merged[section]
        value = _merge_value(cli_value, target.get(key), was_explicit)
        if value is None:
            continue
        if isinstance(value, Path):
            value = str(value)
        target[key] = value

    return merged
