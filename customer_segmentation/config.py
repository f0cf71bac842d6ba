"""
Segmentation Configuration Management

Unified configuration for the whole segmentation run: data source and
schema, target derivation, algorithm parameters, outputs and logging.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional
from pathlib import Path
import json
import logging
import yaml

from .data.dataset import Encoding, FeatureSpec
from .data.loader import MissingPolicy, TargetRule
from .models.params import InitMethod, KMeansParams, TreeParams


@dataclass
class DataConfig:
    """Configuration for data loading, schema and target derivation."""

    source: str  # Path to a delimited file
    target: TargetRule
    features: List[FeatureSpec] = field(default_factory=list)
    missing_policy: str = 'error'  # 'error', 'drop', 'sentinel'
    numeric_sentinel: float = 0.0
    categorical_sentinel: Optional[str] = None
    tree_features: Optional[List[str]] = None  # Default: every declared feature
    cluster_features: Optional[List[str]] = None  # Default: every declared feature
    cluster_encoding: str = 'onehot'  # 'onehot' or 'ordinal'

    def validate(self) -> List[str]:
        """Validate data configuration."""
        issues = []

        if not Path(self.source).exists():
            issues.append(f"Data source not found: {self.source}")

        if not self.features:
            issues.append("At least one feature must be declared")

        names = [spec.name for spec in self.features]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            issues.append(f"Duplicate feature names: {duplicates}")

        valid_policies = [policy.value for policy in MissingPolicy]
        if self.missing_policy not in valid_policies:
            issues.append(f"Invalid missing_policy '{self.missing_policy}'. Valid: {valid_policies}")

        valid_encodings = [encoding.value for encoding in Encoding]
        if self.cluster_encoding not in valid_encodings:
            issues.append(f"Invalid cluster_encoding '{self.cluster_encoding}'. Valid: {valid_encodings}")

        for label, selected in [('tree_features', self.tree_features), ('cluster_features', self.cluster_features)]:
            if selected is None:
                continue
            if not selected:
                issues.append(f"{label} must not be empty")
            unknown = [name for name in selected if name not in names]
            if unknown:
                issues.append(f"{label} references undeclared features: {unknown}")

        if self.missing_policy == MissingPolicy.SENTINEL.value and self.categorical_sentinel is not None:
            lacking = [
                spec.name for spec in self.features
                if spec.is_categorical and self.categorical_sentinel not in spec.categories
            ]
            if lacking:
                issues.append(
                    f"categorical_sentinel '{self.categorical_sentinel}' is not a declared "
                    f"category of: {lacking}"
                )

        return issues

    def to_dict(self) -> Dict:
        result = asdict(self)
        result['target'] = self.target.to_dict()
        result['features'] = [spec.to_dict() for spec in self.features]
        return result

    @classmethod
    def from_dict(cls, data: Dict) -> 'DataConfig':
        data = dict(data)
        data['target'] = TargetRule.from_dict(data['target'])
        data['features'] = [FeatureSpec.from_dict(spec) for spec in data.get('features', [])]
        return cls(**data)


@dataclass
class ClusteringConfig:
    """Configuration for k-means and the elbow diagnostics."""

    n_clusters: int = 4
    k_max: int = 10
    max_iter: int = 100
    tol: float = 1e-4
    init: str = 'k-means++'  # 'k-means++' or 'random'

    def validate(self) -> List[str]:
        """Validate clustering configuration."""
        issues = []

        if self.n_clusters < 1:
            issues.append("n_clusters must be at least 1")
        if self.k_max < self.n_clusters:
            issues.append(f"k_max ({self.k_max}) must be at least n_clusters ({self.n_clusters})")
        if self.max_iter < 1:
            issues.append("max_iter must be positive")
        if self.tol < 0:
            issues.append("tol must be non-negative")

        valid_inits = [method.value for method in InitMethod]
        if self.init not in valid_inits:
            issues.append(f"Invalid init '{self.init}'. Valid: {valid_inits}")

        return issues

    def to_params(self) -> KMeansParams:
        return KMeansParams(
            n_clusters=self.n_clusters,
            k_max=self.k_max,
            max_iter=self.max_iter,
            tol=self.tol,
            init=self.init,
        )


@dataclass
class OutputConfig:
    """Configuration for output files."""

    output_dir: str = "./output"
    write_records: bool = True  # segmented_records_raw.csv / _scaled.csv
    write_diagnostics: bool = True  # complexity table, importance, rules, centroids
    report_name: str = "run_report.json"

    def validate(self) -> List[str]:
        """Validate output configuration."""
        issues = []

        if not self.report_name.endswith('.json'):
            issues.append(f"report_name must be a .json file, got '{self.report_name}'")

        return issues


@dataclass
class LoggingConfig:
    """Configuration for the package logger."""

    level: str = 'INFO'
    log_file: Optional[str] = None

    def validate(self) -> List[str]:
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if self.level.upper() not in valid_levels:
            return [f"Invalid log level '{self.level}'. Valid: {valid_levels}"]
        return []

    @property
    def numeric_level(self) -> int:
        return getattr(logging, self.level.upper(), logging.INFO)


@dataclass
class SegmentationConfig:
    """
    Master configuration for a segmentation run.

    Example:
        >>> config = SegmentationConfig(
        ...     data=DataConfig(
        ...         source='data/customers.csv',
        ...         target=TargetRule(column='tenure', quantile=0.75),
        ...         features=[FeatureSpec.numeric('monthly_charges'),
        ...                   FeatureSpec.categorical('contract', ['month', 'one_year', 'two_year'])]
        ...     ),
        ...     tree_params=TreeParams(complexity_floor=0.01),
        ...     clustering=ClusteringConfig(n_clusters=4),
        ...     seed=42
        ... )
        >>> config.to_yaml('my_config.yaml')
    """

    # Core configurations
    data: DataConfig
    tree_params: TreeParams = field(default_factory=TreeParams)
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Workflow settings
    seed: int = 42
    verbose: bool = True

    # Metadata
    name: Optional[str] = None
    description: Optional[str] = None

    def validate(self) -> List[str]:
        """
        Validate entire configuration.

        Returns:
            List of validation error messages (empty if all valid)
        """
        issues = []

        issues.extend(self.data.validate())
        issues.extend(self.clustering.validate())
        issues.extend(self.output.validate())
        issues.extend(self.logging.validate())

        if self.seed < 0:
            issues.append("seed must be non-negative")

        return issues

    def to_dict(self) -> Dict:
        """Convert to dictionary."""
        return {
            'data': self.data.to_dict(),
            'tree_params': self.tree_params.to_dict(),
            'clustering': asdict(self.clustering),
            'output': asdict(self.output),
            'logging': asdict(self.logging),
            'seed': self.seed,
            'verbose': self.verbose,
            'name': self.name,
            'description': self.description
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'SegmentationConfig':
        """Create from dictionary."""
        return cls(
            data=DataConfig.from_dict(data['data']),
            tree_params=TreeParams(**data.get('tree_params', {})),
            clustering=ClusteringConfig(**data.get('clustering', {})),
            output=OutputConfig(**data.get('output', {})),
            logging=LoggingConfig(**data.get('logging', {})),
            seed=data.get('seed', 42),
            verbose=data.get('verbose', True),
            name=data.get('name'),
            description=data.get('description')
        )

    def to_json(self, filepath: str) -> None:
        """
        Export configuration to JSON file.

        Args:
            filepath: Path to save JSON file
        """
        Path(filepath).parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def from_json(cls, filepath: str) -> 'SegmentationConfig':
        """
        Load configuration from JSON file.

        Args:
            filepath: Path to JSON file

        Returns:
            SegmentationConfig instance
        """
        with open(filepath, 'r') as f:
            data = json.load(f)

        return cls.from_dict(data)

    def to_yaml(self, filepath: str) -> None:
        """
        Export configuration to YAML file.

        Args:
            filepath: Path to save YAML file
        """
        Path(filepath).parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_yaml(cls, filepath: str) -> 'SegmentationConfig':
        """
        Load configuration from YAML file.

        Args:
            filepath: Path to YAML file

        Returns:
            SegmentationConfig instance
        """
        with open(filepath, 'r') as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data)

    @classmethod
    def from_file(cls, filepath: str) -> 'SegmentationConfig':
        """Load from YAML or JSON, chosen by file extension."""
        suffix = Path(filepath).suffix.lower()
        if suffix in ('.yaml', '.yml'):
            return cls.from_yaml(filepath)
        if suffix == '.json':
            return cls.from_json(filepath)
        raise ValueError(f"Unsupported configuration format '{suffix}' (use .yaml, .yml or .json)")

    def summary(self) -> str:
        """
        Get human-readable summary of configuration.

        Returns:
            Formatted string describing the configuration
        """
        lines = [
            "=" * 70,
            "SEGMENTATION CONFIGURATION SUMMARY",
            "=" * 70,
        ]

        if self.name:
            lines.extend(["", f"Name: {self.name}"])
        if self.description:
            lines.extend(["", f"Description: {self.description}"])

        target = self.data.target
        cutoff = f"quantile {target.quantile}" if target.quantile is not None else f"{target.threshold}"
        lines.extend([
            "",
            "DATA CONFIGURATION:",
            f"  Source: {self.data.source}",
            f"  Target: {target.name} = {target.column} {target.direction} {cutoff}",
            f"  Features: {len(self.data.features)} "
            f"({sum(spec.is_categorical for spec in self.data.features)} categorical)",
            f"  Missing values: {self.data.missing_policy}",
            "",
            "DECISION TREE:",
            f"  Complexity floor: {self.tree_params.complexity_floor}",
            f"  Min split / bucket: {self.tree_params.min_split} / {self.tree_params.effective_min_bucket}",
            f"  Max depth: {self.tree_params.max_depth}",
            f"  CV folds: {self.tree_params.n_folds} (one-SE rule: {self.tree_params.one_se_rule})",
            "",
            "K-MEANS:",
            f"  Clusters: {self.clustering.n_clusters} (elbow up to {self.clustering.k_max})",
            f"  Init: {self.clustering.init}, max_iter: {self.clustering.max_iter}, tol: {self.clustering.tol}",
            "",
            "OUTPUT CONFIGURATION:",
            f"  Output directory: {self.output.output_dir}",
            f"  Write records: {self.output.write_records}",
            f"  Write diagnostics: {self.output.write_diagnostics}",
            "",
            "WORKFLOW SETTINGS:",
            f"  Seed: {self.seed}",
            f"  Verbose output: {self.verbose}",
            "=" * 70
        ])

        return "\n".join(lines)


def create_default_config(
    data_source: str,
    target: TargetRule,
    features: List[FeatureSpec],
    output_dir: str = './output'
) -> SegmentationConfig:
    """
    Create a default configuration with reasonable parameters.

    Args:
        data_source: Path to the input file
        target: Derivation of the binary outcome
        features: Declared predictor features
        output_dir: Directory for output files

    Returns:
        SegmentationConfig with default parameters
    """
    return SegmentationConfig(
        data=DataConfig(
            source=data_source,
            target=target,
            features=list(features)
        ),
        output=OutputConfig(
            output_dir=output_dir
        )
    )
