"""
Unit Tests for Segmentation Configuration

Tests cover:
- DataConfig, ClusteringConfig, OutputConfig and LoggingConfig validation
- SegmentationConfig validation
- Configuration serialization (JSON, YAML, dict)
- Default configuration creation
"""

import pytest
import json
import logging
import yaml
from pathlib import Path

from customer_segmentation.config import (
    ClusteringConfig,
    DataConfig,
    LoggingConfig,
    OutputConfig,
    SegmentationConfig,
    create_default_config
)
from customer_segmentation.data import FeatureKind, FeatureSpec, TargetRule
from customer_segmentation.models import KMeansParams, TreeParams


@pytest.mark.unit
class TestDataConfig:
    """Test DataConfig validation."""

    def test_valid_data_config(self, segmentation_config):
        assert segmentation_config.data.validate() == []

    def test_missing_source(self, customer_schema, tenure_rule):
        config = DataConfig(source='no/such/file.csv', target=tenure_rule, features=customer_schema)

        assert any("not found" in issue for issue in config.validate())

    def test_no_features(self, temp_data_file, tenure_rule):
        config = DataConfig(source=str(temp_data_file), target=tenure_rule)

        assert any("At least one feature" in issue for issue in config.validate())

    def test_duplicate_features(self, temp_data_file, tenure_rule):
        features = [FeatureSpec.numeric('monthly_charges'), FeatureSpec.numeric('monthly_charges')]
        config = DataConfig(source=str(temp_data_file), target=tenure_rule, features=features)

        assert any("Duplicate" in issue for issue in config.validate())

    def test_invalid_policy_and_encoding(self, temp_data_file, tenure_rule, customer_schema):
        config = DataConfig(
            source=str(temp_data_file),
            target=tenure_rule,
            features=customer_schema,
            missing_policy='impute',
            cluster_encoding='binary'
        )
        issues = config.validate()

        assert any("missing_policy" in issue for issue in issues)
        assert any("cluster_encoding" in issue for issue in issues)

    def test_unknown_feature_subset(self, temp_data_file, tenure_rule, customer_schema):
        config = DataConfig(
            source=str(temp_data_file),
            target=tenure_rule,
            features=customer_schema,
            tree_features=['monthly_charges', 'region']
        )

        assert any("undeclared features: ['region']" in issue for issue in config.validate())

    def test_sentinel_not_a_category(self, temp_data_file, tenure_rule, customer_schema):
        config = DataConfig(
            source=str(temp_data_file),
            target=tenure_rule,
            features=customer_schema,
            missing_policy='sentinel',
            categorical_sentinel='unknown'
        )

        assert any("categorical_sentinel" in issue for issue in config.validate())

    def test_dict_round_trip(self, segmentation_config):
        data = segmentation_config.data.to_dict()
        restored = DataConfig.from_dict(data)

        assert restored.target == segmentation_config.data.target
        assert restored.features == segmentation_config.data.features
        assert data['features'][1] == {
            'name': 'contract', 'kind': 'categorical', 'categories': ['month', 'one_year', 'two_year']
        }


@pytest.mark.unit
class TestOtherSections:
    """Test the clustering, output and logging sections."""

    def test_clustering_defaults_valid(self):
        assert ClusteringConfig().validate() == []

    def test_clustering_issues(self):
        issues = ClusteringConfig(n_clusters=0, k_max=0, max_iter=0, tol=-1.0, init='forgy').validate()

        assert len(issues) == 4
        assert any("init" in issue for issue in issues)

    def test_clustering_to_params(self):
        params = ClusteringConfig(n_clusters=3, k_max=6, init='random').to_params()

        assert params == KMeansParams(n_clusters=3, k_max=6, init='random')

    def test_output_report_name(self):
        assert OutputConfig().validate() == []
        assert OutputConfig(report_name='report.txt').validate()

    def test_logging_level(self):
        assert LoggingConfig(level='debug').numeric_level == logging.DEBUG
        assert LoggingConfig(level='LOUD').validate()


@pytest.mark.unit
class TestSegmentationConfig:
    """Test the master configuration."""

    def test_valid_config(self, segmentation_config):
        assert segmentation_config.validate() == []

    def test_negative_seed(self, segmentation_config):
        segmentation_config.seed = -1

        assert "seed must be non-negative" in segmentation_config.validate()

    def test_yaml_round_trip(self, segmentation_config, tmp_path):
        path = tmp_path / "config.yaml"
        segmentation_config.to_yaml(str(path))

        with open(path) as f:
            raw = yaml.safe_load(f)
        assert raw['data']['target']['quantile'] == 0.75

        restored = SegmentationConfig.from_file(str(path))
        assert restored.to_dict() == segmentation_config.to_dict()
        assert restored.tree_params == segmentation_config.tree_params
        assert restored.data.features[1].kind == FeatureKind.CATEGORICAL

    def test_json_round_trip(self, segmentation_config, tmp_path):
        path = tmp_path / "nested" / "config.json"
        segmentation_config.to_json(str(path))

        with open(path) as f:
            assert json.load(f)['seed'] == 42
        assert SegmentationConfig.from_file(str(path)).to_dict() == segmentation_config.to_dict()

    def test_unsupported_format(self, tmp_path):
        with pytest.raises(ValueError, match="Unsupported"):
            SegmentationConfig.from_file(str(tmp_path / "config.toml"))

    def test_minimal_dict_uses_defaults(self, temp_data_file):
        config = SegmentationConfig.from_dict({
            'data': {
                'source': str(temp_data_file),
                'target': {'column': 'tenure', 'threshold': 24.0},
                'features': [{'name': 'monthly_charges'}],
            }
        })

        assert config.tree_params == TreeParams()
        assert config.clustering == ClusteringConfig()
        assert config.seed == 42
        assert config.data.target.threshold == 24.0
        assert config.validate() == []

    def test_summary(self, segmentation_config):
        text = segmentation_config.summary()

        assert "SEGMENTATION CONFIGURATION SUMMARY" in text
        assert "long_tenure = tenure > quantile 0.75" in text
        assert "3 (1 categorical)" in text


@pytest.mark.unit
def test_create_default_config(temp_data_file, customer_schema):
    """Default configuration wires source, target, features and output directory."""
    rule = TargetRule(column='tenure', quantile=0.75)
    config = create_default_config(str(temp_data_file), rule, customer_schema, output_dir='out')

    assert config.data.source == str(temp_data_file)
    assert config.data.features == customer_schema
    assert config.output.output_dir == 'out'
    assert config.validate() == []


@pytest.mark.unit
def test_example_config_parses():
    """The shipped example is complete apart from its data file."""
    path = Path(__file__).resolve().parent.parent / "config_examples" / "customer_tenure.yaml"
    config = SegmentationConfig.from_file(str(path))

    assert config.data.target.quantile == 0.75
    assert config.data.features[3].kind == FeatureKind.CATEGORICAL
    assert config.validate() == [f"Data source not found: {config.data.source}"]
    categorical = [spec for spec in config.data.features if spec.kind == FeatureKind.CATEGORICAL]
    assert all(config.data.categorical_sentinel in spec.categories for spec in categorical)
