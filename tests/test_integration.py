"""
Integration Tests for the Segmentation Workflow

Tests end-to-end workflows combining every module:
- Pipeline stages from a CSV file to exported tables
- Reproducibility under a fixed seed
- Stage ordering
- Command-line entry point
"""

import json

import pytest
import numpy as np
import pandas as pd

from customer_segmentation import SegmentationPipeline
from customer_segmentation.data import FeatureSpec, TargetRule
from run_segmentation import main

EXPECTED_FILES = [
    "segmented_records_raw.csv",
    "segmented_records_scaled.csv",
    "elbow_curve.csv",
    "summary_tree.csv",
    "summary_cluster.csv",
    "joint_tree.csv",
    "joint_cluster.csv",
    "conditional_tree.csv",
    "conditional_cluster.csv",
    "complexity_table.csv",
    "feature_importance.csv",
    "segment_rules.txt",
    "cluster_centroids.csv",
    "run_report.json",
]


@pytest.mark.integration
class TestPipeline:
    """Test the complete pipeline on the synthetic customer table."""

    @pytest.fixture
    def completed_pipeline(self, segmentation_config):
        pipeline = SegmentationPipeline(segmentation_config)
        pipeline.run_all()
        return pipeline

    def test_all_stages_complete(self, completed_pipeline):
        assert all(completed_pipeline.get_state().values())

    def test_every_output_written(self, completed_pipeline, segmentation_config, tmp_path):
        output_dir = tmp_path / "output"

        for filename in EXPECTED_FILES:
            assert (output_dir / filename).exists(), filename

    def test_records_carry_both_assignments(self, completed_pipeline, tmp_path):
        """Every record has exactly one tree segment and one cluster."""
        records = pd.read_csv(tmp_path / "output" / "segmented_records_raw.csv")
        n_segments = len(completed_pipeline.tree_segmenter.rules_)

        assert len(records) == 300
        assert {'tree_segment', 'cluster_segment', 'long_tenure'} <= set(records.columns)
        assert records['tree_segment'].between(1, n_segments).all()
        assert set(records['cluster_segment']) == {1, 2, 3}

    def test_contract_drives_tree(self, completed_pipeline):
        """Tenure depends mostly on contract, so the tree splits on it."""
        importance = completed_pipeline.tree_segmenter.feature_importance_

        assert importance.loc[0, 'feature'] == 'contract'
        assert len(completed_pipeline.tree_segmenter.rules_) >= 2

    def test_probability_tables_normalised(self, completed_pipeline):
        for method in ('tree', 'cluster'):
            results = completed_pipeline.evaluation[method]
            assert results['joint'].total() == pytest.approx(1.0, abs=1e-9)
            np.testing.assert_allclose(results['conditional'].row_sums(), 1.0, atol=1e-9)

    def test_comparison_table(self, completed_pipeline):
        comparison = completed_pipeline.evaluation['comparison']

        assert list(comparison.index) == ['tree_segment', 'cluster_segment']
        assert (comparison['separation_total'] >= 0).all()

    def test_report_contents(self, completed_pipeline, tmp_path):
        with open(tmp_path / "output" / "run_report.json") as f:
            report = json.load(f)

        assert report['n_records'] == 300
        assert report['features'] == ['monthly_charges', 'contract', 'support_calls']
        assert report['kmeans']['n_clusters'] == 3
        assert report['tree']['n_segments'] == len(report['tree']['rules'])
        assert set(report['separation']) == {'tree', 'cluster'}

    def test_rules_file_matches_segments(self, completed_pipeline, tmp_path):
        text = (tmp_path / "output" / "segment_rules.txt").read_text()

        for rule in completed_pipeline.tree_segmenter.rules_:
            assert f"Segment {rule.segment_id}:" in text

    def test_reproducible(self, segmentation_config):
        """The same seed gives identical assignments."""
        first = SegmentationPipeline(segmentation_config)
        first.run_all()
        second = SegmentationPipeline(segmentation_config)
        second.run_all()

        pd.testing.assert_series_equal(first.tree_assignment, second.tree_assignment)
        pd.testing.assert_series_equal(first.cluster_assignment, second.cluster_assignment)
        pd.testing.assert_frame_equal(first.elbow, second.elbow)

    def test_in_memory_frame(self, segmentation_config, customer_frame):
        pipeline = SegmentationPipeline(segmentation_config)
        report = pipeline.run_all(frame=customer_frame)

        assert report.n_records == len(customer_frame)

    def test_diagnostics_can_be_disabled(self, segmentation_config, tmp_path):
        segmentation_config.output.write_records = False
        segmentation_config.output.write_diagnostics = False
        SegmentationPipeline(segmentation_config).run_all()

        output_dir = tmp_path / "output"
        assert not (output_dir / "segmented_records_raw.csv").exists()
        assert not (output_dir / "complexity_table.csv").exists()
        assert (output_dir / "summary_tree.csv").exists()


@pytest.mark.integration
class TestStageOrdering:
    """Test that stages refuse to run out of order."""

    def test_standardize_before_load(self, segmentation_config):
        with pytest.raises(RuntimeError, match="data_loaded"):
            SegmentationPipeline(segmentation_config).standardize()

    def test_kmeans_before_standardize(self, segmentation_config):
        pipeline = SegmentationPipeline(segmentation_config)
        pipeline.load_data()

        with pytest.raises(RuntimeError, match="standardized"):
            pipeline.fit_kmeans()

    def test_evaluate_before_fit(self, segmentation_config):
        pipeline = SegmentationPipeline(segmentation_config)
        pipeline.load_data()

        with pytest.raises(RuntimeError, match="fit"):
            pipeline.evaluate()

    def test_export_before_evaluate(self, segmentation_config):
        pipeline = SegmentationPipeline(segmentation_config)
        pipeline.load_data()
        pipeline.fit_tree()

        with pytest.raises(RuntimeError, match="evaluated"):
            pipeline.export_all()

    def test_tree_only_evaluation(self, segmentation_config):
        """Evaluation covers whichever methods have been fitted."""
        pipeline = SegmentationPipeline(segmentation_config)
        pipeline.load_data()
        pipeline.fit_tree()
        evaluation = pipeline.evaluate()

        assert 'tree' in evaluation
        assert 'cluster' not in evaluation
        assert list(evaluation['comparison'].index) == ['tree_segment']


@pytest.mark.integration
@pytest.mark.edge_case
class TestDegenerateOutcomes:
    """Test runs whose data give trivial partitions."""

    def test_single_class_outcome(self, segmentation_config, customer_frame):
        """With one outcome value the tree keeps a single segment and says so."""
        segmentation_config.data.target = TargetRule(column='tenure', threshold=-1.0, name='any_tenure')
        pipeline = SegmentationPipeline(segmentation_config)
        report = pipeline.run_all()

        assert report.tree['n_segments'] == 1
        assert (pipeline.tree_assignment == 1).all()
        assert any("single segment" in warning for warning in report.warnings)

    def test_constant_feature_warning(self, segmentation_config, customer_frame):
        frame = customer_frame.assign(region_code=1.0)
        segmentation_config.data.features = segmentation_config.data.features + [FeatureSpec.numeric('region_code')]
        pipeline = SegmentationPipeline(segmentation_config)
        pipeline.run_all(frame=frame)

        assert any("Zero-variance" in warning for warning in pipeline.warnings)
        assert pipeline.evaluation['tree']['separation'].per_feature['region_code'] == 0.0


@pytest.mark.integration
class TestCommandLine:
    """Test the run_segmentation entry point."""

    def test_no_arguments_prints_usage(self, capsys):
        assert main([]) == 2
        assert "Usage" in capsys.readouterr().out

    def test_missing_config_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "missing.yaml")]) == 1
        assert "not found" in capsys.readouterr().out

    def test_validate_only(self, segmentation_config, tmp_path, capsys):
        config_path = tmp_path / "config.yaml"
        segmentation_config.to_yaml(str(config_path))

        assert main([str(config_path), '--validate-only']) == 0
        assert "SEGMENTATION CONFIGURATION SUMMARY" in capsys.readouterr().out
        assert not (tmp_path / "output" / "run_report.json").exists()

    def test_invalid_config(self, segmentation_config, tmp_path, capsys):
        segmentation_config.clustering.init = 'forgy'
        config_path = tmp_path / "config.json"
        segmentation_config.to_json(str(config_path))

        assert main([str(config_path)]) == 1
        assert "Invalid init" in capsys.readouterr().out

    def test_full_run(self, segmentation_config, tmp_path):
        config_path = tmp_path / "config.yaml"
        segmentation_config.to_yaml(str(config_path))

        assert main([str(config_path)]) == 0
        assert (tmp_path / "output" / "run_report.json").exists()
