"""
Unit Tests for SegmentEvaluator

Tests cover:
- Per-segment summary statistics
- Joint and conditional probability tables
- Separation scores (overall and per outcome class)
- Comparison of segmentation methods
- Alignment errors
"""

import pytest
import numpy as np
import pandas as pd

from customer_segmentation.evaluator import SegmentEvaluator
from customer_segmentation.models import ProbabilityKind
from customer_segmentation.validators import ValidationError, input_validator


@pytest.fixture
def known_counts():
    """
    Three segments with known (false, true) counts:
    segment 1: 30/10, segment 2: 5/45, segment 3: 20/20.
    """
    cells = [(1, False, 30), (1, True, 10), (2, False, 5), (2, True, 45), (3, False, 20), (3, True, 20)]
    segments = np.concatenate([np.full(count, segment) for segment, _, count in cells])
    target = np.concatenate([np.full(count, value) for _, value, count in cells])
    attributes = pd.DataFrame({'x': np.arange(len(segments), dtype=float)})
    return attributes, target, pd.Series(segments, name='tree_segment')


@pytest.fixture
def two_segment_evaluator():
    """Four records, two segments with x means 2 and 6."""
    attributes = pd.DataFrame({'x': [1.0, 3.0, 5.0, 7.0], 'y': [4.0, 4.0, 4.0, 4.0]})
    target = np.array([False, True, False, True])
    return SegmentEvaluator(attributes, target, target_name='churn')


@pytest.mark.unit
class TestSummary:
    """Test per-segment summaries."""

    def test_summary_columns(self, two_segment_evaluator):
        """Counts, means, stds, percent positive and share per segment."""
        summary = two_segment_evaluator.summary(np.array([1, 1, 2, 2]))

        assert list(summary.index) == [1, 2]
        assert summary['count'].tolist() == [2, 2]
        assert summary['x_mean'].tolist() == [2.0, 6.0]
        assert summary['x_std'].tolist() == pytest.approx([np.sqrt(2.0), np.sqrt(2.0)])
        assert summary['pct_positive'].tolist() == [50.0, 50.0]
        assert summary['share'].tolist() == [0.5, 0.5]

    def test_single_record_segment_std_zero(self, two_segment_evaluator):
        """A one-record segment reports a standard deviation of 0."""
        summary = two_segment_evaluator.summary(np.array([1, 1, 1, 2]))

        assert summary.loc[2, 'count'] == 1
        assert summary.loc[2, 'x_std'] == 0.0

    def test_summary_index_named_after_assignment(self, two_segment_evaluator):
        """The summary index carries the assignment name."""
        summary = two_segment_evaluator.summary(pd.Series([1, 2, 1, 2], name='cluster_segment'))

        assert summary.index.name == 'cluster_segment'

    def test_from_dataset_uses_numeric_features(self, customer_dataset):
        """Categorical features are left out of the evaluated attributes."""
        evaluator = SegmentEvaluator.from_dataset(customer_dataset)

        assert list(evaluator.attributes.columns) == ['monthly_charges', 'support_calls']
        assert len(evaluator) == len(customer_dataset)

    def test_non_numeric_attributes_rejected(self):
        """String attributes cannot be summarised."""
        with pytest.raises(ValidationError, match="numeric"):
            SegmentEvaluator(pd.DataFrame({'c': ['a', 'b']}), [True, False])


@pytest.mark.unit
class TestProbabilityTables:
    """Test joint and conditional probabilities."""

    def test_joint_matches_counts_over_total(self, known_counts):
        """Each joint cell is its count over the population size."""
        attributes, target, assignment = known_counts
        evaluator = SegmentEvaluator(attributes, target)
        table = evaluator.joint_probabilities(assignment)
        n = len(target)

        assert table.kind == ProbabilityKind.JOINT
        assert table.total() == pytest.approx(1.0, abs=1e-9)
        assert table.probability(1, False) == pytest.approx(30 / n)
        assert table.probability(2, True) == pytest.approx(45 / n)
        assert table.probability(3, True) == pytest.approx(20 / n)

    def test_conditional_rows_sum_to_one(self, known_counts):
        """Each segment's conditional distribution sums to 1."""
        attributes, target, assignment = known_counts
        table = SegmentEvaluator(attributes, target).conditional_probabilities(assignment)

        assert table.kind == ProbabilityKind.CONDITIONAL
        np.testing.assert_allclose(table.row_sums().to_numpy(), 1.0, atol=1e-9)
        assert table.probability(2, True) == pytest.approx(0.9)
        assert table.probability(1, True) == pytest.approx(0.25)

    def test_missing_outcome_class_gets_zero_column(self):
        """A segment with only one outcome value still has both columns."""
        evaluator = SegmentEvaluator(pd.DataFrame({'x': [1.0, 2.0, 3.0]}), [True, True, False])
        table = evaluator.conditional_probabilities(np.array([1, 1, 2]))

        assert list(table.counts.columns) == [False, True]
        assert table.probability(1, False) == 0.0
        assert table.probability(1, True) == 1.0

    def test_long_format(self, known_counts):
        """The long frame has one row per (segment, target) pair."""
        attributes, target, assignment = known_counts
        frame = SegmentEvaluator(attributes, target).joint_probabilities(assignment).to_frame()

        assert list(frame.columns) == ['segment', 'target', 'count', 'probability']
        assert len(frame) == 6
        assert frame['count'].sum() == len(target)


@pytest.mark.unit
class TestSeparation:
    """Test separation scores."""

    def test_variance_of_segment_means(self, two_segment_evaluator):
        """Means 2 and 6 have sample variance 8."""
        summary = two_segment_evaluator.summary(np.array([1, 1, 2, 2]))
        score = SegmentEvaluator.separation_score(summary)

        assert score.per_feature['x'] == pytest.approx(8.0)
        assert score.n_segments == 2

    def test_constant_feature_contributes_zero(self, two_segment_evaluator):
        """A feature with one value everywhere adds nothing to separation."""
        summary = two_segment_evaluator.summary(np.array([1, 1, 2, 2]))
        score = SegmentEvaluator.separation_score(summary)

        assert score.per_feature['y'] == 0.0
        assert score.total == pytest.approx(8.0)
        assert score.mean == pytest.approx(4.0)

    def test_single_segment_scores_zero(self, two_segment_evaluator):
        """One segment has no spread of means."""
        summary = two_segment_evaluator.summary(np.ones(4, dtype=int))

        assert SegmentEvaluator.separation_score(summary).total == 0.0

    def test_excluded_features_skipped(self, two_segment_evaluator):
        """Features named in exclude do not contribute."""
        summary = two_segment_evaluator.summary(np.array([1, 1, 2, 2]))
        score = SegmentEvaluator.separation_score(summary, exclude=['x'])

        assert 'x' not in score.per_feature
        assert score.total == 0.0

    def test_conditional_separation_per_class(self, two_segment_evaluator):
        """Separation is computed within each outcome class."""
        scores = two_segment_evaluator.conditional_separation(np.array([1, 1, 2, 2]))

        assert set(scores) == {False, True}
        # False records: x = 1 (segment 1) and 5 (segment 2)
        assert scores[False].per_feature['x'] == pytest.approx(8.0)
        # True records: x = 3 and 7
        assert scores[True].per_feature['x'] == pytest.approx(8.0)

    def test_conditional_separation_absent_class(self):
        """An outcome class with no records scores 0."""
        evaluator = SegmentEvaluator(pd.DataFrame({'x': [1.0, 5.0]}), [True, True])
        scores = evaluator.conditional_separation(np.array([1, 2]))

        assert scores[False].total == 0.0
        assert scores[False].n_segments == 0

    def test_conditional_separation_logs_no_warning(self, two_segment_evaluator, monkeypatch):
        """Filtering to one outcome class is not reported as a single-class target."""
        logged = []
        monkeypatch.setattr(input_validator.logger, 'warning', lambda message, *args, **kwargs: logged.append(message))

        two_segment_evaluator.conditional_separation(np.array([1, 1, 2, 2]))
        two_segment_evaluator.compare({'tree_segment': np.array([1, 1, 2, 2])})

        assert logged == []

    def test_compare_methods(self, two_segment_evaluator):
        """One comparison row per segmentation method."""
        table = two_segment_evaluator.compare({
            'tree_segment': np.array([1, 1, 2, 2]),
            'cluster_segment': np.array([1, 2, 1, 2]),
        })

        assert list(table.index) == ['tree_segment', 'cluster_segment']
        assert table.loc['tree_segment', 'separation_total'] == pytest.approx(8.0)
        assert table.loc['cluster_segment', 'separation_total'] == pytest.approx(2.0)
        assert 'separation_total_churn_true' in table.columns


@pytest.mark.edge_case
class TestAlignment:
    """Test assignment alignment checks."""

    def test_wrong_length_rejected(self, two_segment_evaluator):
        with pytest.raises(ValidationError, match="length"):
            two_segment_evaluator.summary(np.array([1, 2]))

    def test_misaligned_series_rejected(self, two_segment_evaluator):
        """A Series on a different index is not silently realigned."""
        assignment = pd.Series([1, 1, 2, 2], index=[10, 11, 12, 13], name='tree_segment')

        with pytest.raises(ValidationError, match="aligned"):
            two_segment_evaluator.summary(assignment)
