"""
Segment Evaluator

Measures a segment assignment against the binary outcome and the numeric
attributes of the population: per-segment summaries, joint and
conditional probability tables, and separation scores. Any assignment
works (tree or cluster); the evaluator never merges them.
"""

from typing import Dict, Iterable, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .data.dataset import Dataset
from .logger import get_logger
from .models.results import ProbabilityKind, ProbabilityTable, SeparationScore
from .validators import ValidationError, validate_binary_target

logger = get_logger(__name__)

AssignmentLike = Union[pd.Series, np.ndarray, Sequence[int]]

SUMMARY_EXCLUDE = ('count', 'pct_positive', 'share')
TARGET_VALUES = [False, True]


def _summarise(attributes: pd.DataFrame, target: np.ndarray, segments: pd.Series) -> pd.DataFrame:
    grouped = attributes.groupby(segments.to_numpy())

    table = pd.DataFrame({'count': grouped.size()})
    means = grouped.mean()
    stds = grouped.std(ddof=1).fillna(0.0)
    for column in attributes.columns:
        table[f"{column}_mean"] = means[column]
        table[f"{column}_std"] = stds[column]

    positives = pd.Series(target, index=attributes.index).groupby(segments.to_numpy()).mean()
    table['pct_positive'] = 100.0 * positives
    table['share'] = table['count'] / len(attributes)
    table.index.name = segments.name
    return table.sort_index()


class SegmentEvaluator:
    """
    Evaluate segment assignments on raw-scale attributes.

    Example:
        >>> evaluator = SegmentEvaluator.from_dataset(dataset)
        >>> summary = evaluator.summary(tree_assignment)
        >>> evaluator.separation_score(summary).total
        >>> evaluator.conditional_probabilities(tree_assignment).probability(2, True)
    """

    def __init__(self, attributes: pd.DataFrame, target: Sequence[bool], target_name: str = 'target'):
        """
        Args:
            attributes: Numeric attributes on the raw scale, one row per record
            target: Binary outcome aligned with ``attributes``
            target_name: Name of the outcome (for reports)
        """
        target = np.asarray(target)
        validate_binary_target(target.astype(float), name=target_name, n_expected=len(attributes))

        non_numeric = [c for c in attributes.columns if not pd.api.types.is_numeric_dtype(attributes[c])]
        if non_numeric:
            raise ValidationError(
                "Evaluation attributes must be numeric",
                field="attributes",
                actual=f"Non-numeric columns: {non_numeric}",
                fix="Evaluate numeric features only; categorical features are summarised by segment rules"
            )

        self.attributes = attributes.astype(float)
        self.target = target.astype(bool)
        self.target_name = target_name

    @classmethod
    def from_dataset(cls, dataset: Dataset, features: Optional[Sequence[str]] = None) -> 'SegmentEvaluator':
        """Evaluator over the numeric features of ``dataset`` (default: all of them)."""
        specs = dataset.specs(features)
        names = [spec.name for spec in specs if not spec.is_categorical]
        return cls(dataset.features[names], dataset.target, dataset.target_name)

    def __len__(self) -> int:
        return len(self.attributes)

    def _segments(self, assignment: AssignmentLike) -> pd.Series:
        if isinstance(assignment, pd.Series):
            if len(assignment) != len(self) or not assignment.index.equals(self.attributes.index):
                raise ValidationError(
                    "Assignment is not aligned with the evaluated records",
                    field=str(assignment.name),
                    expected=f"{len(self)} ids on the Dataset index",
                    actual=f"{len(assignment)} ids",
                    fix="Use the assignment Series returned by the segmenter for this Dataset"
                )
            values = assignment.to_numpy()
            name = assignment.name or 'segment'
        else:
            values = np.asarray(assignment)
            name = 'segment'
            if len(values) != len(self):
                raise ValidationError(
                    "Assignment length does not match the number of records",
                    field="assignment",
                    expected=f"{len(self)} ids",
                    actual=f"{len(values)} ids"
                )
        return pd.Series(values.astype(int), index=self.attributes.index, name=name)

    def summary(self, assignment: AssignmentLike) -> pd.DataFrame:
        """
        Per-segment statistics.

        Returns:
            DataFrame indexed by segment id with ``count``, ``<feature>_mean``,
            ``<feature>_std`` (sample deviation, 0 for single-record
            segments), ``pct_positive`` (percentage) and ``share``
        """
        return _summarise(self.attributes, self.target, self._segments(assignment))

    def _counts(self, assignment: AssignmentLike) -> pd.DataFrame:
        segments = self._segments(assignment)
        frame = pd.DataFrame({'segment': segments.to_numpy(), 'target': self.target})
        counts = (
            frame.groupby(['segment', 'target']).size()
            .unstack(fill_value=0)
            .reindex(columns=TARGET_VALUES, fill_value=0)
            .sort_index()
        )
        counts.columns = pd.Index(TARGET_VALUES, name='target')
        return counts.astype(int)

    def joint_probabilities(self, assignment: AssignmentLike) -> ProbabilityTable:
        """P(segment, target) = count / N; all cells sum to 1."""
        counts = self._counts(assignment)
        probabilities = counts / float(len(self))
        return ProbabilityTable(
            kind=ProbabilityKind.JOINT,
            method=self._segments(assignment).name,
            counts=counts,
            probabilities=probabilities,
        )

    def conditional_probabilities(self, assignment: AssignmentLike) -> ProbabilityTable:
        """P(target | segment) = count / segment size; each segment's row sums to 1."""
        counts = self._counts(assignment)
        probabilities = counts.div(counts.sum(axis=1), axis=0)
        return ProbabilityTable(
            kind=ProbabilityKind.CONDITIONAL,
            method=self._segments(assignment).name,
            counts=counts,
            probabilities=probabilities,
        )

    @staticmethod
    def separation_score(
        summary: pd.DataFrame,
        exclude: Iterable[str] = SUMMARY_EXCLUDE,
        method: Optional[str] = None
    ) -> SeparationScore:
        """
        Variance across segments of each feature's segment mean.

        Only ``<feature>_mean`` columns contribute; names in ``exclude``
        (feature or column names) are skipped. Variances use ddof=1 and are
        0 with fewer than two segments.
        """
        exclude = set(exclude)
        per_feature: Dict[str, float] = {}
        for column in summary.columns:
            if not column.endswith('_mean') or column in exclude:
                continue
            feature = column[:-len('_mean')]
            if feature in exclude:
                continue
            means = summary[column].to_numpy(dtype=float)
            per_feature[feature] = float(np.var(means, ddof=1)) if len(means) >= 2 else 0.0

        total = float(sum(per_feature.values()))
        return SeparationScore(
            method=method or str(summary.index.name or 'segment'),
            n_segments=len(summary),
            per_feature=per_feature,
            total=total,
            mean=total / len(per_feature) if per_feature else 0.0,
        )

    def conditional_separation(self, assignment: AssignmentLike) -> Dict[bool, SeparationScore]:
        """
        Separation within each outcome class: records are filtered to the
        class, re-summarised by segment and scored.
        """
        segments = self._segments(assignment)
        scores: Dict[bool, SeparationScore] = {}
        for value in TARGET_VALUES:
            mask = self.target == value
            method = f"{segments.name}|{self.target_name}={value}"
            if not mask.any():
                scores[value] = SeparationScore(method=method, n_segments=0, total=0.0, mean=0.0)
                continue
            # Each subset holds one outcome class by construction.
            summary = _summarise(self.attributes.loc[mask], self.target[mask], segments.loc[mask])
            scores[value] = self.separation_score(summary, method=method)
        return scores

    def compare(self, assignments: Union[Mapping[str, AssignmentLike], Sequence[pd.Series]]) -> pd.DataFrame:
        """
        One row per segmentation method with its segment count and
        overall and per-class separation.
        """
        if not isinstance(assignments, Mapping):
            assignments = {series.name: series for series in assignments}

        rows = []
        for method, assignment in assignments.items():
            summary = self.summary(assignment)
            overall = self.separation_score(summary, method=method)
            by_class = self.conditional_separation(assignment)
            rows.append({
                'method': method,
                'n_segments': overall.n_segments,
                'separation_total': overall.total,
                'separation_mean': overall.mean,
                f'separation_total_{self.target_name}_false': by_class[False].total,
                f'separation_total_{self.target_name}_true': by_class[True].total,
            })
            logger.info(f"  {overall.get_summary()}")
        return pd.DataFrame(rows).set_index('method')
