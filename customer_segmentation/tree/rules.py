"""
Leaf rules: root-to-leaf conjunctions read directly off a pruned tree.

Sibling branches carry complementary conditions (``<`` / ``>=``,
``in`` / ``not in``), so the rules of a tree partition every possible
record. Assignment still checks that exactly one rule matches each record
and treats anything else as a fatal invariant violation.
"""

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..data.dataset import FeatureKind, FeatureSpec
from ..logger import get_logger
from .nodes import DecisionTree

logger = get_logger(__name__)


class RuleCoverageError(Exception):
    """
    A record matched zero or several leaf rules.

    Attributes:
        record: Position of the offending record
        segments: Segment ids whose rules matched
        n_violations: Number of records with the same problem
    """

    def __init__(self, record: int, segments: Sequence[int], n_violations: int = 1):
        self.record = record
        self.segments = list(segments)
        self.n_violations = n_violations

        if self.segments:
            problem = f"matched {len(self.segments)} leaf rules (segments {self.segments})"
        else:
            problem = "matched no leaf rule"
        parts = [
            f"[INVARIANT VIOLATION] Record {record} {problem}",
            "  Invariant: every record matches exactly one leaf rule",
            f"  Records affected: {n_violations}",
        ]
        super().__init__("\n".join(parts))


@dataclass(frozen=True)
class Condition:
    """One ancestor test on the path to a leaf, with the branch taken."""
    feature_index: int
    feature: str
    kind: FeatureKind
    operator: str
    threshold: Optional[float] = None
    codes: FrozenSet[int] = frozenset()
    labels: Tuple[str, ...] = ()

    def mask(self, X: np.ndarray) -> np.ndarray:
        values = X[:, self.feature_index]
        if self.operator == '<':
            return values < self.threshold
        if self.operator == '>=':
            return values >= self.threshold
        inside = np.isin(values.astype(int), sorted(self.codes))
        return inside if self.operator == 'in' else ~inside

    def holds(self, value: Any) -> bool:
        """Evaluate against a raw record value (number or category label)."""
        if self.operator == '<':
            return float(value) < self.threshold
        if self.operator == '>=':
            return float(value) >= self.threshold
        inside = str(value) in self.labels
        return inside if self.operator == 'in' else not inside

    def __str__(self) -> str:
        if self.kind == FeatureKind.NUMERIC:
            return f"{self.feature} {self.operator} {self.threshold:.6g}"
        return f"{self.feature} {self.operator} {{{', '.join(self.labels)}}}"


@dataclass(frozen=True)
class LeafRule:
    """Conjunction identifying the records of one tree segment."""
    segment_id: int
    node_id: int
    conditions: Tuple[Condition, ...]
    n_samples: int
    n_positive: int

    @property
    def positive_rate(self) -> float:
        return self.n_positive / self.n_samples if self.n_samples else 0.0

    @property
    def prediction(self) -> bool:
        return self.n_positive > self.n_samples - self.n_positive

    def mask(self, X: np.ndarray) -> np.ndarray:
        result = np.ones(X.shape[0], dtype=bool)
        for condition in self.conditions:
            result &= condition.mask(X)
        return result

    def matches(self, values: Mapping[str, Any]) -> bool:
        return all(condition.holds(values[condition.feature]) for condition in self.conditions)

    def to_text(self) -> str:
        if not self.conditions:
            return "ALL records"
        return " AND ".join(str(condition) for condition in self.conditions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'segment_id': self.segment_id,
            'node_id': self.node_id,
            'rule': self.to_text(),
            'n_samples': self.n_samples,
            'n_positive': self.n_positive,
            'positive_rate': self.positive_rate,
        }


def extract_rules(tree: DecisionTree) -> List[LeafRule]:
    """
    LeafRules of a numbered tree, ordered by segment id.

    Raises:
        ValueError: If the tree's leaves have not been numbered
    """
    rules = []
    for leaf in tree.leaves():
        if leaf.segment_id is None:
            raise ValueError("Tree leaves must be numbered before rule extraction")

        conditions = []
        for ancestor, went_left in tree.path(leaf.node_id):
            test = ancestor.split
            if test.kind == FeatureKind.NUMERIC:
                operator = '<' if went_left else '>='
            else:
                operator = 'in' if went_left else 'not in'
            conditions.append(Condition(
                feature_index=test.feature_index,
                feature=test.feature,
                kind=test.kind,
                operator=operator,
                threshold=test.threshold,
                codes=test.left_codes,
                labels=test.left_labels,
            ))

        rules.append(LeafRule(
            segment_id=leaf.segment_id,
            node_id=leaf.node_id,
            conditions=tuple(conditions),
            n_samples=leaf.n_samples,
            n_positive=leaf.n_positive,
        ))

    return sorted(rules, key=lambda rule: rule.segment_id)


def assign_by_rules(rules: Sequence[LeafRule], X: np.ndarray) -> np.ndarray:
    """
    Segment id of every row of ``X`` according to ``rules``.

    Raises:
        RuleCoverageError: If any row matches zero or several rules
    """
    matches = np.column_stack([rule.mask(X) for rule in rules])
    n_matched = matches.sum(axis=1)
    bad = np.flatnonzero(n_matched != 1)
    if len(bad):
        first = int(bad[0])
        segments = [rules[k].segment_id for k in np.flatnonzero(matches[first])]
        logger.error(f"Leaf rules do not partition the records: {len(bad)} violation(s)")
        raise RuleCoverageError(first, segments, len(bad))

    segment_ids = np.array([rule.segment_id for rule in rules])
    return segment_ids[np.argmax(matches, axis=1)]


def assign_record_by_rules(
    rules: Sequence[LeafRule],
    values: Mapping[str, Any],
    position: int = -1
) -> int:
    """Segment id of a single record given as ``{feature: value}``."""
    matched = [rule.segment_id for rule in rules if rule.matches(values)]
    if len(matched) != 1:
        raise RuleCoverageError(position, matched)
    return matched[0]


def format_rules(rules: Sequence[LeafRule], specs: Optional[Sequence[FeatureSpec]] = None) -> str:
    """Plain-text listing of rules with segment sizes and positive rates."""
    lines = []
    for rule in rules:
        lines.append(
            f"Segment {rule.segment_id}: n={rule.n_samples:,}, "
            f"positive rate={rule.positive_rate:.2%}"
        )
        lines.append(f"  IF {rule.to_text()}")
    return "\n".join(lines)
