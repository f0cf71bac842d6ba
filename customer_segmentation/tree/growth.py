"""
Recursive binary splitting for a binary outcome.

At every node the split minimising the size-weighted child impurity is
chosen among all predictors. Numeric features split on ``x < threshold``
with thresholds at midpoints between adjacent distinct values.
Categorical features split on subset membership; the subset is found by
ordering categories by their positive rate, which is optimal for a
two-class outcome. Ties keep the earliest feature and the lowest
threshold, so growth is deterministic.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Sequence

import numpy as np

from ..data.dataset import FeatureKind, FeatureSpec
from ..logger import get_logger
from ..models.params import SplitCriterion, TreeParams
from .nodes import DecisionTree, SplitTest, TreeNode

logger = get_logger(__name__)

_EPS = 1e-12


def impurity(n_positive, n_samples, criterion: str = SplitCriterion.GINI.value):
    """Node impurity for positive counts ``n_positive`` out of ``n_samples`` (vectorised)."""
    n_samples = np.asarray(n_samples, dtype=float)
    p = np.divide(n_positive, n_samples, out=np.zeros_like(n_samples), where=n_samples > 0)
    if SplitCriterion(criterion) == SplitCriterion.GINI:
        return 2.0 * p * (1.0 - p)
    with np.errstate(divide='ignore', invalid='ignore'):
        terms = -(p * np.log2(p) + (1.0 - p) * np.log2(1.0 - p))
    return np.nan_to_num(terms, nan=0.0)


@dataclass(frozen=True)
class _Candidate:
    test: SplitTest
    child_impurity: float   # n_left * imp_left + n_right * imp_right


def _best_numeric_split(
    x: np.ndarray,
    y: np.ndarray,
    feature_index: int,
    spec: FeatureSpec,
    min_bucket: int,
    criterion: str
) -> Optional[_Candidate]:
    order = np.argsort(x, kind='mergesort')
    xs = x[order]
    ys = y[order]
    n = len(xs)

    # Split after position i puts rows 0..i on the left.
    positions = np.arange(min_bucket - 1, n - min_bucket)
    if len(positions) == 0:
        return None
    positions = positions[xs[positions] < xs[positions + 1]]
    if len(positions) == 0:
        return None

    cum_pos = np.cumsum(ys)
    n_left = positions + 1
    pos_left = cum_pos[positions]
    n_right = n - n_left
    pos_right = cum_pos[-1] - pos_left

    weighted = (
        n_left * impurity(pos_left, n_left, criterion)
        + n_right * impurity(pos_right, n_right, criterion)
    )
    best = int(np.argmin(weighted))
    i = positions[best]

    threshold = (xs[i] + xs[i + 1]) / 2.0
    if not xs[i] < threshold:
        threshold = xs[i + 1]

    test = SplitTest(
        feature_index=feature_index,
        feature=spec.name,
        kind=FeatureKind.NUMERIC,
        threshold=float(threshold),
    )
    return _Candidate(test, float(weighted[best]))


def _best_categorical_split(
    codes: np.ndarray,
    y: np.ndarray,
    feature_index: int,
    spec: FeatureSpec,
    min_bucket: int,
    criterion: str
) -> Optional[_Candidate]:
    codes = codes.astype(int)
    present = np.unique(codes)
    if len(present) < 2:
        return None

    counts = np.array([np.sum(codes == c) for c in present])
    positives = np.array([np.sum(y[codes == c]) for c in present])
    rates = positives / counts
    order = np.lexsort((present, rates))

    n = len(codes)
    n_left = np.cumsum(counts[order])[:-1]
    pos_left = np.cumsum(positives[order])[:-1]
    n_right = n - n_left
    pos_right = positives.sum() - pos_left

    valid = (n_left >= min_bucket) & (n_right >= min_bucket)
    if not np.any(valid):
        return None

    weighted = (
        n_left * impurity(pos_left, n_left, criterion)
        + n_right * impurity(pos_right, n_right, criterion)
    )
    weighted = np.where(valid, weighted, np.inf)
    best = int(np.argmin(weighted))

    left_codes = sorted(int(c) for c in present[order[:best + 1]])
    test = SplitTest(
        feature_index=feature_index,
        feature=spec.name,
        kind=FeatureKind.CATEGORICAL,
        left_codes=frozenset(left_codes),
        left_labels=tuple(spec.label(c) for c in left_codes),
    )
    return _Candidate(test, float(weighted[best]))


def find_best_split(
    X: np.ndarray,
    y: np.ndarray,
    specs: Sequence[FeatureSpec],
    min_bucket: int,
    criterion: str
) -> Optional[_Candidate]:
    """Best split of the rows ``X``/``y`` or None when no split reduces impurity."""
    n = len(y)
    parent = float(n * impurity(y.sum(), n, criterion))
    best: Optional[_Candidate] = None

    for j, spec in enumerate(specs):
        column = X[:, j]
        if np.ptp(column) == 0:
            continue
        if spec.is_categorical:
            candidate = _best_categorical_split(column, y, j, spec, min_bucket, criterion)
        else:
            candidate = _best_numeric_split(column, y, j, spec, min_bucket, criterion)
        if candidate is None:
            continue
        if best is None or candidate.child_impurity < best.child_impurity - _EPS:
            best = candidate

    if best is None or parent - best.child_impurity <= _EPS:
        return None
    return best


def grow_tree(
    X: np.ndarray,
    y: np.ndarray,
    specs: Sequence[FeatureSpec],
    params: TreeParams
) -> DecisionTree:
    """
    Grow the full tree allowed by the size and depth controls.

    Args:
        X: Ordinal-encoded predictor matrix (one column per spec)
        y: Binary outcome (0/1 or bool)
        specs: Predictor specifications in column order
        params: Growth controls

    Returns:
        Unpruned DecisionTree with pre-order node ids
    """
    y = np.asarray(y).astype(int)
    n_total = len(y)
    criterion = params.criterion.value if isinstance(params.criterion, SplitCriterion) else params.criterion
    min_bucket = params.effective_min_bucket
    nodes: Dict[int, TreeNode] = {}
    counter = [0]

    def grow(rows: np.ndarray, depth: int, parent: Optional[int]) -> int:
        node_id = counter[0]
        counter[0] += 1

        y_node = y[rows]
        n = len(rows)
        n_pos = int(y_node.sum())
        node_impurity = float(impurity(n_pos, n, criterion))

        candidate = None
        can_split = (
            0 < n_pos < n
            and n >= params.min_split
            and n >= 2 * min_bucket
            and depth < params.max_depth
        )
        if can_split:
            candidate = find_best_split(X[rows], y_node, specs, min_bucket, criterion)

        if candidate is None:
            nodes[node_id] = TreeNode(node_id, depth, parent, n, n_pos, node_impurity)
            return node_id

        test = candidate.test
        left_mask = test.goes_left(X[rows, test.feature_index])
        left_id = grow(rows[left_mask], depth + 1, node_id)
        right_id = grow(rows[~left_mask], depth + 1, node_id)

        nodes[node_id] = TreeNode(
            node_id=node_id,
            depth=depth,
            parent=parent,
            n_samples=n,
            n_positive=n_pos,
            impurity=node_impurity,
            split=test,
            left=left_id,
            right=right_id,
            improvement=(n * node_impurity - candidate.child_impurity) / n_total,
        )
        return node_id

    grow(np.arange(n_total), 0, None)
    tree = DecisionTree(nodes)
    logger.debug(f"Grew tree with {tree.n_splits} splits, depth {tree.depth()}")
    return tree
