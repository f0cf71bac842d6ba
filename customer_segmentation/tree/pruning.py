"""
Cost-complexity pruning and the cross-validated complexity table.

Risk is the misclassification count of a node treated as a leaf, scaled
by the root risk, so a complexity value ``cp`` reads as "minimum relative
error improvement per split". A node whose split does not justify ``cp``
(its per-split improvement ``g`` is at most ``cp``) is collapsed.
"""

from typing import Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import KFold, StratifiedKFold

from ..data.dataset import FeatureSpec
from ..logger import get_logger
from ..models.params import TreeParams
from .growth import grow_tree
from .nodes import DecisionTree

logger = get_logger(__name__)

_TOL = 1e-12

COMPLEXITY_COLUMNS = ['cp', 'nsplit', 'rel_error', 'xerror', 'xstd']


def _risk_scale(tree: DecisionTree) -> float:
    root_risk = tree.root.risk
    return float(root_risk) if root_risk > 0 else 1.0


def link_strengths(tree: DecisionTree) -> Dict[int, float]:
    """
    Per-split relative improvement ``g`` of every internal node.

    ``g(t) = (R(t) - R(T_t)) / (|leaves(T_t)| - 1)`` with risks relative
    to the root risk.
    """
    scale = _risk_scale(tree)
    subtree_risk: Dict[int, float] = {}
    subtree_leaves: Dict[int, int] = {}

    for node_id in reversed(tree.preorder()):
        node = tree.node(node_id)
        if node.is_leaf:
            subtree_risk[node_id] = node.risk
            subtree_leaves[node_id] = 1
        else:
            subtree_risk[node_id] = subtree_risk[node.left] + subtree_risk[node.right]
            subtree_leaves[node_id] = subtree_leaves[node.left] + subtree_leaves[node.right]

    return {
        node.node_id: (node.risk - subtree_risk[node.node_id])
        / ((subtree_leaves[node.node_id] - 1) * scale)
        for node in tree.internal_nodes()
    }


def prune(tree: DecisionTree, cp: float) -> DecisionTree:
    """
    Smallest subtree that is optimal for complexity ``cp``.

    Weakest links are collapsed repeatedly until every remaining split
    improves relative error by more than ``cp``.
    """
    current = tree
    while True:
        strengths = link_strengths(current)
        if not strengths:
            return current
        weakest = min(strengths.values())
        if weakest > cp + _TOL:
            return current
        current = current.collapse(
            node_id for node_id, g in strengths.items() if g <= weakest + _TOL
        )


def pruning_sequence(tree: DecisionTree, cp_floor: float) -> List[Tuple[float, DecisionTree]]:
    """
    Nested subtrees from ``tree`` down to the root, each with the complexity
    value from which it is optimal, largest tree first.
    """
    sequence = [(cp_floor, tree)]
    current = tree
    while current.n_splits > 0:
        strengths = link_strengths(current)
        weakest = min(strengths.values())
        current = current.collapse(
            node_id for node_id, g in strengths.items() if g <= weakest + _TOL
        )
        sequence.append((max(weakest, cp_floor), current))
    return sequence


def _relative_error(tree: DecisionTree, scale: float) -> float:
    return sum(leaf.risk for leaf in tree.leaves()) / scale


def _folds(y: np.ndarray, n_folds: int, rng: np.random.Generator):
    seed = int(rng.integers(0, 2**31 - 1))
    _, class_counts = np.unique(y, return_counts=True)
    if len(class_counts) == 2 and class_counts.min() >= n_folds:
        splitter = StratifiedKFold(n_splits=n_folds, shuffle=True, random_state=seed)
    else:
        splitter = KFold(n_splits=n_folds, shuffle=True, random_state=seed)
    return list(splitter.split(np.zeros((len(y), 1)), y))


def complexity_table(
    tree: DecisionTree,
    X: np.ndarray,
    y: np.ndarray,
    specs: Sequence[FeatureSpec],
    params: TreeParams,
    rng: np.random.Generator
) -> pd.DataFrame:
    """
    Complexity-vs-error table of ``tree`` with cross-validated error.

    Rows are ordered by increasing tree size. ``rel_error`` is the
    resubstitution error relative to the root; ``xerror`` is the
    misclassification on held-out folds of trees regrown on the remaining
    records and pruned at the geometric mean of adjacent ``cp`` values,
    relative to the same root risk; ``xstd`` its standard error.

    Args:
        tree: Full tree grown on ``X``/``y`` (already pruned at the floor)
        X: Ordinal-encoded predictors
        y: Binary outcome
        specs: Predictor specifications
        params: Growth and cross-validation controls
        rng: Source of the fold assignment seed

    Returns:
        DataFrame with columns cp, nsplit, rel_error, xerror, xstd
    """
    y = np.asarray(y).astype(int)
    scale = _risk_scale(tree)
    sequence = list(reversed(pruning_sequence(tree, params.complexity_floor)))

    cps = np.array([cp for cp, _ in sequence])
    table = pd.DataFrame({
        'cp': cps,
        'nsplit': [subtree.n_splits for _, subtree in sequence],
        'rel_error': [_relative_error(subtree, scale) for _, subtree in sequence],
    })

    n_folds = min(params.n_folds, len(y))
    if tree.root.risk == 0 or n_folds < 2:
        table['xerror'] = table['rel_error']
        table['xstd'] = 0.0
        return table[COMPLEXITY_COLUMNS]

    # Row 0 is the root-only tree: prune every fold tree completely.
    fold_cps = np.concatenate([[np.inf], np.sqrt(cps[1:] * cps[:-1])])

    errors = np.zeros((len(y), len(cps)))
    for fold, (train_rows, test_rows) in enumerate(_folds(y, n_folds, rng)):
        fold_tree = prune(grow_tree(X[train_rows], y[train_rows], specs, params), params.complexity_floor)
        for k, fold_cp in enumerate(fold_cps):
            pruned = prune(fold_tree, fold_cp)
            errors[test_rows, k] = pruned.predict(X[test_rows]) != y[test_rows].astype(bool)
        logger.debug(f"Cross-validation fold {fold + 1}/{n_folds} done")

    n = len(y)
    totals = errors.sum(axis=0)
    table['xerror'] = totals / scale
    table['xstd'] = np.sqrt(((errors - totals / n) ** 2).sum(axis=0)) / scale
    return table[COMPLEXITY_COLUMNS]


def select_complexity(table: pd.DataFrame, one_se_rule: bool = False) -> int:
    """
    Row of the complexity table to prune to.

    Minimum cross-validated error, ties resolved toward the smaller tree;
    with ``one_se_rule`` the smallest tree within one standard error of
    that minimum.
    """
    xerror = table['xerror'].to_numpy()
    best = int(np.argmin(xerror))
    if not one_se_rule:
        return best
    limit = xerror[best] + table['xstd'].to_numpy()[best]
    return int(np.flatnonzero(xerror <= limit + _TOL)[0])
