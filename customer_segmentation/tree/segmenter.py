"""
Decision Tree Segmenter

Supervised partition of a Dataset: grows a classification tree on the
binary outcome, prunes it to the cross-validated complexity and exposes
the leaves as numbered segments with human-readable rules.
"""

from typing import Any, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..data.dataset import Dataset, FeatureMatrix, Record
from ..logger import get_logger
from ..models.params import TreeParams
from ..validators import ValidationError, validate_array, validate_binary_target
from .growth import grow_tree
from .nodes import DecisionTree
from .pruning import complexity_table, prune, select_complexity
from .rules import (
    LeafRule,
    assign_by_rules,
    assign_record_by_rules,
    extract_rules,
    format_rules,
)

logger = get_logger(__name__)


class DecisionTreeSegmenter:
    """
    CART segmentation with cost-complexity pruning.

    Example:
        >>> segmenter = DecisionTreeSegmenter(TreeParams(complexity_floor=0.01),
        ...                                    rng=np.random.default_rng(42))
        >>> segmenter.fit(dataset, features=['monthly_charges', 'contract'])
        >>> assignment = segmenter.assignment(dataset)
        >>> print(segmenter.rules_text())
    """

    ASSIGNMENT_NAME = 'tree_segment'

    def __init__(self, params: Optional[TreeParams] = None, rng: Optional[np.random.Generator] = None):
        """
        Args:
            params: Growth, pruning and cross-validation controls
            rng: Generator for the cross-validation folds (default: seed 0)
        """
        self.params = params or TreeParams()
        self.rng = rng if rng is not None else np.random.default_rng(0)

        self.features_: Optional[List[str]] = None
        self.specs_ = None
        self.unpruned_tree_: Optional[DecisionTree] = None
        self.complexity_table_: Optional[pd.DataFrame] = None
        self.selected_cp_: Optional[float] = None
        self.tree_: Optional[DecisionTree] = None
        self.rules_: Optional[List[LeafRule]] = None
        self.segments_: Optional[np.ndarray] = None
        self.feature_importance_: Optional[pd.DataFrame] = None
        self.is_fitted_ = False

    def fit(self, dataset: Dataset, features: Optional[Sequence[str]] = None):
        """
        Grow, cross-validate and prune the tree on ``dataset``.

        Args:
            dataset: Records with a binary target
            features: Predictor names (default: every feature in the schema)

        Returns:
            self
        """
        matrix = dataset.feature_matrix(features)
        X = matrix.values
        y = dataset.target.astype(int)
        validate_array(X, name="predictors")
        n, n_positive, rate = validate_binary_target(y, name=dataset.target_name, n_expected=X.shape[0])

        self.features_ = list(matrix.columns)
        self.specs_ = matrix.specs

        logger.info(f"Growing decision tree on {n:,} records ({n_positive:,} positive, {rate:.2%})")
        logger.info(f"  Predictors: {self.features_}")

        full_tree = grow_tree(X, y, self.specs_, self.params)
        self.unpruned_tree_ = prune(full_tree, self.params.complexity_floor)
        logger.info(
            f"  Grown tree: {full_tree.n_splits} splits; "
            f"{self.unpruned_tree_.n_splits} after complexity floor {self.params.complexity_floor}"
        )

        self.complexity_table_ = complexity_table(
            self.unpruned_tree_, X, y, self.specs_, self.params, self.rng
        )
        row = select_complexity(self.complexity_table_, self.params.one_se_rule)
        self.selected_cp_ = float(self.complexity_table_['cp'].iloc[row])

        pruned = prune(self.unpruned_tree_, self.selected_cp_)
        self.tree_ = pruned.numbered()
        self.rules_ = extract_rules(self.tree_)
        self.is_fitted_ = True

        self.segments_ = self.assign(X)
        self.feature_importance_ = self._feature_importance()

        logger.info(
            f"  Selected cp={self.selected_cp_:.6g}: {self.tree_.n_splits} splits, "
            f"{len(self.rules_)} segments"
        )
        return self

    def _check_fitted(self) -> None:
        if not self.is_fitted_:
            raise RuntimeError("DecisionTreeSegmenter must be fitted before use. Call fit() first.")

    def _feature_importance(self) -> pd.DataFrame:
        importance = {name: 0.0 for name in self.features_}
        for node in self.tree_.internal_nodes():
            importance[node.split.feature] += node.improvement

        frame = pd.DataFrame({
            'feature': list(importance),
            'importance': list(importance.values()),
        })
        total = frame['importance'].sum()
        frame['share'] = frame['importance'] / total if total > 0 else 0.0
        return frame.sort_values('importance', ascending=False, kind='mergesort').reset_index(drop=True)

    def _as_matrix(self, data: Union[Dataset, FeatureMatrix, np.ndarray]) -> np.ndarray:
        if isinstance(data, Dataset):
            return data.feature_matrix(self.features_).values
        if isinstance(data, FeatureMatrix):
            if list(data.columns) != self.features_:
                raise ValidationError(
                    "Feature matrix columns do not match the fitted predictors",
                    field="columns",
                    expected=f"{self.features_}",
                    actual=f"{list(data.columns)}",
                    fix="Build the matrix with the same features and ordinal encoding"
                )
            return data.values
        X = np.asarray(data, dtype=float)
        validate_array(X, name="predictors")
        if X.shape[1] != len(self.features_):
            raise ValidationError(
                "Predictor matrix has the wrong number of columns",
                field="X",
                expected=f"{len(self.features_)} columns",
                actual=f"{X.shape[1]} columns"
            )
        return X

    def assign(self, data: Union[Dataset, FeatureMatrix, np.ndarray]) -> np.ndarray:
        """
        Segment id (1..L) of every record, by evaluating the leaf rules.

        Raises:
            RuleCoverageError: If a record matches zero or several rules
        """
        self._check_fitted()
        return assign_by_rules(self.rules_, self._as_matrix(data))

    def assign_record(self, record: Union[Record, Mapping[str, Any]]) -> int:
        """Segment id of a single record (raw values, categories as labels)."""
        self._check_fitted()
        if isinstance(record, Record):
            return assign_record_by_rules(self.rules_, record.values, record.position)
        return assign_record_by_rules(self.rules_, record)

    def assignment(self, dataset: Dataset) -> pd.Series:
        """Segment ids as a Series aligned with the Dataset index."""
        return pd.Series(self.assign(dataset), index=dataset.index, name=self.ASSIGNMENT_NAME)

    def rules_text(self) -> str:
        self._check_fitted()
        return format_rules(self.rules_)

    def segment_table(self) -> pd.DataFrame:
        """One row per leaf: id, rule, size and positive rate on the fitting data."""
        self._check_fitted()
        return pd.DataFrame([rule.to_dict() for rule in self.rules_])

    def get_summary(self) -> dict:
        """Key facts of the fitted tree for the run report."""
        self._check_fitted()
        return {
            'params': self.params.to_dict(),
            'selected_cp': self.selected_cp_,
            'n_splits': self.tree_.n_splits,
            'n_segments': len(self.rules_),
            'depth': self.tree_.depth(),
            'rules': [rule.to_dict() for rule in self.rules_],
            'feature_importance': [
                {'feature': row.feature, 'importance': float(row.importance), 'share': float(row.share)}
                for row in self.feature_importance_.itertuples(index=False)
            ],
        }
