"""
Arena representation of a binary classification tree.

Nodes live in a dictionary keyed by a stable integer id assigned in
pre-order during growth (root = 0). Pruning never mutates a tree: it
returns a new DecisionTree in which the collapsed nodes have become
leaves and their descendants are gone.
"""

from dataclasses import dataclass, replace
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

import numpy as np

from ..data.dataset import FeatureKind


@dataclass(frozen=True)
class SplitTest:
    """
    Single-feature test of an internal node.

    Numeric tests send ``value < threshold`` left; categorical tests send
    ``code in left_codes`` left. Everything else goes right, so the two
    branches always partition the value space.
    """
    feature_index: int
    feature: str
    kind: FeatureKind
    threshold: Optional[float] = None
    left_codes: FrozenSet[int] = frozenset()
    left_labels: Tuple[str, ...] = ()

    def goes_left(self, values: np.ndarray) -> np.ndarray:
        """Boolean mask of values routed to the left child."""
        if self.kind == FeatureKind.NUMERIC:
            return values < self.threshold
        return np.isin(values.astype(int), sorted(self.left_codes))

    def describe(self, left: bool) -> str:
        if self.kind == FeatureKind.NUMERIC:
            op = '<' if left else '>='
            return f"{self.feature} {op} {self.threshold:.6g}"
        op = 'in' if left else 'not in'
        return f"{self.feature} {op} {{{', '.join(self.left_labels)}}}"


@dataclass(frozen=True)
class TreeNode:
    """
    One node of the arena.

    ``improvement`` is the population-weighted impurity decrease of the
    node's split (zero for leaves).
    """
    node_id: int
    depth: int
    parent: Optional[int]
    n_samples: int
    n_positive: int
    impurity: float
    split: Optional[SplitTest] = None
    left: Optional[int] = None
    right: Optional[int] = None
    improvement: float = 0.0
    segment_id: Optional[int] = None

    @property
    def is_leaf(self) -> bool:
        return self.split is None

    @property
    def n_negative(self) -> int:
        return self.n_samples - self.n_positive

    @property
    def prediction(self) -> bool:
        """Majority class; ties predict the negative class."""
        return self.n_positive > self.n_negative

    @property
    def risk(self) -> int:
        """Misclassified records if this node were a leaf."""
        return min(self.n_positive, self.n_negative)

    @property
    def positive_rate(self) -> float:
        return self.n_positive / self.n_samples if self.n_samples else 0.0

    def as_leaf(self) -> 'TreeNode':
        return replace(self, split=None, left=None, right=None, improvement=0.0)


class DecisionTree:
    """
    Immutable tree addressed by node id.

    Example:
        >>> tree.leaves()                  # pre-order, left before right
        >>> smaller = tree.collapse([3])   # node 3 becomes a leaf
        >>> leaf_ids = smaller.apply(X)
    """

    ROOT = 0

    def __init__(self, nodes: Mapping[int, TreeNode]):
        if self.ROOT not in nodes:
            raise ValueError("Tree must contain a root node with id 0")
        self._nodes: Dict[int, TreeNode] = dict(nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: int) -> bool:
        return node_id in self._nodes

    def __repr__(self) -> str:
        return f"DecisionTree(n_nodes={len(self)}, n_leaves={self.n_leaves()})"

    @property
    def root(self) -> TreeNode:
        return self._nodes[self.ROOT]

    def node(self, node_id: int) -> TreeNode:
        return self._nodes[node_id]

    def node_ids(self) -> List[int]:
        return sorted(self._nodes)

    def preorder(self, node_id: int = ROOT) -> List[int]:
        """Node ids of the subtree rooted at ``node_id``, left before right."""
        order = []
        stack = [node_id]
        while stack:
            current = self._nodes[stack.pop()]
            order.append(current.node_id)
            if not current.is_leaf:
                stack.append(current.right)
                stack.append(current.left)
        return order

    def leaves(self, node_id: int = ROOT) -> List[TreeNode]:
        return [self._nodes[i] for i in self.preorder(node_id) if self._nodes[i].is_leaf]

    def internal_nodes(self, node_id: int = ROOT) -> List[TreeNode]:
        return [self._nodes[i] for i in self.preorder(node_id) if not self._nodes[i].is_leaf]

    def n_leaves(self, node_id: int = ROOT) -> int:
        return len(self.leaves(node_id))

    @property
    def n_splits(self) -> int:
        return len(self.internal_nodes())

    def depth(self) -> int:
        return max(node.depth for node in self._nodes.values())

    def path(self, node_id: int) -> List[Tuple[TreeNode, bool]]:
        """Ancestors of ``node_id`` from the root, each with the branch taken (True = left)."""
        steps = []
        current = self._nodes[node_id]
        while current.parent is not None:
            parent = self._nodes[current.parent]
            steps.append((parent, parent.left == current.node_id))
            current = parent
        return list(reversed(steps))

    def collapse(self, node_ids: Iterable[int]) -> 'DecisionTree':
        """New tree in which every given node is a leaf and its subtree is removed."""
        nodes = dict(self._nodes)
        for node_id in node_ids:
            if node_id not in nodes or nodes[node_id].is_leaf:
                continue
            for descendant in self.preorder(node_id)[1:]:
                nodes.pop(descendant, None)
            nodes[node_id] = nodes[node_id].as_leaf()
        return DecisionTree(nodes)

    def numbered(self) -> 'DecisionTree':
        """New tree whose leaves carry segment ids 1..L in pre-order."""
        nodes = {node_id: replace(node, segment_id=None) for node_id, node in self._nodes.items()}
        for segment_id, leaf in enumerate(self.leaves(), start=1):
            nodes[leaf.node_id] = replace(nodes[leaf.node_id], segment_id=segment_id)
        return DecisionTree(nodes)

    def apply(self, X: np.ndarray) -> np.ndarray:
        """Leaf node id reached by each row of ``X``."""
        current = np.full(X.shape[0], self.ROOT, dtype=int)
        # Pre-order visits parents before children, so one pass routes every row.
        for node_id in self.preorder():
            node = self._nodes[node_id]
            if node.is_leaf:
                continue
            at_node = current == node_id
            if not np.any(at_node):
                continue
            left = node.split.goes_left(X[at_node, node.split.feature_index])
            current[at_node] = np.where(left, node.left, node.right)
        return current

    def predict(self, X: np.ndarray) -> np.ndarray:
        """Majority-class prediction of the leaf each row reaches."""
        leaf_ids = self.apply(X)
        lookup = {leaf.node_id: leaf.prediction for leaf in self.leaves()}
        return np.array([lookup[leaf_id] for leaf_id in leaf_ids], dtype=bool)
