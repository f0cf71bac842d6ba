"""Decision-tree segmentation: growth, pruning, leaf rules."""

from .nodes import DecisionTree, SplitTest, TreeNode
from .growth import find_best_split, grow_tree, impurity
from .pruning import (
    COMPLEXITY_COLUMNS,
    complexity_table,
    link_strengths,
    prune,
    pruning_sequence,
    select_complexity,
)
from .rules import (
    Condition,
    LeafRule,
    RuleCoverageError,
    assign_by_rules,
    assign_record_by_rules,
    extract_rules,
    format_rules,
)
from .segmenter import DecisionTreeSegmenter

__all__ = [
    'DecisionTree',
    'SplitTest',
    'TreeNode',
    'find_best_split',
    'grow_tree',
    'impurity',
    'COMPLEXITY_COLUMNS',
    'complexity_table',
    'link_strengths',
    'prune',
    'pruning_sequence',
    'select_complexity',
    'Condition',
    'LeafRule',
    'RuleCoverageError',
    'assign_by_rules',
    'assign_record_by_rules',
    'extract_rules',
    'format_rules',
    'DecisionTreeSegmenter',
]
