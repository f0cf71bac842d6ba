"""
Pydantic Models for Customer Segmentation

- Algorithm parameters (tree growth/pruning, k-means)
- Result objects (probability tables, separation scores, k-means runs,
  run report)
"""

from .params import TreeParams, KMeansParams, SplitCriterion, InitMethod
from .results import (
    ProbabilityKind,
    ProbabilityTable,
    SeparationScore,
    KMeansResult,
    SegmentationReport,
)

__all__ = [
    # Parameters
    'TreeParams',
    'KMeansParams',
    'SplitCriterion',
    'InitMethod',

    # Results
    'ProbabilityKind',
    'ProbabilityTable',
    'SeparationScore',
    'KMeansResult',
    'SegmentationReport',
]
