"""
Pydantic Models for Segmentation Results

Type-safe result objects returned by the segmenters and the evaluator.
Tabular payloads stay pandas objects so they can be written as delimited
text without conversion.
"""

from pydantic import BaseModel, Field, model_validator
from typing import Dict, List, Any
from datetime import datetime
from enum import Enum
from pathlib import Path
import json
import numpy as np
import pandas as pd


class ProbabilityKind(str, Enum):
    """Normalisation applied to a (segment, target) count table."""
    JOINT = "joint"
    CONDITIONAL = "conditional"


class ProbabilityTable(BaseModel):
    """
    Counts and probabilities keyed by (segment id, target value).

    ``counts`` and ``probabilities`` are indexed by segment id with one
    column per target value (False, True). Joint probabilities divide by
    the population size; conditional ones by the segment size.

    Example:
        >>> table = evaluator.conditional_probabilities(assignment)
        >>> table.probability(2, True)
        0.9
    """
    kind: ProbabilityKind = Field(description="Joint or conditional normalisation")
    method: str = Field(description="Name of the segment assignment")
    counts: pd.DataFrame = Field(description="Record counts per (segment, target)")
    probabilities: pd.DataFrame = Field(description="Normalised counts")

    class Config:
        arbitrary_types_allowed = True

    @model_validator(mode='after')
    def validate_alignment(self):
        """Counts and probabilities must share their layout."""
        if not self.counts.index.equals(self.probabilities.index) or \
                not self.counts.columns.equals(self.probabilities.columns):
            raise ValueError("counts and probabilities must have identical index and columns")
        return self

    def probability(self, segment: int, target: bool) -> float:
        """Probability of one cell."""
        return float(self.probabilities.at[segment, bool(target)])

    def total(self) -> float:
        """Sum over all cells (1.0 for a joint table)."""
        return float(self.probabilities.to_numpy().sum())

    def row_sums(self) -> pd.Series:
        """Per-segment sums (1.0 each for a conditional table)."""
        return self.probabilities.sum(axis=1)

    def to_frame(self) -> pd.DataFrame:
        """Long format: one row per (segment, target) pair."""
        rows = [
            {
                'segment': segment,
                'target': bool(target),
                'count': int(self.counts.at[segment, target]),
                'probability': float(self.probabilities.at[segment, target]),
            }
            for segment in self.counts.index
            for target in self.counts.columns
        ]
        return pd.DataFrame(rows, columns=['segment', 'target', 'count', 'probability'])


class SeparationScore(BaseModel):
    """
    Variance across segments of each feature's per-segment mean.

    ``total`` sums the per-feature variances, ``mean`` averages them.
    """
    method: str = Field(description="Name of the segment assignment")
    n_segments: int = Field(ge=0, description="Number of segments summarised")
    per_feature: Dict[str, float] = Field(default_factory=dict)
    total: float = Field(ge=0.0)
    mean: float = Field(ge=0.0)

    def get_summary(self) -> str:
        """Human-readable summary."""
        return (
            f"{self.method}: separation total={self.total:.4f}, "
            f"mean={self.mean:.4f} over {len(self.per_feature)} features, "
            f"{self.n_segments} segments"
        )


class KMeansResult(BaseModel):
    """
    Outcome of one k-means run.

    ``labels`` holds segment ids 1..k in Dataset row order; ``centroids``
    are in standardized space, one row per cluster (row i is cluster i+1).
    """
    n_clusters: int = Field(ge=1)
    labels: np.ndarray
    centroids: np.ndarray
    total_within_ss: float = Field(ge=0.0)
    within_ss: List[float] = Field(default_factory=list)
    n_iter: int = Field(ge=0)
    converged: bool
    n_reseeds: int = Field(default=0, ge=0)

    class Config:
        arbitrary_types_allowed = True

    def assignment(self, index: pd.Index, name: str = 'cluster_segment') -> pd.Series:
        """Labels as a Series aligned with the Dataset index."""
        return pd.Series(self.labels, index=index, name=name)

    def get_summary(self) -> str:
        """Human-readable summary."""
        sizes = np.bincount(self.labels, minlength=self.n_clusters + 1)[1:]
        status = "converged" if self.converged else "NOT converged"
        return (
            f"k={self.n_clusters}: total within-SS={self.total_within_ss:.4f}, "
            f"{self.n_iter} iterations ({status}), sizes={sizes.tolist()}"
        )


class SegmentationReport(BaseModel):
    """
    Run-level report assembled by the pipeline.

    Example:
        >>> report = pipeline.build_report()
        >>> report.to_json('output/run_report.json')
    """
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
    n_records: int = Field(ge=0)
    n_positive: int = Field(ge=0)
    features: List[str] = Field(default_factory=list)
    tree: Dict[str, Any] = Field(default_factory=dict)
    kmeans: Dict[str, Any] = Field(default_factory=dict)
    separation: Dict[str, Any] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)

    def to_json(self, filepath: str) -> None:
        """Write the report as indented JSON."""
        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, 'w') as f:
            json.dump(self.model_dump(mode='json'), f, indent=2)
