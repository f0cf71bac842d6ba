"""
Pydantic Models for Segmentation Parameters

Type-safe, validated algorithm parameters with cross-field validation.
Random seeds are deliberately absent: every stochastic component receives
an explicit ``numpy.random.Generator``.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Dict, Optional
from enum import Enum
import warnings


class SplitCriterion(str, Enum):
    """Allowed impurity criteria for tree growth."""
    GINI = "gini"
    ENTROPY = "entropy"


class InitMethod(str, Enum):
    """Centroid initialisation strategies for k-means."""
    KMEANS_PLUS_PLUS = "k-means++"
    RANDOM = "random"


class TreeParams(BaseModel):
    """
    Parameters for decision-tree segmentation.

    Example:
        >>> params = TreeParams(complexity_floor=0.005, min_split=40)
        >>> params.effective_min_bucket
        13
        >>> params.min_split = 10  # Raises error - immutable
    """

    complexity_floor: float = Field(
        default=0.01,
        ge=0.0,
        le=1.0,
        description="Minimum relative-error improvement a split must justify"
    )

    min_split: int = Field(
        default=20,
        ge=2,
        description="Minimum records in a node for a split to be attempted"
    )

    min_bucket: Optional[int] = Field(
        default=None,
        ge=1,
        description="Minimum records in any leaf (default round(min_split / 3))"
    )

    max_depth: int = Field(
        default=30,
        ge=1,
        le=30,
        description="Maximum depth of the grown tree"
    )

    criterion: SplitCriterion = Field(
        default=SplitCriterion.GINI,
        description="Impurity measure minimised when choosing splits"
    )

    n_folds: int = Field(
        default=10,
        ge=2,
        le=50,
        description="Cross-validation folds for the complexity table"
    )

    one_se_rule: bool = Field(
        default=False,
        description="Select the simplest tree within one standard error of the minimum"
    )

    class Config:
        """Pydantic configuration."""
        frozen = True
        use_enum_values = True

    @field_validator('complexity_floor')
    @classmethod
    def validate_complexity_floor(cls, v):
        """Warn when the candidate tree is allowed to grow without limit."""
        if v == 0.0:
            warnings.warn(
                "complexity_floor=0 grows the tree until nodes are pure or too small; "
                "cross-validation may be slow on large populations.",
                UserWarning
            )
        return v

    @model_validator(mode='after')
    def validate_bucket_consistency(self):
        """A split must be able to produce two leaves of min_bucket records."""
        if self.min_bucket is not None and 2 * self.min_bucket > self.min_split:
            raise ValueError(
                f"min_split ({self.min_split}) should be at least "
                f"2 * min_bucket ({2 * self.min_bucket})"
            )
        return self

    @property
    def effective_min_bucket(self) -> int:
        """Leaf size floor actually applied during growth."""
        if self.min_bucket is not None:
            return self.min_bucket
        return max(1, int(round(self.min_split / 3)))

    def to_dict(self) -> Dict:
        """Plain dictionary (enum values as strings)."""
        return self.model_dump(mode='json')

    def get_summary(self) -> str:
        """Human-readable summary."""
        criterion_val = self.criterion.value if isinstance(self.criterion, Enum) else self.criterion
        lines = [
            "Decision Tree Parameters",
            "=" * 50,
            f"  complexity_floor: {self.complexity_floor}",
            f"  min_split: {self.min_split}",
            f"  min_bucket: {self.effective_min_bucket}",
            f"  max_depth: {self.max_depth}",
            f"  criterion: {criterion_val}",
            f"  n_folds: {self.n_folds}",
            f"  one_se_rule: {self.one_se_rule}",
        ]
        return "\n".join(lines)


class KMeansParams(BaseModel):
    """
    Parameters for k-means segmentation and elbow diagnostics.

    Example:
        >>> params = KMeansParams(n_clusters=3, k_max=8)
        >>> params.init
        'k-means++'
    """

    n_clusters: int = Field(
        default=4,
        ge=1,
        description="Number of clusters k"
    )

    k_max: int = Field(
        default=10,
        ge=1,
        description="Largest k evaluated by the elbow curve"
    )

    max_iter: int = Field(
        default=100,
        ge=1,
        description="Iteration cap for Lloyd iterations"
    )

    tol: float = Field(
        default=1e-4,
        ge=0.0,
        description="Stop when the within-cluster sum of squares improves by less"
    )

    init: InitMethod = Field(
        default=InitMethod.KMEANS_PLUS_PLUS,
        description="Centroid initialisation strategy"
    )

    class Config:
        """Pydantic configuration."""
        frozen = True
        use_enum_values = True

    @model_validator(mode='after')
    def validate_elbow_range(self):
        """The elbow range must include the requested cluster count."""
        if self.k_max < self.n_clusters:
            raise ValueError(
                f"k_max ({self.k_max}) must be at least n_clusters ({self.n_clusters})"
            )
        return self

    def to_dict(self) -> Dict:
        """Plain dictionary (enum values as strings)."""
        return self.model_dump(mode='json')

    def get_summary(self) -> str:
        """Human-readable summary."""
        init_val = self.init.value if isinstance(self.init, Enum) else self.init
        lines = [
            "K-Means Parameters",
            "=" * 50,
            f"  n_clusters: {self.n_clusters}",
            f"  k_max: {self.k_max}",
            f"  max_iter: {self.max_iter}",
            f"  tol: {self.tol}",
            f"  init: {init_val}",
        ]
        return "\n".join(lines)
