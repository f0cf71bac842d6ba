"""
Customer Segmentation Engine

Segments a customer population with a supervised decision tree and with
unsupervised k-means, then evaluates both partitions against a binary
outcome and the population's numeric attributes.
"""

from .data import Dataset, FeatureKind, FeatureMatrix, FeatureSpec, MissingPolicy, TargetRule, load_dataset
from .models import KMeansParams, TreeParams
from .standardizer import Standardizer, standardize
from .tree import DecisionTreeSegmenter, RuleCoverageError
from .kmeans import KMeansSegmenter, choose_k_by_elbow, elbow_curve, run_kmeans
from .evaluator import SegmentEvaluator
from .config import (
    SegmentationConfig,
    DataConfig,
    ClusteringConfig,
    OutputConfig,
    LoggingConfig,
    create_default_config
)
from .pipeline import SegmentationPipeline

__version__ = "0.1.0"
__all__ = [
    "Dataset",
    "FeatureKind",
    "FeatureMatrix",
    "FeatureSpec",
    "MissingPolicy",
    "TargetRule",
    "load_dataset",
    "KMeansParams",
    "TreeParams",
    "Standardizer",
    "standardize",
    "DecisionTreeSegmenter",
    "RuleCoverageError",
    "KMeansSegmenter",
    "choose_k_by_elbow",
    "elbow_curve",
    "run_kmeans",
    "SegmentEvaluator",
    "SegmentationConfig",
    "DataConfig",
    "ClusteringConfig",
    "OutputConfig",
    "LoggingConfig",
    "create_default_config",
    "SegmentationPipeline",
]
