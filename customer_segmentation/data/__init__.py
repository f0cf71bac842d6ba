"""
Data model and ingestion.
"""

from .dataset import Dataset, Encoding, FeatureKind, FeatureMatrix, FeatureSpec, Record
from .loader import MissingPolicy, TargetRule, apply_missing_policy, load_dataset, read_table

__all__ = [
    'Dataset',
    'Encoding',
    'FeatureKind',
    'FeatureMatrix',
    'FeatureSpec',
    'Record',
    'MissingPolicy',
    'TargetRule',
    'apply_missing_policy',
    'load_dataset',
    'read_table',
]
