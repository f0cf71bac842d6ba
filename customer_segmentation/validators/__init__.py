"""
Validation Module for the Customer Segmentation Engine

This module provides validation for:
- NumPy arrays handed to the segmentation core (shape, NaN/inf)
- Binary targets
- pandas DataFrames (schema, data quality) at ingestion

All validators raise ValidationError with actionable messages.
"""

from .input_validator import (
    validate_array,
    validate_binary_target,
    validate_feature_names,
    ValidationError
)

from .data_validator import (
    validate_dataframe,
    validate_target_column,
    validate_schema,
    DataQualityReport
)

__all__ = [
    'ValidationError',
    'validate_array',
    'validate_binary_target',
    'validate_feature_names',
    'validate_dataframe',
    'validate_target_column',
    'validate_schema',
    'DataQualityReport',
]
