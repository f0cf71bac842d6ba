"""
Input Validation for NumPy Arrays

Provides validation functions for arrays handed to the segmentation core:
- Shape and dimensionality checks
- NaN and infinity handling
- Binary target validation
- Feature name validation

All errors include actionable guidance for fixing issues.
"""

import numpy as np
from typing import List, Optional, Tuple
from ..logger import get_logger

logger = get_logger(__name__)


class ValidationError(Exception):
    """
    Custom exception for validation errors with actionable messages.

    Attributes:
        message: Human-readable error description
        field: Field or parameter that failed validation
        expected: Expected value or condition
        actual: Actual value that caused the error
        fix: Suggested fix for the issue
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
        fix: Optional[str] = None
    ):
        self.message = message
        self.field = field
        self.expected = expected
        self.actual = actual
        self.fix = fix

        parts = [f"[VALIDATION ERROR] {message}"]
        if field:
            parts.append(f"  Field: {field}")
        if expected:
            parts.append(f"  Expected: {expected}")
        if actual:
            parts.append(f"  Actual: {actual}")
        if fix:
            parts.append(f"  Fix: {fix}")

        super().__init__("\n".join(parts))


def validate_array(
    X: np.ndarray,
    name: str = "X",
    min_samples: int = 1,
    min_features: int = 1
) -> None:
    """
    Validate a feature matrix before it reaches the segmentation core.

    The core assumes a complete, finite matrix; missing values must be
    resolved at ingestion by an explicit policy.

    Args:
        X: Array to validate
        name: Name of the array (for error messages)
        min_samples: Minimum number of rows required
        min_features: Minimum number of columns required

    Raises:
        ValidationError: If validation fails with actionable guidance

    Example:
        >>> X = np.random.rand(100, 3)
        >>> validate_array(X, name="X_scaled")
    """
    if not isinstance(X, np.ndarray):
        raise ValidationError(
            f"{name} must be a NumPy array",
            field=name,
            expected="numpy.ndarray",
            actual=str(type(X).__name__),
            fix=f"Convert to NumPy array: {name} = np.asarray({name}, dtype=float)"
        )

    if X.ndim != 2:
        raise ValidationError(
            f"{name} must be 2-dimensional",
            field=name,
            expected="2D array with shape (n_samples, n_features)",
            actual=f"{X.ndim}D array with shape {X.shape}",
            fix=f"Reshape to 2D: {name} = {name}.reshape(-1, 1) for a single feature"
        )

    n_samples, n_features = X.shape

    if n_samples < min_samples:
        raise ValidationError(
            f"{name} has too few samples",
            field=name,
            expected=f"At least {min_samples} samples",
            actual=f"{n_samples} samples",
            fix="Provide more records or lower the requested number of segments"
        )

    if n_features < min_features:
        raise ValidationError(
            f"{name} has too few features",
            field=name,
            expected=f"At least {min_features} features",
            actual=f"{n_features} features",
            fix="Add predictor features to the configuration"
        )

    if not np.issubdtype(X.dtype, np.number):
        raise ValidationError(
            f"{name} must be numeric",
            field=name,
            expected="numeric dtype",
            actual=str(X.dtype),
            fix="Encode categorical features before building the matrix"
        )

    if np.any(np.isnan(X)):
        n_nan = int(np.sum(np.isnan(X)))
        pct_nan = 100 * n_nan / X.size
        raise ValidationError(
            f"{name} contains NaN values",
            field=name,
            expected="No NaN values",
            actual=f"{n_nan} NaN values ({pct_nan:.2f}% of data)",
            fix="Set a missing-value policy ('drop' or 'sentinel') in DataConfig"
        )

    if np.any(np.isinf(X)):
        n_inf = int(np.sum(np.isinf(X)))
        pct_inf = 100 * n_inf / X.size
        raise ValidationError(
            f"{name} contains infinity values",
            field=name,
            expected="No infinity values",
            actual=f"{n_inf} infinity values ({pct_inf:.2f}% of data)",
            fix="Treat infinities as missing at ingestion and apply the missing-value policy"
        )

    logger.debug(f"{name} validation passed: shape {X.shape}, dtype {X.dtype}")


def validate_binary_target(
    y: np.ndarray,
    name: str = "y",
    n_expected: Optional[int] = None
) -> Tuple[int, int, float]:
    """
    Validate a binary target array.

    A single class is allowed (the tree then collapses to one segment);
    anything other than 0/1 values is not.

    Args:
        y: Binary target array (0/1 or bool)
        name: Name of the target (for error messages)
        n_expected: Expected length (row count of the feature matrix)

    Returns:
        Tuple of (n_samples, n_positive, positive_rate)

    Raises:
        ValidationError: If validation fails

    Example:
        >>> y = np.array([0, 0, 1, 0, 1, 1])
        >>> n, n_pos, rate = validate_binary_target(y)
        >>> print(f"Positive rate: {rate:.2%}")
        Positive rate: 50.00%
    """
    if not isinstance(y, np.ndarray):
        raise ValidationError(
            f"{name} must be a NumPy array",
            field=name,
            expected="numpy.ndarray",
            actual=str(type(y).__name__),
            fix=f"Convert to NumPy array: {name} = np.asarray({name})"
        )

    if y.ndim != 1:
        raise ValidationError(
            f"{name} must be 1-dimensional",
            field=name,
            expected="1D array with shape (n_samples,)",
            actual=f"{y.ndim}D array with shape {y.shape}",
            fix=f"Flatten to 1D: {name} = {name}.ravel()"
        )

    n_samples = len(y)

    if n_samples == 0:
        raise ValidationError(
            f"{name} is empty",
            field=name,
            expected="At least one record",
            actual="0 records",
            fix="Check data loading and filtering"
        )

    if n_expected is not None and n_samples != n_expected:
        raise ValidationError(
            f"{name} length does not match the feature matrix",
            field=name,
            expected=f"{n_expected} values",
            actual=f"{n_samples} values",
            fix="Build the target and the feature matrix from the same Dataset"
        )

    values = y.astype(float)
    if np.any(np.isnan(values)):
        raise ValidationError(
            f"{name} contains NaN values",
            field=name,
            expected="No NaN values in target",
            actual=f"{int(np.sum(np.isnan(values)))} NaN values",
            fix="Derive the target with a TargetRule after resolving missing values"
        )

    unique_values = np.unique(values)
    if not np.all(np.isin(unique_values, [0.0, 1.0])):
        raise ValidationError(
            f"{name} must contain only binary values (0 and 1)",
            field=name,
            expected="Values in {0, 1}",
            actual=f"Unique values: {unique_values}",
            fix=f"Convert to binary: {name} = ({name} > threshold).astype(int)"
        )

    n_positive = int(values.sum())
    positive_rate = n_positive / n_samples

    if n_positive in (0, n_samples):
        logger.warning(f"{name} contains a single class; the tree will have one segment")

    logger.debug(f"{name} validation passed: {n_samples} samples, {n_positive} positive ({positive_rate:.2%})")

    return n_samples, n_positive, positive_rate


def validate_feature_names(
    feature_names: Optional[List[str]],
    n_features: int
) -> List[str]:
    """
    Validate and generate feature names if not provided.

    Args:
        feature_names: Optional list of feature names
        n_features: Expected number of features

    Returns:
        Validated or generated feature names

    Raises:
        ValidationError: If feature names are invalid
    """
    if feature_names is None:
        return [f"feature_{i}" for i in range(n_features)]

    if not isinstance(feature_names, (list, tuple)):
        raise ValidationError(
            "feature_names must be a list or tuple",
            field="feature_names",
            expected="list or tuple",
            actual=str(type(feature_names).__name__),
            fix="Convert to list: feature_names = list(feature_names)"
        )

    if len(feature_names) != n_features:
        raise ValidationError(
            "Number of feature names doesn't match number of features",
            field="feature_names",
            expected=f"{n_features} feature names",
            actual=f"{len(feature_names)} feature names",
            fix=f"Provide exactly {n_features} feature names"
        )

    if len(feature_names) != len(set(feature_names)):
        duplicates = sorted({name for name in feature_names if feature_names.count(name) > 1})
        raise ValidationError(
            "Feature names contain duplicates",
            field="feature_names",
            expected="Unique feature names",
            actual=f"Duplicates: {duplicates}",
            fix="Rename or remove the duplicated features"
        )

    if any(not str(name).strip() for name in feature_names):
        raise ValidationError(
            "Feature names contain empty strings",
            field="feature_names",
            expected="Non-empty feature names",
            actual="Some feature names are empty",
            fix="Give every feature a name"
        )

    return list(feature_names)
