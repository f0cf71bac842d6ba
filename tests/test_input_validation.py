"""
Unit Tests for Input Validation

Tests cover:
- ValidationError formatting and error messages
- Array validation (shape, dtype, NaN/inf handling)
- Binary target validation (value range, single class, lengths)
- Feature names validation
"""

import pytest
import numpy as np

from customer_segmentation.validators import (
    validate_array,
    validate_binary_target,
    validate_feature_names,
    ValidationError
)


@pytest.mark.unit
class TestValidationError:
    """Test ValidationError exception class."""

    def test_basic_validation_error(self):
        error = ValidationError("Test error message")
        assert "Test error message" in str(error)

    def test_validation_error_full_details(self):
        """All optional parts appear in the rendered message."""
        error = ValidationError(
            "Invalid array",
            field="X",
            expected="numpy.ndarray",
            actual="list",
            fix="Convert: X = np.asarray(X)"
        )

        error_str = str(error)
        assert "[VALIDATION ERROR]" in error_str
        assert "Field: X" in error_str
        assert "Expected: numpy.ndarray" in error_str
        assert "Actual: list" in error_str
        assert "Fix: Convert" in error_str

    def test_validation_error_attributes(self):
        """Message parts stay available as attributes."""
        error = ValidationError("Bad", field="tenure", fix="Recode")

        assert error.message == "Bad"
        assert error.field == "tenure"
        assert error.expected is None
        assert error.fix == "Recode"


@pytest.mark.unit
class TestArrayValidation:
    """Test validate_array function."""

    def test_valid_2d_array(self, valid_X_small):
        validate_array(valid_X_small, name="X", min_samples=50)

    def test_array_not_numpy(self):
        """Python lists are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            validate_array([[1, 2, 3], [4, 5, 6]])

        assert "must be a NumPy array" in str(exc_info.value)

    def test_array_not_2d(self):
        with pytest.raises(ValidationError, match="2-dimensional"):
            validate_array(np.array([1.0, 2.0, 3.0]))

    def test_array_too_few_samples(self):
        """The message names both counts."""
        with pytest.raises(ValidationError) as exc_info:
            validate_array(np.zeros((5, 2)), min_samples=10)

        assert "too few samples" in str(exc_info.value)
        assert "5 samples" in str(exc_info.value)

    def test_array_too_few_features(self):
        with pytest.raises(ValidationError, match="too few features"):
            validate_array(np.empty((5, 0)))

    def test_array_not_numeric(self):
        with pytest.raises(ValidationError, match="numeric"):
            validate_array(np.array([['a', 'b']]))

    def test_array_with_nans(self, X_with_nans):
        """NaN values point to the missing-value policy."""
        with pytest.raises(ValidationError) as exc_info:
            validate_array(X_with_nans, name="predictors")

        assert "NaN" in str(exc_info.value)
        assert "missing-value policy" in str(exc_info.value)

    def test_array_with_infs(self, X_with_infs):
        with pytest.raises(ValidationError, match="infinity"):
            validate_array(X_with_infs)


@pytest.mark.unit
class TestBinaryTargetValidation:
    """Test validate_binary_target function."""

    def test_valid_target(self, valid_y_small):
        n, n_positive, rate = validate_binary_target(valid_y_small)

        assert n == len(valid_y_small)
        assert n_positive == int(valid_y_small.sum())
        assert rate == pytest.approx(n_positive / n)

    def test_boolean_target(self):
        """Booleans count as 0/1."""
        n, n_positive, rate = validate_binary_target(np.array([True, False, True, True]))

        assert (n, n_positive) == (4, 3)
        assert rate == pytest.approx(0.75)

    def test_single_class_allowed(self):
        """A constant outcome is valid; the tree collapses to one segment."""
        n, n_positive, rate = validate_binary_target(np.zeros(10))

        assert n_positive == 0
        assert rate == 0.0

    def test_non_binary_values(self):
        with pytest.raises(ValidationError, match="binary"):
            validate_binary_target(np.array([0, 1, 2]))

    def test_nan_in_target(self):
        with pytest.raises(ValidationError, match="NaN"):
            validate_binary_target(np.array([0.0, np.nan, 1.0]))

    def test_length_mismatch(self):
        """Target length must match the feature matrix."""
        with pytest.raises(ValidationError, match="length"):
            validate_binary_target(np.array([0, 1, 1]), n_expected=4)

    def test_empty_target(self):
        with pytest.raises(ValidationError, match="empty"):
            validate_binary_target(np.array([]))

    def test_target_not_1d(self):
        with pytest.raises(ValidationError, match="1-dimensional"):
            validate_binary_target(np.zeros((3, 2)))


@pytest.mark.unit
class TestFeatureNamesValidation:
    """Test validate_feature_names function."""

    def test_generated_names(self):
        assert validate_feature_names(None, 3) == ['feature_0', 'feature_1', 'feature_2']

    def test_explicit_names(self):
        names = ['monthly_charges', 'support_calls']
        assert validate_feature_names(names, 2) == names

    def test_wrong_count(self):
        with pytest.raises(ValidationError):
            validate_feature_names(['a', 'b'], 3)

    def test_wrong_type(self):
        with pytest.raises(ValidationError, match="list or tuple"):
            validate_feature_names('abc', 3)
