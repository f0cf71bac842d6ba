"""
Zero-mean, unit-variance scaling of feature matrices.

Uses the sample standard deviation (ddof=1). Columns without variation
map to a constant zero column with scale 1, which keeps the transform
reversible.
"""

from typing import Optional, Tuple, Union

import numpy as np

from .data.dataset import FeatureMatrix
from .logger import get_logger
from .validators import validate_array

logger = get_logger(__name__)

MatrixLike = Union[np.ndarray, FeatureMatrix]


def _as_array(matrix: MatrixLike) -> np.ndarray:
    if isinstance(matrix, FeatureMatrix):
        return matrix.values
    return np.asarray(matrix, dtype=float)


def _column_statistics(X: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Per-column mean, scale and zero-variance mask."""
    validate_array(X, name="matrix")

    mean = X.mean(axis=0)
    if X.shape[0] > 1:
        scale = X.std(axis=0, ddof=1)
    else:
        scale = np.zeros(X.shape[1])

    constant = np.ptp(X, axis=0) == 0
    if np.any(constant):
        logger.debug(f"{int(constant.sum())} zero-variance column(s) scaled to zero")

    return mean, np.where(constant, 1.0, scale), constant


def standardize(matrix: MatrixLike) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Standardize each column of ``matrix``.

    Args:
        matrix: 2-D numeric array or FeatureMatrix

    Returns:
        Tuple of (scaled_matrix, per_feature_mean, per_feature_scale)

    Example:
        >>> scaled, mean, scale = standardize(np.array([[1.0], [3.0]]))
        >>> mean.tolist(), scale.tolist()
        ([2.0], [1.4142135623730951])
    """
    X = _as_array(matrix)
    mean, scale, constant = _column_statistics(X)

    scaled = (X - mean) / scale
    scaled[:, constant] = 0.0

    return scaled, mean, scale


def inverse_transform(scaled: np.ndarray, mean: np.ndarray, scale: np.ndarray) -> np.ndarray:
    """Map standardized values back to the raw scale (scale * value + mean)."""
    return np.asarray(scaled, dtype=float) * scale + mean


class Standardizer:
    """
    Stateful wrapper around :func:`standardize`.

    Example:
        >>> standardizer = Standardizer().fit(raw)
        >>> scaled = standardizer.transform(raw)
        >>> np.allclose(standardizer.inverse_transform(scaled), raw.values)
        True
    """

    def __init__(self):
        self.mean_: Optional[np.ndarray] = None
        self.scale_: Optional[np.ndarray] = None
        self.constant_: Optional[np.ndarray] = None

    @property
    def is_fitted(self) -> bool:
        return self.mean_ is not None

    def fit(self, matrix: MatrixLike) -> 'Standardizer':
        self.mean_, self.scale_, self.constant_ = _column_statistics(_as_array(matrix))
        return self

    def transform(self, matrix: MatrixLike) -> MatrixLike:
        """Scale with the fitted statistics; FeatureMatrix in, FeatureMatrix out."""
        if not self.is_fitted:
            raise RuntimeError("Standardizer must be fitted before transform")

        X = _as_array(matrix)
        if X.ndim != 2 or X.shape[1] != len(self.mean_):
            raise ValueError(f"Expected {len(self.mean_)} columns, got shape {X.shape}")

        scaled = (X - self.mean_) / self.scale_
        scaled[:, self.constant_] = 0.0

        if isinstance(matrix, FeatureMatrix):
            return matrix.with_values(scaled)
        return scaled

    def fit_transform(self, matrix: MatrixLike) -> MatrixLike:
        return self.fit(matrix).transform(matrix)

    def inverse_transform(self, scaled: MatrixLike) -> np.ndarray:
        if not self.is_fitted:
            raise RuntimeError("Standardizer must be fitted before inverse_transform")
        return inverse_transform(_as_array(scaled), self.mean_, self.scale_)
