"""
Ingestion: reading the input table, resolving missing values and deriving
the binary target.

This is the only place where data-validity problems are repaired. The
segmentation core downstream assumes a complete, finite feature matrix.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Union
import operator

import numpy as np
import pandas as pd

from ..logger import get_logger
from ..validators import (
    ValidationError,
    validate_dataframe,
    validate_target_column,
)
from .dataset import Dataset, FeatureSpec

logger = get_logger(__name__)

_COMPARATORS = {
    '>': operator.gt,
    '>=': operator.ge,
    '<': operator.lt,
    '<=': operator.le,
}


class MissingPolicy(str, Enum):
    """What ingestion does with missing or non-finite feature values."""
    ERROR = "error"
    DROP = "drop"
    SENTINEL = "sentinel"


@dataclass(frozen=True)
class TargetRule:
    """
    Derivation of the binary outcome from a numeric column.

    Exactly one of ``quantile`` and ``threshold`` is set. With a quantile the
    threshold is that quantile of the column over the loaded population.

    Example:
        >>> rule = TargetRule(column='tenure', quantile=0.75, direction='>')
        >>> target = rule.apply(frame)    # tenure above its upper quartile
    """
    column: str
    quantile: Optional[float] = None
    threshold: Optional[float] = None
    direction: str = '>'
    name: str = 'target'

    def __post_init__(self):
        if (self.quantile is None) == (self.threshold is None):
            raise ValueError("TargetRule needs exactly one of quantile or threshold")
        if self.quantile is not None and not 0.0 < self.quantile < 1.0:
            raise ValueError(f"quantile must be in (0, 1), got {self.quantile}")
        if self.direction not in _COMPARATORS:
            raise ValueError(
                f"direction must be one of {sorted(_COMPARATORS)}, got '{self.direction}'"
            )

    def resolve_threshold(self, values: pd.Series) -> float:
        if self.threshold is not None:
            return float(self.threshold)
        return float(values.quantile(self.quantile))

    def apply(self, frame: pd.DataFrame) -> pd.Series:
        """Boolean outcome per row of ``frame``."""
        values = validate_target_column(frame, self.column)
        cutoff = self.resolve_threshold(values)
        target = _COMPARATORS[self.direction](values, cutoff)
        logger.info(
            f"Target '{self.name}' = {self.column} {self.direction} {cutoff:.4g}: "
            f"{int(target.sum()):,} of {len(target):,} positive ({target.mean():.2%})"
        )
        return target.rename(self.name).astype(bool)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'column': self.column,
            'quantile': self.quantile,
            'threshold': self.threshold,
            'direction': self.direction,
            'name': self.name,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'TargetRule':
        return cls(**data)


def read_table(path: Union[str, Path], schema: Sequence[FeatureSpec], target_column: str) -> pd.DataFrame:
    """
    Read a delimited file keeping only the declared columns.

    Categorical columns are read as strings so their values compare against
    the declared categories without dtype guessing.
    """
    path = Path(path)
    if not path.exists():
        raise ValidationError(
            "Data source not found",
            field="source",
            actual=str(path),
            fix="Check the data source path in the configuration"
        )

    columns = [spec.name for spec in schema]
    if target_column not in columns:
        columns.append(target_column)
    dtypes = {spec.name: str for spec in schema if spec.is_categorical}

    header = pd.read_csv(path, nrows=0).columns
    missing = [col for col in columns if col not in header]
    if missing:
        raise ValidationError(
            "Required columns missing from the input file",
            field="columns",
            expected=f"Columns: {columns}",
            actual=f"Missing: {missing}",
            fix="Check column names (case-sensitive) in the configuration"
        )

    frame = pd.read_csv(path, usecols=columns, dtype=dtypes)
    logger.info(f"Loaded {len(frame):,} rows, {len(frame.columns)} columns from {path}")
    return frame


def apply_missing_policy(
    frame: pd.DataFrame,
    schema: Sequence[FeatureSpec],
    policy: MissingPolicy = MissingPolicy.ERROR,
    numeric_sentinel: float = 0.0,
    categorical_sentinel: Optional[str] = None
) -> pd.DataFrame:
    """
    Resolve missing and non-finite feature values.

    Args:
        frame: Input table
        schema: Declared features (only these columns are inspected)
        policy: 'error' raises, 'drop' removes affected rows, 'sentinel'
            substitutes ``numeric_sentinel`` / ``categorical_sentinel``
        numeric_sentinel: Replacement for numeric features
        categorical_sentinel: Replacement for categorical features; must be
            one of each affected feature's declared categories

    Returns:
        A new frame without missing feature values
    """
    policy = MissingPolicy(policy)
    frame = frame.copy()

    for spec in schema:
        if not spec.is_categorical:
            values = pd.to_numeric(frame[spec.name], errors='raise').astype(float)
            frame[spec.name] = values.where(np.isfinite(values))

    names = [spec.name for spec in schema]
    missing_counts = frame[names].isnull().sum()
    affected = {name: int(count) for name, count in missing_counts.items() if count > 0}

    if not affected:
        return frame

    if policy == MissingPolicy.ERROR:
        raise ValidationError(
            "Features contain missing or non-finite values",
            field="features",
            expected="Complete feature values",
            actual=f"Missing counts: {affected}",
            fix="Set missing_policy to 'drop' or 'sentinel' in DataConfig"
        )

    if policy == MissingPolicy.DROP:
        mask = frame[names].notnull().all(axis=1)
        logger.warning(f"Dropping {int((~mask).sum()):,} rows with missing feature values: {affected}")
        return frame.loc[mask]

    for spec in schema:
        if spec.name not in affected:
            continue
        if spec.is_categorical:
            if categorical_sentinel is None or categorical_sentinel not in spec.categories:
                raise ValidationError(
                    f"No usable sentinel category for feature '{spec.name}'",
                    field=spec.name,
                    expected=f"categorical_sentinel in {list(spec.categories)}",
                    actual=str(categorical_sentinel),
                    fix="Add the sentinel to the declared categories of the feature"
                )
            frame[spec.name] = frame[spec.name].fillna(categorical_sentinel)
        else:
            frame[spec.name] = frame[spec.name].fillna(numeric_sentinel)

    logger.warning(f"Substituted sentinel values for missing features: {affected}")
    return frame


def load_dataset(
    source: Union[str, Path, pd.DataFrame],
    schema: Sequence[FeatureSpec],
    target_rule: TargetRule,
    missing_policy: MissingPolicy = MissingPolicy.ERROR,
    numeric_sentinel: float = 0.0,
    categorical_sentinel: Optional[str] = None
) -> Dataset:
    """
    Build a Dataset from a file or an in-memory frame.

    Rows with a missing target source value are dropped only under the
    'drop' policy; the target threshold is resolved after missing feature
    values have been handled so it describes the analysed population.
    """
    if isinstance(source, pd.DataFrame):
        frame = source.copy()
    else:
        frame = read_table(source, schema, target_rule.column)

    required = [spec.name for spec in schema] + [target_rule.column]
    report = validate_dataframe(frame, required_columns=required)
    for warning in report.warnings[:5]:
        logger.info(f"  - {warning}")

    if MissingPolicy(missing_policy) == MissingPolicy.DROP:
        frame = frame.loc[frame[target_rule.column].notnull()]

    frame = apply_missing_policy(
        frame, schema, missing_policy, numeric_sentinel, categorical_sentinel
    )

    target = target_rule.apply(frame)
    return Dataset(frame, schema, target.to_numpy(), target_name=target_rule.name)
