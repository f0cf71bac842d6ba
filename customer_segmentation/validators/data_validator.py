"""
DataFrame Validation and Data Quality Checks

Provides validation for the tabular input before a Dataset is built:
- Schema validation (declared columns present, declared kinds honoured)
- Target source column validation
- Data quality reporting (missing values, constant columns, duplicates)

All validation includes actionable error messages.
"""

import pandas as pd
import numpy as np
from typing import List, Optional, Dict, Sequence, TYPE_CHECKING
from dataclasses import dataclass, field
from ..logger import get_logger
from .input_validator import ValidationError

if TYPE_CHECKING:
    from ..data.dataset import FeatureSpec

logger = get_logger(__name__)


@dataclass
class DataQualityReport:
    """
    Data quality assessment of an input table.

    Attributes:
        n_rows: Total number of rows
        n_cols: Total number of columns
        missing_values: Dict mapping columns to missing value counts
        missing_percentages: Dict mapping columns to missing percentages
        non_finite_values: Dict mapping numeric columns to +/-inf counts
        constant_columns: Columns with only one unique value
        duplicated_rows: Number of duplicated rows
        warnings: List of warning messages
        passed: Whether data passes quality checks
    """

    n_rows: int
    n_cols: int
    missing_values: Dict[str, int] = field(default_factory=dict)
    missing_percentages: Dict[str, float] = field(default_factory=dict)
    non_finite_values: Dict[str, int] = field(default_factory=dict)
    constant_columns: List[str] = field(default_factory=list)
    duplicated_rows: int = 0
    warnings: List[str] = field(default_factory=list)
    passed: bool = True

    def __str__(self) -> str:
        lines = [
            "=" * 70,
            "DATA QUALITY REPORT",
            "=" * 70,
            f"Dataset Shape: {self.n_rows:,} rows x {self.n_cols} columns",
        ]

        if self.missing_values:
            lines.extend(["", "Missing Values:"])
            for col, count in sorted(self.missing_values.items(), key=lambda x: -x[1])[:5]:
                pct = self.missing_percentages[col]
                lines.append(f"  {col}: {count:,} ({pct:.1f}%)")
            if len(self.missing_values) > 5:
                lines.append(f"  ... and {len(self.missing_values) - 5} more columns")

        if self.non_finite_values:
            lines.extend(["", "Non-finite Values:"])
            for col, count in self.non_finite_values.items():
                lines.append(f"  {col}: {count:,}")

        if self.constant_columns:
            lines.extend([
                "",
                f"Constant Columns ({len(self.constant_columns)}):",
                f"  {', '.join(self.constant_columns[:5])}"
            ])

        if self.duplicated_rows > 0:
            lines.extend([
                "",
                f"Duplicated Rows: {self.duplicated_rows:,} ({100*self.duplicated_rows/self.n_rows:.2f}%)"
            ])

        if self.warnings:
            lines.extend(["", f"Warnings ({len(self.warnings)}):"])
            for warning in self.warnings[:5]:
                lines.append(f"  - {warning}")
            if len(self.warnings) > 5:
                lines.append(f"  ... and {len(self.warnings) - 5} more warnings")

        lines.extend([
            "",
            f"Status: {'PASSED' if self.passed else 'FAILED'}",
            "=" * 70
        ])

        return "\n".join(lines)


def validate_dataframe(
    df: pd.DataFrame,
    required_columns: Optional[Sequence[str]] = None,
    min_rows: int = 1,
    max_missing_pct: float = 0.50
) -> DataQualityReport:
    """
    Validate a pandas DataFrame and report its data quality.

    Args:
        df: DataFrame to validate
        required_columns: Column names that must be present
        min_rows: Minimum number of rows required
        max_missing_pct: Missing share per column above which the report fails

    Returns:
        DataQualityReport

    Raises:
        ValidationError: If the frame is unusable (wrong type, empty, columns missing)
    """
    if not isinstance(df, pd.DataFrame):
        raise ValidationError(
            "Input must be a pandas DataFrame",
            field="df",
            expected="pandas.DataFrame",
            actual=str(type(df).__name__),
            fix="Convert to DataFrame: df = pd.DataFrame(data)"
        )

    if df.empty:
        raise ValidationError(
            "DataFrame is empty",
            field="df",
            expected="Non-empty DataFrame",
            actual="0 rows",
            fix="Check the data source path and any row filters"
        )

    n_rows, n_cols = df.shape

    if n_rows < min_rows:
        raise ValidationError(
            "DataFrame has too few rows",
            field="df",
            expected=f"At least {min_rows} rows",
            actual=f"{n_rows} rows",
            fix=f"Provide more data or reduce min_rows to {n_rows}"
        )

    if required_columns:
        missing_cols = [col for col in required_columns if col not in df.columns]
        if missing_cols:
            raise ValidationError(
                "Required columns missing from DataFrame",
                field="df.columns",
                expected=f"Columns: {list(required_columns)}",
                actual=f"Missing: {missing_cols}",
                fix="Add missing columns or check column names (case-sensitive)"
            )

    report = DataQualityReport(n_rows=n_rows, n_cols=n_cols)

    missing_counts = df.isnull().sum()
    for col, count in missing_counts.items():
        if count > 0:
            pct = 100 * count / n_rows
            report.missing_values[col] = int(count)
            report.missing_percentages[col] = float(pct)

            if pct > max_missing_pct * 100:
                report.warnings.append(
                    f"Column '{col}' has {pct:.1f}% missing values (threshold: {max_missing_pct*100:.1f}%)"
                )
                report.passed = False

    for col in df.select_dtypes(include=[np.number]).columns:
        n_inf = int(np.isinf(df[col].to_numpy(dtype=float)).sum())
        if n_inf > 0:
            report.non_finite_values[col] = n_inf
            report.warnings.append(f"Column '{col}' has {n_inf} infinite values")

    for col in df.columns:
        if df[col].nunique() == 1:
            report.constant_columns.append(col)
            report.warnings.append(f"Column '{col}' has only one unique value")

    report.duplicated_rows = int(df.duplicated().sum())

    logger.info(
        f"DataFrame validation completed: {n_rows:,} rows, {n_cols} cols, "
        f"{len(report.warnings)} warnings"
    )

    return report


def validate_target_column(df: pd.DataFrame, target_col: str) -> pd.Series:
    """
    Validate the column a binary target is derived from.

    Args:
        df: DataFrame containing the column
        target_col: Name of the source column

    Returns:
        The column as a float Series

    Raises:
        ValidationError: If the column is absent, non-numeric or incomplete
    """
    if target_col not in df.columns:
        raise ValidationError(
            f"Target column '{target_col}' not found in DataFrame",
            field="target_col",
            expected=f"Column '{target_col}' to exist",
            actual=f"Available columns: {list(df.columns)[:10]}",
            fix="Check column name (case-sensitive) in the target rule"
        )

    target = df[target_col]

    n_missing = int(target.isnull().sum())
    if n_missing > 0:
        raise ValidationError(
            f"Target column '{target_col}' contains missing values",
            field=target_col,
            expected="No missing values in target",
            actual=f"{n_missing} missing values",
            fix="Use missing_policy='drop' or remove rows without an outcome"
        )

    if target.dtype == bool:
        return target.astype(float)

    if not pd.api.types.is_numeric_dtype(target):
        raise ValidationError(
            f"Target column '{target_col}' is not numeric",
            field=target_col,
            expected="Numeric or boolean column",
            actual=str(target.dtype),
            fix="Map the outcome to numbers before deriving a binary target"
        )

    return target.astype(float)


def validate_schema(df: pd.DataFrame, schema: Sequence['FeatureSpec']) -> None:
    """
    Check that declared features exist and hold values of the declared kind.

    Missing values are ignored here; they are the concern of the
    ingestion missing-value policy.

    Args:
        df: DataFrame with features
        schema: Declared feature specifications

    Raises:
        ValidationError: On absent columns, non-numeric numeric features,
            or categorical values outside the declared categories
    """
    names = [spec.name for spec in schema]
    missing = [name for name in names if name not in df.columns]
    if missing:
        raise ValidationError(
            "Declared features not found in DataFrame",
            field="features",
            expected=f"All features to exist: {names}",
            actual=f"Missing: {missing}",
            fix="Check feature names or remove missing features from the configuration"
        )

    for spec in schema:
        column = df[spec.name]
        if spec.is_categorical:
            observed = column.dropna().astype(str).unique()
            unknown = sorted(set(observed) - set(spec.categories))
            if unknown:
                raise ValidationError(
                    f"Feature '{spec.name}' has values outside its declared categories",
                    field=spec.name,
                    expected=f"Categories: {list(spec.categories)}",
                    actual=f"Unknown values: {unknown[:10]}",
                    fix="Add the values to the declared categories or recode them at ingestion"
                )
        elif not (pd.api.types.is_numeric_dtype(column) or column.dtype == bool):
            raise ValidationError(
                f"Feature '{spec.name}' is declared numeric but has dtype {column.dtype}",
                field=spec.name,
                expected="numeric column",
                actual=str(column.dtype),
                fix="Declare the feature as categorical with its categories"
            )

    logger.debug(f"Schema validated: {len(schema)} features")
