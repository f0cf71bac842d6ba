"""
Dataset, feature schema and feature matrices.

A Dataset is built once from a table and an explicit schema; categorical
features carry their closed category list, nothing is inferred from column
dtypes. Downstream stages read it through copies and FeatureMatrix views
whose row order always matches the Dataset row order.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..logger import get_logger
from ..validators import ValidationError, validate_binary_target, validate_schema

logger = get_logger(__name__)


class FeatureKind(str, Enum):
    """Value kind of a feature."""
    NUMERIC = "numeric"
    CATEGORICAL = "categorical"


class Encoding(str, Enum):
    """How categorical features are turned into numeric columns."""
    ORDINAL = "ordinal"
    ONEHOT = "onehot"


@dataclass(frozen=True)
class FeatureSpec:
    """
    Declared name and kind of one feature.

    Categorical features list their categories; the position of a category
    in that tuple is its ordinal code.

    Example:
        >>> FeatureSpec.categorical('contract', ['month', 'one_year', 'two_year'])
        >>> FeatureSpec.numeric('monthly_charges')
    """
    name: str
    kind: FeatureKind = FeatureKind.NUMERIC
    categories: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'kind', FeatureKind(self.kind))
        object.__setattr__(self, 'categories', tuple(str(c) for c in self.categories))

        if not str(self.name).strip():
            raise ValueError("Feature name must be non-empty")
        if self.kind == FeatureKind.CATEGORICAL:
            if not self.categories:
                raise ValueError(f"Categorical feature '{self.name}' must declare its categories")
            if len(set(self.categories)) != len(self.categories):
                raise ValueError(f"Categorical feature '{self.name}' has duplicate categories")
        elif self.categories:
            raise ValueError(f"Numeric feature '{self.name}' cannot declare categories")

    @classmethod
    def numeric(cls, name: str) -> 'FeatureSpec':
        return cls(name, FeatureKind.NUMERIC)

    @classmethod
    def categorical(cls, name: str, categories: Sequence[Any]) -> 'FeatureSpec':
        return cls(name, FeatureKind.CATEGORICAL, tuple(categories))

    @property
    def is_categorical(self) -> bool:
        return self.kind == FeatureKind.CATEGORICAL

    def encode(self, values: pd.Series) -> np.ndarray:
        """Numeric values as floats, categorical values as ordinal codes."""
        if not self.is_categorical:
            return values.to_numpy(dtype=float)

        codes = pd.Categorical(values.astype(str), categories=list(self.categories)).codes
        if np.any(codes < 0):
            unknown = sorted(set(values.astype(str)) - set(self.categories))
            raise ValidationError(
                f"Feature '{self.name}' has values outside its declared categories",
                field=self.name,
                expected=f"Categories: {list(self.categories)}",
                actual=f"Unknown values: {unknown[:10]}",
                fix="Declare the categories or recode the values at ingestion"
            )
        return codes.astype(float)

    def label(self, code: float) -> str:
        """Category label for an ordinal code."""
        return self.categories[int(code)]

    def to_dict(self) -> Dict[str, Any]:
        result = {'name': self.name, 'kind': self.kind.value}
        if self.is_categorical:
            result['categories'] = list(self.categories)
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'FeatureSpec':
        return cls(
            name=data['name'],
            kind=FeatureKind(data.get('kind', 'numeric')),
            categories=tuple(data.get('categories', ()))
        )


@dataclass(frozen=True)
class Record:
    """One population member: its position, outcome and feature values."""
    position: int
    target: bool
    values: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FeatureMatrix:
    """
    Two-dimensional float table derived from a Dataset.

    ``specs`` are the source features, ``columns`` the matrix columns (equal
    to the feature names for ordinal encoding, one column per category for
    one-hot encoding). The array is read-only.
    """
    values: np.ndarray
    columns: Tuple[str, ...]
    specs: Tuple[FeatureSpec, ...]
    index: pd.Index
    encoding: Encoding = Encoding.ORDINAL

    def __post_init__(self):
        values = np.array(self.values, dtype=float, copy=True)
        values.setflags(write=False)
        object.__setattr__(self, 'values', values)

        if values.ndim != 2 or values.shape[1] != len(self.columns):
            raise ValueError(
                f"Matrix shape {values.shape} does not match {len(self.columns)} columns"
            )
        if values.shape[0] != len(self.index):
            raise ValueError("Matrix rows must align with the Dataset index")

    @property
    def shape(self) -> Tuple[int, int]:
        return self.values.shape

    @property
    def n_rows(self) -> int:
        return self.values.shape[0]

    def with_values(self, values: np.ndarray) -> 'FeatureMatrix':
        """Same layout, new values (e.g. the standardized form)."""
        return FeatureMatrix(values, self.columns, self.specs, self.index, self.encoding)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.values, index=self.index, columns=list(self.columns))


class Dataset:
    """
    Ordered, immutable collection of records sharing a feature schema.

    Example:
        >>> schema = [FeatureSpec.numeric('monthly_charges'),
        ...           FeatureSpec.categorical('contract', ['month', 'year'])]
        >>> dataset = Dataset.from_frame(frame, schema, target_column='long_tenure')
        >>> matrix = dataset.feature_matrix(encoding='onehot')
    """

    def __init__(
        self,
        features: pd.DataFrame,
        schema: Sequence[FeatureSpec],
        target: Sequence[bool],
        target_name: str = 'target'
    ):
        schema = tuple(schema)
        names = [spec.name for spec in schema]
        if len(set(names)) != len(names):
            raise ValidationError(
                "Feature schema contains duplicate names",
                field="schema",
                actual=f"Names: {names}",
                fix="Declare each feature once"
            )

        validate_schema(features, schema)

        frame = features[names].copy()
        for spec in schema:
            if spec.is_categorical:
                frame[spec.name] = pd.Categorical(
                    frame[spec.name].astype(str), categories=list(spec.categories)
                )
            else:
                frame[spec.name] = frame[spec.name].astype(float)

        incomplete = [
            name for name in names
            if frame[name].isnull().any()
            or (not self._is_categorical(schema, name) and np.isinf(frame[name].to_numpy()).any())
        ]
        if incomplete:
            raise ValidationError(
                "Dataset features contain missing or non-finite values",
                field="features",
                expected="Complete, finite feature values",
                actual=f"Affected features: {incomplete}",
                fix="Resolve missing values at ingestion with a missing-value policy"
            )

        target_array = np.asarray(target)
        validate_binary_target(target_array.astype(float), name=target_name, n_expected=len(frame))

        self._features = frame
        self._schema = schema
        self._target = target_array.astype(bool)
        self._target.setflags(write=False)
        self._target_name = target_name

    @staticmethod
    def _is_categorical(schema: Sequence[FeatureSpec], name: str) -> bool:
        return any(spec.name == name and spec.is_categorical for spec in schema)

    @classmethod
    def from_frame(
        cls,
        frame: pd.DataFrame,
        schema: Sequence[FeatureSpec],
        target_column: str
    ) -> 'Dataset':
        """Build a Dataset from a frame holding features and a binary target column."""
        if target_column not in frame.columns:
            raise ValidationError(
                f"Target column '{target_column}' not found",
                field="target_column",
                actual=f"Available columns: {list(frame.columns)[:10]}",
                fix="Derive the target with a TargetRule before building the Dataset"
            )
        return cls(frame, schema, frame[target_column].to_numpy(), target_name=target_column)

    def __len__(self) -> int:
        return len(self._features)

    def __repr__(self) -> str:
        return (
            f"Dataset(n_records={len(self)}, features={self.feature_names}, "
            f"target='{self._target_name}')"
        )

    @property
    def schema(self) -> Tuple[FeatureSpec, ...]:
        return self._schema

    @property
    def feature_names(self) -> List[str]:
        return [spec.name for spec in self._schema]

    @property
    def target_name(self) -> str:
        return self._target_name

    @property
    def index(self) -> pd.Index:
        return self._features.index

    @property
    def target(self) -> np.ndarray:
        """Boolean outcome per record (copy)."""
        return self._target.copy()

    @property
    def features(self) -> pd.DataFrame:
        """Feature table (copy)."""
        return self._features.copy()

    def spec(self, name: str) -> FeatureSpec:
        for spec in self._schema:
            if spec.name == name:
                return spec
        raise KeyError(f"Unknown feature '{name}'")

    def specs(self, names: Optional[Sequence[str]] = None) -> Tuple[FeatureSpec, ...]:
        if names is None:
            return self._schema
        return tuple(self.spec(name) for name in names)

    def record(self, position: int) -> Record:
        row = self._features.iloc[position]
        values = {spec.name: (str(row[spec.name]) if spec.is_categorical else float(row[spec.name]))
                  for spec in self._schema}
        return Record(position=position, target=bool(self._target[position]), values=values)

    def iter_records(self) -> Iterator[Record]:
        for position in range(len(self)):
            yield self.record(position)

    def subset(self, mask: np.ndarray) -> 'Dataset':
        """Records where ``mask`` is true, in their original order."""
        mask = np.asarray(mask, dtype=bool)
        return Dataset(
            self._features.loc[mask],
            self._schema,
            self._target[mask],
            target_name=self._target_name
        )

    def feature_matrix(
        self,
        names: Optional[Sequence[str]] = None,
        encoding: Encoding = Encoding.ORDINAL
    ) -> FeatureMatrix:
        """
        Numeric matrix of the selected features.

        Args:
            names: Features to include (default: all, in schema order)
            encoding: 'ordinal' keeps one column per feature with category
                codes; 'onehot' expands each categorical into 0/1 columns
                named ``feature=category``

        Returns:
            FeatureMatrix aligned with the Dataset rows
        """
        encoding = Encoding(encoding)
        specs = self.specs(names)
        columns: List[str] = []
        blocks: List[np.ndarray] = []

        for spec in specs:
            encoded = spec.encode(self._features[spec.name])
            if spec.is_categorical and encoding == Encoding.ONEHOT:
                onehot = np.zeros((len(encoded), len(spec.categories)))
                onehot[np.arange(len(encoded)), encoded.astype(int)] = 1.0
                blocks.append(onehot)
                columns.extend(f"{spec.name}={category}" for category in spec.categories)
            else:
                blocks.append(encoded.reshape(-1, 1))
                columns.append(spec.name)

        values = np.hstack(blocks) if blocks else np.empty((len(self), 0))
        return FeatureMatrix(values, tuple(columns), specs, self.index, encoding)
