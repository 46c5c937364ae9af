"""
Dataset Model for somlib.

A dataset is an ordered list of features (columns) and an ordered list of
instances (rows). Key and label columns are kept in the instances but are
stripped from the numeric training vectors handed to the SOM.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence
import numpy as np

from .exceptions import ConversionError, FeatureNotFoundError, InstanceIndexError


@dataclass
class Feature:
    """A dataset column."""
    feature_name: str
    order_no: int
    is_label: bool = False
    is_key: bool = False

    @property
    def is_ignored(self) -> bool:
        """True when the column is excluded from training vectors."""
        return self.is_key or self.is_label


@dataclass
class Instance:
    """One row of raw values, in feature order."""
    values: List[Any]
    label: Optional[str] = None

    def __len__(self) -> int:
        return len(self.values)


def _convert_value(value: Any, dtype: np.dtype, column: int) -> Any:
    """Convert a single raw field to a Python scalar of the dtype's kind."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ConversionError(value, dtype, column)

    try:
        if dtype.kind == 'f':
            return float(value)
        if dtype.kind in 'iu':
            number = float(value)
            if not number.is_integer():
                raise ValueError("not an integral value")
            return int(number)
        if dtype.kind == 'c':
            return complex(value)
        if dtype.kind == 'b':
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered in ('true', '1'):
                    return True
                if lowered in ('false', '0'):
                    return False
                raise ValueError("not a boolean")
            return bool(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ConversionError(value, dtype, column) from exc

    raise ConversionError(value, dtype, column)


class Dataset:
    """
    Features plus instances, as produced by a reader.

    Feature names must be unique. Instances are expected to carry one value
    per feature, ordered by ``Feature.order_no``.
    """

    def __init__(
        self,
        features: Sequence[Feature],
        instances: Sequence[Instance]
    ):
        """
        Args:
            features: Column descriptors, ordered to match instance values.
            instances: Rows of raw values.
        """
        names = [f.feature_name for f in features]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate feature names: {duplicates}")

        self.features: List[Feature] = list(features)
        self.instances: List[Instance] = list(instances)

    def __len__(self) -> int:
        return len(self.instances)

    def __repr__(self) -> str:
        return (f"Dataset({len(self.features)} features, "
                f"{len(self.instances)} instances, "
                f"{self.weight_vector_count} training dims)")

    @property
    def feature_names(self) -> List[str]:
        return [f.feature_name for f in self.features]

    @property
    def training_features(self) -> List[Feature]:
        """Features that contribute to training vectors, in order."""
        return sorted(
            (f for f in self.features if not f.is_ignored),
            key=lambda f: f.order_no
        )

    @property
    def weight_vector_count(self) -> int:
        """Number of training dimensions (features minus ignored columns)."""
        return len(self.features) - len(self.get_ignore_columns())

    def get_feature(self, name: str) -> Feature:
        """Return the feature with exactly this name."""
        for feature in self.features:
            if feature.feature_name == name:
                return feature
        raise FeatureNotFoundError(name)

    def set_label(self, name: str) -> None:
        """Mark the named feature as a label column."""
        self.get_feature(name).is_label = True

    def set_key(self, name: str) -> None:
        """Mark the named feature as a key (identifier) column."""
        self.get_feature(name).is_key = True

    def get_ignore_columns(self) -> List[int]:
        """
        Get the column indices not used for training (keys and labels).

        Returns:
            Column indices in feature order.
        """
        return [f.order_no for f in self.features if f.is_ignored]

    def get_instance(self, i: int, dtype=np.float64) -> np.ndarray:
        """
        Get the training vector of instance ``i``.

        Args:
            i: Instance index, ``0 <= i < len(dataset)``.
            dtype: Numeric type to convert raw values to.

        Returns:
            1-D array with ignored columns removed.

        Raises:
            InstanceIndexError: If ``i`` is outside the dataset.
            ConversionError: If a value cannot be converted to ``dtype``.
        """
        count = len(self.instances)
        if not 0 <= i < count:
            raise InstanceIndexError(i, count)

        dtype = np.dtype(dtype)
        ignored = set(self.get_ignore_columns())
        values = self.instances[i].values

        converted = [
            _convert_value(value, dtype, j)
            for j, value in enumerate(values)
            if j not in ignored
        ]
        return np.array(converted, dtype=dtype)

    def to_matrix(self, dtype=np.float64) -> np.ndarray:
        """Stack all training vectors into an array of shape (N, D)."""
        if not self.instances:
            return np.empty((0, self.weight_vector_count), dtype=dtype)
        return np.vstack([self.get_instance(i, dtype) for i in range(len(self))])

    def get_values(self, name: str) -> List[Any]:
        """Raw values of the named column, in instance order."""
        column = self.get_feature(name).order_no
        return [instance.values[column] for instance in self.instances]

    def shuffle(self, rng: Optional[np.random.Generator] = None) -> None:
        """
        Shuffle the instance order in place.

        Args:
            rng: Random generator; a fresh unseeded one if None.
        """
        if rng is None:
            rng = np.random.default_rng()
        rng.shuffle(self.instances)
