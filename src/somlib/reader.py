"""
Dataset Readers.

A reader is anything with a ``read() -> Dataset`` method. Two are provided:
``CSVReader`` for delimited text files (first row is the header) and
``ArrayReader`` for data already in memory.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Union
import numpy as np
import pandas as pd

from .dataset import Dataset, Feature, Instance


class Reader(ABC):
    """Source of a Dataset."""

    @abstractmethod
    def read(self) -> Dataset:
        """Read and return a dataset."""


def _to_python(value: Any) -> Any:
    """Unwrap numpy scalars and turn missing cells into None."""
    if value is None:
        return None
    if isinstance(value, float) and np.isnan(value):
        return None
    if isinstance(value, np.generic):
        value = value.item()
        if isinstance(value, float) and np.isnan(value):
            return None
    return value


def _build_dataset(
    names: Sequence[str],
    rows: Iterable[Sequence[Any]],
    labels: Optional[Iterable[str]] = None,
    keys: Optional[Iterable[str]] = None,
    label_values: Optional[Sequence[Any]] = None
) -> Dataset:
    features = [Feature(str(name), order_no) for order_no, name in enumerate(names)]
    instances = []
    for idx, row in enumerate(rows):
        label = None
        if label_values is not None:
            label = None if label_values[idx] is None else str(label_values[idx])
        instances.append(Instance([_to_python(v) for v in row], label))

    dataset = Dataset(features, instances)
    for name in labels or []:
        dataset.set_label(name)
    for name in keys or []:
        dataset.set_key(name)
    return dataset


class CSVReader(Reader):
    """
    Read a delimited text file into a Dataset.

    The first row is the header and defines the feature names. Cells keep
    the type pandas infers for their column (numbers stay numbers, anything
    else stays a string); empty cells become None.
    """

    def __init__(
        self,
        path: Union[str, Path],
        delimiter: str = ',',
        labels: Optional[List[str]] = None,
        keys: Optional[List[str]] = None,
        encoding: str = 'utf-8'
    ):
        """
        Args:
            path: File to read.
            delimiter: Field separator.
            labels: Column names to mark as label columns.
            keys: Column names to mark as key columns.
            encoding: File encoding.
        """
        self.path = Path(path)
        self.delimiter = delimiter
        self.labels = list(labels or [])
        self.keys = list(keys or [])
        self.encoding = encoding

    def read(self) -> Dataset:
        frame = pd.read_csv(
            self.path,
            sep=self.delimiter,
            header=0,
            encoding=self.encoding,
            skipinitialspace=True,
        )
        # pandas renames duplicate headers to "name.1"; take the raw header
        # row as text so the Dataset can reject duplicates itself
        header = pd.read_csv(
            self.path,
            sep=self.delimiter,
            header=None,
            nrows=1,
            dtype=str,
            keep_default_na=False,
            encoding=self.encoding,
            skipinitialspace=True,
        ).iloc[0].tolist()
        names = [str(name).strip() for name in header]

        rows = frame.itertuples(index=False, name=None)
        return _build_dataset(names, rows, self.labels, self.keys)


class ArrayReader(Reader):
    """Wrap an in-memory 2-D array (or DataFrame) as a reader."""

    def __init__(
        self,
        data: Union[np.ndarray, pd.DataFrame, Sequence[Sequence[Any]]],
        feature_names: Optional[List[str]] = None,
        labels: Optional[List[str]] = None,
        keys: Optional[List[str]] = None,
        label_values: Optional[Sequence[Any]] = None
    ):
        """
        Args:
            data: Rows of values, shape (N, F).
            feature_names: Column names; taken from the DataFrame or
                generated as ``feature_0..`` when None.
            labels: Column names to mark as label columns.
            keys: Column names to mark as key columns.
            label_values: Optional per-row labels stored on each Instance.
        """
        if isinstance(data, pd.DataFrame):
            if feature_names is None:
                feature_names = [str(c) for c in data.columns]
            rows = list(data.itertuples(index=False, name=None))
        else:
            rows = [list(row) for row in data]

        if feature_names is None:
            width = len(rows[0]) if rows else 0
            feature_names = [f"feature_{i}" for i in range(width)]

        if label_values is not None and len(label_values) != len(rows):
            raise ValueError(
                f"Got {len(label_values)} label values for {len(rows)} rows"
            )

        self.rows = rows
        self.feature_names = list(feature_names)
        self.labels = list(labels or [])
        self.keys = list(keys or [])
        self.label_values = label_values

    def read(self) -> Dataset:
        return _build_dataset(
            self.feature_names,
            self.rows,
            self.labels,
            self.keys,
            self.label_values,
        )
