"""Immutable records and datasets produced by CSV ingest."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, NamedTuple, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .errors import DuplicateColumnError, MalformedRowError, MissingColumnError

Scalar = Union[int, float, str]


class Record(Mapping):
    """One logged sample: an ordered, read-only ``column -> value`` mapping.

    Records of the same dataset share their column tuple and index map, so a
    record costs one tuple of values.
    """

    __slots__ = ("_columns", "_index", "_values")

    def __init__(self, columns: Tuple[str, ...], values: Tuple[Scalar, ...], index: Dict[str, int] | None = None):
        if len(columns) != len(values):
            raise ValueError(f"{len(values)} values for {len(columns)} columns")
        self._columns = columns
        self._index = index if index is not None else {name: i for i, name in enumerate(columns)}
        self._values = values

    def __getitem__(self, column: str) -> Scalar:
        try:
            return self._values[self._index[column]]
        except KeyError:
            raise MissingColumnError(column, available=self._columns) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._columns)

    def __len__(self) -> int:
        return len(self._columns)

    @property
    def values_tuple(self) -> Tuple[Scalar, ...]:
        return self._values

    def __repr__(self) -> str:
        body = ", ".join(f"{k}={v!r}" for k, v in zip(self._columns, self._values))
        return f"Record({body})"


class Dataset(Sequence):
    """Ordered, immutable sequence of :class:`Record` sharing one column set.

    Row order is temporal order. Operations that filter or annotate return a
    new ``Dataset``; the original is never mutated.
    """

    __slots__ = ("_columns", "_index", "_rows")

    def __init__(self, columns: Iterable[str], rows: Iterable[Sequence[Scalar]] = ()):
        columns = tuple(columns)
        seen = set()
        for name in columns:
            if name in seen:
                raise DuplicateColumnError(f"duplicate column name in header: {name!r}")
            seen.add(name)
        self._columns: Tuple[str, ...] = columns
        self._index = {name: i for i, name in enumerate(columns)}
        width = len(columns)
        materialised: List[Tuple[Scalar, ...]] = []
        for number, row in enumerate(rows):
            row = tuple(row)
            if len(row) != width:
                raise MalformedRowError(f"{len(row)} fields for {width} columns", row=number)
            materialised.append(row)
        self._rows: Tuple[Tuple[Scalar, ...], ...] = tuple(materialised)

    @property
    def columns(self) -> Tuple[str, ...]:
        return self._columns

    def __len__(self) -> int:
        return len(self._rows)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return self._derive(self._rows[index])
        return Record(self._columns, self._rows[index], self._index)

    def __iter__(self) -> Iterator[Record]:
        for row in self._rows:
            yield Record(self._columns, row, self._index)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Dataset):
            return NotImplemented
        return self._columns == other._columns and self._rows == other._rows

    def __hash__(self) -> int:
        return hash((self._columns, self._rows))

    def __repr__(self) -> str:
        return f"Dataset(columns={list(self._columns)}, rows={len(self._rows)})"

    def _derive(self, rows: Iterable[Tuple[Scalar, ...]]) -> "Dataset":
        derived = Dataset.__new__(Dataset)
        derived._columns = self._columns
        derived._index = self._index
        derived._rows = tuple(rows)
        return derived

    def require(self, *names: str) -> None:
        """Fail fast if any of ``names`` is not a column of this dataset."""
        for name in names:
            if name not in self._index:
                raise MissingColumnError(name, available=self._columns)

    def column(self, name: str) -> List[Scalar]:
        self.require(name)
        pos = self._index[name]
        return [row[pos] for row in self._rows]

    def take(self, indices: Iterable[int]) -> "Dataset":
        """Return a dataset made of the rows at ``indices`` (in the given order)."""
        return self._derive(self._rows[i] for i in indices)

    def with_column(self, name: str, values: Sequence[Scalar]) -> "Dataset":
        """Return a copy with ``name`` appended (or replaced) as a derived column."""
        if len(values) != len(self._rows):
            raise ValueError(f"{len(values)} values for {len(self._rows)} rows")
        if name in self._index:
            pos = self._index[name]
            rows = (row[:pos] + (value,) + row[pos + 1:] for row, value in zip(self._rows, values))
            return Dataset(self._columns, rows)
        return Dataset(self._columns + (name,), (row + (value,) for row, value in zip(self._rows, values)))

    def to_frame(self) -> pd.DataFrame:
        """Return a DataFrame view; object dtype keeps the per-cell types."""
        return pd.DataFrame(list(self._rows), columns=list(self._columns), dtype=object)

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "Dataset":
        rows = (tuple(_to_scalar(v) for v in row) for row in df.itertuples(index=False, name=None))
        return cls([str(c) for c in df.columns], rows)


def _to_scalar(value: Any) -> Scalar:
    if isinstance(value, (bool, np.bool_)):
        return str(bool(value))
    if isinstance(value, (int, np.integer)):
        return int(value)
    if isinstance(value, (float, np.floating)):
        return float(value)
    return str(value)


class Point3(NamedTuple):
    x: float
    y: float
    z: float


@dataclass(frozen=True)
class PointColumns:
    """Names of the three columns a :class:`Point3` is read from."""

    x: str = "EtPositionX"
    y: str = "EtPositionY"
    z: str = "EtPositionZ"

    def names(self) -> Tuple[str, str, str]:
        return (self.x, self.y, self.z)


GAZE_COLUMNS = PointColumns()
MOVE_COLUMNS = PointColumns("xpos", "ypos", "zpos")
ROTATE_COLUMNS = PointColumns("upos", "vpos", "wpos")


def point_of(record: Mapping[str, Scalar], columns: PointColumns = GAZE_COLUMNS) -> Point3:
    coords = []
    for name in columns.names():
        value = record[name]
        if isinstance(value, str):
            raise MalformedRowError(f"non-numeric coordinate {name}={value!r}")
        coords.append(float(value))
    return Point3(*coords)


def points(dataset: Dataset, columns: PointColumns = GAZE_COLUMNS) -> np.ndarray:
    """Return the ``(n, 3)`` float array of the dataset's points.

    Raises:
        MissingColumnError: If one of the coordinate columns does not exist.
        MalformedRowError: If a coordinate cell is not numeric.
    """
    dataset.require(*columns.names())
    out = np.empty((len(dataset), 3), dtype=float)
    cols = [dataset.column(name) for name in columns.names()]
    for axis, values in enumerate(cols):
        for row, value in enumerate(values):
            if isinstance(value, str):
                raise MalformedRowError(f"non-numeric coordinate {columns.names()[axis]}={value!r}", row=row)
            out[row, axis] = value
    return out
