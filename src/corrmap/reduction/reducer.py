"""
Matrix Reducer
==============

Converts a matrix of pairwise scores into a long-form relation of
``(row_label, col_label, value)`` triples ready for tile plotting.

Two construction paths exist, selected explicitly with ``ReductionMode``:

    SYMMETRIC
        Square, symmetric score matrices such as a Pearson correlation
        matrix. Each unordered pair {A, B} is emitted at most once: the
        cell with ``row_label < col_label`` is kept, the mirrored cell and
        the diagonal are discarded.

    LOADINGS
        Rectangular variable x component tables such as PCA loadings.
        Every defined cell is emitted; no shape, diagonal or triangle
        rules apply.

In both modes undefined cells (NaN, None, missing keys) are dropped,
an optional value transform is applied to surviving values, and an
optional strict magnitude threshold (``|value| > min_abs_value``) is
applied to the transformed value.

Usage::

    from corrmap.reduction import MatrixReducer

    corr = frame.corr()
    relation = MatrixReducer().reduce(corr, min_abs_value=0.5)
    for score in relation.sorted_by_magnitude():
        print(score.row_label, score.col_label, score.value)
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator, Optional, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

ValueTransform = Callable[[float], float]
MatrixLike = Union[pd.DataFrame, Mapping]


class ShapeMismatch(ValueError):
    """Raised when a symmetric reduction receives a non-square matrix."""


class ReductionMode(Enum):
    """Construction path from a score matrix to a long-form relation."""
    SYMMETRIC = "symmetric"
    LOADINGS = "loadings"


# ---------------------------------------------------------------------------
# Long-form data model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PairwiseScore:
    """Strength of the relationship between two named variables."""
    row_label: str
    col_label: str
    value: float


@dataclass(frozen=True)
class LongFormRelation:
    """Immutable ordered sequence of ``PairwiseScore`` entries.

    Entry order is whatever the producer emitted; use
    :meth:`sorted_by_magnitude` when a ranking is needed.
    """
    entries: tuple[PairwiseScore, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[PairwiseScore]:
        return iter(self.entries)

    def __getitem__(self, index: Union[int, slice]) -> Union[PairwiseScore, LongFormRelation]:
        """An entry by position, or a ``LongFormRelation`` for a slice."""
        if isinstance(index, slice):
            return LongFormRelation(self.entries[index])
        return self.entries[index]

    def __bool__(self) -> bool:
        return bool(self.entries)

    @property
    def row_labels(self) -> list[str]:
        """Distinct row labels in first-appearance order."""
        return list(dict.fromkeys(e.row_label for e in self.entries))

    @property
    def col_labels(self) -> list[str]:
        """Distinct column labels in first-appearance order."""
        return list(dict.fromkeys(e.col_label for e in self.entries))

    @property
    def labels(self) -> list[str]:
        """Every label on either axis, in first-appearance order."""
        seen: dict[str, None] = {}
        for e in self.entries:
            seen.setdefault(e.row_label, None)
            seen.setdefault(e.col_label, None)
        return list(seen)

    def as_tuples(self) -> list[tuple[str, str, float]]:
        return [(e.row_label, e.col_label, e.value) for e in self.entries]

    def sorted_by_magnitude(self, descending: bool = True) -> LongFormRelation:
        """Return a copy ordered by ``|value|`` (stable for ties)."""
        ordered = sorted(
            self.entries,
            key=lambda e: abs(e.value),
            reverse=descending,
        )
        return LongFormRelation(tuple(ordered))

    def involving(self, label: str) -> LongFormRelation:
        """Entries that name ``label`` on either axis."""
        return LongFormRelation(tuple(
            e for e in self.entries
            if e.row_label == label or e.col_label == label
        ))

    def top(self, n: int) -> LongFormRelation:
        return LongFormRelation(self.entries[:max(n, 0)])

    def to_frame(self) -> pd.DataFrame:
        """Tabular view with columns ``row_label, col_label, value``."""
        return pd.DataFrame(
            self.as_tuples(),
            columns=["row_label", "col_label", "value"],
        )

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> LongFormRelation:
        return cls(tuple(
            PairwiseScore(str(r), str(c), float(v))
            for r, c, v in frame[["row_label", "col_label", "value"]].itertuples(index=False)
        ))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _is_undefined(value) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _as_frame(matrix: MatrixLike, square: bool = True) -> pd.DataFrame:
    """Coerce a frame or a ``{(row, col): value}`` mapping to a DataFrame.

    Keys absent from a mapping become NaN cells. With ``square`` a mapping
    shares one label set across both axes, so a mapping that lists only one
    triangle still yields a square frame.
    """
    if isinstance(matrix, pd.DataFrame):
        frame = matrix
    elif isinstance(matrix, Mapping):
        rows: dict[str, None] = {}
        cols: dict[str, None] = {}
        for key in matrix:
            if not (isinstance(key, tuple) and len(key) == 2):
                raise TypeError(
                    f"Matrix mapping keys must be (row_label, col_label) tuples, got {key!r}"
                )
            rows.setdefault(str(key[0]), None)
            cols.setdefault(str(key[1]), None)
        if square:
            rows.update(cols)
            cols = rows
        frame = pd.DataFrame(np.nan, index=list(rows), columns=list(cols), dtype=object)
        for (r, c), v in matrix.items():
            frame.at[str(r), str(c)] = v
    else:
        raise TypeError(
            f"Unsupported matrix type {type(matrix).__name__}; "
            "expected a pandas DataFrame or a mapping keyed by label pairs"
        )

    frame = frame.copy()
    frame.index = [str(label) for label in frame.index]
    frame.columns = [str(label) for label in frame.columns]
    return frame


def _check_square(frame: pd.DataFrame) -> None:
    n_rows, n_cols = frame.shape
    if n_rows != n_cols:
        raise ShapeMismatch(f"Matrix is not square: {n_rows} rows x {n_cols} columns")
    if frame.index.has_duplicates or frame.columns.has_duplicates:
        raise ShapeMismatch("Matrix labels must be unique on both axes")
    if set(frame.index) != set(frame.columns):
        only_rows = sorted(set(frame.index) - set(frame.columns))
        only_cols = sorted(set(frame.columns) - set(frame.index))
        raise ShapeMismatch(
            f"Row and column labels differ (rows only: {only_rows}, columns only: {only_cols})"
        )


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------

class MatrixReducer:
    """
    Stateless reducer from score matrices to long-form relations.

    Each call is independent; a single instance may be shared freely.
    """

    def reduce(
        self,
        matrix: MatrixLike,
        value_transform: Optional[ValueTransform] = None,
        min_abs_value: Optional[float] = None,
        mode: ReductionMode = ReductionMode.SYMMETRIC,
    ) -> LongFormRelation:
        """
        Reduce a score matrix to a de-duplicated long-form relation.

        Parameters
        ----------
        matrix : DataFrame or Mapping
            Scores indexed by row label (index) and column label (columns),
            or a mapping ``{(row_label, col_label): value}``.
        value_transform : callable, optional
            Applied to each retained value before thresholding, e.g. ``abs``.
        min_abs_value : float, optional
            Keep only entries whose transformed value satisfies
            ``|value| > min_abs_value``.
        mode : ReductionMode
            ``SYMMETRIC`` applies the square check, diagonal exclusion and
            the ``row_label < col_label`` rule; ``LOADINGS`` keeps every cell.

        Returns
        -------
        LongFormRelation
            Surviving entries in row-major matrix order.

        Raises
        ------
        ShapeMismatch
            In ``SYMMETRIC`` mode, if the matrix is not square or its row and
            column label sets differ.
        """
        if min_abs_value is not None and min_abs_value < 0:
            raise ValueError(f"min_abs_value must be non-negative, got {min_abs_value}")

        symmetric = mode is ReductionMode.SYMMETRIC
        frame = _as_frame(matrix, square=symmetric)
        if symmetric:
            _check_square(frame)

        entries: list[PairwiseScore] = []
        n_undefined = n_filtered = 0

        for row_label, row in zip(frame.index, frame.itertuples(index=False, name=None)):
            for col_label, raw in zip(frame.columns, row):
                if symmetric and not row_label < col_label:
                    continue
                if _is_undefined(raw):
                    n_undefined += 1
                    continue

                value = float(raw)
                if value_transform is not None:
                    value = float(value_transform(value))
                    if math.isnan(value):
                        n_undefined += 1
                        continue

                if min_abs_value is not None and not abs(value) > min_abs_value:
                    n_filtered += 1
                    continue

                entries.append(PairwiseScore(row_label, col_label, value))

        logger.debug(
            f"Reduced {frame.shape[0]}x{frame.shape[1]} {mode.value} matrix to "
            f"{len(entries)} entries ({n_undefined} undefined, {n_filtered} below threshold)"
        )
        return LongFormRelation(tuple(entries))

    def reduce_loadings(
        self,
        loadings: MatrixLike,
        value_transform: Optional[ValueTransform] = None,
        min_abs_value: Optional[float] = None,
    ) -> LongFormRelation:
        """Reduce a variable x component loading table (``LOADINGS`` mode)."""
        return self.reduce(
            loadings,
            value_transform=value_transform,
            min_abs_value=min_abs_value,
            mode=ReductionMode.LOADINGS,
        )


def reduce_matrix(
    matrix: MatrixLike,
    value_transform: Optional[ValueTransform] = None,
    min_abs_value: Optional[float] = None,
    mode: ReductionMode = ReductionMode.SYMMETRIC,
) -> LongFormRelation:
    """Functional shorthand for :meth:`MatrixReducer.reduce`."""
    return MatrixReducer().reduce(
        matrix,
        value_transform=value_transform,
        min_abs_value=min_abs_value,
        mode=mode,
    )
