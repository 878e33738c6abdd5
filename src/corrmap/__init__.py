"""
corrmap
=======

Correlation-matrix and PCA-loadings heat maps for exploratory data
analysis.

A square matrix of pairwise scores (or a variable x component loading
table) is reduced to a long-form relation with one entry per distinct
pair, then drawn as a grid of tiles on a diverging colour scale. The
same two steps back every correlation and loadings plot, whatever the
dataset.
"""

from .reduction import (
    LongFormRelation,
    MatrixReducer,
    PairwiseScore,
    ReductionMode,
    ShapeMismatch,
    reduce_matrix,
)

__version__ = "0.1.0"

__all__ = [
    "LongFormRelation",
    "MatrixReducer",
    "PairwiseScore",
    "ReductionMode",
    "ShapeMismatch",
    "reduce_matrix",
]
