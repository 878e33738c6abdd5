"""
Reduction Package
=================

Turns matrices of pairwise scores into de-duplicated long-form relations.

Usage::

    from corrmap.reduction import MatrixReducer, ReductionMode

    relation = MatrixReducer().reduce(corr, value_transform=abs, min_abs_value=0.5)
    loadings = MatrixReducer().reduce_loadings(pca.loadings, value_transform=abs)
"""

from .reducer import (
    LongFormRelation,
    MatrixReducer,
    PairwiseScore,
    ReductionMode,
    ShapeMismatch,
    reduce_matrix,
)

__all__ = [
    "LongFormRelation",
    "MatrixReducer",
    "PairwiseScore",
    "ReductionMode",
    "ShapeMismatch",
    "reduce_matrix",
]
