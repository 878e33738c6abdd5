"""
Scores Package
==============

Pairwise-score sources for the reducer: correlation matrices and PCA
loading tables, computed with pandas, scikit-learn and SciPy.
"""

from .pairwise import (
    PCAResult,
    cluster_order,
    correlation_matrix,
    numeric_columns,
    pca_loadings,
)

__all__ = [
    "PCAResult",
    "cluster_order",
    "correlation_matrix",
    "numeric_columns",
    "pca_loadings",
]
