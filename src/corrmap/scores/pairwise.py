"""
Pairwise Score Computation
==========================

Produces the score matrices consumed by the reducer:

    correlation_matrix
        Pairwise Pearson (or Spearman / Kendall) correlation over the
        numeric columns of a table. Missing values are removed pair by
        pair, so one gappy column does not shrink every other pair's
        sample. Constant columns yield undefined (NaN) cells.

    pca_loadings
        Principal Component Analysis over the numeric columns, returning
        the variable x component loading table and the explained
        variance profile.

    cluster_order
        Hierarchical-clustering order of the variables in a correlation
        matrix, so strongly related variables sit next to each other.

All statistics are delegated to pandas, scikit-learn and SciPy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from scipy.cluster.hierarchy import leaves_list, linkage
from scipy.spatial.distance import squareform
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler

logger = logging.getLogger(__name__)

CORRELATION_METHODS = ("pearson", "spearman", "kendall")


def numeric_columns(frame: pd.DataFrame, exclude: Sequence[str] = ()) -> list[str]:
    """Names of numeric (non-boolean) columns, minus ``exclude``."""
    excluded = set(exclude)
    return [
        str(c) for c in frame.select_dtypes(include="number").columns
        if c not in excluded
    ]


def _select(frame: pd.DataFrame, columns: Optional[Sequence[str]]) -> pd.DataFrame:
    if columns is None:
        columns = numeric_columns(frame)
    else:
        missing = [c for c in columns if c not in frame.columns]
        if missing:
            raise ValueError(f"Columns not found in data: {missing}")
    if len(columns) == 0:
        raise ValueError("No numeric columns available for pairwise scores")
    return frame[list(columns)].astype(float)


def correlation_matrix(
    frame: pd.DataFrame,
    method: str = "pearson",
    min_periods: int = 1,
    columns: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """
    Square correlation matrix over numeric columns.

    Parameters
    ----------
    frame : DataFrame
        Raw tabular data; non-numeric columns are ignored unless named in
        ``columns``.
    method : {'pearson', 'spearman', 'kendall'}
        Correlation coefficient.
    min_periods : int
        Minimum number of complete observation pairs per cell; cells with
        fewer are NaN.
    columns : sequence of str, optional
        Explicit column subset.

    Returns
    -------
    DataFrame
        Symmetric matrix with identical index and columns.
    """
    if method not in CORRELATION_METHODS:
        raise ValueError(f"Unknown correlation method: {method}. Use one of {CORRELATION_METHODS}.")

    data = _select(frame, columns)
    corr = data.corr(method=method, min_periods=min_periods)

    n_undefined = int(corr.isna().to_numpy().sum())
    if n_undefined:
        logger.warning(
            f"{n_undefined} correlation cells undefined "
            f"(constant columns or too few paired observations)"
        )
    logger.info(f"Computed {method} correlation over {corr.shape[0]} columns")
    return corr


@dataclass
class PCAResult:
    """Loadings and variance profile from a fitted PCA.

    Attributes:
        loadings: Variables (index) x components ``PC1..PCk`` (columns).
        explained_variance_ratio: Fraction of variance per component.
        n_samples: Rows used in the fit after dropping missing values.
        standardized: Whether variables were scaled to unit variance.
    """
    loadings: pd.DataFrame
    explained_variance_ratio: NDArray
    n_samples: int
    standardized: bool = True

    @property
    def components(self) -> list[str]:
        return [str(c) for c in self.loadings.columns]

    @property
    def variables(self) -> list[str]:
        return [str(v) for v in self.loadings.index]

    @property
    def cumulative_variance(self) -> NDArray:
        return np.cumsum(self.explained_variance_ratio)

    def n_components_for(self, threshold: float) -> int:
        """Smallest number of components whose cumulative variance reaches ``threshold``."""
        if not 0.0 < threshold <= 1.0:
            raise ValueError(f"Variance threshold must be in (0, 1], got {threshold}")
        cumulative = self.cumulative_variance
        reached = np.nonzero(cumulative >= threshold - 1e-12)[0]
        if len(reached) == 0:
            return len(cumulative)
        return int(reached[0]) + 1

    def top_components(self, n: int) -> pd.DataFrame:
        """Loading table restricted to the first ``n`` components."""
        return self.loadings.iloc[:, :n]

    def variance_summary(self) -> dict:
        return {
            "n_samples": self.n_samples,
            "standardized": self.standardized,
            "explained_variance_ratio": {
                c: float(v) for c, v in zip(self.components, self.explained_variance_ratio)
            },
            "cumulative_variance": {
                c: float(v) for c, v in zip(self.components, self.cumulative_variance)
            },
        }


def pca_loadings(
    frame: pd.DataFrame,
    n_components: Optional[int] = None,
    standardize: bool = True,
    columns: Optional[Sequence[str]] = None,
) -> PCAResult:
    """
    Fit PCA and return the variable x component loading table.

    Rows with any missing value in the selected columns are dropped
    before fitting. Loadings are the rows of ``PCA.components_``
    transposed, so each column is one component's weight vector.
    """
    data = _select(frame, columns).dropna()
    n_rows, n_vars = data.shape
    if n_rows < 2:
        raise ValueError(f"PCA needs at least 2 complete rows, got {n_rows}")

    max_components = min(n_rows, n_vars)
    if n_components is None:
        n_components = max_components
    elif not 1 <= n_components <= max_components:
        raise ValueError(
            f"n_components must be between 1 and {max_components}, got {n_components}"
        )

    values = data.to_numpy()
    if standardize:
        values = StandardScaler().fit_transform(values)

    pca = PCA(n_components=n_components)
    pca.fit(values)

    component_names = [f"PC{i + 1}" for i in range(pca.n_components_)]
    loadings = pd.DataFrame(
        pca.components_.T,
        index=list(data.columns),
        columns=component_names,
    )
    logger.info(
        f"PCA fitted on {n_rows} rows x {n_vars} variables, "
        f"{pca.n_components_} components, "
        f"{pca.explained_variance_ratio_.sum():.1%} variance explained"
    )
    return PCAResult(
        loadings=loadings,
        explained_variance_ratio=pca.explained_variance_ratio_,
        n_samples=n_rows,
        standardized=standardize,
    )


def cluster_order(matrix: pd.DataFrame, method: str = "average") -> list[str]:
    """
    Order labels of a correlation matrix by hierarchical clustering.

    Distance between two variables is ``1 - |r|``; undefined correlations
    are treated as unrelated (distance 1).
    """
    labels = [str(label) for label in matrix.index]
    if len(labels) < 3:
        return labels

    corr = matrix.to_numpy(dtype=float)
    distances = 1.0 - np.abs(np.nan_to_num(corr, nan=0.0))
    distances = (distances + distances.T) / 2.0
    np.fill_diagonal(distances, 0.0)
    distances = np.clip(distances, 0.0, None)

    Z = linkage(squareform(distances, checks=False), method=method)
    return [labels[i] for i in leaves_list(Z)]
