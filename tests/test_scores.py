"""
Tests for the correlation and PCA score sources.

Synthetic frames with known structure stand in for the case-study data.
"""

import numpy as np
import pandas as pd
import pytest

from corrmap.reduction import MatrixReducer
from corrmap.scores import (
    cluster_order,
    correlation_matrix,
    numeric_columns,
    pca_loadings,
)


def _make_frame(n: int = 200, seed: int = 7) -> pd.DataFrame:
    """Two correlated blocks plus a categorical column and a constant."""
    rng = np.random.default_rng(seed)
    a = rng.normal(size=n)
    b = rng.normal(size=n)
    return pd.DataFrame({
        "gold": a + rng.normal(scale=0.1, size=n),
        "kills": a + rng.normal(scale=0.2, size=n),
        "deaths": -a + rng.normal(scale=0.2, size=n),
        "wards": b + rng.normal(scale=0.1, size=n),
        "vision": b + rng.normal(scale=0.2, size=n),
        "side": rng.choice(["blue", "red"], size=n),
        "patch": np.full(n, 10.0),
    })


class TestNumericColumns:

    def test_excludes_text(self):
        cols = numeric_columns(_make_frame())
        assert "side" not in cols
        assert "gold" in cols

    def test_exclude_argument(self):
        cols = numeric_columns(_make_frame(), exclude=["gold", "patch"])
        assert cols == ["kills", "deaths", "wards", "vision"]


class TestCorrelationMatrix:

    def test_square_symmetric(self):
        corr = correlation_matrix(_make_frame())
        assert list(corr.index) == list(corr.columns)
        defined = corr.drop(index="patch", columns="patch")
        assert np.allclose(defined.to_numpy(), defined.to_numpy().T)

    def test_constant_column_undefined(self):
        corr = correlation_matrix(_make_frame())
        assert corr.loc["patch", "gold"] != corr.loc["patch", "gold"]  # NaN

    def test_signs(self):
        corr = correlation_matrix(_make_frame())
        assert corr.loc["gold", "kills"] > 0.8
        assert corr.loc["gold", "deaths"] < -0.8
        assert abs(corr.loc["gold", "wards"]) < 0.3

    def test_pairwise_na_removal(self):
        frame = _make_frame()
        frame.loc[:49, "wards"] = np.nan
        corr = correlation_matrix(frame)
        # Pairs without the gappy column use every row
        full = correlation_matrix(_make_frame())
        assert corr.loc["gold", "kills"] == pytest.approx(full.loc["gold", "kills"])
        assert not np.isnan(corr.loc["wards", "vision"])

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            correlation_matrix(_make_frame(), method="cosine")

    def test_no_numeric_columns(self):
        with pytest.raises(ValueError):
            correlation_matrix(pd.DataFrame({"side": ["blue", "red"]}))

    def test_missing_column(self):
        with pytest.raises(ValueError):
            correlation_matrix(_make_frame(), columns=["gold", "nope"])

    def test_feeds_reducer(self):
        relation = MatrixReducer().reduce(correlation_matrix(_make_frame()), min_abs_value=0.8)
        pairs = {frozenset((e.row_label, e.col_label)) for e in relation}
        assert frozenset(("gold", "kills")) in pairs
        assert frozenset(("deaths", "gold")) in pairs
        assert frozenset(("vision", "wards")) in pairs
        assert all("patch" not in p for p in pairs)


class TestPCALoadings:

    def _features(self) -> pd.DataFrame:
        return _make_frame().drop(columns=["side", "patch"])

    def test_shape(self):
        result = pca_loadings(self._features())
        assert result.loadings.shape == (5, 5)
        assert result.components == ["PC1", "PC2", "PC3", "PC4", "PC5"]
        assert result.variables == ["gold", "kills", "deaths", "wards", "vision"]

    def test_variance_profile(self):
        result = pca_loadings(self._features())
        assert result.cumulative_variance[-1] == pytest.approx(1.0)
        assert np.all(np.diff(result.explained_variance_ratio) <= 1e-12)
        # Two latent factors carry almost everything
        assert result.n_components_for(0.9) == 2

    def test_unit_length_components(self):
        result = pca_loadings(self._features())
        norms = np.linalg.norm(result.loadings.to_numpy(), axis=0)
        assert np.allclose(norms, 1.0)

    def test_n_components(self):
        result = pca_loadings(self._features(), n_components=2)
        assert result.components == ["PC1", "PC2"]
        assert result.top_components(1).shape == (5, 1)

    def test_invalid_n_components(self):
        with pytest.raises(ValueError):
            pca_loadings(self._features(), n_components=9)

    def test_rows_with_na_dropped(self):
        frame = self._features()
        frame.loc[:9, "gold"] = np.nan
        result = pca_loadings(frame)
        assert result.n_samples == 190

    def test_threshold_bounds(self):
        result = pca_loadings(self._features())
        with pytest.raises(ValueError):
            result.n_components_for(1.5)

    def test_feeds_loadings_reduction(self):
        result = pca_loadings(self._features(), n_components=2)
        relation = MatrixReducer().reduce_loadings(result.loadings, value_transform=abs)
        assert len(relation) == 10
        assert all(e.value >= 0 for e in relation)

    def test_variance_summary_serializable(self):
        import json
        summary = pca_loadings(self._features(), n_components=3).variance_summary()
        json.dumps(summary)
        assert set(summary["explained_variance_ratio"]) == {"PC1", "PC2", "PC3"}


class TestClusterOrder:

    def test_groups_related_variables(self):
        corr = correlation_matrix(_make_frame().drop(columns=["patch"]))
        order = cluster_order(corr)
        assert sorted(order) == sorted(corr.index)
        block = {"gold", "kills", "deaths"}
        positions = sorted(order.index(v) for v in block)
        assert positions[-1] - positions[0] == 2

    def test_small_matrix_unchanged(self):
        corr = pd.DataFrame([[1.0, 0.2], [0.2, 1.0]], index=["b", "a"], columns=["b", "a"])
        assert cluster_order(corr) == ["b", "a"]
