"""
Tests for the matrix reducer.

Small hand-built matrices check the pair selection rules: one entry per
unordered pair, no diagonal, undefined cells dropped, transform before
a strict threshold.
"""

import math

import numpy as np
import pandas as pd
import pytest

from corrmap.reduction import (
    LongFormRelation,
    MatrixReducer,
    PairwiseScore,
    ReductionMode,
    ShapeMismatch,
    reduce_matrix,
)


def _abc_matrix() -> pd.DataFrame:
    """3x3 symmetric matrix: A-B=0.8, A-C=0.3, B-C=-0.6, unit diagonal."""
    labels = ["A", "B", "C"]
    values = [
        [1.0, 0.8, 0.3],
        [0.8, 1.0, -0.6],
        [0.3, -0.6, 1.0],
    ]
    return pd.DataFrame(values, index=labels, columns=labels)


def _random_symmetric(labels: list[str], seed: int = 0) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    n = len(labels)
    upper = rng.uniform(-1, 1, size=(n, n))
    sym = np.triu(upper, 1) + np.triu(upper, 1).T
    np.fill_diagonal(sym, 1.0)
    return pd.DataFrame(sym, index=labels, columns=labels)


class TestScenarios:
    """Worked examples on the A/B/C matrix."""

    def test_no_filter(self):
        relation = MatrixReducer().reduce(_abc_matrix())
        assert relation.as_tuples() == [
            ("A", "B", 0.8),
            ("A", "C", 0.3),
            ("B", "C", -0.6),
        ]

    def test_threshold(self):
        relation = MatrixReducer().reduce(_abc_matrix(), min_abs_value=0.5)
        assert relation.as_tuples() == [("A", "B", 0.8), ("B", "C", -0.6)]

    def test_abs_transform_then_threshold(self):
        relation = MatrixReducer().reduce(
            _abc_matrix(), value_transform=abs, min_abs_value=0.5
        )
        assert relation.as_tuples() == [("A", "B", 0.8), ("B", "C", 0.6)]

    def test_undefined_pair_dropped(self):
        matrix = pd.DataFrame(
            [
                [1.0, np.nan, 0.9],
                [np.nan, 1.0, 0.4],
                [0.9, 0.4, 1.0],
            ],
            index=["A", "B", "C"],
            columns=["A", "B", "C"],
        )
        relation = reduce_matrix(matrix)
        assert relation.as_tuples() == [("A", "C", 0.9), ("B", "C", 0.4)]


class TestTriangleAndDiagonal:
    """One entry per unordered pair, always the row < col cell."""

    def test_every_pair_once(self):
        labels = ["delta", "alpha", "Charlie", "bravo", "echo"]
        relation = MatrixReducer().reduce(_random_symmetric(labels))

        n = len(labels)
        assert len(relation) == n * (n - 1) // 2
        pairs = {frozenset((e.row_label, e.col_label)) for e in relation}
        assert len(pairs) == len(relation)

    def test_row_label_less_than_col_label(self):
        labels = ["delta", "alpha", "Charlie", "bravo", "echo"]
        relation = MatrixReducer().reduce(_random_symmetric(labels))
        for e in relation:
            assert e.row_label < e.col_label

    def test_case_sensitive_ordering(self):
        # Uppercase sorts before lowercase: "Z" < "a"
        matrix = pd.DataFrame(
            [[1.0, 0.5], [0.5, 1.0]],
            index=["a", "Z"],
            columns=["a", "Z"],
        )
        relation = MatrixReducer().reduce(matrix)
        assert relation.as_tuples() == [("Z", "a", 0.5)]

    def test_diagonal_excluded_even_when_large(self):
        matrix = _abc_matrix()
        matrix.loc["A", "A"] = 5.0
        relation = MatrixReducer().reduce(matrix, min_abs_value=0.0)
        assert all(e.row_label != e.col_label for e in relation)

    def test_label_order_of_axes_irrelevant(self):
        matrix = _abc_matrix()
        shuffled = matrix.loc[["C", "A", "B"], ["B", "C", "A"]]
        original = set(MatrixReducer().reduce(matrix).as_tuples())
        reordered = set(MatrixReducer().reduce(shuffled).as_tuples())
        assert original == reordered

    def test_non_string_labels_coerced(self):
        matrix = pd.DataFrame([[1.0, 0.2], [0.2, 1.0]], index=[1, 2], columns=[1, 2])
        relation = MatrixReducer().reduce(matrix)
        assert relation.as_tuples() == [("1", "2", 0.2)]


class TestUndefinedCells:
    """Undefined cells are data: dropped without touching neighbours."""

    def test_none_and_nan_dropped(self):
        matrix = pd.DataFrame(
            [
                [1.0, None, 0.2, 0.1],
                [None, 1.0, float("nan"), 0.7],
                [0.2, float("nan"), 1.0, -0.3],
                [0.1, 0.7, -0.3, 1.0],
            ],
            index=list("ABCD"),
            columns=list("ABCD"),
            dtype=object,
        )
        relation = MatrixReducer().reduce(matrix)
        pairs = {(e.row_label, e.col_label) for e in relation}
        assert ("A", "B") not in pairs
        assert ("B", "C") not in pairs
        assert pairs == {("A", "C"), ("A", "D"), ("B", "D"), ("C", "D")}

    def test_nan_does_not_distort_other_values(self):
        clean = _random_symmetric(list("ABCDE"), seed=3)
        gappy = clean.copy()
        gappy.loc["B", "D"] = np.nan
        gappy.loc["D", "B"] = np.nan

        clean_values = {(e.row_label, e.col_label): e.value for e in reduce_matrix(clean)}
        gappy_values = {(e.row_label, e.col_label): e.value for e in reduce_matrix(gappy)}

        del clean_values[("B", "D")]
        assert gappy_values == clean_values

    def test_transform_producing_nan_dropped(self):
        relation = MatrixReducer().reduce(
            _abc_matrix(),
            value_transform=lambda v: math.nan if v < 0 else v,
        )
        assert relation.as_tuples() == [("A", "B", 0.8), ("A", "C", 0.3)]

    def test_constant_column_correlation(self):
        frame = pd.DataFrame({
            "x": [1.0, 2.0, 3.0, 4.0],
            "y": [2.0, 4.1, 6.2, 7.9],
            "const": [5.0, 5.0, 5.0, 5.0],
        })
        relation = MatrixReducer().reduce(frame.corr())
        assert [(e.row_label, e.col_label) for e in relation] == [("x", "y")]


class TestThreshold:
    """Strict |value| > threshold on the transformed value."""

    def test_boundary_excluded(self):
        matrix = pd.DataFrame(
            [[1.0, 0.5, -0.5], [0.5, 1.0, 0.51], [-0.5, 0.51, 1.0]],
            index=list("ABC"),
            columns=list("ABC"),
        )
        relation = MatrixReducer().reduce(matrix, min_abs_value=0.5)
        assert relation.as_tuples() == [("B", "C", 0.51)]

    def test_negative_values_pass_on_magnitude(self):
        relation = MatrixReducer().reduce(_abc_matrix(), min_abs_value=0.59)
        assert ("B", "C", -0.6) in relation.as_tuples()

    def test_abs_transform_equivalent_to_raw_magnitude_filter(self):
        matrix = _random_symmetric(list("ABCDEFG"), seed=11)
        with_transform = MatrixReducer().reduce(matrix, value_transform=abs, min_abs_value=0.2)
        raw = MatrixReducer().reduce(matrix)
        expected = [
            (e.row_label, e.col_label, abs(e.value))
            for e in raw if abs(e.value) > 0.2
        ]
        assert with_transform.as_tuples() == expected

    def test_threshold_applies_after_transform(self):
        # Transform halves values: 0.8 -> 0.4 falls below 0.5
        relation = MatrixReducer().reduce(
            _abc_matrix(),
            value_transform=lambda v: v / 2,
            min_abs_value=0.35,
        )
        assert relation.as_tuples() == [("A", "B", 0.4)]

    def test_everything_filtered_is_empty(self):
        relation = MatrixReducer().reduce(_abc_matrix(), min_abs_value=0.99)
        assert len(relation) == 0
        assert not relation

    def test_negative_threshold_rejected(self):
        with pytest.raises(ValueError):
            MatrixReducer().reduce(_abc_matrix(), min_abs_value=-0.1)


class TestShapeMismatch:
    """Structural errors in symmetric mode."""

    def test_non_square(self):
        matrix = pd.DataFrame(np.ones((2, 3)), index=["A", "B"], columns=["A", "B", "C"])
        with pytest.raises(ShapeMismatch):
            MatrixReducer().reduce(matrix)

    def test_label_sets_differ(self):
        matrix = pd.DataFrame(np.ones((2, 2)), index=["A", "B"], columns=["A", "C"])
        with pytest.raises(ShapeMismatch):
            MatrixReducer().reduce(matrix)

    def test_duplicate_labels(self):
        matrix = pd.DataFrame(np.ones((2, 2)), index=["A", "A"], columns=["A", "A"])
        with pytest.raises(ShapeMismatch):
            MatrixReducer().reduce(matrix)

    def test_is_value_error(self):
        assert issubclass(ShapeMismatch, ValueError)

    def test_single_label_is_empty(self):
        matrix = pd.DataFrame([[1.0]], index=["A"], columns=["A"])
        assert len(MatrixReducer().reduce(matrix)) == 0


class TestMappingInput:
    """``{(row, col): value}`` mappings are accepted."""

    def test_full_mapping(self):
        cells = {}
        for (r, c), v in {("A", "B"): 0.8, ("A", "C"): 0.3, ("B", "C"): -0.6}.items():
            cells[(r, c)] = v
            cells[(c, r)] = v
        for label in "ABC":
            cells[(label, label)] = 1.0
        relation = MatrixReducer().reduce(cells)
        assert sorted(relation.as_tuples()) == [
            ("A", "B", 0.8),
            ("A", "C", 0.3),
            ("B", "C", -0.6),
        ]

    def test_missing_key_is_undefined(self):
        cells = {
            ("A", "A"): 1.0, ("B", "B"): 1.0, ("C", "C"): 1.0,
            ("A", "C"): 0.9, ("C", "A"): 0.9,
            ("B", "C"): 0.4, ("C", "B"): 0.4,
            ("B", "A"): 0.2,
        }
        relation = MatrixReducer().reduce(cells)
        assert sorted(relation.as_tuples()) == [("A", "C", 0.9), ("B", "C", 0.4)]

    def test_upper_triangle_only(self):
        cells = {("A", "B"): 0.8, ("A", "C"): 0.3, ("B", "C"): -0.6}
        relation = MatrixReducer().reduce(cells)
        assert relation.as_tuples() == [
            ("A", "B", 0.8),
            ("A", "C", 0.3),
            ("B", "C", -0.6),
        ]

    def test_loadings_mapping_keeps_separate_axes(self):
        cells = {("gre", "PC1"): 0.7, ("toefl", "PC1"): -0.6, ("gre", "PC2"): 0.2}
        relation = MatrixReducer().reduce_loadings(cells)
        assert relation.row_labels == ["gre", "toefl"]
        assert relation.col_labels == ["PC1", "PC2"]
        assert len(relation) == 3

    def test_bad_key_rejected(self):
        with pytest.raises(TypeError):
            MatrixReducer().reduce({"A": 1.0})

    def test_input_not_mutated(self):
        matrix = _abc_matrix()
        before = matrix.copy()
        MatrixReducer().reduce(matrix, value_transform=abs, min_abs_value=0.5)
        pd.testing.assert_frame_equal(matrix, before)


class TestLoadingsMode:
    """Rectangular tables skip the square / triangle / diagonal rules."""

    def _loadings(self) -> pd.DataFrame:
        return pd.DataFrame(
            [[0.7, -0.1], [-0.6, 0.5], [np.nan, 0.9]],
            index=["gre", "toefl", "cgpa"],
            columns=["PC1", "PC2"],
        )

    def test_keeps_every_defined_cell(self):
        relation = MatrixReducer().reduce_loadings(self._loadings())
        assert relation.as_tuples() == [
            ("gre", "PC1", 0.7),
            ("gre", "PC2", -0.1),
            ("toefl", "PC1", -0.6),
            ("toefl", "PC2", 0.5),
            ("cgpa", "PC2", 0.9),
        ]

    def test_abs_and_threshold(self):
        relation = MatrixReducer().reduce(
            self._loadings(),
            value_transform=abs,
            min_abs_value=0.5,
            mode=ReductionMode.LOADINGS,
        )
        assert relation.as_tuples() == [
            ("gre", "PC1", 0.7),
            ("toefl", "PC1", 0.6),
            ("cgpa", "PC2", 0.9),
        ]

    def test_square_loadings_keep_both_triangles(self):
        matrix = _abc_matrix()
        relation = MatrixReducer().reduce(matrix, mode=ReductionMode.LOADINGS)
        assert len(relation) == 9

    def test_symmetric_mode_rejects_loadings(self):
        with pytest.raises(ShapeMismatch):
            MatrixReducer().reduce(self._loadings())


class TestLongFormRelation:
    """Relation helpers used downstream of the reducer."""

    def _relation(self) -> LongFormRelation:
        return reduce_matrix(_abc_matrix())

    def test_sequence_protocol(self):
        relation = self._relation()
        assert len(relation) == 3
        assert relation[0] == PairwiseScore("A", "B", 0.8)
        assert [e.col_label for e in relation] == ["B", "C", "C"]

    def test_sorted_by_magnitude(self):
        ranked = self._relation().sorted_by_magnitude()
        assert [e.value for e in ranked] == [0.8, -0.6, 0.3]
        ascending = self._relation().sorted_by_magnitude(descending=False)
        assert [e.value for e in ascending] == [0.3, -0.6, 0.8]

    def test_involving(self):
        assert self._relation().involving("C").as_tuples() == [
            ("A", "C", 0.3),
            ("B", "C", -0.6),
        ]

    def test_labels(self):
        relation = self._relation()
        assert relation.row_labels == ["A", "B"]
        assert relation.col_labels == ["B", "C"]
        assert relation.labels == ["A", "B", "C"]

    def test_frame_round_trip(self):
        relation = self._relation()
        frame = relation.to_frame()
        assert list(frame.columns) == ["row_label", "col_label", "value"]
        assert LongFormRelation.from_frame(frame) == relation

    def test_immutable(self):
        relation = self._relation()
        with pytest.raises(AttributeError):
            relation.entries = ()

    def test_slice_is_relation(self):
        head = self._relation()[:2]
        assert isinstance(head, LongFormRelation)
        assert head.as_tuples() == [("A", "B", 0.8), ("A", "C", 0.3)]
        assert self._relation().sorted_by_magnitude()[:1].labels == ["A", "B"]
