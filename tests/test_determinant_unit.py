import re

import numpy as np
import pytest

from stepmatrix.determinant import _find_best_line, calculate_determinant, determinant_value
from stepmatrix.types import DimensionError

DENSE_4X4 = [
    [2, 1, 3, 4],
    [1, 2, 1, 1],
    [3, 1, 2, 1],
    [1, 1, 1, 2],
]


def _det(matrix, method=None) -> float:
    return calculate_determinant(matrix, method).result[0][0]


def test_two_by_two() -> None:
    assert _det([[1, 2], [3, 4]]) == -2


def test_one_by_one() -> None:
    result = calculate_determinant([[7]])
    assert result.result == [[7.0]]
    assert [s.title for s in result.steps] == [
        "Check and preparation",
        "Special case: 1×1 matrix",
        "Final result",
    ]


@pytest.mark.parametrize("method", ["sarrus", "cofactors"])
def test_diagonal_three_by_three(method: str) -> None:
    assert _det([[2, 0, 0], [0, 3, 0], [0, 0, 4]], method) == 24


@pytest.mark.parametrize("n", [1, 2, 3, 4, 5, 6])
def test_identity_has_determinant_one(n: int) -> None:
    assert _det(np.eye(n).tolist()) == pytest.approx(1.0)


@pytest.mark.parametrize(
    "matrix",
    [
        [[1, 2, 3], [4, 5, 6], [7, 8, 10]],
        [[0, 2, -1], [3, 0, 4], [-2, 5, 1]],
        DENSE_4X4,
        [[1, 0, 2, 0], [0, 3, 0, 1], [4, 0, 5, 0], [0, 6, 0, 7]],
        [[0, 0, 0, 1], [0, 0, 2, 0], [0, 3, 0, 0], [4, 0, 0, 0]],
    ],
)
def test_methods_agree(matrix) -> None:
    expected = np.linalg.det(np.array(matrix, dtype=float))
    n = len(matrix)
    methods = ["cofactors", "zeros"] + (["sarrus"] if n == 3 else [])
    for method in methods:
        assert _det(matrix, method) == pytest.approx(expected, abs=1e-9)


def test_determinant_value_skips_zeros() -> None:
    assert determinant_value([[0, 0], [0, 0]]) == 0.0
    assert determinant_value(DENSE_4X4) == pytest.approx(np.linalg.det(np.array(DENSE_4X4, dtype=float)))


def test_determinant_value_of_integer_matrix_is_integral() -> None:
    assert determinant_value(DENSE_4X4) == -8
    assert determinant_value((2 * np.eye(10)).tolist()) == 1024
    matrix = (np.arange(100).reshape(10, 10) % 7 + 60 * np.eye(10)).tolist()
    value = determinant_value(matrix)
    assert value == round(value)
    assert value == pytest.approx(np.linalg.det(np.array(matrix)))


class TestZeroStrategy:
    def test_best_line_prefers_rows_then_first(self) -> None:
        A = np.array([[1, 0, 0], [0, 1, 0], [1, 1, 1]], dtype=float)
        assert _find_best_line(A) == ("row", 0, 2)

    def test_best_line_column(self) -> None:
        A = np.array([[1, 0, 2], [3, 0, 4], [5, 0, 6]], dtype=float)
        assert _find_best_line(A) == ("column", 1, 3)

    def test_dense_matrix_creates_zeros_in_first_row(self) -> None:
        result = calculate_determinant(DENSE_4X4, "zeros")
        titles = [s.title for s in result.steps]

        assert len(result.steps) == 21
        assert [s.step_number for s in result.steps] == list(range(1, 22))
        assert "Creating zeros in row 1" in titles
        assert titles.count("Pivot selected") == 1
        assert titles.count("Result of the operation") == 3
        assert sum(t.startswith("Eliminating element") for t in titles) == 3
        assert sum(t.startswith("Element") and t.endswith("= 0") for t in titles) == 3
        assert titles[-1] == "Final result"

    def test_sparse_matrix_expands_directly(self) -> None:
        matrix = np.eye(4).tolist()
        titles = [s.title for s in calculate_determinant(matrix, "zeros").steps]
        assert not any(t.startswith("Creating zeros") for t in titles)
        assert "Expansion along row 1" in titles

    def test_column_line_uses_row_operations(self) -> None:
        matrix = [
            [1, 2, 0, 1, 1],
            [2, 1, 0, 3, 1],
            [1, 1, 5, 2, 2],
            [3, 1, 2, 4, 1],
            [1, 2, 3, 1, 5],
        ]
        result = calculate_determinant(matrix, "zeros")
        titles = [s.title for s in result.steps]
        formulas = [s.formula or "" for s in result.steps]

        assert "Creating zeros in column 3" in titles
        assert sum(bool(re.match(r"R\d", f)) for f in formulas) == 2
        assert not any(re.match(r"C\d", f) for f in formulas)
        expected = np.linalg.det(np.array(matrix, dtype=float))
        assert result.result[0][0] == pytest.approx(expected, abs=1e-9)


class TestFinalStep:
    def test_regular_matrix(self) -> None:
        final = calculate_determinant([[1, 2], [3, 4]]).steps[-1]
        assert final.title == "Final result"
        assert "REGULAR" in final.description
        assert final.matrices[0].highlight is True

    def test_singular_matrix(self) -> None:
        final = calculate_determinant([[1, 2], [2, 4]]).steps[-1]
        assert "SINGULAR" in final.description


class TestErrors:
    def test_non_square(self) -> None:
        with pytest.raises(DimensionError):
            calculate_determinant([[1, 2, 3], [4, 5, 6]])

    def test_unknown_method(self) -> None:
        with pytest.raises(ValueError, match="Unknown determinant method"):
            calculate_determinant([[1]], "gauss")

    @pytest.mark.parametrize("bad", [[], [[]], [[1, 2], [3]], [["a", 1], [2, 3]]])
    def test_invalid_input(self, bad) -> None:
        with pytest.raises(DimensionError):
            calculate_determinant(bad)

    def test_too_large(self) -> None:
        with pytest.raises(DimensionError, match="maximum size"):
            calculate_determinant(np.eye(11).tolist())

    def test_input_is_not_mutated(self) -> None:
        matrix = [row[:] for row in DENSE_4X4]
        calculate_determinant(matrix, "zeros")
        assert matrix == DENSE_4X4
