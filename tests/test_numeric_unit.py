import numpy as np
import pytest

from stepmatrix.numeric import (
    add_matrices,
    calculate_adjugate,
    calculate_inverse,
    calculate_rank,
    multiply_matrices,
    solve_linear_system,
    solve_linear_system_with_cramer,
    subtract_matrices,
    transpose_matrix,
)
from stepmatrix.types import (
    COMPATIBLE_DETERMINED,
    COMPATIBLE_INDETERMINATE,
    INCOMPATIBLE,
    DimensionError,
    SingularMatrixError,
)

CLASSIC_3X3 = [[1, 2, 3], [0, 1, 4], [5, 6, 0]]


class TestElementwise:
    def test_add(self) -> None:
        result = add_matrices([[1, 2], [3, 4]], [[5, 6], [7, 8]])
        assert result.result == [[6, 8], [10, 12]]
        assert [s.step_number for s in result.steps] == [1, 2, 3]

    def test_subtract(self) -> None:
        result = subtract_matrices([[5, 6], [7, 8]], [[1, 2], [3, 4]])
        assert result.result == [[4, 4], [4, 4]]
        assert "5 - 1 = 4" in result.steps[2].formula

    def test_dimension_mismatch(self) -> None:
        with pytest.raises(DimensionError) as exc:
            add_matrices([[1, 2]], [[1], [2]])
        assert exc.value.code == "DIMENSION_ERROR"

    def test_inputs_are_not_aliased(self) -> None:
        a = [[1.0, 2.0]]
        result = add_matrices(a, [[0.0, 0.0]])
        result.result[0][0] = 99.0
        assert a == [[1.0, 2.0]]


class TestMultiply:
    def test_product(self) -> None:
        result = multiply_matrices([[1, 2], [3, 4]], [[5, 6], [7, 8]])
        assert result.result == [[19, 22], [43, 50]]
        assert result.steps[-1].matrices[0].highlight is True

    def test_rectangular(self) -> None:
        result = multiply_matrices([[1, 2, 3]], [[1], [1], [1]])
        assert result.result == [[6]]

    def test_inner_dimension_mismatch(self) -> None:
        with pytest.raises(DimensionError):
            multiply_matrices([[1, 2]], [[1, 2]])


class TestTranspose:
    @pytest.mark.parametrize("matrix", [[[1, 2, 3]], [[1, 2], [3, 4]], [[1], [2], [3]]])
    def test_involution(self, matrix) -> None:
        once = transpose_matrix(matrix).result
        assert transpose_matrix(once).result == matrix

    def test_shape(self) -> None:
        assert transpose_matrix([[1, 2, 3]]).result == [[1], [2], [3]]

    def test_large_matrix_shows_first_moves_only(self) -> None:
        formula = transpose_matrix(np.ones((3, 3)).tolist()).steps[2].formula
        assert formula.endswith(r"\dots")


class TestAdjugate:
    def test_textbook_adjugate(self) -> None:
        result = calculate_adjugate(CLASSIC_3X3)
        assert result.result == [[-24, 18, 5], [20, -15, -4], [-5, 4, 1]]
        assert len(result.steps) == 4

    def test_two_by_two(self) -> None:
        assert calculate_adjugate([[1, 2], [3, 4]]).result == [[4, -2], [-3, 1]]

    def test_one_by_one(self) -> None:
        assert calculate_adjugate([[5]]).result == [[1]]

    def test_non_square(self) -> None:
        with pytest.raises(DimensionError):
            calculate_adjugate([[1, 2, 3]])


class TestInverse:
    def test_scaled_identity(self) -> None:
        assert calculate_inverse([[2, 0], [0, 2]]).result == [[0.5, 0], [0, 0.5]]

    @pytest.mark.parametrize(
        "matrix",
        [[[1, 2], [3, 4]], CLASSIC_3X3, [[2, 1, 1, 0], [1, 3, 0, 1], [0, 1, 4, 1], [1, 0, 1, 5]]],
    )
    def test_product_with_inverse_is_identity(self, matrix) -> None:
        inverse = calculate_inverse(matrix).result
        product = multiply_matrices(matrix, inverse).result
        assert np.allclose(product, np.eye(len(matrix)), atol=1e-6)

    @pytest.mark.parametrize("matrix", [[[1, 2], [3, 4]], CLASSIC_3X3, [[4, 7], [2, 6]]])
    def test_inverse_is_adjugate_over_determinant(self, matrix) -> None:
        inverse = np.array(calculate_inverse(matrix).result)
        adjugate = np.array(calculate_adjugate(matrix).result)
        det = np.linalg.det(np.array(matrix, dtype=float))
        assert np.allclose(inverse, adjugate / det)

    def test_singular(self) -> None:
        with pytest.raises(SingularMatrixError, match="not invertible"):
            calculate_inverse([[1, 2], [2, 4]])

    def test_steps_include_fractional_form(self) -> None:
        steps = calculate_inverse([[1, 2], [3, 4]]).steps
        assert len(steps) == 7
        fractional = steps[4].matrices[0]
        assert fractional.fraction == r"\frac{1}{-2}"
        exact = steps[5]
        assert exact.matrices[0].show_as_fraction is True
        assert "3/2" in exact.description
        assert steps[-1].title == "Verification"
        assert "✓" in steps[-1].description


class TestRank:
    def test_zero_matrix(self) -> None:
        assert calculate_rank([[0, 0], [0, 0]]).result == [[0]]

    @pytest.mark.parametrize("n", [1, 2, 3, 4])
    def test_identity_has_full_rank(self, n: int) -> None:
        assert calculate_rank(np.eye(n).tolist()).result == [[n]]

    def test_rank_one(self) -> None:
        assert calculate_rank([[1, 2], [2, 4]]).result == [[1]]

    def test_rank_two_of_three(self) -> None:
        result = calculate_rank([[1, 2, 3], [2, 4, 6], [1, 0, 1]])
        assert result.result == [[2]]
        assert "rank 2 out of a possible 3" in result.steps[-1].description

    @pytest.mark.parametrize(
        "matrix",
        [[[1, 2, 3], [4, 5, 6]], [[1], [2]], [[0, 0, 1]], [[1, 2], [3, 4], [5, 6]]],
    )
    def test_rank_bounds(self, matrix) -> None:
        rank = calculate_rank(matrix).result[0][0]
        assert 0 <= rank <= min(len(matrix), len(matrix[0]))
        assert rank == np.linalg.matrix_rank(np.array(matrix, dtype=float))

    def test_bordering_starts_from_first_nonzero_element(self) -> None:
        steps = calculate_rank([[0, 3], [1, 0]]).steps
        assert "Base element: [1,2] = 3" in steps[1].description


class TestLinearSystems:
    def test_two_by_two_gauss(self) -> None:
        result = solve_linear_system([[1, 1], [1, -1]], [[4], [0]])
        assert result.solution == [[2], [2]]
        assert result.compatibility == COMPATIBLE_DETERMINED

    def test_gauss_and_cramer_agree(self) -> None:
        a = [[2, 1, -1], [-3, -1, 2], [-2, 1, 2]]
        b = [[8], [-11], [-3]]
        gauss = solve_linear_system(a, b).solution
        cramer = solve_linear_system_with_cramer(a, b).solution
        assert np.allclose(gauss, [[2], [3], [-1]])
        assert np.allclose(gauss, cramer, atol=1e-6)

    def test_incompatible(self) -> None:
        result = solve_linear_system([[1, 1], [1, 1]], [[1], [2]])
        assert result.compatibility == INCOMPATIBLE
        assert result.solution is None

    def test_indeterminate(self) -> None:
        result = solve_linear_system([[1, 1], [2, 2]], [[2], [4]])
        assert result.compatibility == COMPATIBLE_INDETERMINATE
        assert result.solution is None
        assert result.particular_solution == [[2], [0]]
        assert result.homogeneous_basis == [[[-1], [1]]]
        assert result.free_variables == [1]

    def test_cramer_falls_back_on_singular(self) -> None:
        result = solve_linear_system_with_cramer([[1, 1], [1, 1]], [[1], [2]])
        assert result.compatibility == INCOMPATIBLE
        titles = [s.title for s in result.steps]
        assert "Singular system, Cramer not applicable" in titles
        assert "Gaussian elimination" in titles

    def test_cramer_falls_back_on_non_square(self) -> None:
        result = solve_linear_system_with_cramer([[1, 1, 1]], [[3]])
        assert result.compatibility == COMPATIBLE_INDETERMINATE
        assert result.steps[0].title == "Cramer's rule not applicable"

    @pytest.mark.parametrize("solver", [solve_linear_system, solve_linear_system_with_cramer])
    def test_largest_allowed_system(self, solver) -> None:
        rng = np.random.default_rng(7)
        a = rng.integers(1, 10, size=(10, 10)) + 90 * np.eye(10, dtype=int)
        x = np.arange(1, 11).reshape(10, 1)
        result = solver(a.tolist(), (a @ x).tolist())
        assert result.compatibility == COMPATIBLE_DETERMINED
        assert np.allclose(result.solution, x)

    def test_elimination_divides_by_previous_pivot(self) -> None:
        a = [[2, 1, 1], [4, 3, 3], [8, 7, 9]]
        result = solve_linear_system(a, [[4], [10], [24]])
        assert np.allclose(result.solution, [[1], [1], [1]])
        formulas = [s.formula for s in result.steps if s.title == "Eliminating x2 from row 3"]
        assert formulas == [r"R_{3} \leftarrow \frac{(2) R_{3} - (6) R_{2}}{2}"]

    def test_rhs_shape(self) -> None:
        with pytest.raises(DimensionError):
            solve_linear_system([[1, 0], [0, 1]], [[1, 2]])

    def test_to_dict(self) -> None:
        data = solve_linear_system([[1, 1], [2, 2]], [[2], [4]]).to_dict()
        assert data["free_variables"] == [1]
        assert data["steps"][0]["step_number"] == 1
