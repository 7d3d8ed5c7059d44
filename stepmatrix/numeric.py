"""Numeric matrix operations with pedagogical step traces.

Every public function validates its input (see ``formatting.to_array``),
works on a private float copy and returns fresh nested lists.
"""

import numpy as np

from stepmatrix import config
from stepmatrix.determinant import _minor, determinant_value
from stepmatrix.formatting import (
    _fmt_fraction,
    _fmt_num,
    _fmt_signed,
    _latex_fraction,
    to_array,
    to_list,
)
from stepmatrix.logging_config import get_logger, traced
from stepmatrix.symbolic import SymbolicExpression
from stepmatrix.systems import solve_by_cramer, solve_by_gauss
from stepmatrix.types import (
    CalculationStep,
    DimensionError,
    LinearSystemResult,
    MatrixDisplay,
    OperationResult,
    SingularMatrixError,
    number_steps,
)

logger = get_logger("numeric")


# ── Element-wise operations ─────────────────────────────────────────────

def _elementwise(a, b, op: str, verb: str) -> OperationResult:
    A, B = to_array(a, "Matrix A"), to_array(b, "Matrix B")
    if A.shape != B.shape:
        raise DimensionError(
            f"Matrices must have the same dimensions to {verb} them "
            f"(got {A.shape[0]}×{A.shape[1]} and {B.shape[0]}×{B.shape[1]})"
        )
    rows, cols = A.shape
    C = A + B if op == "+" else A - B

    calculations = [
        f"C_{{{i + 1},{j + 1}}} = {_fmt_num(A[i, j])} {op} {_fmt_signed(B[i, j])} "
        f"= {_fmt_num(C[i, j])}"
        for i in range(rows)
        for j in range(cols)
    ]
    steps = [
        CalculationStep(
            title="Dimension check",
            description=(
                f"✓ Matrix A: {rows}×{cols}\n✓ Matrix B: {rows}×{cols}\n\n"
                f"Both matrices have the same dimensions, we can {verb} them."
            ),
            matrices=[
                MatrixDisplay(r"\text{Matrix A}", to_list(A)),
                MatrixDisplay(r"\text{Matrix B}", to_list(B)),
            ],
        ),
        CalculationStep(
            title=f"Rule for matrix {'addition' if op == '+' else 'subtraction'}",
            description=f"We {verb} each pair of corresponding elements:",
            formula=f"C_{{i,j}} = A_{{i,j}} {op} B_{{i,j}}",
        ),
        CalculationStep(
            title="Detailed calculations",
            description="Element by element:",
            formula=r" \\ ".join(calculations),
            matrices=[
                MatrixDisplay(r"\text{Matrix A}", to_list(A)),
                MatrixDisplay(r"\text{Matrix B}", to_list(B)),
                MatrixDisplay(f"\\text{{Result }} (A {op} B)", to_list(C), highlight=True),
            ],
        ),
    ]
    return OperationResult(result=to_list(C), steps=number_steps(steps))


@traced("add_matrices")
def add_matrices(a, b) -> OperationResult:
    """A + B for matrices of equal dimensions."""
    return _elementwise(a, b, "+", "add")


@traced("subtract_matrices")
def subtract_matrices(a, b) -> OperationResult:
    """A - B for matrices of equal dimensions."""
    return _elementwise(a, b, "-", "subtract")


@traced("multiply_matrices")
def multiply_matrices(a, b) -> OperationResult:
    """A × B; the columns of A must match the rows of B."""
    A, B = to_array(a, "Matrix A"), to_array(b, "Matrix B")
    a_rows, a_cols = A.shape
    b_rows, b_cols = B.shape
    if a_cols != b_rows:
        raise DimensionError(
            f"The number of columns of A ({a_cols}) must equal the number "
            f"of rows of B ({b_rows})"
        )
    C = A @ B

    calculations = []
    for i in range(a_rows):
        for j in range(b_cols):
            products = " + ".join(
                f"({_fmt_signed(A[i, k])} \\cdot {_fmt_signed(B[k, j])})"
                for k in range(a_cols)
            )
            evaluated = " + ".join(
                f"({_fmt_num(A[i, k] * B[k, j])})" for k in range(a_cols)
            )
            calculations.append(
                f"C_{{{i + 1},{j + 1}}} = {products} = {evaluated} = {_fmt_num(C[i, j])}"
            )

    steps = [
        CalculationStep(
            title="Compatibility check",
            description=(
                f"✓ Matrix A: {a_rows}×{a_cols}\n✓ Matrix B: {b_rows}×{b_cols}\n\n"
                f"Columns of A ({a_cols}) = rows of B ({b_rows}) ✓\n"
                f"The product is defined and will be a {a_rows}×{b_cols} matrix."
            ),
            matrices=[
                MatrixDisplay(r"\text{Matrix A}", to_list(A)),
                MatrixDisplay(r"\text{Matrix B}", to_list(B)),
            ],
        ),
        CalculationStep(
            title="Rule for matrix multiplication",
            description=(
                "Each element C_{i,j} is the dot product of row i of A "
                "and column j of B."
            ),
            formula=f"C_{{i,j}} = \\sum_{{k=1}}^{{{a_cols}}} A_{{i,k}} \\cdot B_{{k,j}}",
        ),
        CalculationStep(
            title="Detailed calculations",
            description="Every element step by step:",
            formula=r" \\ ".join(calculations),
            matrices=[MatrixDisplay(r"\text{Result } (A \times B)", to_list(C), highlight=True)],
        ),
    ]
    return OperationResult(result=to_list(C), steps=number_steps(steps))


@traced("transpose_matrix")
def transpose_matrix(matrix) -> OperationResult:
    """Swap rows and columns."""
    A = to_array(matrix)
    rows, cols = A.shape
    T = A.T.copy()

    moves = [
        f"A_{{{i + 1},{j + 1}}} = {_fmt_num(A[i, j])} \\rightarrow "
        f"A^T_{{{j + 1},{i + 1}}} = {_fmt_num(A[i, j])}"
        for i in range(rows)
        for j in range(cols)
    ][:6]
    formula = r" \\ ".join(moves)
    if rows * cols > 6:
        formula += r" \\ \dots"

    steps = [
        CalculationStep(
            title="Original matrix",
            description=(
                f"Original size: {rows}×{cols}\n"
                f"Transposed size: {cols}×{rows}\n\n"
                "Transposition turns rows into columns."
            ),
            matrices=[MatrixDisplay(r"\text{Original matrix}", to_list(A))],
        ),
        CalculationStep(
            title="Transposition rule",
            description="Each element moves according to:",
            formula=r"A_{i,j} \rightarrow A^T_{j,i}",
        ),
        CalculationStep(
            title="Element moves",
            description="How the first elements move:",
            formula=formula,
            matrices=[
                MatrixDisplay(r"\text{Original matrix}", to_list(A)),
                MatrixDisplay(r"\text{Transposed matrix } A^T", to_list(T), highlight=True),
            ],
        ),
    ]
    return OperationResult(result=to_list(T), steps=number_steps(steps))


# ── Adjugate / inverse ──────────────────────────────────────────────────

def _square(matrix, what: str) -> np.ndarray:
    A = to_array(matrix)
    if A.shape[0] != A.shape[1]:
        raise DimensionError(
            f"The {what} is only defined for square matrices "
            f"(got {A.shape[0]}×{A.shape[1]})"
        )
    return A


def _cofactor_matrix(A: np.ndarray) -> np.ndarray:
    """Signed minors with the (−1)^(i+j) checkerboard."""
    n = A.shape[0]
    if n == 1:
        return np.ones((1, 1))
    C = np.zeros((n, n))
    for i in range(n):
        for j in range(n):
            C[i, j] = (-1) ** (i + j) * determinant_value(_minor(A, i, j)) + 0.0
    return C


@traced("calculate_adjugate")
def calculate_adjugate(matrix) -> OperationResult:
    """Transpose of the cofactor matrix."""
    A = _square(matrix, "adjugate")
    C = _cofactor_matrix(A)
    adj = C.T.copy()

    examples = []
    for i in range(A.shape[0]):
        for j in range(A.shape[0]):
            if len(examples) == 4:
                break
            sign = "+" if (i + j) % 2 == 0 else "-"
            examples.append(
                f"C_{{{i + 1},{j + 1}}} = {sign}\\det(M_{{{i + 1},{j + 1}}}) = {_fmt_num(C[i, j])}"
            )

    steps = [
        CalculationStep(
            title="Adjugate matrix",
            description=(
                "The adjugate is built in two stages:\n"
                "1. Compute the cofactor matrix\n"
                "2. Transpose it\n\n"
                "It is the key ingredient of the inverse: A⁻¹ = (1/det(A)) × adj(A)"
            ),
            matrices=[MatrixDisplay(r"\text{Original matrix}", to_list(A))],
        ),
        CalculationStep(
            title="What is a cofactor?",
            description=(
                "For each element A_{i,j}:\n"
                "• delete row i and column j (the minor)\n"
                "• compute the determinant of the minor\n"
                "• apply the checkerboard sign (-1)^{i+j}"
            ),
            formula=r"C_{i,j} = (-1)^{i+j} \times \det(M_{i,j})",
        ),
        CalculationStep(
            title="Cofactor matrix",
            description="Some cofactors as an example:",
            formula=r" \\ ".join(examples),
            matrices=[MatrixDisplay(r"\text{Cofactor matrix}", to_list(C))],
        ),
        CalculationStep(
            title="Final transposition",
            description="Transposing the cofactor matrix gives the adjugate: C_{i,j} → adj(A)_{j,i}",
            formula=r"\text{adj}(A) = C^T",
            matrices=[
                MatrixDisplay(r"\text{Cofactor matrix}", to_list(C)),
                MatrixDisplay(r"\text{Adjugate matrix}", to_list(adj), highlight=True),
            ],
        ),
    ]
    return OperationResult(result=to_list(adj), steps=number_steps(steps))


@traced("calculate_inverse")
def calculate_inverse(matrix) -> OperationResult:
    """Inverse through the adjugate; raises SingularMatrixError when det(A) ≈ 0."""
    A = _square(matrix, "inverse")
    steps = [CalculationStep(
        title="What is the inverse matrix?",
        description="The inverse A⁻¹ is the matrix satisfying A × A⁻¹ = I",
        matrices=[MatrixDisplay(r"\text{Matrix } A", to_list(A))],
    )]

    det = determinant_value(A)
    if abs(det) <= config.TOLERANCE:
        logger.info("Inverse requested for singular %dx%d matrix", *A.shape)
        raise SingularMatrixError("The matrix is not invertible (determinant = 0)")

    steps.append(CalculationStep(
        title="Invertibility check",
        description=f"Determinant: det(A) = {_fmt_num(det)}",
        formula=f"det(A) = {_fmt_num(det)} \\neq 0 \\; \\checkmark",
    ))

    C = _cofactor_matrix(A)
    steps.append(CalculationStep(
        title="Cofactor matrix",
        description="Each element is a signed minor:",
        formula=r"C_{ij} = (-1)^{i+j} \cdot \det(M_{ij})",
        matrices=[MatrixDisplay(r"\text{Cofactor matrix}", to_list(C))],
    ))

    adj = C.T.copy()
    steps.append(CalculationStep(
        title="Adjugate matrix",
        description="The adjugate is the transpose of the cofactor matrix",
        matrices=[MatrixDisplay(r"\text{Adjugate } \text{adj}(A)", to_list(adj))],
    ))

    fraction = f"\\frac{{1}}{{{_latex_fraction(det)}}}"
    steps.append(CalculationStep(
        title="Inverse matrix (fractional form)",
        description=r"The inverse is the adjugate multiplied by $\frac{1}{\det(A)}$",
        matrices=[MatrixDisplay(
            f"\\text{{Inverse }} A^{{-1}} = {fraction} \\times \\text{{adj}}(A)",
            to_list(adj),
            highlight=True,
            fraction=fraction,
        )],
    ))

    inverse = adj / det + 0.0
    exact = "\n".join(
        "  ".join(_fmt_fraction(v) for v in row) for row in inverse
    )
    steps.append(CalculationStep(
        title="Resulting inverse matrix",
        description=f"Inverse matrix with exact values:\n{exact}",
        matrices=[MatrixDisplay(
            r"\text{Inverse } A^{-1}", to_list(inverse),
            highlight=True, show_as_fraction=True,
        )],
    ))

    check = A @ inverse
    ok = np.allclose(check, np.eye(A.shape[0]), atol=config.VERIFY_TOLERANCE)
    if not ok:
        logger.warning("A x A^-1 deviates from I by more than %s", config.VERIFY_TOLERANCE)
    steps.append(CalculationStep(
        title="Verification",
        description="Check: A × A⁻¹ = I " + ("✓" if ok else "(approximately)"),
        matrices=[MatrixDisplay(r"\text{Verification: } A \times A^{-1} \approx I", to_list(check))],
    ))
    return OperationResult(result=to_list(inverse), steps=number_steps(steps))


# ── Rank ────────────────────────────────────────────────────────────────

def _rank_interpretation(rank: int, rows: int, cols: int) -> str:
    max_rank = min(rows, cols)
    if rank == max_rank:
        return (
            f"The matrix has full rank (largest possible rank: {max_rank}).\n"
            f"• There are {max_rank} linearly independent rows and columns"
        )
    if rank == 0:
        return "The matrix is the zero matrix.\n• Every element is zero"
    return (
        f"The matrix has rank {rank} out of a possible {max_rank}.\n"
        f"• {rank} rows and {rank} columns are linearly independent\n"
        f"• {rows - rank} rows are combinations of the others\n"
        f"• {cols - rank} columns are combinations of the others"
    )


@traced("calculate_rank")
def calculate_rank(matrix) -> OperationResult:
    """Rank as the order of the largest non-zero minor (bordering minors).

    Starting from the first non-zero element, each non-zero minor of order
    k is extended by one new row and one new column, tried in ascending
    index order; the first non-zero extension becomes the new base. When
    no extension is non-zero the rank is k.
    """
    A = to_array(matrix)
    rows, cols = A.shape
    max_order = min(rows, cols)

    steps = [CalculationStep(
        title="Rank by minors",
        description=(
            "The rank of a matrix is the order of its largest non-zero minor. "
            "We look for non-zero minors of increasing order."
        ),
        formula=r"\text{rank}(A) = \max\{k : \exists \text{ minor of order } k \neq 0\}",
        matrices=[MatrixDisplay(r"\text{Original matrix}", to_list(A))],
    )]

    nonzero = [
        (i, j) for i in range(rows) for j in range(cols)
        if abs(A[i, j]) > config.TOLERANCE
    ]
    if not nonzero:
        steps.append(CalculationStep(
            title="Zero matrix",
            description="Every element is zero, so there is no non-zero minor of any order.",
            formula=r"\text{rank}(A) = 0",
        ))
        steps.append(CalculationStep(
            title="Final rank",
            description=_rank_interpretation(0, rows, cols),
            formula=r"\text{rank}(A) = 0",
            matrices=[MatrixDisplay(r"\text{Rank} = 0", [[0.0]], highlight=True)],
        ))
        return OperationResult(result=[[0]], steps=number_steps(steps))

    i0, j0 = nonzero[0]
    base_rows, base_cols = [i0], [j0]
    rank = 1
    steps.append(CalculationStep(
        title="Non-zero minor of order 1",
        description=(
            "Non-zero elements:\n"
            + "\n".join(f"a_{{{i + 1}{j + 1}}} = {_fmt_num(A[i, j])}" for i, j in nonzero)
            + f"\n\nBase element: [{i0 + 1},{j0 + 1}] = {_fmt_num(A[i0, j0])}"
        ),
        formula=f"M_1 = |{_fmt_num(A[i0, j0])}| \\neq 0 \\Rightarrow \\text{{rank}} \\geq 1",
        matrices=[MatrixDisplay(
            f"\\text{{Order 1 minor at [{i0 + 1},{j0 + 1}]}}", [[float(A[i0, j0])]],
            highlight=True,
        )],
    ))

    for order in range(2, max_order + 1):
        steps.append(CalculationStep(
            title=f"Building minors of order {order}",
            description=(
                f"Starting from the order {order - 1} base (rows "
                f"{[r + 1 for r in base_rows]}, columns {[c + 1 for c in base_cols]}) "
                "we add one new row and one new column."
            ),
            formula=f"\\text{{Base: order {order - 1}}} \\rightarrow \\text{{Target: order {order}}}",
        ))
        found = False
        for new_row in (r for r in range(rows) if r not in base_rows):
            for new_col in (c for c in range(cols) if c not in base_cols):
                ext_rows, ext_cols = base_rows + [new_row], base_cols + [new_col]
                sub = A[np.ix_(ext_rows, ext_cols)]
                steps.append(CalculationStep(
                    title=f"Trying a minor of order {order}",
                    description=(
                        f"Rows: {', '.join(str(r + 1) for r in ext_rows)}\n"
                        f"Columns: {', '.join(str(c + 1) for c in ext_cols)}"
                    ),
                    matrices=[MatrixDisplay(f"\\text{{Order {order} minor}}", to_list(sub))],
                ))
                det = determinant_value(sub)
                steps.append(CalculationStep(
                    title=f"Determinant of order {order}",
                    description=f"The determinant of this {order}×{order} submatrix is:",
                    formula=f"\\det(M_{{{order}}}) = {_fmt_num(det)}",
                    matrices=[MatrixDisplay(r"\text{Determinant}", [[det]])],
                ))
                if abs(det) > config.TOLERANCE:
                    steps.append(CalculationStep(
                        title=f"Non-zero minor of order {order} found",
                        description=(
                            f"There are {order} linearly independent rows and columns."
                        ),
                        formula=f"\\det = {_fmt_num(det)} \\neq 0 \\Rightarrow \\text{{rank}} \\geq {order}",
                        matrices=[MatrixDisplay(
                            f"\\text{{Non-zero minor of order {order}}}", to_list(sub),
                            highlight=True,
                        )],
                    ))
                    base_rows, base_cols = ext_rows, ext_cols
                    found = True
                    break
                steps.append(CalculationStep(
                    title=f"Minor of order {order} is zero",
                    description="This combination does not raise the rank; trying the next one.",
                    formula=r"\det = 0",
                ))
            if found:
                break

        if not found:
            steps.append(CalculationStep(
                title=f"Result for order {order}",
                description=(
                    f"No non-zero minor of order {order} extends the base, "
                    f"so the rank is {order - 1}."
                ),
                formula=f"\\text{{rank}}(A) = {order - 1}",
            ))
            break
        rank = order
        if order == max_order:
            steps.append(CalculationStep(
                title="Largest order reached",
                description=(
                    f"A non-zero minor of order {max_order} is the largest possible "
                    f"for a {rows}×{cols} matrix."
                ),
                formula=f"\\text{{rank}}(A) = {max_order} \\text{{ (full rank)}}",
            ))

    logger.debug("Rank of %dx%d matrix: %d", rows, cols, rank)
    steps.append(CalculationStep(
        title="Final rank",
        description=_rank_interpretation(rank, rows, cols),
        formula=f"\\text{{rank}}(A) = {rank}",
        matrices=[
            MatrixDisplay(r"\text{Original matrix}", to_list(A)),
            MatrixDisplay(f"\\text{{Rank}} = {rank}", [[float(rank)]], highlight=True),
        ],
    ))
    return OperationResult(result=[[rank]], steps=number_steps(steps))


# ── Numeric linear systems ──────────────────────────────────────────────

def _constant_matrix(A: np.ndarray) -> list:
    return [[SymbolicExpression.from_number(v) for v in row] for row in A]


def _column_to_floats(column) -> list:
    return [[float(cell.to_number()) + 0.0] for (cell,) in column]


def _numeric_system(a, b, method: str) -> LinearSystemResult:
    A, B = to_array(a, "Matrix A"), to_array(b, "Vector B")
    if B.shape[1] != 1 or B.shape[0] != A.shape[0]:
        raise DimensionError(
            f"B must be a column with {A.shape[0]} rows (got {B.shape[0]}×{B.shape[1]})"
        )
    logger.debug("Numeric %dx%d system with %s", A.shape[0], A.shape[1], method)

    solver = solve_by_cramer if method == "cramer" else solve_by_gauss
    outcome = solver(_constant_matrix(A), _constant_matrix(B))
    result = LinearSystemResult(
        solution=_column_to_floats(outcome.solution) if outcome.solution else None,
        compatibility=outcome.compatibility,
        steps=outcome.steps,
    )
    parametric = outcome.parametric_solution
    if parametric is not None:
        result.particular_solution = _column_to_floats(parametric.particular_solution)
        result.homogeneous_basis = [_column_to_floats(v) for v in parametric.homogeneous_basis]
        result.free_variables = list(parametric.free_variables)
    return result


@traced("solve_linear_system")
def solve_linear_system(a, b) -> LinearSystemResult:
    """Solve A·x = B by fraction-free Gaussian elimination."""
    return _numeric_system(a, b, "gauss")


@traced("solve_linear_system_with_cramer")
def solve_linear_system_with_cramer(a, b) -> LinearSystemResult:
    """Solve A·x = B by Cramer's rule (Gauss when A is singular or not square)."""
    return _numeric_system(a, b, "cramer")
