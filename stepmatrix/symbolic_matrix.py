"""Matrices of symbolic expressions and their step-by-step determinant."""

import sympy

from stepmatrix import config
from stepmatrix.determinant import determinant_value
from stepmatrix.logging_config import get_logger, traced
from stepmatrix.symbolic import SymbolicExpression, SymbolicFraction
from stepmatrix.types import (
    CalculationStep,
    DimensionError,
    MatrixDisplay,
    ParseError,
    SymbolicOperationResult,
    number_steps,
)

logger = get_logger("symbolic_matrix")


def parse_symbolic_matrix(raw, strict: bool = None) -> list:
    """Turn a grid of numbers / strings into a matrix of expressions.

    Cells that already are symbolic values are kept as they are.
    """
    if not raw or not all(isinstance(row, (list, tuple)) for row in raw):
        raise DimensionError("A symbolic matrix must be a non-empty list of rows")
    width = len(raw[0])
    if width == 0 or any(len(row) != width for row in raw):
        raise DimensionError("Every row of a symbolic matrix must have the same, non-zero length")
    if max(len(raw), width) > config.MAX_DIMENSION:
        raise DimensionError(
            f"The maximum size is {config.MAX_DIMENSION}×{config.MAX_DIMENSION}"
        )

    matrix = []
    for row in raw:
        parsed = []
        for cell in row:
            if isinstance(cell, (SymbolicExpression, SymbolicFraction)):
                parsed.append(cell)
            elif isinstance(cell, bool):
                raise ParseError(f"Unsupported matrix cell {cell!r}")
            elif isinstance(cell, (int, float)):
                parsed.append(SymbolicExpression.from_number(cell))
            elif isinstance(cell, str):
                parsed.append(SymbolicExpression.parse(cell, strict=strict))
            else:
                raise ParseError(f"Unsupported matrix cell {cell!r}")
        matrix.append(parsed)
    return matrix


def symbolic_matrix_to_display(matrix) -> list:
    """Placeholder numeric grid; the real content travels in the LaTeX labels."""
    return [[0.0 for _ in row] for row in matrix]


def symbolic_matrix_to_latex(matrix) -> list:
    return [[cell.to_latex() for cell in row] for row in matrix]


def symbolic_display(label: str, matrix, highlight: bool = False) -> MatrixDisplay:
    return MatrixDisplay(
        label=label,
        matrix=symbolic_matrix_to_display(matrix),
        highlight=highlight,
        custom_labels=symbolic_matrix_to_latex(matrix),
    )


def symbolic_minor(matrix, row: int, col: int) -> list:
    return [
        [cell for j, cell in enumerate(r) if j != col]
        for i, r in enumerate(matrix)
        if i != row
    ]


def _sarrus_products(matrix):
    (a, b, c), (d, e, f), (g, h, i) = matrix
    return {
        "aei": a * e * i,
        "bfg": b * f * g,
        "cdh": c * d * h,
        "ceg": c * e * g,
        "bdi": b * d * i,
        "afh": a * f * h,
    }


def symbolic_determinant_value(matrix) -> SymbolicExpression:
    """Determinant without steps.

    Constant matrices are evaluated numerically. Otherwise closed forms up
    to 3×3 and SymPy's fraction-free Bareiss determinant above.
    """
    n = len(matrix)
    if all(cell.is_constant() for row in matrix for cell in row):
        return SymbolicExpression.from_number(
            determinant_value([[cell.to_number() for cell in row] for row in matrix])
        )
    if n == 1:
        return matrix[0][0]
    if n == 2:
        (a, b), (c, d) = matrix
        return a * d - b * c
    if n == 3:
        p = _sarrus_products(matrix)
        return (p["aei"] + p["bfg"] + p["cdh"]) - (p["ceg"] + p["bdi"] + p["afh"])

    det = sympy.Matrix([[cell.to_sympy() for cell in row] for row in matrix]).det(method="bareiss")
    return SymbolicExpression.from_sympy(det)


def _method_description(method: str, n: int) -> str:
    if n == 3:
        return "Rule of Sarrus" if method == "sarrus" else "Cofactor expansion"
    if n >= 4:
        return "Cofactor expansion"
    return "Direct formula"


def _sarrus(matrix, steps: list) -> SymbolicExpression:
    (a, b, c), (d, e, f), (g, h, i) = matrix
    steps.append(CalculationStep(
        title="Method: rule of Sarrus",
        description="For 3×3 matrices: det = aei + bfg + cdh - ceg - bdi - afh",
        formula=r"\text{det}(A) = aei + bfg + cdh - ceg - bdi - afh",
    ))

    p = _sarrus_products(matrix)
    factors = {
        "aei": (a, e, i), "bfg": (b, f, g), "cdh": (c, d, h),
        "ceg": (c, e, g), "bdi": (b, d, i), "afh": (a, f, h),
    }
    lines = [
        f"{name} = ({x.to_latex()})({y.to_latex()})({z.to_latex()}) = {p[name].to_latex()}"
        for name, (x, y, z) in factors.items()
    ]
    steps.append(CalculationStep(
        title="Diagonal products",
        description="Each diagonal product expanded:",
        formula=r" \\ ".join(lines),
    ))

    det = (p["aei"] + p["bfg"] + p["cdh"]) - (p["ceg"] + p["bdi"] + p["afh"])
    steps.append(CalculationStep(
        title="Sarrus result",
        description="Positive products minus negative products:",
        formula=f"\\text{{det}}(A) = {det.to_latex()}",
    ))
    return det


def _cofactors_3x3(matrix, steps: list) -> SymbolicExpression:
    (a, b, c), (d, e, f), (g, h, i) = matrix
    steps.append(CalculationStep(
        title="Method: cofactor expansion",
        description="Expansion along the first row:\ndet(A) = a·C₁₁ + b·C₁₂ + c·C₁₃",
        formula=r"\text{det}(A) = a \cdot C_{11} + b \cdot C_{12} + c \cdot C_{13}",
    ))

    c11 = e * i - f * h
    c12 = (d * i - f * g).negate()
    c13 = d * h - e * g
    steps.append(CalculationStep(
        title="Cofactors",
        description="Cofactors of the first row:",
        formula=(
            f"C_{{11}} = ei - fh = {c11.to_latex()} \\\\ "
            f"C_{{12}} = -(di - fg) = {c12.to_latex()} \\\\ "
            f"C_{{13}} = dh - eg = {c13.to_latex()}"
        ),
    ))

    det = a * c11 + b * c12 + c * c13
    steps.append(CalculationStep(
        title="Cofactor result",
        description="Each element times its cofactor, added up:",
        formula=(
            f"\\text{{det}}(A) = ({a.to_latex()})({c11.to_latex()}) + "
            f"({b.to_latex()})({c12.to_latex()}) + ({c.to_latex()})({c13.to_latex()}) "
            f"= {det.to_latex()}"
        ),
    ))
    return det


def _cofactor_expansion(matrix, steps: list) -> SymbolicExpression:
    n = len(matrix)
    steps.append(CalculationStep(
        title="Cofactor expansion",
        description=f"Expansion along the first row of the {n}×{n} matrix",
        formula=f"\\text{{det}}(A) = \\sum_{{j=1}}^{{{n}}} a_{{1j}} \\cdot C_{{1j}}",
    ))

    det = SymbolicExpression()
    for j, element in enumerate(matrix[0]):
        if element.is_zero():
            continue
        minor_det = symbolic_determinant_value(symbolic_minor(matrix, 0, j))
        cofactor = minor_det if j % 2 == 0 else minor_det.negate()
        contribution = element * cofactor
        det = det + contribution
        steps.append(CalculationStep(
            title=f"Term {j + 1}",
            description=f"Contribution of element a₁{j + 1}:",
            formula=(
                f"a_{{1{j + 1}}} \\cdot C_{{1{j + 1}}} = ({element.to_latex()}) "
                f"\\cdot ({cofactor.to_latex()}) = {contribution.to_latex()}"
            ),
        ))
    return det


@traced("calculate_symbolic_determinant")
def calculate_symbolic_determinant(matrix, method: str = None) -> SymbolicOperationResult:
    """Determinant of a matrix of expressions (or raw numbers / strings).

    ``"sarrus"`` only matters for 3×3 input; 4×4 and larger always expand
    along the first row. A result in a single variable gets an extra
    expansion step and, when real roots exist, a roots step.
    """
    method = method or config.DEFAULT_SYMBOLIC_DETERMINANT_METHOD
    if method not in config.DETERMINANT_METHODS:
        raise ValueError(
            f"Unknown determinant method '{method}'. "
            f"Choose one of: {', '.join(config.DETERMINANT_METHODS)}"
        )
    matrix = parse_symbolic_matrix(matrix)
    n = len(matrix)
    if len(matrix[0]) != n:
        raise DimensionError("The determinant is only defined for square matrices")
    logger.debug("Symbolic determinant of %dx%d matrix with method %s", n, n, method)

    steps = [CalculationStep(
        title="Symbolic determinant",
        description=(
            f"Square {n}×{n} matrix with parameters\n"
            f"Selected method: {_method_description(method, n)}\n\n"
            "The result is an algebraic expression in the parameters."
        ),
        matrices=[symbolic_display(r"\text{Matrix with parameters}", matrix)],
    )]

    if n == 1:
        det = matrix[0][0]
        steps.append(CalculationStep(
            title="Special case: 1×1 matrix",
            description="The determinant of a 1×1 matrix is its only element.",
            formula=f"\\text{{det}}(A) = {det.to_latex()}",
        ))
    elif n == 2:
        (a, b), (c, d) = matrix
        det = a * d - b * c
        steps.append(CalculationStep(
            title="2×2 formula",
            description="det = ad - bc",
            formula=(
                f"\\text{{det}}(A) = ({a.to_latex()})({d.to_latex()}) - "
                f"({b.to_latex()})({c.to_latex()}) = {det.to_latex()}"
            ),
        ))
    elif n == 3:
        det = _sarrus(matrix, steps) if method == "sarrus" else _cofactors_3x3(matrix, steps)
    else:
        det = _cofactor_expansion(matrix, steps)

    if isinstance(det, SymbolicExpression) and det.is_polynomial():
        variable = det.get_variables()[0]
        steps.append(CalculationStep(
            title="Polynomial expansion",
            description=f"The determinant expanded as a polynomial in {variable}",
            formula=f"\\text{{det}}(A) = {det.expand().to_latex()}",
        ))
        roots = det.solve_for(variable)
        if roots:
            steps.append(CalculationStep(
                title="Roots",
                description=f"Solving det(A) = 0 for {variable}",
                formula=f"{variable} = {', '.join(r.to_latex() for r in roots)}",
            ))

    steps.append(CalculationStep(
        title="Final result",
        description=f"Symbolic determinant of the {n}×{n} matrix",
        formula=f"\\text{{det}}(A) = {det.to_latex()}",
    ))
    return SymbolicOperationResult(result=det, steps=number_steps(steps))
