"""Step-by-step numeric determinants.

Three strategies are available:

- ``"sarrus"``: the six diagonal products of a 3×3 matrix.
- ``"cofactors"``: Laplace expansion along the first row.
- ``"zeros"``: for 4×4 and larger, pick the row or column with the most
  zeros, clear the rest of it with elementary operations that keep the
  determinant unchanged and expand along that line.

1×1 and 2×2 matrices always use the closed form; for 3×3 matrices
``"zeros"`` behaves like ``"cofactors"``.
"""

import numpy as np

from stepmatrix import config
from stepmatrix.formatting import _fmt_num, _fmt_signed, to_array, to_list
from stepmatrix.logging_config import get_logger, traced
from stepmatrix.types import (
    CalculationStep,
    DimensionError,
    MatrixDisplay,
    OperationResult,
    number_steps,
)

logger = get_logger("determinant")


def _is_zero(value: float) -> bool:
    return abs(value) <= config.TOLERANCE


def _minor(A: np.ndarray, row: int, col: int) -> np.ndarray:
    """Submatrix of *A* without *row* and *col*."""
    return np.delete(np.delete(A, row, axis=0), col, axis=1)


def _clean(value: float) -> float:
    # folds -0.0 into 0.0
    return float(value) + 0.0


def determinant_value(matrix) -> float:
    """Determinant without steps.

    Closed forms up to 3×3. Larger matrices go through numpy's LU
    factorisation; an all-integer matrix has an integer determinant, so
    the result is rounded in that case.
    """
    A = np.asarray(matrix, dtype=np.float64)
    n = A.shape[0]
    if n == 1:
        return _clean(A[0, 0])
    if n == 2:
        return _clean(A[0, 0] * A[1, 1] - A[0, 1] * A[1, 0])
    if n == 3:
        return _sarrus_value(A)
    det = np.linalg.det(A)
    if np.array_equal(A, np.round(A)):
        det = np.round(det)
    return _clean(det)


def _method_description(method: str, n: int) -> str:
    if n == 3:
        return "Rule of Sarrus" if method == "sarrus" else "Cofactor expansion"
    if n >= 4:
        return "Creating zeros (Gauss)" if method == "zeros" else "Cofactor expansion"
    return "Direct formula"


# ── 3×3 closed forms ────────────────────────────────────────────────────

def _sarrus_value(A: np.ndarray) -> float:
    (a, b, c), (d, e, f), (g, h, i) = A
    return _clean(a * e * i + b * f * g + c * d * h - c * e * g - b * d * i - a * f * h)


def _sarrus(A: np.ndarray, steps: list) -> float:
    (a, b, c), (d, e, f), (g, h, i) = A
    steps.append(CalculationStep(
        title="Method: rule of Sarrus",
        description=(
            "For 3×3 matrices the rule of Sarrus is the most direct:\n"
            "- Repeat the first two columns to the right\n"
            "- Add the products of the main diagonals\n"
            "- Subtract the products of the secondary diagonals"
        ),
        formula="det(A) = aei + bfg + cdh - ceg - bdi - afh",
        matrices=[MatrixDisplay(r"\text{3×3 matrix}", to_list(A))],
    ))

    aei, bfg, cdh = a * e * i, b * f * g, c * d * h
    ceg, bdi, afh = c * e * g, b * d * i, a * f * h
    positive = aei + bfg + cdh
    negative = ceg + bdi + afh
    F = _fmt_num
    steps.append(CalculationStep(
        title="Diagonal products",
        description=(
            "Main diagonals (positive):\n"
            f"a×e×i = {F(a)}×{F(e)}×{F(i)} = {F(aei)}\n"
            f"b×f×g = {F(b)}×{F(f)}×{F(g)} = {F(bfg)}\n"
            f"c×d×h = {F(c)}×{F(d)}×{F(h)} = {F(cdh)}\n\n"
            "Secondary diagonals (negative):\n"
            f"c×e×g = {F(c)}×{F(e)}×{F(g)} = {F(ceg)}\n"
            f"b×d×i = {F(b)}×{F(d)}×{F(i)} = {F(bdi)}\n"
            f"a×f×h = {F(a)}×{F(f)}×{F(h)} = {F(afh)}"
        ),
        formula=(
            f"Positive sum: {F(aei)} + {F(bfg)} + {F(cdh)} = {F(positive)}\n"
            f"Negative sum: {F(ceg)} + {F(bdi)} + {F(afh)} = {F(negative)}"
        ),
    ))

    det = _clean(positive - negative)
    steps.append(CalculationStep(
        title="Sarrus result",
        description=(
            f"det(A) = ({F(aei)} + {F(bfg)} + {F(cdh)}) - ({F(ceg)} + {F(bdi)} + {F(afh)})\n"
            f"det(A) = {F(positive)} - {F(negative)}\n"
            f"det(A) = {F(det)}"
        ),
        formula=f"det(A) = {F(det)}",
        matrices=[MatrixDisplay(r"\text{Determinant}", [[det]])],
    ))
    return det


def _cofactors_3x3(A: np.ndarray, steps: list) -> float:
    (a, b, c), (d, e, f), (g, h, i) = A
    F = _fmt_num
    steps.append(CalculationStep(
        title="Method: cofactor expansion",
        description=(
            "We expand along the first row:\n"
            f"First row elements: {F(a)}, {F(b)}, {F(c)}\n"
            "Each element is multiplied by its cofactor\n"
            "Cofactor signs alternate: +, -, +"
        ),
        formula="det(A) = a₁₁C₁₁ + a₁₂C₁₂ + a₁₃C₁₃",
        matrices=[MatrixDisplay(r"\text{3×3 matrix}", to_list(A))],
    ))

    c11 = e * i - f * h
    c12 = -(d * i - f * g)
    c13 = d * h - e * g
    steps.append(CalculationStep(
        title="Cofactors",
        description=(
            f"C₁₁ = +det([{F(e)} {F(f)}; {F(h)} {F(i)}]) = +({F(e * i)} - {F(f * h)}) = {F(c11)}\n"
            f"C₁₂ = -det([{F(d)} {F(f)}; {F(g)} {F(i)}]) = -({F(d * i)} - {F(f * g)}) = {F(c12)}\n"
            f"C₁₃ = +det([{F(d)} {F(e)}; {F(g)} {F(h)}]) = +({F(d * h)} - {F(e * g)}) = {F(c13)}"
        ),
        formula="C_{ij} = (-1)^{i+j} det(M_{ij})",
    ))

    det = _clean(a * c11 + b * c12 + c * c13)
    steps.append(CalculationStep(
        title="Cofactor result",
        description=(
            f"det(A) = {F(a)}×{_fmt_signed(c11)} + {F(b)}×{_fmt_signed(c12)} "
            f"+ {F(c)}×{_fmt_signed(c13)}\n"
            f"det(A) = {F(a * c11)} + {F(b * c12)} + {F(c * c13)}\n"
            f"det(A) = {F(det)}"
        ),
        formula=f"det(A) = {F(det)}",
        matrices=[MatrixDisplay(r"\text{Determinant}", [[det]])],
    ))
    return det


# ── n×n cofactor expansion ──────────────────────────────────────────────

def _cofactor_expansion(A: np.ndarray, steps: list) -> float:
    n = A.shape[0]
    steps.append(CalculationStep(
        title="Method: cofactor expansion",
        description=(
            "We expand along the first row:\n"
            "each element a₁ⱼ is multiplied by its cofactor C₁ⱼ = "
            "(-1)^(1+j) × det(M₁ⱼ)"
        ),
        formula="det(A) = a₁₁C₁₁ + a₁₂C₁₂ + ... + a₁ₙC₁ₙ",
        matrices=[MatrixDisplay(f"\\text{{{n}×{n} matrix}}", to_list(A))],
    ))

    det = 0.0
    for j in range(n):
        element = A[0, j]
        sign = (-1) ** j
        symbol = "+" if sign == 1 else "-"
        steps.append(CalculationStep(
            title=f"Element a₁{j + 1} = {_fmt_num(element)}",
            description=(
                f"Cofactor for position [1,{j + 1}]\n"
                f"Sign: {symbol} because (-1)^(1+{j + 1}) = {sign}"
            ),
            formula=f"C_{{1{j + 1}}} = {symbol} det(M_{{1{j + 1}}})",
        ))

        minor = _minor(A, 0, j)
        steps.append(CalculationStep(
            title=f"Minor M₁{j + 1}",
            description=f"Matrix left after deleting row 1 and column {j + 1}",
            matrices=[MatrixDisplay(f"\\text{{{n - 1}×{n - 1} minor}}", to_list(minor))],
        ))

        minor_det = determinant_value(minor)
        cofactor = sign * minor_det
        contribution = element * cofactor
        det += contribution
        steps.append(CalculationStep(
            title=f"Contribution of a₁{j + 1}",
            description=(
                f"det(M₁{j + 1}) = {_fmt_num(minor_det)}\n"
                f"Cofactor = {sign} × {_fmt_num(minor_det)} = {_fmt_num(cofactor)}\n"
                f"Contribution = {_fmt_num(element)} × {_fmt_signed(cofactor)} "
                f"= {_fmt_num(contribution)}"
            ),
            formula=f"a_{{1{j + 1}}} C_{{1{j + 1}}} = {_fmt_num(contribution)}",
        ))

    det = _clean(det)
    steps.append(CalculationStep(
        title="Sum of contributions",
        description="Adding every contribution of the first row:",
        formula=f"det(A) = {_fmt_num(det)}",
        matrices=[MatrixDisplay(r"\text{Determinant}", [[det]])],
    ))
    return det


# ── Zero-creation strategy ──────────────────────────────────────────────

def _find_best_line(A: np.ndarray):
    """Row or column with the most near-zero entries.

    Rows are scanned before columns and only a strictly larger count
    replaces the current best, so the first best line wins.
    """
    n = A.shape[0]
    kind, index, best = "row", 0, 0
    for i in range(n):
        count = int(np.sum(np.abs(A[i, :]) <= config.TOLERANCE))
        if count > best:
            kind, index, best = "row", i, count
    for j in range(n):
        count = int(np.sum(np.abs(A[:, j]) <= config.TOLERANCE))
        if count > best:
            kind, index, best = "column", j, count
    return kind, index, best


def _create_zeros(A: np.ndarray, kind: str, index: int, steps: list) -> np.ndarray:
    """Clear the chosen line except for one pivot.

    A row is cleared with column operations C_j ← C_j − f·C_p and a column
    with row operations R_i ← R_i − f·R_p; neither changes the determinant.
    """
    n = A.shape[0]
    M = A.copy()
    steps.append(CalculationStep(
        title=f"Creating zeros in {kind} {index + 1}",
        description=(
            "Adding a multiple of one line to another does not change the "
            "determinant, so we use such operations to create zeros."
        ),
        matrices=[MatrixDisplay(r"\text{Matrix before creating zeros}", to_list(M))],
    ))

    line = M[index, :] if kind == "row" else M[:, index]
    nonzero = [k for k in range(n) if not _is_zero(line[k])]
    if not nonzero:
        return M
    p = nonzero[0]
    pivot = line[p]
    position = f"[{index + 1},{p + 1}]" if kind == "row" else f"[{p + 1},{index + 1}]"
    logger.debug("Zero strategy pivot %s = %s in %s %d", position, pivot, kind, index + 1)
    steps.append(CalculationStep(
        title="Pivot selected",
        description=(
            f"Pivot: element {position} = {_fmt_num(pivot)}\n"
            f"It is used to create zeros in the rest of {kind} {index + 1}."
        ),
        formula=f"Pivot = {_fmt_num(pivot)}",
    ))

    for k in nonzero[1:]:
        if kind == "row":
            factor = M[index, k] / pivot
            label = f"C{k + 1}"
            op = f"C{k + 1} ← C{k + 1} - ({_fmt_num(factor)}) × C{p + 1}"
            target = f"[{index + 1},{k + 1}]"
            M[:, k] -= factor * M[:, p]
            M[index, k] = 0.0
        else:
            factor = M[k, index] / pivot
            label = f"R{k + 1}"
            op = f"R{k + 1} ← R{k + 1} - ({_fmt_num(factor)}) × R{p + 1}"
            target = f"[{k + 1},{index + 1}]"
            M[k, :] -= factor * M[p, :]
            M[k, index] = 0.0
        steps.append(CalculationStep(
            title=f"Eliminating element {target}",
            description=f"Factor = {_fmt_num(factor)}\nOperation: {op}",
            formula=op,
        ))
        steps.append(CalculationStep(
            title="Result of the operation",
            description=f"{label} updated. Element {target} is now 0.",
            matrices=[MatrixDisplay(r"\text{Matrix after the operation}", to_list(M))],
        ))
    return M


def _minor_determinant_step(minor: np.ndarray) -> tuple:
    size = minor.shape[0]
    if size == 1:
        value = _clean(minor[0, 0])
        return value, CalculationStep(
            title="Determinant of the 1×1 minor",
            description="The determinant of a 1×1 matrix is its only element.",
            formula=f"det(M) = {_fmt_num(value)}",
        )
    if size == 2:
        (a, b), (c, d) = minor
        value = _clean(a * d - b * c)
        return value, CalculationStep(
            title="Determinant of the 2×2 minor",
            description=(
                f"ad - bc = {_fmt_num(a)}×{_fmt_signed(d)} - {_fmt_num(b)}×{_fmt_signed(c)} "
                f"= {_fmt_num(a * d)} - {_fmt_signed(b * c)} = {_fmt_num(value)}"
            ),
            formula=f"det(M) = {_fmt_num(value)}",
        )
    if size == 3:
        value = _sarrus_value(minor)
        return value, CalculationStep(
            title="Determinant of the 3×3 minor",
            description="The 3×3 minor is evaluated with the rule of Sarrus.",
            formula=f"det(M) = {_fmt_num(value)}",
        )
    value = determinant_value(minor)
    return value, CalculationStep(
        title=f"Determinant of the {size}×{size} minor",
        description="The minor is evaluated numerically by LU factorisation.",
        formula=f"det(M) = {_fmt_num(value)}",
    )


def _expand_along_line(A: np.ndarray, kind: str, index: int, steps: list) -> float:
    n = A.shape[0]
    steps.append(CalculationStep(
        title=f"Expansion along {kind} {index + 1}",
        description=(
            f"We expand the determinant along {kind} {index + 1}. "
            "Zero elements contribute nothing."
        ),
        matrices=[MatrixDisplay(f"\\text{{Optimized {n}×{n} matrix}}", to_list(A))],
    ))

    det = 0.0
    for k in range(n):
        row, col = (index, k) if kind == "row" else (k, index)
        element = A[row, col]
        position = f"[{row + 1},{col + 1}]"
        if _is_zero(element):
            steps.append(CalculationStep(
                title=f"Element {position} = 0",
                description="This element is zero and does not contribute.",
                formula="Contribution = 0",
            ))
            continue

        sign = (-1) ** (row + col)
        symbol = "+" if sign == 1 else "-"
        steps.append(CalculationStep(
            title=f"Element {position} = {_fmt_num(element)}",
            description=f"Sign: {symbol} because (-1)^({row + 1}+{col + 1}) = {sign}",
            formula=f"C_{{{row + 1}{col + 1}}} = {symbol} det(M_{{{row + 1}{col + 1}}})",
        ))

        minor = _minor(A, row, col)
        steps.append(CalculationStep(
            title=f"Minor M{row + 1}{col + 1}",
            description=(
                f"{n - 1}×{n - 1} matrix left after deleting row {row + 1} "
                f"and column {col + 1}."
            ),
            matrices=[MatrixDisplay(f"\\text{{{n - 1}×{n - 1} minor}}", to_list(minor))],
        ))

        minor_det, minor_step = _minor_determinant_step(minor)
        steps.append(minor_step)

        cofactor = sign * minor_det
        contribution = element * cofactor
        det += contribution
        steps.append(CalculationStep(
            title="Cofactor and contribution",
            description=(
                f"Cofactor = {sign} × {_fmt_num(minor_det)} = {_fmt_num(cofactor)}\n"
                f"Contribution = {_fmt_num(element)} × {_fmt_signed(cofactor)} "
                f"= {_fmt_num(contribution)}\n"
                f"Partial determinant = {_fmt_num(det)}"
            ),
            formula=f"Contribution = {_fmt_num(contribution)}",
        ))

    det = _clean(det)
    steps.append(CalculationStep(
        title="Result of the optimized expansion",
        description=f"Sum of the contributions of {kind} {index + 1}.",
        formula=f"det(A) = {_fmt_num(det)}",
        matrices=[MatrixDisplay(r"\text{Determinant}", [[det]])],
    ))
    return det


def _with_zeros(A: np.ndarray, steps: list) -> float:
    n = A.shape[0]
    steps.append(CalculationStep(
        title="Method: creating zeros",
        description=(
            "We look for the row or column with the most zeros and use "
            "elementary operations to simplify it before expanding."
        ),
        matrices=[MatrixDisplay(r"\text{Original matrix}", to_list(A))],
    ))

    kind, index, zeros = _find_best_line(A)
    logger.debug("Best line for %dx%d determinant: %s %d (%d zeros)", n, n, kind, index + 1, zeros)
    steps.append(CalculationStep(
        title="Strategic analysis",
        description=(
            f"Best choice: {kind} {index + 1}\n"
            f"Current zeros: {zeros}\n"
            f"Expanding along this {kind} keeps the work to a minimum."
        ),
        matrices=[MatrixDisplay(r"\text{Current matrix}", to_list(A))],
    ))

    M = A
    if zeros < n - 2:
        M = _create_zeros(A, kind, index, steps)
    return _expand_along_line(M, kind, index, steps)


# ── Public entry point ──────────────────────────────────────────────────

@traced("calculate_determinant")
def calculate_determinant(matrix, method: str = None) -> OperationResult:
    """Determinant of a square matrix with a full step trace.

    Returns an OperationResult whose ``result`` is ``[[det]]``. Raises
    DimensionError for non-square input and ValueError for an unknown
    *method*.
    """
    method = method or config.DEFAULT_DETERMINANT_METHOD
    if method not in config.DETERMINANT_METHODS:
        raise ValueError(
            f"Unknown determinant method '{method}'. "
            f"Choose one of: {', '.join(config.DETERMINANT_METHODS)}"
        )
    A = to_array(matrix)
    n, m = A.shape
    if n != m:
        raise DimensionError(
            f"The determinant is only defined for square matrices (got {n}×{m})"
        )
    logger.debug("Determinant of %dx%d matrix with method %s", n, n, method)

    steps = [CalculationStep(
        title="Check and preparation",
        description=(
            f"Square {n}×{n} matrix confirmed\n"
            f"Selected method: {_method_description(method, n)}"
        ),
        matrices=[MatrixDisplay(r"\text{Original matrix}", to_list(A))],
    )]

    if n == 1:
        det = _clean(A[0, 0])
        steps.append(CalculationStep(
            title="Special case: 1×1 matrix",
            description="The determinant of a 1×1 matrix is its only element.",
            formula=f"det(A) = a₁₁ = {_fmt_num(det)}",
            matrices=[MatrixDisplay(r"\text{Determinant}", [[det]])],
        ))
    elif n == 2:
        (a, b), (c, d) = A
        det = _clean(a * d - b * c)
        steps.append(CalculationStep(
            title="2×2 formula",
            description=(
                "Formula: ad - bc\n"
                f"{_fmt_num(a)}×{_fmt_signed(d)} = {_fmt_num(a * d)}\n"
                f"{_fmt_num(b)}×{_fmt_signed(c)} = {_fmt_num(b * c)}\n"
                f"{_fmt_num(a * d)} - {_fmt_signed(b * c)} = {_fmt_num(det)}"
            ),
            formula=f"det(A) = ad - bc = {_fmt_num(det)}",
            matrices=[MatrixDisplay(r"\text{Determinant}", [[det]])],
        ))
    elif n == 3:
        det = _sarrus(A, steps) if method == "sarrus" else _cofactors_3x3(A, steps)
    elif method == "zeros":
        det = _with_zeros(A, steps)
    else:
        det = _cofactor_expansion(A, steps)

    singular = _is_zero(det)
    steps.append(CalculationStep(
        title="Final result",
        description=(
            f"Matrix: {n}×{n}\n"
            f"Determinant: {_fmt_num(det)}\n"
            "Interpretation: "
            + ("SINGULAR matrix (not invertible)" if singular else "REGULAR matrix (invertible)")
        ),
        formula=f"det(A) = {_fmt_num(det)}",
        matrices=[MatrixDisplay(r"\text{Final determinant}", [[det]], highlight=True)],
    ))
    return OperationResult(result=[[det]], steps=number_steps(steps))
