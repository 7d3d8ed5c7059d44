"""Symbolic linear-system solver (Gauss and Cramer) with parameter analysis.

``solve_symbolic_linear_system`` is a decision procedure rather than a
state machine:

1. parse A and B into expressions;
2. names that do not start with ``config.UNKNOWN_PREFIX`` are parameters;
3. a square parametric system of order at most
   ``config.CRITICAL_VALUE_MAX_ORDER`` is split into a general case
   (det(A) ≠ 0) and one special case per critical parameter value;
4. anything else is solved directly with the requested method.

Any exception is reported through the ``ERROR: ...`` compatibility tag
instead of being raised.
"""

import sympy

from stepmatrix import config
from stepmatrix.evaluate import evaluate_with_binding, substitute_value
from stepmatrix.formatting import _fmt_num
from stepmatrix.logging_config import get_logger, traced
from stepmatrix.symbolic import SymbolicExpression, SymbolicFraction, cancel
from stepmatrix.symbolic_matrix import (
    parse_symbolic_matrix,
    symbolic_determinant_value,
    symbolic_display,
)
from stepmatrix.types import (
    COMPATIBLE_DETERMINED,
    COMPATIBLE_INDETERMINATE,
    ERROR_PREFIX,
    GENERAL_CASE,
    INCOMPATIBLE,
    SUBSTITUTION_ERROR,
    CalculationStep,
    DimensionError,
    ParametricSolution,
    SpecialCase,
    SymbolicSystemResult,
    number_steps,
)

logger = get_logger("systems")


# ── Helpers ─────────────────────────────────────────────────────────────

def _zero() -> SymbolicExpression:
    return SymbolicExpression()


def _coefficient_latex(coef) -> str:
    if coef.is_one():
        return ""
    if coef.equals(-1):
        return "-"
    if isinstance(coef, SymbolicExpression) and len(coef.terms) == 1:
        return coef.to_latex()
    return f"({coef.to_latex()})"


def _equations_latex(A, B) -> str:
    lines = []
    for i, row in enumerate(A):
        terms = [
            f"{_coefficient_latex(coef)}x_{{{j + 1}}}"
            for j, coef in enumerate(row)
            if not coef.is_zero()
        ]
        lines.append(f"{' + '.join(terms) or '0'} = {B[i][0].to_latex()}")
    body = r" \\ ".join(lines)
    return f"\\begin{{cases}} {body} \\end{{cases}}"


def _column_latex(column) -> str:
    body = r" \\ ".join(cell.to_latex() for (cell,) in column)
    return f"\\begin{{pmatrix}} {body} \\end{{pmatrix}}"


def _solution_latex(column) -> str:
    lines = r" \\ ".join(f"x_{{{i + 1}}} = {cell.to_latex()}" for i, (cell,) in enumerate(column))
    return f"\\begin{{cases}} {lines} \\end{{cases}}"


def find_parameters(A, B) -> list:
    """Variables whose name does not start with the unknown prefix."""
    found = []
    for row in list(A) + list(B):
        for cell in row:
            for v in cell.get_variables():
                if not v.startswith(config.UNKNOWN_PREFIX) and v not in found:
                    found.append(v)
    return found


def _roots(det: SymbolicExpression, param: str) -> list:
    """Candidate roots of det in *param*.

    ``solve_for`` covers degrees up to 2. A higher-degree determinant in
    *param* alone is handed to SymPy for its real roots.
    """
    degree = max((t.variables.get(param, 0) for t in det.terms), default=0)
    if degree > 2 and det.get_variables() == [param]:
        poly = sympy.Poly(det.to_sympy(), sympy.Symbol(param))
        return [SymbolicExpression.from_number(float(r)) for r in poly.real_roots()]
    return det.solve_for(param)


def find_critical_values(det: SymbolicExpression) -> list:
    """Constant parameter values for which *det* vanishes.

    Returns ``(parameter, value)`` pairs, deduplicated per parameter within
    ``config.TOLERANCE``. Roots that still depend on other variables are
    skipped, and so is any candidate at which det does not actually vanish.
    """
    results = []
    for param in det.get_variables():
        if param.startswith(config.UNKNOWN_PREFIX):
            continue
        for root in _roots(det, param):
            if not root.is_constant():
                continue
            value = root.to_number()
            residual = det.substitute(param, value)
            if not residual.is_constant() or abs(residual.to_number()) > config.VERIFY_TOLERANCE:
                logger.debug("Discarding %s = %s: det(A) = %s there", param, value, residual)
                continue
            duplicate = any(
                p == param and abs(v - value) < config.TOLERANCE for p, v in results
            )
            if not duplicate:
                results.append((param, value))
    logger.debug("Critical values of det %s: %s", det, results)
    return results


def _condition(param: str, value: float, op: str = "=") -> str:
    return f"{param} {op} {_fmt_num(value)}"


def _substitute(matrix, param: str, value: float) -> list:
    """Bind *param* to *value* in every cell.

    SymPy substitution first; a cell it cannot handle is re-parsed from
    its text and substituted directly.
    """
    out = []
    for row in matrix:
        new_row = []
        for cell in row:
            try:
                new_row.append(substitute_value(cell, param, value))
            except (ValueError, TypeError) as e:
                logger.debug("SymPy substitution failed for %s (%s); re-parsing", cell, e)
                new_row.append(SymbolicExpression.parse(cell.to_string()).substitute(param, value))
        out.append(new_row)
    return out


# ── Gaussian elimination ────────────────────────────────────────────────

def _bareiss(value, previous):
    if previous.is_one():
        return value
    return value / previous


def _back_substitute(augmented, pivot_columns, m, rhs, fixed=None) -> list:
    """Solve the echelon system from the last pivot upwards.

    *rhs* gives the right-hand side of row i; *fixed* pre-assigns the free
    variables.
    """
    solution = [[_zero()] for _ in range(m)]
    for col, value in (fixed or {}).items():
        solution[col][0] = SymbolicExpression.from_number(value)
    for i in range(len(pivot_columns) - 1, -1, -1):
        col = pivot_columns[i]
        total = _zero()
        for j in range(col + 1, m):
            total = total + augmented[i][j] * solution[j][0]
        solution[col][0] = cancel((rhs(i) - total) / augmented[i][col])
    return solution


def _solve_indeterminate(augmented, pivot_columns, m, steps: list) -> SymbolicSystemResult:
    free = [c for c in range(m) if c not in pivot_columns]
    steps.append(CalculationStep(
        title="Compatible indeterminate system",
        description=f"Infinitely many solutions, {len(free)} degree(s) of freedom",
        formula="\\text{Free variables: } " + ", ".join(f"x_{{{c + 1}}}" for c in free),
    ))

    steps.append(CalculationStep(
        title="Particular solution",
        description="Every free variable is set to 0",
    ))
    particular = _back_substitute(
        augmented, pivot_columns, m,
        rhs=lambda i: augmented[i][m],
        fixed={c: 0 for c in free},
    )
    steps.append(CalculationStep(
        title="Particular solution found",
        description="With the free variables at 0:",
        formula=_solution_latex(particular),
    ))

    steps.append(CalculationStep(
        title="Basis of the homogeneous system",
        description=f"One vector per free variable ({len(free)} in total)",
    ))
    basis = []
    for fv in free:
        vector = _back_substitute(
            augmented, pivot_columns, m,
            rhs=lambda i: _zero(),
            fixed={c: (1 if c == fv else 0) for c in free},
        )
        basis.append(vector)
        steps.append(CalculationStep(
            title=f"Basis vector for x{fv + 1}",
            description=f"Homogeneous solution with x{fv + 1} = 1 and the other free variables 0:",
            formula=f"\\mathbf{{v}}_{{{fv + 1}}} = {_column_latex(vector)}",
        ))

    general = [[cell] for (cell,) in particular]
    for k, vector in enumerate(basis, 1):
        t = SymbolicExpression.from_variable(f"t{k}")
        general = [[g + t * v] for (g,), (v,) in zip(general, vector)]

    parametric_form = f"\\mathbf{{x}} = {_column_latex(particular)} + " + " + ".join(
        f"t_{{{k}}} {_column_latex(vector)}" for k, vector in enumerate(basis, 1)
    )
    steps.append(CalculationStep(
        title="General parametric solution",
        description="The complete solution set:",
        formula=parametric_form,
    ))
    return SymbolicSystemResult(
        solution=None,
        compatibility=COMPATIBLE_INDETERMINATE,
        steps=steps,
        parametric_solution=ParametricSolution(
            particular_solution=particular,
            homogeneous_basis=basis,
            free_variables=free,
            degrees_of_freedom=len(free),
            parametric_form=parametric_form,
            general_solution=general,
        ),
    )


def solve_by_gauss(A, B, steps: list = None) -> SymbolicSystemResult:
    """Fraction-free (Bareiss) Gaussian elimination on [A|B].

    The first row with a non-zero entry in the current column is the pivot
    (rows are swapped when needed) and every row below is updated as
    ``row[j] = (pivot·row[j] − row[col]·pivot_row[j]) / previous_pivot``.
    The division is exact, so entries stay polynomials of bounded size.
    """
    steps = steps if steps is not None else []
    n, m = len(A), len(A[0])
    augmented = [list(row) + [B[i][0]] for i, row in enumerate(A)]

    steps.append(CalculationStep(
        title="Gaussian elimination",
        description="Augmented matrix [A|B], starting the elimination",
        matrices=[symbolic_display("[A|B]", augmented)],
    ))

    current = 0
    pivot_columns = []
    previous = SymbolicExpression.from_number(1)
    for col in range(m):
        if current >= n:
            break
        pivot_row = next(
            (r for r in range(current, n) if not augmented[r][col].is_zero()), None
        )
        if pivot_row is None:
            steps.append(CalculationStep(
                title=f"Column {col + 1} has no pivot",
                description=f"x{col + 1} will be a free variable if the system is indeterminate",
            ))
            continue

        if pivot_row != current:
            augmented[current], augmented[pivot_row] = augmented[pivot_row], augmented[current]
            steps.append(CalculationStep(
                title=f"Row swap R{current + 1} ↔ R{pivot_row + 1}",
                description=f"Row {pivot_row + 1} has a non-zero entry in column {col + 1}",
                matrices=[symbolic_display("[A|B]", augmented)],
            ))

        pivot_columns.append(col)
        pivot = augmented[current][col]
        for row in range(current + 1, n):
            factor = augmented[row][col]
            if factor.is_zero() and (
                pivot.equals(previous)
                or all(cell.is_zero() for cell in augmented[row][col + 1:])
            ):
                continue
            for j in range(col + 1, m + 1):
                augmented[row][j] = _bareiss(
                    pivot * augmented[row][j] - factor * augmented[current][j], previous
                )
            augmented[row][col] = _zero()
            update = f"({pivot.to_latex()}) R_{{{row + 1}}}"
            if not factor.is_zero():
                update += f" - ({factor.to_latex()}) R_{{{current + 1}}}"
            if not previous.is_one():
                update = f"\\frac{{{update}}}{{{previous.to_latex()}}}"
            steps.append(CalculationStep(
                title=(
                    f"Eliminating x{col + 1} from row {row + 1}"
                    if not factor.is_zero()
                    else f"Rescaling row {row + 1}"
                ),
                description=(
                    f"Fraction-free elimination with the pivot {pivot.to_latex()}"
                    + ("" if previous.is_one() else f", divided by the previous pivot {previous.to_latex()}")
                ),
                formula=f"R_{{{row + 1}}} \\leftarrow {update}",
                matrices=[symbolic_display("[A|B]", augmented)],
            ))
        previous = pivot
        current += 1

    steps.append(CalculationStep(
        title="Row echelon form",
        description="Forward elimination finished",
        matrices=[symbolic_display(r"\text{Echelon form}", augmented)],
    ))

    rank = len(pivot_columns)
    for i in range(rank, n):
        if augmented[i][m].is_zero():
            continue
        if all(augmented[i][j].is_zero() for j in range(m)):
            steps.append(CalculationStep(
                title="Incompatible system",
                description=f"Inconsistent equation: 0 = {augmented[i][m].to_latex()} ≠ 0",
            ))
            return SymbolicSystemResult(None, INCOMPATIBLE, number_steps(steps))

    if rank < m:
        return _finish(_solve_indeterminate(augmented, pivot_columns, m, steps))

    steps.append(CalculationStep(
        title="Back substitution",
        description="Solving the triangular system from the last equation up",
    ))
    solution = _back_substitute(augmented, pivot_columns, m, rhs=lambda i: augmented[i][m])
    for col in reversed(pivot_columns):
        steps.append(CalculationStep(
            title=f"Variable x{col + 1}",
            description="Value obtained:",
            formula=f"x_{{{col + 1}}} = {solution[col][0].to_latex()}",
        ))
    steps.append(CalculationStep(
        title="Solution by Gauss",
        description="Compatible determinate system",
        formula=_solution_latex(solution),
    ))
    return SymbolicSystemResult(solution, COMPATIBLE_DETERMINED, number_steps(steps))


def _finish(result: SymbolicSystemResult) -> SymbolicSystemResult:
    number_steps(result.steps)
    return result


# ── Cramer's rule ───────────────────────────────────────────────────────

def _simplify_quotient(numerator, denominator):
    """det(A_i) / det(A) with integer rounding for constant quotients."""
    if numerator.is_constant() and denominator.is_constant():
        value = numerator.to_number() / denominator.to_number()
        if abs(value - round(value)) < config.TOLERANCE:
            value = float(round(value))
        return SymbolicExpression.from_number(value)
    return numerator / denominator


def solve_by_cramer(A, B, steps: list = None, critical_values: list = None) -> SymbolicSystemResult:
    """Cramer's rule; falls back to Gauss for non-square or singular A.

    *critical_values* only annotate the result; when omitted they are
    derived from det(A).
    """
    steps = steps if steps is not None else []
    n, m = len(A), len(A[0])
    if n != m:
        steps.append(CalculationStep(
            title="Cramer's rule not applicable",
            description="The system is not square, switching to Gaussian elimination",
        ))
        return solve_by_gauss(A, B, steps)

    steps.append(CalculationStep(
        title="Method: Cramer's rule",
        description="Solving with determinants",
    ))
    det_a = symbolic_determinant_value(A)
    steps.append(CalculationStep(
        title="Determinant of the system",
        description="Determinant of the coefficient matrix:",
        formula=f"\\det(A) = {det_a.to_latex()}",
    ))

    if det_a.is_zero():
        logger.info("det(A) = 0, Cramer falls back to Gauss")
        steps.append(CalculationStep(
            title="Singular system, Cramer not applicable",
            description="The determinant is zero: the system is incompatible or indeterminate",
            formula=r"\det(A) = 0 \Rightarrow \text{no unique solution}",
        ))
        return solve_by_gauss(A, B, steps)

    if critical_values is None:
        critical_values = find_critical_values(det_a)

    steps.append(CalculationStep(
        title="Cramer's rule",
        description="Each column of A is replaced by B in turn:",
        formula=r"x_i = \frac{\det(A_i)}{\det(A)}",
    ))
    determinants = []
    for i in range(n):
        a_i = [
            [B[r][0] if c == i else cell for c, cell in enumerate(row)]
            for r, row in enumerate(A)
        ]
        det_i = symbolic_determinant_value(a_i)
        determinants.append(det_i)
        steps.append(CalculationStep(
            title=f"Matrix A{i + 1}",
            description=f"Column {i + 1} of A replaced by B:",
            matrices=[symbolic_display(f"A_{{{i + 1}}}", a_i)],
        ))
        steps.append(CalculationStep(
            title=f"Determinant of A{i + 1}",
            description=f"Determinant of A{i + 1}:",
            formula=f"\\det(A_{{{i + 1}}}) = {det_i.to_latex()}",
        ))

    steps.append(CalculationStep(
        title="General solution",
        description="Applying Cramer's rule:",
        formula="\\begin{cases} " + r" \\ ".join(
            f"x_{{{i + 1}}} = \\frac{{{d.to_latex()}}}{{{det_a.to_latex()}}}"
            for i, d in enumerate(determinants)
        ) + " \\end{cases}",
    ))

    solution = []
    simplified_any = False
    for i, det_i in enumerate(determinants):
        value = _simplify_quotient(det_i, det_a)
        solution.append([value])
        unchanged = (
            isinstance(value, SymbolicFraction)
            and value.numerator.equals(det_i)
            and value.denominator.equals(det_a)
        )
        if not unchanged:
            simplified_any = True
            steps.append(CalculationStep(
                title=f"Simplifying x{i + 1}",
                description=f"x{i + 1} simplifies to:",
                formula=(
                    f"x_{{{i + 1}}} = \\frac{{{det_i.to_latex()}}}{{{det_a.to_latex()}}} "
                    f"= {value.to_latex()}"
                ),
            ))
    if not simplified_any:
        steps.append(CalculationStep(
            title="Simplification",
            description="The quotients cannot be simplified any further.",
            formula=r"\frac{\det(A_i)}{\det(A)} \text{ is already in lowest terms}",
        ))

    compatibility = COMPATIBLE_DETERMINED
    if critical_values:
        compatibility += " (for " + " and ".join(
            _condition(p, v, "≠") for p, v in critical_values
        ) + ")"
    return SymbolicSystemResult(solution, compatibility, number_steps(steps))


# ── Parametric analysis ─────────────────────────────────────────────────

def _solve(A, B, method: str, steps: list, critical_values=None) -> SymbolicSystemResult:
    if method == "cramer":
        return solve_by_cramer(A, B, steps, critical_values)
    return solve_by_gauss(A, B, steps)


def _special_case(A, B, det, param: str, value: float) -> SpecialCase:
    condition = _condition(param, value)
    case_steps = [CalculationStep(
        title=f"SPECIAL CASE: {condition}",
        description=f"Solving the system when {condition}",
        formula=f"\\text{{Substituting }} {condition} \\text{{ into the system}}",
    )]
    try:
        try:
            residual = evaluate_with_binding(det.to_string(), param, value)
            case_steps.append(CalculationStep(
                title="Determinant check",
                description=f"det(A) evaluated at {condition}",
                formula=f"\\det(A)|_{{{condition}}} = {_fmt_num(residual)}",
            ))
        except ValueError as e:
            logger.debug("Could not evaluate det at %s: %s", condition, e)

        sub_a = _substitute(A, param, value)
        sub_b = _substitute(B, param, value)
        case_steps.append(CalculationStep(
            title="Substituted system",
            description=f"The system after substituting {condition}:",
            formula=_equations_latex(sub_a, sub_b),
        ))
        result = solve_by_gauss(sub_a, sub_b, case_steps)
        result.compatibility = f"SPECIAL CASE: {condition} - {result.compatibility}"
    except Exception as e:
        logger.warning("Special case %s failed: %s", condition, e)
        case_steps.append(CalculationStep(
            title="Substitution error",
            description=f"Could not substitute {condition} into the system",
        ))
        result = SymbolicSystemResult(None, SUBSTITUTION_ERROR, number_steps(case_steps))
    return SpecialCase(condition=condition, parameter=param, value=value, solution=result)


def _analyze_parametric(A, B, method: str, steps: list) -> SymbolicSystemResult:
    n, m = len(A), len(A[0])
    if n != m or n > config.CRITICAL_VALUE_MAX_ORDER:
        logger.debug("Parametric %dx%d system solved without case analysis", n, m)
        return _solve(A, B, method, steps)

    det = symbolic_determinant_value(A)
    steps.append(CalculationStep(
        title="Determinant",
        description="Determinant of the coefficient matrix:",
        formula=f"\\det(A) = {det.to_latex()}",
    ))
    critical = find_critical_values(det)
    if not critical:
        steps.append(CalculationStep(
            title="No critical values",
            description="det(A) does not vanish for any constant parameter value.",
        ))
        return _solve(A, B, method, steps)

    logger.info("Critical values found: %s", ", ".join(_condition(p, v) for p, v in critical))
    steps.append(CalculationStep(
        title="Critical values",
        description="The determinant vanishes for:",
        formula=", ".join(_condition(p, v) for p, v in critical),
    ))

    special_cases = [_special_case(A, B, det, p, v) for p, v in critical]
    general = _solve(A, B, method, steps, critical)
    general.compatibility = GENERAL_CASE
    general.steps.append(CalculationStep(
        title="Special cases",
        description=f"{len(special_cases)} special case(s) need a separate analysis:",
        formula=r" \\ ".join(
            f"\\text{{Case {i}: }} {sc.condition}" for i, sc in enumerate(special_cases, 1)
        ),
    ))
    general.special_cases = special_cases
    return _finish(general)


# ── Public entry point ──────────────────────────────────────────────────

@traced("solve_symbolic_linear_system")
def solve_symbolic_linear_system(a, b, method: str = None) -> SymbolicSystemResult:
    """Solve A·x = B where cells are numbers or short algebraic strings.

    Never raises: failures come back as ``compatibility = "ERROR: ..."``
    with ``solution=None``.
    """
    method = method or config.DEFAULT_SYSTEM_METHOD
    steps: list = []
    try:
        if method not in config.SYSTEM_METHODS:
            raise ValueError(
                f"Unknown system method '{method}'. "
                f"Choose one of: {', '.join(config.SYSTEM_METHODS)}"
            )
        A = parse_symbolic_matrix(a)
        B = parse_symbolic_matrix(b)
        n, m = len(A), len(A[0])
        if len(B) != n or len(B[0]) != 1:
            raise DimensionError(f"B must be a column with {n} rows")
        logger.debug("Symbolic %dx%d system with method %s", n, m, method)

        steps.append(CalculationStep(
            title="Original system",
            description=f"System of {n} equations in {m} unknowns, method: {method.upper()}",
            matrices=[symbolic_display("A", A), symbolic_display("B", B)],
        ))
        steps.append(CalculationStep(
            title="Equations",
            description="The system written as equations:",
            formula=_equations_latex(A, B),
        ))

        params = find_parameters(A, B)
        if params:
            steps.append(CalculationStep(
                title="Parametric system",
                description=(
                    f"Parameters found: {', '.join(params)}. "
                    "Analysing the special values of the parameters."
                ),
            ))
            return _analyze_parametric(A, B, method, steps)
        return _solve(A, B, method, steps)
    except Exception as e:
        logger.error("Symbolic system solver failed: %s", e, exc_info=True)
        steps.append(CalculationStep(
            title="Calculation error",
            description="The system could not be solved symbolically.",
        ))
        return SymbolicSystemResult(
            solution=None,
            compatibility=f"{ERROR_PREFIX}{e}",
            steps=number_steps(steps),
        )
