"""StepMatrix: step-by-step linear algebra on numeric and symbolic matrices."""

from stepmatrix.config import VERSION as __version__
from stepmatrix.determinant import calculate_determinant
from stepmatrix.evaluate import evaluate_with_binding
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
from stepmatrix.symbolic import SymbolicExpression, SymbolicFraction, SymbolicTerm
from stepmatrix.symbolic_matrix import calculate_symbolic_determinant, parse_symbolic_matrix
from stepmatrix.systems import solve_symbolic_linear_system
from stepmatrix.types import (
    CalculationStep,
    DimensionError,
    DivisionByZero,
    LinearSystemResult,
    MatrixDisplay,
    MatrixError,
    OperationResult,
    ParametricSolution,
    ParseError,
    SingularMatrixError,
    SpecialCase,
    SymbolicOperationResult,
    SymbolicSystemResult,
)

__all__ = [
    "__version__",
    "add_matrices",
    "subtract_matrices",
    "multiply_matrices",
    "transpose_matrix",
    "calculate_determinant",
    "calculate_adjugate",
    "calculate_inverse",
    "calculate_rank",
    "solve_linear_system",
    "solve_linear_system_with_cramer",
    "parse_symbolic_matrix",
    "calculate_symbolic_determinant",
    "solve_symbolic_linear_system",
    "evaluate_with_binding",
    "SymbolicTerm",
    "SymbolicExpression",
    "SymbolicFraction",
    "MatrixDisplay",
    "CalculationStep",
    "OperationResult",
    "SymbolicOperationResult",
    "ParametricSolution",
    "SpecialCase",
    "SymbolicSystemResult",
    "LinearSystemResult",
    "MatrixError",
    "DimensionError",
    "SingularMatrixError",
    "DivisionByZero",
    "ParseError",
]
