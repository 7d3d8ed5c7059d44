"""Type definitions, result dataclasses and errors for consistent API responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Compatibility classes of a linear system
INCOMPATIBLE = "INCOMPATIBLE"
COMPATIBLE_DETERMINED = "COMPATIBLE DETERMINADO"
COMPATIBLE_INDETERMINATE = "COMPATIBLE INDETERMINADO"
GENERAL_CASE = f"{COMPATIBLE_DETERMINED} (general case, det(A) ≠ 0)"
SUBSTITUTION_ERROR = "SUBSTITUTION ERROR"
ERROR_PREFIX = "ERROR: "


def _render_value(value: Any) -> dict[str, str]:
    """Serialize a symbolic value (expression or fraction) for JSON."""
    return {"text": value.to_string(), "latex": value.to_latex()}


def _render_column(column: list[list[Any]] | None) -> list[list[dict[str, str]]] | None:
    if column is None:
        return None
    return [[_render_value(cell) for cell in row] for row in column]


@dataclass
class MatrixDisplay:
    """A labelled matrix snapshot attached to a step."""

    label: str
    matrix: list[list[float]]
    highlight: bool = False
    fraction: str | None = None
    show_as_fraction: bool = False
    custom_labels: list[list[str]] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"label": self.label, "matrix": self.matrix}
        if self.highlight:
            result_dict["highlight"] = True
        if self.fraction is not None:
            result_dict["fraction"] = self.fraction
        if self.show_as_fraction:
            result_dict["show_as_fraction"] = True
        if self.custom_labels is not None:
            result_dict["custom_labels"] = self.custom_labels
        return result_dict


@dataclass
class CalculationStep:
    """One entry of the explanatory trace of an operation."""

    title: str
    description: str
    formula: str | None = None
    matrices: list[MatrixDisplay] = field(default_factory=list)
    step_number: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {
            "step_number": self.step_number,
            "title": self.title,
            "description": self.description,
        }
        if self.formula is not None:
            result_dict["formula"] = self.formula
        if self.matrices:
            result_dict["matrices"] = [m.to_dict() for m in self.matrices]
        return result_dict


def number_steps(steps: list[CalculationStep]) -> list[CalculationStep]:
    """Assign sequential step numbers starting at 1."""
    for i, s in enumerate(steps, 1):
        s.step_number = i
    return steps


@dataclass
class OperationResult:
    """Result of a numeric matrix operation."""

    result: list[list[float]]
    steps: list[CalculationStep]

    def to_dict(self) -> dict[str, Any]:
        return {
            "result": self.result,
            "steps": [s.to_dict() for s in self.steps],
        }


@dataclass
class SymbolicOperationResult:
    """Result of a symbolic determinant."""

    result: Any  # SymbolicExpression
    steps: list[CalculationStep]

    def to_dict(self) -> dict[str, Any]:
        return {
            "result": self.result.to_string(),
            "latex": self.result.to_latex(),
            "steps": [s.to_dict() for s in self.steps],
        }


@dataclass
class ParametricSolution:
    """Solution space of an underdetermined system."""

    particular_solution: list[list[Any]]
    homogeneous_basis: list[list[list[Any]]]
    free_variables: list[int]
    degrees_of_freedom: int
    parametric_form: str | None = None
    general_solution: list[list[Any]] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "particular_solution": _render_column(self.particular_solution),
            "homogeneous_basis": [_render_column(v) for v in self.homogeneous_basis],
            "free_variables": self.free_variables,
            "degrees_of_freedom": self.degrees_of_freedom,
            "parametric_form": self.parametric_form,
            "general_solution": _render_column(self.general_solution),
        }


@dataclass
class SpecialCase:
    """A critical parameter value and the system solved under it."""

    condition: str
    parameter: str
    value: float
    solution: SymbolicSystemResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "condition": self.condition,
            "parameter": self.parameter,
            "value": self.value,
            "solution": self.solution.to_dict(),
        }


@dataclass
class SymbolicSystemResult:
    """Outcome of solving A·x = B symbolically."""

    solution: list[list[Any]] | None
    compatibility: str
    steps: list[CalculationStep]
    parametric_solution: ParametricSolution | None = None
    special_cases: list[SpecialCase] | None = None

    @property
    def ok(self) -> bool:
        return not self.compatibility.startswith(ERROR_PREFIX)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {
            "solution": _render_column(self.solution),
            "compatibility": self.compatibility,
            "steps": [s.to_dict() for s in self.steps],
        }
        if self.parametric_solution is not None:
            result_dict["parametric_solution"] = self.parametric_solution.to_dict()
        if self.special_cases is not None:
            result_dict["special_cases"] = [sc.to_dict() for sc in self.special_cases]
        return result_dict

    def __repr__(self) -> str:
        parts = [f"compatibility={self.compatibility!r}"]
        if self.solution is not None:
            parts.append(
                f"solution={[row[0].to_string() for row in self.solution]!r}"
            )
        if self.special_cases:
            parts.append(
                f"special_cases={[sc.condition for sc in self.special_cases]!r}"
            )
        return f"SymbolicSystemResult({', '.join(parts)})"


@dataclass
class LinearSystemResult:
    """Outcome of solving a numeric system A·x = B."""

    solution: list[list[float]] | None
    compatibility: str
    steps: list[CalculationStep]
    particular_solution: list[list[float]] | None = None
    homogeneous_basis: list[list[list[float]]] | None = None
    free_variables: list[int] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {
            "solution": self.solution,
            "compatibility": self.compatibility,
            "steps": [s.to_dict() for s in self.steps],
        }
        if self.particular_solution is not None:
            result_dict["particular_solution"] = self.particular_solution
        if self.homogeneous_basis is not None:
            result_dict["homogeneous_basis"] = self.homogeneous_basis
        if self.free_variables is not None:
            result_dict["free_variables"] = self.free_variables
        return result_dict


class MatrixError(Exception):
    """Base class for errors raised by the engine."""

    def __init__(self, message: str, code: str = "MATRIX_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class DimensionError(MatrixError, ValueError):
    """Raised when matrix shapes do not fit the requested operation."""

    def __init__(self, message: str, code: str = "DIMENSION_ERROR"):
        super().__init__(message, code)


class SingularMatrixError(MatrixError, ValueError):
    """Raised when an inverse is requested for a singular matrix."""

    def __init__(self, message: str, code: str = "SINGULAR_MATRIX"):
        super().__init__(message, code)


class DivisionByZero(MatrixError, ZeroDivisionError):
    """Raised when a symbolic value is divided by zero."""

    def __init__(self, message: str = "Division by zero", code: str = "DIVISION_BY_ZERO"):
        super().__init__(message, code)


class ParseError(MatrixError, ValueError):
    """Raised when strict parsing meets an unrecognized term."""

    def __init__(self, message: str, code: str = "PARSE_ERROR"):
        super().__init__(message, code)
