"""Number, matrix and LaTeX formatting helpers shared by the engine."""

import numpy as np
from sympy import Rational

from stepmatrix import config
from stepmatrix.types import DimensionError


# ── Numeric formatting helpers ──────────────────────────────────────────

def _fmt_num(value: float, max_decimals: int = None) -> str:
    """Format a float into a clean decimal string.

    - Removes trailing zeros after the decimal point.
    - Uses up to *max_decimals* digits of precision.
    - Returns integers without a decimal point (e.g. ``7`` not ``7.0``).
    """
    if max_decimals is None:
        max_decimals = config.OUTPUT_PRECISION
    value = float(value)
    if not np.isfinite(value):
        return str(value)
    if abs(value - round(value)) < 1e-12:
        return str(int(round(value)))
    formatted = f"{value:.{max_decimals}f}".rstrip("0").rstrip(".")
    if formatted in ("-0", ""):
        return "0"
    return formatted


def _fmt_signed(value: float) -> str:
    """Format a number for use inside a sum: wrap negatives in parentheses."""
    text = _fmt_num(value)
    return f"({text})" if text.startswith("-") else text


def _fmt_fraction(value: float, max_denominator: int = 10000) -> str:
    """Render *value* as an exact-looking fraction (``-1/3``) when possible."""
    approx = Rational(float(value)).limit_denominator(max_denominator)
    if abs(float(approx) - float(value)) > 1e-9:
        return _fmt_num(value)
    if approx.q == 1:
        return str(approx.p)
    return f"{approx.p}/{approx.q}"


def _latex_fraction(value: float) -> str:
    text = _fmt_fraction(value)
    if "/" not in text:
        return text
    num, den = text.split("/")
    if num.startswith("-"):
        return f"-\\frac{{{num[1:]}}}{{{den}}}"
    return f"\\frac{{{num}}}{{{den}}}"


# ── Matrix conversion ───────────────────────────────────────────────────

def to_list(A) -> list:
    """Convert a numpy array (or nested sequence) into fresh nested float lists."""
    return [[float(v) for v in row] for row in np.asarray(A, dtype=np.float64)]


def to_array(matrix, name: str = "Matrix") -> np.ndarray:
    """Validate *matrix* and copy it into a fresh 2-D float array.

    Raises DimensionError when the input is empty, ragged, not numeric or
    larger than ``config.MAX_DIMENSION`` in either direction.
    """
    try:
        A = np.array(matrix, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise DimensionError(f"{name} must be a rectangular matrix of numbers") from e
    if A.ndim != 2 or A.shape[0] == 0 or A.shape[1] == 0:
        raise DimensionError(f"{name} must have at least one row and one column")
    if max(A.shape) > config.MAX_DIMENSION:
        raise DimensionError(
            f"{name} is {A.shape[0]}×{A.shape[1]}; the maximum size is "
            f"{config.MAX_DIMENSION}×{config.MAX_DIMENSION}"
        )
    return A
