"""Centralized configuration for StepMatrix.

This module defines:
- Numeric tolerances used for zero tests and verification
- Size limits for input matrices
- Default methods for determinants and linear systems
- Parsing behaviour and the SymPy transformations used for evaluation

Every value can be overridden through an environment variable prefixed
with ``STEPMATRIX_``.
"""

import os

from sympy.parsing.sympy_parser import (
    convert_xor,
    implicit_multiplication_application,
    standard_transformations,
)

# Version is defined in pyproject.toml [project] section
try:
    import importlib.metadata

    VERSION = importlib.metadata.version("stepmatrix")
except Exception:
    # Fallback if package not installed
    VERSION = "1.0.0"

# Numeric tolerances
TOLERANCE = float(
    os.getenv("STEPMATRIX_TOLERANCE", "1e-10")
)  # Zero test for coefficients, pivots and determinants
VERIFY_TOLERANCE = float(
    os.getenv("STEPMATRIX_VERIFY_TOLERANCE", "1e-6")
)  # Used when checking A x A^-1 against the identity

# Input limits
MAX_DIMENSION = int(os.getenv("STEPMATRIX_MAX_DIMENSION", "10"))  # rows and cols

# Default methods
DEFAULT_DETERMINANT_METHOD = os.getenv(
    "STEPMATRIX_DETERMINANT_METHOD", "zeros"
)  # "zeros", "cofactors", "sarrus"
DEFAULT_SYMBOLIC_DETERMINANT_METHOD = os.getenv(
    "STEPMATRIX_SYMBOLIC_DETERMINANT_METHOD", "cofactors"
)
DEFAULT_SYSTEM_METHOD = os.getenv("STEPMATRIX_SYSTEM_METHOD", "gauss")  # "gauss", "cramer"

DETERMINANT_METHODS = ("zeros", "cofactors", "sarrus")
SYSTEM_METHODS = ("gauss", "cramer")

# Parametric systems
CRITICAL_VALUE_MAX_ORDER = int(
    os.getenv("STEPMATRIX_CRITICAL_VALUE_MAX_ORDER", "3")
)  # Largest square system analysed for critical parameter values
UNKNOWN_PREFIX = os.getenv(
    "STEPMATRIX_UNKNOWN_PREFIX", "x"
)  # Names starting with this are unknowns, anything else is a parameter

# Parsing
STRICT_PARSING = os.getenv("STEPMATRIX_STRICT_PARSING", "false").lower() == "true"

# Output
OUTPUT_PRECISION = int(os.getenv("STEPMATRIX_OUTPUT_PRECISION", "10"))  # decimals
LOG_LEVEL = os.getenv("STEPMATRIX_LOG_LEVEL", "WARNING")
LOG_FILE = os.getenv("STEPMATRIX_LOG_FILE") or None  # stderr only when unset

TRANSFORMATIONS = standard_transformations + (
    implicit_multiplication_application,
    convert_xor,
)
