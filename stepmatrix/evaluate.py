"""SymPy bridge: evaluate algebraic strings with a bound parameter."""

import re

from sympy import Symbol
from sympy.parsing.sympy_parser import parse_expr

from stepmatrix import config
from stepmatrix.logging_config import get_logger
from stepmatrix.symbolic import _to_sympy_number, value_from_sympy

logger = get_logger("evaluate")

_IDENTIFIER = re.compile(r"[A-Za-z]\w*")


def parse_algebraic(text: str):
    """Parse *text* into a SymPy expression.

    Every identifier is bound to a plain ``Symbol`` so that names such as
    ``E``, ``I`` or ``S`` are never taken for SymPy constants.
    """
    s = str(text).strip().replace("·", "*")
    local = {name: Symbol(name) for name in _IDENTIFIER.findall(s)}
    try:
        return parse_expr(s, local_dict=local, transformations=config.TRANSFORMATIONS)
    except Exception as e:
        raise ValueError(f"Could not parse expression: '{text}'. Error: {e}")


def evaluate_with_binding(text: str, name: str, value: float) -> float:
    """Evaluate *text* with ``name = value`` and return the number.

    Raises ValueError when other free variables remain.
    """
    expr = parse_algebraic(text).subs(Symbol(name), _to_sympy_number(float(value)))
    if expr.free_symbols:
        names = ", ".join(sorted(s.name for s in expr.free_symbols))
        raise ValueError(f"'{text}' still depends on {names} after binding {name}")
    result = float(expr)
    logger.debug("Evaluated %r with %s=%s -> %s", text, name, value, result)
    return result


def substitute_value(expr, name: str, value: float):
    """Substitute ``name = value`` in a symbolic value through SymPy."""
    substituted = expr.to_sympy().subs(Symbol(name), _to_sympy_number(float(value)))
    return value_from_sympy(substituted)
