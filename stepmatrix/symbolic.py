"""Polynomial-like symbolic expressions over named parameters.

A :class:`SymbolicExpression` is a normalized sum of monomials
(coefficient × product of variables raised to non-negative integer powers).
It supports parsing from the short textual forms typed into a matrix cell
(``"3x"``, ``"-2.5ab"``, ``"k - 1"``, ``"2 * m"``), exact arithmetic with
polynomial collection, simple equation solving (degree 1 and 2) and
rendering to plain text and LaTeX.

Division by a non-constant expression produces a :class:`SymbolicFraction`
unless the simple reductions in :func:`quotient` cancel the denominator.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from functools import reduce

import sympy
from sympy import Poly, Rational, Symbol

from stepmatrix import config
from stepmatrix.formatting import _fmt_num
from stepmatrix.logging_config import get_logger
from stepmatrix.types import DivisionByZero, ParseError

logger = get_logger("symbolic")

# ── Parsing patterns ────────────────────────────────────────────────────

_NUMBER = re.compile(r"^-?\d*\.?\d+$")
_UNSIGNED_NUMBER = re.compile(r"^\d*\.?\d+$")
_IDENTIFIER = re.compile(r"^[a-zA-Z]\w*$")
_NEG_IDENTIFIER = re.compile(r"^-[a-zA-Z]\w*$")
_COEF_IDENTIFIER = re.compile(r"^(-?)(\d*\.?\d*)([a-zA-Z]\w*)$")
_EXPLICIT_MULT = re.compile(r"^(-?)(\d*\.?\d*)\s*\*\s*([a-zA-Z]\w*)$")
# Sub-term of a sum: optional coefficient, then one or more factors v or v^p
_MONOMIAL = re.compile(
    r"^(\d*\.?\d*)\s*\*?\s*"
    r"([a-zA-Z]\w*(?:\^\d+)?(?:\s*\*\s*[a-zA-Z]\w*(?:\^\d+)?)*)$"
)
_FACTOR = re.compile(r"([a-zA-Z]\w*)(?:\^(\d+))?")


def _parse_coefficient(text: str) -> float:
    if text in ("", "."):
        return 1.0
    return float(text)


@dataclass(frozen=True)
class SymbolicTerm:
    """One monomial summand: ``coefficient * prod(v ** p)``."""

    coefficient: float
    variables: dict = field(default_factory=dict)

    def key(self) -> str:
        """Signature used to merge like terms (``"1"`` for constants)."""
        if not self.variables:
            return "1"
        return "*".join(f"{v}^{p}" for v, p in sorted(self.variables.items()))

    def scaled(self, factor: float) -> "SymbolicTerm":
        return SymbolicTerm(self.coefficient * factor, dict(self.variables))

    def times(self, other: "SymbolicTerm") -> "SymbolicTerm":
        variables = dict(self.variables)
        for v, p in other.variables.items():
            variables[v] = variables.get(v, 0) + p
        return SymbolicTerm(self.coefficient * other.coefficient, variables)


def _normalize(terms) -> list:
    """Merge like terms, drop near-zero coefficients, order by variable count."""
    grouped: dict = {}
    for term in terms:
        variables = {v: p for v, p in term.variables.items() if p != 0}
        key = SymbolicTerm(0.0, variables).key()
        if key in grouped:
            coefficient, _ = grouped[key]
            grouped[key] = (coefficient + term.coefficient, variables)
        else:
            grouped[key] = (term.coefficient, variables)

    result = [
        SymbolicTerm(coefficient, variables)
        for coefficient, variables in grouped.values()
        if abs(coefficient) > config.TOLERANCE
    ]
    # sorted() is stable, so first-occurrence order survives within a group
    return sorted(result, key=lambda t: -len(t.variables))


def _render_term(term: SymbolicTerm, latex: bool) -> str:
    factors = []
    for v, p in sorted(term.variables.items()):
        if p == 1:
            factors.append(v)
        else:
            factors.append(f"{v}^{{{p}}}" if latex else f"{v}^{p}")
    variables = "".join(factors) if latex else "*".join(factors)

    magnitude = abs(term.coefficient)
    if not variables:
        return _fmt_num(magnitude)
    if abs(magnitude - 1) < config.TOLERANCE:
        return variables
    if latex and abs(magnitude - round(magnitude)) >= 1e-12:
        return f"{magnitude:.2f}{variables}"
    return f"{_fmt_num(magnitude)}{variables}"


def _render(terms, latex: bool = False) -> str:
    if not terms:
        return "0"
    parts = []
    for i, term in enumerate(terms):
        text = _render_term(term, latex)
        if i == 0:
            parts.append(f"-{text}" if term.coefficient < 0 else text)
        else:
            parts.append(f" {'-' if term.coefficient < 0 else '+'} {text}")
    return "".join(parts)


def _to_sympy_number(value: float):
    if abs(value - round(value)) < 1e-12:
        return sympy.Integer(int(round(value)))
    return Rational(value).limit_denominator(10**9)


class SymbolicExpression:
    """Normalized multivariate polynomial with float coefficients."""

    __slots__ = ("terms",)

    def __init__(self, terms=None):
        self.terms = _normalize(terms or [])

    # ── Construction ─────────────────────────────────────────────────

    @classmethod
    def from_number(cls, n: float) -> "SymbolicExpression":
        return cls([SymbolicTerm(float(n), {})])

    @classmethod
    def from_variable(cls, name: str, coefficient: float = 1) -> "SymbolicExpression":
        return cls([SymbolicTerm(float(coefficient), {name: 1})])

    @classmethod
    def parse(cls, text, strict: bool = None) -> "SymbolicExpression":
        """Parse the textual content of a matrix cell.

        Recognized forms, tried in order: empty placeholders (``""``,
        ``"-"``, ``"."``), numbers, identifiers (optionally negated),
        coefficient + identifier (``3x``, ``-2.5ab``), explicit
        multiplication (``3 * x``) and finally sums/differences of those
        sub-forms, where a sub-term may also be a monomial such as
        ``2k^2`` or ``a*b``.

        Unrecognized sub-terms are dropped; with ``strict=True`` (or
        ``STEPMATRIX_STRICT_PARSING=true``) they raise :class:`ParseError`.
        """
        if strict is None:
            strict = config.STRICT_PARSING
        if isinstance(text, (int, float)):
            return cls.from_number(text)

        s = str(text).strip()
        if not s or s in ("-", "."):
            return cls.from_number(0)

        if _NUMBER.match(s):
            return cls.from_number(float(s))
        if _IDENTIFIER.match(s):
            return cls.from_variable(s, 1)
        if _NEG_IDENTIFIER.match(s):
            return cls.from_variable(s[1:], -1)

        m = _COEF_IDENTIFIER.match(s) or _EXPLICIT_MULT.match(s)
        if m:
            sign, num_str, variable = m.groups()
            num = _parse_coefficient(num_str)
            return cls.from_variable(variable, -num if sign == "-" else num)

        terms = []
        current_sign = 1.0
        for part in re.split(r"([+-])", s):
            part = part.strip()
            if not part:
                continue
            if part == "+":
                current_sign = 1.0
            elif part == "-":
                current_sign = -1.0
            else:
                term = _parse_subterm(part)
                if term is None:
                    if strict:
                        raise ParseError(f"Unrecognized term '{part}' in '{s}'")
                    logger.debug("Dropping unrecognized term %r in %r", part, s)
                    continue
                terms.append(term.scaled(current_sign))
        return cls(terms)

    # ── Arithmetic ───────────────────────────────────────────────────

    def add(self, other):
        other = _coerce(other)
        if isinstance(other, SymbolicFraction):
            return other.add(self)
        return SymbolicExpression(self.terms + other.terms)

    def subtract(self, other):
        other = _coerce(other)
        if isinstance(other, SymbolicFraction):
            return other.negate().add(self)
        return SymbolicExpression(self.terms + [t.scaled(-1) for t in other.terms])

    def multiply(self, other):
        other = _coerce(other)
        if isinstance(other, SymbolicFraction):
            return other.multiply(self)
        return SymbolicExpression([t1.times(t2) for t1 in self.terms for t2 in other.terms])

    def divide(self, other):
        """Divide by *other*.

        A constant divisor scales every coefficient; a zero constant raises
        :class:`DivisionByZero`. Any other divisor goes through
        :func:`quotient` and may yield a :class:`SymbolicFraction`.
        """
        other = _coerce(other)
        if isinstance(other, SymbolicFraction):
            return quotient(self.multiply(other.denominator), other.numerator)
        if other.is_constant():
            constant = other.to_number()
            if abs(constant) <= config.TOLERANCE:
                raise DivisionByZero()
            return SymbolicExpression([t.scaled(1.0 / constant) for t in self.terms])
        return quotient(self, other)

    def negate(self) -> "SymbolicExpression":
        return SymbolicExpression([t.scaled(-1) for t in self.terms])

    def reciprocal(self):
        """``1 / self``; a :class:`SymbolicFraction` when self is not constant."""
        return _one().divide(self)

    # ── Predicates ───────────────────────────────────────────────────

    def equals(self, other) -> bool:
        other = _coerce(other)
        if isinstance(other, SymbolicFraction):
            return other.equals(self)
        if len(self.terms) != len(other.terms):
            return False
        mine = {t.key(): t.coefficient for t in self.terms}
        for t in other.terms:
            coefficient = mine.get(t.key())
            if coefficient is None or abs(coefficient - t.coefficient) > config.TOLERANCE:
                return False
        return True

    def is_zero(self) -> bool:
        return not self.terms

    def is_constant(self) -> bool:
        return not self.terms or (len(self.terms) == 1 and not self.terms[0].variables)

    def is_one(self) -> bool:
        return self.is_constant() and abs(self.to_number() - 1) < config.TOLERANCE

    def to_number(self) -> float:
        if not self.is_constant():
            raise ValueError(f"Cannot convert symbolic expression '{self}' to a number")
        return self.terms[0].coefficient if self.terms else 0.0

    def get_variables(self) -> list:
        """Distinct variable names in first-seen order."""
        seen = []
        for term in self.terms:
            for v in term.variables:
                if v not in seen:
                    seen.append(v)
        return seen

    def is_polynomial(self) -> bool:
        """True when exactly one distinct variable appears."""
        return len(self.get_variables()) == 1

    # ── Transformations ──────────────────────────────────────────────

    def expand(self) -> "SymbolicExpression":
        return SymbolicExpression(list(self.terms))

    def substitute(self, name: str, value) -> "SymbolicExpression":
        """Replace variable *name* by *value* (number or expression)."""
        value = _coerce(value)
        result = SymbolicExpression()
        for term in self.terms:
            power = term.variables.get(name, 0)
            rest = SymbolicExpression([SymbolicTerm(
                term.coefficient,
                {v: p for v, p in term.variables.items() if v != name},
            )])
            for _ in range(power):
                rest = rest.multiply(value)
            result = result.add(rest)
        return result

    def coefficients_of(self, variable: str) -> dict:
        """Group terms by the exponent of *variable*: ``{exp: expression}``."""
        buckets: dict = {}
        for term in self.terms:
            power = term.variables.get(variable, 0)
            rest = SymbolicTerm(
                term.coefficient,
                {v: p for v, p in term.variables.items() if v != variable},
            )
            buckets.setdefault(power, []).append(rest)
        return {p: SymbolicExpression(ts) for p, ts in buckets.items()}

    def solve_for(self, variable: str) -> list:
        """Roots of ``self = 0`` in *variable* (degree 1 or 2 only).

        Exponents other than 0, 1 and 2 are ignored. Quadratics need
        constant coefficients and only real roots are returned; a linear
        equation needs a constant leading coefficient, the root may still
        depend on other variables.
        """
        buckets = self.coefficients_of(variable)
        zero = SymbolicExpression()
        a = buckets.get(2, zero)
        b = buckets.get(1, zero)
        c = buckets.get(0, zero)

        if not a.is_zero():
            if not (a.is_constant() and b.is_constant() and c.is_constant()):
                return []
            a_val, b_val, c_val = a.to_number(), b.to_number(), c.to_number()
            discriminant = b_val * b_val - 4 * a_val * c_val
            if discriminant < -config.TOLERANCE:
                return []
            if abs(discriminant) <= config.TOLERANCE:
                return [SymbolicExpression.from_number(-b_val / (2 * a_val))]
            sqrt_d = math.sqrt(discriminant)
            return [
                SymbolicExpression.from_number((-b_val + sqrt_d) / (2 * a_val)),
                SymbolicExpression.from_number((-b_val - sqrt_d) / (2 * a_val)),
            ]
        if not b.is_zero() and b.is_constant():
            return [c.negate().divide(b)]
        return []

    # ── Rendering / conversion ───────────────────────────────────────

    def to_string(self) -> str:
        return _render(self.terms)

    def to_latex(self) -> str:
        return _render(self.terms, latex=True)

    def to_sympy(self):
        result = sympy.Integer(0)
        for term in self.terms:
            monomial = _to_sympy_number(term.coefficient)
            for v, p in term.variables.items():
                monomial *= Symbol(v) ** p
            result += monomial
        return result

    @classmethod
    def from_sympy(cls, expr) -> "SymbolicExpression":
        """Build an expression from a polynomial SymPy expression."""
        expr = sympy.expand(sympy.sympify(expr))
        if not expr.free_symbols:
            return cls.from_number(float(expr))
        gens = sorted(expr.free_symbols, key=lambda s: s.name)
        if not expr.is_polynomial(*gens):
            raise ValueError(f"'{expr}' is not a polynomial")
        poly = Poly(expr, *gens)
        terms = []
        for monom, coeff in poly.terms():
            variables = {g.name: e for g, e in zip(gens, monom) if e}
            terms.append(SymbolicTerm(float(coeff), variables))
        return cls(terms)

    # ── Python protocol ──────────────────────────────────────────────

    def __add__(self, other):
        return self.add(other)

    __radd__ = __add__

    def __sub__(self, other):
        return self.subtract(other)

    def __rsub__(self, other):
        return _coerce(other).subtract(self)

    def __mul__(self, other):
        return self.multiply(other)

    __rmul__ = __mul__

    def __truediv__(self, other):
        return self.divide(other)

    def __rtruediv__(self, other):
        return _coerce(other).divide(self)

    def __neg__(self):
        return self.negate()

    def __eq__(self, other):
        if not isinstance(other, (SymbolicExpression, SymbolicFraction, int, float)):
            return NotImplemented
        return self.equals(other)

    __hash__ = None

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"SymbolicExpression({self.to_string()!r})"


def _parse_subterm(text: str):
    if _UNSIGNED_NUMBER.match(text):
        return SymbolicTerm(float(text), {})
    if _IDENTIFIER.match(text):
        return SymbolicTerm(1.0, {text: 1})
    m = _MONOMIAL.match(text)
    if not m:
        return None
    num_str, factors = m.groups()
    variables: dict = {}
    for name, power in _FACTOR.findall(factors):
        variables[name] = variables.get(name, 0) + (int(power) if power else 1)
    return SymbolicTerm(_parse_coefficient(num_str), variables)


def _coerce(value):
    if isinstance(value, (SymbolicExpression, SymbolicFraction)):
        return value
    if isinstance(value, (int, float)):
        return SymbolicExpression.from_number(value)
    if isinstance(value, str):
        return SymbolicExpression.parse(value)
    raise TypeError(f"Cannot use {type(value).__name__} as a symbolic value")


def _one() -> SymbolicExpression:
    return SymbolicExpression.from_number(1)


# ── Fractions ───────────────────────────────────────────────────────────

class SymbolicFraction:
    """Quotient of two expressions whose denominator did not cancel."""

    __slots__ = ("numerator", "denominator")

    def __init__(self, numerator: SymbolicExpression, denominator: SymbolicExpression):
        self.numerator = numerator
        self.denominator = denominator

    @staticmethod
    def _parts(value):
        value = _coerce(value)
        if isinstance(value, SymbolicFraction):
            return value.numerator, value.denominator
        return value, _one()

    def add(self, other):
        n, d = self._parts(other)
        return quotient(
            self.numerator.multiply(d).add(n.multiply(self.denominator)),
            self.denominator.multiply(d),
        )

    def subtract(self, other):
        n, d = self._parts(other)
        return self.add(SymbolicFraction(n.negate(), d))

    def multiply(self, other):
        n, d = self._parts(other)
        return quotient(self.numerator.multiply(n), self.denominator.multiply(d))

    def divide(self, other):
        n, d = self._parts(other)
        if n.is_zero():
            raise DivisionByZero()
        return quotient(self.numerator.multiply(d), self.denominator.multiply(n))

    def negate(self) -> "SymbolicFraction":
        return SymbolicFraction(self.numerator.negate(), self.denominator)

    def reciprocal(self):
        if self.numerator.is_zero():
            raise DivisionByZero()
        return quotient(self.denominator, self.numerator)

    def equals(self, other) -> bool:
        n, d = self._parts(other)
        return self.numerator.multiply(d).equals(n.multiply(self.denominator))

    def is_zero(self) -> bool:
        return self.numerator.is_zero()

    def is_constant(self) -> bool:
        return self.numerator.is_constant() and self.denominator.is_constant()

    def is_one(self) -> bool:
        return self.equals(_one())

    def to_number(self) -> float:
        if not self.is_constant():
            raise ValueError(f"Cannot convert symbolic fraction '{self}' to a number")
        return self.numerator.to_number() / self.denominator.to_number()

    def get_variables(self) -> list:
        seen = self.numerator.get_variables()
        for v in self.denominator.get_variables():
            if v not in seen:
                seen.append(v)
        return seen

    def substitute(self, name: str, value):
        return quotient(
            self.numerator.substitute(name, value),
            self.denominator.substitute(name, value),
        )

    def to_string(self) -> str:
        return f"({self.numerator.to_string()})/({self.denominator.to_string()})"

    def to_latex(self) -> str:
        return f"\\frac{{{self.numerator.to_latex()}}}{{{self.denominator.to_latex()}}}"

    def to_sympy(self):
        return self.numerator.to_sympy() / self.denominator.to_sympy()

    def __add__(self, other):
        return self.add(other)

    __radd__ = __add__

    def __sub__(self, other):
        return self.subtract(other)

    def __rsub__(self, other):
        return self.negate().add(other)

    def __mul__(self, other):
        return self.multiply(other)

    __rmul__ = __mul__

    def __truediv__(self, other):
        return self.divide(other)

    def __rtruediv__(self, other):
        return _coerce(other).divide(self)

    def __neg__(self):
        return self.negate()

    def __eq__(self, other):
        if not isinstance(other, (SymbolicExpression, SymbolicFraction, int, float)):
            return NotImplemented
        return self.equals(other)

    __hash__ = None

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"SymbolicFraction({self.to_string()!r})"


# ── Fraction reduction ──────────────────────────────────────────────────

def _proportional_ratio(n: SymbolicExpression, d: SymbolicExpression):
    """Return c when ``n == c * d`` term by term, else None."""
    if len(n.terms) != len(d.terms):
        return None
    den = {t.key(): t.coefficient for t in d.terms}
    ratio = None
    for t in n.terms:
        dc = den.get(t.key())
        if dc is None:
            return None
        r = t.coefficient / dc
        if ratio is None:
            ratio = r
        elif abs(r - ratio) > config.TOLERANCE * max(1.0, abs(ratio)):
            return None
    return ratio


def _common_monomial(terms) -> dict:
    common = dict(terms[0].variables)
    for term in terms[1:]:
        common = {
            v: min(p, term.variables[v])
            for v, p in common.items()
            if v in term.variables
        }
    return common


def _divide_monomial(expr: SymbolicExpression, monomial: dict) -> SymbolicExpression:
    return SymbolicExpression([
        SymbolicTerm(
            t.coefficient,
            {v: p - monomial.get(v, 0) for v, p in t.variables.items()},
        )
        for t in expr.terms
    ])


def _exact_division(n: SymbolicExpression, d: SymbolicExpression):
    """Polynomial quotient when *d* divides *n* exactly, else None."""
    gens = sorted(
        {Symbol(v) for v in n.get_variables() + d.get_variables()},
        key=lambda s: s.name,
    )
    q, r = sympy.div(n.to_sympy(), d.to_sympy(), *gens)
    remainder = SymbolicExpression.from_sympy(r)
    if not remainder.is_zero():
        return None
    return SymbolicExpression.from_sympy(q)


def quotient(numerator, denominator):
    """Divide two expressions, applying only simple reductions.

    Handles a zero numerator, a constant denominator, proportional
    numerator/denominator, exact polynomial division, cancellation of a
    common monomial factor and of an integer coefficient GCD, and moves
    the sign of the denominator's leading term to the numerator. Anything
    left over is returned as a :class:`SymbolicFraction`.
    """
    n, d = _coerce(numerator), _coerce(denominator)
    if isinstance(n, SymbolicFraction) or isinstance(d, SymbolicFraction):
        return n.divide(d)

    if d.is_zero():
        raise DivisionByZero()
    if n.is_zero():
        return SymbolicExpression()
    if d.is_constant():
        return n.divide(d)

    ratio = _proportional_ratio(n, d)
    if ratio is not None:
        return SymbolicExpression.from_number(ratio)

    try:
        exact = _exact_division(n, d)
    except (sympy.PolynomialError, ValueError) as e:
        logger.debug("Exact division of %s by %s skipped: %s", n, d, e)
        exact = None
    if exact is not None:
        return exact

    common = _common_monomial(n.terms + d.terms)
    if common:
        n, d = _divide_monomial(n, common), _divide_monomial(d, common)

    coefficients = [t.coefficient for t in n.terms + d.terms]
    if all(abs(c - round(c)) < 1e-9 for c in coefficients):
        g = reduce(math.gcd, (int(round(abs(c))) for c in coefficients))
        if g > 1:
            n = SymbolicExpression([t.scaled(1.0 / g) for t in n.terms])
            d = SymbolicExpression([t.scaled(1.0 / g) for t in d.terms])

    if d.terms[0].coefficient < 0:
        n, d = n.negate(), d.negate()

    if d.is_constant():
        return n.divide(d)
    return SymbolicFraction(n, d)


def value_from_sympy(expr):
    """Convert a SymPy rational expression into an expression or fraction."""
    num, den = sympy.fraction(sympy.together(sympy.sympify(expr)))
    numerator = SymbolicExpression.from_sympy(num)
    if den == 1:
        return numerator
    return quotient(numerator, SymbolicExpression.from_sympy(den))


def cancel(value):
    """Reduce a fraction to lowest terms with ``sympy.cancel``.

    :func:`quotient` only applies simple reductions; this removes any
    common polynomial factor as well. Expressions are returned unchanged.
    """
    if not isinstance(value, SymbolicFraction):
        return value
    return value_from_sympy(sympy.cancel(value.to_sympy()))
