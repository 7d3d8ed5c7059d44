import pytest
from sympy import symbols

from stepmatrix.symbolic import SymbolicExpression, SymbolicFraction, SymbolicTerm, quotient
from stepmatrix.types import DivisionByZero, ParseError


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("", "0"),
        ("-", "0"),
        (".", "0"),
        ("7", "7"),
        ("-2.5", "-2.5"),
        ("k", "k"),
        ("-k", "-k"),
        ("3x", "3x"),
        ("-2.5ab", "-2.5ab"),
        ("3 * x", "3x"),
        ("2k - 1", "2k - 1"),
        ("k^2 + 2k + 1", "k^2 + 2k + 1"),
        ("a*b - 3", "a*b - 3"),
        ("1 - k + 4", "-k + 5"),
    ],
)
def test_parse_recognized_forms(parse, raw: str, expected: str) -> None:
    assert parse(raw).to_string() == expected


def test_parse_numbers_and_constructors() -> None:
    assert SymbolicExpression.parse(4).equals(SymbolicExpression.from_number(4))
    assert SymbolicExpression.from_variable("k", 3).to_string() == "3k"
    assert SymbolicExpression().is_zero()
    assert SymbolicExpression.parse("0").is_zero()


def test_lenient_parse_drops_unrecognized_terms(parse) -> None:
    assert parse("2x + (y)").to_string() == "2x"
    assert parse("sin(x)").is_zero()


def test_strict_parse_raises() -> None:
    with pytest.raises(ParseError) as exc:
        SymbolicExpression.parse("2x + (y)", strict=True)
    assert exc.value.code == "PARSE_ERROR"
    assert "(y)" in str(exc.value)


def test_strict_parse_from_environment(monkeypatch) -> None:
    from stepmatrix import config

    monkeypatch.setattr(config, "STRICT_PARSING", True)
    with pytest.raises(ParseError):
        SymbolicExpression.parse("k + sqrt(2)")
    assert SymbolicExpression.parse("k + 2").to_string() == "k + 2"


class TestNormalization:
    def test_like_terms_merge_and_cancel(self, parse) -> None:
        assert parse("k + k").to_string() == "2k"
        assert parse("k - k").is_zero()

    def test_more_variables_first(self, parse) -> None:
        assert parse("1 + k + a*b").to_string() == "a*b + k + 1"

    @pytest.mark.parametrize("raw", ["3x + 2", "k^2 - 4k + 4", "-a*b + c - 0.5", "2k*x - x"])
    def test_reparse_is_idempotent(self, parse, raw: str) -> None:
        expr = parse(raw)
        assert expr.equals(parse(expr.to_string()))

    def test_term_key_and_times(self) -> None:
        t = SymbolicTerm(2.0, {"k": 1})
        assert t.key() == "k^1"
        assert SymbolicTerm(5.0).key() == "1"
        assert t.times(SymbolicTerm(3.0, {"k": 2})).variables == {"k": 3}


class TestArithmetic:
    def test_identities(self, parse) -> None:
        a, b = parse("2k - 1"), parse("k^2 + m")
        assert a.add(b).subtract(b).equals(a)
        assert a.multiply(SymbolicExpression.from_number(1)).equals(a)
        assert a.subtract(a).is_zero()

    def test_distribution(self, parse) -> None:
        product = parse("k + 1").multiply(parse("k - 1"))
        assert product.equals(parse("k^2 - 1"))

    def test_operators(self, parse) -> None:
        k = parse("k")
        assert (k + 1).to_string() == "k + 1"
        assert (1 - k).to_string() == "-k + 1"
        assert (2 * k).equals(parse("2k"))
        assert (-k).equals(parse("-k"))
        assert k == parse("k")

    def test_divide_by_constant(self, parse) -> None:
        assert parse("4k + 2").divide(2).equals(parse("2k + 1"))

    def test_divide_by_zero(self, parse) -> None:
        with pytest.raises(DivisionByZero):
            parse("k").divide(0)
        with pytest.raises(ZeroDivisionError):
            parse("k") / SymbolicExpression()

    def test_to_number(self, parse) -> None:
        assert parse("3.5").to_number() == 3.5
        assert SymbolicExpression().to_number() == 0.0
        with pytest.raises(ValueError):
            parse("k").to_number()

    def test_substitute(self, parse) -> None:
        assert parse("k^2 + 2k").substitute("k", 3).to_number() == 15
        assert parse("k*m").substitute("k", parse("m")).equals(parse("m^2"))


class TestSolveFor:
    def test_linear(self, parse) -> None:
        (root,) = parse("2k - 4").solve_for("k")
        assert root.to_number() == 2

    def test_linear_with_other_variables(self, parse) -> None:
        (root,) = parse("k - m").solve_for("k")
        assert root.equals(parse("m"))

    def test_quadratic_two_roots(self, parse) -> None:
        roots = [r.to_number() for r in parse("k^2 - 1").solve_for("k")]
        assert roots == [1, -1]

    def test_quadratic_double_root(self, parse) -> None:
        roots = parse("k^2 - 2k + 1").solve_for("k")
        assert len(roots) == 1
        assert roots[0].to_number() == 1

    def test_no_real_roots(self, parse) -> None:
        assert parse("k^2 + 1").solve_for("k") == []
        assert parse("5").solve_for("k") == []


class TestRendering:
    def test_latex(self, parse) -> None:
        assert parse("3k^2 - k").to_latex() == "3k^{2} - k"
        assert parse("0.5k").to_latex() == "0.50k"

    def test_polynomial_detection(self, parse) -> None:
        assert parse("k^2 - 1").is_polynomial()
        assert not parse("k + m").is_polynomial()
        assert not parse("4").is_polynomial()
        assert parse("m + k + m*k").get_variables() == ["m", "k"]

    def test_sympy_bridge(self, parse) -> None:
        k = symbols("k")
        expr = parse("2k + 1")
        assert expr.to_sympy() == 2 * k + 1
        assert SymbolicExpression.from_sympy(k**2 - 3).equals(parse("k^2 - 3"))
        with pytest.raises(ValueError):
            SymbolicExpression.from_sympy(1 / k)


class TestFractions:
    def test_proportional_reduces_to_constant(self, parse) -> None:
        assert quotient(parse("2k + 2"), parse("k + 1")).to_number() == 2

    def test_exact_polynomial_division(self, parse) -> None:
        result = quotient(parse("k^2 - 1"), parse("k - 1"))
        assert isinstance(result, SymbolicExpression)
        assert result.equals(parse("k + 1"))

    def test_integer_gcd_is_cancelled(self, parse) -> None:
        result = quotient(parse("2k"), parse("4k + 2"))
        assert isinstance(result, SymbolicFraction)
        assert result.to_string() == "(k)/(2k + 1)"

    def test_common_monomial_is_cancelled(self, parse) -> None:
        result = quotient(parse("k^2"), parse("k^2 + k"))
        assert result.to_string() == "(k)/(k + 1)"

    def test_sign_moves_to_numerator(self, parse) -> None:
        result = quotient(parse("1"), parse("-k + 1"))
        assert result.numerator.equals(-1)
        assert result.denominator.equals(parse("k - 1"))

    def test_zero_cases(self, parse) -> None:
        assert quotient(SymbolicExpression(), parse("k")).is_zero()
        with pytest.raises(DivisionByZero):
            quotient(parse("k"), 0)

    def test_reciprocal_is_a_fraction(self, parse) -> None:
        inverse = parse("k").reciprocal()
        assert isinstance(inverse, SymbolicFraction)
        assert inverse.to_latex() == r"\frac{1}{k}"
        assert inverse.multiply(parse("k")).is_one()

    def test_fraction_arithmetic(self, parse) -> None:
        half_k = SymbolicFraction(parse("1"), parse("k"))
        total = half_k + half_k
        assert total.equals(SymbolicFraction(parse("2"), parse("k")))
        assert (half_k - half_k).is_zero()
        assert half_k.substitute("k", 4).to_number() == 0.25
        assert half_k.get_variables() == ["k"]
