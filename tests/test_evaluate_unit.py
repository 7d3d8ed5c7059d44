import pytest

from stepmatrix.evaluate import evaluate_with_binding, parse_algebraic, substitute_value
from stepmatrix.symbolic import SymbolicExpression, SymbolicFraction


@pytest.mark.parametrize(
    "text,name,value,expected",
    [
        ("k^2 - 1", "k", 3, 8),
        ("2k + 1", "k", 0.5, 2),
        ("3*k*k - k", "k", -1, 4),
        ("k - 1", "k", 1, 0),
        ("E + 1", "E", 2, 3),
    ],
)
def test_evaluate_with_binding(text: str, name: str, value: float, expected: float) -> None:
    assert evaluate_with_binding(text, name, value) == pytest.approx(expected)


def test_remaining_symbols_raise() -> None:
    with pytest.raises(ValueError, match="still depends on m"):
        evaluate_with_binding("2k + m", "k", 1)


def test_unparseable_text() -> None:
    with pytest.raises(ValueError, match="Could not parse expression"):
        parse_algebraic("2k +")


def test_implicit_multiplication() -> None:
    assert str(parse_algebraic("2k·m")) == "2*k*m"


def test_substitute_value_polynomial() -> None:
    result = substitute_value(SymbolicExpression.parse("k*m + 1"), "k", 2)
    assert result.equals(SymbolicExpression.parse("2m + 1"))


def test_substitute_value_to_constant() -> None:
    result = substitute_value(SymbolicExpression.parse("k^2 + k"), "k", 2)
    assert result.to_number() == 6


def test_substitute_value_fraction() -> None:
    fraction = SymbolicFraction(SymbolicExpression.parse("1"), SymbolicExpression.parse("k"))
    assert substitute_value(fraction, "k", 4).to_number() == 0.25
