"""Tests for symbolic expressions and equation vectors."""

import keyword
import math

import pytest
from hypothesis import given, strategies as st

from calabaria_trafo import EquationVector, Expression, UnknownSymbolError, eqnvec

names = st.from_regex(r"[a-z][a-z0-9_]{0,6}", fullmatch=True).filter(
    lambda s: not keyword.iskeyword(s) and s not in {"exp", "log", "sqrt", "sin", "cos", "tan", "sinh", "cosh", "tanh", "abs", "pi"}
)


class TestExpressionParsing:
    """Tests for Expression.parse and coerce."""

    def test_variables(self):
        """Test free symbol extraction."""
        expr = Expression.parse("k1*exp(-x) + 2^n")
        assert expr.variables() == frozenset({"k1", "x", "n"})

    def test_sympy_builtin_names_are_symbols(self):
        """Test that names such as S, E, I, N and gamma are parameters."""
        expr = Expression.parse("S + E + I + N + gamma + beta")
        assert expr.variables() == frozenset({"S", "E", "I", "N", "gamma", "beta"})

    def test_known_functions_kept(self):
        """Test that exp and log stay functions."""
        expr = Expression.parse("log(exp(a))")
        assert expr.variables() == frozenset({"a"})

    def test_empty_text_raises(self):
        """Test that empty text is rejected."""
        with pytest.raises(ValueError, match="empty"):
            Expression.parse("   ")

    def test_malformed_text_raises(self):
        """Test that syntax errors become ValueError."""
        with pytest.raises(ValueError, match="Cannot parse"):
            Expression.parse("a + * b")

    def test_coerce_numbers(self):
        """Test coercion of ints and floats."""
        assert Expression.coerce(2).evaluate({}) == 2.0
        assert Expression.coerce(0.5).evaluate({}) == 0.5

    def test_coerce_bool_raises(self):
        """Test that booleans are not numbers here."""
        with pytest.raises(TypeError):
            Expression.coerce(True)


class TestSubstitution:
    """Tests for simultaneous substitution."""

    def test_simultaneous_swap(self):
        """Test that replacements do not chain within one call."""
        expr = Expression.parse("a - b").substitute({"a": "b", "b": "a"})
        assert expr.evaluate({"a": 1.0, "b": 3.0}) == 2.0

    def test_no_match_returns_self(self):
        """Test that an unmatched substitution returns the same object."""
        expr = Expression.parse("a + b")
        assert expr.substitute({"c": "d"}) is expr

    def test_substitute_expression(self):
        """Test replacement by a compound expression."""
        expr = Expression.parse("k*x").substitute({"k": "exp(logk)"})
        assert expr.variables() == frozenset({"logk", "x"})
        assert expr.evaluate({"logk": 0.0, "x": 4.0}) == pytest.approx(4.0)

    @given(name=names, value=st.floats(-1e3, 1e3, allow_nan=False))
    def test_identity_substitution(self, name, value):
        """Test that substituting a symbol by itself changes nothing."""
        expr = Expression.parse(f"2*{name} + 1")
        assert expr.substitute({name: name}) == expr
        assert expr.evaluate({name: value}) == pytest.approx(2 * value + 1)


class TestEvaluation:
    """Tests for numeric evaluation and compilation."""

    def test_evaluate(self):
        """Test evaluation with bindings."""
        assert Expression.parse("sqrt(x) + pi").evaluate({"x": 4.0}) == pytest.approx(2 + math.pi)

    def test_unbound_raises(self):
        """Test that unbound symbols raise UnknownSymbolError."""
        with pytest.raises(UnknownSymbolError, match="Unknown variables"):
            Expression.parse("a + b").evaluate({"a": 1.0})

    def test_compile(self):
        """Test compiled functions match evaluate."""
        expr = Expression.parse("a*b + exp(a)")
        fn = expr.compile(["a", "b"])
        assert fn(1.0, 2.0) == pytest.approx(expr.evaluate({"a": 1.0, "b": 2.0}))

    def test_diff(self):
        """Test symbolic derivatives."""
        assert Expression.parse("a^2*b").diff("a").evaluate({"a": 3.0, "b": 2.0}) == 12.0


class TestEquationVector:
    """Tests for EquationVector."""

    def test_order_and_symbols(self):
        """Test that names and symbols keep first-seen order."""
        vec = eqnvec(Y="b + a", X="c*a")
        assert vec.names() == ("Y", "X")
        assert set(vec.symbols()) == {"a", "b", "c"}
        assert vec.symbols()[-1] == "c"

    def test_invalid_name_raises(self):
        """Test that names must be identifiers."""
        with pytest.raises(ValueError, match="identifier"):
            EquationVector({"1x": "a"})

    def test_merge_overwrites_in_place(self):
        """Test that merge keeps the position of existing names."""
        vec = eqnvec(X="a", Y="b").merge({"X": "c", "Z": "d"})
        assert vec.names() == ("X", "Y", "Z")
        assert str(vec["X"]) == "c"

    def test_immutable(self):
        """Test that the mapping cannot be modified."""
        vec = eqnvec(X="a")
        with pytest.raises(TypeError):
            vec.equations["Y"] = Expression.parse("b")

    def test_equality_and_hash(self):
        """Test value equality."""
        assert eqnvec(X="a + b") == eqnvec(X="b + a")
        assert hash(eqnvec(X="a + b")) == hash(eqnvec(X="b + a"))
        assert eqnvec(X="a") != eqnvec(X="b")
