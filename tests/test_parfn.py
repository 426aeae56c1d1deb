"""Tests for parameter transformation functions built with P()."""

import numpy as np
import polars as pl
import pytest
from hypothesis import given, settings, strategies as st

from calabaria_trafo import (
    ConditionMismatchError,
    DuplicateConditionError,
    NoConvergenceError,
    P,
    ParVec,
    SolverOptions,
    Trafo,
    UnknownSymbolError,
    branch,
    col,
    eqnvec,
    insert,
)


class TestParVec:
    """Tests for ParVec."""

    def test_from_mapping(self):
        """Test identity Jacobian seeding."""
        pars = ParVec.from_mapping({"a": 1.0, "b": 2.0})
        assert pars["b"] == 2.0
        np.testing.assert_array_equal(pars.jacobian, np.eye(2))
        assert pars.deriv_names == ("a", "b")

    def test_unknown_name(self):
        """Test that lookups of missing names raise UnknownSymbolError."""
        pars = ParVec.from_mapping({"a": 1.0})
        with pytest.raises(UnknownSymbolError, match="Available"):
            pars["b"]
        assert "b" not in pars

    def test_subset_and_chain(self):
        """Test restricting and chaining Jacobians."""
        upstream = ParVec(("x",), [2.0], [[3.0]], ("p",))
        local = ParVec(("y",), [4.0], [[2.0 * 2.0]], ("x",))
        chained = local.chain(upstream)
        assert chained.deriv_names == ("p",)
        assert chained.jacobian[0, 0] == 12.0

    def test_without_deriv(self):
        """Test dropping the Jacobian."""
        pars = ParVec.from_mapping({"a": 1.0}).without_deriv()
        assert pars.jacobian is None

    def test_shape_validation(self):
        """Test that values must match the names."""
        with pytest.raises(ValueError, match="Expected 2 values"):
            ParVec(("a", "b"), [1.0])

    def test_to_frame(self):
        """Test conversion to a polars table."""
        frame = ParVec.from_mapping({"a": 1.0, "b": 2.0}).to_frame()
        assert frame.columns == ["name", "value"]
        assert frame["value"].to_list() == [1.0, 2.0]


class TestExplicit:
    """Tests for explicit transformations."""

    def test_values(self):
        """Test X = a + b, Y = a - b at a = 3, b = 2."""
        p = P(eqnvec(X="a + b", Y="a - b"))
        assert p({"a": 3, "b": 2}).to_dict() == {"X": 5.0, "Y": 1.0}

    def test_introspection(self, explicit_trafo):
        """Test parameter names and method."""
        p = P(explicit_trafo)
        assert p.inner_parameters() == ("X", "Y")
        assert set(p.outer_parameters()) == {"a", "b"}
        assert p.conditions is None
        assert p.method == "explicit"

    def test_jacobian(self):
        """Test derivatives with respect to the input."""
        result = P(eqnvec(X="a*b", Y="exp(a)"))({"a": 0.0, "b": 3.0})
        jac = dict(zip(result.deriv_names, result.jacobian.T))
        np.testing.assert_allclose(jac["a"], [3.0, 1.0])
        np.testing.assert_allclose(jac["b"], [0.0, 0.0])

    def test_no_deriv(self, explicit_trafo):
        """Test evaluation without derivatives."""
        assert P(explicit_trafo)({"a": 1, "b": 1}, deriv=False).jacobian is None

    def test_missing_parameter(self, explicit_trafo):
        """Test that missing outer parameters raise."""
        with pytest.raises(UnknownSymbolError, match="b"):
            P(explicit_trafo)({"a": 1.0})

    def test_constant_equation(self):
        """Test equations without symbols."""
        result = P(eqnvec(X="2", Y="a"))({"a": 1.0})
        assert result.to_dict() == {"X": 2.0, "Y": 1.0}
        np.testing.assert_array_equal(result.jacobian, [[0.0], [1.0]])

    def test_unknown_method(self, explicit_trafo):
        """Test method validation."""
        with pytest.raises(ValueError, match="Unknown method"):
            P(explicit_trafo, method="magic")


class TestImplicit:
    """Tests for implicit transformations."""

    def test_values_include_outer(self, implicit_trafo):
        """Test that solved inner and given outer values are returned."""
        q = P(implicit_trafo, method="implicit")
        result = q({"a": 3, "b": 2})
        assert result.to_dict() == pytest.approx({"X": 5.0, "Y": 1.0, "a": 3.0, "b": 2.0})
        assert set(q.inner_parameters()) == {"X", "Y", "a", "b"}
        assert set(q.outer_parameters()) == {"a", "b"}

    def test_implicit_derivatives(self):
        """Test dX/da from the implicit function theorem."""
        q = P(eqnvec(X="X^2 - a"), method="implicit")
        result = q({"a": 4.0})
        assert result["X"] == pytest.approx(2.0)
        x_row = result.jacobian[result.names.index("X")]
        assert x_row[result.deriv_names.index("a")] == pytest.approx(0.25)

    def test_initial_guess_mapping(self):
        """Test that the initial guess selects the root."""
        q = P(eqnvec(X="X^2 - a"), method="implicit", initial_guess={"X": -1.0})
        assert q({"a": 4.0})["X"] == pytest.approx(-2.0)

    def test_call_time_guess_takes_precedence(self):
        """Test that inner values passed at call time start the iteration."""
        q = P(eqnvec(X="X^2 - a"), method="implicit", initial_guess={"X": 1.0})
        assert q({"a": 4.0, "X": -3.0})["X"] == pytest.approx(-2.0)

    def test_infinite_derivative_at_guess(self):
        """Test that a starting point with an infinite derivative is reported."""
        q = P(eqnvec(X="sqrt(X) - a"), method="implicit", initial_guess={"X": 0.0})
        with pytest.raises(NoConvergenceError, match="Jacobian is not finite"):
            q({"a": 2.0})

    def test_composed_keeps_method(self, implicit_trafo):
        """Test that composition keeps the evaluation mode of the left operand."""
        composed = P(implicit_trafo, method="implicit") * P(eqnvec(a="2*u", b="u"))
        assert composed.method == "implicit"

    def test_no_real_root(self):
        """Test that failure to converge is reported."""
        q = P(eqnvec(X="X^2 + a"), method="implicit")
        with pytest.raises(NoConvergenceError) as exc_info:
            q({"a": 1.0})
        assert exc_info.value.names == ("X",)
        assert exc_info.value.last_iterate is not None

    def test_iteration_budget(self):
        """Test that the solver options are honored."""
        q = P(eqnvec(X="X^2 - a"), method="implicit", options=SolverOptions(max_iter=1))
        with pytest.raises(NoConvergenceError, match="within 1 iterations"):
            q({"a": 4.0})


class TestConditions:
    """Tests for condition-indexed transformations."""

    @pytest.fixture
    def specific(self, branched):
        """TrafoList with drug-specific k1."""
        return insert(
            branched, "x ~ y", x="k1", y=col("drug", fmt="k1_{}"), condition="drug <> 'none'"
        )

    @pytest.fixture
    def pars(self):
        """Outer parameter values."""
        return {"k1": 0.1, "k2": 0.2, "A0": 1.0, "k1_A": 0.3, "k1_B": 0.4}

    def test_per_condition(self, specific, pars):
        """Test one result per condition."""
        result = P(specific)(pars)
        assert list(result) == ["ctrl", "drugA", "drugB"]
        assert result["ctrl"]["k1"] == 0.1
        assert result["drugA"]["k1"] == 0.3
        assert result["drugB"]["k1"] == 0.4

    def test_subset(self, specific, pars):
        """Test evaluating a subset of conditions."""
        result = P(specific)(pars, conditions=["drugB"])
        assert list(result) == ["drugB"]

    def test_unknown_condition(self, specific, pars):
        """Test that unknown condition requests raise."""
        with pytest.raises(ConditionMismatchError, match="nope"):
            P(specific)(pars, conditions="nope")

    def test_compile_subset(self, specific):
        """Test building a function for selected conditions only."""
        p = P(specific, conditions=["ctrl"])
        assert p.conditions == ("ctrl",)
        with pytest.raises(ValueError, match="Unknown conditions"):
            P(specific, conditions=["nope"])

    def test_trafo_with_conditions(self, explicit_trafo):
        """Test registering one Trafo for named conditions."""
        p = P(explicit_trafo, conditions=["c1", "c2"])
        result = p({"a": 1.0, "b": 1.0})
        assert set(result) == {"c1", "c2"}


class TestComposition:
    """Tests for * and + on transformation functions."""

    def test_composition_equals_nested_application(self, explicit_trafo):
        """Test (g*f)(v) == g(f(v)) including derivatives."""
        g = P(explicit_trafo)
        f = P(eqnvec(a="exp(la)", b="lb^2"))
        v = {"la": 0.5, "lb": 1.5}
        composed = (g * f)(v)
        nested = g(f(v))
        assert composed == nested
        assert composed.deriv_names == ("la", "lb")

    @settings(max_examples=25, deadline=None)
    @given(
        f_rhs=st.tuples(
            st.sampled_from(["u + w", "u*w", "exp(u)", "2*u - w", "w"]),
            st.sampled_from(["u", "u - w", "w^2", "sin(w) + u", "3"]),
        ),
        g_rhs=st.tuples(
            st.sampled_from(["a + b", "a*b", "a - 2*b", "exp(a)", "b"]),
            st.sampled_from(["a", "b^2", "a/(1 + b^2)", "cos(a*b)"]),
        ),
        u=st.floats(-2.0, 2.0),
        w=st.floats(-2.0, 2.0),
    )
    def test_composition_of_generated_chains(self, f_rhs, g_rhs, u, w):
        """Test (g*f)(v) == g(f(v)) for generated explicit chains."""
        f = P(eqnvec(a=f_rhs[0], b=f_rhs[1]))
        g = P(eqnvec(X=g_rhs[0], Y=g_rhs[1]))
        v = {"u": u, "w": w}
        composed = (g * f)(v)
        nested = g(f(v))
        assert composed.names == nested.names
        assert composed.deriv_names == nested.deriv_names == ("u", "w")
        np.testing.assert_allclose(composed.values, nested.values)
        np.testing.assert_allclose(composed.jacobian, nested.jacobian)

    def test_composed_jacobian(self):
        """Test the chain rule through two explicit steps."""
        g = P(eqnvec(Y="x^2"))
        f = P(eqnvec(x="3*p"))
        result = (g * f)({"p": 1.0})
        assert result["Y"] == pytest.approx(9.0)
        assert result.jacobian[0, 0] == pytest.approx(18.0)

    def test_implicit_after_explicit(self, implicit_trafo):
        """Test feeding an explicit transformation into an implicit one."""
        q = P(implicit_trafo, method="implicit")
        f = P(eqnvec(a="2*u", b="u"))
        result = (q * f)({"u": 1.5})
        assert result["X"] == pytest.approx(4.5)
        assert result["Y"] == pytest.approx(1.5)

    def test_global_broadcast(self, branched):
        """Test that a global right operand is broadcast to every condition."""
        g = P(branched)
        f = P(eqnvec(k1="exp(lk1)", k2="exp(lk2)", A0="A0"))
        composed = g * f
        assert composed.conditions == branched.conditions
        result = composed({"lk1": 0.0, "lk2": 0.0, "A0": 2.0})
        assert result["drugA"].to_dict() == pytest.approx({"k1": 1.0, "k2": 1.0, "A0": 2.0})

    def test_condition_mismatch(self, rates_trafo):
        """Test that indexed operands must share conditions."""
        left = P(branch(rates_trafo, pl.DataFrame({"condition": ["c1", "c2"]})))
        right = P(branch(rates_trafo, pl.DataFrame({"condition": ["c1", "c3"]})))
        with pytest.raises(ConditionMismatchError):
            left * right

    def test_union(self, rates_trafo, explicit_trafo):
        """Test the union of disjoint condition sets."""
        left = P(rates_trafo, conditions=["c1"])
        right = P(explicit_trafo, conditions=["c2"])
        both = left + right
        assert both.conditions == ("c1", "c2")
        result = both({"k1": 1.0, "k2": 2.0, "A0": 3.0, "a": 3.0, "b": 2.0})
        assert result["c2"].to_dict() == {"X": 5.0, "Y": 1.0}
        assert result["c1"]["k2"] == 2.0

    def test_union_duplicate(self, explicit_trafo):
        """Test that overlapping condition sets raise."""
        with pytest.raises(DuplicateConditionError):
            P(explicit_trafo, conditions=["c1"]) + P(explicit_trafo, conditions=["c1", "c2"])

    def test_union_requires_conditions(self, explicit_trafo):
        """Test that global functions cannot be united."""
        with pytest.raises(ConditionMismatchError, match="condition-indexed"):
            P(explicit_trafo) + P(explicit_trafo, conditions=["c1"])
