"""Shared fixtures for calabaria-trafo tests."""

import polars as pl
import pytest

from calabaria_trafo import ConditionGrid, Trafo, branch, define, eqnvec


@pytest.fixture
def drug_grid():
    """Three conditions: a control and two drugs with doses."""
    return ConditionGrid(
        pl.DataFrame(
            {
                "condition": ["ctrl", "drugA", "drugB"],
                "drug": ["none", "A", "B"],
                "dose": [0.0, 1.0, 2.5],
            }
        )
    )


@pytest.fixture
def rates_trafo():
    """Identity trafo over two rate constants and an initial value."""
    return define(None, "x ~ x", x=["k1", "k2", "A0"])


@pytest.fixture
def branched(rates_trafo, drug_grid):
    """rates_trafo branched over drug_grid."""
    return branch(rates_trafo, drug_grid)


@pytest.fixture
def explicit_trafo():
    """X = a + b, Y = a - b."""
    return Trafo(eqnvec(X="a + b", Y="a - b"))


@pytest.fixture
def implicit_trafo():
    """Linear system solved by X = 5, Y = 1 at a = 3, b = 2."""
    return Trafo(eqnvec(X="X + Y - 2*a", Y="X - Y - 2*b"))
