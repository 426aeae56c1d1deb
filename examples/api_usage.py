#!/usr/bin/env python3
"""Example usage of the calabaria-trafo programmatic API."""

from __future__ import annotations

import numpy as np
import polars as pl

from calabaria_trafo import (
    ConditionGrid,
    CurrentSymbols,
    ObjectiveFunction,
    ObjectiveValue,
    P,
    PredictionFunction,
    branch,
    col,
    define,
    eqnvec,
    insert,
    normal_prior,
)


def decay(times, pars, condition):
    """A -> B with rate k1, B -> 0 with rate k2 (closed form)."""
    k1, k2, a0 = pars["k1"], pars["k2"], pars["A0"]
    a = a0 * np.exp(-k1 * times)
    b = a0 * k1 / (k2 - k1) * (np.exp(-k1 * times) - np.exp(-k2 * times))
    return pl.DataFrame({"time": times, "A": a, "B": b})


def main() -> None:
    print("Calabaria trafo demo")

    # 1) Identity transformation over the model parameters, log-scaled rates
    trafo = define(None, "x ~ x", x=["k1", "k2", "A0"])
    trafo = insert(trafo, "x ~ exp(x)", x=CurrentSymbols(exclude=["A0"]))
    print(trafo)

    # 2) Branch over experimental conditions and give drugs their own k1
    grid = ConditionGrid.from_dict({
        "condition": ["ctrl", "drugA", "drugB"],
        "drug": ["none", "A", "B"],
        "dose": [0.0, 1.0, 2.0],
    })
    trafos = branch(trafo, grid)
    trafos = insert(
        trafos, "x ~ y", x="k1", y=col("drug", fmt="k1_{}"), condition=pl.col("drug") != "none"
    )
    print(f"Outer parameters: {list(trafos.outer_parameters())}")

    # 3) Evaluate the per-condition inner parameters
    pars = {"k1": np.log(0.5), "k2": np.log(0.2), "A0": 1.0, "k1_A": np.log(0.8), "k1_B": np.log(1.2)}
    for condition, inner in P(trafos)(pars).items():
        print(f"  {condition}: {inner.to_dict()}")

    # 4) Compose with a prediction function
    prediction = PredictionFunction(decay) * P(trafos)
    times = np.linspace(0.0, 10.0, 5)
    print(prediction(times, pars, conditions="drugA"))

    # 5) An implicit steady-state transformation
    steady = P(eqnvec(B="k1*A - k2*B"), method="implicit")
    print(steady({"k1": 0.5, "k2": 0.2, "A": 2.0}))

    # 6) Objective: a data term plus a prior, pulled back to the outer parameters
    target = {"ctrl": 0.5, "drugA": 0.8, "drugB": 1.2}

    def k1_fit(inner, condition):
        residual = inner["k1"] - target[condition]
        return ObjectiveValue(residual**2, [2 * residual], [[2.0]], ("k1",))

    data = ObjectiveFunction(k1_fit, conditions=grid.conditions)
    objective = (data + normal_prior({"k2": 0.0}, sigma=10.0)) * P(trafos)
    print(objective(pars))


if __name__ == "__main__":
    main()
