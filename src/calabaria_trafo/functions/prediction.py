"""Prediction functions: model outputs for given inner parameters.

The model itself (ODE integration etc.) lives outside this package; a
PredictionFunction only wraps it so it can be composed with parameter
transformations:

    x = PredictionFunction(simulate, conditions=["ctrl", "drug"])
    prd = x * P(trafos)
    prd(times, {"k1": 0.1, "k1_drug": 0.3})   # {"ctrl": DataFrame, "drug": DataFrame}
"""

from typing import Callable, Dict, Mapping, Optional, Sequence, Union

import numpy as np
import polars as pl

from .base import ConditionalFunction, Conditions
from .parvec import ParVec

# (times, pars, condition) -> table of predictions
Model = Callable[[np.ndarray, ParVec, Optional[str]], pl.DataFrame]


class PredictionFunction(ConditionalFunction):
    """Condition-aware wrapper of a model's prediction callable."""

    def __init__(
        self,
        model: Optional[Model] = None,
        conditions: Optional[Sequence[str]] = None,
        parameters: Sequence[str] = (),
        evaluator=None,
    ):
        """Initialize from a model callable.

        Args:
            model: (times, pars, condition) -> polars DataFrame
            conditions: Conditions the model is defined for (None: all)
            parameters: Names the model reads, for introspection
            evaluator: Internal; used when deriving composed functions
        """
        if evaluator is None:
            if model is None:
                raise ValueError("PredictionFunction requires a model callable")

            def evaluator(pars: ParVec, condition: Optional[str], deriv: bool, times=None) -> pl.DataFrame:
                return model(np.asarray(times, dtype=float), pars, condition)

        super().__init__(evaluator, conditions, parameters)

    def _derive(self, evaluator, conditions, parameters, union_with=None):
        return PredictionFunction(evaluator=evaluator, conditions=conditions, parameters=parameters)

    def __call__(
        self,
        times: Sequence[float],
        pars: Union[ParVec, Mapping[str, float]],
        conditions: Conditions = None,
        deriv: bool = True,
    ) -> Union[pl.DataFrame, Dict[str, pl.DataFrame]]:
        """Predict at the given times.

        Returns:
            DataFrame, or dict condition -> DataFrame for a condition-indexed function
        """
        parvec = ParVec.coerce(pars, deriv=deriv)
        if self.conditions is None:
            return self.evaluate(parvec, None, deriv, times=times)
        return {c: self.evaluate(parvec, c, deriv, times=times) for c in self.select(conditions)}

    def __repr__(self) -> str:
        scope = "global" if self.conditions is None else f"{len(self.conditions)} conditions"
        return f"PredictionFunction({scope})"
