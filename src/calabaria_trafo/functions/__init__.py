"""Numeric functions: transformations, predictions, objectives."""

from .parvec import ParVec
from .base import ConditionalFunction, compose, union
from .solver import solve_newton
from .parfn import ParameterTransformation, P
from .prediction import PredictionFunction
from .objective import ObjectiveFunction, ObjectiveSum, ObjectiveValue, normal_prior

__all__ = [
    "ParVec",
    "ConditionalFunction",
    "compose",
    "union",
    "solve_newton",
    "ParameterTransformation",
    "P",
    "PredictionFunction",
    "ObjectiveFunction",
    "ObjectiveSum",
    "ObjectiveValue",
    "normal_prior",
]
