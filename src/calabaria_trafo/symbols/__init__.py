"""Symbolic layer: expressions and equation vectors."""

from .expression import Expression, ExpressionLike
from .eqnvec import EquationVector, eqnvec

__all__ = [
    "Expression",
    "ExpressionLike",
    "EquationVector",
    "eqnvec",
]
