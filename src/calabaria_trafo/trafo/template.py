"""Equation templates and their expansion.

A template ``"<lhs> ~ <rhs>"`` is expanded against keyword substitution
arguments by an explicit zip: position i of every argument produces one
concrete equation. Scalars and length-1 sequences are repeated; any
other length disagreement is an error rather than silent recycling.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence, Tuple

import numpy as np
import polars as pl

from ..constants import TEMPLATE_SEP
from ..errors import TemplateLengthMismatch
from ..symbols import Expression


@dataclass(frozen=True)
class Template:
    """Parsed equation template.

    Attributes:
        lhs: Left-hand pattern
        rhs: Right-hand pattern
    """
    lhs: Expression
    rhs: Expression

    @classmethod
    def parse(cls, text: str) -> "Template":
        """Split and parse ``"<lhs> ~ <rhs>"``.

        Raises:
            ValueError: If the separator is missing or repeated
        """
        parts = text.split(TEMPLATE_SEP)
        if len(parts) != 2:
            raise ValueError(
                f"Template must have the form '<lhs> {TEMPLATE_SEP} <rhs>', got {text!r}"
            )
        lhs, rhs = (Expression.parse(p) for p in parts)
        return cls(lhs, rhs)

    def placeholders(self) -> frozenset:
        """Symbols of both patterns."""
        return self.lhs.variables() | self.rhs.variables()


def _as_values(value: Any) -> List[Any]:
    """Normalize one argument to a list of positions."""
    if isinstance(value, (str, int, float, Expression)):
        return [value]
    if isinstance(value, pl.Series):
        return value.to_list()
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, (Sequence, set, frozenset)) and not isinstance(value, bytes):
        return list(value)
    raise TypeError(f"Unsupported substitution value of type {type(value).__name__}")


def broadcast(arguments: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Zip substitution arguments into one mapping per position.

    Args:
        arguments: Placeholder -> scalar or sequence (already resolved)

    Returns:
        One placeholder -> value mapping per position

    Raises:
        TemplateLengthMismatch: If sequences longer than 1 differ in length
    """
    columns = {name: _as_values(value) for name, value in arguments.items()}
    if not columns:
        return [{}]

    lengths = {name: len(values) for name, values in columns.items()}
    distinct = {n for n in lengths.values() if n != 1}
    if len(distinct) > 1:
        raise TemplateLengthMismatch(lengths)
    size = distinct.pop() if distinct else 1

    return [
        {name: values[i if len(values) > 1 else 0] for name, values in columns.items()}
        for i in range(size)
    ]


def expand(template: Template, arguments: Mapping[str, Any]) -> List[Tuple[str, Expression]]:
    """Expand a template into concrete (name, expression) pairs.

    Args:
        template: Parsed template
        arguments: Placeholder -> scalar or sequence (already resolved)

    Returns:
        One pair per broadcast position, in order

    Raises:
        TemplateLengthMismatch: If argument lengths disagree
        ValueError: If a left-hand side does not reduce to a single symbol
    """
    pairs = []
    for position in broadcast(arguments):
        lhs = template.lhs.substitute(position)
        names = lhs.variables()
        if len(names) != 1 or str(lhs) not in names:
            raise ValueError(
                f"Left-hand side must be a single symbol, got {str(lhs)!r} "
                f"from template {str(template.lhs)!r}"
            )
        pairs.append((str(lhs), template.rhs.substitute(position)))
    return pairs
