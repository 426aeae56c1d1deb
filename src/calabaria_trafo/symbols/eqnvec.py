"""Equation vectors: ordered name -> expression mappings."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Tuple

from .expression import Expression, ExpressionLike


@dataclass(frozen=True)
class EquationVector(Mapping[str, Expression]):
    """Immutable ordered mapping from left-hand names to right-hand expressions.

    Names are unique; order is kept for display only. All editing methods
    return new vectors.

    Attributes:
        equations: Name -> Expression, in insertion order
    """
    equations: Mapping[str, Expression] = field(default_factory=dict)

    def __post_init__(self):
        """Coerce right-hand sides and freeze the mapping."""
        frozen = {}
        for name, rhs in dict(self.equations).items():
            if not isinstance(name, str) or not name.isidentifier():
                raise ValueError(f"Equation name must be an identifier, got {name!r}")
            frozen[name] = Expression.coerce(rhs)
        object.__setattr__(self, "equations", MappingProxyType(frozen))

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, ExpressionLike]) -> "EquationVector":
        """Build a vector from a mapping of names to strings/expressions."""
        return cls(dict(mapping))

    def __getitem__(self, name: str) -> Expression:
        return self.equations[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.equations)

    def __len__(self) -> int:
        return len(self.equations)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EquationVector):
            return NotImplemented
        return list(self.equations.items()) == list(other.equations.items())

    def __hash__(self) -> int:
        return hash(tuple(self.equations.items()))

    def names(self) -> Tuple[str, ...]:
        """Left-hand names in order."""
        return tuple(self.equations)

    def symbols(self) -> Tuple[str, ...]:
        """Union of right-hand side variables, in first-seen order."""
        seen: Dict[str, None] = {}
        for rhs in self.equations.values():
            for name in rhs.ordered_variables():
                seen.setdefault(name, None)
        return tuple(seen)

    def with_equation(self, name: str, rhs: ExpressionLike) -> "EquationVector":
        """Set one equation, overwriting an existing name in place or appending."""
        updated = dict(self.equations)
        updated[name] = Expression.coerce(rhs)
        return EquationVector(updated)

    def merge(self, other: Mapping[str, ExpressionLike]) -> "EquationVector":
        """Set several equations in order (see with_equation)."""
        updated = dict(self.equations)
        for name, rhs in other.items():
            updated[name] = Expression.coerce(rhs)
        return EquationVector(updated)

    def substitute(self, mapping: Mapping[str, ExpressionLike]) -> "EquationVector":
        """Substitute symbols simultaneously in every right-hand side."""
        if not mapping:
            return self
        return EquationVector(
            {name: rhs.substitute(mapping) for name, rhs in self.equations.items()}
        )

    def __repr__(self) -> str:
        body = ", ".join(f"{k}={str(v)!r}" for k, v in self.equations.items())
        return f"EquationVector({body})"


def eqnvec(**equations: ExpressionLike) -> EquationVector:
    """Create an EquationVector from keyword arguments.

    Example:
        >>> eqnvec(X="a + b", Y="a - b")
        EquationVector(X='a + b', Y='a - b')
    """
    return EquationVector.from_mapping(equations)
