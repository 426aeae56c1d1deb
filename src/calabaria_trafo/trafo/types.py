"""Trafo and TrafoList: symbolic parameter transformations.

A Trafo maps inner parameters (left-hand names, consumed by a model) to
expressions in outer parameters (estimated or supplied externally). A
TrafoList holds one Trafo per condition of a ConditionGrid.

Both types are immutable; every edit returns a new value and shares the
unchanged parts with its predecessor.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

import polars as pl

from ..conditions import ConditionGrid, composed_conditions, union_conditions
from ..constants import EXPLICIT, IMPLICIT, METHODS
from ..errors import ConditionMismatchError, UnknownSymbolError
from ..symbols import EquationVector, Expression, ExpressionLike


def _check_method(method: str) -> None:
    if method not in METHODS:
        raise ValueError(f"Unknown method {method!r}. Available: {list(METHODS)}")


def _ordered_union(groups: Iterable[Iterable[str]]) -> Tuple[str, ...]:
    seen: Dict[str, None] = {}
    for group in groups:
        for name in group:
            seen.setdefault(name, None)
    return tuple(seen)


@dataclass(frozen=True)
class Trafo:
    """Single parameter transformation over one EquationVector.

    Attributes:
        equations: Inner parameter name -> expression
    """
    equations: EquationVector = field(default_factory=EquationVector)

    def __post_init__(self):
        """Accept plain mappings as equations."""
        if not isinstance(self.equations, EquationVector):
            object.__setattr__(self, "equations", EquationVector.from_mapping(self.equations))

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, ExpressionLike]) -> "Trafo":
        """Build a Trafo from name -> expression text."""
        return cls(EquationVector.from_mapping(mapping))

    def inner_parameters(self) -> Tuple[str, ...]:
        """Names produced by the transformation."""
        return self.equations.names()

    def symbols(self) -> Tuple[str, ...]:
        """Symbols occurring on the right-hand sides."""
        return self.equations.symbols()

    def outer_parameters(self, method: str = EXPLICIT) -> Tuple[str, ...]:
        """Names the transformation takes as input.

        Explicit: every right-hand side symbol. Implicit: right-hand side
        symbols that are not themselves solved for.
        """
        _check_method(method)
        if method == IMPLICIT:
            inner = set(self.inner_parameters())
            return tuple(s for s in self.symbols() if s not in inner)
        return self.symbols()

    def substitute(self, mapping: Mapping[str, ExpressionLike]) -> "Trafo":
        """Replace symbols simultaneously in every right-hand side."""
        updated = self.equations.substitute(mapping)
        if updated is self.equations:
            return self
        return Trafo(updated)

    def with_equations(self, mapping: Mapping[str, ExpressionLike]) -> "Trafo":
        """Append equations, overwriting existing names."""
        return Trafo(self.equations.merge(mapping))

    def __mul__(self, other: "TrafoLike") -> "TrafoLike":
        """Symbolic composition: every symbol of self is replaced by other's equation for it.

        Raises:
            UnknownSymbolError: If self uses a symbol other does not produce
        """
        if isinstance(other, TrafoList):
            return TrafoList({c: self * t for c, t in other.items()}, other.grid)
        if not isinstance(other, Trafo):
            return NotImplemented
        missing = [s for s in self.symbols() if s not in other]
        if missing:
            raise UnknownSymbolError(
                missing, available=other.inner_parameters(), what="parameters in composition"
            )
        return self.substitute(dict(other.equations))

    def __getitem__(self, name: str) -> Expression:
        return self.equations[name]

    def __contains__(self, name: object) -> bool:
        return name in self.equations

    def __iter__(self) -> Iterator[str]:
        return iter(self.equations)

    def __len__(self) -> int:
        return len(self.equations)

    def __repr__(self) -> str:
        lines = [f"  {name} = {rhs}" for name, rhs in self.equations.items()]
        return "Trafo(\n" + "\n".join(lines) + "\n)" if lines else "Trafo()"


@dataclass(frozen=True)
class TrafoList(Mapping[str, Trafo]):
    """Condition-indexed collection of Trafos sharing one ConditionGrid.

    Keys are exactly the grid's row names, in the same order.

    Attributes:
        trafos: Condition -> Trafo
        grid: Grid the list was branched from
    """
    trafos: Mapping[str, Trafo]
    grid: ConditionGrid

    def __post_init__(self):
        """Freeze the mapping and check keys against the grid."""
        trafos = dict(self.trafos)
        if tuple(trafos) != self.grid.conditions:
            raise ValueError(
                f"TrafoList keys {list(trafos)} must equal grid conditions "
                f"{list(self.grid.conditions)}"
            )
        for condition, trafo in trafos.items():
            if not isinstance(trafo, Trafo):
                raise TypeError(
                    f"Entry for condition {condition!r} must be a Trafo, got {type(trafo).__name__}"
                )
        object.__setattr__(self, "trafos", MappingProxyType(trafos))

    __hash__ = None

    @property
    def conditions(self) -> Tuple[str, ...]:
        """Condition names in grid order."""
        return self.grid.conditions

    def __getitem__(self, condition: str) -> Trafo:
        if condition not in self.trafos:
            raise ConditionMismatchError(
                f"Unknown condition: {condition!r}. Available: {list(self.conditions)}",
                missing=[condition],
            )
        return self.trafos[condition]

    def __iter__(self) -> Iterator[str]:
        return iter(self.trafos)

    def __len__(self) -> int:
        return len(self.trafos)

    def inner_parameters(self) -> Tuple[str, ...]:
        """Union of inner parameters across conditions."""
        return _ordered_union(t.inner_parameters() for t in self.trafos.values())

    def outer_parameters(self, method: str = EXPLICIT) -> Tuple[str, ...]:
        """Union of outer parameters across conditions."""
        return _ordered_union(t.outer_parameters(method) for t in self.trafos.values())

    def symbols(self) -> Tuple[str, ...]:
        """Union of right-hand side symbols across conditions."""
        return _ordered_union(t.symbols() for t in self.trafos.values())

    def replace(self, condition: str, trafo: Trafo) -> "TrafoList":
        """New list with one condition's Trafo replaced."""
        if condition not in self.trafos:
            raise ConditionMismatchError(
                f"Unknown condition: {condition!r}. Available: {list(self.conditions)}",
                missing=[condition],
            )
        return TrafoList({**self.trafos, condition: trafo}, self.grid)

    def map(
        self,
        fn: Callable[[str, Trafo], Trafo],
        conditions: Optional[Iterable[str]] = None,
    ) -> "TrafoList":
        """Apply fn to selected conditions, keeping the others unchanged."""
        selected = set(self.conditions if conditions is None else conditions)
        return TrafoList(
            {c: (fn(c, t) if c in selected else t) for c, t in self.trafos.items()},
            self.grid,
        )

    def __mul__(self, other: "TrafoLike") -> "TrafoList":
        """Per-condition symbolic composition; a bare Trafo is broadcast."""
        if isinstance(other, Trafo):
            return self.map(lambda c, t: t * other)
        if not isinstance(other, TrafoList):
            return NotImplemented
        composed_conditions(self.conditions, other.conditions)
        return self.map(lambda c, t: t * other[c])

    def __add__(self, other: "TrafoList") -> "TrafoList":
        """Union of two lists over disjoint conditions."""
        if not isinstance(other, TrafoList):
            return NotImplemented
        union_conditions(self.conditions, other.conditions)
        frame = pl.concat([self.grid.frame, other.grid.frame], how="diagonal_relaxed")
        return TrafoList({**self.trafos, **other.trafos}, ConditionGrid(frame))

    def __repr__(self) -> str:
        preview = list(self.conditions)[:3]
        if len(self) > 3:
            preview.append("...")
        return f"TrafoList({len(self)} conditions{preview}, inner={list(self.inner_parameters())})"


TrafoLike = Union[Trafo, TrafoList]
