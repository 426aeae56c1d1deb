"""Lookups resolved against the trafo being edited.

Substitution arguments of define() and insert() are usually literal
names or expressions. A lookup instead defers the value until the edit
runs, when the trafo under edit and (for a TrafoList) the grid row of
the condition being edited are known:

    insert(trafos, "k ~ k_cond", k="k", k_cond=col("drug", fmt="k_{}"))
    insert(trafo, "x ~ exp(x)", x=CurrentSymbols(exclude=["n"]))
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Protocol, Tuple, Union, runtime_checkable

from ..conditions import ConditionGrid
from ..errors import UnknownSymbolError
from .types import Trafo, TrafoList


@dataclass(frozen=True)
class EditContext:
    """What a lookup can see while an edit runs.

    Attributes:
        trafo: Trafo under edit (after all previous edits)
        grid: Condition grid, None for a bare Trafo
        condition: Condition being edited, None for a bare Trafo
    """
    trafo: Trafo
    grid: Optional[ConditionGrid] = None
    condition: Optional[str] = None

    def row(self) -> Dict[str, Any]:
        """Grid row of the condition being edited."""
        if self.grid is None or self.condition is None:
            raise ValueError("No condition grid attached to this edit")
        return self.grid.row(self.condition)


@runtime_checkable
class Lookup(Protocol):
    """Protocol for deferred substitution arguments."""

    def resolve(self, context: EditContext) -> Any: ...


@dataclass(frozen=True)
class Column:
    """Value of a grid column for the condition being edited.

    Attributes:
        name: Column of the condition grid
        fmt: Optional format string applied to the value; other columns
            of the row are available as named fields
    """
    name: str
    fmt: Optional[str] = None

    def resolve(self, context: EditContext) -> Any:
        if context.grid is None or context.condition is None:
            raise UnknownSymbolError(
                [self.name], what="grid columns (no condition grid attached)"
            )
        row = context.row()
        if self.name not in row:
            raise UnknownSymbolError([self.name], available=row.keys(), what="grid columns")
        value = row[self.name]
        if value is None:
            raise ValueError(
                f"Column {self.name!r} has no value for condition {context.condition!r}"
            )
        if self.fmt is not None:
            return self.fmt.format(value, **row)
        return value


def col(name: str, fmt: Optional[str] = None) -> Column:
    """Refer to a condition grid column in define()/insert() arguments."""
    return Column(name, fmt)


def current_symbols(trafo: Union[Trafo, TrafoList]) -> Tuple[str, ...]:
    """Symbols currently occurring on the right-hand sides.

    These are the names insert() can rewrite. For a TrafoList the union
    over all conditions is returned.
    """
    if isinstance(trafo, (Trafo, TrafoList)):
        return trafo.symbols()
    raise TypeError(f"Expected Trafo or TrafoList, got {type(trafo).__name__}")


@dataclass(frozen=True)
class CurrentSymbols:
    """All current right-hand side symbols of the trafo under edit.

    Attributes:
        exclude: Symbols to leave out; each must currently occur
    """
    exclude: Tuple[str, ...] = ()

    def __post_init__(self):
        """Accept any iterable of names."""
        if isinstance(self.exclude, str):
            object.__setattr__(self, "exclude", (self.exclude,))
        else:
            object.__setattr__(self, "exclude", tuple(self.exclude))

    def resolve(self, context: EditContext) -> Tuple[str, ...]:
        symbols = current_symbols(context.trafo)
        missing = [name for name in self.exclude if name not in symbols]
        if missing:
            raise UnknownSymbolError(missing, available=symbols, what="current symbols")
        return tuple(s for s in symbols if s not in self.exclude)


def resolve(value: Any, context: EditContext) -> Any:
    """Resolve a substitution argument, leaving literals untouched."""
    if isinstance(value, Lookup):
        return value.resolve(context)
    return value


def resolve_all(values: Iterable[Tuple[str, Any]], context: EditContext) -> Dict[str, Any]:
    """Resolve every argument of one edit."""
    return {name: resolve(value, context) for name, value in values}
