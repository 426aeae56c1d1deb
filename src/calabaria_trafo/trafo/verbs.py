"""Editing verbs: define, insert and branch.

All three are persistent: they return new Trafo/TrafoList values and
never modify their input. Edits chain left to right:

    trafo = define(None, "x ~ x", x=["A", "B", "k1", "k2"])
    trafo = insert(trafo, "x ~ exp(x)", x=CurrentSymbols())
    trafos = branch(trafo, grid)
    trafos = insert(trafos, "k ~ k_cond", k="k1", k_cond=col("drug", fmt="k1_{}"),
                    condition=pl.col("drug") != "none")
"""

import logging
from typing import Any, Optional, Union

import polars as pl

from ..conditions import ConditionGrid, Predicate
from ..errors import AlreadyBranchedError
from .lookups import EditContext, resolve_all
from .template import Template, expand
from .types import Trafo, TrafoList

logger = logging.getLogger(__name__)

Base = Optional[Union[Trafo, TrafoList]]


def _check_base(base: Base) -> Union[Trafo, TrafoList]:
    if base is None:
        return Trafo()
    if isinstance(base, (Trafo, TrafoList)):
        return base
    raise TypeError(f"Expected None, Trafo or TrafoList, got {type(base).__name__}")


def _selected(base: Union[Trafo, TrafoList], condition: Optional[Predicate]):
    """Conditions an edit applies to (None for a bare Trafo)."""
    if isinstance(base, Trafo):
        if condition is not None:
            raise ValueError("A condition predicate requires a TrafoList (see branch())")
        return None
    return base.grid.select(condition)


def _define_one(trafo: Trafo, template: Template, substitutions: dict, context: EditContext) -> Trafo:
    arguments = resolve_all(substitutions.items(), context)
    pairs = expand(template, arguments)
    return trafo.with_equations(dict(pairs))


def _insert_one(trafo: Trafo, template: Template, substitutions: dict, context: EditContext) -> Trafo:
    arguments = resolve_all(substitutions.items(), context)
    pairs = expand(template, arguments)

    replacements = {}
    for target, replacement in pairs:
        if target in replacements and replacements[target] != replacement:
            raise ValueError(
                f"Symbol {target!r} has conflicting replacements in one insert: "
                f"{str(replacements[target])!r} and {str(replacement)!r}"
            )
        replacements[target] = replacement

    symbols = set(trafo.symbols())
    unmatched = [t for t in replacements if t not in symbols]
    if unmatched:
        where = f" in condition {context.condition!r}" if context.condition else ""
        logger.debug(f"insert(): no occurrences of {unmatched}{where}")

    return trafo.substitute(replacements)


def define(base: Base, template: str, /, *, condition: Optional[Predicate] = None, **substitutions: Any) -> Union[Trafo, TrafoList]:
    """Add equations to a Trafo or TrafoList.

    The template ``"<lhs> ~ <rhs>"`` is expanded against the keyword
    substitutions (see trafo.template); each resulting equation is
    appended, or overwrites an existing equation of the same name.

    Args:
        base: None (start empty), a Trafo, or a TrafoList
        template: Equation template, e.g. ``"x ~ x"``
        condition: For a TrafoList, predicate selecting the conditions
            that receive the equations
        **substitutions: Placeholder -> value, sequence, col() or
            CurrentSymbols()

    Returns:
        New Trafo (for None/Trafo) or TrafoList

    Raises:
        TemplateLengthMismatch: If substitution lengths disagree
        UnknownSymbolError: If a lookup references a missing column/symbol

    Example:
        >>> define(None, "x ~ y", x=["A", "B"], y=["a", "b"])
    """
    base = _check_base(base)
    parsed = Template.parse(template)
    selected = _selected(base, condition)

    if isinstance(base, Trafo):
        return _define_one(base, parsed, substitutions, EditContext(base))

    return base.map(
        lambda c, t: _define_one(t, parsed, substitutions, EditContext(t, base.grid, c)),
        conditions=selected,
    )


def insert(base: Union[Trafo, TrafoList], template: str, /, *, condition: Optional[Predicate] = None, **substitutions: Any) -> Union[Trafo, TrafoList]:
    """Rewrite symbols on the right-hand sides of an existing Trafo/TrafoList.

    The template ``"<target> ~ <replacement>"`` is expanded against the
    keyword substitutions; all targets of one call are replaced
    simultaneously in every equation. Targets that occur nowhere are a
    no-op, not an error.

    For a TrafoList the edit runs per condition: col() arguments take the
    condition's grid values, CurrentSymbols() sees that condition's trafo,
    and ``condition`` restricts the edit to rows satisfying the predicate
    (other conditions are returned unchanged).

    Args:
        base: Trafo or TrafoList to edit
        template: Substitution template, e.g. ``"x ~ exp(x)"``
        condition: Predicate on grid rows (TrafoList only)
        **substitutions: Placeholder -> value, sequence, col() or
            CurrentSymbols()

    Returns:
        New Trafo or TrafoList

    Raises:
        TemplateLengthMismatch: If substitution lengths disagree
        UnknownSymbolError: If a lookup references a missing column/symbol
    """
    if not isinstance(base, (Trafo, TrafoList)):
        raise TypeError(f"insert() requires a Trafo or TrafoList, got {type(base).__name__}")
    parsed = Template.parse(template)
    selected = _selected(base, condition)

    if isinstance(base, Trafo):
        return _insert_one(base, parsed, substitutions, EditContext(base))

    return base.map(
        lambda c, t: _insert_one(t, parsed, substitutions, EditContext(t, base.grid, c)),
        conditions=selected,
    )


def branch(trafo: Trafo, grid: Union[ConditionGrid, pl.DataFrame]) -> TrafoList:
    """Copy a Trafo to every condition of a grid.

    Args:
        trafo: Single, not yet branched Trafo
        grid: ConditionGrid or polars DataFrame of conditions

    Returns:
        TrafoList keyed by the grid's row names, grid attached

    Raises:
        AlreadyBranchedError: If trafo is already a TrafoList
    """
    if isinstance(trafo, TrafoList):
        raise AlreadyBranchedError(
            "Cannot branch a TrafoList; use insert()/define() with condition= to "
            "specialize individual conditions"
        )
    if not isinstance(trafo, Trafo):
        raise TypeError(f"branch() requires a Trafo, got {type(trafo).__name__}")

    grid = ConditionGrid.coerce(grid)
    logger.info(f"Branching trafo with {len(trafo)} equations into {len(grid)} conditions")
    return TrafoList({c: trafo for c in grid.conditions}, grid)
