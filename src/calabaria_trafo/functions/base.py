"""Condition-aware functions and their composition operators.

Every function kind (parameter transformations, predictions, objectives)
is a ConditionalFunction: a per-condition evaluator plus the tuple of
conditions it is defined for (None when it is condition-agnostic).

Operators:
    g * f   pipe the output of transformation f into g, per condition
    a + b   union of the condition sets of a and b
"""

from typing import Any, Callable, Dict, Iterable, Optional, Sequence, Tuple, Union

from ..conditions import composed_conditions, union_conditions
from ..errors import ConditionMismatchError
from .parvec import ParVec

# (pars, condition, deriv, **extra) -> result for one condition
Evaluator = Callable[..., Any]

Conditions = Optional[Union[str, Iterable[str]]]


def _ordered_union(*groups: Iterable[str]) -> Tuple[str, ...]:
    seen: Dict[str, None] = {}
    for group in groups:
        for name in group:
            seen.setdefault(name, None)
    return tuple(seen)


class ConditionalFunction:
    """Base class of all composable functions.

    Subclasses implement ``_derive`` to rebuild an instance of their own
    kind around a new evaluator, which is how ``*`` and ``+`` keep the
    kind of their left operand.
    """

    def __init__(
        self,
        evaluator: Evaluator,
        conditions: Optional[Sequence[str]] = None,
        parameters: Sequence[str] = (),
    ):
        """Initialize the function.

        Args:
            evaluator: (pars, condition, deriv, **extra) -> result
            conditions: Conditions the function is defined for; None when
                condition-agnostic
            parameters: Names the function reads from its input
        """
        self._evaluator = evaluator
        self._conditions = None if conditions is None else tuple(conditions)
        self._parameters = tuple(parameters)

    @property
    def conditions(self) -> Optional[Tuple[str, ...]]:
        """Condition names, or None for a condition-agnostic function."""
        return self._conditions

    def parameters(self) -> Tuple[str, ...]:
        """Names the function reads from its input vector."""
        return self._parameters

    def select(self, conditions: Conditions = None) -> Tuple[Optional[str], ...]:
        """Validate a requested condition subset.

        Returns:
            Requested conditions in the function's order; ``(None,)`` for a
            condition-agnostic function

        Raises:
            ConditionMismatchError: If a requested condition is unknown
        """
        if self._conditions is None:
            return (None,)
        if conditions is None:
            return self._conditions
        requested = (conditions,) if isinstance(conditions, str) else tuple(conditions)
        unknown = [c for c in requested if c not in self._conditions]
        if unknown:
            raise ConditionMismatchError(
                f"Unknown conditions: {unknown}. Available: {list(self._conditions)}",
                missing=unknown,
            )
        return tuple(c for c in self._conditions if c in requested)

    def evaluate(self, pars: ParVec, condition: Optional[str] = None, deriv: bool = True, **extra: Any) -> Any:
        """Evaluate for a single condition.

        A condition-agnostic function ignores the condition it is given,
        which is what lets it be broadcast over the conditions of another
        operand.
        """
        if self._conditions is None:
            condition = None
        elif condition not in self._conditions:
            raise ConditionMismatchError(
                f"Unknown condition: {condition!r}. Available: {list(self._conditions)}",
                missing=[condition],
            )
        return self._evaluator(pars, condition, deriv, **extra)

    def _derive(
        self,
        evaluator: Evaluator,
        conditions: Optional[Sequence[str]],
        parameters: Sequence[str],
        union_with: Optional["ConditionalFunction"] = None,
    ) -> "ConditionalFunction":
        raise NotImplementedError

    def __mul__(self, other: "ConditionalFunction") -> "ConditionalFunction":
        from .parfn import ParameterTransformation

        if not isinstance(other, ParameterTransformation):
            return NotImplemented
        return compose(self, other)

    def __add__(self, other: "ConditionalFunction") -> "ConditionalFunction":
        if not isinstance(other, ConditionalFunction) or not self._same_kind(other):
            return NotImplemented
        return union(self, other)

    def _same_kind(self, other: "ConditionalFunction") -> bool:
        return isinstance(other, type(self)) or isinstance(self, type(other))


def compose(left: ConditionalFunction, right: ConditionalFunction) -> ConditionalFunction:
    """``left * right``: feed right's output into left, per condition.

    Raises:
        ConditionMismatchError: If both operands are condition-indexed with
            different conditions
    """
    conditions = composed_conditions(left.conditions, right.conditions)

    def evaluator(pars: ParVec, condition: Optional[str], deriv: bool, **extra: Any) -> Any:
        intermediate = right.evaluate(pars, condition, deriv)
        return left.evaluate(intermediate, condition, deriv, **extra)

    return left._derive(evaluator, conditions, right.parameters())


def union(first: ConditionalFunction, second: ConditionalFunction) -> ConditionalFunction:
    """``first + second``: a function defined on both condition sets.

    Raises:
        ConditionMismatchError: If an operand is condition-agnostic
        DuplicateConditionError: If both define the same condition
    """
    if first.conditions is None or second.conditions is None:
        raise ConditionMismatchError(
            "The union operator requires condition-indexed operands; "
            "compose condition-agnostic functions with '*' instead"
        )
    conditions = union_conditions(first.conditions, second.conditions)
    owned = set(first.conditions)

    def evaluator(pars: ParVec, condition: Optional[str], deriv: bool, **extra: Any) -> Any:
        target = first if condition in owned else second
        return target.evaluate(pars, condition, deriv, **extra)

    parameters = _ordered_union(first.parameters(), second.parameters())
    return first._derive(evaluator, conditions, parameters, union_with=second)
