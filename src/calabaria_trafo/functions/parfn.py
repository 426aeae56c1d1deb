"""Parameter transformation functions built from Trafos.

``P(trafo)`` compiles the symbolic equations once and returns a callable
mapping outer parameter values to inner parameter values:

    p = P(eqnvec(X="a + b", Y="a - b"))
    p({"a": 3, "b": 2})                      # ParVec(X=5, Y=1; d/d['a', 'b'])

    q = P(eqnvec(X="X + Y - 2*a", Y="X - Y - 2*b"), method="implicit")
    q({"a": 3, "b": 2})                      # ParVec(X=5, Y=1, a=3, b=2; ...)

Explicit functions evaluate the right-hand sides directly. Implicit
functions treat the right-hand sides as residuals that must vanish and
solve for the inner parameters by damped Newton iteration; their output
includes the outer parameters as well.
"""

import logging
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from ..config import SolverOptions
from ..constants import DEFAULT_INITIAL_GUESS, EXPLICIT, IMPLICIT, METHODS
from ..errors import NoConvergenceError
from ..symbols import EquationVector, Expression
from ..trafo import Trafo, TrafoList
from .base import ConditionalFunction, Conditions, Evaluator, _ordered_union
from .parvec import ParVec
from .solver import linear_solve, solve_newton

logger = logging.getLogger(__name__)


def _compile_vector(expressions: Sequence[Expression], args: Sequence[str]) -> Callable[[np.ndarray], np.ndarray]:
    compiled = [e.compile(args) for e in expressions]

    def fn(x: np.ndarray) -> np.ndarray:
        return np.array([float(f(*x)) for f in compiled], dtype=float)

    return fn


def _compile_matrix(expressions: Sequence[Expression], wrt: Sequence[str], args: Sequence[str]) -> Callable[[np.ndarray], np.ndarray]:
    rows = [[e.diff(name).compile(args) for name in wrt] for e in expressions]
    shape = (len(expressions), len(wrt))

    def fn(x: np.ndarray) -> np.ndarray:
        out = np.zeros(shape)
        for i, row in enumerate(rows):
            for j, f in enumerate(row):
                out[i, j] = float(f(*x))
        return out

    return fn


class ExplicitEvaluator:
    """Direct evaluation of the right-hand sides of one Trafo."""

    def __init__(self, trafo: Trafo):
        self.inner = trafo.inner_parameters()
        self.outer = trafo.outer_parameters(EXPLICIT)
        expressions = list(trafo.equations.values())
        self._values = _compile_vector(expressions, self.outer)
        self._jacobian = _compile_matrix(expressions, self.outer, self.outer)
        logger.debug(f"Compiled explicit transformation {list(self.inner)} <- {list(self.outer)}")

    def __call__(self, pars: ParVec, condition: Optional[str], deriv: bool) -> ParVec:
        x = pars.take(self.outer)
        values = self._values(x)
        if not deriv or pars.jacobian is None:
            return ParVec(self.inner, values)
        local = ParVec(self.inner, values, self._jacobian(x), self.outer)
        return local.chain(pars)


class ImplicitEvaluator:
    """Root-finding evaluation of one Trafo whose right-hand sides must vanish."""

    def __init__(self, trafo: Trafo, initial_guess: Mapping[str, float], options: SolverOptions):
        self.inner = trafo.inner_parameters()
        self.outer = trafo.outer_parameters(IMPLICIT)
        self.guess = {n: float(initial_guess.get(n, DEFAULT_INITIAL_GUESS)) for n in self.inner}
        self.options = options
        args = self.inner + self.outer
        expressions = list(trafo.equations.values())
        self._residual = _compile_vector(expressions, args)
        self._dx = _compile_matrix(expressions, self.inner, args)
        self._dp = _compile_matrix(expressions, self.outer, args)
        logger.debug(f"Compiled implicit transformation {list(self.inner)} given {list(self.outer)}")

    def __call__(self, pars: ParVec, condition: Optional[str], deriv: bool) -> ParVec:
        p = pars.take(self.outer)
        x0 = np.array(
            [pars[n] if n in pars.names else self.guess[n] for n in self.inner], dtype=float
        )
        x = solve_newton(
            lambda x: self._residual(np.concatenate([x, p])),
            lambda x: self._dx(np.concatenate([x, p])),
            x0,
            self.options,
            names=self.inner,
        )
        names = self.inner + self.outer
        values = np.concatenate([x, p])
        if not deriv or pars.jacobian is None:
            return ParVec(names, values)

        # Implicit function theorem: dx/dp = -(dR/dx)^-1 dR/dp
        point = np.concatenate([x, p])
        dx, dp = self._dx(point), self._dp(point)
        if not (np.all(np.isfinite(dx)) and np.all(np.isfinite(dp))):
            raise NoConvergenceError(
                "Jacobian is not finite at the solution", 0, 0.0, last_iterate=x, names=self.inner
            )
        dxdp = linear_solve(dx, -dp) if len(self.inner) else np.zeros((0, len(self.outer)))
        local = np.vstack([np.reshape(dxdp, (len(self.inner), len(self.outer))), np.eye(len(self.outer))])
        return ParVec(names, values, local, self.outer).chain(pars)


class ParameterTransformation(ConditionalFunction):
    """Callable map from outer to inner parameter values.

    Built by P(). Calling a condition-agnostic transformation returns a
    ParVec; a condition-indexed one returns a dict condition -> ParVec.
    """

    def __init__(
        self,
        evaluator: Evaluator,
        conditions: Optional[Sequence[str]] = None,
        parameters: Sequence[str] = (),
        inner: Sequence[str] = (),
        method: Optional[str] = None,
    ):
        super().__init__(evaluator, conditions, parameters)
        self._inner = tuple(inner)
        self.method = method

    def inner_parameters(self) -> Tuple[str, ...]:
        """Names produced (union over conditions)."""
        return self._inner

    def outer_parameters(self) -> Tuple[str, ...]:
        """Names required as input (union over conditions)."""
        return self.parameters()

    def _derive(self, evaluator, conditions, parameters, union_with=None):
        if union_with is None:
            return ParameterTransformation(
                evaluator, conditions, parameters, inner=self._inner, method=self.method
            )
        return ParameterTransformation(
            evaluator,
            conditions,
            parameters,
            inner=_ordered_union(self._inner, union_with.inner_parameters()),
            method=self.method if union_with.method == self.method else None,
        )

    def __call__(
        self,
        pars: Union[ParVec, Mapping[str, float]],
        conditions: Conditions = None,
        deriv: bool = True,
    ) -> Union[ParVec, Dict[str, ParVec]]:
        """Evaluate the transformation.

        Args:
            pars: Outer parameter values (mapping or ParVec)
            conditions: Subset of conditions (all when None)
            deriv: Propagate Jacobians

        Returns:
            ParVec, or dict condition -> ParVec for a condition-indexed function

        Raises:
            UnknownSymbolError: If an outer parameter is missing
            NoConvergenceError: If an implicit solve fails
            ConditionMismatchError: If a requested condition is unknown
        """
        parvec = ParVec.coerce(pars, deriv=deriv)
        if self.conditions is None:
            return self.evaluate(parvec, None, deriv)
        return {c: self.evaluate(parvec, c, deriv) for c in self.select(conditions)}

    def __repr__(self) -> str:
        scope = "global" if self.conditions is None else f"{len(self.conditions)} conditions"
        return (
            f"ParameterTransformation(method={self.method}, {scope}, "
            f"inner={list(self._inner)}, outer={list(self.parameters())})"
        )


def _compile(trafo: Trafo, method: str, initial_guess: Mapping[str, float], options: SolverOptions):
    if method == IMPLICIT:
        return ImplicitEvaluator(trafo, initial_guess, options)
    return ExplicitEvaluator(trafo)


def P(
    trafo: Union[Trafo, TrafoList, EquationVector, Mapping[str, Any]],
    method: str = EXPLICIT,
    conditions: Optional[Sequence[str]] = None,
    initial_guess: Optional[Mapping[str, float]] = None,
    options: Optional[SolverOptions] = None,
) -> ParameterTransformation:
    """Compile a Trafo or TrafoList into a parameter transformation function.

    Args:
        trafo: Trafo, TrafoList, EquationVector or name -> expression mapping
        method: "explicit" or "implicit"
        conditions: For a Trafo, conditions to register it under (global
            when None); for a TrafoList, subset of its conditions
        initial_guess: Implicit only: starting values per inner parameter
            (default 1.0); values passed at call time take precedence
        options: Implicit only: Newton solver options

    Returns:
        ParameterTransformation

    Example:
        >>> p = P(eqnvec(X="a + b", Y="a - b"))
        >>> p({"a": 3, "b": 2}).to_dict()
        {'X': 5.0, 'Y': 1.0}
    """
    if method not in METHODS:
        raise ValueError(f"Unknown method {method!r}. Available: {list(METHODS)}")
    if not isinstance(trafo, (Trafo, TrafoList)):
        trafo = Trafo(EquationVector.from_mapping(trafo))
    guess = dict(initial_guess or {})
    opts = options or SolverOptions()

    if isinstance(trafo, Trafo):
        compiled = _compile(trafo, method, guess, opts)
        return ParameterTransformation(
            compiled,
            conditions=conditions,
            parameters=compiled.outer,
            inner=compiled.inner if method == EXPLICIT else compiled.inner + compiled.outer,
            method=method,
        )

    selected = trafo.conditions if conditions is None else tuple(conditions)
    unknown = [c for c in selected if c not in trafo.conditions]
    if unknown:
        raise ValueError(f"Unknown conditions: {unknown}. Available: {list(trafo.conditions)}")

    # Branched lists share unedited Trafos; compile each distinct one once
    cache: Dict[Trafo, Any] = {}
    per_condition = {}
    for c in selected:
        t = trafo[c]
        if t not in cache:
            cache[t] = _compile(t, method, guess, opts)
        per_condition[c] = cache[t]
    logger.debug(f"Compiled {len(cache)} distinct trafos for {len(selected)} conditions")

    def evaluator(pars: ParVec, condition: Optional[str], deriv: bool) -> ParVec:
        return per_condition[condition](pars, condition, deriv)

    inner = _ordered_union(*(
        (e.inner if method == EXPLICIT else e.inner + e.outer) for e in per_condition.values()
    ))
    return ParameterTransformation(
        evaluator,
        conditions=selected,
        parameters=_ordered_union(*(e.outer for e in per_condition.values())),
        inner=inner,
        method=method,
    )
