"""Objective functions and their values.

The numeric loss of a calibration (data fit, priors) is provided by the
caller; this module only defines how objective values combine:

    obj = data_term * P(trafos) + normal_prior({"k1": 0.0}, sigma=2.0)
    obj({"k1": 0.1, "k2": 0.4})   # ObjectiveValue(value=..., gradient=..., hessian=...)

``*`` pulls derivatives back through the transformation (J^T g and the
Gauss-Newton J^T H J); ``+`` sums values, gradients and Hessians of both
terms evaluated at the same outer parameters.
"""

from dataclasses import dataclass
from functools import reduce
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .base import ConditionalFunction, Conditions
from .parvec import ParVec


@dataclass(frozen=True, eq=False)
class ObjectiveValue:
    """Objective value with optional gradient and Hessian.

    Attributes:
        value: Scalar objective value
        gradient: d(value)/d(names), shape (n,)
        hessian: Second derivatives, shape (n, n)
        names: Parameter names the derivatives refer to
    """
    value: float
    gradient: Optional[np.ndarray] = None
    hessian: Optional[np.ndarray] = None
    names: Tuple[str, ...] = ()

    def __post_init__(self):
        """Validate derivative shapes."""
        object.__setattr__(self, "value", float(self.value))
        object.__setattr__(self, "names", tuple(self.names))
        n = len(self.names)
        if self.gradient is not None:
            gradient = np.asarray(self.gradient, dtype=float).reshape(-1)
            if gradient.shape != (n,):
                raise ValueError(f"Gradient must have shape ({n},), got {gradient.shape}")
            object.__setattr__(self, "gradient", gradient)
        if self.hessian is not None:
            hessian = np.asarray(self.hessian, dtype=float)
            if hessian.shape != (n, n):
                raise ValueError(f"Hessian must have shape ({n}, {n}), got {hessian.shape}")
            object.__setattr__(self, "hessian", hessian)

    def _embed(self, names: Tuple[str, ...]) -> Tuple[Optional[np.ndarray], Optional[np.ndarray]]:
        idx = np.array([names.index(n) for n in self.names], dtype=int)
        gradient = hessian = None
        if self.gradient is not None:
            gradient = np.zeros(len(names))
            gradient[idx] = self.gradient
        if self.hessian is not None:
            hessian = np.zeros((len(names), len(names)))
            hessian[np.ix_(idx, idx)] = self.hessian
        return gradient, hessian

    def __add__(self, other: Union["ObjectiveValue", int, float]) -> "ObjectiveValue":
        if isinstance(other, (int, float)) and not isinstance(other, bool):
            return ObjectiveValue(self.value + other, self.gradient, self.hessian, self.names)
        if not isinstance(other, ObjectiveValue):
            return NotImplemented
        names = self.names + tuple(n for n in other.names if n not in self.names)
        g1, h1 = self._embed(names)
        g2, h2 = other._embed(names)
        gradient = g1 + g2 if g1 is not None and g2 is not None else None
        hessian = h1 + h2 if h1 is not None and h2 is not None else None
        return ObjectiveValue(self.value + other.value, gradient, hessian, names)

    __radd__ = __add__

    def chain(self, pars: ParVec) -> "ObjectiveValue":
        """Pull derivatives back to pars' derivative names.

        With J = d(names)/d(pars.deriv_names): gradient J^T g, Hessian J^T H J.
        """
        if pars.jacobian is None:
            return ObjectiveValue(self.value)
        jacobian = pars.jacobian[pars.index(self.names)] if self.names else np.zeros((0, len(pars.deriv_names)))
        gradient = None if self.gradient is None else jacobian.T @ self.gradient
        hessian = None if self.hessian is None else jacobian.T @ self.hessian @ jacobian
        return ObjectiveValue(self.value, gradient, hessian, pars.deriv_names)

    def gradient_dict(self) -> Dict[str, float]:
        """Gradient as name -> value."""
        if self.gradient is None:
            return {}
        return {n: float(g) for n, g in zip(self.names, self.gradient)}

    def __repr__(self) -> str:
        parts = [f"value={self.value:.6g}"]
        if self.gradient is not None:
            parts.append(f"gradient={self.gradient_dict()}")
        if self.hessian is not None:
            parts.append("hessian=...")
        return f"ObjectiveValue({', '.join(parts)})"


# (pars, condition) -> ObjectiveValue with derivatives with respect to pars' names
Contribution = Callable[[ParVec, Optional[str]], ObjectiveValue]


def _total(values) -> ObjectiveValue:
    values = list(values)
    if not values:
        return ObjectiveValue(0.0)
    return reduce(lambda a, b: a + b, values)


class ObjectiveFunction(ConditionalFunction):
    """Objective assembled from per-condition contributions.

    Calling a condition-indexed objective sums the contributions of the
    requested conditions.
    """

    def __init__(
        self,
        fn: Optional[Contribution] = None,
        conditions: Optional[Sequence[str]] = None,
        parameters: Sequence[str] = (),
        evaluator=None,
    ):
        """Initialize from a contribution callable.

        Args:
            fn: (pars, condition) -> ObjectiveValue, derivatives with
                respect to names of pars
            conditions: Conditions covered (None: condition-agnostic)
            parameters: Names the objective reads, for introspection
            evaluator: Internal; used when deriving composed functions
        """
        if evaluator is None:
            if fn is None:
                raise ValueError("ObjectiveFunction requires a contribution callable")

            def evaluator(pars: ParVec, condition: Optional[str], deriv: bool) -> ObjectiveValue:
                result = fn(pars, condition)
                if not isinstance(result, ObjectiveValue):
                    raise TypeError(
                        f"Objective contribution must return ObjectiveValue, got {type(result).__name__}"
                    )
                return result.chain(pars)

        super().__init__(evaluator, conditions, parameters)

    def _derive(self, evaluator, conditions, parameters, union_with=None):
        return ObjectiveFunction(evaluator=evaluator, conditions=conditions, parameters=parameters)

    def __call__(
        self,
        pars: Union[ParVec, Mapping[str, float]],
        conditions: Conditions = None,
        deriv: bool = True,
    ) -> ObjectiveValue:
        """Evaluate and sum over the requested conditions."""
        parvec = ParVec.coerce(pars, deriv=deriv)
        return _total(self.evaluate(parvec, c, deriv) for c in self.select(conditions))

    def __add__(self, other: "ObjectiveFunction") -> "ObjectiveFunction":
        if not isinstance(other, ObjectiveFunction):
            return NotImplemented
        return ObjectiveSum((self, other))

    def __repr__(self) -> str:
        scope = "global" if self.conditions is None else f"{len(self.conditions)} conditions"
        return f"ObjectiveFunction({scope})"


class ObjectiveSum(ObjectiveFunction):
    """Sum of independent objective terms, evaluated at the same point."""

    def __init__(self, terms: Sequence[ObjectiveFunction]):
        flat = []
        for term in terms:
            flat.extend(term.terms if isinstance(term, ObjectiveSum) else [term])
        self.terms = tuple(flat)

        indexed = [t.conditions for t in self.terms if t.conditions is not None]
        conditions = None
        if indexed:
            seen: Dict[str, None] = {}
            for group in indexed:
                for c in group:
                    seen.setdefault(c, None)
            conditions = tuple(seen)
        parameters: Dict[str, None] = {}
        for t in self.terms:
            for name in t.parameters():
                parameters.setdefault(name, None)

        super().__init__(evaluator=self._evaluate_terms, conditions=conditions, parameters=tuple(parameters))

    def _evaluate_terms(self, pars: ParVec, condition: Optional[str], deriv: bool) -> ObjectiveValue:
        return _total(
            t.evaluate(pars, condition, deriv)
            for t in self.terms
            if t.conditions is None or condition in t.conditions
        )

    def __call__(
        self,
        pars: Union[ParVec, Mapping[str, float]],
        conditions: Conditions = None,
        deriv: bool = True,
    ) -> ObjectiveValue:
        """Evaluate every term and sum; condition-agnostic terms count once."""
        parvec = ParVec.coerce(pars, deriv=deriv)
        requested = None if conditions is None else set(self.select(conditions))
        values = []
        for term in self.terms:
            if term.conditions is None:
                values.append(term(parvec, deriv=deriv))
                continue
            own = [c for c in term.conditions if requested is None or c in requested]
            if own:
                values.append(term(parvec, own, deriv))
        return _total(values)

    def __mul__(self, other):
        from .parfn import ParameterTransformation

        if not isinstance(other, ParameterTransformation):
            return NotImplemented
        return ObjectiveSum(tuple(t * other for t in self.terms))

    def __repr__(self) -> str:
        return f"ObjectiveSum({len(self.terms)} terms)"


def normal_prior(
    mu: Mapping[str, float],
    sigma: Union[float, Mapping[str, float]] = 1.0,
) -> ObjectiveFunction:
    """Quadratic penalty sum((p - mu)^2 / sigma^2) on selected parameters.

    Args:
        mu: Center per parameter
        sigma: Common or per-parameter scale (positive)

    Returns:
        Condition-agnostic ObjectiveFunction with exact gradient and Hessian
    """
    names = tuple(mu)
    center = np.array([float(mu[n]) for n in names])
    if isinstance(sigma, Mapping):
        missing = [n for n in names if n not in sigma]
        if missing:
            raise ValueError(f"sigma missing for parameters: {missing}")
        scale = np.array([float(sigma[n]) for n in names])
    else:
        scale = np.full(len(names), float(sigma))
    if np.any(scale <= 0):
        raise ValueError(f"sigma must be positive, got {scale.tolist()}")
    weights = 1.0 / scale**2

    def contribution(pars: ParVec, condition: Optional[str]) -> ObjectiveValue:
        residual = pars.take(names) - center
        return ObjectiveValue(
            value=float(np.sum(weights * residual**2)),
            gradient=2.0 * weights * residual,
            hessian=np.diag(2.0 * weights),
            names=names,
        )

    return ObjectiveFunction(contribution, parameters=names)
