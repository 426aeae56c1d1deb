"""ParVec: named parameter values carrying their first derivatives.

Every transformation function takes a ParVec and returns a ParVec whose
Jacobian is expressed with respect to the *input's* derivative names.
Nesting evaluations therefore applies the chain rule automatically:

    p = ParVec.from_mapping({"a": 3.0, "b": 2.0})   # identity Jacobian
    q = f.evaluate(p)     # dq/d(a, b)
    r = g.evaluate(q)     # dr/d(a, b)
"""

from dataclasses import dataclass
from typing import Dict, Iterator, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import polars as pl

from ..errors import UnknownSymbolError


def _frozen(array: np.ndarray) -> np.ndarray:
    array = np.array(array, dtype=float)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class ParVec(Mapping[str, float]):
    """Immutable named vector with an optional Jacobian.

    Attributes:
        names: Parameter names
        values: Values, same order as names
        jacobian: d(values)/d(deriv_names), shape (len(names), len(deriv_names))
        deriv_names: Names the Jacobian columns refer to
    """
    names: Tuple[str, ...]
    values: np.ndarray
    jacobian: Optional[np.ndarray] = None
    deriv_names: Tuple[str, ...] = ()

    def __post_init__(self):
        """Validate shapes and freeze arrays."""
        object.__setattr__(self, "names", tuple(self.names))
        object.__setattr__(self, "deriv_names", tuple(self.deriv_names))
        if len(set(self.names)) != len(self.names):
            raise ValueError(f"Duplicate parameter names: {list(self.names)}")

        values = _frozen(np.atleast_1d(self.values) if len(self.names) else np.zeros(0))
        if values.shape != (len(self.names),):
            raise ValueError(
                f"Expected {len(self.names)} values, got array of shape {values.shape}"
            )
        object.__setattr__(self, "values", values)

        if self.jacobian is not None:
            jacobian = _frozen(np.reshape(self.jacobian, (len(self.names), len(self.deriv_names))))
            object.__setattr__(self, "jacobian", jacobian)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, float], deriv: bool = True) -> "ParVec":
        """Build from name -> value, seeding an identity Jacobian."""
        names = tuple(mapping)
        values = np.array([float(mapping[n]) for n in names], dtype=float)
        if not deriv:
            return cls(names, values)
        return cls(names, values, np.eye(len(names)), names)

    @classmethod
    def coerce(cls, pars: Union["ParVec", Mapping[str, float]], deriv: bool = True) -> "ParVec":
        """Accept a ParVec or a plain mapping."""
        if isinstance(pars, ParVec):
            return pars if deriv else pars.without_deriv()
        if isinstance(pars, Mapping):
            return cls.from_mapping(pars, deriv=deriv)
        raise TypeError(f"Expected ParVec or mapping of parameters, got {type(pars).__name__}")

    def __getitem__(self, name: str) -> float:
        try:
            return float(self.values[self.names.index(name)])
        except ValueError:
            raise UnknownSymbolError([name], available=self.names, what="parameters") from None

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)

    def index(self, names: Sequence[str]) -> np.ndarray:
        """Positions of names.

        Raises:
            UnknownSymbolError: If any name is absent
        """
        missing = [n for n in names if n not in self.names]
        if missing:
            raise UnknownSymbolError(missing, available=self.names, what="parameters")
        return np.array([self.names.index(n) for n in names], dtype=int)

    def take(self, names: Sequence[str]) -> np.ndarray:
        """Values of names, in the given order."""
        return self.values[self.index(names)] if names else np.zeros(0)

    def subset(self, names: Sequence[str]) -> "ParVec":
        """Restrict to a subset of names."""
        idx = self.index(names)
        jacobian = None if self.jacobian is None else self.jacobian[idx]
        return ParVec(tuple(names), self.values[idx], jacobian, self.deriv_names)

    def without_deriv(self) -> "ParVec":
        """Same values, no Jacobian."""
        if self.jacobian is None:
            return self
        return ParVec(self.names, self.values)

    def chain(self, upstream: "ParVec") -> "ParVec":
        """Re-express the Jacobian with respect to upstream's derivative names.

        self.jacobian is taken with respect to self.deriv_names, which must
        be values of upstream; the result is d(self)/d(upstream.deriv_names).
        """
        if self.jacobian is None or upstream.jacobian is None:
            return self.without_deriv()
        idx = upstream.index(self.deriv_names)
        inner = upstream.jacobian[idx] if len(idx) else np.zeros((0, len(upstream.deriv_names)))
        return ParVec(self.names, self.values, self.jacobian @ inner, upstream.deriv_names)

    def to_dict(self) -> Dict[str, float]:
        """Plain name -> value dict."""
        return {n: float(v) for n, v in zip(self.names, self.values)}

    def to_frame(self) -> pl.DataFrame:
        """Two-column table of names and values."""
        return pl.DataFrame({"name": list(self.names), "value": self.values.tolist()})

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParVec):
            return NotImplemented
        if self.names != other.names or not np.array_equal(self.values, other.values):
            return False
        if (self.jacobian is None) != (other.jacobian is None):
            return False
        if self.jacobian is None:
            return True
        return self.deriv_names == other.deriv_names and np.array_equal(self.jacobian, other.jacobian)

    __hash__ = None

    def __repr__(self) -> str:
        items = ", ".join(f"{n}={v:.6g}" for n, v in zip(self.names, self.values))
        suffix = f"; d/d{list(self.deriv_names)}" if self.jacobian is not None else ""
        return f"ParVec({items}{suffix})"
