"""Error types raised by calabaria-trafo.

Every error derives from TrafoError and from the builtin exception a
caller would naturally catch for the same situation, so that
``except KeyError`` keeps working around symbol and condition lookups.
"""

from typing import Iterable, Optional, Sequence

import numpy as np


class TrafoError(Exception):
    """Base class for all calabaria-trafo errors."""


class TemplateLengthMismatch(TrafoError, ValueError):
    """Substitution arguments of one template call have inconsistent lengths."""

    def __init__(self, lengths: dict):
        self.lengths = dict(lengths)
        detail = ", ".join(f"{k}={v}" for k, v in self.lengths.items())
        super().__init__(
            f"Substitution arguments must have equal length (or length 1), got: {detail}"
        )


class AlreadyBranchedError(TrafoError, TypeError):
    """branch() was called on a TrafoList."""


class ConditionMismatchError(TrafoError, KeyError):
    """Condition-indexed operands do not share the same condition keys."""

    def __init__(self, message: str, missing: Iterable[str] = ()):
        self.missing = tuple(missing)
        super().__init__(message)

    def __str__(self) -> str:
        return str(self.args[0])


class DuplicateConditionError(TrafoError, KeyError):
    """Union of condition-indexed operands that both define a condition."""

    def __init__(self, duplicates: Iterable[str]):
        self.duplicates = tuple(duplicates)
        super().__init__(
            f"Conditions defined by both operands: {sorted(self.duplicates)}"
        )

    def __str__(self) -> str:
        return str(self.args[0])


class UnknownSymbolError(TrafoError, KeyError):
    """A required symbol, column or parameter is not available."""

    def __init__(self, names: Iterable[str], available: Optional[Iterable[str]] = None, what: str = "symbols"):
        self.names = tuple(names)
        message = f"Unknown {what}: {sorted(self.names)}"
        if available is not None:
            message += f". Available: {sorted(available)}"
        super().__init__(message)

    def __str__(self) -> str:
        return str(self.args[0])


class NoConvergenceError(TrafoError, RuntimeError):
    """The implicit Newton solve did not reach its tolerance."""

    def __init__(
        self,
        message: str,
        iterations: int,
        residual_norm: float,
        last_iterate: Optional[np.ndarray] = None,
        names: Sequence[str] = (),
    ):
        self.iterations = iterations
        self.residual_norm = residual_norm
        self.last_iterate = last_iterate
        self.names = tuple(names)
        super().__init__(
            f"{message} (iterations={iterations}, residual={residual_norm:.3e})"
        )
