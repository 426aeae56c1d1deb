"""Symbolic scalar expressions backed by sympy.

Expression is the only place that talks to sympy directly. The rest of
the package sees variables as plain strings and values as floats, so
that a symbol named ``S``, ``E`` or ``gamma`` is always a parameter and
never one of sympy's built-in constants or functions.
"""

import re
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Mapping, Sequence, Tuple, Union

import sympy as sp
from sympy.parsing.sympy_parser import (
    convert_xor,
    parse_expr,
    standard_transformations,
)

from ..errors import UnknownSymbolError

# Function names that keep their mathematical meaning
_KNOWN_FUNCTIONS = {
    "exp": sp.exp,
    "log": sp.log,
    "sqrt": sp.sqrt,
    "sin": sp.sin,
    "cos": sp.cos,
    "tan": sp.tan,
    "sinh": sp.sinh,
    "cosh": sp.cosh,
    "tanh": sp.tanh,
    "abs": sp.Abs,
    "Abs": sp.Abs,
}

_KNOWN_CONSTANTS = {"pi": sp.pi}

_IDENTIFIER = re.compile(r"[A-Za-z_]\w*")

_TRANSFORMATIONS = standard_transformations + (convert_xor,)

ExpressionLike = Union["Expression", str, int, float]


def _local_dict(text: str) -> Dict[str, object]:
    """Declare every identifier in text as a Symbol before parsing."""
    local: Dict[str, object] = dict(_KNOWN_FUNCTIONS)
    local.update(_KNOWN_CONSTANTS)
    for token in set(_IDENTIFIER.findall(text)):
        if token not in local:
            local[token] = sp.Symbol(token)
    return local


def _number(value: Union[int, float]) -> sp.Expr:
    if isinstance(value, bool):
        raise TypeError("Boolean values cannot be used in expressions")
    if isinstance(value, int):
        return sp.Integer(value)
    return sp.Float(value)


@dataclass(frozen=True)
class Expression:
    """Immutable symbolic scalar expression.

    Attributes:
        expr: Underlying sympy expression
    """
    expr: sp.Expr

    @classmethod
    def parse(cls, text: str) -> "Expression":
        """Parse an expression from text.

        Args:
            text: Expression such as ``"k1*exp(-x) + 2^n"``

        Returns:
            Parsed Expression

        Raises:
            ValueError: If the text cannot be parsed
        """
        text = text.strip()
        if not text:
            raise ValueError("Cannot parse an empty expression")
        try:
            parsed = parse_expr(
                text,
                local_dict=_local_dict(text),
                transformations=_TRANSFORMATIONS,
                evaluate=True,
            )
        except (SyntaxError, TypeError, ValueError, sp.SympifyError) as e:
            raise ValueError(f"Cannot parse expression {text!r}: {e}") from e
        if not isinstance(parsed, sp.Expr):
            raise ValueError(f"Expression {text!r} is not a scalar expression")
        return cls(parsed)

    @classmethod
    def coerce(cls, value: ExpressionLike) -> "Expression":
        """Convert a string, number or Expression into an Expression."""
        if isinstance(value, Expression):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        if isinstance(value, (int, float)):
            return cls(_number(value))
        raise TypeError(f"Cannot convert {type(value).__name__} to Expression")

    def variables(self) -> FrozenSet[str]:
        """Names of the free symbols."""
        return frozenset(s.name for s in self.expr.free_symbols)

    def ordered_variables(self) -> Tuple[str, ...]:
        """Free symbol names in order of first appearance in the printed form."""
        names = self.variables()
        seen = []
        for token in _IDENTIFIER.findall(str(self.expr)):
            if token in names and token not in seen:
                seen.append(token)
        return tuple(seen)

    def occurs(self, name: str) -> bool:
        """Check whether a symbol occurs in the expression."""
        return sp.Symbol(name) in self.expr.free_symbols

    def substitute(self, mapping: Mapping[str, ExpressionLike]) -> "Expression":
        """Replace symbols simultaneously.

        All replacements are computed against the original expression,
        so ``{"a": "b", "b": "a"}`` swaps the two symbols.

        Args:
            mapping: Symbol name -> replacement

        Returns:
            New Expression (self when nothing matches)
        """
        replacements = {
            sp.Symbol(name): Expression.coerce(value).expr
            for name, value in mapping.items()
        }
        replaced = self.expr.xreplace(replacements)
        if replaced is self.expr:
            return self
        return Expression(replaced)

    def diff(self, name: str) -> "Expression":
        """Symbolic derivative with respect to a symbol."""
        return Expression(sp.diff(self.expr, sp.Symbol(name)))

    def evaluate(self, bindings: Mapping[str, float]) -> float:
        """Evaluate numerically.

        Args:
            bindings: Values for (at least) every free symbol

        Returns:
            Value as float

        Raises:
            UnknownSymbolError: If a free symbol is unbound
        """
        missing = self.variables() - set(bindings)
        if missing:
            raise UnknownSymbolError(missing, available=bindings.keys(), what="variables")
        values = {sp.Symbol(name): _number(bindings[name]) for name in self.variables()}
        return float(self.expr.xreplace(values).evalf())

    def compile(self, args: Sequence[str]) -> Callable[..., float]:
        """Compile to a numpy function of the given positional arguments."""
        return sp.lambdify([sp.Symbol(a) for a in args], self.expr, modules="numpy")

    def __str__(self) -> str:
        return str(self.expr)

    def __repr__(self) -> str:
        return f"Expression({str(self.expr)!r})"
