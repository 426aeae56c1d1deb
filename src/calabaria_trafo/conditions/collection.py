"""Condition-indexed collections and their union operator."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional, Sequence, Tuple

import polars as pl

from ..errors import ConditionMismatchError, DuplicateConditionError
from .grid import ConditionGrid


def union_conditions(left: Sequence[str], right: Sequence[str]) -> Tuple[str, ...]:
    """Ordered union of two disjoint condition sets.

    Raises:
        DuplicateConditionError: If a condition occurs in both
    """
    duplicates = [c for c in left if c in set(right)]
    if duplicates:
        raise DuplicateConditionError(duplicates)
    return tuple(left) + tuple(right)


@dataclass(frozen=True, eq=False)
class ConditionCollection(Mapping[str, Any]):
    """Immutable mapping from condition name to an item.

    ``a + b`` is the union of both collections; sharing a condition is an
    error rather than an overwrite.

    Attributes:
        items_by_condition: Condition -> item, in insertion order
        grid: Optional condition grid describing the conditions
    """
    items_by_condition: Mapping[str, Any] = field(default_factory=dict)
    grid: Optional[ConditionGrid] = None

    def __post_init__(self):
        """Freeze the mapping and check it against the grid."""
        object.__setattr__(
            self, "items_by_condition", MappingProxyType(dict(self.items_by_condition))
        )
        if self.grid is not None:
            unknown = [c for c in self.items_by_condition if c not in self.grid]
            if unknown:
                raise ValueError(
                    f"Conditions not in grid: {unknown}. Available: {list(self.grid.conditions)}"
                )

    def __getitem__(self, condition: str) -> Any:
        return self.items_by_condition[condition]

    def __iter__(self) -> Iterator[str]:
        return iter(self.items_by_condition)

    def __len__(self) -> int:
        return len(self.items_by_condition)

    @property
    def conditions(self) -> Tuple[str, ...]:
        """Condition names in order."""
        return tuple(self.items_by_condition)

    def _merged_grid(self, other: "ConditionCollection") -> Optional[ConditionGrid]:
        if self.grid is None or other.grid is None:
            return None
        frame = pl.concat([self.grid.frame, other.grid.frame], how="diagonal_relaxed")
        return ConditionGrid(frame)

    def __add__(self, other: "ConditionCollection") -> "ConditionCollection":
        if not isinstance(other, ConditionCollection):
            return NotImplemented
        union_conditions(self.conditions, other.conditions)
        merged = {**self.items_by_condition, **other.items_by_condition}
        return type(self)(merged, grid=self._merged_grid(other))

    @staticmethod
    def _same_item(a: Any, b: Any) -> bool:
        if isinstance(a, pl.DataFrame) and isinstance(b, pl.DataFrame):
            return a.equals(b)
        return a is b or a == b

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConditionCollection):
            return NotImplemented
        return self.conditions == other.conditions and all(
            self._same_item(self[c], other[c]) for c in self.conditions
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(conditions={list(self.conditions)})"


@dataclass(frozen=True, eq=False, repr=False)
class DataList(ConditionCollection):
    """Measurement tables, one polars DataFrame per condition."""

    def __post_init__(self):
        """Validate that every item is a DataFrame."""
        super().__post_init__()
        for condition, frame in self.items_by_condition.items():
            if not isinstance(frame, pl.DataFrame):
                raise TypeError(
                    f"Data for condition {condition!r} must be a polars DataFrame, "
                    f"got {type(frame).__name__}"
                )

    @classmethod
    def from_frame(cls, frame: pl.DataFrame, by: str, grid: Optional[ConditionGrid] = None) -> "DataList":
        """Split one long table into per-condition tables.

        Args:
            frame: Long-format measurement table
            by: Column holding the condition name
            grid: Optional grid for the conditions

        Returns:
            DataList keyed by the distinct values of ``by`` in order of appearance
        """
        if by not in frame.columns:
            raise ValueError(f"Column {by!r} not in data. Available: {frame.columns}")
        parts = {}
        for key, part in frame.group_by(by, maintain_order=True):
            name = key[0] if isinstance(key, tuple) else key
            parts[str(name)] = part.drop(by)
        return cls(parts, grid=grid)

    def to_frame(self, by: str = "condition") -> pl.DataFrame:
        """Concatenate into one long table with a condition column."""
        return pl.concat(
            [
                frame.with_columns(pl.lit(condition).alias(by))
                for condition, frame in self.items_by_condition.items()
            ],
            how="diagonal_relaxed",
        )


def composed_conditions(
    left: Optional[Sequence[str]], right: Optional[Sequence[str]]
) -> Optional[Tuple[str, ...]]:
    """Conditions of ``left * right``.

    A condition-agnostic operand (None) is broadcast to every condition of
    the other; two condition-indexed operands must share the same keys.
    Broadcasting is deliberately allowed on the left as well as the right,
    so a global model or objective composed with a per-condition
    transformation is evaluated once per condition.

    Raises:
        ConditionMismatchError: If both are condition-indexed with different keys
    """
    if right is None:
        return None if left is None else tuple(left)
    if left is None:
        return tuple(right)
    mismatch = sorted(set(left) ^ set(right))
    if mismatch:
        raise ConditionMismatchError(
            f"Cannot compose operands with different conditions: {mismatch} "
            f"present in only one of {list(left)} and {list(right)}",
            missing=mismatch,
        )
    return tuple(left)
