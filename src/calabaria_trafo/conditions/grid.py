"""ConditionGrid: the table of experimental conditions.

One row per condition. The row identifier column (``condition``) holds
the condition names reused as keys of every condition-indexed object.
The remaining columns are covariates: values that can be inserted into
expressions, or indicators used to select rows through predicates.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

import polars as pl
from polars.exceptions import PolarsError

from ..constants import CONDITION_COL, CONDITION_SEP
from ..errors import ConditionMismatchError, UnknownSymbolError

# A polars expression, or SQL-like text such as "drug = 'A' AND dose > 0"
Predicate = Union[pl.Expr, str]


def _derive_names(frame: pl.DataFrame) -> pl.DataFrame:
    """Add a condition column built from each row's covariate values."""
    if frame.width == 0:
        raise ValueError("Cannot derive condition names from a grid without columns")
    names = [
        CONDITION_SEP.join(str(v) for v in row)
        for row in frame.iter_rows()
    ]
    return frame.with_columns(pl.Series(CONDITION_COL, names, dtype=pl.Utf8))


@dataclass(frozen=True)
class ConditionGrid:
    """Typed table of conditions with unique row names.

    Attributes:
        frame: Table with a string ``condition`` column (first) and covariates
    """
    frame: pl.DataFrame

    def __post_init__(self):
        """Derive or validate the row names and fix column order."""
        frame = self.frame
        if CONDITION_COL not in frame.columns:
            frame = _derive_names(frame)
        frame = frame.with_columns(pl.col(CONDITION_COL).cast(pl.Utf8))

        names = frame[CONDITION_COL].to_list()
        if any(n is None or n == "" for n in names):
            raise ValueError("Condition names must be non-empty")
        if len(names) != len(set(names)):
            duplicates = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"Duplicate condition names: {duplicates}")

        ordered = [CONDITION_COL] + [c for c in frame.columns if c != CONDITION_COL]
        object.__setattr__(self, "frame", frame.select(ordered))

    @classmethod
    def from_dict(cls, data: Mapping[str, Sequence[Any]]) -> "ConditionGrid":
        """Build a grid from column -> values."""
        return cls(pl.DataFrame(dict(data)))

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "ConditionGrid":
        """Build a grid from one mapping per row."""
        return cls(pl.DataFrame(list(records)))

    @classmethod
    def coerce(cls, grid: Union["ConditionGrid", pl.DataFrame]) -> "ConditionGrid":
        """Accept either a grid or a plain polars DataFrame."""
        if isinstance(grid, ConditionGrid):
            return grid
        if isinstance(grid, pl.DataFrame):
            return cls(grid)
        raise TypeError(f"Expected ConditionGrid or polars.DataFrame, got {type(grid).__name__}")

    @property
    def conditions(self) -> Tuple[str, ...]:
        """Row names in table order."""
        return tuple(self.frame[CONDITION_COL].to_list())

    @property
    def columns(self) -> Tuple[str, ...]:
        """Covariate column names."""
        return tuple(c for c in self.frame.columns if c != CONDITION_COL)

    def __len__(self) -> int:
        return self.frame.height

    def __contains__(self, condition: str) -> bool:
        return condition in self.conditions

    def row(self, condition: str) -> Dict[str, Any]:
        """Covariates of one condition.

        Raises:
            ConditionMismatchError: If the condition is not in the grid
        """
        rows = self.frame.filter(pl.col(CONDITION_COL) == condition)
        if rows.height == 0:
            raise ConditionMismatchError(
                f"Unknown condition: {condition!r}. Available: {list(self.conditions)}",
                missing=[condition],
            )
        record = rows.row(0, named=True)
        record.pop(CONDITION_COL)
        return record

    def value(self, condition: str, column: str) -> Any:
        """Single covariate value.

        Raises:
            UnknownSymbolError: If the column does not exist
        """
        if column not in self.columns:
            raise UnknownSymbolError([column], available=self.columns, what="grid columns")
        return self.row(condition)[column]

    def select(self, predicate: Optional[Predicate]) -> Tuple[str, ...]:
        """Conditions whose row satisfies the predicate (all when None).

        Raises:
            UnknownSymbolError: If the predicate references unknown columns
            ValueError: If the predicate is malformed or cannot be evaluated
        """
        if predicate is None:
            return self.conditions
        try:
            expr = pl.sql_expr(predicate) if isinstance(predicate, str) else predicate
        except PolarsError as e:
            raise ValueError(f"Invalid condition predicate {predicate!r}: {e}") from e
        unknown = set(expr.meta.root_names()) - set(self.frame.columns)
        if unknown:
            raise UnknownSymbolError(unknown, available=self.columns, what="grid columns")
        try:
            selected = self.frame.filter(expr)
        except PolarsError as e:
            raise ValueError(f"Invalid condition predicate {predicate!r}: {e}") from e
        return tuple(selected[CONDITION_COL].to_list())

    def matches(self, condition: str, predicate: Optional[Predicate]) -> bool:
        """Evaluate a predicate against one condition's row."""
        if condition not in self.conditions:
            raise ConditionMismatchError(
                f"Unknown condition: {condition!r}. Available: {list(self.conditions)}",
                missing=[condition],
            )
        return condition in self.select(predicate)

    def to_frame(self) -> pl.DataFrame:
        """Copy of the underlying table."""
        return self.frame.clone()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConditionGrid):
            return NotImplemented
        return self.frame.equals(other.frame)

    def __hash__(self) -> int:
        return hash(self.conditions)

    def __repr__(self) -> str:
        preview = list(self.conditions)[:3]
        if len(self) > 3:
            preview.append("...")
        return f"ConditionGrid({len(self)} conditions{preview}, columns={list(self.columns)})"
