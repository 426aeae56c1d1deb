"""Condition grids and condition-indexed collections."""

from .grid import ConditionGrid, Predicate
from .collection import ConditionCollection, DataList, composed_conditions, union_conditions

__all__ = [
    "ConditionGrid",
    "Predicate",
    "ConditionCollection",
    "DataList",
    "composed_conditions",
    "union_conditions",
]
