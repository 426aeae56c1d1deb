"""Symbolic parameter transformations and their editing verbs."""

from .types import Trafo, TrafoList, TrafoLike
from .lookups import Column, CurrentSymbols, EditContext, Lookup, col, current_symbols
from .template import Template, broadcast, expand
from .verbs import branch, define, insert

__all__ = [
    # Types
    "Trafo",
    "TrafoList",
    "TrafoLike",
    # Lookups
    "Column",
    "CurrentSymbols",
    "EditContext",
    "Lookup",
    "col",
    "current_symbols",
    # Templates
    "Template",
    "broadcast",
    "expand",
    # Verbs
    "define",
    "insert",
    "branch",
]
