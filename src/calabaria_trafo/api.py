"""Public API for calabaria-trafo.

This module provides the complete public API: symbolic equations,
condition grids, the define/insert/branch editing verbs, parameter
transformation functions and their composition operators.
"""

# Symbols
from .symbols import Expression, EquationVector, eqnvec

# Conditions
from .conditions import ConditionGrid, ConditionCollection, DataList

# Trafos and editing verbs
from .trafo import (
    Trafo,
    TrafoList,
    Column,
    CurrentSymbols,
    col,
    current_symbols,
    define,
    insert,
    branch,
)

# Functions
from .functions import (
    ParVec,
    ParameterTransformation,
    P,
    PredictionFunction,
    ObjectiveFunction,
    ObjectiveSum,
    ObjectiveValue,
    normal_prior,
    solve_newton,
)

# Configuration
from .config import SolverOptions, read_solver_options

# Errors
from .errors import (
    TrafoError,
    TemplateLengthMismatch,
    AlreadyBranchedError,
    ConditionMismatchError,
    DuplicateConditionError,
    NoConvergenceError,
    UnknownSymbolError,
)

# Constants
from .constants import CONDITION_COL, EXPLICIT, IMPLICIT

# Version
try:
    from importlib.metadata import version
    __version__ = version("calabaria-trafo")
except Exception:
    __version__ = "0.1.0"

# Public API Export List
__all__ = [
    # Symbols
    "Expression",
    "EquationVector",
    "eqnvec",

    # Conditions
    "ConditionGrid",
    "ConditionCollection",
    "DataList",

    # Trafos
    "Trafo",
    "TrafoList",
    "Column",
    "CurrentSymbols",
    "col",
    "current_symbols",

    # Verbs
    "define",
    "insert",
    "branch",

    # Functions
    "ParVec",
    "ParameterTransformation",
    "P",
    "PredictionFunction",
    "ObjectiveFunction",
    "ObjectiveSum",
    "ObjectiveValue",
    "normal_prior",
    "solve_newton",

    # Configuration
    "SolverOptions",
    "read_solver_options",

    # Errors
    "TrafoError",
    "TemplateLengthMismatch",
    "AlreadyBranchedError",
    "ConditionMismatchError",
    "DuplicateConditionError",
    "NoConvergenceError",
    "UnknownSymbolError",

    # Constants
    "CONDITION_COL",
    "EXPLICIT",
    "IMPLICIT",

    # Version
    "__version__",
]
