"""Global constants for calabaria-trafo.

This module centralizes names and defaults shared across the package
to ensure consistency and prevent duplication.
"""

# Row identifier column of a condition grid
CONDITION_COL: str = "condition"

# Separator used when deriving condition names from covariate values
CONDITION_SEP: str = "_"

# Separator between left- and right-hand side of an equation template
TEMPLATE_SEP: str = "~"

# Evaluation methods of a parameter transformation
EXPLICIT: str = "explicit"
IMPLICIT: str = "implicit"
METHODS = (EXPLICIT, IMPLICIT)

# Starting value for implicit unknowns without an initial guess
DEFAULT_INITIAL_GUESS: float = 1.0
