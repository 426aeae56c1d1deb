"""calabaria-trafo: symbolic parameter transformations for calibration.

This package connects an estimable outer parameter vector to the inner
parameters consumed by per-condition dynamical-system models: equations
are defined and edited symbolically, branched over a condition grid,
compiled into numeric transformation functions, and composed with model
predictions and objective functions.
"""

# Export the public API
from .api import *  # noqa: F403, F401
from .api import __all__, __version__  # noqa: F401
