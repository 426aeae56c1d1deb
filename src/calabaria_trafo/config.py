"""Solver configuration.

Options for the implicit Newton solve can be given explicitly or read
from the ``[tool.calabaria-trafo.solver]`` table of a pyproject.toml:

    [tool.calabaria-trafo.solver]
    tol = 1e-12
    max_iter = 200
"""

import math
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union
import tomllib

TOOL_KEY = "calabaria-trafo"


@dataclass(frozen=True)
class SolverOptions:
    """Settings of the damped Newton iteration.

    Attributes:
        tol: Convergence threshold on the maximum absolute residual
        max_iter: Iteration budget
        min_step: Smallest damping factor tried before declaring a stall
    """
    tol: float = 1e-10
    max_iter: int = 100
    min_step: float = 1e-8

    def __post_init__(self):
        """Validate option values."""
        if not (self.tol > 0 and math.isfinite(self.tol)):
            raise ValueError(f"tol must be positive and finite, got {self.tol}")
        if isinstance(self.max_iter, bool) or not isinstance(self.max_iter, int) or self.max_iter < 1:
            raise ValueError(f"max_iter must be a positive integer, got {self.max_iter}")
        if not (0 < self.min_step <= 1):
            raise ValueError(f"min_step must be in (0, 1], got {self.min_step}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SolverOptions":
        """Build options from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        extra = set(data) - known
        if extra:
            raise ValueError(f"Unknown solver options: {sorted(extra)}. Available: {sorted(known)}")
        return cls(**data)


def read_solver_options(path: Optional[Union[str, Path]] = None) -> SolverOptions:
    """Read solver options from pyproject.toml.

    Args:
        path: pyproject.toml to read (defaults to the current directory's)

    Returns:
        Options from the [tool.calabaria-trafo.solver] table, or defaults
        when the file or table is missing

    Raises:
        tomllib.TOMLDecodeError: If TOML is malformed
        ValueError: If the table has unknown keys or invalid values
    """
    pyproject_path = Path(path) if path is not None else Path.cwd() / "pyproject.toml"
    if not pyproject_path.exists():
        return SolverOptions()

    with open(pyproject_path, "rb") as f:
        data = tomllib.load(f)

    section = data.get("tool", {}).get(TOOL_KEY, {}).get("solver", {})
    return SolverOptions.from_dict(section)
