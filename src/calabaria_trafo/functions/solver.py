"""Damped Newton root-finder for implicit transformations."""

import logging
from typing import Callable, Optional, Sequence

import numpy as np
import scipy.linalg

from ..config import SolverOptions
from ..errors import NoConvergenceError

logger = logging.getLogger(__name__)

Residual = Callable[[np.ndarray], np.ndarray]
Jacobian = Callable[[np.ndarray], np.ndarray]


def linear_solve(matrix: np.ndarray, rhs: np.ndarray) -> np.ndarray:
    """Solve matrix @ x = rhs, falling back to least squares when singular."""
    try:
        return scipy.linalg.solve(matrix, rhs)
    except scipy.linalg.LinAlgError:
        logger.warning("Singular Jacobian, using least-squares step")
        solution, *_ = scipy.linalg.lstsq(matrix, rhs)
        return solution


def _norm(r: np.ndarray) -> float:
    return float(np.max(np.abs(r))) if r.size else 0.0


def solve_newton(
    residual: Residual,
    jacobian: Jacobian,
    x0: Sequence[float],
    options: Optional[SolverOptions] = None,
    names: Sequence[str] = (),
) -> np.ndarray:
    """Find x with residual(x) = 0 by damped Newton iteration.

    Each full Newton step is halved until the maximum absolute residual
    decreases; a step shorter than ``options.min_step`` counts as a stall.

    Args:
        residual: x -> R(x), shape (n,)
        jacobian: x -> dR/dx, shape (n, n)
        x0: Initial guess
        options: Tolerance and iteration budget
        names: Names of the unknowns, for error reporting

    Returns:
        Root as array of shape (n,)

    Raises:
        NoConvergenceError: If the tolerance is not reached within the
            iteration budget, the iteration stalls, or values become non-finite
    """
    opts = options or SolverOptions()
    x = np.array(x0, dtype=float)
    r = np.asarray(residual(x), dtype=float)
    norm = _norm(r)

    for iteration in range(opts.max_iter + 1):
        if not np.all(np.isfinite(r)):
            raise NoConvergenceError(
                "Residual is not finite", iteration, norm, last_iterate=x, names=names
            )
        if norm < opts.tol:
            logger.info(f"Newton converged after {iteration} iterations (residual={norm:.3e})")
            return x
        if iteration == opts.max_iter:
            break

        matrix = np.asarray(jacobian(x), dtype=float)
        if not np.all(np.isfinite(matrix)):
            raise NoConvergenceError(
                "Jacobian is not finite", iteration, norm, last_iterate=x, names=names
            )
        step = linear_solve(matrix, -r)
        damping = 1.0
        while True:
            x_new = x + damping * step
            r_new = np.asarray(residual(x_new), dtype=float)
            norm_new = _norm(r_new)
            if np.all(np.isfinite(r_new)) and norm_new < norm:
                break
            damping /= 2.0
            if damping < opts.min_step:
                raise NoConvergenceError(
                    "Newton iteration stalled", iteration + 1, norm, last_iterate=x, names=names
                )
        x, r, norm = x_new, r_new, norm_new
        logger.debug(f"Newton iteration {iteration + 1}: residual={norm:.3e}, damping={damping:g}")

    raise NoConvergenceError(
        f"Newton iteration did not converge within {opts.max_iter} iterations",
        opts.max_iter,
        norm,
        last_iterate=x,
        names=names,
    )
