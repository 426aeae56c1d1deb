"""Commands for showing and evaluating transformations.

Equations and values are given as NAME=VALUE pairs:

    calabaria-trafo evaluate -e "X=a+b" -e "Y=a-b" -p a=3 -p b=2
    calabaria-trafo evaluate -e "k1=k1" --grid conditions.csv \\
        --insert "k1~k1_cond" --sub "k1_cond=@drug:k1_{}" --where "drug <> 'none'" \\
        -p k1=0.1 -p k1_A=0.3
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import polars as pl
from polars.exceptions import PolarsError
import typer

from ..config import read_solver_options
from ..conditions import ConditionGrid
from ..constants import CONDITION_COL, METHODS
from ..errors import TrafoError
from ..functions import P, ParVec
from ..trafo import Trafo, TrafoList, branch, col, define, insert


def _parse_pairs(values: List[str], what: str) -> Dict[str, str]:
    pairs: Dict[str, str] = {}
    for raw in values:
        if "=" not in raw:
            raise typer.BadParameter(f"Malformed {what} '{raw}' (expected NAME=VALUE)")
        key, value = raw.split("=", 1)
        key = key.strip()
        if not key:
            raise typer.BadParameter(f"{what} name missing in '{raw}'")
        pairs[key] = value.strip()
    return pairs


def _parse_floats(values: List[str], what: str) -> Dict[str, float]:
    try:
        return {k: float(v) for k, v in _parse_pairs(values, what).items()}
    except ValueError as e:
        raise typer.BadParameter(f"Non-numeric {what}: {e}") from e


def _substitution(value: str) -> Any:
    """'@column' or '@column:format' refers to a grid column."""
    if not value.startswith("@"):
        return value
    name, _, fmt = value[1:].partition(":")
    return col(name, fmt or None)


def _build(
    equations: List[str],
    grid_path: Optional[Path],
    inserts: List[str],
    subs: List[str],
    where: Optional[str],
):
    trafo: Any = Trafo()
    for name, rhs in _parse_pairs(equations, "equation").items():
        trafo = define(trafo, "lhs ~ rhs", lhs=name, rhs=rhs)

    if grid_path is not None:
        trafo = branch(trafo, ConditionGrid(pl.read_csv(grid_path)))

    substitutions = {k: _substitution(v) for k, v in _parse_pairs(subs, "substitution").items()}
    for template in inserts:
        trafo = insert(trafo, template, condition=where, **substitutions)
    return trafo


def _print_trafo(name: str, trafo: Trafo, method: str) -> None:
    typer.echo(f"[{name}]")
    for inner, rhs in trafo.equations.items():
        typer.echo(f"  {inner} = {rhs}")
    typer.echo(f"  inner: {', '.join(trafo.inner_parameters()) or '-'}")
    typer.echo(f"  outer: {', '.join(trafo.outer_parameters(method)) or '-'}")


def show_command(
    equation: List[str] = typer.Option(..., "--equation", "-e", help="Equation NAME=EXPRESSION (repeatable)"),
    grid: Optional[Path] = typer.Option(None, "--grid", "-g", help="CSV file with one row per condition"),
    insert_template: List[str] = typer.Option([], "--insert", "-i", help="Insert template 'x~expr' (repeatable)"),
    sub: List[str] = typer.Option([], "--sub", "-s", help="Substitution NAME=VALUE, VALUE '@col[:fmt]' for grid columns"),
    where: Optional[str] = typer.Option(None, "--where", help="SQL predicate restricting inserts to grid rows"),
    method: str = typer.Option("explicit", "--method", "-m", help="explicit or implicit"),
):
    """Print equations with their inner and outer parameters."""
    if method not in METHODS:
        raise typer.BadParameter(f"method must be one of {list(METHODS)}")
    try:
        trafo = _build(equation, grid, insert_template, sub, where)
    except (TrafoError, ValueError, TypeError, OSError, PolarsError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)

    if isinstance(trafo, TrafoList):
        for condition, t in trafo.items():
            _print_trafo(condition, t, method)
    else:
        _print_trafo("global", trafo, method)


def evaluate_command(
    equation: List[str] = typer.Option(..., "--equation", "-e", help="Equation NAME=EXPRESSION (repeatable)"),
    param: List[str] = typer.Option([], "--param", "-p", help="Outer parameter NAME=VALUE (repeatable)"),
    grid: Optional[Path] = typer.Option(None, "--grid", "-g", help="CSV file with one row per condition"),
    insert_template: List[str] = typer.Option([], "--insert", "-i", help="Insert template 'x~expr' (repeatable)"),
    sub: List[str] = typer.Option([], "--sub", "-s", help="Substitution NAME=VALUE, VALUE '@col[:fmt]' for grid columns"),
    where: Optional[str] = typer.Option(None, "--where", help="SQL predicate restricting inserts to grid rows"),
    method: str = typer.Option("explicit", "--method", "-m", help="explicit or implicit"),
    guess: List[str] = typer.Option([], "--guess", help="Implicit initial guess NAME=VALUE (repeatable)"),
    config: Optional[Path] = typer.Option(None, "--config", help="pyproject.toml with [tool.calabaria-trafo.solver]"),
):
    """Evaluate a transformation and print the inner parameters per condition."""
    if method not in METHODS:
        raise typer.BadParameter(f"method must be one of {list(METHODS)}")
    pars = _parse_floats(param, "parameter")
    initial_guess = _parse_floats(guess, "guess")

    try:
        trafo = _build(equation, grid, insert_template, sub, where)
        options = read_solver_options(config)
        fn = P(trafo, method=method, initial_guess=initial_guess, options=options)
        result = fn(pars, deriv=False)
    except (TrafoError, ValueError, TypeError, OSError, PolarsError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)

    results: Dict[str, ParVec] = result if isinstance(result, dict) else {"global": result}
    rows = [{CONDITION_COL: c, **values.to_dict()} for c, values in results.items()]
    typer.echo(pl.DataFrame(rows))
