"""Tests for the calabaria-trafo command-line interface."""

import textwrap

import pytest
from typer.testing import CliRunner

from calabaria_trafo.cli.__main__ import app


class TestCLI:
    """Tests for CLI commands."""

    def setup_method(self):
        """Set up test runner."""
        self.runner = CliRunner()

    @pytest.fixture
    def grid_csv(self, tmp_path):
        """Condition grid with a drug column."""
        path = tmp_path / "conditions.csv"
        path.write_text("condition,drug\nctrl,none\ndrugA,A\n")
        return path

    def test_version(self):
        """Test the version command."""
        result = self.runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "calabaria-trafo version" in result.stdout

    def test_missing_command(self):
        """Test that invoking without a command fails."""
        result = self.runner.invoke(app, [])
        assert result.exit_code == 1

    def test_evaluate_explicit(self):
        """Test evaluating an explicit transformation."""
        result = self.runner.invoke(
            app, ["evaluate", "-e", "X=a+b", "-e", "Y=a-b", "-p", "a=3", "-p", "b=2"]
        )
        assert result.exit_code == 0, result.output
        assert "global" in result.stdout
        assert "5.0" in result.stdout
        assert "1.0" in result.stdout

    def test_evaluate_implicit(self):
        """Test evaluating an implicit transformation."""
        result = self.runner.invoke(
            app,
            [
                "evaluate", "-e", "X=X+Y-2*a", "-e", "Y=X-Y-2*b",
                "-p", "a=3", "-p", "b=2", "--method", "implicit",
            ],
        )
        assert result.exit_code == 0, result.output
        assert "5.0" in result.stdout

    def test_evaluate_with_grid(self, grid_csv):
        """Test per-condition evaluation with a conditioned insert."""
        result = self.runner.invoke(
            app,
            [
                "evaluate", "-e", "k=k", "--grid", str(grid_csv),
                "--insert", "x~y", "--sub", "x=k", "--sub", "y=@drug:k_{}",
                "--where", "drug <> 'none'",
                "-p", "k=0.1", "-p", "k_A=0.7",
            ],
        )
        assert result.exit_code == 0, result.output
        assert "ctrl" in result.stdout
        assert "drugA" in result.stdout
        assert "0.7" in result.stdout

    def test_evaluate_missing_parameter(self):
        """Test that core errors are reported with exit code 1."""
        result = self.runner.invoke(app, ["evaluate", "-e", "X=a+b", "-p", "a=3"])
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_evaluate_missing_grid_file(self, tmp_path):
        """Test that an unreadable grid file is reported with exit code 1."""
        result = self.runner.invoke(
            app, ["evaluate", "-e", "k1=k1", "--grid", str(tmp_path / "nope.csv"), "-p", "k1=1"]
        )
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_evaluate_malformed_where(self, grid_csv):
        """Test that an invalid --where predicate is reported with exit code 1."""
        result = self.runner.invoke(
            app,
            [
                "evaluate", "-e", "k=k", "--grid", str(grid_csv),
                "--insert", "x~y", "--sub", "x=k", "--sub", "y=k2",
                "--where", "drug = = 'A'", "-p", "k=1",
            ],
        )
        assert result.exit_code == 1
        assert "Invalid condition predicate" in result.output

    def test_evaluate_malformed_parameter(self):
        """Test that malformed NAME=VALUE pairs are rejected."""
        result = self.runner.invoke(app, ["evaluate", "-e", "X=a", "-p", "a"])
        assert result.exit_code != 0

    def test_evaluate_with_config(self, tmp_path):
        """Test solver options read from a pyproject file."""
        config = tmp_path / "pyproject.toml"
        config.write_text(textwrap.dedent("""
            [tool.calabaria-trafo.solver]
            max_iter = 1
        """))
        result = self.runner.invoke(
            app,
            ["evaluate", "-e", "X=X^2-a", "-p", "a=4", "--method", "implicit", "--config", str(config)],
        )
        assert result.exit_code == 1
        assert "did not converge" in result.output

    def test_show(self, grid_csv):
        """Test listing equations and parameters."""
        result = self.runner.invoke(
            app,
            [
                "show", "-e", "k=k", "--grid", str(grid_csv),
                "--insert", "x~exp(x)", "--sub", "x=k", "--where", "drug = 'A'",
            ],
        )
        assert result.exit_code == 0, result.output
        assert "[ctrl]" in result.stdout
        assert "k = exp(k)" in result.stdout
        assert "outer: k" in result.stdout
