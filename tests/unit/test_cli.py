"""
Unit tests for the command-line interface.

Tests the click commands including:
- Package information
- Benchmark runs with path export
- Design generation from a JSON space
- Error reporting for invalid options
"""

import json

import pytest
import pandas as pd
from click.testing import CliRunner

from smbo.cli import main
from smbo.core.config import settings


@pytest.fixture
def runner():
    """Click test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def fast_focus_search(monkeypatch):
    """Keep the infill optimization small for CLI runs."""
    monkeypatch.setattr(settings, "focus_search_points", 50)
    monkeypatch.setattr(settings, "focus_search_maxit", 2)
    monkeypatch.setattr(settings, "focus_search_restarts", 1)


class TestInfoCommand:
    """Test suite for the info command."""

    def test_info(self, runner):
        """Test package information is printed."""
        result = runner.invoke(main, ["info"])

        assert result.exit_code == 0
        assert "SMBO Engine Information" in result.output
        assert "Focus search: 50 points" in result.output


class TestRunCommand:
    """Test suite for benchmark runs."""

    def test_single_objective_run(self, runner, tmp_path):
        """Test a sphere run prints the best point and writes the path."""
        output = tmp_path / "path.csv"
        result = runner.invoke(main, [
            "run", "sphere", "--iterations", "2", "--surrogate", "linear", "--infill", "mean",
            "--seed", "0", "--output", str(output),
        ])

        assert result.exit_code == 0, result.output
        assert "Best value" in result.output
        frame = pd.read_csv(output)
        # 2D sphere: 8 design points plus one per iteration
        assert len(frame) == 10
        assert {"x1", "x2", "y", "iteration", "proposed_by"} <= set(frame.columns)

    def test_multi_objective_run(self, runner):
        """Test a ZDT1 run prints the Pareto front."""
        result = runner.invoke(main, [
            "run", "zdt1", "--iterations", "1", "--propose-points", "2", "--surrogate", "rf", "--seed", "0",
        ])

        assert result.exit_code == 0, result.output
        assert "Pareto front" in result.output

    def test_inconsistent_options(self, runner):
        """Test configuration errors are reported without a traceback."""
        result = runner.invoke(main, ["run", "sphere", "--infill", "dib"])

        assert result.exit_code == 1
        assert "Error" in result.output


class TestDesignCommand:
    """Test suite for design generation."""

    def test_design_from_json(self, runner, tmp_path):
        """Test a design is generated for a hierarchical space description."""
        space_file = tmp_path / "space.json"
        space_file.write_text(json.dumps({
            "name": "svm",
            "parameters": [
                {"name": "kernel", "type": "categorical", "categories": ["linear", "radial"]},
                {"name": "cost", "type": "continuous", "bounds": [-5, 5], "transform": "exp2"},
                {"name": "gamma", "type": "continuous", "bounds": [-5, 5],
                 "requires": {"parameter": "kernel", "values": ["radial"]}},
            ],
        }))
        output = tmp_path / "design.json"

        result = runner.invoke(main, ["design", str(space_file), "--size", "6", "--seed", "1", "-o", str(output)])

        assert result.exit_code == 0, result.output
        records = json.loads(output.read_text())
        assert len(records) == 6
        for record in records:
            assert (record["gamma"] is None) == (record["kernel"] == "linear")

    def test_design_to_stdout(self, runner, tmp_path):
        """Test the design is printed when no output file is given."""
        space_file = tmp_path / "space.json"
        space_file.write_text(json.dumps({
            "parameters": [{"name": "n", "type": "integer", "bounds": [1, 3]}],
        }))

        result = runner.invoke(main, ["design", str(space_file), "--size", "3"])

        assert result.exit_code == 0, result.output
        assert "n" in result.output

    def test_design_too_large_for_space(self, runner, tmp_path):
        """Test asking a finite space for too many points fails cleanly."""
        space_file = tmp_path / "space.json"
        space_file.write_text(json.dumps({
            "parameters": [{"name": "c", "type": "categorical", "categories": ["a", "b"]}],
        }))

        result = runner.invoke(main, ["design", str(space_file), "--size", "3"])
        assert result.exit_code == 1
