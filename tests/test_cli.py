"""Tests for CLI."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from drawdownplan.cli.main import cli

GOLDEN = Path(__file__).parent / "golden"


class TestCLI:
    def test_version(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.4.0" in result.output

    def test_classify(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["classify", str(GOLDEN / "observation.json")])
        assert result.exit_code == 0
        assert "Regime: bear_deep" in result.output
        assert "Gap to high: 25.0%" in result.output

    def test_period_writes_result_and_state(self, tmp_path: Path) -> None:
        """A period run should write both files and accept the state back."""
        runner = CliRunner()
        output_file = tmp_path / "result.json"
        state_file = tmp_path / "state.json"
        result = runner.invoke(
            cli,
            [
                "period",
                "--input",
                str(GOLDEN / "bear_period.json"),
                "--output",
                str(output_file),
                "--state-out",
                str(state_file),
            ],
        )
        assert result.exit_code == 0
        assert "Action: Buffer refill" in result.output
        assert output_file.exists()
        data = json.loads(output_file.read_text())
        assert data["assessment"]["regime"] == "bear_deep"

        second = runner.invoke(
            cli,
            ["period", "--input", str(GOLDEN / "bear_period.json"), "--state", str(state_file)],
        )
        assert second.exit_code == 0
        assert "Flex rate" in second.output

    def test_period_requires_input(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["period"])
        assert result.exit_code != 0

    def test_simulate(self, tmp_path: Path) -> None:
        runner = CliRunner()
        output_file = tmp_path / "metrics.json"
        result = runner.invoke(
            cli,
            ["simulate", str(GOLDEN / "three_periods.json"), "--output", str(output_file)],
        )
        assert result.exit_code == 0
        assert "Evaluating 3 periods" in result.output
        assert "Alarm periods: 1" in result.output
        assert json.loads(output_file.read_text())["n_periods"] == 3

    def test_custom_config(self, tmp_path: Path) -> None:
        from drawdownplan.config.defaults import default_config
        from drawdownplan.io.serialize import dump_config

        config_file = tmp_path / "config.json"
        config_file.write_text(dump_config(default_config()))
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["classify", str(GOLDEN / "observation.json"), "--config", str(config_file)],
        )
        assert result.exit_code == 0
        assert "bear_deep" in result.output
