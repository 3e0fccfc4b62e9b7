"""CLI tests for the status, forecast and replay commands."""

import pytest
import yaml
from typer.testing import CliRunner

from autoheal import __version__
from autoheal.cli.commands.replay import load_cycles
from autoheal.cli.main import app
from autoheal.shared.domain.exceptions import ConfigurationError


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def samples_file(tmp_path):
    path = tmp_path / "samples.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "cycles": [
                    {"cpu": 60},
                    {"cpu": 65},
                    {"cpu": 70},
                    {"cpu": 75},
                    {"cpu": 80},
                ]
            }
        )
    )
    return path


def test_version(cli_runner):
    result = cli_runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_status_tables(cli_runner):
    result = cli_runner.invoke(app, ["status"])

    assert result.exit_code == 0
    assert "Phase:" in result.output
    assert "Resources" in result.output
    assert "Circuit Breakers" in result.output


def test_status_json(cli_runner):
    result = cli_runner.invoke(app, ["status", "--json"])

    assert result.exit_code == 0
    assert '"current_state": "healthy"' in result.output
    assert '"pending_issues": 0' in result.output


def test_status_rejects_invalid_config(cli_runner, tmp_path):
    path = tmp_path / "autoheal.yaml"
    path.write_text("health_check_interval: -5\n")

    result = cli_runner.invoke(app, ["status", "--config", str(path)])

    assert result.exit_code == 1
    assert "Configuration Error" in result.output


def test_forecast(cli_runner):
    result = cli_runner.invoke(app, ["forecast", "60", "65", "70", "75", "80", "--threshold", "70"])

    assert result.exit_code == 0
    assert "Trend Forecast" in result.output
    assert "135" in result.output
    assert "Forecast exceeds threshold 70" in result.output


def test_forecast_within_threshold(cli_runner):
    result = cli_runner.invoke(app, ["forecast", "50", "40", "30", "-k", "2", "-t", "45"])

    assert result.exit_code == 0
    assert "Forecast stays within threshold 45" in result.output


def test_forecast_needs_two_samples(cli_runner):
    result = cli_runner.invoke(app, ["forecast", "42"])

    assert result.exit_code == 1
    assert "at least two samples are required" in result.output


def test_replay_json(cli_runner, samples_file):
    result = cli_runner.invoke(app, ["replay", str(samples_file), "--json", "--no-predict"])

    assert result.exit_code == 0
    assert '"issue_key": "resource_cpu"' in result.output
    assert '"playbook": "high_cpu"' in result.output


def test_replay_tables(cli_runner, samples_file):
    result = cli_runner.invoke(app, ["replay", str(samples_file)])

    assert result.exit_code == 0
    assert "Healing Runs" in result.output
    assert "Phase:" in result.output


def test_replay_missing_file(cli_runner, tmp_path):
    result = cli_runner.invoke(app, ["replay", str(tmp_path / "absent.yaml")])

    assert result.exit_code == 1
    assert "File not found" in result.output


def test_replay_unknown_resource(cli_runner, tmp_path):
    path = tmp_path / "samples.yaml"
    path.write_text(yaml.safe_dump([{"gpu": 99}]))

    result = cli_runner.invoke(app, ["replay", str(path)])

    assert result.exit_code == 1
    assert "Replay Error" in result.output


class TestLoadCycles:
    def test_accepts_plain_list(self, tmp_path):
        path = tmp_path / "samples.yaml"
        path.write_text(yaml.safe_dump([{"cpu": 10}, {"memory": 20}]))

        assert load_cycles(path) == [{"cpu": 10}, {"memory": 20}]

    def test_rejects_non_mapping_cycle(self, tmp_path):
        path = tmp_path / "samples.yaml"
        path.write_text(yaml.safe_dump({"cycles": [{"cpu": 10}, 5]}))

        with pytest.raises(ConfigurationError, match="Cycle 2"):
            load_cycles(path)

    def test_rejects_scalar_document(self, tmp_path):
        path = tmp_path / "samples.yaml"
        path.write_text("just text\n")

        with pytest.raises(ConfigurationError):
            load_cycles(path)
