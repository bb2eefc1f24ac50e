"""Unit tests for the CLI commands."""

import json
import logging

import pytest
from click.testing import CliRunner

from ict_scanner.app import cli
from ict_scanner.utils.time_utils import format_duration


CONFIG_YAML = """
scanner:
  symbols: [BTCUSDT, ETHUSDT]
  timeframes: ["15m", "1h"]
logging:
  level: ERROR
  files:
    main: null
    error: null
    debug: null
    api: null
"""


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging replaces the root handlers; put them back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)
    return str(path)


@pytest.fixture
def patched_client(monkeypatch, mock_candle_source):
    monkeypatch.setattr(
        "ict_scanner.app.BybitRestClient",
        lambda exchange_config, env_config: mock_candle_source
    )
    return mock_candle_source


@pytest.mark.unit
class TestCLI:
    """Test click commands."""

    def test_status(self, config_file):
        result = CliRunner().invoke(cli, ["status", "--config", config_file])

        assert result.exit_code == 0
        assert "Scanner Status" in result.output
        assert "BTCUSDT" in result.output

    def test_status_missing_config(self, tmp_path):
        result = CliRunner().invoke(cli, ["status", "--config", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1

    def test_scan_json(self, config_file, patched_client):
        result = CliRunner().invoke(cli, ["scan", "--config", config_file, "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["total_pairs"] == 4
        assert len(data["signals"]) == 4
        assert {s["side"] for s in data["signals"]} == {"LONG"}
        patched_client.close.assert_awaited_once()

    def test_health(self, config_file, patched_client):
        result = CliRunner().invoke(cli, ["health", "--config", config_file])

        assert result.exit_code == 0
        assert "API connection healthy" in result.output

    def test_health_failure(self, config_file, patched_client):
        patched_client.health_check.return_value = False

        result = CliRunner().invoke(cli, ["health", "--config", config_file])

        assert result.exit_code == 1


@pytest.mark.unit
def test_format_duration():
    assert format_duration(0) == "0s"
    assert format_duration(60) == "1m"
    assert format_duration(3725) == "1h 2m 5s"
