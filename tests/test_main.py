"""Tests for the CLI entry point."""

from pathlib import Path
from unittest.mock import patch

import pytest

from hookrelay.main import main, parse_args


def test_parse_args_defaults() -> None:
    args = parse_args([])
    assert args.config == Path("config.yaml")
    assert args.check is False


def test_check_validates_config_and_exits(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "config.yaml"
    path.write_text('bot:\n  trigger: "@Helper"\n')
    with patch("hookrelay.main.run") as mock_run:
        assert main(["--config", str(path), "--check"]) == 0
    mock_run.assert_not_called()
    out = capsys.readouterr().out
    assert "Config OK:" in out
    assert "@Helper" in out


def test_keyboard_interrupt_exits_cleanly(tmp_path: Path) -> None:
    with patch("hookrelay.main.run", side_effect=KeyboardInterrupt):
        assert main(["--config", str(tmp_path / "missing.yaml")]) == 0


def test_fatal_error_returns_1(tmp_path: Path) -> None:
    with patch("hookrelay.main.run", side_effect=OSError("address in use")):
        assert main(["--config", str(tmp_path / "missing.yaml")]) == 1


def test_run_serves_with_loaded_config(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("server:\n  port: 9999\n")
    with patch("hookrelay.server.run_server") as mock_serve:
        assert main(["--config", str(path)]) == 0
    config = mock_serve.call_args[0][0]
    assert config.server.port == 9999


def test_run_logs_through_configured_logger(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("logging:\n  level: WARNING\n")
    with patch("hookrelay.server.run_server"), patch("hookrelay.main.RelayLogging") as mock_logging:
        assert main(["--config", str(path)]) == 0
    mock_logging.return_value.setup.assert_called_once()
    mock_logging.return_value.get_logger.assert_called_once_with("hookrelay")
