"""Tests for SandboxExecutor (docker argv, cache reuse, cleanup on
failure)."""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from hookrelay.executors.base import CommandExecutionError
from hookrelay.executors.sandbox import SandboxExecutor, normalize_repo_key, sandbox_name
from hookrelay.models import CommandRequest

TOKEN = "ghp_secrettoken123"
API_KEY = "sk-ant-secret"


def _request(isolated: bool = True) -> CommandRequest:
    return CommandRequest(
        repo_full_name="acme/widgets",
        issue_number=42,
        command='explain "main.py"',
        use_isolated_execution=isolated,
    )


def _executor(tmp_path: Path, **kwargs) -> SandboxExecutor:
    kwargs.setdefault("token", TOKEN)
    kwargs.setdefault("timeout", 120)
    kwargs.setdefault("cache_dir", str(tmp_path / "cache"))
    kwargs.setdefault("interpreter_env", {"ANTHROPIC_API_KEY": API_KEY})
    return SandboxExecutor(**kwargs)


def test_normalize_repo_key() -> None:
    assert normalize_repo_key("acme/widgets") == "acme_widgets"
    assert normalize_repo_key("acme/widgets", "-") == "acme-widgets"


def test_sandbox_names_are_unique() -> None:
    first, second = sandbox_name("acme/widgets"), sandbox_name("acme/widgets")
    assert first.startswith("hookrelay-acme-widgets-")
    assert first != second


def test_fresh_clone_runs_in_disposable_container(tmp_path: Path, mocker: MagicMock) -> None:
    mock_run = mocker.patch("hookrelay.executors.sandbox.subprocess.run")
    mock_run.return_value = MagicMock(returncode=0, stdout="container output\n", stderr="")
    executor = _executor(tmp_path)

    result = executor.execute(_request())

    assert result.ok
    assert result.text == "container output"
    mock_run.assert_called_once()
    cmd = mock_run.call_args[0][0]
    env = mock_run.call_args[1]["env"]
    assert cmd[:3] == ["docker", "run", "--rm"]
    assert cmd[cmd.index("--name") + 1].startswith("hookrelay-acme-widgets-")
    cache = (tmp_path / "cache").resolve() / "acme_widgets"
    assert cmd[cmd.index("-v") + 1] == f"{cache}:/repo"
    assert cache.is_dir()
    assert "claudecode:latest" in cmd
    script = cmd[-1]
    assert "git clone" in script
    assert '"$HOOKRELAY_COMMAND"' in script
    assert mock_run.call_args[1]["timeout"] == 120
    # values travel through the environment, never argv
    for secret in (TOKEN, API_KEY, 'explain "main.py"'):
        assert all(secret not in part for part in cmd)
    assert env["GITHUB_TOKEN"] == TOKEN
    assert env["ANTHROPIC_API_KEY"] == API_KEY
    assert env["HOOKRELAY_REPOSITORY"] == "acme/widgets"
    assert env["HOOKRELAY_COMMAND"] == 'explain "main.py"'
    assert "ANTHROPIC_API_KEY" in cmd


def test_cached_checkout_is_reused(tmp_path: Path, mocker: MagicMock) -> None:
    (tmp_path / "cache" / "acme_widgets" / ".git").mkdir(parents=True)
    mock_run = mocker.patch("hookrelay.executors.sandbox.subprocess.run")
    mock_run.return_value = MagicMock(returncode=0, stdout="cached output", stderr="")

    _executor(tmp_path).execute(_request())

    script = mock_run.call_args[0][0][-1]
    assert "git clone" not in script
    assert script.startswith("cd /repo && claude --print")


def test_leftover_cache_without_checkout_is_recloned(tmp_path: Path, mocker: MagicMock) -> None:
    leftover = tmp_path / "cache" / "acme_widgets"
    leftover.mkdir(parents=True)
    (leftover / "partial").write_text("x")
    mock_run = mocker.patch("hookrelay.executors.sandbox.subprocess.run")
    mock_run.return_value = MagicMock(returncode=0, stdout="ok", stderr="")

    _executor(tmp_path).execute(_request())

    assert "git clone" in mock_run.call_args[0][0][-1]
    assert not (leftover / "partial").exists()


def test_cache_disabled_mounts_nothing(tmp_path: Path, mocker: MagicMock) -> None:
    mock_run = mocker.patch("hookrelay.executors.sandbox.subprocess.run")
    mock_run.return_value = MagicMock(returncode=0, stdout="ok", stderr="")
    _executor(tmp_path, use_cache=False).execute(_request())
    assert "-v" not in mock_run.call_args[0][0]


def test_timeout_is_failure_and_container_is_removed(tmp_path: Path, mocker: MagicMock) -> None:
    calls = []

    def run(cmd, **kwargs):
        calls.append(cmd)
        if cmd[1] == "run":
            raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])
        return MagicMock(returncode=0, stdout="", stderr="")

    mocker.patch("hookrelay.executors.sandbox.subprocess.run", side_effect=run)
    result = _executor(tmp_path).execute(_request())

    assert not result.ok
    assert "timed out after 120s" in result.error
    name = calls[0][calls[0].index("--name") + 1]
    assert calls[1] == ["docker", "rm", "-f", name]


def test_nonzero_exit_is_failure_without_secrets(tmp_path: Path, mocker: MagicMock) -> None:
    def run(cmd, **kwargs):
        if cmd[1] == "run":
            return MagicMock(returncode=128, stdout="", stderr=f"fatal: could not read {TOKEN}")
        return MagicMock(returncode=0, stdout="", stderr="")

    mock_run = mocker.patch("hookrelay.executors.sandbox.subprocess.run", side_effect=run)
    result = _executor(tmp_path).execute(_request())

    assert not result.ok
    assert "exited with code 128" in result.error
    assert TOKEN not in result.error
    assert mock_run.call_count == 2


def test_launch_failure_is_failure(tmp_path: Path, mocker: MagicMock) -> None:
    mocker.patch("hookrelay.executors.sandbox.subprocess.run", side_effect=FileNotFoundError("docker"))
    result = _executor(tmp_path).execute(_request())
    assert not result.ok
    assert result.error == "Failed to launch sandbox: docker not found"


def test_simulated_sandbox_does_not_launch(tmp_path: Path, mocker: MagicMock) -> None:
    mock_run = mocker.patch("hookrelay.executors.sandbox.subprocess.run")
    result = _executor(tmp_path, simulate=True).execute(_request())
    assert result.ok
    assert "simulated" in result.text
    assert "acme/widgets" in result.text
    mock_run.assert_not_called()


@pytest.mark.parametrize("name", [".", "..", "../outside"])
def test_cache_path_stays_inside_cache_root(tmp_path: Path, name: str) -> None:
    root = tmp_path / "cache"
    root.mkdir()
    with pytest.raises(CommandExecutionError, match="outside"):
        _executor(tmp_path).cache_path(name)
    assert root.is_dir()


def test_permission_error_on_launch_is_failure(tmp_path: Path, mocker: MagicMock) -> None:
    def run(cmd, **kwargs):
        if cmd[1] == "run":
            raise PermissionError(f"docker: permission denied for {TOKEN}")
        return MagicMock(returncode=0, stdout="", stderr="")

    mock_run = mocker.patch("hookrelay.executors.sandbox.subprocess.run", side_effect=run)
    result = _executor(tmp_path).execute(_request())

    assert not result.ok
    assert result.error.startswith("Failed to launch sandbox: docker: permission denied")
    assert TOKEN not in result.error
    assert mock_run.call_args[0][0][:3] == ["docker", "rm", "-f"]


def test_unwritable_cache_is_failure(tmp_path: Path, mocker: MagicMock) -> None:
    mocker.patch("hookrelay.executors.sandbox.Path.mkdir", side_effect=PermissionError("read-only file system"))
    mock_run = mocker.patch("hookrelay.executors.sandbox.subprocess.run")
    result = _executor(tmp_path).execute(_request())
    assert not result.ok
    assert result.error.startswith("Failed to prepare repository cache")
    mock_run.assert_not_called()
