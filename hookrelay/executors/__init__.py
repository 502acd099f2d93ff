"""Command executors: local workspace and isolated sandbox behind one
interface."""

from typing import Any

from hookrelay.executors.base import (
    EMPTY_OUTPUT_PLACEHOLDER,
    CommandExecutionError,
    CommandExecutor,
    simulated_response,
)
from hookrelay.executors.local import LocalWorkspaceExecutor
from hookrelay.executors.sandbox import SandboxExecutor
from hookrelay.executors.selector import SelectingExecutor

__all__ = [
    "EMPTY_OUTPUT_PLACEHOLDER",
    "CommandExecutionError",
    "CommandExecutor",
    "LocalWorkspaceExecutor",
    "SandboxExecutor",
    "SelectingExecutor",
    "make_executor",
    "simulated_response",
]


def make_executor(config: Any) -> CommandExecutor:
    """Build the executor from app config (executor section and resolved
    secrets).

    Simulation is on in test mode or when no usable GitHub token is
    configured.
    """
    cfg = config.executor
    token = config.github_token_resolved
    simulate = config.is_test_mode or not config.has_valid_github_token
    interpreter_env = config.interpreter_environment()
    local = LocalWorkspaceExecutor(
        token=token,
        command=cfg.command,
        args=cfg.args,
        timeout=cfg.timeout,
        web_url=config.github.web_url,
        interpreter_env=interpreter_env,
        simulate=simulate,
    )
    isolated = None
    if cfg.use_containers:
        isolated = SandboxExecutor(
            token=token,
            image=cfg.image,
            command=cfg.command,
            args=cfg.args,
            timeout=cfg.timeout,
            web_url=config.github.web_url,
            cache_dir=cfg.cache_dir,
            use_cache=cfg.use_cache,
            interpreter_env=interpreter_env,
            simulate=simulate,
        )
    return SelectingExecutor(local, isolated)
