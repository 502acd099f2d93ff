"""
Local strategy: clone into a temporary workspace and run the interpreter there.

The workspace is a tempfile.TemporaryDirectory, so it is removed on every
exit path (clone failure, interpreter failure, timeout). Each invocation
gets its own directory; nothing is shared between concurrent requests.
"""

import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Dict, List

from hookrelay.executors.base import CommandExecutionError, CommandExecutor
from hookrelay.git import GitRunnerError, clone_repository
from hookrelay.logging import redact
from hookrelay.models import CommandRequest


class LocalWorkspaceExecutor(CommandExecutor):
    """Run the command interpreter against a fresh local clone."""

    def __init__(
        self,
        token: str | None,
        command: str = "claude",
        args: List[str] | None = None,
        timeout: int = 180,
        web_url: str = "https://github.com",
        interpreter_env: Dict[str, str] | None = None,
        simulate: bool = False,
        log: logging.Logger | None = None,
    ) -> None:
        super().__init__(simulate=simulate, log=log or logging.getLogger("hookrelay.executors.local"))
        self.token = token
        self.command = command
        self.args = list(args) if args is not None else ["--print"]
        self.timeout = timeout
        self.web_url = web_url
        self.interpreter_env = dict(interpreter_env or {})

    def _secrets(self) -> List[str | None]:
        return [self.token, *self.interpreter_env.values()]

    def _run(self, request: CommandRequest) -> str:
        with tempfile.TemporaryDirectory(prefix="hookrelay-") as tmp:
            workspace = Path(tmp) / "repo"
            self._log.info("Created workspace %s for %s", tmp, request.repo_full_name)
            try:
                clone_repository(
                    request.repo_full_name,
                    workspace,
                    self.token or "",
                    web_url=self.web_url,
                    log=self._log,
                )
            except GitRunnerError as e:
                raise CommandExecutionError(f"Failed to clone {request.repo_full_name}: {e}") from e
            output = self._run_interpreter(request, workspace)
        self._log.info(
            "Command processed | repo=%s issue=%s response_length=%s",
            request.repo_full_name,
            request.issue_number,
            len(output),
        )
        return output

    def _run_interpreter(self, request: CommandRequest, workspace: Path) -> str:
        cmd = [self.command, *self.args, request.command]
        env = os.environ.copy()
        env.update(self.interpreter_env)
        self._log.info("Running %s (timeout=%ss)", self.command, self.timeout)
        try:
            result = subprocess.run(
                cmd,
                cwd=workspace,
                env=env,
                timeout=self.timeout,
                check=False,
                capture_output=True,
                text=True,
            )
        except subprocess.TimeoutExpired:
            raise CommandExecutionError(f"{self.command} timed out after {self.timeout}s") from None
        except FileNotFoundError as e:
            raise CommandExecutionError(f"{self.command} not found") from e
        except OSError as e:
            err = redact(str(e), *self._secrets())
            raise CommandExecutionError(f"Failed to launch {self.command}: {err}") from e
        if result.returncode != 0:
            err = redact((result.stderr or result.stdout or "").strip(), *self._secrets())
            raise CommandExecutionError(f"{self.command} exited with code {result.returncode}: {err}")
        return (result.stdout or "").strip()
