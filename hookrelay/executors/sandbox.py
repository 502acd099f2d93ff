"""
Isolated strategy: run the interpreter inside a disposable container.

Each invocation launches `docker run --rm` with a unique name. A cached
checkout under <cache_root>/<owner>_<repo> is mounted at /repo when it
exists; otherwise the container clones into the (mounted, empty) cache
directory so the next run can reuse it. Concurrent runs for the same
repository may race on that first clone; last writer wins.

Credentials, repository name and command text reach the container as
`-e NAME` flags whose values come from the docker client's environment,
so they never appear in argv or logs.
"""

import logging
import os
import shlex
import shutil
import subprocess
import tempfile
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List

from hookrelay.executors.base import CommandExecutionError, CommandExecutor
from hookrelay.logging import redact
from hookrelay.models import CommandRequest

REPO_MOUNT = "/repo"


def normalize_repo_key(repo_full_name: str, separator: str = "_") -> str:
    """Filesystem/container safe identifier for owner/name."""
    return repo_full_name.replace("/", separator)


def sandbox_name(repo_full_name: str) -> str:
    """Unique container name for one invocation."""
    return f"hookrelay-{normalize_repo_key(repo_full_name, '-')}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


class SandboxExecutor(CommandExecutor):
    """Run the command interpreter in a throwaway container."""

    def __init__(
        self,
        token: str | None,
        image: str = "claudecode:latest",
        command: str = "claude",
        args: List[str] | None = None,
        timeout: int = 180,
        web_url: str = "https://github.com",
        cache_dir: str | None = None,
        use_cache: bool = True,
        interpreter_env: Dict[str, str] | None = None,
        docker: str = "docker",
        simulate: bool = False,
        log: logging.Logger | None = None,
    ) -> None:
        super().__init__(simulate=simulate, log=log or logging.getLogger("hookrelay.executors.sandbox"))
        self.token = token
        self.image = image
        self.command = command
        self.args = list(args) if args is not None else ["--print"]
        self.timeout = timeout
        self.web_url = web_url.rstrip("/")
        self.cache_root = Path(cache_dir) if cache_dir else Path(tempfile.gettempdir()) / "repo-cache"
        self.use_cache = use_cache
        self.interpreter_env = dict(interpreter_env or {})
        self.docker = docker

    def _secrets(self) -> List[str | None]:
        return [self.token, *self.interpreter_env.values()]

    def cache_path(self, repo_full_name: str) -> Path:
        """Cache directory for repo_full_name; always a child of cache_root."""
        root = self.cache_root.resolve()
        path = (root / normalize_repo_key(repo_full_name)).resolve()
        if path.parent != root:
            raise CommandExecutionError(f"Refusing cache path outside {root} for {repo_full_name!r}")
        return path

    def _prepare_cache(self, repo_full_name: str) -> tuple[Path | None, bool]:
        """Return (host dir to mount, whether it already holds a checkout)."""
        if not self.use_cache:
            return None, False
        path = self.cache_path(repo_full_name)
        if (path / ".git").is_dir():
            self._log.info("Using cached repository %s", path)
            return path, True
        try:
            if path.exists():
                # Leftover of an interrupted clone
                shutil.rmtree(path, ignore_errors=True)
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CommandExecutionError(f"Failed to prepare repository cache: {e}") from e
        self._log.info("No cached repository at %s, will clone fresh", path)
        return path, False

    def _script(self, cached: bool) -> str:
        interpreter = " ".join(shlex.quote(part) for part in [self.command, *self.args])
        run = f'cd {REPO_MOUNT} && {interpreter} "$HOOKRELAY_COMMAND"'
        if cached:
            return run
        scheme, _, host = self.web_url.partition("://")
        clone = f'git clone "{scheme}://x-access-token:${{GITHUB_TOKEN}}@{host}/${{HOOKRELAY_REPOSITORY}}.git" {REPO_MOUNT}'
        return f"{clone} && {run}"

    def build_command(self, name: str, mount: Path | None, cached: bool) -> List[str]:
        """docker run argv; contains variable names only, never values."""
        cmd = [self.docker, "run", "--rm", "--name", name]
        if mount is not None:
            cmd.extend(["-v", f"{mount}:{REPO_MOUNT}"])
        for key in ["GITHUB_TOKEN", "HOOKRELAY_REPOSITORY", "HOOKRELAY_COMMAND", *sorted(self.interpreter_env)]:
            cmd.extend(["-e", key])
        cmd.extend([self.image, "bash", "-c", self._script(cached)])
        return cmd

    def _environment(self, request: CommandRequest) -> Dict[str, str]:
        env = os.environ.copy()
        env.update(self.interpreter_env)
        env["GITHUB_TOKEN"] = self.token or ""
        env["HOOKRELAY_REPOSITORY"] = request.repo_full_name
        env["HOOKRELAY_COMMAND"] = request.command
        return env

    @contextmanager
    def _sandbox(self, name: str) -> Iterator[str]:
        """Container scope: forced removal if the run did not finish cleanly.

        --rm covers normal exits; a killed docker client (timeout) can leave
        the container running, so it is removed here.
        """
        try:
            yield name
        except BaseException:
            try:
                subprocess.run(
                    [self.docker, "rm", "-f", name],
                    check=False,
                    capture_output=True,
                    text=True,
                    timeout=30,
                )
            except (OSError, subprocess.SubprocessError) as e:
                self._log.debug("Could not remove sandbox %s: %s", name, e)
            raise

    def _run(self, request: CommandRequest) -> str:
        name = sandbox_name(request.repo_full_name)
        mount, cached = self._prepare_cache(request.repo_full_name)
        cmd = self.build_command(name, mount, cached)
        self._log.info("Launching sandbox %s (image=%s, cached=%s, timeout=%ss)", name, self.image, cached, self.timeout)
        with self._sandbox(name):
            try:
                result = subprocess.run(
                    cmd,
                    env=self._environment(request),
                    timeout=self.timeout,
                    check=False,
                    capture_output=True,
                    text=True,
                )
            except subprocess.TimeoutExpired:
                raise CommandExecutionError(f"Sandbox {name} timed out after {self.timeout}s") from None
            except FileNotFoundError as e:
                raise CommandExecutionError(f"Failed to launch sandbox: {self.docker} not found") from e
            except OSError as e:
                err = redact(str(e), *self._secrets())
                raise CommandExecutionError(f"Failed to launch sandbox: {err}") from e
            if result.returncode != 0:
                err = redact((result.stderr or result.stdout or "").strip(), *self._secrets())
                raise CommandExecutionError(f"Sandbox {name} exited with code {result.returncode}: {err}")
        output = (result.stdout or "").strip()
        self._log.info(
            "Sandbox %s finished | repo=%s issue=%s response_length=%s",
            name,
            request.repo_full_name,
            request.issue_number,
            len(output),
        )
        return output
