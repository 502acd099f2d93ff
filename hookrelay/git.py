"""Run git commands for command workspaces (clone with short-lived token)."""

import logging
import subprocess
from pathlib import Path

from hookrelay.logging import redact


class GitRunnerError(Exception):
    """Raised when a git command fails. Message never contains the token."""

    pass


def _run_git(
    args: list[str],
    cwd: Path,
    log: logging.Logger | None = None,
    timeout: int = 120,
    secret: str | None = None,
) -> None:
    """Run git command; raise GitRunnerError on non-zero exit."""
    cmd = ["git"] + args
    shown = redact(" ".join(args), secret)
    try:
        subprocess.run(cmd, cwd=cwd, check=True, capture_output=True, text=True, timeout=timeout)
    except subprocess.CalledProcessError as e:
        err = redact((e.stderr or e.stdout or "").strip(), secret)
        if log:
            log.warning("Git %s failed: %s", shown, err)
        raise GitRunnerError(f"git {shown}: {err}") from None
    except subprocess.TimeoutExpired:
        raise GitRunnerError(f"git {shown}: timed out after {timeout}s") from None
    except FileNotFoundError as e:
        raise GitRunnerError("git not found") from e


def clone_url(repo_full_name: str, token: str, web_url: str = "https://github.com") -> str:
    """HTTPS clone URL authenticated with an installation/access token."""
    scheme, _, host = web_url.rstrip("/").partition("://")
    return f"{scheme}://x-access-token:{token}@{host}/{repo_full_name}.git"


def clone_repository(
    repo_full_name: str,
    dest: Path,
    token: str,
    web_url: str = "https://github.com",
    timeout: int = 120,
    log: logging.Logger | None = None,
) -> None:
    """Clone repo_full_name into dest (which must be empty or absent)."""
    _run_git(
        ["clone", clone_url(repo_full_name, token, web_url), str(dest)],
        cwd=Path(dest).parent,
        log=log,
        timeout=timeout,
        secret=token,
    )
    if log:
        log.info("Cloned %s into %s", repo_full_name, dest)
