"""Abstract base for command executors (local workspace, isolated sandbox)."""

import logging
from abc import ABC, abstractmethod

from hookrelay.models import CommandRequest, CommandResult

EMPTY_OUTPUT_PLACEHOLDER = "No output received from the command interpreter."


class CommandExecutionError(Exception):
    """Raised when a command cannot be executed (clone, launch, exit code,
    timeout).

    The message is shown to users as-is and never contains credentials.
    """

    pass


def simulated_response(request: CommandRequest) -> str:
    """Deterministic response used when no real credentials are configured."""
    return (
        f'Hello! I\'m responding to your question: "{request.command}"\n\n'
        "This is a simulated response from a test environment. In production, I would:\n"
        f"1. Clone the repository {request.repo_full_name}\n"
        "2. Research the codebase\n"
        "3. Provide an informed answer to your question\n\n"
        "For real functionality, please configure valid GitHub and model API tokens."
    )


class CommandExecutor(ABC):
    """Runs a natural-language command against a repository.

    Subclasses implement _run(); execute() and run() add simulation and
    error conversion on top so every strategy behaves the same way at
    the seams.
    """

    def __init__(self, simulate: bool = False, log: logging.Logger | None = None) -> None:
        self.simulate = simulate
        self._log = log or logging.getLogger("hookrelay.executors")

    def run(self, request: CommandRequest) -> str:
        """Return interpreter output; raise CommandExecutionError on failure."""
        self._log.info(
            "Processing command | repo=%s issue=%s command_length=%s isolated=%s",
            request.repo_full_name,
            request.issue_number,
            len(request.command),
            request.use_isolated_execution,
        )
        if self.simulate:
            self._log.info("TEST MODE: simulating command for %s", request.repo_full_name)
            return simulated_response(request)
        return self._run(request)

    def execute(self, request: CommandRequest) -> CommandResult:
        """Run the command and wrap the outcome; never raises
        CommandExecutionError."""
        try:
            return CommandResult.success(self.run(request))
        except CommandExecutionError as e:
            self._log.warning("Command failed for %s: %s", request.repo_full_name, e)
            return CommandResult.failure(str(e))

    @abstractmethod
    def _run(self, request: CommandRequest) -> str:
        """Execute for real (credentials present, production mode)."""
        ...
