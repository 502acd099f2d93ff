"""Direct command endpoint: run a command without a webhook envelope.

Request body: {repoFullName, command, authToken?, useIsolatedExecution?}
(legacy key useContainer is accepted too).
"""

import hmac
import logging
from typing import Any, Dict

from hookrelay.executors.base import EMPTY_OUTPUT_PLACEHOLDER, CommandExecutor
from hookrelay.models import CommandRequest, WebhookResponse, is_valid_repo_full_name


def _as_bool(value: Any) -> bool:
    return value is True or (isinstance(value, str) and value.strip().lower() == "true")


class CommandHandler:
    """Validate a direct request, execute it and shape the JSON response."""

    def __init__(
        self,
        executor: CommandExecutor,
        auth_required: bool = False,
        auth_token: str | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self.executor = executor
        self.auth_required = auth_required
        self.auth_token = auth_token
        self._log = log or logging.getLogger("hookrelay.commands")

    def _authorized(self, token: Any) -> bool:
        if not self.auth_required:
            return True
        if not self.auth_token or not isinstance(token, str) or not token:
            return False
        return hmac.compare_digest(token.encode("utf-8"), self.auth_token.encode("utf-8"))

    def handle(self, body: Dict[str, Any]) -> WebhookResponse:
        repo_full_name = body.get("repoFullName")
        command = body.get("command")
        if not repo_full_name or not isinstance(repo_full_name, str):
            self._log.warning("Missing repository name in request")
            return WebhookResponse(status_code=400, body={"error": "Repository name is required"})
        if not is_valid_repo_full_name(repo_full_name):
            self._log.warning("Invalid repository name in request")
            return WebhookResponse(status_code=400, body={"error": "Invalid repository name"})
        if not command or not isinstance(command, str) or not command.strip():
            self._log.warning("Missing command in request")
            return WebhookResponse(status_code=400, body={"error": "Command is required"})
        if not self._authorized(body.get("authToken")):
            self._log.warning("Invalid authentication token")
            return WebhookResponse(status_code=401, body={"error": "Invalid authentication token"})

        isolated = _as_bool(body.get("useIsolatedExecution", body.get("useContainer", False)))
        request = CommandRequest(
            repo_full_name=repo_full_name,
            issue_number=None,
            command=command.strip(),
            use_isolated_execution=isolated,
        )
        self._log.info(
            "Processing direct command | repo=%s command_length=%s isolated=%s",
            repo_full_name,
            len(request.command),
            isolated,
        )
        result = self.executor.execute(request)
        if not result.ok:
            return WebhookResponse(
                status_code=500,
                body={"error": "Failed to process command", "message": result.error},
            )
        response = result.text or EMPTY_OUTPUT_PLACEHOLDER
        self._log.info("Direct command processed (response_length=%s)", len(response))
        return WebhookResponse(
            status_code=200,
            body={"message": "Command processed successfully", "response": response},
        )


def make_command_handler(config: Any, executor: CommandExecutor | None = None) -> CommandHandler:
    """Build handler from app config (commands section)."""
    if executor is None:
        from hookrelay.executors import make_executor

        executor = make_executor(config)
    return CommandHandler(
        executor,
        auth_required=config.commands.auth_required,
        auth_token=config.commands_token_resolved,
    )
