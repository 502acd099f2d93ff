"""Handle GitHub webhook deliveries end to end.

Stages, in order, for one delivery:

1. admission: verify X-Hub-Signature-256 over the raw body (401 on failure);
2. fanout of every admitted event to the global forward targets;
3. issue_comment/created only: fanout to the comment forward targets;
4. trigger detection in the comment body;
5. command execution and a reply comment with the result or the error.

Stages 2, 3 and the reply are best effort: their failures are logged and
the delivery is still answered with 200, so the host does not retry or
alert because a subscriber or the command backend is flaky. Deliveries are
not deduplicated; a replayed delivery id is processed again.
"""

import logging
from typing import Any, Dict, Iterable, List

from hookrelay.executors.base import EMPTY_OUTPUT_PLACEHOLDER, CommandExecutionError, CommandExecutor
from hookrelay.forwarder import WebhookForwarder
from hookrelay.models import (
    CommandRequest,
    CommandResult,
    CommentTrigger,
    ForwardOutcome,
    ForwardTarget,
    InboundEvent,
    WebhookResponse,
    is_valid_repo_full_name,
)
from hookrelay.publisher import CommentPublishError, CommentPublisher
from hookrelay.signature import AuthenticationError, verify_signature

COMMENT_EVENT = "issue_comment"
ERROR_COMMENT_PREFIX = "Error processing command: "

SUCCESS_BODY = {"message": "Webhook processed successfully"}


class InternalDispatchError(Exception):
    """Raised for unexpected failures while processing an admitted event."""

    pass


def extract_command(body: str, trigger: str) -> str | None:
    """Return the command following the first trigger token, or None.

    Everything after the token up to end of body, stripped. None when the
    token is absent or nothing but whitespace follows it.
    """
    if not trigger or trigger not in body:
        return None
    command = body.split(trigger, 1)[1].strip()
    return command or None


def parse_comment_trigger(payload: Dict[str, Any], trigger: str) -> CommentTrigger | None:
    """Build CommentTrigger from an issue_comment payload carrying a
    command."""
    comment = payload.get("comment") or {}
    body = comment.get("body") or ""
    command = extract_command(body, trigger)
    if command is None:
        return None
    issue = payload.get("issue") or {}
    repo = payload.get("repository") or {}
    issue_number = issue.get("number")
    repo_full_name = repo.get("full_name")
    if issue_number is None or not is_valid_repo_full_name(repo_full_name):
        logging.getLogger("hookrelay.dispatcher").warning(
            "Comment with trigger has no issue.number or a malformed repository.full_name"
        )
        return None
    user = comment.get("user") or {}
    return CommentTrigger(
        repo_full_name=repo_full_name,
        issue_number=int(issue_number),
        comment_id=str(comment.get("id") or ""),
        author_login=user.get("login") or "",
        raw_comment_body=body,
        extracted_command=command,
    )


def build_event_envelope(event: InboundEvent) -> Dict[str, Any]:
    """Payload sent to global forward targets."""
    payload = event.parsed_body or {}
    return {
        "event": event.event_type,
        "action": payload.get("action"),
        "sender": payload.get("sender"),
        "repository": payload.get("repository"),
        "original_payload": payload,
    }


def build_comment_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Normalized payload sent to comment forward targets."""
    repo = payload.get("repository") or {}
    issue = payload.get("issue") or {}
    comment = payload.get("comment") or {}
    return {
        "event": COMMENT_EVENT,
        "action": payload.get("action"),
        "repository": {
            "name": repo.get("name"),
            "full_name": repo.get("full_name"),
            "owner": (repo.get("owner") or {}).get("login"),
        },
        "issue": {
            "number": issue.get("number"),
            "title": issue.get("title"),
            "html_url": issue.get("html_url"),
        },
        "comment": {
            "id": comment.get("id"),
            "body": comment.get("body"),
            "user": (comment.get("user") or {}).get("login"),
            "created_at": comment.get("created_at"),
        },
    }


class EventDispatcher:
    """Admit, fan out and act on one webhook delivery at a time."""

    def __init__(
        self,
        webhook_secret: str | None,
        executor: CommandExecutor,
        publisher: CommentPublisher,
        forwarder: WebhookForwarder,
        trigger: str = "@MCPClaude",
        forward_targets: Iterable[ForwardTarget] = (),
        comment_targets: Iterable[ForwardTarget] = (),
        use_isolated_execution: bool = False,
        bot_username: str | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self.webhook_secret = webhook_secret
        self.executor = executor
        self.publisher = publisher
        self.forwarder = forwarder
        self.trigger = trigger
        self.forward_targets = list(forward_targets)
        self.comment_targets = list(comment_targets)
        self.use_isolated_execution = use_isolated_execution
        self.bot_username = bot_username
        self._log = log or logging.getLogger("hookrelay.dispatcher")

    def handle(self, event: InboundEvent) -> WebhookResponse:
        """Process one delivery and return the HTTP response for the host."""
        payload = event.parsed_body or {}
        self._log.info(
            "Received GitHub %s webhook | delivery=%s sender=%s repo=%s",
            event.event_type or "?",
            event.delivery_id or "?",
            (payload.get("sender") or {}).get("login"),
            (payload.get("repository") or {}).get("full_name"),
        )
        try:
            verify_signature(event.raw_body, event.signature_header, self.webhook_secret)
        except AuthenticationError as e:
            self._log.warning("Webhook verification failed: %s", e)
            return WebhookResponse(status_code=401, body={"error": "Invalid webhook signature", "message": str(e)})
        if event.parsed_body is None:
            self._log.warning("Invalid webhook JSON (delivery=%s)", event.delivery_id)
            return WebhookResponse(status_code=400, body={"error": "Invalid JSON payload"})
        try:
            self.process(event)
        except InternalDispatchError as e:
            self._log.error("Error handling webhook %s: %s", event.delivery_id, e)
            return WebhookResponse(status_code=500, body={"error": "Failed to process webhook"})
        self._log.info("Webhook %s processed successfully", event.event_type)
        return WebhookResponse(status_code=200, body=dict(SUCCESS_BODY))

    def process(self, event: InboundEvent) -> None:
        """Stages 2-5 for an admitted event."""
        try:
            self._fan_out(self.forward_targets, build_event_envelope(event), self._relay_headers(event))
            if event.event_type != COMMENT_EVENT or event.action != "created":
                return
            payload = event.parsed_body or {}
            self._fan_out(self.comment_targets, build_comment_payload(payload))
            trigger = parse_comment_trigger(payload, self.trigger)
            if trigger is None:
                self._log.debug("No command in comment (delivery=%s)", event.delivery_id)
                return
            if self.bot_username and trigger.author_login == self.bot_username:
                self._log.debug("Ignoring own comment %s", trigger.comment_id)
                return
            self.dispatch_command(trigger)
        except Exception as e:
            self._log.exception("Unexpected error processing delivery %s", event.delivery_id)
            raise InternalDispatchError(str(e)) from e

    def dispatch_command(self, trigger: CommentTrigger) -> CommandResult:
        """Run the extracted command and reply on the thread."""
        self._log.info(
            "Processing %s mention | repo=%s issue=%s comment=%s",
            self.trigger,
            trigger.repo_full_name,
            trigger.issue_number,
            trigger.comment_id,
        )
        request = CommandRequest(
            repo_full_name=trigger.repo_full_name,
            issue_number=trigger.issue_number,
            command=trigger.extracted_command,
            use_isolated_execution=self.use_isolated_execution,
        )
        try:
            result = self.executor.execute(request)
        except CommandExecutionError as e:
            result = CommandResult.failure(str(e))
        if result.ok:
            body = result.text or EMPTY_OUTPUT_PLACEHOLDER
        else:
            body = f"{ERROR_COMMENT_PREFIX}{result.error}"
        try:
            self.publisher.publish(trigger.repo_full_name, trigger.issue_number, body)
        except CommentPublishError as e:
            self._log.error("Could not post reply on %s#%s: %s", trigger.repo_full_name, trigger.issue_number, e)
        return result

    def _relay_headers(self, event: InboundEvent) -> Dict[str, str]:
        headers = {}
        if event.event_type:
            headers["X-GitHub-Event"] = event.event_type
        if event.delivery_id:
            headers["X-GitHub-Delivery"] = event.delivery_id
        return headers

    def _fan_out(
        self,
        targets: List[ForwardTarget],
        payload: Dict[str, Any],
        headers: Dict[str, str] | None = None,
    ) -> List[ForwardOutcome]:
        if not targets:
            return []
        try:
            outcomes = self.forwarder.forward_all(targets, payload, headers)
        except Exception as e:
            self._log.error("Error forwarding webhook: %s", e)
            return []
        failed = [o for o in outcomes if not o.delivered]
        if failed:
            self._log.warning(
                "Forwarded to %s/%s targets; failed: %s",
                len(outcomes) - len(failed),
                len(outcomes),
                ", ".join(o.url for o in failed),
            )
        return outcomes


def make_dispatcher(
    config: Any,
    executor: CommandExecutor | None = None,
    publisher: CommentPublisher | None = None,
    forwarder: WebhookForwarder | None = None,
) -> EventDispatcher:
    """Build dispatcher and its collaborators from app config."""
    if executor is None:
        from hookrelay.executors import make_executor

        executor = make_executor(config)
    if publisher is None:
        from hookrelay.publisher import make_publisher

        publisher = make_publisher(config)
    if forwarder is None:
        from hookrelay.forwarder import make_forwarder

        forwarder = make_forwarder(config)
    return EventDispatcher(
        webhook_secret=config.webhook_secret_resolved,
        executor=executor,
        publisher=publisher,
        forwarder=forwarder,
        trigger=config.bot.trigger,
        forward_targets=config.forwarding.targets,
        comment_targets=config.forwarding.comment_targets,
        use_isolated_execution=config.executor.use_containers,
        bot_username=config.bot.username,
    )
