"""Data models for inbound events, command requests and fanout (Pydantic)."""

import json
import re
from datetime import datetime
from typing import Any, Dict, Mapping
from urllib.parse import parse_qs

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

REPO_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


def is_valid_repo_full_name(value: Any) -> bool:
    """True for owner/name made of safe characters, neither part . or .."""
    if not isinstance(value, str) or not REPO_NAME_PATTERN.match(value):
        return False
    return all(part not in (".", "..") for part in value.split("/"))


def _parse_body(body: bytes, content_type: str) -> Dict[str, Any] | None:
    """Parse webhook body as JSON.

    Supports raw JSON and application/x-www-form-urlencoded (payload=...).
    Returns None when the body cannot be decoded into a JSON object.
    """
    if not body:
        return {}
    try:
        if "application/x-www-form-urlencoded" in content_type:
            parsed = parse_qs(body.decode("utf-8", errors="replace"), keep_blank_values=True)
            raw = (parsed.get("payload") or [None])[0]
            if raw is None:
                return {}
            data = json.loads(raw)
        else:
            data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    return data if isinstance(data, dict) else None


class InboundEvent(BaseModel):
    """One webhook delivery as received; never persisted."""

    model_config = ConfigDict(frozen=True)

    event_type: str = ""
    delivery_id: str = ""
    raw_body: bytes = b""
    parsed_body: Dict[str, Any] | None = None
    signature_header: str | None = None

    @classmethod
    def from_http(cls, headers: Mapping[str, str], body: bytes) -> "InboundEvent":
        """Build event from request headers (case-insensitive mapping) and
        raw body."""
        return cls(
            event_type=headers.get("X-GitHub-Event") or "",
            delivery_id=headers.get("X-GitHub-Delivery") or "",
            raw_body=body,
            parsed_body=_parse_body(body, headers.get("Content-Type") or ""),
            signature_header=headers.get("X-Hub-Signature-256"),
        )

    @property
    def action(self) -> str:
        return (self.parsed_body or {}).get("action") or ""


class CommentTrigger(BaseModel):
    """A newly created comment that carries an embedded command."""

    repo_full_name: str
    issue_number: int
    comment_id: str
    author_login: str = ""
    raw_comment_body: str
    extracted_command: str = Field(min_length=1)


class CommandRequest(BaseModel):
    """Input of one command execution."""

    repo_full_name: str = Field(min_length=1)
    issue_number: int | None = None
    command: str = Field(min_length=1)
    use_isolated_execution: bool = False

    @field_validator("repo_full_name")
    @classmethod
    def _check_repo_full_name(cls, value: str) -> str:
        if not is_valid_repo_full_name(value):
            raise ValueError("repo_full_name must look like owner/name")
        return value


class CommandResult(BaseModel):
    """Outcome of one command execution: text on success, message on failure."""

    text: str | None = None
    error: str | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "CommandResult":
        if (self.text is None) == (self.error is None):
            raise ValueError("CommandResult needs exactly one of text or error")
        return self

    @classmethod
    def success(cls, text: str) -> "CommandResult":
        return cls(text=text)

    @classmethod
    def failure(cls, message: str) -> "CommandResult":
        return cls(error=message)

    @property
    def ok(self) -> bool:
        return self.error is None


class ForwardTarget(BaseModel):
    """Subscriber endpoint for forwarded events."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(min_length=1)
    headers: Dict[str, str] = Field(default_factory=dict)


class ForwardOutcome(BaseModel):
    """Result of delivering one payload to one target."""

    url: str
    delivered: bool
    status_code: int | None = None
    error: str | None = None
    simulated: bool = False


class CommentRecord(BaseModel):
    """Comment as created on the Git host (or synthesized in test mode)."""

    id: int | str
    body: str
    created_at: datetime


class WebhookResponse(BaseModel):
    """HTTP status and JSON envelope returned to the caller."""

    status_code: int = 200
    body: Dict[str, Any] = Field(default_factory=dict)
