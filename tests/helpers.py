"""Builders for signed deliveries and comment payloads."""

import json
from typing import Any, Dict

from hookrelay.models import InboundEvent
from hookrelay.signature import compute_signature

SECRET = "test_secret"


def signed_event(
    payload: Dict[str, Any],
    event_type: str = "issue_comment",
    secret: str = SECRET,
    signature: str | None = None,
    delivery_id: str = "delivery-1",
) -> InboundEvent:
    """Build an InboundEvent as the server would, signed with secret."""
    body = json.dumps(payload).encode()
    return InboundEvent(
        event_type=event_type,
        delivery_id=delivery_id,
        raw_body=body,
        parsed_body=payload,
        signature_header=signature if signature is not None else compute_signature(secret, body),
    )


def comment_payload(body: str = "@Assistant summarize open issues", action: str = "created") -> Dict[str, Any]:
    return {
        "action": action,
        "comment": {
            "id": 1001,
            "body": body,
            "user": {"login": "octocat"},
            "created_at": "2024-01-15T10:00:00Z",
        },
        "issue": {"number": 42, "title": "Widgets", "html_url": "https://github.com/acme/widgets/issues/42"},
        "repository": {"full_name": "acme/widgets", "name": "widgets", "owner": {"login": "acme"}},
        "sender": {"login": "octocat"},
    }
