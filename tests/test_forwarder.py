"""Tests for WebhookForwarder (signing, header precedence, failure outcomes)."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from hookrelay.forwarder import USER_AGENT, WebhookForwarder, make_forwarder
from hookrelay.models import ForwardTarget
from hookrelay.signature import compute_signature

PAYLOAD = {"event": "issue_comment", "action": "created", "repository": {"full_name": "acme/widgets"}}


@pytest.fixture
def session() -> MagicMock:
    mock = MagicMock()
    mock.post.return_value = MagicMock(status_code=200, reason="OK")
    return mock


def test_forward_posts_json_with_default_headers(session: MagicMock) -> None:
    forwarder = WebhookForwarder(session=session, timeout=5)
    outcome = forwarder.forward(ForwardTarget(url="http://hook"), PAYLOAD)

    assert outcome.delivered is True
    assert outcome.status_code == 200
    session.post.assert_called_once()
    args, kwargs = session.post.call_args
    assert args[0] == "http://hook"
    assert json.loads(kwargs["data"]) == PAYLOAD
    assert kwargs["headers"]["Content-Type"] == "application/json"
    assert kwargs["headers"]["User-Agent"] == USER_AGENT
    assert "X-Hub-Signature-256" not in kwargs["headers"]
    assert kwargs["timeout"] == 5


def test_forward_signs_exact_bytes_sent(session: MagicMock) -> None:
    forwarder = WebhookForwarder(secret="out-secret", session=session)
    forwarder.forward(ForwardTarget(url="http://hook"), PAYLOAD)
    kwargs = session.post.call_args[1]
    assert kwargs["headers"]["X-Hub-Signature-256"] == compute_signature("out-secret", kwargs["data"])


def test_header_precedence_target_over_call_over_defaults(session: MagicMock) -> None:
    forwarder = WebhookForwarder(session=session)
    target = ForwardTarget(url="http://hook", headers={"User-Agent": "target-agent", "X-Team": "a"})
    forwarder.forward(target, PAYLOAD, headers={"User-Agent": "call-agent", "X-GitHub-Event": "issue_comment"})
    headers = session.post.call_args[1]["headers"]
    assert headers["User-Agent"] == "target-agent"
    assert headers["X-Team"] == "a"
    assert headers["X-GitHub-Event"] == "issue_comment"
    assert headers["Content-Type"] == "application/json"


def test_non_2xx_is_a_failed_outcome(session: MagicMock) -> None:
    session.post.return_value = MagicMock(status_code=500, reason="Server Error")
    outcome = WebhookForwarder(session=session).forward(ForwardTarget(url="http://hook"), PAYLOAD)
    assert outcome.delivered is False
    assert "500" in outcome.error


def test_network_error_is_a_failed_outcome(session: MagicMock) -> None:
    session.post.side_effect = requests.Timeout("read timed out")
    outcome = WebhookForwarder(session=session).forward(ForwardTarget(url="http://hook"), PAYLOAD)
    assert outcome.delivered is False
    assert "timed out" in outcome.error


def test_single_attempt_no_retry(session: MagicMock) -> None:
    session.post.side_effect = requests.ConnectionError("refused")
    WebhookForwarder(session=session).forward(ForwardTarget(url="http://hook"), PAYLOAD)
    assert session.post.call_count == 1


def test_simulated_forward_sends_nothing(session: MagicMock) -> None:
    outcome = WebhookForwarder(session=session, simulate=True).forward(ForwardTarget(url="http://hook"), PAYLOAD)
    assert outcome.delivered is True
    assert outcome.simulated is True
    session.post.assert_not_called()


def test_forward_all_collects_outcomes_and_isolates_crashes(session: MagicMock) -> None:
    ok = MagicMock(status_code=202, reason="Accepted")

    def post(url, **kwargs):
        if url == "http://b":
            raise RuntimeError("bug in transport")
        if url == "http://c":
            return MagicMock(status_code=404, reason="Not Found")
        return ok

    session.post.side_effect = post
    targets = [ForwardTarget(url=u) for u in ("http://a", "http://b", "http://c", "http://d")]
    outcomes = WebhookForwarder(session=session).forward_all(targets, PAYLOAD)

    assert [o.url for o in outcomes] == ["http://a", "http://b", "http://c", "http://d"]
    assert [o.delivered for o in outcomes] == [True, False, False, True]
    assert "bug in transport" in outcomes[1].error


def test_make_forwarder_from_config() -> None:
    from hookrelay.config import AppConfig, ForwardingConfig

    config = AppConfig(environment="test", forwarding=ForwardingConfig(secret="abc", timeout=3))
    forwarder = make_forwarder(config)
    assert forwarder.secret == "abc"
    assert forwarder.timeout == 3
    assert forwarder.simulate is True
