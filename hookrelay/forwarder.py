"""Relay event payloads to configured subscriber URLs.

One POST per target, no retry. Failures come back as ForwardOutcome
values instead of exceptions so one bad subscriber never affects the
others or the inbound response.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Mapping

import requests

from hookrelay.models import ForwardOutcome, ForwardTarget
from hookrelay.signature import compute_signature

USER_AGENT = "hookrelay-outgoing-webhook"
SIGNATURE_HEADER = "X-Hub-Signature-256"


class ForwardDeliveryError(Exception):
    """Raised internally when one delivery fails; reported as a
    ForwardOutcome."""

    pass


class WebhookForwarder:
    """POST JSON payloads to targets, optionally signed with a shared
    secret."""

    def __init__(
        self,
        secret: str | None = None,
        timeout: int = 10,
        simulate: bool = False,
        session: requests.Session | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self.secret = secret or None
        self.timeout = timeout
        self.simulate = simulate
        self._session = session or requests.Session()
        self._log = log or logging.getLogger("hookrelay.forwarder")

    def _headers(self, body: bytes, *overrides: Mapping[str, str] | None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        if self.secret:
            headers[SIGNATURE_HEADER] = compute_signature(self.secret, body)
        for extra in overrides:
            if extra:
                headers.update(extra)
        return headers

    def _post(self, url: str, body: bytes, headers: Dict[str, str]) -> requests.Response:
        try:
            resp = self._session.post(url, data=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise ForwardDeliveryError(str(e)) from e
        if not 200 <= resp.status_code < 300:
            raise ForwardDeliveryError(f"{resp.status_code}: {resp.reason or 'non-2xx response'}")
        return resp

    def forward(
        self,
        target: ForwardTarget,
        payload: Dict[str, Any],
        headers: Mapping[str, str] | None = None,
    ) -> ForwardOutcome:
        """Deliver payload to one target.

        Header precedence: defaults (and signature), then headers, then
        target.headers.
        """
        body = json.dumps(payload).encode("utf-8")
        merged = self._headers(body, headers, target.headers)
        self._log.info("Forwarding %s event to %s", payload.get("event", "?"), target.url)
        if self.simulate:
            self._log.info("TEST MODE: would send webhook to %s (%s headers)", target.url, len(merged))
            return ForwardOutcome(url=target.url, delivered=True, simulated=True)
        try:
            resp = self._post(target.url, body, merged)
        except ForwardDeliveryError as e:
            self._log.warning("Forwarding to %s failed: %s", target.url, e)
            return ForwardOutcome(url=target.url, delivered=False, error=str(e))
        self._log.info("Forwarded to %s (status=%s)", target.url, resp.status_code)
        return ForwardOutcome(url=target.url, delivered=True, status_code=resp.status_code)

    def forward_all(
        self,
        targets: Iterable[ForwardTarget],
        payload: Dict[str, Any],
        headers: Mapping[str, str] | None = None,
    ) -> List[ForwardOutcome]:
        """Deliver payload to every target; collect outcomes, never raise."""
        outcomes = []
        for target in targets:
            try:
                outcomes.append(self.forward(target, payload, headers))
            except Exception as e:
                self._log.exception("Unexpected error forwarding to %s: %s", target.url, e)
                outcomes.append(ForwardOutcome(url=target.url, delivered=False, error=str(e)))
        return outcomes


def make_forwarder(config: Any) -> WebhookForwarder:
    """Build forwarder from app config (forwarding section)."""
    return WebhookForwarder(
        secret=config.forwarding_secret_resolved,
        timeout=config.forwarding.timeout,
        simulate=config.is_test_mode,
    )
