"""Webhook signature computation and verification (X-Hub-Signature-256)."""

import hashlib
import hmac
import logging

from hookrelay.logging import REDACTED

SIGNATURE_PREFIX = "sha256="

LOG = logging.getLogger("hookrelay.signature")


class AuthenticationError(Exception):
    """Raised when an inbound delivery fails signature verification.

    The message never contains the secret or a computed digest.
    """

    pass


def compute_signature(secret: str, body: bytes) -> str:
    """Return 'sha256=<lowercase hex HMAC-SHA-256 of body>'."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return SIGNATURE_PREFIX + digest


def verify_signature(body: bytes, signature_header: str | None, secret: str | None) -> bool:
    """Check signature_header against the HMAC of the raw body.

    Returns True on success; raises AuthenticationError when the header
    or the secret is missing or when the signatures differ. Comparison is
    constant-time over the full digest.
    """
    LOG.debug("Verifying webhook signature (secret: %s)", REDACTED if secret else "missing")
    if not signature_header:
        LOG.warning("No signature found in webhook request")
        raise AuthenticationError("No signature found in request")
    if not secret:
        LOG.warning("Webhook secret is not configured; rejecting delivery")
        raise AuthenticationError("Webhook secret is not configured")
    expected = compute_signature(secret, body)
    if not hmac.compare_digest(expected.encode("ascii"), signature_header.encode("utf-8", "replace")):
        LOG.warning("Webhook signature verification failed")
        raise AuthenticationError("Webhook signature verification failed")
    LOG.debug("Webhook signature verification succeeded")
    return True
