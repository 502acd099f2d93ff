"""Shared fixtures."""

import pytest

from hookrelay import config as config_module


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Secrets resolved by config never leak in from the developer's shell."""
    monkeypatch.setattr(config_module, "_current_env", {})
    for key in (
        "GITHUB_TOKEN",
        "GITHUB_WEBHOOK_SECRET",
        "WEBHOOK_SECRET",
        "ENVIRONMENT",
        "OUTGOING_WEBHOOK_URLS",
        "COMMENT_WEBHOOK_URLS",
        "ANTHROPIC_API_KEY",
    ):
        monkeypatch.delenv(key, raising=False)
