"""Post command results back to the issue or pull request thread."""

import logging
from datetime import UTC, datetime
from typing import Any

from hookrelay.adapters.base import GitPlatformAdapter, GitPlatformError
from hookrelay.models import CommentRecord

TEST_COMMENT_ID = "test-comment-id"


class CommentPublishError(Exception):
    """Raised when a comment cannot be posted. Never retried here."""

    pass


class CommentPublisher:
    """Publish comments through a platform adapter, or synthesize them in
    test mode."""

    def __init__(
        self,
        adapter: GitPlatformAdapter | None,
        simulate: bool = False,
        log: logging.Logger | None = None,
    ) -> None:
        self.adapter = adapter
        self.simulate = simulate or adapter is None
        self._log = log or logging.getLogger("hookrelay.publisher")

    def publish(self, repo_full_name: str, issue_number: int, body: str) -> CommentRecord:
        self._log.info("Posting comment to %s#%s (length=%s)", repo_full_name, issue_number, len(body))
        if self.simulate:
            preview = body[:100] + ("..." if len(body) > 100 else "")
            self._log.info("TEST MODE: would post comment to %s#%s: %s", repo_full_name, issue_number, preview)
            return CommentRecord(id=TEST_COMMENT_ID, body=body, created_at=datetime.now(UTC))
        try:
            record = self.adapter.create_comment(repo_full_name, issue_number, body)
        except GitPlatformError as e:
            self._log.error("Failed to post comment to %s#%s: %s", repo_full_name, issue_number, e)
            raise CommentPublishError(f"Failed to post comment: {e}") from e
        self._log.info("Comment %s posted to %s#%s", record.id, repo_full_name, issue_number)
        return record


def make_publisher(config: Any) -> CommentPublisher:
    """Build publisher from app config; no adapter without a usable token."""
    if config.is_test_mode or not config.has_valid_github_token:
        return CommentPublisher(None, simulate=True)
    from hookrelay.adapters.github import GitHubAdapter

    adapter = GitHubAdapter(token=config.github_token_resolved, api_url=config.github.api_url)
    return CommentPublisher(adapter)
