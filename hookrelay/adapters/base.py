"""Abstract base for Git platform adapters."""

from abc import ABC, abstractmethod

from hookrelay.models import CommentRecord


class GitPlatformError(Exception):
    """Raised when a Git platform API call fails."""

    pass


class GitPlatformAdapter(ABC):
    """Interface to the Git host used to reply on issues and pull requests."""

    @abstractmethod
    def create_comment(self, repo: str, issue_number: int, body: str) -> CommentRecord:
        """Post a comment on an issue or pull request."""
        ...
