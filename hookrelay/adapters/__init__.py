"""Git platform adapters."""

from hookrelay.adapters.base import GitPlatformAdapter, GitPlatformError
from hookrelay.adapters.github import GitHubAdapter

__all__ = ["GitHubAdapter", "GitPlatformAdapter", "GitPlatformError"]
