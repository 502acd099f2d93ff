"""GitHub API adapter."""

from datetime import datetime
from typing import Any, Dict

import requests

from hookrelay.adapters.base import GitPlatformAdapter, GitPlatformError
from hookrelay.models import CommentRecord

USER_AGENT = "hookrelay"


def _parse_iso(s: str) -> datetime:
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _comment_from_api(data: Dict[str, Any]) -> CommentRecord:
    return CommentRecord(
        id=data["id"],
        body=data.get("body") or "",
        created_at=_parse_iso(data["created_at"]),
    )


class GitHubAdapter(GitPlatformAdapter):
    """GitHub REST API implementation."""

    def __init__(self, token: str, api_url: str = "https://api.github.com", timeout: int = 30) -> None:
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._session = requests.Session()
        self._session.headers["Authorization"] = f"Bearer {token}"
        self._session.headers["Accept"] = "application/vnd.github.v3+json"
        self._session.headers["User-Agent"] = USER_AGENT

    def _request(
        self,
        method: str,
        path: str,
        json: Dict[str, Any] | None = None,
    ) -> requests.Response:
        url = f"{self._api_url}{path}" if path.startswith("/") else f"{self._api_url}/{path}"
        try:
            resp = self._session.request(method, url, json=json, timeout=self._timeout)
        except requests.RequestException as e:
            raise GitPlatformError(f"{method} {path}: {e}") from e
        if resp.status_code >= 400:
            msg = resp.text or resp.reason or str(resp.status_code)
            try:
                msg = resp.json().get("message", msg)
            except ValueError:
                pass
            raise GitPlatformError(f"{resp.status_code}: {msg}")
        return resp

    def create_comment(self, repo: str, issue_number: int, body: str) -> CommentRecord:
        resp = self._request("POST", f"/repos/{repo}/issues/{issue_number}/comments", json={"body": body})
        try:
            return _comment_from_api(resp.json())
        except (KeyError, TypeError, ValueError) as e:
            raise GitPlatformError(f"Unexpected comment response: {e}") from e
