"""
GitHub Client — Branch listing and commit comparison on the source host.

Uses the GitHub REST API over httpx. No retries here; callers decide.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import httpx

from ..errors import ConfirmedRewrite, FetchError, HostError
from ..models.detection import BranchSnapshot
from .base import DEFAULT_TIMEOUT, CompareStatus, request

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
BRANCH_PAGE_SIZE = 100
HOST = "github"


def _get_headers(token: Optional[str]) -> Dict[str, str]:
    """Get GitHub API headers."""
    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


class GitHubClient:
    """Source host client."""

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: str = GITHUB_API_URL,
        client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.api_url = api_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)
        self._headers = _get_headers(token)

    def close(self) -> None:
        self._client.close()

    def list_branches(self, owner: str, repo: str) -> List[BranchSnapshot]:
        """
        Fetch every branch of a repository, following pagination.

        Raises NotFoundError when the repository does not exist.
        """
        branches: List[BranchSnapshot] = []
        page = 1
        url = f"{self.api_url}/repos/{owner}/{repo}/branches"

        while True:
            resp = request(
                self._client,
                "GET",
                url,
                HOST,
                headers=self._headers,
                params={"per_page": BRANCH_PAGE_SIZE, "page": page},
            )
            data = resp.json()
            if not isinstance(data, list) or not data:
                break

            for item in data:
                branches.append(
                    BranchSnapshot(name=item["name"], commit_id=item["commit"]["sha"])
                )

            if len(data) < BRANCH_PAGE_SIZE:
                break
            page += 1

        logger.debug(f"[github] {owner}/{repo}: {len(branches)} branch(es)")
        return branches

    def compare(self, owner: str, repo: str, base: str, head: str) -> CompareStatus:
        """
        Compare two commits.

        Raises ConfirmedRewrite on 404/422: the base commit is gone from
        GitHub, which only happens after history was rewritten.
        """
        url = f"{self.api_url}/repos/{owner}/{repo}/compare/{base}...{head}"
        try:
            resp = request(
                self._client,
                "GET",
                url,
                HOST,
                headers=self._headers,
                params={"per_page": 1},
            )
        except HostError as e:
            if e.status_code in (404, 422):
                raise ConfirmedRewrite(e.message, status_code=e.status_code, host=HOST) from e
            raise

        status = resp.json().get("status")
        try:
            return CompareStatus(status)
        except ValueError:
            raise FetchError(f"Unexpected compare status: {status!r}", host=HOST)
