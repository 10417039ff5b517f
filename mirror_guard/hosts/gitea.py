"""
Gitea Client — Branch listing and mirror-sync trigger on the mirror host.

    GET  /api/v1/repos/{owner}/{repo}/branches?page=N&limit=50
    POST /api/v1/repos/{owner}/{repo}/mirror-sync

A 404 on the branch listing means the repository was never mirrored.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import httpx

from ..models.detection import BranchSnapshot
from .base import DEFAULT_TIMEOUT, request

logger = logging.getLogger(__name__)

BRANCH_PAGE_SIZE = 50
HOST = "gitea"


def _get_headers(token: str) -> Dict[str, str]:
    """Get Gitea API headers."""
    return {
        "Accept": "application/json",
        "Authorization": f"token {token}",
    }


class GiteaClient:
    """Mirror host client."""

    def __init__(
        self,
        url: str,
        token: str,
        client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = url.rstrip("/")
        self.token = token
        self._client = client or httpx.Client(timeout=timeout)
        self._headers = _get_headers(token)

    def close(self) -> None:
        self._client.close()

    def list_branches(self, owner: str, repo: str) -> List[BranchSnapshot]:
        """Fetch every branch of a mirrored repository."""
        branches: List[BranchSnapshot] = []
        page = 1
        url = f"{self.base_url}/api/v1/repos/{owner}/{repo}/branches"

        while True:
            resp = request(
                self._client,
                "GET",
                url,
                HOST,
                headers=self._headers,
                params={"page": page, "limit": BRANCH_PAGE_SIZE},
            )
            data = resp.json()
            if not isinstance(data, list) or not data:
                break

            for item in data:
                branches.append(
                    BranchSnapshot(name=item["name"], commit_id=item["commit"]["id"])
                )

            if len(data) < BRANCH_PAGE_SIZE:
                break
            page += 1

        logger.debug(f"[gitea] {owner}/{repo}: {len(branches)} branch(es)")
        return branches

    def trigger_mirror_sync(self, owner: str, repo: str) -> None:
        """Ask Gitea to pull the upstream into its mirror now."""
        url = f"{self.base_url}/api/v1/repos/{owner}/{repo}/mirror-sync"
        request(self._client, "POST", url, HOST, headers=self._headers)
        logger.info(f"[gitea] Mirror sync triggered for {owner}/{repo}")

    def clone_url(self, owner: str, repo: str) -> str:
        """HTTPS clone URL, without credentials."""
        return f"{self.base_url}/{owner}/{repo}.git"
