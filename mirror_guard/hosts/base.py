"""
Host Interfaces — Capabilities the engine needs from the two git hosts.

Detection code depends on these protocols only, so tests can pass
in-memory fakes instead of HTTP clients.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Protocol

import httpx

from ..errors import FetchError, HostError, NotFoundError, TransientHostError
from ..models.detection import BranchSnapshot

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


class CompareStatus(str, Enum):
    """Relation of head to base as reported by the source host."""

    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"
    IDENTICAL = "identical"


class SourceHost(Protocol):
    """The upstream host (GitHub)."""

    def list_branches(self, owner: str, repo: str) -> List[BranchSnapshot]: ...

    def compare(self, owner: str, repo: str, base: str, head: str) -> CompareStatus: ...


class MirrorHost(Protocol):
    """The destination host (Gitea)."""

    def list_branches(self, owner: str, repo: str) -> List[BranchSnapshot]: ...

    def trigger_mirror_sync(self, owner: str, repo: str) -> None: ...

    def clone_url(self, owner: str, repo: str) -> str: ...


def error_for_response(resp: httpx.Response, host: str) -> HostError:
    """Map a non-2xx response onto the error taxonomy."""
    try:
        body = resp.json()
        message = body.get("message") if isinstance(body, dict) else None
    except ValueError:
        message = None
    message = message or resp.text[:200] or resp.reason_phrase

    if resp.status_code == 404:
        return NotFoundError(message, status_code=404, host=host)
    if resp.status_code == 429 or resp.status_code >= 500:
        return TransientHostError(message, status_code=resp.status_code, host=host)
    if resp.status_code == 403 and resp.headers.get("x-ratelimit-remaining") == "0":
        return TransientHostError("rate limit exceeded", status_code=403, host=host)
    return FetchError(message, status_code=resp.status_code, host=host)


def request(client: httpx.Client, method: str, url: str, host: str, **kwargs) -> httpx.Response:
    """Send a request, turning transport failures into TransientHostError."""
    try:
        resp = client.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        raise TransientHostError(str(e) or e.__class__.__name__, host=host) from e
    if resp.is_success:
        return resp
    raise error_for_response(resp, host)
