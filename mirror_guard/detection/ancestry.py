"""
Ancestry Oracle — Is the source's branch head a fast-forward of the mirror's?

Built on the source host's compare API:

    ahead / identical  → fast-forward (safe)
    behind / diverged  → rewritten
    404 / 422          → base commit is gone → rewritten (confirmed)
    anything else      → raised; the comparator treats the branch as undetermined
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..errors import ConfirmedRewrite
from ..hosts.base import CompareStatus, SourceHost

logger = logging.getLogger(__name__)

# (base_commit_id, head_commit_id) -> is fast-forward
AncestryCheck = Callable[[str, str], bool]

_FAST_FORWARD_STATUSES = (CompareStatus.AHEAD, CompareStatus.IDENTICAL)


class AncestryVerdict(str, Enum):
    SAFE = "safe"
    DIVERGED = "diverged"
    UNDETERMINED = "undetermined"


@dataclass(frozen=True)
class AncestryOutcome:
    """Classification of one branch transition."""

    verdict: AncestryVerdict
    error: Optional[str] = None


def is_fast_forward(
    source: SourceHost,
    owner: str,
    repo: str,
    base_commit_id: str,
    head_commit_id: str,
) -> bool:
    """
    Check whether head_commit_id descends from base_commit_id.

    Returns False for a confirmed force-push (base no longer exists).
    Raises on transient errors so the caller can fail open.
    """
    try:
        status = source.compare(owner, repo, base_commit_id, head_commit_id)
    except ConfirmedRewrite:
        logger.info(
            f"[force-push] {owner}/{repo}: {base_commit_id[:12]} no longer exists on source"
        )
        return False
    return status in _FAST_FORWARD_STATUSES


def ancestry_check_for(source: SourceHost, owner: str, repo: str) -> AncestryCheck:
    """Bind is_fast_forward to one source repository."""

    def check(base_commit_id: str, head_commit_id: str) -> bool:
        return is_fast_forward(source, owner, repo, base_commit_id, head_commit_id)

    return check


def classify_transition(
    check: AncestryCheck, base_commit_id: str, head_commit_id: str
) -> AncestryOutcome:
    """Run an ancestry check and fold its failure into a verdict."""
    try:
        fast_forward = check(base_commit_id, head_commit_id)
    except Exception as e:
        return AncestryOutcome(AncestryVerdict.UNDETERMINED, error=str(e) or e.__class__.__name__)
    if fast_forward:
        return AncestryOutcome(AncestryVerdict.SAFE)
    return AncestryOutcome(AncestryVerdict.DIVERGED)
