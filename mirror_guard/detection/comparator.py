"""
Divergence Comparator — Classify each mirrored branch against the source.

For every branch on the mirror:
- absent on the source      → deleted
- same commit               → nothing to report
- different commit          → ask the ancestry oracle; not a fast-forward → diverged

Branches only on the source are never examined: they cannot lose data on
the mirror. A failing ancestry check skips that branch only.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Sequence, Tuple

from ..models.detection import (
    AffectedBranch,
    BranchSnapshot,
    DetectionResult,
    DivergenceReason,
)
from .ancestry import AncestryCheck, AncestryOutcome, AncestryVerdict, classify_transition

logger = logging.getLogger(__name__)


def index_branches(branches: Sequence[BranchSnapshot]) -> Dict[str, str]:
    """Map branch name to commit id. Duplicate names are a caller bug."""
    index: Dict[str, str] = {}
    for branch in branches:
        if branch.name in index:
            raise ValueError(f"Duplicate branch name in snapshot: {branch.name!r}")
        index[branch.name] = branch.commit_id
    return index


def compare_branches(
    mirror_branches: Sequence[BranchSnapshot],
    source_branches: Sequence[BranchSnapshot],
    ancestry_check: AncestryCheck,
    max_workers: int = 1,
) -> DetectionResult:
    """
    Diff two branch snapshots.

    Ancestry checks run on up to max_workers threads; findings keep the
    mirror's branch order either way.
    """
    index_branches(mirror_branches)
    source_index = index_branches(source_branches)

    findings: Dict[str, AffectedBranch] = {}
    to_check: List[Tuple[BranchSnapshot, str]] = []

    for branch in mirror_branches:
        source_commit = source_index.get(branch.name)
        if source_commit is None:
            findings[branch.name] = AffectedBranch(
                name=branch.name,
                reason=DivergenceReason.DELETED,
                mirror_commit_id=branch.commit_id,
                source_commit_id=None,
            )
        elif source_commit != branch.commit_id:
            to_check.append((branch, source_commit))

    for (branch, source_commit), outcome in zip(
        to_check, _run_checks(to_check, ancestry_check, max_workers)
    ):
        if outcome.verdict == AncestryVerdict.DIVERGED:
            findings[branch.name] = AffectedBranch(
                name=branch.name,
                reason=DivergenceReason.DIVERGED,
                mirror_commit_id=branch.commit_id,
                source_commit_id=source_commit,
            )
        elif outcome.verdict == AncestryVerdict.UNDETERMINED:
            logger.warning(
                f"[force-push] Ancestry check failed for branch {branch.name!r}, "
                f"skipping it: {outcome.error}"
            )

    ordered = [findings[b.name] for b in mirror_branches if b.name in findings]
    return DetectionResult.from_findings(ordered)


def _run_checks(
    pairs: List[Tuple[BranchSnapshot, str]],
    ancestry_check: AncestryCheck,
    max_workers: int,
) -> List[AncestryOutcome]:
    if not pairs:
        return []
    if max_workers <= 1 or len(pairs) == 1:
        return [classify_transition(ancestry_check, b.commit_id, head) for b, head in pairs]

    with ThreadPoolExecutor(
        max_workers=min(max_workers, len(pairs)), thread_name_prefix="ancestry"
    ) as pool:
        return list(
            pool.map(lambda pair: classify_transition(ancestry_check, pair[0].commit_id, pair[1]), pairs)
        )
