"""
Force-Push Detector — Fetch both branch snapshots and compare them.

**Fail-open**: if detection itself fails (host errors, rate limits,
timeout), the result is "skipped" and the sync proceeds normally.
Detection never blocks a sync because of its own failure.

## Usage

    from mirror_guard.detection.detector import detect_force_push

    result = detect_force_push(
        gitea, github,
        mirror_owner="backup", mirror_repo="app",
        source_owner="acme", source_repo="app",
    )
    if result.detected:
        ...
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Optional

from ..config.environment import DEFAULT_ANCESTRY_WORKERS
from ..errors import NotFoundError
from ..hosts.base import MirrorHost, SourceHost
from ..models.detection import DetectionResult
from .ancestry import ancestry_check_for
from .comparator import compare_branches

logger = logging.getLogger(__name__)


def detect_force_push(
    mirror: MirrorHost,
    source: SourceHost,
    mirror_owner: str,
    mirror_repo: str,
    source_owner: str,
    source_repo: str,
    timeout: Optional[float] = None,
    max_workers: int = DEFAULT_ANCESTRY_WORKERS,
) -> DetectionResult:
    """
    Compare the mirror's branches against the source.

    With a timeout, an unfinished run is abandoned and reported as skipped.
    """
    if timeout is None:
        return _detect(
            mirror, source, mirror_owner, mirror_repo, source_owner, source_repo, max_workers
        )

    runner = ThreadPoolExecutor(max_workers=1, thread_name_prefix="force-push")
    future = runner.submit(
        _detect, mirror, source, mirror_owner, mirror_repo, source_owner, source_repo, max_workers
    )
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        logger.warning(
            f"[force-push] Detection for {source_owner}/{source_repo} timed out after {timeout:g}s"
        )
        return DetectionResult.skipped_because(
            f"Force-push detection timed out after {timeout:g}s"
        )
    finally:
        runner.shutdown(wait=False, cancel_futures=True)


def _detect(
    mirror: MirrorHost,
    source: SourceHost,
    mirror_owner: str,
    mirror_repo: str,
    source_owner: str,
    source_repo: str,
    max_workers: int,
) -> DetectionResult:
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="branch-fetch") as pool:
        mirror_future = pool.submit(mirror.list_branches, mirror_owner, mirror_repo)
        source_future = pool.submit(source.list_branches, source_owner, source_repo)

        try:
            mirror_branches = mirror_future.result()
        except NotFoundError:
            return _skip("Mirror repository not found (not yet mirrored?)")
        except Exception as e:
            return _skip(f"Failed to fetch mirror branches: {e}")

        if not mirror_branches:
            return _skip("No mirror branches found (not yet mirrored?)")

        try:
            source_branches = source_future.result()
        except Exception as e:
            return _skip(f"Failed to fetch source branches: {e}")

    try:
        result = compare_branches(
            mirror_branches,
            source_branches,
            ancestry_check_for(source, source_owner, source_repo),
            max_workers=max_workers,
        )
    except ValueError as e:
        return _skip(f"Invalid branch data: {e}")

    if result.detected:
        logger.warning(
            f"[force-push] {source_owner}/{source_repo}: {result.summary()}"
        )
    else:
        logger.info(f"[force-push] {source_owner}/{source_repo}: no force-push detected")
    return result


def _skip(reason: str) -> DetectionResult:
    logger.info(f"[force-push] Detection skipped: {reason}")
    return DetectionResult.skipped_because(reason)
