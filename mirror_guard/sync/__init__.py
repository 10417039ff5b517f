"""
Sync — The guarded sync pipeline and the approval workflow.
"""

from .approval import ApprovalResult, ApprovalService, validate_request
from .pipeline import SyncOutcome, SyncPipeline, schedulable

__all__ = [
    "ApprovalResult",
    "ApprovalService",
    "SyncOutcome",
    "SyncPipeline",
    "schedulable",
    "validate_request",
]
