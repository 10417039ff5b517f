"""
Errors — Exception taxonomy for detection, backup, and approval.

## Propagation

- NotFoundError: repository absent on a host. Expected on a first mirror.
- TransientHostError: rate limit, network, 5xx. Never read as a force-push.
- ConfirmedRewrite: the old commit is gone from the source. Always diverged.
- ValidationError: malformed approval request. Reported as a client error.
- BackupIOError: snapshot creation failed. Fatal only with block-on-failure.
- AwaitingApproval: sync requested for a blocked repository outside approval.
"""

from __future__ import annotations

from typing import Dict, Optional


class MirrorGuardError(Exception):
    """Base class for all engine errors."""


class HostError(MirrorGuardError):
    """A git host answered with an error or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, host: str = ""):
        self.message = message
        self.status_code = status_code
        self.host = host
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        prefix = f"{self.host} " if self.host else ""
        if self.status_code is not None:
            return f"{prefix}HTTP {self.status_code}: {self.message}"
        return f"{prefix}{self.message}".strip()


class NotFoundError(HostError):
    """The repository (or ref) does not exist on that host."""


class FetchError(HostError):
    """Generic failure reading from a host."""


class TransientHostError(FetchError):
    """Rate limit, network failure, or server error."""


class ConfirmedRewrite(HostError):
    """The base commit can no longer be resolved on the source host."""


class ValidationError(MirrorGuardError):
    """Raised when a request to the approval workflow is malformed."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict] = None):
        self.message = message
        self.field = field
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


class NoPendingRepositories(MirrorGuardError):
    """None of the requested repositories is waiting for approval."""


class BackupIOError(MirrorGuardError):
    """Snapshot creation failed (git error, disk full, permission denied)."""


class ConfigurationError(MirrorGuardError):
    """Raised when configuration is missing or invalid."""
    pass


class AwaitingApproval(MirrorGuardError):
    """The repository is blocked on a force-push; only approve or dismiss may move it."""
