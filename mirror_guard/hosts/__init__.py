"""
Host Clients — HTTP access to the source (GitHub) and mirror (Gitea) hosts.
"""

from .base import CompareStatus, MirrorHost, SourceHost
from .gitea import GiteaClient
from .github import GitHubClient

__all__ = ["CompareStatus", "GiteaClient", "GitHubClient", "MirrorHost", "SourceHost"]
