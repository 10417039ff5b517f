"""
Persistence — Activity log and file-backed stores.
"""

from .activity import ActivityLog, ActivitySink
from .stores import ConfigStore, JsonRepositoryStore, RepositoryStore, YamlConfigStore

__all__ = [
    "ActivityLog",
    "ActivitySink",
    "ConfigStore",
    "JsonRepositoryStore",
    "RepositoryStore",
    "YamlConfigStore",
]
