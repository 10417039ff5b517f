"""
Mirror Guard — Force-push detection and pre-sync backups for git mirrors.

Decides, before each mirror sync, whether the upstream history was
destructively rewritten and whether to snapshot, block, or proceed.
"""

__version__ = "0.1.0"
