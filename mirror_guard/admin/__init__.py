"""
Admin Server — HTTP endpoints for the approval workflow.

Usage:
    python -m mirror_guard.main serve --port 5050
"""

from .server import create_app, run_server

__all__ = ["create_app", "run_server"]
