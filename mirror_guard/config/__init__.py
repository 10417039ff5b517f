"""
Configuration — Environment snapshot and per-user config loading.
"""

from .environment import EngineEnvironment, parse_bool

__all__ = ["EngineEnvironment", "parse_bool"]
