"""
Force-Push Detection — Branch comparison between mirror and source.
"""

from .ancestry import (
    AncestryOutcome,
    AncestryVerdict,
    ancestry_check_for,
    classify_transition,
    is_fast_forward,
)
from .comparator import compare_branches
from .detector import detect_force_push

__all__ = [
    "AncestryOutcome",
    "AncestryVerdict",
    "ancestry_check_for",
    "classify_transition",
    "compare_branches",
    "detect_force_push",
    "is_fast_forward",
]
