"""
Progress feature — gates the three workflow stages.

Public API:
    from features.progress import ProgressController, PREREQUISITES
"""

from features.progress.controller import PREREQUISITES, ProgressController

__all__ = ["PREREQUISITES", "ProgressController"]
