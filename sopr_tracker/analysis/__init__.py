"""
SOPR analysis components.
"""

from .sopr_engine import ProgressCallback, SoprAnalyzer

__all__ = [
    "ProgressCallback",
    "SoprAnalyzer",
]
