"""
Progress Tracking Services
"""

from .registry import (
    ProgressConfig,
    ProgressRegistry,
    ProgressStep,
    ProgressTracker,
    StepStatus,
    TrackerStatus,
)

__all__ = [
    "ProgressConfig",
    "ProgressRegistry",
    "ProgressStep",
    "ProgressTracker",
    "StepStatus",
    "TrackerStatus",
]
