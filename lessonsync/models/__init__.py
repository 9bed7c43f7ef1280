"""
lessonsync - Models Module

Enumerations shared across the package.
"""

from lessonsync.models.enums import (
    FailureAction,
    FailureKind,
    SortKey,
    StatusFilter,
    VideoQuality,
)

__all__ = [
    "FailureAction",
    "FailureKind",
    "SortKey",
    "StatusFilter",
    "VideoQuality",
]
