"""
lessonsync - Schemas Module

Pydantic models for store payloads and the aggregated dashboard model.
"""

from lessonsync.schemas.progress import (
    ChapterMarker,
    PreferenceRecord,
    PreferenceUpdate,
    ProgressRecord,
    ProgressUpdate,
)
from lessonsync.schemas.dashboard import (
    AggregatedCourseProgress,
    AggregatedUserStats,
    DashboardSnapshot,
    DashboardView,
    LessonSummary,
    NextLessonLink,
    QuizSummary,
)

__all__ = [
    # Progress
    "ChapterMarker",
    "PreferenceRecord",
    "PreferenceUpdate",
    "ProgressRecord",
    "ProgressUpdate",
    # Dashboard
    "AggregatedCourseProgress",
    "AggregatedUserStats",
    "DashboardSnapshot",
    "DashboardView",
    "LessonSummary",
    "NextLessonLink",
    "QuizSummary",
]
