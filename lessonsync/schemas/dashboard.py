"""
Dashboard Schemas

Canonical progress model produced by the aggregator and the views built
from it for display.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from lessonsync.models.enums import SortKey, StatusFilter


class LessonSummary(BaseModel):
    """Normalized progress of one lesson inside a course."""

    lesson_id: Optional[str] = Field(None, description="Lesson identifier, if the source had one")
    title: str = Field("", description="Lesson title")
    progress: float = Field(0.0, ge=0, le=100, description="Lesson progress percentage")
    is_completed: bool = Field(False, description="Whether the lesson is finished")
    last_accessed_at: Optional[datetime] = Field(None, description="Last time the lesson was opened")
    position: int = Field(0, ge=0, description="Index of the lesson in document order")


class NextLessonLink(BaseModel):
    """Where the "continue" action of a course points."""

    course_id: str
    lesson_id: Optional[str] = None
    url: str


class AggregatedCourseProgress(BaseModel):
    """Per-course progress derived on every aggregation pass."""

    course_id: str = Field(..., description="Course identifier")
    course_title: str = Field(..., description="Course title")
    course_description: Optional[str] = None
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    total_lessons: int = Field(0, ge=0)
    completed_lessons: int = Field(0, ge=0)
    overall_progress: float = Field(0.0, ge=0, le=100, description="Course progress percentage")
    last_accessed: datetime = Field(..., description="Most recent activity in the course")
    lessons: list[LessonSummary] = Field(default_factory=list)
    next_lesson: NextLessonLink


class QuizSummary(BaseModel):
    """A single quiz attempt."""

    quiz_id: Optional[str] = None
    title: Optional[str] = None
    score: float = 0.0
    max_score: Optional[float] = None

    @property
    def percentage(self) -> Optional[float]:
        """Score as a percentage, or None when the quiz has no maximum."""
        if not self.max_score or self.max_score <= 0:
            return None
        return self.score / self.max_score * 100


class AggregatedUserStats(BaseModel):
    """Summary counters for the learner."""

    courses_enrolled: int = Field(0, ge=0)
    lessons_completed: int = Field(0, ge=0)
    quiz_attempts: int = Field(0, ge=0)
    average_quiz_score: int = Field(0, ge=0, le=100)
    total_video_watch_time: int = Field(0, ge=0, description="Minutes of video watched")
    study_streak: int = Field(0, ge=0, description="Consecutive study days")
    total_points_earned: int = Field(0, ge=0)
    level: int = Field(1, ge=1)
    next_level_points: int = Field(1000, ge=0)


class DashboardSnapshot(BaseModel):
    """Full aggregation output for one listing."""

    courses: list[AggregatedCourseProgress] = Field(default_factory=list)
    stats: AggregatedUserStats = Field(default_factory=AggregatedUserStats)


class DashboardView(BaseModel):
    """Sorted and filtered snapshot ready for display."""

    courses: list[AggregatedCourseProgress]
    stats: AggregatedUserStats
    sort: SortKey
    status: StatusFilter
    search: Optional[str] = None
    total: int = Field(..., description="Number of courses after filtering")
