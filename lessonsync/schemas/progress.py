"""
Progress Schemas

Pydantic models for lesson progress, playback preferences and chapter
markers as exchanged with the progress store.

Fields are snake_case; camelCase input is accepted through aliases.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from lessonsync.models.enums import VideoQuality


class StoreModel(BaseModel):
    """Base model accepting either naming convention on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )


class ProgressRecord(StoreModel):
    """Persisted watch position for one user and lesson."""

    user_id: Optional[str] = None
    lesson_id: Optional[str] = None
    current_time: float = Field(0.0, ge=0)
    duration: float = Field(0.0, ge=0)
    completion_percentage: float = 0.0
    completed: bool = False
    watch_count: int = Field(0, ge=0)
    last_watched_at: Optional[datetime] = None

    @model_validator(mode="after")
    def normalize_percentage(self) -> "ProgressRecord":
        """
        Clamp to [0, 100].

        A record without duration has no progress, unless it was marked
        completed directly, in which case it is fully watched.
        """
        if self.duration == 0:
            self.completion_percentage = 100.0 if self.completed else 0.0
        else:
            self.completion_percentage = min(max(self.completion_percentage, 0.0), 100.0)
        return self


class ProgressUpdate(StoreModel):
    """Body of a progress upsert."""

    current_time: float = Field(..., ge=0)
    duration: float = Field(..., ge=0)
    completion_percentage: float = Field(..., ge=0, le=100)
    completed: bool


class PreferenceRecord(StoreModel):
    """User playback preferences."""

    user_id: Optional[str] = None
    playback_speed: float = Field(1.0, gt=0)
    preferred_quality: VideoQuality = VideoQuality.AUTO
    auto_play_next: bool = True
    show_captions: bool = False
    caption_language: str = "en"


class PreferenceUpdate(StoreModel):
    """Partial preference change; unset fields are not sent."""

    playback_speed: Optional[float] = Field(None, gt=0)
    preferred_quality: Optional[VideoQuality] = None
    auto_play_next: Optional[bool] = None
    show_captions: Optional[bool] = None
    caption_language: Optional[str] = None


class ChapterMarker(StoreModel):
    """Named section of a lesson video."""

    id: Optional[str] = None
    lesson_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    start_time: float = Field(..., ge=0)
    end_time: Optional[float] = None
    order_index: int = 0

    def contains(self, position: float) -> bool:
        """Check whether a playback position falls inside this chapter."""
        if position < self.start_time:
            return False
        return self.end_time is None or position < self.end_time
