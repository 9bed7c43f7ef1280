"""
Progress Aggregator

Turns course, lesson and quiz payloads into the canonical dashboard
model. Upstream sources disagree on naming (camelCase, snake_case) and
nesting, so each entity has one normalization function with an ordered
fallback chain of keys: the first present value wins, and a missing or
unparseable field degrades to a computed or zero default.

Everything here is pure; nothing raises on malformed input.
"""

import logging
import math
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, List, Optional, Sequence

from lessonsync.schemas.dashboard import (
    AggregatedCourseProgress,
    AggregatedUserStats,
    DashboardSnapshot,
    LessonSummary,
    NextLessonLink,
    QuizSummary,
)


logger = logging.getLogger(__name__)


# ============== Fallback Chains ==============
# Dotted keys walk nested mappings ("course.title").

COURSE_ID_KEYS = ("courseId", "course_id", "id", "course.id")
COURSE_TITLE_KEYS = ("courseTitle", "course_title", "title", "name", "course.title", "course.name")
COURSE_DESCRIPTION_KEYS = ("courseDescription", "course_description", "description", "course.description")
COURSE_CATEGORY_KEYS = ("category", "categoryName", "category_name", "category.name", "course.category")
COURSE_TAGS_KEYS = ("tags", "course.tags")
COURSE_LESSONS_KEYS =("lessons", "course.lessons", "lessonProgress", "lesson_progress")
TOTAL_LESSONS_KEYS = (
    "totalLessons", "total_lessons", "lessonCount", "lesson_count",
    "course.totalLessons", "course.total_lessons",
)
COMPLETED_LESSONS_KEYS = ("completedLessons", "completed_lessons")
OVERALL_PROGRESS_KEYS = (
    "overallProgress", "overall_progress", "progress", "progress.percentage",
    "progressPercentage", "progress_percentage", "completionPercentage", "completion_percentage",
)
COURSE_LAST_ACCESSED_KEYS = ("lastAccessed", "last_accessed", "lastAccessedAt", "last_accessed_at")

LESSON_ID_KEYS = ("lessonId", "lesson_id", "id", "lesson.id")
LESSON_TITLE_KEYS = ("title", "lessonTitle", "lesson_title", "name", "lesson.title")
LESSON_PROGRESS_KEYS = (
    "progress", "progress.percentage", "progress.completion_percentage",
    "completionPercentage", "completion_percentage", "progressPercentage", "progress_percentage",
)
LESSON_COMPLETED_KEYS = ("isCompleted", "is_completed", "completed", "progress.completed", "progress.is_completed")
LESSON_STATUS_KEYS = ("status", "progress.status")
LESSON_LAST_ACCESSED_KEYS = (
    "lastAccessedAt", "last_accessed_at", "lastAccessed", "last_accessed",
    "lastWatchedAt", "last_watched_at", "progress.last_watched_at",
)
COMPLETED_STATUSES = {"completed", "complete", "watched", "done"}

QUIZ_ID_KEYS = ("quizId", "quiz_id", "id")
QUIZ_TITLE_KEYS = ("title", "quizTitle", "quiz_title", "name")
QUIZ_SCORE_KEYS = ("score", "points", "quizScore", "quiz_score")
QUIZ_MAX_SCORE_KEYS = ("maxScore", "max_score", "maxPoints", "max_points", "totalPoints", "total_points")

LISTING_COURSES_KEYS = ("courses", "enrolledCourses", "enrolled_courses")
LISTING_QUIZZES_KEYS = ("recentQuizzes", "recent_quizzes", "quizzes")
LISTING_STATS_KEYS = ("stats", "progress", "summary")

STATS_COURSES_KEYS = ("totalCourses", "total_courses", "coursesEnrolled", "courses_enrolled", "total_courses_enrolled")
STATS_LESSONS_KEYS = ("completedLessons", "completed_lessons", "lessonsCompleted", "total_lessons_completed")
STATS_QUIZ_ATTEMPTS_KEYS = ("quizAttempts", "quiz_attempts", "total_quiz_attempts")
STATS_AVERAGE_SCORE_KEYS = ("averageScore", "average_score", "averageQuizScore", "average_quiz_score")
STATS_WATCH_MINUTES_KEYS = ("totalVideoWatchTime", "total_video_watch_time")
STATS_TIME_SPENT_KEYS = ("timeSpent", "time_spent")  # seconds
STATS_STREAK_KEYS = ("studyStreak", "study_streak")
STATS_POINTS_KEYS = ("totalPoints", "total_points", "total_points_earned")
STATS_LEVEL_KEYS = ("level",)
STATS_NEXT_LEVEL_KEYS = ("nextLevelXp", "next_level_xp", "nextLevelPoints", "next_level_points")

DEFAULT_COURSE_TITLE = "Untitled course"
DEFAULT_LEVEL = 1
DEFAULT_NEXT_LEVEL_POINTS = 1000

COURSE_URL = "/courses/{course_id}"
LESSON_URL = "/courses/{course_id}/lessons/{lesson_id}"

# Epoch values above this are milliseconds
EPOCH_MILLIS_THRESHOLD = 1e11


# ============== Field Helpers ==============

def _lookup(source: Any, path: str) -> Any:
    current = source
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def _pick(source: Any, keys: Sequence[str]) -> Any:
    """First non-None value along the fallback chain."""
    for key in keys:
        value = _lookup(source, key)
        if value is not None:
            return value
    return None


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().rstrip("%"))
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _pick_number(source: Any, keys: Sequence[str]) -> Optional[float]:
    """First value along the chain that parses as a number."""
    for key in keys:
        number = _to_number(_lookup(source, key))
        if number is not None:
            return number
    return None


def _pick_count(source: Any, keys: Sequence[str]) -> Optional[int]:
    number = _pick_number(source, keys)
    if number is None:
        return None
    return max(int(number), 0)


def _to_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
    return None


def _pick_bool(source: Any, keys: Sequence[str]) -> Optional[bool]:
    for key in keys:
        flag = _to_bool(_lookup(source, key))
        if flag is not None:
            return flag
    return None


def _to_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > EPOCH_MILLIS_THRESHOLD else value
        try:
            parsed = datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = f"{text[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    # Naive timestamps are taken as UTC so everything compares
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _pick_datetime(source: Any, keys: Sequence[str]) -> Optional[datetime]:
    for key in keys:
        parsed = _to_datetime(_lookup(source, key))
        if parsed is not None:
            return parsed
    return None


def _to_id(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (bool, Mapping, list)):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    return text or None


def _pick_text(source: Any, keys: Sequence[str]) -> Optional[str]:
    for key in keys:
        value = _lookup(source, key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _pick_list(source: Any, keys: Sequence[str], label: str) -> List[Any]:
    value = _pick(source, keys)
    if value is None:
        return []
    if not isinstance(value, list):
        logger.warning("Ignoring %s: expected a list, got %s", label, type(value).__name__)
        return []
    return value


def _clamp_percentage(value: float) -> float:
    return min(max(value, 0.0), 100.0)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


# ============== Lessons ==============

def normalize_lesson(raw: Mapping, position: int = 0) -> LessonSummary:
    """
    Normalize one lesson entry.

    ``is_completed`` comes from an explicit flag, then from a status
    string, and is False otherwise. Missing progress counts as 0.
    """
    progress = _pick_number(raw, LESSON_PROGRESS_KEYS)

    completed = _pick_bool(raw, LESSON_COMPLETED_KEYS)
    if completed is None:
        status = _pick_text(raw, LESSON_STATUS_KEYS)
        completed = status is not None and status.lower() in COMPLETED_STATUSES

    return LessonSummary(
        lesson_id=_to_id(_pick(raw, LESSON_ID_KEYS)),
        title=_pick_text(raw, LESSON_TITLE_KEYS) or "",
        progress=_clamp_percentage(progress or 0.0),
        is_completed=completed,
        last_accessed_at=_pick_datetime(raw, LESSON_LAST_ACCESSED_KEYS),
        position=position,
    )


def _normalize_lessons(raw_lessons: Iterable[Any]) -> List[LessonSummary]:
    lessons = []
    for raw in raw_lessons:
        if not isinstance(raw, Mapping):
            logger.warning("Skipping malformed lesson entry of type %s", type(raw).__name__)
            continue
        lessons.append(normalize_lesson(raw, position=len(lessons)))
    return lessons


def resolve_next_lesson(course_id: str, lessons: Sequence[LessonSummary]) -> NextLessonLink:
    """
    Pick where "continue" should go.

    The first unfinished lesson in document order; the first lesson when
    all are finished; the course page when there are no lessons.
    """
    if not lessons:
        return NextLessonLink(course_id=course_id, url=COURSE_URL.format(course_id=course_id))

    target = next((lesson for lesson in lessons if not lesson.is_completed), lessons[0])
    if target.lesson_id is None:
        return NextLessonLink(course_id=course_id, url=COURSE_URL.format(course_id=course_id))

    return NextLessonLink(
        course_id=course_id,
        lesson_id=target.lesson_id,
        url=LESSON_URL.format(course_id=course_id, lesson_id=target.lesson_id),
    )


# ============== Courses ==============

def normalize_course(raw: Mapping, now: Optional[datetime] = None) -> AggregatedCourseProgress:
    """
    Normalize one course entry.

    Fallback order:
        total_lessons: explicit count, then number of lessons, then 0.
        completed_lessons: explicit count, then lessons marked completed.
        overall_progress: explicit parseable value, then the mean lesson
            progress when there are lessons, then 0.
        last_accessed: explicit value, then the latest lesson access, then
            ``now`` so unseen courses sort first.
    """
    now = now or datetime.now(timezone.utc)

    course_id = _to_id(_pick(raw, COURSE_ID_KEYS)) or ""
    lessons = _normalize_lessons(_pick_list(raw, COURSE_LESSONS_KEYS, f"lessons of course {course_id!r}"))

    total_lessons = _pick_count(raw, TOTAL_LESSONS_KEYS)
    if total_lessons is None:
        total_lessons = len(lessons)

    completed_lessons = _pick_count(raw, COMPLETED_LESSONS_KEYS)
    if completed_lessons is None:
        completed_lessons = sum(1 for lesson in lessons if lesson.is_completed)

    overall_progress = _pick_number(raw, OVERALL_PROGRESS_KEYS)
    if overall_progress is None:
        if total_lessons > 0 and lessons:
            overall_progress = sum(lesson.progress for lesson in lessons) / len(lessons)
        else:
            overall_progress = 0.0

    last_accessed = _pick_datetime(raw, COURSE_LAST_ACCESSED_KEYS)
    if last_accessed is None:
        lesson_times = [lesson.last_accessed_at for lesson in lessons if lesson.last_accessed_at]
        last_accessed = max(lesson_times) if lesson_times else now

    tags = [
        tag.strip()
        for tag in _pick_list(raw, COURSE_TAGS_KEYS, f"tags of course {course_id!r}")
        if isinstance(tag, str) and tag.strip()
    ]

    return AggregatedCourseProgress(
        course_id=course_id,
        course_title=_pick_text(raw, COURSE_TITLE_KEYS) or DEFAULT_COURSE_TITLE,
        course_description=_pick_text(raw, COURSE_DESCRIPTION_KEYS),
        category=_pick_text(raw, COURSE_CATEGORY_KEYS),
        tags=tags,
        total_lessons=total_lessons,
        completed_lessons=completed_lessons,
        overall_progress=_clamp_percentage(overall_progress),
        last_accessed=last_accessed,
        lessons=lessons,
        next_lesson=resolve_next_lesson(course_id, lessons),
    )


def aggregate_courses(
    raw_courses: Iterable[Any],
    now: Optional[datetime] = None,
) -> List[AggregatedCourseProgress]:
    """Normalize every course, skipping entries that are not mappings."""
    now = now or datetime.now(timezone.utc)
    courses = []
    for raw in raw_courses:
        if not isinstance(raw, Mapping):
            logger.warning("Skipping malformed course entry of type %s", type(raw).__name__)
            continue
        courses.append(normalize_course(raw, now=now))
    return courses


# ============== Quizzes ==============

def normalize_quiz(raw: Mapping) -> QuizSummary:
    """Normalize one quiz attempt; a missing maximum stays None."""
    return QuizSummary(
        quiz_id=_to_id(_pick(raw, QUIZ_ID_KEYS)),
        title=_pick_text(raw, QUIZ_TITLE_KEYS),
        score=_pick_number(raw, QUIZ_SCORE_KEYS) or 0.0,
        max_score=_pick_number(raw, QUIZ_MAX_SCORE_KEYS),
    )


def average_quiz_score(quizzes: Iterable[QuizSummary]) -> Optional[int]:
    """
    Mean of per-quiz percentages, rounded half up.

    Quizzes without a positive maximum are left out of both the sum and
    the count. Returns None when no quiz qualifies.
    """
    percentages = [quiz.percentage for quiz in quizzes if quiz.percentage is not None]
    if not percentages:
        return None
    mean = sum(percentages) / len(percentages)
    return round_half_up(_clamp_percentage(mean))


# ============== User Stats ==============

def _parse_level(value: Any) -> int:
    number = _to_number(value)
    if number is None and isinstance(value, str):
        match = re.search(r"\d+", value)
        number = float(match.group()) if match else None
    if number is None:
        return DEFAULT_LEVEL
    return max(int(number), DEFAULT_LEVEL)


def aggregate_user_stats(
    courses: Sequence[AggregatedCourseProgress],
    quizzes: Sequence[QuizSummary],
    stats: Optional[Mapping] = None,
) -> AggregatedUserStats:
    """
    Build the learner's summary counters.

    Explicit counters from the stats block win; otherwise they are derived
    from the aggregated courses and quizzes.
    """
    stats = stats or {}

    courses_enrolled = _pick_count(stats, STATS_COURSES_KEYS)
    if courses_enrolled is None:
        courses_enrolled = len(courses)

    lessons_completed = _pick_count(stats, STATS_LESSONS_KEYS)
    if lessons_completed is None:
        lessons_completed = sum(course.completed_lessons for course in courses)

    quiz_attempts = _pick_count(stats, STATS_QUIZ_ATTEMPTS_KEYS)
    if quiz_attempts is None:
        quiz_attempts = len(quizzes)

    average = average_quiz_score(quizzes)
    if average is None:
        explicit_average = _pick_number(stats, STATS_AVERAGE_SCORE_KEYS)
        average = round_half_up(_clamp_percentage(explicit_average)) if explicit_average is not None else 0

    watch_minutes = _pick_count(stats, STATS_WATCH_MINUTES_KEYS)
    if watch_minutes is None:
        watch_minutes = (_pick_count(stats, STATS_TIME_SPENT_KEYS) or 0) // 60

    next_level_points = _pick_count(stats, STATS_NEXT_LEVEL_KEYS)

    return AggregatedUserStats(
        courses_enrolled=courses_enrolled,
        lessons_completed=lessons_completed,
        quiz_attempts=quiz_attempts,
        average_quiz_score=average,
        total_video_watch_time=watch_minutes,
        study_streak=_pick_count(stats, STATS_STREAK_KEYS) or 0,
        total_points_earned=_pick_count(stats, STATS_POINTS_KEYS) or 0,
        level=_parse_level(_pick(stats, STATS_LEVEL_KEYS)),
        next_level_points=DEFAULT_NEXT_LEVEL_POINTS if next_level_points is None else next_level_points,
    )


# ============== Listing ==============

def aggregate_dashboard(listing: Any, now: Optional[datetime] = None) -> DashboardSnapshot:
    """
    Aggregate a raw dashboard listing into courses and user stats.

    Accepts the listing bare or still wrapped in ``data``.
    """
    if not isinstance(listing, Mapping):
        logger.warning("Dashboard listing is not an object, got %s", type(listing).__name__)
        return DashboardSnapshot()

    payload = listing["data"] if isinstance(listing.get("data"), Mapping) else listing

    courses = aggregate_courses(_pick_list(payload, LISTING_COURSES_KEYS, "courses"), now=now)

    quizzes = []
    for raw in _pick_list(payload, LISTING_QUIZZES_KEYS, "quizzes"):
        if not isinstance(raw, Mapping):
            logger.warning("Skipping malformed quiz entry of type %s", type(raw).__name__)
            continue
        quizzes.append(normalize_quiz(raw))

    stats_block = next(
        (payload[key] for key in LISTING_STATS_KEYS if isinstance(payload.get(key), Mapping)),
        None,
    )

    return DashboardSnapshot(
        courses=courses,
        stats=aggregate_user_stats(courses, quizzes, stats_block),
    )
