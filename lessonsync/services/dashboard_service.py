"""
Dashboard Service

Loads the dashboard listing through the progress store, aggregates it,
and sorts/filters the result for display.
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from lessonsync.models.enums import SortKey, StatusFilter
from lessonsync.schemas.dashboard import (
    AggregatedCourseProgress,
    DashboardSnapshot,
    DashboardView,
)
from lessonsync.services.aggregator import aggregate_dashboard
from lessonsync.services.store_client import ProgressStoreClient, StoreError


logger = logging.getLogger(__name__)

# Absorbs floating-point error from averaged lesson progress
COMPLETED_THRESHOLD = 99.5


class LessonSyncError(Exception):
    """Base error."""

    def __init__(self, message: str, code: str = "lessonsync_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class DashboardUnavailableError(LessonSyncError):
    """The dashboard listing could not be loaded; the user may retry."""

    def __init__(self, error: Optional[StoreError] = None):
        self.error = error
        self.retryable = True
        super().__init__("Failed to load progress data", "dashboard_unavailable")


async def load_dashboard(
    store: ProgressStoreClient,
    now: Optional[datetime] = None,
) -> DashboardSnapshot:
    """
    Fetch and aggregate the dashboard listing.

    Raises:
        DashboardUnavailableError: If the listing request failed.
    """
    result = await store.get_dashboard_listing()
    if not result.ok:
        logger.warning("Dashboard listing failed: %s", result.error)
        raise DashboardUnavailableError(result.error)
    return aggregate_dashboard(result.data, now=now)


def sort_courses(
    courses: Sequence[AggregatedCourseProgress],
    key: SortKey = SortKey.LAST_ACCESSED,
) -> List[AggregatedCourseProgress]:
    """Return the courses ordered for display; ties keep their input order."""
    if key is SortKey.TITLE:
        return sorted(courses, key=lambda course: course.course_title.casefold())
    if key is SortKey.COMPLETION:
        return sorted(courses, key=lambda course: course.overall_progress, reverse=True)
    return sorted(courses, key=lambda course: course.last_accessed, reverse=True)


def matches_status(course: AggregatedCourseProgress, status: StatusFilter) -> bool:
    progress = course.overall_progress
    if status is StatusFilter.IN_PROGRESS:
        return 0 < progress < COMPLETED_THRESHOLD
    if status is StatusFilter.COMPLETED:
        return progress >= COMPLETED_THRESHOLD
    if status is StatusFilter.NOT_STARTED:
        return progress == 0
    return True


def matches_search(course: AggregatedCourseProgress, query: str) -> bool:
    """Case-insensitive match on title, description, category or any tag."""
    fields = [course.course_title, course.course_description, course.category, *course.tags]
    return any(query in field.casefold() for field in fields if field)


def filter_courses(
    courses: Sequence[AggregatedCourseProgress],
    status: StatusFilter = StatusFilter.ALL,
    search: Optional[str] = None,
) -> List[AggregatedCourseProgress]:
    """Keep courses matching the search and the status filter."""
    query = (search or "").strip().casefold()
    return [
        course
        for course in courses
        if (not query or matches_search(course, query)) and matches_status(course, status)
    ]


def build_view(
    snapshot: DashboardSnapshot,
    sort: SortKey = SortKey.LAST_ACCESSED,
    status: StatusFilter = StatusFilter.ALL,
    search: Optional[str] = None,
) -> DashboardView:
    """Filter, then sort, a snapshot for display."""
    courses = sort_courses(filter_courses(snapshot.courses, status, search), sort)
    return DashboardView(
        courses=courses,
        stats=snapshot.stats,
        sort=sort,
        status=status,
        search=search or None,
        total=len(courses),
    )
