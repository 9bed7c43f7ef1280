"""
Dashboard Routes

Endpoint serving the learner's aggregated course progress.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from lessonsync.api.deps import get_store_client
from lessonsync.models.enums import SortKey, StatusFilter
from lessonsync.schemas.dashboard import DashboardView
from lessonsync.services import dashboard_service
from lessonsync.services.store_client import ProgressStoreClient


router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get(
    "",
    response_model=DashboardView,
    summary="Get aggregated course progress",
)
async def get_dashboard(
    store: Annotated[ProgressStoreClient, Depends(get_store_client)],
    sort: Annotated[SortKey, Query(description="Course ordering")] = SortKey.LAST_ACCESSED,
    status_filter: Annotated[
        StatusFilter, Query(alias="status", description="Course status filter")
    ] = StatusFilter.ALL,
    search: Annotated[Optional[str], Query(max_length=200, description="Title search")] = None,
) -> DashboardView:
    """
    Get the learner's courses with derived progress and summary stats.

    **Returns:**
    - Courses with overall progress and the next lesson to open
    - Lessons completed, quiz attempts and average quiz score

    Raises:
        HTTPException: 502 if the progress listing is unavailable; the
            client may retry.
    """
    try:
        snapshot = await dashboard_service.load_dashboard(store)
    except dashboard_service.DashboardUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": e.message, "code": e.code, "retryable": e.retryable},
        ) from e

    return dashboard_service.build_view(snapshot, sort=sort, status=status_filter, search=search)
