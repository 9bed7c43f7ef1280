"""
Pytest Configuration and Fixtures

Provides reusable fixtures for testing lessonsync.
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from lessonsync.schemas.progress import PreferenceRecord
from lessonsync.services.store_client import ProgressStoreClient, StoreResult, WritePolicy


# ==================== HTTP Client Fixtures ====================

@pytest.fixture
def mock_httpx_response():
    """
    Factory fixture to create mock httpx responses.

    Usage:
        response = mock_httpx_response(status_code=200, json_data={"key": "value"})
    """
    def _create_response(status_code: int = 200, json_data=None, text: str = ""):
        response = MagicMock()
        response.status_code = status_code
        response.json.return_value = json_data if json_data is not None else {}
        response.text = text
        return response
    return _create_response


@pytest.fixture
def mock_httpx_client(mock_httpx_response):
    """
    Create a mock httpx.AsyncClient.

    Returns:
        AsyncMock whose ``request`` answers with an empty success envelope.
    """
    client = AsyncMock(spec=httpx.AsyncClient)
    client.request = AsyncMock(
        return_value=mock_httpx_response(json_data={"success": True, "data": {}})
    )
    return client


@pytest.fixture
def store_client(mock_httpx_client) -> ProgressStoreClient:
    """Real store client talking to the mock HTTP client."""
    return ProgressStoreClient(
        mock_httpx_client,
        base_url="http://store.test/api",
        auth_token="test-token",
    )


# ==================== Store Fixtures ====================

@pytest.fixture
def mock_store() -> AsyncMock:
    """
    Create a mock progress store.

    Reads succeed with empty data and writes succeed by default.

    Returns:
        AsyncMock configured like ProgressStoreClient.
    """
    store = AsyncMock(spec=ProgressStoreClient)
    store.policy = WritePolicy()
    store.get_progress.return_value = StoreResult.success(None)
    store.get_chapters.return_value = StoreResult.success([])
    store.upsert_progress.return_value = StoreResult.success(None)
    store.get_preferences.return_value = StoreResult.success(PreferenceRecord())
    store.upsert_preferences.return_value = StoreResult.success(PreferenceRecord())
    store.get_dashboard_listing.return_value = StoreResult.success({})
    return store


# ==================== Payload Fixtures ====================

@pytest.fixture
def sample_progress_payload() -> dict:
    """Progress record as returned by the store."""
    return {
        "id": 7,
        "user_id": 42,
        "lesson_id": 101,
        "current_time": 300,
        "duration": 600,
        "completion_percentage": "50.00",
        "completed": False,
        "watch_count": 3,
        "last_watched_at": "2024-05-01T10:00:00.000Z",
    }


@pytest.fixture
def sample_listing() -> dict:
    """Dashboard listing mixing naming conventions."""
    return {
        "courses": [
            {
                "courseId": 1,
                "courseTitle": "Introduction to Orthodox Faith",
                "lessons": [
                    {"id": 11, "title": "Origins", "progress": 100, "isCompleted": True,
                     "lastAccessedAt": "2024-05-02T09:00:00Z"},
                    {"id": 12, "title": "Councils", "progress": 50, "isCompleted": False,
                     "lastAccessedAt": "2024-05-03T09:00:00Z"},
                ],
            },
            {
                "course_id": 2,
                "course_title": "Church History",
                "total_lessons": 12,
                "completed_lessons": 7,
                "overall_progress": "58.3",
                "last_accessed": "2024-04-20T12:00:00Z",
            },
            {
                "course": {"id": 3, "title": "Liturgical Music"},
                "lessons": [],
            },
        ],
        "recentQuizzes": [
            {"quizId": 1, "score": 8, "maxScore": 10},
            {"quiz_id": 2, "score": 0, "max_score": 0},
        ],
    }
