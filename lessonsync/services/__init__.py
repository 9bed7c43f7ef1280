"""
lessonsync - Services Module

Store client, playback tracking, preferences and dashboard aggregation.
"""

from lessonsync.services import aggregator
from lessonsync.services import dashboard_service
from lessonsync.services.preference_controller import PreferenceController
from lessonsync.services.session_tracker import PlaybackSession, PlaybackSessionTracker
from lessonsync.services.store_client import (
    ProgressStoreClient,
    StoreError,
    StoreResult,
    WritePolicy,
)

__all__ = [
    "aggregator",
    "dashboard_service",
    "PreferenceController",
    "PlaybackSession",
    "PlaybackSessionTracker",
    "ProgressStoreClient",
    "StoreError",
    "StoreResult",
    "WritePolicy",
]
