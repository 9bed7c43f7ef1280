"""
Preference Controller

Holds playback preferences with optimistic local updates. Changes apply
in memory immediately and are persisted in the background; a failed
write keeps the local value.
"""

import asyncio
import logging
from typing import Any, Optional, Set, Union

from lessonsync.models.enums import VideoQuality
from lessonsync.schemas.progress import PreferenceRecord, PreferenceUpdate
from lessonsync.services.store_client import ProgressStoreClient


logger = logging.getLogger(__name__)


class PreferenceController:
    """Playback preferences for the current user."""

    def __init__(self, store: ProgressStoreClient):
        self.store = store
        self.preferences = PreferenceRecord()
        self.loaded = False
        # Fields changed locally since the last load
        self._dirty: Set[str] = set()
        self._pending: Set[asyncio.Task] = set()

    @property
    def speed(self) -> float:
        return self.preferences.playback_speed

    @property
    def quality(self) -> VideoQuality:
        return self.preferences.preferred_quality

    async def load(self) -> PreferenceRecord:
        """
        Fetch preferences from the store.

        Falls back to the built-in defaults on failure. Fields the user
        changed while the request was in flight keep their local value.
        """
        result = await self.store.get_preferences()
        if result.ok and result.data is not None:
            remote = result.data
        else:
            logger.info("Could not load preferences, using defaults: %s", result.error)
            remote = PreferenceRecord()

        local = {name: getattr(self.preferences, name) for name in self._dirty}
        self.preferences = remote.model_copy(update=local)
        self._dirty.clear()
        self.loaded = True
        return self.preferences

    def set_speed(self, value: float) -> asyncio.Task:
        """
        Change the playback speed.

        Raises:
            ValueError: If the speed is not positive.
        """
        speed = float(value)
        if speed <= 0:
            raise ValueError(f"Playback speed must be positive, got {value}")
        return self._apply(playback_speed=speed)

    def set_quality(self, value: Union[VideoQuality, str]) -> asyncio.Task:
        """
        Change the preferred quality.

        Raises:
            ValueError: If the quality is not a known value.
        """
        return self._apply(preferred_quality=VideoQuality(value))

    def set_auto_play_next(self, enabled: bool) -> asyncio.Task:
        return self._apply(auto_play_next=bool(enabled))

    def set_captions(self, show: bool, language: Optional[str] = None) -> asyncio.Task:
        changes: dict[str, Any] = {"show_captions": bool(show)}
        if language:
            changes["caption_language"] = language
        return self._apply(**changes)

    async def drain(self) -> None:
        """Wait for every pending write to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _apply(self, **changes: Any) -> asyncio.Task:
        # Optimistic: local state first, persistence afterwards
        self.preferences = self.preferences.model_copy(update=changes)
        self._dirty.update(changes)

        task = asyncio.get_running_loop().create_task(self._persist(PreferenceUpdate(**changes)))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _persist(self, update: PreferenceUpdate) -> None:
        result = await self.store.upsert_preferences(update)
        if not result.ok:
            # No rollback: the optimistic value stays
            self.store.policy.report("Preference save", result.error)
