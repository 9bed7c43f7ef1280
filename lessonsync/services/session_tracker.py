"""
Playback Session Tracker

Keeps the watch position of the lesson being played durable:
- The player reports time updates; they only touch memory
- A fixed-interval loop upserts the position to the progress store
- Stopping the session clears the loop and issues one final save

Nothing the player calls here awaits I/O. Writes are fire-and-forget and
failures go through the store client's WritePolicy.
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Set

from lessonsync.core.config import settings
from lessonsync.schemas.progress import ChapterMarker, ProgressUpdate
from lessonsync.services.store_client import ProgressStoreClient


logger = logging.getLogger(__name__)


def compute_completion(current_time: float, duration: float) -> float:
    """
    Completion percentage of a position, clamped to [0, 100].

    Returns 0 when the duration is unknown.
    """
    if duration <= 0:
        return 0.0
    return min(max(current_time / duration * 100, 0.0), 100.0)


def _position(value: float) -> float:
    # Players report NaN before metadata loads
    number = float(value)
    if not math.isfinite(number):
        return 0.0
    return max(number, 0.0)


@dataclass
class PlaybackSession:
    """In-memory state of one lesson being played."""
    lesson_id: str
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    current_time: float = 0.0
    duration: float = 0.0
    completion_percentage: float = 0.0
    completed: bool = False
    chapters: List[ChapterMarker] = field(default_factory=list)
    saves_issued: int = 0


class PlaybackSessionTracker:
    """
    Tracks one player's session and syncs it to the progress store.

    Exactly one session is live per tracker. Calling start() while a
    session is live stops it first, so the old timer is cleared before the
    new one exists.
    """

    def __init__(
        self,
        store: ProgressStoreClient,
        save_interval: Optional[float] = None,
        completion_threshold: Optional[float] = None,
        on_complete: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize the tracker.

        Args:
            store: Progress store client.
            save_interval: Seconds between periodic saves
                (defaults to SAVE_INTERVAL_SECONDS).
            completion_threshold: Percentage at which a lesson counts as
                completed (defaults to COMPLETION_THRESHOLD).
            on_complete: Called with the lesson id the first time a session
                reaches the threshold.
        """
        self.store = store
        self.save_interval = save_interval or settings.SAVE_INTERVAL_SECONDS
        self.completion_threshold = (
            settings.COMPLETION_THRESHOLD if completion_threshold is None else completion_threshold
        )
        self.on_complete = on_complete

        self._session: Optional[PlaybackSession] = None
        self._timer: Optional[asyncio.Task] = None
        self._loader: Optional[asyncio.Task] = None
        self._pending_flushes: Set[asyncio.Task] = set()

    # ---------- lifecycle ----------

    @property
    def session(self) -> Optional[PlaybackSession]:
        return self._session

    @property
    def is_active(self) -> bool:
        return self._session is not None

    def start(self, lesson_id: str, initial_position: Optional[float] = None) -> PlaybackSession:
        """
        Begin tracking a lesson.

        The saved progress and chapters are loaded in the background; the
        call returns immediately so playback is never held up.

        Must be called while an event loop is running.
        """
        if self._session is not None:
            self.stop()

        session = PlaybackSession(lesson_id=str(lesson_id))
        if initial_position is not None:
            session.current_time = _position(initial_position)

        self._session = session
        self._timer = asyncio.create_task(self._save_loop(session))
        self._loader = asyncio.create_task(self._load_initial_state(session))
        logger.debug("Started session for lesson %s", session.lesson_id)
        return session

    def on_time_update(self, current_time: float, duration: float) -> None:
        """Record the player's position. No I/O happens here."""
        session = self._session
        if session is None:
            return
        session.current_time = _position(current_time)
        session.duration = _position(duration)

    def stop(self) -> Optional[asyncio.Task]:
        """
        End the live session.

        Clears the timer, then schedules exactly one final save with the
        last known values. Stopping an already-stopped tracker is a no-op.

        Returns:
            The final-flush task, or None if nothing was live. Callers do
            not need to await it.
        """
        session = self._session
        if session is None:
            return None

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._loader is not None:
            self._loader.cancel()
            self._loader = None
        self._session = None

        flush = asyncio.get_running_loop().create_task(self._save(session, final=True))
        self._pending_flushes.add(flush)
        flush.add_done_callback(self._pending_flushes.discard)
        logger.debug("Stopped session for lesson %s", session.lesson_id)
        return flush

    async def drain(self) -> None:
        """Wait for every scheduled final save to finish."""
        if self._pending_flushes:
            await asyncio.gather(*list(self._pending_flushes), return_exceptions=True)

    # ---------- chapters ----------

    def current_chapter(self) -> Optional[ChapterMarker]:
        """Chapter containing the current position, if any."""
        session = self._session
        if session is None:
            return None
        current = None
        for chapter in session.chapters:
            if chapter.contains(session.current_time):
                current = chapter
        return current

    # ---------- internals ----------

    async def _load_initial_state(self, session: PlaybackSession) -> None:
        progress_result = await self.store.get_progress(session.lesson_id)
        if not progress_result.ok:
            logger.info(
                "Could not load progress for lesson %s, starting at 0%%: %s",
                session.lesson_id, progress_result.error,
            )
        elif progress_result.data is not None and session.duration == 0:
            # Live playback data wins over the saved seed
            session.completion_percentage = progress_result.data.completion_percentage

        chapters_result = await self.store.get_chapters(session.lesson_id)
        if chapters_result.ok:
            session.chapters = chapters_result.data or []
        else:
            logger.info("Could not load chapters for lesson %s: %s", session.lesson_id, chapters_result.error)

    async def _save_loop(self, session: PlaybackSession) -> None:
        while True:
            await asyncio.sleep(self.save_interval)
            if session.duration <= 0:
                continue
            try:
                await self._save(session)
            except Exception:
                logger.exception("Progress save tick failed for lesson %s", session.lesson_id)

    def _notify_complete(self, lesson_id: str) -> None:
        if self.on_complete is None:
            return
        try:
            self.on_complete(lesson_id)
        except Exception:
            logger.exception("Completion callback failed for lesson %s", lesson_id)

    async def _save(self, session: PlaybackSession, final: bool = False) -> None:
        percentage = compute_completion(session.current_time, session.duration)
        completed = percentage >= self.completion_threshold

        session.completion_percentage = percentage
        crossed = completed and not session.completed
        if crossed:
            session.completed = True

        update = ProgressUpdate(
            current_time=session.current_time,
            duration=session.duration,
            completion_percentage=percentage,
            completed=completed,
        )
        session.saves_issued += 1
        result = await self.store.upsert_progress(session.lesson_id, update)
        if not result.ok:
            operation = "Final progress save" if final else "Progress save"
            self.store.policy.report(f"{operation} for lesson {session.lesson_id}", result.error)

        # After the write, so a failing callback cannot drop the save
        if crossed:
            self._notify_complete(session.lesson_id)
