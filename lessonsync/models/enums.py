"""
Enumerations

String enums shared by the store client, services and API layer.
"""

import enum


class VideoQuality(str, enum.Enum):
    """Preferred playback quality."""
    AUTO = "auto"
    Q1080P = "1080p"
    Q720P = "720p"
    Q480P = "480p"
    Q360P = "360p"


class FailureKind(str, enum.Enum):
    """Category of a failed store call."""
    TRANSPORT = "transport"
    SERVER = "server"
    MALFORMED = "malformed"


class FailureAction(str, enum.Enum):
    """What a caller does after a failed write."""
    LOG_AND_CONTINUE = "log-and-continue"
    IGNORE = "ignore"


class SortKey(str, enum.Enum):
    """Dashboard course ordering."""
    LAST_ACCESSED = "last_accessed"
    TITLE = "title"
    COMPLETION = "completion"


class StatusFilter(str, enum.Enum):
    """Dashboard course status filter."""
    ALL = "all"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    NOT_STARTED = "not_started"
