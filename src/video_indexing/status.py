"""Video lifecycle status and the allowed transitions between states."""

from enum import Enum

from .exceptions import InvalidStatusTransitionError


class VideoStatus(str, Enum):
    """Lifecycle status of a video record.

    Values are the exact strings stored in the video store and sent on the wire.
    """

    PENDING = "PENDING"
    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    TRANSCRIPT_EXTRACTING = "TRANSCRIPT_EXTRACTING"
    ZEROENTROPY_PROCESSING = "ZEROENTROPY_PROCESSING"
    READY = "READY"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({VideoStatus.READY, VideoStatus.FAILED})

# Forward pipeline order; FAILED is reachable from every non-terminal state.
ALLOWED_TRANSITIONS: dict[VideoStatus, frozenset[VideoStatus]] = {
    VideoStatus.PENDING: frozenset({VideoStatus.QUEUED, VideoStatus.FAILED}),
    VideoStatus.QUEUED: frozenset({VideoStatus.PROCESSING, VideoStatus.FAILED}),
    VideoStatus.PROCESSING: frozenset(
        {VideoStatus.TRANSCRIPT_EXTRACTING, VideoStatus.FAILED}
    ),
    VideoStatus.TRANSCRIPT_EXTRACTING: frozenset(
        {VideoStatus.ZEROENTROPY_PROCESSING, VideoStatus.FAILED}
    ),
    VideoStatus.ZEROENTROPY_PROCESSING: frozenset(
        {VideoStatus.READY, VideoStatus.FAILED}
    ),
    VideoStatus.READY: frozenset(),
    VideoStatus.FAILED: frozenset(),
}

# Only reachable through an explicit re-trigger of a failed video.
RETRIGGER_TRANSITIONS: dict[VideoStatus, frozenset[VideoStatus]] = {
    VideoStatus.FAILED: frozenset({VideoStatus.QUEUED}),
}


def can_transition(
    current: VideoStatus, target: VideoStatus, *, retrigger: bool = False
) -> bool:
    """Check whether ``current -> target`` is an enumerated transition.

    Re-applying the current status is always allowed so that a retried status
    step observing its own earlier write is a no-op.
    """
    if current == target:
        return True
    if target in ALLOWED_TRANSITIONS[current]:
        return True
    return retrigger and target in RETRIGGER_TRANSITIONS.get(current, frozenset())


def ensure_transition(
    current: VideoStatus, target: VideoStatus, *, retrigger: bool = False
) -> VideoStatus:
    """Validate a transition, returning the target status.

    Raises:
        InvalidStatusTransitionError: If the transition is not enumerated.
    """
    if not can_transition(current, target, retrigger=retrigger):
        raise InvalidStatusTransitionError(current.value, target.value)
    return target
