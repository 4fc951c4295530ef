"""Mirror readiness state machine.

The step is split in two pure halves so that it can be tested without git:
`plan_step` decides which external effect the current status calls for, and
`resolve_step` turns the outcome of that effect into the next status. The
Mirror owns locking, retry and backoff around them.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from gitsync.errors import ClonedOnlyError

logger = logging.getLogger(__name__)


class MirrorStatus(str, Enum):
    """
    Progress made synchronising with a git repo.

    Given in expected order; the status may go back to NEW if e.g. a deploy
    key is deleted and fetching starts to fail.
    """

    NO_CONFIG = "unconfigured"  # configuration is empty
    NEW = "new"  # no successful clone yet
    CLONED = "cloned"  # has been read (cloned); write access not checked
    READY = "ready"  # write access checked (or not needed), ready to sync


class StepAction(str, Enum):
    """External effect requested by a step."""

    STOP = "stop"  # nothing will ever change; stop driving
    CLONE = "clone"  # mirror-clone then fetch
    CHECK_PUSH = "check_push"  # probe write access
    MARK_READY = "mark_ready"  # no probe needed
    IDLE = "idle"  # already ready; refreshing is the refresh loop's job


@dataclass
class TransitionResult:
    """Result of one step of the state machine."""

    progressed: bool
    status: MirrorStatus
    error: Optional[BaseException]
    refreshed: bool = False


class InvalidStateTransitionError(Exception):
    """Raised when a step would move the status along an invalid edge."""

    def __init__(self, from_status: MirrorStatus, to_status: MirrorStatus) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid mirror transition: {from_status.value} -> {to_status.value}")


VALID_TRANSITIONS: dict[MirrorStatus, set[MirrorStatus]] = {
    MirrorStatus.NO_CONFIG: set(),
    MirrorStatus.NEW: {MirrorStatus.CLONED},
    MirrorStatus.CLONED: {MirrorStatus.READY},
    MirrorStatus.READY: {MirrorStatus.NEW},
}


def can_transition(from_status: MirrorStatus, to_status: MirrorStatus) -> bool:
    """
    Check if moving between two statuses is allowed.

    Staying put is always allowed. Any configured status may fall back to
    NEW (refresh failure, or the mirror being cleaned); NO_CONFIG is only
    ever an initial status.
    """
    if from_status == to_status:
        return True
    if to_status == MirrorStatus.NEW and from_status != MirrorStatus.NO_CONFIG:
        return True
    return to_status in VALID_TRANSITIONS[from_status]


def plan_step(status: MirrorStatus, requires_write: bool) -> StepAction:
    """
    Decide what the next step should do.

    Args:
        status: Current status
        requires_write: Whether the marker mode needs write access to the repo

    Returns:
        The effect the caller should perform
    """
    if status == MirrorStatus.NO_CONFIG:
        return StepAction.STOP
    if status == MirrorStatus.NEW:
        return StepAction.CLONE
    if status == MirrorStatus.CLONED:
        return StepAction.CHECK_PUSH if requires_write else StepAction.MARK_READY
    return StepAction.IDLE


def resolve_step(
    status: MirrorStatus,
    action: StepAction,
    error: Optional[BaseException] = None,
    previous_error: Optional[BaseException] = None,
) -> TransitionResult:
    """
    Work out the next status from the outcome of a planned effect.

    Args:
        status: Status the step was planned from
        action: Effect that was performed
        error: Failure raised by the effect, if any
        previous_error: Error recorded before the step (kept when nothing ran)

    Returns:
        TransitionResult describing the new status
    """
    if action in (StepAction.STOP, StepAction.IDLE):
        return TransitionResult(progressed=False, status=status, error=previous_error)

    if action == StepAction.CLONE:
        if error is not None:
            return TransitionResult(progressed=False, status=MirrorStatus.NEW, error=error)
        result = TransitionResult(progressed=True, status=MirrorStatus.CLONED, error=ClonedOnlyError())
    elif error is not None:
        return TransitionResult(progressed=False, status=MirrorStatus.CLONED, error=error)
    else:
        # Treat every transition to ready as a refresh, so that any
        # listeners can respond in the same way.
        result = TransitionResult(progressed=True, status=MirrorStatus.READY, error=None, refreshed=True)

    if not can_transition(status, result.status):
        raise InvalidStateTransitionError(status, result.status)
    logger.debug(f"Mirror status {status.value} -> {result.status.value}")
    return result
