"""Local mirror of the upstream git repo, kept fetched in the background."""

import logging
import shutil
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from gitsync.checkout import Checkout, CheckoutConfig
from gitsync.errors import ConfigError, GitSyncError, NotClonedError, NotReadyError
from gitsync.scm.git import GitSCM
from gitsync.scm.protocol import VCS, Commit
from gitsync.signals import RWLock, Signal
from gitsync.state_machine import MirrorStatus, StepAction, plan_step, resolve_step
from gitsync.sync import (
    STATE_MODE_GIT_TAG,
    MarkerStore,
    MemoryMarkerStore,
    make_sync_provider,
    requires_write_access,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5 * 60.0
DEFAULT_TIMEOUT = 20.0

# Wait between attempts to get a stuck mirror moving again
RETRY_BACKOFF = 10.0

# Longest the refresh loop goes without checking for shutdown
SHUTDOWN_POLL = 0.5


@dataclass(frozen=True)
class Remote:
    """Upstream repo: where it is, which branch we sync, how the marker is kept."""

    url: str
    branch: str = "master"
    state_mode: str = STATE_MODE_GIT_TAG


def _temp_dir(prefix: str) -> Path:
    return Path(tempfile.mkdtemp(prefix=prefix))


class Mirror:
    """
    Bare mirror of a remote repo.

    Walks NEW -> CLONED -> READY, then keeps fetching on a timer or when
    notified. The directory and every external call on it are guarded by a
    readers-writer lock; status and error are kept behind a separate small
    lock so they can be read while a clone or fetch is in flight.
    """

    def __init__(
        self,
        origin: Remote,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
        read_only: bool = False,
        scm: Optional[VCS] = None,
        marker_store: Optional[MarkerStore] = None,
        retry_backoff: float = RETRY_BACKOFF,
    ) -> None:
        self._origin = origin
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.retry_backoff = retry_backoff
        self._read_only = read_only
        self._scm: VCS = scm or GitSCM()
        self.marker_store: MarkerStore = marker_store if marker_store is not None else MemoryMarkerStore()

        self._lock = RWLock()
        self._state_lock = threading.Lock()
        self._dir: Optional[Path] = None

        if origin.url:
            self._status = MirrorStatus.NEW
            self._error: Optional[BaseException] = NotClonedError()
        else:
            self._status = MirrorStatus.NO_CONFIG
            self._error = ConfigError()

        # Capacity one, so notify() never blocks and refreshes never queue up
        self._notify = Signal()
        self.refreshed = Signal()

    @property
    def origin(self) -> Remote:
        """The Remote the mirror was constructed with."""
        return self._origin

    @property
    def dir(self) -> Optional[Path]:
        """Local directory of the mirror, if it has been cloned."""
        with self._lock.read():
            return self._dir

    @property
    def requires_write(self) -> bool:
        """Whether the marker mode needs write access to the repo."""
        return requires_write_access(self._origin.state_mode)

    def is_read_only(self) -> bool:
        """Whether the repo is treated as read-only."""
        return self._read_only

    def status(self) -> tuple[MirrorStatus, Optional[BaseException]]:
        """
        Report readiness and the error stopping further progress, if any.

        Never waits for an in-flight git operation.
        """
        with self._state_lock:
            return self._status, self._error

    def _set_status(self, status: MirrorStatus, error: Optional[BaseException]) -> None:
        with self._state_lock:
            if status != self._status:
                logger.info(f"Mirror of {self._origin.url}: {self._status.value} -> {status.value}")
            self._status = status
            self._error = error

    def _error_if_not_ready(self) -> Optional[GitSyncError]:
        status, error = self.status()
        if status == MirrorStatus.READY:
            return None
        if status == MirrorStatus.NO_CONFIG:
            return ConfigError()
        return NotReadyError(error)

    def _ready_dir(self) -> Path:
        """Directory of a ready mirror. Caller holds the lock."""
        error = self._error_if_not_ready()
        if error is not None:
            raise error
        if self._dir is None:
            raise NotReadyError(NotClonedError())
        return self._dir

    def _remove_dir(self) -> None:
        """Drop the mirror directory. Caller holds the write lock."""
        if self._dir is not None:
            shutil.rmtree(self._dir, ignore_errors=True)
        self._dir = None

    def notify(self) -> None:
        """Ask for a fetch from the origin as soon as possible. Does not block."""
        if not self._notify.send():
            logger.debug("Refresh already pending")

    def clean(self) -> None:
        """
        Remove the mirrored repo.

        Syncing may continue with a new directory, so stop the loop first if
        that is not wanted.
        """
        with self._lock.write():
            self._remove_dir()
            status, _ = self.status()
            if status != MirrorStatus.NO_CONFIG:
                self._set_status(MirrorStatus.NEW, NotClonedError())

    def _perform(self, action: StepAction, timeout: float) -> Optional[BaseException]:
        """Run the external effect for a step. Caller holds the write lock."""
        try:
            if action == StepAction.CLONE:
                if self._dir is None or not self._dir.exists():
                    self._dir = _temp_dir("gitsync-mirror")
                self._scm.mirror(self._origin.url, self._dir, timeout=timeout)
                self._scm.fetch(self._dir, "origin", timeout=timeout)
            elif action == StepAction.CHECK_PUSH:
                if self._dir is None:
                    raise NotClonedError()
                self._scm.check_push(self._dir, self._origin.url, timeout=timeout)
        except (GitSyncError, OSError) as e:
            logger.warning(f"Mirror of {self._origin.url}: {action.value} failed: {e}")
            if action == StepAction.CLONE:
                self._remove_dir()
            return e
        return None

    def _step(self, timeout: Optional[float] = None) -> bool:
        """
        Try to advance the state machine by one status.

        Returns:
            True if progress was made
        """
        status, _ = self.status()
        if plan_step(status, self.requires_write) in (StepAction.STOP, StepAction.IDLE):
            return False

        with self._lock.write():
            # Re-plan: the status may have moved while we waited for the lock
            status, previous_error = self.status()
            action = plan_step(status, self.requires_write)
            if action in (StepAction.STOP, StepAction.IDLE):
                return False
            error = self._perform(action, timeout or self.timeout)
            result = resolve_step(status, action, error, previous_error)
            self._set_status(result.status, result.error)

        if result.refreshed:
            self.refreshed.send()
        return result.progressed

    def ready(self, timeout: Optional[float] = None) -> None:
        """
        Advance the cloning process as far as possible.

        Args:
            timeout: Seconds allowed per git operation (defaults to the mirror's)

        Raises:
            ConfigError: If there is no remote configured
            GitSyncError: The error keeping the mirror from being ready
        """
        while self._step(timeout):
            pass
        status, error = self.status()
        if status == MirrorStatus.READY:
            return
        if isinstance(error, GitSyncError):
            raise error
        raise NotReadyError(error)

    def refresh(self, timeout: Optional[float] = None) -> None:
        """
        Fetch from the origin.

        Raises:
            ConfigError: If there is no remote configured
            NotReadyError: If the mirror is not ready
            GitSyncError: If the fetch failed
        """
        # Held for the whole fetch; cloning to another directory and
        # swapping it in would avoid blocking readers
        with self._lock.write():
            self._scm.fetch(self._ready_dir(), "origin", timeout=timeout or self.timeout)
        logger.debug(f"Refreshed mirror of {self._origin.url}")
        self.refreshed.send()

    def start(self, shutdown: threading.Event, done: Optional[threading.Event] = None) -> None:
        """
        Keep the mirror synchronised until shutdown is set.

        Clones, checks write access and then fetches on a timer or when
        notified. Failures are recorded in the status and retried after a
        backoff. Returns for good if there is no remote configured.

        Args:
            shutdown: Set to stop the loop
            done: Set when the loop has exited
        """
        try:
            while not shutdown.is_set():
                if self._step():
                    continue

                status, error = self.status()
                if status == MirrorStatus.READY:
                    try:
                        self._refresh_loop(shutdown)
                    except GitSyncError as e:
                        logger.warning(f"Refreshing mirror of {self._origin.url} failed: {e}")
                        with self._lock.write():
                            self._remove_dir()
                            self._set_status(MirrorStatus.NEW, e)
                    continue  # with new status, skipping the backoff
                if status == MirrorStatus.NO_CONFIG:
                    logger.info("No git remote configured; not syncing")
                    return

                logger.debug(f"Mirror stuck at {status.value} ({error}); retrying in {self.retry_backoff}s")
                if shutdown.wait(self.retry_backoff):
                    return
        finally:
            if done is not None:
                done.set()

    def _refresh_loop(self, shutdown: threading.Event) -> None:
        """
        Fetch every poll interval, or sooner when notified.

        A notification preempts a pending tick; the interval restarts after
        each fetch.

        Raises:
            GitSyncError: If a fetch fails
        """
        deadline = time.monotonic() + self.poll_interval
        while not shutdown.is_set():
            now = time.monotonic()
            if now >= deadline:
                self.notify()
            wait = min(max(deadline - now, 0.0), SHUTDOWN_POLL)
            if self._notify.wait(wait):
                self.refresh()
                deadline = time.monotonic() + self.poll_interval

    def revision(self, ref: str) -> str:
        """Revision (SHA1) of ref in the mirror."""
        with self._lock.read():
            return self._scm.ref_revision(self._ready_dir(), ref, timeout=self.timeout)

    def commits_before(self, ref: str, paths: Optional[list[str]] = None) -> list[Commit]:
        """Commits reachable from ref, newest first, optionally limited to paths."""
        with self._lock.read():
            return self._scm.one_line_log(self._ready_dir(), ref, paths, timeout=self.timeout)

    def commits_between(self, ref1: str, ref2: str, paths: Optional[list[str]] = None) -> list[Commit]:
        """Commits reachable from ref2 but not ref1, newest first."""
        with self._lock.read():
            return self._scm.one_line_log(self._ready_dir(), f"{ref1}..{ref2}", paths, timeout=self.timeout)

    def clone(self, config: CheckoutConfig, timeout: Optional[float] = None) -> Checkout:
        """
        Make a working checkout of the mirror at config.branch.

        The clone is made from the local mirror, so nothing touches the
        upstream until the checkout pushes.

        Raises:
            ConfigError: If config.state_mode differs from the origin's
            NotReadyError: If the mirror is not ready
            GitSyncError: If cloning or preparing the checkout failed
        """
        timeout = timeout or self.timeout
        upstream = self._origin
        if config.state_mode != upstream.state_mode:
            raise ConfigError(
                f"checkout state mode {config.state_mode} does not match the mirror's {upstream.state_mode}"
            )

        with self._lock.read():
            mirror_dir = self._ready_dir()
            working = _temp_dir("gitsync-working")
            try:
                self._scm.clone(mirror_dir, working, branch=config.branch, timeout=timeout)
                if config.user_name and config.user_email:
                    self._scm.config_identity(working, config.user_name, config.user_email, timeout=timeout)

                # We'll need the notes ref for pushing it, so make sure we have
                # it. This assumes we're syncing it (otherwise we'll likely get
                # conflicts).
                real_notes_ref = self._scm.get_notes_ref(working, config.notes_ref, timeout=timeout)
                self._scm.fetch(working, mirror_dir, f"{real_notes_ref}:{real_notes_ref}", timeout=timeout)

                provider = make_sync_provider(
                    config.state_mode,
                    config.sync_marker_name,
                    working_dir=working,
                    upstream_url=upstream.url,
                    signing_key=config.signing_key,
                    user_name=config.user_name,
                    user_email=config.user_email,
                    store=self.marker_store,
                    scm=self._scm,
                    timeout=timeout,
                )
            except BaseException:
                shutil.rmtree(working, ignore_errors=True)
                raise

        logger.debug(f"Cloned working checkout {working} at {config.branch}")
        return Checkout(
            working,
            config,
            upstream,
            real_notes_ref,
            scm=self._scm,
            sync_provider=provider,
            timeout=timeout,
        )
