"""Working checkouts: disposable clones for one commit-and-push transaction."""

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from gitsync.errors import GitSyncError, NoChangesError, PushError, UserInputError
from gitsync.scm.protocol import VCS, Commit
from gitsync.sync import STATE_MODE_GIT_TAG, SyncMarkerAction, SyncProvider, TagSyncProvider

if TYPE_CHECKING:
    from gitsync.mirror import Remote

logger = logging.getLogger(__name__)

__all__ = ["Checkout", "CheckoutConfig", "Commit", "CommitAction"]


@dataclass
class CheckoutConfig:
    """Values used when working in a checkout."""

    branch: str = "master"  # branch we're syncing to
    paths: list[str] = field(default_factory=list)  # paths within the repo with files we care about
    read_only: bool = False  # we can read but not write to the git repo
    sync_marker_name: str = "flux-sync"
    notes_ref: str = "flux"
    user_name: str = ""
    user_email: str = ""
    signing_key: str = ""
    set_author: bool = False
    skip_message: str = ""  # appended to commit messages so we can ignore our own commits
    state_mode: str = STATE_MODE_GIT_TAG


@dataclass
class CommitAction:
    """What to commit, and as whom."""

    message: str
    author: str = ""
    signing_key: str = ""


class Checkout:
    """
    Local working clone of the remote repo.

    Intended for one-off transactions, e.g. committing changes then pushing
    upstream. Not locked: one owner at a time.
    """

    def __init__(
        self,
        dir: Path,
        config: CheckoutConfig,
        upstream: "Remote",
        real_notes_ref: str,
        scm: VCS,
        sync_provider: SyncProvider,
        timeout: Optional[float] = None,
    ) -> None:
        self._dir = Path(dir)
        self.config = config
        self.upstream = upstream
        self.real_notes_ref = real_notes_ref
        self.sync_provider = sync_provider
        self._scm = scm
        self._timeout = timeout

    def __enter__(self) -> "Checkout":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.clean()

    @property
    def dir(self) -> Path:
        """Path to the clone."""
        return self._dir

    def clean(self) -> None:
        """Remove the clone."""
        if self._dir.exists():
            shutil.rmtree(self._dir, ignore_errors=True)
            logger.debug(f"Removed checkout {self._dir}")

    def manifest_dirs(self) -> list[Path]:
        """
        Paths holding manifest files.

        Always returns at least one path: the checkout itself when no
        sub-paths are configured.
        """
        if not self.config.paths:
            return [self._dir]
        return [self._dir / p for p in self.config.paths]

    def commit_and_push(self, action: CommitAction, note: Optional[Any] = None) -> None:
        """
        Commit changes made in this checkout and push them upstream.

        Args:
            action: Commit message, author and signing key
            note: JSON-serialisable data attached to the commit as a note

        Raises:
            NoChangesError: If nothing under the configured paths changed
            PushError: If pushing to the upstream failed
            GitCommandError: If committing or adding the note failed
        """
        if not self._scm.has_changes(self._dir, self.config.paths, timeout=self._timeout):
            raise NoChangesError()

        message = action.message + self.config.skip_message
        signing_key = action.signing_key or self.config.signing_key
        # The requesting user is only credited as author when configured to
        author = action.author if self.config.set_author else ""
        self._scm.commit(
            self._dir,
            message,
            author=author,
            signing_key=signing_key,
            timeout=self._timeout,
        )

        if note is not None:
            revision = self.head_revision()
            self._scm.add_note(self._dir, revision, self.config.notes_ref, note, timeout=self._timeout)

        refs = [self.config.branch]
        # A notes ref that was never pushed has no counterpart upstream yet
        if self._scm.ref_exists(self._dir, self.real_notes_ref, timeout=self._timeout):
            refs.append(self.real_notes_ref)

        try:
            self._scm.push(self._dir, self.upstream.url, refs, timeout=self._timeout)
        except GitSyncError as e:
            raise PushError(self.upstream.url, e) from e
        logger.info(f"Pushed {', '.join(refs)} to {self.upstream.url}")

    def get_note(self, revision: str) -> Optional[Any]:
        """Get the note for revision, or None if there is no such note."""
        return self._scm.get_note(self._dir, self.real_notes_ref, revision, timeout=self._timeout)

    def head_revision(self) -> str:
        """Revision of the current HEAD."""
        return self._scm.ref_revision(self._dir, "HEAD", timeout=self._timeout)

    def changed_files(self, ref: str) -> list[Path]:
        """Files under the configured paths changed since ref, as absolute paths."""
        files = self._scm.changed(self._dir, ref, self.config.paths, timeout=self._timeout)
        return [self._dir / f for f in files]

    def note_rev_list(self) -> set[str]:
        """Revisions carrying a note. Do not rely on any ordering."""
        return self._scm.note_rev_list(self._dir, self.real_notes_ref, timeout=self._timeout)

    def sync_marker_revision(self) -> Optional[str]:
        """Revision of the sync marker, or None if it was never set."""
        return self.sync_provider.get_revision()

    def update_sync_marker(self, action: SyncMarkerAction) -> None:
        """Move the sync marker, defaulting to the configured signing key."""
        self.sync_provider.update_marker(action.with_default_key(self.config.signing_key))

    def verify_sync_tag(self) -> None:
        """
        Validate the signature on the sync tag.

        Raises:
            UserInputError: If the marker is not kept as a tag
        """
        if not isinstance(self.sync_provider, TagSyncProvider):
            raise UserInputError(f"sync marker is not a tag in state mode {self.config.state_mode}")
        self.sync_provider.verify_sync_tag()
