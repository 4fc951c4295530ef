"""Sync marker kept as a git tag."""

import logging
from pathlib import Path
from typing import Optional, Union

from gitsync.errors import GitCommandError, GitSyncError, PushError
from gitsync.scm.git import GitSCM
from gitsync.scm.protocol import VCS
from gitsync.sync.provider import SyncMarkerAction, SyncProvider

logger = logging.getLogger(__name__)


class TagSyncProvider(SyncProvider):
    """
    Marker stored as an annotated, optionally signed tag.

    The tag is force-moved in a local repository and force-pushed to the
    upstream in the same operation; a move that is not pushed is rolled back.
    """

    def __init__(
        self,
        working_dir: Union[str, Path],
        sync_tag: str,
        upstream_url: str,
        signing_key: str = "",
        user_name: str = "",
        user_email: str = "",
        scm: Optional[VCS] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.working_dir = Path(working_dir)
        self.sync_tag = sync_tag
        self.upstream_url = upstream_url
        self.signing_key = signing_key
        self.user_name = user_name
        self.user_email = user_email
        self.scm = scm or GitSCM()
        self.timeout = timeout

    def get_revision(self) -> Optional[str]:
        """Get the revision of the commit the sync tag is positioned at."""
        if not self.scm.ref_exists(self.working_dir, self.sync_tag, timeout=self.timeout):
            logger.debug(f"Sync tag {self.sync_tag} does not exist")
            return None
        return self.scm.ref_revision(self.working_dir, self.sync_tag, timeout=self.timeout)

    def update_marker(self, action: SyncMarkerAction) -> None:
        """
        Move the sync tag to action.revision and push it upstream.

        Raises:
            GitCommandError: If the tag could not be moved locally
            PushError: If the push failed; the local tag is restored first
        """
        action = action.with_default_key(self.signing_key)

        if self.user_name and self.user_email:
            self.scm.config_identity(self.working_dir, self.user_name, self.user_email, timeout=self.timeout)

        previous = self.scm.tag_object(self.working_dir, self.sync_tag, timeout=self.timeout)
        self.scm.move_tag(
            self.working_dir,
            self.sync_tag,
            action.revision,
            action.message,
            signing_key=action.signing_key,
            timeout=self.timeout,
        )

        try:
            self.scm.push_tag(self.working_dir, self.upstream_url, self.sync_tag, timeout=self.timeout)
        except GitSyncError as e:
            logger.warning(f"Pushing sync tag {self.sync_tag} failed, restoring previous position: {e}")
            try:
                self.scm.restore_tag(self.working_dir, self.sync_tag, previous, timeout=self.timeout)
            except GitCommandError as restore_error:
                logger.error(f"Failed to restore sync tag {self.sync_tag}: {restore_error}")
            raise PushError(self.upstream_url, e) from e

        logger.info(f"Moved sync tag {self.sync_tag} to {action.revision}")

    def delete_marker(self) -> None:
        """Remove the sync tag locally and upstream."""
        self.scm.delete_tag(self.working_dir, self.upstream_url, self.sync_tag, timeout=self.timeout)
        logger.info(f"Deleted sync tag {self.sync_tag}")

    def verify_sync_tag(self) -> None:
        """
        Validate the signature on the sync tag.

        Raises:
            GitCommandError: If the tag is unsigned or the signature is not trusted
        """
        self.scm.verify_tag(self.working_dir, self.sync_tag, timeout=self.timeout)
