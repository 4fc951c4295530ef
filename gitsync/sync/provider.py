"""Sync marker contract.

The sync marker is the "high water mark": the most recent revision that has
been fully applied to the cluster.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Optional

# Marker kept as a signed tag pushed to the git repo
STATE_MODE_GIT_TAG = "GitTag"

# Marker kept in a store outside the git repo
STATE_MODE_NATIVE = "Native"

STATE_MODES = (STATE_MODE_GIT_TAG, STATE_MODE_NATIVE)


def requires_write_access(state_mode: str) -> bool:
    """Report whether keeping the marker in this mode means pushing to the repo."""
    return state_mode == STATE_MODE_GIT_TAG


@dataclass(frozen=True)
class SyncMarkerAction:
    """Where to move the marker, and the message recorded with it."""

    revision: str
    message: str
    signing_key: str = ""

    def with_default_key(self, signing_key: str) -> "SyncMarkerAction":
        """Return a copy using signing_key when none was given."""
        if self.signing_key or not signing_key:
            return self
        return replace(self, signing_key=signing_key)


class SyncProvider(ABC):
    """Persistence for the sync marker."""

    @abstractmethod
    def get_revision(self) -> Optional[str]:
        """
        Get the revision the marker points at.

        Returns:
            Revision, or None if the marker has never been set
        """

    @abstractmethod
    def update_marker(self, action: SyncMarkerAction) -> None:
        """
        Move the marker to action.revision.

        Raises:
            GitSyncError: If the move did not durably happen
        """

    @abstractmethod
    def delete_marker(self) -> None:
        """Remove the marker."""
