"""Sync marker providers."""

from pathlib import Path
from typing import Optional, Union

from gitsync.errors import ConfigError
from gitsync.scm.protocol import VCS
from gitsync.sync.provider import (
    STATE_MODE_GIT_TAG,
    STATE_MODE_NATIVE,
    STATE_MODES,
    SyncMarkerAction,
    SyncProvider,
    requires_write_access,
)
from gitsync.sync.resource import (
    FileMarkerStore,
    MarkerRecord,
    MarkerStore,
    MemoryMarkerStore,
    ResourceSyncProvider,
)
from gitsync.sync.tag import TagSyncProvider


def make_sync_provider(
    state_mode: str,
    sync_marker_name: str,
    working_dir: Union[str, Path, None] = None,
    upstream_url: str = "",
    signing_key: str = "",
    user_name: str = "",
    user_email: str = "",
    store: Optional[MarkerStore] = None,
    scm: Optional[VCS] = None,
    timeout: Optional[float] = None,
) -> SyncProvider:
    """
    Build the provider for a state mode.

    Args:
        state_mode: STATE_MODE_GIT_TAG or STATE_MODE_NATIVE
        sync_marker_name: Tag name, or record name in the store
        working_dir: Repository holding the tag (tag mode only)
        upstream_url: Where the tag is pushed (tag mode only)
        signing_key: Default signing key for marker updates
        user_name: Tagger name (tag mode only)
        user_email: Tagger email (tag mode only)
        store: Marker store (native mode only; in-memory if omitted)
        scm: VCS primitives (tag mode only)
        timeout: Seconds allowed per git invocation

    Raises:
        ConfigError: If the state mode is unknown or tag mode lacks a repo
    """
    if state_mode == STATE_MODE_GIT_TAG:
        if working_dir is None or not upstream_url:
            raise ConfigError("tag sync marker needs a working directory and an upstream URL")
        return TagSyncProvider(
            working_dir,
            sync_marker_name,
            upstream_url,
            signing_key=signing_key,
            user_name=user_name,
            user_email=user_email,
            scm=scm,
            timeout=timeout,
        )
    if state_mode == STATE_MODE_NATIVE:
        return ResourceSyncProvider(sync_marker_name, store=store, signing_key=signing_key)
    raise ConfigError(f"Invalid state mode: {state_mode}. Must be one of: {', '.join(STATE_MODES)}")


__all__ = [
    "STATE_MODE_GIT_TAG",
    "STATE_MODE_NATIVE",
    "STATE_MODES",
    "FileMarkerStore",
    "MarkerRecord",
    "MarkerStore",
    "MemoryMarkerStore",
    "ResourceSyncProvider",
    "SyncMarkerAction",
    "SyncProvider",
    "TagSyncProvider",
    "make_sync_provider",
    "requires_write_access",
]
