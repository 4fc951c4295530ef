"""Sync marker kept outside the git repo.

The marker is a small record, {revision, message}, held under a name in a
MarkerStore. Reads and writes involve no push or pull, so they do not fail
when the git remote is unreachable; they also share no atomicity with a
commit and push, so callers sequence the two themselves.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Optional, Protocol, TypedDict, Union

from gitsync.sync.provider import SyncMarkerAction, SyncProvider

logger = logging.getLogger(__name__)


class MarkerRecord(TypedDict):
    """Stored form of the marker."""

    revision: str
    message: str


class MarkerStore(Protocol):
    """Keyed storage for marker records."""

    def get(self, name: str) -> Optional[MarkerRecord]:
        """Return the record under name, or None if never written."""

    def put(self, name: str, record: MarkerRecord) -> None:
        """Replace the record under name."""

    def delete(self, name: str) -> None:
        """Remove the record under name; missing records are ignored."""


class MemoryMarkerStore:
    """Process-local store, for tests and for running without a backing resource."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, MarkerRecord] = {}

    def get(self, name: str) -> Optional[MarkerRecord]:
        with self._lock:
            record = self._records.get(name)
            return None if record is None else MarkerRecord(**record)

    def put(self, name: str, record: MarkerRecord) -> None:
        with self._lock:
            self._records[name] = MarkerRecord(**record)

    def delete(self, name: str) -> None:
        with self._lock:
            self._records.pop(name, None)


class FileMarkerStore:
    """Store keeping one JSON document per marker name in a directory."""

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)

    def _path(self, name: str) -> Path:
        return self.directory / f"{name}.json"

    def get(self, name: str) -> Optional[MarkerRecord]:
        """
        Read the record for name.

        Raises:
            ValueError: If the stored document is not a marker record
        """
        path = self._path(name)
        if not path.exists():
            return None

        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict) or not isinstance(data.get("revision"), str):
            raise ValueError(f"Corrupted marker record {path}: missing revision")
        return MarkerRecord(revision=data["revision"], message=str(data.get("message", "")))

    def put(self, name: str, record: MarkerRecord) -> None:
        """Write the record for name (atomic)."""
        path = self._path(name)
        path.parent.mkdir(parents=True, exist_ok=True)

        temp_path = path.with_suffix(".tmp")
        try:
            temp_path.write_text(json.dumps(dict(record)), encoding="utf-8")
            temp_path.replace(path)
            logger.debug(f"Wrote marker record: {path}")
        except (IOError, OSError) as e:
            logger.error(f"Failed to write marker record {path}: {e}")
            raise

    def delete(self, name: str) -> None:
        path = self._path(name)
        if path.exists():
            path.unlink()
            logger.debug(f"Deleted marker record: {path}")


class ResourceSyncProvider(SyncProvider):
    """Marker held in a MarkerStore under a configured name."""

    def __init__(self, name: str, store: Optional[MarkerStore] = None, signing_key: str = "") -> None:
        self.name = name
        self.store: MarkerStore = store if store is not None else MemoryMarkerStore()
        self.signing_key = signing_key

    def get_revision(self) -> Optional[str]:
        """Get the revision of the marker, or None if it was never set."""
        record = self.store.get(self.name)
        if record is None:
            return None
        return record["revision"]

    def update_marker(self, action: SyncMarkerAction) -> None:
        """Record action.revision and action.message under the marker name."""
        action = action.with_default_key(self.signing_key)
        self.store.put(self.name, MarkerRecord(revision=action.revision, message=action.message))
        logger.info(f"Moved sync marker {self.name} to {action.revision}")

    def delete_marker(self) -> None:
        """Reset the marker to its never-set state."""
        self.store.delete(self.name)
        logger.info(f"Deleted sync marker {self.name}")
