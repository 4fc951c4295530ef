"""Version control primitives consumed by the mirror, checkout and sync providers."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol, Union

PathLike = Union[str, Path]


@dataclass(frozen=True)
class Commit:
    """A commit as reported by the one-line log."""

    signing_key: str
    revision: str
    message: str


class VCS(Protocol):
    """
    Primitive operations against a working directory.

    Every method takes the directory to run in and a timeout in seconds.
    Failures raise GitCommandError; expired timeouts raise GitTimeoutError.
    """

    def mirror(self, url: str, dest: PathLike, timeout: Optional[float] = None) -> Path:
        """Make a bare mirror clone of url at dest."""

    def clone(
        self,
        url: PathLike,
        dest: PathLike,
        branch: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Path:
        """Make a non-bare clone of url at dest, checked out at branch."""

    def fetch(
        self,
        working_dir: PathLike,
        upstream: PathLike,
        *refspec: str,
        timeout: Optional[float] = None,
    ) -> None:
        """Fetch refs and tags from upstream."""

    def check_push(self, working_dir: PathLike, upstream: str, timeout: Optional[float] = None) -> None:
        """Verify we can write to upstream by pushing and deleting a disposable tag."""

    def config_identity(
        self,
        working_dir: PathLike,
        user_name: str,
        user_email: str,
        timeout: Optional[float] = None,
    ) -> None:
        """Set the commit identity for the repository."""

    def get_notes_ref(self, working_dir: PathLike, notes_ref: str, timeout: Optional[float] = None) -> str:
        """Resolve a short notes ref to its long form."""

    def ref_exists(self, working_dir: PathLike, ref: str, timeout: Optional[float] = None) -> bool:
        """Report whether ref resolves."""

    def ref_revision(self, working_dir: PathLike, ref: str, timeout: Optional[float] = None) -> str:
        """Resolve ref to a commit revision."""

    def one_line_log(
        self,
        working_dir: PathLike,
        refspec: str,
        paths: Optional[list[str]] = None,
        timeout: Optional[float] = None,
    ) -> list[Commit]:
        """List commits reachable from refspec, optionally limited to paths."""

    def has_changes(
        self,
        working_dir: PathLike,
        paths: Optional[list[str]] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        """Report whether tracked files differ from HEAD."""

    def commit(
        self,
        working_dir: PathLike,
        message: str,
        author: str = "",
        signing_key: str = "",
        timeout: Optional[float] = None,
    ) -> None:
        """Commit all tracked changes."""

    def push(
        self,
        working_dir: PathLike,
        upstream: str,
        refs: list[str],
        timeout: Optional[float] = None,
    ) -> None:
        """Push refs to upstream."""

    def add_note(
        self,
        working_dir: PathLike,
        revision: str,
        notes_ref: str,
        note: Any,
        timeout: Optional[float] = None,
    ) -> None:
        """Attach a JSON-serialised note to revision."""

    def get_note(
        self,
        working_dir: PathLike,
        notes_ref: str,
        revision: str,
        timeout: Optional[float] = None,
    ) -> Optional[Any]:
        """Read the note for revision, or None if there is none."""

    def note_rev_list(self, working_dir: PathLike, notes_ref: str, timeout: Optional[float] = None) -> set[str]:
        """List all revisions carrying a note."""

    def changed(
        self,
        working_dir: PathLike,
        ref: str,
        paths: Optional[list[str]] = None,
        timeout: Optional[float] = None,
    ) -> list[str]:
        """List files added, copied, modified, renamed or type-changed since ref."""

    def tag_object(self, working_dir: PathLike, tag: str, timeout: Optional[float] = None) -> Optional[str]:
        """Return the object the tag ref points at, or None if missing."""

    def move_tag(
        self,
        working_dir: PathLike,
        tag: str,
        revision: str,
        message: str,
        signing_key: str = "",
        timeout: Optional[float] = None,
    ) -> None:
        """Force an annotated (optionally signed) tag onto revision."""

    def push_tag(self, working_dir: PathLike, upstream: str, tag: str, timeout: Optional[float] = None) -> None:
        """Force-push a tag to upstream."""

    def restore_tag(
        self,
        working_dir: PathLike,
        tag: str,
        previous: Optional[str],
        timeout: Optional[float] = None,
    ) -> None:
        """Point tag back at a previous object, deleting it when there was none."""

    def delete_tag(self, working_dir: PathLike, upstream: str, tag: str, timeout: Optional[float] = None) -> None:
        """Delete a tag locally and upstream."""

    def verify_tag(self, working_dir: PathLike, tag: str, timeout: Optional[float] = None) -> None:
        """Validate the tag's signature."""
