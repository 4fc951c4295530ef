"""Git CLI backend for the version control primitives.

A thin wrapper: logic git already owns (e.g. whether a push is permitted)
is left to git, and its diagnostics are surfaced as GitCommandError.
"""

import json
import logging
from pathlib import Path
from typing import Any, Literal, Optional

from gitsync.errors import GitCommandError, GitTimeoutError
from gitsync.probes.tools import CommandTimeoutError, SubprocessError, run_command
from gitsync.scm.protocol import Commit, PathLike
from gitsync.scm.utils import find_error_message, split_list, split_log, split_note_list

logger = logging.getLogger(__name__)

# Disposable tag pushed and deleted to confirm write access
CHECK_PUSH_TAG = "flux-write-check"

# Only files present in the working tree: Added, Copied, Modified, Renamed, Type-changed
CHANGED_DIFF_FILTER = "ACMRT"


class GitSCM:
    """Git implementation of the VCS protocol."""

    kind: Literal["git"] = "git"

    def __init__(self, executable: str = "git") -> None:
        self.executable = executable

    def _run(
        self,
        args: list[str],
        cwd: Optional[PathLike] = None,
        timeout: Optional[float] = None,
        env: Optional[dict[str, str]] = None,
    ) -> str:
        """
        Run one git command.

        Args:
            args: Arguments after the git executable
            cwd: Working directory
            timeout: Seconds before the command is killed
            env: Extra environment variables

        Returns:
            stdout (unstripped)

        Raises:
            GitTimeoutError: If the timeout expires
            GitCommandError: If git exits non-zero
        """
        cmd = [self.executable, *args]
        try:
            result = run_command(cmd, cwd=cwd, timeout=timeout, env=env, check=True)
        except CommandTimeoutError as e:
            raise GitTimeoutError(cmd, timeout) from e
        except SubprocessError as e:
            message = find_error_message(e.stderr) or e.stderr.strip()
            if not message:
                message = f"git {' '.join(args)} exited with status {e.returncode}"
            raise GitCommandError(message, command=cmd, returncode=e.returncode) from e
        except FileNotFoundError as e:
            raise GitCommandError(f"git executable not found: {self.executable}", command=cmd) from e
        return result.stdout

    def config_identity(
        self,
        working_dir: PathLike,
        user_name: str,
        user_email: str,
        timeout: Optional[float] = None,
    ) -> None:
        """Set user.name and user.email in the repository config."""
        for key, value in (("user.name", user_name), ("user.email", user_email)):
            try:
                self._run(["config", key, value], cwd=working_dir, timeout=timeout)
            except GitCommandError as e:
                raise GitCommandError(f"setting git config: {e.message}", e.command, e.returncode) from e

    def clone(
        self,
        url: PathLike,
        dest: PathLike,
        branch: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Path:
        """
        Make a non-bare clone.

        Args:
            url: Repository to clone (a URL or a local mirror directory)
            dest: Destination directory (may exist if empty)
            branch: Branch to check out
            timeout: Seconds before the clone is killed

        Returns:
            Path to the clone
        """
        args = ["clone"]
        if branch:
            args += ["--branch", branch]
        args += [str(url), str(dest)]
        try:
            self._run(args, cwd=Path(dest).parent, timeout=timeout)
        except GitCommandError as e:
            raise GitCommandError(f"git clone: {e.message}", e.command, e.returncode) from e
        logger.debug(f"Cloned {url} into {dest}")
        return Path(dest)

    def mirror(self, url: str, dest: PathLike, timeout: Optional[float] = None) -> Path:
        """Make a bare mirror clone of url at dest."""
        try:
            self._run(["clone", "--mirror", url, str(dest)], cwd=Path(dest).parent, timeout=timeout)
        except GitCommandError as e:
            raise GitCommandError(f"git clone --mirror: {e.message}", e.command, e.returncode) from e
        logger.debug(f"Mirrored {url} into {dest}")
        return Path(dest)

    def check_push(self, working_dir: PathLike, upstream: str, timeout: Optional[float] = None) -> None:
        """
        Sanity-check that we can write to the upstream repo.

        Being able to clone is an adequate check that we can read it.
        """
        # --force in case the tag was fetched from upstream when cloning
        try:
            self._run(["tag", "--force", CHECK_PUSH_TAG], cwd=working_dir, timeout=timeout)
        except GitCommandError as e:
            raise GitCommandError(f"tag for write check: {e.message}", e.command, e.returncode) from e
        try:
            self._run(
                ["push", "--force", upstream, "tag", CHECK_PUSH_TAG],
                cwd=working_dir,
                timeout=timeout,
            )
        except GitCommandError as e:
            raise GitCommandError(f"attempt to push tag: {e.message}", e.command, e.returncode) from e
        self._run(["push", "--delete", upstream, "tag", CHECK_PUSH_TAG], cwd=working_dir, timeout=timeout)

    def commit(
        self,
        working_dir: PathLike,
        message: str,
        author: str = "",
        signing_key: str = "",
        timeout: Optional[float] = None,
    ) -> None:
        """Commit all tracked changes, skipping hooks."""
        args = ["commit", "--no-verify", "--all", "--message", message]
        if author:
            args += ["--author", author]
        if signing_key:
            args.append(f"--gpg-sign={signing_key}")
        try:
            self._run(args, cwd=working_dir, timeout=timeout)
        except GitCommandError as e:
            raise GitCommandError(f"git commit: {e.message}", e.command, e.returncode) from e

    def push(
        self,
        working_dir: PathLike,
        upstream: str,
        refs: list[str],
        timeout: Optional[float] = None,
    ) -> None:
        """Push the refs given to the upstream repo."""
        try:
            self._run(["push", upstream, *refs], cwd=working_dir, timeout=timeout)
        except GitCommandError as e:
            raise GitCommandError(
                f"git push {upstream} {' '.join(refs)}: {e.message}", e.command, e.returncode
            ) from e

    def fetch(
        self,
        working_dir: PathLike,
        upstream: PathLike,
        *refspec: str,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Fetch updated refs, tags and associated objects from upstream.

        A refspec naming a ref that upstream does not have is not an error.
        """
        # --force so tags moved upstream (the sync marker) replace local copies
        args = ["fetch", "--tags", "--force", str(upstream), *refspec]
        try:
            self._run(args, cwd=working_dir, timeout=timeout)
        except GitCommandError as e:
            if "couldn't find remote ref" in e.message.lower():
                logger.debug(f"Ignoring missing remote ref in fetch of {upstream}: {e.message}")
                return
            raise GitCommandError(
                f"git fetch --tags {upstream} {' '.join(refspec)}: {e.message}",
                e.command,
                e.returncode,
            ) from e

    def ref_exists(self, working_dir: PathLike, ref: str, timeout: Optional[float] = None) -> bool:
        """Report whether ref resolves."""
        try:
            self._run(
                ["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"],
                cwd=working_dir,
                timeout=timeout,
            )
        except GitCommandError as e:
            if e.returncode == 1 or "unknown revision" in e.message:
                return False
            raise
        return True

    def ref_revision(self, working_dir: PathLike, ref: str, timeout: Optional[float] = None) -> str:
        """Get the commit hash for a reference."""
        return self._run(["rev-list", "--max-count", "1", ref], cwd=working_dir, timeout=timeout).strip()

    def get_notes_ref(self, working_dir: PathLike, notes_ref: str, timeout: Optional[float] = None) -> str:
        """Get the full ref for a shorthand notes ref."""
        output = self._run(["notes", "--ref", notes_ref, "get-ref"], cwd=working_dir, timeout=timeout)
        return output.strip()

    def add_note(
        self,
        working_dir: PathLike,
        revision: str,
        notes_ref: str,
        note: Any,
        timeout: Optional[float] = None,
    ) -> None:
        """Attach note, serialised as JSON, to revision."""
        payload = json.dumps(note)
        self._run(
            ["notes", "--ref", notes_ref, "add", "--message", payload, revision],
            cwd=working_dir,
            timeout=timeout,
        )

    def get_note(
        self,
        working_dir: PathLike,
        notes_ref: str,
        revision: str,
        timeout: Optional[float] = None,
    ) -> Optional[Any]:
        """
        Read the note attached to revision.

        Returns:
            Decoded note, or None if the revision has no note
        """
        try:
            output = self._run(["notes", "--ref", notes_ref, "show", revision], cwd=working_dir, timeout=timeout)
        except GitCommandError as e:
            if "no note found for object" in e.message.lower():
                return None
            raise
        return json.loads(output)

    def note_rev_list(self, working_dir: PathLike, notes_ref: str, timeout: Optional[float] = None) -> set[str]:
        """Get all revisions with a note."""
        output = self._run(["notes", "--ref", notes_ref, "list"], cwd=working_dir, timeout=timeout)
        return split_note_list(output)

    def one_line_log(
        self,
        working_dir: PathLike,
        refspec: str,
        paths: Optional[list[str]] = None,
        timeout: Optional[float] = None,
    ) -> list[Commit]:
        """Return the revisions and one-line log messages for refspec."""
        args = ["log", "--pretty=format:%GK|%H|%s", refspec]
        if paths:
            args += ["--", *paths]
        return split_log(self._run(args, cwd=working_dir, timeout=timeout))

    def changed(
        self,
        working_dir: PathLike,
        ref: str,
        paths: Optional[list[str]] = None,
        timeout: Optional[float] = None,
    ) -> list[str]:
        """
        List files changed since ref.

        Only files still present in the working tree are reported, so
        deletions do not appear.
        """
        args = ["diff", "--name-only", f"--diff-filter={CHANGED_DIFF_FILTER}", ref]
        if paths:
            args += ["--", *paths]
        return split_list(self._run(args, cwd=working_dir, timeout=timeout))

    def has_changes(
        self,
        working_dir: PathLike,
        paths: Optional[list[str]] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        """Report whether tracked files under paths differ from the index."""
        # --quiet means "exit with 1 if there are changes"
        args = ["diff", "--quiet"]
        if paths:
            args += ["--", *paths]
        try:
            self._run(args, cwd=working_dir, timeout=timeout)
        except GitCommandError as e:
            if e.returncode == 1:
                return True
            raise
        return False

    def tag_object(self, working_dir: PathLike, tag: str, timeout: Optional[float] = None) -> Optional[str]:
        """Return the object refs/tags/<tag> points at, or None if missing."""
        try:
            output = self._run(
                ["rev-parse", "--verify", "--quiet", f"refs/tags/{tag}"],
                cwd=working_dir,
                timeout=timeout,
            )
        except GitCommandError as e:
            if e.returncode == 1:
                return None
            raise
        return output.strip() or None

    def move_tag(
        self,
        working_dir: PathLike,
        tag: str,
        revision: str,
        message: str,
        signing_key: str = "",
        timeout: Optional[float] = None,
    ) -> None:
        """Move an annotated tag to revision, signing it when a key is given."""
        args = ["tag", "--force", "--annotate", "--message", message]
        if signing_key:
            args.append(f"--local-user={signing_key}")
        args += [tag, revision]
        try:
            self._run(args, cwd=working_dir, timeout=timeout)
        except GitCommandError as e:
            raise GitCommandError(f"moving tag {tag}: {e.message}", e.command, e.returncode) from e

    def push_tag(self, working_dir: PathLike, upstream: str, tag: str, timeout: Optional[float] = None) -> None:
        """Force-push tag to upstream."""
        try:
            self._run(["push", "--force", upstream, "tag", tag], cwd=working_dir, timeout=timeout)
        except GitCommandError as e:
            raise GitCommandError(f"pushing tag to origin: {e.message}", e.command, e.returncode) from e

    def restore_tag(
        self,
        working_dir: PathLike,
        tag: str,
        previous: Optional[str],
        timeout: Optional[float] = None,
    ) -> None:
        """Point the local tag back at previous, or delete it if there was none."""
        if previous:
            self._run(["update-ref", f"refs/tags/{tag}", previous], cwd=working_dir, timeout=timeout)
        else:
            self._run(["tag", "--delete", tag], cwd=working_dir, timeout=timeout)

    def delete_tag(self, working_dir: PathLike, upstream: str, tag: str, timeout: Optional[float] = None) -> None:
        """Delete tag locally and upstream; a tag missing on either side is skipped."""
        if self.tag_object(working_dir, tag, timeout=timeout) is not None:
            self._run(["tag", "--delete", tag], cwd=working_dir, timeout=timeout)
        try:
            self._run(["push", "--delete", upstream, "tag", tag], cwd=working_dir, timeout=timeout)
        except GitCommandError as e:
            if "remote ref does not exist" in e.message:
                logger.debug(f"Tag {tag} already absent from {upstream}")
                return
            raise GitCommandError(f"deleting tag {tag}: {e.message}", e.command, e.returncode) from e

    def verify_tag(self, working_dir: PathLike, tag: str, timeout: Optional[float] = None) -> None:
        """Validate the gpg signature created by git tag."""
        try:
            self._run(["verify-tag", tag], cwd=working_dir, timeout=timeout)
        except GitCommandError as e:
            raise GitCommandError(f"verifying tag {tag}: {e.message}", e.command, e.returncode) from e
