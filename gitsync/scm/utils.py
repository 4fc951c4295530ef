"""Parsing helpers for git command output."""

from typing import Optional

from gitsync.scm.protocol import Commit

# Diagnostic prefixes, in the order they are recognised
_ERROR_PREFIXES = ("fatal: ", "ERROR fatal: ")  # the second seen on ubuntu systems
_ERROR_PREFIX_STRIPPED = "error:"


def find_error_message(stderr: str) -> Optional[str]:
    """
    Pick the meaningful line out of git's stderr.

    Args:
        stderr: Captured standard error

    Returns:
        First line starting with a recognised prefix, or None
    """
    for line in stderr.splitlines():
        if line.startswith(_ERROR_PREFIXES):
            return line
        if line.startswith(_ERROR_PREFIX_STRIPPED):
            return line[len(_ERROR_PREFIX_STRIPPED) :].strip()
    return None


def split_list(output: str) -> list[str]:
    """Split newline-separated output, returning [] for blank output."""
    stripped = output.strip()
    if not stripped:
        return []
    return stripped.split("\n")


def split_log(output: str) -> list[Commit]:
    """
    Parse `git log --pretty=format:%GK|%H|%s` output.

    Args:
        output: Raw log output

    Returns:
        Commits in log order
    """
    commits = []
    for line in split_list(output):
        signing_key, revision, message = line.split("|", 2)
        commits.append(Commit(signing_key=signing_key, revision=revision, message=message))
    return commits


def split_note_list(output: str) -> set[str]:
    """
    Parse `git notes list` output into the set of annotated revisions.

    Each line is "<note object> <annotated object>". Ordering is by object
    id, not time, so a set is returned.
    """
    revisions = set()
    for line in split_list(output):
        fields = line.split()
        if len(fields) > 1:
            revisions.add(fields[1])
    return revisions
