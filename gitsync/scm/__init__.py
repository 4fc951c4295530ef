"""Version control primitives."""

from gitsync.scm.git import GitSCM
from gitsync.scm.protocol import VCS, Commit
from gitsync.scm.utils import find_error_message, split_list, split_log, split_note_list

__all__ = [
    "VCS",
    "Commit",
    "GitSCM",
    "find_error_message",
    "split_list",
    "split_log",
    "split_note_list",
]
