"""Tests for git output parsing helpers."""

from gitsync.scm.protocol import Commit
from gitsync.scm.utils import find_error_message, split_list, split_log, split_note_list


class TestFindErrorMessage:
    """Tests for find_error_message."""

    def test_fatal_line_kept_whole(self):
        stderr = "Cloning into 'x'...\nfatal: repository 'nowhere' does not exist\n"
        assert find_error_message(stderr) == "fatal: repository 'nowhere' does not exist"

    def test_ubuntu_prefix(self):
        assert find_error_message("ERROR fatal: bad thing") == "ERROR fatal: bad thing"

    def test_error_prefix_stripped(self):
        stderr = "To /tmp/up.git\nerror: failed to push some refs to '/tmp/up.git'\n"
        assert find_error_message(stderr) == "failed to push some refs to '/tmp/up.git'"

    def test_first_match_wins(self):
        assert find_error_message("error: first\nfatal: second") == "first"

    def test_unrecognised(self):
        assert find_error_message("warning: something\nhint: try this") is None
        assert find_error_message("") is None


class TestSplitList:
    """Tests for split_list."""

    def test_blank(self):
        assert split_list("") == []
        assert split_list("\n  \n") == []

    def test_lines(self):
        assert split_list("a.yaml\nb/c.yaml\n") == ["a.yaml", "b/c.yaml"]


class TestSplitLog:
    """Tests for split_log."""

    def test_parses_fields(self):
        output = "ABCDEF01|" + "1" * 40 + "|Add app\n|" + "2" * 40 + "|Fix: a|b split"

        commits = split_log(output)

        assert commits == [
            Commit(signing_key="ABCDEF01", revision="1" * 40, message="Add app"),
            Commit(signing_key="", revision="2" * 40, message="Fix: a|b split"),
        ]

    def test_empty(self):
        assert split_log("") == []


def test_split_note_list():
    """Notes list gives the annotated object, second on each line."""
    output = "n1 rev1\nn2 rev2\n\nbogus\n"
    assert split_note_list(output) == {"rev1", "rev2"}
