"""Test gitsync exception hierarchy and exit codes."""

from gitsync.errors import (
    EXIT_BLOCKED,
    EXIT_ERROR,
    EXIT_NOT_READY,
    EXIT_PARTIAL,
    EXIT_SUCCESS,
    EXIT_USAGE,
    ClonedOnlyError,
    ConfigError,
    GitCommandError,
    GitSyncError,
    GitTimeoutError,
    InterruptedRun,
    NoChangesError,
    NotClonedError,
    NotReadyError,
    PermanentError,
    PushError,
    TransientError,
    UserInputError,
)


class TestExitCodeConstants:
    """Test exit code constant values."""

    def test_exit_codes(self):
        """Exit codes occupy the 0-5 range in order."""
        assert (EXIT_SUCCESS, EXIT_ERROR, EXIT_NOT_READY, EXIT_BLOCKED, EXIT_PARTIAL, EXIT_USAGE) == (
            0,
            1,
            2,
            3,
            4,
            5,
        )


class TestGitSyncErrorBase:
    """Test GitSyncError base exception."""

    def test_has_message_and_exit_code(self):
        exc = GitSyncError("test message")
        assert exc.message == "test message"
        assert str(exc) == "test message"
        assert exc.exit_code == EXIT_ERROR

    def test_custom_exit_code(self):
        exc = GitSyncError("test", exit_code=EXIT_USAGE)
        assert exc.exit_code == EXIT_USAGE


class TestReadinessErrors:
    """Errors reported while the mirror is not ready."""

    def test_not_cloned(self):
        exc = NotClonedError()
        assert isinstance(exc, TransientError)
        assert str(exc) == "git repo has not been cloned yet"
        assert exc.exit_code == EXIT_NOT_READY

    def test_cloned_only(self):
        exc = ClonedOnlyError()
        assert isinstance(exc, TransientError)
        assert "not yet checked for write access" in str(exc)

    def test_not_ready_wraps_cause(self):
        """NotReadyError carries the underlying error."""
        cause = GitCommandError("fatal: repository not found")
        exc = NotReadyError(cause)
        assert exc.cause is cause
        assert str(exc) == "git repo not ready: fatal: repository not found"

    def test_timeout(self):
        exc = GitTimeoutError(["git", "fetch"], 5.0)
        assert isinstance(exc, TransientError)
        assert exc.timeout == 5.0
        assert "git fetch" in str(exc)


class TestPermanentErrors:
    """Errors that need operator action."""

    def test_config_error_default_message(self):
        exc = ConfigError()
        assert isinstance(exc, PermanentError)
        assert str(exc) == "git repo does not have valid config"
        assert exc.exit_code == EXIT_ERROR

    def test_config_error_custom_message(self):
        assert str(ConfigError("bad mode")) == "bad mode"


class TestTransactionErrors:
    """Errors raised by commit, push and marker updates."""

    def test_push_error_names_remote_and_cause(self):
        cause = GitCommandError("fatal: unable to access")
        exc = PushError("ssh://git@example.com/repo", cause)
        assert exc.remote == "ssh://git@example.com/repo"
        assert exc.cause is cause
        assert exc.exit_code == EXIT_PARTIAL
        assert str(exc) == (
            "problem committing and pushing to git repository at ssh://git@example.com/repo: "
            "fatal: unable to access"
        )

    def test_no_changes(self):
        exc = NoChangesError()
        assert str(exc) == "no changes made in repo"
        assert exc.exit_code == EXIT_BLOCKED

    def test_git_command_error_keeps_command(self):
        exc = GitCommandError("boom", command=["git", "push"], returncode=128)
        assert exc.command == ["git", "push"]
        assert exc.returncode == 128
        assert exc.exit_code == EXIT_ERROR

    def test_user_input_error(self):
        assert UserInputError().exit_code == EXIT_USAGE

    def test_interrupted_run(self):
        exc = InterruptedRun()
        assert exc.exit_code == EXIT_NOT_READY
        assert str(exc) == "Interrupted by user"
