"""gitsync exception hierarchy with exit codes and triage metadata."""

from typing import Optional

# Exit code constants (simple 0-5 range)
EXIT_SUCCESS = 0  # Operation succeeded
EXIT_ERROR = 1  # Generic error / failure
EXIT_NOT_READY = 2  # Not ready / precondition failed
EXIT_BLOCKED = 3  # Nothing to do
EXIT_PARTIAL = 4  # Partial success (e.g. committed but not pushed)
EXIT_USAGE = 5  # Invalid usage / arguments


class GitSyncError(Exception):
    """Base exception for all gitsync errors."""

    def __init__(self, message: str, exit_code: int = EXIT_ERROR):
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code


class TransientError(GitSyncError):
    """
    Retryable errors (repo not ready yet, network glitches, timeouts).

    The mirror loop recovers from these on its own.
    """

    def __init__(self, message: str):
        super().__init__(message, exit_code=EXIT_NOT_READY)


class PermanentError(GitSyncError):
    """Non-retryable errors that need operator action."""

    exit_code = EXIT_ERROR


class ConfigError(PermanentError):
    """Configuration errors (no remote, invalid values)."""

    exit_code = EXIT_ERROR

    def __init__(self, message: str = "git repo does not have valid config"):
        super().__init__(message, exit_code=self.exit_code)


class NotClonedError(TransientError):
    """The mirror has not been cloned yet."""

    def __init__(self, message: str = "git repo has not been cloned yet"):
        super().__init__(message)


class ClonedOnlyError(TransientError):
    """The mirror is cloned, but write access has not been verified."""

    def __init__(
        self,
        message: str = "git repo has been cloned but not yet checked for write access",
    ):
        super().__init__(message)


class NotReadyError(TransientError):
    """
    An operation needs a ready mirror.

    Carries the error that is currently keeping the mirror from being ready.
    """

    def __init__(self, cause: Optional[BaseException]):
        self.cause = cause
        super().__init__(f"git repo not ready: {cause}")


class GitTimeoutError(TransientError):
    """A git invocation ran past its deadline and was killed."""

    def __init__(self, command: list[str], timeout: Optional[float]):
        self.command = command
        self.timeout = timeout
        super().__init__(f"timed out after {timeout}s running: {' '.join(command)}")


class GitCommandError(GitSyncError):
    """A git invocation failed; message is the recognised diagnostic line."""

    def __init__(self, message: str, command: Optional[list[str]] = None, returncode: int = 1):
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode


class PushError(GitSyncError):
    """Pushing to the upstream failed (permissions or connectivity)."""

    def __init__(self, remote: str, cause: BaseException):
        self.remote = remote
        self.cause = cause
        super().__init__(
            f"problem committing and pushing to git repository at {remote}: {cause}",
            exit_code=EXIT_PARTIAL,
        )


class NoChangesError(GitSyncError):
    """Nothing to commit in the checkout."""

    exit_code = EXIT_BLOCKED

    def __init__(self, message: str = "no changes made in repo"):
        super().__init__(message, exit_code=self.exit_code)


class UserInputError(GitSyncError):
    """Invalid CLI usage / arguments."""

    exit_code = EXIT_USAGE

    def __init__(self, message: str = "Invalid arguments"):
        super().__init__(message, exit_code=self.exit_code)


class InterruptedRun(GitSyncError):
    """Run interrupted by user (Ctrl+C)."""

    exit_code = EXIT_NOT_READY

    def __init__(self, message: str = "Interrupted by user"):
        super().__init__(message, exit_code=self.exit_code)
