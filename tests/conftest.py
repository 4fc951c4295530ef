"""Test fixtures and utilities."""

import os
import subprocess
from pathlib import Path
from typing import Any, Callable, Generator, Optional

import click.testing
import pytest

from gitsync.checkout import CheckoutConfig
from gitsync.scm.protocol import Commit

TEST_USER = "Test User"
TEST_EMAIL = "test@example.com"


def git(cwd: Path, *args: str) -> str:
    """Run git in cwd for test setup, returning stripped stdout."""
    result = subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True)
    return result.stdout.strip()


def commit_file(repo: Path, relpath: str, content: str, message: str) -> str:
    """Write a file, commit it and return the new revision."""
    path = repo / relpath
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    git(repo, "add", relpath)
    git(repo, "commit", "-m", message)
    return git(repo, "rev-parse", "HEAD")


@pytest.fixture
def upstream(tmp_path: Path) -> Path:
    """Create a bare upstream repository with master as its default branch."""
    repo_dir = tmp_path / "upstream.git"
    repo_dir.mkdir()
    git(repo_dir, "init", "--bare")
    git(repo_dir, "symbolic-ref", "HEAD", "refs/heads/master")
    return repo_dir


@pytest.fixture
def seed(tmp_path: Path, upstream: Path) -> Path:
    """
    Working repo that pushes to the upstream.

    Has one commit on master (a README and a manifest under deploy/),
    already pushed.
    """
    repo_dir = tmp_path / "seed"
    repo_dir.mkdir()
    git(repo_dir, "init")
    git(repo_dir, "symbolic-ref", "HEAD", "refs/heads/master")
    git(repo_dir, "config", "user.email", TEST_EMAIL)
    git(repo_dir, "config", "user.name", TEST_USER)
    git(repo_dir, "config", "commit.gpgsign", "false")
    git(repo_dir, "remote", "add", "origin", str(upstream))

    (repo_dir / "README.md").write_text("# Test")
    git(repo_dir, "add", "README.md")
    commit_file(repo_dir, "deploy/app.yaml", "replicas: 1\n", "Initial")
    git(repo_dir, "push", "origin", "master")
    return repo_dir


@pytest.fixture
def checkout_config() -> CheckoutConfig:
    """Checkout settings with a test identity."""
    return CheckoutConfig(user_name=TEST_USER, user_email=TEST_EMAIL)


@pytest.fixture
def runner() -> click.testing.CliRunner:
    """Click CliRunner for testing CLI commands."""
    return click.testing.CliRunner()


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    """Drop GITSYNC_* variables and point the config file somewhere empty."""
    for key in list(os.environ):
        if key.startswith("GITSYNC_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("GITSYNC_CONFIG", str(tmp_path / "no-such-config"))
    yield


class FakeVCS:
    """
    In-memory stand-in for GitSCM, covering what a Mirror calls.

    Records each call by method name. A failure registered with `fail` is
    raised by every later call of that method; a callable is invoked with
    the call count and may return an exception to raise.
    """

    kind = "fake"

    def __init__(self) -> None:
        self.calls: list[str] = []
        self._failures: dict[str, Callable[[int], Optional[BaseException]]] = {}
        self.revision = "a" * 40
        self.log: list[Commit] = []

    def fail(self, method: str, error: BaseException) -> None:
        self._failures[method] = lambda count: error

    def fail_when(self, method: str, decide: Callable[[int], Optional[BaseException]]) -> None:
        self._failures[method] = decide

    def count(self, method: str) -> int:
        return self.calls.count(method)

    def _call(self, method: str) -> None:
        self.calls.append(method)
        decide = self._failures.get(method)
        if decide is not None:
            error = decide(self.count(method))
            if error is not None:
                raise error

    def mirror(self, url: str, dest: Any, timeout: Optional[float] = None) -> Path:
        self._call("mirror")
        return Path(dest)

    def clone(self, url: Any, dest: Any, branch: Optional[str] = None, timeout: Optional[float] = None) -> Path:
        self._call("clone")
        return Path(dest)

    def fetch(self, working_dir: Any, upstream: Any, *refspec: str, timeout: Optional[float] = None) -> None:
        self._call("fetch")

    def check_push(self, working_dir: Any, upstream: str, timeout: Optional[float] = None) -> None:
        self._call("check_push")

    def config_identity(self, working_dir: Any, user_name: str, user_email: str, timeout: Optional[float] = None) -> None:
        self._call("config_identity")

    def get_notes_ref(self, working_dir: Any, notes_ref: str, timeout: Optional[float] = None) -> str:
        self._call("get_notes_ref")
        return f"refs/notes/{notes_ref}"

    def ref_revision(self, working_dir: Any, ref: str, timeout: Optional[float] = None) -> str:
        self._call("ref_revision")
        return self.revision

    def one_line_log(
        self,
        working_dir: Any,
        refspec: str,
        paths: Optional[list[str]] = None,
        timeout: Optional[float] = None,
    ) -> list[Commit]:
        self._call("one_line_log")
        return list(self.log)


@pytest.fixture
def fake_vcs() -> FakeVCS:
    """FakeVCS with no failures registered."""
    return FakeVCS()
