"""Test the gitsync CLI."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import git
from gitsync.cli import gitsync
from gitsync.errors import EXIT_ERROR, EXIT_SUCCESS, EXIT_USAGE


@pytest.fixture(autouse=True)
def quiet_cli(clean_env):
    """Keep log handlers and the SIGINT handler of the test process untouched."""
    with patch("gitsync.cli.setup_logging"), patch("gitsync.cli.signal.signal"):
        yield


@pytest.fixture
def configured(monkeypatch, seed: Path, upstream: Path) -> Path:
    monkeypatch.setenv("GITSYNC_GIT_URL", str(upstream))
    monkeypatch.setenv("GITSYNC_GIT_USER", "Test User")
    monkeypatch.setenv("GITSYNC_GIT_EMAIL", "test@example.com")
    return upstream


class TestStatus:
    """Tests for `gitsync status`."""

    def test_unconfigured(self, runner):
        result = runner.invoke(gitsync, ["status"])

        assert result.exit_code == EXIT_ERROR
        assert "(no remote) [master]: unconfigured" in result.output
        assert "git repo does not have valid config" in result.output

    def test_ready_json(self, runner, configured, seed):
        result = runner.invoke(gitsync, ["status", "--json"])

        assert result.exit_code == EXIT_SUCCESS
        data = json.loads(result.output)
        assert data["status"] == "ready"
        assert data["error"] is None
        assert data["revision"] == git(seed, "rev-parse", "HEAD")
        assert data["state_mode"] == "GitTag"

    def test_unreachable(self, runner, monkeypatch, tmp_path):
        monkeypatch.setenv("GITSYNC_GIT_URL", str(tmp_path / "nowhere.git"))

        result = runner.invoke(gitsync, ["status"])

        assert result.exit_code == EXIT_ERROR
        assert ": new" in result.output
        assert "Error: git clone --mirror" in result.output


class TestMarker:
    """Tests for `gitsync marker`."""

    def test_tag_marker_set_show_delete(self, runner, configured, seed, upstream):
        head = git(seed, "rev-parse", "HEAD")

        result = runner.invoke(gitsync, ["marker", "show"])
        assert result.exit_code == EXIT_SUCCESS
        assert "(not set)" in result.output

        result = runner.invoke(gitsync, ["marker", "set"])
        assert result.exit_code == EXIT_SUCCESS
        assert f"Sync marker flux-sync -> {head}" in result.output
        assert git(upstream, "rev-parse", "flux-sync^{commit}") == head

        result = runner.invoke(gitsync, ["marker", "show"])
        assert result.output.strip() == head

        result = runner.invoke(gitsync, ["marker", "delete"])
        assert result.exit_code == EXIT_SUCCESS
        assert git(upstream, "tag", "--list") == ""

    def test_native_marker_persists_in_marker_dir(self, runner, configured, monkeypatch, tmp_path, seed):
        monkeypatch.setenv("GITSYNC_STATE_MODE", "Native")
        monkeypatch.setenv("GITSYNC_MARKER_DIR", str(tmp_path / "markers"))

        result = runner.invoke(gitsync, ["marker", "set", "abc123", "-m", "Synced"])
        assert result.exit_code == EXIT_SUCCESS

        result = runner.invoke(gitsync, ["marker", "show"])
        assert result.output.strip() == "abc123"
        assert json.loads((tmp_path / "markers" / "flux-sync.json").read_text())["message"] == "Synced"

    def test_unconfigured(self, runner):
        result = runner.invoke(gitsync, ["marker", "show"])
        assert result.exit_code == EXIT_ERROR
        assert "Error: git repo does not have valid config" in result.output


class TestVerifyTag:
    """Tests for `gitsync verify-tag`."""

    def test_native_mode_is_usage_error(self, runner, configured, monkeypatch):
        monkeypatch.setenv("GITSYNC_STATE_MODE", "Native")

        result = runner.invoke(gitsync, ["verify-tag"])

        assert result.exit_code == EXIT_USAGE
        assert "sync marker is not a tag" in result.output


class TestLogging:
    """Log level selection by the group."""

    def test_quiet_by_default(self, runner):
        with patch("gitsync.cli.setup_logging") as mock_setup:
            runner.invoke(gitsync, ["status"])
        mock_setup.assert_called_once_with(verbose=False)

    @pytest.mark.parametrize("args, debug", [(["-v", "status"], None), (["status"], "1"), (["status"], "yes")])
    def test_verbose_flag_or_debug_env(self, runner, monkeypatch, args, debug):
        if debug is not None:
            monkeypatch.setenv("GITSYNC_DEBUG", debug)
        with patch("gitsync.cli.setup_logging") as mock_setup:
            runner.invoke(gitsync, args)
        mock_setup.assert_called_once_with(verbose=True)
