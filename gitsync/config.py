"""Configuration loader."""

import configparser
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from gitsync.checkout import CheckoutConfig
from gitsync.errors import ConfigError
from gitsync.mirror import DEFAULT_POLL_INTERVAL, DEFAULT_TIMEOUT, Remote
from gitsync.sync import (
    STATE_MODE_GIT_TAG,
    STATE_MODE_NATIVE,
    STATE_MODES,
    FileMarkerStore,
    MarkerStore,
    MemoryMarkerStore,
)

DEFAULT_BRANCH = "master"
DEFAULT_SYNC_TAG = "flux-sync"
DEFAULT_NOTES_REF = "flux"
DEFAULT_USER_NAME = "Weave Flux"
DEFAULT_USER_EMAIL = "support@weave.works"
DEFAULT_CONFIG_PATH = Path("~/.config/gitsync/config")

logger = logging.getLogger(__name__)


@dataclass
class DebugConfig:
    """Debug configuration."""

    enabled: bool = False

    @classmethod
    def from_env(cls) -> "DebugConfig":
        """Load debug config from environment variable."""
        debug_env = os.environ.get("GITSYNC_DEBUG", "").lower()
        enabled = debug_env in ("1", "true", "yes")
        return cls(enabled=enabled)


@dataclass
class Config:
    """gitsync configuration."""

    git_url: str = ""
    git_branch: str = DEFAULT_BRANCH
    git_paths: list[str] = field(default_factory=list)
    sync_tag: str = DEFAULT_SYNC_TAG
    notes_ref: str = DEFAULT_NOTES_REF
    user_name: str = DEFAULT_USER_NAME
    user_email: str = DEFAULT_USER_EMAIL
    signing_key: str = ""
    set_author: bool = False
    skip_message: str = ""
    poll_interval: float = DEFAULT_POLL_INTERVAL
    timeout: float = DEFAULT_TIMEOUT
    read_only: bool = False
    state_mode: str = STATE_MODE_GIT_TAG
    marker_dir: Optional[Path] = None
    config_path: Optional[Path] = None

    def remote(self) -> Remote:
        """Upstream repo as given to a Mirror."""
        return Remote(url=self.git_url, branch=self.git_branch, state_mode=self.state_mode)

    def checkout_config(self) -> CheckoutConfig:
        """Settings for working checkouts."""
        return CheckoutConfig(
            branch=self.git_branch,
            paths=list(self.git_paths),
            read_only=self.read_only,
            sync_marker_name=self.sync_tag,
            notes_ref=self.notes_ref,
            user_name=self.user_name,
            user_email=self.user_email,
            signing_key=self.signing_key,
            set_author=self.set_author,
            skip_message=self.skip_message,
            state_mode=self.state_mode,
        )

    def marker_store(self) -> MarkerStore:
        """Store for a resource-backed marker: on disk if a directory is configured."""
        if self.marker_dir is not None:
            return FileMarkerStore(self.marker_dir)
        return MemoryMarkerStore()


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_paths(value: str) -> list[str]:
    """
    Parse comma-separated repo paths.

    Args:
        value: Comma-separated path string (e.g., "deploy, charts/app")

    Returns:
        List of paths (trimmed, empties dropped)
    """
    if not value:
        return []
    return [p.strip() for p in value.split(",") if p.strip()]


def _parse_seconds(name: str, value: Optional[str], default: float) -> float:
    """Parse a positive number of seconds, warning and falling back on bad input."""
    if not value:
        return default
    try:
        seconds = float(value)
    except ValueError:
        logger.warning(f"Invalid {name} value, using default: {default}")
        return default
    if seconds <= 0:
        logger.warning(f"{name} must be >0, using default: {default}")
        return default
    return seconds


def _parse_config_file(config_path: Path) -> dict[str, str]:
    """
    Parse INI-style config file.

    Keys live in the DEFAULT section (no header needed) and are matched
    case-insensitively.

    Returns:
        Dict of config values keyed by upper-cased name
    """
    if not config_path.exists():
        return {}

    parser = configparser.ConfigParser(interpolation=None)
    # Allow a bare key = value file without a [DEFAULT] header
    content = config_path.read_text(encoding="utf-8")
    if not content.lstrip().startswith("["):
        content = "[DEFAULT]\n" + content
    parser.read_string(content, source=str(config_path))

    return {key.upper(): value for key, value in parser.defaults().items()}


def get_config(config_path: Optional[Path] = None) -> Config:
    """
    Get current configuration.

    Resolves from:
    1. Environment variables (GITSYNC_*)
    2. Config file (GITSYNC_CONFIG, or ~/.config/gitsync/config)
    3. Defaults

    Returns:
        Config object

    Raises:
        ConfigError: If the state mode is not recognised
    """
    if config_path is None:
        config_path = Path(os.environ.get("GITSYNC_CONFIG", DEFAULT_CONFIG_PATH)).expanduser()
    file_config = _parse_config_file(config_path)

    def lookup(env_name: str, file_key: str) -> Optional[str]:
        return os.environ.get(env_name) or file_config.get(file_key)

    git_url = lookup("GITSYNC_GIT_URL", "GIT_URL") or ""
    git_branch = lookup("GITSYNC_GIT_BRANCH", "GIT_BRANCH") or DEFAULT_BRANCH
    git_paths = _parse_paths(lookup("GITSYNC_GIT_PATH", "GIT_PATH") or "")

    read_only_str = lookup("GITSYNC_READONLY", "READONLY")
    read_only = _parse_bool(read_only_str) if read_only_str else False

    set_author_str = lookup("GITSYNC_SET_AUTHOR", "SET_AUTHOR")
    set_author = _parse_bool(set_author_str) if set_author_str else False

    # A read-only repo cannot hold a pushed tag, so default to a native marker
    default_mode = STATE_MODE_NATIVE if read_only else STATE_MODE_GIT_TAG
    state_mode = lookup("GITSYNC_STATE_MODE", "STATE_MODE") or default_mode
    if state_mode not in STATE_MODES:
        raise ConfigError(f"Invalid state mode: {state_mode}. Must be one of: {', '.join(STATE_MODES)}")
    if read_only and state_mode == STATE_MODE_GIT_TAG:
        logger.warning("Read-only repo with a tag sync marker: marker updates will fail to push")

    poll_interval = _parse_seconds(
        "GITSYNC_POLL_INTERVAL",
        lookup("GITSYNC_POLL_INTERVAL", "POLL_INTERVAL"),
        DEFAULT_POLL_INTERVAL,
    )
    timeout = _parse_seconds("GITSYNC_GIT_TIMEOUT", lookup("GITSYNC_GIT_TIMEOUT", "GIT_TIMEOUT"), DEFAULT_TIMEOUT)

    marker_dir_str = lookup("GITSYNC_MARKER_DIR", "MARKER_DIR")
    marker_dir = Path(marker_dir_str).expanduser() if marker_dir_str else None

    config = Config(
        git_url=git_url,
        git_branch=git_branch,
        git_paths=git_paths,
        sync_tag=lookup("GITSYNC_SYNC_TAG", "SYNC_TAG") or DEFAULT_SYNC_TAG,
        notes_ref=lookup("GITSYNC_NOTES_REF", "NOTES_REF") or DEFAULT_NOTES_REF,
        user_name=lookup("GITSYNC_GIT_USER", "GIT_USER") or DEFAULT_USER_NAME,
        user_email=lookup("GITSYNC_GIT_EMAIL", "GIT_EMAIL") or DEFAULT_USER_EMAIL,
        signing_key=lookup("GITSYNC_SIGNING_KEY", "SIGNING_KEY") or "",
        set_author=set_author,
        skip_message=lookup("GITSYNC_CI_SKIP_MESSAGE", "CI_SKIP_MESSAGE") or "",
        poll_interval=poll_interval,
        timeout=timeout,
        read_only=read_only,
        state_mode=state_mode,
        marker_dir=marker_dir,
        config_path=config_path,
    )

    logger.debug(f"Config file: {config_path}")
    logger.debug(f"Git URL: {config.git_url or '(none)'}")
    logger.debug(f"Branch: {config.git_branch}")
    logger.debug(f"Paths: {config.git_paths}")
    logger.debug(f"State mode: {config.state_mode}")
    logger.debug(f"Poll interval: {config.poll_interval}s, timeout: {config.timeout}s")

    return config
