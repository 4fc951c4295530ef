"""gitsync CLI entrypoint."""

import json
import signal
import sys
import threading
from typing import Optional

import click

from gitsync.checkout import Checkout
from gitsync.config import Config, DebugConfig, get_config
from gitsync.errors import EXIT_SUCCESS, GitSyncError, InterruptedRun
from gitsync.logging import get_logger, setup_logging
from gitsync.mirror import Mirror
from gitsync.sync import SyncMarkerAction

logger = get_logger("cli")


def _handle_interrupt(signum: int, frame: object) -> None:
    """Handle SIGINT (Ctrl+C)."""
    logger.info("Interrupted by user")
    raise InterruptedRun()


def _build_mirror(config: Config) -> Mirror:
    return Mirror(
        config.remote(),
        poll_interval=config.poll_interval,
        timeout=config.timeout,
        read_only=config.read_only,
        marker_store=config.marker_store(),
    )


def _fail(error: GitSyncError) -> None:
    click.echo(f"Error: {error.message}", err=True)
    sys.exit(error.exit_code)


def _ready_checkout(config: Config) -> tuple[Mirror, Checkout]:
    """Bring a mirror to ready and take a working checkout of it."""
    mirror = _build_mirror(config)
    try:
        mirror.ready()
        return mirror, mirror.clone(config.checkout_config())
    except GitSyncError:
        mirror.clean()
        raise


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
@click.version_option(package_name="gitsync")
def gitsync(verbose: bool) -> None:
    """gitsync - keep a git mirror and sync marker for a GitOps agent."""
    setup_logging(verbose=verbose or DebugConfig.from_env().enabled)
    signal.signal(signal.SIGINT, _handle_interrupt)


@gitsync.command()
@click.option("--json", "json_output", is_flag=True, help="JSON output")
def status(json_output: bool) -> None:
    """
    Clone the configured repo and report how far it got.

    Walks the mirror through clone and write check, then prints the status
    and, if it stopped short of ready, the error that stopped it.
    """
    config = get_config()
    mirror = _build_mirror(config)
    try:
        try:
            mirror.ready()
        except GitSyncError as e:
            logger.debug(f"Mirror not ready: {e}")

        state, error = mirror.status()
        revision: Optional[str] = None
        if error is None:
            try:
                revision = mirror.revision(config.git_branch)
            except GitSyncError as e:
                error = e

        if json_output:
            payload = {
                "url": config.git_url,
                "branch": config.git_branch,
                "state_mode": config.state_mode,
                "status": state.value,
                "error": str(error) if error else None,
                "revision": revision,
            }
            click.echo(json.dumps(payload, indent=2, sort_keys=True))
        else:
            click.echo(f"{config.git_url or '(no remote)'} [{config.git_branch}]: {state.value}")
            if revision:
                click.echo(f"HEAD: {revision}")
            if error:
                click.echo(f"Error: {error}")
    finally:
        mirror.clean()

    sys.exit(EXIT_SUCCESS if error is None else getattr(error, "exit_code", 1))


@gitsync.command()
def watch() -> None:
    """
    Keep the mirror refreshed until interrupted.

    Logs every refresh of the mirror.
    """
    config = get_config()
    mirror = _build_mirror(config)
    shutdown = threading.Event()
    done = threading.Event()

    worker = threading.Thread(target=mirror.start, args=(shutdown, done), daemon=True)
    worker.start()
    try:
        while not done.is_set():
            if not mirror.refreshed.wait(timeout=1.0):
                continue
            try:
                logger.info(f"Mirror refreshed at {mirror.revision(config.git_branch)}")
            except GitSyncError as e:
                logger.warning(f"Mirror refreshed but {config.git_branch} is unreadable: {e}")
    except InterruptedRun:
        click.echo("Stopping...")
    finally:
        shutdown.set()
        done.wait(timeout=config.timeout)
        mirror.clean()


@gitsync.group()
def marker() -> None:
    """Inspect or move the sync marker."""


@marker.command("show")
def marker_show() -> None:
    """Print the revision the sync marker points at."""
    config = get_config()
    try:
        mirror, checkout = _ready_checkout(config)
    except GitSyncError as e:
        _fail(e)
        return
    with checkout:
        try:
            revision = checkout.sync_marker_revision()
        except GitSyncError as e:
            _fail(e)
            return
        finally:
            mirror.clean()
    click.echo(revision if revision else "(not set)")


@marker.command("set")
@click.argument("revision", default="HEAD")
@click.option("-m", "--message", default="Sync pointer", help="Message recorded with the marker")
def marker_set(revision: str, message: str) -> None:
    """Move the sync marker to REVISION (default HEAD)."""
    config = get_config()
    try:
        mirror, checkout = _ready_checkout(config)
    except GitSyncError as e:
        _fail(e)
        return
    with checkout:
        try:
            if revision == "HEAD":
                revision = checkout.head_revision()
            checkout.update_sync_marker(SyncMarkerAction(revision=revision, message=message))
        except GitSyncError as e:
            _fail(e)
            return
        finally:
            mirror.clean()
    click.echo(f"Sync marker {config.sync_tag} -> {revision}")


@marker.command("delete")
def marker_delete() -> None:
    """Remove the sync marker."""
    config = get_config()
    try:
        mirror, checkout = _ready_checkout(config)
    except GitSyncError as e:
        _fail(e)
        return
    with checkout:
        try:
            checkout.sync_provider.delete_marker()
        except GitSyncError as e:
            _fail(e)
            return
        finally:
            mirror.clean()
    click.echo(f"Sync marker {config.sync_tag} deleted")


@gitsync.command("verify-tag")
def verify_tag() -> None:
    """Check the signature on the sync tag."""
    config = get_config()
    try:
        mirror, checkout = _ready_checkout(config)
    except GitSyncError as e:
        _fail(e)
        return
    with checkout:
        try:
            checkout.verify_sync_tag()
        except GitSyncError as e:
            _fail(e)
            return
        finally:
            mirror.clean()
    click.echo(f"Sync tag {config.sync_tag} verified")


def main() -> None:
    gitsync()


if __name__ == "__main__":
    main()
