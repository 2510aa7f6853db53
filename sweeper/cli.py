"""Command line entry point using Typer."""

import logging
import os
import signal
import threading
import time
from typing import Any, List, Optional

import typer

from sweeper.handler import EXIT_CONFIG, run_sweep
from sweeper.utils.config import DEFAULT_WAIT_TIMEOUT_SECONDS, SweeperConfig, configure_logging

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="sweeper",
    help="Sweep billable AWS resources out of an account, in dependency-safe order.",
    add_completion=False,
)


def _countdown(seconds: int) -> None:
    """Give the operator a chance to abort a live run."""
    typer.secho(
        f"EXECUTE mode: resources will be permanently deleted. "
        f"Starting in {seconds}s, press Ctrl-C to abort.",
        fg=typer.colors.RED,
        err=True,
    )
    try:
        for remaining in range(seconds, 0, -1):
            typer.echo(f"  {remaining}...", err=True)
            time.sleep(1)
    except KeyboardInterrupt:
        typer.echo("Aborted before any deletion.", err=True)
        raise typer.Abort()


def _install_interrupt_handler(cancel_event: threading.Event) -> Any:
    """First Ctrl-C stops new deletions; a second one aborts immediately."""

    def handle(signum: int, frame: Any) -> None:
        if cancel_event.is_set():
            signal.signal(signal.SIGINT, signal.default_int_handler)
            raise KeyboardInterrupt
        typer.echo(
            "Interrupt received: no new deletions will start. "
            "In-flight deletions finish; press Ctrl-C again to abort.",
            err=True,
        )
        cancel_event.set()

    return signal.signal(signal.SIGINT, handle)


@app.command()
def sweep(
    execute: bool = typer.Option(
        False, "--execute", help="Actually delete resources (default is a dry run)"
    ),
    keep_tag: Optional[str] = typer.Option(
        None, "--keep-tag", help="Never delete resources tagged KEY=VALUE"
    ),
    region: Optional[List[str]] = typer.Option(
        None, "--region", "-r", help="Restrict the sweep to this region (repeatable)"
    ),
    kind: Optional[List[str]] = typer.Option(
        None, "--kind", "-k", help="Restrict the sweep to this resource kind (repeatable)"
    ),
    max_workers: int = typer.Option(
        1, "--max-workers", min=1, help="Concurrent (kind, region) workers within a category"
    ),
    wait_timeout: int = typer.Option(
        DEFAULT_WAIT_TIMEOUT_SECONDS, "--wait-timeout", help="Seconds to wait for each deletion to finish"
    ),
    fail_closed: bool = typer.Option(
        False, "--fail-closed", help="Skip resources whose tags cannot be checked"
    ),
    confirm_delay: int = typer.Option(
        10, "--confirm-delay", min=0, help="Seconds to wait before a live run starts"
    ),
    notify_topic: Optional[str] = typer.Option(
        None, "--notify-topic", help="SNS topic ARN to publish the final report to"
    ),
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="AWS profile name to use"),
    log_level: str = typer.Option("INFO", "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
) -> None:
    """Discover and delete (or, by default, preview deleting) account resources."""
    config = SweeperConfig(
        dry_run=not execute,
        protect_tag=(keep_tag or "").strip(),
        regions=list(region or []),
        kinds=list(kind or []),
        max_workers=max_workers,
        wait_timeout_seconds=wait_timeout,
        fail_closed=fail_closed,
        log_level=log_level.upper(),
        notification_topic_arn=notify_topic or "",
        home_region=os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION") or "us-east-1",
        profile=profile or os.environ.get("AWS_PROFILE") or None,
    )

    errors = config.validate()
    if errors:
        for error in errors:
            typer.secho(f"Error: {error}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_CONFIG)

    configure_logging(config)

    if config.dry_run:
        typer.echo("DRY RUN: nothing will be deleted. Re-run with --execute to delete.", err=True)
    elif confirm_delay > 0:
        _countdown(confirm_delay)

    cancel_event = threading.Event()
    previous_handler = _install_interrupt_handler(cancel_event)
    try:
        result = run_sweep(config, cancel_event=cancel_event)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    for error in result.errors:
        typer.secho(f"Error: {error}", fg=typer.colors.RED, err=True)

    raise typer.Exit(code=result.exit_code)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
