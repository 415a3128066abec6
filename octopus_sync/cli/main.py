"""
Command-line interface for octopus_sync.

Provides CLI commands for reconciling EmailOctopus lists against the
parents database and for inspecting the configured lists.

Usage:
    # Show help
    octopus-sync --help

    # Create default configuration files
    octopus-sync init-config

    # Preview, then run a reconciliation
    octopus-sync sync --dry-run
    octopus-sync sync
    octopus-sync sync --list "Grade 5" --verbose

    # Remote subscriber counts
    octopus-sync status
"""

import sys
from pathlib import Path
from typing import Any, NoReturn

import click

from octopus_sync import __version__
from octopus_sync.api.octopus_api import (
    DEFAULT_BASE_URL,
    DEFAULT_PAGE_SIZE,
    DEFAULT_TIMEOUT,
    OctopusAPI,
    OctopusAPIError,
    is_retryable,
)
from octopus_sync.cli.formatters import (
    show_list_counts,
    show_mail_config,
    show_run_summary,
)
from octopus_sync.config.credentials import Credentials, load_credentials
from octopus_sync.config.generator import save_config_file, save_sample_mail_config
from octopus_sync.config.loader import (
    DEFAULT_CONFIG_DIR,
    ConfigError,
    ConfigLoader,
    resolve_config_dir,
    resolve_config_path,
)
from octopus_sync.config.mail_config import (
    DEFAULT_MAIL_CONFIG_FILE,
    MailConfig,
    MailConfigError,
    load_mail_config,
)
from octopus_sync.storage.db import DataSourceError, ParentDatabase
from octopus_sync.sync.engine import SyncEngine
from octopus_sync.sync.executor import (
    DEFAULT_CHUNK_DELAY,
    DEFAULT_CHUNK_SIZE,
    BatchExecutor,
)
from octopus_sync.utils.logging import cleanup_old_logs, get_logger, setup_logging
from octopus_sync.utils.retry import DEFAULT_MAX_ATTEMPTS, DEFAULT_WAIT, RetryPolicy

# Default configuration file
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"


def get_config_dir(config_dir: str | None) -> Path:
    """Get the configuration directory path."""
    return resolve_config_dir(config_dir)


def get_config_file(config_file: str | None, config_dir: Path) -> Path:
    """Get the options file path."""
    if config_file:
        return Path(config_file)
    return config_dir / "config.yaml"


def fail(message: str) -> NoReturn:
    """Print an error and exit with status 1."""
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _require_config(ctx: click.Context) -> None:
    """Exit if the options file failed to load or validate."""
    error = ctx.obj.get("config_error")
    if error:
        fail(f"Configuration error: {error}")


def _env_file(ctx: click.Context) -> Path | None:
    env_file = ctx.obj["config"].get("env_file")
    if not env_file:
        return None
    return resolve_config_path(env_file, ctx.obj["config_dir"])


def _load_credentials(ctx: click.Context, require_database: bool) -> Credentials:
    try:
        return load_credentials(_env_file(ctx), require_database=require_database)
    except ConfigError as e:
        fail(str(e))


def _load_mail_config(ctx: click.Context) -> MailConfig:
    config = ctx.obj["config"]
    try:
        return load_mail_config(
            config.get("mail_config", DEFAULT_MAIL_CONFIG_FILE),
            config_dir=ctx.obj["config_dir"],
        )
    except MailConfigError as e:
        fail(str(e))


def _build_client(config: dict[str, Any], credentials: Credentials) -> OctopusAPI:
    return OctopusAPI(
        credentials.api_key,
        base_url=config.get("api_base_url", DEFAULT_BASE_URL),
        timeout=config.get("request_timeout", DEFAULT_TIMEOUT),
    )


@click.group()
@click.version_option(version=__version__, prog_name="octopus-sync")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="OCTOPUS_SYNC_CONFIG_DIR",
    help="Configuration directory path (default: ~/.octopus-sync).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="OCTOPUS_SYNC_CONFIG_FILE",
    help="Options file path (default: <config-dir>/config.yaml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: str | None,
    config_file: str | None,
) -> None:
    """
    EmailOctopus list reconciliation.

    Brings each configured mailing list in line with the parents database:
    missing parents are subscribed and contacts no longer expected are
    removed.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = get_config_dir(config_dir)
    resolved_config_file = get_config_file(config_file, resolved_config_dir)
    ctx.obj["config_dir"] = resolved_config_dir
    ctx.obj["config_file"] = resolved_config_file

    config: dict[str, Any] = {}
    config_error: str | None = None
    try:
        loader = ConfigLoader(config_dir=resolved_config_dir)
        config = loader.load_from_file(resolved_config_file)
        if config:
            loader.validate(config)
    except ConfigError as e:
        # init-config still runs on defaults; other commands check config_error
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        config = {}
        config_error = str(e)

    ctx.obj["config"] = config
    ctx.obj["config_error"] = config_error

    effective_verbose = verbose or config.get("verbose", False)
    ctx.obj["verbose"] = effective_verbose

    log_dir = None
    if config.get("log_dir"):
        log_dir = Path(config["log_dir"]).expanduser()

    setup_logging(verbose=effective_verbose, log_dir=log_dir, enable_file_logging=True)

    log_retention = config.get("log_retention_count", 10)
    if log_retention > 0:
        cleanup_old_logs(log_dir=log_dir, keep_count=log_retention)


# =============================================================================
# Init Config Command
# =============================================================================


@cli.command("init-config")
@click.option(
    "--force",
    is_flag=True,
    help="Overwrite existing configuration files.",
)
@click.pass_context
def init_config_command(ctx: click.Context, force: bool) -> None:
    """
    Generate default configuration files.

    Writes a documented config.yaml and a sample mailconfig.json into the
    configuration directory.

    Examples:

        octopus-sync init-config

        octopus-sync init-config --force
    """
    logger = get_logger(__name__)
    config_file = ctx.obj["config_file"]
    mail_file = ctx.obj["config_dir"] / DEFAULT_MAIL_CONFIG_FILE

    try:
        for path, writer in (
            (config_file, save_config_file),
            (mail_file, save_sample_mail_config),
        ):
            if writer(path, force=force):
                click.echo(click.style(f"Created {path}", fg="green"))
            else:
                click.echo(f"{path} already exists (use --force to overwrite)")
    except (OSError, MailConfigError) as e:
        logger.error(f"Failed to write configuration: {e}")
        fail(str(e))

    click.echo("\nNext steps:")
    click.echo(f"1. Edit {mail_file} with your list ids and grades")
    click.echo("2. Put EMAIL_OCTOPUS_API_KEY and DB_* settings in a .env file")
    click.echo("3. Run 'octopus-sync sync --dry-run'")


# =============================================================================
# Lists Command
# =============================================================================


@cli.command("lists")
@click.pass_context
def lists_command(ctx: click.Context) -> None:
    """Show the configured mailing lists."""
    _require_config(ctx)
    show_mail_config(_load_mail_config(ctx))


# =============================================================================
# Status Command
# =============================================================================


@cli.command("status")
@click.option(
    "--list",
    "-l",
    "list_names",
    multiple=True,
    help="Only show this list (name or id). Repeatable.",
)
@click.pass_context
def status_command(ctx: click.Context, list_names: tuple[str, ...]) -> None:
    """
    Show remote subscriber counts for the configured lists.

    Example:

        octopus-sync status
    """
    _require_config(ctx)
    logger = get_logger(__name__)
    mail_config = _load_mail_config(ctx)
    try:
        entries = mail_config.select(list_names)
    except MailConfigError as e:
        fail(str(e))

    credentials = _load_credentials(ctx, require_database=False)

    errors = 0
    with _build_client(ctx.obj["config"], credentials) as client:
        for entry in entries:
            try:
                show_list_counts(entry.name, client.fetch_list_counts(entry.list_id))
            except OctopusAPIError as e:
                errors += 1
                logger.error(f"Failed to read list {entry.name}: {e}")
                click.echo(click.style(f"{entry.name}: {e}", fg="red"), err=True)

    if errors:
        sys.exit(1)


# =============================================================================
# Sync Command
# =============================================================================


@cli.command("sync")
@click.option(
    "--dry-run", "-n", is_flag=True, help="Preview changes without applying them."
)
@click.option(
    "--list",
    "-l",
    "list_names",
    multiple=True,
    help="Only sync this list (name or id). Repeatable.",
)
@click.option(
    "--chunk-size",
    type=click.IntRange(min=1),
    default=None,
    help=f"Contacts per chunk (default: {DEFAULT_CHUNK_SIZE}).",
)
@click.option(
    "--chunk-delay",
    type=click.FloatRange(min=0),
    default=None,
    help=f"Seconds between chunks (default: {DEFAULT_CHUNK_DELAY}).",
)
@click.pass_context
def sync_command(
    ctx: click.Context,
    dry_run: bool,
    list_names: tuple[str, ...],
    chunk_size: int | None,
    chunk_delay: float | None,
) -> None:
    """
    Reconcile mailing lists with the parents database.

    For every configured list the current subscribers are read from
    EmailOctopus, compared with the parents whose grades match the list,
    and the difference is applied: missing parents are subscribed,
    contacts no longer expected are deleted. A list that cannot be read
    completely is skipped without changes.

    Examples:

        # Preview changes without applying
        octopus-sync sync --dry-run

        # One list only
        octopus-sync sync --list "Grade 5"

        # Gentler on the rate limit
        octopus-sync sync --chunk-size 20 --chunk-delay 5
    """
    _require_config(ctx)
    logger = get_logger(__name__)
    config = ctx.obj["config"]
    verbose = ctx.obj["verbose"]

    # CLI args take precedence over the options file
    effective_dry_run = dry_run or config.get("dry_run", False)
    effective_chunk_size = chunk_size or config.get("chunk_size", DEFAULT_CHUNK_SIZE)
    effective_chunk_delay = (
        chunk_delay
        if chunk_delay is not None
        else config.get("chunk_delay", DEFAULT_CHUNK_DELAY)
    )

    mail_config = _load_mail_config(ctx)
    try:
        entries = mail_config.select(list_names)
    except MailConfigError as e:
        fail(str(e))

    if not entries:
        click.echo("No lists configured.")
        return

    credentials = _load_credentials(ctx, require_database=True)

    retry_policy = RetryPolicy(
        max_attempts=config.get("retry_attempts", DEFAULT_MAX_ATTEMPTS),
        wait=config.get("retry_wait", DEFAULT_WAIT),
        retryable=is_retryable,
    )

    mode = "Previewing" if effective_dry_run else "Synchronizing"
    click.echo(f"{mode} {len(entries)} list(s)...")

    try:
        with ParentDatabase(credentials.conninfo) as database, _build_client(
            config, credentials
        ) as client:
            executor = BatchExecutor(
                client,
                chunk_size=effective_chunk_size,
                chunk_delay=effective_chunk_delay,
                retry_policy=retry_policy,
            )
            engine = SyncEngine(
                client,
                database,
                executor=executor,
                page_size=config.get("page_size", DEFAULT_PAGE_SIZE),
            )
            run = engine.run(entries, dry_run=effective_dry_run)
    except DataSourceError as e:
        logger.error(f"Database unavailable: {e}")
        fail(str(e))

    show_run_summary(run, dry_run=effective_dry_run, verbose=verbose)

    if run.failed_lists:
        sys.exit(1)


# =============================================================================
# Unsubscribe All Command
# =============================================================================


@cli.command("unsubscribe-all")
@click.option(
    "--list",
    "-l",
    "list_name",
    required=True,
    help="List to empty (name or id).",
)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def unsubscribe_all_command(ctx: click.Context, list_name: str, yes: bool) -> None:
    """
    Mark every subscriber of a list as unsubscribed.

    Legacy bulk operation kept for resetting a list before a full
    re-import. Regular runs should use 'sync' instead.

    Example:

        octopus-sync unsubscribe-all --list "Grade 5"
    """
    _require_config(ctx)
    logger = get_logger(__name__)
    config = ctx.obj["config"]
    mail_config = _load_mail_config(ctx)

    entry = mail_config.find(list_name)
    if entry is None:
        fail(f"No configured list named {list_name!r}")

    if not yes:
        click.confirm(
            f"Unsubscribe every contact of {entry.name} ({entry.list_id})?",
            abort=True,
        )

    credentials = _load_credentials(ctx, require_database=False)

    try:
        with _build_client(config, credentials) as client:
            engine = SyncEngine(client)
            total = engine.unsubscribe_all(
                entry.list_id,
                delay=config.get("chunk_delay", DEFAULT_CHUNK_DELAY),
            )
    except OctopusAPIError as e:
        logger.error(f"Unsubscribe failed for {entry.name}: {e}")
        fail(str(e))

    click.echo(
        click.style(f"Unsubscribed {total} contacts from {entry.name}.", fg="green")
    )
