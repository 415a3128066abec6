"""CLI output formatting functions.

This module contains functions for displaying run results, planned changes
and list status on the command line.
"""

from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from octopus_sync.config.mail_config import MailConfig
    from octopus_sync.sync.contact import Contact
    from octopus_sync.sync.engine import ListSyncResult, RunResult

# Items shown per section before truncating
MAX_ITEMS_SHOWN = 10


def _show_contacts(title: str, marker: str, contacts: list["Contact"]) -> None:
    if not contacts:
        return
    click.echo(f"\n{title}:")
    for contact in contacts[:MAX_ITEMS_SHOWN]:
        click.echo(f"  {marker} {contact.email_address}")
    if len(contacts) > MAX_ITEMS_SHOWN:
        click.echo(f"  ... and {len(contacts) - MAX_ITEMS_SHOWN} more")


def show_detailed_changes(result: "ListSyncResult") -> None:
    """
    Display the planned upserts and deletes of one list.

    Args:
        result: ListSyncResult with a computed delta
    """
    if result.delta is None or not result.delta.has_changes():
        return

    click.echo(f"\n=== {result.name} ===")
    _show_contacts("Contacts to subscribe", "+", result.delta.upserts)
    _show_contacts("Contacts to remove", "-", result.delta.deletes)


def show_failures(result: "ListSyncResult") -> None:
    """Display the contacts abandoned after exhausting their retries."""
    if not result.applied or not result.applied.failures:
        return

    click.echo(click.style(f"\nFailed on {result.name}:", fg="yellow"))
    for failure in result.applied.failures[:MAX_ITEMS_SHOWN]:
        click.echo(f"  {failure.operation} {failure.email}: {failure.error}")
    remaining = len(result.applied.failures) - MAX_ITEMS_SHOWN
    if remaining > 0:
        click.echo(f"  ... and {remaining} more")


def show_run_summary(run: "RunResult", dry_run: bool, verbose: bool) -> None:
    """
    Display the outcome of a sync run.

    Args:
        run: Results for every processed list
        dry_run: Whether changes were only previewed
        verbose: Also list the individual contacts affected
    """
    click.echo("\n" + run.summary())
    click.echo("=" * 50)

    for result in run.lists:
        if result.failed:
            click.echo(click.style(f"{result.name}: {result.error}", fg="red"))
        if verbose or dry_run:
            show_detailed_changes(result)
        show_failures(result)

    has_changes = any(r.delta and r.delta.has_changes() for r in run.lists)
    if dry_run:
        if has_changes:
            click.echo(
                click.style("\nDry run complete. No changes were made.", fg="yellow")
            )
            click.echo("Run without --dry-run to apply these changes.")
        else:
            click.echo(click.style("\nLists are already in sync.", fg="green"))
    elif run.failed_lists:
        click.echo(
            click.style(
                f"\n{len(run.failed_lists)} list(s) could not be synchronized.",
                fg="red",
            )
        )
    elif run.item_failures:
        click.echo(
            click.style(
                f"\nSync finished with {run.item_failures} contact failures.",
                fg="yellow",
            )
        )
    else:
        click.echo(click.style("\nSync completed successfully!", fg="green"))


def show_mail_config(mail_config: "MailConfig") -> None:
    """Display the configured lists."""
    if not mail_config.lists:
        click.echo("No lists configured.")
        return

    for entry in mail_config.lists:
        grades = ", ".join(str(g) for g in entry.grades)
        click.echo(f"{entry.name}")
        click.echo(f"  id:     {entry.list_id}")
        click.echo(f"  grades: {grades}")


def show_list_counts(name: str, counts: dict[str, int]) -> None:
    """Display subscriber counts for one list."""
    click.echo(
        f"{name}: "
        f"{click.style(str(counts.get('subscribed', 0)), fg='green')} subscribed, "
        f"{counts.get('pending', 0)} pending, "
        f"{counts.get('unsubscribed', 0)} unsubscribed"
    )
