"""ABOUTME: CLI commands for security maintenance
ABOUTME: Purges expired durable codes and tokens and shows the recent audit trail"""

import json

import click

from charityguard.service_layer.employee_service import purge_expired_rows, recent_audit_entries

from . import get_uow


@click.group()
def security() -> None:
    """Security maintenance commands."""
    pass


@security.command("cleanup")
def cleanup() -> None:
    """Delete expired one-time code and token rows."""
    try:
        removed = purge_expired_rows(get_uow())
        click.echo(click.style("✓ Expired rows removed:", "green"))
        click.echo(f"  One-time codes: {removed['otps']}")
        click.echo(f"  Tokens: {removed['tokens']}")

    except Exception as e:
        click.echo(click.style(f"✗ Error during cleanup: {e}", "red"))
        raise click.Abort() from e


@security.command("audit")
@click.option("--limit", default=20, show_default=True, help="Number of entries to show")
def audit(limit: int) -> None:
    """Show the most recent audit entries, newest first."""
    try:
        entries = recent_audit_entries(get_uow(), limit=limit)
        if not entries:
            click.echo("No audit entries found.")
            return
        for entry in entries:
            click.echo(
                f"{entry.created_at.strftime('%Y-%m-%d %H:%M:%S')}  {entry.actor:<30} {entry.action:<25} "
                f"{json.dumps(entry.details, ensure_ascii=False)}"
            )

    except Exception as e:
        click.echo(click.style(f"✗ Error reading audit entries: {e}", "red"))
        raise click.Abort() from e
