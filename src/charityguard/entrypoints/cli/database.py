"""ABOUTME: CLI commands for database management operations
ABOUTME: Creates the tables used for employees, donors, durable codes and tokens, and the audit trail"""

import click

from charityguard.adapters.database import create_tables


@click.group()
def database() -> None:
    """Database management commands."""
    pass


@database.command("init")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create any missing tables."""
    try:
        create_tables(ctx.find_root().obj["session_factory"])
        click.echo(click.style("✓ Database tables created.", "green"))
    except Exception as e:
        click.echo(click.style(f"✗ Error creating tables: {e}", "red"))
        raise click.Abort() from e
