"""ABOUTME: Main CLI entry point using Click for CharityGuard administration
ABOUTME: Provides subcommands for employee management, database setup and security maintenance"""

import click

from charityguard.adapters.database import create_session_factory, start_mappers
from charityguard.config import get_config
from charityguard.service_layer.unit_of_work import SqlAlchemyUnitOfWork


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """CharityGuard system administration CLI."""
    # Ensure context object exists
    ctx.ensure_object(dict)

    # Initialize configuration and database mappers
    config = get_config()
    ctx.obj["config"] = config
    if "session_factory" not in ctx.obj:
        ctx.obj["session_factory"] = create_session_factory(config.SQLALCHEMY_DATABASE_URI)
    start_mappers()


def get_uow() -> SqlAlchemyUnitOfWork:
    """A unit of work on the database selected when the CLI started."""
    ctx = click.get_current_context()
    return SqlAlchemyUnitOfWork(ctx.find_root().obj["session_factory"])


@cli.command()
def version() -> None:
    """Show CharityGuard version."""
    click.echo("CharityGuard 0.1.0")


# Import subcommands to register them
from .database import database  # noqa: E402
from .employees import employees  # noqa: E402
from .security import security  # noqa: E402

cli.add_command(database)
cli.add_command(employees)
cli.add_command(security)


if __name__ == "__main__":
    cli()
