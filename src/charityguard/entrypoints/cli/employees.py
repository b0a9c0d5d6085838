"""ABOUTME: CLI commands for employee management operations
ABOUTME: Provides commands to add, list, activate and deactivate employees and to ensure the owner account"""

import click

from charityguard.config import get_owner_email
from charityguard.service_layer.employee_service import (
    add_employee,
    ensure_owner,
    list_employees,
    set_employee_active,
)
from charityguard.service_layer.exceptions import IdentityAlreadyExists, IdentityNotFound, ValidationError

from . import get_uow


@click.group()
def employees() -> None:
    """Employee management commands."""
    pass


@employees.command("add")
@click.option("--email", required=True, help="Employee email address")
@click.option("--name", required=True, help="Employee full name")
@click.option("--role", default="", help="Free text job title")
@click.option("--phone", default="", help="Phone number")
@click.option("--permission", "permissions", multiple=True, help="area:action permission, repeatable; '*' for all")
@click.option("--notes", default="", help="Internal notes")
def add(email: str, name: str, role: str, phone: str, permissions: tuple[str, ...], notes: str) -> None:
    """Add a new employee."""
    try:
        employee = add_employee(
            get_uow(), email=email, name=name, role=role, phone=phone, permissions=list(permissions), notes=notes
        )
        click.echo(click.style("✓ Employee created successfully:", "green"))
        click.echo(f"  ID: {employee.id}")
        click.echo(f"  Email: {employee.email}")
        click.echo(f"  Name: {employee.name}")
        click.echo(f"  Permissions: {', '.join(employee.permissions) or '-'}")

    except (IdentityAlreadyExists, ValidationError) as e:
        click.echo(click.style(f"✗ Error: {e}", "red"))
        raise click.Abort() from e
    except Exception as e:
        click.echo(click.style(f"✗ Unexpected error: {e}", "red"))
        raise click.Abort() from e


@employees.command("list")
@click.option("--active/--inactive", default=None, help="Filter by active status")
def list_cmd(active: bool | None) -> None:
    """List employees."""
    try:
        found = list_employees(get_uow(), active=active)
        if not found:
            click.echo("No employees found matching criteria.")
            return

        click.echo(f"{'Email':<35} {'Name':<25} {'Role':<15} {'Active':<6} {'Created':<10}")
        click.echo("-" * 95)
        for employee in found:
            active_str = "Yes" if employee.active else "No"
            click.echo(
                f"{employee.email:<35} {employee.name:<25} {employee.role:<15} "
                f"{active_str:<6} {employee.created_at.strftime('%Y-%m-%d'):<10}"
            )

    except Exception as e:
        click.echo(click.style(f"✗ Error listing employees: {e}", "red"))
        raise click.Abort() from e


@employees.command("deactivate")
@click.argument("email")
@click.option("--confirm", is_flag=True, help="Skip confirmation prompt")
def deactivate(email: str, confirm: bool) -> None:
    """Deactivate an employee; their codes and tokens stop working for employee routes."""
    if not confirm and not click.confirm(f"Are you sure you want to deactivate employee '{email}'?"):
        click.echo("Operation cancelled.")
        return
    _set_active(email, False)


@employees.command("activate")
@click.argument("email")
def activate(email: str) -> None:
    """Re-activate an employee."""
    _set_active(email, True)


def _set_active(email: str, active: bool) -> None:
    state = "activated" if active else "deactivated"
    try:
        if not set_employee_active(get_uow(), email, active):
            click.echo(click.style(f"Employee '{email}' is already {state}.", "yellow"))
            return
        click.echo(click.style(f"✓ Employee '{email}' has been {state}.", "green"))

    except IdentityNotFound as e:
        click.echo(click.style(f"✗ Employee with email '{email}' not found.", "red"))
        raise click.Abort() from e
    except Exception as e:
        click.echo(click.style(f"✗ Error updating employee: {e}", "red"))
        raise click.Abort() from e


@employees.command("ensure-owner")
@click.option("--email", default=None, help="Owner email (defaults to OWNER_EMAIL)")
@click.option("--name", default="Owner", help="Owner display name when the account is created")
def ensure_owner_cmd(email: str | None, name: str) -> None:
    """Create or repair the owner account so it is active with every permission."""
    email = email or get_owner_email()
    if not email:
        click.echo(click.style("✗ No owner email given and OWNER_EMAIL is not set.", "red"))
        raise click.Abort()
    try:
        owner, changed = ensure_owner(get_uow(), email, name=name)
        if changed:
            click.echo(click.style(f"✓ Owner account '{owner.email}' is ready.", "green"))
        else:
            click.echo(f"Owner account '{owner.email}' already up to date.")

    except ValidationError as e:
        click.echo(click.style(f"✗ Error: {e}", "red"))
        raise click.Abort() from e
    except Exception as e:
        click.echo(click.style(f"✗ Unexpected error: {e}", "red"))
        raise click.Abort() from e
