# casedesk/cli.py
"""`flask --app wsgi <command>` helpers for operators."""
import click
from flask import current_app
from flask.cli import AppGroup, with_appcontext

from .errors import CaseDeskError
from .models import Actor
from .services import get_services

sweep_cli = AppGroup("sweep", help="Run the inactivity sweeps once, now.")


@click.command("create-admin")
@click.option("--username", prompt="Username")
@click.option("--email", prompt="Admin email")
@click.option("--name", prompt="Full name")
@click.option("--role", type=click.Choice(["subadmin", "superadmin"]), default="subadmin", show_default=True)
@click.password_option()
@with_appcontext
def create_admin_command(username, email, name, role, password):
    """Create an admin account on the active store."""
    services = get_services()
    owner = services.admins.superadmin()
    if owner is None:
        raise click.ClickException("No superadmin exists on this store.")
    try:
        admin = services.admins.create_admin(
            Actor.from_admin(owner),
            username=username, email=email, password=password, name=name, role=role,
        )
    except CaseDeskError as e:
        raise click.ClickException(str(e))
    click.echo(f"Admin {admin.username} ({admin.role}) created successfully.")
    if not services.store.durable:
        click.echo("Warning: in-memory store active; this account is lost on restart.", err=True)


@sweep_cli.command("auto-status")
def sweep_auto_status():
    moved = get_services().sweeper.run_auto_status()
    click.echo(f"{moved} case(s) moved.")


@sweep_cli.command("alerts")
def sweep_alerts():
    stale = get_services().sweeper.run_inactivity_alerts()
    for case in stale:
        click.echo(f"{case.id}\t{case.status}\t{case.updated_at:%Y-%m-%d}\t{case.model_number}")
    click.echo(f"{len(stale)} inactive case(s).")


@click.command("storage-status")
@with_appcontext
def storage_status_command():
    services = get_services()
    store = services.store
    click.echo(f"backend: {store.name}")
    click.echo(f"durable: {store.durable}")
    click.echo(f"reachable: {store.ping()}")
    click.echo(f"customers: {store.customers.count()}")
    click.echo(f"cases: {store.cases.count()}")
    stalled = services.quick_cases.find_stalled_promotions()
    if stalled:
        click.echo(f"stalled promotions: {', '.join(q.id for q in stalled)}")
    if current_app.config.get("MONGODB_URI") and not store.durable:
        click.echo("MongoDB was configured but unreachable at startup; restart to retry.", err=True)


def register_cli(app):
    app.cli.add_command(create_admin_command)
    app.cli.add_command(storage_status_command)
    app.cli.add_command(sweep_cli)
