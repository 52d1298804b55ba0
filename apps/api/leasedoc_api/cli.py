"""CLI commands for the lease document API."""

import click
import uvicorn
from sqlalchemy.exc import SQLAlchemyError

from leasedoc_api.auth.invitation import get_invitation_service
from leasedoc_api.auth.session import issue_session_token
from leasedoc_api.db.seed import seed_all
from leasedoc_api.db.session import SessionLocal
from leasedoc_api.settings import get_settings


@click.group()
def cli():
    """Lease document API CLI."""
    pass


@cli.command()
def seed():
    """Seed demo owner, tenant, property and lease."""
    click.echo("Seeding initial data...")
    db = SessionLocal()
    try:
        lease = seed_all(db)
        click.echo(f"✓ Seed data created. Lease: {lease.id}")
    except SQLAlchemyError as e:
        click.echo(f"✗ Error seeding data: {e}", err=True)
        db.rollback()
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
@click.option("--host", default=None, help="Bind address (defaults to API_HOST)")
@click.option("--port", default=None, type=int, help="Bind port (defaults to API_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host, port, reload):
    """Run the API server."""
    settings = get_settings()
    uvicorn.run(
        "leasedoc_api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@cli.command("session-token")
@click.argument("profile_id")
def session_token(profile_id):
    """Issue a session token for PROFILE_ID (development only)."""
    click.echo(issue_session_token(profile_id))


@cli.command("invite-token")
@click.argument("lease_id")
@click.argument("email")
def invite_token(lease_id, email):
    """Issue an invitation token for EMAIL on LEASE_ID."""
    click.echo(get_invitation_service().issue(lease_id, email))


if __name__ == "__main__":
    cli()
