"""Command-line entry point for operators.

Provides table creation, admin role grants and a way to run the API server
without going through ``app.py`` directly.

Usage:
    python main.py init-db
    python main.py grant-admin alice@example.com --role system_admin
    python main.py serve
"""

import logging

import click

from config import API_HOST, API_PORT
from core.database import SessionLocal, init_db
from core.exceptions import NotFoundError
from core.logging_config import setup_logging
from utils.role_manager import ADMIN_ROLES, ROLE_SYSTEM_ADMIN, RoleManager
from utils.user_manager import UserManager

logger = logging.getLogger(__name__)


@click.group()
def cli() -> None:
    """LearnAble backend management."""
    setup_logging()


@cli.command("init-db")
def init_db_command() -> None:
    """Create missing database tables."""
    init_db()
    click.echo("Database tables are ready")


@cli.command("grant-admin")
@click.argument("email")
@click.option("--role", type=click.Choice(ADMIN_ROLES), default=ROLE_SYSTEM_ADMIN)
def grant_admin(email: str, role: str) -> None:
    """Grant an admin role to the identity registered with EMAIL."""
    init_db()
    with SessionLocal() as db:
        user = UserManager(db).get_user_by_email(email)
        if user is None:
            raise click.ClickException(f"No user registered with email '{email}'")
        try:
            RoleManager(db).grant_admin_role(user.user_id, role)
        except NotFoundError as e:
            raise click.ClickException(e.message)
    click.echo(f"Granted {role} to {email}")


@cli.command("serve")
@click.option("--host", default=API_HOST)
@click.option("--port", type=int, default=API_PORT)
@click.option("--reload", is_flag=True)
def serve(host: str, port: int, reload: bool) -> None:
    """Run the API server."""
    import uvicorn

    init_db()
    uvicorn.run("app:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    cli()
