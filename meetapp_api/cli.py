"""Operator CLI for the meeting application assembler."""

import logging
import sys

import click

from meetapp_api.db.base import Base
from meetapp_api.db.session import SessionLocal, engine
from meetapp_api.errors import GenerationError
from meetapp_api.generation.factory import build_orchestrator, build_resumer
from meetapp_api.settings import get_settings

logger = logging.getLogger(__name__)


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
def cli(log_level):
    """Meeting application assembler CLI."""
    logging.basicConfig(
        level=log_level or get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@cli.command("init-db")
def init_db():
    """Create all database tables."""
    import meetapp_api.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    click.echo("Database tables created")


@cli.command()
@click.argument("application_id", type=int)
@click.option("--continue-after-callback", is_flag=True, help="Resume a suspended generation")
@click.option("--user-id", type=int, default=None, help="User to notify about the result")
def generate(application_id, continue_after_callback, user_id):
    """Generate a meeting application synchronously."""
    db = SessionLocal()
    try:
        outcome = build_orchestrator(db).generate(
            application_id,
            continue_after_callback=continue_after_callback,
            user_id=user_id,
        )
    except GenerationError as e:
        click.echo(f"Generation failed ({e.kind.value}): {e}", err=True)
        sys.exit(1)
    finally:
        db.close()
    click.echo(f"Meeting application {application_id}: {outcome.value}")


@cli.command("check-timeouts")
@click.argument("application_id", type=int)
def check_timeouts(application_id):
    """Expire overdue message requests and resume generation if nothing is pending."""
    db = SessionLocal()
    try:
        resumed = build_resumer(db).check_timeouts(application_id)
    finally:
        db.close()
    click.echo("Generation resumed" if resumed else "Nothing to resume")


if __name__ == "__main__":
    cli()
