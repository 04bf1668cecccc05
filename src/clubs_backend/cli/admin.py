import functools
import click
from fastapi import HTTPException

from clubs_backend.database import open_session
from clubs_backend.model import Base
from clubs_backend.permissions.core import db_set_config_flag
from clubs_backend.permissions.flags import MAINTENANCE_ENABLED, SHOP_HIDDEN
from clubs_backend.permissions.resolver import RoleResolver
from clubs_backend.permissions.role_setup import db_apply_default_roles, default_roles
from clubs_backend.services.membership import MembershipWorkflow

SWITCH = click.Choice(["on", "off"])


def with_db(func):
  """Injects an open database session as `db`, taken from the context object when present"""

  @functools.wraps(func)
  def wrapper(*args, **kwargs):
    ctx = click.get_current_context()
    session_factory = (ctx.obj or {}).get("session_factory", open_session)

    db = session_factory()
    try:
      kwargs["db"] = db
      return func(*args, **kwargs)
    finally:
      db.close()

  return wrapper


def handle_service_exceptions(func):

  @functools.wraps(func)
  def wrapper(*args, **kwargs):
    try:
      return func(*args, **kwargs)
    except HTTPException as e:
      click.echo(f"[{click.style(e.status_code,fg='red')}] {e.detail}")
      raise click.exceptions.Exit(1)

  return wrapper


@click.command()
@with_db
def init_db(db):
  """Create all tables and seed the role table"""

  Base.metadata.create_all(db.get_bind())
  db_apply_default_roles(db)

  click.echo("Database initialized")


@click.command()
@with_db
def seed_roles(db):

  db_apply_default_roles(db)

  for name, level, _ in default_roles():
    click.echo(f"{level}  {name}")


@click.command()
@click.argument("user_id")
@click.argument("role")
@click.option("--club", "-c", "club_id", default=None, help="Club the role is scoped to")
@click.option("--granted-by", "-g", "granted_by", default=None)
@with_db
@handle_service_exceptions
def grant_role(user_id, role, club_id, granted_by, db):

  RoleResolver(db).grant_role(user_id, role, club_id, granted_by)

  scope = f" for club {club_id}" if club_id else ""
  click.echo(f"Granted {click.style(role,fg='green')}{scope} to {user_id}")


def _flag_command(key: str):

  @click.command()
  @click.argument("state", type=SWITCH)
  @with_db
  def set_flag(state, db):
    db_set_config_flag(key, state == "on", db)
    click.echo(f"{key} = {str(state == 'on').lower()}")

  set_flag.help = f"Turn {key} on or off"
  return set_flag


maintenance = _flag_command(MAINTENANCE_ENABLED)
shop_hidden = _flag_command(SHOP_HIDDEN)


@click.command()
@click.argument("request_id")
@click.argument("action", type=click.Choice(["approve", "reject"]))
@click.option("--reviewer", "-r", "reviewer_id", required=True, help="Id of the reviewing user")
@with_db
@handle_service_exceptions
def review(request_id, action, reviewer_id, db):
  """Approve or reject a pending membership request"""

  result = MembershipWorkflow(db).review(request_id, reviewer_id, action)

  click.echo(f"{result.message} ({result.request_id})")
  for warning in result.warnings:
    click.echo(f"[{click.style('warning',fg='yellow')}] {warning}")
