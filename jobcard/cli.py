from datetime import datetime

import click
from flask.cli import with_appcontext

from jobcard.extensions import db
from jobcard.models.user import PERMISSIONS, User
from jobcard.services.estimates import expire_estimates


@click.group()
def users():
    """User management."""


@users.command("create")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", default=None)
@click.option("--permission", "permissions", multiple=True, type=click.Choice(PERMISSIONS),
              help="Repeat for each permission to grant.")
@click.option("--superuser", is_flag=True, default=False, help="Grant every permission.")
@with_appcontext
def users_create(email, password, name, permissions, superuser):
    email = email.strip().lower()
    if db.session.query(User).filter(db.func.lower(User.email) == email).count():
        raise click.ClickException("User already exists")

    user = User(email=email, name=name, permissions=sorted(set(permissions)), is_superuser=superuser, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    click.echo(f"User created id={user.id} email={user.email} superuser={superuser}")


@click.group()
def estimates():
    """Estimate maintenance."""


@estimates.command("expire")
@click.option("--today", default=None, help="Reference date (YYYY-MM-DD); defaults to today (UTC).")
@with_appcontext
def estimates_expire(today):
    ref = None
    if today:
        try:
            ref = datetime.strptime(today, "%Y-%m-%d").date()
        except ValueError as e:
            raise click.BadParameter("Use YYYY-MM-DD", param_hint="--today") from e
    count = expire_estimates(db.session, ref)
    click.echo(f"Expired {count} estimate(s)")


def register_cli(app):
    app.cli.add_command(users)
    app.cli.add_command(estimates)
