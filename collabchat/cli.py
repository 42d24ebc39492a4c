# collabchat/cli.py
import click
from flask import Flask

from collabchat.extensions import db
from collabchat.core.constants import UserRole, UserStatus
from collabchat.core.database import session_manager
from collabchat.models import User


def register_commands(app: Flask):
    @app.cli.command("create-admin")
    @click.option("--email", prompt=True)
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option("--display-name", default=None)
    def create_admin(email, password, display_name):
        """Create the first admin account (Flask CLI command)."""
        if User.find_by_email(email):
            raise click.ClickException(f"User {email} already exists")
        with session_manager():
            user = User(
                email=email.strip().lower(),
                display_name=display_name,
                role=UserRole.ADMIN.value,
                status=UserStatus.ACTIVE.value,
            )
            user.password = password
            db.session.add(user)
        click.echo(f"Admin {user.email} created with id {user.id}")
