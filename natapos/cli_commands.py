"""
Flask CLI commands for terminal setup.

Commands:
- flask init-db: Create every table
- flask create-staff: Register an operator
"""

import re

import click
from sqlalchemy.exc import SQLAlchemyError

from natapos.database import create_all, get_session
from natapos.models import Staff, StaffRole


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create the database tables (existing tables are left alone)."""
        create_all()
        click.echo(click.style('✅ Tables created', fg='green'))

    @app.cli.command('create-staff')
    @click.option('--name', prompt=True, help='Full name')
    @click.option('--email', default=None, help='Email address (optional)')
    @click.option('--role', type=click.Choice([r.value for r in StaffRole]), default=StaffRole.CASHIER.value,
                  show_default=True, help='Stored role')
    def create_staff(name, email, role):
        """Create an operator that can open shifts and take orders."""
        name = (name or '').strip()
        if not name:
            click.echo(click.style('❌ Name is required.', fg='red'))
            return

        if email:
            email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
            if not re.match(email_pattern, email):
                click.echo(click.style('❌ Invalid email. Use user@example.com', fg='red'))
                return

        db_session = get_session()
        if email and db_session.query(Staff).filter_by(email=email).first():
            click.echo(click.style(f'❌ A staff member with email {email} already exists', fg='red'))
            return

        try:
            staff = Staff(full_name=name, email=email, role=StaffRole(role))
            db_session.add(staff)
            db_session.commit()

            click.echo(click.style('\n✅ Staff member created', fg='green', bold=True))
            click.echo(f'   Name: {staff.full_name}')
            click.echo(f'   Role: {staff.role.value}')
            click.echo(f'   ID: {staff.id}')

        except SQLAlchemyError as e:
            db_session.rollback()
            click.echo(click.style(f'❌ Error creating staff member: {str(e)}', fg='red'))
