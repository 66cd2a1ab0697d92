# repairdesk/cli.py
"""Operator commands registered on the ``flask`` CLI."""

import logging

import click
from flask import current_app
from flask.cli import AppGroup, with_appcontext

from repairdesk import db
from repairdesk.models import JobCard, User
from repairdesk.customers.utils import reconcile_customers
from repairdesk.job_cards.utils import create_job_card

logger = logging.getLogger(__name__)


def upsert_user(username, password, name=None):
    """Create ``username`` or reset its password. Returns (user, created)."""
    user = User.query.filter_by(username=username).first()
    created = user is None
    if created:
        user = User(username=username, name=name)
        db.session.add(user)
    elif name:
        user.name = name
    user.set_password(password)
    db.session.commit()
    return user, created


@click.group('users', cls=AppGroup)
def users_cli() -> None:
    """Operator account commands."""


@users_cli.command('create')
@click.argument('username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--name', default=None, help='Display name')
def create_user_command(username: str, password: str, name: str | None) -> None:
    user, created = upsert_user(username, password, name)
    verb = 'Created' if created else 'Updated password for'
    click.echo(f'{verb} user {user.username}')


@click.group('customers', cls=AppGroup)
def customers_cli() -> None:
    """Customer maintenance commands."""


@customers_cli.command('reconcile')
def reconcile_command() -> None:
    """Link job cards to customers by mobile number and report visit counts."""
    report = reconcile_customers()
    total_linked = 0
    for customer, linked, visits in report:
        total_linked += linked
        click.echo(
            f'Customer {customer.id} ({customer.name}): '
            f'{visits} visit(s), {linked} newly linked'
        )
    logger.info('Reconciled %s customers, linked %s job cards', len(report), total_linked)
    click.echo(f'Processed {len(report)} customer(s), linked {total_linked} job card(s)')


@click.command('seed')
@with_appcontext
def seed_command() -> None:
    """Create the admin account and a sample job card."""
    admin, _ = upsert_user(
        current_app.config['ADMIN_USERNAME'],
        current_app.config['ADMIN_PASSWORD'],
        'Administrator',
    )
    click.echo(f'Admin user: {admin.username}')
    if JobCard.query.first() is None:
        card = create_job_card({
            'customerName': 'John Doe',
            'mobileNumber': '9876543210',
            'address': '123 Main St, City',
            'complaint': 'Screen not working',
            'model': 'Samsung Galaxy S21',
            'isOff': True,
            'hasBattery': True,
            'hasDoor': True,
            'hasSim': True,
            'hasSlot': True,
            'admissionFees': 100,
            'estimate': 1500,
            'advance': 500,
            'status': 'in-progress',
        }, admin.id)
        click.echo(f'Sample job card: {card.bill_no}')
