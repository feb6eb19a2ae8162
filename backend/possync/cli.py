# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/possync/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (development shortcut for `flask db upgrade`).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Account inspection/bootstrap:
# - python -m flask accounts list
#   List all sync accounts with active status and last login.
# - python -m flask accounts create --username shop1 --password "secret"
#   Create an account (prompts if options are omitted).
#
# Sync maintenance:
# - python -m flask sync recount-coupons --account-id user-...
#   Recompute coupon usage from confirmed coupon orders.
# - python -m flask sync cleanup-tokens --retention-days 30
#   Delete expired and revoked bearer tokens older than the retention window.
# - python -m flask sync stats --account-id user-...
#   Show record and tombstone counts per category.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Account, Deletion
from .services.auth_service import create_account, AccountError
from .services.promotions_service import recount_coupon_usage
from .services.session_service import cleanup_expired_tokens
from .services.snapshot_service import snapshot_stats
from .time_utils import to_utc_z


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('accounts')
def accounts_group():
    """Sync account inspection and bootstrap commands."""


@accounts_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_account_cli(username, password):
    """Create a new sync account."""
    try:
        account = create_account(username, password)
    except AccountError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created account '{account.username}' (ID: {account.id})")


@accounts_group.command('list')
@with_appcontext
def list_accounts():
    """List all sync accounts."""
    accounts = db.session.query(Account).order_by(Account.username.asc()).all()

    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<45} {'Username':<25} {'Active':<8} {'Last login'}")
    click.echo("="*100)

    for account in accounts:
        last_login = to_utc_z(account.last_login_at) if account.last_login_at else "-"
        active = "yes" if account.is_active else "no"
        click.echo(f"{account.id:<45} {account.username:<25} {active:<8} {last_login}")

    click.echo("="*100 + "\n")


@click.group('sync')
def sync_group():
    """Sync data maintenance commands."""


def _require_account(account_id: str) -> Account:
    account = db.session.get(Account, account_id)
    if not account:
        raise click.ClickException(f"Account '{account_id}' not found")
    return account


@sync_group.command('recount-coupons')
@click.option('--account-id', required=True, help='Account ID')
@with_appcontext
def recount_coupons(account_id):
    """Recompute coupon usedCount from confirmed coupon orders."""
    _require_account(account_id)
    changed = recount_coupon_usage(account_id)
    db.session.commit()
    click.echo(f"PASS Recounted coupons: {changed} changed")


@sync_group.command('cleanup-tokens')
@click.option('--retention-days', default=30, show_default=True, type=int, help='Keep expired tokens this many days')
@with_appcontext
def cleanup_tokens(retention_days):
    """Delete expired and revoked tokens older than the retention window."""
    deleted = cleanup_expired_tokens(retention_days=retention_days)
    click.echo(f"PASS Deleted {deleted} tokens")


@sync_group.command('stats')
@click.option('--account-id', required=True, help='Account ID')
@with_appcontext
def stats(account_id):
    """Show record counts per category for one account."""
    account = _require_account(account_id)
    counts = snapshot_stats(account_id)
    tombstones = db.session.query(Deletion).filter_by(account_id=account_id).count()

    click.echo(f"\nAccount: {account.username} ({account.id})")
    click.echo("-"*40)
    for name, count in counts.items():
        click.echo(f"{name:<25} {count:>10}")
    click.echo(f"{'deletions':<25} {tombstones:>10}")
    click.echo("-"*40 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(accounts_group)
    app.cli.add_command(sync_group)
