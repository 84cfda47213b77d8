# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/cashmais/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: python -m flask --app cashmais <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask --app cashmais system init-db
#   Create all tables that do not exist yet.
# - python -m flask --app cashmais system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Inspection/bootstrap:
# - python -m flask --app cashmais companies list
#   List companies with cashback percentage and cashier count.
# - python -m flask --app cashmais affiliates create --cpf 12345678901 --name "Ana" --email ana@example.com --password secret1 [--sponsor-cpf ...]
#   Create an affiliate (prompts if options are omitted).
# - python -m flask --app cashmais customers create --cpf 12345678901 [--name "Ana"]
#   Create a plain customer that can receive cashback.
#
# Maintenance:
# - python -m flask --app cashmais sessions cleanup
#   Delete expired company, cashier and affiliate sessions.
# - python -m flask --app cashmais commissions process --limit 100 --max-attempts 5
#   Retry PENDING/FAILED commission outbox entries.
# - python -m flask --app cashmais maintenance cleanup-security-events --retention-days 90
#   Delete security events older than the retention window.

import click
from datetime import timedelta
from flask.cli import with_appcontext

from .extensions import db
from .models import Cashier, SecurityEvent
from .services import affiliate_service, commission_service, company_service, session_service
from .time_utils import utcnow


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (existing tables are left untouched)."""
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


@click.group('companies')
def companies_group():
    """Company inspection commands."""


@companies_group.command('list')
@with_appcontext
def list_companies():
    """List all companies."""
    companies = company_service.list_companies()

    if not companies:
        click.echo("No companies found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Nome fantasia':<30} {'CNPJ':<20} {'Active':<8} {'Cashback':<10} {'Cashiers'}")
    click.echo("="*90)

    for company in companies:
        cashier_count = db.session.query(Cashier).filter_by(company_id=company.id).count()
        pct = company_service.get_cashback_percentage(company.id)
        active_str = "Yes" if company.is_active else "No"

        click.echo(
            f"{company.id:<5} {company.nome_fantasia:<30} {company.to_dict()['cnpj']:<20} "
            f"{active_str:<8} {float(pct):<10g} {cashier_count}"
        )

    click.echo("="*90 + "\n")


@click.group('affiliates')
def affiliates_group():
    """Affiliate management commands."""


@affiliates_group.command('create')
@click.option('--cpf', prompt=True, help='CPF (masked or digits)')
@click.option('--name', prompt=True, help='Full name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--sponsor-cpf', default=None, help='CPF of the sponsoring affiliate')
@with_appcontext
def create_affiliate_cli(cpf, name, email, password, sponsor_cpf):
    """Create an affiliate."""
    try:
        affiliate = affiliate_service.register_affiliate({
            "cpf": cpf,
            "full_name": name,
            "email": email,
            "senha": password,
            "sponsor_cpf": sponsor_cpf,
        })
    except ValueError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    sponsor_str = f", sponsor ID: {affiliate.sponsor_id}" if affiliate.sponsor_id else ""
    click.echo(f"PASS Created affiliate: {affiliate.full_name} (ID: {affiliate.id}{sponsor_str})")


@click.group('customers')
def customers_group():
    """Plain customer commands."""


@customers_group.command('create')
@click.option('--cpf', required=True, help='CPF (masked or digits)')
@click.option('--name', default=None, help='Full name')
@with_appcontext
def create_customer_cli(cpf, name):
    """Create a plain customer."""
    try:
        customer = affiliate_service.create_plain_user(cpf, name)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created customer: {customer.display_name} (ID: {customer.id})")


@click.group('sessions')
def sessions_group():
    """Session maintenance commands."""


@sessions_group.command('cleanup')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired sessions of every actor type."""
    counts = session_service.cleanup_expired_sessions()
    total = sum(counts.values())
    detail = ", ".join(f"{name}: {count}" for name, count in counts.items())
    click.echo(f"Deleted {total} expired sessions ({detail}).")


@click.group('commissions')
def commissions_group():
    """Commission outbox commands."""


@commissions_group.command('process')
@click.option('--limit', type=int, default=100, show_default=True, help='Maximum entries to process')
@click.option('--max-attempts', type=int, default=5, show_default=True, help='Skip entries that failed this many times')
@with_appcontext
def process_commissions_cli(limit, max_attempts):
    """Distribute PENDING and retry FAILED commission outbox entries."""
    result = commission_service.process_pending(limit=limit, max_attempts=max_attempts)
    click.echo(
        f"Processed {result['processed']} entries: "
        f"{result['succeeded']} done, {result['failed']} failed."
    )


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """
    Cleanup old security events.

    Default retention: 90 days.
    """
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityEvent).filter(
        SecurityEvent.occurred_at < cutoff
    ).delete(synchronize_session=False)
    db.session.commit()
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(companies_group)
    app.cli.add_command(affiliates_group)
    app.cli.add_command(customers_group)
    app.cli.add_command(sessions_group)
    app.cli.add_command(commissions_group)
    app.cli.add_command(maintenance_group)
