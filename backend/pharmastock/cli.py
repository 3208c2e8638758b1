# Overview: Flask CLI command groups for bootstrap, inspection, and ledger maintenance.

# backend/pharmastock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent; use Flask-Migrate for schema changes).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Pharmacy (tenant) management:
# - python -m flask pharmacies list
# - python -m flask pharmacies create --name "Central Pharmacy" --license "LIC-001"
# - python -m flask pharmacies deactivate --pharmacy-id 1
# - python -m flask pharmacies activate --pharmacy-id 1
#
# Inventory inspection:
# - python -m flask medications list --pharmacy-id 1
#   List medications with quantity, expiry and low-stock flag.
# - python -m flask ledger verify --pharmacy-id 1
#   Check every medication's quantity against its movement history.
#   Exits non-zero when any medication is inconsistent.

import click
from flask.cli import with_appcontext

from .exceptions import ValidationError
from .extensions import db
from .models import Pharmacy, Medication
from .services import movement_log_service
from .services.tenant_service import TenantAccessError, create_pharmacy, set_pharmacy_active
from .time_utils import today


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

    This will DELETE ALL DATA, including the movement log!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask pharmacies create' to add a pharmacy.")


# =============================================================================
# PHARMACY MANAGEMENT COMMANDS
# =============================================================================

@click.group('pharmacies')
def pharmacies_group():
    """Pharmacy (tenant) management commands."""


@pharmacies_group.command('list')
@with_appcontext
def list_pharmacies():
    """List all pharmacies."""
    pharmacies = db.session.query(Pharmacy).order_by(Pharmacy.id.asc()).all()

    if not pharmacies:
        click.echo("No pharmacies found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'License':<20} {'Active':<8} {'Medications'}")
    click.echo("="*80)

    for pharmacy in pharmacies:
        medication_count = db.session.query(Medication).filter_by(pharmacy_id=pharmacy.id).count()
        active_str = "Yes" if pharmacy.is_active else "No"

        click.echo(f"{pharmacy.id:<5} {pharmacy.name:<30} {pharmacy.license_number:<20} {active_str:<8} {medication_count}")

    click.echo("="*80 + "\n")


@pharmacies_group.command('create')
@click.option('--name', required=True, help='Pharmacy name')
@click.option('--license', 'license_number', required=True, help='License number (unique)')
@with_appcontext
def create_pharmacy_cli(name, license_number):
    """Create a new pharmacy (tenant)."""
    try:
        pharmacy = create_pharmacy(name=name, license_number=license_number)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created pharmacy: {pharmacy.name} (ID: {pharmacy.id}, License: {pharmacy.license_number})")


def _set_active(pharmacy_id, is_active):
    try:
        pharmacy = set_pharmacy_active(pharmacy_id, is_active)
    except TenantAccessError:
        click.echo(f"FAIL Pharmacy ID {pharmacy_id} not found")
        return
    state = "activated" if is_active else "deactivated"
    click.echo(f"PASS Pharmacy {pharmacy.name} (ID: {pharmacy.id}) {state}")


@pharmacies_group.command('deactivate')
@click.option('--pharmacy-id', type=int, required=True, help='Pharmacy ID')
@with_appcontext
def deactivate_pharmacy_cli(pharmacy_id):
    """Deactivate a pharmacy; its requests are refused with 403."""
    _set_active(pharmacy_id, False)


@pharmacies_group.command('activate')
@click.option('--pharmacy-id', type=int, required=True, help='Pharmacy ID')
@with_appcontext
def activate_pharmacy_cli(pharmacy_id):
    """Re-activate a pharmacy."""
    _set_active(pharmacy_id, True)


# =============================================================================
# INVENTORY INSPECTION COMMANDS
# =============================================================================

@click.group('medications')
def medications_group():
    """Medication inspection commands."""


@medications_group.command('list')
@click.option('--pharmacy-id', type=int, required=True, help='Pharmacy ID')
@with_appcontext
def list_medications_cli(pharmacy_id):
    """List a pharmacy's medications."""
    medications = (
        db.session.query(Medication)
        .filter_by(pharmacy_id=pharmacy_id)
        .order_by(Medication.name.asc(), Medication.id.asc())
        .all()
    )

    if not medications:
        click.echo(f"No medications found for pharmacy {pharmacy_id}.")
        return

    as_of = today()
    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<30} {'Qty':<8} {'Unit':<10} {'Batch':<15} {'Expiry':<12} {'Flags'}")
    click.echo("="*90)

    for med in medications:
        flags = []
        if med.is_low_stock:
            flags.append("LOW")
        if med.expiry_date < as_of:
            flags.append("EXPIRED")
        click.echo(
            f"{med.id:<5} {med.name:<30} {med.quantity:<8} {med.unit:<10} "
            f"{med.batch_number:<15} {med.expiry_date.isoformat():<12} {','.join(flags) or '-'}"
        )

    click.echo("="*90 + "\n")


@click.group('ledger')
def ledger_group():
    """Stock ledger verification commands."""


@ledger_group.command('verify')
@click.option('--pharmacy-id', type=int, required=True, help='Pharmacy ID')
@with_appcontext
def verify_ledger(pharmacy_id):
    """
    Verify that each medication's quantity equals the sum of its movement
    deltas and that the before/after chain is unbroken.
    """
    reports = movement_log_service.reconcile_pharmacy(pharmacy_id=pharmacy_id)

    if not reports:
        click.echo(f"No medications found for pharmacy {pharmacy_id}.")
        return

    failures = 0
    for report in reports:
        if report.consistent:
            click.echo(
                f"PASS medication {report.medication_id}: quantity {report.quantity} "
                f"matches {report.movement_count} movement(s)"
            )
            continue
        failures += 1
        detail = f"quantity {report.quantity} != movement total {report.movement_total}"
        if report.chain_breaks:
            detail += f"; chain breaks at movements {', '.join(str(i) for i in report.chain_breaks)}"
        click.echo(f"FAIL medication {report.medication_id}: {detail}")

    if failures:
        click.echo(f"\nFAIL {failures} of {len(reports)} medication(s) inconsistent")
        raise SystemExit(1)

    click.echo(f"\nPASS All {len(reports)} medication(s) consistent")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(pharmacies_group)  # Multi-tenant pharmacy management
    app.cli.add_command(medications_group)
    app.cli.add_command(ledger_group)
