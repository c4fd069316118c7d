# Overview: Flask CLI command groups for schema bootstrap, shift close-out and bulk maintenance.

# backend/cafepos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to cafepos (PowerShell: $env:FLASK_APP="cafepos").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Shifts:
# - python -m flask shifts list [--open]
#   List recent shifts with their totals.
# - python -m flask shifts close 12 --pc-rental 1500
#   Close shift 12 with the PC rental figure (pesos) from the timer system.
# - python -m flask shifts audit 12
#   Compare the legacy list-view and detail-view totals of shift 12 (read-only).
# - python -m flask shifts backfill --start 2024-01-01 --end 2024-02-01
#   Recompute the cash/GCash/receivables split of closed shifts.
#
# Stats:
# - python -m flask stats rebuild
#   Rebuild stats_daily from every transaction.
#
# Transactions:
# - python -m flask transactions tag-categories
#   Tag untagged transactions as Revenue, OPEX or CAPEX.
# - python -m flask transactions debts [--customer c-12]
#   Outstanding customer balances (New Debt minus Paid Debt).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Shift
from .services import (
    audit_service,
    categorization_service,
    debt_service,
    reconciliation_service,
    shift_service,
    stats_service,
)
from .services.batching import STATUS_COMPLETED
from .services.concurrency import PersistenceError
from .services.shift_service import ShiftError
from .time_utils import parse_iso_datetime


def _pesos(cents) -> str:
    if cents is None:
        return "-"
    return f"{cents / 100:,.2f}"


def _echo_report(report):
    marker = "PASS" if report.status == STATUS_COMPLETED else "WARN"
    click.echo(f"{marker} {report.operation}: {report.status}")
    click.echo(f"   processed {report.processed} of {report.total}, updated {report.updated}, skipped {report.skipped}")
    click.echo(f"   batches committed: {report.batches_committed}")
    if report.stopped_at is not None:
        click.echo(f"   stopped at: {report.stopped_at}")
    for error in report.errors:
        click.echo(f"   FAIL {error['id']}: {error['error']}")
    if report.message:
        click.echo(f"   {report.message}")


def _parse_date_option(value, name):
    if value is None:
        return None
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise click.BadParameter(f"{name} must be an ISO-8601 date or datetime")


# =============================================================================
# SYSTEM
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_db():
    """Create any missing tables. Safe to run repeatedly."""
    db.create_all()
    click.echo("PASS Schema ready.")


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


# =============================================================================
# SHIFTS
# =============================================================================

@click.group('shifts')
def shifts_group():
    """Shift close-out and reconciliation commands."""


@shifts_group.command('list')
@click.option('--open', 'open_only', is_flag=True, help='Only shifts still open')
@click.option('--limit', type=int, default=20, help='Max shifts to show')
@with_appcontext
def list_shifts_cli(open_only, limit):
    """
    List recent shifts.

    Example:
        flask shifts list
        flask shifts list --open
    """
    query = db.session.query(Shift)
    if open_only:
        query = query.filter(Shift.end_time.is_(None))

    shifts = query.order_by(Shift.start_time.desc(), Shift.id.desc()).limit(limit).all()

    if not shifts:
        click.echo("No shifts found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Staff':<25} {'Period':<10} {'Status':<8} {'System':>12} {'Cash':>12} {'GCash':>12}")
    click.echo("="*100)

    for shift in shifts:
        status = "OPEN" if shift.is_open else "CLOSED"
        click.echo(
            f"{shift.id:<5} {shift.staff_email:<25} {(shift.shift_period or '-'):<10} {status:<8} "
            f"{_pesos(shift.system_total_cents):>12} {_pesos(shift.total_cash_cents):>12} "
            f"{_pesos(shift.total_gcash_cents):>12}"
        )

    click.echo("="*100 + "\n")


@shifts_group.command('close')
@click.argument('shift_id', type=int)
@click.option('--pc-rental', required=True, help='PC rental total from the timer system, in pesos')
@with_appcontext
def close_shift_cli(shift_id, pc_rental):
    """
    Close a shift and print its reconciliation.

    Example:
        flask shifts close 12 --pc-rental 1500
    """
    try:
        result = shift_service.close_shift(shift_id, pc_rental)
    except ShiftError as e:
        raise click.ClickException(str(e))
    except PersistenceError as e:
        raise click.ClickException(f"Database unavailable, shift still open: {e}")
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Shift {shift_id} closed")
    click.echo(f"   Services:  {_pesos(result.services_total_cents)}")
    click.echo(f"   PC rental: {_pesos(result.pc_rental_total_cents)}")
    click.echo(f"   Expenses:  {_pesos(result.expenses_total_cents)}")
    click.echo(f"   System:    {_pesos(result.system_total_cents)}")
    click.echo(f"   Cash {_pesos(result.total_cash_cents)} / GCash {_pesos(result.total_gcash_cents)} / AR {_pesos(result.total_ar_cents)}")
    click.echo(f"   Expected cash on hand: {_pesos(result.expected_cash_on_hand_cents)}")


@shifts_group.command('audit')
@click.argument('shift_id', type=int)
@with_appcontext
def audit_shift_cli(shift_id):
    """
    Compare legacy list-view and detail-view totals for a shift.

    Read-only. Mismatched transactions are listed.
    """
    try:
        report = audit_service.audit_shift(shift_id)
    except ShiftError as e:
        raise click.ClickException(str(e))

    totals = report.totals
    click.echo(f"Shift {shift_id} audit ({len(report.rows)} transactions)")
    click.echo(f"   Sales     list {_pesos(totals['sales_list_view_cents'])}  detail {_pesos(totals['sales_detail_view_cents'])}  diff {_pesos(totals['diff_sales_cents'])}")
    click.echo(f"   Expenses  list {_pesos(totals['expenses_list_view_cents'])}  detail {_pesos(totals['expenses_detail_view_cents'])}  diff {_pesos(totals['diff_expenses_cents'])}")
    click.echo(f"   Canonical system total {_pesos(totals['canonical_system_total_cents'])}")

    if not report.has_discrepancy:
        click.echo("PASS No discrepancies")
        return

    for row in report.mismatches:
        click.echo(f"   WARN tx {row.transaction_id} {row.item!r}: list={row.list_view} detail={row.detail_view} canonical={row.canonical}")


@shifts_group.command('backfill')
@click.option('--start', help='Only shifts started on/after (ISO-8601)')
@click.option('--end', help='Only shifts started on/before (ISO-8601)')
@click.option('--page-size', type=click.IntRange(min=1), help='Shifts read per page')
@click.option('--batch-size', type=click.IntRange(min=1), help='Writes per commit')
@with_appcontext
def backfill_cli(start, end, page_size, batch_size):
    """
    Recompute the payment split of closed shifts.

    Example:
        flask shifts backfill --start 2024-01-01 --end 2024-02-01
    """
    report = reconciliation_service.backfill_shift_totals(
        start=_parse_date_option(start, "--start"),
        end=_parse_date_option(end, "--end"),
        page_size=page_size,
        batch_size=batch_size,
    )
    _echo_report(report)


# =============================================================================
# STATS & TRANSACTIONS
# =============================================================================

@click.group('stats')
def stats_group():
    """Reporting aggregates."""


@stats_group.command('rebuild')
@click.option('--page-size', type=click.IntRange(min=1), help='Transactions read per page')
@click.option('--batch-size', type=click.IntRange(min=1), help='Days written per commit')
@with_appcontext
def rebuild_stats_cli(page_size, batch_size):
    """Rebuild stats_daily from every transaction."""
    report = stats_service.rebuild_daily_stats(page_size=page_size, batch_size=batch_size)
    _echo_report(report)


@click.group('transactions')
def transactions_group():
    """Transaction data maintenance."""


@transactions_group.command('tag-categories')
@click.option('--page-size', type=click.IntRange(min=1), help='Transactions read per page')
@click.option('--batch-size', type=click.IntRange(min=1), help='Writes per commit')
@with_appcontext
def tag_categories_cli(page_size, batch_size):
    """Tag untagged transactions as Revenue, OPEX or CAPEX."""
    report = categorization_service.tag_financial_categories(page_size=page_size, batch_size=batch_size)
    _echo_report(report)


@transactions_group.command('debts')
@click.option('--customer', help='Only this customer id')
@with_appcontext
def debts_cli(customer):
    """Outstanding customer balances, largest first."""
    if customer:
        balances = [debt_service.customer_debt_balance(customer)]
    else:
        balances = debt_service.outstanding_debts()

    if not balances:
        click.echo("No outstanding debts.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'Customer':<20} {'Name':<25} {'Issued':>10} {'Paid':>10} {'Balance':>10}")
    click.echo("="*80)
    for b in balances:
        click.echo(
            f"{b.customer_id:<20} {(b.customer_name or '-'):<25} {_pesos(b.issued_cents):>10} "
            f"{_pesos(b.paid_cents):>10} {_pesos(b.balance_cents):>10}"
        )
    click.echo("="*80 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(shifts_group)
    app.cli.add_command(stats_group)
    app.cli.add_command(transactions_group)
