"""
Shift Lifecycle and Reconciliation Service

WHY: Clock-out is where the money is counted. Closing a shift turns every
transaction recorded against it, plus the operator-entered PC rental figure
from the timer system, into the cash/GCash/receivables split and the profit
figure stored on the shift.

DESIGN PRINCIPLES:
- One open shift per staff member (partial unique index + pre-check)
- Totals are written once, in a single conditional write
  (UPDATE ... WHERE end_time IS NULL); losing that race is a ConflictError
- Closing an already-closed shift returns the persisted result unchanged
- The arithmetic lives in ShiftTally so the bulk reconciler replays it
  transaction by transaction without loading a shift into memory

RENTAL SPLIT: the entered rental figure is trusted for the grand total, but
per-method splits are trusted only from logged "PC Rental" transactions.
The default policy assumes the unlogged remainder was paid in cash.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Iterable

from flask import current_app, has_app_context
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Shift, Transaction
from ..validation import ConflictError, ValidationError, RECONCILIATION_STATUSES, parse_amount_cents
from .classification_service import (
    BUCKET_DEBT_ISSUED,
    BUCKET_DEBT_PAID,
    BUCKET_EXPENSE,
    BUCKET_SALE,
    ITEM_NEW_DEBT,
    ITEM_PC_RENTAL,
    METHOD_CASH,
    METHOD_CHARGE,
    METHOD_GCASH,
    Classification,
    classify,
    expense_label,
    is_pc_rental,
    sale_label,
    tx_amount_cents,
)
from .concurrency import PersistenceError, commit_or_raise
from cafepos.time_utils import utcnow


class ShiftError(Exception):
    """Raised when a shift does not exist."""
    pass


# =============================================================================
# RENTAL SPLIT POLICIES
# =============================================================================

POLICY_CASH_REMAINDER = "cash_remainder"
POLICY_ALL_CASH = "all_cash"
DEFAULT_RENTAL_POLICY = POLICY_CASH_REMAINDER


def _split_cash_remainder(entered_cents: int, logged: dict[str, int]) -> tuple[int, int, int]:
    """Entered figure is cash except what was logged as GCash or Charge."""
    gcash = logged[METHOD_GCASH]
    ar = logged[METHOD_CHARGE]
    return max(0, entered_cents - (gcash + ar)), gcash, ar


def _split_all_cash(entered_cents: int, logged: dict[str, int]) -> tuple[int, int, int]:
    """Entered figure is entirely cash; logged rental detail is not split out."""
    return entered_cents, 0, 0


RENTAL_POLICIES = {
    POLICY_CASH_REMAINDER: _split_cash_remainder,
    POLICY_ALL_CASH: _split_all_cash,
}


def resolve_policy(policy: str | None) -> str:
    if policy is None:
        policy = DEFAULT_RENTAL_POLICY
        if has_app_context():
            policy = current_app.config.get("RENTAL_CASH_POLICY", DEFAULT_RENTAL_POLICY)
    if policy not in RENTAL_POLICIES:
        raise ValidationError(f"Unknown rental policy '{policy}'. Use one of: {', '.join(sorted(RENTAL_POLICIES))}")
    return policy


# =============================================================================
# RECONCILIATION ARITHMETIC
# =============================================================================

@dataclass
class ReconciliationResult:
    """Shift totals in cents. Not persisted as its own row; snapshotted onto the shift."""
    sales_by_category: dict[str, int] = field(default_factory=dict)
    expenses_by_category: dict[str, int] = field(default_factory=dict)
    services_total_cents: int = 0
    expenses_total_cents: int = 0
    pc_rental_total_cents: int = 0
    system_total_cents: int = 0
    total_cash_cents: int = 0
    total_gcash_cents: int = 0
    total_ar_cents: int = 0
    expected_cash_on_hand_cents: int = 0
    logged_pc_cash_cents: int = 0
    logged_pc_gcash_cents: int = 0
    logged_pc_ar_cents: int = 0
    implied_pc_cash_cents: int = 0
    debt_issued_cents: int = 0
    debt_paid_cents: int = 0
    transaction_count: int = 0
    policy: str = DEFAULT_RENTAL_POLICY

    def to_dict(self) -> dict:
        data = asdict(self)
        data["sales_by_category"] = dict(sorted(self.sales_by_category.items()))
        data["expenses_by_category"] = dict(sorted(self.expenses_by_category.items()))
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ReconciliationResult":
        known = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in data.items() if k in known})


class ShiftTally:
    """
    Running totals for one shift, fed one transaction at a time.

    Buckets:
    - EXPENSE: expenses_total, not part of the payment split
    - logged "PC Rental" sales: kept per method, folded in at finalize()
    - everything else that is not skipped (sales, debt issued, debt paid):
      regular payment split by method
    - DEBT_ISSUED also counts toward expenses_total (goods or cash left
      without payment)
    - SALE and DEBT_PAID (non rental) make up services_total
    """

    def __init__(self):
        self.sales_by_category: dict[str, int] = defaultdict(int)
        self.expenses_by_category: dict[str, int] = defaultdict(int)
        self.regular = {METHOD_CASH: 0, METHOD_GCASH: 0, METHOD_CHARGE: 0}
        self.logged_pc = {METHOD_CASH: 0, METHOD_GCASH: 0, METHOD_CHARGE: 0}
        self.services_total = 0
        self.expenses_total = 0
        self.debt_issued = 0
        self.debt_paid = 0
        self.transaction_count = 0

    def add(self, tx) -> Classification:
        result = classify(tx)
        if result.skipped:
            return result

        amount = tx_amount_cents(tx)
        method = result.payment_method
        self.transaction_count += 1

        if result.bucket == BUCKET_EXPENSE:
            self.expenses_total += amount
            self.expenses_by_category[expense_label(tx, result.bucket)] += amount
            return result

        if result.bucket == BUCKET_SALE and is_pc_rental(tx):
            self.logged_pc[method] += amount
            return result

        self.regular[method] += amount

        if result.bucket == BUCKET_DEBT_ISSUED:
            self.debt_issued += amount
            self.expenses_total += amount
            self.expenses_by_category[ITEM_NEW_DEBT] += amount
            return result

        if result.bucket == BUCKET_DEBT_PAID:
            self.debt_paid += amount
        self.services_total += amount
        self.sales_by_category[sale_label(tx)] += amount
        return result

    def add_all(self, transactions: Iterable) -> "ShiftTally":
        for tx in transactions:
            self.add(tx)
        return self

    def finalize(self, entered_rental_cents: int, *, policy: str | None = None) -> ReconciliationResult:
        policy = resolve_policy(policy)
        implied_cash, pc_gcash, pc_ar = RENTAL_POLICIES[policy](entered_rental_cents, self.logged_pc)

        total_cash = self.regular[METHOD_CASH] + implied_cash
        total_gcash = self.regular[METHOD_GCASH] + pc_gcash
        total_ar = self.regular[METHOD_CHARGE] + pc_ar

        sales = dict(self.sales_by_category)
        if entered_rental_cents:
            sales[ITEM_PC_RENTAL] = entered_rental_cents

        return ReconciliationResult(
            sales_by_category=dict(sorted(sales.items())),
            expenses_by_category=dict(sorted(self.expenses_by_category.items())),
            services_total_cents=self.services_total,
            expenses_total_cents=self.expenses_total,
            pc_rental_total_cents=entered_rental_cents,
            system_total_cents=self.services_total - self.expenses_total + entered_rental_cents,
            total_cash_cents=total_cash,
            total_gcash_cents=total_gcash,
            total_ar_cents=total_ar,
            # All expenses are assumed to be paid out of the drawer
            expected_cash_on_hand_cents=total_cash - self.expenses_total,
            logged_pc_cash_cents=self.logged_pc[METHOD_CASH],
            logged_pc_gcash_cents=self.logged_pc[METHOD_GCASH],
            logged_pc_ar_cents=self.logged_pc[METHOD_CHARGE],
            implied_pc_cash_cents=implied_cash,
            debt_issued_cents=self.debt_issued,
            debt_paid_cents=self.debt_paid,
            transaction_count=self.transaction_count,
            policy=policy,
        )


def compute_reconciliation(transactions: Iterable, entered_rental_cents: int, *, policy: str | None = None) -> ReconciliationResult:
    """Pure reconciliation of a shift's transactions against the entered rental figure."""
    return ShiftTally().add_all(transactions).finalize(entered_rental_cents, policy=policy)


def result_from_shift(shift: Shift) -> ReconciliationResult:
    """Rebuild the persisted result of a closed shift without recomputing it."""
    if shift.close_summary:
        return ReconciliationResult.from_dict(shift.close_summary)

    # Shifts closed before snapshots were stored: totals only
    total_cash = shift.total_cash_cents or 0
    return ReconciliationResult(
        services_total_cents=shift.services_total_cents,
        expenses_total_cents=shift.expenses_total_cents,
        pc_rental_total_cents=shift.pc_rental_total_cents,
        system_total_cents=shift.system_total_cents,
        total_cash_cents=total_cash,
        total_gcash_cents=shift.total_gcash_cents or 0,
        total_ar_cents=shift.total_ar_cents or 0,
        expected_cash_on_hand_cents=total_cash - shift.expenses_total_cents,
    )


# =============================================================================
# SHIFT LIFECYCLE
# =============================================================================

def get_shift(shift_id: int) -> Shift:
    shift = db.session.get(Shift, shift_id)
    if not shift:
        raise ShiftError("Shift not found")
    return shift


def get_open_shift(staff_email: str) -> Shift | None:
    """Get the currently open shift for a staff member, if any."""
    return db.session.query(Shift).filter(
        Shift.staff_email == staff_email,
        Shift.end_time.is_(None),
    ).first()


def shift_transactions(shift_id: int) -> list[Transaction]:
    """All transactions recorded against a shift, deleted ones included."""
    return db.session.query(Transaction).filter_by(
        shift_id=shift_id
    ).order_by(Transaction.timestamp, Transaction.id).all()


def open_shift(staff_email: str, shift_period: str | None = None, *, start_time: datetime | None = None) -> Shift:
    """
    Clock in: create a shift with zeroed totals.

    Raises:
        ValidationError: staff_email missing
        ConflictError: staff member already has an open shift
    """
    staff_email = (staff_email or "").strip()
    if not staff_email:
        raise ValidationError("staff_email is required")

    existing = get_open_shift(staff_email)
    if existing:
        raise ConflictError(f"{staff_email} already has an open shift (shift {existing.id})")

    shift = Shift(
        staff_email=staff_email,
        shift_period=shift_period,
        start_time=start_time or utcnow(),
        end_time=None,
    )
    db.session.add(shift)
    try:
        db.session.commit()
    except IntegrityError as exc:
        # Lost the race against a concurrent clock-in
        db.session.rollback()
        raise ConflictError(f"{staff_email} already has an open shift") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(f"Failed to open shift: {exc}") from exc

    return shift


def close_shift(
    shift_id: int,
    entered_rental_total,
    *,
    now: datetime | None = None,
    policy: str | None = None,
) -> ReconciliationResult:
    """
    Close a shift and persist its reconciliation.

    Args:
        shift_id: Shift to close
        entered_rental_total: PC rental aggregate from the timer system,
            int cents or a peso string as typed by the operator. Required.
        now: Close time (defaults to server time)
        policy: Rental split policy name (defaults to RENTAL_CASH_POLICY)

    Returns:
        The reconciliation. For a shift that is already closed, the
        persisted reconciliation; end_time is not touched.

    Raises:
        ValidationError: rental total missing, blank or invalid (no write)
        ShiftError: shift not found
        ConflictError: another close won the race
        PersistenceError: the write failed; the shift is still open
    """
    entered_cents = parse_amount_cents(entered_rental_total, field="pc_rental_total")

    shift = get_shift(shift_id)
    if shift.end_time is not None:
        return result_from_shift(shift)

    result = compute_reconciliation(shift_transactions(shift.id), entered_cents, policy=policy)
    closed_at = now or utcnow()

    stmt = (
        update(Shift)
        .where(Shift.id == shift.id, Shift.end_time.is_(None))
        .values(
            pc_rental_total_cents=result.pc_rental_total_cents,
            services_total_cents=result.services_total_cents,
            expenses_total_cents=result.expenses_total_cents,
            system_total_cents=result.system_total_cents,
            total_cash_cents=result.total_cash_cents,
            total_gcash_cents=result.total_gcash_cents,
            total_ar_cents=result.total_ar_cents,
            close_summary=result.to_dict(),
            end_time=closed_at,
            version_id=Shift.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )

    try:
        outcome = db.session.execute(stmt)
        if outcome.rowcount != 1:
            db.session.rollback()
            raise ConflictError(f"Shift {shift_id} was already closed")
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(f"Failed to close shift {shift_id}: {exc}") from exc

    current_app.logger.info(
        "Closed shift %s: system_total=%s cash=%s gcash=%s ar=%s",
        shift_id, result.system_total_cents, result.total_cash_cents,
        result.total_gcash_cents, result.total_ar_cents,
    )
    return result


def restate_closed_shift(shift: Shift, *, policy: str | None = None) -> ReconciliationResult:
    """
    Recompute a closed shift's stored totals after an admin correction.

    Uses the rental figure entered at close and the session's current view
    of the transactions (pending changes are flushed first). Sets the
    columns and close_summary without committing, so the correction and
    the restated totals land in the caller's single commit. end_time is
    kept.
    """
    result = compute_reconciliation(
        shift_transactions(shift.id), shift.pc_rental_total_cents or 0, policy=policy,
    )
    shift.services_total_cents = result.services_total_cents
    shift.expenses_total_cents = result.expenses_total_cents
    shift.system_total_cents = result.system_total_cents
    shift.total_cash_cents = result.total_cash_cents
    shift.total_gcash_cents = result.total_gcash_cents
    shift.total_ar_cents = result.total_ar_cents
    shift.close_summary = result.to_dict()
    return result


def get_reconciliation(shift_id: int, *, policy: str | None = None) -> ReconciliationResult:
    """
    Persisted result for a closed shift; for an open shift, a live preview
    using whatever rental figure is stored on it (zero until close).
    """
    shift = get_shift(shift_id)
    if shift.end_time is not None:
        return result_from_shift(shift)
    return compute_reconciliation(shift_transactions(shift.id), shift.pc_rental_total_cents or 0, policy=policy)


def force_end_shift(shift_id: int, *, now: datetime | None = None) -> Shift:
    """
    Administrative end of an abandoned shift. No reconciliation is
    computed; totals stay as stored.
    """
    get_shift(shift_id)
    stmt = (
        update(Shift)
        .where(Shift.id == shift_id, Shift.end_time.is_(None))
        .values(end_time=now or utcnow(), version_id=Shift.version_id + 1)
        .execution_options(synchronize_session=False)
    )
    try:
        outcome = db.session.execute(stmt)
        if outcome.rowcount != 1:
            db.session.rollback()
            raise ConflictError(f"Shift {shift_id} is not open")
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(f"Failed to end shift {shift_id}: {exc}") from exc

    return get_shift(shift_id)


# =============================================================================
# CONSOLIDATION (cash count, GCash verification)
# =============================================================================

def count_denominations(denominations: dict) -> int:
    """
    Cash on hand in cents from a denomination count.

    Keys are "<kind>_<peso value>", e.g. {"bill_1000": 2, "coin_5": 3}.
    """
    if not isinstance(denominations, dict):
        raise ValidationError("denominations must be an object")

    total = 0
    for key, count in denominations.items():
        _, _, raw_value = str(key).partition("_")
        if not raw_value.isdigit():
            raise ValidationError(f"Invalid denomination key: {key}")
        if count in (None, ""):
            continue
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise ValidationError(f"Count for {key} must be a non-negative integer")
        total += int(raw_value) * 100 * count
    return total


def consolidate_shift(shift_id: int, denominations: dict, gcash_statuses: dict | None = None) -> dict:
    """
    Count the drawer and verify GCash receipts for a shift.

    Compares counted cash with the reconciliation's expected cash on hand
    and records a status per GCash transaction (default Verified).

    Returns:
        cash_on_hand, expected cash, variance (counted - expected), GCash
        total vs verified GCash, receivables total (all cents)
    """
    cash_on_hand = count_denominations(denominations)
    gcash_statuses = gcash_statuses or {}

    shift = get_shift(shift_id)
    result = get_reconciliation(shift_id)

    gcash_rows = []
    ar_total = 0
    for tx in shift_transactions(shift_id):
        classification = classify(tx)
        if classification.skipped or classification.bucket == BUCKET_EXPENSE:
            continue
        if classification.payment_method == METHOD_GCASH:
            gcash_rows.append(tx)
        elif classification.payment_method == METHOD_CHARGE:
            ar_total += tx_amount_cents(tx)

    gcash_ids = {tx.id for tx in gcash_rows}
    for raw_id, status in gcash_statuses.items():
        try:
            tx_id = int(raw_id)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid transaction id: {raw_id}")
        if tx_id not in gcash_ids:
            raise ValidationError(f"Transaction {tx_id} is not a GCash transaction of this shift")
        if status not in RECONCILIATION_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(RECONCILIATION_STATUSES)}")

    normalized = {int(k): v for k, v in gcash_statuses.items()}
    gcash_total = 0
    verified_gcash = 0
    for tx in gcash_rows:
        amount = tx_amount_cents(tx)
        gcash_total += amount
        status = normalized.get(tx.id) or tx.reconciliation_status or "Verified"
        if tx.id in normalized:
            tx.reconciliation_status = status
        if status == "Verified":
            verified_gcash += amount

    shift.denominations = dict(denominations)
    shift.last_consolidated_at = utcnow()

    try:
        commit_or_raise()
    except PersistenceError as exc:
        if isinstance(exc.__cause__, StaleDataError):
            raise ConflictError(f"Shift {shift_id} was modified concurrently; reload and retry") from exc
        raise

    expected = result.expected_cash_on_hand_cents
    return {
        "shift_id": shift_id,
        "cash_on_hand_cents": cash_on_hand,
        "expected_cash_cents": expected,
        "variance_cents": cash_on_hand - expected,
        "gcash_total_cents": gcash_total,
        "verified_gcash_cents": verified_gcash,
        "ar_total_cents": ar_total,
        "denominations": dict(denominations),
    }
