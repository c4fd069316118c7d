# Overview: Recording, correcting and soft-deleting transactions against shifts.

from __future__ import annotations

from ..extensions import db
from ..models import Shift, Transaction
from ..validation import (
    ConflictError,
    ValidationError,
    TRANSACTION_CREATE_POLICY,
    TRANSACTION_EDIT_POLICY,
    enforce_rules_transaction,
    validate_payload,
)
from .classification_service import ITEM_EXPENSES, ITEM_NEW_DEBT, ITEM_PAID_DEBT, tx_amount_cents
from .concurrency import commit_or_raise
from .shift_service import restate_closed_shift
from cafepos.time_utils import utcnow


AMOUNT_FIELDS = ("quantity", "unit_price_cents", "total_cents")


class TransactionError(Exception):
    """Raised when a transaction does not exist."""
    pass


def get_transaction(tx_id: int) -> Transaction:
    tx = db.session.get(Transaction, tx_id)
    if not tx:
        raise TransactionError("Transaction not found")
    return tx


def _require_audit_fields(actor, reason) -> tuple[str, str]:
    actor = (actor or "").strip()
    reason = (reason or "").strip()
    if not actor:
        raise ValidationError("actor is required")
    if not reason:
        raise ValidationError("reason is required")
    return actor, reason


def record_transaction(payload: dict) -> Transaction:
    """
    Validate and store a new transaction.

    total_cents is derived from quantity * unit_price_cents when not given.
    Debt rows must name the customer.

    Raises:
        ValidationError: bad payload or unknown shift
        ConflictError: the shift is already closed
    """
    patch = validate_payload(
        model=Transaction,
        payload=payload,
        policy=TRANSACTION_CREATE_POLICY,
        partial=False,
    )
    enforce_rules_transaction(patch)

    shift_id = patch.get("shift_id")
    if shift_id is not None:
        shift = db.session.get(Shift, shift_id)
        if not shift:
            raise ValidationError(f"Shift {shift_id} does not exist")
        if not shift.is_open:
            raise ConflictError(f"Shift {shift_id} is closed; transactions cannot be added")

    item = patch["item"]
    if item in (ITEM_NEW_DEBT, ITEM_PAID_DEBT) and not patch.get("customer_id"):
        raise ValidationError(f"{item} requires customer_id")

    if item == ITEM_EXPENSES:
        patch.setdefault("quantity", 1)
        if patch.get("total_cents") is None and patch.get("unit_price_cents") is None:
            raise ValidationError("Expenses require total_cents")

    if patch.get("total_cents") is None:
        if patch.get("quantity") is None or patch.get("unit_price_cents") is None:
            raise ValidationError("Provide total_cents or both quantity and unit_price_cents")
        patch["total_cents"] = patch["quantity"] * patch["unit_price_cents"]
        enforce_rules_transaction({"total_cents": patch["total_cents"]})

    if patch.get("timestamp") is None:
        patch["timestamp"] = utcnow()

    tx = Transaction(**patch)
    db.session.add(tx)
    commit_or_raise()
    return tx


def edit_transaction(
    tx_id: int,
    payload: dict,
    *,
    actor: str,
    reason: str,
    correct_closed: bool = False,
) -> Transaction:
    """
    Correct a transaction in place, recording who and why.

    Only amount, date and notes may change. Notes and dates of a closed
    shift can always be corrected. Its amounts were reconciled at close,
    so changing one needs correct_closed=True (an admin correction): the
    shift's stored totals and close summary are then restated in the same
    commit.
    """
    actor, reason = _require_audit_fields(actor, reason)
    tx = get_transaction(tx_id)

    if tx.is_deleted:
        raise ConflictError("Cannot edit a deleted transaction")

    patch = validate_payload(
        model=Transaction,
        payload=payload,
        policy=TRANSACTION_EDIT_POLICY,
        partial=True,
    )
    enforce_rules_transaction(patch)
    if not patch:
        raise ValidationError("Nothing to update")

    amount_before = tx_amount_cents(tx)
    candidate = {name: patch.get(name, getattr(tx, name)) for name in AMOUNT_FIELDS}
    # A new quantity or price without an explicit total re-derives the total
    if "total_cents" not in patch and ("quantity" in patch or "unit_price_cents" in patch):
        if candidate["quantity"] is not None and candidate["unit_price_cents"] is not None:
            candidate["total_cents"] = candidate["quantity"] * candidate["unit_price_cents"]
            patch["total_cents"] = candidate["total_cents"]
            enforce_rules_transaction({"total_cents": patch["total_cents"]})

    if tx.item == ITEM_EXPENSES and candidate["quantity"] not in (None, 1):
        raise ValidationError("Expenses must have quantity 1")

    amount_changed = tx_amount_cents(candidate) != amount_before
    closed_shift = tx.shift if tx.shift is not None and not tx.shift.is_open else None
    if amount_changed and closed_shift is not None and not correct_closed:
        raise ConflictError(
            f"Transaction {tx_id} belongs to closed shift {tx.shift_id}; amount changes need an admin correction"
        )

    for key, value in patch.items():
        setattr(tx, key, value)
    tx.edited_by = actor
    tx.edit_reason = reason
    tx.edited_at = utcnow()
    if amount_changed and closed_shift is not None:
        restate_closed_shift(closed_shift)

    commit_or_raise()
    return tx


def soft_delete_transaction(
    tx_id: int,
    *,
    actor: str,
    reason: str,
    correct_closed: bool = False,
) -> Transaction:
    """
    Mark a transaction deleted. Rows are never removed.

    Deleting an already deleted row is a no-op. On a closed shift this is
    an admin correction (correct_closed=True) and restates the shift's
    stored totals in the same commit.
    """
    actor, reason = _require_audit_fields(actor, reason)
    tx = get_transaction(tx_id)

    if tx.is_deleted:
        return tx

    closed_shift = tx.shift if tx.shift is not None and not tx.shift.is_open else None
    if closed_shift is not None and not correct_closed:
        raise ConflictError(
            f"Transaction {tx_id} belongs to closed shift {tx.shift_id}; deleting it needs an admin correction"
        )

    tx.is_deleted = True
    tx.deleted_by = actor
    tx.delete_reason = reason
    tx.deleted_at = utcnow()
    if closed_shift is not None:
        restate_closed_shift(closed_shift)

    commit_or_raise()
    return tx
