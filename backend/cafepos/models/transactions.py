from __future__ import annotations

from ..extensions import db
from cafepos.time_utils import to_utc_z


class Transaction(db.Model):
    """
    One financial event: a sale line, an expense, a debt issued or a debt
    payment.

    RESERVED ITEMS: "Expenses", "New Debt", "Paid Debt" and "PC Rental"
    drive classification. Every other item is an ordinary sale line.

    SOFT DELETE: rows are never hard-deleted. is_deleted (or the legacy
    payroll voided flag) removes a row from every total; actor and reason
    are recorded on the row.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_timestamp_id", "timestamp", "id"),
        db.Index("ix_transactions_shift_timestamp", "shift_id", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=True, index=True)

    item = db.Column(db.String(128), nullable=False)
    quantity = db.Column(db.Integer, nullable=True)
    unit_price_cents = db.Column(db.Integer, nullable=True)
    total_cents = db.Column(db.Integer, nullable=True)  # Authoritative amount when present

    payment_method = db.Column(db.String(16), nullable=True)  # Cash, GCash, Charge (NULL = Cash)
    expense_type = db.Column(db.String(64), nullable=True)
    financial_category = db.Column(db.String(32), nullable=True, index=True)

    # Debt transactions only
    customer_id = db.Column(db.String(64), nullable=True, index=True)
    customer_name = db.Column(db.String(128), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    # GCash verification during consolidation: Verified, Pending, Rejected
    reconciliation_status = db.Column(db.String(16), nullable=True)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    voided = db.Column(db.Boolean, nullable=False, default=False)

    timestamp = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    # Audit trail for edits and soft deletes
    edited_by = db.Column(db.String(255), nullable=True)
    edit_reason = db.Column(db.String(255), nullable=True)
    edited_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_by = db.Column(db.String(255), nullable=True)
    delete_reason = db.Column(db.String(255), nullable=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    shift = db.relationship("Shift", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_id": self.shift_id,
            "item": self.item,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "expense_type": self.expense_type,
            "financial_category": self.financial_category,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "notes": self.notes,
            "reconciliation_status": self.reconciliation_status,
            "is_deleted": self.is_deleted,
            "voided": self.voided,
            "timestamp": to_utc_z(self.timestamp),
            "edited_by": self.edited_by,
            "edit_reason": self.edit_reason,
            "deleted_by": self.deleted_by,
            "delete_reason": self.delete_reason,
        }
