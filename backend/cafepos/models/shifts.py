from __future__ import annotations

from ..extensions import db
from cafepos.time_utils import to_utc_z


class Shift(db.Model):
    """
    A bounded work session for one staff member.

    LIFECYCLE:
    - OPEN: end_time is NULL, transactions may attach to it
    - CLOSED: end_time set by the shift closer together with every total

    The totals are written exactly once, at close, in a single conditional
    write. The bulk reconciler may later repair the payment split
    (total_cash/total_gcash/total_ar) but never reopens a shift.

    pc_rental_total_cents is the operator-entered aggregate from the external
    timer system. It is NOT the sum of logged "PC Rental" transactions.
    """
    __tablename__ = "shifts"
    __table_args__ = (
        # At most one open shift per staff member
        db.Index(
            "uq_shifts_one_open_per_staff",
            "staff_email",
            unique=True,
            sqlite_where=db.text("end_time IS NULL"),
            postgresql_where=db.text("end_time IS NULL"),
        ),
        db.Index("ix_shifts_start_id", "start_time", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    staff_email = db.Column(db.String(255), nullable=False, index=True)
    shift_period = db.Column(db.String(32), nullable=True)  # Morning, Afternoon, Evening

    start_time = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    # Totals (all amounts in cents), zero until close
    pc_rental_total_cents = db.Column(db.Integer, nullable=False, default=0)
    services_total_cents = db.Column(db.Integer, nullable=False, default=0)
    expenses_total_cents = db.Column(db.Integer, nullable=False, default=0)
    system_total_cents = db.Column(db.Integer, nullable=False, default=0)

    # Payment method split
    total_cash_cents = db.Column(db.Integer, nullable=True)
    total_gcash_cents = db.Column(db.Integer, nullable=True)
    total_ar_cents = db.Column(db.Integer, nullable=True)

    # Full reconciliation snapshot written at close (breakdowns included)
    close_summary = db.Column(db.JSON, nullable=True)

    # Consolidation: counted denominations, e.g. {"bill_1000": 2, "coin_5": 3}
    denominations = db.Column(db.JSON, nullable=True)
    last_consolidated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "staff_email": self.staff_email,
            "shift_period": self.shift_period,
            "start_time": to_utc_z(self.start_time),
            "end_time": to_utc_z(self.end_time) if self.end_time else None,
            "is_open": self.is_open,
            "pc_rental_total_cents": self.pc_rental_total_cents,
            "services_total_cents": self.services_total_cents,
            "expenses_total_cents": self.expenses_total_cents,
            "system_total_cents": self.system_total_cents,
            "total_cash_cents": self.total_cash_cents,
            "total_gcash_cents": self.total_gcash_cents,
            "total_ar_cents": self.total_ar_cents,
            "denominations": self.denominations,
            "last_consolidated_at": to_utc_z(self.last_consolidated_at) if self.last_consolidated_at else None,
            "version_id": self.version_id,
        }
