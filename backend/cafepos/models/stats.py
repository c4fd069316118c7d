from __future__ import annotations

from ..extensions import db
from cafepos.time_utils import to_utc_z


class DailyStat(db.Model):
    """Per-day sales/expense summary, rebuilt in bulk from transactions."""
    __tablename__ = "stats_daily"

    date = db.Column(db.String(10), primary_key=True)  # YYYY-MM-DD, business timezone
    sales_cents = db.Column(db.Integer, nullable=False, default=0)
    expenses_cents = db.Column(db.Integer, nullable=False, default=0)
    tx_count = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "sales_cents": self.sales_cents,
            "expenses_cents": self.expenses_cents,
            "tx_count": self.tx_count,
            "updated_at": to_utc_z(self.updated_at),
        }
