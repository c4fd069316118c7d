from __future__ import annotations

from ..extensions import db


class CatalogItem(db.Model):
    """
    Service/retail item or expense type offered at the counter.

    category is the legacy ledger side: "Debit" for things sold, "Credit"
    for expense types. Staff may change it after sales were recorded, which
    is exactly what the shift auditor looks for.
    """
    __tablename__ = "catalog_items"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_catalog_items_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    category = db.Column(db.String(16), nullable=False, default="Debit")
    financial_category = db.Column(db.String(32), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "financial_category": self.financial_category,
            "is_active": self.is_active,
        }
