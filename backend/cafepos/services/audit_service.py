# Overview: Read-only shift audit comparing the legacy list-view and detail-view classifications.

"""
Shift Audit

WHY: The shift list and the shift detail/receipt used to classify
transactions with two separately written rules, and their totals drifted
apart (most often after a catalog item's category was changed from Debit to
Credit after it had been sold). Everything now goes through the one
classifier, but this report replays both legacy rules so any regression
back into divergence shows up per transaction.

LEGACY RULES:
- A (list view): catalog lookup by normalized item name. Debit is a sale,
  Credit an expense. Names not in the catalog: "expenses" is an expense,
  anything else a sale.
- B (detail view/receipt): text only. "Expenses" and "New Debt" are
  expenses, anything else a sale.

Never writes. Disagreements are reported as DataIntegrityWarning entries,
never raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from flask import current_app, has_app_context

from ..extensions import db
from ..models import CatalogItem
from .classification_service import (
    ITEM_EXPENSES,
    ITEM_NEW_DEBT,
    classify,
    field_value,
    is_excluded,
    normalize,
    normalize_payment_method,
    tx_amount_cents,
)
from .shift_service import ShiftTally, get_shift, shift_transactions


LEGACY_SALE = "SALE"
LEGACY_EXPENSE = "EXPENSE"
LEGACY_OTHER = "OTHER"


class DataIntegrityWarning(UserWarning):
    """Two classification paths disagree about a transaction."""

    def __init__(self, transaction_id, item, list_view: str, detail_view: str):
        self.transaction_id = transaction_id
        self.item = item
        self.list_view = list_view
        self.detail_view = detail_view
        super().__init__(
            f"Transaction {transaction_id} ({item}): list view says {list_view}, "
            f"detail view says {detail_view}"
        )


@dataclass
class AuditRow:
    transaction_id: object
    item: str | None
    amount_cents: int
    payment_method: str
    list_view: str
    detail_view: str
    canonical: str
    mismatch: bool

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "item": self.item,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "list_view": self.list_view,
            "detail_view": self.detail_view,
            "canonical": self.canonical,
            "mismatch": self.mismatch,
        }


@dataclass
class AuditReport:
    shift_id: object
    pc_rental_total_cents: int
    rows: list[AuditRow] = field(default_factory=list)
    warnings: list[DataIntegrityWarning] = field(default_factory=list)
    totals: dict = field(default_factory=dict)

    @property
    def mismatches(self) -> list[AuditRow]:
        return [row for row in self.rows if row.mismatch]

    @property
    def has_discrepancy(self) -> bool:
        return bool(self.totals.get("diff_sales_cents") or self.totals.get("diff_expenses_cents") or self.mismatches)

    def to_dict(self) -> dict:
        return {
            "shift_id": self.shift_id,
            "pc_rental_total_cents": self.pc_rental_total_cents,
            "rows": [row.to_dict() for row in self.rows],
            "mismatches": [row.transaction_id for row in self.mismatches],
            "warnings": [str(w) for w in self.warnings],
            "totals": dict(self.totals),
            "has_discrepancy": self.has_discrepancy,
        }


def build_catalog_map(catalog_items: Iterable) -> dict[str, str]:
    """Normalized item name -> normalized legacy category ("debit"/"credit")."""
    mapping = {}
    for entry in catalog_items:
        name = normalize(field_value(entry, "name"))
        if name:
            mapping[name] = normalize(field_value(entry, "category"))
    return mapping


def list_view_rule(tx, catalog_map: dict[str, str]) -> str:
    item = normalize(field_value(tx, "item"))
    category = catalog_map.get(item)
    if not category:
        category = "credit" if item == "expenses" else "debit"
    if category == "debit":
        return LEGACY_SALE
    if category == "credit":
        return LEGACY_EXPENSE
    return LEGACY_OTHER


def detail_view_rule(tx) -> str:
    if field_value(tx, "item") in (ITEM_EXPENSES, ITEM_NEW_DEBT):
        return LEGACY_EXPENSE
    return LEGACY_SALE


def audit_rows(transactions: Iterable, catalog_items: Iterable, pc_rental_cents: int, *, shift_id=None) -> AuditReport:
    """Pure core of the audit: no database access."""
    catalog_map = build_catalog_map(catalog_items)
    report = AuditReport(shift_id=shift_id, pc_rental_total_cents=pc_rental_cents)
    tally = ShiftTally()

    sales_a = sales_b = expenses_a = expenses_b = 0

    for tx in transactions:
        if is_excluded(tx):
            continue

        amount = tx_amount_cents(tx)
        list_view = list_view_rule(tx, catalog_map)
        detail_view = detail_view_rule(tx)
        tally.add(tx)

        row = AuditRow(
            transaction_id=field_value(tx, "id"),
            item=field_value(tx, "item"),
            amount_cents=amount,
            payment_method=normalize_payment_method(field_value(tx, "payment_method")),
            list_view=list_view,
            detail_view=detail_view,
            canonical=classify(tx).bucket,
            mismatch=list_view != detail_view,
        )
        report.rows.append(row)

        if list_view == LEGACY_SALE:
            sales_a += amount
        elif list_view == LEGACY_EXPENSE:
            expenses_a += amount
        if detail_view == LEGACY_SALE:
            sales_b += amount
        else:
            expenses_b += amount

        if row.mismatch:
            warning = DataIntegrityWarning(row.transaction_id, row.item, list_view, detail_view)
            report.warnings.append(warning)
            if has_app_context():
                current_app.logger.warning("shift audit %s: %s", shift_id, warning)

    canonical = tally.finalize(pc_rental_cents)
    report.totals = {
        "sales_list_view_cents": sales_a + pc_rental_cents,
        "sales_detail_view_cents": sales_b + pc_rental_cents,
        "expenses_list_view_cents": expenses_a,
        "expenses_detail_view_cents": expenses_b,
        "diff_sales_cents": sales_a - sales_b,
        "diff_expenses_cents": expenses_a - expenses_b,
        "canonical_services_total_cents": canonical.services_total_cents,
        "canonical_expenses_total_cents": canonical.expenses_total_cents,
        "canonical_system_total_cents": canonical.system_total_cents,
    }
    return report


def audit_shift(shift_id: int) -> AuditReport:
    """Audit one shift against the current catalog. Read-only."""
    shift = get_shift(shift_id)
    catalog = db.session.query(CatalogItem).all()
    return audit_rows(
        shift_transactions(shift.id),
        catalog,
        shift.pc_rental_total_cents or 0,
        shift_id=shift.id,
    )
