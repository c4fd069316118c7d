# Overview: The one transaction classifier every total in the system is computed with.

"""
Transaction Classification

WHY: Every figure (shift close, backfill, daily stats, tagging) must agree on
what a transaction is. Two hand-written classifiers that drift apart produce
shift totals that differ between screens, so there is exactly one here.

RULES (first match wins):
1. is_deleted or voided -> SKIP (excluded from every total)
2. financial_category set -> Revenue is a SALE; OPEX, CAPEX, COGS and
   InventoryAsset are an EXPENSE. The tag beats the item text.
3. item text: "Expenses" -> EXPENSE, "New Debt" -> DEBT_ISSUED,
   "Paid Debt" -> DEBT_PAID, anything else -> SALE
4. payment method: Cash, GCash or Charge verbatim; legacy "Pay Later" is
   Charge; missing or unknown is Cash

Accepts ORM rows and plain mappings. Mappings may use the Transaction
column names or the document shape (camelCase keys, amounts in pesos
under total, price or unitPrice).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation


BUCKET_SALE = "SALE"
BUCKET_EXPENSE = "EXPENSE"
BUCKET_DEBT_ISSUED = "DEBT_ISSUED"
BUCKET_DEBT_PAID = "DEBT_PAID"
BUCKET_SKIP = "SKIP"

BUCKETS = (BUCKET_SALE, BUCKET_EXPENSE, BUCKET_DEBT_ISSUED, BUCKET_DEBT_PAID)

METHOD_CASH = "Cash"
METHOD_GCASH = "GCash"
METHOD_CHARGE = "Charge"

ITEM_EXPENSES = "Expenses"
ITEM_NEW_DEBT = "New Debt"
ITEM_PAID_DEBT = "Paid Debt"
ITEM_PC_RENTAL = "PC Rental"

REVENUE_CATEGORIES = frozenset({"Revenue"})
EXPENSE_CATEGORIES = frozenset({"OPEX", "CAPEX", "COGS", "InventoryAsset"})
CAPITAL_CATEGORIES = frozenset({"CAPEX", "InventoryAsset"})

CAPITAL_KEYWORDS = (
    "asset", "capital", "capex", "equipment", "construction", "renovation", "restock", "inventory",
)

_DOCUMENT_KEYS = {
    "is_deleted": "isDeleted",
    "payment_method": "paymentMethod",
    "financial_category": "financialCategory",
    "expense_type": "expenseType",
    "customer_id": "customerId",
    "customer_name": "customerName",
    "shift_id": "shiftId",
}

_METHOD_ALIASES = {
    "cash": METHOD_CASH,
    "gcash": METHOD_GCASH,
    "charge": METHOD_CHARGE,
    "pay later": METHOD_CHARGE,
}

_ITEM_BUCKETS = {
    ITEM_EXPENSES: BUCKET_EXPENSE,
    ITEM_NEW_DEBT: BUCKET_DEBT_ISSUED,
    ITEM_PAID_DEBT: BUCKET_DEBT_PAID,
}


@dataclass(frozen=True)
class Classification:
    bucket: str
    payment_method: str

    @property
    def skipped(self) -> bool:
        return self.bucket == BUCKET_SKIP


def field_value(tx, name: str):
    """Read a field from an ORM row or a mapping; missing reads as None."""
    if isinstance(tx, Mapping):
        value = tx.get(name)
        if value is None and name in _DOCUMENT_KEYS:
            value = tx.get(_DOCUMENT_KEYS[name])
        return value
    return getattr(tx, name, None)


def pesos_to_cents(value) -> int | None:
    """Document amounts are pesos; non-numeric reads as None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        pesos = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    if not pesos.is_finite():
        return None
    return int((pesos * 100).to_integral_value(rounding=ROUND_HALF_UP))


def normalize(value) -> str:
    return str(value if value is not None else "").strip().lower()


def normalize_payment_method(value) -> str:
    return _METHOD_ALIASES.get(normalize(value), METHOD_CASH)


def is_excluded(tx) -> bool:
    return bool(field_value(tx, "is_deleted")) or bool(field_value(tx, "voided"))


def is_pc_rental(tx) -> bool:
    """A logged, itemized rental sale (distinct from the shift's entered aggregate)."""
    return field_value(tx, "item") == ITEM_PC_RENTAL


def tx_amount_cents(tx) -> int:
    """
    Authoritative amount of a transaction in cents.

    total_cents when present, else quantity * unit_price_cents when both
    are present, else 0. Documents carry pesos in total and price (or
    unitPrice) instead.
    """
    total = field_value(tx, "total_cents")
    if total is not None:
        return int(total)
    quantity = field_value(tx, "quantity")
    price = field_value(tx, "unit_price_cents")
    if quantity is not None and price is not None:
        return int(quantity) * int(price)
    if not isinstance(tx, Mapping):
        return 0

    total = pesos_to_cents(tx.get("total"))
    if total is not None:
        return total
    price = tx.get("price")
    if price is None:
        price = tx.get("unitPrice")
    price = pesos_to_cents(price)
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        return 0
    if price is None:
        return 0
    return quantity * price


def classify(tx) -> Classification:
    payment_method = normalize_payment_method(field_value(tx, "payment_method"))

    if is_excluded(tx):
        return Classification(BUCKET_SKIP, payment_method)

    category = field_value(tx, "financial_category")
    if category:
        if category in REVENUE_CATEGORIES:
            return Classification(BUCKET_SALE, payment_method)
        if category in EXPENSE_CATEGORIES:
            return Classification(BUCKET_EXPENSE, payment_method)
        # Unknown tag: fall through to the item text

    bucket = _ITEM_BUCKETS.get(field_value(tx, "item"), BUCKET_SALE)
    return Classification(bucket, payment_method)


def is_capital_expense(tx) -> bool:
    """
    Asset purchases stay out of profit-and-loss expense figures.

    An explicit tag decides. Untagged rows are matched on expense type and
    notes, the same text tagging reads, so tagging never moves a row in or
    out of the expense figure.
    """
    category = field_value(tx, "financial_category")
    if category in CAPITAL_CATEGORIES:
        return True
    if category in EXPENSE_CATEGORIES:
        return False
    text = f"{normalize(field_value(tx, 'expense_type'))} {normalize(field_value(tx, 'notes'))}"
    return any(word in text for word in CAPITAL_KEYWORDS)


def sale_label(tx) -> str:
    return field_value(tx, "item") or "Unlabeled"


def expense_label(tx, bucket: str) -> str:
    if bucket == BUCKET_DEBT_ISSUED:
        return ITEM_NEW_DEBT
    item = field_value(tx, "item")
    if item == ITEM_EXPENSES or not item:
        return f"Expense: {field_value(tx, 'expense_type') or 'Other'}"
    # Tagged expense recorded under a catalog item name
    return f"Expense: {field_value(tx, 'expense_type') or item}"
