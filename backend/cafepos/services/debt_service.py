# Overview: Per-customer receivable balances (debt issued minus debt paid).

"""
Customer Debt Balances

balance = sum(DEBT_ISSUED) - sum(DEBT_PAID) over a customer's kept
transactions. Buckets come from the classifier, so deleted or voided rows
never count and a tag that turned a row into a sale removes it from the
balance too.

Read-only. Pages through transactions instead of loading a customer's
whole history.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Transaction
from ..validation import ValidationError
from .batching import iter_pages, setting
from .classification_service import (
    BUCKET_DEBT_ISSUED,
    BUCKET_DEBT_PAID,
    classify,
    tx_amount_cents,
)


# Balances under one peso are rounding residue, not debt
MIN_OUTSTANDING_CENTS = 100


@dataclass
class DebtBalance:
    customer_id: str
    customer_name: str | None = None
    issued_cents: int = 0
    paid_cents: int = 0
    transaction_count: int = 0

    @property
    def balance_cents(self) -> int:
        return self.issued_cents - self.paid_cents

    def add(self, tx) -> None:
        bucket = classify(tx).bucket
        if bucket == BUCKET_DEBT_ISSUED:
            self.issued_cents += tx_amount_cents(tx)
        elif bucket == BUCKET_DEBT_PAID:
            self.paid_cents += tx_amount_cents(tx)
        else:
            return
        self.transaction_count += 1
        if tx.customer_name:
            self.customer_name = tx.customer_name

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "issued_cents": self.issued_cents,
            "paid_cents": self.paid_cents,
            "balance_cents": self.balance_cents,
            "transaction_count": self.transaction_count,
        }


def _kept_debt_rows():
    return db.session.query(Transaction).filter(
        Transaction.customer_id.isnot(None),
        Transaction.is_deleted.is_(False),
        Transaction.voided.is_(False),
    )


def customer_debt_balance(customer_id: str, *, page_size: int | None = None) -> DebtBalance:
    customer_id = (customer_id or "").strip()
    if not customer_id:
        raise ValidationError("customer_id is required")

    balance = DebtBalance(customer_id=customer_id)
    query = _kept_debt_rows().filter(Transaction.customer_id == customer_id)
    for page in iter_pages(query, id_column=Transaction.id, page_size=setting("RECON_PAGE_SIZE", page_size)):
        for tx in page:
            balance.add(tx)
    return balance


def outstanding_debts(
    *,
    min_balance_cents: int = MIN_OUTSTANDING_CENTS,
    page_size: int | None = None,
) -> list[DebtBalance]:
    """Every customer owing at least min_balance_cents, largest balance first."""
    balances: dict[str, DebtBalance] = {}
    query = _kept_debt_rows()
    for page in iter_pages(query, id_column=Transaction.id, page_size=setting("RECON_PAGE_SIZE", page_size)):
        for tx in page:
            entry = balances.get(tx.customer_id)
            if entry is None:
                entry = balances[tx.customer_id] = DebtBalance(customer_id=tx.customer_id)
            entry.add(tx)

    owing = [b for b in balances.values() if b.balance_cents >= min_balance_cents]
    owing.sort(key=lambda b: (-b.balance_cents, b.customer_id))
    return owing
