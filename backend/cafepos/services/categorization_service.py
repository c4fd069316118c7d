# Overview: One-off tagging of untagged transactions with a financial category.

"""
Financial Category Tagging

WHY: Older transactions carry only item text. Tagging them with an explicit
financial_category (Revenue, OPEX, CAPEX) lets reports separate operating
costs from asset purchases without re-reading the item text.

RULES:
- Expenses: CAPEX when the classifier calls them capital
  (is_capital_expense), otherwise OPEX
- Ordinary sales (PC Rental included): Revenue
- New Debt / Paid Debt: left untagged. The tag outranks the item text in
  the classifier, and no tag value keeps a debt a debt.

A tag never changes what bucket a transaction classifies into.
"""

from __future__ import annotations

from functools import partial

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Transaction
from .batching import (
    STATUS_ABORTED,
    STATUS_CANCELLED,
    BatchWriter,
    RunReport,
    is_cancelled,
    iter_pages,
    setting,
)
from .classification_service import (
    BUCKET_EXPENSE,
    BUCKET_SALE,
    classify,
    is_capital_expense,
)
from .concurrency import PersistenceError


CATEGORY_REVENUE = "Revenue"
CATEGORY_OPEX = "OPEX"
CATEGORY_CAPEX = "CAPEX"


def suggest_financial_category(tx) -> str | None:
    """Category a transaction should carry, or None to leave it untagged."""
    result = classify(tx)
    if result.bucket == BUCKET_SALE:
        return CATEGORY_REVENUE
    if result.bucket == BUCKET_EXPENSE:
        return CATEGORY_CAPEX if is_capital_expense(tx) else CATEGORY_OPEX
    return None


def _write_category(tx_id: int, category: str) -> None:
    db.session.execute(
        update(Transaction)
        .where(Transaction.id == tx_id, Transaction.financial_category.is_(None))
        .values(financial_category=category)
        .execution_options(synchronize_session=False)
    )


def tag_financial_categories(
    *,
    page_size: int | None = None,
    batch_size: int | None = None,
    cancel_event=None,
    max_attempts: int | None = None,
) -> RunReport:
    """
    Tag every untagged, non-deleted transaction that has a suggestion.

    Rows tagged in the meantime are left alone (the write is conditional on
    the tag still being empty). Cancelling keeps the batches already
    committed.
    """
    page_size = setting("RECON_PAGE_SIZE", page_size)
    writer = BatchWriter(
        batch_size=setting("RECON_BATCH_SIZE", batch_size),
        attempts=setting("RECON_COMMIT_ATTEMPTS", max_attempts),
        backoff_base=current_app.config.get("RECON_RETRY_BACKOFF", 0.1),
        label="tag_categories",
    )
    report = RunReport(operation="tag_financial_categories")

    query = db.session.query(Transaction).filter(
        Transaction.financial_category.is_(None),
        Transaction.is_deleted.is_(False),
        Transaction.voided.is_(False),
    )

    last_id = None
    try:
        report.total = query.count()

        for page in iter_pages(query, id_column=Transaction.id, page_size=page_size):
            if is_cancelled(cancel_event):
                report.status = STATUS_CANCELLED
                break

            suggestions = [(tx.id, suggest_financial_category(tx)) for tx in page]
            for tx_id, category in suggestions:
                last_id = tx_id
                report.processed += 1
                if category is None:
                    report.skipped += 1
                    continue
                writer.add(partial(_write_category, tx_id, category))
                report.updated += 1

            current_app.logger.info(
                "tag_categories: %d of %d scanned, %d tagged", report.processed, report.total, report.updated,
            )

        writer.flush()

    except (PersistenceError, SQLAlchemyError) as exc:
        db.session.rollback()
        report.status = STATUS_ABORTED
        report.updated = writer.ops_committed
        report.batches_committed = writer.batches_committed
        report.stopped_at = last_id
        report.message = (
            f"processed {report.processed} of {report.total}, tagged {report.updated}, "
            f"stopped at transaction {last_id}: {exc}"
        )
        current_app.logger.error("tag_categories aborted: %s", report.message)
        return report

    report.batches_committed = writer.batches_committed
    if report.status == STATUS_CANCELLED:
        report.stopped_at = last_id
        report.message = f"cancelled after {report.processed} of {report.total}, tagged {report.updated}"
    else:
        report.message = f"processed {report.processed} of {report.total}, tagged {report.updated}"
    current_app.logger.info("tag_categories: %s", report.message)
    return report
