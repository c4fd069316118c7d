# Overview: Rebuilds the per-day sales/expense summary table from transaction history.

from __future__ import annotations

from functools import partial

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import DailyStat, Transaction
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
    tx_amount_cents,
)
from .concurrency import PersistenceError
from cafepos.time_utils import business_day_key, utcnow


def accumulate_day(stat: dict, tx) -> None:
    """
    Fold one kept transaction into its day.

    Every kept transaction counts; sales add to sales, operating expenses
    to expenses, debts add no amount. Capital purchases are left out of
    the expense figure.
    """
    result = classify(tx)
    stat["tx_count"] += 1
    amount = tx_amount_cents(tx)
    if result.bucket == BUCKET_SALE:
        stat["sales_cents"] += amount
    elif result.bucket == BUCKET_EXPENSE and not is_capital_expense(tx):
        stat["expenses_cents"] += abs(amount)


def _upsert_day(day: str, stat: dict, updated_at) -> None:
    db.session.merge(DailyStat(
        date=day,
        sales_cents=stat["sales_cents"],
        expenses_cents=stat["expenses_cents"],
        tx_count=stat["tx_count"],
        updated_at=updated_at,
    ))


def rebuild_daily_stats(
    *,
    page_size: int | None = None,
    batch_size: int | None = None,
    cancel_event=None,
    max_attempts: int | None = None,
) -> RunReport:
    """
    Scan every transaction in timestamp order and rewrite stats_daily.

    Days are cut in BUSINESS_TIMEZONE. Deleted, voided and timestamp-less
    transactions are skipped. A cancelled scan writes nothing: half a scan
    would leave days undercounted.
    """
    page_size = setting("RECON_PAGE_SIZE", page_size)
    tz_name = current_app.config["BUSINESS_TIMEZONE"]
    writer = BatchWriter(
        batch_size=setting("RECON_BATCH_SIZE", batch_size),
        attempts=setting("RECON_COMMIT_ATTEMPTS", max_attempts),
        backoff_base=current_app.config.get("RECON_RETRY_BACKOFF", 0.1),
        label="daily_stats",
    )
    report = RunReport(operation="rebuild_daily_stats")
    daily: dict[str, dict] = {}

    query = db.session.query(Transaction).filter(Transaction.timestamp.isnot(None))

    try:
        report.total = query.count()

        for page in iter_pages(query, id_column=Transaction.id, key_column=Transaction.timestamp, page_size=page_size):
            if is_cancelled(cancel_event):
                report.status = STATUS_CANCELLED
                break

            for tx in page:
                report.processed += 1
                if classify(tx).skipped:
                    report.skipped += 1
                    continue
                day = business_day_key(tx.timestamp, tz_name)
                stat = daily.setdefault(day, {"sales_cents": 0, "expenses_cents": 0, "tx_count": 0})
                accumulate_day(stat, tx)

            current_app.logger.info("daily_stats: scanned %d of %d transactions", report.processed, report.total)

        if report.status == STATUS_CANCELLED:
            report.message = f"cancelled after scanning {report.processed} of {report.total}; nothing written"
            current_app.logger.info("daily_stats: %s", report.message)
            return report

        written_at = utcnow()
        for day in sorted(daily):
            writer.add(partial(_upsert_day, day, daily[day], written_at))
            report.updated += 1
        writer.flush()

    except (PersistenceError, SQLAlchemyError) as exc:
        db.session.rollback()
        report.status = STATUS_ABORTED
        report.updated = writer.ops_committed
        report.batches_committed = writer.batches_committed
        days = sorted(daily)
        if report.updated < len(days):
            report.stopped_at = days[report.updated]
        report.message = (
            f"wrote {report.updated} of {len(days)} days, stopped at {report.stopped_at}: {exc}"
        )
        current_app.logger.error("daily_stats aborted: %s", report.message)
        return report

    report.batches_committed = writer.batches_committed
    report.message = f"scanned {report.processed} transactions, wrote {report.updated} days"
    current_app.logger.info("daily_stats: %s", report.message)
    return report
