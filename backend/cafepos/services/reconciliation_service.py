# Overview: Bulk backfill of stored shift payment splits from transaction history.

"""
Shift Totals Backfill

WHY: Shifts closed by older clients carry a wrong or missing
cash/GCash/receivables split. Replaying the shift closer's arithmetic over
the stored history repairs them.

DESIGN:
- Closed shifts only, paged by (start_time, id); each shift's transactions
  are streamed in pages into a ShiftTally, never loaded whole
- The stored pc_rental_total_cents stands in for the entered rental figure
- Only shifts whose computed split differs are written, so a second run on
  unchanged data writes nothing
- Writes go out in sequential batches; a batch that keeps failing aborts
  the run and reports how far it got
"""

from __future__ import annotations

from datetime import datetime
from functools import partial

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Shift, Transaction
from .batching import (
    STATUS_ABORTED,
    STATUS_CANCELLED,
    BatchWriter,
    RunReport,
    is_cancelled,
    iter_pages,
    setting,
)
from .concurrency import PersistenceError
from .shift_service import ReconciliationResult, ShiftTally


PAYMENT_FIELDS = ("total_cash_cents", "total_gcash_cents", "total_ar_cents")


def recompute_shift(shift_id: int, pc_rental_cents: int, *, page_size: int, policy: str | None = None) -> ReconciliationResult:
    """Replay the shift closer over a shift's stored transactions."""
    tally = ShiftTally()
    query = db.session.query(Transaction).filter(Transaction.shift_id == shift_id)
    for page in iter_pages(query, id_column=Transaction.id, page_size=page_size):
        tally.add_all(page)
    return tally.finalize(pc_rental_cents, policy=policy)


def _write_payment_split(shift_id: int, values: dict) -> None:
    db.session.execute(
        update(Shift)
        .where(Shift.id == shift_id)
        .values(**values, version_id=Shift.version_id + 1)
        .execution_options(synchronize_session=False)
    )


def backfill_shift_totals(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    page_size: int | None = None,
    batch_size: int | None = None,
    cancel_event=None,
    max_attempts: int | None = None,
    policy: str | None = None,
) -> RunReport:
    """
    Recompute total_cash/total_gcash/total_ar for closed shifts started in
    [start, end] and overwrite the ones that differ.

    Returns:
        RunReport. status COMPLETED, CANCELLED (cancel_event set between
        pages; committed batches stay) or ABORTED (a batch kept failing;
        processed counts the shifts handled before the first lost write).
    """
    page_size = setting("RECON_PAGE_SIZE", page_size)
    writer = BatchWriter(
        batch_size=setting("RECON_BATCH_SIZE", batch_size),
        attempts=setting("RECON_COMMIT_ATTEMPTS", max_attempts),
        backoff_base=current_app.config.get("RECON_RETRY_BACKOFF", 0.1),
        label="backfill",
    )
    report = RunReport(operation="backfill_shift_totals")

    query = db.session.query(Shift).filter(Shift.end_time.isnot(None))
    if start:
        query = query.filter(Shift.start_time >= start)
    if end:
        query = query.filter(Shift.start_time <= end)

    # (shift_id, position in run) for every write not yet committed
    pending: list[tuple[int, int]] = []
    current_id = None

    try:
        report.total = query.count()

        for page in iter_pages(query, id_column=Shift.id, key_column=Shift.start_time, page_size=page_size):
            if is_cancelled(cancel_event):
                report.status = STATUS_CANCELLED
                break

            snapshot = [
                (
                    s.id,
                    s.pc_rental_total_cents or 0,
                    {name: getattr(s, name) for name in PAYMENT_FIELDS},
                    s.close_summary is not None,
                )
                for s in page
            ]

            for shift_id, rental, stored, has_summary in snapshot:
                current_id = shift_id
                try:
                    result = recompute_shift(shift_id, rental, page_size=page_size, policy=policy)
                except (ValueError, TypeError) as exc:
                    report.record_error(shift_id, str(exc))
                    report.skipped += 1
                    report.processed += 1
                    continue

                computed = {name: getattr(result, name) for name in PAYMENT_FIELDS}
                if computed != stored:
                    values = dict(computed)
                    if has_summary:
                        values["close_summary"] = result.to_dict()
                    pending.append((shift_id, report.processed))
                    report.updated += 1
                    report.processed += 1
                    writer.add(partial(_write_payment_split, shift_id, values))
                    if not writer.pending:
                        pending.clear()
                else:
                    report.processed += 1

            current_app.logger.info(
                "backfill: %d of %d shifts processed, %d queued for update",
                report.processed, report.total, report.updated,
            )

        writer.flush()
        pending.clear()

    except (PersistenceError, SQLAlchemyError) as exc:
        db.session.rollback()
        report.status = STATUS_ABORTED
        if pending:
            first_lost_id, first_lost_position = pending[0]
            report.updated -= len(pending)
            report.processed = first_lost_position
            report.stopped_at = first_lost_id
        else:
            report.stopped_at = current_id
        report.message = (
            f"processed {report.processed} of {report.total}, "
            f"stopped at shift {report.stopped_at}: {exc}"
        )
        current_app.logger.error("backfill aborted: %s", report.message)
        report.batches_committed = writer.batches_committed
        return report

    report.batches_committed = writer.batches_committed
    if report.status == STATUS_CANCELLED:
        report.stopped_at = current_id
        report.message = f"cancelled after {report.processed} of {report.total} shifts"
    else:
        report.message = f"processed {report.processed} of {report.total}, updated {report.updated}"
    current_app.logger.info("backfill: %s", report.message)
    return report
