# Overview: Paging and batched-write helpers shared by the bulk maintenance runs.

"""
Bulk run plumbing.

WHY: Backfill, daily stats and category tagging all walk an unbounded
collection. They read it one bounded page at a time (keyset cursor, never
OFFSET) and write in bounded batches, one commit per batch, in order.

DESIGN:
- A failed batch is retried as a whole; exhausting the retries aborts the
  run but keeps every batch committed before it.
- Cancellation is checked between pages only. Nothing is rolled back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterator

from flask import current_app
from sqlalchemy import and_, or_

from ..extensions import db
from .concurrency import run_with_retry


STATUS_COMPLETED = "COMPLETED"
STATUS_CANCELLED = "CANCELLED"
STATUS_ABORTED = "ABORTED"


@dataclass
class RunReport:
    """Outcome of one bulk run. Partial completion is a normal outcome."""
    operation: str
    status: str = STATUS_COMPLETED
    total: int = 0
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    batches_committed: int = 0
    stopped_at: object = None
    errors: list[dict] = field(default_factory=list)
    message: str | None = None

    def record_error(self, item_id, error: str) -> None:
        self.errors.append({"id": item_id, "error": error})

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "status": self.status,
            "total": self.total,
            "processed": self.processed,
            "updated": self.updated,
            "skipped": self.skipped,
            "batches_committed": self.batches_committed,
            "stopped_at": self.stopped_at,
            "errors": list(self.errors),
            "message": self.message,
        }


def setting(name: str, override=None):
    """Explicit argument wins, then app config."""
    if override is not None:
        return override
    return current_app.config[name]


def is_cancelled(cancel_event) -> bool:
    return cancel_event is not None and cancel_event.is_set()


def iter_pages(query, *, id_column, page_size: int, key_column=None) -> Iterator[list]:
    """
    Yield successive pages of query ordered by (key_column, id_column).

    Keyset pagination: each page starts strictly after the last row of the
    previous one, so rows updated between pages are neither skipped nor
    seen twice. key_column must be non-null for every row in query.
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")

    order = [id_column] if key_column is None else [key_column, id_column]
    last_key = None
    last_id = None

    while True:
        page_query = query
        if last_id is not None:
            if key_column is None:
                page_query = page_query.filter(id_column > last_id)
            else:
                page_query = page_query.filter(or_(
                    key_column > last_key,
                    and_(key_column == last_key, id_column > last_id),
                ))

        rows = page_query.order_by(*order).limit(page_size).all()
        if not rows:
            return

        # Capture the cursor before handing rows out; a commit in the
        # caller expires them.
        tail = rows[-1]
        last_id = getattr(tail, id_column.key)
        if key_column is not None:
            last_key = getattr(tail, key_column.key)

        yield rows

        if len(rows) < page_size:
            return


class BatchWriter:
    """
    Collects write operations and commits them batch_size at a time.

    Each operation is a zero-argument callable that issues its statement on
    db.session. A batch is re-applied from scratch on retry.
    """

    def __init__(self, *, batch_size: int, attempts: int, backoff_base: float, label: str = "batch"):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.batch_size = batch_size
        self.attempts = attempts
        self.backoff_base = backoff_base
        self.label = label
        self.pending: list[Callable[[], None]] = []
        self.batches_committed = 0
        self.ops_committed = 0

    def add(self, op: Callable[[], None]) -> None:
        self.pending.append(op)
        if len(self.pending) >= self.batch_size:
            self.flush()

    def flush(self) -> None:
        if not self.pending:
            return
        ops = list(self.pending)

        def _apply():
            for op in ops:
                op()
            db.session.commit()

        run_with_retry(_apply, attempts=self.attempts, backoff_base=self.backoff_base)

        self.pending = []
        self.batches_committed += 1
        self.ops_committed += len(ops)
        current_app.logger.info(
            "%s: committed batch %d (%d writes)", self.label, self.batches_committed, len(ops)
        )
