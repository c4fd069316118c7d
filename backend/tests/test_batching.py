import unittest
from datetime import datetime

from flask import Flask
from sqlalchemy.exc import OperationalError

from cafepos.extensions import db
from cafepos.models import Transaction
from cafepos.services.batching import BatchWriter, RunReport, is_cancelled, iter_pages, setting
from cafepos.services.concurrency import PersistenceError, run_with_retry


class BatchingTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = Flask(__name__)
        cls.app.config.update(
            SECRET_KEY="test",
            SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
            SQLALCHEMY_TRACK_MODIFICATIONS=False,
            TESTING=True,
            RECON_PAGE_SIZE=500,
        )
        db.init_app(cls.app)
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        from cafepos import models  # noqa: F401
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(Transaction).delete()
        db.session.commit()

    def _add(self, count, timestamp=None):
        for n in range(count):
            db.session.add(Transaction(
                item=f"Item {n}",
                total_cents=100,
                timestamp=timestamp or datetime(2024, 3, 1, 0, n % 60),
            ))
        db.session.commit()

    def test_iter_pages_visits_every_row_once(self):
        self._add(7)
        query = db.session.query(Transaction)

        pages = list(iter_pages(query, id_column=Transaction.id, page_size=3))

        self.assertEqual([len(p) for p in pages], [3, 3, 1])
        ids = [tx.id for page in pages for tx in page]
        self.assertEqual(len(ids), len(set(ids)))

    def test_iter_pages_keyset_with_ties(self):
        # Every row shares the same timestamp; the id breaks the tie
        self._add(5, timestamp=datetime(2024, 3, 1, 8, 0))
        query = db.session.query(Transaction)

        pages = list(iter_pages(query, id_column=Transaction.id, key_column=Transaction.timestamp, page_size=2))

        ids = [tx.id for page in pages for tx in page]
        self.assertEqual(len(ids), 5)
        self.assertEqual(ids, sorted(ids))

    def test_iter_pages_rejects_bad_page_size(self):
        with self.assertRaises(ValueError):
            list(iter_pages(db.session.query(Transaction), id_column=Transaction.id, page_size=0))

    def test_batch_writer_commits_in_batches(self):
        self._add(5)
        ids = [tx.id for tx in db.session.query(Transaction).all()]
        writer = BatchWriter(batch_size=2, attempts=1, backoff_base=0, label="test")

        for tx_id in ids:
            writer.add(lambda tx_id=tx_id: db.session.query(Transaction).filter_by(id=tx_id).update({"notes": "done"}))
        writer.flush()

        self.assertEqual(writer.batches_committed, 3)
        self.assertEqual(writer.ops_committed, 5)
        self.assertEqual(db.session.query(Transaction).filter_by(notes="done").count(), 5)

    def test_run_with_retry_gives_up(self):
        calls = []

        def always_locked():
            calls.append(1)
            raise OperationalError("UPDATE", {}, Exception("database is locked"))

        with self.assertRaises(PersistenceError):
            run_with_retry(always_locked, attempts=2, backoff_base=0)
        self.assertEqual(len(calls), 2)

    def test_run_with_retry_recovers(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise OperationalError("UPDATE", {}, Exception("database is locked"))
            return "ok"

        self.assertEqual(run_with_retry(flaky, attempts=3, backoff_base=0), "ok")

    def test_setting_override(self):
        self.assertEqual(setting("RECON_PAGE_SIZE"), 500)
        self.assertEqual(setting("RECON_PAGE_SIZE", 10), 10)

    def test_run_report(self):
        report = RunReport(operation="test")
        report.record_error(3, "boom")
        self.assertEqual(report.to_dict()["errors"], [{"id": 3, "error": "boom"}])
        self.assertFalse(is_cancelled(None))


if __name__ == "__main__":
    unittest.main()
