"""
Pytest fixtures for cafepos backend tests.

Provides test database setup, shift/transaction factories, and test client.
"""

from datetime import datetime

import pytest
from cafepos import create_app
from cafepos.extensions import db
from cafepos.models import CatalogItem, Shift, Transaction


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RECON_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    """Create CLI runner."""
    return app.test_cli_runner()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_shift(db_session):
    """
    Factory for shifts. Pass end_time to create an already closed shift
    (totals as given, nothing recomputed).
    """
    counter = {"n": 0}

    def _make(staff_email=None, *, start_time=None, end_time=None, **fields):
        counter["n"] += 1
        shift = Shift(
            staff_email=staff_email or f"staff{counter['n']}@cafe.ph",
            shift_period=fields.pop("shift_period", "Morning"),
            start_time=start_time or datetime(2024, 3, 1, 0, counter["n"]),
            end_time=end_time,
            **fields,
        )
        db_session.add(shift)
        db_session.commit()
        return shift

    return _make


@pytest.fixture(scope='function')
def make_tx(db_session):
    """Factory for transactions written straight to the table (no validation)."""
    def _make(shift=None, item="Printing", total_cents=None, **fields):
        fields.setdefault("timestamp", datetime(2024, 3, 1, 2, 0))
        tx = Transaction(
            shift_id=shift.id if shift is not None else None,
            item=item,
            total_cents=total_cents,
            **fields,
        )
        db_session.add(tx)
        db_session.commit()
        return tx

    return _make


@pytest.fixture(scope='function')
def make_catalog_item(db_session):
    def _make(name, category="Debit", **fields):
        entry = CatalogItem(name=name, category=category, **fields)
        db_session.add(entry)
        db_session.commit()
        return entry

    return _make