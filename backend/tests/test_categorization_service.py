"""
Tests for financial category tagging.
"""

import threading

import pytest

from cafepos.extensions import db
from cafepos.models import Transaction
from cafepos.services.batching import STATUS_CANCELLED
from cafepos.services.categorization_service import suggest_financial_category, tag_financial_categories
from cafepos.services.classification_service import classify


class TestSuggestFinancialCategory:

    @pytest.mark.parametrize("tx,expected", [
        ({"item": "Printing"}, "Revenue"),
        ({"item": "PC Rental"}, "Revenue"),
        ({"item": "Expenses", "expense_type": "Supplies"}, "OPEX"),
        ({"item": "Expenses", "expense_type": "Salary"}, "OPEX"),
        ({"item": "Expenses", "expense_type": "Equipment"}, "CAPEX"),
        ({"item": "Expenses", "expense_type": "Other", "notes": "Shop renovation"}, "CAPEX"),
        ({"item": "Expenses", "expense_type": "Restock"}, "CAPEX"),
        ({"item": "New Debt"}, None),
        ({"item": "Paid Debt"}, None),
    ])
    def test_suggestions(self, tx, expected):
        assert suggest_financial_category(tx) == expected

    @pytest.mark.parametrize("tx", [
        {"item": "Printing"},
        {"item": "Expenses", "expense_type": "Equipment"},
        {"item": "Expenses", "expense_type": "Supplies"},
    ])
    def test_tag_preserves_bucket(self, tx):
        tagged = dict(tx, financial_category=suggest_financial_category(tx))
        assert classify(tagged).bucket == classify(tx).bucket


class TestTagFinancialCategories:

    def test_tags_untagged_rows(self, db_session, make_tx):
        sale = make_tx(item="Printing", total_cents=100_00)
        expense = make_tx(item="Expenses", expense_type="Equipment", total_cents=5_000_00)
        debt = make_tx(item="New Debt", total_cents=80_00, customer_id="c-1")
        already = make_tx(item="Printing", total_cents=10_00, financial_category="COGS")
        deleted = make_tx(item="Printing", total_cents=10_00, is_deleted=True)
        ids = {name: tx.id for name, tx in
               [("sale", sale), ("expense", expense), ("debt", debt), ("already", already), ("deleted", deleted)]}

        report = tag_financial_categories(page_size=2, batch_size=1)

        assert report.total == 3
        assert report.processed == 3
        assert report.updated == 2
        assert report.skipped == 1

        def category(name):
            return db.session.get(Transaction, ids[name]).financial_category

        assert category("sale") == "Revenue"
        assert category("expense") == "CAPEX"
        assert category("debt") is None
        assert category("already") == "COGS"
        assert category("deleted") is None

    def test_second_run_is_a_no_op(self, db_session, make_tx):
        make_tx(item="Printing", total_cents=100_00)
        make_tx(item="New Debt", total_cents=80_00, customer_id="c-1")

        tag_financial_categories()
        report = tag_financial_categories()

        assert report.updated == 0
        assert report.skipped == 1

    def test_cancelled_before_start(self, db_session, make_tx):
        tx = make_tx(item="Printing", total_cents=100_00)
        cancel = threading.Event()
        cancel.set()

        report = tag_financial_categories(cancel_event=cancel)

        assert report.status == STATUS_CANCELLED
        assert db.session.get(Transaction, tx.id).financial_category is None
