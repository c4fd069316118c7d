"""
Tests for customer debt balances.
"""

import pytest

from cafepos.services.debt_service import customer_debt_balance, outstanding_debts
from cafepos.validation import ValidationError


class TestCustomerDebtBalance:

    def test_issued_minus_paid(self, db_session, make_tx):
        make_tx(item="New Debt", total_cents=500_00, customer_id="c-1", customer_name="Juan")
        make_tx(item="New Debt", total_cents=80_00, customer_id="c-1")
        make_tx(item="Paid Debt", total_cents=200_00, customer_id="c-1", payment_method="GCash")
        make_tx(item="New Debt", total_cents=999_00, customer_id="c-2")

        balance = customer_debt_balance("c-1", page_size=2)

        assert balance.issued_cents == 580_00
        assert balance.paid_cents == 200_00
        assert balance.balance_cents == 380_00
        assert balance.transaction_count == 3
        assert balance.customer_name == "Juan"

    def test_deleted_and_voided_rows_do_not_count(self, db_session, make_tx):
        make_tx(item="New Debt", total_cents=100_00, customer_id="c-1")
        make_tx(item="New Debt", total_cents=700_00, customer_id="c-1", is_deleted=True)
        make_tx(item="Paid Debt", total_cents=50_00, customer_id="c-1", voided=True)

        assert customer_debt_balance("c-1").balance_cents == 100_00

    def test_only_debt_buckets_count(self, db_session, make_tx):
        make_tx(item="New Debt", total_cents=100_00, customer_id="c-1")
        make_tx(item="Printing", total_cents=40_00, customer_id="c-1")
        # A sale tag takes the row out of the debt buckets
        make_tx(item="New Debt", total_cents=300_00, customer_id="c-1", financial_category="Revenue")

        balance = customer_debt_balance("c-1")

        assert balance.issued_cents == 100_00
        assert balance.transaction_count == 1

    def test_unknown_customer_owes_nothing(self, db_session):
        balance = customer_debt_balance("nobody")
        assert balance.balance_cents == 0
        assert balance.to_dict()["transaction_count"] == 0

    @pytest.mark.parametrize("customer_id", ["", "   ", None])
    def test_customer_required(self, db_session, customer_id):
        with pytest.raises(ValidationError):
            customer_debt_balance(customer_id)


class TestOutstandingDebts:

    def test_lists_owing_customers_largest_first(self, db_session, make_tx):
        make_tx(item="New Debt", total_cents=100_00, customer_id="c-1", customer_name="Ana")
        make_tx(item="New Debt", total_cents=300_00, customer_id="c-2", customer_name="Ben")
        make_tx(item="Paid Debt", total_cents=50_00, customer_id="c-2")
        make_tx(item="New Debt", total_cents=40_00, customer_id="c-3")
        make_tx(item="Paid Debt", total_cents=40_00, customer_id="c-3")
        # Overpaid: negative balance is not outstanding
        make_tx(item="Paid Debt", total_cents=10_00, customer_id="c-4")

        debts = outstanding_debts(page_size=2)

        assert [(d.customer_id, d.balance_cents) for d in debts] == [("c-2", 250_00), ("c-1", 100_00)]
        assert debts[0].customer_name == "Ben"

    def test_sub_peso_residue_is_not_outstanding(self, db_session, make_tx):
        make_tx(item="New Debt", total_cents=50, customer_id="c-1")

        assert outstanding_debts() == []
        assert [d.customer_id for d in outstanding_debts(min_balance_cents=1)] == ["c-1"]

    def test_rows_without_customer_are_ignored(self, db_session, make_tx):
        make_tx(item="New Debt", total_cents=100_00)
        assert outstanding_debts() == []
