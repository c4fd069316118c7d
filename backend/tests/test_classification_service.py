"""
Tests for the transaction classifier.

Pure functions: no app or database needed.
"""

import pytest

from cafepos.services.classification_service import (
    BUCKET_DEBT_ISSUED,
    BUCKET_DEBT_PAID,
    BUCKET_EXPENSE,
    BUCKET_SALE,
    BUCKET_SKIP,
    BUCKETS,
    METHOD_CASH,
    METHOD_CHARGE,
    METHOD_GCASH,
    classify,
    expense_label,
    is_capital_expense,
    normalize_payment_method,
    sale_label,
    tx_amount_cents,
)


# =============================================================================
# BUCKETS
# =============================================================================

class TestClassify:
    """Item text, explicit tags and deletion flags."""

    @pytest.mark.parametrize("item,bucket", [
        ("Expenses", BUCKET_EXPENSE),
        ("New Debt", BUCKET_DEBT_ISSUED),
        ("Paid Debt", BUCKET_DEBT_PAID),
        ("Printing", BUCKET_SALE),
        ("PC Rental", BUCKET_SALE),
        ("", BUCKET_SALE),
        (None, BUCKET_SALE),
    ])
    def test_item_text(self, item, bucket):
        assert classify({"item": item, "total_cents": 100}).bucket == bucket

    def test_item_match_is_exact(self):
        # Only the reserved spellings are special
        assert classify({"item": "expenses"}).bucket == BUCKET_SALE
        assert classify({"item": "New debt"}).bucket == BUCKET_SALE

    def test_deleted_is_skipped(self):
        result = classify({"item": "Printing", "is_deleted": True, "payment_method": "GCash"})
        assert result.bucket == BUCKET_SKIP
        assert result.skipped
        assert result.payment_method == METHOD_GCASH

    def test_voided_is_skipped(self):
        assert classify({"item": "Expenses", "voided": True}).skipped

    def test_revenue_tag_beats_item_text(self):
        assert classify({"item": "Expenses", "financial_category": "Revenue"}).bucket == BUCKET_SALE

    @pytest.mark.parametrize("category", ["OPEX", "CAPEX", "COGS", "InventoryAsset"])
    def test_expense_tags(self, category):
        assert classify({"item": "Ink Refill", "financial_category": category}).bucket == BUCKET_EXPENSE

    def test_unknown_tag_falls_back_to_item(self):
        assert classify({"item": "Paid Debt", "financial_category": "Misc"}).bucket == BUCKET_DEBT_PAID

    def test_accepts_orm_like_objects(self):
        class Row:
            item = "New Debt"
            payment_method = "Charge"
            is_deleted = False

        result = classify(Row())
        assert result.bucket == BUCKET_DEBT_ISSUED
        assert result.payment_method == METHOD_CHARGE


class TestDocumentShape:
    """Documents use camelCase keys and peso amounts."""

    def test_deleted_document_is_skipped(self):
        tx = {"item": "Printing", "total": 100, "paymentMethod": "GCash", "isDeleted": True}
        result = classify(tx)
        assert result.skipped
        assert result.payment_method == METHOD_GCASH
        assert tx_amount_cents(tx) == 100_00

    def test_financial_category_key(self):
        assert classify({"item": "Ink Refill", "financialCategory": "OPEX"}).bucket == BUCKET_EXPENSE

    def test_expense_type_key(self):
        tx = {"item": "Expenses", "expenseType": "Supplies", "total": 30}
        assert expense_label(tx, classify(tx).bucket) == "Expense: Supplies"

    def test_snake_case_wins_when_both_present(self):
        assert classify({"item": "Printing", "is_deleted": False, "isDeleted": True}).bucket == BUCKET_SALE


class TestPaymentMethod:

    @pytest.mark.parametrize("raw,expected", [
        ("Cash", METHOD_CASH),
        ("GCash", METHOD_GCASH),
        ("gcash", METHOD_GCASH),
        ("Charge", METHOD_CHARGE),
        ("Pay Later", METHOD_CHARGE),
        (None, METHOD_CASH),
        ("", METHOD_CASH),
        ("Bitcoin", METHOD_CASH),
    ])
    def test_normalization(self, raw, expected):
        assert normalize_payment_method(raw) == expected


# =============================================================================
# AMOUNTS & LABELS
# =============================================================================

class TestAmount:

    def test_total_wins(self):
        assert tx_amount_cents({"total_cents": 500, "quantity": 3, "unit_price_cents": 100}) == 500

    def test_quantity_times_price(self):
        assert tx_amount_cents({"quantity": 3, "unit_price_cents": 250}) == 750

    def test_missing_amount_is_zero(self):
        assert tx_amount_cents({"quantity": 3}) == 0
        assert tx_amount_cents({}) == 0

    def test_zero_total_is_not_missing(self):
        assert tx_amount_cents({"total_cents": 0, "quantity": 2, "unit_price_cents": 100}) == 0

    def test_document_total_in_pesos(self):
        assert tx_amount_cents({"item": "Printing", "total": 100}) == 100_00
        assert tx_amount_cents({"item": "Printing", "total": "12.505"}) == 12_51

    def test_document_price_times_quantity(self):
        assert tx_amount_cents({"quantity": 3, "price": 2.5}) == 7_50
        assert tx_amount_cents({"quantity": "2", "unitPrice": "15"}) == 30_00

    def test_document_bad_amount_is_zero(self):
        assert tx_amount_cents({"total": "n/a"}) == 0
        assert tx_amount_cents({"quantity": 2, "price": None}) == 0


class TestPartitionTotality:
    """Every kept peso lands in exactly one bucket."""

    def test_bucket_sums_equal_total(self):
        transactions = [
            {"item": "Printing", "total_cents": 10000},
            {"item": "Expenses", "expense_type": "Supplies", "total_cents": 3000},
            {"item": "New Debt", "total_cents": 8000, "payment_method": "Charge"},
            {"item": "Paid Debt", "total_cents": 2500},
            {"item": "PC Rental", "total_cents": 20000, "payment_method": "GCash"},
            {"item": "Scan", "quantity": 4, "unit_price_cents": 500},
            {"item": "Expenses", "financial_category": "Revenue", "total_cents": 700},
            {"item": "Printing", "total_cents": 999, "is_deleted": True},
        ]

        sums = {bucket: 0 for bucket in BUCKETS}
        for tx in transactions:
            result = classify(tx)
            if not result.skipped:
                sums[result.bucket] += tx_amount_cents(tx)

        kept = [tx for tx in transactions if not tx.get("is_deleted")]
        assert sum(sums.values()) == sum(tx_amount_cents(tx) for tx in kept)
        assert sums[BUCKET_SALE] == 10000 + 20000 + 2000 + 700
        assert sums[BUCKET_EXPENSE] == 3000
        assert sums[BUCKET_DEBT_ISSUED] == 8000
        assert sums[BUCKET_DEBT_PAID] == 2500


class TestLabels:

    def test_sale_label(self):
        assert sale_label({"item": "Printing"}) == "Printing"
        assert sale_label({"item": None}) == "Unlabeled"

    def test_expense_label(self):
        assert expense_label({"item": "Expenses", "expense_type": "Supplies"}, BUCKET_EXPENSE) == "Expense: Supplies"
        assert expense_label({"item": "Expenses"}, BUCKET_EXPENSE) == "Expense: Other"
        assert expense_label({"item": "New Debt"}, BUCKET_DEBT_ISSUED) == "New Debt"

    def test_capital_expense(self):
        assert is_capital_expense({"financial_category": "CAPEX"})
        assert is_capital_expense({"expense_type": "Equipment Purchase"})
        assert not is_capital_expense({"expense_type": "Supplies"})

    @pytest.mark.parametrize("tx", [
        {"expense_type": "Restock"},
        {"expense_type": "Shop Renovation"},
        {"expense_type": "Other", "notes": "inventory for the new shelf"},
        {"expenseType": "Construction"},
        {"financial_category": "InventoryAsset", "expense_type": "Supplies"},
    ])
    def test_capital_keywords(self, tx):
        assert is_capital_expense(tx)

    def test_explicit_opex_tag_beats_keywords(self):
        assert not is_capital_expense({"financial_category": "OPEX", "expense_type": "Equipment repair"})
