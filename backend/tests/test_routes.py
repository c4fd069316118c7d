"""
HTTP tests for the shift, transaction, maintenance and system endpoints.
"""

from datetime import datetime

from cafepos.extensions import db
from cafepos.models import Shift


# =============================================================================
# SHIFTS
# =============================================================================

class TestShiftRoutes:

    def _open(self, client, staff="ana@cafe.ph"):
        response = client.post('/api/shifts', json={'staff_email': staff, 'shift_period': 'Morning'})
        assert response.status_code == 201
        return response.json['shift']['id']

    def _record(self, client, shift_id, **fields):
        response = client.post('/api/transactions', json=dict(shift_id=shift_id, **fields))
        assert response.status_code == 201, response.json
        return response.json['transaction']['id']

    def test_open_close_flow(self, client, db_session):
        shift_id = self._open(client)
        self._record(client, shift_id, item='Printing', total_cents=100_00, payment_method='Cash')
        self._record(client, shift_id, item='Expenses', expense_type='Supplies', total_cents=30_00)

        response = client.post(f'/api/shifts/{shift_id}/close', json={'pc_rental_total': '500'})

        assert response.status_code == 200
        recon = response.json['reconciliation']
        assert recon['system_total_cents'] == 570_00
        assert recon['total_cash_cents'] == 600_00
        assert recon['expected_cash_on_hand_cents'] == 570_00
        assert response.json['shift']['is_open'] is False

    def test_close_twice_returns_same_result(self, client, db_session):
        shift_id = self._open(client)
        self._record(client, shift_id, item='Printing', total_cents=100_00)

        first = client.post(f'/api/shifts/{shift_id}/close', json={'pc_rental_total_cents': 500_00})
        second = client.post(f'/api/shifts/{shift_id}/close', json={'pc_rental_total_cents': 1})

        assert second.status_code == 200
        assert first.json == second.json

    def test_blank_rental_is_rejected(self, client, db_session):
        shift_id = self._open(client)

        response = client.post(f'/api/shifts/{shift_id}/close', json={'pc_rental_total': ''})

        assert response.status_code == 400
        assert db.session.get(Shift, shift_id).is_open

    def test_second_open_conflicts(self, client, db_session):
        self._open(client)
        response = client.post('/api/shifts', json={'staff_email': 'ana@cafe.ph'})
        assert response.status_code == 409

    def test_unknown_shift(self, client, db_session):
        assert client.get('/api/shifts/999').status_code == 404
        assert client.post('/api/shifts/999/close', json={'pc_rental_total_cents': 0}).status_code == 404

    def test_get_shift_preview(self, client, db_session):
        shift_id = self._open(client)
        self._record(client, shift_id, item='Printing', total_cents=100_00)

        response = client.get(f'/api/shifts/{shift_id}')

        assert response.status_code == 200
        assert response.json['reconciliation']['services_total_cents'] == 100_00

    def test_force_end(self, client, db_session):
        shift_id = self._open(client)
        assert client.post(f'/api/shifts/{shift_id}/force-end').status_code == 200
        assert client.post(f'/api/shifts/{shift_id}/force-end').status_code == 409

    def test_audit(self, client, db_session, make_catalog_item):
        shift_id = self._open(client)
        tx_id = self._record(client, shift_id, item='Ink Refill', total_cents=150_00)
        make_catalog_item('Ink Refill', 'Credit')

        response = client.get(f'/api/shifts/{shift_id}/audit')

        assert response.status_code == 200
        assert response.json['mismatches'] == [tx_id]
        assert response.json['has_discrepancy'] is True

    def test_consolidate(self, client, db_session):
        shift_id = self._open(client)
        self._record(client, shift_id, item='Printing', total_cents=100_00)
        client.post(f'/api/shifts/{shift_id}/close', json={'pc_rental_total_cents': 0})

        response = client.post(f'/api/shifts/{shift_id}/consolidate', json={'denominations': {'bill_100': 1}})

        assert response.status_code == 200
        assert response.json['consolidation']['variance_cents'] == 0

    def test_consolidate_bad_denominations(self, client, db_session):
        shift_id = self._open(client)
        response = client.post(f'/api/shifts/{shift_id}/consolidate', json={'denominations': {'bill_100': -2}})
        assert response.status_code == 400


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TestTransactionRoutes:

    def test_record_on_closed_shift_conflicts(self, client, db_session, make_shift):
        shift = make_shift(end_time=datetime(2024, 3, 1, 9, 0))
        response = client.post('/api/transactions', json={'shift_id': shift.id, 'item': 'Printing', 'total_cents': 100})
        assert response.status_code == 409

    def test_invalid_payload(self, client, db_session):
        response = client.post('/api/transactions', json={'item': 'Printing', 'total_cents': 'ten'})
        assert response.status_code == 400
        assert 'error' in response.json

    def test_edit_and_delete(self, client, db_session, make_shift, make_tx):
        tx = make_tx(make_shift(), item='Printing', total_cents=100_00)
        tx_id = tx.id

        edited = client.patch(f'/api/transactions/{tx_id}', json={
            'actor': 'admin@cafe.ph', 'reason': 'typo', 'changes': {'total_cents': 90_00},
        })
        deleted = client.delete(f'/api/transactions/{tx_id}', json={'actor': 'admin@cafe.ph', 'reason': 'dup'})

        assert edited.status_code == 200
        assert edited.json['transaction']['total_cents'] == 90_00
        assert deleted.status_code == 200
        assert deleted.json['transaction']['is_deleted'] is True

    def test_closed_shift_correction_needs_flag(self, client, db_session, make_shift, make_tx):
        shift = make_shift()
        tx = make_tx(shift, item='Printing', total_cents=100_00)
        shift_id, tx_id = shift.id, tx.id
        client.post(f'/api/shifts/{shift_id}/close', json={'pc_rental_total_cents': 0})
        body = {'actor': 'admin@cafe.ph', 'reason': 'typo', 'changes': {'total_cents': 80_00}}

        refused = client.patch(f'/api/transactions/{tx_id}', json=body)
        corrected = client.patch(f'/api/transactions/{tx_id}', json=dict(body, correct_closed=True))

        assert refused.status_code == 409
        assert corrected.status_code == 200
        assert db.session.get(Shift, shift_id).system_total_cents == 80_00

    def test_delete_requires_reason(self, client, db_session, make_shift, make_tx):
        tx = make_tx(make_shift(), item='Printing', total_cents=100_00)
        response = client.delete(f'/api/transactions/{tx.id}', json={'actor': 'admin@cafe.ph'})
        assert response.status_code == 400

    def test_unknown_transaction(self, client, db_session):
        response = client.delete('/api/transactions/404', json={'actor': 'a', 'reason': 'r'})
        assert response.status_code == 404


# =============================================================================
# MAINTENANCE & SYSTEM
# =============================================================================

class TestMaintenanceRoutes:

    def test_backfill(self, client, db_session, make_shift, make_tx):
        shift = make_shift(end_time=datetime(2024, 3, 1, 17, 0), pc_rental_total_cents=500_00)
        make_tx(shift, item='Printing', total_cents=100_00)

        response = client.post('/api/maintenance/backfill', json={'start': '2024-01-01T00:00:00Z'})

        assert response.status_code == 200
        assert response.json['report']['status'] == 'COMPLETED'
        assert response.json['report']['updated'] == 1

    def test_backfill_bad_window(self, client, db_session):
        response = client.post('/api/maintenance/backfill', json={'start': 'yesterday'})
        assert response.status_code == 400

    def test_bad_page_size(self, client, db_session):
        response = client.post('/api/maintenance/daily-stats', json={'page_size': 0})
        assert response.status_code == 400

    def test_daily_stats(self, client, db_session, make_tx):
        make_tx(item='Printing', total_cents=100_00)
        response = client.post('/api/maintenance/daily-stats')
        assert response.status_code == 200
        assert response.json['report']['updated'] == 1

    def test_tag_categories(self, client, db_session, make_tx):
        make_tx(item='Printing', total_cents=100_00)
        response = client.post('/api/maintenance/tag-categories', json={})
        assert response.status_code == 200
        assert response.json['report']['updated'] == 1


class TestDebtRoutes:

    def test_outstanding(self, client, db_session, make_tx):
        make_tx(item="New Debt", total_cents=300_00, customer_id="c-1", customer_name="Ana")
        make_tx(item="Paid Debt", total_cents=100_00, customer_id="c-1")
        make_tx(item="New Debt", total_cents=50_00, customer_id="c-2")

        response = client.get('/api/debts')

        assert response.status_code == 200
        assert [d['customer_id'] for d in response.json['debts']] == ['c-1', 'c-2']
        assert response.json['total_outstanding_cents'] == 250_00

    def test_negative_threshold_rejected(self, client, db_session):
        assert client.get('/api/debts?min_balance_cents=-1').status_code == 400

    def test_customer_balance(self, client, db_session, make_tx):
        make_tx(item="New Debt", total_cents=80_00, customer_id="c-1")
        make_tx(item="New Debt", total_cents=20_00, customer_id="c-1", is_deleted=True)

        response = client.get('/api/debts/c-1')

        assert response.status_code == 200
        assert response.json['debt']['balance_cents'] == 80_00


class TestSystemRoutes:

    def test_health(self, client, db_session):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.json['status'] == 'healthy'
        assert response.json['checks']['database']['details']['shifts'] == 0

    def test_health_degraded_when_backfill_needed(self, client, db_session, make_shift):
        make_shift(end_time=datetime(2024, 3, 1, 17, 0))
        response = client.get('/health')
        assert response.status_code == 200
        assert response.json['status'] == 'degraded'

    def test_version(self, client, db_session):
        response = client.get('/version')
        assert response.status_code == 200
        assert response.json['business_timezone'] == 'Asia/Manila'
