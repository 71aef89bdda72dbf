# Overview: Pytest coverage for the JSON API surface and tenant guard.

import pytest


class TestPublicEndpoints:

    def test_health(self, client, db_session):
        response = client.get('/api/health')
        assert response.status_code == 200
        assert response.json['status'] == 'healthy'
        assert response.json['checks']['database']['status'] == 'healthy'


class TestTenantGuard:

    @pytest.mark.parametrize('method,path', [
        ('get', '/api/sales/'),
        ('post', '/api/sales/'),
        ('get', '/api/agenda/'),
        ('get', '/api/notifications/'),
        ('get', '/api/card-machines/'),
        ('get', '/api/finance/receivables'),
    ])
    def test_requires_tenant(self, client, db_session, method, path):
        response = getattr(client, method)(path, json={} if method == 'post' else None)
        assert response.status_code == 401
        assert response.json == {'error': 'Unauthorized'}

    def test_unknown_tenant(self, client, db_session):
        response = client.get('/api/sales/', headers={'X-Tenant-Id': '999999'})
        assert response.status_code == 401

    def test_inactive_tenant(self, client, db_session, tenant_a):
        tenant_a.is_active = False
        db_session.commit()
        response = client.get('/api/sales/', headers={'X-Tenant-Id': str(tenant_a.id)})
        assert response.status_code == 401


class TestSalesApi:

    def test_create_and_fetch(self, client, headers_a, product_a):
        response = client.post('/api/sales/', headers=headers_a, json={
            'items': [{'type': 'product', 'product_id': product_a.id, 'quantity': 2}],
            'payment_method': 'DINHEIRO',
        })
        assert response.status_code == 201
        assert response.json['success'] is True
        sale = response.json['sale']
        assert sale['total_amount_cents'] == 2000

        detail = client.get(f"/api/sales/{sale['id']}", headers=headers_a)
        assert detail.status_code == 200
        assert len(detail.json['sale']['transactions']) == 2

    def test_validation_error(self, client, headers_a, product_a):
        response = client.post('/api/sales/', headers=headers_a, json={
            'items': [{'type': 'product', 'product_id': product_a.id, 'quantity': 50}],
            'payment_method': 'DINHEIRO',
        })
        assert response.status_code == 400
        assert 'Insufficient stock' in response.json['error']
        assert response.json['details']['items'][0]['stock_quantity'] == 10

    def test_other_tenant_sale_is_not_found(self, client, headers_a, tenant_b, product_a):
        created = client.post('/api/sales/', headers=headers_a, json={
            'items': [{'type': 'product', 'product_id': product_a.id, 'quantity': 1}],
            'payment_method': 'DINHEIRO',
        })
        sale_id = created.json['sale']['id']
        response = client.get(f'/api/sales/{sale_id}', headers={'X-Tenant-Id': str(tenant_b.id)})
        assert response.status_code == 404


class TestAgendaApi:

    def test_lifecycle(self, client, headers_a, service_a):
        created = client.post('/api/agenda/', headers=headers_a, json={
            'title': 'Haircut',
            'start_date': '2026-01-10T09:00:00Z',
            'service_id': service_a.id,
        })
        assert created.status_code == 201
        event_id = created.json['event']['id']
        assert created.json['event']['payment_status'] == 'PENDING'

        receivables = client.get('/api/finance/receivables', headers=headers_a)
        assert [tx['amount_cents'] for tx in receivables.json['transactions']] == [5000]

        completed = client.post(f'/api/agenda/{event_id}/attendance', headers=headers_a,
                                json={'status': 'COMPLETED'})
        assert completed.status_code == 200

        alerts = client.get('/api/notifications/payment-alerts', headers=headers_a)
        assert [a['real_event_id'] for a in alerts.json['alerts']] == [event_id]

        confirmed = client.post(f'/api/agenda/{event_id}/confirm', headers=headers_a)
        assert confirmed.status_code == 200
        assert confirmed.json['transaction']['status'] == 'paid'

        # The paid event resolves its alert on the next read
        alerts = client.get('/api/notifications/payment-alerts', headers=headers_a)
        assert alerts.json['alerts'] == []

    def test_attendance_requires_status(self, client, headers_a):
        response = client.post('/api/agenda/1/attendance', headers=headers_a, json={})
        assert response.status_code == 400

    def test_conflicting_transition(self, client, headers_a):
        created = client.post('/api/agenda/', headers=headers_a, json={
            'title': 'Visit', 'start_date': '2026-01-10T09:00:00',
        })
        event_id = created.json['event']['id']
        client.post(f'/api/agenda/{event_id}/attendance', headers=headers_a, json={'status': 'CANCELLED'})
        response = client.post(f'/api/agenda/{event_id}/attendance', headers=headers_a,
                               json={'status': 'COMPLETED'})
        assert response.status_code == 409


class TestNotificationsApi:

    def test_reconcile_endpoint(self, client, headers_a):
        response = client.post('/api/notifications/reconcile', headers=headers_a)
        assert response.status_code == 200
        assert response.json == {'success': True, 'updated': 0}

    def test_summary_without_rows(self, client, headers_a):
        response = client.get('/api/notifications/summary?date=2026-03-02', headers=headers_a)
        assert response.status_code == 200
        assert response.json == {'summary': None}

    def test_invalid_date(self, client, headers_a):
        response = client.get('/api/notifications/?date=not-a-date', headers=headers_a)
        assert response.status_code == 400


class TestCardMachinesApi:

    def test_create_and_list(self, client, headers_a):
        created = client.post('/api/card-machines/', headers=headers_a, json={
            'name': 'PagSeguro',
            'settlement_delay_days': 1,
            'rates': [{'method_code': 'PIX', 'fee_rate': '0.0099'}],
        })
        assert created.status_code == 201
        assert created.json['machine']['rates'][0]['method_code'] == 'PIX'

        listed = client.get('/api/card-machines/', headers=headers_a)
        assert [m['name'] for m in listed.json['machines']] == ['PagSeguro']


class TestFinanceApi:

    def test_manual_payable_flow(self, client, headers_a):
        created = client.post('/api/finance/transactions', headers=headers_a, json={
            'description': 'Rent',
            'type': 'expense',
            'amount_cents': 150000,
            'date': '2026-02-05',
        })
        assert created.status_code == 201
        tx_id = created.json['transaction']['id']

        payables = client.get('/api/finance/payables', headers=headers_a)
        assert [tx['id'] for tx in payables.json['transactions']] == [tx_id]

        confirmed = client.post(f'/api/finance/transactions/{tx_id}/confirm', headers=headers_a)
        assert confirmed.status_code == 200
        assert confirmed.json['transaction']['paid_at'] is not None

        again = client.post(f'/api/finance/transactions/{tx_id}/confirm', headers=headers_a)
        assert again.status_code == 409

    def test_invalid_type(self, client, headers_a):
        response = client.post('/api/finance/transactions', headers=headers_a, json={
            'description': 'Oops', 'type': 'transfer', 'amount_cents': 10,
        })
        assert response.status_code == 400

    def test_purchase_invoice(self, client, headers_a):
        response = client.post('/api/finance/purchase-invoices', headers=headers_a, json={
            'items': [{'new_product': {'name': 'Gel'}, 'quantity': 2, 'raw_unit_cost_cents': 500}],
        })
        assert response.status_code == 201
        listed = client.get('/api/finance/purchase-invoices', headers=headers_a)
        assert len(listed.json['invoices']) == 1
