"""
Pytest fixtures for the back-office tests.

Provides test database setup, tenant isolation fixtures, and test client.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from app import create_app
from app.extensions import db
from app.models import (
    CardMachine,
    CardMachineRate,
    FinancialAccount,
    Product,
    Service,
    Supplier,
    Tenant,
    User,
)


SALE_DATE = datetime(2026, 1, 10, 12, 0, 0)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RECONCILE_ON_READ': True,
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
def tenant_a(db_session):
    """Create Tenant A (first tenant)."""
    tenant = Tenant(name="Tenant A - Acme Studio", code="ACME", is_active=True)
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Create Tenant B (second tenant)."""
    tenant = Tenant(name="Tenant B - Beta Salon", code="BETA", is_active=True)
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def user_a(db_session, tenant_a):
    user = User(tenant_id=tenant_a.id, name="Ana", email="ana@acme.test", role="ADMIN")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def product_a(db_session, tenant_a):
    """Stock-managed product in Tenant A: price 1000, cost 400, 10 in stock."""
    product = Product(
        tenant_id=tenant_a.id,
        name="Widget",
        sku="WID-001",
        price_cents=1000,
        average_cost_cents=400,
        manage_stock=True,
        stock_quantity=10,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session, tenant_b):
    product = Product(
        tenant_id=tenant_b.id,
        name="Foreign Widget",
        price_cents=2000,
        stock_quantity=5,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def service_a(db_session, tenant_a):
    service = Service(tenant_id=tenant_a.id, name="Haircut", price_cents=5000)
    db_session.add(service)
    db_session.commit()
    return service


@pytest.fixture(scope='function')
def carrier_a(db_session, tenant_a):
    carrier = Supplier(tenant_id=tenant_a.id, name="FastShip", is_carrier=True)
    db_session.add(carrier)
    db_session.commit()
    return carrier


@pytest.fixture(scope='function')
def account_a(db_session, tenant_a):
    account = FinancialAccount(tenant_id=tenant_a.id, name="Main account")
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def machine_a(db_session, tenant_a):
    """Card machine settling 5 days after each installment, installment by installment."""
    machine = CardMachine(
        tenant_id=tenant_a.id,
        name="Stone",
        settlement_delay_days=5,
        settlement_mode="PARCELADO",
    )
    machine.rates.append(CardMachineRate(method_code="DEBITO", fee_rate=Decimal("0.02")))
    machine.rates.append(CardMachineRate(method_code="CREDITO_3X", fee_rate=Decimal("0.05")))
    machine.rates.append(CardMachineRate(method_code="PIX", fee_rate=Decimal("0.01")))
    db_session.add(machine)
    db_session.commit()
    return machine


@pytest.fixture(scope='function')
def headers_a(tenant_a, user_a):
    """Tenant context headers for Tenant A, acting as User A."""
    return {'X-Tenant-Id': str(tenant_a.id), 'X-User-Id': str(user_a.id)}
