import os
from datetime import datetime

# Point the engine at a private in-memory database before the package reads its settings
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient

from cancellation_engine.database.schemas.db_models import (
    Base,
    CancellationRequests,
    Customers,
    Orders,
    ReviewQueueItems,
    Rules,
)
from cancellation_engine.database.tools.db_connection import engine, get_db_session
from cancellation_engine.main import app

ORG = "test-org"
T0 = datetime(2026, 3, 1, 12, 0, 0)

# --- FIXTURES ---

@pytest.fixture(autouse=True)
def database():
    """Fresh schema for every test"""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """FastAPI Test Client"""
    return TestClient(app)


@pytest.fixture
def make_customer():
    def _make(email="shopper@example.com"):
        db = get_db_session()
        try:
            customer = Customers(email=email, name="Test Shopper")
            db.add(customer)
            db.commit()
            return customer.id
        finally:
            db.close()
    return _make


@pytest.fixture
def make_order(make_customer):
    def _make(
        customer_id=None,
        placed_at=T0,
        status="open",
        fulfillment_status="unfulfilled",
        payment_status="paid",
        total_amount=100.0,
        organization_id=ORG,
        order_number="#1001",
    ):
        customer_id = customer_id or make_customer()
        db = get_db_session()
        try:
            order = Orders(
                order_number=order_number,
                organization_id=organization_id,
                customer_id=customer_id,
                status=status,
                fulfillment_status=fulfillment_status,
                payment_status=payment_status,
                total_amount=total_amount,
                placed_at=placed_at,
            )
            db.add(order)
            db.commit()
            return order.id
        finally:
            db.close()
    return _make


@pytest.fixture
def make_request():
    def _make(order_id, created_at, reason_category="changed_mind", status="pending", initiated_by="customer"):
        db = get_db_session()
        try:
            order = db.get(Orders, order_id)
            request = CancellationRequests(
                order_id=order.id,
                customer_id=order.customer_id,
                organization_id=order.organization_id,
                reason="Test cancellation",
                reason_category=reason_category,
                initiated_by=initiated_by,
                refund_preference="full",
                status=status,
                created_at=created_at,
            )
            db.add(request)
            db.commit()
            return request.id
        finally:
            db.close()
    return _make


@pytest.fixture
def make_rule():
    def _make(
        name="Rule",
        conditions=None,
        action="manual_review",
        priority=1,
        active=True,
        created_at=None,
        organization_id=ORG,
    ):
        db = get_db_session()
        try:
            rule = Rules(
                organization_id=organization_id,
                name=name,
                conditions=conditions if conditions is not None else {},
                actions={"type": action, "notifyCustomer": False, "notifyMerchant": False},
                priority=priority,
                active=active,
                created_at=created_at or datetime.utcnow(),
            )
            db.add(rule)
            db.commit()
            return rule.id
        finally:
            db.close()
    return _make


@pytest.fixture
def fetch():
    """Load a row on a throwaway session; columns stay readable after close"""
    def _fetch(model, row_id):
        db = get_db_session()
        try:
            return db.get(model, row_id)
        finally:
            db.close()
    return _fetch


@pytest.fixture
def review_items_for():
    def _items(request_id):
        db = get_db_session()
        try:
            return (
                db.query(ReviewQueueItems)
                .filter(ReviewQueueItems.cancellation_request_id == request_id)
                .all()
            )
        finally:
            db.close()
    return _items
