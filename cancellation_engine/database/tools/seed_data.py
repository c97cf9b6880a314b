"""
Script to seed the database with a demo organization.
Run this after creating tables.
"""

from datetime import datetime, timedelta

from cancellation_engine.core.config import settings
from cancellation_engine.database.schemas.db_models import (
    CancellationRequests,
    Customers,
    Orders,
    ReviewQueueItems,
    Rules,
    RuleTemplates,
)
from cancellation_engine.database.tools.create_tables import create_tables
from cancellation_engine.database.tools.db_connection import get_db_session
from cancellation_engine.engine.rules import DEFAULT_RULE_TEMPLATES, ensure_default_templates


def seed_data():
    """Seed database with a demo organization, its orders and a starter rule"""
    db = get_db_session()
    org = settings.DEFAULT_ORGANIZATION_ID
    now = datetime.utcnow()

    try:
        # Clear existing data
        db.query(ReviewQueueItems).delete()
        db.query(CancellationRequests).delete()
        db.query(Rules).delete()
        db.query(RuleTemplates).delete()
        db.query(Orders).delete()
        db.query(Customers).delete()

        alice = Customers(email="alice@example.com", name="Alice Shah")
        bob = Customers(email="bob@example.com", name="Bob Rivera")
        db.add_all([alice, bob])
        db.flush()

        orders = [
            Orders(
                order_number="#1001",
                organization_id=org,
                customer_id=alice.id,
                status="open",
                fulfillment_status="unfulfilled",
                payment_status="paid",
                total_amount=2400,
                placed_at=now - timedelta(minutes=5),
            ),
            Orders(
                order_number="#1002",
                organization_id=org,
                customer_id=alice.id,
                status="open",
                fulfillment_status="unfulfilled",
                payment_status="paid",
                total_amount=8500,
                placed_at=now - timedelta(hours=3),
            ),
            Orders(
                order_number="#1003",
                organization_id=org,
                customer_id=bob.id,
                status="closed",
                fulfillment_status="fulfilled",
                payment_status="paid",
                total_amount=64000,
                placed_at=now - timedelta(days=4),
            ),
        ]
        db.add_all(orders)
        db.commit()

        ensure_default_templates(db)

        # Starter rule built from the first default template
        starter = DEFAULT_RULE_TEMPLATES[0]
        template = db.query(RuleTemplates).filter(RuleTemplates.name == starter["name"]).first()
        db.add(
            Rules(
                organization_id=org,
                name=starter["name"],
                description=starter["description"],
                conditions=starter["conditions"],
                actions=starter["actions"],
                priority=1,
                active=True,
                created_from_template_id=template.id if template else None,
            )
        )
        db.commit()

        print(f"✅ Seeded {len(orders)} orders, {len(DEFAULT_RULE_TEMPLATES)} templates and 1 rule for '{org}'")
        for order in orders:
            print(f"   {order.order_number}  id={order.id}  status={order.status}/{order.fulfillment_status}")

    except Exception as e:
        db.rollback()
        print(f"❌ Error seeding data: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    print("Seeding database with demo data...")
    create_tables()
    seed_data()
