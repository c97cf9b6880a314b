"""
Data access helpers shared by the engine operations.

Every helper takes the caller's session so that an operation can compose
several reads and writes into one transaction; none of them commit.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func

from cancellation_engine.core.config import settings
from cancellation_engine.core.errors import NotFoundError
from cancellation_engine.database.schemas.db_models import (
    CancellationRequests,
    Customers,
    Orders,
    ReviewQueueItems,
    Rules,
    RuleTemplates,
)
from cancellation_engine.engine.risk_scorer import CustomerHistory, OrderSummary
from cancellation_engine.utils.logger import get_logger

logger = get_logger(__name__)


def get_cancellation_request(db, request_id: str) -> CancellationRequests:
    request = db.query(CancellationRequests).filter(CancellationRequests.id == request_id).first()
    if request is None:
        raise NotFoundError("Cancellation request", request_id)
    return request


def get_order(db, order_id: str) -> Orders:
    order = db.query(Orders).filter(Orders.id == order_id).first()
    if order is None:
        raise NotFoundError("Order", order_id)
    return order


def find_order_for_customer(
    db, order_number: str, email: str, organization_id: Optional[str] = None
) -> Optional[Orders]:
    """Case-insensitive match on order number and the owning customer's email."""
    query = (
        db.query(Orders)
        .join(Customers, Orders.customer_id == Customers.id)
        .filter(
            func.upper(Orders.order_number) == order_number.upper(),
            func.lower(Customers.email) == email.lower(),
        )
    )
    if organization_id:
        query = query.filter(Orders.organization_id == organization_id)
    return query.order_by(Orders.created_at.desc()).first()


def find_blocking_request(db, order_id: str, statuses) -> Optional[CancellationRequests]:
    """Most recent request on the order whose status is one of ``statuses``."""
    return (
        db.query(CancellationRequests)
        .filter(
            CancellationRequests.order_id == order_id,
            CancellationRequests.status.in_(statuses),
        )
        .order_by(CancellationRequests.created_at.desc())
        .first()
    )


def latest_request_for_order(db, order_id: str) -> Optional[CancellationRequests]:
    return (
        db.query(CancellationRequests)
        .filter(CancellationRequests.order_id == order_id)
        .order_by(CancellationRequests.created_at.desc())
        .first()
    )


def get_review_queue_item(db, item_id: str) -> ReviewQueueItems:
    item = db.query(ReviewQueueItems).filter(ReviewQueueItems.id == item_id).first()
    if item is None:
        raise NotFoundError("Review queue item", item_id)
    return item


def get_rule(db, rule_id: str) -> Rules:
    rule = db.query(Rules).filter(Rules.id == rule_id).first()
    if rule is None:
        raise NotFoundError("Rule", rule_id)
    return rule


def get_rule_template(db, template_id: str) -> RuleTemplates:
    template = db.query(RuleTemplates).filter(RuleTemplates.id == template_id).first()
    if template is None:
        raise NotFoundError("Rule template", template_id)
    return template


def list_rules(db, organization_id: str, active_only: bool = False) -> List[Rules]:
    """Rules in evaluation order: priority, then creation time, then id."""
    query = db.query(Rules).filter(Rules.organization_id == organization_id)
    if active_only:
        query = query.filter(Rules.active.is_(True))
    return query.order_by(Rules.priority.asc(), Rules.created_at.asc(), Rules.id.asc()).all()


def next_rule_priority(db, organization_id: str) -> int:
    highest = (
        db.query(func.max(Rules.priority))
        .filter(Rules.organization_id == organization_id)
        .scalar()
    )
    return (highest or 0) + 1


def increment_rule_usage(db, rule_id: str) -> None:
    """Bump a rule's usage counter as part of the caller's transaction."""
    db.query(Rules).filter(Rules.id == rule_id).update(
        {Rules.usage_count: Rules.usage_count + 1},
        synchronize_session=False,
    )


def find_review_items_for_request(db, request_id: str) -> List[ReviewQueueItems]:
    return (
        db.query(ReviewQueueItems)
        .filter(ReviewQueueItems.cancellation_request_id == request_id)
        .order_by(ReviewQueueItems.created_at.desc())
        .all()
    )


def list_review_items(
    db,
    organization_id: Optional[str] = None,
    review_status: Optional[str] = None,
) -> List[ReviewQueueItems]:
    query = db.query(ReviewQueueItems)
    if organization_id:
        query = query.join(
            CancellationRequests,
            CancellationRequests.id == ReviewQueueItems.cancellation_request_id,
        ).filter(CancellationRequests.organization_id == organization_id)
    if review_status:
        query = query.filter(ReviewQueueItems.review_status == review_status)
    return query.order_by(ReviewQueueItems.created_at.desc()).all()


def load_customer_history(db, customer_id: str, as_of: datetime) -> CustomerHistory:
    """
    Collect a customer's orders and cancellation requests as of a point in time.

    Only records that existed at ``as_of`` are counted, so scoring the same
    request twice gives the same answer even after the customer acts again.
    """
    logger.debug(f"Loading history for customer {customer_id} as of {as_of}")

    order_filter = (
        Orders.customer_id == customer_id,
        (Orders.placed_at.is_(None)) | (Orders.placed_at <= as_of),
    )
    total_orders = db.query(func.count(Orders.id)).filter(*order_filter).scalar() or 0

    recent = (
        db.query(Orders)
        .filter(*order_filter)
        .order_by(Orders.placed_at.desc())
        .limit(settings.RECENT_ORDER_SNAPSHOT_LIMIT)
        .all()
    )

    cancellation_times = [
        row.created_at
        for row in db.query(CancellationRequests.created_at)
        .filter(
            CancellationRequests.customer_id == customer_id,
            CancellationRequests.created_at <= as_of,
        )
        .all()
    ]

    return CustomerHistory(
        total_orders=total_orders,
        cancellation_times=cancellation_times,
        recent_orders=[
            OrderSummary(order_number=o.order_number, amount=o.total_amount or 0.0, date=o.placed_at)
            for o in recent
        ],
    )
