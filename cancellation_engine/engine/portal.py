"""
Customer-facing request operations: look up, submit, track, withdraw.
"""
import re
from datetime import datetime
from typing import Optional

from cancellation_engine.core.enums import ActionType, OrderStatus, RequestStatus
from cancellation_engine.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from cancellation_engine.core.models import (
    CancellationRequestCreate,
    CancellationRequestOut,
    CancellationStatusResponse,
    LatestRequestSummary,
    OrderLookupResponse,
)
from cancellation_engine.database import db_service
from cancellation_engine.database.schemas.db_models import CancellationRequests, Orders
from cancellation_engine.database.tools.db_connection import get_db_session
from cancellation_engine.utils.logger import get_logger, request_tag

logger = get_logger(__name__)

WITHDRAWN_NOTE = "Withdrawn by customer"

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_OPEN_STATUSES = (RequestStatus.pending.value, RequestStatus.info_requested.value)
_BLOCKING_STATUSES = _OPEN_STATUSES + (RequestStatus.approved.value, RequestStatus.completed.value)
# Closed or archived storefront orders are finished and past cancelling
_SETTLED_ORDER_STATUSES = (OrderStatus.closed.value, OrderStatus.archived.value)


def ineligibility_reason(order: Orders, blocking: Optional[CancellationRequests]) -> Optional[str]:
    """
    Why the order cannot take a new cancellation request, or None if it can.

    ``blocking`` is the order's most recent request in a blocking status.
    """
    if blocking is not None:
        if blocking.status == RequestStatus.completed.value:
            return "This order has already been cancelled"
        return "A cancellation request is already in progress"
    if order.status == OrderStatus.cancelled.value:
        return "This order has already been cancelled"
    if order.status in _SETTLED_ORDER_STATUSES:
        return "Order has already been completed and cannot be cancelled"
    return None


def lookup_order(order_number: str, email: str, organization_id: Optional[str] = None) -> OrderLookupResponse:
    """
    Find a customer's order by order number and email.

    Both values are trimmed and compared case-insensitively. A wrong email
    reads exactly like a wrong order number.

    Raises:
        ValidationError: a value is missing or the email is malformed
        NotFoundError: no order matches both values
    """
    order_number = (order_number or "").strip().upper()
    email = (email or "").strip().lower()
    if not order_number or not email:
        raise ValidationError("Order number and email are required")
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email format")

    db = get_db_session()
    try:
        order = db_service.find_order_for_customer(db, order_number, email, organization_id)
        if order is None:
            logger.info(f"Order lookup missed for {order_number}")
            raise NotFoundError("Order", order_number)

        latest = db_service.latest_request_for_order(db, order.id)
        reason = ineligibility_reason(order, db_service.find_blocking_request(db, order.id, _BLOCKING_STATUSES))
        customer = order.customer
        return OrderLookupResponse(
            id=order.id,
            order_number=order.order_number,
            organization_id=order.organization_id,
            status=order.status,
            fulfillment_status=order.fulfillment_status,
            payment_status=order.payment_status,
            total_amount=order.total_amount,
            placed_at=order.placed_at,
            customer_name=customer.name if customer else None,
            customer_email=customer.email if customer else None,
            latest_request=LatestRequestSummary.model_validate(latest) if latest else None,
            can_cancel=reason is None,
            ineligible_reason=reason,
        )
    finally:
        db.close()


def create_cancellation_request(data: CancellationRequestCreate) -> CancellationRequestOut:
    """Record a new cancellation request for an order."""
    db = get_db_session()
    try:
        order = db_service.get_order(db, data.order_id)
        reason = ineligibility_reason(order, db_service.find_blocking_request(db, order.id, _BLOCKING_STATUSES))
        if reason is not None:
            raise InvalidTransitionError(f"Order {order.order_number}: {reason}")

        request = CancellationRequests(
            order_id=order.id,
            customer_id=order.customer_id,
            organization_id=order.organization_id,
            reason=data.reason,
            reason_category=data.reason_category.value if data.reason_category else None,
            initiated_by=data.initiated_by.value,
            refund_preference=data.refund_preference.value,
            notes=data.customer_notes,
            status=RequestStatus.pending.value,
        )
        db.add(request)
        db.commit()
        db.refresh(request)
        logger.info(f"{request_tag(request.id)} Cancellation request created for order {order.order_number}")
        return CancellationRequestOut.model_validate(request)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_cancellation_status(request_id: str) -> CancellationStatusResponse:
    """Status view with a coarse timeline, as shown on the status tracker."""
    db = get_db_session()
    try:
        request = db_service.get_cancellation_request(db, request_id)
        items = db_service.find_review_items_for_request(db, request_id)

        timeline = {"requested": request.created_at}
        if request.status in (RequestStatus.approved.value, RequestStatus.completed.value):
            timeline["approved"] = request.decided_at if request.decision_action == ActionType.auto_approve.value else request.updated_at
        if request.status == RequestStatus.denied.value:
            timeline["denied"] = request.updated_at
        if items and items[0].reviewed_at:
            timeline["reviewed"] = items[0].reviewed_at

        return CancellationStatusResponse(
            id=request.id,
            status=request.status,
            reason=request.reason,
            reason_category=request.reason_category,
            customer_notes=request.notes,
            admin_response=items[0].review_notes if items else None,
            info_request_message=request.info_request_message,
            refund_preference=request.refund_preference,
            created_at=request.created_at,
            updated_at=request.updated_at,
            timeline={k: v for k, v in timeline.items() if v is not None},
        )
    finally:
        db.close()


def withdraw_cancellation_request(request_id: str) -> CancellationRequestOut:
    """
    Customer withdraws a request that has not been decided yet.

    The request is closed as denied and its review items are removed.
    """
    db = get_db_session()
    try:
        request = db_service.get_cancellation_request(db, request_id)
        if request.status not in _OPEN_STATUSES:
            raise InvalidTransitionError("Only pending requests can be withdrawn")

        for item in db_service.find_review_items_for_request(db, request_id):
            db.delete(item)

        request.status = RequestStatus.denied.value
        request.decision_reason = WITHDRAWN_NOTE
        request.notes = f"{request.notes}\n\n{WITHDRAWN_NOTE}" if request.notes else WITHDRAWN_NOTE
        request.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(request)
        logger.info(f"{request_tag(request_id)} Request withdrawn by customer")
        return CancellationRequestOut.model_validate(request)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
