"""
Review queue state machine.

Reviewer actions move a queue item between review states and update the
parent cancellation request in the same transaction. Allowed moves:

    pending        -> approved | denied | info_requested | escalated
    info_requested -> approved | denied | info_requested | escalated | pending (customer reply)
    escalated      -> approved | denied | info_requested | escalated
    approved, denied: terminal

Every transition accepts an optional ``expected_version``; items also carry
a SQLAlchemy version counter so two reviewers cannot silently overwrite
each other.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm.exc import StaleDataError

from cancellation_engine.core.enums import RequestStatus, ReviewStatus
from cancellation_engine.core.errors import (
    ConcurrencyConflictError,
    InvalidTransitionError,
    ValidationError,
)
from cancellation_engine.core.models import ReviewQueueItemOut
from cancellation_engine.database import db_service
from cancellation_engine.database.tools.db_connection import get_db_session
from cancellation_engine.utils.logger import get_logger, request_tag

logger = get_logger(__name__)

_REVIEWER_TARGETS = {
    ReviewStatus.approved,
    ReviewStatus.denied,
    ReviewStatus.info_requested,
    ReviewStatus.escalated,
}

ALLOWED_TRANSITIONS = {
    ReviewStatus.pending: _REVIEWER_TARGETS,
    ReviewStatus.info_requested: _REVIEWER_TARGETS | {ReviewStatus.pending},
    ReviewStatus.escalated: _REVIEWER_TARGETS,
    ReviewStatus.approved: set(),
    ReviewStatus.denied: set(),
}


def can_transition(current: ReviewStatus, target: ReviewStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(ReviewStatus(current), set())


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


def _check_version(item, expected_version: Optional[int]):
    if expected_version is not None and item.version != expected_version:
        raise ConcurrencyConflictError(
            f"Review queue item {item.id} is at version {item.version}, expected {expected_version}"
        )


def _transition(
    item_id: str,
    reviewer_id: str,
    target: ReviewStatus,
    notes: Optional[str],
    request_status: Optional[RequestStatus] = None,
    info_request_message: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> ReviewQueueItemOut:
    reviewer_id = _require_text(reviewer_id, "reviewer_id")

    db = get_db_session()
    try:
        item = db_service.get_review_queue_item(db, item_id)
        _check_version(item, expected_version)

        if not can_transition(item.review_status, target):
            raise InvalidTransitionError(
                f"Cannot move review item {item.id} from {item.review_status} to {target.value}"
            )

        request = item.cancellation_request
        if request.status == RequestStatus.denied.value:
            raise InvalidTransitionError(f"Cancellation request {request.id} is denied and cannot change")

        now = datetime.utcnow()
        item.review_status = target.value
        item.reviewed_by = reviewer_id
        item.reviewed_at = now
        if notes is not None:
            item.review_notes = notes

        if request_status is not None:
            request.status = request_status.value
            request.decision_reason = f"{request_status.value.capitalize()} by reviewer {reviewer_id}"
        if info_request_message is not None:
            request.info_request_message = info_request_message
        request.updated_at = now

        db.commit()
        db.refresh(item)
        logger.info(
            f"{request_tag(request.id)} Review item {item.id} -> {target.value} by {reviewer_id}"
        )
        return ReviewQueueItemOut.model_validate(item)
    except StaleDataError:
        db.rollback()
        raise ConcurrencyConflictError(f"Review queue item {item_id} was changed by another reviewer")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def approve_queue_item(
    item_id: str,
    reviewer_id: str,
    notes: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> ReviewQueueItemOut:
    """Approve the item and its cancellation request."""
    return _transition(
        item_id, reviewer_id, ReviewStatus.approved, notes,
        request_status=RequestStatus.approved,
        expected_version=expected_version,
    )


def deny_queue_item(
    item_id: str,
    reviewer_id: str,
    notes: Optional[str],
    expected_version: Optional[int] = None,
) -> ReviewQueueItemOut:
    """Deny the item and its request. A denial must be explained."""
    notes = _require_text(notes, "Notes")
    return _transition(
        item_id, reviewer_id, ReviewStatus.denied, notes,
        request_status=RequestStatus.denied,
        expected_version=expected_version,
    )


def request_info_on_queue_item(
    item_id: str,
    reviewer_id: str,
    message: str,
    expected_version: Optional[int] = None,
) -> ReviewQueueItemOut:
    """
    Ask the customer for more information.

    The request stays pending, annotated with the reviewer's message;
    delivering the message is the notification service's job.
    """
    message = _require_text(message, "Message")
    return _transition(
        item_id, reviewer_id, ReviewStatus.info_requested, message,
        info_request_message=message,
        expected_version=expected_version,
    )


def escalate_queue_item(
    item_id: str,
    reviewer_id: str,
    notes: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> ReviewQueueItemOut:
    """Hand the item to the support team; the request stays pending."""
    return _transition(
        item_id, reviewer_id, ReviewStatus.escalated, notes,
        expected_version=expected_version,
    )


def add_review_notes(item_id: str, reviewer_id: str, notes: str) -> ReviewQueueItemOut:
    """Attach audit notes without changing the review state."""
    reviewer_id = _require_text(reviewer_id, "reviewer_id")
    notes = _require_text(notes, "Notes")

    db = get_db_session()
    try:
        item = db_service.get_review_queue_item(db, item_id)
        item.review_notes = notes
        item.reviewed_by = reviewer_id
        db.commit()
        db.refresh(item)
        return ReviewQueueItemOut.model_validate(item)
    except StaleDataError:
        db.rollback()
        raise ConcurrencyConflictError(f"Review queue item {item_id} was changed by another reviewer")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def respond_to_info_request(request_id: str, response: str) -> ReviewQueueItemOut:
    """
    Customer reply to an info request.

    Puts the open review item back to pending and appends the reply to the
    request's notes; reason and category are left as submitted.
    """
    response = _require_text(response, "Response")

    db = get_db_session()
    try:
        request = db_service.get_cancellation_request(db, request_id)
        items = [
            i for i in db_service.find_review_items_for_request(db, request_id)
            if i.review_status == ReviewStatus.info_requested.value
        ]
        if not items:
            raise InvalidTransitionError("This request is not awaiting information")

        item = items[0]
        item.review_status = ReviewStatus.pending.value
        request.notes = f"{request.notes}\n\n{response}" if request.notes else response
        if request.status == RequestStatus.info_requested.value:
            request.status = RequestStatus.pending.value
        request.updated_at = datetime.utcnow()

        db.commit()
        db.refresh(item)
        logger.info(f"{request_tag(request_id)} Customer replied, review item {item.id} back to pending")
        return ReviewQueueItemOut.model_validate(item)
    except StaleDataError:
        db.rollback()
        raise ConcurrencyConflictError(f"Review item for request {request_id} changed during the reply")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def list_review_queue_items(
    organization_id: Optional[str] = None,
    review_status: Optional[ReviewStatus] = None,
) -> List[ReviewQueueItemOut]:
    db = get_db_session()
    try:
        items = db_service.list_review_items(
            db,
            organization_id=organization_id,
            review_status=review_status.value if review_status else None,
        )
        return [ReviewQueueItemOut.model_validate(i) for i in items]
    finally:
        db.close()


def get_review_queue_item(item_id: str) -> ReviewQueueItemOut:
    db = get_db_session()
    try:
        return ReviewQueueItemOut.model_validate(db_service.get_review_queue_item(db, item_id))
    finally:
        db.close()
