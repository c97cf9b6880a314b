from typing import List, Optional

from fastapi import APIRouter

from cancellation_engine.api.errors import http_error, internal_error
from cancellation_engine.core.enums import ReviewStatus
from cancellation_engine.core.errors import CancellationEngineError
from cancellation_engine.core.models import (
    RequestInfoRequest,
    ReviewActionRequest,
    ReviewNotesRequest,
    ReviewQueueItemOut,
)
from cancellation_engine.engine import review_queue
from cancellation_engine.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/review-queue", tags=["review-queue"])


@router.get("", response_model=List[ReviewQueueItemOut])
def list_items(organization_id: Optional[str] = None, review_status: Optional[ReviewStatus] = None):
    try:
        return review_queue.list_review_queue_items(organization_id, review_status)
    except Exception as e:
        raise internal_error("Review queue listing", e)


@router.get("/{item_id}", response_model=ReviewQueueItemOut)
def get_item(item_id: str):
    try:
        return review_queue.get_review_queue_item(item_id)
    except CancellationEngineError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("Review item lookup", e)


@router.post("/{item_id}/approve", response_model=ReviewQueueItemOut)
def approve(item_id: str, payload: ReviewActionRequest):
    logger.info(f"Reviewer {payload.reviewer_id} approving item {item_id}")
    try:
        return review_queue.approve_queue_item(
            item_id, payload.reviewer_id, payload.notes, payload.expected_version
        )
    except CancellationEngineError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("Approval", e)


@router.post("/{item_id}/deny", response_model=ReviewQueueItemOut)
def deny(item_id: str, payload: ReviewActionRequest):
    logger.info(f"Reviewer {payload.reviewer_id} denying item {item_id}")
    try:
        return review_queue.deny_queue_item(
            item_id, payload.reviewer_id, payload.notes, payload.expected_version
        )
    except CancellationEngineError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("Denial", e)


@router.post("/{item_id}/request-info", response_model=ReviewQueueItemOut)
def request_info(item_id: str, payload: RequestInfoRequest):
    try:
        return review_queue.request_info_on_queue_item(
            item_id, payload.reviewer_id, payload.message, payload.expected_version
        )
    except CancellationEngineError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("Info request", e)


@router.post("/{item_id}/escalate", response_model=ReviewQueueItemOut)
def escalate(item_id: str, payload: ReviewActionRequest):
    try:
        return review_queue.escalate_queue_item(
            item_id, payload.reviewer_id, payload.notes, payload.expected_version
        )
    except CancellationEngineError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("Escalation", e)


@router.post("/{item_id}/notes", response_model=ReviewQueueItemOut)
def add_notes(item_id: str, payload: ReviewNotesRequest):
    try:
        return review_queue.add_review_notes(item_id, payload.reviewer_id, payload.notes)
    except CancellationEngineError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("Adding notes", e)
