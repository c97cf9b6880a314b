from fastapi import APIRouter, HTTPException, status

from cancellation_engine.api.errors import http_error, internal_error
from cancellation_engine.core.errors import CancellationEngineError
from cancellation_engine.core.models import (
    CancellationRequestCreate,
    CancellationRequestOut,
    CancellationStatusResponse,
    InfoReplyRequest,
    OrderLookupRequest,
    OrderLookupResponse,
    ReviewQueueItemOut,
)
from cancellation_engine.engine.dispatcher import DecisionResult, score_and_decide
from cancellation_engine.engine.portal import (
    create_cancellation_request,
    get_cancellation_status,
    lookup_order,
    withdraw_cancellation_request,
)
from cancellation_engine.engine.review_queue import respond_to_info_request
from cancellation_engine.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/cancellations", tags=["cancellations"])


@router.post("", status_code=status.HTTP_201_CREATED)
def submit_cancellation(payload: CancellationRequestCreate):
    """
    Submit a cancellation request and, unless disabled, decide it right away.

    Returns the stored request plus the decision when one was made.
    """
    logger.info(f"📨 API /v1/cancellations: New request for order {payload.order_id}")
    try:
        request = create_cancellation_request(payload)
        decision = score_and_decide(request.id) if payload.auto_decide else None
        return {
            "request": request,
            "decision": decision,
        }
    except CancellationEngineError as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("Cancellation submission", e)


@router.post("/lookup", response_model=OrderLookupResponse)
def order_lookup(payload: OrderLookupRequest):
    """Customer finds an order by number and email, and learns whether it can be cancelled."""
    try:
        return lookup_order(payload.order_number, payload.email, payload.organization_id)
    except CancellationEngineError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("Order lookup", e)


@router.get("/{request_id}", response_model=CancellationStatusResponse)
def cancellation_status(request_id: str):
    try:
        return get_cancellation_status(request_id)
    except CancellationEngineError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("Status lookup", e)


@router.post("/{request_id}/decide", response_model=DecisionResult)
def decide(request_id: str):
    """Run (or replay) the decisioning pipeline for one request."""
    try:
        return score_and_decide(request_id)
    except CancellationEngineError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("Decisioning", e)


@router.post("/{request_id}/respond", response_model=ReviewQueueItemOut)
def respond(request_id: str, payload: InfoReplyRequest):
    """Customer answers a reviewer's information request."""
    try:
        return respond_to_info_request(request_id, payload.response)
    except CancellationEngineError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("Info reply", e)


@router.post("/{request_id}/withdraw", response_model=CancellationRequestOut)
def withdraw(request_id: str):
    try:
        return withdraw_cancellation_request(request_id)
    except CancellationEngineError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("Withdrawal", e)
