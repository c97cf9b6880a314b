"""
Decision dispatcher: score, match, persist.

``score_and_decide`` always ends a pending request in exactly one of three
outcomes: approved, denied, or one pending review queue item. The outcome,
the score and the rule usage counter are written in a single transaction,
and a re-run on an already decided request returns the stored decision.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from cancellation_engine.core.enums import ActionType, RequestStatus, ReviewStatus
from cancellation_engine.core.errors import NotFoundError
from cancellation_engine.database import db_service
from cancellation_engine.database.schemas.db_models import CancellationRequests, ReviewQueueItems
from cancellation_engine.database.tools.db_connection import get_db_session
from cancellation_engine.engine.conditions import EvaluationContext, OrderSnapshot, risk_level_for
from cancellation_engine.engine.risk_scorer import (
    DEFAULT_MEDIUM_RISK,
    CustomerHistory,
    RiskAssessment,
    RiskInput,
    assess_risk,
)
from cancellation_engine.engine.rule_matcher import MatchResult, evaluate_rules, load_rule_definitions
from cancellation_engine.utils.logger import get_logger, request_tag

logger = get_logger(__name__)

FAIL_SAFE_REASON = "Error during evaluation, defaulting to manual review"


class DecisionResult(BaseModel):
    request_id: str
    action: ActionType
    matched_rule_id: Optional[str] = None
    reason: str
    risk_score: Optional[float] = None
    status: RequestStatus
    queue_item_id: Optional[str] = None


def _result_from_request(request: CancellationRequests, queue_item_id: Optional[str] = None) -> DecisionResult:
    # A settled request reports its outcome, whoever settled it
    action = {
        RequestStatus.approved.value: ActionType.auto_approve.value,
        RequestStatus.denied.value: ActionType.deny.value,
    }.get(request.status, request.decision_action or ActionType.manual_review.value)
    return DecisionResult(
        request_id=request.id,
        action=action,
        matched_rule_id=request.matched_rule_id,
        reason=request.decision_reason or f"Request already {request.status}",
        risk_score=request.risk_score,
        status=request.status,
        queue_item_id=queue_item_id,
    )


def _existing_decision(db, request: CancellationRequests) -> Optional[DecisionResult]:
    """Return the stored outcome when the request needs no new decision."""
    items = db_service.find_review_items_for_request(db, request.id)
    if items:
        return _result_from_request(request, queue_item_id=items[0].id)
    if request.status != RequestStatus.pending.value:
        return _result_from_request(request)
    return None


def _risk_input(request: CancellationRequests) -> RiskInput:
    order = request.order
    return RiskInput(
        requested_at=request.created_at,
        order_placed_at=order.placed_at if order else None,
        order_total=order.total_amount if order else None,
        reason_category=request.reason_category,
    )


def _evaluation_context(request: CancellationRequests, risk_score: float) -> EvaluationContext:
    order = request.order
    if order is None:
        raise NotFoundError("Order", request.order_id)
    return EvaluationContext(
        request_created_at=request.created_at,
        initiated_by=request.initiated_by,
        risk_score=risk_score,
        order=OrderSnapshot(
            status=order.status,
            fulfillment_status=order.fulfillment_status,
            payment_status=order.payment_status,
            total_amount=order.total_amount,
            placed_at=order.placed_at,
        ),
    )


def _new_queue_item(
    request: CancellationRequests,
    risk_score: float,
    history: Optional[CustomerHistory],
    matched_rule_id: Optional[str],
    reason: str,
    degraded: bool,
    notes: Optional[str] = None,
) -> ReviewQueueItems:
    return ReviewQueueItems(
        cancellation_request_id=request.id,
        order_id=request.order_id,
        risk_level=risk_level_for(risk_score).value,
        risk_indicators={
            "riskScore": risk_score,
            "matchedRule": matched_rule_id,
            "reason": reason,
            "degradedScoring": degraded,
        },
        customer_history=(history or CustomerHistory()).snapshot(),
        review_status=ReviewStatus.pending.value,
        review_notes=notes,
    )


def _persist(db, request: CancellationRequests, assessment: RiskAssessment, match: MatchResult) -> DecisionResult:
    tag = request_tag(request.id)
    now = datetime.utcnow()

    request.risk_score = assessment.score
    request.decision_action = match.action.value
    request.matched_rule_id = match.matched_rule_id
    request.decision_reason = match.reason
    request.decided_at = now

    queue_item = None
    if match.action == ActionType.auto_approve:
        request.status = RequestStatus.approved.value
    elif match.action == ActionType.deny:
        request.status = RequestStatus.denied.value
    else:
        queue_item = _new_queue_item(
            request,
            assessment.score,
            assessment.history,
            match.matched_rule_id,
            match.reason,
            assessment.degraded,
            notes=f"Risk scoring degraded: {assessment.error}" if assessment.degraded else None,
        )
        db.add(queue_item)

    if match.matched_rule_id:
        db_service.increment_rule_usage(db, match.matched_rule_id)

    db.commit()
    logger.info(
        f"{tag} Decision persisted: action={match.action.value}, "
        f"status={request.status}, score={assessment.score}"
    )
    return _result_from_request(request, queue_item_id=queue_item.id if queue_item else None)


def _fail_safe(db, request_id: str, error: Exception) -> DecisionResult:
    """Route to manual review after an unexpected failure."""
    tag = request_tag(request_id)
    db.rollback()
    request = db_service.get_cancellation_request(db, request_id)

    history = None
    try:
        history = db_service.load_customer_history(db, request.customer_id, request.created_at)
    except Exception as e:
        logger.warning(f"{tag} Could not snapshot customer history for fail-safe item: {e}")
        db.rollback()
        request = db_service.get_cancellation_request(db, request_id)

    score = request.risk_score if request.risk_score is not None else DEFAULT_MEDIUM_RISK
    request.decision_action = ActionType.manual_review.value
    request.matched_rule_id = None
    request.decision_reason = FAIL_SAFE_REASON
    request.decided_at = datetime.utcnow()

    item = _new_queue_item(
        request,
        score,
        history,
        matched_rule_id=None,
        reason=FAIL_SAFE_REASON,
        degraded=True,
        notes=f"Automatic decisioning failed: {type(error).__name__}: {error}",
    )
    db.add(item)
    db.commit()
    logger.warning(f"{tag} Fail-safe review item {item.id} created")
    return _result_from_request(request, queue_item_id=item.id)


def score_and_decide(request_id: str) -> DecisionResult:
    """
    Score a cancellation request, match it against the organization's rules
    and apply the outcome.

    Args:
        request_id: Cancellation request identifier

    Returns:
        DecisionResult describing the action taken

    Raises:
        NotFoundError: the request does not exist
    """
    tag = request_tag(request_id)
    logger.info(f"{tag} 🚀 DISPATCHER: Evaluating cancellation request")

    db = get_db_session()
    try:
        request = db_service.get_cancellation_request(db, request_id)

        existing = _existing_decision(db, request)
        if existing is not None:
            logger.info(f"{tag} Already decided ({existing.action.value}), returning stored decision")
            return existing

        try:
            assessment = assess_risk(
                _risk_input(request),
                lambda: db_service.load_customer_history(db, request.customer_id, request.created_at),
            )
            if assessment.degraded:
                logger.warning(f"{tag} Degraded mode: scoring with default medium risk ({assessment.error})")
                # The failed history lookup may have poisoned the transaction
                db.rollback()
            logger.info(f"{tag} Risk score {assessment.score} ({assessment.level.value})")

            rules = load_rule_definitions(
                db_service.list_rules(db, request.organization_id, active_only=True)
            )
            match = evaluate_rules(rules, _evaluation_context(request, assessment.score))
            logger.info(f"{tag} {match.reason} -> {match.action.value}")

            return _persist(db, request, assessment, match)
        except Exception as e:
            logger.error(f"{tag} ❌ DISPATCHER: Evaluation failed: {e}", exc_info=True)
            return _fail_safe(db, request_id, e)
    finally:
        db.close()
