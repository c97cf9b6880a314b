"""
Risk scoring for cancellation requests.

An additive heuristic, not a trained model. ``score_risk`` is pure;
``assess_risk`` wraps it with the history lookup and the degraded-mode
fallback the dispatcher relies on.
"""
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

from cancellation_engine.core.config import settings
from cancellation_engine.core.enums import ReasonCategory, RiskLevel
from cancellation_engine.engine.conditions import risk_level_for
from cancellation_engine.utils.logger import get_logger

logger = get_logger(__name__)

CANCELLATION_RATE_WEIGHT = 0.3
HIGH_VALUE_PENALTY = 0.1
QUICK_CANCEL_CREDIT = 0.1
QUICK_CANCEL_MINUTES = 30
UNCLEAR_REASON_PENALTY = 0.1
BURST_PENALTY = 0.3
BURST_THRESHOLD = 3
BURST_WINDOW = timedelta(days=7)

DEFAULT_MEDIUM_RISK = 0.5

LOW_SUSPICION_REASONS = {
    ReasonCategory.found_better_price.value,
    ReasonCategory.no_longer_needed.value,
    ReasonCategory.ordered_by_mistake.value,
}


class OrderSummary(BaseModel):
    order_number: str
    amount: float
    date: Optional[datetime] = None


class CustomerHistory(BaseModel):
    """A customer's orders and cancellation requests as of one point in time."""

    total_orders: int = 0
    cancellation_times: List[datetime] = Field(default_factory=list)
    recent_orders: List[OrderSummary] = Field(default_factory=list)

    @property
    def total_cancellations(self) -> int:
        return len(self.cancellation_times)

    def snapshot(self) -> dict:
        """Frozen form stored on review queue items."""
        return {
            "totalOrders": self.total_orders,
            "totalCancellations": self.total_cancellations,
            "recentOrders": [
                {
                    "orderNumber": o.order_number,
                    "amount": o.amount,
                    "date": o.date.isoformat() if o.date else None,
                }
                for o in self.recent_orders
            ],
        }


class RiskInput(BaseModel):
    requested_at: datetime
    order_placed_at: Optional[datetime] = None
    order_total: Optional[float] = None
    reason_category: Optional[str] = None


class RiskAssessment(BaseModel):
    score: float
    level: RiskLevel
    degraded: bool = False
    error: Optional[str] = None
    history: Optional[CustomerHistory] = None


def score_risk(
    risk_input: RiskInput,
    history: CustomerHistory,
    high_value_threshold: Optional[float] = None,
) -> float:
    """
    Compute a risk score in [0, 1] for one request.

    Args:
        risk_input: The request's own signals
        history: The customer's orders and cancellations as of the request
        high_value_threshold: Order total above which a penalty applies;
            defaults to settings.HIGH_VALUE_ORDER_THRESHOLD

    Returns:
        Clamped, rounded score. An absent reason category counts as unclear;
        other absent fields contribute nothing.
    """
    if high_value_threshold is None:
        high_value_threshold = settings.HIGH_VALUE_ORDER_THRESHOLD

    score = 0.0

    # Factor 1: historical cancellation rate
    if history.total_orders > 0:
        score += (history.total_cancellations / history.total_orders) * CANCELLATION_RATE_WEIGHT

    # Factor 2: high order value
    if risk_input.order_total is not None and risk_input.order_total > high_value_threshold:
        score += HIGH_VALUE_PENALTY

    # Factor 3: quick cancellations read as buyer's remorse
    if risk_input.order_placed_at is not None:
        minutes = (risk_input.requested_at - risk_input.order_placed_at).total_seconds() / 60
        if minutes < QUICK_CANCEL_MINUTES:
            score -= QUICK_CANCEL_CREDIT

    # Factor 4: reason missing or outside the low-suspicion set
    if risk_input.reason_category not in LOW_SUSPICION_REASONS:
        score += UNCLEAR_REASON_PENALTY

    # Factor 5: burst of recent cancellations
    window_start = risk_input.requested_at - BURST_WINDOW
    recent = sum(1 for t in history.cancellation_times if window_start <= t <= risk_input.requested_at)
    if recent >= BURST_THRESHOLD:
        score += BURST_PENALTY

    return round(max(0.0, min(1.0, score)), 4)


def assess_risk(
    risk_input: RiskInput,
    load_history: Callable[[], CustomerHistory],
) -> RiskAssessment:
    """
    Load the customer's history and score the request.

    Never raises: if the history cannot be loaded (or scoring fails) the
    default medium risk is returned with ``degraded=True`` so the caller can
    log it and route conservatively.
    """
    try:
        history = load_history()
        score = score_risk(risk_input, history)
        return RiskAssessment(score=score, level=risk_level_for(score), history=history)
    except Exception as e:
        logger.error(f"Risk scoring failed, using default medium risk: {e}", exc_info=True)
        return RiskAssessment(
            score=DEFAULT_MEDIUM_RISK,
            level=risk_level_for(DEFAULT_MEDIUM_RISK),
            degraded=True,
            error=str(e),
        )
