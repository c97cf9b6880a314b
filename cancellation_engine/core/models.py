from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from cancellation_engine.core.config import settings
from cancellation_engine.core.enums import (
    Initiator,
    ReasonCategory,
    RefundPreference,
    TemplateCategory,
)
from cancellation_engine.engine.conditions import RuleAction, RuleConditions


# ── Cancellation requests ────────────────────────────────────────────────────

class CancellationRequestCreate(BaseModel):
    """Submitted by the customer portal or a merchant action."""

    order_id: str
    reason: Optional[str] = None
    reason_category: Optional[ReasonCategory] = None
    initiated_by: Initiator = Initiator.customer
    refund_preference: RefundPreference = RefundPreference.full
    customer_notes: Optional[str] = None
    auto_decide: bool = Field(default=True, description="Run the decisioning engine right away")

    class Config:
        json_schema_extra = {
            "example": {
                "order_id": "",
                "reason": "Ordered the wrong size",
                "reason_category": "ordered_by_mistake",
                "initiated_by": "customer",
                "refund_preference": "full",
            }
        }


class CancellationRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    order_id: str
    customer_id: str
    organization_id: str
    reason: Optional[str] = None
    reason_category: Optional[str] = None
    initiated_by: str
    refund_preference: str
    status: str
    risk_score: Optional[float] = None
    notes: Optional[str] = None
    decision_action: Optional[str] = None
    matched_rule_id: Optional[str] = None
    decision_reason: Optional[str] = None
    info_request_message: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class CancellationStatusResponse(BaseModel):
    id: str
    status: str
    reason: Optional[str] = None
    reason_category: Optional[str] = None
    customer_notes: Optional[str] = None
    admin_response: Optional[str] = None
    info_request_message: Optional[str] = None
    refund_preference: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    timeline: Dict[str, datetime]


class InfoReplyRequest(BaseModel):
    response: str = Field(..., min_length=1, description="Customer's answer to the reviewer")


# ── Customer order lookup ────────────────────────────────────────────────────

class OrderLookupRequest(BaseModel):
    order_number: str = ""
    email: str = ""
    organization_id: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "order_number": "#1001",
                "email": "alice@example.com",
            }
        }


class LatestRequestSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    status: str
    reason: Optional[str] = None
    info_request_message: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class OrderLookupResponse(BaseModel):
    """What the customer portal shows before offering the cancel button."""

    id: str
    order_number: str
    organization_id: str
    status: str
    fulfillment_status: Optional[str] = None
    payment_status: Optional[str] = None
    total_amount: float
    placed_at: Optional[datetime] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    latest_request: Optional[LatestRequestSummary] = None
    can_cancel: bool
    ineligible_reason: Optional[str] = None


# ── Review queue ─────────────────────────────────────────────────────────────

class ReviewQueueItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    cancellation_request_id: str
    order_id: str
    risk_level: str
    risk_indicators: Dict[str, Any]
    customer_history: Dict[str, Any]
    review_status: str
    reviewed_by: Optional[str] = None
    review_notes: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: Optional[datetime] = None


class ReviewActionRequest(BaseModel):
    reviewer_id: str
    notes: Optional[str] = None
    expected_version: Optional[int] = Field(
        default=None,
        description="Version the reviewer last saw; the action is rejected if the item moved on"
    )


class RequestInfoRequest(BaseModel):
    reviewer_id: str
    message: str
    expected_version: Optional[int] = None


class ReviewNotesRequest(BaseModel):
    reviewer_id: str
    notes: str


# ── Rules ────────────────────────────────────────────────────────────────────

class RuleCreate(BaseModel):
    organization_id: str = Field(default_factory=lambda: settings.DEFAULT_ORGANIZATION_ID)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    conditions: RuleConditions = Field(default_factory=RuleConditions)
    actions: RuleAction
    priority: Optional[int] = Field(default=None, description="Defaults to after the last rule")
    active: bool = True

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Auto-approve within 15 min",
                "conditions": {"timeWindow": 15, "orderStatus": ["open"], "fulfillmentStatus": ["unfulfilled"]},
                "actions": {"type": "auto_approve", "notifyCustomer": True},
                "priority": 1,
            }
        }


class RuleUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    conditions: Optional[RuleConditions] = None
    actions: Optional[RuleAction] = None
    priority: Optional[int] = None
    active: Optional[bool] = None


class RuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    name: str
    description: Optional[str] = None
    conditions: Dict[str, Any]
    actions: Dict[str, Any]
    priority: int
    active: bool
    usage_count: int
    created_from_template_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class RulePriority(BaseModel):
    id: str
    priority: int


class ReorderRulesRequest(BaseModel):
    rules: List[RulePriority]


class RuleTemplateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    category: TemplateCategory
    conditions: Dict[str, Any]
    actions: Dict[str, Any]
    recommended: bool


class ActivateTemplateRequest(BaseModel):
    organization_id: str = Field(default_factory=lambda: settings.DEFAULT_ORGANIZATION_ID)
    customizations: Optional[RuleUpdate] = None


class HealthResponse(BaseModel):
    status: str
    version: str
    database_connected: bool
