"""
Rule conditions and actions.

Merchants store conditions as a sparse document, e.g.
``{"timeWindow": 15, "orderStatus": ["open"], "fulfillmentStatus": ["unfulfilled"]}``.
The document is validated into ``RuleConditions`` when a rule is written, and
evaluated through its expansion into one typed predicate per dimension
(``RuleConditions.predicates()``). A missing dimension means "don't care".
"""
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from cancellation_engine.core.enums import (
    ActionType,
    FulfillmentStatus,
    Initiator,
    OrderStatus,
    PaymentStatus,
    RiskLevel,
)


def risk_level_for(score: float) -> RiskLevel:
    """Bucket a numeric risk score."""
    if score >= 0.7:
        return RiskLevel.high
    if score >= 0.4:
        return RiskLevel.medium
    return RiskLevel.low


class OrderSnapshot(BaseModel):
    """The order fields rule conditions can look at."""

    status: Optional[str] = None
    fulfillment_status: Optional[str] = None
    payment_status: Optional[str] = None
    total_amount: Optional[float] = None
    placed_at: Optional[datetime] = None


class EvaluationContext(BaseModel):
    """Everything the matcher needs to evaluate one request."""

    request_created_at: datetime
    initiated_by: Optional[str] = None
    risk_score: Optional[float] = None
    order: OrderSnapshot

    @property
    def minutes_since_order(self) -> Optional[float]:
        if self.order.placed_at is None:
            return None
        return (self.request_created_at - self.order.placed_at).total_seconds() / 60


# ── Typed predicates ─────────────────────────────────────────────────────────

class TimeWindowCondition(BaseModel):
    kind: Literal["time_window"] = "time_window"
    minutes: float

    def is_satisfied(self, context: EvaluationContext) -> bool:
        elapsed = context.minutes_since_order
        # Without a placement time the window cannot be proven, so the rule does not apply
        if elapsed is None:
            return False
        return elapsed <= self.minutes


class InitiatorCondition(BaseModel):
    kind: Literal["initiator"] = "initiator"
    values: List[Initiator]

    def is_satisfied(self, context: EvaluationContext) -> bool:
        return context.initiated_by in {v.value for v in self.values}


class RiskLevelCondition(BaseModel):
    kind: Literal["risk_level"] = "risk_level"
    values: List[RiskLevel]

    def is_satisfied(self, context: EvaluationContext) -> bool:
        level = risk_level_for(context.risk_score or 0.0)
        return level in self.values


class OrderStatusCondition(BaseModel):
    kind: Literal["order_status"] = "order_status"
    values: List[OrderStatus]

    def is_satisfied(self, context: EvaluationContext) -> bool:
        return context.order.status in {v.value for v in self.values}


class FulfillmentStatusCondition(BaseModel):
    kind: Literal["fulfillment_status"] = "fulfillment_status"
    values: List[FulfillmentStatus]

    def is_satisfied(self, context: EvaluationContext) -> bool:
        return context.order.fulfillment_status in {v.value for v in self.values}


class PaymentStatusCondition(BaseModel):
    kind: Literal["payment_status"] = "payment_status"
    values: List[PaymentStatus]

    def is_satisfied(self, context: EvaluationContext) -> bool:
        return context.order.payment_status in {v.value for v in self.values}


class OrderAmountCondition(BaseModel):
    """Inclusive range check on the order total."""

    kind: Literal["order_amount"] = "order_amount"
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    def is_satisfied(self, context: EvaluationContext) -> bool:
        total = context.order.total_amount or 0.0
        if self.minimum is not None and total < self.minimum:
            return False
        if self.maximum is not None and total > self.maximum:
            return False
        return True


Condition = Annotated[
    Union[
        TimeWindowCondition,
        InitiatorCondition,
        RiskLevelCondition,
        OrderStatusCondition,
        FulfillmentStatusCondition,
        PaymentStatusCondition,
        OrderAmountCondition,
    ],
    Field(discriminator="kind"),
]


# ── Stored documents ─────────────────────────────────────────────────────────

def _alias(camel: str, snake: str, *extra: str):
    return Field(
        default=None,
        validation_alias=AliasChoices(camel, snake, *extra),
        serialization_alias=camel,
    )


class RuleConditions(BaseModel):
    """Sparse predicate document as stored on a rule."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    time_window: Optional[float] = _alias("timeWindow", "time_window")
    user_type: Optional[List[Initiator]] = _alias("userType", "user_type", "initiatedBy")
    risk_level: Optional[List[RiskLevel]] = _alias("riskLevel", "risk_level")
    order_status: Optional[List[OrderStatus]] = _alias("orderStatus", "order_status")
    fulfillment_status: Optional[List[FulfillmentStatus]] = _alias("fulfillmentStatus", "fulfillment_status")
    payment_status: Optional[List[PaymentStatus]] = _alias("paymentStatus", "payment_status")
    min_order_amount: Optional[float] = _alias("minOrderAmount", "min_order_amount")
    max_order_amount: Optional[float] = _alias("maxOrderAmount", "max_order_amount")

    @field_validator("time_window", "min_order_amount", "max_order_amount")
    @classmethod
    def non_negative(cls, value):
        if value is not None and value < 0:
            raise ValueError("must be zero or greater")
        return value

    @field_validator("user_type", "risk_level", "order_status", "fulfillment_status", "payment_status")
    @classmethod
    def empty_set_is_unconstrained(cls, value):
        if value is not None and len(value) == 0:
            return None
        return value

    @model_validator(mode="after")
    def amount_range_is_ordered(self) -> "RuleConditions":
        if (
            self.min_order_amount is not None
            and self.max_order_amount is not None
            and self.min_order_amount > self.max_order_amount
        ):
            raise ValueError("minOrderAmount cannot exceed maxOrderAmount")
        return self

    def predicates(self) -> List[Condition]:
        """Expand the document into the typed predicates it specifies."""
        predicates: List[Condition] = []
        if self.time_window is not None:
            predicates.append(TimeWindowCondition(minutes=self.time_window))
        if self.user_type:
            predicates.append(InitiatorCondition(values=self.user_type))
        if self.risk_level:
            predicates.append(RiskLevelCondition(values=self.risk_level))
        if self.order_status:
            predicates.append(OrderStatusCondition(values=self.order_status))
        if self.fulfillment_status:
            predicates.append(FulfillmentStatusCondition(values=self.fulfillment_status))
        if self.payment_status:
            predicates.append(PaymentStatusCondition(values=self.payment_status))
        if self.min_order_amount is not None or self.max_order_amount is not None:
            predicates.append(
                OrderAmountCondition(minimum=self.min_order_amount, maximum=self.max_order_amount)
            )
        return predicates

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RuleAction(BaseModel):
    """The single action a rule takes, plus side-effect flags for collaborators."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    type: ActionType
    notify_customer: bool = Field(
        default=False,
        validation_alias=AliasChoices("notifyCustomer", "notify_customer"),
        serialization_alias="notifyCustomer",
    )
    notify_merchant: bool = Field(
        default=False,
        validation_alias=AliasChoices("notifyMerchant", "notify_merchant"),
        serialization_alias="notifyMerchant",
    )

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
