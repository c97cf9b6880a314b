from enum import Enum


class RequestStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    denied = "denied"
    info_requested = "info_requested"
    completed = "completed"


class ReviewStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    denied = "denied"
    info_requested = "info_requested"
    escalated = "escalated"


class ActionType(str, Enum):
    auto_approve = "auto_approve"
    manual_review = "manual_review"
    deny = "deny"
    escalate = "escalate"


class RiskLevel(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class Initiator(str, Enum):
    customer = "customer"
    merchant = "merchant"
    system = "system"


class RefundPreference(str, Enum):
    full = "full"
    partial = "partial"
    none = "none"


class ReasonCategory(str, Enum):
    changed_mind = "changed_mind"
    found_better_price = "found_better_price"
    no_longer_needed = "no_longer_needed"
    ordered_by_mistake = "ordered_by_mistake"
    delivery_delay = "delivery_delay"
    product_issue = "product_issue"
    shipping_cost = "shipping_cost"
    other = "other"


class OrderStatus(str, Enum):
    open = "open"
    pending = "pending"
    closed = "closed"
    cancelled = "cancelled"
    archived = "archived"


class FulfillmentStatus(str, Enum):
    unfulfilled = "unfulfilled"
    partial = "partial"
    fulfilled = "fulfilled"
    restocked = "restocked"


class PaymentStatus(str, Enum):
    pending = "pending"
    authorized = "authorized"
    partially_paid = "partially_paid"
    paid = "paid"
    partially_refunded = "partially_refunded"
    refunded = "refunded"
    voided = "voided"


class TemplateCategory(str, Enum):
    time_based = "time_based"
    risk_based = "risk_based"
    status_based = "status_based"
    value_based = "value_based"
