import uuid
from datetime import datetime

from sqlalchemy import Column, Integer, Float, String, Text, DateTime, Boolean, ForeignKey, JSON
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


class Customers(Base):
    __tablename__ = "customers"

    id = Column(String, primary_key=True, default=new_id)
    email = Column(String, index=True, nullable=True)
    name = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Customer(id={self.id}, email={self.email})>"


class Orders(Base):
    """Order as mirrored from the storefront. Read-only to the engine."""
    __tablename__ = "orders"

    id = Column(String, primary_key=True, default=new_id)
    order_number = Column(String, nullable=False, index=True)
    organization_id = Column(String, nullable=False, index=True)
    customer_id = Column(String, ForeignKey("customers.id"), nullable=False, index=True)
    status = Column(String, nullable=False, default="open")
    fulfillment_status = Column(String, nullable=True, default="unfulfilled")
    payment_status = Column(String, nullable=True, default="paid")
    total_amount = Column(Float, nullable=False, default=0.0)
    placed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    customer = relationship("Customers")

    def __repr__(self):
        return f"<Order(id={self.id}, number={self.order_number}, status={self.status})>"


class CancellationRequests(Base):
    __tablename__ = "cancellation_requests"

    id = Column(String, primary_key=True, default=new_id)
    order_id = Column(String, ForeignKey("orders.id"), nullable=False, index=True)
    customer_id = Column(String, ForeignKey("customers.id"), nullable=False, index=True)
    organization_id = Column(String, nullable=False, index=True)
    reason = Column(Text, nullable=True)
    reason_category = Column(String, nullable=True)
    initiated_by = Column(String, nullable=False, default="customer")  # 'customer', 'merchant', 'system'
    refund_preference = Column(String, nullable=False, default="full")
    status = Column(String, nullable=False, default="pending", index=True)
    risk_score = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)

    # Outcome of the last score_and_decide run, kept so a re-run can answer without re-deciding
    decision_action = Column(String, nullable=True)
    matched_rule_id = Column(String, nullable=True)
    decision_reason = Column(Text, nullable=True)
    decided_at = Column(DateTime, nullable=True)

    info_request_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = relationship("Orders")
    review_items = relationship(
        "ReviewQueueItems",
        back_populates="cancellation_request",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<CancellationRequest(id={self.id}, order_id={self.order_id}, status={self.status})>"


class Rules(Base):
    __tablename__ = "rules"

    id = Column(String, primary_key=True, default=new_id)
    organization_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    conditions = Column(JSON, nullable=False, default=dict)
    actions = Column(JSON, nullable=False)
    priority = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    usage_count = Column(Integer, nullable=False, default=0)
    created_from_template_id = Column(String, ForeignKey("rule_templates.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Rule(id={self.id}, name={self.name}, priority={self.priority}, active={self.active})>"


class RuleTemplates(Base):
    __tablename__ = "rule_templates"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=False)
    conditions = Column(JSON, nullable=False, default=dict)
    actions = Column(JSON, nullable=False)
    recommended = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<RuleTemplate(id={self.id}, name={self.name})>"


class ReviewQueueItems(Base):
    __tablename__ = "review_queue_items"

    id = Column(String, primary_key=True, default=new_id)
    cancellation_request_id = Column(
        String, ForeignKey("cancellation_requests.id"), nullable=False, index=True
    )
    order_id = Column(String, ForeignKey("orders.id"), nullable=False)
    risk_level = Column(String, nullable=False)
    # Frozen at creation, never recomputed
    risk_indicators = Column(JSON, nullable=False, default=dict)
    customer_history = Column(JSON, nullable=False, default=dict)
    review_status = Column(String, nullable=False, default="pending", index=True)
    reviewed_by = Column(String, nullable=True)
    review_notes = Column(Text, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    cancellation_request = relationship("CancellationRequests", back_populates="review_items")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<ReviewQueueItem(id={self.id}, status={self.review_status}, version={self.version})>"
