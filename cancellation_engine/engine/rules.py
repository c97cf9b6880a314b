"""
Rule and rule-template management.

Conditions and actions are validated before anything is written, so a rule
that reaches the matcher is always well formed.
"""
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from cancellation_engine.core.enums import TemplateCategory
from cancellation_engine.core.errors import ValidationError
from cancellation_engine.core.models import (
    RuleCreate,
    RuleOut,
    RulePriority,
    RuleTemplateOut,
    RuleUpdate,
)
from cancellation_engine.database import db_service
from cancellation_engine.database.schemas.db_models import Rules, RuleTemplates
from cancellation_engine.database.tools.db_connection import get_db_session
from cancellation_engine.engine.conditions import RuleAction, RuleConditions
from cancellation_engine.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_RULE_TEMPLATES = [
    {
        "name": "Auto-approve within 15 min",
        "description": "Automatically approve cancellations requested within 15 minutes of order placement",
        "category": TemplateCategory.time_based.value,
        "conditions": {
            "timeWindow": 15,
            "orderStatus": ["open", "pending"],
            "fulfillmentStatus": ["unfulfilled"],
        },
        "actions": {"type": "auto_approve", "notifyCustomer": True},
        "recommended": True,
    },
    {
        "name": "Flag high-risk orders",
        "description": "Send high-risk cancellation requests to manual review",
        "category": TemplateCategory.risk_based.value,
        "conditions": {"riskLevel": ["high"]},
        "actions": {"type": "manual_review", "notifyMerchant": True},
        "recommended": True,
    },
    {
        "name": "Deny if already fulfilled",
        "description": "Automatically deny cancellations for already fulfilled orders",
        "category": TemplateCategory.status_based.value,
        "conditions": {"fulfillmentStatus": ["fulfilled"]},
        "actions": {"type": "deny", "notifyCustomer": True},
        "recommended": True,
    },
]


def validate_rule_documents(conditions: dict, actions: dict):
    """Parse stored-form documents, raising the engine's ValidationError."""
    try:
        return RuleConditions.model_validate(conditions or {}), RuleAction.model_validate(actions)
    except PydanticValidationError as e:
        raise ValidationError(f"Malformed rule definition: {e}")


def list_rules(organization_id: str, active_only: bool = False) -> List[RuleOut]:
    db = get_db_session()
    try:
        rules = db_service.list_rules(db, organization_id, active_only=active_only)
        logger.info(f"Found {len(rules)} rules for organization {organization_id}")
        return [RuleOut.model_validate(r) for r in rules]
    finally:
        db.close()


def get_rule(rule_id: str) -> RuleOut:
    db = get_db_session()
    try:
        return RuleOut.model_validate(db_service.get_rule(db, rule_id))
    finally:
        db.close()


def create_rule(data: RuleCreate) -> RuleOut:
    db = get_db_session()
    try:
        priority = data.priority
        if priority is None:
            priority = db_service.next_rule_priority(db, data.organization_id)

        rule = Rules(
            organization_id=data.organization_id,
            name=data.name,
            description=data.description,
            conditions=data.conditions.to_document(),
            actions=data.actions.to_document(),
            priority=priority,
            active=data.active,
        )
        db.add(rule)
        db.commit()
        db.refresh(rule)
        logger.info(f"Rule '{rule.name}' created at priority {rule.priority}")
        return RuleOut.model_validate(rule)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def update_rule(rule_id: str, data: RuleUpdate) -> RuleOut:
    db = get_db_session()
    try:
        rule = db_service.get_rule(db, rule_id)
        if data.name is not None:
            rule.name = data.name
        if data.description is not None:
            rule.description = data.description
        if data.conditions is not None:
            rule.conditions = data.conditions.to_document()
        if data.actions is not None:
            rule.actions = data.actions.to_document()
        if data.priority is not None:
            rule.priority = data.priority
        if data.active is not None:
            rule.active = data.active
        db.commit()
        db.refresh(rule)
        return RuleOut.model_validate(rule)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def delete_rule(rule_id: str) -> None:
    db = get_db_session()
    try:
        rule = db_service.get_rule(db, rule_id)
        db.delete(rule)
        db.commit()
        logger.info(f"Rule {rule_id} deleted")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def toggle_rule(rule_id: str) -> RuleOut:
    db = get_db_session()
    try:
        rule = db_service.get_rule(db, rule_id)
        rule.active = not rule.active
        db.commit()
        db.refresh(rule)
        logger.info(f"Rule {rule_id} is now {'active' if rule.active else 'inactive'}")
        return RuleOut.model_validate(rule)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def reorder_rules(priorities: List[RulePriority]) -> List[RuleOut]:
    """Apply a batch of priority changes in one transaction."""
    db = get_db_session()
    try:
        updated = []
        for entry in priorities:
            rule = db_service.get_rule(db, entry.id)
            rule.priority = entry.priority
            updated.append(rule)
        db.commit()
        for rule in updated:
            db.refresh(rule)
        return [RuleOut.model_validate(r) for r in sorted(updated, key=lambda r: r.priority)]
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def ensure_default_templates(db) -> int:
    """Insert the built-in templates when the table is empty. Returns rows added."""
    if db.query(RuleTemplates).count() > 0:
        return 0
    for template in DEFAULT_RULE_TEMPLATES:
        db.add(RuleTemplates(**template))
    db.commit()
    logger.info(f"Seeded {len(DEFAULT_RULE_TEMPLATES)} rule templates")
    return len(DEFAULT_RULE_TEMPLATES)


def list_rule_templates() -> List[RuleTemplateOut]:
    db = get_db_session()
    try:
        ensure_default_templates(db)
        templates = (
            db.query(RuleTemplates)
            .order_by(RuleTemplates.recommended.desc(), RuleTemplates.name.asc())
            .all()
        )
        return [RuleTemplateOut.model_validate(t) for t in templates]
    finally:
        db.close()


def activate_template(
    template_id: str,
    organization_id: str,
    customizations: Optional[RuleUpdate] = None,
) -> RuleOut:
    """Create a rule from a template, placed after the organization's last rule."""
    customizations = customizations or RuleUpdate()

    db = get_db_session()
    try:
        template = db_service.get_rule_template(db, template_id)
        conditions, actions = validate_rule_documents(template.conditions, template.actions)

        rule = Rules(
            organization_id=organization_id,
            name=customizations.name or template.name,
            description=(
                customizations.description
                if customizations.description is not None
                else template.description
            ),
            conditions=(customizations.conditions or conditions).to_document(),
            actions=(customizations.actions or actions).to_document(),
            priority=(
                customizations.priority
                if customizations.priority is not None
                else db_service.next_rule_priority(db, organization_id)
            ),
            active=customizations.active if customizations.active is not None else True,
            created_from_template_id=template.id,
        )
        db.add(rule)
        db.commit()
        db.refresh(rule)
        logger.info(f"Template '{template.name}' activated for organization {organization_id}")
        return RuleOut.model_validate(rule)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
