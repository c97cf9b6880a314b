from typing import List, Optional

from fastapi import APIRouter, status

from cancellation_engine.api.errors import http_error, internal_error
from cancellation_engine.core.config import settings
from cancellation_engine.core.errors import CancellationEngineError
from cancellation_engine.core.models import (
    ActivateTemplateRequest,
    ReorderRulesRequest,
    RuleCreate,
    RuleOut,
    RuleTemplateOut,
    RuleUpdate,
)
from cancellation_engine.engine import rules as rule_service
from cancellation_engine.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/v1", tags=["rules"])


@router.get("/rules", response_model=List[RuleOut])
def list_rules(organization_id: Optional[str] = None, active_only: bool = False):
    try:
        return rule_service.list_rules(organization_id or settings.DEFAULT_ORGANIZATION_ID, active_only)
    except Exception as e:
        raise internal_error("Rule listing", e)


@router.post("/rules", response_model=RuleOut, status_code=status.HTTP_201_CREATED)
def create_rule(payload: RuleCreate):
    try:
        return rule_service.create_rule(payload)
    except CancellationEngineError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("Rule creation", e)


@router.post("/rules/reorder", response_model=List[RuleOut])
def reorder_rules(payload: ReorderRulesRequest):
    try:
        return rule_service.reorder_rules(payload.rules)
    except CancellationEngineError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("Rule reordering", e)


@router.get("/rules/{rule_id}", response_model=RuleOut)
def get_rule(rule_id: str):
    try:
        return rule_service.get_rule(rule_id)
    except CancellationEngineError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("Rule lookup", e)


@router.patch("/rules/{rule_id}", response_model=RuleOut)
def update_rule(rule_id: str, payload: RuleUpdate):
    try:
        return rule_service.update_rule(rule_id, payload)
    except CancellationEngineError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("Rule update", e)


@router.delete("/rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rule(rule_id: str):
    try:
        rule_service.delete_rule(rule_id)
    except CancellationEngineError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("Rule deletion", e)


@router.post("/rules/{rule_id}/toggle", response_model=RuleOut)
def toggle_rule(rule_id: str):
    try:
        return rule_service.toggle_rule(rule_id)
    except CancellationEngineError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("Rule toggle", e)


@router.get("/rule-templates", response_model=List[RuleTemplateOut])
def list_templates():
    try:
        return rule_service.list_rule_templates()
    except Exception as e:
        raise internal_error("Template listing", e)


@router.post(
    "/rule-templates/{template_id}/activate",
    response_model=RuleOut,
    status_code=status.HTTP_201_CREATED,
)
def activate_template(template_id: str, payload: ActivateTemplateRequest):
    try:
        return rule_service.activate_template(template_id, payload.organization_id, payload.customizations)
    except CancellationEngineError as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error("Template activation", e)
