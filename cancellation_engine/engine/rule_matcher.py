"""
First-match rule evaluation.

Rules are evaluated in ascending priority; the first rule whose every
specified condition holds decides the request. When nothing matches the
caller gets the safe default, ``manual_review``.
"""
from datetime import datetime
from typing import Iterable, Iterator, List, Optional

from pydantic import BaseModel, ValidationError

from cancellation_engine.core.enums import ActionType
from cancellation_engine.engine.conditions import EvaluationContext, RuleAction, RuleConditions
from cancellation_engine.utils.logger import get_logger

logger = get_logger(__name__)

NO_MATCH_REASON = "No matching rule found, defaulting to manual review"


class RuleDefinition(BaseModel):
    id: str
    name: str
    priority: int = 0
    conditions: RuleConditions
    action: RuleAction
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, rule) -> "RuleDefinition":
        """Build from a stored rule row; raises if its documents are malformed."""
        return cls(
            id=rule.id,
            name=rule.name,
            priority=rule.priority,
            conditions=RuleConditions.model_validate(rule.conditions or {}),
            action=RuleAction.model_validate(rule.actions),
            created_at=rule.created_at,
        )


def load_rule_definitions(records) -> Iterator[RuleDefinition]:
    """
    Parse stored rule rows, skipping any whose documents no longer validate.

    A skipped rule can never match, so one bad row only changes the outcome
    for requests that no other rule would have decided.
    """
    for record in records:
        try:
            yield RuleDefinition.from_record(record)
        except ValidationError as e:
            logger.warning(
                f"Skipping rule '{record.name}' ({record.id}): invalid definition, "
                f"{e.error_count()} error(s): {e.errors()[0]['msg']}"
            )


class MatchResult(BaseModel):
    action: ActionType
    matched_rule_id: Optional[str] = None
    matched_rule_name: Optional[str] = None
    reason: str


def rule_matches(conditions: RuleConditions, context: EvaluationContext) -> bool:
    """True when every specified dimension is satisfied."""
    return all(predicate.is_satisfied(context) for predicate in conditions.predicates())


def match_rule(rules: Iterable[RuleDefinition], context: EvaluationContext) -> Optional[RuleDefinition]:
    """
    Return the first fully matching rule, or None.

    The sort is stable, so rules sharing a priority keep the order they were
    given in (the store hands them over by creation time, then id).
    """
    ordered: List[RuleDefinition] = sorted(rules, key=lambda r: r.priority)
    for rule in ordered:
        if rule_matches(rule.conditions, context):
            logger.debug(f"Rule '{rule.name}' ({rule.id}) matched at priority {rule.priority}")
            return rule
    return None


def evaluate_rules(rules: Iterable[RuleDefinition], context: EvaluationContext) -> MatchResult:
    """Match and apply the no-match default."""
    rule = match_rule(rules, context)
    if rule is None:
        return MatchResult(action=ActionType.manual_review, reason=NO_MATCH_REASON)
    return MatchResult(
        action=rule.action.type,
        matched_rule_id=rule.id,
        matched_rule_name=rule.name,
        reason=f"Matched rule: {rule.name}",
    )
