"""Condition layer — field operators, condition trees and tag rules.

conditions/
  operators.py  — dotted-path ``resolve`` + ``compare`` operators
  engine.py     — ConditionEngine (all / any / not / field) + builders
  models.py     — tag-rule configs and result records
  event_tag.py  — EventTagMatcher for ``direct_tag`` rules
"""

from automation_engine.conditions.engine import (
    Condition,
    ConditionEngine,
    ValidationResult,
    condition_engine,
)
from automation_engine.conditions.event_tag import (
    EventTagMatcher,
    extract_tags,
    normalize_email_event,
)
from automation_engine.conditions.models import (
    BodyKeywordsCondition,
    ConditionResult,
    EventTagMatchResult,
    SenderWhitelistCondition,
    StampValidCondition,
    TriggerValidation,
    UnifiedTriggerConfig,
    UnifiedTriggerType,
    WebsiteFilterCondition,
)
from automation_engine.conditions.operators import MISSING, OPERATORS, compare, resolve

__all__ = [
    "MISSING",
    "OPERATORS",
    "BodyKeywordsCondition",
    "Condition",
    "ConditionEngine",
    "ConditionResult",
    "EventTagMatchResult",
    "EventTagMatcher",
    "SenderWhitelistCondition",
    "StampValidCondition",
    "TriggerValidation",
    "UnifiedTriggerConfig",
    "UnifiedTriggerType",
    "ValidationResult",
    "WebsiteFilterCondition",
    "compare",
    "condition_engine",
    "extract_tags",
    "normalize_email_event",
    "resolve",
]
