"""
Plan reference data.

Fixed tables for the four subscription plans:
- PLAN_FEATURES: feature set copied onto a Subscription whenever its plan is assigned
- USER_USAGE_LIMITS: monthly ceilings checked against the counters kept on the User
- PLAN_HIERARCHY: rank used by check_subscription (free < basic < premium < enterprise)

A limit of -1 means unlimited.
"""

import copy
import enum
from typing import Any, Dict


UNLIMITED = -1


class PlanType(str, enum.Enum):
    """Subscription plans"""
    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


PLAN_HIERARCHY: Dict[str, int] = {
    PlanType.FREE.value: 0,
    PlanType.BASIC.value: 1,
    PlanType.PREMIUM.value: 2,
    PlanType.ENTERPRISE.value: 3,
}


PLAN_FEATURES: Dict[str, Dict[str, Any]] = {
    PlanType.FREE.value: {
        "contentLimit": 10,
        "wordsLimit": 5000,
        "templatesAccess": True,
        "premiumTemplates": False,
        "apiAccess": False,
        "collaborators": 0,
        "prioritySupport": False,
        "customBranding": False,
        "analytics": False,
        "exportOptions": ["txt"],
        "integrations": [],
    },
    PlanType.BASIC.value: {
        "contentLimit": 100,
        "wordsLimit": 50000,
        "templatesAccess": True,
        "premiumTemplates": True,
        "apiAccess": False,
        "collaborators": 2,
        "prioritySupport": False,
        "customBranding": False,
        "analytics": True,
        "exportOptions": ["txt", "docx", "pdf"],
        "integrations": ["zapier"],
    },
    PlanType.PREMIUM.value: {
        "contentLimit": 500,
        "wordsLimit": 250000,
        "templatesAccess": True,
        "premiumTemplates": True,
        "apiAccess": True,
        "collaborators": 10,
        "prioritySupport": True,
        "customBranding": True,
        "analytics": True,
        "exportOptions": ["txt", "docx", "pdf", "html"],
        "integrations": ["zapier", "slack", "hubspot"],
    },
    PlanType.ENTERPRISE.value: {
        "contentLimit": UNLIMITED,
        "wordsLimit": UNLIMITED,
        "templatesAccess": True,
        "premiumTemplates": True,
        "apiAccess": True,
        "collaborators": UNLIMITED,
        "prioritySupport": True,
        "customBranding": True,
        "analytics": True,
        "exportOptions": ["txt", "docx", "pdf", "html", "csv"],
        "integrations": ["zapier", "slack", "hubspot", "salesforce", "custom"],
    },
}


USER_USAGE_LIMITS: Dict[str, Dict[str, int]] = {
    PlanType.FREE.value: {"contentGenerated": 10, "wordsGenerated": 5000, "apiCalls": 50},
    PlanType.BASIC.value: {"contentGenerated": 100, "wordsGenerated": 50000, "apiCalls": 500},
    PlanType.PREMIUM.value: {"contentGenerated": 500, "wordsGenerated": 250000, "apiCalls": 2500},
    PlanType.ENTERPRISE.value: {"contentGenerated": UNLIMITED, "wordsGenerated": UNLIMITED, "apiCalls": UNLIMITED},
}


def plan_value(plan: Any) -> str:
    """Accept a PlanType or its string value"""
    return plan.value if isinstance(plan, enum.Enum) else str(plan)


def get_plan_features(plan: Any) -> Dict[str, Any]:
    """Fresh copy of the feature set for a plan (free for unknown plans)"""
    features = PLAN_FEATURES.get(plan_value(plan), PLAN_FEATURES[PlanType.FREE.value])
    return copy.deepcopy(features)


def get_plan_rank(plan: Any) -> int:
    return PLAN_HIERARCHY.get(plan_value(plan), 0)


def limit_reached(current: int, limit: int) -> bool:
    """True when a counter is at or above a finite limit"""
    if limit == UNLIMITED:
        return False
    return (current or 0) >= limit
