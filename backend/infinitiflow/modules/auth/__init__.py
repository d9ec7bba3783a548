# Authentication module

from infinitiflow.modules.auth.dependencies import (
    get_current_user,
    get_optional_user,
    get_current_admin,
    restrict_to,
    check_subscription,
    check_ownership,
    user_rate_limit,
)

from infinitiflow.modules.auth.usage_limits import (
    check_user_limit,
    require_user_limit,
    get_usage_limits,
    update_usage,
    record_usage,
    record_content_usage,
    get_subscription,
    UsageLimitCheck,
)

from infinitiflow.modules.auth.rate_limit import UserRateLimiter, RateLimitResult

__all__ = [
    # Dependencies
    "get_current_user",
    "get_optional_user",
    "get_current_admin",
    "restrict_to",
    "check_subscription",
    "check_ownership",
    "user_rate_limit",
    # Usage limits
    "check_user_limit",
    "require_user_limit",
    "get_usage_limits",
    "update_usage",
    "record_usage",
    "record_content_usage",
    "get_subscription",
    "UsageLimitCheck",
    # Per-user rate limiting
    "UserRateLimiter",
    "RateLimitResult",
]
