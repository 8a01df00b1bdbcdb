# Domain Scheduling Package
from .policies import (
    POLICIES,
    EaseFactorPolicy,
    SchedulerPolicy,
    SimpleIntervalPolicy,
    build_policy,
)

__all__ = [
    "POLICIES",
    "SchedulerPolicy",
    "SimpleIntervalPolicy",
    "EaseFactorPolicy",
    "build_policy",
]
