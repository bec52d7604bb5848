"""Client-side plan quota tracking."""

from notebooklm_wire.quota.governor import QuotaGovernor, UsageSnapshot, UsageWindow
from notebooklm_wire.quota.plans import PLAN_LIMITS, Operation, Plan, PlanLimits

__all__ = [
    "Operation",
    "PLAN_LIMITS",
    "Plan",
    "PlanLimits",
    "QuotaGovernor",
    "UsageSnapshot",
    "UsageWindow",
]
