"""
Billing-tier authorization matrix for maintenance tasks.

Maps a site's subscription plan and billing status to the set of task kinds
the orchestrator may run for it. Pure functions, no I/O; the orchestrator
calls them for every site on every pass because billing state can change
between passes.

    billing_status   plan       enabled tasks
    --------------   --------   -------------------------
    canceled         any        (none)
    inactive         any        uptime
    past_due         any        uptime
    active           basic      uptime
    active           standard   uptime, backup
    active           pro        uptime, backup, seo  (+ weekly report)

Unknown or missing plans are treated as ``basic`` and unknown or missing
billing statuses as ``inactive``.
"""

from typing import Dict, FrozenSet, Optional, Union

from ..models import BillingStatus, SitePlan, TaskKind

_PLAN_TASKS: Dict[SitePlan, FrozenSet[TaskKind]] = {
    SitePlan.BASIC: frozenset({TaskKind.UPTIME}),
    SitePlan.STANDARD: frozenset({TaskKind.UPTIME, TaskKind.BACKUP}),
    SitePlan.PRO: frozenset({TaskKind.UPTIME, TaskKind.BACKUP, TaskKind.SEO}),
}

# Payment provider subscription status -> billing status
PROVIDER_STATUS_MAP: Dict[str, BillingStatus] = {
    "active": BillingStatus.ACTIVE,
    "trialing": BillingStatus.ACTIVE,
    "past_due": BillingStatus.PAST_DUE,
    "unpaid": BillingStatus.PAST_DUE,
    "paused": BillingStatus.PAST_DUE,
    "canceled": BillingStatus.CANCELED,
    "incomplete_expired": BillingStatus.CANCELED,
    "incomplete": BillingStatus.INACTIVE,
}


def normalize_plan(plan: Optional[Union[SitePlan, str]]) -> SitePlan:
    if isinstance(plan, SitePlan):
        return plan
    try:
        return SitePlan(str(plan).strip().lower())
    except ValueError:
        return SitePlan.BASIC


def normalize_billing_status(status: Optional[Union[BillingStatus, str]]) -> BillingStatus:
    if isinstance(status, BillingStatus):
        return status
    try:
        return BillingStatus(str(status).strip().lower())
    except ValueError:
        return BillingStatus.INACTIVE


def enabled_tasks(
    plan: Optional[Union[SitePlan, str]],
    billing_status: Optional[Union[BillingStatus, str]],
) -> FrozenSet[TaskKind]:
    """Task kinds allowed for a site with the given plan and billing status."""
    status = normalize_billing_status(billing_status)
    if status == BillingStatus.CANCELED:
        return frozenset()
    if status != BillingStatus.ACTIVE:
        return frozenset({TaskKind.UPTIME})
    return _PLAN_TASKS[normalize_plan(plan)]


def weekly_report_enabled(
    plan: Optional[Union[SitePlan, str]],
    billing_status: Optional[Union[BillingStatus, str]],
) -> bool:
    """Weekly reports are a Pro feature and require an active subscription."""
    return (
        normalize_plan(plan) == SitePlan.PRO
        and normalize_billing_status(billing_status) == BillingStatus.ACTIVE
    )


def billing_status_from_provider(provider_status: Optional[str]) -> BillingStatus:
    """Translate a payment provider subscription status into a billing status."""
    if not provider_status:
        return BillingStatus.INACTIVE
    return PROVIDER_STATUS_MAP.get(provider_status.strip().lower(), BillingStatus.INACTIVE)
