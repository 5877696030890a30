"""
Service Categorizer
===================
Partitions cost line items into overlapping categories by name pattern and
month-over-month behaviour. An item may land in several sets at once
(a stable S3 line is both `storage` and `stable_workloads`).

Also maps service names onto Compute Optimizer resource types and derives a
per-service health status from MoM change + optimizer findings.
"""
from __future__ import annotations

import re
from typing import Iterable, Optional, Sequence

from cost_insight.models.cost import CostLineItem, OptimizerSummary
from cost_insight.models.insight import HealthStatus, ServiceCategories, ServiceHealth
from cost_insight.services.insight_engine.policy import STANDARD_POLICY, CategoryPolicy

_VENDOR_PREFIX = re.compile(r"^(Amazon |AWS )", re.IGNORECASE)

# First match wins
_OPTIMIZER_TYPES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"ec2|compute|instance", re.IGNORECASE), "EC2"),
    (re.compile(r"ebs|volume", re.IGNORECASE), "EBS"),
    (re.compile(r"lambda", re.IGNORECASE), "Lambda"),
    (re.compile(r"auto.*scaling", re.IGNORECASE), "AutoScaling"),
]


def display_name(name: str) -> str:
    """Strip a leading 'Amazon ' / 'AWS ' vendor prefix."""
    return _VENDOR_PREFIX.sub("", name)


def categorize(
    items: Iterable[CostLineItem],
    total_spend_mtd: float = 0.0,
    policy: CategoryPolicy = STANDARD_POLICY.categories,
) -> ServiceCategories:
    """Split items into compute/storage/network/stable/spiking/idle sets."""
    items = tuple(items)
    idle_ceiling = total_spend_mtd * policy.idle_max_share

    return ServiceCategories(
        compute=tuple(i for i in items if policy.compute_pattern.search(i.name)),
        storage=tuple(i for i in items if policy.storage_pattern.search(i.name)),
        network=tuple(i for i in items if policy.network_pattern.search(i.name)),
        stable_workloads=tuple(
            i for i in items
            if abs(i.change_percent) < policy.stable_max_abs_change and i.cost > policy.stable_min_cost
        ),
        spiking=tuple(i for i in items if i.change_percent > policy.spiking_min_change),
        idle=tuple(i for i in items if 0 < i.cost < idle_ceiling),
    )


def match_optimizer_type(service_name: str) -> Optional[str]:
    for pattern, resource_type in _OPTIMIZER_TYPES:
        if pattern.search(service_name):
            return resource_type
    return None


def health_status(change_percent: float, has_optimizer_recs: bool) -> HealthStatus:
    if change_percent > 50 and has_optimizer_recs:
        return HealthStatus.CRITICAL
    if change_percent > 25 or has_optimizer_recs:
        return HealthStatus.WARNING
    return HealthStatus.HEALTHY


def service_health(
    items: Sequence[CostLineItem],
    optimizer: OptimizerSummary,
    limit: int = 6,
) -> list[ServiceHealth]:
    """Health indicator for the top `limit` services."""
    by_type = {t.resource_type: t for t in optimizer.by_type}
    results = []
    for item in items[:limit]:
        opt_type = match_optimizer_type(item.name)
        opt = by_type.get(opt_type) if opt_type else None
        count = opt.count if opt else 0
        results.append(ServiceHealth(
            line_item=item,
            display_name=display_name(item.name),
            optimizer_type=opt_type,
            optimizer_count=count,
            optimizer_savings=opt.savings if opt else 0.0,
            status=health_status(item.change_percent, count > 0),
        ))
    return results
