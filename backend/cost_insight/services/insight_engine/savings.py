"""
Savings Estimator
=================
Applies each SavingsRule's fixed recovery rate to the cost of its eligible
category:

    estimated_monthly_savings = sum(eligible costs) × rate

`estimate_category_savings` reports every rule, zero included, so callers can
always look a category up. `estimate_savings` is the ranked view: zero rows
dropped, highest savings first, ties in rule declaration order.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from cost_insight.models.cost import CostLineItem
from cost_insight.models.insight import Priority, SavingsOpportunity, ServiceCategories
from cost_insight.services.insight_engine.categorizer import categorize
from cost_insight.services.insight_engine.policy import STANDARD_POLICY, InsightPolicy, SavingsRule

logger = logging.getLogger(__name__)


def _priority(rule: SavingsRule, eligible_cost: float, total_spend_mtd: float, policy: InsightPolicy) -> Priority:
    if rule.eligible_set == "compute":
        return Priority.HIGH if eligible_cost > total_spend_mtd * policy.rightsizing_high_share else Priority.MEDIUM
    if rule.eligible_set == "storage":
        return Priority.HIGH if eligible_cost > total_spend_mtd * policy.storage_high_share else Priority.MEDIUM
    if rule.eligible_set == "spiking":
        return policy.spike_priority
    if rule.eligible_set == "idle":
        return Priority.LOW
    return Priority.HIGH


def apply_rule(
    rule: SavingsRule,
    categories: ServiceCategories,
    total_spend_mtd: float = 0.0,
    policy: InsightPolicy = STANDARD_POLICY,
) -> SavingsOpportunity:
    eligible = categories.get(rule.eligible_set)
    if len(eligible) < rule.min_count:
        eligible = ()
    eligible_cost = sum(i.cost for i in eligible)
    return SavingsOpportunity(
        category=rule.category,
        eligible_line_items=tuple(eligible),
        estimated_monthly_savings=eligible_cost * rule.rate,
        rate=rule.rate,
        priority=_priority(rule, eligible_cost, total_spend_mtd, policy),
        description=rule.description,
    )


def estimate_category_savings(
    categories: ServiceCategories,
    total_spend_mtd: float = 0.0,
    policy: InsightPolicy = STANDARD_POLICY,
) -> dict[str, SavingsOpportunity]:
    """category name -> opportunity, for every rule in declaration order."""
    return {
        rule.category: apply_rule(rule, categories, total_spend_mtd, policy)
        for rule in policy.savings_rules
    }


def rank_opportunities(opportunities: Iterable[SavingsOpportunity]) -> list[SavingsOpportunity]:
    ranked = [o for o in opportunities if o.estimated_monthly_savings > 0]
    ranked.sort(key=lambda o: o.estimated_monthly_savings, reverse=True)
    return ranked


def estimate_savings(
    items: Iterable[CostLineItem],
    total_spend_mtd: Optional[float] = None,
    policy: InsightPolicy = STANDARD_POLICY,
    categories: Optional[ServiceCategories] = None,
) -> list[SavingsOpportunity]:
    """Ranked non-zero savings opportunities for a set of line items.

    total_spend_mtd defaults to the sum of the items; it drives idle detection
    and the rightsizing/storage priority split.
    """
    items = tuple(items)
    if total_spend_mtd is None:
        total_spend_mtd = sum(i.cost for i in items)
    if categories is None:
        categories = categorize(items, total_spend_mtd, policy.categories)

    ranked = rank_opportunities(estimate_category_savings(categories, total_spend_mtd, policy).values())
    logger.debug(f"{len(ranked)} savings opportunit(ies) from {len(items)} line item(s)")
    return ranked
