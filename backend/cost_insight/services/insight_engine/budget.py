"""
Budget Deriver
==============
Implied budgets from historical spend (no budgets are configured upstream).

Account budget:
  baseline          = previous period total if > 0, else forecasted spend
  limit             = baseline × 1.10
  percent_used      = MTD / limit × 100          (0 when limit is 0)
  projected_percent = forecast / limit × 100     (0 when limit is 0)
  will_exceed       = projected_percent > 100 and status is not already critical

Forecast risk uses its own budget: previous period × 1.10, or the unscaled
forecast when there is no previous period.

Per-service budgets project each service's MTD cost to a full-month run-rate:
  run_rate = cost × days_in_month / max(day_of_month, 1)
  limit    = run_rate × 1.10
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Sequence

from cost_insight.models.cost import CostLineItem, CostSnapshot
from cost_insight.models.insight import BudgetStatus, BudgetVariance, BudgetView, ForecastRisk, ForecastRiskView
from cost_insight.services.insight_engine.classifier import classify, safe_percent
from cost_insight.services.insight_engine.policy import STANDARD_POLICY, InsightPolicy
from cost_insight.utils.date_helpers import days_in_month

logger = logging.getLogger(__name__)

ACCOUNT_BUDGET_LABEL = "AWS Total (Account)"

_RISK_TEXT: dict[ForecastRisk, tuple[str, str]] = {
    ForecastRisk.LOW: (
        "Low Risk",
        "Spending is well within budget. No action needed.",
    ),
    ForecastRisk.MEDIUM: (
        "Medium Risk",
        "Spending is approaching the budget threshold. Monitor closely.",
    ),
    ForecastRisk.HIGH: (
        "High Risk",
        "Spending is projected to exceed budget. Immediate action recommended.",
    ),
}


def budget_baseline(snapshot: CostSnapshot) -> float:
    if snapshot.previous_period_total > 0:
        return snapshot.previous_period_total
    return snapshot.forecasted_spend


def build_budget_view(
    label: str,
    limit: float,
    spent: float,
    projected: float,
    policy: InsightPolicy = STANDARD_POLICY,
    provider_tag: str = "AWS",
) -> BudgetView:
    percent_used = safe_percent(spent, limit)
    projected_percent = safe_percent(projected, limit)
    status = classify(percent_used, policy.budget_status)
    return BudgetView(
        label=label,
        limit=limit,
        spent=spent,
        projected=projected,
        percent_used=percent_used,
        projected_percent=projected_percent,
        status=status,
        will_exceed=projected_percent > 100 and status != BudgetStatus.CRITICAL,
        provider_tag=provider_tag,
    )


def derive_budget(snapshot: CostSnapshot, policy: InsightPolicy = STANDARD_POLICY) -> BudgetView:
    """Account-level implied budget for the current period."""
    limit = budget_baseline(snapshot) * policy.budget.headroom
    return build_budget_view(
        ACCOUNT_BUDGET_LABEL,
        limit=limit,
        spent=snapshot.total_spend_mtd,
        projected=snapshot.forecasted_spend,
        policy=policy,
    )


def run_rate(cost: float, day_of_month: int, month_days: int) -> float:
    """Extrapolate month-to-date cost to a full period."""
    return cost * (month_days / max(day_of_month, 1))


def derive_service_budgets(
    items: Sequence[CostLineItem],
    today: Optional[date] = None,
    policy: InsightPolicy = STANDARD_POLICY,
) -> list[BudgetView]:
    """Run-rate budgets for the first N items (callers pass items sorted by cost)."""
    today = today or date.today()
    month_days = days_in_month(today)
    views = []
    for item in items[:policy.budget.service_budget_count]:
        projected = run_rate(item.cost, today.day, month_days)
        views.append(build_budget_view(
            item.name,
            limit=projected * policy.budget.headroom,
            spent=item.cost,
            projected=projected,
            policy=policy,
            provider_tag=item.provider_tag,
        ))
    logger.debug(f"Derived {len(views)} service budget(s) for day {today.day}/{month_days}")
    return views


def forecast_risk_budget(snapshot: CostSnapshot, policy: InsightPolicy = STANDARD_POLICY) -> float:
    """Previous period plus headroom; with no previous period the forecast itself, unscaled."""
    if snapshot.previous_period_total > 0:
        return snapshot.previous_period_total * policy.budget.headroom
    return snapshot.forecasted_spend


def forecast_risk_view(snapshot: CostSnapshot, policy: InsightPolicy = STANDARD_POLICY) -> ForecastRiskView:
    """How far the EOM forecast reaches into the risk budget."""
    limit = forecast_risk_budget(snapshot, policy)
    ratio = safe_percent(snapshot.forecasted_spend, limit)
    level = classify(ratio, policy.forecast_risk)
    label, description = _RISK_TEXT[level]
    return ForecastRiskView(
        forecast_ratio=ratio,
        level=level,
        label=label,
        description=description,
        budget=limit,
        forecasted_spend=snapshot.forecasted_spend,
    )


def budget_variance(
    snapshot: CostSnapshot,
    budget: Optional[BudgetView] = None,
    policy: InsightPolicy = STANDARD_POLICY,
) -> BudgetVariance:
    """Forecast vs implied budget, plus forecast vs previous period."""
    budget = budget or derive_budget(snapshot, policy)
    variance = snapshot.forecasted_spend - budget.limit
    previous = snapshot.previous_period_total
    mom = (snapshot.forecasted_spend - previous) / previous * 100 if previous > 0 else 0.0
    return BudgetVariance(
        budget=budget.limit,
        forecasted_spend=snapshot.forecasted_spend,
        variance=variance,
        variance_percent=safe_percent(variance, budget.limit) if budget.limit > 0 else 0.0,
        mom_change_percent=mom,
    )
