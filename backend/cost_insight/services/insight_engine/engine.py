"""
Cost Insight Engine
===================
Single entry point over the pure stages:

  CostSnapshot → categorize → {budget, spikes, savings} → maturity → AggregatedInsight

The engine holds only its (immutable) policy, so one instance can serve
concurrent requests. Variants are named policies selected by configuration.
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from cost_insight.core.config import Settings, get_settings
from cost_insight.core.logging import ContextLogger
from cost_insight.models.cost import CostSnapshot
from cost_insight.models.insight import AggregatedInsight
from cost_insight.services.insight_engine import budget as budget_stage
from cost_insight.services.insight_engine.categorizer import categorize, service_health
from cost_insight.services.insight_engine.classifier import commitment_coverage_level
from cost_insight.services.insight_engine.maturity import score_maturity, signals_from_snapshot
from cost_insight.services.insight_engine.policy import STANDARD_POLICY, InsightPolicy, get_policy
from cost_insight.services.insight_engine.responder import build_context_prompt, respond
from cost_insight.services.insight_engine.savings import estimate_savings
from cost_insight.services.insight_engine.spikes import derive_anomalies, detect_spikes


class CostInsightEngine:
    def __init__(self, policy: InsightPolicy = STANDARD_POLICY) -> None:
        self.policy = policy
        self.log = ContextLogger(__name__, variant=policy.name)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, variant: Optional[str] = None) -> "CostInsightEngine":
        """Engine for `variant` (ENGINE_VARIANT when None) with the configured spike/budget knobs."""
        settings = settings or get_settings()
        return cls(get_policy(
            variant or settings.engine_variant,
            spike_max_results=settings.spike_max_results,
            service_budget_count=settings.service_budget_count,
        ))

    @property
    def variant(self) -> str:
        return self.policy.name

    def aggregate(self, snapshot: CostSnapshot, today: Optional[date] = None) -> AggregatedInsight:
        """Run every stage over one snapshot. Empty snapshots yield all-zero views."""
        policy = self.policy
        items = snapshot.line_items
        by_cost = tuple(sorted(items, key=lambda i: i.cost, reverse=True))

        categories = categorize(items, snapshot.total_spend_mtd, policy.categories)
        account_budget = budget_stage.derive_budget(snapshot, policy)
        spikes = detect_spikes(items, policy=policy)
        savings = estimate_savings(items, snapshot.total_spend_mtd, policy, categories)
        maturity = score_maturity(signals_from_snapshot(snapshot), policy)

        insight = AggregatedInsight(
            variant=policy.name,
            total_spend_mtd=snapshot.total_spend_mtd,
            previous_period_total=snapshot.previous_period_total,
            forecasted_spend=snapshot.forecasted_spend,
            change_percent=snapshot.change_percent,
            line_items=items,
            categories=categories,
            budget=account_budget,
            service_budgets=tuple(budget_stage.derive_service_budgets(by_cost, today, policy)),
            forecast_risk=budget_stage.forecast_risk_view(snapshot, policy),
            variance=budget_stage.budget_variance(snapshot, account_budget, policy),
            spikes=tuple(spikes),
            anomalies=tuple(derive_anomalies(items, policy)),
            savings=tuple(savings),
            service_health=tuple(service_health(by_cost, snapshot.optimizer)),
            commitment_level=commitment_coverage_level(
                snapshot.commitment.coverage_percent, policy.commitment_coverage
            ),
            maturity=maturity,
            currency=snapshot.currency,
            account_id=snapshot.account_id,
            error=snapshot.error,
        )
        self.log.debug(
            f"Aggregated {len(items)} line item(s): {len(spikes)} spike(s), "
            f"{len(savings)} opportunit(ies), maturity {maturity.tier.value}"
        )
        return insight

    def respond(self, query: str, insight: AggregatedInsight) -> str:
        return respond(query, insight)

    def context_prompt(self, insight: AggregatedInsight) -> str:
        return build_context_prompt(insight)
