"""Tests for the aggregated engine and its variants."""
import os
os.environ["MOCK_AWS"] = "true"

from datetime import date

import pytest

from cost_insight.core.config import Settings
from cost_insight.core.exceptions import InvalidInput
from cost_insight.models.cost import CostSnapshot
from cost_insight.models.insight import BudgetStatus, CoverageLevel, ForecastRisk, MaturityTier
from cost_insight.services.cost_collector import mock_snapshot
from cost_insight.services.insight_engine.engine import CostInsightEngine
from cost_insight.services.insight_engine.policy import TRACKING_POLICY, get_policy

TODAY = date(2026, 10, 15)


def test_empty_snapshot_degrades_to_zero_views():
    insight = CostInsightEngine().aggregate(CostSnapshot(error="not connected"), today=TODAY)
    assert insight.total_spend_mtd == 0
    assert insight.budget.limit == 0
    assert insight.budget.status == BudgetStatus.ON_TRACK
    assert insight.service_budgets == ()
    assert insight.forecast_risk.level == ForecastRisk.LOW
    assert insight.spikes == ()
    assert insight.savings == ()
    assert insight.anomalies == ()
    assert insight.commitment_level == CoverageLevel.NONE
    assert insight.maturity.tier == MaturityTier.CRAWL
    assert insight.error == "not connected"
    assert insight.total_monthly_savings == 0


def test_aggregate_sample_account():
    insight = CostInsightEngine().aggregate(mock_snapshot(TODAY), today=TODAY)
    assert insight.variant == "standard"
    assert len(insight.line_items) == 10
    assert len(insight.service_budgets) == 3
    assert insight.service_budgets[0].label == "Amazon Elastic Compute Cloud - Compute"
    assert [s.line_item.name for s in insight.spikes][:2] == ["AWS Data Transfer", "AWS Lambda"]
    assert insight.commitment_level == CoverageLevel.MODERATE
    assert insight.savings
    savings = [o.estimated_monthly_savings for o in insight.savings]
    assert savings == sorted(savings, reverse=True)
    assert insight.maturity.max_score == 12


def test_aggregate_is_idempotent():
    engine = CostInsightEngine()
    snapshot = mock_snapshot(TODAY)
    assert engine.aggregate(snapshot, TODAY) == engine.aggregate(snapshot, TODAY)


def test_to_dict_is_plain_data():
    data = CostInsightEngine().aggregate(mock_snapshot(TODAY), TODAY).to_dict()
    assert data["budget"]["status"] in {"on-track", "normal", "warning", "critical"}
    assert data["maturity"]["tier"] in {"Crawl", "Informed", "Managed", "Optimizing"}
    assert "estimated_annual_savings" in data["savings"][0]
    assert data["total_annual_savings"] == pytest.approx(data["total_monthly_savings"] * 12)


def test_tracking_variant_uses_narrower_patterns():
    snapshot = mock_snapshot(TODAY)
    standard = CostInsightEngine().aggregate(snapshot, TODAY)
    tracking = CostInsightEngine(TRACKING_POLICY).aggregate(snapshot, TODAY)
    assert tracking.variant == "tracking"
    assert len(tracking.categories.stable_workloads) >= len(standard.categories.stable_workloads)
    assert len(tracking.categories.storage) <= len(standard.categories.storage)


def test_from_settings_applies_overrides():
    engine = CostInsightEngine.from_settings(Settings(engine_variant="tracking", spike_max_results=2))
    assert engine.variant == "tracking"
    assert engine.policy.spikes.max_results == 2
    insight = engine.aggregate(mock_snapshot(TODAY), TODAY)
    assert len(insight.spikes) == 2


def test_unknown_variant_rejected():
    with pytest.raises(InvalidInput):
        get_policy("experimental")
    with pytest.raises(InvalidInput):
        CostInsightEngine.from_settings(Settings(engine_variant="experimental"))


def test_from_settings_variant_argument_wins_over_configured():
    settings = Settings(engine_variant="standard", spike_max_results=1, service_budget_count=2)
    engine = CostInsightEngine.from_settings(settings, variant="tracking")
    assert engine.variant == "tracking"
    assert engine.policy.spikes.max_results == 1
    assert engine.policy.budget.service_budget_count == 2
    assert CostInsightEngine.from_settings(settings).variant == "standard"
