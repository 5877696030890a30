"""
Maturity Scorer
===============
Seven fixed dimensions (max 2,2,2,2,2,1,1 = 12). Only Optimization and
Commitment Coverage have a partial state; every other dimension is all or
nothing. Percent of max maps to Crawl / Informed / Managed / Optimizing.
"""
from __future__ import annotations

from dataclasses import dataclass

from cost_insight.models.cost import CostSnapshot
from cost_insight.models.insight import DimensionStatus, MaturityDimension, MaturityScore
from cost_insight.services.insight_engine.classifier import classify
from cost_insight.services.insight_engine.policy import STANDARD_POLICY, InsightPolicy


@dataclass(frozen=True)
class MaturitySignals:
    has_cost_allocation: bool = False     # more than 3 services tracked
    has_forecasting: bool = False
    has_budget_tracking: bool = False
    has_optimization_tracking: bool = False
    commitment_coverage_percent: float = 0.0
    has_anomaly_detection: bool = False   # any service up more than 50% MoM
    data_transfer_visible: bool = False


def signals_from_snapshot(snapshot: CostSnapshot) -> MaturitySignals:
    return MaturitySignals(
        has_cost_allocation=len(snapshot.line_items) > 3,
        has_forecasting=snapshot.forecasted_spend > 0,
        has_budget_tracking=snapshot.previous_period_total > 0,
        has_optimization_tracking=snapshot.optimizer.is_active,
        commitment_coverage_percent=snapshot.commitment.coverage_percent,
        has_anomaly_detection=any(i.change_percent > 50 for i in snapshot.line_items),
        data_transfer_visible=any(d.cost > 0 for d in snapshot.data_transfer),
    )


def _binary(label: str, achieved: bool, max_score: int, tip_on: str, tip_off: str) -> MaturityDimension:
    return MaturityDimension(
        label=label,
        status=DimensionStatus.ACHIEVED if achieved else DimensionStatus.NOT_STARTED,
        score=max_score if achieved else 0,
        max_score=max_score,
        tip=tip_on if achieved else tip_off,
    )


def _optimization(active: bool) -> MaturityDimension:
    # Without Compute Optimizer the dimension still earns the partial point
    return MaturityDimension(
        label="Optimization",
        status=DimensionStatus.ACHIEVED if active else DimensionStatus.PARTIAL,
        score=2 if active else 1,
        max_score=2,
        tip="Compute Optimizer active" if active else "Enable Compute Optimizer for rightsizing",
    )


def _commitment(percent: float) -> MaturityDimension:
    if percent >= 50:
        status, score = DimensionStatus.ACHIEVED, 2
        tip = f"{percent:.0f}% covered by SP/RI"
    elif percent > 0:
        status, score = DimensionStatus.PARTIAL, 1
        tip = "Consider Savings Plans for stable workloads"
    else:
        status, score = DimensionStatus.NOT_STARTED, 0
        tip = "Consider Savings Plans for stable workloads"
    return MaturityDimension("Commitment Coverage", status, score, 2, tip)


def score_maturity(signals: MaturitySignals, policy: InsightPolicy = STANDARD_POLICY) -> MaturityScore:
    dimensions = (
        _binary("Cost Visibility", signals.has_cost_allocation, 2,
                "Multi-service cost breakdown active", "Connect cloud account for cost data"),
        _binary("Forecasting", signals.has_forecasting, 2,
                "EOM forecast active", "Insufficient data for forecasting"),
        _binary("Budget Governance", signals.has_budget_tracking, 2,
                "Budget baseline from prior month", "Set up budget thresholds"),
        _optimization(signals.has_optimization_tracking),
        _commitment(signals.commitment_coverage_percent),
        _binary("Anomaly Detection", signals.has_anomaly_detection, 1,
                "Cost spike alerts active", "No anomalies to detect yet"),
        _binary("Data Transfer Tracking", signals.data_transfer_visible, 1,
                "Network cost visibility active", "No data transfer costs detected"),
    )
    total = sum(d.score for d in dimensions)
    max_score = sum(d.max_score for d in dimensions)
    percent = total / max_score * 100
    return MaturityScore(
        dimensions=dimensions,
        total_score=total,
        max_score=max_score,
        percent=percent,
        tier=classify(percent, policy.maturity_tier),
    )
