"""
Insight Policy
==============
Every threshold, pattern and recovery rate the engine uses, in one place.

Two named variants are provided:
  standard   full service patterns from the recommendations view
  tracking   narrower patterns from the optimization-tracking view
             (compute without fargate/ecs, storage without efs/glacier/snapshot,
             stable workloads down to $0.50)

Boundary conventions differ per table and are deliberate:
  budget status, forecast risk, spike severity   → strict  (value >  cutoff)
  coverage / compliance, commitment, maturity     → inclusive (value >= cutoff)
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Generic, TypeVar

from cost_insight.core.exceptions import InvalidInput
from cost_insight.models.insight import (
    BudgetStatus, CoverageLevel, ForecastRisk, MaturityTier, Priority, SpikeSeverity,
)

T = TypeVar("T")


@dataclass(frozen=True)
class Threshold(Generic[T]):
    cutoff: float
    label: T


@dataclass(frozen=True)
class ThresholdTable(Generic[T]):
    """Ordered (cutoff, label) rows, highest cutoff first, plus a default tier."""

    name: str
    rows: tuple[Threshold[T], ...]
    default: T
    inclusive: bool = False

    def __post_init__(self) -> None:
        cutoffs = [r.cutoff for r in self.rows]
        if cutoffs != sorted(cutoffs, reverse=True):
            raise ValueError(f"Threshold table {self.name!r} must be sorted descending by cutoff")

    @property
    def tiers(self) -> list[T]:
        """Labels from lowest to highest tier."""
        return [self.default] + [r.label for r in reversed(self.rows)]

    def tier_index(self, label: T) -> int:
        return self.tiers.index(label)


# ── Threshold tables ──────────────────────────────────────────────────────────

BUDGET_STATUS_TABLE: ThresholdTable[BudgetStatus] = ThresholdTable(
    name="budget_status",
    rows=(
        Threshold(100, BudgetStatus.CRITICAL),
        Threshold(80, BudgetStatus.WARNING),
        Threshold(50, BudgetStatus.NORMAL),
    ),
    default=BudgetStatus.ON_TRACK,
)

FORECAST_RISK_TABLE: ThresholdTable[ForecastRisk] = ThresholdTable(
    name="forecast_risk",
    rows=(
        Threshold(95, ForecastRisk.HIGH),
        Threshold(75, ForecastRisk.MEDIUM),
    ),
    default=ForecastRisk.LOW,
)

COVERAGE_TABLE: ThresholdTable[CoverageLevel] = ThresholdTable(
    name="coverage",
    rows=(
        Threshold(80, CoverageLevel.GOOD),
        Threshold(50, CoverageLevel.MODERATE),
    ),
    default=CoverageLevel.LOW,
    inclusive=True,
)

COMMITMENT_COVERAGE_TABLE: ThresholdTable[CoverageLevel] = ThresholdTable(
    name="commitment_coverage",
    rows=(
        Threshold(70, CoverageLevel.GOOD),
        Threshold(40, CoverageLevel.MODERATE),
    ),
    default=CoverageLevel.LOW,
    inclusive=True,
)

SPIKE_SEVERITY_TABLE: ThresholdTable[SpikeSeverity] = ThresholdTable(
    name="spike_severity",
    rows=(
        Threshold(200, SpikeSeverity.CRITICAL_SURGE),
        Threshold(100, SpikeSeverity.CRITICAL_DOUBLE),
        Threshold(50, SpikeSeverity.WARNING),
    ),
    default=SpikeSeverity.INFO,
)

MATURITY_TIER_TABLE: ThresholdTable[MaturityTier] = ThresholdTable(
    name="maturity_tier",
    rows=(
        Threshold(80, MaturityTier.OPTIMIZING),
        Threshold(60, MaturityTier.MANAGED),
        Threshold(40, MaturityTier.INFORMED),
    ),
    default=MaturityTier.CRAWL,
    inclusive=True,
)


# ── Category / savings / spike / budget policy ───────────────────────────────

@dataclass(frozen=True)
class CategoryPolicy:
    compute_pattern: re.Pattern[str]
    storage_pattern: re.Pattern[str]
    network_pattern: re.Pattern[str]
    stable_max_abs_change: float = 20.0
    stable_min_cost: float = 1.0
    spiking_min_change: float = 25.0
    idle_max_share: float = 0.01   # of MTD total


@dataclass(frozen=True)
class SavingsRule:
    category: str
    rate: float
    eligible_set: str          # attribute name on ServiceCategories
    min_count: int = 1         # fewer eligible items than this → no savings
    description: str = ""


SAVINGS_RULES: tuple[SavingsRule, ...] = (
    SavingsRule(
        "Rightsizing", 0.15, "compute",
        description="Analyze EC2/Lambda utilization and downsize over-provisioned resources to match actual usage",
    ),
    SavingsRule(
        "Savings Plans / Reserved", 0.30, "stable_workloads",
        description="Commit to 1-3 year terms for stable workloads for up to 40% savings vs on-demand",
    ),
    SavingsRule(
        "Storage Optimization", 0.20, "storage",
        description="Move infrequently accessed data to S3 Intelligent-Tiering or Glacier; clean up old snapshots",
    ),
    SavingsRule(
        "Spike/Anomaly Reduction", 0.30, "spiking",
        description="Services with >25% MoM cost increase may indicate waste, misconfiguration or unexpected scaling",
    ),
    SavingsRule(
        "Idle Cleanup", 0.50, "idle", min_count=4,
        description="Low-cost services may indicate unused or orphaned resources, a quick win with no performance impact",
    ),
)


@dataclass(frozen=True)
class SpikePolicy:
    min_change: float = 20.0
    max_results: int = 5


@dataclass(frozen=True)
class BudgetPolicy:
    headroom: float = 1.10
    service_budget_count: int = 3


@dataclass(frozen=True)
class InsightPolicy:
    name: str
    categories: CategoryPolicy
    savings_rules: tuple[SavingsRule, ...] = SAVINGS_RULES
    spikes: SpikePolicy = field(default_factory=SpikePolicy)
    budget: BudgetPolicy = field(default_factory=BudgetPolicy)
    budget_status: ThresholdTable[BudgetStatus] = BUDGET_STATUS_TABLE
    forecast_risk: ThresholdTable[ForecastRisk] = FORECAST_RISK_TABLE
    coverage: ThresholdTable[CoverageLevel] = COVERAGE_TABLE
    commitment_coverage: ThresholdTable[CoverageLevel] = COMMITMENT_COVERAGE_TABLE
    spike_severity: ThresholdTable[SpikeSeverity] = SPIKE_SEVERITY_TABLE
    maturity_tier: ThresholdTable[MaturityTier] = MATURITY_TIER_TABLE
    # Rightsizing / storage priority switches to HIGH above these shares of MTD
    rightsizing_high_share: float = 0.30
    storage_high_share: float = 0.15
    spike_priority: Priority = Priority.HIGH


STANDARD_POLICY = InsightPolicy(
    name="standard",
    categories=CategoryPolicy(
        compute_pattern=re.compile(r"ec2|compute|instance|lambda|fargate|ecs", re.IGNORECASE),
        storage_pattern=re.compile(r"s3|storage|ebs|efs|glacier|backup|snapshot", re.IGNORECASE),
        network_pattern=re.compile(r"transfer|cloudfront|nat|vpc|route|elb|load|api gateway", re.IGNORECASE),
    ),
)

TRACKING_POLICY = InsightPolicy(
    name="tracking",
    categories=CategoryPolicy(
        compute_pattern=re.compile(r"ec2|compute|instance|lambda", re.IGNORECASE),
        storage_pattern=re.compile(r"s3|storage|ebs|backup", re.IGNORECASE),
        network_pattern=re.compile(r"transfer|cloudfront|nat|vpc|route|elb|load|api gateway", re.IGNORECASE),
        stable_min_cost=0.5,
    ),
)

VARIANTS: dict[str, InsightPolicy] = {
    STANDARD_POLICY.name: STANDARD_POLICY,
    TRACKING_POLICY.name: TRACKING_POLICY,
}


def get_policy(variant: str = "standard", **overrides) -> InsightPolicy:
    """Look up a named variant, optionally overriding spike/budget knobs."""
    try:
        policy = VARIANTS[variant.strip().lower()]
    except KeyError:
        raise InvalidInput(
            f"Unknown engine variant {variant!r}; expected one of {sorted(VARIANTS)}"
        ) from None

    spike_max = overrides.get("spike_max_results")
    budget_count = overrides.get("service_budget_count")
    if spike_max is not None:
        policy = replace(policy, spikes=replace(policy.spikes, max_results=spike_max))
    if budget_count is not None:
        policy = replace(policy, budget=replace(policy.budget, service_budget_count=budget_count))
    return policy
