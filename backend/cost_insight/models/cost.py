"""
Input value objects supplied by the cost data collector.
All immutable; rebuilt on every fetch.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional

from cost_insight.core.exceptions import InvalidInput


def _require_finite(name: str, value: float) -> None:
    if not math.isfinite(value):
        raise InvalidInput(f"{name} must be a finite number, got {value!r}")


@dataclass(frozen=True)
class CostLineItem:
    """One billed service for the current period."""

    name: str
    cost: float
    change_percent: float = 0.0   # month-over-month, may be negative
    provider_tag: str = "AWS"

    def __post_init__(self) -> None:
        _require_finite("cost", self.cost)
        _require_finite("change_percent", self.change_percent)
        if self.cost < 0:
            raise InvalidInput(f"cost for {self.name!r} must be >= 0, got {self.cost}")


@dataclass(frozen=True)
class MonthlyCostPoint:
    period_label: str   # ISO month start, e.g. "2026-09-01"
    total_cost: float


@dataclass(frozen=True)
class DataTransferCost:
    category: str
    cost: float
    change_percent: float = 0.0


@dataclass(frozen=True)
class CommitmentCoverage:
    coverage_percent: float = 0.0
    utilization_percent: float = 0.0
    on_demand_cost: float = 0.0
    committed_cost: float = 0.0
    estimated_savings: float = 0.0


@dataclass(frozen=True)
class OptimizerTypeSummary:
    resource_type: str   # EC2 | EBS | Lambda | AutoScaling
    count: int
    savings: float


@dataclass(frozen=True)
class OptimizerSummary:
    status: str = "error"   # active | collecting | not-enrolled | error
    total_estimated_savings: float = 0.0
    by_type: tuple[OptimizerTypeSummary, ...] = ()
    error_message: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass(frozen=True)
class CostSnapshot:
    """Aggregate root handed to the engine.

    A forecasted_spend of 0 means "forecast unavailable", not zero spend.
    """

    total_spend_mtd: float = 0.0
    previous_period_total: float = 0.0
    forecasted_spend: float = 0.0
    line_items: tuple[CostLineItem, ...] = ()
    trend: tuple[MonthlyCostPoint, ...] = ()
    data_transfer: tuple[DataTransferCost, ...] = ()
    commitment: CommitmentCoverage = field(default_factory=CommitmentCoverage)
    optimizer: OptimizerSummary = field(default_factory=OptimizerSummary)
    account_id: str = "not-connected"
    currency: str = "USD"
    error: Optional[str] = None

    def __post_init__(self) -> None:
        _require_finite("total_spend_mtd", self.total_spend_mtd)
        _require_finite("previous_period_total", self.previous_period_total)
        _require_finite("forecasted_spend", self.forecasted_spend)

    @property
    def change_percent(self) -> float:
        """MTD spend relative to the full previous period."""
        if self.previous_period_total <= 0:
            return 0.0
        return (self.total_spend_mtd - self.previous_period_total) / self.previous_period_total * 100
