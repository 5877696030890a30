"""
Derived value objects produced by the insight engine.
None of these are stored; they are pure functions of a CostSnapshot.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Optional

from cost_insight.models.cost import CostLineItem


def _plain(fields: list[tuple[str, Any]]) -> dict[str, Any]:
    """asdict() factory that flattens enums to their values."""
    return {k: v.value if isinstance(v, Enum) else v for k, v in fields}


class BudgetStatus(str, Enum):
    ON_TRACK = "on-track"
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


class ForecastRisk(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CoverageLevel(str, Enum):
    NONE = "none"
    LOW = "low"
    MODERATE = "moderate"
    GOOD = "good"


class SpikeSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL_DOUBLE = "critical-double"
    CRITICAL_SURGE = "critical-surge"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DimensionStatus(str, Enum):
    NOT_STARTED = "not-started"
    PARTIAL = "partial"
    ACHIEVED = "achieved"


class MaturityTier(str, Enum):
    CRAWL = "Crawl"
    INFORMED = "Informed"
    MANAGED = "Managed"
    OPTIMIZING = "Optimizing"


@dataclass(frozen=True)
class ServiceCategories:
    """Overlapping partitions of the line items; input order is preserved in each."""

    compute: tuple[CostLineItem, ...] = ()
    storage: tuple[CostLineItem, ...] = ()
    network: tuple[CostLineItem, ...] = ()
    stable_workloads: tuple[CostLineItem, ...] = ()
    spiking: tuple[CostLineItem, ...] = ()
    idle: tuple[CostLineItem, ...] = ()

    def get(self, name: str) -> tuple[CostLineItem, ...]:
        return getattr(self, name)


@dataclass(frozen=True)
class BudgetView:
    label: str
    limit: float
    spent: float
    projected: float
    percent_used: float
    projected_percent: float
    status: BudgetStatus
    will_exceed: bool
    provider_tag: str = "AWS"


@dataclass(frozen=True)
class ForecastRiskView:
    forecast_ratio: float
    level: ForecastRisk
    label: str
    description: str
    budget: float
    forecasted_spend: float


@dataclass(frozen=True)
class BudgetVariance:
    budget: float
    forecasted_spend: float
    variance: float
    variance_percent: float
    mom_change_percent: float

    @property
    def is_over_budget(self) -> bool:
        return self.variance > 0


@dataclass(frozen=True)
class SpikeEntry:
    line_item: CostLineItem
    display_name: str
    severity: SpikeSeverity
    reconstructed_prior_cost: float
    cost_delta: float
    explanation: str


@dataclass(frozen=True)
class SavingsOpportunity:
    category: str
    eligible_line_items: tuple[CostLineItem, ...]
    estimated_monthly_savings: float
    rate: float
    priority: Priority = Priority.MEDIUM
    description: str = ""

    @property
    def count(self) -> int:
        return len(self.eligible_line_items)

    @property
    def estimated_annual_savings(self) -> float:
        return self.estimated_monthly_savings * 12

    @property
    def services(self) -> list[str]:
        return [item.name for item in self.eligible_line_items[:5]]

    def to_dict(self) -> dict[str, Any]:
        return {
            **asdict(self, dict_factory=_plain),
            "count": self.count,
            "estimated_annual_savings": self.estimated_annual_savings,
            "services": self.services,
        }


@dataclass(frozen=True)
class ServiceHealth:
    line_item: CostLineItem
    display_name: str
    optimizer_type: Optional[str]
    optimizer_count: int
    optimizer_savings: float
    status: HealthStatus


@dataclass(frozen=True)
class MaturityDimension:
    label: str
    status: DimensionStatus
    score: int
    max_score: int
    tip: str = ""


@dataclass(frozen=True)
class MaturityScore:
    dimensions: tuple[MaturityDimension, ...]
    total_score: int
    max_score: int
    percent: float
    tier: MaturityTier


@dataclass(frozen=True)
class Anomaly:
    title: str
    provider_tag: str
    service: str
    impact: float
    status: str = "open"


@dataclass(frozen=True)
class AggregatedInsight:
    """Everything the presentation and conversational layers consume."""

    variant: str
    total_spend_mtd: float
    previous_period_total: float
    forecasted_spend: float
    change_percent: float
    line_items: tuple[CostLineItem, ...]
    categories: ServiceCategories
    budget: BudgetView
    service_budgets: tuple[BudgetView, ...]
    forecast_risk: ForecastRiskView
    variance: BudgetVariance
    spikes: tuple[SpikeEntry, ...]
    anomalies: tuple[Anomaly, ...]
    savings: tuple[SavingsOpportunity, ...]
    service_health: tuple[ServiceHealth, ...]
    commitment_level: CoverageLevel
    maturity: MaturityScore
    currency: str = "USD"
    account_id: str = "not-connected"
    error: Optional[str] = None

    @property
    def total_monthly_savings(self) -> float:
        return sum(o.estimated_monthly_savings for o in self.savings)

    @property
    def open_anomalies(self) -> list[Anomaly]:
        return [a for a in self.anomalies if a.status == "open"]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self, dict_factory=_plain)
        data["savings"] = [o.to_dict() for o in self.savings]
        data["total_monthly_savings"] = self.total_monthly_savings
        data["total_annual_savings"] = self.total_monthly_savings * 12
        data["variance"]["is_over_budget"] = self.variance.is_over_budget
        return data
