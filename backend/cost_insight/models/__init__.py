# Models package
from cost_insight.models.cost import (
    CommitmentCoverage, CostLineItem, CostSnapshot, DataTransferCost,
    MonthlyCostPoint, OptimizerSummary, OptimizerTypeSummary,
)
from cost_insight.models.insight import (
    AggregatedInsight, Anomaly, BudgetStatus, BudgetVariance, BudgetView,
    CoverageLevel, DimensionStatus, ForecastRisk, ForecastRiskView, HealthStatus,
    MaturityDimension, MaturityScore, MaturityTier, Priority, SavingsOpportunity,
    ServiceCategories, ServiceHealth, SpikeEntry, SpikeSeverity,
)

__all__ = [
    "CommitmentCoverage", "CostLineItem", "CostSnapshot", "DataTransferCost",
    "MonthlyCostPoint", "OptimizerSummary", "OptimizerTypeSummary",
    "AggregatedInsight", "Anomaly", "BudgetStatus", "BudgetVariance", "BudgetView",
    "CoverageLevel", "DimensionStatus", "ForecastRisk", "ForecastRiskView", "HealthStatus",
    "MaturityDimension", "MaturityScore", "MaturityTier", "Priority", "SavingsOpportunity",
    "ServiceCategories", "ServiceHealth", "SpikeEntry", "SpikeSeverity",
]
