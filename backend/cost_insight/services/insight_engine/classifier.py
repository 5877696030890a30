from __future__ import annotations

import math
from typing import TypeVar

from cost_insight.core.exceptions import InvalidInput
from cost_insight.models.insight import BudgetStatus, CoverageLevel, ForecastRisk
from cost_insight.services.insight_engine.policy import (
    BUDGET_STATUS_TABLE, COMMITMENT_COVERAGE_TABLE, COVERAGE_TABLE, FORECAST_RISK_TABLE,
    ThresholdTable,
)

T = TypeVar("T")


def classify(value: float, table: ThresholdTable[T]) -> T:
    """
    Map a ratio/percentage to a tier label.

    Rows are checked highest cutoff first; the first row the value clears
    wins (strictly greater, or greater-or-equal for inclusive tables).
    Falls through to the table's default tier. Non-finite input raises
    InvalidInput instead of silently defaulting.
    """
    if value is None or not math.isfinite(value):
        raise InvalidInput(f"Cannot classify non-finite value {value!r} against {table.name!r}")

    for row in table.rows:
        if (value >= row.cutoff) if table.inclusive else (value > row.cutoff):
            return row.label
    return table.default


def budget_status(percent_used: float, table: ThresholdTable[BudgetStatus] = BUDGET_STATUS_TABLE) -> BudgetStatus:
    return classify(percent_used, table)


def forecast_risk(forecast_ratio: float, table: ThresholdTable[ForecastRisk] = FORECAST_RISK_TABLE) -> ForecastRisk:
    return classify(forecast_ratio, table)


def coverage_level(percent: float, table: ThresholdTable[CoverageLevel] = COVERAGE_TABLE) -> CoverageLevel:
    """Tag / compliance coverage: >=80 good, >=50 moderate, else low."""
    return classify(percent, table)


def commitment_coverage_level(
    percent: float,
    table: ThresholdTable[CoverageLevel] = COMMITMENT_COVERAGE_TABLE,
) -> CoverageLevel:
    """SP/RI coverage: >=70 good, >=40 moderate, >0 low, else none."""
    level = classify(percent, table)
    if level == table.default and percent <= 0:
        return CoverageLevel.NONE
    return level


def safe_percent(numerator: float, denominator: float) -> float:
    """numerator / denominator × 100, or 0 when the denominator is not positive."""
    if denominator <= 0:
        return 0.0
    return numerator / denominator * 100
