"""
Cost Data Collector
===================
Builds the CostSnapshot the insight engine consumes.

Real mode fans out over Cost Explorer and Compute Optimizer in a thread
pool:
  required  MTD total, 13-month trend, per-service current vs previous
            month, EOM forecast
  optional  data-transfer usage groups, commitment coverage, Compute
            Optimizer summary (fall back to empty values on failure)

Mock mode (MOCK_AWS=true) serves a fixed sample account so the API, CLI
and tests run without credentials.

Snapshots are cached for CACHE_TTL_SECONDS. When a refresh fails the last
good snapshot is served even if expired; with nothing cached, a zeroed
snapshot carrying the error message is returned instead.
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date, timedelta
from typing import Any, Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from cost_insight.core.cache import TTLCache
from cost_insight.core.config import Settings, get_settings
from cost_insight.core.exceptions import UpstreamError
from cost_insight.core.logging import ContextLogger
from cost_insight.models.cost import (
    CommitmentCoverage, CostLineItem, CostSnapshot, DataTransferCost, MonthlyCostPoint,
    OptimizerSummary, OptimizerTypeSummary,
)
from cost_insight.utils.aws_client_factory import get_client
from cost_insight.utils.date_helpers import format_iso, month_start, months_back, next_month_start

logger = logging.getLogger(__name__)

SNAPSHOT_CACHE_KEY = "cost-snapshot"

DATA_TRANSFER_USAGE_GROUPS = [
    "EC2: Data Transfer - Internet (Out)",
    "EC2: Data Transfer - Inter AZ",
    "EC2: Data Transfer - Region to Region",
    "S3: Data Transfer - Internet (Out)",
    "CloudFront: Data Transfer - Internet (Out)",
    "RDS: Data Transfer - Internet (Out)",
]

_AWS_ERRORS = (BotoCoreError, ClientError)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

def _amount(metrics: dict[str, Any], key: str = "UnblendedCost") -> float:
    return float((metrics or {}).get(key, {}).get("Amount", 0) or 0)


def _mom_change(cost: float, previous: float) -> float:
    return (cost - previous) / previous * 100 if previous > 0 else 0.0


def _grouped_costs(resp: dict[str, Any]) -> dict[str, float]:
    """First period's groups as key -> UnblendedCost."""
    periods = resp.get("ResultsByTime") or [{}]
    return {
        (group.get("Keys") or [""])[0]: _amount(group.get("Metrics", {}))
        for group in periods[0].get("Groups", [])
    }


def build_line_items(
    current: dict[str, float],
    previous: dict[str, float],
    limit: int = 10,
) -> tuple[CostLineItem, ...]:
    """Skip near-zero services, attach MoM change, keep the top `limit` by cost."""
    items = [
        CostLineItem(name=name, cost=cost, change_percent=_mom_change(cost, previous.get(name, 0.0)))
        for name, cost in current.items()
        if cost >= 0.01
    ]
    items.sort(key=lambda i: i.cost, reverse=True)
    return tuple(items[:limit])


def estimate_forecast(total_mtd: float, remaining_forecast: float, today: date) -> float:
    """EOM forecast: MTD + remaining-month forecast, else a 30-day run-rate."""
    if remaining_forecast > 0:
        return total_mtd + remaining_forecast
    return total_mtd * (30 / max(today.day, 1))


def zeroed_snapshot(error: str) -> CostSnapshot:
    return CostSnapshot(error=error)


# ---------------------------------------------------------------------------
# Real AWS helpers
# ---------------------------------------------------------------------------

class AwsCostSource:
    """Thin wrappers over the Cost Explorer / Compute Optimizer calls."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def _ce(self) -> Any:
        return get_client("ce", self.settings.cost_explorer_region, self.settings)

    def _cost_and_usage(self, start: date, end: date, **kwargs: Any) -> dict[str, Any]:
        try:
            return self._ce().get_cost_and_usage(
                TimePeriod={"Start": format_iso(start), "End": format_iso(end)},
                Granularity="MONTHLY",
                Metrics=kwargs.pop("Metrics", ["UnblendedCost"]),
                **kwargs,
            )
        except _AWS_ERRORS as e:
            raise UpstreamError(f"Cost Explorer API failed: {e}") from e

    def account_id(self) -> str:
        try:
            sts = get_client("sts", self.settings.cost_explorer_region, self.settings)
            return sts.get_caller_identity()["Account"]
        except _AWS_ERRORS as e:
            logger.warning(f"Could not resolve account id: {e}")
            return "unknown"

    def mtd_total(self, today: date) -> float:
        resp = self._cost_and_usage(month_start(today), today + timedelta(days=1))
        periods = resp.get("ResultsByTime") or [{}]
        return _amount(periods[0].get("Total", {}))

    def monthly_trend(self, today: date, months: int = 13) -> tuple[MonthlyCostPoint, ...]:
        resp = self._cost_and_usage(months_back(today, months), month_start(today))
        return tuple(
            MonthlyCostPoint(
                period_label=period["TimePeriod"]["Start"],
                total_cost=_amount(period.get("Total", {})),
            )
            for period in resp.get("ResultsByTime", [])
        )

    def services(self, today: date) -> tuple[dict[str, float], dict[str, float]]:
        """(current month, previous month) cost per SERVICE."""
        group_by = [{"Type": "DIMENSION", "Key": "SERVICE"}]
        current = self._cost_and_usage(month_start(today), today + timedelta(days=1), GroupBy=group_by)
        previous = self._cost_and_usage(months_back(today, 1), month_start(today), GroupBy=group_by)
        return _grouped_costs(current), _grouped_costs(previous)

    def remaining_forecast(self, today: date) -> float:
        """Forecast for tomorrow..month end; 0 on the last day or when CE has too little history."""
        tomorrow = today + timedelta(days=1)
        month_end = next_month_start(today)
        if tomorrow >= month_end:
            return 0.0
        try:
            resp = self._ce().get_cost_forecast(
                TimePeriod={"Start": format_iso(tomorrow), "End": format_iso(month_end)},
                Granularity="MONTHLY",
                Metric="UNBLENDED_COST",
            )
        except _AWS_ERRORS as e:
            logger.info(f"Cost forecast unavailable: {e}")
            return 0.0
        return float(resp.get("Total", {}).get("Amount", 0) or 0)

    def data_transfer(self, today: date) -> tuple[DataTransferCost, ...]:
        kwargs = {
            "Filter": {"Dimensions": {"Key": "USAGE_TYPE_GROUP", "Values": DATA_TRANSFER_USAGE_GROUPS}},
            "GroupBy": [{"Type": "DIMENSION", "Key": "USAGE_TYPE_GROUP"}],
        }
        current = _grouped_costs(self._cost_and_usage(month_start(today), today + timedelta(days=1), **kwargs))
        previous = _grouped_costs(self._cost_and_usage(months_back(today, 1), month_start(today), **kwargs))
        rows = [
            DataTransferCost(category, cost, _mom_change(cost, previous.get(category, 0.0)))
            for category, cost in current.items()
            if cost >= 0.01
        ]
        return tuple(sorted(rows, key=lambda r: r.cost, reverse=True))

    def commitment(self, today: date) -> CommitmentCoverage:
        resp = self._cost_and_usage(
            month_start(today), today + timedelta(days=1),
            Metrics=["UnblendedCost", "AmortizedCost"],
            GroupBy=[{"Type": "DIMENSION", "Key": "PURCHASE_TYPE"}],
        )
        on_demand = committed = 0.0
        for purchase_type, cost in _grouped_costs(resp).items():
            if "On Demand" in purchase_type or purchase_type == "":
                on_demand += cost
            else:
                committed += cost
        total = on_demand + committed
        return CommitmentCoverage(
            coverage_percent=committed / total * 100 if total > 0 else 0.0,
            utilization_percent=85.0 if committed > 0 else 0.0,
            on_demand_cost=on_demand,
            committed_cost=committed,
            estimated_savings=committed * 0.25,
        )

    def optimizer(self) -> OptimizerSummary:
        client = get_client("compute-optimizer", self.settings.compute_optimizer_region, self.settings)
        calls: list[tuple[str, Callable[[], dict[str, Any]], str, str]] = [
            ("EC2", client.get_ec2_instance_recommendations, "instanceRecommendations", "recommendationOptions"),
            ("AutoScaling", client.get_auto_scaling_group_recommendations,
             "autoScalingGroupRecommendations", "recommendationOptions"),
            ("Lambda", client.get_lambda_function_recommendations,
             "lambdaFunctionRecommendations", "memorySizeRecommendationOptions"),
            ("EBS", client.get_ebs_volume_recommendations, "volumeRecommendations", "volumeRecommendationOptions"),
        ]
        totals: dict[str, list[float]] = {}
        errors: list[str] = []
        for resource_type, call, list_key, options_key in calls:
            try:
                resp = call()
            except _AWS_ERRORS as e:
                errors.append(str(e))
                continue
            for rec in resp.get(list_key, []):
                if str(rec.get("finding", "")).lower() == "optimized":
                    continue
                best = (rec.get(options_key) or [{}])[0]
                savings = (
                    best.get("savingsOpportunity", {}).get("estimatedMonthlySavings", {}).get("value")
                    or best.get("estimatedMonthlySavings", {}).get("value")
                    or 0.0
                )
                entry = totals.setdefault(resource_type, [0, 0.0])
                entry[0] += 1
                entry[1] += float(savings)

        if len(errors) == len(calls):
            message = errors[0]
            if "OptInRequired" in message or "not opted in" in message:
                return OptimizerSummary(status="not-enrolled",
                                        error_message="AWS Compute Optimizer is not enabled.")
            if "InternalServerException" in message:
                return OptimizerSummary(status="collecting",
                                        error_message="Compute Optimizer is still collecting utilization data.")
            return OptimizerSummary(status="error", error_message=message)

        by_type = tuple(sorted(
            (OptimizerTypeSummary(t, int(c), s) for t, (c, s) in totals.items()),
            key=lambda t: t.savings, reverse=True,
        ))
        return OptimizerSummary(
            status="active",
            total_estimated_savings=sum(t.savings for t in by_type),
            by_type=by_type,
        )


# ---------------------------------------------------------------------------
# Mock data
# ---------------------------------------------------------------------------

# name, MTD cost, MoM change %
_MOCK_SERVICES: list[tuple[str, float, float]] = [
    ("Amazon Elastic Compute Cloud - Compute", 4210.55, 12.4),
    ("Amazon Relational Database Service", 1862.10, 4.8),
    ("Amazon Simple Storage Service", 918.42, 3.1),
    ("Amazon CloudFront", 611.30, 65.2),
    ("AWS Lambda", 342.77, 140.5),
    ("AWS Data Transfer", 281.09, 231.0),
    ("Amazon Elastic Block Store", 262.40, -4.2),
    ("Amazon Route 53", 45.12, 0.0),
    ("AmazonCloudWatch", 38.66, 22.7),
    ("AWS Key Management Service", 12.00, -1.5),
]


def mock_snapshot(today: date) -> CostSnapshot:
    """Fixed sample account; only the forecast depends on the day of month."""
    items = tuple(CostLineItem(name, cost, change) for name, cost, change in _MOCK_SERVICES)
    total = round(sum(i.cost for i in items), 2)
    trend = tuple(
        MonthlyCostPoint(format_iso(months_back(today, back)), round(9200 + 180 * (13 - back), 2))
        for back in range(13, 0, -1)
    )
    return CostSnapshot(
        total_spend_mtd=total,
        previous_period_total=trend[-1].total_cost,
        forecasted_spend=estimate_forecast(total, 0.0, today),
        line_items=items,
        trend=trend,
        data_transfer=(
            DataTransferCost("EC2: Data Transfer - Internet (Out)", 182.40, 48.0),
            DataTransferCost("EC2: Data Transfer - Inter AZ", 61.25, 6.5),
        ),
        commitment=CommitmentCoverage(
            coverage_percent=42.0,
            utilization_percent=85.0,
            on_demand_cost=4870.0,
            committed_cost=3527.0,
            estimated_savings=881.75,
        ),
        optimizer=OptimizerSummary(
            status="active",
            total_estimated_savings=367.0,
            by_type=(
                OptimizerTypeSummary("EC2", 3, 310.0),
                OptimizerTypeSummary("EBS", 2, 45.0),
                OptimizerTypeSummary("Lambda", 1, 12.0),
            ),
        ),
        account_id="123456789012",
    )


# ---------------------------------------------------------------------------
# Collector
# ---------------------------------------------------------------------------

class CostCollector:
    def __init__(
        self,
        cache: Optional[TTLCache] = None,
        settings: Optional[Settings] = None,
        source: Optional[AwsCostSource] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.settings = settings or get_settings()
        self.cache = cache if cache is not None else TTLCache(self.settings.cache_ttl_seconds)
        self.source = source or AwsCostSource(self.settings)
        self._today = today
        self.log = ContextLogger(__name__, source="mock" if self.settings.mock_aws else "aws")

    def get_snapshot(self, force_refresh: bool = False) -> CostSnapshot:
        if not force_refresh:
            cached = self.cache.get(SNAPSHOT_CACHE_KEY)
            if cached is not None:
                self.log.info("Serving cost snapshot from cache")
                return cached

        started = time.perf_counter()
        try:
            snapshot = self.fetch()
        except UpstreamError as e:
            stale = self.cache.get_stale(SNAPSHOT_CACHE_KEY)
            if stale is not None:
                self.log.warning(f"Cost refresh failed, serving stale snapshot: {e}")
                return stale
            self.log.error(f"Cost refresh failed with nothing cached: {e}")
            return zeroed_snapshot(str(e))

        self.cache.set(SNAPSHOT_CACHE_KEY, snapshot)
        self.log.info(
            f"Collected cost snapshot in {time.perf_counter() - started:.2f}s: "
            f"{len(snapshot.line_items)} services, MTD ${snapshot.total_spend_mtd:,.2f}"
        )
        return snapshot

    def fetch(self) -> CostSnapshot:
        """Uncached fetch: mock or real based on settings."""
        today = self._today()
        if self.settings.mock_aws:
            return mock_snapshot(today)
        return self._fetch_live(today)

    def _fetch_live(self, today: date) -> CostSnapshot:
        src = self.source
        required: dict[str, Callable[[], Any]] = {
            "mtd": lambda: src.mtd_total(today),
            "trend": lambda: src.monthly_trend(today),
            "services": lambda: src.services(today),
            "forecast": lambda: src.remaining_forecast(today),
        }
        optional: dict[str, tuple[Callable[[], Any], Any]] = {
            "account": (src.account_id, "unknown"),
            "data_transfer": (lambda: src.data_transfer(today), ()),
            "commitment": (lambda: src.commitment(today), CommitmentCoverage()),
            "optimizer": (src.optimizer, OptimizerSummary()),
        }

        results: dict[str, Any] = {}
        failures: dict[str, Exception] = {}
        tasks = {**required, **{k: fn for k, (fn, _) in optional.items()}}
        with ThreadPoolExecutor(max_workers=min(len(tasks), 8)) as pool:
            futures = {pool.submit(fn): name for name, fn in tasks.items()}
            for future in as_completed(futures):
                name = futures[future]
                try:
                    results[name] = future.result()
                except Exception as e:
                    failures[name] = e
                    self.log.warning(f"[Parallel] {name} failed: {e}")

        missing = [name for name in required if name in failures]
        if missing:
            raise UpstreamError(f"Required cost data unavailable ({', '.join(missing)}): {failures[missing[0]]}")
        for name, (_, default) in optional.items():
            results.setdefault(name, default)

        try:
            return self._assemble(results, today)
        except (KeyError, TypeError, ValueError, IndexError) as e:
            raise UpstreamError(f"Unexpected cost data shape: {e!r}") from e

    def _assemble(self, results: dict[str, Any], today: date) -> CostSnapshot:
        current, previous = results["services"]
        trend = results["trend"]
        total = results["mtd"]
        return CostSnapshot(
            total_spend_mtd=total,
            previous_period_total=trend[-1].total_cost if len(trend) >= 2 else 0.0,
            forecasted_spend=estimate_forecast(total, results["forecast"], today),
            line_items=build_line_items(current, previous, self.settings.top_services_limit),
            trend=trend,
            data_transfer=results["data_transfer"],
            commitment=results["commitment"],
            optimizer=results["optimizer"],
            account_id=results["account"],
        )
