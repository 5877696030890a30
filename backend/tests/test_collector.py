"""Tests for the cost data collector (mock mode and a fake AWS source)."""
import os
os.environ["MOCK_AWS"] = "true"

from datetime import date

import pytest

from cost_insight.core.cache import TTLCache
from cost_insight.core.config import Settings
from cost_insight.core.exceptions import UpstreamError
from cost_insight.models.cost import CommitmentCoverage, MonthlyCostPoint, OptimizerSummary
from cost_insight.services.cost_collector import (
    CostCollector, build_line_items, estimate_forecast, mock_snapshot,
)

TODAY = date(2026, 10, 15)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class FakeSource:
    """Stands in for AwsCostSource; flip `fail` to simulate Cost Explorer outages."""

    def __init__(self):
        self.fail = False
        self.calls = 0

    def _check(self):
        if self.fail:
            raise UpstreamError("Cost Explorer API failed: throttled")

    def account_id(self):
        return "111122223333"

    def mtd_total(self, today):
        self.calls += 1
        self._check()
        return 500.0

    def monthly_trend(self, today, months=13):
        self._check()
        return (MonthlyCostPoint("2026-08-01", 900.0), MonthlyCostPoint("2026-09-01", 1000.0))

    def services(self, today):
        self._check()
        return {"Amazon EC2": 400.0, "Amazon S3": 99.995, "Tax": 0.005}, {"Amazon EC2": 320.0}

    def remaining_forecast(self, today):
        return 450.0

    def data_transfer(self, today):
        raise UpstreamError("usage groups unavailable")

    def commitment(self, today):
        return CommitmentCoverage(coverage_percent=30.0)

    def optimizer(self):
        return OptimizerSummary(status="not-enrolled")


def _live_collector(source, clock=None, ttl=60):
    settings = Settings(mock_aws=False, cache_ttl_seconds=ttl)
    cache = TTLCache(ttl, clock=clock or FakeClock())
    return CostCollector(cache=cache, settings=settings, source=source, today=lambda: TODAY)


def test_mock_snapshot_is_deterministic():
    assert mock_snapshot(TODAY) == mock_snapshot(TODAY)
    snapshot = mock_snapshot(TODAY)
    assert snapshot.total_spend_mtd > 0
    assert snapshot.previous_period_total == snapshot.trend[-1].total_cost
    assert snapshot.optimizer.is_active


def test_mock_mode_never_touches_source():
    source = FakeSource()
    collector = CostCollector(settings=Settings(mock_aws=True), source=source, today=lambda: TODAY)
    assert collector.get_snapshot().account_id == "123456789012"
    assert source.calls == 0


def test_live_fetch_builds_snapshot():
    snapshot = _live_collector(FakeSource()).get_snapshot()
    assert snapshot.account_id == "111122223333"
    assert snapshot.total_spend_mtd == 500.0
    assert snapshot.previous_period_total == 1000.0
    assert snapshot.forecasted_spend == 950.0
    assert [i.name for i in snapshot.line_items] == ["Amazon EC2", "Amazon S3"]
    assert snapshot.line_items[0].change_percent == pytest.approx(25.0)
    assert snapshot.line_items[1].change_percent == 0.0
    # optional calls fall back instead of failing the snapshot
    assert snapshot.data_transfer == ()
    assert snapshot.commitment.coverage_percent == 30.0
    assert snapshot.optimizer.status == "not-enrolled"
    assert snapshot.error is None


def test_cached_snapshot_served_within_ttl():
    source = FakeSource()
    collector = _live_collector(source)
    first = collector.get_snapshot()
    assert collector.get_snapshot() is first
    assert source.calls == 1
    collector.get_snapshot(force_refresh=True)
    assert source.calls == 2


def test_failure_with_nothing_cached_returns_zeroed_snapshot():
    source = FakeSource()
    source.fail = True
    snapshot = _live_collector(source).get_snapshot()
    assert snapshot.total_spend_mtd == 0
    assert snapshot.line_items == ()
    assert snapshot.account_id == "not-connected"
    assert "throttled" in snapshot.error


def test_failure_after_expiry_serves_stale_snapshot():
    clock = FakeClock()
    source = FakeSource()
    collector = _live_collector(source, clock=clock)
    good = collector.get_snapshot()
    clock.now += 120
    source.fail = True
    assert collector.get_snapshot() is good


def test_build_line_items_skips_near_zero_and_limits():
    current = {f"svc-{n}": float(n) for n in range(15)}
    items = build_line_items(current, {}, limit=10)
    assert len(items) == 10
    assert items[0].name == "svc-14"
    assert all(i.cost >= 0.01 for i in items)


def test_estimate_forecast():
    assert estimate_forecast(300, 700, TODAY) == 1000
    assert estimate_forecast(300, 0, TODAY) == 600
    assert estimate_forecast(300, 0, date(2026, 10, 1)) == 9000


def test_optional_call_with_unexpected_error_uses_default():
    source = FakeSource()

    def optimizer():
        raise KeyError("recommendationOptions")

    source.optimizer = optimizer
    snapshot = _live_collector(source).get_snapshot()
    assert snapshot.total_spend_mtd == 500.0
    assert snapshot.optimizer == OptimizerSummary()
    assert snapshot.error is None


def test_required_call_with_unexpected_error_degrades_to_zeroed():
    source = FakeSource()

    def services(today):
        raise TypeError("'NoneType' object is not iterable")

    source.services = services
    snapshot = _live_collector(source).get_snapshot()
    assert snapshot.total_spend_mtd == 0
    assert "services" in snapshot.error


def test_malformed_result_degrades_to_zeroed():
    source = FakeSource()
    source.services = lambda today: {"Amazon EC2": 400.0}   # not a (current, previous) pair
    snapshot = _live_collector(source).get_snapshot()
    assert snapshot.line_items == ()
    assert "Unexpected cost data shape" in snapshot.error
