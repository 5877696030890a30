"""
Spike / Anomaly Detector
========================
Flags services whose month-over-month change exceeds the spike threshold,
ranks them by change (stable, so ties keep input order) and reconstructs
what each one cost last month.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from cost_insight.core.exceptions import DivisionUndefined
from cost_insight.models.cost import CostLineItem
from cost_insight.models.insight import Anomaly, SpikeEntry
from cost_insight.services.insight_engine.categorizer import display_name
from cost_insight.services.insight_engine.classifier import classify
from cost_insight.services.insight_engine.policy import STANDARD_POLICY, InsightPolicy

logger = logging.getLogger(__name__)


def reconstruct_prior_cost(cost: float, change_percent: float) -> float:
    """Invert a MoM percentage: cost / (1 + change/100)."""
    factor = 1 + change_percent / 100
    if factor == 0:
        raise DivisionUndefined(
            f"Prior cost is undefined for change_percent={change_percent}"
        )
    return cost / factor


def _money(amount: float) -> str:
    return f"${amount:,.2f}"


def explanation(name: str, change_percent: float, cost_delta: float) -> str:
    """Human-readable reason for a spike, worded per severity tier (200/100/50)."""
    pct = f"{change_percent:.0f}%"
    delta = f"Adds ~{_money(cost_delta)} to monthly spend."
    if change_percent > 200:
        return f"{name} surged {pct} vs last month, possibly a new workload or scaling event. {delta}"
    if change_percent > 100:
        return f"{name} more than doubled (+{pct}). Investigate new instances, higher throughput or config changes. {delta}"
    if change_percent > 50:
        return f"{name} grew {pct} MoM. Could indicate increased usage, under-optimized resources or a pricing change. {delta}"
    return f"{name} increased {pct} vs last month. Monitor for continued growth. {delta}"


def _spike_entry(item: CostLineItem, policy: InsightPolicy) -> SpikeEntry:
    try:
        prior = reconstruct_prior_cost(item.cost, item.change_percent)
    except DivisionUndefined:
        logger.debug(f"Prior cost undefined for {item.name!r}; falling back to current cost")
        prior = item.cost

    name = display_name(item.name)
    delta = item.cost - prior
    return SpikeEntry(
        line_item=item,
        display_name=name,
        severity=classify(item.change_percent, policy.spike_severity),
        reconstructed_prior_cost=prior,
        cost_delta=delta,
        explanation=explanation(name, item.change_percent, delta),
    )


def detect_spikes(
    items: Iterable[CostLineItem],
    max_results: Optional[int] = None,
    policy: InsightPolicy = STANDARD_POLICY,
) -> list[SpikeEntry]:
    """Top spikes by MoM change, highest first."""
    limit = policy.spikes.max_results if max_results is None else max_results
    flagged = [i for i in items if i.change_percent > policy.spikes.min_change]
    # sorted() is stable; equal changes keep input order
    ranked = sorted(flagged, key=lambda i: i.change_percent, reverse=True)[:max(limit, 0)]
    return [_spike_entry(item, policy) for item in ranked]


def derive_anomalies(
    items: Iterable[CostLineItem],
    policy: InsightPolicy = STANDARD_POLICY,
) -> list[Anomaly]:
    """Every spiking service as an open anomaly, impact = cost × change / 100."""
    return [
        Anomaly(
            title=f"{display_name(i.name)} cost spike (+{i.change_percent:.0f}% MoM)",
            provider_tag=i.provider_tag,
            service=i.name,
            impact=i.cost * i.change_percent / 100,
        )
        for i in items
        if i.change_percent > policy.spikes.min_change
    ]
