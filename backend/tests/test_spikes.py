"""Tests for spike detection, prior-cost reconstruction and anomalies."""
from dataclasses import replace

import pytest

from cost_insight.core.exceptions import DivisionUndefined
from cost_insight.models.cost import CostLineItem
from cost_insight.models.insight import SpikeSeverity
from cost_insight.services.insight_engine.policy import STANDARD_POLICY, SpikePolicy
from cost_insight.services.insight_engine.spikes import (
    derive_anomalies, detect_spikes, explanation, reconstruct_prior_cost,
)


def _item(name, cost, change):
    return CostLineItem(name=name, cost=cost, change_percent=change)


def test_prior_cost_reconstruction():
    assert reconstruct_prior_cost(150, 50) == 100.0
    assert reconstruct_prior_cost(50, -50) == 100.0


def test_prior_cost_undefined_at_minus_100():
    with pytest.raises(DivisionUndefined):
        reconstruct_prior_cost(10, -100)


def test_fifty_percent_is_info_boundary_excluded():
    [spike] = detect_spikes([_item("X", 150, 50)])
    assert spike.reconstructed_prior_cost == 100.0
    assert spike.cost_delta == 50.0
    assert spike.severity == SpikeSeverity.INFO


def test_severity_tiers():
    spikes = detect_spikes([
        _item("a", 10, 50.5), _item("b", 10, 100), _item("c", 10, 100.5),
        _item("d", 10, 200), _item("e", 10, 201),
    ])
    by_name = {s.line_item.name: s.severity for s in spikes}
    assert by_name == {
        "e": SpikeSeverity.CRITICAL_SURGE,
        "d": SpikeSeverity.CRITICAL_DOUBLE,
        "c": SpikeSeverity.CRITICAL_DOUBLE,
        "b": SpikeSeverity.WARNING,
        "a": SpikeSeverity.WARNING,
    }


def test_filters_at_twenty_percent_and_ranks_descending():
    items = [_item("flat", 10, 20), _item("mid", 10, 40), _item("top", 10, 90), _item("low", 10, 21)]
    assert [s.line_item.name for s in detect_spikes(items)] == ["top", "mid", "low"]


def test_ties_keep_input_order():
    items = [_item(f"svc-{n}", 10, 30) for n in range(4)]
    assert [s.line_item.name for s in detect_spikes(items)] == ["svc-0", "svc-1", "svc-2", "svc-3"]


def test_max_results():
    items = [_item(f"svc-{n}", 10, 30 + n) for n in range(8)]
    assert len(detect_spikes(items)) == 5
    assert len(detect_spikes(items, max_results=2)) == 2
    assert detect_spikes(items, max_results=0) == []


def test_empty_input():
    assert detect_spikes([]) == []
    assert derive_anomalies([]) == []


def test_display_name_and_explanation():
    [spike] = detect_spikes([_item("Amazon CloudFront", 300, 200)])
    assert spike.display_name == "CloudFront"
    assert spike.explanation.startswith("CloudFront more than doubled (+200%)")
    assert "$200.00" in spike.explanation


def test_explanation_wording_per_tier():
    assert "surged" in explanation("X", 250, 10)
    assert "more than doubled" in explanation("X", 150, 10)
    assert "grew" in explanation("X", 75, 10)
    assert "Monitor for continued growth" in explanation("X", 30, 10)


def test_anomalies_from_spiking_services():
    anomalies = derive_anomalies([_item("AWS Lambda", 400, 50), _item("Amazon S3", 100, 5)])
    assert len(anomalies) == 1
    assert anomalies[0].service == "AWS Lambda"
    assert anomalies[0].impact == 200.0
    assert anomalies[0].status == "open"


def test_detection_is_idempotent():
    items = [_item("a", 10, 80), _item("b", 20, 35), _item("c", 5, 300)]
    assert detect_spikes(items) == detect_spikes(items)


def test_minus_100_falls_back_to_current_cost():
    policy = replace(STANDARD_POLICY, spikes=SpikePolicy(min_change=-101))
    [spike] = detect_spikes([_item("gone", 5.0, -100)], policy=policy)
    assert spike.reconstructed_prior_cost == 5.0
    assert spike.cost_delta == 0.0
