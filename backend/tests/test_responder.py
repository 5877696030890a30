"""Tests for the rule-based query responder and the LLM context prompt."""
from datetime import date

import pytest

from cost_insight.models.cost import CostSnapshot
from cost_insight.services.cost_collector import mock_snapshot
from cost_insight.services.insight_engine.engine import CostInsightEngine
from cost_insight.services.insight_engine.responder import (
    build_context_prompt, format_change, format_currency, match_intent, respond,
)

TODAY = date(2026, 10, 15)


@pytest.fixture(scope="module")
def insight():
    return CostInsightEngine().aggregate(mock_snapshot(TODAY), TODAY)


@pytest.fixture(scope="module")
def empty_insight():
    return CostInsightEngine().aggregate(CostSnapshot(), TODAY)


@pytest.mark.parametrize("query,intent", [
    ("What's our total spend this month?", "total_spend"),
    ("show me MTD", "total_spend"),
    ("Which are the top services?", "top_services"),
    ("aws savings please", "provider"),          # earlier intent wins
    ("Show savings opportunities", "savings"),
    ("any cost spikes?", "anomalies"),
    ("are we over budget", "budget"),
    ("forecast for next month", "forecast"),
    ("give me a summary", "summary"),
    ("hello", "greeting"),
])
def test_first_matching_intent_wins(query, intent):
    assert match_intent(query).name == intent


def test_unmatched_query_uses_fallback(insight):
    reply = respond("weather tomorrow", insight)
    assert match_intent("weather tomorrow") is None
    assert reply.startswith('I understand you\'re asking about: "weather tomorrow"')
    assert format_currency(insight.total_spend_mtd) in reply


def test_total_spend_reply(insight):
    reply = respond("total spend", insight)
    assert "**Total Spend (MTD):**" in reply
    assert format_currency(insight.forecasted_spend) in reply


def test_savings_reply_names_top_opportunity(insight):
    reply = respond("how do we reduce costs", insight)
    assert f"Focus on **{insight.savings[0].category}** first" in reply


def test_budget_reply_lists_service_budgets(insight):
    reply = respond("budget status", insight)
    for view in (insight.budget,) + insight.service_budgets:
        assert view.label in reply


def test_every_intent_handles_empty_data(empty_insight):
    for query in ("total spend", "top services", "aws", "savings", "anomalies",
                  "budget", "forecast", "summary", "hello", "weather tomorrow"):
        assert respond(query, empty_insight)


def test_respond_is_stateless(insight):
    assert respond("summary", insight) == respond("summary", insight)


def test_context_prompt_mentions_data(insight):
    prompt = build_context_prompt(insight)
    assert "CURRENT COST DATA" in prompt
    assert insight.line_items[0].name in prompt
    assert insight.savings[0].category in prompt
    assert "Use USD" in prompt


def test_formatters():
    assert format_currency(1234.5) == "$1,234.50"
    assert format_currency(10, "EUR") == "10.00 EUR"
    assert format_change(12.345) == "+12.3%"
    assert format_change(-4) == "-4.0%"
