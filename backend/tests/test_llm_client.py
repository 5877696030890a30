"""Tests for the LLM chat client, using httpx.MockTransport instead of the network."""
import json
from datetime import date

import httpx
import pytest

from cost_insight.core.config import Settings
from cost_insight.services.cost_collector import mock_snapshot
from cost_insight.services.insight_engine.engine import CostInsightEngine
from cost_insight.services.llm_client import ChatTurn, LLMClient

TODAY = date(2026, 10, 15)


@pytest.fixture(scope="module")
def insight():
    return CostInsightEngine().aggregate(mock_snapshot(TODAY), TODAY)


def _client(handler, api_key="test-key"):
    settings = Settings(anthropic_api_key=api_key, anthropic_model="test-model")
    return LLMClient(settings=settings, transport=httpx.MockTransport(handler))


def test_successful_call_returns_ai_reply(insight):
    seen = {}

    def handler(request):
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"content": [{"type": "text", "text": "EC2 is your top cost."}]})

    reply = _client(handler).chat("what costs the most?", insight)
    assert reply.source == "ai"
    assert reply.reply == "EC2 is your top cost."
    assert seen["headers"]["x-api-key"] == "test-key"
    assert seen["headers"]["anthropic-version"] == "2023-06-01"
    assert seen["body"]["model"] == "test-model"
    assert "CURRENT COST DATA" in seen["body"]["system"]


def test_server_error_falls_back_to_local(insight):
    reply = _client(lambda request: httpx.Response(500, json={"error": "overloaded"})).chat("hello", insight)
    assert reply.source == "local"
    assert "FinOps assistant" in reply.reply


def test_transport_error_falls_back_to_local(insight):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    reply = _client(handler).chat("total spend", insight)
    assert reply.source == "local"
    assert "Total Spend (MTD)" in reply.reply


def test_empty_ai_reply_falls_back_to_local(insight):
    reply = _client(lambda request: httpx.Response(200, json={"content": []})).chat("hello", insight)
    assert reply.source == "local"


def test_no_api_key_never_calls_out(insight):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"content": [{"type": "text", "text": "x"}]})

    reply = _client(handler, api_key="").chat("hello", insight)
    assert reply.source == "local"
    assert calls == []


def test_payload_carries_history_before_message(insight):
    client = _client(lambda request: httpx.Response(200))
    history = [ChatTurn("user", "hi"), ChatTurn("assistant", "hello!")]
    payload = client.build_payload("show budgets", insight, history)
    assert payload["messages"] == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello!"},
        {"role": "user", "content": "show budgets"},
    ]
    assert payload["max_tokens"] == 1024
