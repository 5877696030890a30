"""
Insights API Route
==================
Provides:
  GET  /api/v1/insights           full aggregated insight
  GET  /api/v1/insights/budget    account + per-service budgets, forecast risk, variance
  GET  /api/v1/insights/spikes    ranked spikes and open anomalies
  GET  /api/v1/insights/savings   ranked opportunities + every category (zero included)
  GET  /api/v1/insights/maturity  FinOps maturity scorecard
  POST /api/v1/chat               conversational reply (external LLM or local responder)

Every GET accepts ?variant= to override the configured engine variant and
?refresh=true to bypass the collector cache.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import asdict
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from cost_insight.models.insight import AggregatedInsight
from cost_insight.services.cost_collector import CostCollector
from cost_insight.services.insight_engine.engine import CostInsightEngine
from cost_insight.services.insight_engine.savings import estimate_category_savings
from cost_insight.services.llm_client import ChatTurn, LLMClient

logger = logging.getLogger(__name__)
router = APIRouter(tags=["insights"])

# One collector per process so its cache outlives individual requests
_collector: Optional[CostCollector] = None
_collector_lock = threading.Lock()


def get_collector() -> CostCollector:
    global _collector
    with _collector_lock:
        if _collector is None:
            _collector = CostCollector()
        return _collector


def get_engine(variant: Optional[str] = Query(None, description="standard | tracking")) -> CostInsightEngine:
    return CostInsightEngine.from_settings(variant=variant)


def get_llm_client() -> LLMClient:
    return LLMClient()


def _insight(
    refresh: bool = Query(False, description="Bypass the collector cache"),
    collector: CostCollector = Depends(get_collector),
    engine: CostInsightEngine = Depends(get_engine),
) -> AggregatedInsight:
    snapshot = collector.get_snapshot(force_refresh=refresh)
    return engine.aggregate(snapshot)


# ── Schemas ───────────────────────────────────────────────────────────────────

class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=1000)
    history: list[ChatMessage] = Field(default_factory=list, max_length=20)


# ── Endpoints ────────────────────────────────────────────────────────────────

@router.get("/insights")
def get_insights(insight: AggregatedInsight = Depends(_insight)) -> dict[str, Any]:
    return insight.to_dict()


@router.get("/insights/budget")
def get_budget(insight: AggregatedInsight = Depends(_insight)) -> dict[str, Any]:
    data = insight.to_dict()
    return {
        "budget": data["budget"],
        "service_budgets": data["service_budgets"],
        "forecast_risk": data["forecast_risk"],
        "variance": data["variance"],
        "error": insight.error,
    }


@router.get("/insights/spikes")
def get_spikes(insight: AggregatedInsight = Depends(_insight)) -> dict[str, Any]:
    data = insight.to_dict()
    return {
        "spikes": data["spikes"],
        "anomalies": data["anomalies"],
        "open_anomaly_count": len(insight.open_anomalies),
        "error": insight.error,
    }


@router.get("/insights/savings")
def get_savings(
    insight: AggregatedInsight = Depends(_insight),
    engine: CostInsightEngine = Depends(get_engine),
) -> dict[str, Any]:
    by_category = estimate_category_savings(insight.categories, insight.total_spend_mtd, engine.policy)
    return {
        "opportunities": [o.to_dict() for o in insight.savings],
        "by_category": {name: o.estimated_monthly_savings for name, o in by_category.items()},
        "total_monthly_savings": insight.total_monthly_savings,
        "total_annual_savings": insight.total_monthly_savings * 12,
        "error": insight.error,
    }


@router.get("/insights/maturity")
def get_maturity(insight: AggregatedInsight = Depends(_insight)) -> dict[str, Any]:
    data = insight.to_dict()
    return {
        **data["maturity"],
        "commitment_level": data["commitment_level"],
        "service_health": data["service_health"],
    }


@router.post("/chat")
def chat(
    payload: ChatRequest,
    insight: AggregatedInsight = Depends(_insight),
    llm: LLMClient = Depends(get_llm_client),
) -> dict[str, Any]:
    history = [ChatTurn(role=m.role, content=m.content) for m in payload.history]
    result = llm.chat(payload.message, insight, history)
    logger.info(f"Chat reply served from {result.source} ({len(result.reply)} chars)")
    return asdict(result)
