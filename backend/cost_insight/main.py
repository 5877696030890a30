"""
FastAPI application entry point.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cost_insight.core.config import get_settings
from cost_insight.core.exceptions import InvalidInput
from cost_insight.core.logging import configure_logging

settings = get_settings()

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Cost Insight Engine",
    description="Budgets, spikes, savings and FinOps maturity derived from AWS cost data",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Errors ────────────────────────────────────────────────────────────────────
@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput) -> JSONResponse:
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=422, content={"detail": str(exc)})


# ── Routers ───────────────────────────────────────────────────────────────────
from cost_insight.api.routes import health, insights

app.include_router(health.router)
app.include_router(insights.router, prefix="/api/v1")


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup_event():
    s = get_settings()
    logger.info(
        f"Starting Cost Insight Engine v{s.app_version} "
        f"(variant={s.engine_variant}, mock_aws={s.mock_aws}, cache_ttl={s.cache_ttl_seconds}s)"
    )


# ── Version Endpoint ──────────────────────────────────────────────────────────
@app.get("/api/v1/version")
async def version():
    s = get_settings()
    return {
        "version": s.app_version,
        "app_env": s.app_env,
        "mock_aws": s.mock_aws,
        "engine_variant": s.engine_variant,
        "features": [
            "implied_budgets", "forecast_risk", "spike_detection", "savings_estimation",
            "maturity_scoring", "local_responder", "llm_chat",
        ],
    }
