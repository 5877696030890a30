from __future__ import annotations

from fastapi import APIRouter

from cost_insight.core.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    settings = get_settings()
    return {
        "status": "healthy",
        "mock_aws": settings.mock_aws,
        "engine_variant": settings.engine_variant,
        "llm_enabled": settings.llm_enabled,
    }
