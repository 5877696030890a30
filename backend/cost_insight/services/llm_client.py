"""
Conversational collaborator.
Forwards a chat turn plus the aggregated insight (as a system prompt) to the
Anthropic Messages API. Falls back to the local Query Responder when no API
key is configured or the call fails for any reason.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import httpx

from cost_insight.core.config import Settings, get_settings
from cost_insight.models.insight import AggregatedInsight
from cost_insight.services.insight_engine.responder import build_context_prompt, respond

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatTurn:
    role: str      # user | assistant
    content: str


@dataclass(frozen=True)
class ChatReply:
    reply: str
    source: str    # ai | local


def _extract_text(body: dict[str, Any]) -> str:
    parts = [block.get("text", "") for block in body.get("content", []) if block.get("type") == "text"]
    return "".join(parts).strip()


class LLMClient:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._transport = transport

    def build_payload(
        self,
        message: str,
        insight: AggregatedInsight,
        history: Sequence[ChatTurn] = (),
    ) -> dict[str, Any]:
        messages = [{"role": t.role, "content": t.content} for t in history]
        messages.append({"role": "user", "content": message})
        return {
            "model": self.settings.anthropic_model,
            "max_tokens": self.settings.llm_max_tokens,
            "system": build_context_prompt(insight),
            "messages": messages,
        }

    def _call(self, payload: dict[str, Any]) -> str:
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.settings.anthropic_api_key,
            "anthropic-version": self.settings.anthropic_version,
        }
        with httpx.Client(timeout=self.settings.llm_timeout_seconds, transport=self._transport) as client:
            response = client.post(self.settings.anthropic_api_url, json=payload, headers=headers)
            response.raise_for_status()
            return _extract_text(response.json())

    def chat(
        self,
        message: str,
        insight: AggregatedInsight,
        history: Sequence[ChatTurn] = (),
    ) -> ChatReply:
        if self.settings.llm_enabled:
            try:
                text = self._call(self.build_payload(message, insight, history))
                if text:
                    return ChatReply(reply=text, source="ai")
                logger.warning("LLM returned an empty reply, using local responder")
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"LLM call failed, using local responder: {e}")
        return ChatReply(reply=respond(message, insight), source="local")
