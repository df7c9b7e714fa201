"""
services/llm.py — Async LLM service for flashcard and quiz generation.

Provider: OpenRouter when OPENROUTER_API_KEY is set (or AI_PROVIDER=openrouter),
otherwise OpenAI.  Both go through openai.AsyncOpenAI; the client is created on
first use so importing this module does no I/O.
"""

import logging
import os
from typing import Optional

from config import Config
from errors import UpstreamError

logger = logging.getLogger(__name__)

# ── OR aliases (shorthand model IDs → OpenRouter paths) ─────────────────────
_OR_ALIASES: dict = {
    "gpt-4o":            "openai/gpt-4o",
    "gpt-4o-mini":       "openai/gpt-4o-mini",
    "gpt-3.5-turbo":     "openai/gpt-3.5-turbo",
    "claude-3-haiku":    "anthropic/claude-3-haiku",
}


def _detect_provider() -> str:
    p = os.getenv("AI_PROVIDER", "").lower()
    if p in ("openrouter", "openai"):
        return p
    if os.getenv("OPENROUTER_API_KEY"):
        return "openrouter"
    return "openai"


AI_PROVIDER = _detect_provider()


class LLMService:
    """Async LLM calls.  Instantiate once as a module-level singleton."""

    def __init__(self):
        self._provider = AI_PROVIDER
        self._async_client = None   # openai.AsyncOpenAI, created on first call

    # ── Resolve model ID ─────────────────────────────────────────────────────

    def resolve_model(self, model_id: Optional[str] = None) -> str:
        # Treat None, empty string, and the literal strings "null"/"none" as missing
        if not model_id or model_id.strip().lower() in ("null", "none"):
            model_id = Config.OPENAI_MODEL
        if self._provider == "openrouter" and "/" not in model_id:
            return _OR_ALIASES.get(model_id, model_id)
        return model_id

    # ── Async completion ─────────────────────────────────────────────────────

    async def complete(
        self,
        system: str,
        user: str,
        temperature: float = 0.2,
        max_tokens: int = 800,
        model: Optional[str] = None,
    ) -> str:
        """Single system+user turn. Returns the assistant text (may be empty)."""
        resolved = self.resolve_model(model)
        client = self._get_async_client()
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]

        try:
            resp = await client.chat.completions.create(
                model=resolved,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as e:
            status = getattr(e, "status_code", None)
            logger.error("llm.request.failed provider=%s model=%s: %s", self._provider, resolved, e)
            raise UpstreamError(
                "AI provider request failed",
                upstream={"message": str(e), "status": status},
            )

        return self._extract_content(resp)

    # ── OpenAI/OpenRouter client helpers ─────────────────────────────────────

    def _get_async_client(self):
        if self._async_client is None:
            import openai

            if self._provider == "openrouter":
                api_key = Config.OPENROUTER_API_KEY or os.getenv("OPENROUTER_API_KEY")
                if not api_key:
                    raise UpstreamError("OPENROUTER_API_KEY is required")
                self._async_client = openai.AsyncOpenAI(
                    base_url="https://openrouter.ai/api/v1",
                    api_key=api_key,
                    timeout=Config.OPENAI_TIMEOUT,
                )
            else:
                api_key = Config.OPENAI_API_KEY or os.getenv("OPENAI_API_KEY")
                if not api_key:
                    raise UpstreamError("OPENAI_API_KEY is required")
                self._async_client = openai.AsyncOpenAI(
                    api_key=api_key, timeout=Config.OPENAI_TIMEOUT
                )
            logger.info("LLMService: provider=%s", self._provider)
        return self._async_client

    # ── Content extraction ────────────────────────────────────────────────────

    def _extract_content(self, response) -> str:
        if hasattr(response, "choices") and response.choices:
            return response.choices[0].message.content or ""
        return ""
