"""OpenRouter chat-completion client for cost recommendations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
from openai import AsyncOpenAI

from node_planner.config import AppConfig
from node_planner.prompts import build_recommendations_prompt
from node_planner.questionnaire import QuestionnaireAnswers

logger = logging.getLogger("node_planner")


class LlmServiceError(RuntimeError):
    """The provider could not produce a usable reply."""


@dataclass(frozen=True)
class LlmReply:
    text: str
    model: str
    usage: Optional[dict[str, Any]] = field(default=None)


def build_openai_client(config: AppConfig) -> Optional[AsyncOpenAI]:
    if not config.openrouter_api_key:
        return None

    timeout = httpx.Timeout(
        connect=10.0,
        read=config.request_timeout_sec,
        write=config.request_timeout_sec,
        pool=config.request_timeout_sec,
    )
    try:
        http_client = httpx.AsyncClient(timeout=timeout, trust_env=True)
        client = AsyncOpenAI(
            api_key=config.openrouter_api_key,
            base_url=config.base_url,
            http_client=http_client,
        )
    except Exception as e:
        logger.warning("OpenRouter client initialization failed: %s", e)
        return None

    logger.info("OpenRouter client initialized base_url=%s model=%s", config.base_url, config.model_name or "(unset)")
    return client


def _usage_to_dict(usage: Any) -> Optional[dict[str, Any]]:
    if usage is None:
        return None
    if isinstance(usage, dict):
        return usage
    dump = getattr(usage, "model_dump", None)
    if callable(dump):
        return dump()
    return None


class RecommendationsClient:
    """Builds the prompt for a questionnaire and sends it to the configured model once."""

    def __init__(self, config: AppConfig, async_client: Optional[Any] = None):
        self.config = config
        self.async_client = async_client if async_client is not None else build_openai_client(config)

    @property
    def configured(self) -> bool:
        return self.async_client is not None and bool(self.config.model_name)

    def _build_payload(self, prompt: str) -> dict[str, Any]:
        extra_body: dict[str, Any] = {"usage": {"include": True}}
        if self.config.web_search:
            extra_body["web_search"] = True
        return {
            "model": self.config.model_name,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.config.max_tokens,
            "extra_body": extra_body,
        }

    async def generate(self, answers: QuestionnaireAnswers, *, request_id: str = "-") -> LlmReply:
        if self.async_client is None:
            raise LlmServiceError("LLM client not initialized. Check OPENROUTER_API_KEY.")
        model = self.config.model_name
        if not model:
            raise LlmServiceError(
                "No model configured. Set OPENROUTER_PAID_MODEL or OPENROUTER_FREE_MODEL."
            )

        payload = self._build_payload(build_recommendations_prompt(answers))
        logger.info("LLM API call started request_id=%s model=%s", request_id, model)
        try:
            response = await self.async_client.chat.completions.create(**payload)
        except Exception as e:
            logger.warning(
                "LLM API call failed request_id=%s model=%s error_type=%s error=%s",
                request_id,
                model,
                type(e).__name__,
                str(e),
            )
            raise LlmServiceError(f"{type(e).__name__}: {e}") from e

        choices = getattr(response, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        text = getattr(message, "content", "") if message is not None else ""
        text = text if isinstance(text, str) else ""
        if not text.strip():
            finish_reason = getattr(choices[0], "finish_reason", "N/A") if choices else "N/A"
            raise LlmServiceError(f"LLM returned an empty reply. Model: {model}, finish_reason: {finish_reason}")

        logger.info(
            "LLM API response received request_id=%s model=%s response_length=%s",
            request_id,
            model,
            len(text),
        )
        return LlmReply(text=text, model=model, usage=_usage_to_dict(getattr(response, "usage", None)))
