"""Tests for the OpenRouter recommendations client."""

from __future__ import annotations

import asyncio
import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from node_planner import llm_service
from node_planner.config import AppConfig
from node_planner.llm_service import LlmServiceError, RecommendationsClient, build_openai_client
from node_planner.questionnaire import QuestionnaireAnswers


def _config(**overrides) -> AppConfig:
    data = {
        "openrouter_api_key": "sk-test",
        "free_model": "free/model",
        "paid_model": "paid/model",
    }
    data.update(overrides)
    return AppConfig(**data)


def _answers() -> QuestionnaireAnswers:
    return QuestionnaireAnswers(location_country="USA", location_state="TX", location_city="Austin")


def _fake_client(content, *, usage=None, finish_reason="stop"):
    fake_response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason=finish_reason)],
        usage=usage,
    )
    create = AsyncMock(return_value=fake_response)
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create))), create


class TestRecommendationsClient(unittest.TestCase):
    def test_generate_sends_single_user_message_with_web_search(self) -> None:
        client, create = _fake_client('{"recommendations": []}', usage={"total_tokens": 12})
        service = RecommendationsClient(_config(), async_client=client)

        reply = asyncio.run(service.generate(_answers(), request_id="req-1"))

        self.assertEqual(reply.text, '{"recommendations": []}')
        self.assertEqual(reply.model, "free/model")
        self.assertEqual(reply.usage, {"total_tokens": 12})
        create.assert_awaited_once()
        kwargs = create.await_args.kwargs
        self.assertEqual(kwargs["model"], "free/model")
        self.assertEqual(len(kwargs["messages"]), 1)
        self.assertEqual(kwargs["messages"][0]["role"], "user")
        self.assertIn("Austin, TX, USA", kwargs["messages"][0]["content"])
        self.assertEqual(kwargs["max_tokens"], 8000)
        self.assertEqual(kwargs["extra_body"], {"usage": {"include": True}, "web_search": True})

    def test_paid_model_and_disabled_web_search(self) -> None:
        client, create = _fake_client("[]")
        service = RecommendationsClient(_config(use_paid_model=True, web_search=False), async_client=client)

        asyncio.run(service.generate(_answers()))

        kwargs = create.await_args.kwargs
        self.assertEqual(kwargs["model"], "paid/model")
        self.assertNotIn("web_search", kwargs["extra_body"])

    def test_usage_objects_are_dumped(self) -> None:
        usage = SimpleNamespace(model_dump=lambda: {"prompt_tokens": 3})
        client, _create = _fake_client("[]", usage=usage)
        reply = asyncio.run(RecommendationsClient(_config(), async_client=client).generate(_answers()))
        self.assertEqual(reply.usage, {"prompt_tokens": 3})

    def test_empty_reply_raises(self) -> None:
        client, _create = _fake_client("   ", finish_reason="length")
        service = RecommendationsClient(_config(), async_client=client)

        with self.assertRaises(LlmServiceError) as ctx:
            asyncio.run(service.generate(_answers()))
        self.assertIn("finish_reason: length", str(ctx.exception))

    def test_missing_choices_raise(self) -> None:
        create = AsyncMock(return_value=SimpleNamespace(choices=[], usage=None))
        client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
        with self.assertRaises(LlmServiceError):
            asyncio.run(RecommendationsClient(_config(), async_client=client).generate(_answers()))

    def test_provider_error_is_wrapped(self) -> None:
        create = AsyncMock(side_effect=TimeoutError("upstream timed out"))
        client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
        service = RecommendationsClient(_config(), async_client=client)

        with self.assertRaises(LlmServiceError) as ctx:
            asyncio.run(service.generate(_answers()))
        self.assertIn("upstream timed out", str(ctx.exception))
        self.assertIsInstance(ctx.exception.__cause__, TimeoutError)

    def test_unconfigured_client_raises_before_calling(self) -> None:
        service = RecommendationsClient(_config(openrouter_api_key=""))
        self.assertIsNone(service.async_client)
        self.assertFalse(service.configured)
        with self.assertRaises(LlmServiceError):
            asyncio.run(service.generate(_answers()))

    def test_missing_model_raises(self) -> None:
        client, create = _fake_client("[]")
        service = RecommendationsClient(_config(free_model=""), async_client=client)
        self.assertFalse(service.configured)
        with self.assertRaises(LlmServiceError):
            asyncio.run(service.generate(_answers()))
        create.assert_not_awaited()


class TestBuildOpenAIClient(unittest.TestCase):
    def test_no_key_means_no_client(self) -> None:
        self.assertIsNone(build_openai_client(_config(openrouter_api_key="")))

    def test_client_uses_configured_base_url(self) -> None:
        with patch.object(llm_service, "AsyncOpenAI") as mock_openai:
            client = build_openai_client(_config(base_url="https://proxy.example/v1"))

        self.assertIs(client, mock_openai.return_value)
        kwargs = mock_openai.call_args.kwargs
        self.assertEqual(kwargs["api_key"], "sk-test")
        self.assertEqual(kwargs["base_url"], "https://proxy.example/v1")
        self.assertEqual(kwargs["http_client"].timeout.read, 120.0)


if __name__ == "__main__":
    unittest.main()
