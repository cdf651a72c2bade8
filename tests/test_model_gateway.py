import asyncio
import json
import unittest

import httpx

from smarthr.ai.gateway import CONNECTION_FALLBACK, EMPTY_COMPLETION_FALLBACK, ModelGateway, is_fallback
from smarthr.ai.providers.gemini_provider import GeminiProvider


class _StubClient:
    def __init__(self, reply: str = "", exc: Exception | None = None, delay: float = 0.0):
        self.reply = reply
        self.exc = exc
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    async def generate(self, prompt: str, system_instruction: str) -> str:
        self.calls.append((prompt, system_instruction))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return self.reply

    async def aclose(self) -> None:
        return None


class ModelGatewayTests(unittest.IsolatedAsyncioTestCase):
    async def test_returns_completion_text(self):
        client = _StubClient(reply="You get 20 days of PTO.")
        gateway = ModelGateway(client, timeout_s=1)

        reply = await gateway.invoke("How much PTO?", "Be concise.")

        self.assertEqual(reply, "You get 20 days of PTO.")
        self.assertEqual(client.calls, [("How much PTO?", "Be concise.")])

    async def test_transport_error_becomes_fallback_without_retry(self):
        client = _StubClient(exc=httpx.ConnectError("connection refused"))
        gateway = ModelGateway(client, timeout_s=1)

        with self.assertLogs("smarthr.gateway", level="ERROR") as logs:
            reply = await gateway.invoke("hello", "system")

        self.assertEqual(reply, CONNECTION_FALLBACK)
        self.assertTrue(is_fallback(reply))
        self.assertEqual(len(client.calls), 1)
        self.assertIn("model_call_failed", logs.output[0])

    async def test_empty_completion_becomes_fallback(self):
        gateway = ModelGateway(_StubClient(reply=""), timeout_s=1)

        reply = await gateway.invoke("hello", "system")

        self.assertEqual(reply, EMPTY_COMPLETION_FALLBACK)

    async def test_hung_call_is_bounded_by_timeout(self):
        gateway = ModelGateway(_StubClient(reply="late", delay=5), timeout_s=0.05)

        with self.assertLogs("smarthr.gateway", level="WARNING") as logs:
            reply = await gateway.invoke("hello", "system")

        self.assertEqual(reply, CONNECTION_FALLBACK)
        self.assertIn("model_call_timeout", logs.output[0])

    async def test_client_construction_failure_is_not_raised(self):
        def _factory():
            raise RuntimeError("GEMINI_API_KEY is missing")

        gateway = ModelGateway(client_factory=_factory, timeout_s=1)

        with self.assertLogs("smarthr.gateway", level="ERROR"):
            reply = await gateway.invoke("hello", "system")

        self.assertEqual(reply, CONNECTION_FALLBACK)


class GeminiProviderTests(unittest.IsolatedAsyncioTestCase):
    def _provider(self, handler) -> GeminiProvider:
        provider = GeminiProvider(model="gemini-test", api_key="test-key", base_url="https://example.test/v1beta")
        provider._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return provider

    async def test_request_carries_prompt_and_system_instruction(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"candidates": [{"content": {"parts": [{"text": "Payroll runs on the 28th."}]}}]},
            )

        provider = self._provider(handler)
        try:
            reply = await provider.generate("When is payroll?", "You are an HR assistant.")
        finally:
            await provider.aclose()

        self.assertEqual(reply, "Payroll runs on the 28th.")
        self.assertIn("/models/gemini-test:generateContent", seen["url"])
        self.assertIn("key=test-key", seen["url"])
        self.assertEqual(seen["body"]["contents"][0]["parts"][0]["text"], "When is payroll?")
        self.assertEqual(seen["body"]["systemInstruction"]["parts"][0]["text"], "You are an HR assistant.")

    async def test_missing_candidates_yield_empty_text(self):
        provider = self._provider(lambda request: httpx.Response(200, json={"promptFeedback": {}}))
        try:
            reply = await provider.generate("hi", "sys")
        finally:
            await provider.aclose()

        self.assertEqual(reply, "")

    async def test_error_status_reaches_gateway_as_fallback(self):
        provider = self._provider(lambda request: httpx.Response(500, json={"error": "boom"}))
        gateway = ModelGateway(provider, timeout_s=1)
        try:
            with self.assertLogs("smarthr.gateway", level="ERROR"):
                reply = await gateway.invoke("hi", "sys")
        finally:
            await gateway.aclose()

        self.assertEqual(reply, CONNECTION_FALLBACK)


if __name__ == "__main__":
    unittest.main()
