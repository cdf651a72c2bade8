import asyncio
import json
import os
import tempfile
import unittest

from smarthr.ai.gateway import CONNECTION_FALLBACK, ModelGateway
from smarthr.core.record_store import SCREENINGS, RecordStore, collection_path
from smarthr.core.security import CallerIdentity
from smarthr.services.prompts import SCREENING_SYSTEM_INSTRUCTION
from smarthr.services.screening_service import ScreeningError, ScreeningPipeline, job_title_preview
from smarthr.services.sessions import SessionBusyError

JD = "Senior Go Engineer to own our distributed payments platform and on-call rotation."
RESUME = "5 years Go, distributed systems, Kafka, Postgres, led incident response."
PAYLOAD = {
    "score": 88,
    "strengths": ["Go depth", "Distributed systems", "Incident leadership"],
    "gaps": ["No Kubernetes", "Limited gRPC", "No payments domain"],
    "recommendation": "Hire",
    "summary": "Strong backend profile with minor platform gaps.",
}


class _StubClient:
    def __init__(self, reply: str):
        self.reply = reply
        self.calls: list[tuple[str, str]] = []

    async def generate(self, prompt: str, system_instruction: str) -> str:
        self.calls.append((prompt, system_instruction))
        return self.reply

    async def aclose(self) -> None:
        return None


class _GatedStubClient(_StubClient):
    def __init__(self, reply: str):
        super().__init__(reply)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def generate(self, prompt: str, system_instruction: str) -> str:
        self.calls.append((prompt, system_instruction))
        self.started.set()
        await self.release.wait()
        return self.reply


class _ChainingStore:
    """Runs ``on_first_append`` before the first write reaches the real store."""

    def __init__(self, inner: RecordStore, on_first_append):
        self.inner = inner
        self.on_first_append = on_first_append
        self.appends = 0

    async def append(self, path, record):
        self.appends += 1
        if self.appends == 1:
            await self.on_first_append()
        return await self.inner.append(path, record)


class _FailingStore:
    async def append(self, path, record):
        raise OSError("disk full")


class ScreeningPipelineTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.store = RecordStore(os.path.join(self._tmp.name, "records.db"))
        self.caller = CallerIdentity(id="hr-admin-1", display_name="Dana")
        self.path = collection_path(SCREENINGS)

    def tearDown(self):
        self.store.close()
        self._tmp.cleanup()

    def _pipeline(self, reply: str, store=None) -> tuple[ScreeningPipeline, _StubClient]:
        client = _StubClient(reply)
        return ScreeningPipeline(ModelGateway(client, timeout_s=5), store or self.store), client

    async def test_successful_screening_returns_result_and_appends_one_record(self):
        pipeline, client = self._pipeline(json.dumps(PAYLOAD))

        result = await pipeline.screen(JD, RESUME, self.caller)
        await pipeline.wait_for_pending_writes()

        self.assertEqual(result.score, 88)
        self.assertEqual(result.recommendation, "Hire")
        self.assertEqual(len(result.strengths), 3)
        records = await self.store.snapshot(self.path)
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0]["score"], 88)
        self.assertEqual(records[0]["recommendation"], "Hire")
        self.assertEqual(records[0]["created_by"], "hr-admin-1")
        self.assertEqual(records[0]["job_title"], JD[:30] + "...")
        self.assertNotIn("strengths", records[0])
        prompt, system_instruction = client.calls[0]
        self.assertEqual(system_instruction, SCREENING_SYSTEM_INSTRUCTION)
        self.assertIn(JD, prompt)
        self.assertIn(RESUME, prompt)

    async def test_fenced_payload_is_accepted(self):
        pipeline, _ = self._pipeline("```json\n" + json.dumps(PAYLOAD) + "\n```")

        result = await pipeline.screen(JD, RESUME, self.caller)

        self.assertEqual(result.gaps[0], "No Kubernetes")
        await pipeline.wait_for_pending_writes()

    async def test_unparseable_reply_fails_and_writes_nothing(self):
        pipeline, _ = self._pipeline("The candidate seems like a good fit overall!")

        with self.assertRaises(ScreeningError) as ctx:
            await pipeline.screen(JD, RESUME, self.caller)
        await pipeline.wait_for_pending_writes()

        self.assertEqual(ctx.exception.reason, "parse")
        self.assertEqual(await self.store.snapshot(self.path), [])

    async def test_gateway_fallback_surfaces_as_parse_failure(self):
        pipeline, _ = self._pipeline(CONNECTION_FALLBACK)

        with self.assertRaises(ScreeningError):
            await pipeline.screen(JD, RESUME, self.caller)

    async def test_missing_field_is_treated_as_parse_failure(self):
        partial = {key: value for key, value in PAYLOAD.items() if key != "gaps"}
        pipeline, _ = self._pipeline(json.dumps(partial))

        with self.assertRaises(ScreeningError):
            await pipeline.screen(JD, RESUME, self.caller)
        self.assertEqual(await self.store.snapshot(self.path), [])

    async def test_blank_inputs_make_no_model_call(self):
        pipeline, client = self._pipeline(json.dumps(PAYLOAD))

        self.assertIsNone(await pipeline.screen("", RESUME, self.caller))
        self.assertIsNone(await pipeline.screen(JD, "   ", self.caller))

        self.assertEqual(client.calls, [])
        self.assertEqual(await self.store.snapshot(self.path), [])

    async def test_store_failure_does_not_revoke_result(self):
        pipeline, _ = self._pipeline(json.dumps(PAYLOAD), store=_FailingStore())

        with self.assertLogs("smarthr.screening", level="ERROR") as logs:
            result = await pipeline.screen(JD, RESUME, self.caller)
            await pipeline.wait_for_pending_writes()

        self.assertEqual(result.score, 88)
        self.assertIn("screening_record_write_failed", "\n".join(logs.output))

    async def test_out_of_range_score_is_kept_and_logged(self):
        pipeline, _ = self._pipeline(json.dumps({**PAYLOAD, "score": 140}))

        with self.assertLogs("smarthr.screening", level="WARNING") as logs:
            result = await pipeline.screen(JD, RESUME, self.caller)
        await pipeline.wait_for_pending_writes()

        self.assertEqual(result.score, 140)
        self.assertIn("screening_score_out_of_range", "\n".join(logs.output))


    async def test_second_screening_from_same_caller_is_rejected_while_running(self):
        client = _GatedStubClient(json.dumps(PAYLOAD))
        pipeline = ScreeningPipeline(ModelGateway(client, timeout_s=5), self.store)

        first = asyncio.create_task(pipeline.screen(JD, RESUME, self.caller))
        await client.started.wait()
        with self.assertRaises(SessionBusyError) as ctx:
            await pipeline.screen(JD, RESUME, self.caller)
        client.release.set()
        result = await first
        await pipeline.wait_for_pending_writes()

        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(result.score, 88)
        self.assertEqual(len(client.calls), 1)
        self.assertEqual(len(await self.store.snapshot(self.path)), 1)

    async def test_other_callers_are_not_blocked_by_a_running_screening(self):
        client = _GatedStubClient(json.dumps(PAYLOAD))
        pipeline = ScreeningPipeline(ModelGateway(client, timeout_s=5), self.store)
        other = CallerIdentity(id="hr-admin-2", display_name="Lee")

        first = asyncio.create_task(pipeline.screen(JD, RESUME, self.caller))
        second = asyncio.create_task(pipeline.screen(JD, RESUME, other))
        await client.started.wait()
        client.release.set()
        await asyncio.gather(first, second)
        await pipeline.wait_for_pending_writes()

        self.assertEqual(len(client.calls), 2)
        self.assertEqual(len(await self.store.snapshot(self.path)), 2)

    async def test_wait_covers_writes_scheduled_while_waiting(self):
        other = CallerIdentity(id="hr-admin-2", display_name="Lee")
        store = _ChainingStore(self.store, lambda: pipeline.screen(JD, RESUME, other))
        pipeline, client = self._pipeline(json.dumps(PAYLOAD), store=store)

        await pipeline.screen(JD, RESUME, self.caller)
        await pipeline.wait_for_pending_writes()

        records = await self.store.snapshot(self.path)
        self.assertEqual(len(client.calls), 2)
        self.assertEqual(sorted(record["created_by"] for record in records), ["hr-admin-1", "hr-admin-2"])

class JobTitlePreviewTests(unittest.TestCase):
    def test_preview_is_truncated_with_ellipsis(self):
        self.assertEqual(job_title_preview("Senior Go Engineer for payments platform", limit=10), "Senior Go ...")


if __name__ == "__main__":
    unittest.main()
