from __future__ import annotations

import asyncio
import hashlib
import json
import logging

from pydantic import ValidationError

from smarthr.ai.gateway import ModelGateway
from smarthr.core.config import settings
from smarthr.core.record_store import SCREENINGS, RecordStore, collection_path
from smarthr.core.security import CallerIdentity
from smarthr.schemas.screening import RECOMMENDATIONS, ScreeningResult
from smarthr.services.extractor import ExtractionError, extract
from smarthr.services.prompts import SCREENING_SYSTEM_INSTRUCTION, build_screening_prompt
from smarthr.services.sessions import SessionBusyError

logger = logging.getLogger("smarthr.screening")


class ScreeningError(RuntimeError):
    def __init__(self, message: str, *, reason: str = "parse", status_code: int = 502):
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code


def _short_hash(value: str) -> str:
    return hashlib.sha256((value or "").encode("utf-8")).hexdigest()[:12]


def job_title_preview(job_description: str, limit: int | None = None) -> str:
    size = settings.job_title_preview_chars if limit is None else limit
    return job_description[:size] + "..."


class ScreeningPipeline:
    def __init__(self, gateway: ModelGateway, store: RecordStore):
        self._gateway = gateway
        self._store = store
        self._pending: set[asyncio.Task] = set()
        self._in_flight: set[str] = set()

    async def screen(self, job_description: str, resume_text: str, caller: CallerIdentity) -> ScreeningResult | None:
        if not (job_description or "").strip() or not (resume_text or "").strip():
            return None
        if caller.id in self._in_flight:
            raise SessionBusyError("A screening is already running for this caller.")

        self._in_flight.add(caller.id)
        try:
            return await self._run(job_description, resume_text, caller)
        finally:
            self._in_flight.discard(caller.id)

    async def _run(self, job_description: str, resume_text: str, caller: CallerIdentity) -> ScreeningResult:
        raw = await self._gateway.invoke(
            build_screening_prompt(job_description, resume_text),
            SCREENING_SYSTEM_INSTRUCTION,
        )
        try:
            result = ScreeningResult.model_validate(extract(raw))
        except (ExtractionError, ValidationError) as exc:
            logger.warning(
                json.dumps(
                    {
                        "event": "screening_parse_failed",
                        "error": str(exc),
                        "reply_len": len(raw),
                        "jd_hash": _short_hash(job_description),
                    }
                )
            )
            raise ScreeningError("AI Analysis failed. Try again.") from exc

        self._warn_on_unusual_result(result)
        record = {
            "job_title": job_title_preview(job_description),
            "score": result.score,
            "recommendation": result.recommendation,
            "created_by": caller.id,
        }
        task = asyncio.create_task(self._persist(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return result

    async def _persist(self, record: dict) -> None:
        try:
            record_id = await self._store.append(collection_path(SCREENINGS), record)
        except Exception as exc:  # noqa: BLE001 - the displayed result stands regardless
            logger.error(
                json.dumps(
                    {
                        "event": "screening_record_write_failed",
                        "error": str(exc),
                        "created_by": record.get("created_by"),
                    }
                )
            )
            return
        logger.info(json.dumps({"event": "screening_record_written", "record_id": record_id, "score": record["score"]}))

    def _warn_on_unusual_result(self, result: ScreeningResult) -> None:
        if not 0 <= result.score <= 100:
            logger.warning(json.dumps({"event": "screening_score_out_of_range", "score": result.score}))
        if result.recommendation not in RECOMMENDATIONS:
            logger.warning(
                json.dumps({"event": "screening_unknown_recommendation", "recommendation": result.recommendation})
            )
        if len(result.strengths) != 3 or len(result.gaps) != 3:
            logger.info(
                json.dumps(
                    {
                        "event": "screening_list_size_mismatch",
                        "strengths": len(result.strengths),
                        "gaps": len(result.gaps),
                    }
                )
            )

    async def wait_for_pending_writes(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending))
