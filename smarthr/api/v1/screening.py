import json
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import StreamingResponse

from smarthr.api.deps import get_screening_pipeline
from smarthr.core import events
from smarthr.core.config import settings
from smarthr.core.rate_limit import rate_limit
from smarthr.core.record_store import SCREENINGS, RecordStore, collection_path, get_record_store
from smarthr.core.security import CallerIdentity, get_caller
from smarthr.schemas.screening import ScreeningRecord, ScreeningRequest, ScreeningResult
from smarthr.services.screening_service import ScreeningError, ScreeningPipeline
from smarthr.services.sessions import SessionBusyError
from smarthr.utils.sse import sse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/screenings", response_model=ScreeningResult)
@rate_limit(settings.screening_rate_limit)
async def screening_create(
    request: Request,
    payload: ScreeningRequest,
    caller: CallerIdentity = Depends(get_caller),
    pipeline: ScreeningPipeline = Depends(get_screening_pipeline),
):
    _ = request
    try:
        result = await pipeline.screen(payload.job_description, payload.resume_text, caller)
    except (ScreeningError, SessionBusyError) as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Both a job description and resume text are required.",
        )
    return result


@router.get("/screenings", response_model=list[ScreeningRecord])
async def screening_history(
    request: Request,
    caller: CallerIdentity = Depends(get_caller),
    store: RecordStore = Depends(get_record_store),
):
    _ = caller
    view = getattr(request.app.state, "screening_history", None)
    if view is not None:
        return view.records
    return await store.snapshot(collection_path(SCREENINGS))


async def _snapshot_events(request: Request, store: RecordStore) -> AsyncGenerator[str, None]:
    try:
        async with store.subscribe(collection_path(SCREENINGS)) as subscription:
            async for snapshot in subscription:
                if await request.is_disconnected():
                    break
                yield sse(events.SNAPSHOT, json.dumps(jsonable_encoder(snapshot)))
    except Exception as ex:
        logger.exception(json.dumps({"event": "screening_stream_error", "error": str(ex)}))
        yield sse(events.ERROR, str(ex))
    yield sse(events.DONE, "[DONE]")


@router.get("/screenings/stream")
async def screening_stream(
    request: Request,
    caller: CallerIdentity = Depends(get_caller),
    store: RecordStore = Depends(get_record_store),
):
    _ = caller
    return StreamingResponse(
        _snapshot_events(request, store),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
