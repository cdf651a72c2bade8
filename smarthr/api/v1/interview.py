from fastapi import APIRouter, Depends, HTTPException, Request, status

from smarthr.api.deps import get_interview_sessions
from smarthr.core.rate_limit import rate_limit
from smarthr.core.security import CallerIdentity, get_caller
from smarthr.schemas.interview import InterviewResponseRequest, InterviewSnapshot, InterviewStartRequest
from smarthr.services.interview_service import InterviewSession, InterviewStateError
from smarthr.services.session_registry import SessionRegistry
from smarthr.services.sessions import SessionBusyError

router = APIRouter()


def _existing(
    sessions: SessionRegistry[InterviewSession], caller: CallerIdentity, session_id: str
) -> InterviewSession:
    session = sessions.get(caller, session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found.")
    return session


@router.post("/interview/start", response_model=InterviewSnapshot)
async def interview_start(
    payload: InterviewStartRequest,
    caller: CallerIdentity = Depends(get_caller),
    sessions: SessionRegistry[InterviewSession] = Depends(get_interview_sessions),
):
    if not payload.role_title.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Role title is required.")
    session = sessions.get_or_create(caller, payload.session_id)
    try:
        session.start(payload.role_title)
    except InterviewStateError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    return session.snapshot(payload.session_id)


@router.post("/interview/respond", response_model=InterviewSnapshot)
@rate_limit()
async def interview_respond(
    request: Request,
    payload: InterviewResponseRequest,
    caller: CallerIdentity = Depends(get_caller),
    sessions: SessionRegistry[InterviewSession] = Depends(get_interview_sessions),
):
    _ = request
    session = _existing(sessions, caller, payload.session_id)
    try:
        await session.handle_response(payload.text)
    except (InterviewStateError, SessionBusyError) as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    return session.snapshot(payload.session_id)


@router.get("/interview/{session_id}", response_model=InterviewSnapshot)
async def interview_state(
    session_id: str,
    caller: CallerIdentity = Depends(get_caller),
    sessions: SessionRegistry[InterviewSession] = Depends(get_interview_sessions),
):
    return _existing(sessions, caller, session_id).snapshot(session_id)


@router.delete("/interview/{session_id}", response_model=InterviewSnapshot)
async def interview_end(
    session_id: str,
    caller: CallerIdentity = Depends(get_caller),
    sessions: SessionRegistry[InterviewSession] = Depends(get_interview_sessions),
):
    session = _existing(sessions, caller, session_id)
    session.end_session()
    return session.snapshot(session_id)
