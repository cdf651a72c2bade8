from fastapi import APIRouter, Depends, HTTPException, Request, status

from smarthr.api.deps import get_chat_sessions
from smarthr.core.rate_limit import rate_limit
from smarthr.core.security import CallerIdentity, get_caller
from smarthr.schemas.chat import ChatRequest, ChatTranscriptResponse
from smarthr.services.chat_service import PolicyChatSession
from smarthr.services.session_registry import SessionRegistry
from smarthr.services.sessions import SessionBusyError

router = APIRouter()


def _transcript(session_id: str, session: PolicyChatSession) -> ChatTranscriptResponse:
    return ChatTranscriptResponse(session_id=session_id, messages=list(session.messages))


@router.post("/chat/messages", response_model=ChatTranscriptResponse)
@rate_limit()
async def chat_send(
    request: Request,
    payload: ChatRequest,
    caller: CallerIdentity = Depends(get_caller),
    sessions: SessionRegistry[PolicyChatSession] = Depends(get_chat_sessions),
):
    _ = request
    session = sessions.get_or_create(caller, payload.session_id)
    try:
        await session.send(payload.message)
    except SessionBusyError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    return _transcript(payload.session_id, session)


@router.get("/chat/{session_id}", response_model=ChatTranscriptResponse)
async def chat_transcript(
    session_id: str,
    caller: CallerIdentity = Depends(get_caller),
    sessions: SessionRegistry[PolicyChatSession] = Depends(get_chat_sessions),
):
    session = sessions.get(caller, session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found.")
    return _transcript(session_id, session)


@router.delete("/chat/{session_id}", response_model=ChatTranscriptResponse)
async def chat_reset(
    session_id: str,
    caller: CallerIdentity = Depends(get_caller),
    sessions: SessionRegistry[PolicyChatSession] = Depends(get_chat_sessions),
):
    session = sessions.get(caller, session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found.")
    session.reset()
    return _transcript(session_id, session)
