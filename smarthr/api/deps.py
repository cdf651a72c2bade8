from __future__ import annotations

from functools import lru_cache

from smarthr.ai.gateway import get_gateway
from smarthr.core.record_store import get_record_store
from smarthr.services.chat_service import PolicyChatSession
from smarthr.services.interview_service import InterviewSession
from smarthr.services.screening_service import ScreeningPipeline
from smarthr.services.session_registry import SessionRegistry


@lru_cache(maxsize=1)
def get_chat_sessions() -> SessionRegistry[PolicyChatSession]:
    return SessionRegistry(lambda caller: PolicyChatSession(get_gateway(), caller))


@lru_cache(maxsize=1)
def get_interview_sessions() -> SessionRegistry[InterviewSession]:
    return SessionRegistry(lambda caller: InterviewSession(get_gateway()))


@lru_cache(maxsize=1)
def get_screening_pipeline() -> ScreeningPipeline:
    return ScreeningPipeline(get_gateway(), get_record_store())
