from __future__ import annotations

import enum
import json
import logging

from pydantic import ValidationError

from smarthr.ai.gateway import ModelGateway
from smarthr.core.config import settings
from smarthr.schemas.interview import Feedback, InterviewSnapshot, InterviewTurn
from smarthr.services.extractor import ExtractionError, extract
from smarthr.services.prompts import (
    FEEDBACK_SYSTEM_INSTRUCTION,
    INTERVIEW_SYSTEM_INSTRUCTION,
    build_feedback_prompt,
    build_interview_closing,
    build_interview_turn_prompt,
    build_interview_welcome,
)
from smarthr.services.sessions import SessionGuard

logger = logging.getLogger("smarthr.interview")

TERMINATION_MARKER = "concludes the interview"


def is_termination_signal(text: str) -> bool:
    """True when an interviewer reply declares the interview over.

    Plain substring match on the free-text reply; the model has no other
    channel to signal the end.
    """
    return TERMINATION_MARKER in (text or "")


class InterviewState(str, enum.Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    TERMINATED = "terminated"


class InterviewStateError(RuntimeError):
    def __init__(self, message: str, status_code: int = 409):
        super().__init__(message)
        self.status_code = status_code


class InterviewSession:
    def __init__(
        self,
        gateway: ModelGateway,
        *,
        target_turns: int | None = None,
        max_candidate_turns: int | None = None,
    ):
        self._gateway = gateway
        self._guard = SessionGuard()
        self.target_turns = settings.interview_target_turns if target_turns is None else target_turns
        self.max_candidate_turns = (
            settings.interview_max_candidate_turns if max_candidate_turns is None else max_candidate_turns
        )
        self.role_title = ""
        self.turns: list[InterviewTurn] = []
        self.terminated = False
        self.feedback: Feedback | None = None

    @property
    def state(self) -> InterviewState:
        if self.terminated:
            return InterviewState.TERMINATED
        if self.turns:
            return InterviewState.ACTIVE
        return InterviewState.NOT_STARTED

    @property
    def in_flight(self) -> bool:
        return self._guard.in_flight

    @property
    def candidate_turns(self) -> int:
        return sum(1 for turn in self.turns if turn.sender == "candidate")

    def _transcript(self) -> list[dict[str, str]]:
        return [turn.model_dump() for turn in self.turns]

    def start(self, role_title: str) -> bool:
        title = (role_title or "").strip()
        if not title:
            return False
        if self.state is not InterviewState.NOT_STARTED:
            raise InterviewStateError("Interview already started. End the session to start over.")
        self.role_title = title
        self.turns = [InterviewTurn(sender="ai", text=build_interview_welcome(title))]
        return True

    async def handle_response(self, text: str) -> InterviewTurn | None:
        answer = (text or "").strip()
        if not answer:
            return None
        if self.state is not InterviewState.ACTIVE:
            raise InterviewStateError(f"Interview is {self.state.value}; answers are not accepted.")

        with self._guard.turn() as generation:
            self.turns.append(InterviewTurn(sender="candidate", text=answer))
            prompt = build_interview_turn_prompt(self.role_title, self._transcript(), self.target_turns)
            reply = await self._gateway.invoke(prompt, INTERVIEW_SYSTEM_INSTRUCTION)
            if not self._guard.is_current(generation):
                self._log_stale("turn")
                return None

            ai_turn = InterviewTurn(sender="ai", text=reply)
            self.turns.append(ai_turn)

            if not is_termination_signal(reply) and self.candidate_turns >= self.max_candidate_turns:
                logger.info(
                    json.dumps(
                        {
                            "event": "interview_hard_stop",
                            "candidate_turns": self.candidate_turns,
                            "max_candidate_turns": self.max_candidate_turns,
                        }
                    )
                )
                ai_turn = InterviewTurn(sender="ai", text=build_interview_closing())
                self.turns.append(ai_turn)

            if is_termination_signal(ai_turn.text):
                self.terminated = True
                await self._generate_feedback(generation)

        return ai_turn

    async def _generate_feedback(self, generation: int) -> None:
        raw = await self._gateway.invoke(build_feedback_prompt(self._transcript()), FEEDBACK_SYSTEM_INSTRUCTION)
        if not self._guard.is_current(generation):
            self._log_stale("feedback")
            return
        try:
            self.feedback = Feedback.model_validate(extract(raw))
        except (ExtractionError, ValidationError) as exc:
            logger.warning(
                json.dumps(
                    {
                        "event": "interview_feedback_parse_failed",
                        "error": str(exc),
                        "reply_len": len(raw),
                    }
                )
            )
            return
        logger.info(json.dumps({"event": "interview_feedback_ready", "score": self.feedback.score}))

    def _log_stale(self, stage: str) -> None:
        logger.info(
            json.dumps(
                {
                    "event": "interview_stale_reply_discarded",
                    "stage": stage,
                    "generation": self._guard.generation,
                }
            )
        )

    def end_session(self) -> None:
        self._guard.reset()
        self.role_title = ""
        self.turns = []
        self.terminated = False
        self.feedback = None

    def snapshot(self, session_id: str) -> InterviewSnapshot:
        return InterviewSnapshot(
            session_id=session_id,
            state=self.state.value,
            role_title=self.role_title,
            turns=list(self.turns),
            terminated=self.terminated,
            feedback=self.feedback,
            candidate_turns=self.candidate_turns,
        )
