from typing import Literal

from pydantic import BaseModel, Field

ChatRole = Literal["user", "ai"]


class ChatMessage(BaseModel):
    role: ChatRole
    text: str


class ChatRequest(BaseModel):
    session_id: str = Field(min_length=1, max_length=200)
    message: str = Field(default="", max_length=20000)


class ChatTranscriptResponse(BaseModel):
    session_id: str
    messages: list[ChatMessage] = Field(default_factory=list)
