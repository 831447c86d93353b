from datetime import datetime
from typing import List, Optional

from pydantic import Field

from livequiz.schemas.messages import ParticipantSummary, WireModel


class OptionIn(WireModel):
    id: int
    text: str = Field(min_length=1)
    is_correct: bool = False


class QuestionCreate(WireModel):
    quiz_id: int
    text: str = Field(min_length=1)
    options: List[OptionIn] = Field(default_factory=list)
    order: Optional[int] = None


class QuestionUpdate(WireModel):
    text: Optional[str] = None
    options: Optional[List[OptionIn]] = None
    order: Optional[int] = None


class QuestionRead(WireModel):
    id: int
    quiz_id: int
    text: str
    options: List[OptionIn]
    order: int


class QuizCreate(WireModel):
    admin_id: int
    title: str = Field(min_length=1)
    time_per_question: int = Field(default=15, ge=1)


class QuizUpdate(WireModel):
    title: Optional[str] = None
    time_per_question: Optional[int] = Field(default=None, ge=1)
    status: Optional[str] = None


class QuizRead(WireModel):
    id: int
    admin_id: int
    title: str
    time_per_question: int
    status: str
    code: str
    created_at: Optional[datetime] = None


class HostConnectRequest(WireModel):
    admin_id: int
    quiz_id: int
    ws_client_id: str


class HostConnectResponse(WireModel):
    success: bool = True
    participant_count: int
    participants: List[ParticipantSummary]
    quiz: QuizRead
