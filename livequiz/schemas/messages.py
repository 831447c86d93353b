"""Real-time channel messages.

Every frame is ``{"type": ..., "data": {...}}`` with camelCase keys.
Inbound frames are parsed into a closed union discriminated on ``type``;
anything else fails validation and is dropped by the coordinator.
"""
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class MessageType(str, Enum):
    CLIENT_ID = "client_id"
    JOIN_QUIZ = "JOIN_QUIZ"
    PLAYER_JOINED = "PLAYER_JOINED"
    QUIZ_STARTED = "QUIZ_STARTED"
    NEW_QUESTION = "NEW_QUESTION"
    SUBMIT_ANSWER = "SUBMIT_ANSWER"
    LEADERBOARD_UPDATE = "LEADERBOARD_UPDATE"
    QUESTION_ENDED = "QUESTION_ENDED"
    QUIZ_ENDED = "QUIZ_ENDED"
    ERROR = "ERROR"
    PING = "PING"
    PONG = "PONG"
    GET_CLIENT_ID = "GET_CLIENT_ID"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---- client -> server ----


class JoinQuizData(WireModel):
    quiz_code: str = Field(min_length=1)
    alias: str = Field(min_length=1, max_length=64)


class QuizStartedData(WireModel):
    quiz_id: Optional[int] = None


class NewQuestionData(WireModel):
    question_id: int


class SubmitAnswerData(WireModel):
    question_id: int
    option_id: int
    # milliseconds as measured by the client
    response_time: float = Field(default=0, allow_inf_nan=False)


class QuestionEndedData(WireModel):
    question_id: Optional[int] = None


class QuizEndedData(WireModel):
    quiz_id: Optional[int] = None


class JoinQuiz(WireModel):
    type: Literal["JOIN_QUIZ"]
    data: JoinQuizData


class StartQuiz(WireModel):
    type: Literal["QUIZ_STARTED"]
    data: QuizStartedData = Field(default_factory=QuizStartedData)


class PresentQuestion(WireModel):
    type: Literal["NEW_QUESTION"]
    data: NewQuestionData


class SubmitAnswer(WireModel):
    type: Literal["SUBMIT_ANSWER"]
    data: SubmitAnswerData


class EndQuestion(WireModel):
    type: Literal["QUESTION_ENDED"]
    data: QuestionEndedData = Field(default_factory=QuestionEndedData)


class EndQuiz(WireModel):
    type: Literal["QUIZ_ENDED"]
    data: QuizEndedData = Field(default_factory=QuizEndedData)


class Ping(WireModel):
    type: Literal["PING"]
    data: dict = Field(default_factory=dict)


class GetClientId(WireModel):
    type: Literal["GET_CLIENT_ID"]
    data: dict = Field(default_factory=dict)


InboundMessage = Annotated[
    Union[JoinQuiz, StartQuiz, PresentQuestion, SubmitAnswer, EndQuestion, EndQuiz, Ping, GetClientId],
    Field(discriminator="type"),
]

inbound_adapter: TypeAdapter = TypeAdapter(InboundMessage)


def parse_inbound(raw: Union[str, bytes]):
    """Parse one frame; raises ``pydantic.ValidationError`` when malformed."""
    return inbound_adapter.validate_json(raw)


# ---- server -> client ----


class LeaderboardEntry(WireModel):
    id: int
    alias: str
    score: int
    rank: int


class ParticipantSummary(WireModel):
    id: int
    quiz_id: int
    alias: str
    score: int


class ClientIdData(WireModel):
    connection_id: str


class JoinAck(WireModel):
    quiz_id: int
    participant_id: int
    title: str


class PlayerJoined(WireModel):
    participant: ParticipantSummary


class QuizStartedNotice(WireModel):
    quiz_id: int


class SanitizedOption(WireModel):
    id: int
    text: str


class QuestionPresented(WireModel):
    question_id: int
    question_text: str
    options: List[SanitizedOption]
    time_limit: int


class AnswerResult(WireModel):
    answer_id: int
    is_correct: bool
    score: int
    correct_option_id: Optional[int]


class LeaderboardUpdate(WireModel):
    leaderboard: List[LeaderboardEntry]


class OptionStat(WireModel):
    option_id: int
    text: str
    is_correct: bool
    percentage: float
    count: int


class QuestionResults(WireModel):
    question_id: int
    question_text: str
    options: List[OptionStat]
    leaderboard: List[LeaderboardEntry]


class QuizEndedNotice(WireModel):
    quiz_id: int
    leaderboard: List[LeaderboardEntry]


class ErrorData(WireModel):
    message: str
    code: str


def envelope(msg_type: MessageType, data: Union[WireModel, dict]) -> dict:
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True, mode="json")
    return {"type": msg_type.value, "data": data}
