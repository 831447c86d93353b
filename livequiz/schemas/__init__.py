from livequiz.schemas.admin import (
    HostConnectRequest,
    HostConnectResponse,
    OptionIn,
    QuestionCreate,
    QuestionRead,
    QuestionUpdate,
    QuizCreate,
    QuizRead,
    QuizUpdate,
)
from livequiz.schemas.messages import (
    InboundMessage,
    LeaderboardEntry,
    MessageType,
    ParticipantSummary,
    envelope,
    parse_inbound,
)

__all__ = [
    "HostConnectRequest",
    "HostConnectResponse",
    "OptionIn",
    "QuestionCreate",
    "QuestionRead",
    "QuestionUpdate",
    "QuizCreate",
    "QuizRead",
    "QuizUpdate",
    "InboundMessage",
    "LeaderboardEntry",
    "MessageType",
    "ParticipantSummary",
    "envelope",
    "parse_inbound",
]
