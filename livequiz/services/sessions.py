import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Set

from livequiz.core.time import utc_now
from livequiz.models import Question


class SessionPhase(str, Enum):
    WAITING = "waiting"
    QUESTION_ACTIVE = "question_active"
    QUESTION_ENDED = "question_ended"
    ENDED = "ended"


@dataclass
class LiveSession:
    """In-memory state of one quiz being played; keyed by quiz id."""

    quiz_id: int
    phase: SessionPhase = SessionPhase.WAITING
    host_connection_id: Optional[str] = None
    host_principal_id: Optional[int] = None
    started_at: Optional[datetime] = None
    active_question_id: Optional[int] = None
    active_question: Optional[Question] = None
    question_started_at: Optional[datetime] = None
    # question id -> participant ids holding an answer (or one in flight)
    answered: Dict[int, Set[int]] = field(default_factory=dict)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def is_ended(self) -> bool:
        return self.phase == SessionPhase.ENDED

    def has_answered(self, question_id: int, participant_id: int) -> bool:
        return participant_id in self.answered.get(question_id, set())

    def reserve_answer(self, question_id: int, participant_id: int) -> bool:
        """Claim the (participant, question) slot; False if already taken."""
        claimed = self.answered.setdefault(question_id, set())
        if participant_id in claimed:
            return False
        claimed.add(participant_id)
        return True

    def release_answer(self, question_id: int, participant_id: int) -> None:
        self.answered.get(question_id, set()).discard(participant_id)

    def present(self, question: Question) -> None:
        self.active_question_id = question.id
        self.active_question = question
        self.question_started_at = utc_now()
        self.phase = SessionPhase.QUESTION_ACTIVE


class SessionTable:
    """One LiveSession per quiz; lives only as long as the process."""

    def __init__(self):
        self.logger = logging.getLogger("runtime")
        self.sessions: Dict[int, LiveSession] = {}

    def get(self, quiz_id: int) -> Optional[LiveSession]:
        return self.sessions.get(quiz_id)

    def ensure(self, quiz_id: int) -> LiveSession:
        session = self.sessions.get(quiz_id)
        if session is None:
            session = LiveSession(quiz_id=quiz_id)
            self.sessions[quiz_id] = session
            self.logger.info("Session created quiz=%s", quiz_id)
        return session

    def delete(self, quiz_id: int) -> Optional[LiveSession]:
        return self.sessions.pop(quiz_id, None)

    def __contains__(self, quiz_id: int) -> bool:
        return quiz_id in self.sessions

    def __len__(self) -> int:
        return len(self.sessions)
