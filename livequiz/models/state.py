from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from livequiz.core.time import utc_now


class Participant(SQLModel, table=True):
    __tablename__ = "participants"

    id: Optional[int] = Field(default=None, primary_key=True)
    quiz_id: int = Field(foreign_key="quizzes.id", index=True)
    alias: str
    score: int = Field(default=0, ge=0)
    joined_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True)))


class Answer(SQLModel, table=True):
    __tablename__ = "answers"
    __table_args__ = (
        UniqueConstraint("participant_id", "question_id", name="uq_answers_participant_question"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    participant_id: int = Field(foreign_key="participants.id", index=True)
    question_id: int = Field(foreign_key="questions.id", index=True)
    selected_option: int
    is_correct: bool = Field(default=False)
    response_time: int = Field(default=0, ge=0)
    score: int = Field(default=0, ge=0)
