from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Column, DateTime, Integer
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

from livequiz.core.time import utc_now

# JSONB on Postgres, plain JSON elsewhere (sqlite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class QuizStatus(str):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"


class Admin(SQLModel, table=True):
    __tablename__ = "admins"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)


class Quiz(SQLModel, table=True):
    __tablename__ = "quizzes"

    id: Optional[int] = Field(default=None, primary_key=True)
    admin_id: int = Field(foreign_key="admins.id", index=True)
    title: str
    time_per_question: int = Field(default=15, ge=1)
    status: str = Field(default=QuizStatus.DRAFT)
    code: str = Field(index=True, unique=True)
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True)))


class Question(SQLModel, table=True):
    __tablename__ = "questions"

    id: Optional[int] = Field(default=None, primary_key=True)
    quiz_id: int = Field(foreign_key="quizzes.id", index=True)
    text: str
    # [{"id": int, "text": str, "isCorrect": bool}, ...]
    options: list[dict] = Field(default_factory=list, sa_column=Column(JSONType, nullable=False))
    position: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))

    def correct_option_id(self) -> Optional[int]:
        return next((opt["id"] for opt in self.options if opt.get("isCorrect")), None)

    def find_option(self, option_id) -> Optional[dict]:
        return next((opt for opt in self.options if opt.get("id") == option_id), None)
