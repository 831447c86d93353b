import asyncio
import json
import os

# Must be set before livequiz.core.config is imported
os.environ.setdefault("QUIZ_STORE_BACKEND", "memory")
os.environ.setdefault("QUIZ_DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from fastapi.testclient import TestClient

from livequiz import main
from livequiz.dependencies import get_coordinator, get_store
from livequiz.services.coordinator import SessionCoordinator
from livequiz.services.registry import ConnectionRegistry
from livequiz.services.sessions import SessionTable
from livequiz.services.store import MemoryRecordStore


PARIS_OPTIONS = [
    {"id": 0, "text": "Paris", "isCorrect": True},
    {"id": 1, "text": "London", "isCorrect": False},
]
RIVER_OPTIONS = [
    {"id": 0, "text": "Danube", "isCorrect": False},
    {"id": 1, "text": "Seine", "isCorrect": True},
    {"id": 2, "text": "Thames", "isCorrect": False},
]


class MockWebSocket:
    """Records every frame the server sends."""

    def __init__(self, fail: bool = False):
        self.sent_messages: list[dict] = []
        self.fail = fail

    async def send_json(self, data: dict):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent_messages.append(data)

    def last(self, msg_type: str) -> dict | None:
        for msg in reversed(self.sent_messages):
            if msg.get("type") == msg_type:
                return msg
        return None

    def all(self, msg_type: str) -> list[dict]:
        return [m for m in self.sent_messages if m.get("type") == msg_type]

    def clear(self):
        self.sent_messages.clear()


class QuizHarness:
    """A coordinator on an in-memory store plus helpers to drive it."""

    def __init__(self, store=None):
        self.store = store or MemoryRecordStore()
        self.sessions = SessionTable()
        self.registry = ConnectionRegistry()
        self.coordinator = SessionCoordinator(self.store, self.sessions, self.registry)
        self.admin = None
        self.quiz = None
        self.q1 = None
        self.q2 = None

    async def seed(self, code: str = "GEO123", time_per_question: int = 15):
        self.admin = await self.store.create_admin("host")
        self.quiz = await self.store.create_quiz(self.admin.id, "Geography", time_per_question)
        self.quiz.code = code
        self.q1 = await self.store.create_question(self.quiz.id, "Capital of France?", PARIS_OPTIONS, 0)
        self.q2 = await self.store.create_question(self.quiz.id, "River through Paris?", RIVER_OPTIONS, 1)
        return self

    @property
    def session(self):
        return self.sessions.get(self.quiz.id)

    async def open(self):
        ws = MockWebSocket()
        connection_id = await self.coordinator.connect(ws)
        return connection_id, ws

    async def open_host(self):
        connection_id, ws = await self.open()
        await self.coordinator.bind_host(connection_id, self.quiz.id, self.admin.id)
        return connection_id, ws

    async def join(self, alias: str, code: str = None):
        connection_id, ws = await self.open()
        await self.send(connection_id, "JOIN_QUIZ", {"quizCode": code or self.quiz.code, "alias": alias})
        return connection_id, ws

    async def send(self, connection_id: str, msg_type: str, data: dict = None):
        await self.coordinator.handle_message(connection_id, json.dumps({"type": msg_type, "data": data or {}}))

    async def answer(self, connection_id: str, question_id: int, option_id: int, response_time: float = 3000):
        await self.send(
            connection_id,
            "SUBMIT_ANSWER",
            {"questionId": question_id, "optionId": option_id, "responseTime": response_time},
        )


@pytest.fixture()
def harness():
    return QuizHarness()


@pytest.fixture()
def api(monkeypatch):
    """TestClient on a fresh in-memory store and coordinator, plus a host principal.

    Entering the client shares one event loop between HTTP calls and every
    WebSocket session, so frames fanned out to other sockets arrive in order.
    """
    monkeypatch.setattr(main, "configure_logging", lambda: None)
    store = MemoryRecordStore()
    coordinator = SessionCoordinator(store, SessionTable(), ConnectionRegistry())
    admin = asyncio.run(store.create_admin("host"))
    main.app.dependency_overrides[get_store] = lambda: store
    main.app.dependency_overrides[get_coordinator] = lambda: coordinator
    with TestClient(main.app) as client:
        yield client, store, admin, coordinator
    main.app.dependency_overrides.clear()
