import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from livequiz.db import init_db, session_factory
from livequiz.models import QuizStatus
from livequiz.services.codes import JOIN_CODE_ALPHABET
from livequiz.services.errors import Duplicate
from livequiz.services.store import MemoryRecordStore, SqlRecordStore

from conftest import PARIS_OPTIONS


async def make_sql_store():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    return SqlRecordStore(session_factory(engine)), engine


async def make_memory_store():
    return MemoryRecordStore(), None


STORES = [make_memory_store, make_sql_store]


async def seed(store):
    admin = await store.create_admin("host")
    quiz = await store.create_quiz(admin.id, "Geography", 20)
    question = await store.create_question(quiz.id, "Capital of France?", PARIS_OPTIONS, 0)
    return admin, quiz, question


@pytest.mark.asyncio
@pytest.mark.parametrize("factory", STORES)
async def test_quiz_gets_join_code(factory):
    store, engine = await factory()
    admin, quiz, _ = await seed(store)

    assert len(quiz.code) == 6 and set(quiz.code) <= set(JOIN_CODE_ALPHABET)
    assert quiz.status == QuizStatus.DRAFT
    found = await store.get_quiz_by_code(quiz.code.lower())
    assert found.id == quiz.id
    assert [q.id for q in await store.get_quizzes_by_admin(admin.id)] == [quiz.id]
    if engine:
        await engine.dispose()


@pytest.mark.asyncio
@pytest.mark.parametrize("factory", STORES)
async def test_record_answer_increments_score_once(factory):
    store, engine = await factory()
    _, quiz, question = await seed(store)
    alice = await store.create_participant(quiz.id, "Alice")

    answer = await store.record_answer(alice.id, question.id, 0, True, 3000, 150)
    assert answer.id is not None
    with pytest.raises(Duplicate):
        await store.record_answer(alice.id, question.id, 1, False, 4000, 0)

    assert (await store.get_participant(alice.id)).score == 150
    answers = await store.get_answers_by_question(question.id)
    assert [(a.participant_id, a.selected_option, a.score) for a in answers] == [(alice.id, 0, 150)]
    assert [a.id for a in await store.get_answers_by_participant(alice.id)] == [answer.id]
    if engine:
        await engine.dispose()


@pytest.mark.asyncio
@pytest.mark.parametrize("factory", STORES)
async def test_participants_come_back_in_join_order(factory):
    store, engine = await factory()
    _, quiz, _ = await seed(store)
    for alias in ("Cleo", "Ana", "Ben"):
        await store.create_participant(quiz.id, alias)

    assert [p.alias for p in await store.get_participants_by_quiz(quiz.id)] == ["Cleo", "Ana", "Ben"]
    if engine:
        await engine.dispose()


@pytest.mark.asyncio
@pytest.mark.parametrize("factory", STORES)
async def test_update_quiz_and_question(factory):
    store, engine = await factory()
    _, quiz, question = await seed(store)

    updated = await store.update_quiz(quiz.id, status=QuizStatus.ACTIVE, title=None)
    assert updated.status == QuizStatus.ACTIVE
    assert updated.title == "Geography"

    changed = await store.update_question(question.id, text="Capital city of France?")
    assert changed.text == "Capital city of France?"
    assert changed.options == PARIS_OPTIONS
    assert await store.update_question(999, text="x") is None
    if engine:
        await engine.dispose()


@pytest.mark.asyncio
@pytest.mark.parametrize("factory", STORES)
async def test_delete_quiz_cascades(factory):
    store, engine = await factory()
    _, quiz, question = await seed(store)
    alice = await store.create_participant(quiz.id, "Alice")
    await store.record_answer(alice.id, question.id, 0, True, 1000, 150)

    assert await store.delete_quiz(quiz.id) is True
    assert await store.get_quiz(quiz.id) is None
    assert await store.get_question(question.id) is None
    assert await store.get_participants_by_quiz(quiz.id) == []
    assert await store.get_answers_by_question(question.id) == []
    assert await store.delete_quiz(quiz.id) is False
    if engine:
        await engine.dispose()


@pytest.mark.asyncio
@pytest.mark.parametrize("factory", STORES)
async def test_ensure_admin_is_idempotent(factory):
    store, engine = await factory()
    first = await store.ensure_admin("admin")
    second = await store.ensure_admin("admin")
    assert first.id == second.id
    if engine:
        await engine.dispose()
