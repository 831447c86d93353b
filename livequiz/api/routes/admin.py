import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from livequiz.dependencies import get_coordinator, get_store
from livequiz.models import Question, Quiz, QuizStatus
from livequiz.schemas import (
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
from livequiz.services.coordinator import SessionCoordinator, summarize
from livequiz.services.errors import NotActive, NotFound, Unauthorized
from livequiz.services.store import RecordStore

router = APIRouter(prefix="/api", tags=["admin"])
logger = logging.getLogger("admin")

QUIZ_STATUSES = {QuizStatus.DRAFT, QuizStatus.ACTIVE, QuizStatus.COMPLETED}


def serialize_quiz(quiz: Quiz) -> QuizRead:
    return QuizRead(
        id=quiz.id,
        admin_id=quiz.admin_id,
        title=quiz.title,
        time_per_question=quiz.time_per_question,
        status=quiz.status,
        code=quiz.code,
        created_at=quiz.created_at,
    )


def serialize_question(question: Question) -> QuestionRead:
    return QuestionRead(
        id=question.id,
        quiz_id=question.quiz_id,
        text=question.text,
        options=[OptionIn.model_validate(opt) for opt in question.options],
        order=question.position if question.position is not None else 0,
    )


def validate_options(options: List[OptionIn]) -> list[dict]:
    if len(options) < 2:
        raise HTTPException(status_code=400, detail="A question needs at least two options")
    ids = [opt.id for opt in options]
    if len(set(ids)) != len(ids):
        raise HTTPException(status_code=400, detail="Option ids must be unique")
    if sum(1 for opt in options if opt.is_correct) != 1:
        raise HTTPException(status_code=400, detail="Exactly one option must be marked correct")
    return [opt.model_dump(by_alias=True) for opt in options]


async def load_quiz(quiz_id: int, store: RecordStore) -> Quiz:
    quiz = await store.get_quiz(quiz_id)
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")
    return quiz


@router.get("/quizzes")
async def list_quizzes(admin_id: int = Query(..., alias="adminId"), store: RecordStore = Depends(get_store)):
    quizzes = await store.get_quizzes_by_admin(admin_id)
    return {"quizzes": [serialize_quiz(q) for q in quizzes]}


@router.post("/quizzes", status_code=201)
async def create_quiz(payload: QuizCreate, store: RecordStore = Depends(get_store)):
    if await store.get_admin(payload.admin_id) is None:
        raise HTTPException(status_code=404, detail="Admin not found")
    quiz = await store.create_quiz(payload.admin_id, payload.title, payload.time_per_question)
    logger.info("Quiz created id=%s admin=%s code=%s", quiz.id, quiz.admin_id, quiz.code)
    return {"quiz": serialize_quiz(quiz)}


@router.get("/quizzes/{quiz_id}")
async def get_quiz(quiz_id: int, store: RecordStore = Depends(get_store)):
    return {"quiz": serialize_quiz(await load_quiz(quiz_id, store))}


@router.put("/quizzes/{quiz_id}")
async def update_quiz(quiz_id: int, payload: QuizUpdate, store: RecordStore = Depends(get_store)):
    if payload.status is not None and payload.status not in QUIZ_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown status {payload.status!r}")
    quiz = await store.update_quiz(quiz_id, **payload.model_dump(exclude_none=True))
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")
    return {"quiz": serialize_quiz(quiz)}


@router.delete("/quizzes/{quiz_id}")
async def delete_quiz(
    quiz_id: int,
    store: RecordStore = Depends(get_store),
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    if not await store.delete_quiz(quiz_id):
        raise HTTPException(status_code=404, detail="Quiz not found")
    await coordinator.discard_session(quiz_id)
    logger.info("Quiz deleted id=%s", quiz_id)
    return {"success": True}


@router.get("/quizzes/{quiz_id}/questions")
async def list_questions(quiz_id: int, store: RecordStore = Depends(get_store)):
    questions = await store.get_questions_by_quiz(quiz_id)
    return {"questions": [serialize_question(q) for q in questions]}


@router.post("/questions", status_code=201)
async def create_question(payload: QuestionCreate, store: RecordStore = Depends(get_store)):
    await load_quiz(payload.quiz_id, store)
    options = validate_options(payload.options)
    position = payload.order
    if position is None:
        position = len(await store.get_questions_by_quiz(payload.quiz_id))
    question = await store.create_question(payload.quiz_id, payload.text, options, position)
    return {"question": serialize_question(question)}


@router.put("/questions/{question_id}")
async def update_question(question_id: int, payload: QuestionUpdate, store: RecordStore = Depends(get_store)):
    options = validate_options(payload.options) if payload.options is not None else None
    question = await store.update_question(question_id, text=payload.text, options=options, position=payload.order)
    if not question:
        raise HTTPException(status_code=404, detail="Question not found")
    return {"question": serialize_question(question)}


@router.delete("/questions/{question_id}")
async def delete_question(question_id: int, store: RecordStore = Depends(get_store)):
    if not await store.delete_question(question_id):
        raise HTTPException(status_code=404, detail="Question not found")
    return {"success": True}


@router.get("/quizzes/{quiz_id}/qrcode")
async def quiz_join_code(quiz_id: int, store: RecordStore = Depends(get_store)):
    # The client renders the QR image from the code
    quiz = await load_quiz(quiz_id, store)
    return {"code": quiz.code}


@router.get("/quizzes/{quiz_id}/leaderboard")
async def quiz_leaderboard(
    quiz_id: int,
    store: RecordStore = Depends(get_store),
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    await load_quiz(quiz_id, store)
    return {"leaderboard": await coordinator.leaderboard(quiz_id)}


@router.post("/admin/connect", response_model=HostConnectResponse)
async def connect_host(
    payload: HostConnectRequest,
    store: RecordStore = Depends(get_store),
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    try:
        roster = await coordinator.bind_host(payload.ws_client_id, payload.quiz_id, payload.admin_id)
    except Unauthorized as exc:
        logger.warning("Host bind refused admin=%s quiz=%s: %s", payload.admin_id, payload.quiz_id, exc.message)
        raise HTTPException(status_code=403, detail=exc.message)
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=exc.message)
    except NotActive as exc:
        raise HTTPException(status_code=409, detail=exc.message)
    quiz = await load_quiz(payload.quiz_id, store)
    logger.info("Host connected admin=%s quiz=%s participants=%s", payload.admin_id, payload.quiz_id, len(roster))
    return HostConnectResponse(
        participant_count=len(roster),
        participants=[summarize(p) for p in roster],
        quiz=serialize_quiz(quiz),
    )
