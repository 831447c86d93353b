"""Record store the session coordinator talks to.

Two implementations share the `RecordStore` interface: `SqlRecordStore`
(SQLModel tables behind an async engine) and `MemoryRecordStore` (plain
dicts, for local runs and tests). Both hand back model instances that the
caller treats as read-only snapshots.
"""
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from itertools import count
from typing import List, Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select

from livequiz.models import Admin, Answer, Participant, Question, Quiz
from livequiz.services.codes import generate_unique_code, normalize_code
from livequiz.services.errors import Duplicate, StoreError

logger = logging.getLogger("runtime")

QUIZ_FIELDS = ("title", "time_per_question", "status")
QUESTION_FIELDS = ("text", "options", "position")


class RecordStore(ABC):
    # Admins
    @abstractmethod
    async def get_admin(self, admin_id: int) -> Optional[Admin]: ...

    @abstractmethod
    async def get_admin_by_username(self, username: str) -> Optional[Admin]: ...

    @abstractmethod
    async def create_admin(self, username: str) -> Admin: ...

    # Quizzes
    @abstractmethod
    async def get_quiz(self, quiz_id: int) -> Optional[Quiz]: ...

    @abstractmethod
    async def get_quiz_by_code(self, code: str) -> Optional[Quiz]: ...

    @abstractmethod
    async def get_quizzes_by_admin(self, admin_id: int) -> List[Quiz]: ...

    @abstractmethod
    async def create_quiz(self, admin_id: int, title: str, time_per_question: int = 15) -> Quiz: ...

    @abstractmethod
    async def update_quiz(self, quiz_id: int, **fields) -> Optional[Quiz]: ...

    @abstractmethod
    async def delete_quiz(self, quiz_id: int) -> bool: ...

    # Questions
    @abstractmethod
    async def get_question(self, question_id: int) -> Optional[Question]: ...

    @abstractmethod
    async def get_questions_by_quiz(self, quiz_id: int) -> List[Question]: ...

    @abstractmethod
    async def create_question(self, quiz_id: int, text: str, options: list[dict], position: int) -> Question: ...

    @abstractmethod
    async def update_question(self, question_id: int, **fields) -> Optional[Question]: ...

    @abstractmethod
    async def delete_question(self, question_id: int) -> bool: ...

    # Participants
    @abstractmethod
    async def get_participant(self, participant_id: int) -> Optional[Participant]: ...

    @abstractmethod
    async def get_participants_by_quiz(self, quiz_id: int) -> List[Participant]:
        """Participants of a quiz in join order."""

    @abstractmethod
    async def create_participant(self, quiz_id: int, alias: str) -> Participant: ...

    # Answers
    @abstractmethod
    async def get_answer(self, answer_id: int) -> Optional[Answer]: ...

    @abstractmethod
    async def get_answers_by_participant(self, participant_id: int) -> List[Answer]: ...

    @abstractmethod
    async def get_answers_by_question(self, question_id: int) -> List[Answer]: ...

    @abstractmethod
    async def record_answer(
        self,
        participant_id: int,
        question_id: int,
        selected_option: int,
        is_correct: bool,
        response_time: int,
        score: int,
    ) -> Answer:
        """Create the Answer and add ``score`` to the participant, all or nothing.

        Raises `Duplicate` when the participant already answered the question.
        """

    async def quiz_code_taken(self, code: str) -> bool:
        return await self.get_quiz_by_code(code) is not None

    async def generate_quiz_code(self) -> str:
        return await generate_unique_code(self.quiz_code_taken)

    async def ensure_admin(self, username: str) -> Admin:
        admin = await self.get_admin_by_username(username)
        if admin:
            return admin
        return await self.create_admin(username)


class MemoryRecordStore(RecordStore):
    """Dict-backed store; every operation completes without yielding."""

    def __init__(self):
        self.admins: dict[int, Admin] = {}
        self.quizzes: dict[int, Quiz] = {}
        self.questions: dict[int, Question] = {}
        self.participants: dict[int, Participant] = {}
        self.answers: dict[int, Answer] = {}
        self._ids = {name: count(1) for name in ("admin", "quiz", "question", "participant", "answer")}

    def _next_id(self, kind: str) -> int:
        return next(self._ids[kind])

    async def get_admin(self, admin_id):
        return self.admins.get(admin_id)

    async def get_admin_by_username(self, username):
        return next((a for a in self.admins.values() if a.username == username), None)

    async def create_admin(self, username):
        admin = Admin(id=self._next_id("admin"), username=username)
        self.admins[admin.id] = admin
        return admin

    async def get_quiz(self, quiz_id):
        return self.quizzes.get(quiz_id)

    async def get_quiz_by_code(self, code):
        code = normalize_code(code)
        return next((q for q in self.quizzes.values() if q.code == code), None)

    async def get_quizzes_by_admin(self, admin_id):
        return [q for q in self.quizzes.values() if q.admin_id == admin_id]

    async def create_quiz(self, admin_id, title, time_per_question=15):
        code = await self.generate_quiz_code()
        quiz = Quiz(
            id=self._next_id("quiz"),
            admin_id=admin_id,
            title=title,
            time_per_question=time_per_question,
            code=code,
        )
        self.quizzes[quiz.id] = quiz
        return quiz

    async def update_quiz(self, quiz_id, **fields):
        quiz = self.quizzes.get(quiz_id)
        if not quiz:
            return None
        for key in QUIZ_FIELDS:
            if fields.get(key) is not None:
                setattr(quiz, key, fields[key])
        return quiz

    async def delete_quiz(self, quiz_id):
        if quiz_id not in self.quizzes:
            return False
        question_ids = {q.id for q in self.questions.values() if q.quiz_id == quiz_id}
        participant_ids = {p.id for p in self.participants.values() if p.quiz_id == quiz_id}
        self.answers = {
            aid: a
            for aid, a in self.answers.items()
            if a.question_id not in question_ids and a.participant_id not in participant_ids
        }
        for qid in question_ids:
            del self.questions[qid]
        for pid in participant_ids:
            del self.participants[pid]
        del self.quizzes[quiz_id]
        return True

    async def get_question(self, question_id):
        return self.questions.get(question_id)

    async def get_questions_by_quiz(self, quiz_id):
        found = [q for q in self.questions.values() if q.quiz_id == quiz_id]
        return sorted(found, key=lambda q: (q.position, q.id))

    async def create_question(self, quiz_id, text, options, position):
        question = Question(
            id=self._next_id("question"),
            quiz_id=quiz_id,
            text=text,
            options=list(options),
            position=position,
        )
        self.questions[question.id] = question
        return question

    async def update_question(self, question_id, **fields):
        question = self.questions.get(question_id)
        if not question:
            return None
        for key in QUESTION_FIELDS:
            if fields.get(key) is not None:
                setattr(question, key, fields[key])
        return question

    async def delete_question(self, question_id):
        if question_id not in self.questions:
            return False
        self.answers = {aid: a for aid, a in self.answers.items() if a.question_id != question_id}
        del self.questions[question_id]
        return True

    async def get_participant(self, participant_id):
        return self.participants.get(participant_id)

    async def get_participants_by_quiz(self, quiz_id):
        # ids are handed out in join order and dicts keep insertion order
        return [p for p in self.participants.values() if p.quiz_id == quiz_id]

    async def create_participant(self, quiz_id, alias):
        participant = Participant(id=self._next_id("participant"), quiz_id=quiz_id, alias=alias, score=0)
        self.participants[participant.id] = participant
        return participant

    async def get_answer(self, answer_id):
        return self.answers.get(answer_id)

    async def get_answers_by_participant(self, participant_id):
        return [a for a in self.answers.values() if a.participant_id == participant_id]

    async def get_answers_by_question(self, question_id):
        return [a for a in self.answers.values() if a.question_id == question_id]

    async def record_answer(self, participant_id, question_id, selected_option, is_correct, response_time, score):
        participant = self.participants.get(participant_id)
        if not participant:
            raise StoreError(f"Participant {participant_id} does not exist")
        if any(a.participant_id == participant_id and a.question_id == question_id for a in self.answers.values()):
            raise Duplicate("Answer already submitted")
        answer = Answer(
            id=self._next_id("answer"),
            participant_id=participant_id,
            question_id=question_id,
            selected_option=selected_option,
            is_correct=is_correct,
            response_time=response_time,
            score=score,
        )
        self.answers[answer.id] = answer
        participant.score += score
        return answer


class SqlRecordStore(RecordStore):
    """SQLModel-backed store. ``get_session`` is a `livequiz.db.session_factory` product."""

    def __init__(self, get_session):
        self._get_session = get_session

    @asynccontextmanager
    async def _db(self):
        try:
            async with self._get_session() as db:
                yield db
        except SQLAlchemyError as exc:
            logger.exception("Record store failure")
            raise StoreError(str(exc)) from exc

    async def _save(self, obj):
        async with self._db() as db:
            db.add(obj)
            await db.commit()
            await db.refresh(obj)
            return obj

    async def get_admin(self, admin_id):
        async with self._db() as db:
            return await db.get(Admin, admin_id)

    async def get_admin_by_username(self, username):
        async with self._db() as db:
            result = await db.exec(select(Admin).where(Admin.username == username))
            return result.first()

    async def create_admin(self, username):
        return await self._save(Admin(username=username))

    async def get_quiz(self, quiz_id):
        async with self._db() as db:
            return await db.get(Quiz, quiz_id)

    async def get_quiz_by_code(self, code):
        async with self._db() as db:
            result = await db.exec(select(Quiz).where(Quiz.code == normalize_code(code)))
            return result.first()

    async def get_quizzes_by_admin(self, admin_id):
        async with self._db() as db:
            result = await db.exec(select(Quiz).where(Quiz.admin_id == admin_id).order_by(Quiz.id))
            return list(result.all())

    async def create_quiz(self, admin_id, title, time_per_question=15):
        code = await self.generate_quiz_code()
        return await self._save(
            Quiz(admin_id=admin_id, title=title, time_per_question=time_per_question, code=code)
        )

    async def update_quiz(self, quiz_id, **fields):
        async with self._db() as db:
            quiz = await db.get(Quiz, quiz_id)
            if not quiz:
                return None
            for key in QUIZ_FIELDS:
                if fields.get(key) is not None:
                    setattr(quiz, key, fields[key])
            await db.commit()
            await db.refresh(quiz)
            return quiz

    async def delete_quiz(self, quiz_id):
        async with self._db() as db:
            quiz = await db.get(Quiz, quiz_id)
            if not quiz:
                return False
            question_ids = select(Question.id).where(Question.quiz_id == quiz_id)
            participant_ids = select(Participant.id).where(Participant.quiz_id == quiz_id)
            await db.execute(delete(Answer).where(Answer.question_id.in_(question_ids)))
            await db.execute(delete(Answer).where(Answer.participant_id.in_(participant_ids)))
            await db.execute(delete(Question).where(Question.quiz_id == quiz_id))
            await db.execute(delete(Participant).where(Participant.quiz_id == quiz_id))
            await db.delete(quiz)
            await db.commit()
            return True

    async def get_question(self, question_id):
        async with self._db() as db:
            return await db.get(Question, question_id)

    async def get_questions_by_quiz(self, quiz_id):
        async with self._db() as db:
            result = await db.exec(
                select(Question).where(Question.quiz_id == quiz_id).order_by(Question.position, Question.id)
            )
            return list(result.all())

    async def create_question(self, quiz_id, text, options, position):
        return await self._save(Question(quiz_id=quiz_id, text=text, options=list(options), position=position))

    async def update_question(self, question_id, **fields):
        async with self._db() as db:
            question = await db.get(Question, question_id)
            if not question:
                return None
            for key in QUESTION_FIELDS:
                if fields.get(key) is not None:
                    setattr(question, key, fields[key])
            await db.commit()
            await db.refresh(question)
            return question

    async def delete_question(self, question_id):
        async with self._db() as db:
            question = await db.get(Question, question_id)
            if not question:
                return False
            await db.execute(delete(Answer).where(Answer.question_id == question_id))
            await db.delete(question)
            await db.commit()
            return True

    async def get_participant(self, participant_id):
        async with self._db() as db:
            return await db.get(Participant, participant_id)

    async def get_participants_by_quiz(self, quiz_id):
        async with self._db() as db:
            result = await db.exec(
                select(Participant).where(Participant.quiz_id == quiz_id).order_by(Participant.id)
            )
            return list(result.all())

    async def create_participant(self, quiz_id, alias):
        return await self._save(Participant(quiz_id=quiz_id, alias=alias, score=0))

    async def get_answer(self, answer_id):
        async with self._db() as db:
            return await db.get(Answer, answer_id)

    async def get_answers_by_participant(self, participant_id):
        async with self._db() as db:
            result = await db.exec(select(Answer).where(Answer.participant_id == participant_id))
            return list(result.all())

    async def get_answers_by_question(self, question_id):
        async with self._db() as db:
            result = await db.exec(select(Answer).where(Answer.question_id == question_id))
            return list(result.all())

    async def record_answer(self, participant_id, question_id, selected_option, is_correct, response_time, score):
        async with self._db() as db:
            answer = Answer(
                participant_id=participant_id,
                question_id=question_id,
                selected_option=selected_option,
                is_correct=is_correct,
                response_time=response_time,
                score=score,
            )
            try:
                db.add(answer)
                # autoflush inserts the answer first, so a duplicate fails here
                bumped = await db.execute(
                    update(Participant)
                    .where(Participant.id == participant_id)
                    .values(score=Participant.score + score)
                )
                if bumped.rowcount != 1:
                    await db.rollback()
                    raise StoreError(f"Participant {participant_id} does not exist")
                await db.commit()
            except IntegrityError:
                await db.rollback()
                raise Duplicate("Answer already submitted")
            await db.refresh(answer)
            return answer
