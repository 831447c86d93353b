import logging
from typing import List, Optional

from pydantic import ValidationError

from livequiz.core.config import Settings, settings as default_settings
from livequiz.core.time import utc_now
from livequiz.models import Participant, Question, QuizStatus
from livequiz.schemas.messages import (
    AnswerResult,
    ClientIdData,
    EndQuestion,
    EndQuiz,
    ErrorData,
    GetClientId,
    JoinAck,
    JoinQuiz,
    LeaderboardEntry,
    LeaderboardUpdate,
    MessageType,
    OptionStat,
    ParticipantSummary,
    Ping,
    PlayerJoined,
    PresentQuestion,
    QuestionPresented,
    QuestionResults,
    QuizEndedNotice,
    QuizStartedNotice,
    SanitizedOption,
    StartQuiz,
    SubmitAnswer,
    envelope,
    parse_inbound,
)
from livequiz.services import leaderboard as ranking
from livequiz.services.errors import CoordinatorError, Duplicate, NotActive, NotFound, StoreError, Unauthorized
from livequiz.services.registry import Connection, ConnectionRegistry, ConnectionRole
from livequiz.services.scoring import clamp_response_time, score
from livequiz.services.sessions import LiveSession, SessionPhase, SessionTable
from livequiz.services.store import RecordStore

SERVER_ERROR = "server_error"


def summarize(participant: Participant) -> ParticipantSummary:
    return ParticipantSummary(
        id=participant.id,
        quiz_id=participant.quiz_id,
        alias=participant.alias,
        score=participant.score,
    )


def option_stats(question: Question, answers) -> List[OptionStat]:
    """Per-option answer counts and share of all answers, in authored order."""
    total = len(answers)
    stats = []
    for opt in question.options:
        picked = sum(1 for a in answers if a.selected_option == opt["id"])
        stats.append(
            OptionStat(
                option_id=opt["id"],
                text=opt["text"],
                is_correct=bool(opt.get("isCorrect")),
                percentage=(picked / total) * 100 if total else 0.0,
                count=picked,
            )
        )
    return stats


class SessionCoordinator:
    """Applies host and participant actions to live quiz sessions.

    Every inbound frame is validated against the sender's role and the
    session phase before anything changes; rejected actions leave state
    untouched and are answered with an ERROR frame to the sender only.
    """

    def __init__(
        self,
        store: RecordStore,
        sessions: SessionTable,
        registry: ConnectionRegistry,
        settings: Settings = default_settings,
    ):
        self.logger = logging.getLogger("runtime")
        self.store = store
        self.sessions = sessions
        self.registry = registry
        self.settings = settings
        self._handlers = {
            JoinQuiz: self.join_quiz,
            StartQuiz: self.start_quiz,
            PresentQuestion: self.present_question,
            SubmitAnswer: self.submit_answer,
            EndQuestion: self.end_question,
            EndQuiz: self.end_quiz,
            Ping: self.ping,
            GetClientId: self.send_client_id,
        }

    # ---- connection lifecycle ----

    async def connect(self, websocket) -> str:
        connection_id = self.registry.register(websocket)
        self.logger.info("Connection opened id=%s", connection_id)
        await self.registry.send_to(
            connection_id, envelope(MessageType.CLIENT_ID, ClientIdData(connection_id=connection_id))
        )
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        connection = self.registry.unregister(connection_id)
        if not connection:
            return
        if connection.is_host and connection.session_id is not None:
            session = self.sessions.get(connection.session_id)
            if session and session.host_connection_id == connection_id:
                # Session keeps its phase until a host binds again
                session.host_connection_id = None
                self.logger.info(
                    "Host connection lost quiz=%s phase=%s id=%s", session.quiz_id, session.phase.value, connection_id
                )
        self.logger.info("Connection closed id=%s role=%s", connection_id, connection.role)

    async def handle_message(self, connection_id: str, raw) -> None:
        connection = self.registry.resolve(connection_id)
        if not connection:
            self.logger.warning("Frame from unknown connection id=%s dropped", connection_id)
            return
        try:
            message = parse_inbound(raw)
        except ValidationError as exc:
            self.logger.warning(
                "Malformed frame dropped connection=%s errors=%s", connection_id, exc.error_count()
            )
            return

        handler = self._handlers[type(message)]
        try:
            await handler(connection, message)
        except CoordinatorError as exc:
            self.logger.info(
                "Rejected %s from connection=%s code=%s reason=%s", message.type, connection_id, exc.code, exc.message
            )
            await self._reject(connection, exc.message, exc.code)
        except StoreError as exc:
            self.logger.error("Store failure handling %s from connection=%s: %s", message.type, connection_id, exc)
            await self._reject(connection, "Server error", SERVER_ERROR)
        except Exception:
            self.logger.exception("Unexpected failure handling %s from connection=%s", message.type, connection_id)
            await self._reject(connection, "Server error", SERVER_ERROR)

    # ---- host binding side-channel ----

    async def bind_host(self, connection_id: str, quiz_id: int, host_principal_id: int) -> List[Participant]:
        """Authorize ``connection_id`` as host of the quiz's session.

        Returns the participant roster. A later successful bind replaces the
        previous host connection.
        """
        connection = self.registry.resolve(connection_id)
        if not connection:
            raise NotFound("WebSocket connection not found")
        if await self.store.get_admin(host_principal_id) is None:
            raise Unauthorized("Unknown host")
        quiz = await self.store.get_quiz(quiz_id)
        if not quiz:
            raise NotFound("Quiz not found")
        if quiz.admin_id != host_principal_id:
            raise Unauthorized("Quiz belongs to another host")
        if connection.is_participant:
            raise Unauthorized("Connection is bound as a participant")

        session = self.sessions.ensure(quiz_id)
        if session.is_ended:
            raise NotActive("Quiz has ended")

        if connection.is_host and connection.session_id != quiz_id:
            hosted = self.sessions.get(connection.session_id)
            if hosted and hosted.host_connection_id == connection_id:
                hosted.host_connection_id = None
                self.logger.info(
                    "Host moved quiz=%s -> quiz=%s connection=%s", hosted.quiz_id, quiz_id, connection_id
                )

        previous = session.host_connection_id
        if previous and previous != connection_id:
            self.registry.unbind(previous)
            self.logger.info("Host replaced quiz=%s old=%s new=%s", quiz_id, previous, connection_id)

        self.registry.bind(connection_id, ConnectionRole.HOST, quiz_id, host_principal_id=host_principal_id)
        session.host_connection_id = connection_id
        session.host_principal_id = host_principal_id
        self.logger.info("Host bound quiz=%s host=%s connection=%s", quiz_id, host_principal_id, connection_id)
        return await self.store.get_participants_by_quiz(quiz_id)

    # ---- participant actions ----

    async def join_quiz(self, connection: Connection, message: JoinQuiz) -> None:
        if connection.role is not None:
            raise NotActive("Connection already joined a quiz")
        quiz = await self.store.get_quiz_by_code(message.data.quiz_code)
        if not quiz:
            raise NotFound("Quiz not found")
        # Latecomers are admitted in any phase but the terminal one
        session = self.sessions.ensure(quiz.id)
        if session.is_ended:
            raise NotActive("Quiz has ended")

        alias = message.data.alias.strip() or "Player"
        participant = await self.store.create_participant(quiz.id, alias)
        self.registry.bind(connection.id, ConnectionRole.PARTICIPANT, quiz.id, participant_id=participant.id)
        self.logger.info(
            "Participant joined quiz=%s participant=%s alias=%r phase=%s",
            quiz.id,
            participant.id,
            alias,
            session.phase.value,
        )

        await self.registry.send(
            connection,
            envelope(MessageType.JOIN_QUIZ, JoinAck(quiz_id=quiz.id, participant_id=participant.id, title=quiz.title)),
        )
        await self.registry.send_to(
            session.host_connection_id,
            envelope(MessageType.PLAYER_JOINED, PlayerJoined(participant=summarize(participant))),
        )

    async def submit_answer(self, connection: Connection, message: SubmitAnswer) -> None:
        if not connection.is_participant or connection.session_id is None:
            raise NotFound("Not in a quiz")
        session = self.sessions.get(connection.session_id)
        if not session:
            raise NotFound("Session not found")

        data = message.data
        if session.phase != SessionPhase.QUESTION_ACTIVE or session.active_question_id != data.question_id:
            raise NotActive("Question is not active")

        participant_id = connection.participant_id
        question = session.active_question
        option = question.find_option(data.option_id)
        is_correct = bool(option and option.get("isCorrect"))
        elapsed = clamp_response_time(data.response_time)
        points = score(is_correct, elapsed)

        # Claimed before the first await so a resubmission cannot slip in
        if not session.reserve_answer(question.id, participant_id):
            raise Duplicate("Answer already submitted")
        try:
            answer = await self.store.record_answer(
                participant_id=participant_id,
                question_id=question.id,
                selected_option=data.option_id,
                is_correct=is_correct,
                response_time=elapsed,
                score=points,
            )
        except Duplicate:
            raise
        except Exception:
            session.release_answer(question.id, participant_id)
            raise

        self.logger.info(
            "Answer recorded quiz=%s participant=%s question=%s option=%s correct=%s elapsed_ms=%s points=%s",
            session.quiz_id,
            participant_id,
            question.id,
            data.option_id,
            is_correct,
            elapsed,
            points,
        )
        await self.registry.send(
            connection,
            envelope(
                MessageType.SUBMIT_ANSWER,
                AnswerResult(
                    answer_id=answer.id,
                    is_correct=is_correct,
                    score=points,
                    correct_option_id=question.correct_option_id(),
                ),
            ),
        )
        if session.host_connection_id:
            board = await self.leaderboard(session.quiz_id)
            await self.registry.send_to(
                session.host_connection_id,
                envelope(MessageType.LEADERBOARD_UPDATE, LeaderboardUpdate(leaderboard=board)),
            )

    # ---- host actions ----

    def _require_host(self, connection: Connection, quiz_id: Optional[int] = None) -> LiveSession:
        if not connection.is_host or connection.session_id is None:
            raise Unauthorized("Unauthorized")
        session = self.sessions.get(connection.session_id)
        if not session or session.host_connection_id != connection.id:
            raise Unauthorized("Unauthorized")
        if quiz_id is not None and quiz_id != session.quiz_id:
            raise Unauthorized("Unauthorized")
        return session

    async def start_quiz(self, connection: Connection, message: StartQuiz) -> None:
        session = self._require_host(connection, message.data.quiz_id)
        async with session.lock:
            if session.phase != SessionPhase.WAITING:
                raise NotActive("Quiz already in progress")
            quiz = await self.store.update_quiz(session.quiz_id, status=QuizStatus.ACTIVE)
            if not quiz:
                raise NotFound("Quiz not found")
            session.started_at = utc_now()
            self.logger.info("Quiz started quiz=%s host=%s", session.quiz_id, connection.id)
            await self.registry.broadcast(
                session.quiz_id, envelope(MessageType.QUIZ_STARTED, QuizStartedNotice(quiz_id=session.quiz_id))
            )

    async def present_question(self, connection: Connection, message: PresentQuestion) -> None:
        session = self._require_host(connection)
        async with session.lock:
            if session.phase not in (SessionPhase.WAITING, SessionPhase.QUESTION_ENDED):
                raise NotActive(f"Cannot present a question while {session.phase.value}")
            question = await self.store.get_question(message.data.question_id)
            if not question or question.quiz_id != session.quiz_id:
                raise NotFound("Question not found")
            quiz = await self.store.get_quiz(session.quiz_id)
            time_limit = (quiz.time_per_question if quiz else None) or self.settings.default_time_limit

            session.present(question)
            self.logger.info("Question presented quiz=%s question=%s time_limit=%s", session.quiz_id, question.id, time_limit)
            await self.registry.broadcast(
                session.quiz_id,
                envelope(
                    MessageType.NEW_QUESTION,
                    QuestionPresented(
                        question_id=question.id,
                        question_text=question.text,
                        options=[SanitizedOption(id=opt["id"], text=opt["text"]) for opt in question.options],
                        time_limit=time_limit,
                    ),
                ),
            )

    async def end_question(self, connection: Connection, message: EndQuestion) -> None:
        session = self._require_host(connection)
        async with session.lock:
            if session.phase != SessionPhase.QUESTION_ACTIVE:
                raise NotActive("No active question")
            requested = message.data.question_id
            if requested is not None and requested != session.active_question_id:
                raise NotActive("Question is not active")

            question = session.active_question
            # Closed first so no new answers land while results are computed
            session.phase = SessionPhase.QUESTION_ENDED
            try:
                answers = await self.store.get_answers_by_question(question.id)
                board = await self.leaderboard(session.quiz_id, limit=self.settings.leaderboard_top_n)
            except Exception:
                session.phase = SessionPhase.QUESTION_ACTIVE
                raise

            self.logger.info("Question ended quiz=%s question=%s answers=%s", session.quiz_id, question.id, len(answers))
            await self.registry.broadcast(
                session.quiz_id,
                envelope(
                    MessageType.QUESTION_ENDED,
                    QuestionResults(
                        question_id=question.id,
                        question_text=question.text,
                        options=option_stats(question, answers),
                        leaderboard=board,
                    ),
                ),
            )

    async def end_quiz(self, connection: Connection, message: EndQuiz) -> None:
        session = self._require_host(connection, message.data.quiz_id)
        async with session.lock:
            if session.is_ended:
                raise NotActive("Quiz has ended")
            board = await self.leaderboard(session.quiz_id)
            await self.store.update_quiz(session.quiz_id, status=QuizStatus.COMPLETED)
            session.phase = SessionPhase.ENDED
            self.logger.info("Quiz ended quiz=%s participants=%s", session.quiz_id, len(board))
            await self.registry.broadcast(
                session.quiz_id,
                envelope(MessageType.QUIZ_ENDED, QuizEndedNotice(quiz_id=session.quiz_id, leaderboard=board)),
            )

    async def discard_session(self, quiz_id: int) -> int:
        """Forget the session of a deleted quiz.

        Connections bound to it are unbound and told the quiz ended.
        """
        self.sessions.delete(quiz_id)
        bound = self.registry.for_each_in_session(quiz_id)
        for conn in bound:
            self.registry.unbind(conn.id)
        notice = envelope(MessageType.QUIZ_ENDED, QuizEndedNotice(quiz_id=quiz_id, leaderboard=[]))
        for conn in bound:
            await self.registry.send(conn, notice)
        self.logger.info("Session discarded quiz=%s released=%s", quiz_id, len(bound))
        return len(bound)

    # ---- misc ----

    async def ping(self, connection: Connection, message: Ping) -> None:
        await self.registry.send(
            connection, envelope(MessageType.PONG, {"receivedAt": utc_now().isoformat(), **message.data})
        )

    async def send_client_id(self, connection: Connection, message: GetClientId) -> None:
        await self.registry.send(
            connection, envelope(MessageType.CLIENT_ID, ClientIdData(connection_id=connection.id))
        )

    async def leaderboard(self, quiz_id: int, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        return await ranking.leaderboard(self.store, quiz_id, limit=limit)

    async def _reject(self, connection: Connection, message: str, code: str) -> None:
        await self.registry.send(connection, envelope(MessageType.ERROR, ErrorData(message=message, code=code)))
