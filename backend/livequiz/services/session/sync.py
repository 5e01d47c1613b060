"""Synchronization between a participant's session store and the shared state.

Two interchangeable strategies implement ``SyncBackend``:

- ``ConnectedSync`` persists through a ``SharedStateService`` and reads the
  roster and rankings back from it.
- ``LocalSync`` keeps everything in the session store; it is the degraded
  mode used when the connectivity probe fails at startup.

``select_sync_backend`` runs the probe once and picks the strategy, so call
sites never branch on the connection flag.

Write-then-read flows (create quiz, join quiz) propagate failures so the
caller can offer a retry. Score updates, answer records and status flips are
best effort: failures are logged and the local state still advances.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable

from livequiz.models import generate_id

from .avatars import Avatar, pick_random_avatar
from .domain import (
    FINISHED,
    PLAYING,
    TIME_PER_QUESTION,
    WAITING,
    AnswerRecord,
    Player,
    Question,
    Quiz,
    utcnow,
)
from .errors import ConnectivityError, RecordNotFoundError
from .state import CreateQuiz, JoinQuiz, SessionStore, SetConnectionStatus
from .store import SharedStateService, Subscription

logger = logging.getLogger(__name__)

LIVE_RANKING_ORDER = (('score', 'desc'), ('updated_at', 'asc'))


# --- Wire <-> domain mapping ---

def _parse_ts(value) -> datetime:
    if value is None:
        return utcnow()
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def question_from_record(data: dict) -> Question:
    return Question(
        prompt=data.get('question', ''),
        options=tuple(data.get('options') or ()),
        correct_answer=int(data.get('correct_answer', 0)),
    )


def question_to_record(question: Question) -> dict:
    return {
        'question': question.prompt,
        'options': list(question.options),
        'correct_answer': question.correct_answer,
    }


def player_from_record(data: dict) -> Player:
    return Player(
        id=data['id'],
        quiz_id=data['quiz_id'],
        name=data['name'],
        avatar=Avatar.from_dict(data.get('avatar')),
        lives=int(data.get('lives') or 0),
        score=int(data.get('score') or 0),
        joined_at=_parse_ts(data.get('joined_at')),
        updated_at=_parse_ts(data.get('updated_at')),
    )


def player_to_record(player: Player) -> dict:
    return {
        'id': player.id,
        'quiz_id': player.quiz_id,
        'name': player.name,
        'avatar': player.avatar.to_dict() if player.avatar else None,
        'lives': player.lives,
        'score': player.score,
        'joined_at': player.joined_at,
        'updated_at': player.updated_at,
    }


def quiz_from_record(data: dict) -> Quiz:
    """Flatten a stored quiz (optionally with its embedded roster)."""
    return Quiz(
        id=data['id'],
        title=data.get('title') or '',
        description=data.get('description') or '',
        max_players=int(data.get('max_players') or 0),
        time_type=data.get('time_type') or TIME_PER_QUESTION,
        time_per_question=int(data.get('time_per_question') or 0),
        total_time=int(data.get('total_time') or 0),
        lives=int(data.get('lives') or 0),
        shuffle_answers=bool(data.get('shuffle_answers')),
        questions=tuple(question_from_record(q) for q in data.get('questions') or ()),
        status=data.get('status') or WAITING,
        players=tuple(player_from_record(p) for p in data.get('players') or ()),
        created_at=_parse_ts(data.get('created_at')),
        updated_at=_parse_ts(data.get('updated_at')),
    )


def quiz_to_record(quiz: Quiz) -> dict:
    return {
        'id': quiz.id,
        'title': quiz.title,
        'description': quiz.description,
        'max_players': quiz.max_players,
        'time_type': quiz.time_type,
        'time_per_question': quiz.time_per_question,
        'total_time': quiz.total_time,
        'lives': quiz.lives,
        'shuffle_answers': quiz.shuffle_answers,
        'questions': [question_to_record(q) for q in quiz.questions],
        'status': quiz.status,
        'created_at': quiz.created_at,
        'updated_at': quiz.updated_at,
    }


def answer_from_record(data: dict) -> AnswerRecord:
    return AnswerRecord(
        player_id=data['player_id'],
        quiz_id=data['quiz_id'],
        question_index=int(data['question_index']),
        answer_index=data.get('answer_index'),
        is_correct=bool(data.get('is_correct')),
        time_spent=int(data.get('time_spent') or 0),
        answered_at=_parse_ts(data.get('answered_at')),
    )


def answer_to_record(record: AnswerRecord) -> dict:
    return {
        'player_id': record.player_id,
        'quiz_id': record.quiz_id,
        'question_index': record.question_index,
        'answer_index': record.answer_index,
        'is_correct': record.is_correct,
        'time_spent': record.time_spent,
        'answered_at': record.answered_at,
    }


def _new_quiz(quiz_id: str, data: dict) -> Quiz:
    now = utcnow()
    return Quiz(
        id=quiz_id,
        title=data['title'],
        description=data.get('description') or '',
        max_players=data['max_players'],
        time_type=data['time_type'],
        time_per_question=data['time_per_question'],
        total_time=data['total_time'],
        lives=data['lives'],
        shuffle_answers=data['shuffle_answers'],
        questions=tuple(
            q if isinstance(q, Question) else question_from_record(q) for q in data['questions']
        ),
        status=WAITING,
        created_at=now,
        updated_at=now,
    )


def _new_player(player_id: str, quiz_id: str, data: dict) -> Player:
    now = utcnow()
    avatar = data.get('avatar')
    if isinstance(avatar, dict):
        avatar = Avatar.from_dict(avatar)
    return Player(
        id=player_id,
        quiz_id=quiz_id,
        name=data['name'],
        avatar=avatar or pick_random_avatar(),
        lives=int(data['lives']),
        score=0,
        joined_at=now,
        updated_at=now,
    )


# --- Strategies ---

class SyncBackend(ABC):
    connected = False

    def __init__(self, store: SessionStore) -> None:
        self.store = store

    @abstractmethod
    def create_quiz(self, data: dict) -> Quiz:
        """Persist a normalized quiz payload and make it the active quiz."""

    @abstractmethod
    def join_quiz(self, quiz_id: str, player_input: dict) -> Player:
        """Add a player (``name``, ``lives``, optional ``avatar``) to a quiz."""

    @abstractmethod
    def get_quiz(self, quiz_id: str) -> Quiz | None:
        """Return the quiz with its roster, or None when it does not exist."""

    @abstractmethod
    def update_player_score(self, player_id: str, score: int, lives: int) -> None: ...

    @abstractmethod
    def submit_answer(
        self,
        player_id: str,
        quiz_id: str,
        question_index: int,
        answer_index: int | None,
        is_correct: bool,
        time_spent: int,
    ) -> None: ...

    @abstractmethod
    def get_rankings(self, quiz_id: str) -> list[Player]: ...

    @abstractmethod
    def get_answers(self, quiz_id: str) -> list[AnswerRecord]: ...

    @abstractmethod
    def start_quiz(self, quiz_id: str) -> None: ...

    @abstractmethod
    def finish_quiz(self, quiz_id: str) -> None: ...

    def subscribe_players(self, quiz_id: str, callback: Callable[[dict], None]) -> Subscription | None:
        """Push channel for roster changes; None when there is none."""
        return None

    def _mirror_local_player(self, player_id: str, score: int, lives: int) -> None:
        state = self.store.state
        player = state.current_player
        if player is None or player.id != player_id or state.current_quiz is None:
            return
        self.store.dispatch(JoinQuiz(
            quiz_id=state.current_quiz.id,
            player=replace(player, score=score, lives=lives, updated_at=utcnow()),
            quiz=state.current_quiz,
        ))


class ConnectedSync(SyncBackend):
    connected = True

    def __init__(self, store: SessionStore, service: SharedStateService) -> None:
        super().__init__(store)
        self.service = service

    def create_quiz(self, data: dict) -> Quiz:
        try:
            stored = self.service.insert('quizzes', quiz_to_record(_new_quiz(generate_id(), data)))
        except ConnectivityError as exc:
            logger.error(f"[create-quiz] title={data.get('title')!r} error={exc}")
            raise
        quiz = quiz_from_record(stored)
        self.store.dispatch(CreateQuiz(quiz))
        logger.info(f"[create-quiz] quiz={quiz.id} questions={quiz.question_count}")
        return quiz

    def join_quiz(self, quiz_id: str, player_input: dict) -> Player:
        draft = player_to_record(_new_player(generate_id(), quiz_id, player_input))
        try:
            player = player_from_record(self.service.insert('players', draft))
            quiz_record = self.service.get('quizzes', quiz_id, embed=('players',))
        except ConnectivityError as exc:
            logger.error(f"[join] quiz={quiz_id} name={player_input.get('name')!r} error={exc}")
            raise
        if quiz_record is None:
            raise ConnectivityError(f'quiz {quiz_id} vanished while joining')
        quiz = quiz_from_record(quiz_record)
        self.store.dispatch(JoinQuiz(quiz_id=quiz_id, player=player, quiz=quiz))
        logger.info(f"[join] quiz={quiz_id} player={player.id} roster={len(quiz.players)}")
        return player

    def get_quiz(self, quiz_id: str) -> Quiz | None:
        record = self.service.get('quizzes', quiz_id, embed=('players',))
        if record is None:
            return None
        return quiz_from_record(record)

    def update_player_score(self, player_id: str, score: int, lives: int) -> None:
        try:
            self.service.update('players', player_id, {'score': score, 'lives': lives})
        except (ConnectivityError, RecordNotFoundError) as exc:
            logger.warning(f"[score-write] player={player_id} score={score} lives={lives} error={exc}")
        self._mirror_local_player(player_id, score, lives)

    def submit_answer(self, player_id, quiz_id, question_index, answer_index, is_correct, time_spent) -> None:
        record = AnswerRecord(
            player_id=player_id,
            quiz_id=quiz_id,
            question_index=question_index,
            answer_index=answer_index,
            is_correct=is_correct,
            time_spent=time_spent,
        )
        try:
            self.service.insert('answers', answer_to_record(record))
        except ConnectivityError as exc:
            logger.warning(f"[answer-write] player={player_id} question={question_index} error={exc}")

    def get_rankings(self, quiz_id: str) -> list[Player]:
        records = self.service.query('players', {'quiz_id': quiz_id}, order_by=LIVE_RANKING_ORDER)
        return [player_from_record(r) for r in records]

    def get_answers(self, quiz_id: str) -> list[AnswerRecord]:
        records = self.service.query('answers', {'quiz_id': quiz_id}, order_by=(('answered_at', 'asc'),))
        return [answer_from_record(r) for r in records]

    def start_quiz(self, quiz_id: str) -> None:
        self._set_status(quiz_id, PLAYING)

    def finish_quiz(self, quiz_id: str) -> None:
        self._set_status(quiz_id, FINISHED)

    def subscribe_players(self, quiz_id: str, callback: Callable[[dict], None]) -> Subscription | None:
        return self.service.subscribe('players', {'quiz_id': quiz_id}, callback)

    def _set_status(self, quiz_id: str, status: str) -> None:
        try:
            self.service.update('quizzes', quiz_id, {'status': status})
            logger.info(f"[status] quiz={quiz_id} status={status}")
        except (ConnectivityError, RecordNotFoundError) as exc:
            logger.warning(f"[status-write] quiz={quiz_id} status={status} error={exc}")


class LocalSync(SyncBackend):
    connected = False

    def create_quiz(self, data: dict) -> Quiz:
        quiz = _new_quiz(generate_id(), data)
        self.store.dispatch(CreateQuiz(quiz))
        logger.info(f"[create-quiz] local quiz={quiz.id}")
        return quiz

    def join_quiz(self, quiz_id: str, player_input: dict) -> Player:
        player = _new_player(generate_id(), quiz_id, player_input)
        self.store.dispatch(JoinQuiz(quiz_id=quiz_id, player=player))
        logger.info(f"[join] local quiz={quiz_id} player={player.id}")
        return player

    def get_quiz(self, quiz_id: str) -> Quiz | None:
        state = self.store.state
        if state.current_quiz is not None and state.current_quiz.id == quiz_id:
            return state.current_quiz
        return state.quizzes.get(quiz_id)

    def update_player_score(self, player_id: str, score: int, lives: int) -> None:
        self._mirror_local_player(player_id, score, lives)

    def submit_answer(self, player_id, quiz_id, question_index, answer_index, is_correct, time_spent) -> None:
        # The local result log already holds the record
        logger.debug(f"[answer-write] local player={player_id} question={question_index}")

    def get_rankings(self, quiz_id: str) -> list[Player]:
        # Score only; equal scores keep roster order
        return sorted(self.store.state.players, key=lambda p: p.score, reverse=True)

    def get_answers(self, quiz_id: str) -> list[AnswerRecord]:
        return [r for r in self.store.state.results if r.quiz_id == quiz_id]

    def start_quiz(self, quiz_id: str) -> None:
        pass

    def finish_quiz(self, quiz_id: str) -> None:
        pass


def select_sync_backend(store: SessionStore, service: SharedStateService | None) -> SyncBackend:
    """Probe the shared state service once and pick the matching strategy."""
    connected = False
    if service is not None:
        try:
            connected = bool(service.ping())
        except ConnectivityError as exc:
            logger.warning(f"[probe] shared state unreachable, running locally: {exc}")
    store.dispatch(SetConnectionStatus(connected))
    if connected:
        return ConnectedSync(store, service)
    return LocalSync(store)
