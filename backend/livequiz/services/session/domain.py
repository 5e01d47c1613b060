"""Domain types shared by the session state, round controller and results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from .avatars import Avatar

TIME_PER_QUESTION = 'per_question'
TIME_TOTAL_QUIZ = 'total_quiz'
TIME_TYPES = (TIME_PER_QUESTION, TIME_TOTAL_QUIZ)

WAITING = 'waiting'
PLAYING = 'playing'
FINISHED = 'finished'
STATUSES = (WAITING, PLAYING, FINISHED)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Question:
    prompt: str
    options: tuple[str, ...]
    correct_answer: int


@dataclass(frozen=True)
class Player:
    id: str
    quiz_id: str
    name: str
    avatar: Avatar | None
    lives: int
    score: int = 0
    joined_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_eliminated(self) -> bool:
        return self.lives <= 0


@dataclass(frozen=True)
class Quiz:
    id: str
    title: str
    questions: tuple[Question, ...]
    description: str = ''
    max_players: int = 10
    time_type: str = TIME_PER_QUESTION
    time_per_question: int = 30
    total_time: int = 10
    lives: int = 3
    shuffle_answers: bool = True
    status: str = WAITING
    players: tuple[Player, ...] = ()
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def is_full(self) -> bool:
        return len(self.players) >= self.max_players


@dataclass(frozen=True)
class AnswerRecord:
    player_id: str
    quiz_id: str
    question_index: int
    answer_index: int | None
    is_correct: bool
    time_spent: int
    answered_at: datetime = field(default_factory=utcnow)
