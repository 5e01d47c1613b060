"""Local session state and the reducer that evolves it.

``reduce(state, action)`` is a pure function: it never mutates the state it
receives and never performs I/O. Actions that do not apply to the current
state return it unchanged. ``SessionStore`` owns one participant's state and
applies dispatched actions strictly in submission order.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from threading import Lock
from typing import Callable

from .domain import FINISHED, PLAYING, WAITING, AnswerRecord, Player, Quiz


@dataclass(frozen=True)
class SessionState:
    quizzes: dict[str, Quiz] = field(default_factory=dict)
    current_quiz: Quiz | None = None
    current_player: Player | None = None
    game_state: str = WAITING
    players: tuple[Player, ...] = ()
    current_question_index: int = 0
    time_left: int = 0
    results: tuple[AnswerRecord, ...] = ()
    rankings: tuple[Player, ...] = ()
    is_connected: bool = False


# --- Actions ---

@dataclass(frozen=True)
class SetConnectionStatus:
    connected: bool


@dataclass(frozen=True)
class CreateQuiz:
    quiz: Quiz


@dataclass(frozen=True)
class SetCurrentQuiz:
    quiz: Quiz


@dataclass(frozen=True)
class JoinQuiz:
    quiz_id: str
    player: Player
    quiz: Quiz | None = None  # freshly fetched quiz, preferred over cached copies
    local: bool = True


@dataclass(frozen=True)
class UpdatePlayers:
    roster: tuple[Player, ...]


@dataclass(frozen=True)
class StartGame:
    time_limit: int


@dataclass(frozen=True)
class NextQuestion:
    time_limit: int


@dataclass(frozen=True)
class UpdateTime:
    pass


@dataclass(frozen=True)
class SubmitAnswer:
    record: AnswerRecord


@dataclass(frozen=True)
class UpdateRankings:
    rankings: tuple[Player, ...]


@dataclass(frozen=True)
class EndGame:
    pass


@dataclass(frozen=True)
class ResetQuiz:
    pass


# --- Transitions ---

def _set_connection_status(state: SessionState, action: SetConnectionStatus) -> SessionState:
    return replace(state, is_connected=bool(action.connected))


def _create_quiz(state: SessionState, action: CreateQuiz) -> SessionState:
    quizzes = {**state.quizzes, action.quiz.id: action.quiz}
    return replace(state, quizzes=quizzes, current_quiz=action.quiz, players=tuple(action.quiz.players))


def _set_current_quiz(state: SessionState, action: SetCurrentQuiz) -> SessionState:
    return replace(state, current_quiz=action.quiz, players=tuple(action.quiz.players))


def _join_quiz(state: SessionState, action: JoinQuiz) -> SessionState:
    quiz = action.quiz
    if quiz is None and state.current_quiz is not None and state.current_quiz.id == action.quiz_id:
        quiz = state.current_quiz
    if quiz is None:
        quiz = state.quizzes.get(action.quiz_id)
    if quiz is None:
        return state

    roster = list(quiz.players)
    for i, existing in enumerate(roster):
        if existing.id == action.player.id:
            roster[i] = action.player
            break
    else:
        roster.append(action.player)

    updated_quiz = replace(quiz, players=tuple(roster))
    current_player = state.current_player
    if action.local or (current_player is not None and current_player.id == action.player.id):
        current_player = action.player
    return replace(
        state,
        quizzes={**state.quizzes, action.quiz_id: updated_quiz},
        current_quiz=updated_quiz,
        current_player=current_player,
        players=updated_quiz.players,
    )


def _update_players(state: SessionState, action: UpdatePlayers) -> SessionState:
    roster = tuple(action.roster)
    current_quiz = state.current_quiz
    quizzes = state.quizzes
    if current_quiz is not None:
        current_quiz = replace(current_quiz, players=roster)
        if current_quiz.id in quizzes:
            quizzes = {**quizzes, current_quiz.id: current_quiz}
    current_player = state.current_player
    if current_player is not None:
        current_player = next((p for p in roster if p.id == current_player.id), current_player)
    return replace(
        state, players=roster, current_quiz=current_quiz, quizzes=quizzes, current_player=current_player
    )


def _start_game(state: SessionState, action: StartGame) -> SessionState:
    if state.game_state != WAITING:
        return state
    return replace(state, game_state=PLAYING, current_question_index=0, time_left=max(0, action.time_limit))


def _next_question(state: SessionState, action: NextQuestion) -> SessionState:
    if state.game_state != PLAYING or state.current_quiz is None:
        return state
    if state.current_question_index + 1 >= state.current_quiz.question_count:
        return state
    return replace(
        state,
        current_question_index=state.current_question_index + 1,
        time_left=max(0, action.time_limit),
    )


def _update_time(state: SessionState, action: UpdateTime) -> SessionState:
    if state.game_state != PLAYING:
        return state
    return replace(state, time_left=max(0, state.time_left - 1))


def _submit_answer(state: SessionState, action: SubmitAnswer) -> SessionState:
    if state.game_state != PLAYING:
        return state
    return replace(state, results=state.results + (action.record,))


def _update_rankings(state: SessionState, action: UpdateRankings) -> SessionState:
    return replace(state, rankings=tuple(action.rankings))


def _end_game(state: SessionState, action: EndGame) -> SessionState:
    if state.game_state != PLAYING:
        return state
    return replace(state, game_state=FINISHED)


def _reset_quiz(state: SessionState, action: ResetQuiz) -> SessionState:
    # Roster, scores and lives survive a reset; a replay reuses the same players.
    return replace(state, game_state=WAITING, current_question_index=0, time_left=0, results=())


_TRANSITIONS: dict[type, Callable] = {
    SetConnectionStatus: _set_connection_status,
    CreateQuiz: _create_quiz,
    SetCurrentQuiz: _set_current_quiz,
    JoinQuiz: _join_quiz,
    UpdatePlayers: _update_players,
    StartGame: _start_game,
    NextQuestion: _next_question,
    UpdateTime: _update_time,
    SubmitAnswer: _submit_answer,
    UpdateRankings: _update_rankings,
    EndGame: _end_game,
    ResetQuiz: _reset_quiz,
}


def reduce(state: SessionState, action: object) -> SessionState:
    transition = _TRANSITIONS.get(type(action))
    if transition is None:
        return state
    return transition(state, action)


class SessionStore:
    """Holds one participant's session state behind an ordered dispatch."""

    def __init__(self, initial: SessionState | None = None) -> None:
        self._state = initial or SessionState()
        self._lock = Lock()
        self._listeners: list[Callable[[SessionState, object], None]] = []

    @property
    def state(self) -> SessionState:
        return self._state

    def dispatch(self, action: object) -> SessionState:
        with self._lock:
            self._state = reduce(self._state, action)
            state = self._state
        for listener in list(self._listeners):
            listener(state, action)
        return state

    def subscribe(self, listener: Callable[[SessionState, object], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
