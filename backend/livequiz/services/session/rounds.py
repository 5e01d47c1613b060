"""Round controller: drives one participant through the questions of a quiz.

Per question the controller cycles through presenting (timer running),
locked (answer or timeout recorded, result shown) and then either the next
question or the end of the quiz. At most one answer is accepted per
question; the lock flag is checked before every timer decrement, so an
answered question never times out afterwards.

Score and lives are mirrored into the local session state before anything
is persisted, so the player's own view never waits on the network.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from threading import Lock
from typing import Callable

from .domain import PLAYING, WAITING, AnswerRecord, Quiz, utcnow
from .errors import ValidationError
from .scoring import question_time_budget, score_answer
from .shuffle import seeded_rng, shuffle_options
from .state import EndGame, JoinQuiz, NextQuestion, SessionStore, StartGame, SubmitAnswer, UpdateTime
from .sync import SyncBackend

logger = logging.getLogger(__name__)

RESULT_DISPLAY_SEC = 3
TICK_INTERVAL_SEC = 1


@dataclass(frozen=True)
class PresentedQuestion:
    index: int
    prompt: str
    options: tuple[str, ...]
    option_order: tuple[int, ...]  # option_order[i] = original index of displayed option i
    correct_index: int  # position of the correct option in ``options``
    time_budget: int


@dataclass(frozen=True)
class AnswerOutcome:
    question_index: int
    answer_index: int | None  # displayed position chosen, None on timeout
    original_index: int | None  # same choice in the question's stored option order
    is_correct: bool
    time_spent: int
    score: int
    lives: int
    points_awarded: int

    @property
    def timed_out(self) -> bool:
        return self.answer_index is None


class GameRoundController:
    def __init__(
        self,
        store: SessionStore,
        sync: SyncBackend,
        scheduler=None,
        rng: random.Random | None = None,
        result_delay: float = RESULT_DISPLAY_SEC,
        tick_interval: float = TICK_INTERVAL_SEC,
        on_finished: Callable[[Quiz], None] | None = None,
    ) -> None:
        self.store = store
        self.sync = sync
        self.scheduler = scheduler
        self.rng = rng
        self.result_delay = result_delay
        self.tick_interval = tick_interval
        self.on_finished = on_finished
        self._lock = Lock()
        self._presented: PresentedQuestion | None = None
        self._selected: int | None = None
        self._locked = False
        self._timer = None
        self._pending_advance = None

    # --- Views ---

    @property
    def presented(self) -> PresentedQuestion | None:
        return self._presented

    @property
    def selected_answer(self) -> int | None:
        return self._selected

    @property
    def show_result(self) -> bool:
        return self._locked

    @property
    def is_eliminated(self) -> bool:
        player = self.store.state.current_player
        return player is not None and player.is_eliminated

    # --- Lifecycle ---

    def start_game(self) -> PresentedQuestion | None:
        state = self.store.state
        quiz = state.current_quiz
        if quiz is None:
            raise ValidationError('No quiz is loaded')
        if not state.players:
            raise ValidationError('At least one player is required to start the quiz')
        if state.game_state != WAITING:
            return self._presented
        with self._lock:
            self.store.dispatch(StartGame(question_time_budget(quiz)))
            self._enter_question()
        logger.info(f"[game-start] quiz={quiz.id} players={len(state.players)} budget={self._presented.time_budget}s")
        if self.scheduler is not None:
            self._timer = self.scheduler.every(self.tick_interval, self.tick, name='question-timer')
        return self._presented

    def close(self) -> None:
        """Cancel the ticking timer and any pending advance."""
        for handle in (self._timer, self._pending_advance):
            if handle is not None:
                handle.cancel()
        self._timer = None
        self._pending_advance = None

    def proceed_to_results(self) -> None:
        """Leave the round loop early, e.g. after running out of lives."""
        self.close()
        with self._lock:
            state = self.store.state
            quiz = state.current_quiz if state.game_state == PLAYING else None
            self._presented = None
            self.store.dispatch(EndGame())
        if quiz is not None:
            logger.info(f"[game-end] quiz={quiz.id} early")
            if self.on_finished is not None:
                self.on_finished(quiz)

    # --- Per-question flow ---

    def tick(self) -> AnswerOutcome | None:
        with self._lock:
            state = self.store.state
            if state.game_state != PLAYING or self._locked or self._presented is None:
                return None
            if self.is_eliminated:
                return None
            if state.time_left > 0:
                state = self.store.dispatch(UpdateTime())
            if state.time_left > 0:
                return None
            outcome = self._lock_question(None)
            index = self._presented.index
        if outcome is not None:
            logger.info(f"[timeout] question={outcome.question_index} lives={outcome.lives}")
            self._persist(outcome)
        self._schedule_advance(index)
        return outcome

    def submit_answer(self, answer_index: int) -> AnswerOutcome | None:
        """Lock in an answer by displayed position; repeated calls are ignored."""
        with self._lock:
            state = self.store.state
            if state.game_state != PLAYING or self._locked or self._presented is None:
                return None
            if state.current_player is None:
                raise ValidationError('Join the quiz before answering')
            if self.is_eliminated:
                return None
            if not 0 <= answer_index < len(self._presented.options):
                raise ValidationError(f'Answer {answer_index} is not one of the options')
            outcome = self._lock_question(answer_index)
        if outcome is not None:
            logger.info(
                f"[answer] question={outcome.question_index} correct={outcome.is_correct} "
                f"points={outcome.points_awarded} lives={outcome.lives}"
            )
            self._persist(outcome)
            self._schedule_advance(outcome.question_index)
        return outcome

    def advance(self) -> PresentedQuestion | None:
        """Move to the next question, or finish the quiz after the last one."""
        if self._pending_advance is not None:
            self._pending_advance.cancel()
        return self._advance_from(self.store.state.current_question_index)

    def _advance_from(self, expected_index: int) -> PresentedQuestion | None:
        finished_quiz = None
        with self._lock:
            self._pending_advance = None
            state = self.store.state
            quiz = state.current_quiz
            if state.game_state != PLAYING or quiz is None:
                return None
            if state.current_question_index != expected_index:
                logger.info(f"[advance-skip] expected={expected_index} actual={state.current_question_index}")
                return self._presented
            if state.current_question_index + 1 >= quiz.question_count:
                self.store.dispatch(EndGame())
                self._presented = None
                finished_quiz = quiz
            else:
                self.store.dispatch(NextQuestion(question_time_budget(quiz)))
                self._enter_question()
        if finished_quiz is not None:
            self.close()
            logger.info(f"[game-end] quiz={finished_quiz.id}")
            if self.on_finished is not None:
                self.on_finished(finished_quiz)
            return None
        return self._presented

    # --- Internals (callers hold self._lock) ---

    def _enter_question(self) -> None:
        state = self.store.state
        quiz = state.current_quiz
        index = state.current_question_index
        question = quiz.questions[index]
        if quiz.shuffle_answers:
            player_id = state.current_player.id if state.current_player else ''
            rng = self.rng or seeded_rng(quiz.id, player_id, index)
            options, order, correct = shuffle_options(question.options, question.correct_answer, rng)
        else:
            options = list(question.options)
            order = list(range(len(options)))
            correct = question.correct_answer
        self._presented = PresentedQuestion(
            index=index,
            prompt=question.prompt,
            options=tuple(options),
            option_order=tuple(order),
            correct_index=correct,
            time_budget=question_time_budget(quiz),
        )
        self._selected = None
        self._locked = False

    def _lock_question(self, answer_index: int | None) -> AnswerOutcome | None:
        state = self.store.state
        player = state.current_player
        quiz = state.current_quiz
        presented = self._presented
        if player is None or quiz is None:
            # Spectating host: the question still closes and advances
            self._selected = answer_index
            self._locked = True
            return None

        budget = presented.time_budget
        is_correct = answer_index is not None and answer_index == presented.correct_index
        if answer_index is None:
            time_spent = budget
        else:
            time_spent = min(budget, max(0, budget - state.time_left))
        score, lives = score_answer(player.score, player.lives, is_correct, state.time_left)

        original_index = self._original_index(answer_index)
        self._selected = answer_index
        self._locked = True
        self.store.dispatch(SubmitAnswer(AnswerRecord(
            player_id=player.id,
            quiz_id=quiz.id,
            question_index=presented.index,
            answer_index=original_index,
            is_correct=is_correct,
            time_spent=time_spent,
        )))
        self.store.dispatch(JoinQuiz(
            quiz_id=quiz.id,
            player=replace(player, score=score, lives=lives, updated_at=utcnow()),
            quiz=quiz,
        ))
        return AnswerOutcome(
            question_index=presented.index,
            answer_index=answer_index,
            original_index=original_index,
            is_correct=is_correct,
            time_spent=time_spent,
            score=score,
            lives=lives,
            points_awarded=score - player.score,
        )

    def _original_index(self, answer_index: int | None) -> int | None:
        if answer_index is None:
            return None
        return self._presented.option_order[answer_index]

    def _persist(self, outcome: AnswerOutcome) -> None:
        state = self.store.state
        player = state.current_player
        quiz = state.current_quiz
        self.sync.update_player_score(player.id, outcome.score, outcome.lives)
        self.sync.submit_answer(
            player.id,
            quiz.id,
            outcome.question_index,
            outcome.original_index,
            outcome.is_correct,
            outcome.time_spent,
        )

    def _schedule_advance(self, question_index: int) -> None:
        if self.scheduler is None:
            return
        self._pending_advance = self.scheduler.call_later(
            self.result_delay, lambda: self._advance_from(question_index), name='advance'
        )
