"""Per-participant facade over the session store, sync strategy and round loop.

One ``QuizClient`` stands for one browser tab: it owns that participant's
``SessionStore`` and wires the synchronization strategy, the round
controller and the rankings poller to it. The client that creates a quiz
is its host and is the only one that persists status transitions.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime

from .avatars import get_avatar, pick_random_avatar
from .domain import Player, Quiz, utcnow
from .errors import ConnectivityError, ValidationError
from .links import join_link
from .rankings import POLL_INTERVAL_SEC, RankingsPoller, merge_roster
from .results import PlayerResult, compute_results
from .rounds import RESULT_DISPLAY_SEC, TICK_INTERVAL_SEC, AnswerOutcome, GameRoundController, PresentedQuestion
from .scheduler import SocketIOScheduler
from .state import ResetQuiz, SessionStore, SetCurrentQuiz, UpdatePlayers
from .store import SharedStateService, get_shared_state_service
from .sync import SyncBackend, select_sync_backend
from .validation import QUIZ_DEFAULTS, defaults_from_config, normalize_quiz_input, validate_join

logger = logging.getLogger(__name__)

DEFAULT_JOIN_BASE_URL = 'http://localhost:5173'


class QuizClient:
    def __init__(
        self,
        service: SharedStateService | None = None,
        scheduler=None,
        rng: random.Random | None = None,
        tick_interval: float = TICK_INTERVAL_SEC,
        result_delay: float = RESULT_DISPLAY_SEC,
        poll_interval: float = POLL_INTERVAL_SEC,
        quiz_defaults: dict | None = None,
        join_base_url: str = DEFAULT_JOIN_BASE_URL,
    ) -> None:
        self.store = SessionStore()
        self.service = service
        self.scheduler = scheduler
        self.rng = rng
        self.tick_interval = tick_interval
        self.result_delay = result_delay
        self.poll_interval = poll_interval
        self.quiz_defaults = quiz_defaults or dict(QUIZ_DEFAULTS)
        self.join_base_url = join_base_url
        self.sync: SyncBackend | None = None
        self.is_host = False
        self.controller: GameRoundController | None = None
        self.poller: RankingsPoller | None = None
        self._replayed_at: datetime | None = None

    @classmethod
    def from_config(cls, config, service=None, scheduler=None, rng=None) -> "QuizClient":
        """Build a client from a Flask config mapping."""
        return cls(
            service=service,
            scheduler=scheduler,
            rng=rng,
            tick_interval=config.get('TICK_INTERVAL_SEC', TICK_INTERVAL_SEC),
            result_delay=config.get('RESULT_DISPLAY_SEC', RESULT_DISPLAY_SEC),
            poll_interval=config.get('RANKINGS_POLL_INTERVAL_SEC', POLL_INTERVAL_SEC),
            quiz_defaults=defaults_from_config(config),
            join_base_url=config.get('JOIN_BASE_URL', DEFAULT_JOIN_BASE_URL),
        )

    @classmethod
    def for_app(cls, app, rng=None) -> "QuizClient":
        """Client bound to the app's shared state with Socket.IO background timers."""
        with app.app_context():
            service = get_shared_state_service()
        return cls.from_config(app.config, service=service, scheduler=SocketIOScheduler(app), rng=rng)

    @property
    def state(self):
        return self.store.state

    @property
    def is_connected(self) -> bool:
        return self.store.state.is_connected

    def connect(self) -> bool:
        """Probe the shared state service and pick the sync strategy."""
        self.sync = select_sync_backend(self.store, self.service)
        logger.info(f"[connect] connected={self.sync.connected}")
        return self.sync.connected

    def _backend(self) -> SyncBackend:
        if self.sync is None:
            self.connect()
        return self.sync

    # --- Lobby ---

    def create_quiz(self, data: dict) -> Quiz:
        normalized = normalize_quiz_input(data, self.quiz_defaults)
        quiz = self._backend().create_quiz(normalized)
        self.is_host = True
        return quiz

    def load_lobby(self, quiz_id: str) -> Quiz | None:
        """Fetch a quiz with its roster and make it current; None when unknown."""
        quiz = self._backend().get_quiz(quiz_id)
        if quiz is None:
            logger.info(f"[lobby] quiz={quiz_id} not found")
            return None
        self.store.dispatch(SetCurrentQuiz(quiz))
        return quiz

    def join(self, quiz_id: str, name: str, avatar_id: str | None = None) -> Player:
        sync = self._backend()
        quiz = sync.get_quiz(quiz_id)
        if quiz is None:
            raise ValidationError('Quiz not found')
        cleaned = validate_join(quiz, name)
        avatar = get_avatar(avatar_id) or pick_random_avatar(self.rng)
        current = self.store.state.current_quiz
        if current is None or current.id != quiz.id:
            self.store.dispatch(SetCurrentQuiz(quiz))
        return sync.join_quiz(quiz.id, {'name': cleaned, 'lives': quiz.lives, 'avatar': avatar})

    def join_link(self, quiz_id: str | None = None) -> str:
        quiz_id = quiz_id or self._require_quiz().id
        return join_link(self.join_base_url, quiz_id)

    # --- Game ---

    def start_game(self) -> PresentedQuestion | None:
        """Enter the first question.

        Players call this once they see the quiz switch to playing; the
        host's call is what flips the shared status.
        """
        quiz = self._require_quiz()
        if self.controller is None:
            self.controller = GameRoundController(
                self.store,
                self._backend(),
                scheduler=self.scheduler,
                rng=self.rng,
                result_delay=self.result_delay,
                tick_interval=self.tick_interval,
                on_finished=self._on_finished,
            )
        presented = self.controller.start_game()
        if self.is_host:
            self.sync.start_quiz(quiz.id)
        return presented

    def submit_answer(self, answer_index: int) -> AnswerOutcome | None:
        if self.controller is None:
            raise ValidationError('The quiz has not started')
        return self.controller.submit_answer(answer_index)

    def proceed_to_results(self) -> None:
        if self.controller is not None:
            self.controller.proceed_to_results()

    def watch_rankings(self) -> RankingsPoller:
        quiz = self._require_quiz()
        if self.poller is not None:
            self.poller.stop()
        self.poller = RankingsPoller(
            self.store, self._backend(), quiz.id, scheduler=self.scheduler, interval=self.poll_interval
        )
        self.poller.start()
        return self.poller

    def final_results(self) -> list[PlayerResult]:
        quiz = self._require_quiz()
        sync = self._backend()
        answers = list(self.store.state.results)
        if sync.connected:
            try:
                answers.extend(
                    record for record in sync.get_answers(quiz.id)
                    if self._replayed_at is None or record.answered_at >= self._replayed_at
                )
                roster = merge_roster(self.store.state.players, sync.get_rankings(quiz.id))
                self.store.dispatch(UpdatePlayers(roster))
            except ConnectivityError as exc:
                logger.warning(f"[results] quiz={quiz.id} using local data only: {exc}")
        state = self.store.state
        return compute_results(state.current_quiz or quiz, state.players, answers)

    def reset(self) -> None:
        """Return to the lobby for a replay; the roster keeps its scores."""
        if self.controller is not None:
            self.controller.close()
            self.controller = None
        # Answers stored before this point belong to the previous run
        self._replayed_at = utcnow()
        self.store.dispatch(ResetQuiz())

    def close(self) -> None:
        if self.controller is not None:
            self.controller.close()
        if self.poller is not None:
            self.poller.stop()
            self.poller = None

    def _require_quiz(self) -> Quiz:
        quiz = self.store.state.current_quiz
        if quiz is None:
            raise ValidationError('No quiz is loaded')
        return quiz

    def _on_finished(self, quiz: Quiz) -> None:
        if self.is_host:
            self.sync.finish_quiz(quiz.id)
