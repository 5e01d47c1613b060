"""Live rankings refresh: fixed-interval polling plus push-triggered polls."""

from __future__ import annotations

import logging
from dataclasses import replace

from .domain import Player
from .errors import LiveQuizError
from .state import SessionStore, UpdatePlayers, UpdateRankings
from .sync import SyncBackend

logger = logging.getLogger(__name__)

POLL_INTERVAL_SEC = 2


def merge_roster(local: tuple[Player, ...] | list[Player], remote: list[Player]) -> tuple[Player, ...]:
    """Combine a fresh remote roster with the local view, never moving backwards.

    Scores only grow and lives only shrink, so for each player the higher
    score and the lower life count are the most recent values. The result is
    ordered by join time.
    """
    known = {p.id: p for p in local}
    merged = []
    for player in remote:
        mine = known.get(player.id)
        if mine is not None and (mine.score > player.score or mine.lives < player.lives):
            player = replace(
                player,
                score=max(mine.score, player.score),
                lives=min(mine.lives, player.lives),
                updated_at=max(mine.updated_at, player.updated_at),
            )
        merged.append(player)
    return tuple(sorted(merged, key=lambda p: p.joined_at))


class RankingsPoller:
    """Keeps the session's rankings fresh while a lobby or game is on screen.

    Polling is the baseline; a change-feed event only triggers one extra poll,
    so a dropped push never leaves the rankings stale for longer than the
    polling interval.
    """

    def __init__(
        self,
        store: SessionStore,
        sync: SyncBackend,
        quiz_id: str,
        scheduler=None,
        interval: float = POLL_INTERVAL_SEC,
    ) -> None:
        self.store = store
        self.sync = sync
        self.quiz_id = quiz_id
        self.scheduler = scheduler
        self.interval = interval
        self._timer = None
        self._subscription = None

    @property
    def running(self) -> bool:
        return self._timer is not None or self._subscription is not None

    def start(self) -> None:
        if self.running:
            return
        self.refresh()
        if self.scheduler is not None:
            self._timer = self.scheduler.every(self.interval, self.refresh, name='rankings-poll')
        self._subscription = self.sync.subscribe_players(self.quiz_id, self._on_change)

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def refresh(self) -> tuple[Player, ...] | None:
        try:
            rankings = self.sync.get_rankings(self.quiz_id)
        except LiveQuizError as exc:
            logger.warning(f"[rankings] quiz={self.quiz_id} refresh failed, keeping last snapshot: {exc}")
            return None
        roster = merge_roster(self.store.state.players, rankings)
        self.store.dispatch(UpdatePlayers(roster))
        self.store.dispatch(UpdateRankings(tuple(rankings)))
        return self.store.state.rankings

    def _on_change(self, change: dict) -> None:
        logger.debug(f"[rankings] push quiz={self.quiz_id} change={change}")
        self.refresh()
