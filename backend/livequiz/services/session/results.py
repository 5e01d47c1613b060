"""Final results: per-player statistics and the end-of-quiz ranking."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable

from .domain import AnswerRecord, Player, Quiz


@dataclass(frozen=True)
class PlayerResult:
    player: Player
    correct_answers: int
    total_time: int
    average_time: float
    accuracy: float
    rank: int = 0

    def to_dict(self) -> dict:
        return {
            'rank': self.rank,
            'player_id': self.player.id,
            'name': self.player.name,
            'avatar': self.player.avatar.to_dict() if self.player.avatar else None,
            'score': self.player.score,
            'lives': self.player.lives,
            'correct_answers': self.correct_answers,
            'total_time': self.total_time,
            'average_time': self.average_time,
            'accuracy': self.accuracy,
        }


def dedupe_answers(answers: Iterable[AnswerRecord]) -> list[AnswerRecord]:
    """Keep one record per (player, question): the earliest, then the first logged."""
    first: dict[tuple[str, int], tuple[int, AnswerRecord]] = {}
    for position, record in enumerate(answers):
        key = (record.player_id, record.question_index)
        kept = first.get(key)
        if kept is None or record.answered_at < kept[1].answered_at:
            first[key] = (position, record)
    return [record for _, record in sorted(first.values(), key=lambda item: item[0])]


def compute_results(quiz: Quiz, roster: Iterable[Player], answers: Iterable[AnswerRecord]) -> list[PlayerResult]:
    """Rank players by score, breaking ties by the faster average answer time.

    Averages and accuracy are taken over the full question count, so an
    eliminated player's unanswered questions count against them.
    """
    question_count = max(1, quiz.question_count)
    by_player: dict[str, list[AnswerRecord]] = {}
    for record in dedupe_answers(a for a in answers if a.quiz_id == quiz.id):
        by_player.setdefault(record.player_id, []).append(record)

    results = []
    for player in roster:
        records = by_player.get(player.id, [])
        correct = sum(1 for r in records if r.is_correct)
        total_time = sum(r.time_spent for r in records)
        results.append(PlayerResult(
            player=player,
            correct_answers=correct,
            total_time=total_time,
            average_time=total_time / question_count,
            accuracy=correct / question_count * 100,
        ))

    results.sort(key=lambda r: (-r.player.score, r.average_time))
    return [
        replace(r, rank=position)
        for position, r in enumerate(results, start=1)
    ]
