"""Per-question timing and scoring rules."""

from __future__ import annotations

from .domain import TIME_TOTAL_QUIZ, Quiz

BASE_POINTS = 100
SPEED_BONUS_STEP_SEC = 5


def question_time_budget(quiz: Quiz) -> int:
    """Seconds allotted to every question of ``quiz``.

    In total-quiz mode the overall time is split evenly across questions once;
    time left over from fast answers is not carried forward.
    """
    if quiz.time_type == TIME_TOTAL_QUIZ:
        return (quiz.total_time * 60) // max(1, quiz.question_count)
    return quiz.time_per_question


def speed_bonus(time_left: int) -> int:
    return max(1, time_left // SPEED_BONUS_STEP_SEC)


def score_answer(score: int, lives: int, is_correct: bool, time_left: int) -> tuple[int, int]:
    """Apply one answer (or timeout) and return the new ``(score, lives)``."""
    if is_correct:
        return score + BASE_POINTS + speed_bonus(max(0, time_left)), lives
    return score, max(0, lives - 1)
