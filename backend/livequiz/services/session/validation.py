"""Input validation for quiz creation and joining.

Both checks run before anything is written to the shared state, so a
rejected request never leaves a partial record behind.
"""

from __future__ import annotations

from .domain import TIME_PER_QUESTION, TIME_TOTAL_QUIZ, TIME_TYPES, WAITING, PLAYING, FINISHED, Quiz
from .errors import ValidationError

QUIZ_DEFAULTS = {
    'max_players': 10,
    'time_type': TIME_PER_QUESTION,
    'time_per_question': 30,
    'total_time': 10,
    'lives': 3,
    'shuffle_answers': True,
}


def defaults_from_config(config) -> dict:
    return {
        'max_players': config.get('DEFAULT_MAX_PLAYERS', QUIZ_DEFAULTS['max_players']),
        'time_type': TIME_PER_QUESTION,
        'time_per_question': config.get('DEFAULT_TIME_PER_QUESTION_SEC', QUIZ_DEFAULTS['time_per_question']),
        'total_time': config.get('DEFAULT_TOTAL_TIME_MIN', QUIZ_DEFAULTS['total_time']),
        'lives': config.get('DEFAULT_LIVES', QUIZ_DEFAULTS['lives']),
        'shuffle_answers': config.get('DEFAULT_SHUFFLE_ANSWERS', QUIZ_DEFAULTS['shuffle_answers']),
    }


def _int_field(data: dict, name: str, minimum: int) -> int:
    value = data.get(name)
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be an integer') from None
    if value < minimum:
        raise ValidationError(f'{name} must be at least {minimum}')
    return value


def normalize_question(raw: dict, position: int) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError(f'Question {position} is malformed')
    text = (raw.get('question') or '').strip()
    if not text:
        raise ValidationError(f'Question {position} text must not be empty')
    options = raw.get('options')
    if not isinstance(options, (list, tuple)) or len(options) < 2:
        raise ValidationError(f'Question {position} needs at least two options')
    options = [str(option).strip() for option in options]
    try:
        correct = int(raw.get('correct_answer', 0))
    except (TypeError, ValueError):
        raise ValidationError(f'Question {position} correct answer must be an option index') from None
    if not 0 <= correct < len(options):
        raise ValidationError(f'Question {position} correct answer is out of range')
    return {'question': text, 'options': options, 'correct_answer': correct}


def normalize_quiz_input(data: dict, defaults: dict | None = None) -> dict:
    """Validate a quiz creation payload and fill in defaults."""
    merged = {**(defaults or QUIZ_DEFAULTS)}
    merged.update({k: v for k, v in (data or {}).items() if v is not None})

    title = (merged.get('title') or '').strip()
    if not title:
        raise ValidationError('Title must not be empty')

    time_type = merged.get('time_type')
    if time_type not in TIME_TYPES:
        raise ValidationError(f'time_type must be one of {", ".join(TIME_TYPES)}')

    questions = merged.get('questions') or []
    if not questions:
        raise ValidationError('A quiz needs at least one question')

    return {
        'title': title,
        'description': (merged.get('description') or '').strip(),
        'max_players': _int_field(merged, 'max_players', 2),
        'time_type': time_type,
        'time_per_question': _int_field(merged, 'time_per_question', 1 if time_type == TIME_PER_QUESTION else 0),
        'total_time': _int_field(merged, 'total_time', 1 if time_type == TIME_TOTAL_QUIZ else 0),
        'lives': _int_field(merged, 'lives', 1),
        'shuffle_answers': bool(merged.get('shuffle_answers')),
        'questions': [normalize_question(q, i + 1) for i, q in enumerate(questions)],
    }


def validate_join(quiz: Quiz, name: str | None) -> str:
    """Return the cleaned display name, or raise when the join is not allowed."""
    if quiz.status == PLAYING:
        raise ValidationError('This quiz is already in progress')
    if quiz.status == FINISHED:
        raise ValidationError('This quiz has already finished')
    if quiz.status != WAITING:
        raise ValidationError('This quiz is not accepting players')
    if quiz.is_full:
        raise ValidationError('This quiz has reached its maximum number of players')
    cleaned = (name or '').strip()
    if not cleaned:
        raise ValidationError('Please enter your name')
    if any(p.name.lower() == cleaned.lower() for p in quiz.players):
        raise ValidationError('This name is already taken')
    return cleaned
