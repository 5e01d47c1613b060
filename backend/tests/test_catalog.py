import random

import pytest

from livequiz.services.session.avatars import AVATARS, Avatar, get_avatar, pick_random_avatar
from livequiz.services.session.domain import FINISHED, PLAYING, Player, Question, Quiz
from livequiz.services.session.errors import ValidationError
from livequiz.services.session.links import join_link
from livequiz.services.session.shuffle import seeded_rng, shuffle
from livequiz.services.session.validation import normalize_quiz_input, validate_join


def test_avatar_catalog_is_unique_and_complete():
    ids = [a.id for a in AVATARS]
    assert len(ids) == 12
    assert len(set(ids)) == 12
    assert all(a.name and a.icon and a.color and a.description for a in AVATARS)


def test_avatar_lookup_and_round_trip():
    ruth = get_avatar('ruth')
    assert ruth.name == 'Ruth'
    assert get_avatar('nobody') is None
    assert Avatar.from_dict(ruth.to_dict()) is ruth
    custom = Avatar.from_dict({'id': 'custom-1', 'name': 'Guest', 'emoji': '*'})
    assert custom.icon == '*'
    assert Avatar.from_dict(None) is None


def test_random_avatar_comes_from_catalog():
    rng = random.Random(11)
    picks = {pick_random_avatar(rng).id for _ in range(200)}
    assert picks <= {a.id for a in AVATARS}
    assert len(picks) > 6


def test_shuffle_returns_new_permutation():
    items = list(range(10))
    result = shuffle(items, random.Random(5))
    assert sorted(result) == items
    assert items == list(range(10))


def test_seeded_rng_is_repeatable():
    first = shuffle('abcdef', seeded_rng('quiz-1', 'p1', 0))
    second = shuffle('abcdef', seeded_rng('quiz-1', 'p1', 0))
    assert first == second


def test_join_link_format():
    assert join_link('http://quiz.test/', 'abc') == 'http://quiz.test/#/join/abc'
    assert join_link('https://example.org', 'abc') == 'https://example.org/#/join/abc'


def _payload(**overrides):
    data = {
        'title': 'Quick',
        'questions': [{'question': 'Pick b', 'options': ['a', 'b'], 'correct_answer': 1}],
    }
    data.update(overrides)
    return data


def test_quiz_input_defaults_are_applied():
    normalized = normalize_quiz_input(_payload())
    assert normalized['max_players'] == 10
    assert normalized['time_type'] == 'per_question'
    assert normalized['time_per_question'] == 30
    assert normalized['lives'] == 3
    assert normalized['shuffle_answers'] is True
    assert normalized['questions'][0]['correct_answer'] == 1


@pytest.mark.parametrize('overrides', [
    {'title': '  '},
    {'questions': []},
    {'questions': [{'question': '', 'options': ['a', 'b'], 'correct_answer': 0}]},
    {'questions': [{'question': 'Only one', 'options': ['a'], 'correct_answer': 0}]},
    {'questions': [{'question': 'Out of range', 'options': ['a', 'b'], 'correct_answer': 2}]},
    {'time_type': 'forever'},
    {'max_players': 1},
    {'lives': 0},
    {'time_type': 'total_quiz', 'total_time': 0},
    {'time_per_question': 'soon'},
])
def test_quiz_input_rejections(overrides):
    with pytest.raises(ValidationError):
        normalize_quiz_input(_payload(**overrides))


def _quiz(status='waiting', max_players=3, names=('Ann',)):
    players = tuple(
        Player(id=f'p{i}', quiz_id='q', name=name, avatar=None, lives=3) for i, name in enumerate(names)
    )
    return Quiz(
        id='q', title='Q', questions=(Question('Q', ('a', 'b'), 0),),
        status=status, max_players=max_players, players=players,
    )


def test_join_validation():
    assert validate_join(_quiz(), '  Ben ') == 'Ben'
    with pytest.raises(ValidationError):
        validate_join(_quiz(), 'aNN')
    with pytest.raises(ValidationError):
        validate_join(_quiz(), '   ')
    with pytest.raises(ValidationError):
        validate_join(_quiz(max_players=2, names=('Ann', 'Ben')), 'Cat')
    with pytest.raises(ValidationError):
        validate_join(_quiz(status=PLAYING), 'Cat')
    with pytest.raises(ValidationError):
        validate_join(_quiz(status=FINISHED), 'Cat')
