from datetime import datetime, timedelta, timezone

from livequiz.services.session.domain import AnswerRecord, Player, Question, Quiz
from livequiz.services.session.results import compute_results, dedupe_answers

T0 = datetime(2026, 3, 1, 18, 0, 0, tzinfo=timezone.utc)


def quiz(question_count=4):
    questions = tuple(Question(f'Q{i}', ('a', 'b', 'c'), 0) for i in range(question_count))
    return Quiz(id='quiz-1', title='Finals', questions=questions)


def player(player_id, name, score, lives=3):
    return Player(id=player_id, quiz_id='quiz-1', name=name, avatar=None, lives=lives, score=score, joined_at=T0)


def record(player_id, question_index, correct, time_spent, offset=0, answer_index=0):
    return AnswerRecord(
        player_id=player_id,
        quiz_id='quiz-1',
        question_index=question_index,
        answer_index=answer_index,
        is_correct=correct,
        time_spent=time_spent,
        answered_at=T0 + timedelta(seconds=offset),
    )


def test_equal_scores_rank_by_average_time():
    roster = [player('slow', 'Slow', 200), player('fast', 'Fast', 200), player('top', 'Top', 305)]
    answers = [
        record('slow', 0, True, 20), record('slow', 1, True, 20),
        record('fast', 0, True, 5), record('fast', 1, True, 7),
        record('top', 0, True, 3), record('top', 1, True, 3), record('top', 2, True, 3),
    ]
    results = compute_results(quiz(), roster, answers)
    assert [r.player.id for r in results] == ['top', 'fast', 'slow']
    assert [r.rank for r in results] == [1, 2, 3]
    assert results[1].average_time == 3.0
    assert results[2].average_time == 10.0


def test_accuracy_and_average_use_full_question_count():
    answers = [record('p1', 0, True, 8), record('p1', 1, False, 12)]
    [result] = compute_results(quiz(4), [player('p1', 'Ann', 101, lives=0)], answers)
    assert result.correct_answers == 1
    assert result.total_time == 20
    assert result.average_time == 5.0
    assert result.accuracy == 25.0


def test_player_without_answers_scores_zero_accuracy():
    [result] = compute_results(quiz(), [player('idle', 'Idle', 0)], [])
    assert result.correct_answers == 0
    assert result.accuracy == 0.0
    assert result.average_time == 0.0


def test_duplicate_answers_keep_the_earliest():
    later_wrong = record('p1', 0, False, 9, offset=5, answer_index=2)
    first_right = record('p1', 0, True, 4, offset=1)
    other = record('p1', 1, True, 6, offset=8)
    kept = dedupe_answers([later_wrong, first_right, other])
    assert kept == [first_right, other]

    [result] = compute_results(quiz(2), [player('p1', 'Ann', 202)], [later_wrong, first_right, other])
    assert result.correct_answers == 2
    assert result.total_time == 10


def test_duplicate_answers_with_same_time_keep_log_order():
    a = record('p1', 0, True, 4, offset=1)
    b = record('p1', 0, False, 4, offset=1, answer_index=1)
    assert dedupe_answers([a, b]) == [a]
    assert dedupe_answers([b, a]) == [b]


def test_answers_from_other_quizzes_are_ignored():
    stray = AnswerRecord(
        player_id='p1', quiz_id='other', question_index=0, answer_index=0,
        is_correct=True, time_spent=1, answered_at=T0,
    )
    [result] = compute_results(quiz(), [player('p1', 'Ann', 0)], [stray])
    assert result.correct_answers == 0


def test_result_serialization():
    [result] = compute_results(quiz(2), [player('p1', 'Ann', 101)], [record('p1', 0, True, 6)])
    data = result.to_dict()
    assert data['rank'] == 1
    assert data['name'] == 'Ann'
    assert data['accuracy'] == 50.0
    assert data['avatar'] is None
