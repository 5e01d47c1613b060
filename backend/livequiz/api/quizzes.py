from datetime import datetime
from flask import Blueprint, jsonify, request, current_app
from livequiz.services.session.avatars import get_avatar, pick_random_avatar
from livequiz.services.session.domain import FINISHED, PLAYING, WAITING
from livequiz.services.session.errors import ConnectivityError, RecordNotFoundError, ValidationError
from livequiz.services.session.links import join_link
from livequiz.services.session.results import compute_results
from livequiz.services.session.scoring import question_time_budget
from livequiz.services.session.store import get_shared_state_service
from livequiz.services.session.sync import (
    LIVE_RANKING_ORDER,
    answer_from_record,
    player_from_record,
    quiz_from_record,
)
from livequiz.services.session.validation import defaults_from_config, normalize_quiz_input, validate_join


quizzes = Blueprint('quizzes', __name__)

# Host status transitions: target -> state it may be entered from
_STATUS_FLOW = {
    PLAYING: WAITING,
    FINISHED: PLAYING,
}


@quizzes.errorhandler(ValidationError)
def _validation_error(exc):
    return jsonify({'error': str(exc)}), 400


@quizzes.errorhandler(ConnectivityError)
def _connectivity_error(exc):
    current_app.logger.error(f"[store-unavailable] path={request.path} error={exc}")
    return jsonify({'error': 'The quiz service is temporarily unavailable, please retry'}), 503


@quizzes.errorhandler(RecordNotFoundError)
def _not_found_error(exc):
    return jsonify({'error': str(exc)}), 404


def _load_quiz(quiz_id, with_players=False):
    embed = ('players',) if with_players else ()
    return get_shared_state_service().get('quizzes', quiz_id, embed=embed)


def _parse_int(data, name):
    try:
        return int(data[name])
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be an integer') from None


@quizzes.route('/quizzes', methods=['POST'])
def create_quiz():
    data = request.get_json(silent=True) or {}
    normalized = normalize_quiz_input(data, defaults_from_config(current_app.config))
    record = get_shared_state_service().insert('quizzes', {**normalized, 'status': WAITING})
    current_app.logger.info(f"[create-quiz] quiz={record['id']} questions={len(record['questions'])}")
    return jsonify(record), 201


@quizzes.route('/quizzes/<string:quiz_id>', methods=['GET'])
def get_quiz(quiz_id):
    record = _load_quiz(quiz_id, with_players=True)
    if record is None:
        return jsonify({'error': 'Quiz not found'}), 404
    return jsonify(record)


@quizzes.route('/quizzes/<string:quiz_id>/join-link', methods=['GET'])
def get_join_link(quiz_id):
    if _load_quiz(quiz_id) is None:
        return jsonify({'error': 'Quiz not found'}), 404
    url = join_link(current_app.config.get('JOIN_BASE_URL', ''), quiz_id)
    return jsonify({'quiz_id': quiz_id, 'url': url})


@quizzes.route('/quizzes/<string:quiz_id>/players', methods=['POST'])
def join_quiz(quiz_id):
    data = request.get_json(silent=True) or {}
    record = _load_quiz(quiz_id, with_players=True)
    if record is None:
        return jsonify({'error': 'Quiz not found'}), 404
    quiz = quiz_from_record(record)
    name = validate_join(quiz, data.get('name'))
    avatar = get_avatar(data.get('avatar_id')) or pick_random_avatar()

    player = get_shared_state_service().insert('players', {
        'quiz_id': quiz.id,
        'name': name,
        'avatar': avatar.to_dict(),
        'lives': quiz.lives,
        'score': 0,
    })
    current_app.logger.info(f"[join] quiz={quiz.id} player={player['id']} roster={len(quiz.players) + 1}")
    return jsonify(player), 201


@quizzes.route('/players/<string:player_id>', methods=['PATCH'])
def update_player(player_id):
    data = request.get_json(silent=True) or {}
    service = get_shared_state_service()
    current = service.get('players', player_id)
    if current is None:
        return jsonify({'error': 'Player not found'}), 404

    changes = {}
    if 'score' in data:
        score = _parse_int(data, 'score')
        if score < current['score']:
            raise ValidationError('score can only increase')
        changes['score'] = score
    if 'lives' in data:
        lives = _parse_int(data, 'lives')
        if lives < 0:
            raise ValidationError('lives cannot be negative')
        if lives > current['lives']:
            raise ValidationError('lives can only decrease')
        changes['lives'] = lives
    if not changes:
        raise ValidationError('Nothing to update')

    updated = service.update('players', player_id, changes)
    current_app.logger.info(
        f"[score] player={player_id} score={updated['score']} lives={updated['lives']}"
    )
    return jsonify(updated)


@quizzes.route('/quizzes/<string:quiz_id>/answers', methods=['POST'])
def submit_answer(quiz_id):
    data = request.get_json(silent=True) or {}
    service = get_shared_state_service()
    player_id = data.get('player_id')
    if not player_id or 'question_index' not in data:
        raise ValidationError('player_id and question_index are required')
    player = service.get('players', player_id)
    if player is None or player['quiz_id'] != quiz_id:
        return jsonify({'error': 'Player not found in this quiz'}), 404

    answer_index = data.get('answer_index')
    values = {
        'player_id': player_id,
        'quiz_id': quiz_id,
        'question_index': _parse_int(data, 'question_index'),
        'answer_index': None if answer_index is None else _parse_int(data, 'answer_index'),
        'is_correct': bool(data.get('is_correct')),
        'time_spent': _parse_int(data, 'time_spent') if 'time_spent' in data else 0,
    }
    if data.get('answered_at'):
        try:
            values['answered_at'] = datetime.fromisoformat(data['answered_at'])
        except (TypeError, ValueError):
            raise ValidationError('answered_at must be an ISO 8601 timestamp') from None
    quiz = quiz_from_record(_load_quiz(quiz_id))
    budget = question_time_budget(quiz)
    if not 0 <= values['time_spent'] <= budget:
        raise ValidationError(f"time_spent must be between 0 and {budget} seconds")
    record = service.insert('answers', values)
    return jsonify(record), 201


@quizzes.route('/quizzes/<string:quiz_id>/rankings', methods=['GET'])
def get_rankings(quiz_id):
    if _load_quiz(quiz_id) is None:
        return jsonify({'error': 'Quiz not found'}), 404
    players = get_shared_state_service().query('players', {'quiz_id': quiz_id}, order_by=LIVE_RANKING_ORDER)
    return jsonify(players)


def _transition(quiz_id, target):
    service = get_shared_state_service()
    record = _load_quiz(quiz_id)
    if record is None:
        return jsonify({'error': 'Quiz not found'}), 404
    if record['status'] == target:
        return jsonify(record)
    if record['status'] != _STATUS_FLOW[target]:
        raise ValidationError(f"Cannot move a {record['status']} quiz to {target}")
    updated = service.update('quizzes', quiz_id, {'status': target})
    current_app.logger.info(f"[status] quiz={quiz_id} {record['status']} -> {target}")
    return jsonify(updated)


@quizzes.route('/quizzes/<string:quiz_id>/start', methods=['POST'])
def start_quiz(quiz_id):
    return _transition(quiz_id, PLAYING)


@quizzes.route('/quizzes/<string:quiz_id>/finish', methods=['POST'])
def finish_quiz(quiz_id):
    return _transition(quiz_id, FINISHED)


@quizzes.route('/quizzes/<string:quiz_id>/results', methods=['GET'])
def get_results(quiz_id):
    service = get_shared_state_service()
    record = _load_quiz(quiz_id, with_players=True)
    if record is None:
        return jsonify({'error': 'Quiz not found'}), 404
    quiz = quiz_from_record(record)
    answers = [
        answer_from_record(a)
        for a in service.query('answers', {'quiz_id': quiz_id}, order_by=(('answered_at', 'asc'),))
    ]
    roster = [player_from_record(p) for p in record.get('players') or []]
    results = compute_results(quiz, roster, answers)
    return jsonify({
        'quiz_id': quiz_id,
        'status': quiz.status,
        'results': [r.to_dict() for r in results],
    })
