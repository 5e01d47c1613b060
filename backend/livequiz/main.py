from flask import Blueprint, jsonify, current_app
from livequiz.services.session.avatars import AVATARS
from livequiz.services.session.errors import ConnectivityError
from livequiz.services.session.store import get_shared_state_service

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'name': 'livequiz', 'status': 'ok'})


@main.route('/api/health')
def health():
    try:
        get_shared_state_service().ping()
    except ConnectivityError as exc:
        current_app.logger.warning(f"[health] store unreachable: {exc}")
        return jsonify({'status': 'unavailable', 'error': str(exc)}), 503
    return jsonify({'status': 'ok'})


@main.route('/api/avatars')
def list_avatars():
    return jsonify([avatar.to_dict() for avatar in AVATARS])
