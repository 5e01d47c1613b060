from flask import current_app
from flask_socketio import join_room, leave_room, emit
from livequiz import socketio


def _room(quiz_id: str) -> str:
    return f"quiz:{quiz_id}"


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_subscribe(data):
    quiz_id = (data or {}).get('quiz_id')
    if not quiz_id:
        emit('error', {'message': 'quiz_id is required'})
        return
    room = _room(quiz_id)
    join_room(room)
    current_app.logger.debug(f"[feed-subscribe] room={room}")
    emit('subscribed', {'room': room, 'quiz_id': quiz_id})


def handle_unsubscribe(data):
    quiz_id = (data or {}).get('quiz_id')
    if not quiz_id:
        emit('error', {'message': 'quiz_id is required'})
        return
    room = _room(quiz_id)
    leave_room(room)
    emit('unsubscribed', {'room': room, 'quiz_id': quiz_id})


def handle_ping(data):
    emit('pong', data or {})


_HANDLERS = (
    ('connect', handle_connect),
    ('subscribe', handle_subscribe),
    ('unsubscribe', handle_unsubscribe),
    ('ping', handle_ping),
)


def register_socketio_handlers(testing: bool = False) -> None:
    """Register the change-feed handlers.

    Always registered on namespace '/ws'. When testing is True, handlers are
    mirrored on the default namespace '/' for the test client.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        for event, handler in _HANDLERS:
            socketio.on_event(event, handler, namespace=namespace)
