import os
import sys
import pytest

# Ensure the backend root (containing the `livequiz` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from livequiz import create_app, db, socketio
from livequiz.services.session.scheduler import TaskHandle


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JOIN_BASE_URL = 'http://quiz.test'
    TICK_INTERVAL_SEC = 1
    RESULT_DISPLAY_SEC = 3
    RANKINGS_POLL_INTERVAL_SEC = 2


class ManualScheduler:
    """Records scheduled callbacks so tests decide when they fire."""

    def __init__(self):
        self.tasks = []

    def call_later(self, delay, fn, name='call-later'):
        return self._add(name, fn, repeat=False)

    def every(self, interval, fn, name='every'):
        return self._add(name, fn, repeat=True)

    def _add(self, name, fn, repeat):
        handle = TaskHandle(name)
        self.tasks.append((handle, fn, repeat))
        return handle

    def active(self, name=None):
        return [h for h, _, _ in self.tasks if not h.cancelled and (name is None or h.name == name)]

    def run(self, name):
        """Fire every live task called ``name`` once; one-shot tasks are consumed."""
        due = [(h, fn, repeat) for h, fn, repeat in self.tasks if h.name == name and not h.cancelled]
        self.tasks = [t for t in self.tasks if not (t[0].name == name and not t[2])]
        results = []
        for handle, fn, repeat in due:
            if not handle.cancelled:
                results.append(fn())
        return results


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import livequiz.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def service(flask_app):
    from livequiz.services.session.store import get_shared_state_service
    return get_shared_state_service()


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def scheduler_factory():
    return ManualScheduler


@pytest.fixture()
def quiz_payload():
    return {
        'title': 'Bible Basics',
        'description': 'A warm-up round',
        'max_players': 4,
        'time_type': 'per_question',
        'time_per_question': 20,
        'total_time': 10,
        'lives': 3,
        'shuffle_answers': False,
        'questions': [
            {'question': 'Who built the ark?', 'options': ['Moses', 'Noah', 'David', 'Elijah'], 'correct_answer': 1},
            {'question': 'Who faced the lions?', 'options': ['Ruth', 'Esther', 'Daniel', 'Joshua'], 'correct_answer': 2},
        ],
    }
