import threading
import time

from flask import current_app

from livequiz.services.session.client import QuizClient
from livequiz.services.session.scheduler import SocketIOScheduler


def test_call_later_runs_inside_app_context(flask_app):
    scheduler = SocketIOScheduler(flask_app)
    done = threading.Event()
    seen = []

    def job():
        seen.append(current_app.config['JOIN_BASE_URL'])
        done.set()

    handle = scheduler.call_later(0.01, job, name='probe')
    assert done.wait(2)
    assert seen == ['http://quiz.test']
    assert handle.name == 'probe'


def test_cancelled_call_never_fires(flask_app):
    scheduler = SocketIOScheduler(flask_app)
    fired = []
    handle = scheduler.call_later(0.2, lambda: fired.append(1))
    handle.cancel()
    time.sleep(0.4)
    assert fired == []


def test_every_repeats_until_cancelled_and_survives_errors(flask_app):
    scheduler = SocketIOScheduler(flask_app)
    calls = []
    enough = threading.Event()

    def job():
        calls.append(1)
        if len(calls) >= 3:
            enough.set()
        if len(calls) == 1:
            raise RuntimeError('first run fails')

    handle = scheduler.every(0.01, job, name='poll')
    assert enough.wait(2)
    handle.cancel()
    time.sleep(0.05)
    settled = len(calls)
    time.sleep(0.1)
    assert len(calls) == settled


def test_client_for_app_uses_background_timers(flask_app):
    qc = QuizClient.for_app(flask_app)
    assert isinstance(qc.scheduler, SocketIOScheduler)
    assert qc.tick_interval == 1
    assert qc.result_delay == 3
    assert qc.poll_interval == 2
    assert qc.connect() is True
