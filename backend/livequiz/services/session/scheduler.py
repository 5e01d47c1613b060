"""Background timers for round ticking, result delays and rankings polling."""

from __future__ import annotations

from typing import Callable

from livequiz import socketio


class TaskHandle:
    def __init__(self, name: str) -> None:
        self.name = name
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class SocketIOScheduler:
    """Runs callbacks on Socket.IO background tasks inside an app context.

    Cancellation is cooperative: a cancelled handle is checked after every
    sleep, so a callback never fires once its owner has cancelled it.
    """

    def __init__(self, app) -> None:
        self.app = app

    def call_later(self, delay: float, fn: Callable[[], None], name: str = 'call-later') -> TaskHandle:
        handle = TaskHandle(name)

        def _runner():
            socketio.sleep(delay)
            if handle.cancelled:
                return
            self._run(handle, fn)

        socketio.start_background_task(_runner)
        return handle

    def every(self, interval: float, fn: Callable[[], None], name: str = 'every') -> TaskHandle:
        handle = TaskHandle(name)

        def _runner():
            while not handle.cancelled:
                socketio.sleep(interval)
                if handle.cancelled:
                    return
                self._run(handle, fn)

        socketio.start_background_task(_runner)
        return handle

    def _run(self, handle: TaskHandle, fn: Callable[[], None]) -> None:
        with self.app.app_context():
            try:
                fn()
            except Exception as exc:
                # Keep periodic tasks alive across a failed iteration
                self.app.logger.exception(f"[task-error] task={handle.name} error={exc}")
