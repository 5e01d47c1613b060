"""Shared state service: the record store every participant synchronizes with.

The service exposes generic record operations per collection (``quizzes``,
``players``, ``answers``) and a change feed. ``SqlSharedStateService`` backs
it with the Flask-SQLAlchemy models and fans player changes out both to
in-process subscribers and to Socket.IO rooms for browser clients.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from threading import Lock
from typing import Any, Callable, Sequence

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from livequiz import db, socketio
from livequiz.models import Answer, Player, Quiz, generate_id, utcnow

from .errors import ConnectivityError, RecordNotFoundError

COLLECTIONS = {
    'quizzes': Quiz,
    'players': Player,
    'answers': Answer,
}

# Collections whose writes are broadcast on the change feed
WATCHED_COLLECTIONS = {'players'}

_TIMESTAMP_FIELDS = ('created_at', 'updated_at', 'joined_at', 'answered_at')


class Subscription:
    """Handle returned by ``subscribe``; ``cancel()`` stops delivery."""

    def __init__(self, on_cancel: Callable[[], None]) -> None:
        self._on_cancel = on_cancel
        self.cancelled = False

    def cancel(self) -> None:
        if not self.cancelled:
            self.cancelled = True
            self._on_cancel()


class SharedStateService(ABC):
    @abstractmethod
    def ping(self) -> bool:
        """Raise ConnectivityError when the store cannot be reached."""

    @abstractmethod
    def insert(self, collection: str, record: dict) -> dict: ...

    @abstractmethod
    def get(self, collection: str, record_id: str, embed: Sequence[str] = ()) -> dict | None: ...

    @abstractmethod
    def query(
        self,
        collection: str,
        filters: dict | None = None,
        order_by: Sequence[tuple[str, str]] = (),
    ) -> list[dict]: ...

    @abstractmethod
    def update(self, collection: str, record_id: str, partial: dict) -> dict: ...

    @abstractmethod
    def subscribe(
        self, collection: str, filters: dict | None, callback: Callable[[dict], None]
    ) -> Subscription: ...


class SqlSharedStateService(SharedStateService):
    """Shared state service backed by the application database."""

    def __init__(self) -> None:
        self._subscribers: list[tuple[str, dict, Callable[[dict], None]]] = []
        self._lock = Lock()

    def ping(self) -> bool:
        try:
            db.session.execute(text('SELECT 1'))
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise ConnectivityError(f'shared state service unreachable: {exc}') from exc
        return True

    def insert(self, collection: str, record: dict) -> dict:
        model = _model_for(collection)
        values = _coerce(model, record)
        values.setdefault('id', generate_id())
        try:
            row = model(**values)
            db.session.add(row)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            _log_failure('insert', collection, exc)
            raise ConnectivityError(f'insert into {collection} failed') from exc
        stored = row.to_dict()
        self._notify(collection, 'insert', stored)
        return stored

    def get(self, collection: str, record_id: str, embed: Sequence[str] = ()) -> dict | None:
        model = _model_for(collection)
        try:
            row = db.session.get(model, record_id)
        except SQLAlchemyError as exc:
            db.session.rollback()
            _log_failure('get', collection, exc)
            raise ConnectivityError(f'read from {collection} failed') from exc
        if row is None:
            return None
        if 'players' in embed and model is Quiz:
            return row.to_dict(include_players=True)
        return row.to_dict()

    def query(
        self,
        collection: str,
        filters: dict | None = None,
        order_by: Sequence[tuple[str, str]] = (),
    ) -> list[dict]:
        model = _model_for(collection)
        stmt = db.select(model).filter_by(**(filters or {}))
        for field_name, direction in order_by:
            column = getattr(model, field_name)
            stmt = stmt.order_by(column.desc() if direction == 'desc' else column.asc())
        try:
            rows = db.session.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            db.session.rollback()
            _log_failure('query', collection, exc)
            raise ConnectivityError(f'query on {collection} failed') from exc
        return [row.to_dict() for row in rows]

    def update(self, collection: str, record_id: str, partial: dict) -> dict:
        model = _model_for(collection)
        values = _coerce(model, partial)
        values.pop('id', None)
        if hasattr(model, 'updated_at'):
            values.setdefault('updated_at', utcnow())
        try:
            row = db.session.get(model, record_id)
            if row is None:
                db.session.rollback()
                raise RecordNotFoundError(f'{collection}/{record_id} not found')
            for key, value in values.items():
                setattr(row, key, value)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            _log_failure('update', collection, exc)
            raise ConnectivityError(f'update of {collection}/{record_id} failed') from exc
        stored = row.to_dict()
        self._notify(collection, 'update', stored)
        return stored

    def subscribe(
        self, collection: str, filters: dict | None, callback: Callable[[dict], None]
    ) -> Subscription:
        entry = (collection, dict(filters or {}), callback)
        with self._lock:
            self._subscribers.append(entry)

        def _remove() -> None:
            with self._lock:
                if entry in self._subscribers:
                    self._subscribers.remove(entry)

        return Subscription(_remove)

    def _notify(self, collection: str, event: str, record: dict) -> None:
        if collection not in WATCHED_COLLECTIONS:
            return
        change = {'collection': collection, 'event': event, 'quiz_id': record.get('quiz_id'), 'id': record.get('id')}
        if change['quiz_id']:
            socketio.emit('record_changed', change, to=f"quiz:{change['quiz_id']}", namespace='/ws')
        with self._lock:
            matching = [
                cb for (name, filters, cb) in self._subscribers
                if name == collection and _matches(record, filters)
            ]
        for callback in matching:
            try:
                callback(change)
            except Exception as exc:
                # Listener errors never fail the write
                current_app.logger.warning(f"[feed-error] collection={collection} id={record.get('id')} error={exc}")


def _model_for(collection: str):
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise ValueError(f'unknown collection: {collection}') from None


def _coerce(model, record: dict) -> dict:
    """Keep only mapped columns; parse ISO timestamps coming off the wire."""
    columns = set(model.__table__.columns.keys())
    values: dict[str, Any] = {}
    for key, value in record.items():
        if key not in columns:
            continue
        if key in _TIMESTAMP_FIELDS and isinstance(value, str):
            value = datetime.fromisoformat(value)
        values[key] = value
    return values


def _matches(record: dict, filters: dict) -> bool:
    return all(record.get(key) == value for key, value in filters.items())


def _log_failure(operation: str, collection: str, exc: Exception) -> None:
    try:
        current_app.logger.warning(f"[store-{operation}] collection={collection} error={exc}")
    except RuntimeError:
        pass


def get_shared_state_service() -> SqlSharedStateService:
    """The application's service instance, shared by HTTP handlers and in-process clients."""
    extensions = current_app.extensions
    if 'livequiz_store' not in extensions:
        extensions['livequiz_store'] = SqlSharedStateService()
    return extensions['livequiz_store']
