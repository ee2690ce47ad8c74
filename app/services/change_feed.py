"""Change notifications for committed row changes.

Viewers subscribe to a table with optional equality filters and receive a
:class:`ChangeEvent` after a matching insert, update or delete commits. The
event only says *that* something changed; subscribers re-fetch the rows they
show instead of patching local copies.

Fan-out is in-process. With several web worker processes each one only sees
its own commits, so pass a ``relay`` that forwards events to a shared bus
(for example the Redis broker Celery already uses) and feed events received
from the bus into :meth:`ChangeNotifier.deliver` on every worker. A single
process needs no relay.
"""

import logging
import queue
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Optional

from flask import current_app, has_app_context
from sqlalchemy import event
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"

# model class name -> (table name, columns copied into the event for filtering)
TRACKED = {
    "Order": ("orders", ("id", "user_id", "status")),
    "ProductReview": ("product_reviews", ("id", "product_id", "user_id")),
}

_PENDING_KEY = "_pending_changes"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    op: str
    row: Dict = field(default_factory=dict)
    at: datetime = field(default_factory=datetime.utcnow)

    def matches(self, table: str, filters: Dict) -> bool:
        if table != self.table:
            return False
        return all(self.row.get(k) == v for k, v in filters.items())

    def to_dict(self) -> Dict:
        return {"table": self.table, "op": self.op, "row": self.row, "at": self.at.isoformat()}

    @classmethod
    def from_dict(cls, data: Dict) -> "ChangeEvent":
        return cls(table=data["table"], op=data["op"], row=dict(data.get("row") or {}),
                   at=datetime.fromisoformat(data["at"]) if data.get("at") else datetime.utcnow())


@dataclass
class _Subscription:
    table: str
    filters: Dict
    handler: Callable[[ChangeEvent], None]


class ChangeNotifier:
    """In-process fan-out of change events, optionally relayed to other processes."""

    def __init__(self, relay: Optional[Callable[[ChangeEvent], None]] = None):
        self._lock = threading.Lock()
        self._subs: Dict[str, _Subscription] = {}
        self.relay = relay

    def subscribe(self, table: str, handler: Callable[[ChangeEvent], None], **filters) -> str:
        token = uuid.uuid4().hex
        with self._lock:
            self._subs[token] = _Subscription(table=table, filters=filters, handler=handler)
        return token

    def unsubscribe(self, token: str) -> bool:
        with self._lock:
            return self._subs.pop(token, None) is not None

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subs)

    def deliver(self, change: ChangeEvent) -> int:
        """Hand an event to the matching local subscribers; returns how many."""
        with self._lock:
            targets = [s for s in self._subs.values() if change.matches(s.table, s.filters)]
        for sub in targets:
            try:
                sub.handler(change)
            except Exception:
                logger.exception("Change handler failed for %s %s", change.table, change.op)
        return len(targets)

    def publish(self, change: ChangeEvent) -> int:
        count = self.deliver(change)
        if self.relay is not None:
            try:
                self.relay(change)
            except Exception:
                logger.exception("Failed to relay %s %s change", change.table, change.op)
        return count

    def queue_subscription(self, table: str, maxsize: int = 100, **filters):
        """Subscribe a bounded queue; returns (token, queue). Overflow drops events."""
        q = queue.Queue(maxsize=maxsize)

        def _put(change):
            try:
                q.put_nowait(change)
            except queue.Full:
                logger.warning("Change feed subscriber is not keeping up; dropping %s event", change.table)

        return self.subscribe(table, _put, **filters), q


def _snapshot(obj, op):
    name = type(obj).__name__
    table, columns = TRACKED[name]
    return ChangeEvent(table=table, op=op, row={c: getattr(obj, c, None) for c in columns})


def _collect(session, flush_context, instances):
    pending = session.info.setdefault(_PENDING_KEY, [])
    for op, objs in ((INSERT, session.new), (UPDATE, session.dirty), (DELETE, session.deleted)):
        for obj in objs:
            if type(obj).__name__ not in TRACKED:
                continue
            if op == UPDATE and not session.is_modified(obj, include_collections=False):
                continue
            pending.append((obj, op))


def _after_flush(session, flush_context):
    # Snapshot after the flush so generated ids and defaults are populated
    staged = session.info.pop(_PENDING_KEY, [])
    if staged:
        session.info.setdefault("_flushed_changes", []).extend(_snapshot(o, op) for o, op in staged)


def _after_commit(session):
    changes = session.info.pop("_flushed_changes", [])
    if not changes or not has_app_context():
        return
    notifier = current_app.extensions.get("change_notifier")
    if notifier is None:
        return
    for change in changes:
        notifier.publish(change)


def _after_rollback(session):
    session.info.pop(_PENDING_KEY, None)
    session.info.pop("_flushed_changes", None)


def install_session_hooks():
    if event.contains(Session, "after_commit", _after_commit):
        return
    event.listen(Session, "before_flush", _collect)
    event.listen(Session, "after_flush", _after_flush)
    event.listen(Session, "after_commit", _after_commit)
    event.listen(Session, "after_rollback", _after_rollback)


def init_app(app, notifier=None):
    app.extensions["change_notifier"] = notifier or ChangeNotifier()
    install_session_hooks()
    return app.extensions["change_notifier"]


def get_notifier() -> ChangeNotifier:
    return current_app.extensions["change_notifier"]
