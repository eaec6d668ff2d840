"""Common utilities for tests."""

import datetime
import unittest.mock
from typing import Any, Callable, Optional

from mockfirestore import CollectionReference, MockFirestore, Query
from mockfirestore.document import DocumentReference

NOW = datetime.datetime(2024, 6, 1, 12, 0, tzinfo=datetime.timezone.utc)

# Live watches created through the patched on_snapshot.
WATCHES: list["MockWatch"] = []


def fixed_clock(now: datetime.datetime = NOW) -> Callable[[], datetime.datetime]:
    return lambda: now


class MockWatch:
    """Stands in for a Firestore watch: pushes the query's current results."""

    def __init__(self, query: Any, callback: Callable[..., None]) -> None:
        self.query = query
        self.callback = callback
        self.active = True

    def push(self) -> None:
        if self.active:
            self.callback(list(self.query.stream()), [], None)

    def unsubscribe(self) -> None:
        self.active = False


def push_all() -> None:
    """Re-deliver every live watch, as if the underlying documents changed."""
    for watch in list(WATCHES):
        watch.push()


class MockBatch:
    def __init__(self, db: Any) -> None:
        self.db = db
        self.updates: list[tuple[Any, Any]] = []
        self.commit = unittest.mock.MagicMock(side_effect=self._real_commit)

    def update(self, ref: Any, data: Any) -> None:
        self.updates.append((ref, data))

    def _real_commit(self) -> None:
        for ref, data in self.updates:
            ref.update(data)


def patch_mockfirestore() -> None:
    """Apply monkeypatches to mockfirestore for FieldFilter, get_all and listeners."""

    def where(
        self: Any,
        field_path: Optional[str] = None,
        op_string: Optional[str] = None,
        value: Any = None,
        filter: Any = None,
    ) -> Any:
        if filter:
            return self._where(filter.field_path, filter.op_string, filter.value)
        return self._where(field_path, op_string, value)

    for cls in (CollectionReference, Query):
        if not hasattr(cls, "_where"):
            cls._where = cls.where
            cls.where = where

    def on_snapshot(self: Any, callback: Callable[..., None]) -> MockWatch:
        watch = MockWatch(self, callback)
        WATCHES.append(watch)
        watch.push()
        return watch

    Query.on_snapshot = on_snapshot
    CollectionReference.on_snapshot = on_snapshot

    def doc_ref_eq(self: Any, other: Any) -> bool:
        if not isinstance(other, DocumentReference):
            return False
        return self._path == other._path

    if not hasattr(DocumentReference, "_orig_eq"):
        DocumentReference._orig_eq = DocumentReference.__eq__
        DocumentReference.__eq__ = doc_ref_eq
        DocumentReference.__hash__ = lambda self: hash(tuple(self._path))

    def get_all(self: Any, references: Any, *args: Any, **kwargs: Any) -> Any:
        return [ref.get() for ref in references]

    MockFirestore.get_all = get_all


def make_db() -> MockFirestore:
    """A fresh patched MockFirestore with batches that apply on commit."""
    patch_mockfirestore()
    WATCHES.clear()
    db = MockFirestore()
    db.batch = lambda: MockBatch(db)
    return db


def add_event(db: Any, event_id: str, **fields: Any) -> None:
    data = {
        "title": event_id,
        "type": "match",
        "gameType": "mens_doubles",
        "status": "open",
        "scheduledTime": NOW + datetime.timedelta(days=1),
        "duration": 120,
        "hostId": "host1",
        "hostName": "Host One",
        "participants": [],
    }
    data.update(fields)
    db.collection("events").document(event_id).set(data)


def add_application(db: Any, application_id: str, **fields: Any) -> None:
    data = {
        "eventId": "event1",
        "applicantId": "user1",
        "applicantName": "User One",
        "partnerId": None,
        "partnerName": None,
        "status": "pending",
        "message": "",
        "appliedAt": NOW - datetime.timedelta(days=2),
    }
    data.update(fields)
    db.collection("participation_applications").document(application_id).set(data)
