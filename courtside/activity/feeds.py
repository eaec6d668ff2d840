"""Live activity feeds built on Firestore snapshot listeners.

Every feed owns its listeners and the latest documents they delivered.
Whenever a listener fires, the feed reruns one full pass over that state
and hands the resulting list to its callback. Listener callbacks arrive on
Firestore watch threads, so passes are serialized with a lock; the last pass
to finish is the one the callback saw last.
"""

from __future__ import annotations

import datetime
import logging
import threading
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any, Optional, TypeVar

from firebase_admin import firestore

from courtside.core.constants import (
    APP_APPROVED,
    APP_LOOKING_FOR_PARTNER,
    APP_PENDING,
    APPLICATIONS_COLLECTION,
    EVENT_STATUS_CANCELLED,
    EVENTS_COLLECTION,
    FEED_ALL,
    FEED_STATUSES,
    FEED_UPCOMING,
    HOST_ACTION_STATUSES,
    HOSTED_FEED_LIMIT,
    PARTICIPANT_SCAN_STATUSES,
    PAST_HOSTED_LIMIT,
    PAST_PARTICIPANT_SCAN_LIMIT,
    SOLO_LOBBY_STATUSES,
    USERS_COLLECTION,
)
from courtside.errors import ValidationError

from .lifecycle import is_completed_for_24_hours, is_meetup, show_as_active
from .models import Event, EventWithParticipation, ParticipationApplication
from .reconciler import reconcile
from .utils import fetch_documents, query_in, utcnow

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.query import Query

logger = logging.getLogger(__name__)

FeedCallback = Callable[[list[EventWithParticipation]], None]
Clock = Callable[[], datetime.datetime]
T = TypeVar("T")


def _keep_for_status(status: str, is_active: bool) -> bool:
    if status == FEED_ALL:
        return True
    return is_active == (status == FEED_UPCOMING)


def _convert(
    docs: Iterable[DocumentSnapshot], factory: Callable[[DocumentSnapshot], T]
) -> list[T]:
    """Normalize each snapshot, logging and skipping the ones that fail."""
    converted: list[T] = []
    for doc in docs:
        try:
            converted.append(factory(doc))
        except Exception as e:
            logger.error(f"Skipping unreadable document {doc.id}: {e}")
    return converted


class FeedController:
    """Shared subscription and pass plumbing for the activity feeds."""

    name = "feed"

    def __init__(
        self,
        db: Client | None,
        user_id: str,
        callback: Optional[FeedCallback] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        """Create a feed for one user; nothing is subscribed until `start`."""
        self.db = db if db is not None else firestore.client()
        self.user_id = user_id
        self.callback = callback
        self.clock = clock or utcnow
        self.last_result: list[EventWithParticipation] | None = None
        self._lock = threading.Lock()
        self._closed = threading.Event()
        self._watches: list[Any] = []

    def _subscriptions(
        self,
    ) -> list[tuple[Query, Callable[[list[DocumentSnapshot]], None]]]:
        """Return the queries to listen to and the handler for each."""
        raise NotImplementedError

    def _run_pass(self) -> list[EventWithParticipation]:
        """Build the feed from the current inputs."""
        raise NotImplementedError

    @property
    def closed(self) -> bool:
        """Whether `unsubscribe` has been called."""
        return self._closed.is_set()

    def start(self) -> Callable[[], None]:
        """Attach the listeners and return the matching unsubscribe function."""
        for query, handler in self._subscriptions():
            try:
                watch = query.on_snapshot(self._listener(handler))
            except Exception as e:
                logger.error(
                    f"[{self.name}] Could not subscribe for {self.user_id}: {e}"
                )
                with self._lock:
                    self._emit(self.last_result or [])
                continue
            if self.closed:
                watch.unsubscribe()
            else:
                self._watches.append(watch)
        return self.unsubscribe

    def unsubscribe(self) -> None:
        """Detach every listener; passes still running will not call back."""
        self._closed.set()
        watches, self._watches = self._watches, []
        for watch in watches:
            try:
                watch.unsubscribe()
            except Exception as e:
                logger.warning(f"[{self.name}] Error while unsubscribing: {e}")

    def load(self) -> list[EventWithParticipation]:
        """Read every query once and run a single pass, without listening."""
        with self._lock:
            for query, handler in self._subscriptions():
                try:
                    docs = list(query.stream())
                except Exception as e:
                    logger.error(f"[{self.name}] Query failed for {self.user_id}: {e}")
                    docs = []
                try:
                    handler(docs)
                except Exception as e:
                    logger.error(f"[{self.name}] Could not read snapshot: {e}")
            return self._safe_pass()

    def _listener(
        self, handler: Callable[[list[DocumentSnapshot]], None]
    ) -> Callable[..., None]:
        def on_snapshot(docs: Any, changes: Any = None, read_time: Any = None) -> None:
            if self.closed:
                return
            with self._lock:
                try:
                    handler(list(docs))
                except Exception as e:
                    logger.error(f"[{self.name}] Could not read snapshot: {e}")
                self._emit(self._safe_pass())

        return on_snapshot

    def _safe_pass(self) -> list[EventWithParticipation]:
        try:
            return self._run_pass()
        except Exception as e:
            logger.error(f"[{self.name}] Pass failed for {self.user_id}: {e}")
            return list(self.last_result or [])

    def _emit(self, result: list[EventWithParticipation]) -> None:
        if self.closed:
            logger.debug(f"[{self.name}] Dropping result after unsubscribe")
            return
        self.last_result = result
        if self.callback is not None:
            self.callback(result)


class AppliedEventsFeed(FeedController):
    """Events the user applied to, as applicant or as invited partner."""

    name = "applied"

    def __init__(
        self,
        db: Client | None,
        user_id: str,
        callback: Optional[FeedCallback] = None,
        status: str = FEED_UPCOMING,
        clock: Optional[Clock] = None,
    ) -> None:
        """Create the feed; ``status`` is upcoming, completed or all."""
        if status not in FEED_STATUSES:
            raise ValidationError(f"Unknown feed status: {status}")
        super().__init__(db, user_id, callback, clock)
        self.status = status
        self.applicant_docs: list[ParticipationApplication] = []
        self.partner_docs: list[ParticipationApplication] = []

    def _subscriptions(
        self,
    ) -> list[tuple[Query, Callable[[list[DocumentSnapshot]], None]]]:
        applications = self.db.collection(APPLICATIONS_COLLECTION)
        return [
            (
                applications.where(
                    filter=firestore.FieldFilter("applicantId", "==", self.user_id)
                ),
                self._set_applicant_docs,
            ),
            (
                applications.where(
                    filter=firestore.FieldFilter("partnerId", "==", self.user_id)
                ),
                self._set_partner_docs,
            ),
        ]

    def _set_applicant_docs(self, docs: list[DocumentSnapshot]) -> None:
        self.applicant_docs = _convert(docs, ParticipationApplication.from_snapshot)

    def _set_partner_docs(self, docs: list[DocumentSnapshot]) -> None:
        self.partner_docs = _convert(docs, ParticipationApplication.from_snapshot)

    def _run_pass(self) -> list[EventWithParticipation]:
        now = self.clock()
        my_applications = reconcile(self.applicant_docs, self.partner_docs)
        if not my_applications:
            return []

        event_ids = list(my_applications)
        event_docs = fetch_documents(self.db, EVENTS_COLLECTION, event_ids)
        related = query_in(self.db, APPLICATIONS_COLLECTION, "eventId", event_ids)

        items = []
        for event_id, application in my_applications.items():
            snapshot = event_docs.get(event_id)
            if snapshot is None:
                logger.warning(f"[applied] Event {event_id} not found")
                continue
            try:
                items.append(
                    self._build_item(
                        Event.from_snapshot(snapshot), application, related.get(event_id)
                    )
                )
            except Exception as e:
                logger.error(f"[applied] Error building event {event_id}: {e}")

        # Hosted events belong to the hosted feed only.
        items = [item for item in items if item.event.host_id != self.user_id]
        self._backfill_host_names(items)

        visible = [item for item in items if self._keep(item, now)]
        visible.sort(key=lambda item: item.scheduled_time, reverse=True)
        return visible

    def _build_item(
        self,
        event: Event,
        application: ParticipationApplication,
        related: Optional[list[DocumentSnapshot]],
    ) -> EventWithParticipation:
        item = EventWithParticipation(event=event, my_application=application)
        if related is None:
            item.current_participants = event.current_participants
            return item

        event_applications = _convert(related, ParticipationApplication.from_snapshot)
        item.attach_applications(
            [a for a in event_applications if a.status in (APP_APPROVED, APP_PENDING)]
        )
        if application.status == APP_LOOKING_FOR_PARTNER:
            item.solo_lobby_count = sum(
                1
                for a in event_applications
                if a.status == APP_LOOKING_FOR_PARTNER
                and a.applicant_id != self.user_id
            )
        return item

    def _backfill_host_names(self, items: list[EventWithParticipation]) -> None:
        missing = {
            item.event.host_id
            for item in items
            if item.event.host_id and not item.event.host_name
        }
        if not missing:
            return
        hosts = fetch_documents(self.db, USERS_COLLECTION, missing)
        for item in items:
            if item.event.host_name or not item.event.host_id:
                continue
            host = hosts.get(item.event.host_id)
            if host is not None:
                data = host.to_dict() or {}
                item.event.host_name = data.get("displayName") or "Unknown Host"

    def _keep(self, item: EventWithParticipation, now: datetime.datetime) -> bool:
        application = item.my_application
        # A pending partner decision keeps the event up regardless of timing.
        if application is not None and application.status in SOLO_LOBBY_STATUSES:
            is_active = True
        else:
            is_active = show_as_active(item.event, now)
        return _keep_for_status(self.status, is_active)


class HostedEventsFeed(FeedController):
    """Events the user is hosting, with their applications."""

    name = "hosted"

    def __init__(
        self,
        db: Client | None,
        user_id: str,
        callback: Optional[FeedCallback] = None,
        status: str = FEED_UPCOMING,
        clock: Optional[Clock] = None,
    ) -> None:
        """Create the feed; ``status`` is upcoming, completed or all."""
        if status not in FEED_STATUSES:
            raise ValidationError(f"Unknown feed status: {status}")
        super().__init__(db, user_id, callback, clock)
        self.status = status
        self.events: list[Event] = []

    def _subscriptions(
        self,
    ) -> list[tuple[Query, Callable[[list[DocumentSnapshot]], None]]]:
        query = (
            self.db.collection(EVENTS_COLLECTION)
            .where(filter=firestore.FieldFilter("hostId", "==", self.user_id))
            .order_by("scheduledTime", direction=firestore.Query.DESCENDING)
            .limit(HOSTED_FEED_LIMIT)
        )
        return [(query, self._set_events)]

    def _set_events(self, docs: list[DocumentSnapshot]) -> None:
        self.events = _convert(docs, Event.from_snapshot)

    def _run_pass(self) -> list[EventWithParticipation]:
        now = self.clock()
        events = [e for e in self.events if e.status != EVENT_STATUS_CANCELLED]
        if not events:
            return []

        related = query_in(
            self.db, APPLICATIONS_COLLECTION, "eventId", [e.id for e in events]
        )
        visible = []
        for event in events:
            item = EventWithParticipation(event=event, is_host=True)
            docs = related.get(event.id)
            if docs is None:
                logger.warning(f"[hosted] Applications unavailable for {event.id}")
                docs = []
            applications = _convert(docs, ParticipationApplication.from_snapshot)
            applications.sort(key=lambda a: a.applied_at, reverse=True)
            item.attach_applications(applications)

            awaiting_host = any(a.status in HOST_ACTION_STATUSES for a in applications)
            is_active = awaiting_host or show_as_active(event, now)
            if _keep_for_status(self.status, is_active):
                visible.append(item)

        visible.sort(key=lambda item: item.scheduled_time, reverse=True)
        return visible


class PastEventsFeed(FeedController):
    """Finished matches the user hosted, joined, or played in."""

    name = "past"

    def __init__(
        self,
        db: Client | None,
        user_id: str,
        callback: Optional[FeedCallback] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        """Create the feed."""
        super().__init__(db, user_id, callback, clock)
        self.hosted_events: list[Event] = []

    def _subscriptions(
        self,
    ) -> list[tuple[Query, Callable[[list[DocumentSnapshot]], None]]]:
        query = (
            self.db.collection(EVENTS_COLLECTION)
            .where(filter=firestore.FieldFilter("hostId", "==", self.user_id))
            .order_by("scheduledTime", direction=firestore.Query.DESCENDING)
            .limit(PAST_HOSTED_LIMIT)
        )
        return [(query, self._set_hosted_events)]

    def _set_hosted_events(self, docs: list[DocumentSnapshot]) -> None:
        self.hosted_events = _convert(docs, Event.from_snapshot)

    def _run_pass(self) -> list[EventWithParticipation]:
        now = self.clock()
        found: dict[str, EventWithParticipation] = {}

        for event in self.hosted_events:
            if self._is_past_match(event, now):
                found.setdefault(
                    event.id, EventWithParticipation(event=event, is_host=True)
                )

        for item in self._approved_participations(now):
            found.setdefault(item.id, item)

        for item in self._played_singles(now, set(found)):
            found.setdefault(item.id, item)

        items = list(found.values())
        items.sort(key=lambda item: item.scheduled_time, reverse=True)
        return items

    @staticmethod
    def _is_past_match(event: Event, now: datetime.datetime) -> bool:
        if is_meetup(event):
            return False
        return event.match_result is not None or is_completed_for_24_hours(event, now)

    def _approved_participations(
        self, now: datetime.datetime
    ) -> list[EventWithParticipation]:
        applications_ref = self.db.collection(APPLICATIONS_COLLECTION)
        approved = firestore.FieldFilter("status", "==", APP_APPROVED)
        applications: dict[str, ParticipationApplication] = {}
        try:
            for role in ("applicantId", "partnerId"):
                query = applications_ref.where(
                    filter=firestore.FieldFilter(role, "==", self.user_id)
                ).where(filter=approved)
                for application in _convert(
                    query.stream(), ParticipationApplication.from_snapshot
                ):
                    applications[application.id] = application
        except Exception as e:
            logger.error(f"[past] Error fetching approved applications: {e}")
            return []

        event_docs = fetch_documents(
            self.db,
            EVENTS_COLLECTION,
            [a.event_id for a in applications.values() if a.event_id],
        )
        events = {e.id: e for e in _convert(event_docs.values(), Event.from_snapshot)}
        items = []
        for application in applications.values():
            event = events.get(application.event_id or "")
            if event is None:
                continue
            started = event.scheduled_time < now
            if not (started or event.match_result is not None):
                continue
            if self._is_past_match(event, now):
                items.append(
                    EventWithParticipation(event=event, my_application=application)
                )
        return items

    def _played_singles(
        self, now: datetime.datetime, seen: set[str]
    ) -> list[EventWithParticipation]:
        """Singles guests sit in the event's participants list, not in applications."""
        query = (
            self.db.collection(EVENTS_COLLECTION)
            .where(
                filter=firestore.FieldFilter("status", "in", PARTICIPANT_SCAN_STATUSES)
            )
            .order_by("scheduledTime", direction=firestore.Query.DESCENDING)
            .limit(PAST_PARTICIPANT_SCAN_LIMIT)
        )
        try:
            docs = list(query.stream())
        except Exception as e:
            logger.error(f"[past] Error scanning participant events: {e}")
            return []

        cutoff = now - datetime.timedelta(hours=24)
        items = []
        for event in _convert(docs, Event.from_snapshot):
            if event.id in seen:
                continue
            if event.host_id == self.user_id or not event.has_participant(self.user_id):
                continue
            finished = event.match_result is not None or event.scheduled_time < cutoff
            if finished and not is_meetup(event):
                items.append(EventWithParticipation(event=event))
        return items


def subscribe_to_applied_events(
    db: Client | None,
    user_id: str,
    callback: FeedCallback,
    status: str = FEED_UPCOMING,
    clock: Optional[Clock] = None,
) -> Callable[[], None]:
    """Listen to the user's applied events; returns the unsubscribe function."""
    return AppliedEventsFeed(db, user_id, callback, status=status, clock=clock).start()


def subscribe_to_hosted_events(
    db: Client | None,
    user_id: str,
    callback: FeedCallback,
    status: str = FEED_UPCOMING,
    clock: Optional[Clock] = None,
) -> Callable[[], None]:
    """Listen to the events the user hosts; returns the unsubscribe function."""
    return HostedEventsFeed(db, user_id, callback, status=status, clock=clock).start()


def subscribe_to_past_events(
    db: Client | None,
    user_id: str,
    callback: FeedCallback,
    clock: Optional[Clock] = None,
) -> Callable[[], None]:
    """Listen to the user's past matches; returns the unsubscribe function."""
    return PastEventsFeed(db, user_id, callback, clock=clock).start()
